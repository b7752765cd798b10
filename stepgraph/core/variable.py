from typing import Any, Optional

from stepgraph import common
from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops import common as common_ops
from stepgraph.core.ops import state


class Variable:
    """ A named, mutable value living in the graph.

    Attributes:
        output: the output reading the current value.
        initializer: the Assign op that must be run once before the variable is read.
        dtype: numpy dtype of the value.
        shape: declared shape, None when unknown.
        name: unique name of the variable op.

    """

    def __init__(self, output: graph.Output, initializer: graph.Operation, dtype: common.DataType,
                 shape: Optional[common.Shape], name: str):
        self.output = output
        self.initializer = initializer
        self.dtype = dtype
        self.shape = shape
        self.name = name

    @staticmethod
    def builder() -> "VariableBuilder":
        return VariableBuilder()

    def __repr__(self):
        return f"Variable({self.name}, dtype={self.dtype}, shape={self.shape})"


class VariableBuilder:

    def __init__(self):
        self._initial_value: Optional[graph.Output] = None
        self._const_value = None
        self._shape: Optional[common.Shape] = None
        self._dtype: Optional[common.DataType] = None

    def initial_value(self, value: graph.OutputLike) -> "VariableBuilder":
        self._initial_value = graph.as_output(value)
        self._const_value = None
        return self

    def const_initial_value(self, value: common.ArrayLike, dtype: Any = None) -> "VariableBuilder":
        """The constant is only added to the graph by `build`, the shape and dtype default to the value's."""
        self._const_value = common.to_array(value, dtype)
        self._initial_value = None
        return self

    def shape(self, shape: Optional[common.Shape]) -> "VariableBuilder":
        self._shape = common.as_shape(shape)
        return self

    def data_type(self, dtype: Any) -> "VariableBuilder":
        self._dtype = common.as_dtype(dtype)
        return self

    def build(self, scope: scope_lib.Scope) -> Variable:
        shape = self._shape
        dtype = self._dtype
        if self._const_value is not None:
            if shape is None:
                shape = self._const_value.shape
            if dtype is None:
                dtype = self._const_value.dtype
        elif self._initial_value is None:
            raise errors.InvalidArgumentError("Variable needs an initial value")
        if dtype is None:
            raise errors.InvalidArgumentError("Variable data type must be set when the initial value is not a constant")

        var_op = state.variable(scope, dtype, shape)
        helper_scope = scope.scope_of(var_op.name)
        if self._const_value is not None:
            initial_value = common_ops.constant(helper_scope, self._const_value, dtype).output(0)
        else:
            initial_value = self._initial_value
        initializer = state.assign(helper_scope, var_op, initial_value)
        return Variable(var_op.output(0), initializer, dtype, shape, var_op.name)
