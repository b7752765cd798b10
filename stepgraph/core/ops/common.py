# generic graph ops, and the helper every op builder in stepgraph.core.ops goes through

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from stepgraph import common
from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import kernel
from stepgraph.core import scope as scope_lib


def build_op(scope: scope_lib.Scope,
             op_type: str,
             inputs: Sequence[graph.OutputLike] = (),
             attrs: Optional[Dict[str, Any]] = None,
             control_inputs: Sequence[graph.Operation] = (),
             default_name: Optional[str] = None) -> graph.Operation:
    name = scope.get_unique_name_for_op(default_name or op_type)
    desc = scope.graph.new_operation(op_type, name)
    desc.add_input_list(inputs)
    for c in control_inputs:
        desc.add_control_input(c)
    for k, v in (attrs or {}).items():
        desc.set_attr(k, v)
    return desc.finish()


class Const(kernel.OpKernel):
    OP_TYPE = "Const"
    NUM_INPUTS = 0

    def validate(self, desc):
        if not isinstance(desc.attrs.get("value"), np.ndarray):
            raise errors.InvalidArgumentError(f"Const {desc.name} needs a numpy array `value` attr")

    def compute(self, ctx, op, inputs):
        return [op.attrs["value"]]


class Placeholder(kernel.OpKernel):
    OP_TYPE = "Placeholder"
    NUM_INPUTS = 0

    def compute(self, ctx, op, inputs):
        raise errors.InvalidArgumentError(f"You must feed a value for placeholder {op.name}")


class Identity(kernel.OpKernel):
    OP_TYPE = "Identity"
    NUM_INPUTS = 1

    def compute(self, ctx, op, inputs):
        return [inputs[0]]

    def gradient(self, scope, op, grads):
        return [grads[0]]


class NoOpKernel(kernel.OpKernel):
    """Does nothing, only used to join control inputs."""
    OP_TYPE = "NoOp"
    NUM_INPUTS = 0
    NUM_OUTPUTS = 0

    def compute(self, ctx, op, inputs):
        return []


def constant(scope: scope_lib.Scope, value: common.ArrayLike, dtype: Any = None) -> graph.Operation:
    arr = common.to_array(value, dtype)
    return build_op(scope, "Const", attrs={"value": arr, "dtype": arr.dtype})


def placeholder(scope: scope_lib.Scope, dtype: Any, shape: Optional[common.Shape] = None) -> graph.Operation:
    return build_op(scope, "Placeholder", attrs={"dtype": common.as_dtype(dtype), "shape": common.as_shape(shape)})


def identity(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Identity", [x])


class NoOp:
    """ Builder of a NoOp.

    A NoOp has no data input and no output, once built with some control inputs, running it means all of them
    had been run.

    """

    def __init__(self):
        self._control_inputs: List[graph.Operation] = []

    def add_control_input(self, op: graph.Operation) -> "NoOp":
        self._control_inputs.append(op)
        return self

    def build(self, scope: scope_lib.Scope) -> graph.Operation:
        return build_op(scope, "NoOp", control_inputs=self._control_inputs)
