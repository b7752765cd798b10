import logging
from numbers import Number
from typing import Iterable, List, Optional, Sequence, Tuple, Union, Any

from stepgraph import common
from stepgraph.core import graph
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import common as common_ops
from stepgraph.core.ops import math

GradAndVar = Tuple[Optional[graph.Output], variable.Variable]
HyperParamT = Union[graph.Output, graph.Operation, Number, None]
_loger = logging.getLogger(__name__)


class MinimizeOptions:
    def __init__(self, variables: Iterable[variable.Variable] = ()):
        self.variables: List[variable.Variable] = list(variables)

    def with_variables(self, variables: Iterable[variable.Variable]) -> "MinimizeOptions":
        """Sets the variables which will be optimized."""
        return MinimizeOptions(variables)


class ComputeGradientsOptions:
    def __init__(self, variables: Iterable[variable.Variable] = ()):
        self.variables: List[variable.Variable] = list(variables)

    def with_variables(self, variables: Iterable[variable.Variable]) -> "ComputeGradientsOptions":
        """Sets the variables whose gradients need to be computed."""
        return ComputeGradientsOptions(variables)


class ApplyGradientsOptions:
    def __init__(self, grads_and_vars: Iterable[GradAndVar] = ()):
        self.grads_and_vars: List[GradAndVar] = list(grads_and_vars)

    def with_grads_and_vars(self, grads_and_vars: Iterable[GradAndVar]) -> "ApplyGradientsOptions":
        """Sets the variables which will be optimized and their associated gradients."""
        return ApplyGradientsOptions(grads_and_vars)


def or_constant(scope: scope_lib.Scope, value: HyperParamT, default: Any) -> graph.Output:
    """ Resolve a hyperparameter to an Output.

    Outputs and Operations are used as is, a plain number becomes a Const, and None becomes a Const of `default`.

    """
    if isinstance(value, (graph.Output, graph.Operation)):
        return graph.as_output(value)
    if value is None:
        if default is None:
            raise ValueError("Hyperparameter is not set and has no default")
        value = default
    return common_ops.constant(scope, value).output(0)


def create_zeros_slot(scope: scope_lib.Scope,
                      primary: variable.Variable,
                      dtype: Any = None) -> variable.Variable:
    """ Create a variable shaped like `primary` and initialized to zeros.

    Notes:
        The zeros are computed from `primary.output`, so the ZerosLike op waits for `primary.initializer` through a
        control input. Running the slot's initializer alone is therefore enough.

    """
    dtype = primary.dtype if dtype is None else common.as_dtype(dtype)
    zeros = math.zeros_like(scope, primary.output, control_inputs=[primary.initializer])
    return variable.Variable.builder() \
        .initial_value(zeros) \
        .shape(primary.shape) \
        .data_type(dtype) \
        .build(scope)


class Optimizer:
    """ An optimizer adds operations to a graph that adjust variables to minimize some value.

    Basic usage only requires calling `minimize`, which calls `compute_gradients` and `apply_gradients` internally.
    Call them manually when gradients must be modified in between, e.g. for clipping.

    Subclasses must implement `apply_gradients`.

    """

    def compute_gradients(self,
                          scope: scope_lib.Scope,
                          loss: graph.OutputLike,
                          opts: ComputeGradientsOptions) -> List[GradAndVar]:
        """ Computes the gradient of `loss` with respect to `opts.variables`.

        Notes:
            This adds nodes to the graph on every call, so reuse its results if possible.

        Returns:
            One (gradient, variable) pair per variable, in the same order. The gradient is None when loss does
            not depend on the variable.

        """
        variable_outputs = [v.output for v in opts.variables]
        gradients = scope.graph.add_gradients([loss], variable_outputs)
        assert len(gradients) == len(opts.variables)
        return list(zip(gradients, opts.variables))

    def apply_gradients(self,
                        scope: scope_lib.Scope,
                        opts: ApplyGradientsOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        """ Applies the given gradients to the variables.

        Pairs without gradient are skipped.

        Returns:
            Newly created variables holding the optimizer's state, they must be initialized before the
            step is run. And an operation which applies the gradients once.

        """
        raise NotImplementedError

    def minimize(self,
                 scope: scope_lib.Scope,
                 loss: graph.OutputLike,
                 opts: MinimizeOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        """Adds operations to the graph to minimize loss with respect to `opts.variables`, see `apply_gradients`."""
        grads_and_vars = self.compute_gradients(scope, loss, ComputeGradientsOptions(opts.variables))
        return self.apply_gradients(scope, ApplyGradientsOptions(grads_and_vars))

    @staticmethod
    def _present(grads_and_vars: Sequence[GradAndVar]) -> List[Tuple[graph.Output, variable.Variable]]:
        ret = []
        for grad, var in grads_and_vars:
            if grad is None:
                _loger.debug(f"Variable {var.name} has no gradient, skipped.")
                continue
            ret.append((graph.as_output(grad), var))
        return ret

    @staticmethod
    def _group(scope: scope_lib.Scope, apply_ops: Sequence[graph.Operation]) -> graph.Operation:
        no_op = common_ops.NoOp()
        for apply_op in apply_ops:
            no_op = no_op.add_control_input(apply_op)
        step = no_op.build(scope)
        _loger.debug(f"Step {step.name} joins {len(apply_ops)} updates.")
        return step
