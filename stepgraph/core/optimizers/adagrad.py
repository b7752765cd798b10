from typing import List, Tuple

from stepgraph.core import graph
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import training


class AdaGradOptimizer(optimizer.Optimizer):
    """Every variable gets one zero initialized "accumulator" slot holding the sum of its squared gradients."""

    def __init__(self, learning_rate: optimizer.HyperParamT = 0.01):
        self.learning_rate = learning_rate

    def apply_gradients(self,
                        scope: scope_lib.Scope,
                        opts: optimizer.ApplyGradientsOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        learning_rate = optimizer.or_constant(scope, self.learning_rate, None)
        hyper_params = self._hyper_params(scope)
        apply_ops = []
        variables = []
        for grad, var in self._present(opts.grads_and_vars):
            var_scope = scope.new_sub_scope(var.name)
            accum = optimizer.create_zeros_slot(var_scope.new_sub_scope("accumulator"), var)
            apply_ops.append(self._apply(var_scope, var, accum, learning_rate, hyper_params, grad))
            variables.append(accum)
        return variables, self._group(scope, apply_ops)

    def _hyper_params(self, scope: scope_lib.Scope) -> List[graph.Output]:
        return []

    def _apply(self, scope: scope_lib.Scope, var: variable.Variable, accum: variable.Variable,
               learning_rate: graph.Output, hyper_params: List[graph.Output], grad: graph.Output) -> graph.Operation:
        return training.apply_adagrad(scope, var.output, accum.output, learning_rate, grad)
