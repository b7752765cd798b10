from typing import List

from stepgraph.core import graph
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import training
from stepgraph.core.optimizers import adagrad


class RMSPropOptimizer(adagrad.AdaGradOptimizer):
    """AdaGrad whose accumulator decays by `rho` every step."""

    def __init__(self,
                 learning_rate: optimizer.HyperParamT = 0.01,
                 rho: optimizer.HyperParamT = 0.9,
                 epsilon: optimizer.HyperParamT = 1e-8):
        super().__init__(learning_rate)
        self.rho = rho
        self.epsilon = epsilon

    def _hyper_params(self, scope: scope_lib.Scope) -> List[graph.Output]:
        return [optimizer.or_constant(scope, self.rho, None), optimizer.or_constant(scope, self.epsilon, None)]

    def _apply(self, scope: scope_lib.Scope, var: variable.Variable, accum: variable.Variable,
               learning_rate: graph.Output, hyper_params: List[graph.Output], grad: graph.Output) -> graph.Operation:
        rho, epsilon = hyper_params
        return training.apply_rms_prop(scope, var.output, accum.output, learning_rate, rho, epsilon, grad)
