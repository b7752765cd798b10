from typing import List, Tuple

from stepgraph.core import graph
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import training


class AdamOptimizer(optimizer.Optimizer):
    """ Adam without bias correction.

    Every variable gets two zero initialized slots, "m" for the moving average of the gradient and "v" for the one of
    the squared gradient.

    """

    def __init__(self,
                 learning_rate: optimizer.HyperParamT = 0.01,
                 beta1: optimizer.HyperParamT = 0.9,
                 beta2: optimizer.HyperParamT = 0.99,
                 epsilon: optimizer.HyperParamT = 1e-8):
        self.learning_rate = learning_rate
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon

    def apply_gradients(self,
                        scope: scope_lib.Scope,
                        opts: optimizer.ApplyGradientsOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        learning_rate = optimizer.or_constant(scope, self.learning_rate, None)
        beta1 = optimizer.or_constant(scope, self.beta1, None)
        beta2 = optimizer.or_constant(scope, self.beta2, None)
        epsilon = optimizer.or_constant(scope, self.epsilon, None)
        apply_ops = []
        variables = []
        for grad, var in self._present(opts.grads_and_vars):
            var_scope = scope.new_sub_scope(var.name)
            m = optimizer.create_zeros_slot(var_scope.new_sub_scope("m"), var)
            v = optimizer.create_zeros_slot(var_scope.new_sub_scope("v"), var)
            apply_ops.append(training.apply_adam(var_scope, var.output, m.output, v.output,
                                                 learning_rate, beta1, beta2, epsilon, grad))
            variables.extend([m, v])
        return variables, self._group(scope, apply_ops)
