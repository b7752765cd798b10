from typing import List, Tuple

from stepgraph.core import graph
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import training


class AdadeltaOptimizer(optimizer.Optimizer):
    """ Optimizer that implements the Adadelta algorithm.

    See [M. D. Zeiler](https://arxiv.org/abs/1212.5701).

    Every variable with a gradient gets two zero initialized slots, "accum" and "accum_update", both are returned by
    `apply_gradients` and must be initialized before the step is run.

    Hyperparameters left unset become one Const each per `apply_gradients` call, shared by all variables.

    """
    DEFAULT_LEARNING_RATE = 0.001
    DEFAULT_RHO = 0.95
    DEFAULT_EPSILON = 1e-8

    def __init__(self,
                 learning_rate: optimizer.HyperParamT = None,
                 rho: optimizer.HyperParamT = None,
                 epsilon: optimizer.HyperParamT = None):
        self.learning_rate = learning_rate
        self.rho = rho
        self.epsilon = epsilon

    def set_learning_rate(self, learning_rate: optimizer.HyperParamT) -> None:
        """Sets the learning rate. Default is 0.001."""
        self.learning_rate = learning_rate

    def set_rho(self, rho: optimizer.HyperParamT) -> None:
        """Sets rho, the decay rate. Default is 0.95."""
        self.rho = rho

    def set_epsilon(self, epsilon: optimizer.HyperParamT) -> None:
        """Sets epsilon, the conditioning. Default is 1e-8."""
        self.epsilon = epsilon

    def apply_gradients(self,
                        scope: scope_lib.Scope,
                        opts: optimizer.ApplyGradientsOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        learning_rate = optimizer.or_constant(scope, self.learning_rate, self.DEFAULT_LEARNING_RATE)
        rho = optimizer.or_constant(scope, self.rho, self.DEFAULT_RHO)
        epsilon = optimizer.or_constant(scope, self.epsilon, self.DEFAULT_EPSILON)
        apply_ops = []
        variables = []
        for grad, var in self._present(opts.grads_and_vars):
            var_scope = scope.new_sub_scope(var.name)
            accum = optimizer.create_zeros_slot(var_scope.new_sub_scope("accum"), var)
            accum_update = optimizer.create_zeros_slot(var_scope.new_sub_scope("accum_update"), var)
            apply_ops.append(training.apply_adadelta(var_scope, var.output, accum.output, accum_update.output,
                                                     learning_rate, rho, epsilon, grad))
            variables.append(accum)
            variables.append(accum_update)
        return variables, self._group(scope, apply_ops)
