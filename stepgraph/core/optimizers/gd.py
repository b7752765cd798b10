from typing import List, Tuple

from stepgraph.core import graph
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import variable
from stepgraph.core.ops import training


class GradientDescentOptimizer(optimizer.Optimizer):
    """ Optimizer that implements the gradient descent algorithm.

    Without momentum each step is `var -= learning_rate * grad` and no state is created. With momentum, every
    variable gets a zero initialized "momentum" slot, and each step is
    `momentum_slot = momentum * momentum_slot - learning_rate * grad; var += momentum_slot`.

    """

    def __init__(self, learning_rate: optimizer.HyperParamT, momentum: float = 0.0):
        if learning_rate is None:
            raise ValueError("learning_rate must be set")
        if momentum < 0:
            raise ValueError("momentum must be non-negative")
        self.learning_rate = learning_rate
        self.momentum: float = momentum

    def apply_gradients(self,
                        scope: scope_lib.Scope,
                        opts: optimizer.ApplyGradientsOptions) -> Tuple[List[variable.Variable], graph.Operation]:
        learning_rate = optimizer.or_constant(scope, self.learning_rate, None)
        momentum = None
        if self.momentum > 0:
            momentum = optimizer.or_constant(scope, self.momentum, None)
        apply_ops = []
        variables = []
        for grad, var in self._present(opts.grads_and_vars):
            if momentum is None:
                apply_ops.append(training.apply_gradient_descent(scope, var.output, learning_rate, grad))
            else:
                var_scope = scope.new_sub_scope(var.name)
                accum = optimizer.create_zeros_slot(var_scope.new_sub_scope("momentum"), var)
                apply_ops.append(
                    training.apply_momentum(var_scope, var.output, accum.output, learning_rate, momentum, grad))
                variables.append(accum)
        return variables, self._group(scope, apply_ops)
