# update primitives used by optimizers, each one updates its ref inputs in a single step

from typing import List

import numpy as np

from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import kernel
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops.common import build_op

_ADAGRAD_EPSILON = 1e-8


class _ApplyOp(kernel.OpKernel):
    """The last input is always the gradient, it must have the variable's shape."""

    def compute(self, ctx, op, inputs):
        var = inputs[0]
        grad = np.asarray(inputs[-1])
        if grad.shape != var.shape:
            raise errors.InvalidArgumentError(
                f"{op.name}: gradient shape {grad.shape} does not match variable shape {var.shape}")
        self._apply(inputs[:-1], grad)
        return [var.read()]

    def _apply(self, inputs: List, grad: np.ndarray) -> None:
        raise NotImplementedError


class ApplyGradientDescent(_ApplyOp):
    """var -= lr * grad"""
    OP_TYPE = "ApplyGradientDescent"
    NUM_INPUTS = 3
    REF_INPUTS = (0,)

    def _apply(self, inputs, grad):
        var, lr = inputs
        var.assign(var.read() - lr * grad)


class ApplyMomentum(_ApplyOp):
    """accum = momentum * accum - lr * grad; var += accum"""
    OP_TYPE = "ApplyMomentum"
    NUM_INPUTS = 5
    REF_INPUTS = (0, 1)

    def _apply(self, inputs, grad):
        var, accum, lr, momentum = inputs
        accum.assign(momentum * accum.read() - lr * grad)
        var.assign(var.read() + accum.read())


class ApplyAdagrad(_ApplyOp):
    """accum += grad^2; var -= lr * grad / (sqrt(accum) + 1e-8)"""
    OP_TYPE = "ApplyAdagrad"
    NUM_INPUTS = 4
    REF_INPUTS = (0, 1)

    def _apply(self, inputs, grad):
        var, accum, lr = inputs
        accum.assign(accum.read() + grad * grad)
        var.assign(var.read() - lr * grad / (np.sqrt(accum.read()) + _ADAGRAD_EPSILON))


class ApplyRMSProp(_ApplyOp):
    """ms = rho * ms + (1 - rho) * grad^2; var -= lr * grad / (sqrt(ms) + epsilon)"""
    OP_TYPE = "ApplyRMSProp"
    NUM_INPUTS = 6
    REF_INPUTS = (0, 1)

    def _apply(self, inputs, grad):
        var, ms, lr, rho, epsilon = inputs
        ms.assign(rho * ms.read() + (1 - rho) * grad * grad)
        var.assign(var.read() - lr * grad / (np.sqrt(ms.read()) + epsilon))


class ApplyAdadelta(_ApplyOp):
    """ See M. D. Zeiler, https://arxiv.org/abs/1212.5701

    accum = rho * accum + (1 - rho) * grad^2
    update = sqrt(accum_update + epsilon) / sqrt(accum + epsilon) * grad
    var -= lr * update
    accum_update = rho * accum_update + (1 - rho) * update^2

    """
    OP_TYPE = "ApplyAdadelta"
    NUM_INPUTS = 7
    REF_INPUTS = (0, 1, 2)

    def _apply(self, inputs, grad):
        var, accum, accum_update, lr, rho, epsilon = inputs
        accum.assign(rho * accum.read() + (1 - rho) * grad * grad)
        update = np.sqrt(accum_update.read() + epsilon) / np.sqrt(accum.read() + epsilon) * grad
        var.assign(var.read() - lr * update)
        accum_update.assign(rho * accum_update.read() + (1 - rho) * update * update)


class ApplyAdam(_ApplyOp):
    """m = beta1 * m + (1 - beta1) * grad; v = beta2 * v + (1 - beta2) * grad^2; var -= lr * m / (sqrt(v) + epsilon)"""
    OP_TYPE = "ApplyAdam"
    NUM_INPUTS = 8
    REF_INPUTS = (0, 1, 2)

    def _apply(self, inputs, grad):
        var, m, v, lr, beta1, beta2, epsilon = inputs
        m.assign(beta1 * m.read() + (1 - beta1) * grad)
        v.assign(beta2 * v.read() + (1 - beta2) * grad * grad)
        var.assign(var.read() - lr * m.read() / (np.sqrt(v.read()) + epsilon))


def apply_gradient_descent(scope: scope_lib.Scope, var: graph.OutputLike, lr: graph.OutputLike,
                           grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyGradientDescent", [var, lr, grad])


def apply_momentum(scope: scope_lib.Scope, var: graph.OutputLike, accum: graph.OutputLike, lr: graph.OutputLike,
                   momentum: graph.OutputLike, grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyMomentum", [var, accum, lr, momentum, grad])


def apply_adagrad(scope: scope_lib.Scope, var: graph.OutputLike, accum: graph.OutputLike, lr: graph.OutputLike,
                  grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyAdagrad", [var, accum, lr, grad])


def apply_rms_prop(scope: scope_lib.Scope, var: graph.OutputLike, ms: graph.OutputLike, lr: graph.OutputLike,
                   rho: graph.OutputLike, epsilon: graph.OutputLike, grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyRMSProp", [var, ms, lr, rho, epsilon, grad])


def apply_adadelta(scope: scope_lib.Scope, var: graph.OutputLike, accum: graph.OutputLike,
                   accum_update: graph.OutputLike, lr: graph.OutputLike, rho: graph.OutputLike,
                   epsilon: graph.OutputLike, grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyAdadelta", [var, accum, accum_update, lr, rho, epsilon, grad])


def apply_adam(scope: scope_lib.Scope, var: graph.OutputLike, m: graph.OutputLike, v: graph.OutputLike,
               lr: graph.OutputLike, beta1: graph.OutputLike, beta2: graph.OutputLike, epsilon: graph.OutputLike,
               grad: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "ApplyAdam", [var, m, v, lr, beta1, beta2, epsilon, grad])
