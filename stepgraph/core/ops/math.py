# element-wise, reduction and matmul ops with their gradient rules

from typing import Callable, Any, Union, Optional, Sequence, Tuple

import numpy as np

from stepgraph import common
from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import kernel
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops.common import build_op

AxisT = Union[int, Tuple[int, ...], None]


def _sum_to_shape(value: np.ndarray, shape: common.Shape) -> np.ndarray:
    """Undo numpy broadcasting by summing `value` down to `shape`."""
    value = np.asarray(value)
    if value.shape == tuple(shape):
        return value
    extra = value.ndim - len(shape)
    if extra > 0:
        value = value.sum(axis=tuple(range(extra)))
    axes = tuple(i for i, d in enumerate(shape) if d == 1 and value.shape[i] != 1)
    if axes:
        value = value.sum(axis=axes, keepdims=True)
    return value.reshape(shape)


class _BinaryOp(kernel.OpKernel):
    NUM_INPUTS = 2
    _binary_np_func: Callable[[Any, Any], np.ndarray] = None

    def compute(self, ctx, op, inputs):
        return [np.asarray(self.__class__._binary_np_func(inputs[0], inputs[1]))]


class _UnaryOp(kernel.OpKernel):
    NUM_INPUTS = 1
    _unary_np_func: Callable[[Any], np.ndarray] = None

    def compute(self, ctx, op, inputs):
        return [np.asarray(self.__class__._unary_np_func(inputs[0]))]


class Add(_BinaryOp):
    OP_TYPE = "Add"
    _binary_np_func = np.add

    def gradient(self, scope, op, grads):
        x, y = op.inputs
        return [sum_to_shape(scope, grads[0], x), sum_to_shape(scope, grads[0], y)]


class Sub(_BinaryOp):
    OP_TYPE = "Sub"
    _binary_np_func = np.subtract

    def gradient(self, scope, op, grads):
        x, y = op.inputs
        return [sum_to_shape(scope, grads[0], x), sum_to_shape(scope, neg(scope, grads[0]), y)]


class Mul(_BinaryOp):
    OP_TYPE = "Mul"
    _binary_np_func = np.multiply

    def gradient(self, scope, op, grads):
        x, y = op.inputs
        g = grads[0]
        return [sum_to_shape(scope, multiply(scope, g, y), x), sum_to_shape(scope, multiply(scope, g, x), y)]


class Div(_BinaryOp):
    OP_TYPE = "Div"
    _binary_np_func = np.divide

    def gradient(self, scope, op, grads):
        x, y = op.inputs
        g = grads[0]
        gx = div(scope, g, y)
        gy = neg(scope, div(scope, multiply(scope, g, x), multiply(scope, y, y)))
        return [sum_to_shape(scope, gx, x), sum_to_shape(scope, gy, y)]


class Neg(_UnaryOp):
    OP_TYPE = "Neg"
    _unary_np_func = np.negative

    def gradient(self, scope, op, grads):
        return [neg(scope, grads[0])]


class Square(_UnaryOp):
    OP_TYPE = "Square"
    _unary_np_func = np.square

    def gradient(self, scope, op, grads):
        x = op.inputs[0]
        return [multiply(scope, grads[0], add(scope, x, x))]


class Sqrt(_UnaryOp):
    OP_TYPE = "Sqrt"
    _unary_np_func = np.sqrt

    def gradient(self, scope, op, grads):
        y = op.output(0)
        return [div(scope, grads[0], add(scope, y, y))]


class AddN(kernel.OpKernel):
    OP_TYPE = "AddN"

    def validate(self, desc):
        if len(desc.inputs) == 0:
            raise errors.InvalidArgumentError(f"AddN {desc.name} needs at least one input")

    def compute(self, ctx, op, inputs):
        ret = np.array(inputs[0], copy=True)
        for v in inputs[1:]:
            ret = ret + v
        return [ret]

    def gradient(self, scope, op, grads):
        return [grads[0]] * len(op.inputs)


class _Reduce(kernel.OpKernel):
    NUM_INPUTS = 1
    _reduce_np_func: Callable[..., np.ndarray] = None

    def compute(self, ctx, op, inputs):
        axis = op.get_attr("axis")
        keepdims = op.get_attr("keepdims", False)
        return [np.asarray(self.__class__._reduce_np_func(inputs[0], axis=axis, keepdims=keepdims))]

    def _broadcast_grad(self, scope, op, grad):
        axis = None if op.get_attr("keepdims", False) else op.get_attr("axis")
        return broadcast_like(scope, grad, op.inputs[0], axis=axis)


class ReduceSum(_Reduce):
    OP_TYPE = "ReduceSum"
    _reduce_np_func = np.sum

    def gradient(self, scope, op, grads):
        return [self._broadcast_grad(scope, op, grads[0])]


class ReduceMean(_Reduce):
    OP_TYPE = "ReduceMean"
    _reduce_np_func = np.mean

    def gradient(self, scope, op, grads):
        ratio = div(scope, size(scope, op.output(0)), size(scope, op.inputs[0]))
        return [multiply(scope, self._broadcast_grad(scope, op, grads[0]), ratio)]


class MatMul(kernel.OpKernel):
    OP_TYPE = "MatMul"
    NUM_INPUTS = 2

    def compute(self, ctx, op, inputs):
        a, b = inputs
        if op.get_attr("transpose_a", False):
            a = np.transpose(a)
        if op.get_attr("transpose_b", False):
            b = np.transpose(b)
        if a.ndim != 2 or b.ndim != 2 or a.shape[1] != b.shape[0]:
            raise errors.InvalidArgumentError(f"{op.name}: can not multiply {a.shape} by {b.shape}")
        return [np.matmul(a, b)]

    def gradient(self, scope, op, grads):
        a, b = op.inputs
        g = grads[0]
        ta = op.get_attr("transpose_a", False)
        tb = op.get_attr("transpose_b", False)
        if not ta and not tb:
            return [matmul(scope, g, b, transpose_b=True), matmul(scope, a, g, transpose_a=True)]
        elif not ta and tb:
            return [matmul(scope, g, b), matmul(scope, g, a, transpose_a=True)]
        elif ta and not tb:
            return [matmul(scope, b, g, transpose_b=True), matmul(scope, a, g)]
        else:
            return [matmul(scope, b, g, transpose_a=True, transpose_b=True),
                    matmul(scope, g, a, transpose_a=True, transpose_b=True)]


class OnesLike(_UnaryOp):
    OP_TYPE = "OnesLike"
    _unary_np_func = np.ones_like

    def gradient(self, scope, op, grads):
        return [None]


class ZerosLike(_UnaryOp):
    OP_TYPE = "ZerosLike"
    _unary_np_func = np.zeros_like

    def gradient(self, scope, op, grads):
        return [None]


class Size(kernel.OpKernel):
    """Number of elements of the input, with the input's dtype so it can be mixed with it."""
    OP_TYPE = "Size"
    NUM_INPUTS = 1

    def compute(self, ctx, op, inputs):
        x = np.asarray(inputs[0])
        return [np.asarray(x.size, dtype=x.dtype)]

    def gradient(self, scope, op, grads):
        return [None]


class SumToShape(kernel.OpKernel):
    """SumToShape(x, like): sum x down to the shape of `like`."""
    OP_TYPE = "SumToShape"
    NUM_INPUTS = 2

    def compute(self, ctx, op, inputs):
        return [_sum_to_shape(inputs[0], np.shape(inputs[1]))]

    def gradient(self, scope, op, grads):
        return [broadcast_like(scope, grads[0], op.inputs[0]), None]


class BroadcastLike(kernel.OpKernel):
    """BroadcastLike(x, like): broadcast x to the shape of `like`, `axis` attr re-inserts reduced axes first."""
    OP_TYPE = "BroadcastLike"
    NUM_INPUTS = 2

    def compute(self, ctx, op, inputs):
        x, like = np.asarray(inputs[0]), np.asarray(inputs[1])
        axis = op.get_attr("axis")
        if axis is not None and x.ndim != like.ndim:
            x = np.expand_dims(x, axis)
        return [np.array(np.broadcast_to(x, like.shape))]

    def gradient(self, scope, op, grads):
        return [sum_to_shape(scope, grads[0], op.inputs[0]), None]


def add(scope: scope_lib.Scope, x: graph.OutputLike, y: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Add", [x, y])


def sub(scope: scope_lib.Scope, x: graph.OutputLike, y: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Sub", [x, y])


def multiply(scope: scope_lib.Scope, x: graph.OutputLike, y: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Mul", [x, y])


def div(scope: scope_lib.Scope, x: graph.OutputLike, y: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Div", [x, y])


def neg(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Neg", [x])


def square(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Square", [x])


def sqrt(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Sqrt", [x])


def add_n(scope: scope_lib.Scope, xs: Sequence[graph.OutputLike]) -> graph.Operation:
    return build_op(scope, "AddN", xs)


def reduce_sum(scope: scope_lib.Scope, x: graph.OutputLike, axis: AxisT = None,
               keepdims: bool = False) -> graph.Operation:
    return build_op(scope, "ReduceSum", [x], attrs={"axis": axis, "keepdims": keepdims})


def reduce_mean(scope: scope_lib.Scope, x: graph.OutputLike, axis: AxisT = None,
                keepdims: bool = False) -> graph.Operation:
    return build_op(scope, "ReduceMean", [x], attrs={"axis": axis, "keepdims": keepdims})


def matmul(scope: scope_lib.Scope, a: graph.OutputLike, b: graph.OutputLike,
           transpose_a: bool = False, transpose_b: bool = False) -> graph.Operation:
    return build_op(scope, "MatMul", [a, b], attrs={"transpose_a": transpose_a, "transpose_b": transpose_b})


def ones_like(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "OnesLike", [x])


def zeros_like(scope: scope_lib.Scope, x: graph.OutputLike,
               control_inputs: Sequence[graph.Operation] = ()) -> graph.Operation:
    return build_op(scope, "ZerosLike", [x], control_inputs=control_inputs)


def size(scope: scope_lib.Scope, x: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "Size", [x])


def sum_to_shape(scope: scope_lib.Scope, x: graph.OutputLike, like: graph.OutputLike) -> graph.Operation:
    return build_op(scope, "SumToShape", [x, like])


def broadcast_like(scope: scope_lib.Scope, x: graph.OutputLike, like: graph.OutputLike,
                   axis: Optional[AxisT] = None) -> graph.Operation:
    return build_op(scope, "BroadcastLike", [x, like], attrs={"axis": axis})
