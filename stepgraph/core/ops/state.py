from typing import Any, Optional

import numpy as np

from stepgraph import common
from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import kernel
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops.common import build_op


class VariableV2(kernel.OpKernel):
    """Reads the current value of a variable, the value itself lives in the session."""
    OP_TYPE = "VariableV2"
    NUM_INPUTS = 0
    CACHEABLE = False

    def validate(self, desc):
        if desc.attrs.get("dtype") is None:
            raise errors.InvalidArgumentError(f"Variable {desc.name} must have a data type")

    def compute(self, ctx, op, inputs):
        return [ctx.variable(op.name).read()]


class Assign(kernel.OpKernel):
    """Assign(ref, value): overwrite the variable, the value is cast to the variable's dtype."""
    OP_TYPE = "Assign"
    NUM_INPUTS = 2
    REF_INPUTS = (0,)

    def compute(self, ctx, op, inputs):
        ref, value = inputs
        var_op = op.inputs[0].operation
        value = np.asarray(value)
        shape = var_op.get_attr("shape")
        if op.get_attr("validate_shape", True) and shape is not None and value.shape != tuple(shape):
            raise errors.InvalidArgumentError(
                f"{op.name}: can not assign a value of shape {value.shape} to {var_op.name} of shape {shape}")
        ref.assign(np.array(value, dtype=var_op.get_attr("dtype"), copy=True))
        return [ref.read()]


def variable(scope: scope_lib.Scope, dtype: Any, shape: Optional[common.Shape] = None) -> graph.Operation:
    return build_op(scope, "VariableV2", attrs={"dtype": common.as_dtype(dtype), "shape": common.as_shape(shape)},
                    default_name="Variable")


def assign(scope: scope_lib.Scope, ref: graph.OutputLike, value: graph.OutputLike,
           validate_shape: bool = True) -> graph.Operation:
    return build_op(scope, "Assign", [ref, value], attrs={"validate_shape": validate_shape})
