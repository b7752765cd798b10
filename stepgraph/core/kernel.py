from typing import List, Dict, Optional, Tuple, Type, Iterator

import numpy as np

from stepgraph.core import errors


class OpKernel:
    """ Numerical implementation and gradient rule of one operation type.

    A kernel is registered simply by subclassing it with a non-empty `OP_TYPE`, `lookup` will find it.

    Notes:
        1. `NUM_INPUTS` is None for variadic operations.
        2. Inputs listed in `REF_INPUTS` must be produced by a variable, `compute` receives a
           `session.VariableRef` for them instead of a value, so the kernel may update the variable.
        3. Results of kernels with `CACHEABLE` False are recomputed on every use within a session run.

    """
    OP_TYPE: str = None
    NUM_INPUTS: Optional[int] = None
    NUM_OUTPUTS: int = 1
    REF_INPUTS: Tuple[int, ...] = ()
    CACHEABLE: bool = True

    def validate(self, desc) -> None:
        """Called by `OperationDescription.finish` after the input count had been checked."""
        pass

    def compute(self, ctx, op, inputs: List) -> List[np.ndarray]:
        raise NotImplementedError

    def gradient(self, scope, op, grads: List) -> List:
        """ Build the gradient of every input of `op`.

        Args:
            scope: scope used to name the new nodes.
            op: the forward operation.
            grads: gradient Output of every output of op, or None if that output got no gradient.

        Returns:
            One gradient Output (or None) per input of op.

        """
        raise NotImplementedError

    @classmethod
    def has_gradient(cls) -> bool:
        return cls.gradient is not OpKernel.gradient


def _iter_subclasses(cls: Type[OpKernel]) -> Iterator[Type[OpKernel]]:
    for sub in cls.__subclasses__():
        yield sub
        yield from _iter_subclasses(sub)


def registered_kernels() -> Dict[str, OpKernel]:
    from stepgraph.core.ops import common, math, state, training  # noqa: F401, force import all kernels
    ret = {}
    for cls in _iter_subclasses(OpKernel):
        if cls.OP_TYPE is None:
            continue
        if cls.OP_TYPE in ret and type(ret[cls.OP_TYPE]) is not cls:
            raise RuntimeError(f"Op type {cls.OP_TYPE} is registered by both "
                               f"{type(ret[cls.OP_TYPE]).__name__} and {cls.__name__}")
        ret[cls.OP_TYPE] = cls()
    return ret


_kernels: Dict[str, OpKernel] = {}


def lookup(op_type: str) -> OpKernel:
    # rebuilt on a miss, so kernels declared after the first lookup are still found
    if op_type not in _kernels:
        _kernels.clear()
        _kernels.update(registered_kernels())
    if op_type not in _kernels:
        raise errors.NotFoundError(f"Op type {op_type} is not registered")
    return _kernels[op_type]
