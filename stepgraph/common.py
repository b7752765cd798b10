from numbers import Number
from typing import Tuple, Union, Optional, Any

import numpy as np

Shape = Tuple[int, ...]
DataType = np.dtype
ArrayLike = Union[Number, np.ndarray, list, tuple]

# python floats become float32 unless a dtype is given
DEFAULT_FLOAT = np.dtype(np.float32)


def as_dtype(dtype: Any) -> Optional[DataType]:
    if dtype is None:
        return None
    return np.dtype(dtype)


def to_array(value: ArrayLike, dtype: Any = None) -> np.ndarray:
    """Convert `value` to a numpy array, plain python floats get `DEFAULT_FLOAT`."""
    dtype = as_dtype(dtype)
    if dtype is not None:
        return np.array(value, dtype=dtype)
    arr = np.array(value)
    if not isinstance(value, np.ndarray) and arr.dtype == np.float64:
        arr = arr.astype(DEFAULT_FLOAT)
    return arr


def as_shape(shape: Union[Shape, list, None]) -> Optional[Shape]:
    if shape is None:
        return None
    return tuple(int(d) for d in shape)
