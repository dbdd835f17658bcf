"""
ndview: Strided Views over Shared Storage
=========================================

ndview is a fixed-rank multidimensional array container. An NArray is a
cheap handle over a reference-counted block of storage; slicing, flipping,
transposing, windowing, striding, reshaping and broadcasting all produce new
handles over the same storage without copying a single element.

Example:
    >>> import ndview as nd
    >>> a = nd.NArray.from_iterable((2, 3), range(6), dtype=nd.int64)
    >>> a.flip(1).tolist()
    [[2, 1, 0], [5, 4, 3]]
    >>> (a + 0.5).dtype
    nd.float64
"""

__version__ = "0.1.0"

from typing import Any, Iterable

import numpy as np

from .narray import NArray
from .iteration import Subarrays
from .ops import array_equal, compress, apply
from .errors import (
    NArrayError,
    ShapeMismatchError,
    LayoutError,
    BoundsError,
    CapabilityError,
    PromotionError,
    ReadOnlyError,
    StorageReleasedError,
)

# Low-level core (for advanced users)
from .core import (
    DType,
    ObjectType,
    Layout,
    Storage,
    PROMOTION_TABLE,
    promote_types,
    promote_scalar,
    resolve_dtype,
    dtype_of,
    set_default_dtype,
    get_default_dtype,
)
from .core.dtype import (
    bool_,
    int8,
    int16,
    int32,
    int64,
    float32,
    float64,
    complex128,
    from_numpy_dtype,
)


def empty(ndim: int = 1, dtype=None) -> NArray:
    """
    Create an empty array of the given rank.

    The array has shape ``(0,) * ndim`` and no storage.
    """
    return NArray(ndim=ndim, dtype=dtype)


def zeros(shape, dtype=None) -> NArray:
    """
    Create a default-filled array.

    Args:
        shape: extents, one per axis
        dtype: element type (default: get_default_dtype())

    Returns:
        NArray whose elements are default-constructed
    """
    return NArray(shape, dtype=dtype)


def full(shape, value: Any, dtype=None) -> NArray:
    """
    Create an array filled with copies of ``value``.

    Example:
        >>> nd.full((2, 3, 4), 5).size
        24
    """
    return NArray(shape, value, dtype=dtype)


def from_iterable(shape, values: Iterable[Any], dtype=None) -> NArray:
    return NArray.from_iterable(shape, values, dtype=dtype)


def from_numpy(arr: np.ndarray) -> NArray:
    """Copy a numpy array of rank >= 1 into a new NArray."""
    if arr.ndim == 0:
        raise ShapeMismatchError("cannot build an NArray from a 0-d array", actual=0)
    return NArray.from_iterable(arr.shape, arr.ravel(), dtype=from_numpy_dtype(arr.dtype))


def array(data: Any, dtype=None) -> NArray:
    """
    Create an array from nested sequences.

    Example:
        >>> nd.array([[1, 2], [3, 4]]).shape
        (2, 2)
    """
    arr = np.asarray(data)
    if dtype is None:
        return from_numpy(arr)
    if arr.ndim == 0:
        raise ShapeMismatchError("cannot build an NArray from a scalar", actual=0)
    return NArray.from_iterable(arr.shape, arr.ravel().tolist(), dtype=dtype)


__all__ = [
    # Version
    "__version__",

    # Main classes
    "NArray",
    "Subarrays",

    # Factory functions
    "empty",
    "zeros",
    "full",
    "from_iterable",
    "from_numpy",
    "array",

    # Operations
    "array_equal",
    "compress",
    "apply",

    # Element types
    "DType",
    "ObjectType",
    "PROMOTION_TABLE",
    "promote_types",
    "promote_scalar",
    "resolve_dtype",
    "dtype_of",
    "set_default_dtype",
    "get_default_dtype",
    "bool_",
    "int8",
    "int16",
    "int32",
    "int64",
    "float32",
    "float64",
    "complex128",

    # Errors
    "NArrayError",
    "ShapeMismatchError",
    "LayoutError",
    "BoundsError",
    "CapabilityError",
    "PromotionError",
    "ReadOnlyError",
    "StorageReleasedError",

    # Core types (advanced)
    "Layout",
    "Storage",
]
