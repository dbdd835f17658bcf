"""Shape and stride vectors: plain tuples of ints with a fixed length."""

from __future__ import annotations
import functools
import itertools
import operator
from typing import Iterable, Optional, Tuple, Union

from ..errors import ShapeMismatchError

Shape = Tuple[int, ...]
Strides = Tuple[int, ...]


def prod(values: Iterable[int]) -> int:
    return functools.reduce(operator.mul, values, 1)


@functools.lru_cache(maxsize=None)
def row_major_strides(shape: Shape) -> Strides:
    if not shape:
        return ()
    return tuple(itertools.accumulate(reversed(shape[1:]), operator.mul, initial=1))[::-1]


def as_vector(value: Union[int, Iterable[int]], ndim: Optional[int] = None, name: str = "vector") -> Tuple[int, ...]:
    """
    Normalize an int or an iterable of ints into a tuple of Python ints.

    Args:
        value: single int (rank 1) or iterable of ints
        ndim: required length, if any
        name: used in error messages

    Raises:
        ShapeMismatchError: on a length mismatch
        TypeError: on non-integer entries
    """
    if isinstance(value, int):
        vector = (value,)
    else:
        vector = tuple(value)
    for entry in vector:
        if isinstance(entry, bool) or not hasattr(entry, "__index__"):
            raise TypeError(f"{name} entries must be integers, got {entry!r}")
    vector = tuple(operator.index(entry) for entry in vector)
    if ndim is not None and len(vector) != ndim:
        raise ShapeMismatchError(
            f"{name} {vector} has {len(vector)} entries, expected {ndim}",
            expected=ndim,
            actual=len(vector),
        )
    return vector


def as_shape(value: Union[int, Iterable[int]], ndim: Optional[int] = None) -> Shape:
    """Like as_vector, additionally requiring every extent to be non-negative."""
    shape = as_vector(value, ndim, name="shape")
    if any(extent < 0 for extent in shape):
        raise ShapeMismatchError(f"shape {shape} has negative extents", actual=shape)
    return shape


def check_axis(axis: int, ndim: int) -> int:
    """Validate an axis index; negative values count from the end."""
    axis = operator.index(axis)
    if axis < 0:
        axis += ndim
    if not 0 <= axis < ndim:
        raise ShapeMismatchError(f"axis {axis} out of range for rank {ndim}", expected=ndim, actual=axis)
    return axis
