"""Lazy row-major enumeration of elements and lower-rank subviews."""

from __future__ import annotations
from typing import TYPE_CHECKING, Any, Iterator

import numpy as np

from .core.layout import Layout
from .core.shape import prod
from .errors import ShapeMismatchError

if TYPE_CHECKING:
    from .narray import NArray


def iter_elements(array: 'NArray') -> Iterator[Any]:
    """Yield every element of ``array`` in row-major order."""
    if array.size == 0:
        return
    storage = array.storage
    for address in array.layout.addresses().ravel():
        yield storage.load(address)


class Subarrays:
    """
    Restartable sequence of the rank-``k`` views of an array.

    The leading ``ndim - k`` axes are fixed to every coordinate in
    row-major order. With ``k == 0`` the raw elements are produced instead
    of rank-0 views. Nothing is copied; each view shares the array's
    storage.
    """

    def __init__(self, array: 'NArray', k: int):
        if not 0 <= k <= array.ndim:
            raise ShapeMismatchError(
                f"subarray rank {k} out of range for an array of rank {array.ndim}",
                expected=array.ndim,
                actual=k,
            )
        self._array = array
        self.k = k

    def __len__(self) -> int:
        return prod(self._array.shape[:self._array.ndim - self.k])

    def __iter__(self) -> Iterator[Any]:
        if self.k == 0:
            yield from iter_elements(self._array)
            return

        layout = self._array.layout
        lead = layout.ndim - self.k
        inner_shape = layout.shape[lead:]
        inner_strides = layout.strides[lead:]
        for coord in np.ndindex(*layout.shape[:lead]):
            offset = layout.offset + sum(c * s for c, s in zip(coord, layout.strides))
            yield self._array._derive(Layout(inner_shape, inner_strides, offset))

    def __repr__(self) -> str:
        return f"Subarrays(k={self.k}, count={len(self)})"
