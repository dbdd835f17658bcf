"""
ndview Core: Layout
===================

The view-transformation algebra. A Layout describes how a view addresses
its storage: element ``c`` lives at ``offset + sum(c[i] * strides[i])``.
Every transformation here is a pure function from one Layout to another and
runs in time proportional to the rank, never to the number of elements.
"""

from __future__ import annotations
import functools
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from ..errors import BoundsError, LayoutError, ShapeMismatchError
from .shape import Shape, Strides, as_shape, as_vector, check_axis, prod, row_major_strides


@dataclass(frozen=True)
class Layout:
    shape: Shape
    strides: Strides
    offset: int = 0

    def __post_init__(self):
        if len(self.shape) != len(self.strides):
            raise ShapeMismatchError(
                f"shape {self.shape} and strides {self.strides} differ in rank",
                expected=len(self.shape),
                actual=len(self.strides),
            )

    @staticmethod
    @functools.lru_cache(maxsize=None)
    def create(shape: Shape) -> 'Layout':
        """Row-major layout of a freshly allocated block."""
        return Layout(shape, row_major_strides(shape), 0)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return prod(self.shape)

    # -------------------------------------------------------------------------
    # Addressing
    # -------------------------------------------------------------------------

    def address(self, coord: Sequence[int]) -> int:
        """Linear storage address of ``coord``. Does not validate ``coord``."""
        return self.offset + sum(c * s for c, s in zip(coord, self.strides))

    def checked_address(self, coord: Sequence[int]) -> int:
        coord = as_vector(coord, self.ndim, name="coordinate")
        for axis, (c, extent) in enumerate(zip(coord, self.shape)):
            if not 0 <= c < extent:
                raise BoundsError(f"index {c} out of range for axis {axis} with size {extent}")
        return self.address(coord)

    def addresses(self) -> np.ndarray:
        """
        Grid of linear addresses with this layout's shape.

        Raveling the grid in C order visits the view in row-major order.
        """
        grid = np.full(self.shape, self.offset, dtype=np.intp)
        for axis, (extent, stride) in enumerate(zip(self.shape, self.strides)):
            index_shape = [1] * self.ndim
            index_shape[axis] = extent
            grid += (np.arange(extent, dtype=np.intp) * stride).reshape(index_shape)
        return grid

    def bounds(self) -> Optional[Tuple[int, int]]:
        """Lowest and highest address touched, or None for an empty view."""
        if self.size == 0:
            return None
        low = high = self.offset
        for extent, stride in zip(self.shape, self.strides):
            if stride < 0:
                low += stride * (extent - 1)
            else:
                high += stride * (extent - 1)
        return low, high

    @property
    def is_contiguous(self) -> bool:
        """True if the view walks its storage densely in row-major order."""
        if self.size == 0:
            return True
        expected = row_major_strides(self.shape)
        return all(n == 1 or s == e for n, s, e in zip(self.shape, self.strides, expected))

    @property
    def is_unique(self) -> bool:
        """True if no two coordinates share an address. Touches every address."""
        if self.size <= 1:
            return True
        if any(n > 1 and s == 0 for n, s in zip(self.shape, self.strides)):
            return False
        return np.unique(self.addresses()).size == self.size

    # -------------------------------------------------------------------------
    # Sub-selection
    # -------------------------------------------------------------------------

    def subarray(self, origin: Iterable[int], extent: Iterable[int]) -> 'Layout':
        origin = as_vector(origin, self.ndim, name="origin")
        extent = as_vector(extent, self.ndim, name="extent")
        for axis, (o, e, n) in enumerate(zip(origin, extent, self.shape)):
            if o < 0 or e < 0 or o + e > n:
                raise BoundsError(
                    f"subarray origin {o} and extent {e} exceed axis {axis} with size {n}"
                )
        return Layout(extent, self.strides, self.address(origin))

    def subarray_at(self, origin: Iterable[int]) -> 'Layout':
        origin = as_vector(origin, self.ndim, name="origin")
        extent = tuple(max(n - o, 0) for n, o in zip(self.shape, origin))
        return self.subarray(origin, extent)

    def range(self, axis: int, start: int, length: int) -> 'Layout':
        axis = check_axis(axis, self.ndim)
        origin = [0] * self.ndim
        extent = list(self.shape)
        origin[axis] = start
        extent[axis] = length
        return self.subarray(origin, extent)

    def slice(self, axis: int, index: int) -> 'Layout':
        """Fix ``axis`` at ``index``, dropping it from the layout."""
        axis = check_axis(axis, self.ndim)
        if not 0 <= index < self.shape[axis]:
            raise BoundsError(f"index {index} out of range for axis {axis} with size {self.shape[axis]}")
        return self.slice_unchecked(axis, index)

    def slice_unchecked(self, axis: int, index: int) -> 'Layout':
        return Layout(
            self.shape[:axis] + self.shape[axis + 1:],
            self.strides[:axis] + self.strides[axis + 1:],
            self.offset + index * self.strides[axis],
        )

    # -------------------------------------------------------------------------
    # Reordering
    # -------------------------------------------------------------------------

    def flip(self, axis: int) -> 'Layout':
        axis = check_axis(axis, self.ndim)
        strides = list(self.strides)
        strides[axis] = -strides[axis]
        offset = self.offset + self.strides[axis] * (self.shape[axis] - 1)
        return Layout(self.shape, tuple(strides), offset)

    def transpose(self, axes: Optional[Iterable[int]] = None) -> 'Layout':
        if axes is None:
            axes = tuple(reversed(range(self.ndim)))
        else:
            axes = tuple(check_axis(axis, self.ndim) for axis in axes)
            if sorted(axes) != list(range(self.ndim)):
                raise ShapeMismatchError(f"{axes} is not a permutation of {self.ndim} axes", actual=axes)
        return Layout(
            tuple(self.shape[axis] for axis in axes),
            tuple(self.strides[axis] for axis in axes),
            self.offset,
        )

    def swap_axes(self, a: int, b: int) -> 'Layout':
        axes = list(range(self.ndim))
        a, b = check_axis(a, self.ndim), check_axis(b, self.ndim)
        axes[a], axes[b] = axes[b], axes[a]
        return self.transpose(axes)

    # -------------------------------------------------------------------------
    # Striding and windowing
    # -------------------------------------------------------------------------

    def skip(self, axis: int, factor: int, start: int = 0) -> 'Layout':
        """Keep every ``factor``-th element of ``axis``, beginning at ``start``."""
        axis = check_axis(axis, self.ndim)
        if factor < 1:
            raise BoundsError(f"skip factor must be at least 1, got {factor}")
        if not 0 <= start <= self.shape[axis]:
            raise BoundsError(f"skip start {start} out of range for axis {axis} with size {self.shape[axis]}")
        shape = list(self.shape)
        strides = list(self.strides)
        shape[axis] = math.ceil((self.shape[axis] - start) / factor)
        strides[axis] = self.strides[axis] * factor
        return Layout(tuple(shape), tuple(strides), self.offset + self.strides[axis] * start)

    def window(self, axis: int, size: int) -> 'Layout':
        """
        Expose every length-``size`` window along ``axis``.

        The axis shrinks to the number of window positions and a trailing
        axis of length ``size`` walks within a window, so neighbouring
        windows overlap in storage.
        """
        axis = check_axis(axis, self.ndim)
        if not 1 <= size <= self.shape[axis]:
            raise BoundsError(f"window size {size} out of range for axis {axis} with size {self.shape[axis]}")
        shape = list(self.shape)
        shape[axis] = self.shape[axis] - size + 1
        return Layout(tuple(shape) + (size,), self.strides + (self.strides[axis],), self.offset)

    def repeat(self, count: int) -> 'Layout':
        """Append a broadcast axis of length ``count`` (stride 0)."""
        if count < 0:
            raise BoundsError(f"repeat count must be non-negative, got {count}")
        return Layout(self.shape + (count,), self.strides + (0,), self.offset)

    # -------------------------------------------------------------------------
    # Reshaping
    # -------------------------------------------------------------------------

    def reshape(self, new_shape: Iterable[int]) -> 'Layout':
        """
        Reinterpret the view with ``new_shape`` without moving elements.

        Groups of axes that are contiguous in traversal order can be split
        and merged freely; the innermost stride of each group, sign
        included, seeds the new strides so flipped views keep their logical
        order.

        Raises:
            ShapeMismatchError: if the element counts differ
            LayoutError: if no strides over the current storage express the
                requested shape
        """
        new_shape = as_shape(new_shape)
        if prod(new_shape) != self.size:
            raise ShapeMismatchError(
                f"cannot reshape {self.shape} ({self.size} elements) into {new_shape}",
                expected=self.size,
                actual=prod(new_shape),
            )
        if self.size == 0:
            return Layout(new_shape, row_major_strides(new_shape), self.offset)

        # axes of length 1 have no effect on addressing
        old = [(n, s) for n, s in zip(self.shape, self.strides) if n != 1]
        new_strides = [0] * len(new_shape)

        oi, oj, ni, nj = 0, 1, 0, 1
        while ni < len(new_shape) and oi < len(old):
            new_count = new_shape[ni]
            old_count = old[oi][0]
            while new_count != old_count:
                if new_count < old_count:
                    new_count *= new_shape[nj]
                    nj += 1
                else:
                    old_count *= old[oj][0]
                    oj += 1

            for ok in range(oi, oj - 1):
                if old[ok][1] != old[ok + 1][0] * old[ok + 1][1]:
                    raise LayoutError(
                        f"cannot reshape layout with shape {self.shape} and strides {self.strides} "
                        f"into {new_shape} without copying",
                        expected=self.shape,
                        actual=new_shape,
                    )

            new_strides[nj - 1] = old[oj - 1][1]
            for nk in range(nj - 1, ni, -1):
                new_strides[nk - 1] = new_strides[nk] * new_shape[nk]

            ni, nj = nj, nj + 1
            oi, oj = oj, oj + 1

        # trailing axes of length 1
        last_stride = new_strides[ni - 1] if ni >= 1 else 1
        for nk in range(ni, len(new_shape)):
            new_strides[nk] = last_stride

        return Layout(new_shape, tuple(new_strides), self.offset)

    def condense(self) -> 'Layout':
        """
        Merge physically contiguous runs of axes, innermost first.

        Each run becomes one axis, right-aligned; the leading axes left over
        get length 1 and the stride one step past the outermost run. Length-1
        axes merge into any run. An empty view gets all-zero strides.
        Condensing a condensed layout returns an equal layout.
        """
        if self.size == 0:
            return Layout(self.shape, (0,) * self.ndim, self.offset)

        shape = [1] * self.ndim
        strides = [0] * self.ndim
        slot = self.ndim - 1
        run_size, run_stride = 1, None
        for extent, stride in zip(reversed(self.shape), reversed(self.strides)):
            if extent == 1:
                continue
            if run_stride is None:
                run_size, run_stride = extent, stride
            elif stride == run_stride * run_size:
                run_size *= extent
            else:
                shape[slot], strides[slot] = run_size, run_stride
                slot -= 1
                run_size, run_stride = extent, stride
        if run_stride is None:
            run_stride = 1
        shape[slot], strides[slot] = run_size, run_stride
        for leading in range(slot):
            strides[leading] = run_stride * run_size
        return Layout(tuple(shape), tuple(strides), self.offset)
