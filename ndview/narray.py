"""The NArray view handle."""

from __future__ import annotations
import functools
import itertools
import weakref
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

import numpy as np

from .core.dtype import (
    ElementType,
    ObjectType,
    check_accepts,
    dtype_of,
    promote_types,
    resolve_dtype,
)
from .core.layout import Layout
from .core.shape import Shape, Strides, as_shape, prod
from .core.storage import Storage
from .errors import BoundsError, PromotionError, ReadOnlyError, ShapeMismatchError
from .iteration import Subarrays, iter_elements

_NOVALUE = object()


class NArray:
    """
    Fixed-rank, strided view over shared storage.

    Copying an NArray (``NArray(other)`` or ``copy.copy``) and every
    transformation method produce handles that share the same storage, so
    writes through one are visible through all of them. ``clone`` is the
    only way to get an independent copy.

    Construction forms:
        NArray(ndim=2)                  empty, shape (0, 0), no storage
        NArray((3, 2))                  default-filled
        NArray((3, 2), 1.5)             filled with copies of a value
        NArray.from_iterable((2, 2), [1, 2, 3])
                                        filled in row-major order, the
                                        remainder default-filled
        NArray(other)                   shares other's storage

    Raw ``[]`` indexing does not validate coordinates: out-of-range indices
    address whatever storage lies there, or fail inside numpy. Negative
    indices do not wrap around. Use ``at`` and ``set_at`` for checked access.
    """

    __hash__ = None
    # make numpy scalars defer to the reflected operators below
    __array_ufunc__ = None

    def __init__(
        self,
        shape: Union['NArray', int, Iterable[int], None] = None,
        value: Any = _NOVALUE,
        dtype=None,
        *,
        ndim: Optional[int] = None,
    ):
        if isinstance(shape, NArray):
            if value is not _NOVALUE or dtype is not None or ndim is not None:
                raise TypeError("copy construction takes no other arguments")
            self._bind(shape._storage, shape._layout, shape._dtype, shape._readonly, retain=True)
            return

        if shape is None:
            ndim = 1 if ndim is None else ndim
            _check_rank(ndim)
            layout = Layout((0,) * ndim, (0,) * ndim, 0)
            self._bind(None, layout, resolve_dtype(dtype), False, retain=False)
            return

        shape = as_shape(shape, ndim)
        _check_rank(len(shape))
        if value is _NOVALUE:
            dtype = resolve_dtype(dtype)
            storage = Storage.default_filled(prod(shape), dtype)
        else:
            dtype = dtype_of(value) if dtype is None else resolve_dtype(dtype)
            storage = Storage.value_filled(prod(shape), value, dtype)
        self._bind(storage, Layout.create(shape), dtype, False, retain=False)

    @classmethod
    def from_iterable(cls, shape, values: Iterable[Any], dtype=None) -> 'NArray':
        """
        Create an array filled from ``values`` in row-major order.

        At most ``size`` items are consumed. A short input leaves the tail
        default-constructed. Without ``dtype`` the element type is the
        promotion of the consumed items' types.
        """
        shape = as_shape(shape)
        _check_rank(len(shape))
        size = prod(shape)
        items = list(itertools.islice(values, size))
        if dtype is None:
            dtype = functools.reduce(promote_types, map(dtype_of, items)) if items else resolve_dtype(None)
        else:
            dtype = resolve_dtype(dtype)
        storage = Storage.range_filled(size, items, dtype)
        return cls._from_storage(storage, shape, dtype)

    @classmethod
    def _from_storage(cls, storage: Storage, shape: Shape, dtype: ElementType) -> 'NArray':
        """Wrap freshly allocated storage, taking over its initial reference."""
        array = cls.__new__(cls)
        array._bind(storage, Layout.create(tuple(shape)), dtype, False, retain=False)
        return array

    def _bind(self, storage: Optional[Storage], layout: Layout, dtype: ElementType, readonly: bool, retain: bool):
        self._storage = storage
        self._layout = layout
        self._dtype = dtype
        self._readonly = readonly
        if storage is not None:
            if retain:
                storage.retain()
            weakref.finalize(self, storage.release)

    def _derive(self, layout: Layout, readonly: Optional[bool] = None) -> 'NArray':
        view = type(self).__new__(type(self))
        view._bind(
            self._storage,
            layout,
            self._dtype,
            self._readonly if readonly is None else readonly,
            retain=True,
        )
        return view

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def shape(self) -> Shape:
        return self._layout.shape

    @property
    def strides(self) -> Strides:
        return self._layout.strides

    @property
    def offset(self) -> int:
        return self._layout.offset

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def ndim(self) -> int:
        return self._layout.ndim

    @property
    def size(self) -> int:
        return self._layout.size

    @property
    def dtype(self) -> ElementType:
        return self._dtype

    @property
    def storage(self) -> Optional[Storage]:
        return self._storage

    @property
    def readonly(self) -> bool:
        return self._readonly

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    @property
    def is_contiguous(self) -> bool:
        return self._layout.is_contiguous

    @property
    def is_unique(self) -> bool:
        return self._layout.is_unique

    def __len__(self) -> int:
        return self.shape[0]

    # -------------------------------------------------------------------------
    # Element access
    # -------------------------------------------------------------------------

    def address(self, coord: Sequence[int]) -> int:
        """Storage address of ``coord``, bounds-checked."""
        return self._layout.checked_address(coord)

    def at(self, coord: Sequence[int]) -> Any:
        """Element at ``coord``, bounds-checked."""
        return self._storage_or_raise().load(self._layout.checked_address(coord))

    def set_at(self, coord: Sequence[int], value: Any):
        self._check_writable()
        address = self._layout.checked_address(coord)
        check_accepts(self._dtype, value)
        self._storage_or_raise().store(address, value)

    def _resolve(self, key) -> Union[int, Layout]:
        # unchecked: indices are applied to the layout as given
        if not isinstance(key, tuple):
            key = (key,)
        if len(key) > self.ndim:
            raise ShapeMismatchError(
                f"too many indices ({len(key)}) for an array of rank {self.ndim}",
                expected=self.ndim,
                actual=len(key),
            )
        for index in key:
            if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
                raise TypeError(f"NArray indices must be integers, got {index!r}")
        if len(key) == self.ndim:
            return self._layout.address(key)
        layout = self._layout
        for index in key:
            layout = layout.slice_unchecked(0, int(index))
        return layout

    def __getitem__(self, key) -> Any:
        target = self._resolve(key)
        if isinstance(target, Layout):
            return self._derive(target)
        return self._storage_or_raise().load(target)

    def __setitem__(self, key, value):
        self._check_writable()
        target = self._resolve(key)
        if isinstance(target, Layout):
            self._derive(target).fill(value)
            return
        check_accepts(self._dtype, value)
        self._storage_or_raise().store(target, value)

    def fill(self, value: Any):
        """Assign ``value`` to every element addressed by this view."""
        self._check_writable()
        check_accepts(self._dtype, value)
        if self.size == 0:
            return
        addresses = self._layout.addresses()
        storage = self._storage_or_raise()
        if isinstance(self._dtype, ObjectType):
            for address in addresses.ravel():
                storage.store(address, self._dtype.copy_value(value))
        else:
            storage.scatter(addresses, value)

    def _check_writable(self):
        if self._readonly:
            raise ReadOnlyError("cannot write through a read-only view")

    def _storage_or_raise(self) -> Storage:
        if self._storage is None:
            raise BoundsError("array is empty and has no storage")
        return self._storage

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def as_readonly(self) -> 'NArray':
        """Read-only handle on the same storage."""
        return self._derive(self._layout, readonly=True)

    def subarray(self, origin: Sequence[int], extent: Sequence[int]) -> 'NArray':
        return self._derive(self._layout.subarray(origin, extent))

    def subarray_at(self, origin: Sequence[int]) -> 'NArray':
        return self._derive(self._layout.subarray_at(origin))

    def range(self, axis: int, start: int, length: int) -> 'NArray':
        return self._derive(self._layout.range(axis, start, length))

    def slice(self, axis: int, index: int) -> 'NArray':
        """Rank N-1 view with ``axis`` fixed at ``index``."""
        _check_rank(self.ndim - 1)
        return self._derive(self._layout.slice(axis, index))

    def flip(self, axis: int = 0) -> 'NArray':
        return self._derive(self._layout.flip(axis))

    def transpose(self, axes: Optional[Sequence[int]] = None) -> 'NArray':
        return self._derive(self._layout.transpose(axes))

    @property
    def T(self) -> 'NArray':
        return self.transpose()

    def swap_axes(self, a: int, b: int) -> 'NArray':
        return self._derive(self._layout.swap_axes(a, b))

    def skip(self, axis: int, factor: int, start: int = 0) -> 'NArray':
        return self._derive(self._layout.skip(axis, factor, start))

    def window(self, axis: int, size: int) -> 'NArray':
        return self._derive(self._layout.window(axis, size))

    def repeat(self, count: int) -> 'NArray':
        return self._derive(self._layout.repeat(count))

    def reshape(self, *shape) -> 'NArray':
        if len(shape) == 1 and not hasattr(shape[0], "__index__"):
            shape = shape[0]
        new_shape = as_shape(shape)
        _check_rank(len(new_shape))
        return self._derive(self._layout.reshape(new_shape))

    def condense(self) -> 'NArray':
        return self._derive(self._layout.condense())

    as_condensed = condense

    # -------------------------------------------------------------------------
    # Copies
    # -------------------------------------------------------------------------

    def clone(self) -> 'NArray':
        """
        Independent, writable, row-major copy.

        Elements are copy-constructed in the view's row-major order, not in
        the order they sit in storage.
        """
        if self._storage is None:
            return type(self)(ndim=self.ndim, dtype=self._dtype)
        storage = Storage.from_elements(self._gather(), self._dtype)
        return type(self)._from_storage(storage, self.shape, self._dtype)

    def astype(self, dtype) -> 'NArray':
        """Converting copy. Only widening conversions are allowed."""
        dtype = resolve_dtype(dtype)
        if promote_types(self._dtype, dtype) != dtype:
            raise PromotionError(f"converting {self._dtype!r} to {dtype!r} would truncate")
        if self._storage is None:
            return type(self)(ndim=self.ndim, dtype=dtype)
        storage = Storage.from_elements(self._gather(), dtype)
        return type(self)._from_storage(storage, self.shape, dtype)

    def __copy__(self) -> 'NArray':
        return type(self)(self)

    def __deepcopy__(self, memo) -> 'NArray':
        return self.clone()

    def _gather(self) -> np.ndarray:
        if self._storage is None or self.size == 0:
            return np.empty(self.shape, dtype=self._dtype.numpy_dtype)
        return self._storage.gather(self._layout.addresses())

    def to_numpy(self) -> np.ndarray:
        """Row-major numpy copy of the view."""
        return self._gather()

    def tolist(self) -> list:
        return self._gather().tolist()

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def subarrays(self, k: int) -> Subarrays:
        return Subarrays(self, k)

    def elements(self) -> Iterator[Any]:
        return iter_elements(self)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.subarrays(self.ndim - 1))

    # -------------------------------------------------------------------------
    # Arithmetic and comparison
    # -------------------------------------------------------------------------

    def _binary(self, other, op: str, reflected: bool = False):
        from .ops import binary_op, scalar_op

        if isinstance(other, NArray):
            return binary_op(op, other, self) if reflected else binary_op(op, self, other)
        return scalar_op(op, self, other, reflected=reflected)

    def _inplace(self, other, op: str):
        from .ops import inplace_op

        return inplace_op(op, self, other)

    def __add__(self, other): return self._binary(other, "add")
    def __radd__(self, other): return self._binary(other, "add", reflected=True)
    def __sub__(self, other): return self._binary(other, "sub")
    def __rsub__(self, other): return self._binary(other, "sub", reflected=True)
    def __mul__(self, other): return self._binary(other, "mul")
    def __rmul__(self, other): return self._binary(other, "mul", reflected=True)
    def __truediv__(self, other): return self._binary(other, "truediv")
    def __rtruediv__(self, other): return self._binary(other, "truediv", reflected=True)
    def __floordiv__(self, other): return self._binary(other, "floordiv")
    def __rfloordiv__(self, other): return self._binary(other, "floordiv", reflected=True)
    def __mod__(self, other): return self._binary(other, "mod")
    def __rmod__(self, other): return self._binary(other, "mod", reflected=True)
    def __pow__(self, other): return self._binary(other, "pow")
    def __rpow__(self, other): return self._binary(other, "pow", reflected=True)

    def __iadd__(self, other): return self._inplace(other, "add")
    def __isub__(self, other): return self._inplace(other, "sub")
    def __imul__(self, other): return self._inplace(other, "mul")
    def __itruediv__(self, other): return self._inplace(other, "truediv")

    def __neg__(self):
        from .ops import unary_op
        return unary_op("neg", self)

    def __pos__(self):
        from .ops import unary_op
        return unary_op("pos", self)

    def __abs__(self):
        from .ops import unary_op
        return unary_op("abs", self)

    def __eq__(self, other):
        if not isinstance(other, NArray):
            return NotImplemented
        from .ops import array_equal
        return array_equal(self, other)

    def __ne__(self, other):
        if not isinstance(other, NArray):
            return NotImplemented
        from .ops import array_equal
        return not array_equal(self, other)

    def compress(self, k: int, fn, dtype=None) -> 'NArray':
        from .ops import compress
        return compress(self, k, fn, dtype=dtype)

    def apply(self, fn, dtype=None) -> 'NArray':
        from .ops import apply
        return apply(self, fn, dtype=dtype)

    def __repr__(self) -> str:
        data_str = np.array2string(self._gather(), precision=4, suppress_small=True)
        parts = [f"NArray({data_str}, dtype={self._dtype!r}"]
        if self._readonly:
            parts.append(", readonly=True")
        parts.append(")")
        return "".join(parts)


def _check_rank(ndim: int):
    if ndim < 1:
        raise ShapeMismatchError(f"arrays must have rank at least 1, got {ndim}", actual=ndim)
