"""
ndview Core: Storage
====================

The foundation layer - a single, never-resized block of elements shared by
every view derived from a common origin.
"""

from __future__ import annotations
import itertools
import logging
from typing import Any, Callable, Iterable, Optional

import numpy as np

from ..errors import CapabilityError, StorageReleasedError
from .dtype import ElementType, ObjectType, check_accepts

logger = logging.getLogger(__name__)


class Storage:
    """
    Reference-counted element buffer backing one or more views.

    A Storage owns exactly ``capacity`` elements. It starts with a reference
    count of 1 owned by whoever allocated it; every additional view calls
    ``retain`` and every view that goes away calls ``release``. When the
    count reaches zero the constructed elements are destroyed and the buffer
    is dropped. The count is not synchronized between threads.

    Use the ``default_filled``, ``value_filled`` and ``range_filled``
    constructors; ``Storage(capacity, dtype)`` alone leaves every element
    unconstructed.
    """

    def __init__(self, capacity: int, dtype: ElementType):
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self.dtype = dtype
        self.constructed = 0
        self._ref_count = 1
        self._data: Optional[np.ndarray] = np.empty(capacity, dtype=dtype.numpy_dtype)
        logger.debug("allocated storage of %d x %r", capacity, dtype)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def default_filled(cls, capacity: int, dtype: ElementType) -> 'Storage':
        """Allocate and default-construct every element."""
        if not dtype.default_constructible:
            raise CapabilityError(dtype, "default construction")
        storage = cls(capacity, dtype)
        storage._construct_defaults(capacity)
        return storage

    @classmethod
    def value_filled(cls, capacity: int, value: Any, dtype: ElementType) -> 'Storage':
        """Allocate and copy-construct every element from ``value``."""
        check_accepts(dtype, value)
        storage = cls(capacity, dtype)
        if isinstance(dtype, ObjectType):
            storage._construct_each(itertools.repeat(value, capacity), dtype.copy_value)
        else:
            storage._data[:] = value
            storage.constructed = capacity
        return storage

    @classmethod
    def range_filled(cls, capacity: int, values: Iterable[Any], dtype: ElementType) -> 'Storage':
        """
        Allocate, copy-construct the leading elements from ``values`` in
        order and default-construct whatever the input does not cover.

        At most ``capacity`` items are taken from ``values``. The element
        type only needs to be default constructible if the input is short.
        """
        items = list(itertools.islice(values, capacity))
        for item in items:
            check_accepts(dtype, item)
        if len(items) < capacity and not dtype.default_constructible:
            raise CapabilityError(dtype, "default construction")

        storage = cls(capacity, dtype)
        if isinstance(dtype, ObjectType):
            storage._construct_each(items, dtype.copy_value)
        elif items:
            storage._data[:len(items)] = items
            storage.constructed = len(items)
        storage._construct_defaults(capacity - len(items))
        return storage

    @classmethod
    def from_elements(cls, elements: Iterable[Any], dtype: ElementType, copy: bool = True) -> 'Storage':
        """
        Build a block holding ``elements`` in order (C order for arrays).

        Object elements are copy-constructed unless ``copy`` is False, in
        which case the block adopts the given objects. Callers are
        responsible for choosing a ``dtype`` that holds the elements without
        truncation.
        """
        if isinstance(dtype, ObjectType):
            items = elements.ravel() if isinstance(elements, np.ndarray) else list(elements)
            storage = cls(len(items), dtype)
            storage._construct_each(items, dtype.copy_value if copy else (lambda item: item))
            return storage
        data = np.asarray(elements if isinstance(elements, np.ndarray) else list(elements),
                          dtype=dtype.numpy_dtype).ravel()
        storage = cls(data.size, dtype)
        storage._data[:] = data
        storage.constructed = data.size
        return storage

    def _construct_defaults(self, count: int):
        if isinstance(self.dtype, ObjectType):
            self._construct_each(itertools.repeat(None, count), lambda _: self.dtype.default_value())
        else:
            self._data[self.constructed:self.constructed + count] = self.dtype.default_value()
            self.constructed += count

    def _construct_each(self, sources: Iterable[Any], construct: Callable[[Any], Any]):
        try:
            for source in sources:
                self._data[self.constructed] = construct(source)
                self.constructed += 1
        except Exception:
            logger.debug("element construction failed after %d of %d elements", self.constructed, self.capacity)
            self._destroy()
            raise

    # -------------------------------------------------------------------------
    # Reference counting
    # -------------------------------------------------------------------------

    @property
    def ref_count(self) -> int:
        return self._ref_count

    @property
    def released(self) -> bool:
        return self._data is None

    def retain(self) -> 'Storage':
        if self.released:
            raise StorageReleasedError("cannot retain released storage")
        self._ref_count += 1
        return self

    def release(self):
        if self._ref_count <= 0:
            raise StorageReleasedError("storage released more times than it was retained")
        self._ref_count -= 1
        if self._ref_count == 0:
            self._destroy()

    def _destroy(self):
        logger.debug("destroying %d elements of %r", self.constructed, self.dtype)
        # dropping the buffer drops the last library-held reference to each element
        self._data = None
        self.constructed = 0

    # -------------------------------------------------------------------------
    # Element access
    # -------------------------------------------------------------------------

    def _live(self) -> np.ndarray:
        if self._data is None:
            raise StorageReleasedError("storage has been released")
        return self._data

    def __len__(self) -> int:
        return self.capacity

    def load(self, address: int) -> Any:
        return self._live()[address]

    def store(self, address: int, value: Any):
        self._live()[address] = value

    def gather(self, addresses: np.ndarray) -> np.ndarray:
        """Copy out the elements at ``addresses``, keeping the grid's shape."""
        return self._live()[addresses]

    def scatter(self, addresses: np.ndarray, values: Any):
        self._live()[addresses] = values

    def numpy(self) -> np.ndarray:
        return self._live()

    def __repr__(self) -> str:
        state = "released" if self.released else f"refs={self._ref_count}"
        return f"Storage(capacity={self.capacity}, dtype={self.dtype!r}, {state})"
