"""
Exceptions raised by ndview.

Every error is raised at the point it is detected; nothing in the library
retries. All classes derive from NArrayError and from the closest builtin
exception so callers can catch either.
"""


class NArrayError(Exception):
    """Base class for all ndview errors."""


class ShapeMismatchError(NArrayError, ValueError):
    """
    Raised when shapes or ranks do not agree.

    Binary elementwise operations on views of unequal shape, a reshape to a
    different element count, or a shape vector of the wrong length all end
    up here.
    """

    def __init__(self, message: str, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class LayoutError(ShapeMismatchError):
    """
    Raised when a reshape cannot be expressed as new strides over the
    existing storage. Clone the view first to get a contiguous copy.
    """


class BoundsError(NArrayError, IndexError):
    """
    Raised when a coordinate, origin or extent falls outside a view's shape.

    Only the checked paths raise this (``at``, ``set_at`` and the
    transformation methods). Raw ``[]`` indexing is unchecked.
    """


class CapabilityError(NArrayError, TypeError):
    """
    Raised when an element type lacks a capability an operation needs.

    Default-filling storage requires an element type that can be
    constructed without arguments. The check happens before any element
    is built.
    """

    def __init__(self, dtype, capability: str):
        super().__init__(f"Element type {dtype!r} does not support {capability}.")
        self.dtype = dtype
        self.capability = capability


class PromotionError(NArrayError, TypeError):
    """
    Raised when two element types have no entry in the promotion table, or
    when a value would be truncated by storing it into a narrower type.
    """


class ReadOnlyError(NArrayError, PermissionError):
    """Raised on writes through a read-only view."""


class StorageReleasedError(NArrayError, RuntimeError):
    """Raised when released storage is accessed or released a second time."""
