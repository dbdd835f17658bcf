"""Core storage, element type and layout infrastructure for ndview."""

from .dtype import (
    DType,
    ObjectType,
    PROMOTION_TABLE,
    promote_types,
    promote_scalar,
    resolve_dtype,
    dtype_of,
    set_default_dtype,
    get_default_dtype,
)
from .layout import Layout
from .shape import as_shape, prod, row_major_strides
from .storage import Storage

__all__ = [
    'DType',
    'ObjectType',
    'PROMOTION_TABLE',
    'promote_types',
    'promote_scalar',
    'resolve_dtype',
    'dtype_of',
    'set_default_dtype',
    'get_default_dtype',
    'Layout',
    'as_shape',
    'prod',
    'row_major_strides',
    'Storage',
]
