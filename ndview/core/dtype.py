"""
ndview Core: Element Types
==========================

Numeric element types, object element types, the promotion table and the
process-wide default element type.

Numeric types are stored in native numpy buffers. Any other Python class
can be used as an element type through ObjectType, which stores elements in
numpy object arrays and builds them with the class' own constructors.
"""

from __future__ import annotations
import copy
import inspect
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Tuple, Union

import numpy as np

from ..errors import PromotionError


class DType(Enum):
    BOOL = ("bool", np.bool_, 1, "b")
    INT8 = ("int8", np.int8, 1, "i")
    INT16 = ("int16", np.int16, 2, "i")
    INT32 = ("int32", np.int32, 4, "i")
    INT64 = ("int64", np.int64, 8, "i")
    FLOAT32 = ("float32", np.float32, 4, "f")
    FLOAT64 = ("float64", np.float64, 8, "f")
    COMPLEX128 = ("complex128", np.complex128, 16, "c")

    def __init__(self, type_name: str, numpy_type, size: int, kind: str):
        self.type_name = type_name
        self.numpy_dtype = np.dtype(numpy_type)
        self.itemsize = size
        self.kind = kind

    def __repr__(self) -> str:
        return f"nd.{self.type_name}"

    @property
    def default_constructible(self) -> bool:
        return True

    def default_value(self) -> Any:
        return self.numpy_dtype.type(0)

    def copy_value(self, value: Any) -> Any:
        return self.numpy_dtype.type(value)


@dataclass(frozen=True)
class ObjectType:
    """
    Element type wrapping an arbitrary Python class.

    Default construction calls ``cls()``; copy construction goes through
    ``copy.copy`` so a class' ``__copy__`` acts as its copy constructor.
    """
    cls: type

    numpy_dtype = np.dtype(object)
    kind = "O"

    def __repr__(self) -> str:
        return f"nd.object[{self.cls.__name__}]"

    @property
    def type_name(self) -> str:
        return self.cls.__name__

    @cached_property
    def default_constructible(self) -> bool:
        try:
            signature = inspect.signature(self.cls)
        except (TypeError, ValueError):
            # builtins without introspectable signatures
            return True
        try:
            signature.bind()
        except TypeError:
            return False
        return True

    def default_value(self) -> Any:
        return self.cls()

    def copy_value(self, value: Any) -> Any:
        return copy.copy(value)


ElementType = Union[DType, ObjectType]

bool_ = DType.BOOL
int8 = DType.INT8
int16 = DType.INT16
int32 = DType.INT32
int64 = DType.INT64
float32 = DType.FLOAT32
float64 = DType.FLOAT64
complex128 = DType.COMPLEX128


# =============================================================================
# Promotion
# =============================================================================

_B, _I8, _I16, _I32, _I64 = bool_, int8, int16, int32, int64
_F32, _F64, _C128 = float32, float64, complex128

PROMOTION_TABLE: Dict[Tuple[DType, DType], DType] = {
    (_B, _B): _B, (_B, _I8): _I8, (_B, _I16): _I16, (_B, _I32): _I32,
    (_B, _I64): _I64, (_B, _F32): _F32, (_B, _F64): _F64, (_B, _C128): _C128,

    (_I8, _I8): _I8, (_I8, _I16): _I16, (_I8, _I32): _I32, (_I8, _I64): _I64,
    (_I8, _F32): _F32, (_I8, _F64): _F64, (_I8, _C128): _C128,

    (_I16, _I16): _I16, (_I16, _I32): _I32, (_I16, _I64): _I64,
    (_I16, _F32): _F32, (_I16, _F64): _F64, (_I16, _C128): _C128,

    (_I32, _I32): _I32, (_I32, _I64): _I64,
    (_I32, _F32): _F64, (_I32, _F64): _F64, (_I32, _C128): _C128,

    (_I64, _I64): _I64,
    (_I64, _F32): _F64, (_I64, _F64): _F64, (_I64, _C128): _C128,

    (_F32, _F32): _F32, (_F32, _F64): _F64, (_F32, _C128): _C128,

    (_F64, _F64): _F64, (_F64, _C128): _C128,

    (_C128, _C128): _C128,
}

_NUMPY_TO_DTYPE = {member.numpy_dtype: member for member in DType}

_PYTHON_TO_DTYPE = {bool: bool_, int: int64, float: float64, complex: complex128}


def promote_types(a: ElementType, b: ElementType) -> ElementType:
    """
    Result element type of a binary operation between ``a`` and ``b``.

    Raises:
        PromotionError: if the pair is not in the promotion table
    """
    if a == b:
        return a
    if isinstance(a, DType) and isinstance(b, DType):
        result = PROMOTION_TABLE.get((a, b)) or PROMOTION_TABLE.get((b, a))
        if result is not None:
            return result
    raise PromotionError(f"No promotion rule for {a!r} and {b!r}")


def _int_fits(dtype: DType, value: int) -> bool:
    info = np.iinfo(dtype.numpy_dtype)
    return info.min <= value <= info.max


def promote_scalar(dtype: ElementType, value: Any) -> ElementType:
    """
    Result element type of ``dtype`` combined with a scalar.

    Python scalars are weakly typed: they only lift the array's type to a
    wider kind (int -> float -> complex), never to a wider width. An int
    that does not fit the array's integer type widens it to int64. Numpy
    scalars go through the promotion table.
    """
    if isinstance(dtype, ObjectType):
        return dtype
    if isinstance(value, np.generic):
        return promote_types(dtype, dtype_of(value))
    if isinstance(value, bool):
        return dtype
    if isinstance(value, int):
        result = int64 if dtype.kind == "b" else dtype
        if result.kind == "i" and not _int_fits(result, value):
            if not _int_fits(int64, value):
                raise PromotionError(f"Python int {value} does not fit in {int64!r}")
            return int64
        return result
    if isinstance(value, float):
        return float64 if dtype.kind in "bi" else dtype
    if isinstance(value, complex):
        return dtype if dtype.kind == "c" else complex128
    raise PromotionError(f"No promotion rule for {dtype!r} and {type(value).__name__}")


def accepts(dtype: ElementType, value: Any) -> bool:
    """Whether ``value`` can be stored in ``dtype`` without truncation."""
    if isinstance(dtype, ObjectType):
        return isinstance(value, dtype.cls)
    if isinstance(value, np.generic):
        try:
            return promote_types(dtype, dtype_of(value)) == dtype
        except PromotionError:
            return False
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        if dtype.kind == "i":
            return _int_fits(dtype, value)
        return dtype.kind in "fc"
    if isinstance(value, float):
        return dtype.kind in "fc"
    if isinstance(value, complex):
        return dtype.kind == "c"
    return False


def check_accepts(dtype: ElementType, value: Any) -> None:
    if not accepts(dtype, value):
        raise PromotionError(f"Cannot store {value!r} in an array of {dtype!r} without truncation")


# =============================================================================
# Resolution
# =============================================================================

def from_numpy_dtype(numpy_dtype) -> ElementType:
    numpy_dtype = np.dtype(numpy_dtype)
    if numpy_dtype == np.dtype(object):
        return ObjectType(object)
    try:
        return _NUMPY_TO_DTYPE[numpy_dtype]
    except KeyError:
        raise PromotionError(f"Unsupported numpy dtype {numpy_dtype}") from None


def dtype_of(value: Any) -> ElementType:
    """Element type of a single scalar value."""
    if isinstance(value, np.generic):
        if value.dtype in _NUMPY_TO_DTYPE:
            return _NUMPY_TO_DTYPE[value.dtype]
        return ObjectType(type(value))
    for python_type in (bool, int, float, complex):
        if type(value) is python_type:
            return _PYTHON_TO_DTYPE[python_type]
    return ObjectType(type(value))


def resolve_dtype(spec: Any) -> ElementType:
    """
    Turn anything that names an element type into an element type.

    Args:
        spec: DType, ObjectType, None (default type), a name such as
            ``"float32"``, a numpy dtype or scalar type, a Python numeric
            type, or any other class (object element type)

    Returns:
        DType or ObjectType
    """
    if spec is None:
        return _default_dtype
    if isinstance(spec, (DType, ObjectType)):
        return spec
    if isinstance(spec, str):
        for member in DType:
            if member.type_name == spec:
                return member
        raise TypeError(f"Unknown element type name: {spec!r}")
    if isinstance(spec, np.dtype) or (isinstance(spec, type) and issubclass(spec, np.generic)):
        return from_numpy_dtype(spec)
    if isinstance(spec, type):
        if spec in _PYTHON_TO_DTYPE:
            return _PYTHON_TO_DTYPE[spec]
        return ObjectType(spec)
    raise TypeError(f"Cannot interpret {spec!r} as an element type")


# =============================================================================
# Default element type
# =============================================================================

_default_dtype: ElementType = float64


def set_default_dtype(dtype) -> None:
    """
    Set the element type used by sized constructors given neither a fill
    value nor an explicit dtype.

    Args:
        dtype: anything accepted by resolve_dtype except None
    """
    global _default_dtype

    if dtype is None:
        raise TypeError("default element type cannot be None")
    _default_dtype = resolve_dtype(dtype)


def get_default_dtype() -> ElementType:
    return _default_dtype
