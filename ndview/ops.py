"""
Elementwise operation engine.

Every operation gathers its operands in row-major order, computes with
numpy (object arrays fall back to the Python operators of their elements)
and writes the result into freshly allocated storage. Operand storage is
never aliased by a result.
"""

from __future__ import annotations
import functools
import logging
import operator
from typing import Any, Callable

import numpy as np

from .core.dtype import (
    DType,
    ElementType,
    ObjectType,
    check_accepts,
    dtype_of,
    float64,
    int64,
    promote_scalar,
    promote_types,
    resolve_dtype,
)
from .core.storage import Storage
from .errors import PromotionError, ShapeMismatchError
from .narray import NArray

logger = logging.getLogger(__name__)

BINARY_OPS = {
    "add": operator.add,
    "sub": operator.sub,
    "mul": operator.mul,
    "truediv": operator.truediv,
    "floordiv": operator.floordiv,
    "mod": operator.mod,
    "pow": operator.pow,
}

UNARY_OPS = {
    "neg": operator.neg,
    "pos": operator.pos,
    "abs": operator.abs,
}

ARITHMETIC_OPS = frozenset({"add", "sub", "mul", "floordiv", "mod", "pow", "neg", "pos"})


def _result_dtype(op: str, dtype: ElementType) -> ElementType:
    if not isinstance(dtype, DType):
        return dtype
    # true division never stays integral
    if op == "truediv" and dtype.kind in "bi":
        return float64
    # bools count as 0 and 1 under arithmetic
    if op in ARITHMETIC_OPS and dtype.kind == "b":
        return int64
    return dtype


def _evaluate(op: str, lhs: Any, rhs: Any, dtype: ElementType) -> Any:
    if op == "pow" and isinstance(dtype, DType) and dtype.kind == "i" and np.any(np.asarray(rhs) < 0):
        raise PromotionError(f"cannot raise {dtype!r} elements to negative integer powers")
    return BINARY_OPS[op](lhs, rhs)


def _check_same_shape(lhs: NArray, rhs: NArray):
    if lhs.shape != rhs.shape:
        raise ShapeMismatchError(
            f"operands have different shapes {lhs.shape} and {rhs.shape}",
            expected=lhs.shape,
            actual=rhs.shape,
        )


def _operand(values: np.ndarray, dtype: ElementType) -> np.ndarray:
    if isinstance(dtype, ObjectType):
        return values
    return values.astype(dtype.numpy_dtype, copy=False)


def _wrap(values: Any, shape, dtype: ElementType) -> NArray:
    storage = Storage.from_elements(np.asarray(values, dtype=dtype.numpy_dtype), dtype, copy=False)
    return NArray._from_storage(storage, shape, dtype)


def binary_op(op: str, lhs: NArray, rhs: NArray) -> NArray:
    """
    Apply a binary operator elementwise to two equally shaped views.

    Args:
        op: key of BINARY_OPS
        lhs: left operand
        rhs: right operand

    Returns:
        New array of the promoted element type

    Raises:
        ShapeMismatchError: if the shapes differ
        PromotionError: if the element types have no promotion rule
    """
    _check_same_shape(lhs, rhs)
    dtype = _result_dtype(op, promote_types(lhs.dtype, rhs.dtype))
    values = _evaluate(op, _operand(lhs._gather(), dtype), _operand(rhs._gather(), dtype), dtype)
    return _wrap(values, lhs.shape, dtype)


def scalar_op(op: str, array: NArray, scalar: Any, reflected: bool = False) -> NArray:
    """Apply a binary operator between every element and one scalar."""
    dtype = _result_dtype(op, promote_scalar(array.dtype, scalar))
    values = _operand(array._gather(), dtype)
    if not isinstance(dtype, ObjectType):
        scalar = np.asarray(scalar, dtype=dtype.numpy_dtype)
    if reflected:
        result = _evaluate(op, scalar, values, dtype)
    else:
        result = _evaluate(op, values, scalar, dtype)
    return _wrap(result, array.shape, dtype)


def unary_op(op: str, array: NArray) -> NArray:
    dtype = _result_dtype(op, array.dtype)
    values = UNARY_OPS[op](_operand(array._gather(), dtype))
    if op == "abs" and dtype == DType.COMPLEX128:
        dtype = float64
    return _wrap(values, array.shape, dtype)


def inplace_op(op: str, array: NArray, other: Any) -> NArray:
    """
    Apply a binary operator and write the result back into ``array``.

    The promoted type must be ``array``'s own element type; anything wider
    would have to be truncated on the way back.
    """
    array._check_writable()
    if isinstance(other, NArray):
        _check_same_shape(array, other)
        dtype = promote_types(array.dtype, other.dtype)
        rhs = other._gather()
    else:
        dtype = promote_scalar(array.dtype, other)
        rhs = other
    dtype = _result_dtype(op, dtype)
    if dtype != array.dtype:
        raise PromotionError(
            f"in-place {op} would store {dtype!r} results into an array of {array.dtype!r}"
        )
    if array.size == 0:
        return array
    values = _evaluate(op, array._gather(), rhs, dtype)
    array.storage.scatter(array.layout.addresses(), values)
    return array


def array_equal(a: NArray, b: NArray) -> bool:
    """
    True if both views have the same shape and every pair of elements at
    the same coordinate compares equal. Strides, offsets and storage are
    irrelevant.
    """
    if a.shape != b.shape:
        return False
    if a.size == 0:
        return True
    return bool(np.all(a._gather() == b._gather()))


def compress(array: NArray, k: int, fn: Callable[[Any], Any], dtype=None) -> NArray:
    """
    Reduce ``array`` to rank ``k`` by mapping every trailing subview.

    For each coordinate of the leading ``k`` axes, ``fn`` receives the view
    over the remaining ``ndim - k`` axes (or the raw element when
    ``k == ndim``) and its result becomes the element at that coordinate of
    a new array with shape ``array.shape[:k]``.

    Args:
        array: source array
        k: rank of the result, between 1 and array.ndim
        fn: mapping applied to each subview
        dtype: element type of the result; inferred from the results if None

    Returns:
        Freshly allocated rank-``k`` array
    """
    if not 1 <= k <= array.ndim:
        raise ShapeMismatchError(
            f"cannot compress an array of rank {array.ndim} to rank {k}",
            expected=array.ndim,
            actual=k,
        )
    shape = array.shape[:k]
    results = [fn(sub) for sub in array.subarrays(array.ndim - k)]

    if dtype is None:
        dtype = functools.reduce(promote_types, map(dtype_of, results)) if results else array.dtype
    else:
        dtype = resolve_dtype(dtype)
        for result in results:
            check_accepts(dtype, result)

    logger.debug("compressed %s to %s", array.shape, shape)
    storage = Storage.from_elements(results, dtype, copy=False)
    return NArray._from_storage(storage, shape, dtype)


def apply(array: NArray, fn: Callable[[Any], Any], dtype=None) -> NArray:
    """Elementwise map into a new array of the same shape."""
    return compress(array, array.ndim, fn, dtype=dtype)
