"""IR constant value creation utilities.

Signed factories accept negative Python integers; unsigned factories wrap
their argument to the type's width. Precomputed constants cover the values
used most often when building bodies.
"""

from llvmlite import ir

from irhandle.typesys import (
    INT1_BIT_WIDTH,
    INT8_BIT_WIDTH,
    INT16_BIT_WIDTH,
    INT32_BIT_WIDTH,
    INT64_BIT_WIDTH,
    INT128_BIT_WIDTH,
)


# === Factory Functions ===

def sint(num_bits: int, value: int) -> ir.Constant:
    """Signed integer constant of arbitrary bit width."""
    wrapped = value & ((1 << num_bits) - 1)
    if wrapped >> (num_bits - 1):
        wrapped -= 1 << num_bits
    return ir.Constant(ir.IntType(num_bits), wrapped)


def uint(num_bits: int, value: int) -> ir.Constant:
    """Unsigned integer constant of arbitrary bit width."""
    return ir.Constant(ir.IntType(num_bits), value & ((1 << num_bits) - 1))


def sint1(value: int) -> ir.Constant:
    return sint(INT1_BIT_WIDTH, value)


def uint1(value: int) -> ir.Constant:
    return uint(INT1_BIT_WIDTH, value)


def sint8(value: int) -> ir.Constant:
    return sint(INT8_BIT_WIDTH, value)


def uint8(value: int) -> ir.Constant:
    return uint(INT8_BIT_WIDTH, value)


def sint16(value: int) -> ir.Constant:
    return sint(INT16_BIT_WIDTH, value)


def uint16(value: int) -> ir.Constant:
    return uint(INT16_BIT_WIDTH, value)


def sint32(value: int) -> ir.Constant:
    return sint(INT32_BIT_WIDTH, value)


def uint32(value: int) -> ir.Constant:
    return uint(INT32_BIT_WIDTH, value)


def sint64(value: int) -> ir.Constant:
    return sint(INT64_BIT_WIDTH, value)


def uint64(value: int) -> ir.Constant:
    return uint(INT64_BIT_WIDTH, value)


def sint128(value: int) -> ir.Constant:
    return sint(INT128_BIT_WIDTH, value)


def uint128(value: int) -> ir.Constant:
    return uint(INT128_BIT_WIDTH, value)


def make_bool_const(value: bool) -> ir.Constant:
    """Create an i1 boolean constant."""
    return TRUE_I1 if value else FALSE_I1


def half(value: float) -> ir.Constant:
    return ir.Constant(ir.HalfType(), value)


def float_(value: float) -> ir.Constant:
    return ir.Constant(ir.FloatType(), value)


def double(value: float) -> ir.Constant:
    return ir.Constant(ir.DoubleType(), value)


def null(ptr_type: ir.PointerType) -> ir.Constant:
    """Null pointer of *ptr_type*."""
    return ir.Constant(ptr_type, None)


# === Precomputed Integer Constants ===

FALSE_I1 = ir.Constant(ir.IntType(INT1_BIT_WIDTH), 0)
TRUE_I1 = ir.Constant(ir.IntType(INT1_BIT_WIDTH), 1)

ZERO_I32 = ir.Constant(ir.IntType(INT32_BIT_WIDTH), 0)
ONE_I32 = ir.Constant(ir.IntType(INT32_BIT_WIDTH), 1)

ZERO_I64 = ir.Constant(ir.IntType(INT64_BIT_WIDTH), 0)
ONE_I64 = ir.Constant(ir.IntType(INT64_BIT_WIDTH), 1)
