"""IR type helpers.

Thin factories over ``llvmlite.ir`` types, plus ``function_type`` for
building signatures passed to ``Module.add_function``.
"""
from __future__ import annotations

from llvmlite import ir

# Integer type bit widths
INT1_BIT_WIDTH = 1
INT8_BIT_WIDTH = 8
INT16_BIT_WIDTH = 16
INT32_BIT_WIDTH = 32
INT64_BIT_WIDTH = 64
INT128_BIT_WIDTH = 128


def void() -> ir.VoidType:
    return ir.VoidType()


def int_type(num_bits: int) -> ir.IntType:
    return ir.IntType(num_bits)


def int1() -> ir.IntType:
    return ir.IntType(INT1_BIT_WIDTH)


def int8() -> ir.IntType:
    return ir.IntType(INT8_BIT_WIDTH)


def int16() -> ir.IntType:
    return ir.IntType(INT16_BIT_WIDTH)


def int32() -> ir.IntType:
    return ir.IntType(INT32_BIT_WIDTH)


def int64() -> ir.IntType:
    return ir.IntType(INT64_BIT_WIDTH)


def int128() -> ir.IntType:
    return ir.IntType(INT128_BIT_WIDTH)


def half() -> ir.HalfType:
    return ir.HalfType()


def float_() -> ir.FloatType:
    return ir.FloatType()


def double() -> ir.DoubleType:
    return ir.DoubleType()


def label() -> ir.LabelType:
    return ir.LabelType()


def pointer(elem_type: ir.Type, address_space: int = 0) -> ir.PointerType:
    """Pointer to *elem_type* in *address_space*."""
    return elem_type.as_pointer(address_space)


def char_pointer() -> ir.PointerType:
    """``i8*``, the C string type."""
    return pointer(int8())


def function_type(return_type: ir.Type, *param_types: ir.Type,
                  var_arg: bool = False) -> ir.FunctionType:
    """Build a function type.

    Examples:
        function_type(int32())                      # i32 ()
        function_type(int32(), int32(), int32())    # i32 (i32, i32)
        function_type(int32(), char_pointer(), var_arg=True)  # i32 (i8*, ...)
    """
    return ir.FunctionType(return_type, list(param_types), var_arg=var_arg)
