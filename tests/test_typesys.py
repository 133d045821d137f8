"""Type and constant helpers."""
from llvmlite import ir

from irhandle import constants as C
from irhandle import typesys as T


def test_integer_types():
    assert [t.width for t in (T.int1(), T.int8(), T.int16(), T.int32(), T.int64(), T.int128())] == \
        [1, 8, 16, 32, 64, 128]
    assert T.int_type(24) == ir.IntType(24)


def test_pointer_types():
    assert T.char_pointer() == ir.IntType(8).as_pointer()
    assert T.pointer(T.int32(), 1).addrspace == 1


def test_function_type():
    fnty = T.function_type(T.int32(), T.char_pointer(), var_arg=True)
    assert fnty.return_type == T.int32()
    assert tuple(fnty.args) == (T.char_pointer(),)
    assert fnty.var_arg
    assert str(T.function_type(T.void())) == "void ()"


def test_signed_constants():
    assert C.sint8(-1).constant == -1
    assert C.sint8(255).constant == -1
    assert C.sint32(7).type == T.int32()


def test_unsigned_constants_wrap():
    assert C.uint8(-1).constant == 255
    assert C.uint16(0x1_0001).constant == 1
    assert C.uint128(-1).constant == (1 << 128) - 1


def test_real_constants():
    assert C.double(2.5).constant == 2.5
    assert C.float_(0.5).type == T.float_()
    assert C.half(1.0).type == T.half()


def test_bool_and_null():
    assert C.make_bool_const(True) is C.TRUE_I1
    assert C.make_bool_const(False) is C.FALSE_I1
    assert str(C.null(T.char_pointer())).endswith(" null")
