"""Shared module builders for the irhandle tests."""
import pytest
from llvmlite import ir

from irhandle import Module, initialize_native_backend
from irhandle import typesys as T


@pytest.fixture(scope="session", autouse=True)
def _native_backend() -> None:
    initialize_native_backend()


@pytest.fixture
def module():
    m = Module.create("test")
    yield m
    m.dispose()


def build_const_fn(module: Module, name: str, ty: ir.IntType, value: int):
    """Define ``ty name() { ret ty value }``."""
    fn = module.add_function(name, T.function_type(ty))
    builder = ir.IRBuilder(fn.append_block("entry"))
    builder.ret(ir.Constant(ty, value))
    return fn


def build_binop_fn(module: Module, name: str, op: str, ty: ir.Type = None):
    """Define ``ty name(ty a, ty b) { ret a <op> b }`` for an IRBuilder method name."""
    ty = ty or T.int32()
    fn = module.add_function(name, T.function_type(ty, ty, ty))
    builder = ir.IRBuilder(fn.append_block("entry"))
    a, b = fn.parameter(0), fn.parameter(1)
    builder.ret(getattr(builder, op)(a, b))
    return fn


def build_void_main(module: Module):
    """``void main() { entry: ret void }``."""
    fn = module.add_function("main", T.function_type(T.void()))
    builder = ir.IRBuilder(fn.append_block("entry"))
    builder.ret_void()
    return fn
