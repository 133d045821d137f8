"""Engines: construction, run protocol, ownership rules."""
import pytest
from llvmlite import ir

from irhandle import (
    CodegenLevel,
    Engine,
    EngineCreationError,
    ExecutionError,
    ForeignHandleError,
    GenericValue,
    Module,
    StaleHandleError,
)
from irhandle.engine.engine import EngineMode
from irhandle import typesys as T

from conftest import build_binop_fn, build_const_fn, build_void_main


@pytest.mark.parametrize("width", [32, 64])
@pytest.mark.parametrize("k", [0, 1, 42, 2**32 - 1])
def test_interpreter_returns_constant(module, width, k):
    fn = build_const_fn(module, "k", T.int_type(width), k)
    with module.create_interpreter() as engine:
        result = engine.run(fn)
    assert result.to_int() == k


@pytest.mark.parametrize("width", [32, 64])
@pytest.mark.parametrize("k", [0, 1, 42, 2**32 - 1])
def test_jit_returns_constant(module, width, k):
    fn = build_const_fn(module, "k", T.int_type(width), k)
    with module.create_jit(CodegenLevel.O0) as engine:
        assert engine.mode is EngineMode.JIT
        assert engine.run(fn).to_int() == k


def test_main_entry_scenario_under_jit():
    with Module.create("m") as m:
        main = build_void_main(m)
        m.verify()
        with m.create_jit() as engine:
            result = engine.run(main)
        assert result.is_void
        assert result.value is None
        assert result.to_int() == 0


def test_main_entry_scenario_under_interpreter():
    with Module.create("m") as m:
        build_void_main(m)
        with m.create_interpreter() as engine:
            assert engine.mode is EngineMode.INTERPRETER
            assert engine.run("main").is_void


def test_jit_and_interpreter_agree_on_arguments(module):
    fn = build_binop_fn(module, "sub", "sub")
    args = [GenericValue.of_int(T.int32(), 10), GenericValue.of_int(T.int32(), 13)]
    with module.create_interpreter() as interp, module.create_jit() as jit:
        a = interp.run(fn, args)
        b = jit.run(fn, args)
    assert a.to_int() == b.to_int() == 2**32 - 3
    assert a.to_int(signed=True) == b.to_int(signed=True) == -3


def test_jit_double_arguments(module):
    fn = build_binop_fn(module, "mul", "fmul", T.double())
    args = [GenericValue.of_float(T.double(), 1.5), GenericValue.of_float(T.double(), 4.0)]
    with module.create_jit() as engine:
        assert engine.run(fn, args).to_float() == 6.0


def test_run_by_name(module):
    build_const_fn(module, "k", T.int32(), 9)
    with module.create_interpreter() as engine:
        assert engine.run("k").to_int() == 9
        with pytest.raises(ExecutionError) as exc:
            engine.run("nope")
        assert exc.value.code == "IH0506"


def test_argument_count_mismatch(module):
    fn = build_binop_fn(module, "add", "add")
    with module.create_interpreter() as engine:
        with pytest.raises(ExecutionError) as exc:
            engine.run(fn, [GenericValue.of_int(T.int32(), 1)])
    assert exc.value.code == "IH0503"


def test_foreign_function_is_rejected(module):
    with Module.create("other") as other:
        foreign = build_const_fn(other, "k", T.int32(), 1)
        build_const_fn(module, "k", T.int32(), 2)
        with module.create_interpreter() as engine:
            with pytest.raises(ForeignHandleError):
                engine.run(foreign)


def test_engine_creation_requires_valid_module(module):
    fn = module.add_function("broken", T.function_type(T.int32()))
    fn.append_block("entry")
    with pytest.raises(EngineCreationError) as exc:
        module.create_interpreter()
    assert exc.value.code == "IH0101"
    with pytest.raises(EngineCreationError) as exc:
        module.create_jit()
    assert exc.value.code == "IH0102"


def test_run_after_module_disposed():
    m = Module.create("short")
    fn = build_const_fn(m, "k", T.int32(), 1)
    engine = Engine.create_interpreter(m)
    m.dispose()
    with pytest.raises(StaleHandleError):
        engine.run(fn)
    engine.dispose()


def test_run_after_engine_disposed(module):
    fn = build_const_fn(module, "k", T.int32(), 1)
    engine = module.create_jit()
    engine.dispose()
    engine.dispose()
    assert engine.is_disposed
    with pytest.raises(StaleHandleError):
        engine.run(fn)


def test_interpreter_cannot_run_declaration(module):
    decl = module.add_function("ext", T.function_type(T.int32()))
    build_const_fn(module, "k", T.int32(), 1)
    with module.create_interpreter() as engine:
        with pytest.raises(ExecutionError):
            engine.run(decl)


def test_jit_rejects_unmarshallable_type(module):
    fn = build_const_fn(module, "wide", T.int128(), 5)
    with module.create_jit() as engine:
        with pytest.raises(ExecutionError) as exc:
            engine.run(fn)
    assert exc.value.code == "IH0504"


def test_generic_value_views():
    gv = GenericValue.of_int(T.int8(), -1)
    assert gv.to_int() == 255
    assert gv.to_int(signed=True) == -1
    assert GenericValue.of_int(T.int8(), -1, signed=True).to_int() == 255
    with pytest.raises(ValueError):
        GenericValue.of_int(T.int8(), 200, signed=True)
    assert GenericValue.of_float(T.float_(), 0.5).to_float() == 0.5
    sentinel = object()
    assert GenericValue.of_pointer(sentinel).to_pointer() is sentinel


def test_module_shortcuts_bind_engine(module):
    build_const_fn(module, "k", T.int32(), 1)
    with module.create_interpreter() as engine:
        assert engine.module is module
    assert "disposed" in repr(engine)


def test_interpreter_sees_direct_ir_builder_bodies(module):
    fn = module.add_function("twice", T.function_type(T.int32(), T.int32()))
    b = ir.IRBuilder(fn.append_block("entry"))
    b.ret(b.shl(fn.parameter(0), ir.Constant(T.int32(), 1)))
    with module.create_interpreter() as engine:
        assert engine.run(fn, [GenericValue.of_int(T.int32(), 21)]).to_int() == 42
