"""Context scopes and their lifetime relation to modules."""
import pytest

from irhandle import ContextInUseError, Context, Module, StaleHandleError
from irhandle import typesys as T


def test_global_context_is_a_singleton():
    assert Context.global_() is Context.global_()
    assert Context.global_().is_global


def test_global_context_is_never_disposed():
    ctx = Context.global_()
    ctx.dispose()
    assert not ctx.is_disposed


def test_module_in_fresh_context():
    with Context.create() as ctx:
        with ctx.create_module("scoped") as m:
            assert m.context is ctx
            assert m.ir.context is ctx.ir
            assert ctx.live_modules() == 1
        assert ctx.live_modules() == 0
    assert ctx.is_disposed


def test_dispose_refuses_while_modules_are_live():
    ctx = Context.create()
    m = Module.create_in_context("busy", ctx)
    with pytest.raises(ContextInUseError) as exc:
        ctx.dispose()
    assert exc.value.code == "IH0406"
    assert not ctx.is_disposed

    m.dispose()
    ctx.dispose()
    ctx.dispose()
    assert ctx.is_disposed


def test_disposed_context_rejects_new_modules():
    ctx = Context.create()
    ctx.dispose()
    with pytest.raises(StaleHandleError):
        Module.create_in_context("late", ctx)


def test_identified_types_are_interned_per_context():
    a = Context.create()
    b = Context.create()
    try:
        pair = a.identified_type("Pair")
        assert a.identified_type("Pair") is pair
        assert b.identified_type("Pair") is not pair
        pair.set_body(T.int32(), T.int32())
        assert pair.elements == (T.int32(), T.int32())
    finally:
        a.dispose()
        b.dispose()
