"""Handle arena bookkeeping and release of dropped owners."""
import gc

import pytest

from irhandle import Context, Module
from irhandle.core.arena import ARENA, HandleArena
from irhandle.internals.errors import ForeignHandleError, StaleHandleError
from irhandle import typesys as T

from conftest import build_const_fn


class Owner:
    pass


def test_insert_get_release():
    arena = HandleArena()
    payload = Owner()
    hid = arena.insert("module", payload)
    assert arena.is_live(hid)
    assert arena.get(hid, "module") is payload
    assert arena.live_count("module") == 1

    assert arena.release(hid) is True
    assert arena.release(hid) is False
    assert not arena.is_live(hid)
    assert arena.live_count() == 0


def test_ids_are_not_reused():
    arena = HandleArena()
    keep = [Owner(), Owner()]
    first = arena.insert("module", keep[0])
    arena.release(first)
    second = arena.insert("module", keep[1])
    assert second != first


def test_stale_id():
    arena = HandleArena()
    payload = Owner()
    hid = arena.insert("context", payload)
    arena.release(hid)
    with pytest.raises(StaleHandleError):
        arena.get(hid, "context")


def test_never_issued_id_is_stale():
    with pytest.raises(StaleHandleError):
        HandleArena().get(99, "module")


def test_wrong_kind():
    arena = HandleArena()
    payload = Owner()
    hid = arena.insert("context", payload)
    with pytest.raises(ForeignHandleError) as exc:
        arena.get(hid, "module")
    assert exc.value.code == "IH0407"


def test_is_live_of_none():
    assert not HandleArena().is_live(None)


def test_collected_payload_is_stale():
    arena = HandleArena()
    payload = Owner()
    hid = arena.insert("module", payload)
    del payload
    gc.collect()
    assert not arena.is_live(hid)
    with pytest.raises(StaleHandleError):
        arena.get(hid, "module")


def test_track_runs_cleanup_once():
    arena = HandleArena()
    calls = []
    payload = Owner()
    hid, fin = arena.track("module", payload, lambda i, tag: calls.append((i, tag)), "x")
    fin()
    fin()
    del payload
    gc.collect()
    assert calls == [(hid, "x")]


def test_dropped_modules_are_released():
    baseline = ARENA.live_count("module")
    for i in range(50):
        m = Module.create(f"dropped{i}")
        build_const_fn(m, "k", T.int32(), i)
        del m
    gc.collect()
    assert ARENA.live_count("module") == baseline
    assert ARENA.live_count() >= ARENA.live_count("module")


def test_dropped_module_detaches_from_context():
    ctx = Context.create()
    Module.create_in_context("x", ctx)
    gc.collect()
    assert ctx.live_modules() == 0
    ctx.dispose()
    assert ctx.is_disposed


def test_dropped_engines_are_released():
    baseline = ARENA.live_count("engine")
    for i in range(5):
        m = Module.create(f"engine{i}")
        build_const_fn(m, "k", T.int32(), i)
        jit = m.create_jit()
        interp = m.create_interpreter()
        assert jit.run("k").to_int() == interp.run("k").to_int() == i
        del m, jit, interp
    gc.collect()
    assert ARENA.live_count("engine") == baseline
