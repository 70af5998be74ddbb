from __future__ import annotations

import functools
import threading

import pytest

from mctx.registry import HandlerKind, HandlerRegistry, RegisteredHandler, accepts_ask


def test_registry_preserves_insertion_order_and_overwrites():
    registry = HandlerRegistry("Tool")
    registry.register(RegisteredHandler(key="b", handler=lambda args: "b1", accepts_ask=False))
    registry.register(RegisteredHandler(key="a", handler=lambda args: "a", accepts_ask=False))
    registry.register(RegisteredHandler(key="b", handler=lambda args: "b2", accepts_ask=False))

    assert registry.keys() == ["b", "a"]
    assert registry.get("b").invoke({}) == "b2"
    assert len(registry) == 2
    assert "a" in registry
    assert registry.has("missing") is False
    assert registry.get("missing") is None
    assert list(registry) == ["b", "a"]


def test_invoke_respects_arity():
    one = RegisteredHandler(key="one", handler=lambda args: args, accepts_ask=False)
    two = RegisteredHandler(key="two", handler=lambda args, ask: (args, ask))

    assert one.invoke({"x": 1}) == {"x": 1}
    assert two.invoke({"x": 1}) == ({"x": 1}, None)
    assert two.kind is HandlerKind.DIRECT


def test_snapshot_is_read_only_and_stable():
    registry = HandlerRegistry("Resource")
    registry.register(RegisteredHandler(key="r://1", handler=lambda p: 1))

    snapshot = registry.snapshot()
    registry.register(RegisteredHandler(key="r://2", handler=lambda p: 2))

    assert list(snapshot) == ["r://1"]
    with pytest.raises(TypeError):
        snapshot["r://3"] = None  # type: ignore[index]


def test_register_rejects_non_callable():
    registry = HandlerRegistry("Prompt")

    with pytest.raises(TypeError, match='Prompt handler for "p" must be callable'):
        registry.register(RegisteredHandler(key="p", handler=None))  # type: ignore[arg-type]


def test_concurrent_registration_keeps_every_entry():
    registry = HandlerRegistry("Tool")

    def worker(offset: int) -> None:
        for index in range(100):
            registry.register(RegisteredHandler(key=f"t{offset}-{index}", handler=lambda args: None))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 400


def test_accepts_ask_introspection():
    def one(args):
        return args

    def two(args, ask):
        return args

    def variadic(*args):
        return args

    def keyword_only(args, *, ask=None):
        return args

    assert accepts_ask(one) is False
    assert accepts_ask(two) is True
    assert accepts_ask(variadic) is True
    assert accepts_ask(keyword_only) is False
    assert accepts_ask(functools.partial(two, {})) is False
    assert accepts_ask(print) is True
