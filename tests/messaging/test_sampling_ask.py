from __future__ import annotations

import asyncio

import pytest

from mctx import create_ask
from mctx.errors import SamplingError


def run_async(coro):
    return asyncio.run(coro)


def test_create_ask_returns_none_without_sampling_capability():
    async def send_request(method, params):
        return {}

    assert create_ask(send_request, {}) is None
    assert create_ask(send_request, {"sampling": None}) is None
    assert create_ask(send_request, {"sampling": False}) is None


def test_ask_wraps_string_prompt_and_returns_content():
    sent = []

    async def send_request(method, params):
        sent.append((method, params))
        return {"role": "assistant", "content": {"type": "text", "text": "42"}}

    ask = create_ask(send_request, {"sampling": {}})

    content = run_async(ask("What is six times seven?"))

    assert content == {"type": "text", "text": "42"}
    assert sent == [
        (
            "sampling/createMessage",
            {
                "messages": [
                    {"role": "user", "content": {"type": "text", "text": "What is six times seven?"}}
                ]
            },
        )
    ]


def test_ask_passes_options_through():
    sent = []

    async def send_request(method, params):
        sent.append(params)
        return {"content": {"type": "text", "text": "ok"}}

    ask = create_ask(send_request, {"sampling": True})
    options = {"messages": [], "maxTokens": 50}

    run_async(ask(options))

    assert sent == [options]
    with pytest.raises(ValueError):
        run_async(ask({"maxTokens": 5}))


def test_ask_failures_raise_sampling_error():
    async def slow(method, params):
        await asyncio.sleep(1)

    async def broken(method, params):
        raise ConnectionError("client went away")

    async def empty(method, params):
        return {"role": "assistant"}

    with pytest.raises(SamplingError, match="timed out"):
        run_async(create_ask(slow, {"sampling": True})("hi", timeout_s=0.01))
    with pytest.raises(SamplingError, match="client went away"):
        run_async(create_ask(broken, {"sampling": True})("hi"))
    with pytest.raises(SamplingError, match="missing content"):
        run_async(create_ask(empty, {"sampling": True})("hi"))


def test_create_ask_validates_arguments():
    with pytest.raises(TypeError):
        create_ask("nope", {"sampling": True})
