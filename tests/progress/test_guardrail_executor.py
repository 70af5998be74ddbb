from __future__ import annotations

import asyncio

import pytest

from mctx.errors import GuardrailError
from mctx.progress import (
    GuardrailExecutor,
    complete,
    create_progress,
    is_progress_event,
)


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, *readings: float) -> None:
        self._readings = list(readings)
        self._last = 0.0

    def __call__(self) -> float:
        if self._readings:
            self._last = self._readings.pop(0)
        return self._last


def _steps(count: int, result: str = "done"):
    for _ in range(count):
        yield {"type": "progress", "progress": 1}
    return result


def test_create_progress_increments_and_carries_total():
    step = create_progress(3)

    assert step() == {"type": "progress", "progress": 1, "total": 3}
    assert step() == {"type": "progress", "progress": 2, "total": 3}
    assert create_progress()() == {"type": "progress", "progress": 1}


@pytest.mark.parametrize("total", [0, -1, "5", True])
def test_create_progress_rejects_invalid_total(total):
    with pytest.raises(ValueError):
        create_progress(total)


def test_is_progress_event():
    assert is_progress_event({"type": "progress", "progress": 1})
    assert not is_progress_event({"type": "log"})
    assert not is_progress_event("progress")


def test_sync_generator_return_value_is_result():
    executor = GuardrailExecutor()

    outcome = run_async(executor.run(_steps(3, "finished")))

    assert outcome.value == "finished"
    assert outcome.steps == 3
    assert outcome.notifications == []


def test_yield_limit_boundary():
    executor = GuardrailExecutor()

    assert run_async(executor.run(_steps(10_000))).steps == 10_000
    with pytest.raises(GuardrailError, match=r"maximum yields \(10000\)"):
        run_async(executor.run(_steps(10_001)))


def test_time_limit_uses_injected_clock():
    executor = GuardrailExecutor(max_execution_ms=100, clock=FakeClock(0.0, 0.05, 0.1, 0.2))

    with pytest.raises(GuardrailError, match=r"maximum execution time \(100ms\)"):
        run_async(executor.run(_steps(5)))


def test_time_limit_not_exceeded_at_exact_boundary():
    executor = GuardrailExecutor(max_execution_ms=100, clock=FakeClock(0.0, 0.1))

    outcome = run_async(executor.run(_steps(2)))

    assert outcome.value == "done"


def test_progress_events_kept_only_with_token():
    def handler():
        step = create_progress(2)
        yield step()
        yield "not an event"
        yield step()
        return 42

    executor = GuardrailExecutor()
    with_token = run_async(executor.run(handler(), progress_token="abc"))
    without_token = run_async(executor.run(handler()))

    assert with_token.value == 42
    assert with_token.steps == 3
    assert with_token.notifications == [
        {"progressToken": "abc", "type": "progress", "progress": 1, "total": 2},
        {"progressToken": "abc", "type": "progress", "progress": 2, "total": 2},
    ]
    assert without_token.notifications == []


def test_async_generator_completes_via_complete_marker():
    closed = []

    async def handler():
        try:
            yield {"type": "progress", "progress": 1}
            yield complete({"rows": 10})
            yield {"type": "progress", "progress": 2}
        finally:
            closed.append(True)

    outcome = run_async(GuardrailExecutor().run(handler()))

    assert outcome.value == {"rows": 10}
    assert outcome.steps == 1
    assert closed == [True]


def test_async_generator_without_completion_returns_none():
    async def handler():
        yield {"type": "progress", "progress": 1}

    assert run_async(GuardrailExecutor().run(handler())).value is None


def test_completion_marker_is_not_counted_as_a_step():
    def handler():
        yield {"type": "progress", "progress": 1}
        yield complete("ok")

    outcome = run_async(GuardrailExecutor(max_yields=1).run(handler()))

    assert outcome.value == "ok"
    assert outcome.steps == 1


def test_non_generator_is_rejected():
    with pytest.raises(TypeError, match="must return a generator"):
        run_async(GuardrailExecutor().run("not a generator"))


def test_invalid_limits_are_rejected():
    with pytest.raises(ValueError):
        GuardrailExecutor(max_yields=0)
    with pytest.raises(ValueError):
        GuardrailExecutor(max_execution_ms=0)
