"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Progress events and the guardrail executor for stepwise handlers.

A stepwise handler is a generator function. Each yielded value is one step;
values shaped ``{"type": "progress", ...}`` are progress events, anything
else is ignored. A sync generator completes with its ``return`` value. An
async generator cannot return a value, so it yields ``complete(value)``
instead (sync generators may do the same).

Guardrails are cooperative: they are checked between steps and never
interrupt a step that is already running.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .errors import GuardrailError

logger = logging.getLogger("mctx.progress")

PROGRESS_DEFAULTS: dict[str, int] = {
    "max_execution_ms": 60_000,
    "max_yields": 10_000,
}


def create_progress(total: int | float | None = None) -> Callable[[], dict[str, Any]]:
    """Return a step function that emits auto-incrementing progress events.

    Usage::

        def migrate(args, ask):
            step = create_progress(len(tables))
            for table in tables:
                yield step()   # {"type": "progress", "progress": 1, "total": 5}
                copy(table)
            return "Migration complete"
    """
    if total is not None and (
        isinstance(total, bool) or not isinstance(total, (int, float)) or total <= 0
    ):
        raise ValueError("create_progress() total must be a positive number if provided")

    current = 0

    def step() -> dict[str, Any]:
        nonlocal current
        current += 1
        event: dict[str, Any] = {"type": "progress", "progress": current}
        if total is not None:
            event["total"] = total
        return event

    return step


@dataclass(frozen=True, slots=True)
class Completed:
    """Explicit completion value yielded by a stepwise handler."""

    value: Any


def complete(value: Any) -> Completed:
    """Wrap the final value of a stepwise handler."""
    return Completed(value)


def is_progress_event(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get("type") == "progress"


@dataclass(slots=True)
class ExecutionOutcome:
    """Result of driving a stepwise handler to completion."""

    value: Any
    steps: int
    notifications: list[dict[str, Any]] = field(default_factory=list)


class GuardrailExecutor:
    """Drive a step-producing iterator while enforcing step and time ceilings."""

    def __init__(
        self,
        *,
        max_yields: int = PROGRESS_DEFAULTS["max_yields"],
        max_execution_ms: int = PROGRESS_DEFAULTS["max_execution_ms"],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_yields < 1:
            raise ValueError("max_yields must be >= 1")
        if max_execution_ms <= 0:
            raise ValueError("max_execution_ms must be > 0")
        self.max_yields = max_yields
        self.max_execution_ms = max_execution_ms
        self._clock = clock

    async def run(self, steps: Any, *, progress_token: Any = None) -> ExecutionOutcome:
        """Pull every step from ``steps`` and return the completion value.

        Raises:
            GuardrailError: when the step or time ceiling is exceeded.
            TypeError: when ``steps`` is not a (sync or async) generator.
        """
        if hasattr(steps, "__anext__"):
            return await self._run_async(steps, progress_token)
        if hasattr(steps, "__next__"):
            return self._run_sync(steps, progress_token)
        raise TypeError("Stepwise handler must return a generator")

    def _run_sync(self, steps: Any, progress_token: Any) -> ExecutionOutcome:
        started = self._clock()
        notifications: list[dict[str, Any]] = []
        count = 0
        try:
            while True:
                try:
                    value = next(steps)
                except StopIteration as stop:
                    return ExecutionOutcome(stop.value, count, notifications)
                if isinstance(value, Completed):
                    return ExecutionOutcome(value.value, count, notifications)
                count += 1
                self._check(count, started)
                self._record(value, progress_token, notifications)
        finally:
            close = getattr(steps, "close", None)
            if close is not None:
                close()

    async def _run_async(self, steps: Any, progress_token: Any) -> ExecutionOutcome:
        started = self._clock()
        notifications: list[dict[str, Any]] = []
        count = 0
        try:
            while True:
                try:
                    value = await steps.__anext__()
                except StopAsyncIteration:
                    return ExecutionOutcome(None, count, notifications)
                if isinstance(value, Completed):
                    return ExecutionOutcome(value.value, count, notifications)
                count += 1
                self._check(count, started)
                self._record(value, progress_token, notifications)
        finally:
            aclose = getattr(steps, "aclose", None)
            if aclose is not None:
                await aclose()

    def _check(self, count: int, started: float) -> None:
        if count > self.max_yields:
            raise GuardrailError(
                f"Generator exceeded maximum yields ({self.max_yields})"
            )
        elapsed_ms = (self._clock() - started) * 1000
        if elapsed_ms > self.max_execution_ms:
            raise GuardrailError(
                f"Generator exceeded maximum execution time ({self.max_execution_ms}ms)"
            )

    @staticmethod
    def _record(value: Any, progress_token: Any, notifications: list[dict[str, Any]]) -> None:
        if not is_progress_event(value):
            return
        # Events are only kept when the request carried a progress token.
        if progress_token is None:
            return
        event = {"progressToken": progress_token, **dict(value)}
        notifications.append(event)
        logger.debug("Progress %s", event)
