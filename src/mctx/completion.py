"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Auto-completion for prompt arguments and resource references.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping

from .registry import RegisteredHandler

logger = logging.getLogger("mctx.completion")

MAX_COMPLETIONS = 100

REF_PROMPT_ARGUMENT = "ref/prompt-argument"
REF_RESOURCE = "ref/resource"


def empty_completion() -> dict[str, Any]:
    return {"completion": {"values": [], "hasMore": False}}


def filter_and_cap(values: Any, partial_value: str) -> dict[str, Any]:
    """Keep string values starting with ``partial_value`` (case-insensitive)."""
    if not isinstance(values, (list, tuple)):
        return empty_completion()

    prefix = partial_value.lower()
    matched = [v for v in values if isinstance(v, str) and v.lower().startswith(prefix)]
    return {
        "completion": {
            "values": matched[:MAX_COMPLETIONS],
            "hasMore": len(matched) > MAX_COMPLETIONS,
        }
    }


def _run_custom_completion(
    complete_fn: Callable[..., Any],
    argument_name: str | None,
    partial_value: str,
) -> dict[str, Any]:
    if inspect.iscoroutinefunction(complete_fn):
        logger.warning("Async completion handlers are not supported; returning no values")
        return empty_completion()

    try:
        result = complete_fn(argument_name, partial_value)
    except Exception:
        logger.exception("Completion handler failed")
        return empty_completion()

    if inspect.isawaitable(result):
        close = getattr(result, "close", None)
        if close is not None:
            close()
        logger.warning("Async completion handlers are not supported; returning no values")
        return empty_completion()

    return filter_and_cap(result, partial_value)


def _prompt_argument_completions(
    registered: Mapping[str, RegisteredHandler],
    ref: Mapping[str, Any],
    partial_value: str,
) -> dict[str, Any]:
    name = ref.get("name")
    if not name:
        return empty_completion()
    entry = registered.get(name)
    if entry is None:
        return empty_completion()

    argument_name = ref.get("argumentName")
    if entry.complete is not None:
        return _run_custom_completion(entry.complete, argument_name, partial_value)

    if entry.input and argument_name:
        schema = entry.input.get(argument_name)
        if isinstance(schema, Mapping) and isinstance(schema.get("enum"), (list, tuple)):
            return filter_and_cap(list(schema["enum"]), partial_value)

    return empty_completion()


def _resource_completions(
    registered: Mapping[str, RegisteredHandler],
    ref: Mapping[str, Any],
    partial_value: str,
) -> dict[str, Any]:
    uri = ref.get("uri")
    if not uri:
        return empty_completion()
    entry = registered.get(uri)
    if entry is None or entry.complete is None:
        return empty_completion()
    return _run_custom_completion(entry.complete, None, partial_value)


def generate_completions(
    registered: Mapping[str, RegisteredHandler],
    ref: Mapping[str, Any] | None,
    argument_value: str | None,
) -> dict[str, Any]:
    """Build a ``completion/complete`` result for ``ref``.

    A handler-declared ``complete`` function wins; prompt arguments fall
    back to the ``enum`` of their field descriptor. Results are capped at
    ``MAX_COMPLETIONS`` with ``hasMore`` set when values were dropped.
    """
    if not isinstance(ref, Mapping) or not ref.get("type"):
        return empty_completion()

    partial_value = argument_value if isinstance(argument_value, str) else ""

    if ref["type"] == REF_PROMPT_ARGUMENT:
        return _prompt_argument_completions(registered, ref, partial_value)
    if ref["type"] == REF_RESOURCE:
        return _resource_completions(registered, ref, partial_value)
    return empty_completion()
