"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Registries for tools, resources and prompts.

Each registry is an insertion-ordered map with last-write-wins
re-registration. Writes swap in a new snapshot under a lock, so readers
iterating a listing during live traffic never see a half-applied update.
"""

from __future__ import annotations

import inspect
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping


class HandlerKind(str, Enum):
    """How a handler produces its result."""

    DIRECT = "direct"
    STEPWISE = "stepwise"


@dataclass(frozen=True, slots=True)
class RegisteredHandler:
    """
    One registration entry.

    Attributes:
        key: Tool/prompt name, or resource URI (static or templated).
        handler: ``(args, ask) -> value`` or, for stepwise handlers, a
            generator function yielding progress events.
        kind: Declared handler kind.
        description: Human-readable description used in listings.
        input: Field-descriptor map built with ``T``.
        mime_type: Declared MIME type for resource content.
        name: Display name for resources; defaults to the URI.
        complete: Optional synchronous ``(argument_name, partial) -> list[str]``.
        accepts_ask: Whether the handler takes the ``ask`` argument.
    """

    key: str
    handler: Callable[..., Any]
    kind: HandlerKind = HandlerKind.DIRECT
    description: str = ""
    input: Mapping[str, Any] | None = None
    mime_type: str | None = None
    name: str | None = None
    complete: Callable[..., Any] | None = None
    accepts_ask: bool = True

    def invoke(self, args: Any, ask: Any = None) -> Any:
        if self.accepts_ask:
            return self.handler(args, ask)
        return self.handler(args)


def accepts_ask(handler: Callable[..., Any]) -> bool:
    """Return True if ``handler`` can take ``(args, ask)`` positionally."""
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return True

    positional = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 2


class HandlerRegistry:
    """Insertion-ordered, copy-on-write mapping of key to ``RegisteredHandler``."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._entries: dict[str, RegisteredHandler] = {}
        self._write_lock = threading.Lock()

    def register(self, entry: RegisteredHandler) -> None:
        if not callable(entry.handler):
            raise TypeError(f'{self.kind} handler for "{entry.key}" must be callable')
        with self._write_lock:
            updated = dict(self._entries)
            updated[entry.key] = entry
            self._entries = updated

    def get(self, key: str) -> RegisteredHandler | None:
        return self._entries.get(key)

    def has(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def list(self) -> list[RegisteredHandler]:
        return list(self._entries.values())

    def items(self) -> list[tuple[str, RegisteredHandler]]:
        return list(self._entries.items())

    def snapshot(self) -> Mapping[str, RegisteredHandler]:
        return MappingProxyType(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
