"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Builder for prompt messages.

Usage::

    conversation(lambda user, ai: [
        user.say("What's in this image?"),
        user.attach(image_b64, "image/png"),
        ai.say("A customer schema."),
    ])
"""

from __future__ import annotations

from typing import Any, Callable, Literal

Role = Literal["user", "assistant"]


class RoleHelper:
    """Creates MCP prompt messages for one role."""

    def __init__(self, role: Role) -> None:
        self.role = role

    def say(self, text: str) -> dict[str, Any]:
        if not isinstance(text, str):
            raise TypeError(f"{self.role}.say() requires a string argument")
        return {"role": self.role, "content": {"type": "text", "text": text}}

    def attach(self, data: str, mime_type: str) -> dict[str, Any]:
        """Attach base64-encoded image data."""
        if not isinstance(data, str):
            raise TypeError(f"{self.role}.attach() requires base64 data as first argument")
        if not mime_type or not isinstance(mime_type, str):
            raise ValueError(
                f'{self.role}.attach() requires mime_type as second argument (e.g., "image/png")'
            )
        return {
            "role": self.role,
            "content": {"type": "image", "data": data, "mimeType": mime_type},
        }

    def embed(self, uri: str) -> dict[str, Any]:
        """Embed a resource reference; resolution is left to the client."""
        if not isinstance(uri, str):
            raise TypeError(f"{self.role}.embed() requires a URI string")
        return {
            "role": self.role,
            "content": {"type": "resource", "resource": {"uri": uri, "text": "[embedded]"}},
        }


def conversation(builder: Callable[[RoleHelper, RoleHelper], list[dict[str, Any]]]) -> dict[str, Any]:
    """Run ``builder(user, ai)`` and wrap its messages as a prompt result."""
    if not callable(builder):
        raise TypeError("conversation() requires a builder function")

    messages = builder(RoleHelper("user"), RoleHelper("assistant"))
    if not isinstance(messages, list):
        raise TypeError("Builder function must return a list of messages")
    return {"messages": messages}
