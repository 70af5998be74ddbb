"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory for the ``ask`` callable handed to tools that want LLM sampling.

Sampling needs a bidirectional channel. The stateless HTTP transport has
none, so the server always passes ``ask=None``; this factory is for hosts
that can deliver ``sampling/createMessage`` requests to the client.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping

from .errors import SamplingError

DEFAULT_TIMEOUT_S = 30.0

SendRequest = Callable[[str, dict[str, Any]], Awaitable[Any]]
Ask = Callable[..., Awaitable[Any]]


def create_ask(
    send_request: SendRequest,
    client_capabilities: Mapping[str, Any],
) -> Ask | None:
    """Return an ``ask`` coroutine function, or None without client sampling."""
    if not callable(send_request):
        raise TypeError("create_ask() requires send_request to be callable")
    if not isinstance(client_capabilities, Mapping):
        raise TypeError("create_ask() requires a client_capabilities mapping")

    # An empty capability object still advertises support.
    if client_capabilities.get("sampling") in (None, False):
        return None

    async def ask(
        prompt_or_options: str | Mapping[str, Any],
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> Any:
        if isinstance(prompt_or_options, str):
            params: dict[str, Any] = {
                "messages": [
                    {
                        "role": "user",
                        "content": {"type": "text", "text": prompt_or_options},
                    }
                ]
            }
        elif isinstance(prompt_or_options, Mapping):
            params = dict(prompt_or_options)
            if not isinstance(params.get("messages"), list):
                raise ValueError("ask() options must include a messages list")
        else:
            raise TypeError("ask() requires a string prompt or options mapping")

        try:
            response = await asyncio.wait_for(
                send_request("sampling/createMessage", params),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise SamplingError(f"Sampling request timed out after {timeout_s}s") from exc
        except Exception as exc:
            raise SamplingError(f"Sampling request failed: {exc}") from exc

        if not isinstance(response, Mapping) or not response.get("content"):
            raise SamplingError("Invalid sampling response: missing content")
        return response["content"]

    return ask
