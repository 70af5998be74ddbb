"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

URI template matching for resource registration (RFC 6570 level 1).

A registered URI is a template iff it contains at least one ``{name}``
placeholder. Placeholders match one or more non-``/`` characters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .errors import InvalidTemplateError

_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")
_VAR_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, slots=True)
class URIMatch:
    """Successful match of a request URI against a registered URI."""

    params: dict[str, str] = field(default_factory=dict)


def is_template(uri: str) -> bool:
    if not uri or not isinstance(uri, str):
        return False
    return _PLACEHOLDER_RE.search(uri) is not None


def extract_template_vars(uri: str) -> list[str]:
    """Return placeholder names in declaration order.

    Raises:
        InvalidTemplateError: if a placeholder name is not ``[A-Za-z0-9_]+``.
    """
    if not uri or not isinstance(uri, str):
        return []

    names: list[str] = []
    for match in _PLACEHOLDER_RE.finditer(uri):
        name = match.group(1)
        if not _VAR_NAME_RE.match(name):
            raise InvalidTemplateError(
                f'Invalid template variable name: "{name}". '
                "Must contain only alphanumeric characters and underscores."
            )
        names.append(name)
    return names


def _compile_template(uri: str) -> re.Pattern[str]:
    parts: list[str] = []
    last = 0
    for match in _PLACEHOLDER_RE.finditer(uri):
        parts.append(re.escape(uri[last : match.start()]))
        parts.append("([^/]+)")
        last = match.end()
    parts.append(re.escape(uri[last:]))
    return re.compile("".join(parts))


def match_uri(registered_uri: str, request_uri: str) -> URIMatch | None:
    """Match ``request_uri`` against a static or templated registered URI."""
    if not registered_uri or not isinstance(registered_uri, str):
        return None
    if not request_uri or not isinstance(request_uri, str):
        return None

    if not is_template(registered_uri):
        return URIMatch() if registered_uri == request_uri else None

    names = extract_template_vars(registered_uri)
    found = _compile_template(registered_uri).fullmatch(request_uri)
    if found is None:
        return None
    return URIMatch(params=dict(zip(names, found.groups())))


def template_specificity(uri: str) -> tuple[int, int]:
    """Sort key ranking templates from most to least specific.

    Use with ``sorted(..., key=template_specificity, reverse=True)``: longer
    literal prefix first, then more literal characters overall, then
    registration order (the sort is stable).
    """
    first = _PLACEHOLDER_RE.search(uri)
    prefix_len = first.start() if first else len(uri)
    literal_len = len(_PLACEHOLDER_RE.sub("", uri))
    return prefix_len, literal_len
