"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Security layer applied to every request and response.

Covers size ceilings, prototype-pollution key stripping, URI scheme
allow-listing, path canonicalisation with traversal detection, and secret
redaction for error messages.
"""

from __future__ import annotations

import json
import re
import traceback
import urllib.parse
from typing import Any, Callable, Iterable

from .errors import PathTraversalError, PayloadTooLargeError

DEFAULT_MAX_BODY_BYTES = 1024 * 1024
DEFAULT_MAX_STRING_CHARS = 10 * 1024 * 1024
DEFAULT_ALLOWED_SCHEMES: tuple[str, ...] = ("http", "https")
DANGEROUS_SCHEMES = frozenset({"file", "javascript", "data", "vbscript", "about"})
POLLUTION_KEYS = frozenset({"__proto__", "constructor", "prototype"})

SECURITY_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'none'",
    "X-Frame-Options": "DENY",
}

_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.-]*?):", re.IGNORECASE)
_SCHEME_PREFIX_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_GENERIC_VALUE_RE = re.compile(r"(['\"]?)[a-zA-Z0-9_\-.]{16,}(['\"]?)")


def _redact_generic(match: re.Match[str]) -> str:
    return _GENERIC_VALUE_RE.sub(r"\1[REDACTED]\2", match.group(0), count=1)


# Most specific first: the generic assignment pattern must stay last.
SECRET_PATTERNS: list[tuple[re.Pattern[str], str | Callable[[re.Match[str]], str]]] = [
    (re.compile(r"AKIA[0-9A-Z]{16}"), "[REDACTED_AWS_KEY]"),
    (
        re.compile(r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+"),
        "[REDACTED_JWT]",
    ),
    (
        re.compile(r"(?:mongodb|postgres|mysql|mariadb|mssql|oracle)://\S+", re.IGNORECASE),
        "[REDACTED_CONNECTION_STRING]",
    ),
    (re.compile(r"Bearer\s+[a-zA-Z0-9_\-.]+", re.IGNORECASE), "Bearer [REDACTED]"),
    (re.compile(r"gh[pors]_[a-zA-Z0-9]{33,40}"), "[REDACTED_GITHUB_TOKEN]"),
    (re.compile(r"xox[bpas]-[a-zA-Z0-9]+-[a-zA-Z0-9-]+"), "[REDACTED_SLACK_TOKEN]"),
    (
        re.compile(
            r"-----BEGIN (?:RSA |EC |DSA )?PRIVATE KEY-----[\s\S]*?"
            r"-----END (?:RSA |EC |DSA )?PRIVATE KEY-----"
        ),
        "[REDACTED_PRIVATE_KEY]",
    ),
    (re.compile(r"AIzaSy[0-9A-Za-z\-_]{21,}"), "[REDACTED_GCP_KEY]"),
    (re.compile(r"AccountKey=[a-zA-Z0-9+/=]{40,}"), "[REDACTED_AZURE_KEY]"),
    # Bounded whitespace keeps the pattern linear on hostile input.
    (
        re.compile(
            r"(?:(?:api[_-]?)?key|token|secret|password)\s{0,10}[=:]\s{0,10}"
            r"['\"]?[a-zA-Z0-9_\-.]{16,}['\"]?",
            re.IGNORECASE,
        ),
        _redact_generic,
    ),
]


def redact_secrets(text: str) -> str:
    """Replace known secret shapes in ``text``. Never raises."""
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_error(error: BaseException | str | None, debug: bool = False) -> str:
    """Render ``error`` for output with secrets redacted.

    Outside debug mode only the message is returned; in debug mode the
    formatted traceback is returned, also redacted.
    """
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return redact_secrets(error)

    message = str(error) or type(error).__name__
    if debug and error.__traceback__ is not None:
        rendered = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return redact_secrets(rendered)
    return redact_secrets(message)


def _body_size(body: str | bytes | Any) -> int:
    if isinstance(body, bytes):
        return len(body)
    if isinstance(body, str):
        return len(body.encode("utf-8"))
    return len(json.dumps(body, default=str).encode("utf-8"))


def validate_request_size(body: str | bytes | Any, max_size: int = DEFAULT_MAX_BODY_BYTES) -> None:
    """Reject request bodies above ``max_size`` UTF-8 bytes."""
    if not body:
        return
    size = _body_size(body)
    if size > max_size:
        raise PayloadTooLargeError("Request body", size, max_size)


def validate_response_size(body: str | bytes | Any, max_size: int = DEFAULT_MAX_BODY_BYTES) -> None:
    """Reject response bodies above ``max_size`` UTF-8 bytes."""
    if not body:
        return
    size = _body_size(body)
    if size > max_size:
        raise PayloadTooLargeError("Response body", size, max_size)


def validate_string_input(value: Any, max_length: int = DEFAULT_MAX_STRING_CHARS) -> None:
    if not isinstance(value, str):
        return
    if len(value) > max_length:
        raise PayloadTooLargeError("String input", len(value), max_length, unit="chars")


def sanitize_input(obj: Any) -> Any:
    """Return a fresh copy of ``obj`` without prototype-pollution keys.

    Mappings and sequences are rebuilt at every depth; other values pass
    through unchanged. The input is never mutated.
    """
    if isinstance(obj, dict):
        return {
            key: sanitize_input(value)
            for key, value in obj.items()
            if key not in POLLUTION_KEYS
        }
    if isinstance(obj, (list, tuple)):
        return [sanitize_input(item) for item in obj]
    return obj


def uri_scheme(uri: str) -> str | None:
    if not uri or not isinstance(uri, str):
        return None
    match = _SCHEME_RE.match(uri)
    return match.group(1).lower() if match else None


def validate_uri_scheme(uri: str, allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True iff the scheme of ``uri`` is allowed and not dangerous."""
    scheme = uri_scheme(uri)
    if scheme is None:
        return False
    if scheme in DANGEROUS_SCHEMES:
        return False
    return any(str(allowed).lower() == scheme for allowed in allowed_schemes)


def _decode_repeatedly(value: str, rounds: int = 3) -> str:
    decoded = value
    for _ in range(rounds):
        try:
            next_decoded = urllib.parse.unquote(decoded, errors="strict")
        except UnicodeDecodeError:
            break
        if next_decoded == decoded:
            break
        decoded = next_decoded
    return decoded


def canonicalize_path(uri: str) -> str:
    """Decode, screen for traversal, and normalise separators in ``uri``.

    Raises:
        PathTraversalError: on traversal sequences or null bytes.
    """
    if not uri or not isinstance(uri, str):
        raise PathTraversalError("Invalid URI: must be a non-empty string")

    decoded = _decode_repeatedly(uri)

    if "%00" in decoded or "\0" in decoded:
        raise PathTraversalError(
            "Path traversal detected: null byte injection is not allowed"
        )

    lowered = decoded.lower()
    if any(seq in lowered for seq in ("\\u002e\\u002e\\u002f", "\\u002e\\u002e/", "..\\u002f")):
        raise PathTraversalError(
            "Path traversal detected: Unicode-encoded ../ sequences are not allowed"
        )

    if "../" in decoded or "..\\" in decoded:
        raise PathTraversalError("Path traversal detected: ../ sequences are not allowed")

    if any(seq in lowered for seq in ("%2e%2e%2f", "%2e%2e/", "..%2f", "%2e.", ".%2e")):
        raise PathTraversalError(
            "Path traversal detected: encoded ../ sequences are not allowed"
        )

    normalized = decoded.replace("\\", "/")
    prefix_match = _SCHEME_PREFIX_RE.match(normalized)
    prefix = prefix_match.group(0) if prefix_match else ""
    rest = re.sub(r"/+", "/", normalized[len(prefix) :])
    return prefix + rest
