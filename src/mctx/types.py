"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Schema builder for tool and prompt inputs.

``T`` produces JSON Schema field descriptors; ``build_input_schema`` turns a
map of descriptors into the object schema advertised by ``tools/list``.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeAlias

JSONSchema: TypeAlias = dict[str, Any]

# Marks a field as required; stripped from every built schema.
REQUIRED_MARKER = "_required"


def _apply(schema: JSONSchema, **options: Any) -> JSONSchema:
    for key, value in options.items():
        if value is not None:
            schema[key] = value
    return schema


def _mark_required(schema: JSONSchema, required: bool) -> JSONSchema:
    if required is True:
        schema[REQUIRED_MARKER] = True
    return schema


class T:
    """Factory for JSON Schema field descriptors."""

    @staticmethod
    def string(
        *,
        required: bool = False,
        description: str | None = None,
        enum: list[Any] | None = None,
        default: Any = None,
        min_length: int | None = None,
        max_length: int | None = None,
        pattern: str | None = None,
        format: str | None = None,
    ) -> JSONSchema:
        schema = _apply(
            {"type": "string"},
            description=description,
            enum=enum,
            default=default,
            minLength=min_length,
            maxLength=max_length,
            pattern=pattern,
            format=format,
        )
        return _mark_required(schema, required)

    @staticmethod
    def number(
        *,
        required: bool = False,
        description: str | None = None,
        enum: list[Any] | None = None,
        default: Any = None,
        min: float | None = None,
        max: float | None = None,
    ) -> JSONSchema:
        schema = _apply(
            {"type": "number"},
            description=description,
            enum=enum,
            default=default,
            minimum=min,
            maximum=max,
        )
        return _mark_required(schema, required)

    @staticmethod
    def boolean(
        *,
        required: bool = False,
        description: str | None = None,
        default: bool | None = None,
    ) -> JSONSchema:
        schema = _apply({"type": "boolean"}, description=description, default=default)
        return _mark_required(schema, required)

    @staticmethod
    def array(
        *,
        required: bool = False,
        description: str | None = None,
        items: JSONSchema | None = None,
        default: list[Any] | None = None,
    ) -> JSONSchema:
        schema = _apply({"type": "array"}, description=description, default=default)
        if items is not None:
            schema["items"] = clean_metadata(items)
        return _mark_required(schema, required)

    @staticmethod
    def object(
        *,
        required: bool = False,
        description: str | None = None,
        properties: Mapping[str, JSONSchema] | None = None,
        additional_properties: bool | JSONSchema | None = None,
        default: dict[str, Any] | None = None,
    ) -> JSONSchema:
        schema = _apply({"type": "object"}, description=description, default=default)
        if properties is not None:
            props, required_fields = build_properties(properties)
            schema["properties"] = props
            if required_fields:
                schema["required"] = required_fields
        if additional_properties is not None:
            if isinstance(additional_properties, bool):
                schema["additionalProperties"] = additional_properties
            else:
                schema["additionalProperties"] = clean_metadata(additional_properties)
        return _mark_required(schema, required)


def build_properties(
    properties: Mapping[str, JSONSchema] | None,
) -> tuple[dict[str, JSONSchema], list[str]]:
    """Clean a property map and collect the names marked as required."""
    if not isinstance(properties, Mapping):
        return {}, []

    cleaned: dict[str, JSONSchema] = {}
    required: list[str] = []
    for key, schema in properties.items():
        if not isinstance(schema, Mapping):
            continue
        if schema.get(REQUIRED_MARKER) is True:
            required.append(key)
        cleaned[key] = clean_metadata(schema)
    return cleaned, required


def clean_metadata(schema: Any) -> Any:
    """Return a copy of ``schema`` without builder metadata, recursively."""
    if not isinstance(schema, Mapping):
        return schema

    cleaned = {k: v for k, v in schema.items() if k != REQUIRED_MARKER}

    if isinstance(cleaned.get("properties"), Mapping):
        props, required = build_properties(cleaned["properties"])
        cleaned["properties"] = props
        if required:
            cleaned["required"] = required

    if isinstance(cleaned.get("items"), Mapping):
        cleaned["items"] = clean_metadata(cleaned["items"])

    if isinstance(cleaned.get("additionalProperties"), Mapping):
        cleaned["additionalProperties"] = clean_metadata(cleaned["additionalProperties"])

    return cleaned


def build_input_schema(input: Mapping[str, JSONSchema] | None) -> JSONSchema:
    """Build the MCP ``inputSchema`` object for a field-descriptor map."""
    if not input:
        return {"type": "object", "properties": {}}

    properties, required = build_properties(input)
    schema: JSONSchema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema
