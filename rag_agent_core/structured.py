"""
JSON schemas for structured model output.

Attributes describe the fields to extract from the final answer; the
resulting schema is passed to ModelClient.invoke as response_schema.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from rag_agent_core.errors import ConfigurationError


class AttributeType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"


@dataclass
class StructuredAttribute:
    """A field of the structured output."""

    name: str
    type: Union[AttributeType, str] = AttributeType.STRING
    description: str = ""
    required: bool = True
    items_type: Optional[Union[AttributeType, str]] = None
    """Element type for arrays; defaults to string."""


def _json_type(value: Union[AttributeType, str]) -> tuple[str, Optional[str]]:
    try:
        attr_type = AttributeType(value)
    except ValueError as e:
        raise ConfigurationError(f"Unknown attribute type: {value!r}") from e
    if attr_type == AttributeType.DATE:
        return "string", "YYYY-MM-DD or ISO 8601"
    return attr_type.value, None


def _property(attribute: StructuredAttribute) -> dict:
    json_type, format_hint = _json_type(attribute.type)
    prop: dict = {"type": json_type if attribute.required else [json_type, "null"]}

    description = attribute.description
    if format_hint:
        description = f"{description} ({format_hint})" if description else format_hint
    if description:
        prop["description"] = description

    if json_type == "array":
        items_type, _ = _json_type(attribute.items_type or AttributeType.STRING)
        prop["items"] = {"type": items_type}
    elif json_type == "object":
        prop["additionalProperties"] = True
    return prop


def build_response_schema(
    attributes: list[StructuredAttribute],
    name: str = "structured_output",
) -> dict:
    """
    Build a JSON schema from attributes.

    Every field is listed as required; optional ones accept null instead,
    which keeps the schema valid for strict structured-output modes.

    Raises:
        ConfigurationError: If there are no attributes, or names are empty or repeated
    """
    if not attributes:
        raise ConfigurationError("At least one structured attribute is required")

    properties = {}
    for attribute in attributes:
        if not attribute.name or not attribute.name.strip():
            raise ConfigurationError("Structured attribute name must not be empty")
        if attribute.name in properties:
            raise ConfigurationError(f"Duplicate structured attribute: {attribute.name}")
        properties[attribute.name] = _property(attribute)

    return {
        "title": name,
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }
