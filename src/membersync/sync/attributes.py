"""Member attribute schema.

Each tenant declares its member attributes once; the declared type decides
the field prefix an attribute's values get in the index document. The
schema is loaded per sync run and treated as immutable for that run.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from membersync.core.errors import SchemaError


class AttributeType(str, Enum):
    """Declared member attribute types."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    EMAIL = "email"
    STRING = "string"
    URL = "url"
    DATE = "date"
    MULTI_SELECT = "multiSelect"
    SPECIAL = "special"


@dataclass(frozen=True, slots=True)
class AttributeDefinition:
    """A single declared attribute: its name and type.

    ``type`` is normally an AttributeType. Definitions built by hand may
    carry anything; the flattener rejects values outside the enum.
    """

    name: str
    type: AttributeType


def parse_attribute_type(name: str, raw_type: Any) -> AttributeType:
    """Resolve a stored type tag to an AttributeType or raise SchemaError."""
    if isinstance(raw_type, AttributeType):
        return raw_type
    try:
        return AttributeType(raw_type)
    except ValueError:
        pass
    # Tolerate enum member names ("MULTI_SELECT") alongside stored values ("multiSelect")
    if isinstance(raw_type, str) and raw_type.upper() in AttributeType.__members__:
        return AttributeType[raw_type.upper()]
    raise SchemaError.unknown_attribute_type(name, raw_type)


def parse_schema(rows: Iterable[Mapping[str, Any]]) -> list[AttributeDefinition]:
    """Build a validated schema from raw ``{"name", "type"}`` rows.

    Raises:
        SchemaError: A row is malformed or declares an unknown type.
    """
    schema: list[AttributeDefinition] = []
    for row in rows:
        name = row.get("name")
        if not isinstance(name, str) or not name:
            raise SchemaError.invalid_definition(row, "attribute name must be a non-empty string")
        schema.append(AttributeDefinition(name=name, type=parse_attribute_type(name, row.get("type"))))
    return schema


def normalize_schema(schema: Iterable[AttributeDefinition]) -> list[AttributeDefinition]:
    """Resolve every definition to an AttributeType, rejecting unknown types."""
    return [
        definition
        if isinstance(definition.type, AttributeType)
        else AttributeDefinition(definition.name, parse_attribute_type(definition.name, definition.type))
        for definition in schema
    ]
