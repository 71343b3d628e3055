# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Field metadata for record types.

Record types are supplied once at connect time and never change afterwards.
Table and column names are the only values ever interpolated into generated
SQL, so every name is validated here before a ``RecordType`` can exist.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from pgadapter.utils.exceptions import ErrorCode, SchemaError

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1 bytes.
MAX_IDENTIFIER_LENGTH = 63
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ValueKind(str, Enum):
    SCALAR = "scalar"
    BINARY = "binary"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    STRUCTURED = "structured"


STORAGE_TYPES: Dict[ValueKind, str] = {
    ValueKind.TEXT: "text",
    ValueKind.NUMBER: "double precision",
    ValueKind.BOOLEAN: "boolean",
    ValueKind.TIMESTAMP: "timestamp",
    ValueKind.STRUCTURED: "jsonb",
    ValueKind.BINARY: "bytea",
}

PRIMARY_KEY_KINDS: Tuple[ValueKind, ...] = (ValueKind.TEXT, ValueKind.NUMBER)

# Column definitions used when keys are assigned by the store instead of a generator.
STORE_ASSIGNED_PRIMARY_KEYS: Dict[ValueKind, str] = {
    ValueKind.TEXT: "text default gen_random_uuid()::text",
    ValueKind.NUMBER: "bigint generated by default as identity",
}


def validate_identifier(name: str) -> str:
    """Return ``name`` unchanged if it is safe to interpolate as a quoted identifier."""
    if not isinstance(name, str) or len(name) > MAX_IDENTIFIER_LENGTH or not _IDENTIFIER_RE.match(name):
        raise SchemaError(ErrorCode.SCHEMA_INVALID_IDENTIFIER, message_args={"identifier": name})
    return name


def quote_identifier(name: str) -> str:
    return f'"{validate_identifier(name)}"'


def primary_key_kind(value: Union[ValueKind, str]) -> ValueKind:
    """Coerce and check the configured primary key kind."""
    allowed = ", ".join(kind.value for kind in PRIMARY_KEY_KINDS)
    try:
        kind = ValueKind(value)
    except ValueError:
        kind = None
    if kind not in PRIMARY_KEY_KINDS:
        raise SchemaError(
            ErrorCode.SCHEMA_INVALID_PRIMARY_KEY,
            message_args={"allowed": allowed, "primary_key_type": getattr(value, "value", value)},
        )
    return kind


def storage_type(kind: ValueKind, key_kind: ValueKind = ValueKind.TEXT) -> str:
    """Map a value kind to its column type; untyped links use the primary key's type."""
    if kind is ValueKind.SCALAR:
        return STORAGE_TYPES[key_kind]
    return STORAGE_TYPES[kind]


@dataclass(frozen=True)
class FieldDefinition:
    """Metadata of one field.

    Attributes:
        value_kind: Kind of the stored value
        is_array: Whether the field holds an ordered sequence
        linked_type: Record type this field links to, if any
        is_denormalized_inverse: Whether the field mirrors a link from another type
    """

    value_kind: ValueKind = ValueKind.SCALAR
    is_array: bool = False
    linked_type: Optional[str] = None
    is_denormalized_inverse: bool = False

    def column_type(self, key_kind: ValueKind = ValueKind.TEXT) -> str:
        suffix = "[]" if self.is_array else ""
        return f"{storage_type(self.value_kind, key_kind)}{suffix}"


_PRIMARY_KEY_FIELD = FieldDefinition(ValueKind.SCALAR)


@dataclass(frozen=True)
class RecordType:
    """Named schema of one table.

    The primary key is kept apart from ``fields``; ``get_field`` still resolves
    it so filters, sorting and projections can reference it.
    """

    name: str
    fields: Mapping[str, FieldDefinition] = field(default_factory=dict)
    primary_key: str = "id"

    def __post_init__(self) -> None:
        validate_identifier(self.name)
        validate_identifier(self.primary_key)
        for field_name in self.fields:
            validate_identifier(field_name)
        if self.primary_key in self.fields:
            raise SchemaError(
                ErrorCode.SCHEMA_INVALID_OPTION,
                message_args={
                    "option": self.primary_key,
                    "reason": f"the primary key must not be declared as a field of '{self.name}'",
                },
            )
        # Freeze a private copy so later mutation of the caller's dict has no effect.
        object.__setattr__(self, "fields", dict(self.fields))

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def has_field(self, name: str) -> bool:
        return name == self.primary_key or name in self.fields

    def get_field(self, name: str) -> FieldDefinition:
        if name == self.primary_key:
            return _PRIMARY_KEY_FIELD
        definition = self.fields.get(name)
        if definition is None:
            raise SchemaError(
                ErrorCode.SCHEMA_UNKNOWN_FIELD,
                message_args={"field": name, "type_name": self.name},
            )
        return definition

    def is_array(self, name: str) -> bool:
        return self.get_field(name).is_array

    def sorted_fields(self) -> Tuple[str, ...]:
        """Field names in a stable order, used to align multi-row inserts."""
        return tuple(sorted(self.fields))
