# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Conversion between application records and the values bound to statements.

PostgreSQL accepts ``bytea`` input as text in the hex format (``\\x`` followed
by two hex digits per byte), so binary values are bound in that form and turned
back into ``bytes`` when they come out of the store as text.
"""

from __future__ import annotations

import base64
import json
import secrets
from typing import Any, Callable, Dict, Mapping, Optional

from pgadapter.storage.schema import FieldDefinition, RecordType, ValueKind

BINARY_PREFIX = "\\x"
PRIMARY_KEY_BYTES = 15

PrimaryKeyGenerator = Callable[[str], Any]


class _Absent:
    """Marks a field that the input record does not carry at all."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


def field_value(record: Mapping[str, Any], name: str) -> Any:
    """Return the value of ``name`` or ``ABSENT``; ``None`` is a present value."""
    return record.get(name, ABSENT)


def default_primary_key(type_name: Optional[str] = None) -> str:
    """Random key: 15 bytes, base64-encoded into 20 characters."""
    return base64.b64encode(secrets.token_bytes(PRIMARY_KEY_BYTES)).decode("ascii")


def is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def encode_value(value: Any) -> Any:
    if is_binary(value):
        return BINARY_PREFIX + bytes(value).hex()
    if isinstance(value, dict):
        return json.dumps(value)
    return value


def decode_binary(value: Any) -> Any:
    if value is None or isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str) and value.startswith(BINARY_PREFIX):
        return bytes.fromhex(value[len(BINARY_PREFIX) :])
    return value


def decode_structured(value: Any) -> Any:
    """Parse JSON text back into a dict; values the driver already decoded pass through."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def decode_value(kind: ValueKind, value: Any) -> Any:
    if kind is ValueKind.BINARY:
        return decode_binary(value)
    if kind is ValueKind.STRUCTURED:
        return decode_structured(value)
    return value


def _encode_field(definition: FieldDefinition, value: Any) -> Any:
    if definition.is_array and value is not None:
        return [encode_value(item) for item in value]
    return encode_value(value)


def _decode_field(definition: FieldDefinition, value: Any) -> Any:
    if definition.is_array and value is not None:
        return [decode_value(definition.value_kind, item) for item in value]
    return decode_value(definition.value_kind, value)


def encode_record(
    record_type: RecordType,
    record: Mapping[str, Any],
    generate_primary_key: Optional[PrimaryKeyGenerator] = default_primary_key,
) -> Dict[str, Any]:
    """Return the storage form of ``record``.

    Args:
        record_type: Schema of the record
        record: Application record, left untouched
        generate_primary_key: Called with the type name when the record has no
            primary key; ``None`` leaves the key to the store

    Returns:
        A new dict holding the primary key (when known) and every declared field
    """
    encoded: Dict[str, Any] = {}
    primary_key = record_type.primary_key

    key = field_value(record, primary_key)
    if key is ABSENT and generate_primary_key is not None:
        key = generate_primary_key(record_type.name)
    if key is not ABSENT:
        encoded[primary_key] = key

    for name, definition in record_type.fields.items():
        value = field_value(record, name)
        if value is ABSENT:
            encoded[name] = [] if definition.is_array else None
            continue
        encoded[name] = _encode_field(definition, value)

    return encoded


def decode_record(record_type: RecordType, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Shape a store row into an application record.

    Only declared fields are copied. Denormalized inverse fields are copied
    as they are, and the primary key is always present.
    """
    decoded: Dict[str, Any] = {}

    for name, definition in record_type.fields.items():
        value = field_value(row, name)
        if value is ABSENT:
            continue
        if definition.is_denormalized_inverse:
            decoded[name] = value
            continue
        decoded[name] = _decode_field(definition, value)

    decoded[record_type.primary_key] = row.get(record_type.primary_key)
    return decoded
