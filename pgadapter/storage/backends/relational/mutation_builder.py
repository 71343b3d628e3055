# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""INSERT, UPDATE and DELETE statements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pgadapter.storage.backends.relational.filter_compiler import ParameterList, is_sequence
from pgadapter.storage.codec import encode_value
from pgadapter.storage.schema import RecordType, quote_identifier, validate_identifier
from pgadapter.utils.exceptions import ErrorCode, SchemaError


@dataclass(frozen=True)
class InsertStatement:
    """Multi-row insert.

    Attributes:
        sql: Statement text
        params: Values of every row, row after row, in column order
        returns_keys: Whether the store assigns the keys and returns them in row order
    """

    sql: str
    params: List[Any]
    returns_keys: bool = False


@dataclass(frozen=True)
class MutationStatement:
    sql: str
    params: List[Any]


def build_insert(record_type: RecordType, records: Sequence[Mapping[str, Any]]) -> InsertStatement:
    """Build one insert for already encoded records.

    Columns are the primary key followed by the fields in sorted order, so every
    VALUES tuple lines up. The key column is only sent when every record has a
    key; otherwise it is left to the store and returned.
    """
    if not records:
        raise ValueError("build_insert requires at least one record")

    primary_key = record_type.primary_key
    fields = list(record_type.sorted_fields())
    literal_keys = all(record.get(primary_key) is not None for record in records)
    columns = [primary_key, *fields] if literal_keys else fields

    params = ParameterList()
    rows = []
    for record in records:
        placeholders = ", ".join(params.bind(record.get(column)) for column in columns)
        rows.append(f"({placeholders})")

    column_list = ", ".join(quote_identifier(column) for column in columns)
    sql = f"insert into {quote_identifier(record_type.name)} ({column_list}) values {', '.join(rows)}"
    if not literal_keys:
        sql += f" returning {quote_identifier(primary_key)}"

    return InsertStatement(sql=sql, params=params.values, returns_keys=not literal_keys)


def _bind_list_or_value(params: ParameterList, value: Any) -> str:
    if is_sequence(value):
        return params.bind([encode_value(item) for item in value])
    return params.bind_value(value)


def build_update(record_type: RecordType, update: Mapping[str, Any]) -> Optional[MutationStatement]:
    """Build the statement for one update specification.

    ``replace`` sets a column, ``push`` appends to an array (concatenating
    when the value is a list) and ``pull`` removes matching elements. A field
    named by several operations gets a single assignment that nests them in
    that order. Field names are not checked against the schema here: the
    store reports unknown columns and the caller decides what that means.

    Returns:
        MutationStatement, or None when the update changes nothing
    """
    primary_key = record_type.primary_key
    if update.get(primary_key) is None:
        raise SchemaError(
            ErrorCode.SCHEMA_INVALID_OPTION,
            message_args={"option": primary_key, "reason": "every update needs the primary key of its record"},
        )

    params = ParameterList()
    # One expression per column: replace is the base, push wraps it, pull wraps that.
    expressions: Dict[str, str] = {}

    def current(field: str) -> str:
        return expressions.get(field, quote_identifier(field))

    for field, value in (update.get("replace") or {}).items():
        if field == primary_key:
            raise SchemaError(
                ErrorCode.SCHEMA_INVALID_OPTION,
                message_args={"option": f"replace.{field}", "reason": "the primary key cannot be changed"},
            )
        validate_identifier(field)
        expressions[field] = _bind_list_or_value(params, value)

    for field, value in (update.get("push") or {}).items():
        if is_sequence(value):
            expressions[field] = f"array_cat({current(field)}, {_bind_list_or_value(params, value)})"
        else:
            expressions[field] = f"array_append({current(field)}, {params.bind_value(value)})"

    for field, value in (update.get("pull") or {}).items():
        if is_sequence(value):
            if not value:
                continue
            placeholders = ", ".join(params.bind_value(item) for item in value)
            expressions[field] = f"array(select x from unnest({current(field)}) as x where x not in ({placeholders}))"
        else:
            expressions[field] = f"array_remove({current(field)}, {params.bind_value(value)})"

    if not expressions:
        return None

    assignments = [f"{quote_identifier(field)} = {expression}" for field, expression in expressions.items()]

    key = params.bind(update[primary_key])
    sql = (
        f"update {quote_identifier(record_type.name)} set {', '.join(assignments)} "
        f"where {quote_identifier(primary_key)} = {key}"
    )
    return MutationStatement(sql=sql, params=params.values)


def build_delete(record_type: RecordType, ids: Optional[Sequence[Any]] = None) -> Optional[MutationStatement]:
    """Delete by primary key, or every row when ``ids`` is None.

    Returns:
        MutationStatement, or None for an empty ``ids`` list
    """
    table = quote_identifier(record_type.name)
    if ids is None:
        return MutationStatement(sql=f"delete from {table}", params=[])
    if not ids:
        return None

    params = ParameterList()
    placeholders = ", ".join(params.bind_value(key) for key in ids)
    sql = f"delete from {table} where {quote_identifier(record_type.primary_key)} in ({placeholders})"
    return MutationStatement(sql=sql, params=params.values)


def assign_returned_keys(
    record_type: RecordType, records: Sequence[Dict[str, Any]], rows: Sequence[Mapping[str, Any]]
) -> List[Dict[str, Any]]:
    """Write store-assigned keys into the records, matching rows by position."""
    if len(rows) != len(records):
        raise ValueError(f"expected {len(records)} returned keys, got {len(rows)}")
    primary_key = record_type.primary_key
    return [{**record, primary_key: row[primary_key]} for record, row in zip(records, rows)]
