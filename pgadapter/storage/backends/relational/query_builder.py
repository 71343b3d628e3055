# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""SELECT and paired COUNT statements for ``find``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from pgadapter.storage.backends.relational.filter_compiler import (
    FILTER_KEYS,
    ParameterList,
    SQLFilterCompiler,
    array_length,
)
from pgadapter.storage.schema import RecordType, quote_identifier
from pgadapter.utils.exceptions import ErrorCode, SchemaError

ASCENDING = {True, 1, "asc", "ASC"}
DESCENDING = {False, -1, "desc", "DESC"}


@dataclass(frozen=True)
class FindStatements:
    """Data and count statements sharing one parameter list.

    Attributes:
        select_sql: Statement returning the requested page of rows
        count_sql: Statement counting every row the filter matches
        params: Values for the placeholders of both statements
    """

    select_sql: str
    count_sql: str
    params: List[Any]


def build_columns(record_type: RecordType, fields: Optional[Mapping[str, Any]]) -> str:
    """Projection list; the primary key is always selected."""
    if not fields:
        return "*"

    for name in fields:
        record_type.get_field(name)

    primary_key = record_type.primary_key
    if all(fields.values()):
        columns = [name for name in fields if name != primary_key]
    else:
        columns = [name for name in record_type.fields if name not in fields]

    return ", ".join(quote_identifier(column) for column in [primary_key, *columns])


def build_order(record_type: RecordType, sort: Optional[Mapping[str, Any]]) -> str:
    if not sort:
        return ""

    order = []
    for name, direction in sort.items():
        column = quote_identifier(name)
        if record_type.is_array(name):
            column = array_length(column)
        hashable = isinstance(direction, (bool, int, str))
        if hashable and direction in ASCENDING:
            order.append(f"{column} asc")
        elif hashable and direction in DESCENDING:
            order.append(f"{column} desc")
        else:
            raise SchemaError(
                ErrorCode.SCHEMA_INVALID_OPTION,
                message_args={"option": f"sort.{name}", "reason": f"unknown direction {direction!r}"},
            )
    return "order by " + ", ".join(order)


def _page_value(options: Mapping[str, Any], key: str) -> Optional[int]:
    value = options.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SchemaError(
            ErrorCode.SCHEMA_INVALID_OPTION,
            message_args={"option": key, "reason": "expected a non-negative integer"},
        )
    return value


def build_slice(options: Mapping[str, Any]) -> str:
    """``limit``/``offset`` clause; zero values are left out."""
    parts = []
    limit = _page_value(options, "limit")
    offset = _page_value(options, "offset")
    if limit:
        parts.append(f"limit {limit}")
    if offset:
        parts.append(f"offset {offset}")
    return " ".join(parts)


def build_find(
    record_type: RecordType,
    ids: Optional[Sequence[Any]] = None,
    options: Optional[Mapping[str, Any]] = None,
    compiler: Optional[SQLFilterCompiler] = None,
) -> FindStatements:
    """Build the statements for one ``find`` call.

    Args:
        record_type: Schema of the table to read
        ids: Primary keys to restrict to; callers handle the empty case
        options: Find options (``fields``, filter keys, ``sort``, ``limit``, ``offset``)
        compiler: Filter compiler to use

    Returns:
        FindStatements with the select, the count and their shared parameters
    """
    options = options or {}
    compiler = compiler or SQLFilterCompiler()
    params = ParameterList()
    table = quote_identifier(record_type.name)

    where: List[str] = []
    if ids is not None:
        placeholders = ", ".join(params.bind_value(key) for key in ids)
        where.append(f"{quote_identifier(record_type.primary_key)} in ({placeholders})")

    spec = {key: options[key] for key in FILTER_KEYS if key in options}
    where.extend(compiler.compile_fragments(record_type, spec, params))

    where_clause = f" where {' and '.join(where)}" if where else ""
    columns = build_columns(record_type, options.get("fields"))
    order = build_order(record_type, options.get("sort"))
    page = build_slice(options)

    select_sql = f"select {columns} from {table}{where_clause}"
    if order:
        select_sql += f" {order}"
    if page:
        select_sql += f" {page}"

    count_sql = f"select count(*) from {table}{where_clause}"
    return FindStatements(select_sql=select_sql, count_sql=count_sql, params=params.values)
