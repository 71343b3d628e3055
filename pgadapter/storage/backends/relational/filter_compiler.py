# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""SQL filter compiler for parameterized queries.

This module compiles filter specifications (plain dicts keyed by operator) into
PostgreSQL WHERE fragments. Values never appear in the SQL text: each one is
appended to a ``ParameterList`` and referenced by a ``$N`` placeholder.

A statement owns exactly one ``ParameterList``. Every fragment of the
statement (primary key window, filters, SET clauses) and every recursive call
for ``and``/``or``/``not`` goes through that same object, so placeholder
numbers are unique and strictly increasing across the whole statement.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pgadapter.storage.codec import encode_value, is_binary
from pgadapter.storage.schema import RecordType, quote_identifier
from pgadapter.utils.exceptions import ErrorCode, SchemaError

FILTER_KEYS = ("match", "range", "exists", "contains", "and", "or", "not")


class ParameterList:
    """Bound values of one statement and its placeholder counter.

    Example:
        >>> params = ParameterList()
        >>> params.bind("a"), params.bind(3, "::int")
        ('$1', '$2::int')
        >>> params.values
        ['a', 3]
    """

    def __init__(self) -> None:
        self.values: List[Any] = []

    def __len__(self) -> int:
        return len(self.values)

    @property
    def index(self) -> int:
        """Number of the last placeholder handed out."""
        return len(self.values)

    def bind(self, value: Any, cast: str = "") -> str:
        """Append an already storage-ready value and return its placeholder."""
        self.values.append(value)
        return f"${len(self.values)}{cast}"

    def bind_value(self, value: Any) -> str:
        return self.bind(encode_value(value))

    def bind_element(self, value: Any) -> str:
        """Bind an array element, casting it so ``array[...]`` gets a usable type."""
        return self.bind(encode_value(value), element_cast(value))


def element_cast(value: Any) -> str:
    if is_binary(value):
        return "::bytea"
    if isinstance(value, bool):
        return ""
    if isinstance(value, int) or (isinstance(value, float) and value.is_integer()):
        return "::int"
    return ""


def array_length(column: str) -> str:
    return f"coalesce(array_length({column}, 1), 0)"


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class SQLFilterCompiler:
    """Compiles filter specifications to parameterized WHERE fragments.

    Example:
        >>> compiler = SQLFilterCompiler()
        >>> params = ParameterList()
        >>> compiler.compile(post_type, {"or": [{"match": {"title": "a"}}, {"exists": {"tags": True}}]}, params)
        '("title" = $1 or coalesce(array_length("tags", 1), 0) > 0)'
        >>> params.values
        ['a']
    """

    def __init__(self) -> None:
        self._operators: Dict[str, Callable[[RecordType, Any, ParameterList], List[str]]] = {
            "match": self._compile_match,
            "range": self._compile_range,
            "exists": self._compile_exists,
            "contains": self._compile_contains,
            "and": self._compile_and,
            "or": self._compile_or,
            "not": self._compile_not,
        }

    def compile(
        self,
        record_type: RecordType,
        spec: Optional[Mapping[str, Any]],
        params: ParameterList,
    ) -> Optional[str]:
        """Compile a filter specification.

        Args:
            record_type: Schema every referenced field must belong to
            spec: Filter specification, or None
            params: Parameter list of the statement being built

        Returns:
            The fragments joined with ``and``, or None if the spec yields no predicate
        """
        fragments = self.compile_fragments(record_type, spec, params)
        if not fragments:
            return None
        return " and ".join(fragments)

    def compile_fragments(
        self,
        record_type: RecordType,
        spec: Optional[Mapping[str, Any]],
        params: ParameterList,
    ) -> List[str]:
        fragments: List[str] = []
        if not spec:
            return fragments

        for key, value in spec.items():
            operator = self._operators.get(key)
            if operator is None:
                raise SchemaError(
                    ErrorCode.SCHEMA_INVALID_OPTION,
                    message_args={"option": key, "reason": f"expected one of {', '.join(FILTER_KEYS)}"},
                )
            if value is None:
                continue
            fragments.extend(operator(record_type, value, params))

        return fragments

    def _compile_group(self, record_type: RecordType, spec: Mapping[str, Any], params: ParameterList) -> Optional[str]:
        fragments = self.compile_fragments(record_type, spec, params)
        if not fragments:
            return None
        if len(fragments) == 1:
            return fragments[0]
        return "(" + " and ".join(fragments) + ")"

    def _compile_match(self, record_type: RecordType, match: Mapping[str, Any], params: ParameterList) -> List[str]:
        fragments = []
        for field, value in match.items():
            column = quote_identifier(field)

            if not record_type.is_array(field):
                if is_sequence(value):
                    if not value:
                        fragments.append("false")
                        continue
                    placeholders = ", ".join(params.bind_value(v) for v in value)
                    fragments.append(f"{column} in ({placeholders})")
                else:
                    fragments.append(f"{column} = {params.bind_value(value)}")
                continue

            # Array containment.
            values = list(value) if is_sequence(value) else [value]
            if not values:
                fragments.append("true")
                continue
            elements = ", ".join(params.bind_element(v) for v in values)
            fragments.append(f"{column} @> array[{elements}]")
        return fragments

    def _compile_range(self, record_type: RecordType, ranges: Mapping[str, Any], params: ParameterList) -> List[str]:
        fragments = []
        for field, bounds in ranges.items():
            if not is_sequence(bounds) or len(bounds) != 2:
                raise SchemaError(
                    ErrorCode.SCHEMA_INVALID_OPTION,
                    message_args={"option": f"range.{field}", "reason": "expected a [lower, upper] pair"},
                )
            column = quote_identifier(field)
            if record_type.is_array(field):
                column = array_length(column)

            lower, upper = bounds
            if lower is not None:
                fragments.append(f"{column} >= {params.bind_value(lower)}")
            if upper is not None:
                fragments.append(f"{column} <= {params.bind_value(upper)}")
        return fragments

    def _compile_exists(self, record_type: RecordType, exists: Mapping[str, Any], params: ParameterList) -> List[str]:
        fragments = []
        for field, present in exists.items():
            column = quote_identifier(field)
            if record_type.is_array(field):
                fragments.append(f"{array_length(column)} {'> 0' if present else '= 0'}")
            else:
                fragments.append(f"{column} {'is not null' if present else 'is null'}")
        return fragments

    def _compile_contains(
        self, record_type: RecordType, contains: Mapping[str, Any], params: ParameterList
    ) -> List[str]:
        fragments = []
        for field, value in contains.items():
            is_array = record_type.is_array(field)
            column = quote_identifier(field)
            # The value is wrapped as is; % and _ inside it keep their pattern meaning.
            placeholder = params.bind(f"%{value}%")
            if is_array:
                fragments.append(f"exists (select 1 from unnest({column}) as x where x::text ilike {placeholder})")
            else:
                fragments.append(f"{column} ilike {placeholder}")
        return fragments

    def _compile_children(
        self, record_type: RecordType, children: Sequence[Mapping[str, Any]], params: ParameterList
    ) -> List[str]:
        if isinstance(children, Mapping):
            children = [children]
        parts = []
        for child in children:
            part = self._compile_group(record_type, child, params)
            if part is not None:
                parts.append(part)
        return parts

    def _compile_and(
        self, record_type: RecordType, children: Sequence[Mapping[str, Any]], params: ParameterList
    ) -> List[str]:
        parts = self._compile_children(record_type, children, params)
        if not parts:
            return []
        return ["(" + " and ".join(parts) + ")"]

    def _compile_or(
        self, record_type: RecordType, children: Sequence[Mapping[str, Any]], params: ParameterList
    ) -> List[str]:
        parts = self._compile_children(record_type, children, params)
        if not parts:
            return []
        return ["(" + " or ".join(parts) + ")"]

    def _compile_not(self, record_type: RecordType, child: Mapping[str, Any], params: ParameterList) -> List[str]:
        inner = self._compile_group(record_type, child, params)
        if inner is None:
            return []
        return [f"not ({inner})"]


# Module-level singleton for convenience
_default_compiler = SQLFilterCompiler()


def compile_filter(
    record_type: RecordType, spec: Optional[Mapping[str, Any]], params: Optional[ParameterList] = None
) -> Tuple[Optional[str], List[Any]]:
    """Compile ``spec`` into ``(where_fragment, values)`` with a fresh or given parameter list."""
    params = params if params is not None else ParameterList()
    return _default_compiler.compile(record_type, spec, params), params.values
