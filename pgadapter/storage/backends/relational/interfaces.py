# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Interfaces and data structures for the relational store adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)


@dataclass(frozen=True)
class StatementResult:
    """Outcome of one executed statement.

    Attributes:
        rows: Returned rows as column-value dicts (empty when nothing is returned)
        rowcount: Rows affected as reported by the store
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0


class FoundRecords(list):
    """Records returned by ``find``; ``count`` is the total matching the filter."""

    def __init__(self, records: Iterable[Dict[str, Any]] = (), count: int = 0):
        super().__init__(records)
        self.count = count

    def __repr__(self) -> str:
        return f"FoundRecords({list.__repr__(self)}, count={self.count})"


class StatementExecutor(Protocol):
    """Runs ``$N``-parameterized SQL against the store."""

    async def execute(
        self,
        statement: str,
        params: Sequence[Any] = (),
        operation: str = "statement",
    ) -> StatementResult:
        """Execute one statement.

        Args:
            statement: SQL text with ``$N`` placeholders
            params: Values bound positionally to the placeholders
            operation: Short label used in logs and error messages

        Returns:
            StatementResult with returned rows and the affected row count

        Raises:
            StoreError: If the store rejected the statement
        """
        ...


class TransactionContext(StatementExecutor, Protocol):
    """Statement executor bound to one connection inside a transaction."""

    async def commit(self) -> None:
        """Commit the transaction and release the connection."""
        ...

    async def rollback(self) -> None:
        """Roll back the transaction and release the connection."""
        ...


class StoreAdapter(Protocol):
    """Capabilities a host framework needs from a store adapter."""

    async def connect(self) -> None:
        """Open the store and make sure every record type has a table."""
        ...

    async def disconnect(self) -> None:
        """Release every connection held by the adapter."""
        ...

    async def find(
        self,
        type_name: str,
        ids: Optional[Sequence[Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> FoundRecords:
        """Find records of a type.

        Args:
            type_name: Record type to read
            ids: Restrict to these primary keys; an empty sequence finds nothing
            options: ``fields``, filter keys, ``sort``, ``limit`` and ``offset``

        Returns:
            FoundRecords carrying the total count of the filtered set
        """
        ...

    async def create(self, type_name: str, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Insert records and return them with their primary keys."""
        ...

    async def update(self, type_name: str, updates: Sequence[Mapping[str, Any]]) -> int:
        """Apply sparse updates and return the number of rows changed."""
        ...

    async def delete(self, type_name: str, ids: Optional[Sequence[Any]] = None) -> int:
        """Delete records (all of the type when ``ids`` is None) and return the count."""
        ...

    async def begin_transaction(self) -> "StoreAdapter":
        """Return an adapter whose statements run in one transaction."""
        ...
