# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""PostgreSQL store adapter.

``PostgresAdapter`` sequences statement building, execution and error
translation for each CRUD verb. ``PostgresTransactionAdapter`` runs the same
logic on a single connection inside one transaction.

Updates are issued one statement per record and are not atomic as a group
outside a transaction: every statement of a batch runs to completion, the
ones that succeeded stay applied, and the first failure (in input order) is
raised afterwards.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pgadapter.configuration.adapter_config import AdapterConfig, load_adapter_config
from pgadapter.storage.backends.relational.filter_compiler import SQLFilterCompiler
from pgadapter.storage.backends.relational.interfaces import (
    FoundRecords,
    StatementExecutor,
    StatementResult,
    TransactionContext,
)
from pgadapter.storage.backends.relational.mutation_builder import (
    MutationStatement,
    assign_returned_keys,
    build_delete,
    build_insert,
    build_update,
)
from pgadapter.storage.backends.relational.query_builder import build_find
from pgadapter.storage.backends.relational.sqlalchemy_connector import (
    UNDEFINED_COLUMN,
    UNIQUE_VIOLATION,
    SQLAlchemyConnector,
)
from pgadapter.storage.codec import decode_record, default_primary_key, encode_record
from pgadapter.storage.schema import (
    STORE_ASSIGNED_PRIMARY_KEYS,
    RecordType,
    ValueKind,
    quote_identifier,
    storage_type,
)
from pgadapter.utils.exceptions import AdapterException, ConflictError, ErrorCode, SchemaError, StoreError
from pgadapter.utils.loggings import get_logger

logger = get_logger(__name__)

RecordTypes = Union[Mapping[str, RecordType], Iterable[RecordType]]


def build_schema_statements(
    record_type: RecordType, key_kind: ValueKind = ValueKind.TEXT, store_assigned_keys: bool = False
) -> List[str]:
    """DDL that creates the table if needed and adds any missing column.

    Existing columns are never altered or dropped.
    """
    table = quote_identifier(record_type.name)
    if store_assigned_keys:
        key_type = STORE_ASSIGNED_PRIMARY_KEYS[key_kind]
    else:
        key_type = storage_type(key_kind)

    columns = [f"{quote_identifier(record_type.primary_key)} {key_type} primary key"]
    columns.extend(
        f"{quote_identifier(name)} {definition.column_type(key_kind)}"
        for name, definition in record_type.fields.items()
    )

    statements = [f"create table if not exists {table} ({', '.join(columns)})"]
    statements.extend(
        f"alter table {table} add column if not exists {quote_identifier(name)} {definition.column_type(key_kind)}"
        for name, definition in record_type.fields.items()
    )
    return statements


class PostgresAdapter:
    """Store adapter translating find/create/update/delete into PostgreSQL statements.

    Example:
        >>> adapter = PostgresAdapter([post_type], AdapterConfig(url="postgresql+psycopg://localhost/app"))
        >>> await adapter.connect()
        >>> await adapter.create("post", [{"title": "Hello", "tags": ["a"]}])
        >>> found = await adapter.find("post", options={"match": {"tags": "a"}, "limit": 10})
        >>> found.count
        1
    """

    def __init__(
        self,
        record_types: RecordTypes,
        config: Optional[AdapterConfig] = None,
        connector: Optional[Any] = None,
        compiler: Optional[SQLFilterCompiler] = None,
    ):
        """Initialize the adapter.

        Args:
            record_types: Record types by name, or an iterable of record types
            config: Adapter options; defaults apply when None
            connector: Pre-built connector (an object with ``execute``, ``transaction``
                and ``dispose``); created from ``config.url`` on connect when None
            compiler: Filter compiler shared by every statement
        """
        if isinstance(record_types, Mapping):
            self.record_types: Dict[str, RecordType] = dict(record_types)
        else:
            self.record_types = {record_type.name: record_type for record_type in record_types}
        self.config = config or AdapterConfig()
        self.compiler = compiler or SQLFilterCompiler()
        self._connector = connector
        self._executor: Optional[StatementExecutor] = None

    @classmethod
    def from_config_file(
        cls, record_types: RecordTypes, config_path: Optional[Union[str, Path]] = None, **overrides: Any
    ) -> "PostgresAdapter":
        return cls(record_types, load_adapter_config(config_path, overrides=overrides or None))

    @property
    def connector(self) -> Any:
        return self._connector

    @property
    def executor(self) -> StatementExecutor:
        if self._executor is None:
            raise StoreError(ErrorCode.DB_NOT_CONNECTED)
        return self._executor

    def get_record_type(self, type_name: str) -> RecordType:
        record_type = self.record_types.get(type_name)
        if record_type is None:
            raise SchemaError(ErrorCode.SCHEMA_UNKNOWN_TYPE, message_args={"type_name": type_name})
        return record_type

    # ==========================================================================
    # CONNECTION
    # ==========================================================================

    async def connect(self) -> None:
        key_kind = self.config.key_kind
        if key_kind is ValueKind.NUMBER and self.config.generate_primary_key is default_primary_key:
            raise SchemaError(
                ErrorCode.SCHEMA_INVALID_OPTION,
                message_args={
                    "option": "generate_primary_key",
                    "reason": "number keys need a numeric generator, or None for store-assigned keys",
                },
            )

        if self._connector is None:
            if not self.config.url:
                raise SchemaError(
                    ErrorCode.SCHEMA_INVALID_OPTION,
                    message_args={"option": "url", "reason": "a connection URL is required"},
                )
            self._connector = SQLAlchemyConnector(self.config.url, engine_options=self.config.engine_options)

        self._executor = self._connector
        if self.config.ensure_schema:
            await self.ensure_schema(key_kind)
        logger.info(f"PostgresAdapter connected ({len(self.record_types)} record types)")

    async def ensure_schema(self, key_kind: Optional[ValueKind] = None) -> None:
        """Create every missing table and column."""
        key_kind = key_kind or self.config.key_kind
        store_assigned = self.config.generate_primary_key is None

        async def _ensure(record_type: RecordType) -> None:
            for statement in build_schema_statements(record_type, key_kind, store_assigned):
                await self.executor.execute(statement, operation="create table")
            logger.debug(f"Table {record_type.name} created/verified")

        await asyncio.gather(*(_ensure(record_type) for record_type in self.record_types.values()))

    async def disconnect(self) -> None:
        self._executor = None
        if self._connector is not None:
            await self._connector.dispose()
        logger.info("PostgresAdapter disconnected")

    async def begin_transaction(self) -> "PostgresTransactionAdapter":
        """Return an adapter bound to one connection inside a new transaction."""
        if self._executor is None:
            raise StoreError(ErrorCode.DB_NOT_CONNECTED)
        transaction = await self._connector.transaction()
        return PostgresTransactionAdapter(self, transaction)

    # ==========================================================================
    # CRUD
    # ==========================================================================

    async def find(
        self,
        type_name: str,
        ids: Optional[Sequence[Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> FoundRecords:
        record_type = self.get_record_type(type_name)
        if ids is not None and not ids:
            return FoundRecords([], count=0)

        statements = build_find(record_type, ids, options, self.compiler)
        rows, total = await asyncio.gather(
            self.executor.execute(statements.select_sql, statements.params, operation="select"),
            self.executor.execute(statements.count_sql, statements.params, operation="count"),
        )
        return FoundRecords((decode_record(record_type, row) for row in rows.rows), count=self._read_count(total))

    async def create(self, type_name: str, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        record_type = self.get_record_type(type_name)
        if not records:
            return []

        encoded = [encode_record(record_type, record, self.config.generate_primary_key) for record in records]
        statement = build_insert(record_type, encoded)

        try:
            result = await self.executor.execute(statement.sql, statement.params, operation="insert")
        except StoreError as exc:
            if exc.sqlstate == UNIQUE_VIOLATION:
                raise ConflictError(message_args={"error_message": exc.message_args.get("error_message", "")}) from exc
            raise

        if statement.returns_keys:
            encoded = assign_returned_keys(record_type, encoded, result.rows)
        return [decode_record(record_type, record) for record in encoded]

    async def update(self, type_name: str, updates: Sequence[Mapping[str, Any]]) -> int:
        record_type = self.get_record_type(type_name)
        if not updates:
            return 0

        # Build everything first so an invalid update fails before anything is written.
        statements = [build_update(record_type, update) for update in updates]
        results = await asyncio.gather(
            *(self._run_update(statement) for statement in statements), return_exceptions=True
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return sum(results)

    async def delete(self, type_name: str, ids: Optional[Sequence[Any]] = None) -> int:
        record_type = self.get_record_type(type_name)
        statement = build_delete(record_type, ids)
        if statement is None:
            return 0
        result = await self.executor.execute(statement.sql, statement.params, operation="delete")
        return result.rowcount

    async def _run_update(self, statement: Optional[MutationStatement]) -> int:
        if statement is None:
            return 0
        try:
            result = await self.executor.execute(statement.sql, statement.params, operation="update")
        except StoreError as exc:
            if exc.sqlstate == UNDEFINED_COLUMN or exc.code == ErrorCode.DB_UNDEFINED_COLUMN:
                logger.warning(f"Update skipped, unknown column: {exc.message_args.get('error_message', '')}")
                return 0
            raise
        return result.rowcount

    @staticmethod
    def _read_count(result: StatementResult) -> int:
        if not result.rows:
            return 0
        return int(next(iter(result.rows[0].values())))


class PostgresTransactionAdapter(PostgresAdapter):
    """Adapter whose statements all run in one transaction.

    Use ``end_transaction()`` to finish it, or ``async with``:

        >>> async with await adapter.begin_transaction() as txn:
        ...     await txn.create("post", [{"title": "a"}])
    """

    def __init__(self, parent: PostgresAdapter, transaction: TransactionContext):
        super().__init__(parent.record_types, parent.config, connector=parent.connector, compiler=parent.compiler)
        self._transaction = transaction
        self._executor = transaction

    @property
    def transaction(self) -> TransactionContext:
        return self._transaction

    async def connect(self) -> None:
        raise AdapterException(ErrorCode.DB_FAILED, message="A transaction adapter is already connected")

    async def disconnect(self) -> None:
        """Roll back if still open; the parent adapter keeps the engine."""
        if self._executor is not None:
            await self.end_transaction(rollback=True)

    async def begin_transaction(self) -> "PostgresTransactionAdapter":
        raise AdapterException(ErrorCode.DB_FAILED, message="Nested transactions are not supported")

    async def end_transaction(self, error: Optional[BaseException] = None, rollback: bool = False) -> None:
        """Commit, or roll back when ``error`` is given or ``rollback`` is set."""
        if self._executor is None:
            raise StoreError(ErrorCode.DB_TRANSACTION_CLOSED)
        self._executor = None
        if error is not None or rollback:
            await self._transaction.rollback()
            logger.debug("Transaction rolled back")
        else:
            await self._transaction.commit()
            logger.debug("Transaction committed")

    async def __aenter__(self) -> "PostgresTransactionAdapter":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._executor is None:
            return
        if exc_type is not None:
            try:
                await self.end_transaction(error=exc_val)
            except Exception as rollback_exc:
                logger.warning(f"Failed to rollback transaction: {rollback_exc}")
        else:
            await self.end_transaction()
