# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""SQLAlchemy connection helper for the PostgreSQL adapter.

Statements are built with ``$N`` placeholders and run through
``exec_driver_sql`` so SQLAlchemy does not re-parse them. Before execution the
placeholders are rewritten into the paramstyle of the installed driver.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction, create_async_engine

from pgadapter.storage.backends.relational.interfaces import StatementResult
from pgadapter.utils.exceptions import AdapterException, ErrorCode, StoreError
from pgadapter.utils.loggings import get_logger

logger = get_logger(__name__)

UNIQUE_VIOLATION = "23505"
UNDEFINED_COLUMN = "42703"
DEFAULT_DRIVERNAME = "postgresql+psycopg"

_PLACEHOLDER_RE = re.compile(r"\$(\d+)")
_DRIVER_MARKERS = {
    "format": "%s",
    "pyformat": "%s",
    "qmark": "?",
}


def render_driver_sql(
    statement: str, params: Sequence[Any], paramstyle: str
) -> Tuple[str, Optional[Tuple[Any, ...]]]:
    """Rewrite ``$N`` placeholders for a DB-API paramstyle.

    Values are reordered to follow the placeholders as they appear in the text,
    so a placeholder may be used more than once.

    Returns:
        Tuple of (driver_sql, driver_params); driver_params is None without parameters
    """
    if not params:
        return statement, None

    if paramstyle in ("numeric_dollar", "numeric"):
        if paramstyle == "numeric":
            statement = _PLACEHOLDER_RE.sub(r":\1", statement)
        return statement, tuple(params)

    marker = _DRIVER_MARKERS.get(paramstyle)
    if marker is None:
        raise AdapterException(
            ErrorCode.COMMON_CONFIG_ERROR,
            message_args={"config_error": f"unsupported driver paramstyle '{paramstyle}'"},
        )

    ordered: List[Any] = []

    def _replace(match: "re.Match[str]") -> str:
        ordered.append(params[int(match.group(1)) - 1])
        return marker

    if marker == "%s":
        statement = statement.replace("%", "%%")
    return _PLACEHOLDER_RE.sub(_replace, statement), tuple(ordered)


def extract_sqlstate(exc: BaseException) -> Optional[str]:
    """Return the SQLSTATE of a driver error, looking through SQLAlchemy wrappers."""
    candidates = [exc, getattr(exc, "orig", None)]
    orig = candidates[-1]
    if orig is not None:
        candidates.append(orig.__cause__)
    for candidate in candidates:
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


async def run_statement(
    conn: AsyncConnection, statement: str, params: Sequence[Any], paramstyle: str
) -> StatementResult:
    driver_sql, driver_params = render_driver_sql(statement, params, paramstyle)
    logger.debug(f"Executing: {statement} ({len(params)} params)")
    result = await conn.exec_driver_sql(driver_sql, driver_params)
    rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
    rowcount = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(rows)
    return StatementResult(rows=rows, rowcount=int(rowcount))


class SQLAlchemyTransaction:
    """One connection held for the lifetime of a transaction.

    Statements issued concurrently on the transaction are serialized, since a
    single connection can only run one statement at a time.
    """

    def __init__(self, connector: "SQLAlchemyConnector"):
        self._connector = connector
        self._conn: Optional[AsyncConnection] = None
        self._txn: Optional[AsyncTransaction] = None
        self._lock = asyncio.Lock()
        self._finished = False

    @property
    def is_active(self) -> bool:
        return self._txn is not None and not self._finished

    async def start(self) -> "SQLAlchemyTransaction":
        try:
            self._conn = await self._connector.engine.connect()
            self._txn = await self._conn.begin()
        except Exception as exc:
            await self._close()
            raise self._connector.handle_exception(exc, operation="transaction begin") from exc
        return self

    async def execute(
        self, statement: str, params: Sequence[Any] = (), operation: str = "statement"
    ) -> StatementResult:
        if not self.is_active:
            raise StoreError(ErrorCode.DB_TRANSACTION_CLOSED)
        async with self._lock:
            try:
                return await run_statement(self._conn, statement, params, self._connector.paramstyle)
            except Exception as exc:
                raise self._connector.handle_exception(exc, sql=statement, operation=operation) from exc

    async def commit(self) -> None:
        if not self.is_active:
            raise StoreError(ErrorCode.DB_TRANSACTION_CLOSED)
        try:
            await self._txn.commit()
        except Exception as exc:
            raise self._connector.handle_exception(exc, operation="transaction commit") from exc
        finally:
            self._finished = True
            await self._close()

    async def rollback(self) -> None:
        if not self.is_active:
            raise StoreError(ErrorCode.DB_TRANSACTION_CLOSED)
        try:
            await self._txn.rollback()
        except Exception as exc:
            raise self._connector.handle_exception(exc, operation="transaction rollback") from exc
        finally:
            self._finished = True
            await self._close()

    async def _close(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            except Exception:
                logger.warning("Failed to close SQLAlchemy connection")
            finally:
                self._conn = None
                self._txn = None


class SQLAlchemyConnector:
    """Async SQLAlchemy connector with standardized error handling."""

    def __init__(self, connection_string: str, engine_options: Optional[Dict[str, Any]] = None):
        self.connection_string = connection_string
        self._engine_options = engine_options or {}
        self._engine: Optional[AsyncEngine] = None
        self._dialect_name = ""
        self._driver_name = ""
        self._create_engine()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._create_engine()
        return self._engine  # type: ignore[return-value]

    @property
    def dialect_name(self) -> str:
        return self._dialect_name

    @property
    def paramstyle(self) -> str:
        return self.engine.dialect.paramstyle

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.debug(f"SQLAlchemy engine disposed for {self._dialect_name}")

    async def execute(
        self, statement: str, params: Sequence[Any] = (), operation: str = "statement"
    ) -> StatementResult:
        """Run one statement on a pooled connection in its own transaction."""
        try:
            async with self.engine.begin() as conn:
                return await run_statement(conn, statement, params, self.paramstyle)
        except Exception as exc:
            raise self.handle_exception(exc, sql=statement, operation=operation) from exc

    async def transaction(self) -> SQLAlchemyTransaction:
        return await SQLAlchemyTransaction(self).start()

    def handle_exception(
        self, exc: Exception, sql: str = "", operation: str = "database operation"
    ) -> AdapterException:
        """Map SQLAlchemy and driver exceptions to adapter exceptions."""
        if isinstance(exc, AdapterException):
            return exc

        error_message = self._extract_error_message(exc)
        error_msg_lower = error_message.lower()
        sqlstate = extract_sqlstate(exc)
        message_args = {"error_message": error_message, "sql": sql, "operation": operation}

        if sqlstate == UNDEFINED_COLUMN:
            return StoreError(ErrorCode.DB_UNDEFINED_COLUMN, message_args=message_args, sqlstate=sqlstate)

        if isinstance(exc, IntegrityError):
            return StoreError(ErrorCode.DB_EXECUTION_ERROR, message_args=message_args, sqlstate=sqlstate)

        if isinstance(exc, (OperationalError, InterfaceError)) and sqlstate is None:
            if "connect" in error_msg_lower or "timeout" in error_msg_lower or "timed out" in error_msg_lower:
                return StoreError(ErrorCode.DB_CONNECTION_FAILED, message_args=message_args)

        if isinstance(exc, (DBAPIError, SQLAlchemyError)) or sqlstate is not None:
            return StoreError(ErrorCode.DB_EXECUTION_ERROR, message_args=message_args, sqlstate=sqlstate)

        return StoreError(ErrorCode.DB_FAILED, message_args=message_args)

    def _create_engine(self) -> None:
        url = make_url(self.connection_string)
        if url.drivername == "postgresql":
            url = url.set(drivername=DEFAULT_DRIVERNAME)
        self._dialect_name = url.get_backend_name()
        self._driver_name = url.get_driver_name()
        options = dict(self._engine_options)
        options.setdefault("pool_pre_ping", True)

        # Keep notices such as "relation already exists, skipping" out of the logs.
        connect_args = dict(options.get("connect_args", {}))
        if self._driver_name == "asyncpg":
            server_settings = dict(connect_args.get("server_settings", {}))
            server_settings.setdefault("client_min_messages", "error")
            connect_args["server_settings"] = server_settings
        elif self._driver_name.startswith("psycopg"):
            connect_args.setdefault("options", "-c client_min_messages=error")
        options["connect_args"] = connect_args

        self._engine = create_async_engine(url, **options)
        logger.debug(f"SQLAlchemy engine created for {self._dialect_name}+{self._driver_name}")

    @staticmethod
    def _extract_error_message(exc: Exception) -> str:
        if hasattr(exc, "detail") and exc.detail:
            detail = exc.detail
            if isinstance(detail, list):
                return "\n".join(detail)
            return str(detail)
        if hasattr(exc, "orig") and exc.orig is not None:
            return str(exc.orig)
        return str(exc)
