# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Coded exceptions raised by the adapter.

Every exception carries an ``ErrorCode`` so callers can branch on ``exc.code``
instead of parsing messages. The three subclasses mirror how failures are
handled:

- ``SchemaError``: the request or the configuration references something the
  record types do not declare. Fatal, never retried.
- ``ConflictError``: an insert violated a uniqueness constraint. Expected to be
  handled by the caller, e.g. by retrying with a fresh key.
- ``StoreError``: anything else the store reported. ``sqlstate`` holds the
  store's error code when one was available.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    COMMON_CONFIG_ERROR = ("100001", "Configuration error: {config_error}")

    SCHEMA_UNKNOWN_FIELD = ("200001", "Field '{field}' is not declared on record type '{type_name}'")
    SCHEMA_UNKNOWN_TYPE = ("200002", "Record type '{type_name}' is not declared")
    SCHEMA_INVALID_IDENTIFIER = ("200003", "Invalid identifier '{identifier}'")
    SCHEMA_INVALID_PRIMARY_KEY = ("200004", "The primary key type must be one of {allowed}, got '{primary_key_type}'")
    SCHEMA_INVALID_OPTION = ("200005", "Invalid option '{option}': {reason}")

    DB_FAILED = ("300001", "Database operation failed: {error_message}")
    DB_CONNECTION_FAILED = ("300002", "Database connection failed: {error_message}")
    DB_NOT_CONNECTED = ("300003", "The adapter is not connected. Call connect() first")
    DB_EXECUTION_ERROR = ("300004", "Failed to execute {operation}: {error_message}")
    DB_CONSTRAINT_VIOLATION = ("300005", "Unique constraint violated: {error_message}")
    DB_UNDEFINED_COLUMN = ("300006", "Undefined column: {error_message}")
    DB_TRANSACTION_CLOSED = ("300007", "The transaction has already ended")

    def __init__(self, code: str, desc: str):
        self.code = code
        self.desc = desc


class AdapterException(Exception):
    """Base exception carrying an ``ErrorCode``."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        message_args: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message_args = message_args or {}
        self.message = message or self._format(code, self.message_args)
        super().__init__(self.message)

    @staticmethod
    def _format(code: ErrorCode, message_args: Dict[str, Any]) -> str:
        try:
            return code.desc.format(**message_args)
        except (KeyError, IndexError):
            return code.desc

    def __str__(self) -> str:
        return f"error_code={self.code.code}, error_message={self.message}"


class SchemaError(AdapterException):
    """A filter, update or option referenced something the schema does not allow."""


class ConflictError(AdapterException):
    """An insert violated a unique constraint."""

    def __init__(
        self,
        message: Optional[str] = None,
        message_args: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(ErrorCode.DB_CONSTRAINT_VIOLATION, message=message, message_args=message_args)


class StoreError(AdapterException):
    """Any other failure reported by the store."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.DB_EXECUTION_ERROR,
        message: Optional[str] = None,
        message_args: Optional[Dict[str, Any]] = None,
        sqlstate: Optional[str] = None,
    ):
        super().__init__(code, message=message, message_args=message_args)
        self.sqlstate = sqlstate
