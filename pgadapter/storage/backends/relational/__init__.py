# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""PostgreSQL backend of the record adapter."""

from .filter_compiler import ParameterList, SQLFilterCompiler, compile_filter
from .interfaces import FoundRecords, StatementExecutor, StatementResult, StoreAdapter, TransactionContext
from .mutation_builder import (
    InsertStatement,
    MutationStatement,
    assign_returned_keys,
    build_delete,
    build_insert,
    build_update,
)
from .postgres_backend import PostgresAdapter, PostgresTransactionAdapter, build_schema_statements
from .query_builder import FindStatements, build_columns, build_find, build_order, build_slice
from .sqlalchemy_connector import SQLAlchemyConnector, SQLAlchemyTransaction

__all__ = [
    # Interfaces
    "FoundRecords",
    "StatementExecutor",
    "StatementResult",
    "StoreAdapter",
    "TransactionContext",
    # Filter compiler
    "ParameterList",
    "SQLFilterCompiler",
    "compile_filter",
    # Statement builders
    "FindStatements",
    "InsertStatement",
    "MutationStatement",
    "assign_returned_keys",
    "build_columns",
    "build_delete",
    "build_find",
    "build_insert",
    "build_order",
    "build_schema_statements",
    "build_slice",
    "build_update",
    # Execution
    "PostgresAdapter",
    "PostgresTransactionAdapter",
    "SQLAlchemyConnector",
    "SQLAlchemyTransaction",
]
