# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Record store adapter backed by PostgreSQL."""

from pgadapter.configuration import AdapterConfig, load_adapter_config
from pgadapter.storage import FieldDefinition, RecordType, ValueKind
from pgadapter.storage.backends.relational import FoundRecords, PostgresAdapter, PostgresTransactionAdapter
from pgadapter.utils.exceptions import AdapterException, ConflictError, ErrorCode, SchemaError, StoreError

__version__ = "0.1.0"

__all__ = [
    "AdapterConfig",
    "AdapterException",
    "ConflictError",
    "ErrorCode",
    "FieldDefinition",
    "FoundRecords",
    "PostgresAdapter",
    "PostgresTransactionAdapter",
    "RecordType",
    "SchemaError",
    "StoreError",
    "ValueKind",
    "load_adapter_config",
]
