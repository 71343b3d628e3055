# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .exceptions import AdapterException, ConflictError, ErrorCode, SchemaError, StoreError
from .loggings import configure_logging, get_logger

__all__ = [
    "AdapterException",
    "ConflictError",
    "ErrorCode",
    "SchemaError",
    "StoreError",
    "configure_logging",
    "get_logger",
]
