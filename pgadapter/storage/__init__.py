# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .codec import ABSENT, decode_record, decode_value, default_primary_key, encode_record, encode_value
from .schema import FieldDefinition, RecordType, ValueKind

__all__ = [
    "ABSENT",
    "FieldDefinition",
    "RecordType",
    "ValueKind",
    "decode_record",
    "decode_value",
    "default_primary_key",
    "encode_record",
    "encode_value",
]
