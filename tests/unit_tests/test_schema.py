"""Unit tests for record type metadata."""

import pytest

from pgadapter.storage.schema import (
    FieldDefinition,
    RecordType,
    ValueKind,
    primary_key_kind,
    quote_identifier,
    storage_type,
    validate_identifier,
)
from pgadapter.utils.exceptions import ErrorCode, SchemaError


class TestIdentifiers:
    @pytest.mark.parametrize("name", ["post", "_hidden", "Post2", "a" * 63])
    def test_valid_identifiers(self, name):
        assert validate_identifier(name) == name
        assert quote_identifier(name) == f'"{name}"'

    @pytest.mark.parametrize("name", ["", "2post", 'po"st', "drop table;", "a-b", "a" * 64, None])
    def test_invalid_identifiers(self, name):
        with pytest.raises(SchemaError) as exc_info:
            validate_identifier(name)
        assert exc_info.value.code == ErrorCode.SCHEMA_INVALID_IDENTIFIER


class TestStorageTypes:
    def test_value_kinds_map_to_column_types(self):
        assert storage_type(ValueKind.TEXT) == "text"
        assert storage_type(ValueKind.NUMBER) == "double precision"
        assert storage_type(ValueKind.BOOLEAN) == "boolean"
        assert storage_type(ValueKind.TIMESTAMP) == "timestamp"
        assert storage_type(ValueKind.STRUCTURED) == "jsonb"
        assert storage_type(ValueKind.BINARY) == "bytea"

    def test_scalar_follows_primary_key_kind(self):
        assert storage_type(ValueKind.SCALAR, ValueKind.TEXT) == "text"
        assert storage_type(ValueKind.SCALAR, ValueKind.NUMBER) == "double precision"

    def test_array_column_type(self):
        assert FieldDefinition(ValueKind.TEXT, is_array=True).column_type() == "text[]"
        assert FieldDefinition(linked_type="user", is_array=True).column_type(ValueKind.NUMBER) == "double precision[]"

    def test_primary_key_kind(self):
        assert primary_key_kind("text") is ValueKind.TEXT
        assert primary_key_kind(ValueKind.NUMBER) is ValueKind.NUMBER

    @pytest.mark.parametrize("value", ["boolean", "binary", "uuid"])
    def test_primary_key_kind_rejects_other_kinds(self, value):
        with pytest.raises(SchemaError) as exc_info:
            primary_key_kind(value)
        assert exc_info.value.code == ErrorCode.SCHEMA_INVALID_PRIMARY_KEY


class TestRecordType:
    def test_fields_are_copied(self):
        fields = {"title": FieldDefinition(ValueKind.TEXT)}
        record_type = RecordType("post", fields)
        fields["body"] = FieldDefinition(ValueKind.TEXT)
        assert list(record_type) == ["title"]

    def test_primary_key_resolves_as_scalar(self, post_type):
        definition = post_type.get_field("id")
        assert definition.value_kind is ValueKind.SCALAR
        assert not definition.is_array
        assert post_type.has_field("id")

    def test_unknown_field(self, post_type):
        assert not post_type.has_field("missing")
        with pytest.raises(SchemaError) as exc_info:
            post_type.get_field("missing")
        assert exc_info.value.code == ErrorCode.SCHEMA_UNKNOWN_FIELD
        assert "missing" in exc_info.value.message

    def test_sorted_fields(self, post_type):
        assert post_type.sorted_fields() == tuple(sorted(post_type.fields))

    def test_primary_key_declared_as_field(self):
        with pytest.raises(SchemaError):
            RecordType("post", {"id": FieldDefinition(ValueKind.TEXT)})

    def test_invalid_names_rejected(self):
        with pytest.raises(SchemaError):
            RecordType("bad name")
        with pytest.raises(SchemaError):
            RecordType("post", {"bad;field": FieldDefinition()})
