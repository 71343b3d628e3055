"""Unit tests for value encoding and decoding."""

import base64

import pytest

from pgadapter.storage.codec import (
    ABSENT,
    decode_binary,
    decode_record,
    default_primary_key,
    encode_record,
    encode_value,
    field_value,
)
from pgadapter.storage.schema import FieldDefinition, RecordType, ValueKind


class TestEncodeValue:
    def test_binary_becomes_hex_text(self):
        assert encode_value(b"\x00\xffab") == "\\x00ff6162"
        assert encode_value(bytearray(b"\x01")) == "\\x01"
        assert encode_value(memoryview(b"\x02")) == "\\x02"

    def test_dict_becomes_json(self):
        assert encode_value({"a": 1}) == '{"a": 1}'

    @pytest.mark.parametrize("value", ["text", 1, 2.5, True, None])
    def test_other_values_pass_through(self, value):
        assert encode_value(value) == value

    def test_decode_binary(self):
        assert decode_binary("\\x6869") == b"hi"
        assert decode_binary(memoryview(b"hi")) == b"hi"
        assert decode_binary(None) is None
        assert decode_binary("plain") == "plain"


class TestPrimaryKey:
    def test_default_primary_key_shape(self):
        key = default_primary_key("post")
        assert len(key) == 20
        assert len(base64.b64decode(key)) == 15

    def test_default_primary_keys_differ(self):
        assert len({default_primary_key() for _ in range(50)}) == 50


class TestRecords:
    def test_absent_is_not_none(self):
        assert field_value({"a": None}, "a") is None
        assert field_value({}, "a") is ABSENT
        assert not ABSENT

    def test_encode_record_fills_defaults(self, post_type):
        encoded = encode_record(post_type, {"id": "p1", "title": "Hello"})
        assert encoded["id"] == "p1"
        assert encoded["title"] == "Hello"
        assert encoded["tags"] == []
        assert encoded["scores"] == []
        assert encoded["views"] is None
        assert set(encoded) == {"id", *post_type.fields}

    def test_encode_record_does_not_mutate_input(self, post_type):
        record = {"title": "Hello", "cover": b"\x01"}
        encode_record(post_type, record)
        assert record == {"title": "Hello", "cover": b"\x01"}

    def test_encode_record_generates_key(self, post_type):
        encoded = encode_record(post_type, {"title": "a"}, lambda type_name: f"{type_name}-1")
        assert encoded["id"] == "post-1"

    def test_encode_record_leaves_key_to_store(self, post_type):
        encoded = encode_record(post_type, {"title": "a"}, None)
        assert "id" not in encoded

    def test_encode_record_keeps_explicit_none(self, post_type):
        encoded = encode_record(post_type, {"id": "p1", "tags": None})
        assert encoded["tags"] is None

    def test_encode_record_ignores_undeclared_fields(self, post_type):
        encoded = encode_record(post_type, {"id": "p1", "extra": 1})
        assert "extra" not in encoded

    def test_decode_record(self, post_type):
        row = {"id": "p1", "title": "Hello", "cover": "\\x6869", "tags": ["a"], "extra": 1}
        decoded = decode_record(post_type, row)
        assert decoded == {"id": "p1", "title": "Hello", "cover": b"hi", "tags": ["a"]}

    def test_decode_record_inverse_passthrough(self, user_type):
        decoded = decode_record(user_type, {"id": "u1", "posts": ["p1"]})
        assert decoded == {"id": "u1", "posts": ["p1"]}

    def test_binary_round_trip(self, post_type):
        encoded = encode_record(post_type, {"id": "p1", "cover": b"\x00\x10"})
        assert decode_record(post_type, encoded)["cover"] == b"\x00\x10"

    def test_decode_binary_array(self):
        record_type = RecordType("blob", {"chunks": FieldDefinition(ValueKind.BINARY, is_array=True)})
        decoded = decode_record(record_type, {"id": 1, "chunks": ["\\x01", b"\x02"]})
        assert decoded == {"id": 1, "chunks": [b"\x01", b"\x02"]}

    def test_structured_round_trip(self, post_type):
        encoded = encode_record(post_type, {"id": "p1", "meta": {"a": 1, "b": [True]}})
        assert encoded["meta"] == '{"a": 1, "b": [true]}'
        assert decode_record(post_type, encoded)["meta"] == {"a": 1, "b": [True]}

    def test_structured_from_driver_passes_through(self, post_type):
        assert decode_record(post_type, {"id": "p1", "meta": {"a": 1}})["meta"] == {"a": 1}

    def test_structured_array(self):
        record_type = RecordType("event", {"payloads": FieldDefinition(ValueKind.STRUCTURED, is_array=True)})
        encoded = encode_record(record_type, {"id": "e1", "payloads": [{"a": 1}, {"b": 2}]})
        assert encoded["payloads"] == ['{"a": 1}', '{"b": 2}']
        assert decode_record(record_type, encoded)["payloads"] == [{"a": 1}, {"b": 2}]
