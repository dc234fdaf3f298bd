"""
Unit Tests: Record Format and Payload Codecs

Tests:
    - Header layout and compression flag
    - Corrupt record detection
    - Expiry boundaries
    - Pickle and JSON payload codecs
"""

import pickle
import struct

import pytest

from kvsession.codec.payload import JSONCodec, PayloadCodec, PickleCodec
from kvsession.codec.record import (
    SessionRecord,
    decode_record,
    decode_values,
    encode_record,
)
from kvsession.core import constants as C
from kvsession.core.errors import ErrorCode

HEADER_SIZE = 25


class TestSessionRecord:
    """Tests for the record envelope."""

    def test_plain_layout(self):
        data = SessionRecord(b"payload", 1000, 60).to_bytes()
        assert data[:3] == C.RECORD_MAGIC
        assert data[3] == C.RECORD_VERSION
        assert data[4] == 0
        assert len(data) == HEADER_SIZE + len(b"payload")
        assert data[HEADER_SIZE:] == b"payload"

    def test_decode_plain(self):
        record = decode_record(SessionRecord(b"payload", 1000, 60).to_bytes()).unwrap()
        assert record == SessionRecord(b"payload", 1000, 60)

    def test_compressed_above_threshold(self):
        payload = b"a" * 4096
        data = SessionRecord(payload, 1000, 60).to_bytes(compression_threshold=1024)
        assert data[4] & C.RECORD_FLAG_LZ4
        assert len(data) < HEADER_SIZE + len(payload)
        assert decode_record(data).unwrap().payload == payload

    def test_not_compressed_below_threshold(self):
        data = SessionRecord(b"small", 1000, 60).to_bytes(compression_threshold=1024)
        assert data[4] == 0

    def test_threshold_zero_disables_compression(self):
        data = SessionRecord(b"a" * 4096, 1000, 60).to_bytes(compression_threshold=0)
        assert data[4] == 0

    def test_negative_created_at_survives(self):
        record = decode_record(SessionRecord(b"", -5, 10).to_bytes()).unwrap()
        assert record.created_at == -5
        assert record.payload == b""


class TestCorruptRecords:
    """Every malformed envelope is a CODEC_CORRUPT_RECORD error."""

    @pytest.fixture
    def good(self):
        return SessionRecord(b"payload", 1000, 60).to_bytes()

    def assert_corrupt(self, data):
        result = decode_record(data)
        assert result.is_err()
        assert result.error.code == ErrorCode.CODEC_CORRUPT_RECORD

    def test_empty(self):
        self.assert_corrupt(b"")

    def test_short_header(self, good):
        self.assert_corrupt(good[:HEADER_SIZE - 1])

    def test_bad_magic(self, good):
        self.assert_corrupt(b"XYZ" + good[3:])

    def test_bad_version(self, good):
        self.assert_corrupt(good[:3] + bytes([99]) + good[4:])

    def test_unknown_flag(self, good):
        self.assert_corrupt(good[:4] + bytes([0x80]) + good[5:])

    def test_truncated_payload(self, good):
        self.assert_corrupt(good[:-1])

    def test_trailing_bytes(self, good):
        self.assert_corrupt(good + b"x")

    def test_bad_lz4(self):
        payload = b"definitely not an lz4 frame"
        header = struct.pack(
            "<3sBBqqI", C.RECORD_MAGIC, C.RECORD_VERSION, C.RECORD_FLAG_LZ4,
            1000, 60, len(payload),
        )
        self.assert_corrupt(header + payload)


class TestExpiry:
    """Tests for the expiry rule."""

    def test_boundary(self):
        record = SessionRecord(b"", created_at=1000, max_age=60)
        assert record.expires_at == 1060
        assert not record.is_expired(1059)
        assert not record.is_expired(1059.999)
        assert record.is_expired(1060)
        assert record.is_expired(5000)

    @pytest.mark.parametrize("max_age", [0, -1])
    def test_non_positive_max_age_never_expires(self, max_age):
        record = SessionRecord(b"", created_at=1000, max_age=max_age)
        assert record.expires_at is None
        assert not record.is_expired(10 ** 12)


class TestPayloadCodecs:
    """Tests for values <-> payload bytes."""

    def test_protocol(self):
        assert isinstance(PickleCodec(), PayloadCodec)
        assert isinstance(JSONCodec(), PayloadCodec)

    def test_pickle_arbitrary_keys(self):
        codec = PickleCodec()
        values = {1: "int key", ("t", 2): {"nested": [1, 2]}, "s": b"bytes"}
        assert codec.decode(codec.encode(values).unwrap()).unwrap() == values

    def test_pickle_rejects_non_dict(self):
        result = PickleCodec().decode(pickle.dumps([1, 2, 3]))
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_DECODE_FAILED

    def test_pickle_garbage(self):
        result = PickleCodec().decode(b"\x00garbage")
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_DECODE_FAILED

    def test_pickle_unencodable(self):
        result = PickleCodec().encode({"f": lambda: None})
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_ENCODE_FAILED

    def test_json_round_trip(self):
        codec = JSONCodec()
        values = {"user": 42, "roles": ["a", "b"], "flag": True}
        assert codec.decode(codec.encode(values).unwrap()).unwrap() == values

    def test_json_rejects_non_string_keys(self):
        result = JSONCodec().encode({1: "x"})
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_ENCODE_FAILED

    def test_json_rejects_unserializable(self):
        result = JSONCodec().encode({"s": {1, 2}})
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_ENCODE_FAILED

    def test_json_rejects_non_object(self):
        result = JSONCodec().decode(b"[1, 2]")
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_DECODE_FAILED

    def test_json_garbage(self):
        result = JSONCodec().decode(b"\xff\xfe")
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_DECODE_FAILED


class TestRecordHelpers:
    """Tests for the two-step encode/decode helpers."""

    def test_encode_then_decode_values(self):
        data = encode_record({"foo": "bar"}, 1000, 3600, JSONCodec()).unwrap()
        record = decode_record(data).unwrap()
        assert record.created_at == 1000
        assert record.max_age == 3600
        assert decode_values(record, JSONCodec()).unwrap() == {"foo": "bar"}

    def test_payload_failure_before_envelope(self):
        result = encode_record({1: "x"}, 1000, 3600, JSONCodec())
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_ENCODE_FAILED

    def test_payload_codec_mismatch(self):
        data = encode_record({"foo": "bar"}, 1000, 3600, PickleCodec()).unwrap()
        record = decode_record(data).unwrap()
        result = decode_values(record, JSONCodec())
        assert result.error.code == ErrorCode.CODEC_PAYLOAD_DECODE_FAILED
