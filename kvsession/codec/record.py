"""
Record Codec: On-Disk Session Record Format

A record wraps the serialized session values with the metadata needed
for expiry. The format is independent of the storage engine.

Layout (little-endian, 25-byte header):
    magic       3 bytes   b"KVS"
    version     u8        1
    flags       u8        bit0 = payload is LZ4-frame compressed
    created_at  i64       Unix seconds at write time
    max_age     i64       TTL in seconds at write time
    payload_len u32       length of the (possibly compressed) payload
    payload     bytes

Decoding validates every field. Any mismatch is a corrupt record, which
is a hard error and never confused with expiry.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Optional

import lz4.frame

from kvsession.core import constants as C
from kvsession.core.errors import CodecError
from kvsession.core.types import Result, Ok, Err
from kvsession.codec.payload import PayloadCodec

_HEADER = struct.Struct("<3sBBqqI")
_KNOWN_FLAGS = C.RECORD_FLAG_LZ4


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """Persisted unit of session state."""

    payload: bytes
    created_at: int
    max_age: int

    @property
    def expires_at(self) -> Optional[int]:
        """Unix second at which the record expires, None if it never does."""
        if self.max_age <= 0:
            return None
        return self.created_at + self.max_age

    def is_expired(self, now: float) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and now >= expires_at

    def to_bytes(self, compression_threshold: int = 0) -> bytes:
        """Serialize; compress the payload when it reaches the threshold."""
        payload = self.payload
        flags = 0
        if compression_threshold > 0 and len(payload) >= compression_threshold:
            payload = lz4.frame.compress(payload)
            flags |= C.RECORD_FLAG_LZ4
        header = _HEADER.pack(
            C.RECORD_MAGIC,
            C.RECORD_VERSION,
            flags,
            self.created_at,
            self.max_age,
            len(payload),
        )
        return header + payload

    @classmethod
    def from_bytes(cls, data: bytes) -> Result[SessionRecord, CodecError]:
        if len(data) < _HEADER.size:
            return Err(CodecError.corrupt_record(
                f"record is {len(data)} bytes, header needs {_HEADER.size}"
            ))

        magic, version, flags, created_at, max_age, length = _HEADER.unpack_from(data)
        if magic != C.RECORD_MAGIC:
            return Err(CodecError.corrupt_record(f"bad magic {magic!r}"))
        if version != C.RECORD_VERSION:
            return Err(CodecError.corrupt_record(f"unsupported version {version}"))
        if flags & ~_KNOWN_FLAGS:
            return Err(CodecError.corrupt_record(f"unknown flags {flags:#04x}"))

        payload = data[_HEADER.size:]
        if len(payload) != length:
            return Err(CodecError.corrupt_record(
                f"payload length {len(payload)} does not match header {length}"
            ))

        if flags & C.RECORD_FLAG_LZ4:
            try:
                payload = lz4.frame.decompress(payload)
            except (RuntimeError, ValueError) as e:
                return Err(CodecError.corrupt_record("LZ4 payload", cause=e))

        return Ok(cls(payload=bytes(payload), created_at=created_at, max_age=max_age))


def encode_record(
    values: dict[Any, Any],
    created_at: int,
    max_age: int,
    payload_codec: PayloadCodec,
    compression_threshold: int = 0,
) -> Result[bytes, CodecError]:
    """Serialize the values first, then wrap them into the outer record."""
    return payload_codec.encode(values).map(
        lambda payload: SessionRecord(
            payload=payload,
            created_at=created_at,
            max_age=max_age,
        ).to_bytes(compression_threshold)
    )


def decode_record(data: bytes) -> Result[SessionRecord, CodecError]:
    """Decode the outer record only; the payload stays opaque."""
    return SessionRecord.from_bytes(data)


def decode_values(
    record: SessionRecord,
    payload_codec: PayloadCodec,
) -> Result[dict[Any, Any], CodecError]:
    """Second, separable step: payload bytes -> application mapping."""
    return payload_codec.decode(record.payload)
