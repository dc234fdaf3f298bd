"""
Payload Codecs: Session Values <-> Bytes

The payload codec is a capability, not a base class. Any object with
`name`, `encode` and `decode` satisfies PayloadCodec.

- PickleCodec: arbitrary keys and values (default; data never leaves
  the server, so the trust boundary is the database file)
- JSONCodec: string keys and JSON-compatible values only
"""

from __future__ import annotations

import json
import pickle
from typing import Any, Protocol, runtime_checkable

from kvsession.core.errors import CodecError
from kvsession.core.types import Result, Ok, Err


@runtime_checkable
class PayloadCodec(Protocol):
    """Serializes the session's application mapping."""

    name: str

    def encode(self, values: dict[Any, Any]) -> Result[bytes, CodecError]:
        ...

    def decode(self, data: bytes) -> Result[dict[Any, Any], CodecError]:
        ...


class PickleCodec:
    """Pickle-based payload codec. Handles any picklable key or value."""

    __slots__ = ("_protocol",)

    name = "pickle"

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def encode(self, values: dict[Any, Any]) -> Result[bytes, CodecError]:
        try:
            return Ok(pickle.dumps(values, protocol=self._protocol))
        except Exception as e:
            # pickle raises PicklingError, TypeError or AttributeError
            return Err(CodecError.payload_encode_failed(self.name, cause=e))

    def decode(self, data: bytes) -> Result[dict[Any, Any], CodecError]:
        try:
            values = pickle.loads(data)
        except Exception as e:
            return Err(CodecError.payload_decode_failed(self.name, cause=e))
        if not isinstance(values, dict):
            return Err(CodecError.payload_decode_failed(
                self.name,
                cause=TypeError(f"expected dict, got {type(values).__name__}"),
            ))
        return Ok(values)


class JSONCodec:
    """JSON payload codec. Keys must be strings."""

    __slots__ = ()

    name = "json"

    def encode(self, values: dict[Any, Any]) -> Result[bytes, CodecError]:
        bad_keys = [k for k in values if not isinstance(k, str)]
        if bad_keys:
            return Err(CodecError.payload_encode_failed(
                self.name,
                cause=TypeError(f"non-string keys: {bad_keys!r}"),
            ))
        try:
            return Ok(json.dumps(values, separators=(",", ":")).encode("utf-8"))
        except (TypeError, ValueError) as e:
            return Err(CodecError.payload_encode_failed(self.name, cause=e))

    def decode(self, data: bytes) -> Result[dict[Any, Any], CodecError]:
        try:
            values = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            return Err(CodecError.payload_decode_failed(self.name, cause=e))
        if not isinstance(values, dict):
            return Err(CodecError.payload_decode_failed(
                self.name,
                cause=TypeError(f"expected object, got {type(values).__name__}"),
            ))
        return Ok(values)
