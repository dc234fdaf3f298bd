"""
Codec module: token, record and payload codecs.

- securecookie: authenticated client tokens with key rotation
- record: on-disk session record format
- payload: session values <-> bytes
"""

from kvsession.codec.payload import (
    JSONCodec,
    PayloadCodec,
    PickleCodec,
)
from kvsession.codec.record import (
    SessionRecord,
    decode_record,
    decode_values,
    encode_record,
)
from kvsession.codec.securecookie import (
    SecureCookie,
    TokenCodec,
    codecs_from_pairs,
    decode_multi,
    encode_multi,
    with_max_length,
)

__all__ = [
    "JSONCodec",
    "PayloadCodec",
    "PickleCodec",
    "SessionRecord",
    "decode_record",
    "decode_values",
    "encode_record",
    "SecureCookie",
    "TokenCodec",
    "codecs_from_pairs",
    "decode_multi",
    "encode_multi",
    "with_max_length",
]
