"""
Secure Cookie Codec: Authenticated, Optionally Encrypted Tokens

Turns a session identifier into an opaque token bound to the session
name and an issue timestamp, and back.

Encode:
    value   = base64url(AES-CTR(block_key, id))      # block key optional
    mac     = HMAC-SHA256(hash_key, "name|ts|value")
    token   = base64url("ts|value|mac")

Decode reverses the steps, verifying the MAC in constant time before
trusting any field, then checks the timestamp against max age.

Key rotation:
    Codecs are held in an ordered tuple, newest first. Encoding uses the
    first codec that succeeds; decoding tries each codec in turn and the
    first success wins, so tokens issued under a retired key keep working
    while that key is still listed.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from typing import Optional, Protocol, Sequence, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from kvsession.core import constants as C
from kvsession.core.errors import TokenError
from kvsession.core.types import Clock, Result, Ok, Err, system_clock

_IV_SIZE = 16


@runtime_checkable
class TokenCodec(Protocol):
    """Authenticated encode/decode capability for session tokens."""

    def encode(self, name: str, value: str) -> Result[str, TokenError]:
        ...

    def decode(
        self,
        name: str,
        token: str,
        max_age: Optional[int] = None,
    ) -> Result[str, TokenError]:
        ...


class SecureCookie:
    """
    HMAC-SHA256 signed token codec with optional AES-CTR encryption.

    Args:
        hash_key: HMAC key. Required. 32 or 64 random bytes recommended.
        block_key: AES key of 16, 24 or 32 bytes. None disables encryption.
        max_age: default maximum token age in seconds (0 = unchecked).
        max_length: maximum encoded token length (0 = unlimited).
        clock: time source in Unix seconds.
    """

    __slots__ = ("_hash_key", "_block_key", "_max_age", "_max_length", "_clock")

    def __init__(
        self,
        hash_key: bytes,
        block_key: Optional[bytes] = None,
        *,
        max_age: int = C.TOKEN_MAX_AGE,
        max_length: int = C.TOKEN_MAX_LENGTH,
        clock: Clock = system_clock,
    ) -> None:
        if not hash_key:
            raise ValueError("hash key is not set")
        if block_key is not None and len(block_key) not in C.AES_KEY_SIZES:
            raise ValueError(
                f"block key must be 16, 24 or 32 bytes, got {len(block_key)}"
            )
        if max_length < 0:
            raise ValueError("max_length must be >= 0")
        self._hash_key = bytes(hash_key)
        self._block_key = bytes(block_key) if block_key is not None else None
        self._max_age = max_age
        self._max_length = max_length
        self._clock = clock

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def max_age(self) -> int:
        return self._max_age

    @property
    def encrypted(self) -> bool:
        return self._block_key is not None

    def with_max_length(self, max_length: int) -> SecureCookie:
        """Return a copy of this codec with a different length limit."""
        return SecureCookie(
            self._hash_key,
            self._block_key,
            max_age=self._max_age,
            max_length=max_length,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------
    def _mac(self, message: bytes) -> bytes:
        h = hmac.HMAC(self._hash_key, hashes.SHA256())
        h.update(message)
        return h.finalize()

    def _verify_mac(self, message: bytes, mac: bytes) -> bool:
        h = hmac.HMAC(self._hash_key, hashes.SHA256())
        h.update(message)
        try:
            h.verify(mac)
        except InvalidSignature:
            return False
        return True

    def _encrypt(self, plaintext: bytes) -> bytes:
        iv = secrets.token_bytes(_IV_SIZE)
        encryptor = Cipher(algorithms.AES(self._block_key), modes.CTR(iv)).encryptor()
        return iv + encryptor.update(plaintext) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> Result[bytes, TokenError]:
        if len(data) <= _IV_SIZE:
            return Err(TokenError.decrypt_failed(
                cause=ValueError("ciphertext shorter than IV"),
            ))
        iv, ciphertext = data[:_IV_SIZE], data[_IV_SIZE:]
        decryptor = Cipher(algorithms.AES(self._block_key), modes.CTR(iv)).decryptor()
        return Ok(decryptor.update(ciphertext) + decryptor.finalize())

    # -------------------------------------------------------------------------
    # Codec
    # -------------------------------------------------------------------------
    def encode(self, name: str, value: str) -> Result[str, TokenError]:
        try:
            body = value.encode("utf-8")
        except UnicodeEncodeError as e:
            return Err(TokenError.encode_failed(cause=e))

        if self._block_key is not None:
            body = self._encrypt(body)
        body = base64.urlsafe_b64encode(body)

        timestamp = str(int(self._clock())).encode("ascii")
        signed = b"|".join([name.encode("utf-8"), timestamp, body])
        mac = self._mac(signed)

        token = base64.urlsafe_b64encode(
            b"|".join([timestamp, body, mac])
        ).decode("ascii")

        if self._max_length and len(token) > self._max_length:
            return Err(TokenError.too_long(len(token), self._max_length))
        return Ok(token)

    def decode(
        self,
        name: str,
        token: str,
        max_age: Optional[int] = None,
    ) -> Result[str, TokenError]:
        """
        Verify and open a token.

        max_age overrides the codec default for this call; a value <= 0
        disables the age check.
        """
        if self._max_length and len(token) > self._max_length:
            return Err(TokenError.too_long(len(token), self._max_length))

        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError) as e:
            return Err(TokenError.malformed("outer encoding", cause=e))

        parts = raw.split(b"|", 2)
        if len(parts) != 3:
            return Err(TokenError.malformed("expected timestamp|value|mac"))
        timestamp_raw, body, mac = parts

        signed = b"|".join([name.encode("utf-8"), timestamp_raw, body])
        if not self._verify_mac(signed, mac):
            return Err(TokenError.invalid_mac())

        try:
            issued_at = int(timestamp_raw)
        except ValueError as e:
            return Err(TokenError.malformed("timestamp", cause=e))

        age_limit = self._max_age if max_age is None else max_age
        if age_limit > 0 and issued_at < int(self._clock()) - age_limit:
            return Err(TokenError.expired(issued_at, age_limit))

        try:
            data = base64.urlsafe_b64decode(body)
        except (binascii.Error, ValueError) as e:
            return Err(TokenError.malformed("value encoding", cause=e))

        if self._block_key is not None:
            decrypted = self._decrypt(data)
            if decrypted.is_err():
                return decrypted
            data = decrypted.unwrap()

        try:
            return Ok(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            return Err(TokenError.decrypt_failed(cause=e))


# =============================================================================
# MULTI-CODEC HELPERS
# =============================================================================
def codecs_from_pairs(
    *key_pairs: Optional[bytes],
    max_age: int = C.TOKEN_MAX_AGE,
    max_length: int = C.TOKEN_MAX_LENGTH,
    clock: Clock = system_clock,
) -> tuple[SecureCookie, ...]:
    """
    Build codecs from alternating hash and block keys.

        codecs_from_pairs(new_hash, new_block, old_hash, old_block)

    A block key may be None (sign only). A trailing hash key without a
    block key is allowed.
    """
    codecs = []
    for i in range(0, len(key_pairs), 2):
        hash_key = key_pairs[i]
        block_key = key_pairs[i + 1] if i + 1 < len(key_pairs) else None
        codecs.append(SecureCookie(
            hash_key or b"",
            block_key,
            max_age=max_age,
            max_length=max_length,
            clock=clock,
        ))
    return tuple(codecs)


def with_max_length(
    codecs: Sequence[SecureCookie],
    max_length: int,
) -> tuple[SecureCookie, ...]:
    """New codec tuple with the length limit applied (0 = unlimited)."""
    return tuple(codec.with_max_length(max_length) for codec in codecs)


def encode_multi(
    name: str,
    value: str,
    codecs: Sequence[TokenCodec],
) -> Result[str, TokenError]:
    """Encode with the first codec that succeeds, newest key first."""
    if not codecs:
        return Err(TokenError.no_codecs())

    errors: list[TokenError] = []
    for codec in codecs:
        result = codec.encode(name, value)
        if result.is_ok():
            return result
        errors.append(result.error)
    return Err(TokenError.all_codecs_failed(errors))


def decode_multi(
    name: str,
    token: str,
    codecs: Sequence[TokenCodec],
    max_age: Optional[int] = None,
) -> Result[str, TokenError]:
    """Try every codec in order; the first one that validates wins."""
    if not codecs:
        return Err(TokenError.no_codecs())

    errors: list[TokenError] = []
    for codec in codecs:
        result = codec.decode(name, token, max_age)
        if result.is_ok():
            return result
        errors.append(result.error)
    return Err(TokenError.all_codecs_failed(errors))
