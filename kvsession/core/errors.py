"""
Error Hierarchy for the Session Store

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Never swallow errors; every failure reaches the immediate caller
- Carry full error context for debugging and audit trails

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for log correlation

Usage:
    result = await store.load(session)
    match result:
        case Ok(found):
            ...
        case Err(StorageError() as e) if e.code is ErrorCode.STORAGE_UNAVAILABLE:
            abort_request(e)
        case Err(e):
            degrade_to_new_session(e)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence
from uuid import uuid4

from kvsession.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Storage errors
    - 2xxx: Token (transport/format) errors
    - 3xxx: Record and payload codec errors
    - 9xxx: Configuration/internal errors
    """

    # Storage errors (1xxx)
    STORAGE_UNAVAILABLE = 1001
    STORAGE_BUCKET_NOT_FOUND = 1002
    STORAGE_TRANSACTION_FAILED = 1003

    # Token errors (2xxx)
    TOKEN_NO_CODECS = 2001
    TOKEN_TOO_LONG = 2002
    TOKEN_MALFORMED = 2003
    TOKEN_INVALID_MAC = 2004
    TOKEN_EXPIRED = 2005
    TOKEN_DECRYPT_FAILED = 2006
    TOKEN_ENCODE_FAILED = 2007
    TOKEN_ALL_CODECS_FAILED = 2008

    # Codec errors (3xxx)
    CODEC_CORRUPT_RECORD = 3001
    CODEC_PAYLOAD_ENCODE_FAILED = 3002
    CODEC_PAYLOAD_DECODE_FAILED = 3003

    # Internal errors (9xxx)
    INTERNAL_CONFIGURATION_ERROR = 9001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class SessionStoreError(Exception):
    """
    Base class for all session store errors.

    Provides common infrastructure for error handling:
    - Unique error ID for tracing
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_context(self, **kwargs: Any) -> SessionStoreError:
        """
        Add context to error (returns new instance of the same class).

        Context should never contain key material or session values.
        """
        return type(self)(
            code=self.code,
            message=self.message,
            error_id=self.error_id,
            timestamp=self.timestamp,
            cause=self.cause,
            context={**self.context, **kwargs},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================
@dataclass
class StorageError(SessionStoreError):
    """
    Errors from the embedded key-value engine.

    Fatal for the current operation. Never retried internally.
    """

    @classmethod
    def unavailable(
        cls,
        path: str,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Database is not open, already closed, or unreachable."""
        return cls(
            code=ErrorCode.STORAGE_UNAVAILABLE,
            message=f"Database at {path} is not available",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def bucket_not_found(cls, bucket: bytes) -> StorageError:
        """Bucket was never created in this database."""
        return cls(
            code=ErrorCode.STORAGE_BUCKET_NOT_FOUND,
            message=f"Bucket {bucket!r} does not exist",
            context={"bucket": bucket.decode("utf-8", "replace")},
        )

    @classmethod
    def transaction_failed(
        cls,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Transaction aborted by the engine."""
        return cls(
            code=ErrorCode.STORAGE_TRANSACTION_FAILED,
            message=f"Transaction '{operation}' failed: {cause}",
            cause=cause,
            context={"operation": operation},
        )


# =============================================================================
# TOKEN ERRORS (TRANSPORT/FORMAT)
# =============================================================================
@dataclass
class TokenError(SessionStoreError):
    """
    Errors from the authenticated token codec.

    Callers typically degrade to an empty, new session.
    """

    @classmethod
    def no_codecs(cls) -> TokenError:
        return cls(
            code=ErrorCode.TOKEN_NO_CODECS,
            message="No codecs provided",
        )

    @classmethod
    def too_long(cls, length: int, max_length: int) -> TokenError:
        """Token exceeds the configured maximum length."""
        return cls(
            code=ErrorCode.TOKEN_TOO_LONG,
            message=f"Token length {length} exceeds maximum {max_length}",
            context={"length": length, "max_length": max_length},
        )

    @classmethod
    def malformed(cls, reason: str, cause: Optional[Exception] = None) -> TokenError:
        return cls(
            code=ErrorCode.TOKEN_MALFORMED,
            message=f"Malformed token: {reason}",
            cause=cause,
            context={"reason": reason},
        )

    @classmethod
    def invalid_mac(cls) -> TokenError:
        """Signature does not validate under this key."""
        return cls(
            code=ErrorCode.TOKEN_INVALID_MAC,
            message="Token signature is not valid",
        )

    @classmethod
    def expired(cls, issued_at: int, max_age: int) -> TokenError:
        """Token timestamp is older than the allowed max age."""
        return cls(
            code=ErrorCode.TOKEN_EXPIRED,
            message=f"Token issued at {issued_at} exceeds max age {max_age}s",
            context={"issued_at": issued_at, "max_age": max_age},
        )

    @classmethod
    def decrypt_failed(cls, cause: Optional[Exception] = None) -> TokenError:
        return cls(
            code=ErrorCode.TOKEN_DECRYPT_FAILED,
            message="Token value could not be decrypted",
            cause=cause,
        )

    @classmethod
    def encode_failed(cls, cause: Optional[Exception] = None) -> TokenError:
        return cls(
            code=ErrorCode.TOKEN_ENCODE_FAILED,
            message=f"Token encoding failed: {cause}",
            cause=cause,
        )

    @classmethod
    def all_codecs_failed(cls, errors: Sequence[TokenError]) -> TokenError:
        """Every codec in a rotation list rejected the token."""
        return cls(
            code=ErrorCode.TOKEN_ALL_CODECS_FAILED,
            message="; ".join(e.message for e in errors),
            cause=errors[-1] if errors else None,
            context={"codes": [e.code.name for e in errors]},
        )


# =============================================================================
# RECORD / PAYLOAD CODEC ERRORS
# =============================================================================
@dataclass
class CodecError(SessionStoreError):
    """
    Errors from the record codec and the payload codec.

    A corrupt record is a hard error, distinct from expiry. Nothing
    is repaired or deleted automatically.
    """

    @classmethod
    def corrupt_record(
        cls,
        reason: str,
        cause: Optional[Exception] = None,
    ) -> CodecError:
        return cls(
            code=ErrorCode.CODEC_CORRUPT_RECORD,
            message=f"Corrupt session record: {reason}",
            cause=cause,
            context={"reason": reason},
        )

    @classmethod
    def payload_encode_failed(
        cls,
        codec: str,
        cause: Optional[Exception] = None,
    ) -> CodecError:
        return cls(
            code=ErrorCode.CODEC_PAYLOAD_ENCODE_FAILED,
            message=f"{codec}: cannot encode session values: {cause}",
            cause=cause,
            context={"codec": codec},
        )

    @classmethod
    def payload_decode_failed(
        cls,
        codec: str,
        cause: Optional[Exception] = None,
    ) -> CodecError:
        return cls(
            code=ErrorCode.CODEC_PAYLOAD_DECODE_FAILED,
            message=f"{codec}: cannot decode session values: {cause}",
            cause=cause,
            context={"codec": codec},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigError(SessionStoreError):
    """Invalid configuration detected at construction time."""

    @classmethod
    def invalid(cls, field_name: str, reason: str) -> ConfigError:
        return cls(
            code=ErrorCode.INTERNAL_CONFIGURATION_ERROR,
            message=f"Invalid configuration for '{field_name}': {reason}",
            context={"field": field_name},
        )
