"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the session store:
- Result/Either monads for zero-exception control flow
- Coded error hierarchy with pattern matching support
- Configuration management with validation
"""

from kvsession.core.types import (
    Result,
    Ok,
    Err,
    Clock,
    Timestamp,
    system_clock,
)
from kvsession.core.errors import (
    ErrorCode,
    SessionStoreError,
    StorageError,
    TokenError,
    CodecError,
    ConfigError,
)
from kvsession.core.config import (
    EngineConfig,
    StoreConfig,
    ReaperConfig,
    ObservabilityConfig,
    KVSessionConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Clock",
    "Timestamp",
    "system_clock",
    "ErrorCode",
    "SessionStoreError",
    "StorageError",
    "TokenError",
    "CodecError",
    "ConfigError",
    "EngineConfig",
    "StoreConfig",
    "ReaperConfig",
    "ObservabilityConfig",
    "KVSessionConfig",
]
