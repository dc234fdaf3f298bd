"""
Embedded Session Store

Server-side session persistence on an embedded key-value database:
- Session state lives in a bucket of a local SQLite-backed KV engine
- Clients hold only an authenticated, optionally encrypted token
- Records carry their own TTL and expire lazily on read
- Token keys rotate through an ordered list of key pairs

Scope: single process, single database file. No replication.

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from kvsession.core.types import Result, Ok, Err
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
    KVSessionConfig,
)
from kvsession.storage import KVEngine, BucketStore
from kvsession.codec import (
    JSONCodec,
    PickleCodec,
    SecureCookie,
    SessionRecord,
    codecs_from_pairs,
)
from kvsession.session import (
    Cookie,
    Reaper,
    RequestContext,
    Session,
    SessionContext,
    SessionOptions,
    SessionState,
    SessionStore,
    generate_session_id,
)

__all__ = [
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Errors
    "ErrorCode",
    "SessionStoreError",
    "StorageError",
    "TokenError",
    "CodecError",
    "ConfigError",
    # Config
    "EngineConfig",
    "StoreConfig",
    "ReaperConfig",
    "KVSessionConfig",
    # Storage
    "KVEngine",
    "BucketStore",
    # Codecs
    "JSONCodec",
    "PickleCodec",
    "SecureCookie",
    "SessionRecord",
    "codecs_from_pairs",
    # Sessions
    "Cookie",
    "Reaper",
    "RequestContext",
    "Session",
    "SessionContext",
    "SessionOptions",
    "SessionState",
    "SessionStore",
    "generate_session_id",
]
