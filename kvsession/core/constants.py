"""
System-Wide Constants for the Session Store

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND: Final[int] = 1
MINUTE: Final[int] = 60 * SECOND
HOUR: Final[int] = 60 * MINUTE
DAY: Final[int] = 24 * HOUR

# =============================================================================
# SESSION STORE
# =============================================================================
DEFAULT_BUCKET_NAME: Final[bytes] = b"sessions"
DEFAULT_MAX_AGE: Final[int] = 30 * DAY       # substituted when max_age == 0 at save
SESSION_ID_ENTROPY_BYTES: Final[int] = 32
SESSION_ID_LENGTH: Final[int] = 52           # base32(32 bytes) without padding

# =============================================================================
# TOKEN CODEC (secure cookie)
# =============================================================================
TOKEN_MAX_LENGTH: Final[int] = 4096
TOKEN_MAX_AGE: Final[int] = 30 * DAY
AES_KEY_SIZES: Final[frozenset[int]] = frozenset({16, 24, 32})

# =============================================================================
# RECORD FORMAT
# =============================================================================
RECORD_MAGIC: Final[bytes] = b"KVS"
RECORD_VERSION: Final[int] = 1
RECORD_FLAG_LZ4: Final[int] = 0x01
COMPRESSION_THRESHOLD_BYTES: Final[int] = 1 * KB

# =============================================================================
# EMBEDDED ENGINE (SQLite)
# =============================================================================
ENGINE_BUSY_TIMEOUT_MS: Final[int] = 5000
ENGINE_CACHE_SIZE_KB: Final[int] = 16 * 1024

# =============================================================================
# REAPER
# =============================================================================
REAPER_INTERVAL_SECONDS: Final[float] = 60.0
REAPER_BATCH_SIZE: Final[int] = 100
