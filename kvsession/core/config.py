"""
Configuration Management for the Session Store

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after construction
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from kvsession.core.types import Result, Ok, Err
from kvsession.core import constants as C


@dataclass(frozen=True)
class EngineConfig:
    """Embedded key-value engine (SQLite, WAL mode) configuration."""

    db_path: Path = field(default_factory=lambda: Path("./data/sessions.db"))
    busy_timeout_ms: int = C.ENGINE_BUSY_TIMEOUT_MS
    cache_size_kb: int = C.ENGINE_CACHE_SIZE_KB
    mmap_enabled: bool = True


@dataclass(frozen=True)
class StoreConfig:
    """
    Session store configuration.

    bucket_name: bucket holding session records. Empty means default.
    max_length: maximum token length applied to every codec (0 = unlimited).
    compression_threshold_bytes: payloads at least this large are LZ4
        compressed before being written (0 disables compression).
    """

    bucket_name: bytes = b""
    max_length: int = 0
    compression_threshold_bytes: int = C.COMPRESSION_THRESHOLD_BYTES

    def with_defaults(self) -> StoreConfig:
        """Return a copy with unset fields replaced by defaults."""
        if self.bucket_name:
            return self
        return replace(self, bucket_name=C.DEFAULT_BUCKET_NAME)

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.max_length < 0:
            return Err("max_length must be >= 0")
        if self.compression_threshold_bytes < 0:
            return Err("compression_threshold_bytes must be >= 0")
        return Ok(None)


@dataclass(frozen=True)
class ReaperConfig:
    """Background expired-record sweep configuration."""

    interval_seconds: float = C.REAPER_INTERVAL_SECONDS
    batch_size: int = C.REAPER_BATCH_SIZE

    def validate(self) -> Result[None, str]:
        if self.interval_seconds <= 0:
            return Err("Reaper interval_seconds must be > 0")
        if self.batch_size < 1:
            return Err("Reaper batch_size must be >= 1")
        return Ok(None)


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class KVSessionConfig:
    """Root configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    reaper: ReaperConfig = field(default_factory=ReaperConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[KVSessionConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with KVSESSION_.
        Example: KVSESSION_DB_PATH, KVSESSION_BUCKET, KVSESSION_MAX_LENGTH
        """
        try:
            engine = EngineConfig(
                db_path=Path(os.getenv("KVSESSION_DB_PATH", "./data/sessions.db")),
                busy_timeout_ms=int(os.getenv(
                    "KVSESSION_BUSY_TIMEOUT_MS", str(C.ENGINE_BUSY_TIMEOUT_MS),
                )),
            )

            store = StoreConfig(
                bucket_name=os.getenv("KVSESSION_BUCKET", "").encode("utf-8"),
                max_length=int(os.getenv("KVSESSION_MAX_LENGTH", "0")),
                compression_threshold_bytes=int(os.getenv(
                    "KVSESSION_COMPRESSION_THRESHOLD",
                    str(C.COMPRESSION_THRESHOLD_BYTES),
                )),
            )

            reaper = ReaperConfig(
                interval_seconds=float(os.getenv(
                    "KVSESSION_REAPER_INTERVAL", str(C.REAPER_INTERVAL_SECONDS),
                )),
                batch_size=int(os.getenv(
                    "KVSESSION_REAPER_BATCH_SIZE", str(C.REAPER_BATCH_SIZE),
                )),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("KVSESSION_LOG_LEVEL", "INFO"),
                log_json=os.getenv("KVSESSION_LOG_JSON", "true").lower() == "true",
            )

            return Ok(cls(
                engine=engine,
                store=store,
                reaper=reaper,
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.engine.busy_timeout_ms < 0:
            return Err("busy_timeout_ms must be >= 0")
        return self.store.validate().flat_map(lambda _: self.reaper.validate())
