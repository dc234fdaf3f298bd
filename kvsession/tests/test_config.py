"""
Unit Tests: Result Monad, Errors and Configuration
"""

from pathlib import Path

import pytest

from kvsession.core import constants as C
from kvsession.core.config import KVSessionConfig, ReaperConfig, StoreConfig
from kvsession.core.errors import (
    CodecError,
    ConfigError,
    ErrorCode,
    SessionStoreError,
    StorageError,
    TokenError,
)
from kvsession.core.types import Ok, Err, Timestamp


class TestResult:
    """Tests for Ok/Err."""

    def test_ok(self):
        result = Ok(2)
        assert result.is_ok() and not result.is_err()
        assert result.unwrap() == 2
        assert result.map(lambda v: v * 3).unwrap() == 6
        assert result.flat_map(lambda v: Err("no")).is_err()
        assert result.unwrap_or(0) == 2

    def test_err(self):
        result = Err("boom")
        assert result.is_err()
        assert result.map(lambda v: v * 3) is result
        assert result.unwrap_or(7) == 7
        with pytest.raises(RuntimeError):
            result.unwrap()


class TestTimestamp:
    """Tests for nanosecond timestamps."""

    def test_seconds_round_trip(self):
        ts = Timestamp.from_seconds(1.5)
        assert ts.nanos == 1_500_000_000
        assert ts.seconds == 1.5

    def test_difference(self):
        assert Timestamp(3_000) - Timestamp(1_000) == 2_000


class TestErrors:
    """Tests for coded errors."""

    def test_is_exception(self):
        error = StorageError.unavailable("/tmp/x.db")
        assert isinstance(error, SessionStoreError)
        assert isinstance(error, Exception)
        assert str(error).startswith("[STORAGE_UNAVAILABLE]")

    def test_to_dict(self):
        error = TokenError.too_long(5000, 4096)
        data = error.to_dict()
        assert data["code"] == "TOKEN_TOO_LONG"
        assert data["code_value"] == ErrorCode.TOKEN_TOO_LONG.value
        assert data["context"] == {"length": 5000, "max_length": 4096}

    def test_cause_preserved(self):
        cause = ValueError("bad")
        error = CodecError.corrupt_record("header", cause=cause)
        assert error.cause is cause

    def test_all_codecs_failed_lists_codes(self):
        error = TokenError.all_codecs_failed([
            TokenError.invalid_mac(),
            TokenError.expired(1, 2),
        ])
        assert error.code == ErrorCode.TOKEN_ALL_CODECS_FAILED
        assert error.context["codes"] == ["TOKEN_INVALID_MAC", "TOKEN_EXPIRED"]

    def test_config_error(self):
        error = ConfigError.invalid("store", "max_length must be >= 0")
        assert error.code == ErrorCode.INTERNAL_CONFIGURATION_ERROR


class TestStoreConfig:
    """Tests for store configuration."""

    def test_defaults(self):
        config = StoreConfig().with_defaults()
        assert config.bucket_name == C.DEFAULT_BUCKET_NAME
        assert config.max_length == 0
        assert config.validate().is_ok()

    def test_custom_bucket_kept(self):
        assert StoreConfig(bucket_name=b"mine").with_defaults().bucket_name == b"mine"

    def test_invalid(self):
        assert StoreConfig(max_length=-1).validate().is_err()
        assert StoreConfig(compression_threshold_bytes=-1).validate().is_err()

    def test_reaper_invalid(self):
        assert ReaperConfig(interval_seconds=0).validate().is_err()
        assert ReaperConfig(batch_size=0).validate().is_err()


class TestFromEnv:
    """Tests for environment overrides."""

    def test_defaults(self, monkeypatch):
        for name in (
            "KVSESSION_DB_PATH", "KVSESSION_BUCKET", "KVSESSION_MAX_LENGTH",
            "KVSESSION_LOG_JSON", "KVSESSION_REAPER_INTERVAL",
        ):
            monkeypatch.delenv(name, raising=False)
        config = KVSessionConfig.from_env().unwrap()
        assert config.store.bucket_name == b""
        assert config.observability.log_json is True
        assert config.reaper.interval_seconds == C.REAPER_INTERVAL_SECONDS
        assert config.validate().is_ok()

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KVSESSION_DB_PATH", str(tmp_path / "s.db"))
        monkeypatch.setenv("KVSESSION_BUCKET", "web")
        monkeypatch.setenv("KVSESSION_MAX_LENGTH", "2048")
        monkeypatch.setenv("KVSESSION_REAPER_BATCH_SIZE", "10")
        monkeypatch.setenv("KVSESSION_LOG_JSON", "false")

        config = KVSessionConfig.from_env().unwrap()
        assert config.engine.db_path == Path(tmp_path / "s.db")
        assert config.store.bucket_name == b"web"
        assert config.store.max_length == 2048
        assert config.reaper.batch_size == 10
        assert config.observability.log_json is False

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("KVSESSION_MAX_LENGTH", "lots")
        result = KVSessionConfig.from_env()
        assert result.is_err()
        assert "Configuration error" in result.error

    def test_validate_catches_bad_values(self, monkeypatch):
        monkeypatch.setenv("KVSESSION_REAPER_BATCH_SIZE", "0")
        config = KVSessionConfig.from_env().unwrap()
        assert config.validate().is_err()
