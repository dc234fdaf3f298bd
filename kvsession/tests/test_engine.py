"""
Unit Tests: Embedded KV Engine and Bucket Store

Tests:
    - Open/close lifecycle
    - Commit on Ok, rollback on Err and on exceptions
    - Read-only enforcement
    - Ordered scans
    - BucketStore error mapping
"""

import pytest

from kvsession.core.config import EngineConfig
from kvsession.core.errors import ErrorCode, StorageError
from kvsession.core.types import Ok, Err
from kvsession.storage.bucket import BucketStore
from kvsession.storage.engine import KVEngine

BUCKET = b"things"


def put_items(*items):
    def fn(tx):
        bucket = tx.create_bucket_if_not_exists(BUCKET)
        for key, value in items:
            bucket.put(key, value)
        return Ok(None)
    return fn


def read_key(key):
    def fn(tx):
        bucket = tx.bucket(BUCKET)
        return Ok(None if bucket is None else bucket.get(key))
    return fn


class TestLifecycle:
    """Tests for open and close."""

    @pytest.mark.asyncio
    async def test_open_creates_file(self, tmp_path):
        path = tmp_path / "nested" / "kv.db"
        engine = KVEngine(EngineConfig(db_path=path))
        assert (await engine.open()).is_ok()
        assert engine.is_open
        assert path.exists()
        await engine.close()
        assert not engine.is_open

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, engine):
        assert (await engine.open()).is_ok()
        assert engine.is_open

    @pytest.mark.asyncio
    async def test_closed_engine_is_unavailable(self, engine):
        await engine.close()
        result = await engine.view(read_key(b"k"))
        assert isinstance(result.error, StorageError)
        assert result.error.code == ErrorCode.STORAGE_UNAVAILABLE
        result = await engine.update(put_items((b"k", b"v")))
        assert result.error.code == ErrorCode.STORAGE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_close_twice(self, engine):
        await engine.close()
        await engine.close()

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, db_path):
        first = KVEngine(EngineConfig(db_path=db_path))
        await first.open()
        await first.update(put_items((b"k", b"v")))
        await first.close()

        second = KVEngine(EngineConfig(db_path=db_path))
        await second.open()
        try:
            assert (await second.view(read_key(b"k"))).unwrap() == b"v"
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_context_manager(self, db_path):
        async with KVEngine(EngineConfig(db_path=db_path)) as engine:
            assert engine.is_open
        assert not engine.is_open


class TestTransactions:
    """Tests for view/update semantics."""

    @pytest.mark.asyncio
    async def test_commit_on_ok(self, engine):
        assert (await engine.update(put_items((b"k", b"v")))).is_ok()
        assert (await engine.view(read_key(b"k"))).unwrap() == b"v"
        assert engine.stats.write_transactions == 1
        assert engine.stats.read_transactions == 1

    @pytest.mark.asyncio
    async def test_rollback_on_err(self, engine):
        def failing(tx):
            tx.create_bucket_if_not_exists(BUCKET).put(b"k", b"v")
            return Err(StorageError.transaction_failed("test"))

        result = await engine.update(failing)
        assert result.is_err()
        assert engine.stats.rolled_back == 1
        assert (await engine.view(read_key(b"k"))).unwrap() is None

    @pytest.mark.asyncio
    async def test_rollback_on_exception(self, engine):
        await engine.update(put_items((b"a", b"1")))

        def failing(tx):
            bucket = tx.bucket(BUCKET)
            bucket.put(b"a", b"2")
            bucket.put(b"", b"empty key")
            return Ok(None)

        result = await engine.update(failing)
        assert result.error.code == ErrorCode.STORAGE_TRANSACTION_FAILED
        assert isinstance(result.error.cause, ValueError)
        assert (await engine.view(read_key(b"a"))).unwrap() == b"1"

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self, engine):
        def broken(tx):
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await engine.update(broken)
        assert engine.stats.rolled_back == 1
        assert (await engine.update(put_items((b"k", b"v")))).is_ok()

    @pytest.mark.asyncio
    async def test_view_is_read_only(self, engine):
        await engine.update(put_items())

        def sneaky(tx):
            tx.bucket(BUCKET).put(b"k", b"v")
            return Ok(None)

        result = await engine.view(sneaky)
        assert result.error.code == ErrorCode.STORAGE_TRANSACTION_FAILED
        assert isinstance(result.error.cause, PermissionError)

    @pytest.mark.asyncio
    async def test_missing_bucket(self, engine):
        assert (await engine.view(lambda tx: Ok(tx.bucket(b"nope")))).unwrap() is None

    @pytest.mark.asyncio
    async def test_delete_bucket(self, engine):
        await engine.update(put_items((b"k", b"v")))

        def drop(tx):
            tx.delete_bucket(BUCKET)
            return Ok(None)

        assert (await engine.update(drop)).is_ok()
        assert (await engine.view(lambda tx: Ok(tx.bucket(BUCKET)))).unwrap() is None

        await engine.update(put_items())
        count = await engine.view(lambda tx: Ok(tx.bucket(BUCKET).count()))
        assert count.unwrap() == 0

    @pytest.mark.asyncio
    async def test_delete_absent_key(self, engine):
        await engine.update(put_items())

        def delete(tx):
            tx.bucket(BUCKET).delete(b"missing")
            return Ok(None)

        assert (await engine.update(delete)).is_ok()


class TestScan:
    """Tests for ordered bucket scans."""

    @pytest.mark.asyncio
    async def test_scan_orders_and_pages(self, engine):
        await engine.update(put_items(
            (b"c", b"3"), (b"a", b"1"), (b"d", b"4"), (b"b", b"2"), (b"e", b"5"),
        ))

        first = await engine.view(lambda tx: Ok(tx.bucket(BUCKET).scan(limit=2)))
        assert first.unwrap() == [(b"a", b"1"), (b"b", b"2")]

        rest = await engine.view(lambda tx: Ok(tx.bucket(BUCKET).scan(after=b"b", limit=10)))
        assert [k for k, _ in rest.unwrap()] == [b"c", b"d", b"e"]

    @pytest.mark.asyncio
    async def test_scan_is_bucket_scoped(self, engine):
        def fill(tx):
            tx.create_bucket_if_not_exists(b"one").put(b"k", b"1")
            tx.create_bucket_if_not_exists(b"two").put(b"k", b"2")
            return Ok(None)

        await engine.update(fill)
        items = await engine.view(lambda tx: Ok(tx.bucket(b"two").scan()))
        assert items.unwrap() == [(b"k", b"2")]


class TestBucketStore:
    """Tests for the single-bucket adapter."""

    @pytest.mark.asyncio
    async def test_round_trip(self, engine):
        store = BucketStore(engine, b"sessions")
        assert (await store.ensure()).is_ok()
        assert (await store.ensure()).is_ok()
        assert (await store.put("id", b"data")).is_ok()
        assert (await store.get("id")).unwrap() == b"data"
        assert (await store.put("id", b"newer")).is_ok()
        assert (await store.get("id")).unwrap() == b"newer"

    @pytest.mark.asyncio
    async def test_absent_key(self, engine):
        store = BucketStore(engine, b"sessions")
        await store.ensure()
        assert (await store.get("missing")).unwrap() is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, engine):
        store = BucketStore(engine, b"sessions")
        await store.ensure()
        await store.put("id", b"data")
        assert (await store.delete("id")).is_ok()
        assert (await store.delete("id")).is_ok()
        assert (await store.get("id")).unwrap() is None

    @pytest.mark.asyncio
    async def test_bucket_not_found(self, engine):
        store = BucketStore(engine, b"never-created")
        for result in (
            await store.get("id"),
            await store.put("id", b"data"),
            await store.delete("id"),
        ):
            assert result.error.code == ErrorCode.STORAGE_BUCKET_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_if(self, engine):
        store = BucketStore(engine, b"sessions")
        await store.ensure()
        await store.put("keep", b"fresh")
        await store.put("drop", b"stale")

        def is_stale(value):
            return value == b"stale"

        assert (await store.delete_if("keep", is_stale)).unwrap() is False
        assert (await store.delete_if("drop", is_stale)).unwrap() is True
        assert (await store.delete_if("missing", is_stale)).unwrap() is False
        assert (await store.get("keep")).unwrap() == b"fresh"
        assert (await store.get("drop")).unwrap() is None

    @pytest.mark.asyncio
    async def test_delete_if_bucket_not_found(self, engine):
        store = BucketStore(engine, b"never-created")
        result = await store.delete_if("id", lambda value: True)
        assert result.error.code == ErrorCode.STORAGE_BUCKET_NOT_FOUND
