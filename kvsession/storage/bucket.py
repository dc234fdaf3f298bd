"""
Bucket Store: Atomic get/put/delete on a Single Bucket

Thin adapter used by the session store. Each method is exactly one
transaction against the configured bucket. Nothing is retried; a
StorageError is fatal for the current request.
"""

from __future__ import annotations

from typing import Callable, Optional

from kvsession.core.errors import SessionStoreError, StorageError
from kvsession.core.types import Result, Ok, Err
from kvsession.storage.engine import Bucket, KVEngine, Transaction


class BucketStore:
    """
    Keyed access to one bucket of a KVEngine.

    Usage:
        store = BucketStore(engine, b"sessions")
        await store.ensure()
        await store.put("id", b"...")
        data = (await store.get("id")).unwrap()
    """

    __slots__ = ("_engine", "_bucket_name")

    def __init__(self, engine: KVEngine, bucket_name: bytes) -> None:
        self._engine = engine
        self._bucket_name = bucket_name

    @property
    def bucket_name(self) -> bytes:
        return self._bucket_name

    @property
    def engine(self) -> KVEngine:
        return self._engine

    def _bucket(self, tx: Transaction) -> Result[Bucket, SessionStoreError]:
        bucket = tx.bucket(self._bucket_name)
        if bucket is None:
            return Err(StorageError.bucket_not_found(self._bucket_name))
        return Ok(bucket)

    async def ensure(self) -> Result[None, SessionStoreError]:
        """Create the bucket if it does not exist. Idempotent."""
        def create(tx: Transaction) -> Result[None, SessionStoreError]:
            tx.create_bucket_if_not_exists(self._bucket_name)
            return Ok(None)

        return await self._engine.update(create)

    async def get(self, key: str) -> Result[Optional[bytes], SessionStoreError]:
        """Point lookup in a read-only transaction."""
        return await self._engine.view(
            lambda tx: self._bucket(tx).map(lambda b: b.get(key.encode("utf-8")))
        )

    async def put(self, key: str, data: bytes) -> Result[None, SessionStoreError]:
        """Upsert in a write transaction."""
        return await self._engine.update(
            lambda tx: self._bucket(tx).map(lambda b: b.put(key.encode("utf-8"), data))
        )

    async def delete(self, key: str) -> Result[None, SessionStoreError]:
        """Delete in a write transaction. Absent keys are not an error."""
        return await self._engine.update(
            lambda tx: self._bucket(tx).map(lambda b: b.delete(key.encode("utf-8")))
        )

    async def delete_if(
        self,
        key: str,
        predicate: Callable[[bytes], bool],
    ) -> Result[bool, SessionStoreError]:
        """
        Delete key only if its current value satisfies predicate.

        The value is re-read inside the write transaction, so a value
        replaced after an earlier read is judged on its new contents.
        Returns Ok(True) when the key was deleted.
        """
        encoded = key.encode("utf-8")

        def conditional_delete(tx: Transaction) -> Result[bool, SessionStoreError]:
            bucket = self._bucket(tx)
            if bucket.is_err():
                return bucket
            current = bucket.unwrap().get(encoded)
            if current is None or not predicate(current):
                return Ok(False)
            bucket.unwrap().delete(encoded)
            return Ok(True)

        return await self._engine.update(conditional_delete)
