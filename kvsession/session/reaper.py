"""
Reaper: Periodic Sweep of Expired Session Records

The session store only expires records lazily, when they are read. A
record that is never read again stays on disk. The reaper is an
independent collaborator that walks the bucket in key order and
deletes expired records, one batch per write transaction.

Each candidate is re-checked inside the write transaction, so a record
refreshed by a concurrent save between the scan and the delete is kept.
Corrupt records are counted and left alone.

Usage:
    reaper = Reaper(engine, b"sessions", ReaperConfig(interval_seconds=60))
    reaper.start()
    ...
    await reaper.stop()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from kvsession.codec.record import decode_record
from kvsession.core import constants as C
from kvsession.core.config import ReaperConfig
from kvsession.core.errors import SessionStoreError, StorageError
from kvsession.core.types import Clock, Result, Ok, Err, system_clock
from kvsession.observability.logging import StructuredLogger
from kvsession.storage.engine import KVEngine, Transaction

logger = StructuredLogger(__name__)


@dataclass
class ReapStats:
    """Outcome of one sweep."""

    scanned: int = 0
    deleted: int = 0
    corrupt: int = 0


class Reaper:
    """Deletes expired records from one bucket, on demand or periodically."""

    __slots__ = ("_engine", "_bucket_name", "_config", "_clock", "_task")

    def __init__(
        self,
        engine: KVEngine,
        bucket_name: bytes = C.DEFAULT_BUCKET_NAME,
        config: Optional[ReaperConfig] = None,
        clock: Clock = system_clock,
    ) -> None:
        self._engine = engine
        self._bucket_name = bucket_name or C.DEFAULT_BUCKET_NAME
        self._config = config or ReaperConfig()
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _is_expired(self, data: bytes, now: float) -> Optional[bool]:
        """None when the record cannot be decoded."""
        decoded = decode_record(data)
        if decoded.is_err():
            return None
        return decoded.unwrap().is_expired(now)

    async def reap_once(self) -> Result[ReapStats, SessionStoreError]:
        """Sweep the whole bucket once."""
        stats = ReapStats()
        after: Optional[bytes] = None
        batch_size = self._config.batch_size

        while True:
            def scan(tx: Transaction) -> Result[list[tuple[bytes, bytes]], SessionStoreError]:
                bucket = tx.bucket(self._bucket_name)
                if bucket is None:
                    return Err(StorageError.bucket_not_found(self._bucket_name))
                return Ok(bucket.scan(after=after, limit=batch_size))

            page = await self._engine.view(scan)
            if page.is_err():
                return page
            items = page.unwrap()
            if not items:
                break

            now = self._clock()
            candidates = []
            for key, value in items:
                stats.scanned += 1
                expired = self._is_expired(value, now)
                if expired is None:
                    stats.corrupt += 1
                elif expired:
                    candidates.append(key)

            if candidates:
                def delete(tx: Transaction) -> Result[int, SessionStoreError]:
                    bucket = tx.bucket(self._bucket_name)
                    if bucket is None:
                        return Err(StorageError.bucket_not_found(self._bucket_name))
                    count = 0
                    for key in candidates:
                        current = bucket.get(key)
                        if current is not None and self._is_expired(current, now):
                            bucket.delete(key)
                            count += 1
                    return Ok(count)

                deleted = await self._engine.update(delete)
                if deleted.is_err():
                    return deleted
                stats.deleted += deleted.unwrap()

            if len(items) < batch_size:
                break
            after = items[-1][0]

        return Ok(stats)

    async def _run(self) -> None:
        log = logger.with_extra(bucket=self._bucket_name.decode("utf-8", "replace"))
        while True:
            try:
                result = await self.reap_once()
            except Exception:
                # Sweeps are independent; the next one starts from scratch
                log.exception("Session reap raised")
            else:
                if result.is_err():
                    log.error("Session reap failed", error=result.error.to_dict())
                else:
                    stats = result.unwrap()
                    log.info(
                        "Session reap finished",
                        scanned=stats.scanned,
                        deleted=stats.deleted,
                        corrupt=stats.corrupt,
                    )
            await asyncio.sleep(self._config.interval_seconds)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
