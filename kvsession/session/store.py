"""
Session Store: Session Lifecycle on an Embedded KV Engine

Orchestrates the path between the opaque client token and the stored
record:

    get/new ─▶ decode token ─▶ load record ─▶ check expiry ─▶ values
    save    ─▶ assign id ─▶ encode record ─▶ put ─▶ encode token ─▶ cookie

Policies:
    - max_age == 0 at save time stores the record with DEFAULT_MAX_AGE
    - max_age < 0 at save time deletes the record and clears the cookie
    - Expiry is lazy: checked on read, expired records are deleted then
    - Corrupt records are errors; they are never deleted or repaired
    - Nothing is retried; every failure goes back to the caller

Concurrency:
    One transaction per operation. Concurrent saves of the same id are
    last-committed-write-wins; there is no versioning.

Usage:
    engine = KVEngine(EngineConfig(db_path=Path("sessions.db")))
    await engine.open()
    store = (await SessionStore.open(engine, StoreConfig(), hash_key)).unwrap()

    ctx = RequestContext(cookies=request.cookies)
    session, err = await store.get(ctx, "app")
    session.values["user_id"] = 42
    result = await store.save(ctx, session)
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from kvsession.codec.payload import PayloadCodec, PickleCodec
from kvsession.codec.record import decode_record, decode_values, encode_record
from kvsession.codec.securecookie import (
    TokenCodec,
    codecs_from_pairs,
    decode_multi,
    encode_multi,
    with_max_length,
)
from kvsession.core import constants as C
from kvsession.core.config import StoreConfig
from kvsession.core.errors import ConfigError, SessionStoreError
from kvsession.core.types import Clock, Result, Ok, Err, system_clock
from kvsession.session.context import SessionContext
from kvsession.session.identifier import generate_session_id
from kvsession.session.session import Session, SessionState
from kvsession.storage.bucket import BucketStore
from kvsession.storage.engine import KVEngine

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Session store backed by one bucket of a KVEngine.

    Build with SessionStore.open(); the codec tuple and configuration
    are fixed for the lifetime of the store.
    """

    __slots__ = ("_bucket", "_config", "_codecs", "_payload_codec", "_clock")

    def __init__(
        self,
        bucket: BucketStore,
        config: StoreConfig,
        codecs: Sequence[TokenCodec],
        payload_codec: PayloadCodec,
        clock: Clock = system_clock,
    ) -> None:
        self._bucket = bucket
        self._config = config
        self._codecs = tuple(codecs)
        self._payload_codec = payload_codec
        self._clock = clock

    @classmethod
    async def open(
        cls,
        engine: KVEngine,
        config: StoreConfig,
        *key_pairs: Optional[bytes],
        codecs: Optional[Sequence[TokenCodec]] = None,
        payload_codec: Optional[PayloadCodec] = None,
        clock: Clock = system_clock,
    ) -> Result[SessionStore, SessionStoreError]:
        """
        Create a store and make sure its bucket exists.

        Args:
            engine: open KV engine shared by the process.
            config: store configuration; an empty bucket name selects
                the default bucket.
            key_pairs: alternating hash and block keys, newest first.
                Ignored when `codecs` is given.
            codecs: prebuilt token codecs, newest first.
            payload_codec: session values codec (pickle by default).
            clock: time source in Unix seconds.
        """
        config = config.with_defaults()
        valid = config.validate()
        if valid.is_err():
            return Err(ConfigError.invalid("store", valid.error))

        if codecs is None:
            try:
                built = codecs_from_pairs(*key_pairs, clock=clock)
            except ValueError as e:
                return Err(ConfigError.invalid("key_pairs", str(e)))
            codecs = with_max_length(built, config.max_length)

        bucket = BucketStore(engine, config.bucket_name)
        ensured = await bucket.ensure()
        if ensured.is_err():
            return ensured

        logger.info(
            "Session store ready",
            extra={
                "bucket": config.bucket_name.decode("utf-8", "replace"),
                "codecs": len(codecs),
            },
        )
        return Ok(cls(
            bucket=bucket,
            config=config,
            codecs=codecs,
            payload_codec=payload_codec or PickleCodec(),
            clock=clock,
        ))

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def codecs(self) -> tuple[TokenCodec, ...]:
        return self._codecs

    @property
    def bucket(self) -> BucketStore:
        return self._bucket

    # -------------------------------------------------------------------------
    # Request-level API
    # -------------------------------------------------------------------------
    async def get(
        self,
        ctx: SessionContext,
        name: str,
    ) -> tuple[Session, Optional[SessionStoreError]]:
        """Session for name, shared with every other get() in this request."""
        return await ctx.registry.get(self, ctx, name)

    async def new(
        self,
        ctx: SessionContext,
        name: str,
    ) -> tuple[Session, Optional[SessionStoreError]]:
        """
        Fresh handle for name, bypassing the registry.

        The handle is always returned. A token that fails to decode, or a
        record that fails to load, is reported as the second element
        while the handle stays marked new.
        """
        session = Session(name, options=ctx.options)
        token = ctx.get_cookie(name)
        if not token:
            session.state = SessionState.NEW
            return session, None

        decoded = decode_multi(name, token, self._codecs, ctx.options.max_age)
        if decoded.is_err():
            logger.debug(
                "Session token rejected",
                extra={"session_name": name, "code": decoded.error.code.name},
            )
            session.state = SessionState.NEW
            return session, decoded.error

        session.id = decoded.unwrap()
        loaded = await self.load(session)
        session.is_new = not (loaded.is_ok() and loaded.unwrap())
        if loaded.is_err():
            session.state = SessionState.NEW
            return session, loaded.error
        return session, None

    async def reload(
        self,
        ctx: SessionContext,
        session: Session,
    ) -> Result[None, SessionStoreError]:
        """Re-read the record behind an existing handle."""
        loaded = await self.load(session)
        session.is_new = not (loaded.is_ok() and loaded.unwrap())
        return loaded.map(lambda _: None)

    async def save(
        self,
        ctx: SessionContext,
        session: Session,
    ) -> Result[None, SessionStoreError]:
        """
        Persist the handle and write its token to the context.

        A negative max age deletes the record and writes a clearing
        cookie instead. On any failure no token is written.
        """
        if session.options.max_age < 0:
            deleted = await self.delete(session)
            ctx.set_cookie(session.name, "", session.options)
            return deleted

        if not session.id:
            session.id = generate_session_id()

        stored = await self._write(session)
        if stored.is_err():
            return stored

        encoded = encode_multi(session.name, session.id, self._codecs)
        if encoded.is_err():
            return encoded

        ctx.set_cookie(session.name, encoded.unwrap(), session.options)
        session.state = SessionState.SAVED
        logger.debug(
            "Session saved",
            extra={"session_name": session.name, "session_id_prefix": session.id[:8]},
        )
        return Ok(None)

    # -------------------------------------------------------------------------
    # Record-level API
    # -------------------------------------------------------------------------
    async def load(self, session: Session) -> Result[bool, SessionStoreError]:
        """
        Load the record for session.id into session.values.

        Returns Ok(True) when a fresh record was found, Ok(False) when it
        is absent or expired (expired records are deleted here), and Err
        when the store or the record cannot be read.
        """
        fetched = await self._bucket.get(session.id)
        if fetched.is_err():
            return fetched

        data = fetched.unwrap()
        if data is None:
            session.state = SessionState.NEW
            return Ok(False)

        decoded = decode_record(data)
        if decoded.is_err():
            return decoded
        record = decoded.unwrap()

        now = self._clock()
        if record.is_expired(now):
            deleted = await self._bucket.delete_if(
                session.id,
                lambda current: _still_expired(current, now),
            )
            if deleted.is_err():
                return deleted
            if not deleted.unwrap():
                # Replaced or removed since the read; judge the current record
                return await self.load(session)
            logger.debug(
                "Expired session removed on read",
                extra={"session_name": session.name, "expired_at": record.expires_at},
            )
            session.state = SessionState.NEW
            return Ok(False)

        values = decode_values(record, self._payload_codec)
        if values.is_err():
            return values

        session.values = values.unwrap()
        session.state = SessionState.LOADED
        return Ok(True)

    async def delete(self, session: Session) -> Result[None, SessionStoreError]:
        """Remove the record behind the handle."""
        removed = await self.remove(session.id)
        if removed.is_ok():
            session.state = SessionState.DELETED
        return removed

    async def remove(self, session_id: str) -> Result[None, SessionStoreError]:
        """Remove a record by id. Unknown ids are not an error."""
        if not session_id:
            return Ok(None)
        removed = await self._bucket.delete(session_id)
        if removed.is_ok():
            logger.debug("Session removed", extra={"session_id_prefix": session_id[:8]})
        return removed

    async def _write(self, session: Session) -> Result[None, SessionStoreError]:
        max_age = session.options.max_age or C.DEFAULT_MAX_AGE
        encoded = encode_record(
            session.values,
            created_at=int(self._clock()),
            max_age=max_age,
            payload_codec=self._payload_codec,
            compression_threshold=self._config.compression_threshold_bytes,
        )
        if encoded.is_err():
            return encoded
        return await self._bucket.put(session.id, encoded.unwrap())


def _still_expired(data: bytes, now: float) -> bool:
    """Expiry re-check on bytes read inside the deleting transaction."""
    decoded = decode_record(data)
    return decoded.is_ok() and decoded.unwrap().is_expired(now)
