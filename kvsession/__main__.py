#!/usr/bin/env python3
"""
Embedded Session Store

Main entry point demonstrating a full request cycle and a reaper sweep.

Usage:
    python -m kvsession

    # Or with custom config
    KVSESSION_DB_PATH=/tmp/sessions.db KVSESSION_LOG_JSON=false python -m kvsession
"""

from __future__ import annotations

import asyncio
import secrets
import sys

from kvsession.core.config import KVSessionConfig
from kvsession.observability.logging import LogLevel, StructuredLogger, setup_logging
from kvsession.session.context import RequestContext
from kvsession.session.reaper import Reaper
from kvsession.session.store import SessionStore
from kvsession.storage.engine import KVEngine

logger = StructuredLogger("kvsession.demo")


async def demo(config: KVSessionConfig) -> int:
    engine = KVEngine(config.engine)
    opened = await engine.open()
    if opened.is_err():
        logger.error(f"Engine unavailable: {opened.error}")
        return 1

    try:
        hash_key = secrets.token_bytes(32)
        block_key = secrets.token_bytes(32)
        store_result = await SessionStore.open(engine, config.store, hash_key, block_key)
        if store_result.is_err():
            logger.error(f"Store unavailable: {store_result.error}")
            return 1
        store = store_result.unwrap()

        # First request: no cookie, new session
        first = RequestContext()
        with logger.context(request_id="demo-1"):
            session, err = await store.get(first, "demo")
            session.values["visits"] = 1
            saved = await store.save(first, session)
        if saved.is_err():
            logger.error(f"Save failed: {saved.error}")
            return 1
        token = first.response_cookies["demo"].value
        print(f"✓ Saved new session {session.id[:8]}… token length {len(token)}")

        # Second request: cookie present, session loaded
        second = RequestContext(cookies={"demo": token})
        with logger.context(request_id="demo-2"):
            session, err = await store.get(second, "demo")
            logger.info("Session loaded", is_new=session.is_new)
        if err is not None:
            logger.error(f"Load failed: {err}")
            return 1
        print(f"✓ Loaded session is_new={session.is_new} values={session.values}")

        swept = await Reaper(engine, store.config.bucket_name, config.reaper).reap_once()
        if swept.is_ok():
            stats = swept.unwrap()
            print(f"✓ Reaper scanned {stats.scanned}, deleted {stats.deleted}")
        return 0
    finally:
        await engine.close()


def main() -> None:
    config_result = KVSessionConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    setup_logging(
        level=LogLevel.parse(config.observability.log_level),
        json_output=config.observability.log_json,
    )
    sys.exit(asyncio.run(demo(config)))


if __name__ == "__main__":
    main()
