"""
Session Registry: Per-Request Deduplication of Named Sessions

A request may ask for the same named session many times. The registry
makes every call after the first return the same handle (and the same
load error, if any), so values mutated in one place are visible in all
others and the store is read once per name per request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from kvsession.core.errors import SessionStoreError
from kvsession.core.types import Result, Ok
from kvsession.session.session import Session

if TYPE_CHECKING:
    from kvsession.session.context import SessionContext
    from kvsession.session.store import SessionStore


@dataclass(slots=True)
class _RegistryEntry:
    store: SessionStore
    session: Session
    error: Optional[SessionStoreError]


class SessionRegistry:
    """Request-scoped cache of session handles, keyed by name."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, _RegistryEntry] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(
        self,
        store: SessionStore,
        ctx: SessionContext,
        name: str,
    ) -> tuple[Session, Optional[SessionStoreError]]:
        """Return the cached handle for name, creating it through store.new."""
        entry = self._entries.get(name)
        if entry is None:
            session, error = await store.new(ctx, name)
            entry = _RegistryEntry(store=store, session=session, error=error)
            self._entries[name] = entry
        return entry.session, entry.error

    async def save_all(self, ctx: SessionContext) -> Result[None, SessionStoreError]:
        """Save every registered session. Stops at the first failure."""
        for entry in self._entries.values():
            saved = await entry.store.save(ctx, entry.session)
            if saved.is_err():
                return saved
        return Ok(None)
