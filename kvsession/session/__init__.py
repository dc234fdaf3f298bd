"""
Session module: handle, transport context, registry, lifecycle store.

Provides:
- Session / SessionOptions / SessionState: per-request handle
- SessionContext / RequestContext: token transport capability
- SessionRegistry: per-request deduplication backing SessionStore.get
- SessionStore: load/save/delete lifecycle on the embedded engine
- Reaper: optional periodic sweep of expired records
"""

from kvsession.session.identifier import generate_session_id
from kvsession.session.session import (
    Session,
    SessionOptions,
    SessionState,
)
from kvsession.session.registry import SessionRegistry
from kvsession.session.context import (
    Cookie,
    RequestContext,
    SessionContext,
)
from kvsession.session.store import SessionStore
from kvsession.session.reaper import Reaper, ReapStats

__all__ = [
    "generate_session_id",
    "Session",
    "SessionOptions",
    "SessionState",
    "SessionRegistry",
    "Cookie",
    "RequestContext",
    "SessionContext",
    "SessionStore",
    "Reaper",
    "ReapStats",
]
