"""
Session Handle: Per-Request View of a Stored Session

States:
    UNBOUND → created, no token examined yet
    NEW     → no valid token, or no fresh record behind it
    LOADED  → record found and not expired
    SAVED   → record written and token issued
    DELETED → record removed and token cleared

The handle is owned by the request. The store never keeps a reference
to it after a call returns.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any, Optional


class SessionState(Enum):
    """Lifecycle state of a session handle."""
    UNBOUND = auto()
    NEW = auto()
    LOADED = auto()
    SAVED = auto()
    DELETED = auto()

    @property
    def has_record(self) -> bool:
        """True when a stored record is known to back the handle."""
        return self in (SessionState.LOADED, SessionState.SAVED)


@dataclass(frozen=True)
class SessionOptions:
    """
    Per-session cookie options.

    max_age: seconds. Negative deletes the session on save; zero means a
    browser-session cookie and the store's default record TTL.
    """
    path: str = "/"
    domain: str = ""
    max_age: int = 0
    secure: bool = False
    http_only: bool = True
    same_site: str = "Lax"

    def with_max_age(self, max_age: int) -> SessionOptions:
        return replace(self, max_age=max_age)


class Session:
    """
    In-memory session handle.

    `values` is mutated freely by the caller between load and save.
    `id` is empty until the first save and never changes once set.
    `options` starts as a copy of the context defaults; save() reads it
    from the handle, so per-session changes such as a logout
    (`with_max_age(-1)`) are made here.
    """

    __slots__ = ("_id", "name", "values", "is_new", "options", "state")

    def __init__(
        self,
        name: str,
        options: Optional[SessionOptions] = None,
        values: Optional[dict[Any, Any]] = None,
    ) -> None:
        self._id = ""
        self.name = name
        self.values: dict[Any, Any] = values if values is not None else {}
        self.is_new = True
        self.options = options or SessionOptions()
        self.state = SessionState.UNBOUND

    @property
    def id(self) -> str:
        return self._id

    @id.setter
    def id(self, value: str) -> None:
        if self._id and value != self._id:
            raise ValueError("session id cannot change once assigned")
        self._id = value

    def __repr__(self) -> str:
        return (
            f"Session(name={self.name!r}, id={self._id[:8]!r}, "
            f"is_new={self.is_new}, state={self.state.name})"
        )
