"""
Session Context: Token Transport Capability

The store reads the incoming token for a named session from the request
and writes the outgoing token (or an empty, clearing value) to the
response. Any object satisfying SessionContext can be used; web
frameworks adapt their request/response pair to it.

RequestContext is a framework-free implementation holding incoming
cookies and collecting outgoing ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, runtime_checkable

from kvsession.session.registry import SessionRegistry
from kvsession.session.session import SessionOptions


@runtime_checkable
class SessionContext(Protocol):
    """What the session store needs from a request/response pair."""

    @property
    def options(self) -> SessionOptions:
        ...

    @property
    def registry(self) -> SessionRegistry:
        ...

    def get_cookie(self, name: str) -> Optional[str]:
        ...

    def set_cookie(self, name: str, value: str, options: SessionOptions) -> None:
        ...


@dataclass(frozen=True)
class Cookie:
    """Outgoing cookie as it would be written to a Set-Cookie header."""
    name: str
    value: str
    path: str
    domain: str
    max_age: int
    secure: bool
    http_only: bool
    same_site: str

    @property
    def is_clearing(self) -> bool:
        """An empty value with a negative max age tells the client to drop it."""
        return self.value == "" and self.max_age < 0

    def header_value(self) -> str:
        parts = [f"{self.name}={self.value}", f"Path={self.path}"]
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.max_age > 0:
            parts.append(f"Max-Age={self.max_age}")
        elif self.max_age < 0:
            parts.append("Max-Age=0")
        if self.secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")
        return "; ".join(parts)


class RequestContext:
    """
    In-memory SessionContext.

    Usage:
        ctx = RequestContext(cookies={"app": token})
        session, err = await store.get(ctx, "app")
        session.values["user"] = 42
        await store.save(ctx, session)
        ctx.response_cookies["app"].value  # new token

    `options` are the defaults copied onto each handle by new(). They are
    fixed for the request; change a single session through its handle:

        session.options = session.options.with_max_age(-1)  # log out
    """

    __slots__ = ("_cookies", "_options", "_registry", "response_cookies")

    def __init__(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        options: Optional[SessionOptions] = None,
    ) -> None:
        self._cookies = dict(cookies or {})
        self._options = options or SessionOptions()
        self._registry = SessionRegistry()
        self.response_cookies: dict[str, Cookie] = {}

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def get_cookie(self, name: str) -> Optional[str]:
        return self._cookies.get(name)

    def set_cookie(self, name: str, value: str, options: SessionOptions) -> None:
        max_age = options.max_age
        if value == "" and max_age >= 0:
            max_age = -1
        self.response_cookies[name] = Cookie(
            name=name,
            value=value,
            path=options.path,
            domain=options.domain,
            max_age=max_age,
            secure=options.secure,
            http_only=options.http_only,
            same_site=options.same_site,
        )
