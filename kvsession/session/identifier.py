"""Session identifier generation."""

from __future__ import annotations

import base64
import secrets

from kvsession.core import constants as C


def generate_session_id(entropy_bytes: int = C.SESSION_ID_ENTROPY_BYTES) -> str:
    """
    Random, cookie-safe session identifier.

    32 bytes from the OS CSPRNG rendered as unpadded base32, giving a
    52-character string over [A-Z2-7]. Uniqueness is probabilistic; ids
    are not checked against the store before insert. A failing
    randomness source raises and is never replaced by a weaker one.
    """
    raw = secrets.token_bytes(entropy_bytes)
    return base64.b32encode(raw).decode("ascii").rstrip("=")
