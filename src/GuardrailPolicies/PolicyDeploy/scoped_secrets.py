"""Scoped secret holders for the administrative password and OAuth2 material.

Secrets are kept in a mutable ``bytearray`` so the buffer can be overwritten
once the single call that needs it has returned.  Using a :class:`ScopedSecret`
as a context manager guarantees the buffer is cleared on every exit path.

Examples:
    >>> with ScopedSecret("s3cret") as secret:
    ...     secret.reveal()
    's3cret'
    >>> secret.is_cleared()
    True
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Union

__all__ = ["ScopedSecret", "Credential", "ClientRegistration", "AccessToken", "MASK"]

MASK = "***masked***"


class ScopedSecret:
    """Secret value that can be explicitly zeroed."""

    __slots__ = ("_buffer", "_cleared", "_lock")

    def __init__(self, value: Union[str, bytes, bytearray]) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._buffer = bytearray(value)
        self._cleared = False
        self._lock = threading.Lock()

    def reveal(self) -> str:
        """Return the plaintext value.

        Raises:
            ValueError: If the secret has already been cleared.
        """
        with self._lock:
            if self._cleared:
                raise ValueError("secret has already been cleared")
            return self._buffer.decode("utf-8")

    def clear(self) -> None:
        """Overwrite the buffer with zeros and mark the secret unusable."""
        with self._lock:
            for index in range(len(self._buffer)):
                self._buffer[index] = 0
            self._buffer = bytearray()
            self._cleared = True

    def is_cleared(self) -> bool:
        return self._cleared

    def __len__(self) -> int:
        return len(self._buffer)

    def __bool__(self) -> bool:
        return not self._cleared and len(self._buffer) > 0

    def __enter__(self) -> "ScopedSecret":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self._cleared else MASK
        return f"ScopedSecret({state})"

    __str__ = __repr__


@dataclass
class Credential:
    """Administrative username/password pair for a single run."""

    username: str
    password: ScopedSecret

    def discard(self) -> None:
        self.password.clear()


@dataclass
class ClientRegistration:
    """OAuth2 client provisioned by dynamic registration; never persisted."""

    client_id: str
    client_secret: ScopedSecret

    def discard(self) -> None:
        self.client_secret.clear()


@dataclass
class AccessToken:
    """Opaque bearer token shared read-only by every deployment in the run."""

    value: ScopedSecret
    token_type: str = "Bearer"
    expires_in: Optional[int] = None

    def authorization_header(self) -> str:
        return f"Bearer {self.value.reveal()}"

    def discard(self) -> None:
        self.value.clear()
