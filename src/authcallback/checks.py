"""Single-use storage for anti-forgery check values.

Before redirecting the browser to the provider, the application records a
``state``, a PKCE ``code_verifier`` and (for OpenID Connect) a ``nonce``.
The callback pipeline consumes each of them exactly once through the
:class:`CheckStore` interface.

:class:`MemoryCheckStore` is an in-process implementation. The browser only
holds an opaque handle in a cookie; the value itself stays on the server and
is removed atomically when it is used, so two callbacks replaying the same
cookies can never both obtain it.
"""

from __future__ import annotations

import secrets
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Mapping, Optional

from authcallback.models import CheckName, Cookie

COOKIE_NAMES: dict[str, str] = {
    "state": "authcallback.state",
    "pkce": "authcallback.pkce.code_verifier",
    "nonce": "authcallback.nonce",
}
"""Cookie carrying the handle for each check."""

DEFAULT_MAX_AGE = 15 * 60
"""Seconds a recorded check value stays usable."""


class CheckStore(ABC):
    """Issues and consumes single-use verification values bound to a flow."""

    @abstractmethod
    async def use(
        self,
        name: CheckName,
        cookies: Mapping[str, str],
        res_cookies: list[Cookie],
    ) -> Optional[str]:
        """Consume the recorded value for check *name*.

        Implementations must guarantee that a value is returned at most once,
        even when concurrent callbacks present the same cookies. Any cookie
        that has to be cleared on the response is appended to *res_cookies*.

        Returns:
            The recorded value, or ``None`` if there is none (never issued,
            expired, or already consumed).
        """
        ...


class MemoryCheckStore(CheckStore):
    """In-memory :class:`CheckStore` with atomic compare-and-clear consumption.

    Values that are issued but never used are swept out by :meth:`issue`, at
    most once per ``max_age`` seconds, so the store stays bounded by the
    values issued within roughly two ``max_age`` windows.

    Args:
        max_age: Seconds an issued value remains usable.
        token_factory: Produces cookie handles and default check values.
        clock: Monotonic clock used for expiry.
    """

    def __init__(
        self,
        max_age: int = DEFAULT_MAX_AGE,
        token_factory: Callable[[], str] = lambda: secrets.token_urlsafe(32),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_age = max_age
        self._token_factory = token_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._values: dict[tuple[str, str], tuple[str, float]] = {}
        self._next_sweep = clock() + max_age

    def __len__(self) -> int:
        return len(self._values)

    def issue(self, name: CheckName, value: Optional[str] = None) -> Cookie:
        """Record a value for check *name* and return the cookie to set.

        Args:
            name: The check the value belongs to.
            value: The value to record. A random one is generated if omitted;
                PKCE verifiers are expected to be passed in by the caller.

        Returns:
            The :class:`~authcallback.models.Cookie` holding the handle.
        """
        handle = self._token_factory()
        if value is None:
            value = self._token_factory()
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._purge_locked(now)
                self._next_sweep = now + self._max_age
            self._values[(name, handle)] = (value, now + self._max_age)
        return Cookie(name=COOKIE_NAMES[name], value=handle, max_age=self._max_age)

    async def use(
        self,
        name: CheckName,
        cookies: Mapping[str, str],
        res_cookies: list[Cookie],
    ) -> Optional[str]:
        cookie_name = COOKIE_NAMES[name]
        handle = cookies.get(cookie_name)
        if not handle:
            return None

        res_cookies.append(Cookie(name=cookie_name, value="", max_age=0))

        with self._lock:
            entry = self._values.pop((name, handle), None)
        if entry is None:
            return None
        value, expires = entry
        if expires <= self._clock():
            return None
        return value

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        # Caller holds self._lock.
        expired = [key for key, (_, exp) in self._values.items() if exp <= now]
        for key in expired:
            del self._values[key]
        return len(expired)
