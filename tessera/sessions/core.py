"""
Tessera Sessions - Core types.

Defines the session entity and its content fingerprint:
- Session: mutable key/value state + cookie + identifier, bound to a store
- canonical_dumps / fingerprint: order-stable change detection
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterator, MutableMapping
from typing import Any, TYPE_CHECKING

from .cookie import SessionCookie
from .faults import SessionInvalidFault, SessionNotFoundFault

if TYPE_CHECKING:
    from .store import SessionStore


RESERVED_KEYS = frozenset({"cookie"})


# ============================================================================
# Fingerprinting
# ============================================================================

def _string_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _string_keys(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_string_keys(item) for item in value]
    return value


def canonical_dumps(data: Any) -> str:
    """
    Serialize session data canonically.

    Keys are sorted so that two mappings with the same items always produce
    the same string, whatever order the keys were inserted in. Keys are
    compared as strings, as JSON stores them, so mixed key types still sort.
    Values JSON cannot represent fall back to ``str()``.
    """
    return json.dumps(_string_keys(data), sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(data: Any) -> str:
    """Content digest of session data (hex SHA-1 of the canonical form)."""
    return hashlib.sha1(canonical_dumps(data).encode("utf-8")).hexdigest()


# ============================================================================
# Session - Core Data Object
# ============================================================================

class Session(MutableMapping):
    """
    Server-held session state.

    Behaves like a dict of application data. The cookie descriptor and the
    identifier live outside that dict, so cookie changes (expiry refreshes,
    secure resolution) never count as data changes.

    Example:
        >>> session = Session("abc", store=store, cookie=SessionCookie())
        >>> session["cart_items"] = 3
        >>> await session.save()
    """

    __slots__ = ("id", "cookie", "store", "data")

    def __init__(
        self,
        session_id: str,
        *,
        store: SessionStore | None = None,
        cookie: SessionCookie | None = None,
        data: dict[str, Any] | None = None,
    ):
        self.id = session_id
        self.store = store
        self.cookie = cookie if cookie is not None else SessionCookie()
        self.data: dict[str, Any] = {}
        if data:
            self.update(data)

    # ========================================================================
    # Mapping protocol
    # ========================================================================

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in RESERVED_KEYS:
            raise KeyError(f"'{key}' is reserved and cannot be used as a session key")
        self.data[key] = value

    def __delitem__(self, key: str) -> None:
        del self.data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, keys={sorted(self.data)!r})"

    # ========================================================================
    # State
    # ========================================================================

    def fingerprint(self) -> str:
        """Digest of application data only (the cookie is excluded)."""
        return fingerprint(self.data)

    def touch(self) -> None:
        """Mark the session as used: restarts the cookie expiry window."""
        self.reset_max_age()

    def reset_max_age(self) -> None:
        self.cookie.reset_max_age()

    # ========================================================================
    # Serialization
    # ========================================================================

    def to_record(self) -> dict[str, Any]:
        """Store record: application data plus the cookie data."""
        record = dict(self.data)
        record["cookie"] = self.cookie.data
        return record

    @classmethod
    def from_record(
        cls,
        session_id: str,
        record: dict[str, Any],
        *,
        store: SessionStore | None = None,
    ) -> Session:
        """Inflate a session from a store record."""
        data = {key: value for key, value in record.items() if key not in RESERVED_KEYS}
        cookie_data = record.get("cookie")
        cookie = SessionCookie.from_dict(cookie_data) if cookie_data else SessionCookie()
        return cls(session_id, store=store, cookie=cookie, data=data)

    # ========================================================================
    # Store operations
    # ========================================================================

    def _require_store(self) -> SessionStore:
        if self.store is None:
            raise SessionInvalidFault(message="Session is not bound to a store")
        return self.store

    async def save(self) -> None:
        """Write the session to its store."""
        await self._require_store().set(self.id, self.to_record())

    async def reload(self) -> Session:
        """
        Fetch the stored copy of this session.

        Returns:
            A new Session built from the store record

        Raises:
            SessionNotFoundFault: The record no longer exists
        """
        store = self._require_store()
        record = await store.get(self.id)
        if record is None:
            raise SessionNotFoundFault(session_id=self.id, message="Failed to load session")
        return Session.from_record(self.id, record, store=store)

    async def destroy(self) -> None:
        """Remove the session from its store."""
        await self._require_store().destroy(self.id)
