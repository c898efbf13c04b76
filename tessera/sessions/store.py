"""
Tessera Sessions - Session storage abstraction.

Defines the SessionStore base class and the in-process reference store:
- SessionStore: async get/set/destroy, optional touch, readiness events
- MemoryStore: in-memory storage (dev/testing)

Stores only persist records. They do NOT decide when to save; that is the
SessionEngine's job.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from .core import Session
from .faults import (
    SessionConfigFault,
    SessionStoreCorruptedFault,
    SessionStoreUnavailableFault,
)


logger = logging.getLogger("tessera.sessions.store")

StoreEventHandler = Callable[[], Any]


# ============================================================================
# SessionStore - Base Class
# ============================================================================

class SessionStore(ABC):
    """
    Abstract session storage interface.

    Records are JSON-compatible dicts as produced by ``Session.to_record()``.
    All data methods are coroutines and must be safe to call from many
    concurrent requests.

    Readiness:
        A store owns its ``connected`` state. Backends call
        ``mark_disconnected()`` when they lose their connection and
        ``mark_connected()`` when it comes back; listeners registered with
        ``on("disconnect", ...)`` / ``on("connect", ...)`` are notified.
        While disconnected, requests are served without sessions.
    """

    name = "store"

    def __init__(self) -> None:
        self._connected = True
        self._listeners: dict[str, list[StoreEventHandler]] = {}

    # ========================================================================
    # Data contract
    # ========================================================================

    @abstractmethod
    async def get(self, session_id: str) -> dict[str, Any] | None:
        """
        Fetch a record.

        Returns:
            The record, or None if missing or expired

        Raises:
            SessionStoreUnavailableFault: Store is disconnected
        """

    @abstractmethod
    async def set(self, session_id: str, record: dict[str, Any]) -> None:
        """Insert or replace a record."""

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """Remove a record. Removing a missing record is not an error."""

    # Optional capability. Subclasses that can refresh an expiry without
    # rewriting the record override this.
    async def touch(self, session_id: str, record: dict[str, Any]) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not support touch")

    @property
    def supports_touch(self) -> bool:
        return type(self).touch is not SessionStore.touch

    async def load(self, session_id: str) -> Session | None:
        """Fetch a record and inflate it into a Session bound to this store."""
        record = await self.get(session_id)
        if record is None:
            return None
        return Session.from_record(session_id, record, store=self)

    async def shutdown(self) -> None:
        """Release backend resources."""

    # ========================================================================
    # Readiness
    # ========================================================================

    @property
    def connected(self) -> bool:
        return self._connected

    def on(self, event: str, handler: StoreEventHandler) -> None:
        """Register a listener for ``"connect"`` or ``"disconnect"``."""
        self._listeners.setdefault(event, []).append(handler)

    def emit(self, event: str) -> None:
        for handler in list(self._listeners.get(event, ())):
            handler()

    def mark_disconnected(self) -> None:
        self._connected = False
        logger.warning("Session store %r disconnected", self.name)
        self.emit("disconnect")

    def mark_connected(self) -> None:
        self._connected = True
        logger.info("Session store %r connected", self.name)
        self.emit("connect")

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise SessionStoreUnavailableFault(store_name=self.name, cause="disconnected")


# ============================================================================
# MemoryStore - In-Memory Storage
# ============================================================================

class MemoryStore(SessionStore):
    """
    In-memory session storage for development and testing.

    Features:
    - Records kept as JSON strings (callers never share mutable state)
    - Lazy expiry from the record's cookie, plus optional cleanup sweep
    - Optional max session limit (LRU eviction)

    NOT suitable for production (no persistence across restarts, not shared
    between processes).

    Example:
        >>> store = MemoryStore()
        >>> await store.set("abc", {"cookie": {...}, "cart": 3})
        >>> (await store.get("abc"))["cart"]
        3
    """

    name = "memory"

    def __init__(self, max_sessions: int | None = None):
        """
        Initialize memory store.

        Args:
            max_sessions: Maximum records to keep (LRU eviction); None = unbounded
        """
        super().__init__()
        self.max_sessions = max_sessions
        self._sessions: dict[str, str] = {}  # insertion order doubles as LRU order
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> dict[str, Any] | None:
        self._ensure_connected()
        async with self._lock:
            record = self._get_live(session_id)
            if record is not None:
                # Move to the most recently used end
                self._sessions[session_id] = self._sessions.pop(session_id)
            return record

    async def set(self, session_id: str, record: dict[str, Any]) -> None:
        self._ensure_connected()
        payload = json.dumps(record)
        async with self._lock:
            if session_id in self._sessions:
                del self._sessions[session_id]
            elif self.max_sessions is not None and len(self._sessions) >= self.max_sessions:
                self._evict_lru()
            self._sessions[session_id] = payload

    async def destroy(self, session_id: str) -> None:
        self._ensure_connected()
        async with self._lock:
            self._sessions.pop(session_id, None)

    async def touch(self, session_id: str, record: dict[str, Any]) -> None:
        """Replace only the stored cookie (and so the expiry) of a live record."""
        self._ensure_connected()
        async with self._lock:
            current = self._get_live(session_id)
            if current is None:
                return
            current["cookie"] = record.get("cookie")
            self._sessions[session_id] = json.dumps(current)

    async def all(self) -> dict[str, dict[str, Any]]:
        """All live records keyed by session ID."""
        self._ensure_connected()
        async with self._lock:
            result = {}
            for session_id in list(self._sessions):
                record = self._get_live(session_id)
                if record is not None:
                    result[session_id] = record
            return result

    async def length(self) -> int:
        return len(await self.all())

    async def clear(self) -> None:
        self._ensure_connected()
        async with self._lock:
            self._sessions.clear()

    async def cleanup_expired(self) -> int:
        """Remove expired records. Returns how many were removed."""
        async with self._lock:
            before = len(self._sessions)
            for session_id in list(self._sessions):
                self._get_live(session_id)
            removed = before - len(self._sessions)
        if removed:
            logger.debug("Removed %d expired sessions", removed)
        return removed

    async def shutdown(self) -> None:
        async with self._lock:
            self._sessions.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_sessions": len(self._sessions),
            "max_sessions": self.max_sessions,
        }

    # ========================================================================
    # Internals (call with the lock held)
    # ========================================================================

    def _get_live(self, session_id: str) -> dict[str, Any] | None:
        payload = self._sessions.get(session_id)
        if payload is None:
            return None

        try:
            record = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SessionStoreCorruptedFault(message=f"Session record corrupted: {e}")

        expires = (record.get("cookie") or {}).get("expires")
        if expires:
            expires_at = datetime.fromisoformat(expires)
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                del self._sessions[session_id]
                return None

        return record

    def _evict_lru(self) -> None:
        oldest_id = next(iter(self._sessions), None)
        if oldest_id is not None:
            del self._sessions[oldest_id]
            logger.debug("Evicted least recently used session")


# ============================================================================
# Factory
# ============================================================================

def create_store(config: dict[str, Any] | None = None) -> SessionStore:
    """
    Build a store from the ``sessions.store`` configuration section.

    Example:
        >>> create_store({"type": "memory", "max_sessions": 10000})
    """
    config = config or {}
    store_type = config.get("type", "memory")

    if store_type == "memory":
        return MemoryStore(max_sessions=config.get("max_sessions"))

    raise SessionConfigFault("store.type", f"unknown store type '{store_type}'")
