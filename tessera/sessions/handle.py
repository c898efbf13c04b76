"""
Tessera Sessions - Request-facing session handle.

A SessionHandle is what handlers find in ``scope["session"]``. It wraps
one Session entity and routes the lifecycle methods (save, reload,
regenerate, destroy) through the request's SessionTracker so that its
change tracking stays in step with what the handler did.

A new handle is built every time an entity is installed on the scope;
handles are never re-pointed at another entity.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, MutableMapping
from typing import Any, TYPE_CHECKING

from .faults import hash_session_id

if TYPE_CHECKING:
    from .cookie import SessionCookie
    from .core import Session
    from .engine import SessionTracker


logger = logging.getLogger("tessera.sessions")


class SessionHandle(MutableMapping):
    """
    Mapping view of the active session.

    Example:
        >>> session = scope["session"]
        >>> session["views"] = session.get("views", 0) + 1
        >>> session = await session.regenerate()  # after login
    """

    __slots__ = ("_tracker", "_session")

    def __init__(self, tracker: SessionTracker, session: Session):
        self._tracker = tracker
        self._session = session

    # ========================================================================
    # Entity access
    # ========================================================================

    @property
    def id(self) -> str:
        return self._session.id

    @property
    def cookie(self) -> SessionCookie:
        return self._session.cookie

    @property
    def session(self) -> Session:
        """The wrapped Session entity."""
        return self._session

    def fingerprint(self) -> str:
        return self._session.fingerprint()

    # ========================================================================
    # Mapping protocol
    # ========================================================================

    def __getitem__(self, key: str) -> Any:
        return self._session[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._session[key] = value

    def __delitem__(self, key: str) -> None:
        del self._session[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._session)

    def __len__(self) -> int:
        return len(self._session)

    def __repr__(self) -> str:
        return f"SessionHandle({self._session!r})"

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def touch(self) -> None:
        self._session.touch()

    def reset_max_age(self) -> None:
        self._session.reset_max_age()

    async def save(self) -> None:
        """
        Write the session to the store now.

        On success the current contents count as saved, so the response
        does not write them a second time.
        """
        logger.debug("saving %s", hash_session_id(self.id))
        await self._session.save()
        self._tracker.saved_hash = self._session.fingerprint()

    async def reload(self) -> SessionHandle:
        """
        Replace the session with its stored copy.

        Returns:
            The handle installed for the reloaded session. This handle
            keeps pointing at the old contents.

        Raises:
            SessionNotFoundFault: The stored copy no longer exists
        """
        logger.debug("reloading %s", hash_session_id(self.id))
        fresh = await self._session.reload()
        return self._tracker.install(fresh)

    async def regenerate(self) -> SessionHandle:
        """
        Destroy this session and install a new empty one under a new ID.

        Returns:
            The handle of the new session
        """
        return await self._tracker.regenerate()

    async def destroy(self) -> None:
        """Remove the session from the store and unset it for this request."""
        await self._tracker.destroy()
