"""
Tessera Sessions - Session Engine.

The SessionEngine orchestrates the session lifecycle of a request:
1. Recovery - Extract and verify the session ID from the cookie
2. Resolution - Load the record from the store, or generate a new session
3. Binding - Install a SessionHandle on the ASGI scope
4. Emission - Append the signed cookie when the response starts
5. Commit - Save, touch or destroy when the response ends

The engine is app-scoped. Everything that belongs to one request (the
original ID and fingerprint, the saved fingerprint, the latches) lives in
a request-scoped SessionTracker returned by ``SessionEngine.load()``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, MutableMapping, TYPE_CHECKING

from tessera.faults import FaultContext
from tessera.request import Request

from .cookie import SessionCookie
from .core import Session
from .faults import (
    SessionCommitFault,
    SessionNotFoundFault,
    SessionStoreUnavailableFault,
    hash_session_id,
)
from .handle import SessionHandle
from .policy import SessionPolicy
from .store import MemoryStore, SessionStore, create_store
from .transport import CookieTransport, SessionTransport

if TYPE_CHECKING:
    from tessera._datastructures import Headers
    from tessera.config import ConfigLoader


PRODUCTION_MODES = ("prod", "production")

MEMORY_STORE_WARNING = (
    "MemoryStore is not designed for a production environment: it does not "
    "persist sessions across restarts and is not shared between processes."
)

ErrorHandler = Callable[[FaultContext], Any]


# ============================================================================
# SessionEngine - Lifecycle Orchestrator
# ============================================================================

class SessionEngine:
    """
    Session lifecycle orchestrator.

    Architecture:
        SessionEngine is app-scoped (one per middleware)
        SessionTracker and SessionHandle are request-scoped

    Example:
        >>> engine = SessionEngine(
        ...     SessionPolicy(secrets="keyboard cat", resave=False, save_uninitialized=False),
        ...     store=MemoryStore(),
        ... )
        >>> tracker = await engine.load(scope)
        >>> # ... handler mutates scope["session"] ...
        >>> await tracker.commit()
    """

    def __init__(
        self,
        policy: SessionPolicy,
        store: SessionStore | None = None,
        *,
        transport: SessionTransport | None = None,
        mode: str | None = None,
        on_error: ErrorHandler | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize session engine.

        Args:
            policy: Session policy (defines behavior)
            store: Session store (defaults to a MemoryStore)
            transport: Session transport (defaults to a signed CookieTransport)
            mode: Runtime mode; defaults to the ``TESSERA_ENV`` variable
            on_error: Receives a FaultContext for every store error raised
                while finalizing a response. Defaults to logging it.
            logger: Optional logger
        """
        self.policy = policy
        self.store = store if store is not None else MemoryStore()
        self.transport = transport if transport is not None else CookieTransport(policy)
        self.logger = logger or logging.getLogger("tessera.sessions")
        self.on_error = on_error or self._log_commit_fault
        self.mode = (mode or os.environ.get("TESSERA_ENV") or "dev").lower()

        if self.mode in PRODUCTION_MODES and isinstance(self.store, MemoryStore):
            self.logger.warning(MEMORY_STORE_WARNING)

    @classmethod
    def from_config(cls, config: ConfigLoader, **kwargs) -> SessionEngine:
        """
        Build an engine from the ``sessions`` section of a ConfigLoader.

        Keyword arguments (``store``, ``on_error``, ...) are passed through
        and win over the configuration.
        """
        session_config = config.get_session_config()
        if kwargs.get("store") is None:
            kwargs["store"] = create_store(session_config.get("store"))
        kwargs.setdefault("mode", config.runtime_mode())
        return cls(SessionPolicy.from_dict(session_config), **kwargs)

    @property
    def connected(self) -> bool:
        return self.store.connected

    # ========================================================================
    # Session creation
    # ========================================================================

    def create_session(self, request: Request) -> Session:
        """Build a new, unsaved session with a fresh identifier and cookie."""
        cookie_policy = self.policy.cookie
        if cookie_policy.secure_auto:
            secure = request.is_secure()
        else:
            secure = cookie_policy.secure

        return Session(
            self.policy.id_generator(request),
            store=self.store,
            cookie=SessionCookie.from_policy(cookie_policy, secure=secure),
        )

    # ========================================================================
    # Recovery + Resolution
    # ========================================================================

    async def load(self, scope: MutableMapping[str, Any]) -> SessionTracker | None:
        """
        Resolve the session for a request and install it on the scope.

        Returns:
            The request's tracker, or None when the request is served
            without a session (store disconnected, path outside the cookie
            path, store unavailable)

        Raises:
            Any store error other than "not found" or "unavailable"
        """
        if not self.store.connected:
            self.logger.debug("store is disconnected")
            return None

        request = Request(scope, trust_proxy=self.policy.trust_proxy)
        if not self.transport.matches_path(request.path):
            return None

        cookie_id = self.transport.extract(request)
        tracker = SessionTracker(self, scope, request, cookie_id)

        if not cookie_id:
            self.logger.debug("no SID sent, generating session")
            tracker.generate()
            return tracker

        self.logger.debug("fetching %s", hash_session_id(cookie_id))
        try:
            record = await self.store.get(cookie_id)
        except SessionNotFoundFault:
            record = None
        except SessionStoreUnavailableFault as e:
            self.logger.warning("Session store unavailable, serving without session: %s", e.message)
            scope.pop("session_store", None)
            scope.pop("session_id", None)
            return None

        if record is None:
            self.logger.debug("no session found")
            tracker.generate()
        else:
            self.logger.debug("session found")
            tracker.inflate(cookie_id, record)

        return tracker

    # ========================================================================
    # Error channel
    # ========================================================================

    def _log_commit_fault(self, context: FaultContext) -> None:
        cause = context.cause
        exc_info = (type(cause), cause, cause.__traceback__) if cause is not None else None
        self.logger.error(
            "%s (trace_id=%s, route=%s)",
            context.fault,
            context.trace_id,
            context.route,
            exc_info=exc_info,
        )


# ============================================================================
# SessionTracker - Per-request State
# ============================================================================

class SessionTracker:
    """
    Change tracking and finalization for one request.

    Attributes:
        cookie_id: Verified ID the client sent (None if none)
        original_id: ID of the session as generated or loaded
        original_hash: Fingerprint at generation or load time
        saved_hash: Fingerprint of the last known stored contents
        touched: Whether the expiry was already refreshed this request
    """

    def __init__(
        self,
        engine: SessionEngine,
        scope: MutableMapping[str, Any],
        request: Request,
        cookie_id: str | None = None,
    ):
        self.engine = engine
        self.policy = engine.policy
        self.store = engine.store
        self.scope = scope
        self.request = request

        self.cookie_id = cookie_id
        self.original_id: str | None = None
        self.original_hash: str | None = None
        self.saved_hash: str | None = None
        self.touched = False

        self._cookie_evaluated = False
        self._finalized = False

        scope["session_store"] = self.store
        scope["session_id"] = cookie_id

    # ========================================================================
    # Scope access
    # ========================================================================

    @property
    def session_id(self) -> Any:
        """Current ID as seen by the handler (may have been tampered with)."""
        return self.scope.get("session_id")

    @property
    def session(self) -> Session | None:
        """Current Session entity, or None when the handler unset it."""
        current = self.scope.get("session")
        if isinstance(current, SessionHandle):
            return current.session
        if isinstance(current, Session):
            return current
        return None

    def install(self, session: Session) -> SessionHandle:
        """Wrap ``session`` in a fresh handle and make it the active session."""
        self._resolve_secure(session)
        handle = SessionHandle(self, session)
        self.scope["session"] = handle
        self.scope["session_id"] = session.id
        return handle

    def _resolve_secure(self, session: Session) -> None:
        # "auto" follows the current connection, whatever the record holds
        if self.policy.cookie.secure_auto:
            session.cookie.secure = self.request.is_secure()

    # ========================================================================
    # Generation / inflation
    # ========================================================================

    def generate(self) -> SessionHandle:
        handle = self.install(self.engine.create_session(self.request))
        self.original_id = handle.id
        self.original_hash = handle.fingerprint()
        return handle

    def inflate(self, session_id: str, record: dict[str, Any]) -> SessionHandle:
        handle = self.install(Session.from_record(session_id, record, store=self.store))
        self.original_id = session_id
        self.original_hash = handle.fingerprint()

        if not self.policy.resave:
            self.saved_hash = self.original_hash

        return handle

    async def regenerate(self) -> SessionHandle:
        """
        Destroy the current session and install a new one.

        The originals are left untouched, so the new session counts as
        modified: it is saved and its cookie is sent.
        """
        current = self.session
        if current is not None:
            self.engine.logger.debug("regenerating %s", hash_session_id(current.id))
            await self.store.destroy(current.id)
        return self.install(self.engine.create_session(self.request))

    async def destroy(self) -> None:
        current = self.session
        self.scope["session"] = None
        if current is not None:
            self.engine.logger.debug("destroying %s", hash_session_id(current.id))
            await self.store.destroy(current.id)

    # ========================================================================
    # Predicates
    # ========================================================================

    def is_modified(self, session: Session) -> bool:
        return self.original_id != session.id or self.original_hash != session.fingerprint()

    def is_saved(self, session: Session) -> bool:
        return self.original_id == session.id and self.saved_hash == session.fingerprint()

    def _has_valid_id(self) -> bool:
        if not isinstance(self.session_id, str):
            self.engine.logger.debug("session ignored because of bogus session_id %r", self.session_id)
            return False
        return True

    def should_destroy(self) -> bool:
        return (
            bool(self.session_id)
            and self.policy.unset_destroy
            and self.scope.get("session") is None
        )

    def should_save(self) -> bool:
        session = self.session
        if session is None or not self._has_valid_id():
            return False

        if not self.policy.save_uninitialized and self.cookie_id != self.session_id:
            return self.is_modified(session)
        return not self.is_saved(session)

    def should_touch(self) -> bool:
        if self.session is None or not self._has_valid_id():
            return False
        return self.cookie_id == self.session_id and not self.should_save()

    def should_set_cookie(self) -> bool:
        session = self.session
        if session is None or not isinstance(self.session_id, str):
            return False

        if self.cookie_id != self.session_id:
            return self.policy.save_uninitialized or self.is_modified(session)
        return self.policy.rolling or (
            session.cookie.expires is not None and self.is_modified(session)
        )

    # ========================================================================
    # Response hooks
    # ========================================================================

    def touch_once(self, session: Session) -> None:
        if not self.touched:
            session.touch()
            self.touched = True

    def emit_cookie(self, headers: Headers) -> bool:
        """
        Append the session cookie to the response headers if it is due.

        Evaluated once per request; later calls return False.
        """
        if self._cookie_evaluated:
            return False
        self._cookie_evaluated = True

        session = self.session
        if session is None:
            self.engine.logger.debug("no session")
            return False

        if not self.should_set_cookie():
            return False

        if session.cookie.secure and not self.request.is_secure():
            self.engine.logger.debug("not secured")
            return False

        self.touch_once(session)
        self.engine.transport.inject(headers, session.id, session.cookie)
        return True

    async def commit(self) -> bool:
        """
        Persist the outcome of the request.

        Runs at most once per request: later calls return False without
        doing anything. Store errors never escape; they are delivered to
        the engine's error channel as SessionCommitFault.

        Returns:
            True on the first call
        """
        if self._finalized:
            return False
        self._finalized = True

        if self.should_destroy():
            self.engine.logger.debug("destroying")
            await self._store_call("destroy", self.store.destroy(self.session_id))
            return True

        session = self.session
        if session is None:
            self.engine.logger.debug("no session")
            return True

        self.touch_once(session)

        if self.should_save():
            self.engine.logger.debug("saving %s", hash_session_id(session.id))
            await self._store_call("save", self._save(session))
        elif self.store.supports_touch and self.should_touch():
            self.engine.logger.debug("touching")
            await self._store_call("touch", self.store.touch(session.id, session.to_record()))

        return True

    async def _save(self, session: Session) -> None:
        await session.save()
        self.saved_hash = session.fingerprint()

    async def _store_call(self, operation: str, call: Awaitable[None]) -> None:
        """
        Wait for a commit store call.

        The call runs as its own task: cancelling the request stops the
        wait, not the write. Its outcome is handled by the task callback.
        """
        task = asyncio.ensure_future(call)
        session_id = self.session_id
        task.add_done_callback(lambda done: self._store_call_done(operation, session_id, done))
        await asyncio.wait({task})

    def _store_call_done(self, operation: str, session_id: Any, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.report(SessionCommitFault(operation, str(session_id), error))
        else:
            self.engine.logger.debug("%s done for %s", operation, hash_session_id(session_id))

    def report(self, fault: SessionCommitFault) -> None:
        """Deliver a commit fault to the error channel on the next loop iteration."""
        context = FaultContext.capture(fault, route=self.request.path, cause=fault.cause)
        asyncio.get_running_loop().call_soon(self.engine.on_error, context)
