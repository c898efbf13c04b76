"""
Session Middleware - Integrates SessionEngine with the ASGI request lifecycle.

This middleware orchestrates the session lifecycle of each HTTP request:
1. Resolve the session before the application runs
2. Expose it on the scope (``session``, ``session_id``, ``session_store``)
3. Append the session cookie when the response starts
4. Commit the session before the final body chunk is forwarded
"""

from typing import Any, Callable, Optional
import logging

from tessera._datastructures import Headers
from tessera.sessions import SessionEngine, SessionPolicy, SessionStore
from tessera.sessions.engine import ErrorHandler


class SessionMiddleware:
    """
    ASGI middleware that gives every HTTP request a server-side session.

    Requests are passed through untouched when:
    - the scope is not HTTP
    - an outer SessionMiddleware already installed a session
    - the store is disconnected or unavailable
    - the path is outside the cookie path

    The final ``http.response.body`` message is held back until the store
    call of the commit has finished, so the client never sees a completed
    response before its session is persisted. Store errors raised by the
    commit go to ``on_error``; the response completes regardless.

    Example:
        >>> app = SessionMiddleware(
        ...     app,
        ...     secrets=["new-secret", "old-secret"],
        ...     resave=False,
        ...     save_uninitialized=False,
        ...     cookie={"max_age": 3600, "secure": "auto"},
        ... )

        Or with a prebuilt engine:

        >>> app = SessionMiddleware(app, engine=SessionEngine.from_config(config))
    """

    def __init__(
        self,
        app: Callable,
        engine: Optional[SessionEngine] = None,
        *,
        store: Optional[SessionStore] = None,
        on_error: Optional[ErrorHandler] = None,
        **options: Any,
    ):
        """
        Initialize session middleware.

        Args:
            app: ASGI application callable
            engine: SessionEngine instance; built from the other arguments
                when omitted
            store: Session store for the built engine (defaults to MemoryStore)
            on_error: Error channel for the built engine
            **options: SessionPolicy options for the built engine
        """
        if engine is None:
            engine = SessionEngine(SessionPolicy(**options), store, on_error=on_error)
        elif options or store is not None or on_error is not None:
            raise TypeError("Pass either a SessionEngine or session options, not both")

        self.app = app
        self.engine = engine
        self.logger = logging.getLogger("tessera.middleware.session")

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        """
        ASGI middleware entrypoint.

        Args:
            scope: ASGI scope dict
            receive: ASGI receive callable
            send: ASGI send callable
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Self-awareness: an outer session middleware already ran
        if scope.get("session") is not None:
            self.logger.debug("session already installed by an outer middleware")
            await self.app(scope, receive, send)
            return

        tracker = await self.engine.load(scope)
        if tracker is None:
            await self.app(scope, receive, send)
            return

        async def send_with_session(message: dict):
            if message["type"] == "http.response.start":
                headers = Headers(raw=message.get("headers", []))
                if tracker.emit_cookie(headers):
                    message = {**message, "headers": headers.raw}

            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                await tracker.commit()

            await send(message)

        await self.app(scope, receive, send_with_session)
