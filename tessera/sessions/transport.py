"""
Tessera Sessions - Cookie transport.

Handles session ID extraction and injection over HTTP cookies:
- extract(): read, verify and unwrap the signed cookie value
- inject(): append a signed ``Set-Cookie`` header
- matches_path(): cookie path scoping

Transports do NOT handle session validation, creation or persistence;
those belong to the SessionEngine and the SessionStore.
"""

from __future__ import annotations

import logging
from typing import Protocol, TYPE_CHECKING

from .faults import hash_session_id
from .signing import CookieSigner

if TYPE_CHECKING:
    from tessera._datastructures import Headers
    from tessera.request import Request
    from .cookie import SessionCookie
    from .policy import SessionPolicy


logger = logging.getLogger("tessera.sessions.transport")

SIGNED_PREFIX = "s:"


# ============================================================================
# SessionTransport Protocol
# ============================================================================

class SessionTransport(Protocol):
    """
    Abstract transport interface for session ID delivery.
    """

    def extract(self, request: Request) -> str | None:
        """Return the verified session ID carried by the request, if any."""
        ...

    def inject(self, headers: Headers, session_id: str, cookie: SessionCookie) -> None:
        """Advertise the session ID on the outgoing response headers."""
        ...


# ============================================================================
# CookieTransport - HTTP Cookies
# ============================================================================

class CookieTransport:
    """
    Signed-cookie session transport.

    The cookie value is ``s:`` followed by the signed identifier. Values
    without the prefix, or whose signature does not verify against any
    configured secret, are treated as if no cookie had been sent.

    Example:
        >>> transport = CookieTransport(policy, CookieSigner(policy.secrets))
        >>> session_id = transport.extract(request)
    """

    def __init__(self, policy: SessionPolicy, signer: CookieSigner | None = None):
        self.policy = policy
        self.cookie_name = policy.cookie_name
        self.signer = signer if signer is not None else CookieSigner(policy.secrets)

    def extract(self, request: Request) -> str | None:
        """Extract and verify the session ID from the request cookie."""
        raw = request.cookie(self.cookie_name)
        if raw is None:
            return None

        if not raw.startswith(SIGNED_PREFIX):
            logger.debug("cookie unsigned")
            return None

        session_id = self.signer.unsign(raw[len(SIGNED_PREFIX):])
        if session_id is None:
            logger.debug("cookie signature invalid")
            return None

        return session_id

    def inject(self, headers: Headers, session_id: str, cookie: SessionCookie) -> None:
        """Append a ``Set-Cookie`` header; existing ones are kept."""
        value = SIGNED_PREFIX + self.signer.sign(session_id)
        header = cookie.serialize(self.cookie_name, value)
        logger.debug("set-cookie for session %s", hash_session_id(session_id))
        headers.append("set-cookie", header)

    def matches_path(self, path: str) -> bool:
        """Whether a request path falls under the cookie path."""
        return path.startswith(self.policy.cookie.path)
