"""
Tessera Sessions - Signed-cookie server-side sessions for ASGI apps.

This package provides:
- Signed session identifiers with secret rotation
- Pluggable async stores (in-memory reference store included)
- Change tracking: sessions are only written, touched or advertised
  when the policy says they should be
- A lifecycle engine driven by the ASGI response

Philosophy:
- The cookie carries only a signed identifier, never session data
- Stores persist; the engine decides when
- Store failures never break a response that is already on its way
"""

from .core import (
    Session,
    canonical_dumps,
    fingerprint,
)

from .cookie import SessionCookie

from .policy import (
    CookiePolicy,
    SessionPolicy,
)

from .signing import (
    CookieSigner,
    generate_session_id,
    sign,
    unsign,
)

from .store import (
    SessionStore,
    MemoryStore,
    create_store,
)

from .transport import (
    SessionTransport,
    CookieTransport,
)

from .handle import SessionHandle

from .engine import (
    SessionEngine,
    SessionTracker,
)

from .faults import (
    SessionFault,
    SessionConfigFault,
    SessionNotFoundFault,
    SessionInvalidFault,
    SessionStoreUnavailableFault,
    SessionStoreCorruptedFault,
    SessionCommitFault,
)


__all__ = [
    # Core
    "Session",
    "SessionCookie",
    "canonical_dumps",
    "fingerprint",

    # Policies
    "CookiePolicy",
    "SessionPolicy",

    # Signing
    "CookieSigner",
    "generate_session_id",
    "sign",
    "unsign",

    # Stores
    "SessionStore",
    "MemoryStore",
    "create_store",

    # Transport
    "SessionTransport",
    "CookieTransport",

    # Engine
    "SessionHandle",
    "SessionEngine",
    "SessionTracker",

    # Faults
    "SessionFault",
    "SessionConfigFault",
    "SessionNotFoundFault",
    "SessionInvalidFault",
    "SessionStoreUnavailableFault",
    "SessionStoreCorruptedFault",
    "SessionCommitFault",
]
