"""
Tessera - Server-side sessions for async Python web applications

Complete integration of:
- Sessions: Signed-cookie session identifiers with server-side storage
- Middleware: ASGI middleware driving the session lifecycle
- Faults: Structured error handling with fault domains
- Config: Layered configuration (files, .env, environment)
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .config import ConfigLoader, ConfigError
from .request import Request
from ._datastructures import Headers

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultContext,
    FaultDomain,
    Severity,
)

# ============================================================================
# Sessions
# ============================================================================

from .sessions import (
    Session,
    SessionCookie,
    SessionHandle,
    SessionPolicy,
    CookiePolicy,
    SessionStore,
    MemoryStore,
    SessionEngine,
    CookieSigner,
    generate_session_id,
    SessionFault,
    SessionConfigFault,
    SessionCommitFault,
)

from .middleware_ext import SessionMiddleware


__all__ = [
    "__version__",

    # Core
    "ConfigLoader",
    "ConfigError",
    "Request",
    "Headers",

    # Faults
    "Fault",
    "FaultContext",
    "FaultDomain",
    "Severity",

    # Sessions
    "Session",
    "SessionCookie",
    "SessionHandle",
    "SessionPolicy",
    "CookiePolicy",
    "SessionStore",
    "MemoryStore",
    "SessionEngine",
    "CookieSigner",
    "generate_session_id",
    "SessionFault",
    "SessionConfigFault",
    "SessionCommitFault",

    # Middleware
    "SessionMiddleware",
]
