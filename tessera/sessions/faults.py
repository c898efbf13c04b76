"""
Tessera Sessions - Fault definitions.

Defines session-specific faults on top of the Tessera fault system.
All session errors are structured Faults, not bare exceptions.
"""

from __future__ import annotations

import hashlib

from tessera.faults.core import Fault, FaultDomain, Severity


FaultDomain.SESSION = FaultDomain("session", "Session lifecycle and storage")


def hash_session_id(session_id: str) -> str:
    """Hash a session ID for logs and fault metadata (never log raw IDs)."""
    return f"sha256:{hashlib.sha256(str(session_id).encode()).hexdigest()[:16]}"


# ============================================================================
# Session Fault Base
# ============================================================================

class SessionFault(Fault):
    """Base class for session-related faults."""

    domain = FaultDomain.SESSION


# ============================================================================
# Configuration Faults
# ============================================================================

class SessionConfigFault(SessionFault):
    """
    Session options are invalid.

    Raised while building a policy or engine, before any request is
    processed. Never raised at request time.
    """

    code = "SESSION_CONFIG_INVALID"
    message = "Invalid session configuration"
    domain = FaultDomain.CONFIG
    severity = Severity.FATAL
    retryable = False

    def __init__(self, option: str, reason: str, **kwargs):
        super().__init__(message=f"Invalid session option '{option}': {reason}", **kwargs)
        self.option = option
        self.reason = reason


# ============================================================================
# Lookup Faults
# ============================================================================

class SessionNotFoundFault(SessionFault):
    """
    Session ID not found in store.

    Stores may raise this instead of returning ``None``; the engine treats
    both the same way.
    """

    code = "SESSION_NOT_FOUND"
    message = "Session not found"
    severity = Severity.WARN
    public = True
    retryable = False

    def __init__(self, session_id: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.session_id_hash = hash_session_id(session_id) if session_id else None


class SessionInvalidFault(SessionFault):
    """Session operation attempted on a session that is no longer usable."""

    code = "SESSION_INVALID"
    message = "Invalid session"
    severity = Severity.ERROR
    retryable = False


# ============================================================================
# Storage Faults
# ============================================================================

class SessionStoreUnavailableFault(SessionFault):
    """
    Session store is unavailable.

    This is a transient error - retry may succeed.
    """

    code = "SESSION_STORE_UNAVAILABLE"
    message = "Session storage unavailable"
    severity = Severity.ERROR
    retryable = True

    def __init__(self, store_name: str, cause: str | None = None, **kwargs):
        if cause:
            message = f"Session store '{store_name}' unavailable: {cause}"
        else:
            message = f"Session store '{store_name}' unavailable"
        super().__init__(message=message, **kwargs)
        self.store_name = store_name
        self.cause = cause


class SessionStoreCorruptedFault(SessionFault):
    """Session data in store cannot be deserialized."""

    code = "SESSION_STORE_CORRUPTED"
    message = "Session data corrupted"
    severity = Severity.ERROR
    retryable = False


class SessionCommitFault(SessionFault):
    """
    A store call made while finalizing the response failed.

    Wraps the original error; delivered to the request's error channel
    after the response has been allowed to complete.
    """

    code = "SESSION_COMMIT_FAILED"
    message = "Session commit failed"
    severity = Severity.ERROR
    retryable = True

    def __init__(self, operation: str, session_id: str, cause: BaseException, **kwargs):
        super().__init__(
            message=f"Session {operation} failed: {cause}",
            metadata={"operation": operation, "session_id_hash": hash_session_id(session_id)},
            **kwargs,
        )
        self.operation = operation
        self.cause = cause
