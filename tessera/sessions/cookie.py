"""
Tessera Sessions - Session cookie descriptor.

A SessionCookie is the per-session view of the cookie policy: the static
attributes copied from ``CookiePolicy`` plus the moving expiry. It is
stored alongside the session data and serialized into ``Set-Cookie``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Any, TYPE_CHECKING
from urllib.parse import quote

if TYPE_CHECKING:
    from .policy import CookiePolicy


class SessionCookie:
    """
    Cookie attributes of one session.

    ``secure`` here is always a concrete boolean (or ``None`` for unset):
    the ``"auto"`` setting of the policy is resolved again on every request
    the session is installed on, so a stored value never decides it.

    Attributes:
        path: Cookie path
        domain: Cookie domain
        expires: Absolute expiry (None = browser-session cookie)
        original_max_age: Lifetime in seconds the cookie was created with
        secure: Secure flag
        httponly: HttpOnly flag
        samesite: SameSite policy (strict, lax, none)
    """

    __slots__ = (
        "path", "domain", "expires", "original_max_age",
        "secure", "httponly", "samesite",
    )

    def __init__(
        self,
        *,
        path: str = "/",
        domain: str | None = None,
        max_age: int | None = None,
        expires: datetime | None = None,
        secure: bool | None = None,
        httponly: bool = True,
        samesite: str | None = None,
        original_max_age: int | None = None,
    ):
        self.path = path
        self.domain = domain
        self.secure = secure
        self.httponly = httponly
        self.samesite = samesite
        self.expires = expires
        self.original_max_age = original_max_age

        if max_age is not None:
            self.max_age = max_age

    @classmethod
    def from_policy(cls, policy: CookiePolicy, *, secure: bool | None) -> SessionCookie:
        """Build a fresh cookie from the cookie policy."""
        return cls(
            path=policy.path,
            domain=policy.domain,
            max_age=policy.max_age,
            secure=secure,
            httponly=policy.httponly,
            samesite=policy.samesite,
        )

    # ========================================================================
    # Expiry
    # ========================================================================

    @property
    def max_age(self) -> int | None:
        """Seconds left until expiry, or None for a browser-session cookie."""
        if self.expires is None:
            return None
        remaining = self.expires - datetime.now(timezone.utc)
        return int(remaining.total_seconds())

    @max_age.setter
    def max_age(self, seconds: int | None) -> None:
        if seconds is None:
            self.expires = None
        else:
            self.expires = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        self.original_max_age = seconds

    def reset_max_age(self) -> None:
        """Restart the expiry window from now."""
        self.max_age = self.original_max_age

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires is None:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        return now >= self.expires

    # ========================================================================
    # Serialization
    # ========================================================================

    @property
    def data(self) -> dict[str, Any]:
        """Store representation (JSON-compatible)."""
        return {
            "original_max_age": self.original_max_age,
            "expires": self.expires.isoformat() if self.expires else None,
            "secure": self.secure,
            "httponly": self.httponly,
            "domain": self.domain,
            "path": self.path,
            "samesite": self.samesite,
        }

    def to_dict(self) -> dict[str, Any]:
        return self.data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionCookie:
        """Rebuild a cookie from its store representation."""
        expires = data.get("expires")
        if isinstance(expires, str):
            expires = datetime.fromisoformat(expires)
        if expires is not None and expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)

        return cls(
            path=data.get("path", "/"),
            domain=data.get("domain"),
            expires=expires,
            secure=data.get("secure"),
            httponly=data.get("httponly", True),
            samesite=data.get("samesite"),
            original_max_age=data.get("original_max_age"),
        )

    def serialize(self, name: str, value: str) -> str:
        """
        Build a ``Set-Cookie`` header value.

        Args:
            name: Cookie name
            value: Raw cookie value (percent-encoded here)

        Returns:
            Header value, e.g. ``connect.sid=s%3A...; Path=/; HttpOnly``
        """
        cookie_parts = [f"{name}={quote(value, safe='')}"]

        if self.expires is not None:
            cookie_parts.append(f"Max-Age={max(self.max_age, 0)}")
            cookie_parts.append(f"Expires={format_datetime(self.expires, usegmt=True)}")

        if self.domain:
            cookie_parts.append(f"Domain={self.domain}")

        if self.path:
            cookie_parts.append(f"Path={self.path}")

        if self.httponly:
            cookie_parts.append("HttpOnly")

        if self.secure:
            cookie_parts.append("Secure")

        if self.samesite:
            cookie_parts.append(f"SameSite={self.samesite.capitalize()}")

        return "; ".join(cookie_parts)

    def __repr__(self) -> str:
        return f"SessionCookie(path={self.path!r}, expires={self.expires!r}, secure={self.secure!r})"
