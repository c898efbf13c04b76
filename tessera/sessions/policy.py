"""
Tessera Sessions - Policy types.

Defines the options that govern session behavior:
- CookiePolicy: How the session cookie is emitted
- SessionPolicy: Master policy (secrets, save/rolling/unset rules, proxy trust)

Policies are validated when they are built: a bad option is a
configuration error and fails before any request is served.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Sequence, TYPE_CHECKING

from .faults import SessionConfigFault
from .signing import generate_session_id

if TYPE_CHECKING:
    from tessera.config import ConfigLoader


SAMESITE_VALUES = ("strict", "lax", "none")
UNSET_VALUES = ("keep", "destroy")


# ============================================================================
# Cookie Policy
# ============================================================================

@dataclass(frozen=True)
class CookiePolicy:
    """
    Controls the session cookie attributes.

    Attributes:
        path: Cookie path; requests outside it get no session
        domain: Cookie domain
        max_age: Lifetime in seconds (None = browser-session cookie)
        secure: True, False, None (unset) or "auto" (follow the connection)
        httponly: HttpOnly flag (prevents XSS)
        samesite: SameSite policy (strict, lax, none)

    Example:
        >>> CookiePolicy(max_age=3600, secure="auto", samesite="lax")
    """

    path: str = "/"
    domain: str | None = None
    max_age: int | None = None
    secure: bool | Literal["auto"] | None = None
    httponly: bool = True
    samesite: str | None = None

    def __post_init__(self):
        if self.secure not in (True, False, None, "auto"):
            raise SessionConfigFault("cookie.secure", 'must be a boolean or "auto"')

        if self.samesite is not None:
            samesite = str(self.samesite).lower()
            if samesite not in SAMESITE_VALUES:
                raise SessionConfigFault("cookie.samesite", f"must be one of {SAMESITE_VALUES}")
            object.__setattr__(self, "samesite", samesite)

        if self.max_age is not None and (not isinstance(self.max_age, int) or self.max_age < 0):
            raise SessionConfigFault("cookie.max_age", "must be a non-negative number of seconds")

        if not self.path.startswith("/"):
            raise SessionConfigFault("cookie.path", "must start with '/'")

    @property
    def secure_auto(self) -> bool:
        return self.secure == "auto"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> CookiePolicy:
        return cls(
            path=config.get("path", "/"),
            domain=config.get("domain"),
            max_age=config.get("max_age"),
            secure=config.get("secure"),
            httponly=config.get("httponly", True),
            samesite=config.get("samesite"),
        )


# ============================================================================
# Master Policy
# ============================================================================

@dataclass
class SessionPolicy:
    """
    Master policy that defines how sessions behave.

    Attributes:
        secrets: Signing secret, or ordered list of secrets. The first one
            signs new cookies; all of them verify (rotation).
        cookie_name: Name of the session cookie
        cookie: Cookie sub-policy
        id_generator: Callable(request) -> new session ID
        resave: Save sessions back even when unmodified
        rolling: Re-send the cookie (refreshing its expiry) on every response
        save_uninitialized: Save and advertise sessions the handler never wrote to
        unset: What happens when the handler drops the session: "keep" or "destroy"
        trust_proxy: True trusts X-Forwarded-Proto, False ignores it,
            None uses the scheme reported by the server

    Example:
        >>> policy = SessionPolicy(
        ...     secrets=["new-secret", "old-secret"],
        ...     resave=False,
        ...     save_uninitialized=False,
        ...     cookie=CookiePolicy(max_age=86400),
        ... )
    """

    secrets: str | Sequence[str] = ()
    cookie_name: str = "connect.sid"
    cookie: CookiePolicy = field(default_factory=CookiePolicy)
    id_generator: Callable[[Any], str] = generate_session_id
    resave: bool | None = None
    rolling: bool = False
    save_uninitialized: bool | None = None
    unset: str = "keep"
    trust_proxy: bool | None = None

    def __post_init__(self):
        self.secrets = self._normalize_secrets(self.secrets)

        if not callable(self.id_generator):
            raise SessionConfigFault("id_generator", "must be callable")

        if self.unset not in UNSET_VALUES:
            raise SessionConfigFault("unset", 'must be "destroy" or "keep"')

        if not self.cookie_name:
            raise SessionConfigFault("cookie_name", "must not be empty")

        if isinstance(self.cookie, dict):
            self.cookie = CookiePolicy.from_dict(self.cookie)

        if self.trust_proxy == "default":
            self.trust_proxy = None

        if self.resave is None:
            warnings.warn(
                "undefined resave option; provide resave option",
                DeprecationWarning,
                stacklevel=3,
            )
            self.resave = True

        if self.save_uninitialized is None:
            warnings.warn(
                "undefined save_uninitialized option; provide save_uninitialized option",
                DeprecationWarning,
                stacklevel=3,
            )
            self.save_uninitialized = True

        self.rolling = bool(self.rolling)

    @staticmethod
    def _normalize_secrets(value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = (value,)
        elif value is None:
            value = ()

        secrets = tuple(value)
        if not secrets:
            raise SessionConfigFault("secrets", "one or more signing secrets are required")
        for secret in secrets:
            if not isinstance(secret, str) or not secret:
                raise SessionConfigFault("secrets", "every secret must be a non-empty string")
        return secrets

    @property
    def unset_destroy(self) -> bool:
        return self.unset == "destroy"

    # ========================================================================
    # Construction from configuration
    # ========================================================================

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> SessionPolicy:
        """
        Create policy from a configuration dictionary.

        Accepts ``secret`` or ``secrets``, ``name`` or ``cookie_name``.
        """
        options: dict[str, Any] = {
            "secrets": config.get("secrets", config.get("secret")),
            "cookie_name": config.get("cookie_name", config.get("name", "connect.sid")),
            "cookie": CookiePolicy.from_dict(config.get("cookie") or {}),
            "resave": config.get("resave"),
            "rolling": config.get("rolling", False),
            "save_uninitialized": config.get("save_uninitialized"),
            "unset": config.get("unset", "keep"),
            "trust_proxy": config.get("trust_proxy"),
        }
        if "id_generator" in config:
            options["id_generator"] = config["id_generator"]
        return cls(**options)

    @classmethod
    def from_config(cls, config: ConfigLoader) -> SessionPolicy:
        """Create policy from the ``sessions`` section of a ConfigLoader."""
        return cls.from_dict(config.get_session_config())
