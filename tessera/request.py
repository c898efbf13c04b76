"""
Request - Lightweight ASGI request view.

Provides the parts of an HTTP request the session layer reads:
- Method, path, scheme and client address from the ASGI scope
- Case-insensitive headers
- Cookie parsing
- Connection security with proxy trust
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import unquote

from ._datastructures import Headers


def parse_cookie_header(cookie_header: str) -> dict[str, str]:
    """
    Parse a ``Cookie`` header into a dict.

    The first occurrence of a name wins. Values are percent-decoded and
    surrounding double quotes are removed. Malformed pairs are skipped.
    """
    cookies: dict[str, str] = {}

    for part in cookie_header.split(";"):
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        name = name.strip()
        value = value.strip()
        if not name or name in cookies:
            continue
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies[name] = unquote(value)

    return cookies


class Request:
    """
    Request object wrapping an ASGI scope.

    Attributes:
        scope: ASGI scope dict
        trust_proxy: True trusts X-Forwarded-Proto, False ignores it,
            None relies on the scheme the server reports
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        *,
        trust_proxy: Optional[bool] = None,
    ):
        self.scope = scope
        self.trust_proxy = trust_proxy

        self._headers: Optional[Headers] = None
        self._cookies: Optional[dict[str, str]] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "http")

    @property
    def client(self) -> Optional[tuple]:
        return self.scope.get("client")

    # ========================================================================
    # Headers & Cookies
    # ========================================================================

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=self.scope.get("headers", []))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            cookie_header = self.header("cookie", "")
            self._cookies = parse_cookie_header(cookie_header) if cookie_header else {}
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    # ========================================================================
    # Connection security (with proxy support)
    # ========================================================================

    @property
    def is_encrypted(self) -> bool:
        """True when the server terminated TLS on this very connection."""
        return "tls" in (self.scope.get("extensions") or {})

    def is_secure(self) -> bool:
        """
        Whether the client reached us over HTTPS.

        Evaluated on every call; never cached, because the answer depends
        on per-request headers.
        """
        if self.is_encrypted:
            return True

        if self.trust_proxy is False:
            return False

        if self.trust_proxy is None:
            return self.scheme in ("https", "wss")

        # Read the first proto from X-Forwarded-Proto
        forwarded_proto = self.header("x-forwarded-proto", "")
        proto = forwarded_proto.split(",", 1)[0].strip().lower()
        return proto == "https"
