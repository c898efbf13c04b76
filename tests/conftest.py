"""
Shared test fixtures and helpers for the Tessera test suite.
"""

import inspect
from typing import Any, Callable, List, Optional

import httpx
import pytest

from tessera.request import Request
from tessera.sessions import MemoryStore, SessionPolicy
from tessera.sessions.signing import sign


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
    extensions: Optional[dict] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }
    if extensions is not None:
        scope["extensions"] = extensions
    return scope


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    **kwargs,
) -> Request:
    """Build a Request over a fresh scope."""
    extensions = kwargs.pop("extensions", None)
    scope = make_scope(method=method, path=path, headers=headers, scheme=scheme, extensions=extensions)
    return Request(scope, **kwargs)


# ============================================================================
# Session Helpers
# ============================================================================


def make_policy(**overrides: Any) -> SessionPolicy:
    """SessionPolicy with explicit save options (no deprecation notices)."""
    options = {
        "secrets": "keyboard cat",
        "resave": False,
        "save_uninitialized": True,
    }
    options.update(overrides)
    return SessionPolicy(**options)


def signed_cookie(session_id: str, secret: str = "keyboard cat", name: str = "connect.sid") -> str:
    """Cookie header value carrying a signed session ID."""
    return f"{name}=s:{sign(session_id, secret)}"


def cookie_pair(response: httpx.Response) -> Optional[str]:
    """The ``name=value`` part of the first Set-Cookie, ready to send back."""
    values = response.headers.get_list("set-cookie")
    if not values:
        return None
    return values[0].split(";", 1)[0]


def make_app(handler: Optional[Callable] = None, *, body: bytes = b"ok", headers: Optional[list] = None):
    """
    Minimal ASGI app.

    ``handler(scope)`` runs before the response is sent and may be a
    coroutine function. If it returns bytes, they become the body.
    """

    async def app(scope, receive, send):
        content = body
        if handler is not None:
            result = handler(scope)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, bytes):
                content = result

        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": list(headers or [(b"content-type", b"text/plain")]),
        })
        await send({"type": "http.response.body", "body": content})

    return app


async def send_request(
    app,
    path: str = "/",
    *,
    cookie: Optional[str] = None,
    headers: Optional[dict] = None,
    base_url: str = "http://test",
) -> httpx.Response:
    """One request through a fresh client (no cookie jar carried over)."""
    request_headers = dict(headers or {})
    if cookie is not None:
        request_headers["cookie"] = cookie
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=base_url) as client:
        return await client.get(path, headers=request_headers)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store():
    return MemoryStore()

