"""
Extended middleware components for Tessera.

- SessionMiddleware: ASGI session management middleware
"""

from .session_middleware import SessionMiddleware

__all__ = [
    "SessionMiddleware",
]
