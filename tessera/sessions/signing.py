"""
Tessera Sessions - Identifier and signature utilities.

- generate_session_id(): unguessable, URL-safe identifiers
- sign() / unsign(): keyed HMAC-SHA256 over a value
- CookieSigner: ordered secret list with rotation support

Signed format is ``<value>.<signature>`` where the signature is the
unpadded urlsafe base64 of HMAC-SHA256(secret, value).
"""

from __future__ import annotations

import base64
import binascii
import secrets
from typing import Sequence

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac


# 24 bytes = 192 bits of entropy, 32 characters once encoded
SESSION_ID_BYTES = 24


def generate_session_id(request: object | None = None) -> str:
    """
    Generate a fresh session identifier.

    The request argument is accepted so the function can be used directly
    as a ``SessionPolicy.id_generator``; it is not used.
    """
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def _mac(value: bytes, secret: str | bytes) -> hmac.HMAC:
    h = hmac.HMAC(_to_bytes(secret), hashes.SHA256())
    h.update(value)
    return h


def sign(value: str, secret: str | bytes) -> str:
    """
    Sign ``value`` with ``secret``.

    Returns:
        ``value.signature``
    """
    if not isinstance(value, str):
        raise TypeError("Signed value must be a string")
    signature = _mac(value.encode("utf-8"), secret).finalize()
    sig_b64 = base64.urlsafe_b64encode(signature).decode("ascii").rstrip("=")
    return f"{value}.{sig_b64}"


def unsign(signed_value: str, secret: str | bytes) -> str | None:
    """
    Verify a value produced by :func:`sign`.

    Returns:
        The original value, or ``None`` when the value was tampered with,
        truncated, malformed, or signed with another secret. Never raises
        on bad input.
    """
    if not isinstance(signed_value, str) or "." not in signed_value:
        return None

    value, sig_b64 = signed_value.rsplit(".", 1)
    try:
        signature = base64.urlsafe_b64decode(sig_b64 + "=" * (-len(sig_b64) % 4))
    except (binascii.Error, ValueError):
        return None

    try:
        _mac(value.encode("utf-8"), secret).verify(signature)
    except InvalidSignature:
        return None

    return value


class CookieSigner:
    """
    Signs with the first secret, verifies against all of them in order.

    Prepending a new secret rotates the signing key while cookies issued
    under older secrets keep verifying until those are dropped from the
    list.

    Example:
        >>> signer = CookieSigner(["new-secret", "old-secret"])
        >>> signer.unsign(sign("abc", "old-secret"))
        'abc'
    """

    __slots__ = ("_secrets",)

    def __init__(self, secret_keys: str | bytes | Sequence[str | bytes]):
        if isinstance(secret_keys, (str, bytes)):
            secret_keys = [secret_keys]
        keys = tuple(secret_keys)
        if not keys:
            raise ValueError("CookieSigner requires at least one secret")
        self._secrets = keys

    @property
    def secrets(self) -> tuple[str | bytes, ...]:
        return self._secrets

    def sign(self, value: str) -> str:
        return sign(value, self._secrets[0])

    def unsign(self, signed_value: str) -> str | None:
        for secret in self._secrets:
            result = unsign(signed_value, secret)
            if result is not None:
                return result
        return None
