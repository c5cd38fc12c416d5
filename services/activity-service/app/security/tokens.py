"""Utilities for validating bearer tokens presented by platform workers."""

from __future__ import annotations

from typing import Any

import jwt

from ..config import get_settings

WORKER_ID_CLAIM = "worker_id"


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Parameters
    ----------
    token:
        Encoded JWT issued by the platform identity service.

    Returns
    -------
    dict[str, Any]
        The decoded payload if signature and issuer checks succeed.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
        options={"verify_aud": False},
    )


def worker_id_from_claims(claims: dict[str, Any]) -> int | None:
    """Return the worker id carried by ``claims``, preferring ``worker_id`` over ``sub``."""
    for name in (WORKER_ID_CLAIM, "sub"):
        value = claims.get(name)
        # bool is an int subclass; JSON true must not become worker 1.
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
    return None
