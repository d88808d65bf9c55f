from __future__ import annotations

import hashlib
import hmac
import secrets
from uuid import UUID

BEARER_PREFIX = "Bearer "


def sign_user_id(*, user_id: UUID, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), str(user_id).encode("utf-8"), hashlib.sha256).hexdigest()


def build_session_token(*, user_id: UUID, secret: str) -> str:
    return f"{user_id}.{sign_user_id(user_id=user_id, secret=secret)}"


def parse_session_token(*, token: str | None, secret: str) -> UUID | None:
    """Return the signed user id, or None when the token is missing, malformed or forged."""
    if not token or not secret:
        return None

    raw_user_id, separator, signature = token.strip().rpartition(".")
    if not separator or not raw_user_id or not signature:
        return None

    try:
        user_id = UUID(raw_user_id)
    except ValueError:
        return None

    expected = sign_user_id(user_id=user_id, secret=secret)
    if not secrets.compare_digest(expected, signature):
        return None
    return user_id


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None
