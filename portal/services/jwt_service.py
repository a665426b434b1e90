"""
JWT Service - session token generation and verification.

Session token:  7 days (configurable via JWT_ACCESS_EXPIRES)
Algorithm:      HS256

Token payload:
{
    "sub": <user_id>,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Verification checks signature, expiry and token type only.  Whether the
user still exists and is active is decided by the auth service on every
request.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

logger = logging.getLogger(__name__)

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 604800   # 7 days
ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires() -> int:
    return int(current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES))


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_session_token(user_id: str) -> str:
    """Issue a signed session token for ``user_id``."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def token_response(token: str) -> dict:
    return {
        "token": token,
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
    }


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_session_token(token: str) -> dict:
    """
    Decode and verify a session token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(
        token,
        _get_secret(),
        algorithms=[ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError(f"Expected {TOKEN_TYPE} token, got {payload.get('type')}")
    return payload


def verify_session(token: str) -> str | None:
    """Return the user id a token was issued for, or None if it does not verify."""
    if not token:
        return None
    try:
        payload = decode_session_token(token)
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except jwt.InvalidTokenError as exc:
        logger.debug("Session token rejected: %s", exc)
        return None
    return payload.get("sub") or None
