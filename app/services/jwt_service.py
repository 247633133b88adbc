"""
JWT Service — HS256 token pairs and refresh-token sessions.

Access tokens carry the caller's role names and live JWT_ACCESS_EXPIRES
seconds (15 min). Refresh tokens live JWT_REFRESH_EXPIRES seconds (7 days);
only their SHA-256 hash is stored, in the ``sessions`` table, and each one
is exchanged at most once.

    {"sub": "12", "roles": ["manager"], "type": "access", "iat": …, "exp": …, "jti": …}

PyJWT requires ``sub`` to be a string; ``user_id_from_payload`` turns it
back into an int.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from app.models import db
from app.models.auth import Session

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_ACCESS_EXPIRES = 900
DEFAULT_REFRESH_EXPIRES = 7 * 24 * 3600
USER_AGENT_MAX = 500


def _secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _lifetime(token_type: str) -> int:
    if token_type == "refresh":
        return int(current_app.config.get("JWT_REFRESH_EXPIRES", DEFAULT_REFRESH_EXPIRES))
    return int(current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES))


def _encode(user_id: int, token_type: str, **claims) -> tuple[str, datetime]:
    issued = datetime.now(timezone.utc)
    expires_at = issued + timedelta(seconds=_lifetime(token_type))
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": issued,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
        **claims,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM), expires_at


# ═══════════════════════════════════════════════════════════════
# Tokens
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: int, roles: list[str]) -> str:
    token, _ = _encode(user_id, "access", roles=list(roles))
    return token


def generate_refresh_token(user_id: int) -> tuple[str, str, datetime]:
    """Returns ``(raw_token, token_hash, expires_at)``."""
    token, expires_at = _encode(user_id, "refresh")
    return token, hash_token(token), expires_at


def generate_token_pair(user_id: int, roles: list[str]) -> dict:
    refresh_token, token_hash, expires_at = generate_refresh_token(user_id)
    return {
        "access_token": generate_access_token(user_id, roles),
        "refresh_token": refresh_token,
        "token_hash": token_hash,
        "expires_at": expires_at,
        "token_type": "Bearer",
        "expires_in": _lifetime("access"),
    }


def decode_token(token: str, expected_type: str) -> dict:
    """Verify signature, expiry and token type.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token")
    return payload


def decode_access_token(token: str) -> dict:
    return decode_token(token, "access")


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, "refresh")


def user_id_from_payload(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject is not a user id") from exc


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ═══════════════════════════════════════════════════════════════
# Refresh sessions
# ═══════════════════════════════════════════════════════════════
def open_session(user_id: int, tokens: dict, ip_address=None, user_agent=None, replaces: Session | None = None) -> Session:
    """Store the refresh half of ``tokens``; ``replaces`` is revoked in the same commit."""
    if replaces is not None:
        replaces.is_active = False
    session = Session(
        user_id=user_id,
        token_hash=tokens["token_hash"],
        ip_address=ip_address,
        user_agent=(user_agent or "")[:USER_AGENT_MAX],
        expires_at=tokens["expires_at"].replace(tzinfo=None),
    )
    db.session.add(session)
    db.session.commit()
    return session


def find_active_session(user_id: int, refresh_token: str) -> Session | None:
    return Session.query.filter_by(
        user_id=user_id, token_hash=hash_token(refresh_token), is_active=True,
    ).first()


def revoke_refresh_token(refresh_token: str) -> bool:
    """Deactivate the session of ``refresh_token``; False when none was active."""
    count = (
        Session.query.filter_by(token_hash=hash_token(refresh_token), is_active=True)
        .update({"is_active": False})
    )
    db.session.commit()
    return bool(count)


def revoke_user_sessions(user_id: int) -> int:
    count = Session.query.filter_by(user_id=user_id, is_active=True).update({"is_active": False})
    db.session.commit()
    logger.info("Revoked %d sessions user_id=%s", count, user_id)
    return count
