"""
JWT parsing — reads ``Authorization: Bearer <access token>`` on /api/v1
requests and exposes the caller on ``flask.g``:

    g.jwt_user_id   int or None
    g.jwt_roles     role names carried in the token
    g.jwt_error     "Token expired" / "Invalid token" when a token was rejected

Nothing is refused here; app/auth.py decides whether an anonymous
request may continue.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token, user_id_from_payload

logger = logging.getLogger(__name__)

# Token endpoints and probes never look at the header
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def _bearer_token() -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def init_jwt_middleware(app):
    @app.before_request
    def _parse_jwt():
        g.jwt_user_id = None
        g.jwt_roles = []
        g.jwt_error = None

        if not request.path.startswith("/api/v1/") or request.path.startswith(JWT_SKIP_PREFIXES):
            return
        token = _bearer_token()
        if token is None:
            return

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = user_id_from_payload(payload)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Bearer token rejected path=%s: %s", request.path, exc)
            g.jwt_error = "Invalid token"
            return
        g.jwt_roles = list(payload.get("roles") or [])
