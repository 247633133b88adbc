"""
Resource Capacity Planner
Authentication gate.

Security model:
    - All /api/v1/* endpoints require a valid JWT access token
      (Authorization: Bearer ...) when API_AUTH_ENABLED is on
    - Login, token refresh and health checks are public
    - Per-endpoint authorization is done by the permission decorators in
      app/middleware/permission_required.py

Configuration (env vars / app config):
    API_AUTH_ENABLED  — set to "false" to disable auth (development only)
"""

import logging
import os

from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)

_FALSY = ("false", "0", "no", "off")


def is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val and not current_app.config.get("TESTING"):
        return env_val.lower() not in _FALSY
    value = current_app.config.get("API_AUTH_ENABLED", "true")
    if isinstance(value, bool):
        return value
    return str(value).lower() not in _FALSY


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests with a body, require
    Content-Type: application/json. HTML forms cannot send that content
    type, so this doubles as a lightweight CSRF mitigation.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


def init_auth(app):
    """
    Install the authentication gate on the Flask app.

    Must be registered after init_jwt_middleware so g.jwt_user_id is
    already populated when the gate runs.
    """
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path.startswith(PUBLIC_PREFIXES):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if not is_auth_enabled():
            return None

        if getattr(g, "jwt_user_id", None) is None:
            reason = getattr(g, "jwt_error", None) or "Authentication required"
            logger.info("Unauthenticated request rejected: %s %s (%s)",
                        request.method, request.path, reason)
            return jsonify({"error": reason}), 401
        return None

    with app.app_context():
        logger.info("Auth gate installed (enabled=%s)", is_auth_enabled())
