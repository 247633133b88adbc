"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/login            — Email + password → JWT pair
  POST /api/v1/auth/refresh          — Refresh token → new JWT pair (rotated)
  POST /api/v1/auth/logout           — Revoke refresh token
  GET  /api/v1/auth/me               — Current user profile, roles, permissions
  POST /api/v1/auth/change-password  — Change own password
"""

import logging

import jwt as pyjwt
from flask import Blueprint, g, jsonify, request

from app.services import permission_service
from app.services.jwt_service import (
    decode_refresh_token,
    find_active_session,
    generate_token_pair,
    open_session,
    revoke_refresh_token,
    revoke_user_sessions,
    user_id_from_payload,
)
from app.services.user_service import (
    UserServiceError,
    authenticate_user,
    change_user_password,
    get_user_by_id,
)
from app.utils.crypto import verify_password

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.errorhandler(UserServiceError)
def _handle_user_error(e):
    return jsonify({"error": e.message}), e.status_code


def _current_user_or_401():
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return None, (jsonify({"error": "Authentication required"}), 401)
    user = get_user_by_id(user_id)
    if user is None:
        return None, (jsonify({"error": "User not found"}), 404)
    return user, None


def _issue_tokens(user, replaces=None):
    """New token pair for ``user``; the refresh half is stored as a session."""
    tokens = generate_token_pair(user.id, permission_service.get_user_role_names(user.id))
    open_session(
        user.id, tokens,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent", ""),
        replaces=replaces,
    )
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
        "user": user.to_dict(include_roles=True),
    }


# ═══════════════════════════════════════════════════════════════
# Login / refresh / logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { "email": "...", "password": "..." }"""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = authenticate_user(email, password)
    logger.info("Login user_id=%s", user.id)
    return jsonify(_issue_tokens(user)), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new pair. The presented token's session
    is closed in the same commit, so a refresh token works once.

    Body: { "refresh_token": "..." }
    """
    data = request.get_json(silent=True) or {}
    raw = data.get("refresh_token") or ""
    if not raw:
        return jsonify({"error": "refresh_token is required"}), 400

    try:
        user_id = user_id_from_payload(decode_refresh_token(raw))
    except pyjwt.ExpiredSignatureError:
        return jsonify({"error": "Refresh token expired"}), 401
    except pyjwt.InvalidTokenError:
        return jsonify({"error": "Invalid refresh token"}), 401

    session = find_active_session(user_id, raw)
    if session is None:
        return jsonify({"error": "Session revoked or not found"}), 401
    user = get_user_by_id(user_id)
    if user is None or not user.is_active:
        return jsonify({"error": "User not found or inactive"}), 401

    return jsonify(_issue_tokens(user, replaces=session)), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Body: { "refresh_token": "..." } or { "all": true } for every session of the caller."""
    data = request.get_json(silent=True) or {}

    if data.get("all"):
        user_id = getattr(g, "jwt_user_id", None)
        if user_id is None:
            return jsonify({"error": "Authentication required"}), 401
        revoke_user_sessions(user_id)
        return jsonify({"message": "All sessions revoked"}), 200

    raw = data.get("refresh_token") or ""
    if not raw:
        return jsonify({"error": "refresh_token is required"}), 400
    revoke_refresh_token(raw)
    return jsonify({"message": "Logged out"}), 200


# ═══════════════════════════════════════════════════════════════
# Current user
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
def me():
    user, error = _current_user_or_401()
    if error:
        return error
    profile = user.to_dict(include_roles=True)
    profile["permissions"] = sorted(permission_service.get_user_permissions(user.id))
    return jsonify(profile), 200


@auth_bp.route("/change-password", methods=["POST"])
def change_password():
    """Body: { "current_password": "...", "new_password": "..." }. Signs out every session."""
    user, error = _current_user_or_401()
    if error:
        return error

    data = request.get_json(silent=True) or {}
    if not user.password_hash or not verify_password(data.get("current_password", ""), user.password_hash):
        return jsonify({"error": "Current password is incorrect"}), 400

    change_user_password(user.id, data.get("new_password", ""))
    revoke_user_sessions(user.id)
    return jsonify({"message": "Password changed"}), 200
