"""
Permission Decorators — route guards on top of permission_service.

    @resource_bp.route("", methods=["POST"])
    @require_permission("resource_management")
    def create_resource():
        ...

    @report_bp.route("/change-allocation", methods=["POST"])
    @require_any_permission("reports", "change_lead_reports")
    def change_allocation_report():
        ...

A request without a JWT user passes through: with API_AUTH_ENABLED the
auth gate (app/auth.py) has already answered 401, and without it the API
is open by configuration. Admins pass every check inside
permission_service.
"""

import functools
import logging

from flask import g, jsonify

from app.services.permission_service import has_any_permission, has_permission

logger = logging.getLogger(__name__)


def _guard(allowed, denial_body: dict):
    """Build a decorator that answers 403 with ``denial_body`` unless ``allowed(user_id)``."""
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if user_id is not None and not allowed(user_id):
                logger.warning(
                    "Permission denied user_id=%s view=%s needs=%s",
                    user_id, view.__name__, denial_body,
                )
                return jsonify({"error": "Permission denied", **denial_body}), 403
            return view(*args, **kwargs)
        return wrapper
    return decorator


def require_permission(codename: str):
    """Require one permission codename, e.g. ``"project_management"``."""
    return _guard(lambda uid: has_permission(uid, codename), {"required": codename})


def require_any_permission(*codenames: str):
    """Require at least one of ``codenames``."""
    needed = list(codenames)
    return _guard(lambda uid: has_any_permission(uid, needed), {"required_any": needed})
