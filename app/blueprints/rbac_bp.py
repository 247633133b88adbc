"""
RBAC Blueprint — role and permission administration.

  GET  /api/v1/rbac/roles
  GET  /api/v1/rbac/permissions
  GET  /api/v1/rbac/users                               — users with their roles
  POST /api/v1/rbac/assign-role                         — {user_id | resource_id, role, expires_at?}
  POST /api/v1/rbac/remove-role                         — {user_id | resource_id, role}
  GET  /api/v1/rbac/user-roles/<user_id>
  GET  /api/v1/rbac/role-permissions/<role_name>
  POST /api/v1/rbac/update-role-permissions             — {role, permissions: [...]}
  POST /api/v1/rbac/create-user                         — resource + login in one call
  POST /api/v1/rbac/grant-permission                    — {user_id | resource_id, permission, expires_at?}
  POST /api/v1/rbac/revoke-permission                   — {user_id | resource_id, permission}
  GET  /api/v1/rbac/users/<user_id>/effective-permissions
  GET  /api/v1/rbac/check/<user_id>/<codename>          — explain one decision
  PUT  /api/v1/rbac/users/<user_id>                     — edit profile, is_active
  POST /api/v1/rbac/users/<user_id>/deactivate          — never the caller's own account
  POST /api/v1/rbac/users/<user_id>/reset-password      — generated password, sessions revoked

Reads need role_management or user_management; changing role
definitions needs role_management; editing accounts needs user_management.
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.core.exceptions import ValidationError
from app.middleware.permission_required import require_any_permission, require_permission
from app.services import permission_service, rbac_service, user_service
from app.services.user_service import (
    UserServiceError,
    create_user_with_resource,
    ensure_user_for_resource,
    get_user_by_id,
)
from app.utils.errors import register_service_error_handlers

logger = logging.getLogger(__name__)

rbac_bp = Blueprint("rbac", __name__, url_prefix="/api/v1/rbac")
register_service_error_handlers(rbac_bp)

_ADMIN_PERMISSIONS = ("role_management", "user_management")


@rbac_bp.errorhandler(UserServiceError)
def _handle_user_error(e):
    return jsonify({"error": e.message}), e.status_code


def _target_user_id(data):
    """Resolve ``user_id`` or ``resource_id`` (creating the login if needed)."""
    if data.get("user_id") is not None:
        try:
            user_id = int(data["user_id"])
        except (TypeError, ValueError):
            raise ValidationError("user_id must be an integer", details={"user_id": data["user_id"]}) from None
        if get_user_by_id(user_id) is None:
            raise UserServiceError("User not found", 404)
        return user_id
    if data.get("resource_id") is not None:
        try:
            resource_id = int(data["resource_id"])
        except (TypeError, ValueError):
            raise ValidationError("resource_id must be an integer", details={"resource_id": data["resource_id"]}) from None
        return ensure_user_for_resource(resource_id).id
    raise ValidationError("user_id or resource_id is required", details={"user_id": "required"})


def _required(data, field):
    value = (data.get(field) or "").strip() if isinstance(data.get(field), str) else data.get(field)
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return value


# ═══════════════════════════════════════════════════════════════
# Read endpoints
# ═══════════════════════════════════════════════════════════════
@rbac_bp.route("/roles", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def list_roles():
    return jsonify(rbac_service.list_roles()), 200


@rbac_bp.route("/permissions", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def list_permissions():
    return jsonify(rbac_service.list_permissions()), 200


@rbac_bp.route("/users", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def list_users():
    return jsonify(rbac_service.list_users_with_roles()), 200


@rbac_bp.route("/user-roles/<int:user_id>", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def user_roles(user_id):
    return jsonify(rbac_service.get_user_roles(user_id)), 200


@rbac_bp.route("/role-permissions/<role_name>", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def role_permissions(role_name):
    return jsonify({"role": role_name, "permissions": rbac_service.get_role_permissions(role_name)}), 200


@rbac_bp.route("/users/<int:user_id>/effective-permissions", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def effective_permissions(user_id):
    if get_user_by_id(user_id) is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify(permission_service.effective_permissions_report(user_id)), 200


@rbac_bp.route("/check/<int:user_id>/<codename>", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def check_permission(user_id, codename):
    if get_user_by_id(user_id) is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify(permission_service.evaluate_permission(user_id, codename)), 200


# ═══════════════════════════════════════════════════════════════
# Assignments
# ═══════════════════════════════════════════════════════════════
@rbac_bp.route("/assign-role", methods=["POST"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def assign_role():
    data = request.get_json(silent=True) or {}
    role_name = _required(data, "role")
    user_id = _target_user_id(data)
    assignment = rbac_service.assign_role(
        user_id, role_name,
        assigned_by=getattr(g, "jwt_user_id", None),
        expires_at=data.get("expires_at"),
    )
    return jsonify(assignment), 200


@rbac_bp.route("/remove-role", methods=["POST"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def remove_role():
    data = request.get_json(silent=True) or {}
    role_name = _required(data, "role")
    user_id = _target_user_id(data)
    rbac_service.remove_role(user_id, role_name)
    return jsonify({"message": f"Role {role_name} removed"}), 200


@rbac_bp.route("/update-role-permissions", methods=["POST"])
@require_permission("role_management")
def update_role_permissions():
    data = request.get_json(silent=True) or {}
    role_name = _required(data, "role")
    permissions = rbac_service.update_role_permissions(role_name, data.get("permissions"))
    return jsonify({"role": role_name, "permissions": permissions}), 200


@rbac_bp.route("/grant-permission", methods=["POST"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def grant_permission():
    data = request.get_json(silent=True) or {}
    codename = _required(data, "permission")
    user_id = _target_user_id(data)
    grant = rbac_service.grant_permission(
        user_id, codename,
        granted_by=getattr(g, "jwt_user_id", None),
        expires_at=data.get("expires_at"),
    )
    return jsonify(grant), 200


@rbac_bp.route("/revoke-permission", methods=["POST"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def revoke_permission():
    data = request.get_json(silent=True) or {}
    codename = _required(data, "permission")
    user_id = _target_user_id(data)
    rbac_service.revoke_permission(user_id, codename)
    return jsonify({"message": f"Permission {codename} revoked"}), 200


# ═══════════════════════════════════════════════════════════════
# User creation
# ═══════════════════════════════════════════════════════════════
@rbac_bp.route("/create-user", methods=["POST"])
@require_permission("user_management")
def create_user():
    """
    Body: {name, email, role?, department?, job_role?, password?}
    Answer carries ``default_password`` once when none was supplied.
    """
    data = request.get_json(silent=True) or {}
    result = create_user_with_resource(data, assigned_by=getattr(g, "jwt_user_id", None))
    return jsonify(result), 201


# ═══════════════════════════════════════════════════════════════
# User administration
# ═══════════════════════════════════════════════════════════════
@rbac_bp.route("/users/<int:user_id>", methods=["PUT"])
@require_permission("user_management")
def update_user(user_id):
    """Body: {first_name?, last_name?, email?, is_active?, department?, job_role?}"""
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(user_id, data, acting_user_id=getattr(g, "jwt_user_id", None))
    return jsonify({"message": "User updated", "user": user.to_dict(include_roles=True)}), 200


@rbac_bp.route("/users/<int:user_id>/deactivate", methods=["POST"])
@require_permission("user_management")
def deactivate_user(user_id):
    user = user_service.deactivate_user(user_id, acting_user_id=getattr(g, "jwt_user_id", None))
    return jsonify({"message": "User deactivated", "user": user.to_dict()}), 200


@rbac_bp.route("/users/<int:user_id>/reset-password", methods=["POST"])
@require_permission("user_management")
def reset_password(user_id):
    """The generated password is returned once and never stored in clear."""
    password = user_service.reset_user_password(user_id, acting_user_id=getattr(g, "jwt_user_id", None))
    return jsonify({"message": "Password reset", "user_id": user_id, "new_password": password}), 200
