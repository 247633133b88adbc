"""
Settings Blueprint — alert thresholds and departments.

  GET    /api/v1/settings/thresholds          — effective thresholds with defaults
  PUT    /api/v1/settings/thresholds          — {critical?, error?, warning?, info?, under_utilization?}
  GET    /api/v1/settings/departments         — ?include_inactive=true
  POST   /api/v1/settings/departments
  PUT    /api/v1/settings/departments/<id>
  DELETE /api/v1/settings/departments/<id>

Reading departments is open to every signed-in user (the dashboard
filter needs it); everything else needs system_admin or settings.
"""

from flask import Blueprint, jsonify, request

from app.blueprints import bool_arg
from app.middleware.permission_required import require_any_permission
from app.services import settings_service
from app.utils.errors import register_service_error_handlers

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")
register_service_error_handlers(settings_bp)

_ADMIN_PERMISSIONS = ("system_admin", "settings")


@settings_bp.route("/thresholds", methods=["GET"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def get_thresholds():
    return jsonify({
        "thresholds": settings_service.get_thresholds(),
        "settings": settings_service.list_threshold_settings(),
    }), 200


@settings_bp.route("/thresholds", methods=["PUT"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def update_thresholds():
    data = request.get_json(silent=True) or {}
    payload = data.get("thresholds", data)
    return jsonify({"thresholds": settings_service.update_thresholds(payload)}), 200


@settings_bp.route("/departments", methods=["GET"])
def list_departments():
    return jsonify(settings_service.list_departments(bool_arg("include_inactive"))), 200


@settings_bp.route("/departments", methods=["POST"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def create_department():
    data = request.get_json(silent=True) or {}
    return jsonify(settings_service.create_department(data)), 201


@settings_bp.route("/departments/<int:dept_id>", methods=["PUT", "PATCH"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def update_department(dept_id):
    data = request.get_json(silent=True) or {}
    return jsonify(settings_service.update_department(dept_id, data)), 200


@settings_bp.route("/departments/<int:dept_id>", methods=["DELETE"])
@require_any_permission(*_ADMIN_PERMISSIONS)
def delete_department(dept_id):
    settings_service.delete_department(dept_id)
    return jsonify({"message": "Department deleted"}), 200
