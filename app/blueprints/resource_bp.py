"""
Resource Blueprint — people whose capacity is planned.

  GET    /api/v1/resources                                  — list (department, include_inactive, limit, offset)
  POST   /api/v1/resources                                  — create
  GET    /api/v1/resources/<id>                             — detail incl. effective capacity
  PUT    /api/v1/resources/<id>                             — update
  DELETE /api/v1/resources/<id>                             — soft delete
  GET    /api/v1/resources/<id>/allocations                 — allocations (status filter)
  GET    /api/v1/resources/<id>/activities                  — non-project activities
  POST   /api/v1/resources/<id>/activities
  PUT    /api/v1/resources/<id>/activities/<activity_id>
  DELETE /api/v1/resources/<id>/activities/<activity_id>

Layer contract: request parsing and response shaping only; all
validation and persistence lives in resource_service.
"""

from flask import Blueprint, jsonify, request

from app.blueprints import bool_arg, department_arg, paged, pagination_args
from app.middleware.permission_required import require_permission
from app.services import resource_service
from app.utils.errors import register_service_error_handlers

resource_bp = Blueprint("resources", __name__, url_prefix="/api/v1/resources")
register_service_error_handlers(resource_bp)


@resource_bp.route("", methods=["GET"])
def list_resources():
    limit, offset = pagination_args()
    items, total = resource_service.list_resources(
        department=department_arg(),
        include_inactive=bool_arg("include_inactive"),
        limit=limit,
        offset=offset,
    )
    return jsonify(paged(items, total, limit, offset)), 200


@resource_bp.route("", methods=["POST"])
@require_permission("resource_management")
def create_resource():
    data = request.get_json(silent=True) or {}
    return jsonify(resource_service.create_resource(data)), 201


@resource_bp.route("/<int:resource_id>", methods=["GET"])
def get_resource(resource_id):
    return jsonify(resource_service.get_resource(resource_id)), 200


@resource_bp.route("/<int:resource_id>", methods=["PUT", "PATCH"])
@require_permission("resource_management")
def update_resource(resource_id):
    data = request.get_json(silent=True) or {}
    return jsonify(resource_service.update_resource(resource_id, data)), 200


@resource_bp.route("/<int:resource_id>", methods=["DELETE"])
@require_permission("resource_management")
def delete_resource(resource_id):
    resource_service.delete_resource(resource_id)
    return jsonify({"message": "Resource deleted"}), 200


@resource_bp.route("/<int:resource_id>/allocations", methods=["GET"])
def resource_allocations(resource_id):
    status = request.args.get("status") or None
    return jsonify(resource_service.list_resource_allocations(resource_id, status)), 200


# ═══════════════════════════════════════════════════════════════
# Non-project activities
# ═══════════════════════════════════════════════════════════════
@resource_bp.route("/<int:resource_id>/activities", methods=["GET"])
def list_activities(resource_id):
    return jsonify(resource_service.list_activities(resource_id)), 200


@resource_bp.route("/<int:resource_id>/activities", methods=["POST"])
@require_permission("resource_management")
def create_activity(resource_id):
    data = request.get_json(silent=True) or {}
    return jsonify(resource_service.create_activity(resource_id, data)), 201


@resource_bp.route("/<int:resource_id>/activities/<int:activity_id>", methods=["PUT", "PATCH"])
@require_permission("resource_management")
def update_activity(resource_id, activity_id):
    data = request.get_json(silent=True) or {}
    return jsonify(resource_service.update_activity(resource_id, activity_id, data)), 200


@resource_bp.route("/<int:resource_id>/activities/<int:activity_id>", methods=["DELETE"])
@require_permission("resource_management")
def delete_activity(resource_id, activity_id):
    resource_service.delete_activity(resource_id, activity_id)
    return jsonify({"message": "Activity deleted"}), 200
