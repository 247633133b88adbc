"""
Allocation Blueprint — resource ↔ project bookings.

  GET    /api/v1/allocations               — list (resource_id, project_id, status, limit, offset)
  POST   /api/v1/allocations               — create
  GET    /api/v1/allocations/<id>
  PUT    /api/v1/allocations/<id>          — update
  PUT    /api/v1/allocations/<id>/weekly   — replace the weekly hours map
  DELETE /api/v1/allocations/<id>
"""

from flask import Blueprint, jsonify, request

from app.blueprints import paged, pagination_args
from app.middleware.permission_required import require_any_permission
from app.services import allocation_service
from app.utils.errors import register_service_error_handlers

allocation_bp = Blueprint("allocations", __name__, url_prefix="/api/v1/allocations")
register_service_error_handlers(allocation_bp)

_WRITE_PERMISSIONS = ("resource_management", "project_management")


@allocation_bp.route("", methods=["GET"])
def list_allocations():
    limit, offset = pagination_args()
    items, total = allocation_service.list_allocations(
        resource_id=request.args.get("resource_id", type=int),
        project_id=request.args.get("project_id", type=int),
        status=request.args.get("status") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(paged(items, total, limit, offset)), 200


@allocation_bp.route("", methods=["POST"])
@require_any_permission(*_WRITE_PERMISSIONS)
def create_allocation():
    data = request.get_json(silent=True) or {}
    return jsonify(allocation_service.create_allocation(data)), 201


@allocation_bp.route("/<int:allocation_id>", methods=["GET"])
def get_allocation(allocation_id):
    return jsonify(allocation_service.get_allocation(allocation_id)), 200


@allocation_bp.route("/<int:allocation_id>", methods=["PUT", "PATCH"])
@require_any_permission(*_WRITE_PERMISSIONS)
def update_allocation(allocation_id):
    data = request.get_json(silent=True) or {}
    return jsonify(allocation_service.update_allocation(allocation_id, data)), 200


@allocation_bp.route("/<int:allocation_id>/weekly", methods=["PUT"])
@require_any_permission(*_WRITE_PERMISSIONS)
def replace_weekly(allocation_id):
    """Body: {"weekly_allocations": {"2026-W10": 16, ...}} or the bare map."""
    data = request.get_json(silent=True) or {}
    weekly = data.get("weekly_allocations", data)
    return jsonify(allocation_service.replace_weekly_allocations(allocation_id, weekly)), 200


@allocation_bp.route("/<int:allocation_id>", methods=["DELETE"])
@require_any_permission(*_WRITE_PERMISSIONS)
def delete_allocation(allocation_id):
    allocation_service.delete_allocation(allocation_id)
    return jsonify({"message": "Allocation deleted"}), 200
