"""
Project Blueprint.

  GET    /api/v1/projects                    — list (status, type, limit, offset)
  POST   /api/v1/projects                    — create
  GET    /api/v1/projects/<id>               — detail incl. team size and weekly hours
  PUT    /api/v1/projects/<id>               — update
  DELETE /api/v1/projects/<id>               — delete (allocations cascade)
  GET    /api/v1/projects/<id>/allocations   — staffing of the project
"""

from flask import Blueprint, jsonify, request

from app.blueprints import paged, pagination_args
from app.middleware.permission_required import require_permission
from app.services import project_service
from app.utils.errors import register_service_error_handlers

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")
register_service_error_handlers(project_bp)


@project_bp.route("", methods=["GET"])
def list_projects():
    limit, offset = pagination_args()
    items, total = project_service.list_projects(
        status=request.args.get("status") or None,
        project_type=request.args.get("type") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify(paged(items, total, limit, offset)), 200


@project_bp.route("", methods=["POST"])
@require_permission("project_management")
def create_project():
    data = request.get_json(silent=True) or {}
    return jsonify(project_service.create_project(data)), 201


@project_bp.route("/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(project_service.get_project(project_id)), 200


@project_bp.route("/<int:project_id>", methods=["PUT", "PATCH"])
@require_permission("project_management")
def update_project(project_id):
    data = request.get_json(silent=True) or {}
    return jsonify(project_service.update_project(project_id, data)), 200


@project_bp.route("/<int:project_id>", methods=["DELETE"])
@require_permission("project_management")
def delete_project(project_id):
    project_service.delete_project(project_id)
    return jsonify({"message": "Project deleted"}), 200


@project_bp.route("/<int:project_id>/allocations", methods=["GET"])
def project_allocations(project_id):
    return jsonify(project_service.list_project_allocations(project_id)), 200
