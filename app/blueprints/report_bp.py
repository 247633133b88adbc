"""
Reports Blueprint.

  POST   /api/v1/reports/dashboard                  — reports page KPIs and charts
  POST   /api/v1/reports/change-allocation          — planned vs logged per allocation
  POST   /api/v1/reports/change-allocation/export   — same report as XLSX download
  POST   /api/v1/reports/change-effort              — estimated vs logged per change project
  POST   /api/v1/reports/business-controller        — logged hours per project and resource
  GET    /api/v1/reports/effort-notes               — ?project_id=&change_lead_id=
  POST   /api/v1/reports/effort-notes               — create or overwrite a note
  GET    /api/v1/reports/recent                     — caller's recent reports
  POST   /api/v1/reports/recent                     — record a generated report
  DELETE /api/v1/reports/recent/<id>
  DELETE /api/v1/reports/recent                     — clear the caller's list

Layer contract: report_service and effort_service do the work; this module
parses bodies, streams the workbook and records the export in the recent
list.
"""

import io
import logging
from datetime import datetime, timezone

from flask import Blueprint, g, jsonify, request, send_file

from app.middleware.permission_required import require_any_permission, require_permission
from app.services import effort_service, report_service
from app.utils.errors import register_service_error_handlers

logger = logging.getLogger(__name__)

report_bp = Blueprint("reports", __name__, url_prefix="/api/v1/reports")
register_service_error_handlers(report_bp)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_CHANGE_PERMISSIONS = ("reports", "change_lead_reports")


def _current_user_id():
    return getattr(g, "jwt_user_id", None)


def _criteria_dict(criteria):
    return {
        "start_date": criteria["period"].start.isoformat(),
        "end_date": criteria["period"].end.isoformat(),
        "project_ids": criteria["project_ids"],
        "resource_ids": criteria["resource_ids"],
        "group_by": criteria["group_by"],
    }


@report_bp.route("/dashboard", methods=["POST"])
@require_permission("reports")
def dashboard_report():
    """Body: {start_date, end_date}"""
    data = request.get_json(silent=True) or {}
    period = report_service.require_period(data)
    report = report_service.generate_dashboard_report(period)
    report["recent_reports"] = report_service.list_recent_reports(_current_user_id())
    return jsonify(report), 200


@report_bp.route("/change-allocation", methods=["POST"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def change_allocation_report():
    """Body: {start_date, end_date, project_ids, resource_ids?, group_by?}"""
    data = request.get_json(silent=True) or {}
    criteria = report_service.parse_change_allocation_criteria(data)
    return jsonify(report_service.generate_change_allocation(criteria, _current_user_id())), 200


@report_bp.route("/change-allocation/export", methods=["POST"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def export_change_allocation():
    data = request.get_json(silent=True) or {}
    criteria = report_service.parse_change_allocation_criteria(data)
    user_id = _current_user_id()
    report = report_service.generate_change_allocation(criteria, user_id)
    content = report_service.export_change_allocation_xlsx(report)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M")
    filename = f"change_allocation_{stamp}.xlsx"
    report_service.create_recent_report(
        {
            "name": filename,
            "report_type": "change_allocation",
            "size": report_service.human_size(len(content)),
            "criteria": _criteria_dict(criteria),
        },
        user_id,
    )
    logger.info("Change allocation export size=%d user_id=%s", len(content), user_id)
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


# ═══════════════════════════════════════════════════════════════
# Effort reports and notes
# ═══════════════════════════════════════════════════════════════
@report_bp.route("/change-effort", methods=["POST"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def change_effort_report():
    """Body: {start_date, end_date, project_id?}"""
    data = request.get_json(silent=True) or {}
    period = report_service.require_period(data)
    return jsonify(effort_service.change_effort_report(period, data)), 200


@report_bp.route("/business-controller", methods=["POST"])
@require_permission("reports")
def business_controller_report():
    """Body: {start_date, end_date, show_only_active?}"""
    data = request.get_json(silent=True) or {}
    period = report_service.require_period(data)
    return jsonify(effort_service.business_controller_report(period, data)), 200


@report_bp.route("/effort-notes", methods=["GET"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def list_effort_notes():
    notes = effort_service.list_effort_notes(
        project_id=request.args.get("project_id", type=int),
        change_lead_id=request.args.get("change_lead_id", type=int),
    )
    return jsonify(notes), 200


@report_bp.route("/effort-notes", methods=["POST"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def save_effort_note():
    """Body: {project_id, resource_id, change_lead_id, note}"""
    data = request.get_json(silent=True) or {}
    note, created = effort_service.save_effort_note(data, _current_user_id())
    return jsonify(note), 201 if created else 200


# ═══════════════════════════════════════════════════════════════
# Recent reports
# ═══════════════════════════════════════════════════════════════
@report_bp.route("/recent", methods=["GET"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def list_recent():
    limit = request.args.get("limit", report_service.RECENT_REPORTS_LIMIT, type=int)
    return jsonify(report_service.list_recent_reports(_current_user_id(), limit=max(1, min(limit, 100)))), 200


@report_bp.route("/recent", methods=["POST"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def create_recent():
    data = request.get_json(silent=True) or {}
    return jsonify(report_service.create_recent_report(data, _current_user_id())), 201


@report_bp.route("/recent/<int:report_id>", methods=["DELETE"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def delete_recent(report_id):
    report_service.delete_recent_report(report_id, _current_user_id())
    return jsonify({"message": "Report deleted"}), 200


@report_bp.route("/recent", methods=["DELETE"])
@require_any_permission(*_CHANGE_PERMISSIONS)
def clear_recent():
    count = report_service.clear_recent_reports(_current_user_id())
    return jsonify({"message": "Recent reports cleared", "deleted": count}), 200
