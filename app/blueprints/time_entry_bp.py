"""
Time Logging Blueprint — weekly time entries and week submission.

Time entries:
  GET    /api/v1/time-entries          — list (resource_id, week_start_date, start_date, end_date)
  POST   /api/v1/time-entries          — create one entry per allocation and week
  GET    /api/v1/time-entries/<id>
  PUT    /api/v1/time-entries/<id>     — update day hours (rejected once the week is submitted)
  DELETE /api/v1/time-entries/<id>

Submissions:
  POST /api/v1/time-logging/submit/<resource_id>/<week>
  POST /api/v1/time-logging/unsubmit/<resource_id>/<week>
  GET  /api/v1/time-logging/pending               — resources missing a submission
  GET  /api/v1/time-logging/overview              — submission matrix for a period
"""

from datetime import date, timedelta

from flask import Blueprint, jsonify, request

from app.blueprints import department_arg, period_args
from app.core.exceptions import ValidationError
from app.middleware.permission_required import require_permission
from app.services import time_entry_service
from app.services.periods import monday_of
from app.utils.errors import register_service_error_handlers
from app.utils.helpers import parse_date

time_entry_bp = Blueprint("time_entries", __name__, url_prefix="/api/v1")
register_service_error_handlers(time_entry_bp)

OVERVIEW_DEFAULT_WEEKS = 4


def _date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    value = parse_date(raw)
    if value is None:
        raise ValidationError(f"Invalid {name}", details={name: "Use YYYY-MM-DD"})
    return value


# ═══════════════════════════════════════════════════════════════
# Time entries
# ═══════════════════════════════════════════════════════════════
@time_entry_bp.route("/time-entries", methods=["GET"])
@require_permission("time_logging")
def list_time_entries():
    week_raw = request.args.get("week_start_date")
    week_start = time_entry_service.parse_week_start(week_raw) if week_raw else None
    entries = time_entry_service.list_time_entries(
        resource_id=request.args.get("resource_id", type=int),
        week_start=week_start,
        start_date=_date_arg("start_date"),
        end_date=_date_arg("end_date"),
    )
    return jsonify(entries), 200


@time_entry_bp.route("/time-entries", methods=["POST"])
@require_permission("time_logging")
def create_time_entry():
    data = request.get_json(silent=True) or {}
    return jsonify(time_entry_service.create_time_entry(data)), 201


@time_entry_bp.route("/time-entries/<int:entry_id>", methods=["GET"])
@require_permission("time_logging")
def get_time_entry(entry_id):
    return jsonify(time_entry_service.get_time_entry(entry_id)), 200


@time_entry_bp.route("/time-entries/<int:entry_id>", methods=["PUT", "PATCH"])
@require_permission("time_logging")
def update_time_entry(entry_id):
    data = request.get_json(silent=True) or {}
    return jsonify(time_entry_service.update_time_entry(entry_id, data)), 200


@time_entry_bp.route("/time-entries/<int:entry_id>", methods=["DELETE"])
@require_permission("time_logging")
def delete_time_entry(entry_id):
    time_entry_service.delete_time_entry(entry_id)
    return jsonify({"message": "Time entry deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Weekly submissions
# ═══════════════════════════════════════════════════════════════
@time_entry_bp.route("/time-logging/submit/<int:resource_id>/<week>", methods=["POST"])
@require_permission("time_logging")
def submit_week(resource_id, week):
    return jsonify(time_entry_service.submit_week(resource_id, week)), 200


@time_entry_bp.route("/time-logging/unsubmit/<int:resource_id>/<week>", methods=["POST"])
@require_permission("submission_overview")
def unsubmit_week(resource_id, week):
    return jsonify(time_entry_service.unsubmit_week(resource_id, week)), 200


@time_entry_bp.route("/time-logging/pending", methods=["GET"])
@require_permission("submission_overview")
def pending_submissions():
    week_raw = request.args.get("week_start_date")
    week_start = time_entry_service.parse_week_start(week_raw) if week_raw else None
    return jsonify(time_entry_service.list_pending_submissions(week_start)), 200


@time_entry_bp.route("/time-logging/overview", methods=["GET"])
@require_permission("submission_overview")
def submission_overview():
    """Defaults to the four weeks ending with the current one."""
    period = period_args()
    if period is None:
        this_monday = monday_of(date.today())
        start = this_monday - timedelta(weeks=OVERVIEW_DEFAULT_WEEKS - 1)
        end = this_monday + timedelta(days=6)
    else:
        start, end = period.start, period.end
    return jsonify(time_entry_service.submission_overview(start, end, department_arg())), 200
