"""
Management Dashboard Blueprint — weekly trend series for managers.

  GET /api/v1/management-dashboard/active-projects-trend     — ?weeks=12
  GET /api/v1/management-dashboard/utilisation-rate-trend    — ?weeks=12
  GET /api/v1/management-dashboard/under-utilised-resources  — start_date/end_date
  GET /api/v1/management-dashboard/over-utilised-resources   — start_date/end_date

Same fallback rule as the capacity dashboard: database errors yield an
empty series with HTTP 200.
"""

from flask import Blueprint, request

from app.blueprints import department_arg, period_args, with_fallback
from app.middleware.permission_required import require_any_permission
from app.services import trend_service
from app.utils.errors import register_service_error_handlers

management_bp = Blueprint("management_dashboard", __name__, url_prefix="/api/v1/management-dashboard")
register_service_error_handlers(management_bp)

_PERMISSIONS = ("dashboard", "reports")


@management_bp.route("/active-projects-trend", methods=["GET"])
@require_any_permission(*_PERMISSIONS)
def active_projects_trend():
    department = department_arg()
    weeks = trend_service.parse_weeks(request.args.get("weeks"))
    return with_fallback(
        lambda: trend_service.active_projects_trend(department, weeks),
        lambda: trend_service.fallback_series(department, weeks=weeks),
        "active-projects-trend",
    )


@management_bp.route("/utilisation-rate-trend", methods=["GET"])
@require_any_permission(*_PERMISSIONS)
def utilisation_rate_trend():
    department = department_arg()
    weeks = trend_service.parse_weeks(request.args.get("weeks"))
    return with_fallback(
        lambda: trend_service.utilisation_rate_trend(department, weeks),
        lambda: trend_service.fallback_series(department, weeks=weeks),
        "utilisation-rate-trend",
    )


@management_bp.route("/under-utilised-resources", methods=["GET"])
@require_any_permission(*_PERMISSIONS)
def under_utilised_resources():
    department = department_arg()
    period = period_args()
    return with_fallback(
        lambda: trend_service.under_utilised_resources(department, period),
        lambda: trend_service.fallback_series(department),
        "under-utilised-resources",
    )


@management_bp.route("/over-utilised-resources", methods=["GET"])
@require_any_permission(*_PERMISSIONS)
def over_utilised_resources():
    department = department_arg()
    period = period_args()
    return with_fallback(
        lambda: trend_service.over_utilised_resources(department, period),
        lambda: trend_service.fallback_series(department),
        "over-utilised-resources",
    )
