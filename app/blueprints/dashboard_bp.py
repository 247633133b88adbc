"""
Capacity Dashboard Blueprint.

  GET /api/v1/dashboard/kpis                                  — headline KPIs + 7-week trends
  GET /api/v1/dashboard/kpis/<department>/<start>/<end>
  GET /api/v1/dashboard/alerts                                — severity-bucketed resources
  GET /api/v1/dashboard/alerts/resource/<id>/breakdown        — per-week drill-down
  GET /api/v1/dashboard/heatmap                               — view=resources|projects|departments
  GET /api/v1/dashboard/timeline                              — project timeline
  GET /api/v1/dashboard/timeline/<department>/<start>/<end>
  GET /api/v1/dashboard/gamified-metrics

Common query params: department (default "all"), start_date, end_date.

A database failure never breaks the dashboard: each endpoint answers 200
with its zeroed fallback payload (metadata.fallback = true).
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import department_arg, period_args, with_fallback
from app.middleware.permission_required import require_permission
from app.services import (
    alert_service,
    gamified_service,
    heatmap_service,
    kpi_service,
    timeline_service,
)
from app.services.periods import parse_period
from app.utils.errors import register_service_error_handlers

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")
register_service_error_handlers(dashboard_bp)


def _path_department(department):
    return None if department.lower() == "all" else department


# ═══════════════════════════════════════════════════════════════
# KPIs
# ═══════════════════════════════════════════════════════════════
def _kpis(department, period):
    return with_fallback(
        lambda: kpi_service.compute_kpis(department, period),
        lambda: kpi_service.fallback_kpis(department, period),
        "kpis",
    )


@dashboard_bp.route("/kpis", methods=["GET"])
@require_permission("dashboard")
def kpis():
    return _kpis(department_arg(), period_args())


@dashboard_bp.route("/kpis/<department>/<start_date>/<end_date>", methods=["GET"])
@require_permission("dashboard")
def kpis_for(department, start_date, end_date):
    return _kpis(_path_department(department), parse_period(start_date, end_date))


# ═══════════════════════════════════════════════════════════════
# Alerts
# ═══════════════════════════════════════════════════════════════
@dashboard_bp.route("/alerts", methods=["GET"])
@require_permission("dashboard")
def alerts():
    department = department_arg()
    period = period_args()
    severity = request.args.get("severity", "all")
    return with_fallback(
        lambda: alert_service.compute_alerts(department, period, severity),
        lambda: alert_service.fallback_alerts(department, period),
        "alerts",
    )


@dashboard_bp.route("/alerts/resource/<int:resource_id>/breakdown", methods=["GET"])
@require_permission("dashboard")
def resource_breakdown(resource_id):
    return jsonify(alert_service.resource_breakdown(resource_id, period_args())), 200


# ═══════════════════════════════════════════════════════════════
# Heatmap
# ═══════════════════════════════════════════════════════════════
@dashboard_bp.route("/heatmap", methods=["GET"])
@require_permission("dashboard")
def heatmap():
    department = department_arg()
    period = period_args()
    view = request.args.get("view", "resources")
    return with_fallback(
        lambda: heatmap_service.compute_heatmap(department, period, view),
        lambda: heatmap_service.fallback_heatmap(department, period, view),
        "heatmap",
    )


# ═══════════════════════════════════════════════════════════════
# Timeline
# ═══════════════════════════════════════════════════════════════
def _timeline(department, period):
    return with_fallback(
        lambda: timeline_service.compute_timeline(department, period),
        lambda: timeline_service.fallback_timeline(department, period),
        "timeline",
    )


@dashboard_bp.route("/timeline", methods=["GET"])
@require_permission("dashboard")
def timeline():
    return _timeline(department_arg(), period_args())


@dashboard_bp.route("/timeline/<department>/<start_date>/<end_date>", methods=["GET"])
@require_permission("dashboard")
def timeline_for(department, start_date, end_date):
    return _timeline(_path_department(department), parse_period(start_date, end_date))


# ═══════════════════════════════════════════════════════════════
# Gamified metrics
# ═══════════════════════════════════════════════════════════════
@dashboard_bp.route("/gamified-metrics", methods=["GET"])
@require_permission("dashboard")
def gamified_metrics():
    department = department_arg()
    return with_fallback(
        lambda: gamified_service.compute_gamified_metrics(department),
        lambda: gamified_service.fallback_gamified_metrics(department),
        "gamified-metrics",
    )
