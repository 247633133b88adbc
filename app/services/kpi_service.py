"""
KPI Service — headline dashboard numbers and their 7-week trend.

Layer contract: called by dashboard_bp only; reads through
``dataset.load_dataset`` so the blueprint's database fallback covers it.

    active_projects      status "active" and overlapping the period
    total_projects       projects in scope (department filter → staffed projects)
    available_resources  active resources below 100 % utilization
    total_resources      active resources
    utilization          total allocated / total effective capacity (%)
    conflicts            active resources above 100 %, or with hours and no capacity
"""

import logging
from datetime import datetime, timezone

from app.services import capacity, dataset
from app.services.periods import Period, current_week, historical_periods, overlaps

logger = logging.getLogger(__name__)

TREND_METRICS = ("active_projects", "available_resources", "utilization", "conflicts")
TREND_POINTS = 7
TREND_LABEL = "from last week"


def _projects_in_scope(data: dataset.Dataset) -> list:
    if data.department == "all":
        return list(data.projects)
    staffed = {a.project_id for a in data.allocations}
    return [p for p in data.projects if p.id in staffed]


def _snapshot(data: dataset.Dataset, period: Period) -> dict:
    """KPI values for one period, before trend decoration."""
    projects = _projects_in_scope(data)
    active_projects = sum(
        1 for p in projects
        if p.status == "active" and overlaps(p.start_date, p.end_date, period.start, period.end)
    )

    total_hours = 0.0
    total_capacity = 0.0
    available = 0
    conflicts = 0
    resources = data.active_resources
    for resource in resources:
        series = dataset.weekly_series(data, resource, period.start, period.end)
        hours = sum(w["hours"] for w in series)
        cap = sum(w["capacity"] for w in series)
        total_hours += hours
        total_capacity += cap
        if capacity.overbooked_without_capacity(hours, cap):
            conflicts += 1
            continue
        util = capacity.utilization_pct(hours, cap)
        if util < 100:
            available += 1
        if util > 100:
            conflicts += 1

    snapshot = {
        "active_projects": active_projects,
        "total_projects": len(projects),
        "available_resources": available,
        "total_resources": len(resources),
        "utilization": capacity.round1(capacity.utilization_pct(total_hours, total_capacity)),
        "conflicts": conflicts,
    }
    return _sanitize(snapshot)


def _sanitize(kpis: dict) -> dict:
    kpis["total_projects"] = max(kpis["total_projects"], 0)
    kpis["active_projects"] = min(max(kpis["active_projects"], 0), kpis["total_projects"])
    kpis["total_resources"] = max(kpis["total_resources"], 0)
    kpis["available_resources"] = min(max(kpis["available_resources"], 0), kpis["total_resources"])
    kpis["conflicts"] = max(kpis["conflicts"], 0)
    return kpis


def _trend_entry(values: list) -> dict:
    return {
        "current_value": values[-1] if values else 0,
        "previous_value": values[-2] if len(values) > 1 else 0,
        "period_label": TREND_LABEL,
        "trend_data": values,
    }


def compute_kpis(department: str | None = None, period: Period | None = None) -> dict:
    period = period or current_week()
    data = dataset.load_dataset(department)

    kpis = _snapshot(data, period)

    history = [_snapshot(data, window) for window in historical_periods(period.end, TREND_POINTS)]
    kpis["trend_data"] = {
        metric: _trend_entry([snap[metric] for snap in history]) for metric in TREND_METRICS
    }
    kpis["metadata"] = {
        "department": data.department,
        "period": period.to_dict(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.debug("KPIs computed department=%s period=%s", data.department, period)
    return kpis


def fallback_kpis(department: str | None = None, period: Period | None = None) -> dict:
    """Zeroed KPI payload used when the database is unavailable."""
    period = period or current_week()
    return {
        "active_projects": 0,
        "total_projects": 0,
        "available_resources": 0,
        "total_resources": 0,
        "utilization": 0.0,
        "conflicts": 0,
        "trend_data": {metric: _trend_entry([0] * TREND_POINTS) for metric in TREND_METRICS},
        "metadata": {
            "department": department or "all",
            "period": period.to_dict(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "fallback": True,
        },
    }
