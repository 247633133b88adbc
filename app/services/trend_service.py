"""
Trend Service — weekly series and resource lists for the management dashboard.

Functions:
    - active_projects_trend:       active projects overlapping each of the last N weeks
    - utilisation_rate_trend:      team utilization (hours / capacity) per week
    - under_utilised_resources:    resources below the under-utilization threshold
    - over_utilised_resources:     resources at or above the error threshold
"""

import logging
from datetime import date, datetime, timedelta, timezone

from app.core.exceptions import ValidationError
from app.services import capacity, dataset, settings_service
from app.services.periods import Period, current_week, overlaps, week_key

logger = logging.getLogger(__name__)

DEFAULT_TREND_WEEKS = 12
MAX_TREND_WEEKS = 52


def parse_weeks(raw) -> int:
    if raw in (None, ""):
        return DEFAULT_TREND_WEEKS
    try:
        weeks = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("weeks must be an integer", details={"weeks": raw}) from None
    if weeks < 1 or weeks > MAX_TREND_WEEKS:
        raise ValidationError(
            f"weeks must be between 1 and {MAX_TREND_WEEKS}", details={"weeks": weeks},
        )
    return weeks


def _trailing_weeks(count: int, today: date | None = None) -> list[Period]:
    this_week = current_week(today)
    return [
        Period(this_week.start - timedelta(days=7 * i), this_week.end - timedelta(days=7 * i))
        for i in range(count - 1, -1, -1)
    ]


def _meta(data, **extra) -> dict:
    meta = {"department": data.department, "generated_at": datetime.now(timezone.utc).isoformat()}
    meta.update(extra)
    return meta


# ═══════════════════════════════════════════════════════════════
# Weekly series
# ═══════════════════════════════════════════════════════════════
def active_projects_trend(department=None, weeks: int = DEFAULT_TREND_WEEKS, today: date | None = None) -> dict:
    data = dataset.load_dataset(department)
    staffed = {a.project_id for a in data.allocations}
    projects = [
        p for p in data.projects
        if p.status == "active" and (data.department == "all" or p.id in staffed)
    ]
    series = []
    for week in _trailing_weeks(weeks, today):
        series.append({
            "week": week_key(week.start),
            "week_start": week.start.isoformat(),
            "active_projects": sum(
                1 for p in projects if overlaps(p.start_date, p.end_date, week.start, week.end)
            ),
        })
    return {"data": series, "metadata": _meta(data, weeks=weeks)}


def utilisation_rate_trend(department=None, weeks: int = DEFAULT_TREND_WEEKS, today: date | None = None) -> dict:
    data = dataset.load_dataset(department)
    series = []
    for week in _trailing_weeks(weeks, today):
        hours = 0.0
        cap = 0.0
        for resource in data.active_resources:
            for w in dataset.weekly_series(data, resource, week.start, week.end):
                hours += w["hours"]
                cap += w["capacity"]
        series.append({
            "week": week_key(week.start),
            "week_start": week.start.isoformat(),
            "allocated_hours": capacity.round1(hours),
            "capacity_hours": capacity.round1(cap),
            "utilisation_rate": capacity.round1(capacity.utilization_pct(hours, cap)),
        })
    return {"data": series, "metadata": _meta(data, weeks=weeks)}


# ═══════════════════════════════════════════════════════════════
# Resource lists
# ═══════════════════════════════════════════════════════════════
def _resource_utilizations(data, period: Period) -> list[dict]:
    rows = []
    for resource in data.active_resources:
        series = dataset.weekly_series(data, resource, period.start, period.end)
        weeks = len(series) or 1
        util = dataset.average_utilization(series)
        rows.append({
            "id": resource.id,
            "name": resource.name,
            "role": resource.role,
            "department": capacity.department_of(resource),
            "utilization": capacity.round1(util),
            "allocated_hours": capacity.round1(sum(w["hours"] for w in series) / weeks),
            "capacity": capacity.round1(data.capacity_of(resource)),
            "_raw": util,
        })
    return rows


def under_utilised_resources(department=None, period: Period | None = None) -> dict:
    period = period or current_week()
    thresholds = settings_service.get_thresholds()
    data = dataset.load_dataset(department)
    limit = thresholds["under_utilization"]
    rows = [r for r in _resource_utilizations(data, period) if r.pop("_raw") < limit]
    rows.sort(key=lambda r: (r["utilization"], r["name"]))
    return {"data": rows, "metadata": _meta(data, period=period.to_dict(), threshold=limit)}


def over_utilised_resources(department=None, period: Period | None = None) -> dict:
    period = period or current_week()
    thresholds = settings_service.get_thresholds()
    data = dataset.load_dataset(department)
    limit = thresholds["error"]
    rows = [r for r in _resource_utilizations(data, period) if r.pop("_raw") >= limit]
    rows.sort(key=lambda r: (-r["utilization"], r["name"]))
    return {"data": rows, "metadata": _meta(data, period=period.to_dict(), threshold=limit)}


def fallback_series(department=None, **extra) -> dict:
    """Empty payload shared by every management endpoint."""
    meta = {
        "department": department or "all",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "fallback": True,
    }
    meta.update(extra)
    return {"data": [], "metadata": meta}
