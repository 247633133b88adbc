"""
Alert Service — capacity alerts grouped by severity category.

A resource lands in exactly one category, chosen by its peak weekly
utilization inside the (current-date adjusted) period:

    critical / error / warning / info   peak ≥ threshold (highest tier wins)
    under_utilized                      0 < peak < under_utilization threshold
    unassigned                          no allocated hours in any week

Hours booked in a week with no effective capacity count as critical.

Thresholds come from settings_service.get_thresholds().
"""

import logging
from datetime import date, datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.services import capacity, dataset, settings_service
from app.services.periods import Period, adjust_for_current_date, current_week

logger = logging.getLogger(__name__)

ALERT_CATEGORIES = {
    "critical": {"title": "Critical Overallocation", "color": "#dc2626", "icon": "alert-circle"},
    "error": {"title": "Overallocation Detected", "color": "#ea580c", "icon": "alert-circle"},
    "warning": {"title": "Near Capacity", "color": "#ca8a04", "icon": "alert-triangle"},
    "info": {"title": "Approaching Capacity", "color": "#0891b2", "icon": "info"},
    "under_utilized": {"title": "Under-utilized", "color": "#2563eb", "icon": "trending-down"},
    "unassigned": {"title": "Unassigned Resources", "color": "#6b7280", "icon": "user-x"},
}
CATEGORY_ORDER = tuple(ALERT_CATEGORIES)
SEVERITY_FILTERS = ("all",) + CATEGORY_ORDER


def _threshold_for(category: str, thresholds: dict):
    if category == "under_utilized":
        return thresholds["under_utilization"]
    if category == "unassigned":
        return 0
    return thresholds[category]


def _describe(category: str, count: int, threshold) -> str:
    noun = "resource" if count == 1 else "resources"
    if category == "under_utilized":
        return f"{count} {noun} below {threshold:g}% utilization"
    if category == "unassigned":
        return f"{count} {noun} without allocated hours"
    return f"{count} {noun} at or above {threshold:g}% utilization"


def categorize(peak_utilization: float, has_hours: bool, thresholds: dict, overbooked: bool = False) -> str | None:
    """Category of one resource from its peak utilization.

    ``overbooked`` marks hours booked in a week with no effective capacity,
    which is critical whatever the percentage says.
    """
    if overbooked:
        return "critical"
    if not has_hours:
        return "unassigned"
    tier = capacity.classify_severity(peak_utilization, thresholds)
    if tier:
        return tier
    if peak_utilization < thresholds["under_utilization"]:
        return "under_utilized"
    return None


def _resource_row(data, resource, series: list[dict]) -> dict:
    peak = max(series, key=lambda w: (w["utilization"], w["hours"])) if series else None
    project_ids = {pid for w in series for pid in w["projects"]}
    return {
        "id": resource.id,
        "name": resource.name,
        "email": resource.email,
        "role": resource.role,
        "department": capacity.department_of(resource),
        "utilization": capacity.round1(peak["utilization"]) if peak else 0.0,
        "allocated_hours": capacity.round1(peak["hours"]) if peak else 0.0,
        "capacity": capacity.round1(data.capacity_of(resource)),
        "peak_week": peak["week"] if peak and peak["hours"] > 0 else None,
        "projects": sorted(
            data.projects_by_id[pid].name for pid in project_ids if pid in data.projects_by_id
        ),
    }


def compute_alerts(
    department: str | None = None,
    period: Period | None = None,
    severity: str = "all",
    today: date | None = None,
) -> dict:
    severity = (severity or "all").lower()
    if severity not in SEVERITY_FILTERS:
        raise ValidationError(
            "Invalid severity filter",
            details={"severity": f"must be one of: {', '.join(SEVERITY_FILTERS)}"},
        )

    adjustment = adjust_for_current_date(period or current_week(today), today)
    window = adjustment.period
    thresholds = settings_service.get_thresholds()
    data = dataset.load_dataset(department)

    buckets: dict[str, list] = {c: [] for c in CATEGORY_ORDER}
    for resource in data.active_resources:
        series = dataset.weekly_series(data, resource, window.start, window.end)
        peak = max((w["utilization"] for w in series), default=0.0)
        has_hours = any(w["hours"] > 0 for w in series)
        overbooked = any(capacity.overbooked_without_capacity(w["hours"], w["capacity"]) for w in series)
        category = categorize(peak, has_hours, thresholds, overbooked)
        if category:
            buckets[category].append(_resource_row(data, resource, series))

    categories = []
    for category in CATEGORY_ORDER:
        rows = buckets[category]
        if not rows or severity not in ("all", category):
            continue
        rows.sort(key=lambda r: (-r["utilization"], r["name"]))
        threshold = _threshold_for(category, thresholds)
        categories.append({
            "type": category,
            "title": ALERT_CATEGORIES[category]["title"],
            "description": _describe(category, len(rows), threshold),
            "count": len(rows),
            "resources": rows,
            "threshold": threshold,
            "color": ALERT_CATEGORIES[category]["color"],
            "icon": ALERT_CATEGORIES[category]["icon"],
        })

    counts = {c["type"]: c["count"] for c in categories}
    summary = {"total_alerts": sum(counts.values())}
    for category in CATEGORY_ORDER:
        summary[f"{category}_count"] = counts.get(category, 0)

    logger.debug("Alerts computed department=%s total=%d", data.department, summary["total_alerts"])
    return {
        "alerts": categories,
        "summary": summary,
        "metadata": {
            "department": data.department,
            "period": window.to_dict(),
            "adjustment": adjustment.to_dict(),
            "thresholds": thresholds,
            "severity": severity,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


def fallback_alerts(department: str | None = None, period: Period | None = None) -> dict:
    summary = {"total_alerts": 0}
    for category in CATEGORY_ORDER:
        summary[f"{category}_count"] = 0
    return {
        "alerts": [],
        "summary": summary,
        "metadata": {
            "department": department or "all",
            "period": (period or current_week()).to_dict(),
            "thresholds": dict(capacity.DEFAULT_THRESHOLDS),
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "fallback": True,
        },
    }


# ═══════════════════════════════════════════════════════════════
# Per-resource breakdown
# ═══════════════════════════════════════════════════════════════
def resource_breakdown(resource_id: int, period: Period | None = None, today: date | None = None) -> dict:
    """Week-by-week hours of one resource, split by project."""
    window = period or current_week(today)
    thresholds = settings_service.get_thresholds()
    data = dataset.load_dataset()
    resource = next((r for r in data.resources if r.id == resource_id), None)
    if resource is None:
        raise NotFoundError("Resource", resource_id)

    series = dataset.weekly_series(data, resource, window.start, window.end)
    weeks = []
    for w in series:
        weeks.append({
            "week": w["week"],
            "week_start": w["week_start"].isoformat(),
            "hours": capacity.round1(w["hours"]),
            "capacity": capacity.round1(w["capacity"]),
            "utilization": capacity.round1(w["utilization"]),
            "severity": capacity.classify_severity(w["utilization"], thresholds),
            "projects": [
                {
                    "project_id": pid,
                    "project_name": data.projects_by_id[pid].name if pid in data.projects_by_id else None,
                    "hours": capacity.round1(hours),
                }
                for pid, hours in sorted(w["projects"].items(), key=lambda kv: -kv[1])
            ],
        })

    peak = max((w["utilization"] for w in series), default=0.0)
    return {
        "resource": resource.to_dict(),
        "weeks": weeks,
        "summary": {
            "peak_utilization": capacity.round1(peak),
            "average_utilization": capacity.round1(dataset.average_utilization(series)),
            "status": capacity.utilization_status(
                peak,
                is_active=resource.is_active,
                has_allocations=any(w["hours"] > 0 for w in series),
                overbooked=any(capacity.overbooked_without_capacity(w["hours"], w["capacity"]) for w in series),
                thresholds=thresholds,
            ),
        },
        "period": window.to_dict(),
    }
