"""
Capacity math — effective capacity, utilization, severity tiers.

Every dashboard, alert, heatmap and report number is derived from the
functions in this module, so the thresholds and rounding rules live in
one place.

    effective capacity = max(0, weekly_capacity − non-project hours)
    utilization %      = allocated hours / effective capacity × 100

Default thresholds (percent of effective capacity):

    critical            ≥ 120
    error               ≥ 100   (over capacity)
    warning             ≥  90   (near capacity)
    info                ≥  75   (approaching capacity)
    under_utilization   <  50
"""

from __future__ import annotations

import logging
import math
from datetime import date

from app.services.periods import overlaps

logger = logging.getLogger(__name__)

DEFAULT_WEEKLY_CAPACITY = 40.0
DEFAULT_NON_PROJECT_HOURS = 8.0
MAX_WEEKLY_HOURS = 168.0

DEFAULT_THRESHOLDS: dict[str, float] = {
    "critical": 120.0,
    "error": 100.0,
    "warning": 90.0,
    "info": 75.0,
    "under_utilization": 50.0,
}

# Ordered from most to least severe; classify_severity walks this list.
SEVERITY_ORDER = ("critical", "error", "warning", "info")


def round1(value: float) -> float:
    """Round to one decimal place, half away from zero."""
    if value is None:
        return 0.0
    sign = -1.0 if value < 0 else 1.0
    return sign * math.floor(abs(value) * 10 + 0.5) / 10


def _to_float(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


# ═══════════════════════════════════════════════════════════════
# Capacity
# ═══════════════════════════════════════════════════════════════
def normalize_capacity(weekly_capacity) -> float:
    """Return a usable weekly capacity; missing or out-of-range values become 40h."""
    number = _to_float(weekly_capacity)
    if number is None or number < 0 or number > MAX_WEEKLY_HOURS:
        if weekly_capacity is not None:
            logger.debug("Invalid weekly capacity %r, using default", weekly_capacity)
        return DEFAULT_WEEKLY_CAPACITY
    return number


def effective_capacity(weekly_capacity, non_project_hours: float = DEFAULT_NON_PROJECT_HOURS) -> float:
    """Hours per week available for project work."""
    return max(0.0, normalize_capacity(weekly_capacity) - non_project_hours)


def utilization_pct(allocated_hours: float, capacity_hours: float) -> float:
    """Unrounded utilization percentage; 0 when there is no capacity."""
    if capacity_hours is None or capacity_hours <= 0:
        return 0.0
    return max(0.0, allocated_hours or 0.0) / capacity_hours * 100.0


def overbooked_without_capacity(allocated_hours: float, capacity_hours: float) -> bool:
    """Hours booked against no effective capacity; utilization_pct reports 0 for these."""
    return (allocated_hours or 0.0) > 0 and (capacity_hours is None or capacity_hours <= 0)


# ═══════════════════════════════════════════════════════════════
# Allocation hours
# ═══════════════════════════════════════════════════════════════
def valid_weekly_values(weekly_allocations) -> dict[str, float]:
    """Filter a weekly map down to entries with hours in [0, 168]."""
    if not isinstance(weekly_allocations, dict):
        return {}
    clean = {}
    for key, raw in weekly_allocations.items():
        hours = _to_float(raw)
        if hours is None or hours < 0 or hours > MAX_WEEKLY_HOURS:
            continue
        clean[str(key)] = hours
    return clean


def allocation_hours(allocated_hours, weekly_allocations=None) -> float:
    """Weekly hours of an allocation.

    ``allocated_hours`` when positive, otherwise the sum of the valid weekly
    values. The result is clamped to [0, 168].
    """
    base = _to_float(allocated_hours)
    if base is not None and base > 0:
        total = base
    else:
        total = sum(valid_weekly_values(weekly_allocations).values())
    return min(max(total, 0.0), MAX_WEEKLY_HOURS)


def allocation_week_hours(allocation, week_key: str, week_start: date, week_end: date) -> float:
    """Hours ``allocation`` contributes to one ISO week.

    Allocations with a weekly map answer from the map (0 for weeks not
    listed). Flat allocations contribute ``allocated_hours`` for every
    week their date range touches.
    """
    weekly = valid_weekly_values(getattr(allocation, "weekly_allocations", None))
    if weekly:
        return weekly.get(week_key, 0.0)
    if not overlaps(allocation.start_date, allocation.end_date, week_start, week_end):
        return 0.0
    return allocation_hours(allocation.allocated_hours)


# ═══════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════
def classify_severity(utilization: float, thresholds: dict | None = None) -> str | None:
    """Severity tier of a utilization percentage, or None below the info floor."""
    limits = thresholds or DEFAULT_THRESHOLDS
    for tier in SEVERITY_ORDER:
        if utilization >= limits[tier]:
            return tier
    return None


def utilization_status(
    utilization: float,
    *,
    is_active: bool = True,
    has_allocations: bool = True,
    overbooked: bool = False,
    thresholds: dict | None = None,
) -> str:
    limits = thresholds or DEFAULT_THRESHOLDS
    if not is_active:
        return "inactive"
    if overbooked:
        return "critical"
    if not has_allocations or utilization <= 0:
        return "unassigned"
    if utilization >= limits["critical"]:
        return "critical"
    if utilization >= limits["error"]:
        return "over_capacity"
    if utilization >= limits["warning"]:
        return "near_capacity"
    if utilization < limits["under_utilization"]:
        return "under_utilized"
    return "optimal"


def resource_heat_level(utilization: float) -> str:
    if utilization > 100:
        return "critical"
    if utilization > 85:
        return "high"
    if utilization > 60:
        return "medium"
    return "low"


def project_heat_level(team_size: int, total_hours: float) -> str:
    if team_size > 8 or total_hours > 200:
        return "critical"
    if team_size > 5 or total_hours > 120:
        return "high"
    if team_size > 2 or total_hours > 60:
        return "medium"
    return "low"


def department_of(resource) -> str:
    """Department used for grouping; falls back to the role, then "General"."""
    return resource.department or resource.role or "General"


def matches_department(resource, department: str | None) -> bool:
    if not department or department == "all":
        return True
    return department_of(resource) == department
