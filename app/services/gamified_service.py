"""
Gamified Metrics Service — the motivational widgets on the dashboard.

All values are deterministic and derived from allocations and time entries:

    capacity_hero           conflicts this week → gold / silver / bronze / none
    forecast_accuracy       planned vs logged hours over the look-back window
    resource_health         100 − 15 × over-allocated − 5 × under-utilized
    project_leaderboard     active projects closest to plan
    firefighter_alerts      conflicts resolved since last week
    continuous_improvement  week-over-week health score change
    crystal_ball            days until team utilization reaches 100 %
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from flask import current_app

from app.services import capacity, dataset, settings_service
from app.services.periods import Period, current_week, week_key, weeks_in_range

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_WEEKS = 4
REGRESSION_WEEKS = 4
CONFLICT_HORIZON_DAYS = 365
LEADERBOARD_SIZE = 5
AT_RISK_VARIANCE_PCT = 15.0


# ═══════════════════════════════════════════════════════════════
# Pure helpers
# ═══════════════════════════════════════════════════════════════
def hero_badge(conflicts: int) -> str:
    if conflicts == 0:
        return "gold"
    if conflicts <= 2:
        return "silver"
    if conflicts <= 5:
        return "bronze"
    return "none"


def accuracy_color(accuracy: float | None) -> str:
    if accuracy is None:
        return "gray"
    if accuracy >= 90:
        return "green"
    if accuracy >= 70:
        return "yellow"
    return "red"


def health_score(over_allocated: int, under_utilized: int) -> int:
    return max(0, 100 - 15 * over_allocated - 5 * under_utilized)


def health_status(score: float) -> str:
    if score >= 80:
        return "good"
    if score >= 60:
        return "watch"
    return "critical"


def trend_of(delta: float) -> str:
    """Direction of a change where a positive delta is an improvement."""
    if delta > 0:
        return "improving"
    if delta < 0:
        return "worsening"
    return "neutral"


def linear_fit(values: list[float]) -> tuple[float, float, float | None]:
    """Least-squares line through (0, v0), (1, v1), …

    Returns (slope, intercept, r_squared). r_squared is None when the
    values have no variance.
    """
    n = len(values)
    if n < 2:
        return 0.0, (values[0] if values else 0.0), None
    xs = range(n)
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    sxx = sum((x - mean_x) ** 2 for x in xs)
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, values))
    slope = sxy / sxx
    intercept = mean_y - slope * mean_x
    ss_tot = sum((y - mean_y) ** 2 for y in values)
    if ss_tot == 0:
        return slope, intercept, None
    ss_res = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, values))
    return slope, intercept, max(0.0, 1 - ss_res / ss_tot)


def days_until_conflict(current: float, slope: float) -> int | None:
    """Days until a weekly series rising by ``slope`` points reaches 100 %."""
    if current >= 100:
        return 0
    if slope <= 0:
        return None
    days = math.ceil((100 - current) / slope * 7)
    return days if days <= CONFLICT_HORIZON_DAYS else None


def forecast_accuracy(samples: list[tuple[float, float]]) -> float | None:
    """Accuracy % from (planned, actual) pairs; pairs with planned ≤ 0 are ignored."""
    errors = [abs(planned - actual) / planned for planned, actual in samples if planned > 0]
    if not errors:
        return None
    return max(0.0, (1 - sum(errors) / len(errors)) * 100)


# ═══════════════════════════════════════════════════════════════
# Dataset-backed pieces
# ═══════════════════════════════════════════════════════════════
def _week_utilizations(data, week: Period) -> list[float]:
    return [
        dataset.average_utilization(dataset.weekly_series(data, r, week.start, week.end))
        for r in data.active_resources
    ]


def _conflicts(utilizations: list[float], thresholds: dict) -> int:
    return sum(
        1 for u in utilizations if capacity.classify_severity(u, thresholds) in ("error", "critical")
    )


def _health(utilizations: list[float], thresholds: dict) -> dict:
    over = _conflicts(utilizations, thresholds)
    under = sum(1 for u in utilizations if u < thresholds["under_utilization"])
    score = health_score(over, under)
    return {
        "score": score,
        "status": health_status(score),
        "over_allocated": over,
        "under_utilized": under,
    }


def _lookback_weeks() -> int:
    return int(current_app.config.get("FORECAST_LOOKBACK_WEEKS", DEFAULT_LOOKBACK_WEEKS))


def _planned_vs_actual(data, window: Period) -> tuple[list, dict]:
    """(planned, actual) pairs per time entry, plus per-project totals."""
    allocations = {a.id: a for a in data.allocations}
    entries = dataset.load_time_entries(window.start, window.end, allocations.keys())
    samples = []
    per_project = defaultdict(lambda: {"planned": 0.0, "actual": 0.0})
    for entry in entries:
        alloc = allocations.get(entry.allocation_id)
        if alloc is None:
            continue
        monday = entry.week_start_date
        planned = capacity.allocation_week_hours(alloc, week_key(monday), monday, monday + timedelta(days=6))
        samples.append((planned, entry.total_hours))
        per_project[alloc.project_id]["actual"] += entry.total_hours

    weeks = weeks_in_range(window.start, window.end)
    for alloc in data.allocations:
        for key, monday, sunday in weeks:
            per_project[alloc.project_id]["planned"] += capacity.allocation_week_hours(alloc, key, monday, sunday)
    return samples, per_project


def _leaderboard(data, per_project: dict) -> list[dict]:
    rows = []
    for project_id, totals in per_project.items():
        project = data.projects_by_id.get(project_id)
        if project is None or project.status != "active" or totals["planned"] <= 0:
            continue
        variance = (totals["actual"] - totals["planned"]) / totals["planned"] * 100
        rows.append({
            "project_id": project.id,
            "name": project.name,
            "planned_hours": capacity.round1(totals["planned"]),
            "actual_hours": capacity.round1(totals["actual"]),
            "variance": capacity.round1(variance),
            "is_at_risk": abs(variance) > AT_RISK_VARIANCE_PCT,
        })
    rows.sort(key=lambda r: (abs(r["variance"]), r["name"]))
    for rank, row in enumerate(rows[:LEADERBOARD_SIZE], start=1):
        row["rank"] = rank
    return rows[:LEADERBOARD_SIZE]


def _crystal_ball(data, this_week: Period) -> dict:
    weeks = [
        Period(this_week.start - timedelta(days=7 * i), this_week.end - timedelta(days=7 * i))
        for i in range(REGRESSION_WEEKS - 1, -1, -1)
    ]
    series = [dataset.team_average_utilization(data, w.start, w.end) for w in weeks]
    slope, _, r_squared = linear_fit(series)
    current = series[-1] if series else 0.0
    days = days_until_conflict(current, slope)
    return {
        "days_until_conflict": days,
        "predicted_date": (this_week.start + timedelta(days=days)).isoformat() if days is not None else None,
        "current_utilization": capacity.round1(current),
        "weekly_trend": capacity.round1(slope),
        "confidence": capacity.round1(r_squared * 100) if r_squared is not None else 0.0,
        "weekly_utilization": [capacity.round1(v) for v in series],
    }


def compute_gamified_metrics(department: str | None = None, today: date | None = None) -> dict:
    this_week = current_week(today)
    last_week = Period(this_week.start - timedelta(days=7), this_week.end - timedelta(days=7))
    thresholds = settings_service.get_thresholds()
    data = dataset.load_dataset(department)

    current_utils = _week_utilizations(data, this_week)
    previous_utils = _week_utilizations(data, last_week)
    conflicts_now = _conflicts(current_utils, thresholds)
    conflicts_before = _conflicts(previous_utils, thresholds)
    health_now = _health(current_utils, thresholds)
    health_before = _health(previous_utils, thresholds)

    lookback = _lookback_weeks()
    window = Period(this_week.start - timedelta(days=7 * lookback), this_week.start - timedelta(days=1))
    samples, per_project = _planned_vs_actual(data, window)
    accuracy = forecast_accuracy(samples)

    health_delta = health_now["score"] - health_before["score"]
    conflict_delta = conflicts_now - conflicts_before
    return {
        "capacity_hero": {
            "conflicts_count": conflicts_now,
            "badge": hero_badge(conflicts_now),
            "period_label": "this week",
        },
        "forecast_accuracy": {
            "accuracy": capacity.round1(accuracy) if accuracy is not None else 0.0,
            "color": accuracy_color(accuracy),
            "sample_size": sum(1 for planned, _ in samples if planned > 0),
            "lookback_weeks": lookback,
        },
        "resource_health": health_now,
        "project_leaderboard": _leaderboard(data, per_project),
        "firefighter_alerts": {
            "resolved": max(0, conflicts_before - conflicts_now),
            "active_conflicts": conflicts_now,
            "previous_conflicts": conflicts_before,
            "delta": conflict_delta,
            "trend": trend_of(-conflict_delta),
        },
        "continuous_improvement": {
            "current_score": health_now["score"],
            "previous_score": health_before["score"],
            "delta": health_delta,
            "trend": trend_of(health_delta),
        },
        "crystal_ball": _crystal_ball(data, this_week),
        "metadata": {
            "department": data.department,
            "week": this_week.to_dict(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


def fallback_gamified_metrics(department: str | None = None, today: date | None = None) -> dict:
    return {
        "capacity_hero": {"conflicts_count": 0, "badge": "none", "period_label": "this week"},
        "forecast_accuracy": {
            "accuracy": 0.0, "color": "gray", "sample_size": 0, "lookback_weeks": DEFAULT_LOOKBACK_WEEKS,
        },
        "resource_health": {"score": 0, "status": "critical", "over_allocated": 0, "under_utilized": 0},
        "project_leaderboard": [],
        "firefighter_alerts": {
            "resolved": 0, "active_conflicts": 0, "previous_conflicts": 0, "delta": 0, "trend": "neutral",
        },
        "continuous_improvement": {"current_score": 0, "previous_score": 0, "delta": 0, "trend": "neutral"},
        "crystal_ball": {
            "days_until_conflict": None,
            "predicted_date": None,
            "current_utilization": 0.0,
            "weekly_trend": 0.0,
            "confidence": 0.0,
            "weekly_utilization": [],
        },
        "metadata": {
            "department": department or "all",
            "week": current_week(today).to_dict(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "fallback": True,
        },
    }
