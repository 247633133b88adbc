"""
Heatmap Service — utilization heat by resource, project or department.

Views:
    resources    one row per active resource with a weekly breakdown
    projects     one row per staffed project (team size, weekly team hours)
    departments  resources aggregated by department_of()
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone

from app.core.exceptions import ValidationError
from app.services import capacity, dataset
from app.services.periods import Period, current_week, weeks_in_range

logger = logging.getLogger(__name__)

HEATMAP_VIEWS = ("resources", "projects", "departments")


def _resource_rows(data, period: Period) -> list[dict]:
    rows = []
    for resource in data.active_resources:
        series = dataset.weekly_series(data, resource, period.start, period.end)
        util = dataset.average_utilization(series)
        weeks = len(series) or 1
        project_ids = {pid for w in series for pid in w["projects"]}
        rows.append({
            "id": resource.id,
            "name": resource.name,
            "role": resource.role,
            "department": capacity.department_of(resource),
            "utilization": capacity.round1(util),
            "heat_level": capacity.resource_heat_level(util),
            "allocated_hours": capacity.round1(sum(w["hours"] for w in series) / weeks),
            "capacity": capacity.round1(data.capacity_of(resource)),
            "project_count": len(project_ids),
            "weekly_breakdown": [
                {
                    "week": w["week"],
                    "hours": capacity.round1(w["hours"]),
                    "utilization": capacity.round1(w["utilization"]),
                    "heat_level": capacity.resource_heat_level(w["utilization"]),
                }
                for w in series
            ],
        })
    rows.sort(key=lambda r: (-r["utilization"], r["name"]))
    return rows


def _project_rows(data, period: Period) -> list[dict]:
    weeks = weeks_in_range(period.start, period.end)
    active_ids = {r.id for r in data.active_resources}
    team = defaultdict(set)
    hours = defaultdict(float)
    for alloc in data.allocations:
        if alloc.resource_id not in active_ids:
            continue
        contributed = sum(
            capacity.allocation_week_hours(alloc, key, monday, sunday) for key, monday, sunday in weeks
        )
        if contributed <= 0:
            continue
        team[alloc.project_id].add(alloc.resource_id)
        hours[alloc.project_id] += contributed

    rows = []
    for project_id, members in team.items():
        project = data.projects_by_id.get(project_id)
        if project is None:
            continue
        weekly_hours = hours[project_id] / (len(weeks) or 1)
        rows.append({
            "id": project.id,
            "name": project.name,
            "status": project.status,
            "priority": project.priority,
            "team_size": len(members),
            "total_hours": capacity.round1(weekly_hours),
            "heat_level": capacity.project_heat_level(len(members), weekly_hours),
            "start_date": project.start_date.isoformat() if project.start_date else None,
            "end_date": project.end_date.isoformat() if project.end_date else None,
        })
    rows.sort(key=lambda r: (-r["total_hours"], r["name"]))
    return rows


def _department_rows(resource_rows: list[dict]) -> list[dict]:
    grouped = defaultdict(list)
    for row in resource_rows:
        grouped[row["department"]].append(row)

    rows = []
    for name, members in grouped.items():
        allocated = sum(m["allocated_hours"] for m in members)
        cap = sum(m["capacity"] for m in members)
        util = capacity.utilization_pct(allocated, cap)
        rows.append({
            "department": name,
            "resource_count": len(members),
            "total_allocated": capacity.round1(allocated),
            "total_capacity": capacity.round1(cap),
            "utilization": capacity.round1(util),
            "heat_level": capacity.resource_heat_level(util),
            "over_allocated": sum(
                1 for m in members
                if m["utilization"] > 100
                or capacity.overbooked_without_capacity(m["allocated_hours"], m["capacity"])
            ),
        })
    rows.sort(key=lambda r: r["department"])
    return rows


def compute_heatmap(department: str | None = None, period: Period | None = None, view: str = "resources") -> dict:
    view = (view or "resources").lower()
    if view not in HEATMAP_VIEWS:
        raise ValidationError(
            "Invalid heatmap view", details={"view": f"must be one of: {', '.join(HEATMAP_VIEWS)}"},
        )
    period = period or current_week()
    data = dataset.load_dataset(department)

    if view == "projects":
        rows = _project_rows(data, period)
    else:
        rows = _resource_rows(data, period)
        if view == "departments":
            rows = _department_rows(rows)

    levels = defaultdict(int)
    for row in rows:
        levels[row["heat_level"]] += 1
    return {
        "data": rows,
        "summary": {
            "total": len(rows),
            "critical": levels["critical"],
            "high": levels["high"],
            "medium": levels["medium"],
            "low": levels["low"],
        },
        "metadata": {
            "view": view,
            "department": data.department,
            "period": period.to_dict(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


def fallback_heatmap(department: str | None = None, period: Period | None = None, view: str = "resources") -> dict:
    return {
        "data": [],
        "summary": {"total": 0, "critical": 0, "high": 0, "medium": 0, "low": 0},
        "metadata": {
            "view": view if view in HEATMAP_VIEWS else "resources",
            "department": department or "all",
            "period": (period or current_week()).to_dict(),
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "fallback": True,
        },
    }
