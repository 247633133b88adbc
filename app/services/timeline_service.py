"""Project timeline for the dashboard: projects overlapping a period with staffing."""

import logging
from datetime import date, datetime, timezone

from app.services import capacity, dataset
from app.services.periods import Period, overlaps

logger = logging.getLogger(__name__)


def completion_pct(project, today: date) -> float:
    """Elapsed share of the project's date range; completed projects are 100."""
    if project.status == "completed":
        return 100.0
    if not project.start_date or not project.end_date:
        return 0.0
    if today <= project.start_date:
        return 0.0
    if today >= project.end_date:
        return 100.0
    total = (project.end_date - project.start_date).days
    if total <= 0:
        return 100.0
    return capacity.round1((today - project.start_date).days / total * 100)


def compute_timeline(department: str | None = None, period: Period | None = None, today: date | None = None) -> dict:
    today = today or date.today()
    data = dataset.load_dataset(department)
    resources = {r.id: r for r in data.active_resources}

    by_project: dict[int, list] = {}
    for alloc in data.allocations:
        if alloc.resource_id in resources:
            by_project.setdefault(alloc.project_id, []).append(alloc)

    items = []
    for project in data.projects:
        allocations = by_project.get(project.id, [])
        if data.department != "all" and not allocations:
            continue
        if period and not overlaps(project.start_date, project.end_date, period.start, period.end):
            continue
        items.append({
            "id": project.id,
            "name": project.name,
            "status": project.status,
            "priority": project.priority,
            "start_date": project.start_date.isoformat() if project.start_date else None,
            "end_date": project.end_date.isoformat() if project.end_date else None,
            "completion": completion_pct(project, today),
            "resource_count": len({a.resource_id for a in allocations}),
            "allocated_hours": capacity.round1(
                sum(capacity.allocation_hours(a.allocated_hours, a.weekly_allocations) for a in allocations)
            ),
            "allocations": [
                {
                    "id": a.id,
                    "resource_id": a.resource_id,
                    "resource_name": resources[a.resource_id].name,
                    "hours_per_week": capacity.round1(
                        capacity.allocation_hours(a.allocated_hours, a.weekly_allocations)
                    ),
                    "role": a.role,
                }
                for a in allocations
            ],
        })

    items.sort(key=lambda p: (p["start_date"] is None, p["start_date"] or "", p["name"]))
    return {
        "projects": items,
        "metadata": {
            "department": data.department,
            "period": period.to_dict() if period else None,
            "total": len(items),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


def fallback_timeline(department: str | None = None, period: Period | None = None) -> dict:
    return {
        "projects": [],
        "metadata": {
            "department": department or "all",
            "period": period.to_dict() if period else None,
            "total": 0,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "fallback": True,
        },
    }
