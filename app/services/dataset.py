"""
Dashboard dataset — the rows every dashboard computation starts from.

One query per table, then everything else is in-memory grouping:

    resources    non-deleted, department-filtered (inactive kept for status)
    projects     all projects
    allocations  status == "active", belonging to the filtered resources

Callers that need a database-failure fallback catch SQLAlchemyError around
``load_dataset``; nothing here swallows errors.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from flask import current_app

from app.models import db
from app.models.project import Project, ResourceAllocation
from app.models.resource import Resource
from app.models.time_entry import TimeEntry
from app.services import capacity
from app.services.periods import weeks_in_range

logger = logging.getLogger(__name__)


@dataclass
class Dataset:
    department: str
    resources: list
    projects: list
    allocations: list
    non_project_hours: float = capacity.DEFAULT_NON_PROJECT_HOURS
    allocations_by_resource: dict = field(default_factory=dict)
    projects_by_id: dict = field(default_factory=dict)

    def __post_init__(self):
        grouped = defaultdict(list)
        for alloc in self.allocations:
            grouped[alloc.resource_id].append(alloc)
        self.allocations_by_resource = dict(grouped)
        self.projects_by_id = {p.id: p for p in self.projects}

    @property
    def active_resources(self) -> list:
        return [r for r in self.resources if r.is_active]

    def capacity_of(self, resource) -> float:
        return capacity.effective_capacity(resource.weekly_capacity, self.non_project_hours)


def non_project_hours() -> float:
    return float(current_app.config.get("NON_PROJECT_HOURS", capacity.DEFAULT_NON_PROJECT_HOURS))


def load_dataset(department: str | None = None) -> Dataset:
    """Load resources, projects and active allocations for one department filter."""
    department = department or "all"
    resources = [
        r for r in Resource.query.filter(Resource.is_deleted.is_(False)).order_by(Resource.name).all()
        if capacity.matches_department(r, department)
    ]
    resource_ids = {r.id for r in resources}
    projects = Project.query.order_by(Project.id).all()
    allocations = [
        a for a in ResourceAllocation.query.filter(ResourceAllocation.status == "active").all()
        if a.resource_id in resource_ids
    ]
    logger.debug(
        "Dataset loaded: department=%s resources=%d projects=%d allocations=%d",
        department, len(resources), len(projects), len(allocations),
    )
    return Dataset(
        department=department,
        resources=resources,
        projects=projects,
        allocations=allocations,
        non_project_hours=non_project_hours(),
    )


def load_time_entries(start: date, end: date, allocation_ids=None) -> list:
    """Time entries whose week starts inside [start, end]."""
    query = db.session.query(TimeEntry).filter(
        TimeEntry.week_start_date >= start,
        TimeEntry.week_start_date <= end,
    )
    if allocation_ids is not None:
        ids = list(allocation_ids)
        if not ids:
            return []
        query = query.filter(TimeEntry.allocation_id.in_(ids))
    return query.all()


# ═══════════════════════════════════════════════════════════════
# Per-week utilization
# ═══════════════════════════════════════════════════════════════
def weekly_series(data: Dataset, resource, start: date, end: date) -> list[dict]:
    """Week-by-week hours and utilization of one resource over [start, end]."""
    allocations = data.allocations_by_resource.get(resource.id, [])
    cap = data.capacity_of(resource)
    series = []
    for key, monday, sunday in weeks_in_range(start, end):
        per_project = defaultdict(float)
        for alloc in allocations:
            hours = capacity.allocation_week_hours(alloc, key, monday, sunday)
            if hours:
                per_project[alloc.project_id] += hours
        hours = sum(per_project.values())
        series.append({
            "week": key,
            "week_start": monday,
            "hours": hours,
            "capacity": cap,
            "utilization": capacity.utilization_pct(hours, cap),
            "projects": dict(per_project),
        })
    return series


def average_utilization(series: list[dict]) -> float:
    """Total hours over total capacity across the weeks of a series."""
    total_hours = sum(w["hours"] for w in series)
    total_capacity = sum(w["capacity"] for w in series)
    return capacity.utilization_pct(total_hours, total_capacity)


def team_average_utilization(data: Dataset, start: date, end: date) -> float:
    """Mean of the active resources' average utilization over a window."""
    values = [
        average_utilization(weekly_series(data, r, start, end))
        for r in data.active_resources
    ]
    return sum(values) / len(values) if values else 0.0
