"""
Project Service — project CRUD and per-project allocation listing.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.project import (
    PROJECT_PRIORITIES,
    PROJECT_STATUSES,
    PROJECT_TYPES,
    Project,
    ResourceAllocation,
)
from app.models.resource import Resource
from app.services import capacity
from app.utils.helpers import commit_or_raise, get_or_raise, parse_date_input

logger = logging.getLogger(__name__)

_CHOICES = {
    "status": PROJECT_STATUSES,
    "priority": PROJECT_PRIORITIES,
    "type": PROJECT_TYPES,
}


def _apply_fields(project: Project, data: dict, errors: dict) -> None:
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            errors["name"] = "required"
        else:
            project.name = name[:200]
    for field, choices in _CHOICES.items():
        if field in data:
            if data[field] not in choices:
                errors[field] = f"must be one of: {', '.join(choices)}"
            else:
                setattr(project, field, data[field])
    for field in ("start_date", "end_date"):
        if field in data:
            try:
                setattr(project, field, parse_date_input(data.get(field)))
            except ValueError as exc:
                errors[field] = str(exc)
    if "estimated_hours" in data:
        raw = data.get("estimated_hours")
        if raw in (None, ""):
            project.estimated_hours = None
        else:
            try:
                value = float(raw)
                if value < 0 or value != value:
                    raise ValueError
                project.estimated_hours = value
            except (TypeError, ValueError):
                errors["estimated_hours"] = "must be a non-negative number"
    if "change_lead_id" in data:
        lead_id = data.get("change_lead_id")
        if lead_id is None:
            project.change_lead_id = None
        else:
            lead = db.session.get(Resource, lead_id) if isinstance(lead_id, int) else None
            if lead is None or lead.is_deleted:
                errors["change_lead_id"] = "unknown resource"
            else:
                project.change_lead_id = lead.id
    for field in ("description", "stream"):
        if field in data:
            setattr(project, field, data.get(field))

    if project.start_date and project.end_date and project.start_date > project.end_date:
        errors["end_date"] = "must not be before start_date"


def list_projects(status: str | None = None, project_type: str | None = None, limit: int = 200, offset: int = 0):
    query = Project.query
    if status:
        query = query.filter(Project.status == status)
    if project_type:
        query = query.filter(Project.type == project_type)
    total = query.count()
    rows = query.order_by(Project.name).limit(limit).offset(offset).all()
    return [p.to_dict() for p in rows], total


def get_project(project_id: int) -> dict:
    project = get_or_raise(Project, project_id)
    d = project.to_dict()
    allocations = project.allocations.filter_by(status="active").all()
    d["team_size"] = len({a.resource_id for a in allocations})
    d["weekly_hours"] = capacity.round1(
        sum(capacity.allocation_hours(a.allocated_hours, a.weekly_allocations) for a in allocations)
    )
    d["change_lead"] = project.change_lead.name if project.change_lead else None
    return d


def create_project(data: dict) -> dict:
    errors = {}
    if not (data.get("name") or "").strip():
        errors["name"] = "required"
    project = Project(status="active", priority="medium", type="business")
    _apply_fields(project, data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    db.session.add(project)
    commit_or_raise("Project", "name", project.name)
    logger.info("Project created id=%s name=%s", project.id, project.name)
    return project.to_dict()


def update_project(project_id: int, data: dict) -> dict:
    project = get_or_raise(Project, project_id)
    errors = {}
    _apply_fields(project, data, errors)
    if errors:
        db.session.rollback()
        raise ValidationError("Validation failed", details=errors)
    commit_or_raise("Project", "name", project.name)
    return project.to_dict()


def delete_project(project_id: int) -> None:
    project = get_or_raise(Project, project_id)
    db.session.delete(project)
    commit_or_raise("Project")
    logger.info("Project deleted id=%s", project_id)


def list_project_allocations(project_id: int) -> list[dict]:
    get_or_raise(Project, project_id)
    rows = (
        ResourceAllocation.query.filter_by(project_id=project_id)
        .order_by(ResourceAllocation.start_date, ResourceAllocation.id)
        .all()
    )
    result = []
    for alloc in rows:
        d = alloc.to_dict()
        d["resource_name"] = alloc.resource.name if alloc.resource else None
        d["weekly_hours"] = capacity.allocation_hours(alloc.allocated_hours, alloc.weekly_allocations)
        result.append(d)
    return result
