"""
Allocation Service — planned hours of a resource on a project.

``weekly_allocations`` keys must be ISO week keys ("2026-W07") and every
value must lie in [0, 168]. A malformed map is rejected as a whole.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.project import ALLOCATION_STATUSES, Project, ResourceAllocation
from app.models.resource import Resource
from app.services import capacity
from app.services.periods import week_start_from_key
from app.utils.helpers import commit_or_raise, get_or_raise, parse_date_input, parse_hours

logger = logging.getLogger(__name__)


def validate_weekly_map(raw) -> dict[str, float]:
    """Return a clean {week_key: hours} map or raise ValidationError."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError(
            "weekly_allocations must be an object", details={"weekly_allocations": "invalid"},
        )
    clean = {}
    errors = {}
    for key, value in raw.items():
        try:
            week_start_from_key(key)
        except ValueError as exc:
            errors[str(key)] = str(exc)
            continue
        try:
            clean[key] = parse_hours(value, maximum=capacity.MAX_WEEKLY_HOURS)
        except ValueError as exc:
            errors[key] = str(exc)
    if errors:
        raise ValidationError("Invalid weekly allocations", details=errors)
    return clean


def _apply_fields(alloc: ResourceAllocation, data: dict, errors: dict) -> None:
    if "resource_id" in data:
        resource = db.session.get(Resource, data["resource_id"]) if isinstance(data["resource_id"], int) else None
        if resource is None or resource.is_deleted:
            errors["resource_id"] = "unknown resource"
        else:
            alloc.resource_id = resource.id
    if "project_id" in data:
        project = db.session.get(Project, data["project_id"]) if isinstance(data["project_id"], int) else None
        if project is None:
            errors["project_id"] = "unknown project"
        else:
            alloc.project_id = project.id
    if "allocated_hours" in data:
        try:
            alloc.allocated_hours = parse_hours(data.get("allocated_hours"), maximum=capacity.MAX_WEEKLY_HOURS)
        except ValueError as exc:
            errors["allocated_hours"] = str(exc)
    if "weekly_allocations" in data:
        try:
            alloc.weekly_allocations = validate_weekly_map(data.get("weekly_allocations"))
        except ValidationError as exc:
            errors["weekly_allocations"] = exc.details
    for field in ("start_date", "end_date"):
        if field in data:
            try:
                setattr(alloc, field, parse_date_input(data.get(field)))
            except ValueError as exc:
                errors[field] = str(exc)
    if "status" in data:
        if data["status"] not in ALLOCATION_STATUSES:
            errors["status"] = f"must be one of: {', '.join(ALLOCATION_STATUSES)}"
        else:
            alloc.status = data["status"]
    if "role" in data:
        alloc.role = (data.get("role") or "")[:100] or None

    if alloc.start_date and alloc.end_date and alloc.start_date > alloc.end_date:
        errors["end_date"] = "must not be before start_date"


def _serialize(alloc: ResourceAllocation) -> dict:
    d = alloc.to_dict()
    d["resource_name"] = alloc.resource.name if alloc.resource else None
    d["project_name"] = alloc.project.name if alloc.project else None
    d["weekly_hours"] = capacity.allocation_hours(alloc.allocated_hours, alloc.weekly_allocations)
    return d


def list_allocations(resource_id=None, project_id=None, status=None, limit: int = 200, offset: int = 0):
    query = ResourceAllocation.query
    if resource_id is not None:
        query = query.filter(ResourceAllocation.resource_id == resource_id)
    if project_id is not None:
        query = query.filter(ResourceAllocation.project_id == project_id)
    if status:
        query = query.filter(ResourceAllocation.status == status)
    total = query.count()
    rows = query.order_by(ResourceAllocation.id).limit(limit).offset(offset).all()
    return [_serialize(a) for a in rows], total


def get_allocation(allocation_id: int) -> dict:
    return _serialize(get_or_raise(ResourceAllocation, allocation_id, "Allocation"))


def create_allocation(data: dict) -> dict:
    errors = {}
    for field in ("resource_id", "project_id"):
        if data.get(field) is None:
            errors[field] = "required"
    if data.get("allocated_hours") in (None, "") and not data.get("weekly_allocations"):
        errors["allocated_hours"] = "allocated_hours or weekly_allocations is required"
    alloc = ResourceAllocation(allocated_hours=0.0, weekly_allocations={}, status="active")
    _apply_fields(alloc, {k: v for k, v in data.items() if v is not None or k in ("start_date", "end_date")}, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    db.session.add(alloc)
    commit_or_raise("Allocation")
    logger.info(
        "Allocation created id=%s resource_id=%s project_id=%s",
        alloc.id, alloc.resource_id, alloc.project_id,
    )
    return _serialize(alloc)


def update_allocation(allocation_id: int, data: dict) -> dict:
    alloc = get_or_raise(ResourceAllocation, allocation_id, "Allocation")
    errors = {}
    _apply_fields(alloc, data, errors)
    if errors:
        db.session.rollback()
        raise ValidationError("Validation failed", details=errors)
    commit_or_raise("Allocation")
    return _serialize(alloc)


def replace_weekly_allocations(allocation_id: int, weekly) -> dict:
    alloc = get_or_raise(ResourceAllocation, allocation_id, "Allocation")
    alloc.weekly_allocations = validate_weekly_map(weekly)
    commit_or_raise("Allocation")
    logger.info("Weekly allocations replaced id=%s weeks=%d", allocation_id, len(alloc.weekly_allocations))
    return _serialize(alloc)


def delete_allocation(allocation_id: int) -> None:
    alloc = get_or_raise(ResourceAllocation, allocation_id, "Allocation")
    db.session.delete(alloc)
    commit_or_raise("Allocation")
