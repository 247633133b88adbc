"""
Resource Service — people, their allocations and non-project activities.

Functions:
    - list_resources:          department / include_inactive filters, limit + offset
    - get_resource / create_resource / update_resource
    - delete_resource:         soft delete (is_deleted, is_active cleared)
    - list_resource_allocations
    - list_activities / create_activity / update_activity / delete_activity
"""

import logging

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import ResourceAllocation
from app.models.resource import ACTIVITY_TYPES, NonProjectActivity, Resource
from app.services import capacity
from app.utils.helpers import commit_or_raise, get_or_raise, parse_hours

logger = logging.getLogger(__name__)

MAX_ACTIVITY_HOURS = 40.0


def _validated_email(raw) -> str:
    try:
        return validate_email(raw or "", check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValidationError("Invalid email", details={"email": str(exc)}) from None


def _apply_resource_fields(resource: Resource, data: dict, errors: dict) -> None:
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            errors["name"] = "required"
        else:
            resource.name = name[:200]
    if "email" in data:
        try:
            resource.email = _validated_email(data.get("email"))
        except ValidationError as exc:
            errors.update(exc.details)
    if "weekly_capacity" in data:
        try:
            resource.weekly_capacity = parse_hours(
                data.get("weekly_capacity"), maximum=capacity.MAX_WEEKLY_HOURS,
            )
        except ValueError as exc:
            errors["weekly_capacity"] = str(exc)
    for field in ("role", "department"):
        if field in data:
            value = (data.get(field) or "").strip()
            setattr(resource, field, value[:100] or None)
    if "is_active" in data:
        resource.is_active = bool(data["is_active"])


# ═══════════════════════════════════════════════════════════════
# Resources
# ═══════════════════════════════════════════════════════════════
def list_resources(
    department: str | None = None,
    include_inactive: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[dict], int]:
    query = Resource.query.filter(Resource.is_deleted.is_(False))
    if not include_inactive:
        query = query.filter(Resource.is_active.is_(True))
    if department and department != "all":
        query = query.filter(
            db.or_(
                Resource.department == department,
                db.and_(Resource.department.is_(None), Resource.role == department),
            )
        )
    total = query.count()
    rows = query.order_by(Resource.name).limit(limit).offset(offset).all()
    return [r.to_dict() for r in rows], total


def get_resource(resource_id: int) -> dict:
    resource = get_or_raise(Resource, resource_id)
    d = resource.to_dict()
    d["effective_capacity"] = capacity.effective_capacity(resource.weekly_capacity)
    d["active_allocations"] = resource.allocations.filter_by(status="active").count()
    return d


def create_resource(data: dict) -> dict:
    errors = {}
    if not (data.get("name") or "").strip():
        errors["name"] = "required"
    if not data.get("email"):
        errors["email"] = "required"
    resource = Resource(weekly_capacity=capacity.DEFAULT_WEEKLY_CAPACITY, is_active=True)
    _apply_resource_fields(resource, data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    db.session.add(resource)
    commit_or_raise("Resource", "email", resource.email)
    logger.info("Resource created id=%s email=%s", resource.id, resource.email)
    return resource.to_dict()


def update_resource(resource_id: int, data: dict) -> dict:
    resource = get_or_raise(Resource, resource_id)
    errors = {}
    _apply_resource_fields(resource, data, errors)
    if errors:
        db.session.rollback()
        raise ValidationError("Validation failed", details=errors)
    commit_or_raise("Resource", "email", resource.email)
    return resource.to_dict()


def delete_resource(resource_id: int) -> None:
    resource = get_or_raise(Resource, resource_id)
    resource.is_deleted = True
    resource.is_active = False
    commit_or_raise("Resource")
    logger.info("Resource soft-deleted id=%s", resource_id)


def list_resource_allocations(resource_id: int, status: str | None = None) -> list[dict]:
    get_or_raise(Resource, resource_id)
    query = ResourceAllocation.query.filter_by(resource_id=resource_id)
    if status:
        query = query.filter(ResourceAllocation.status == status)
    rows = query.order_by(ResourceAllocation.start_date, ResourceAllocation.id).all()
    result = []
    for alloc in rows:
        d = alloc.to_dict()
        d["project_name"] = alloc.project.name if alloc.project else None
        d["weekly_hours"] = capacity.allocation_hours(alloc.allocated_hours, alloc.weekly_allocations)
        result.append(d)
    return result


# ═══════════════════════════════════════════════════════════════
# Non-project activities
# ═══════════════════════════════════════════════════════════════
def _apply_activity_fields(activity: NonProjectActivity, data: dict, errors: dict) -> None:
    if "activity_type" in data:
        if data.get("activity_type") not in ACTIVITY_TYPES:
            errors["activity_type"] = f"must be one of: {', '.join(ACTIVITY_TYPES)}"
        else:
            activity.activity_type = data["activity_type"]
    if "hours_per_week" in data:
        try:
            activity.hours_per_week = parse_hours(data.get("hours_per_week"), maximum=MAX_ACTIVITY_HOURS)
        except ValueError as exc:
            errors["hours_per_week"] = str(exc)
    if "description" in data:
        activity.description = data.get("description")
    if "is_active" in data:
        activity.is_active = bool(data["is_active"])


def list_activities(resource_id: int) -> list[dict]:
    resource = get_or_raise(Resource, resource_id)
    rows = resource.non_project_activities.order_by(NonProjectActivity.id).all()
    return [a.to_dict() for a in rows]


def create_activity(resource_id: int, data: dict) -> dict:
    get_or_raise(Resource, resource_id)
    errors = {}
    if "activity_type" not in data:
        errors["activity_type"] = "required"
    activity = NonProjectActivity(resource_id=resource_id, hours_per_week=0.0, is_active=True)
    _apply_activity_fields(activity, data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    db.session.add(activity)
    commit_or_raise("NonProjectActivity")
    return activity.to_dict()


def _get_activity(resource_id: int, activity_id: int) -> NonProjectActivity:
    activity = db.session.get(NonProjectActivity, activity_id)
    if activity is None or activity.resource_id != resource_id:
        raise NotFoundError("NonProjectActivity", activity_id)
    return activity


def update_activity(resource_id: int, activity_id: int, data: dict) -> dict:
    activity = _get_activity(resource_id, activity_id)
    errors = {}
    _apply_activity_fields(activity, data, errors)
    if errors:
        db.session.rollback()
        raise ValidationError("Validation failed", details=errors)
    commit_or_raise("NonProjectActivity")
    return activity.to_dict()


def delete_activity(resource_id: int, activity_id: int) -> None:
    activity = _get_activity(resource_id, activity_id)
    db.session.delete(activity)
    commit_or_raise("NonProjectActivity")
