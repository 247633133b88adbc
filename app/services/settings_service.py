"""
Settings Service — alert thresholds and the department catalogue.

Functions:
    - get_thresholds:          Effective thresholds (stored rows over defaults)
    - list_threshold_settings: Every threshold with its description and source
    - update_thresholds:       Validate ordering and upsert rows
    - list_departments:        Catalogue, optionally with inactive entries
    - create_department / update_department / delete_department
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.resource import Department
from app.models.settings import AlertSetting
from app.services.capacity import DEFAULT_THRESHOLDS
from app.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

ALERT_CATEGORY = "capacity"

THRESHOLD_DESCRIPTIONS = {
    "critical": "Critical over-allocation (percent of effective capacity)",
    "error": "Over capacity",
    "warning": "Near capacity",
    "info": "Approaching capacity",
    "under_utilization": "Below this utilization a resource is under-utilized",
}

# Lowest first; every value must be strictly below the next.
_THRESHOLD_ORDER = ("under_utilization", "info", "warning", "error", "critical")


# ═══════════════════════════════════════════════════════════════
# Alert thresholds
# ═══════════════════════════════════════════════════════════════
def get_thresholds() -> dict[str, float]:
    thresholds = dict(DEFAULT_THRESHOLDS)
    rows = AlertSetting.query.filter_by(category=ALERT_CATEGORY).all()
    for row in rows:
        if row.threshold_key in thresholds and row.threshold_value is not None:
            thresholds[row.threshold_key] = float(row.threshold_value)
    return thresholds


def list_threshold_settings() -> list[dict]:
    stored = {
        row.threshold_key: row
        for row in AlertSetting.query.filter_by(category=ALERT_CATEGORY).all()
    }
    items = []
    for key in reversed(_THRESHOLD_ORDER):
        row = stored.get(key)
        items.append({
            "threshold_key": key,
            "threshold_value": float(row.threshold_value) if row else DEFAULT_THRESHOLDS[key],
            "default_value": DEFAULT_THRESHOLDS[key],
            "description": (row.description if row and row.description else THRESHOLD_DESCRIPTIONS[key]),
            "is_default": row is None,
        })
    return items


def update_thresholds(data: dict) -> dict[str, float]:
    """Upsert threshold rows from ``{key: value}``.

    Unknown keys and non-numeric values are a 400; a resulting set that
    is not strictly ordered
    (under_utilization < info < warning < error < critical) is a 422.
    """
    if not isinstance(data, dict) or not data:
        raise ValidationError("No thresholds supplied", details={"thresholds": "required"})

    errors = {}
    updates = {}
    for key, raw in data.items():
        if key not in DEFAULT_THRESHOLDS:
            errors[key] = "Unknown threshold"
            continue
        if isinstance(raw, bool):
            errors[key] = "must be a number"
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            errors[key] = "must be a number"
            continue
        if value != value or value < 0 or value > 1000:
            errors[key] = "must be between 0 and 1000"
            continue
        updates[key] = value
    if errors:
        raise ValidationError("Invalid thresholds", details=errors)

    merged = {**get_thresholds(), **updates}
    for lower, higher in zip(_THRESHOLD_ORDER, _THRESHOLD_ORDER[1:]):
        if merged[lower] >= merged[higher]:
            raise ValidationError(
                f"{lower} must be below {higher}",
                details={lower: merged[lower], higher: merged[higher]},
                status=422,
            )

    for key, value in updates.items():
        row = AlertSetting.query.filter_by(category=ALERT_CATEGORY, threshold_key=key).first()
        if row is None:
            row = AlertSetting(
                category=ALERT_CATEGORY,
                threshold_key=key,
                description=THRESHOLD_DESCRIPTIONS[key],
            )
            db.session.add(row)
        row.threshold_value = value
    commit_or_raise("AlertSetting", "threshold_key")
    logger.info("Alert thresholds updated: %s", updates)
    return merged


# ═══════════════════════════════════════════════════════════════
# Departments
# ═══════════════════════════════════════════════════════════════
def list_departments(include_inactive: bool = False) -> list[dict]:
    query = Department.query
    if not include_inactive:
        query = query.filter(Department.is_active.is_(True))
    return [d.to_dict() for d in query.order_by(Department.name).all()]


def create_department(data: dict) -> dict:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Department name is required", details={"name": "required"})
    if Department.query.filter_by(name=name).first():
        raise ValidationError(
            "Department already exists", details={"name": name}, status=422,
        )
    dept = Department(
        name=name[:100],
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(dept)
    commit_or_raise("Department", "name", name)
    logger.info("Department created id=%s name=%s", dept.id, dept.name)
    return dept.to_dict()


def update_department(dept_id: int, data: dict) -> dict:
    dept = get_or_raise(Department, dept_id)
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Department name cannot be empty", details={"name": "required"})
        dept.name = name[:100]
    if "description" in data:
        dept.description = data["description"]
    if "is_active" in data:
        dept.is_active = bool(data["is_active"])
    commit_or_raise("Department", "name", dept.name)
    return dept.to_dict()


def delete_department(dept_id: int) -> None:
    dept = get_or_raise(Department, dept_id)
    db.session.delete(dept)
    commit_or_raise("Department", "id", dept_id)
    logger.info("Department deleted id=%s", dept_id)
