"""
Time Entry Service — weekly hour bookings and week submissions.

Rules:
    - week_start_date is always a Monday
    - each day holds 0–24 hours
    - one entry per (allocation, week); the allocation must belong to the resource
    - entries of a submitted week are read-only until the week is unsubmitted
"""

import logging
from datetime import date, datetime, timedelta, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import ResourceAllocation
from app.models.resource import Resource
from app.models.time_entry import DAY_FIELDS, TimeEntry, WeeklySubmission
from app.services.periods import monday_of, weeks_in_range
from app.utils.helpers import commit_or_raise, get_or_raise, parse_date_input, parse_hours

logger = logging.getLogger(__name__)

MAX_DAY_HOURS = 24.0


def parse_week_start(raw) -> date:
    try:
        week_start = parse_date_input(raw)
    except ValueError as exc:
        raise ValidationError("Invalid week_start_date", details={"week_start_date": str(exc)}) from None
    if week_start is None:
        raise ValidationError("week_start_date is required", details={"week_start_date": "required"})
    if week_start.weekday() != 0:
        raise ValidationError(
            "week_start_date must be a Monday", details={"week_start_date": week_start.isoformat()},
        )
    return week_start


def is_week_submitted(resource_id: int, week_start: date) -> bool:
    row = WeeklySubmission.query.filter_by(resource_id=resource_id, week_start_date=week_start).first()
    return bool(row and row.is_submitted)


def _ensure_editable(resource_id: int, week_start: date) -> None:
    if is_week_submitted(resource_id, week_start):
        raise ValidationError(
            "Week already submitted", details={"week_start_date": week_start.isoformat()}, status=422,
        )


def _apply_days(entry: TimeEntry, data: dict, errors: dict) -> None:
    for field in DAY_FIELDS:
        if field in data:
            try:
                setattr(entry, field, parse_hours(data.get(field) or 0, maximum=MAX_DAY_HOURS))
            except ValueError as exc:
                errors[field] = str(exc)
    if "notes" in data:
        entry.notes = data.get("notes")


# ═══════════════════════════════════════════════════════════════
# Time entries
# ═══════════════════════════════════════════════════════════════
def list_time_entries(resource_id=None, week_start=None, start_date=None, end_date=None) -> list[dict]:
    query = TimeEntry.query
    if resource_id is not None:
        query = query.filter(TimeEntry.resource_id == resource_id)
    if week_start is not None:
        query = query.filter(TimeEntry.week_start_date == week_start)
    if start_date is not None:
        query = query.filter(TimeEntry.week_start_date >= monday_of(start_date))
    if end_date is not None:
        query = query.filter(TimeEntry.week_start_date <= end_date)
    rows = query.order_by(TimeEntry.week_start_date, TimeEntry.id).all()
    return [e.to_dict() for e in rows]


def get_time_entry(entry_id: int) -> dict:
    return get_or_raise(TimeEntry, entry_id, "TimeEntry").to_dict()


def _is_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def create_time_entry(data: dict) -> dict:
    errors = {}
    resource = None
    alloc = None
    if data.get("resource_id") is None:
        errors["resource_id"] = "required"
    elif not _is_id(data["resource_id"]):
        errors["resource_id"] = "must be an integer"
    else:
        resource = db.session.get(Resource, data["resource_id"])
        if resource is None or resource.is_deleted:
            errors["resource_id"] = "unknown resource"
    if data.get("allocation_id") is None:
        errors["allocation_id"] = "required"
    elif not _is_id(data["allocation_id"]):
        errors["allocation_id"] = "must be an integer"
    else:
        alloc = db.session.get(ResourceAllocation, data["allocation_id"])
        if alloc is None:
            errors["allocation_id"] = "unknown allocation"
        elif resource is not None and alloc.resource_id != resource.id:
            errors["allocation_id"] = "allocation belongs to another resource"
    if errors:
        raise ValidationError("Validation failed", details=errors)

    week_start = parse_week_start(data.get("week_start_date"))
    _ensure_editable(resource.id, week_start)

    entry = TimeEntry(resource_id=resource.id, allocation_id=alloc.id, week_start_date=week_start)
    for field in DAY_FIELDS:
        setattr(entry, field, 0.0)
    _apply_days(entry, data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    db.session.add(entry)
    commit_or_raise("TimeEntry", "week_start_date", week_start.isoformat())
    logger.info(
        "Time entry created id=%s resource_id=%s week=%s hours=%s",
        entry.id, entry.resource_id, week_start, entry.total_hours,
    )
    return entry.to_dict()


def update_time_entry(entry_id: int, data: dict) -> dict:
    entry = get_or_raise(TimeEntry, entry_id, "TimeEntry")
    _ensure_editable(entry.resource_id, entry.week_start_date)
    errors = {}
    _apply_days(entry, data, errors)
    if errors:
        db.session.rollback()
        raise ValidationError("Validation failed", details=errors)
    commit_or_raise("TimeEntry")
    return entry.to_dict()


def delete_time_entry(entry_id: int) -> None:
    entry = get_or_raise(TimeEntry, entry_id, "TimeEntry")
    _ensure_editable(entry.resource_id, entry.week_start_date)
    db.session.delete(entry)
    commit_or_raise("TimeEntry")


# ═══════════════════════════════════════════════════════════════
# Weekly submissions
# ═══════════════════════════════════════════════════════════════
def _set_submitted(resource_id: int, week_raw, submitted: bool) -> dict:
    get_or_raise(Resource, resource_id)
    week_start = parse_week_start(week_raw)
    row = WeeklySubmission.query.filter_by(resource_id=resource_id, week_start_date=week_start).first()
    if row is None:
        if not submitted:
            raise NotFoundError("WeeklySubmission", f"{resource_id}:{week_start.isoformat()}")
        row = WeeklySubmission(resource_id=resource_id, week_start_date=week_start)
        db.session.add(row)
    row.is_submitted = submitted
    row.submitted_at = datetime.now(timezone.utc) if submitted else None
    commit_or_raise("WeeklySubmission", "week_start_date", week_start.isoformat())
    logger.info("Week %s resource_id=%s week=%s", "submitted" if submitted else "unsubmitted", resource_id, week_start)
    d = row.to_dict()
    d["total_hours"] = _week_hours(resource_id, week_start)
    return d


def submit_week(resource_id: int, week_raw) -> dict:
    return _set_submitted(resource_id, week_raw, True)


def unsubmit_week(resource_id: int, week_raw) -> dict:
    return _set_submitted(resource_id, week_raw, False)


def _week_hours(resource_id: int, week_start: date) -> float:
    entries = TimeEntry.query.filter_by(resource_id=resource_id, week_start_date=week_start).all()
    return sum(e.total_hours for e in entries)


def list_pending_submissions(week_start: date | None = None, today: date | None = None) -> dict:
    """Active resources that have not submitted ``week_start`` (default: last week)."""
    week_start = week_start or monday_of(today or date.today()) - timedelta(days=7)
    submitted = {
        row.resource_id
        for row in WeeklySubmission.query.filter_by(week_start_date=week_start, is_submitted=True).all()
    }
    resources = (
        Resource.query.filter(Resource.is_deleted.is_(False), Resource.is_active.is_(True))
        .order_by(Resource.name)
        .all()
    )
    pending = [
        {
            "resource_id": r.id,
            "name": r.name,
            "department": r.department,
            "logged_hours": _week_hours(r.id, week_start),
        }
        for r in resources if r.id not in submitted
    ]
    return {"week_start_date": week_start.isoformat(), "pending": pending, "count": len(pending)}


def submission_overview(start: date, end: date, department: str | None = None) -> dict:
    """Submitted flag and logged hours per resource per week."""
    weeks = weeks_in_range(start, end)
    mondays = [monday for _, monday, _ in weeks]
    query = Resource.query.filter(Resource.is_deleted.is_(False), Resource.is_active.is_(True))
    if department and department != "all":
        query = query.filter(Resource.department == department)
    resources = query.order_by(Resource.name).all()

    submissions = {
        (row.resource_id, row.week_start_date): row.is_submitted
        for row in WeeklySubmission.query.filter(
            WeeklySubmission.week_start_date >= mondays[0],
            WeeklySubmission.week_start_date <= mondays[-1],
        ).all()
    }
    hours = {}
    for entry in TimeEntry.query.filter(
        TimeEntry.week_start_date >= mondays[0], TimeEntry.week_start_date <= mondays[-1],
    ).all():
        key = (entry.resource_id, entry.week_start_date)
        hours[key] = hours.get(key, 0.0) + entry.total_hours

    rows = []
    submitted_count = 0
    for resource in resources:
        cells = []
        for key, monday, _ in weeks:
            is_submitted = submissions.get((resource.id, monday), False)
            submitted_count += int(is_submitted)
            cells.append({
                "week": key,
                "week_start_date": monday.isoformat(),
                "is_submitted": is_submitted,
                "logged_hours": hours.get((resource.id, monday), 0.0),
            })
        rows.append({"resource_id": resource.id, "name": resource.name, "department": resource.department, "weeks": cells})

    expected = len(resources) * len(weeks)
    return {
        "resources": rows,
        "summary": {
            "expected_submissions": expected,
            "submitted": submitted_count,
            "submission_rate": round(submitted_count / expected * 100, 1) if expected else 0.0,
        },
        "period": {"start_date": start.isoformat(), "end_date": end.isoformat()},
    }
