"""
Effort Service — change-effort report, business-controller report and
change leads' effort notes.

    change effort         estimated (planned) vs logged hours per change
                          project and resource, with the weeks that carry
                          logged time and the change lead's note
    business controller   logged hours per project and resource with
                          department and role breakdowns
    effort notes          one note per (project, resource, change lead);
                          saving again overwrites the text

Hours are rounded to two decimals here, the precision finance reads them at.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import EffortNote, Project, ResourceAllocation
from app.models.resource import Resource
from app.services import capacity, dataset
from app.services.periods import Period, monday_of, overlaps, week_key, weeks_in_range
from app.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 5000
UNASSIGNED = "Unassigned"


def _round2(value: float) -> float:
    return round(value or 0.0, 2)


def _deviation_pct(actual: float, estimated: float) -> float:
    return _round2((actual - estimated) / estimated * 100) if estimated > 0 else 0.0


def _optional_id(body: dict, field: str):
    value = body.get(field)
    if value in (None, ""):
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    return value


# ═══════════════════════════════════════════════════════════════
# Change effort
# ═══════════════════════════════════════════════════════════════
def change_effort_report(period: Period, body: dict | None = None) -> dict:
    """Body extras: {project_id?}; without one every change project in the period is reported."""
    project_id = _optional_id(body or {}, "project_id")
    if project_id is not None:
        project = db.session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        projects = [project]
    else:
        projects = [
            p for p in Project.query.filter(Project.type == "change").order_by(Project.name).all()
            if overlaps(p.start_date, p.end_date, period.start, period.end)
        ]

    allocations = (
        db.session.query(ResourceAllocation)
        .join(Resource, Resource.id == ResourceAllocation.resource_id)
        .filter(ResourceAllocation.project_id.in_([p.id for p in projects] or [-1]))
        .filter(Resource.is_deleted.is_(False))
        .order_by(ResourceAllocation.id)
        .all()
    )
    weeks = weeks_in_range(period.start, period.end)
    logged = defaultdict(float)
    for entry in dataset.load_time_entries(monday_of(period.start), period.end, [a.id for a in allocations]):
        logged[(entry.allocation_id, week_key(entry.week_start_date))] += entry.total_hours

    notes = {
        (n.project_id, n.resource_id, n.change_lead_id): n.note
        for n in EffortNote.query.filter(EffortNote.project_id.in_([p.id for p in projects] or [-1])).all()
    }

    by_project = defaultdict(dict)
    for alloc in allocations:
        project = alloc.project
        resource = alloc.resource
        row = by_project[project.id].setdefault(resource.id, {
            "resource_id": resource.id,
            "resource_name": resource.name,
            "resource_email": resource.email,
            "department": capacity.department_of(resource),
            "role": resource.role,
            "estimated_hours": 0.0,
            "actual_hours": 0.0,
            "weekly": defaultdict(lambda: [0.0, 0.0]),
            "note": notes.get((project.id, resource.id, project.change_lead_id)),
        })
        for key, monday, sunday in weeks:
            estimated = capacity.allocation_week_hours(alloc, key, monday, sunday)
            actual = logged.get((alloc.id, key), 0.0)
            row["estimated_hours"] += estimated
            row["actual_hours"] += actual
            row["weekly"][(key, monday)][0] += estimated
            row["weekly"][(key, monday)][1] += actual

    report = []
    for project in projects:
        rows = list(by_project.get(project.id, {}).values())
        if not rows:
            continue
        for row in rows:
            row["weekly_breakdown"] = [
                {
                    "week": key,
                    "week_start_date": monday.isoformat(),
                    "estimated_hours": _round2(estimated),
                    "actual_hours": _round2(actual),
                }
                for (key, monday), (estimated, actual) in sorted(row.pop("weekly").items())
                if actual > 0
            ]
            row["deviation"] = _round2(row["actual_hours"] - row["estimated_hours"])
            row["estimated_hours"] = _round2(row["estimated_hours"])
            row["actual_hours"] = _round2(row["actual_hours"])
        estimated = sum(r["estimated_hours"] for r in rows)
        actual = sum(r["actual_hours"] for r in rows)
        report.append({
            "project_id": project.id,
            "project_name": project.name,
            "project_type": project.type,
            "status": project.status,
            "stream": project.stream,
            "change_lead_id": project.change_lead_id,
            "change_lead": project.change_lead.name if project.change_lead else None,
            "start_date": project.start_date.isoformat() if project.start_date else None,
            "end_date": project.end_date.isoformat() if project.end_date else None,
            "resources": sorted(rows, key=lambda r: r["resource_name"]),
            "total_estimated_hours": _round2(estimated),
            "total_actual_hours": _round2(actual),
            "total_deviation": _round2(actual - estimated),
            "total_deviation_percentage": _deviation_pct(actual, estimated),
        })

    logger.info("Change effort report generated projects=%d filter=%s", len(report), project_id or "all")
    return {
        "data": report,
        "metadata": {
            "period": period.to_dict(),
            "project_id": project_id,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


# ═══════════════════════════════════════════════════════════════
# Business controller
# ═══════════════════════════════════════════════════════════════
def _breakdown(rows: list[dict], field: str) -> dict:
    groups = defaultdict(lambda: {"hours": 0.0, "resources": set(), "projects": set()})
    for row in rows:
        group = groups[row[field] or UNASSIGNED]
        group["hours"] += row["total_actual_hours"]
        group["resources"].add(row["resource_id"])
        group["projects"].add(row["project_id"])
    return {
        name: {
            "hours": _round2(g["hours"]),
            "resource_count": len(g["resources"]),
            "project_count": len(g["projects"]),
        }
        for name, g in sorted(groups.items())
    }


def business_controller_report(period: Period, body: dict | None = None) -> dict:
    """Body extras: {show_only_active?}; logged hours per (project, resource)."""
    show_only_active = (body or {}).get("show_only_active", False)
    if not isinstance(show_only_active, bool):
        raise ValidationError(
            "show_only_active must be a boolean", details={"show_only_active": show_only_active},
        )

    entries = dataset.load_time_entries(monday_of(period.start), period.end)
    hours = defaultdict(float)
    for entry in entries:
        hours[entry.allocation_id] += entry.total_hours

    allocations = (
        ResourceAllocation.query.filter(ResourceAllocation.id.in_(list(hours) or [-1])).all()
    )
    totals = defaultdict(float)
    for alloc in allocations:
        if show_only_active and alloc.project.status != "active":
            continue
        if alloc.resource.is_deleted:
            continue
        totals[(alloc.project, alloc.resource)] += hours[alloc.id]

    rows = []
    for (project, resource), total in totals.items():
        if total <= 0:
            continue
        rows.append({
            "project_id": project.id,
            "project_name": project.name,
            "project_type": project.type,
            "project_status": project.status,
            "stream": project.stream,
            "change_lead": project.change_lead.name if project.change_lead else None,
            "resource_id": resource.id,
            "resource_name": resource.name,
            "department": resource.department,
            "role": resource.role,
            "total_actual_hours": _round2(total),
        })
    rows.sort(key=lambda r: (r["project_name"], r["resource_name"]))

    project_count = len({r["project_id"] for r in rows})
    resource_count = len({r["resource_id"] for r in rows})
    total_hours = sum(r["total_actual_hours"] for r in rows)
    summary = {
        "total_projects": project_count,
        "total_resources": resource_count,
        "total_hours": _round2(total_hours),
        "avg_hours_per_project": _round2(total_hours / project_count) if project_count else 0.0,
        "avg_hours_per_resource": _round2(total_hours / resource_count) if resource_count else 0.0,
        "department_breakdown": _breakdown(rows, "department"),
        "role_breakdown": _breakdown(rows, "role"),
        "report_period": {**period.to_dict(), "show_only_active": show_only_active},
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.info(
        "Business controller report generated rows=%d projects=%d hours=%.2f",
        len(rows), project_count, total_hours,
    )
    return {"data": rows, "summary": summary}


# ═══════════════════════════════════════════════════════════════
# Effort notes
# ═══════════════════════════════════════════════════════════════
def list_effort_notes(project_id=None, change_lead_id=None) -> list[dict]:
    query = EffortNote.query
    if project_id is not None:
        query = query.filter(EffortNote.project_id == project_id)
    if change_lead_id is not None:
        query = query.filter(EffortNote.change_lead_id == change_lead_id)
    return [n.to_dict() for n in query.order_by(EffortNote.project_id, EffortNote.resource_id).all()]


def save_effort_note(data: dict, user_id: int | None = None) -> tuple[dict, bool]:
    """Create or overwrite the note of (project, resource, change lead); returns (note, created)."""
    errors = {}
    ids = {}
    for field, model in (("project_id", Project), ("resource_id", Resource), ("change_lead_id", Resource)):
        value = data.get(field)
        if value is None:
            errors[field] = "required"
        elif isinstance(value, bool) or not isinstance(value, int):
            errors[field] = "must be an integer"
        else:
            row = db.session.get(model, value)
            if row is None or getattr(row, "is_deleted", False):
                errors[field] = f"unknown {model.__tablename__[:-1]}"
            ids[field] = value
    note = data.get("note")
    if not isinstance(note, str):
        errors["note"] = "required" if note is None else "must be a string"
    elif len(note) > NOTE_MAX_LENGTH:
        errors["note"] = f"at most {NOTE_MAX_LENGTH} characters"
    if errors:
        raise ValidationError("Validation failed", details=errors)

    existing = EffortNote.query.filter_by(**ids).first()
    created = existing is None
    if created:
        existing = EffortNote(created_by=user_id, **ids)
        db.session.add(existing)
    existing.note = note
    commit_or_raise("EffortNote")
    logger.info(
        "Effort note %s project_id=%s resource_id=%s by=%s",
        "created" if created else "updated", ids["project_id"], ids["resource_id"], user_id,
    )
    return existing.to_dict(), created
