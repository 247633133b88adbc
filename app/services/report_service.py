"""
Report Service — reports page data, change-allocation report, XLSX export
and the recent-reports list.

Functions:
    - generate_dashboard_report:       KPIs, monthly trend, capacity table, project split
    - generate_change_allocation:      planned vs logged hours per allocation
    - export_change_allocation_xlsx:   same report as a styled workbook (bytes)
    - list_recent_reports / create_recent_report / delete_recent_report / clear_recent_reports

Layer contract: all ORM access is here; report_bp only parses input and
shapes responses.
"""

import io
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.project import Project, ResourceAllocation
from app.models.resource import Resource
from app.models.settings import RecentReport
from app.services import capacity, dataset
from app.services.periods import (
    Period,
    monday_of,
    overlaps,
    parse_period,
    period_multiplier,
    week_key,
    weeks_in_range,
)
from app.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

TREND_MONTHS = 6
CAPACITY_ROWS = 10
DISTRIBUTION_ROWS = 8
ON_TRACK_VARIANCE_PCT = 15.0
RECENT_REPORTS_LIMIT = 10
GROUP_BY_OPTIONS = ("project", "resource")

HEADER_FILL = PatternFill(start_color="1E3A5F", end_color="1E3A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
OVER_FILL = PatternFill(start_color="FDE2E1", end_color="FDE2E1", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def require_period(body: dict) -> Period:
    period = parse_period(body.get("start_date"), body.get("end_date"))
    if period is None:
        raise ValidationError(
            "start_date and end_date are required",
            details={"start_date": "required", "end_date": "required"},
        )
    return period


def _month_windows(end: date, count: int) -> list[Period]:
    """``count`` calendar months ending with the month of ``end``, oldest first.

    The last window stops at ``end`` so its capacity matches the hours loaded.
    """
    windows = []
    year, month = end.year, end.month
    for _ in range(count):
        first = date(year, month, 1)
        next_first = date(year + (month == 12), month % 12 + 1, 1)
        windows.append(Period(first, min(next_first - timedelta(days=1), end)))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    return list(reversed(windows))


# ═══════════════════════════════════════════════════════════════
# Reports dashboard
# ═══════════════════════════════════════════════════════════════
def generate_dashboard_report(period: Period) -> dict:
    data = dataset.load_dataset()
    resources = data.active_resources
    multiplier = period_multiplier(period.start, period.end)
    weeks = weeks_in_range(period.start, period.end)

    trend_windows = _month_windows(period.end, TREND_MONTHS)
    entries = dataset.load_time_entries(
        min(monday_of(period.start), trend_windows[0].start), period.end,
    )
    in_period = [e for e in entries if e.week_start_date >= monday_of(period.start)]

    logged = defaultdict(float)
    actual_by_project = defaultdict(float)
    allocations = {a.id: a for a in data.allocations}
    for entry in in_period:
        logged[entry.resource_id] += entry.total_hours
        alloc = allocations.get(entry.allocation_id)
        if alloc is not None:
            actual_by_project[alloc.project_id] += entry.total_hours

    planned = defaultdict(float)
    planned_by_project = defaultdict(float)
    for alloc in data.allocations:
        hours = sum(capacity.allocation_week_hours(alloc, k, mon, sun) for k, mon, sun in weeks)
        planned[alloc.resource_id] += hours
        planned_by_project[alloc.project_id] += hours

    capacity_rows = []
    for resource in resources:
        cap = data.capacity_of(resource) * multiplier
        planned_cap = data.capacity_of(resource) * len(weeks)
        capacity_rows.append({
            "resource_id": resource.id,
            "name": resource.name,
            "department": capacity.department_of(resource),
            "capacity": capacity.round1(cap),
            "allocated": capacity.round1(planned[resource.id]),
            "actual": capacity.round1(logged[resource.id]),
            "utilization": capacity.round1(capacity.utilization_pct(logged[resource.id], cap)),
            "allocation_rate": capacity.round1(capacity.utilization_pct(planned[resource.id], planned_cap)),
        })

    active_projects = [p for p in data.projects if p.status == "active"]
    on_track = 0
    for project in active_projects:
        plan = planned_by_project.get(project.id, 0.0)
        if plan > 0 and abs(actual_by_project.get(project.id, 0.0) - plan) / plan * 100 <= ON_TRACK_VARIANCE_PCT:
            on_track += 1

    total_planned = sum(planned.values())
    total_actual = sum(logged[r.id] for r in resources)
    utilizations = [row["utilization"] for row in capacity_rows]
    kpis = {
        "average_utilization": capacity.round1(sum(utilizations) / len(utilizations)) if utilizations else 0.0,
        "over_allocated_resources": sum(1 for row in capacity_rows if row["allocation_rate"] > 100),
        "projects_on_track": on_track,
        "active_projects": len(active_projects),
        "capacity_efficiency": capacity.round1(capacity.utilization_pct(total_actual, total_planned)),
        "total_resources": len(resources),
    }

    monthly = []
    for window in trend_windows:
        hours = sum(
            e.total_hours for e in entries if window.start <= e.week_start_date <= window.end
        )
        cap = sum(data.capacity_of(r) for r in resources) * period_multiplier(window.start, window.end)
        monthly.append({
            "month": window.start.strftime("%Y-%m"),
            "utilization": capacity.round1(capacity.utilization_pct(hours, cap)),
            "logged_hours": capacity.round1(hours),
        })

    total_project_hours = sum(planned_by_project.values())
    distribution = []
    for project_id, hours in sorted(planned_by_project.items(), key=lambda kv: -kv[1]):
        project = data.projects_by_id.get(project_id)
        if project is None or hours <= 0:
            continue
        distribution.append({
            "project_id": project_id,
            "name": project.name,
            "hours": capacity.round1(hours),
            "percentage": capacity.round1(hours / total_project_hours * 100),
        })

    capacity_rows.sort(key=lambda r: (-r["utilization"], r["name"]))
    logger.info("Dashboard report generated period=%s resources=%d", period, len(resources))
    return {
        "kpis": kpis,
        "utilization_trend": monthly,
        "resource_capacity": capacity_rows[:CAPACITY_ROWS],
        "project_distribution": distribution[:DISTRIBUTION_ROWS],
        "recent_reports": list_recent_reports(),
        "metadata": {
            "period": period.to_dict(),
            "period_multiplier": multiplier,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


# ═══════════════════════════════════════════════════════════════
# Change allocation report
# ═══════════════════════════════════════════════════════════════
def _int_list(raw, field: str, required: bool) -> list[int]:
    if raw in (None, ""):
        raw = []
    if not isinstance(raw, list):
        raise ValidationError(f"{field} must be a list of ids", details={field: "must be a list"})
    ids = []
    for value in raw:
        if isinstance(value, bool):
            raise ValidationError(f"{field} must contain integers", details={field: value})
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must contain integers", details={field: value}) from None
    if required and not ids:
        raise ValidationError(
            f"At least one id is required in {field}", details={field: "required"},
        )
    return ids


def parse_change_allocation_criteria(body: dict) -> dict:
    period = require_period(body)
    group_by = body.get("group_by") or "project"
    if group_by not in GROUP_BY_OPTIONS:
        raise ValidationError(
            "Invalid group_by", details={"group_by": f"must be one of: {', '.join(GROUP_BY_OPTIONS)}"},
        )
    return {
        "period": period,
        "project_ids": _int_list(body.get("project_ids"), "project_ids", required=True),
        "resource_ids": _int_list(body.get("resource_ids"), "resource_ids", required=False),
        "group_by": group_by,
    }


def generate_change_allocation(criteria: dict, user_id: int | None = None) -> dict:
    period: Period = criteria["period"]
    query = (
        db.session.query(ResourceAllocation)
        .join(Resource, Resource.id == ResourceAllocation.resource_id)
        .join(Project, Project.id == ResourceAllocation.project_id)
        .filter(ResourceAllocation.project_id.in_(criteria["project_ids"]))
        .filter(Resource.is_deleted.is_(False))
    )
    if criteria["resource_ids"]:
        query = query.filter(ResourceAllocation.resource_id.in_(criteria["resource_ids"]))
    allocations = [
        a for a in query.order_by(ResourceAllocation.id).all()
        if overlaps(a.start_date, a.end_date, period.start, period.end)
    ]

    weeks = weeks_in_range(period.start, period.end)
    entries = dataset.load_time_entries(weeks[0][1], period.end, [a.id for a in allocations])
    actual = defaultdict(float)
    for entry in entries:
        actual[(entry.allocation_id, week_key(entry.week_start_date))] += entry.total_hours

    rows = []
    for alloc in allocations:
        weekly = []
        for key, monday, sunday in weeks:
            weekly.append({
                "week": key,
                "allocated": capacity.round1(capacity.allocation_week_hours(alloc, key, monday, sunday)),
                "actual": capacity.round1(actual.get((alloc.id, key), 0.0)),
            })
        allocated_total = sum(w["allocated"] for w in weekly)
        actual_total = sum(w["actual"] for w in weekly)
        variance = actual_total - allocated_total
        rows.append({
            "allocation_id": alloc.id,
            "project_id": alloc.project_id,
            "project_name": alloc.project.name,
            "resource_id": alloc.resource_id,
            "resource_name": alloc.resource.name,
            "role": alloc.role,
            "allocated_hours": capacity.round1(allocated_total),
            "actual_hours": capacity.round1(actual_total),
            "variance": capacity.round1(variance),
            "variance_percentage": capacity.round1(variance / allocated_total * 100) if allocated_total else 0.0,
            "weekly": weekly,
        })

    groups: dict[int, dict] = {}
    for row in rows:
        if criteria["group_by"] == "project":
            key, name = row["project_id"], row["project_name"]
        else:
            key, name = row["resource_id"], row["resource_name"]
        group = groups.setdefault(key, {
            "id": key, "name": name, "allocations": [],
            "total_allocated": 0.0, "total_actual": 0.0,
        })
        group["allocations"].append(row)
        group["total_allocated"] += row["allocated_hours"]
        group["total_actual"] += row["actual_hours"]
    for group in groups.values():
        group["total_variance"] = capacity.round1(group["total_actual"] - group["total_allocated"])
        group["variance_percentage"] = (
            capacity.round1(group["total_variance"] / group["total_allocated"] * 100)
            if group["total_allocated"] else 0.0
        )
        group["total_allocated"] = capacity.round1(group["total_allocated"])
        group["total_actual"] = capacity.round1(group["total_actual"])

    total_allocated = sum(r["allocated_hours"] for r in rows)
    total_actual = sum(r["actual_hours"] for r in rows)
    logger.info(
        "Change allocation report generated projects=%d rows=%d",
        len(criteria["project_ids"]), len(rows),
    )
    return {
        "data": list(groups.values()),
        "metadata": {
            "criteria": {
                **period.to_dict(),
                "project_ids": criteria["project_ids"],
                "resource_ids": criteria["resource_ids"],
                "group_by": criteria["group_by"],
            },
            "summary": {
                "total_allocations": len(rows),
                "total_allocated_hours": capacity.round1(total_allocated),
                "total_actual_hours": capacity.round1(total_actual),
                "total_variance": capacity.round1(total_actual - total_allocated),
                "variance_percentage": (
                    capacity.round1((total_actual - total_allocated) / total_allocated * 100)
                    if total_allocated else 0.0
                ),
                "group_count": len(groups),
            },
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "generated_by": user_id,
        },
    }


def _style_header(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    for col in ws.columns:
        longest = max((min(len(str(c.value)), 50) for c in col if c.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col[0].column)].width = max(longest + 4, 12)


def export_change_allocation_xlsx(report: dict) -> bytes:
    """Render a change-allocation report as an XLSX workbook."""
    meta = report["metadata"]
    summary = meta["summary"]
    wb = Workbook()

    # ── Sheet 1: Summary ──────────────────────────────────────────────
    ws = wb.active
    ws.title = "Summary"
    ws["A1"] = "Change Allocation Report"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Period: {meta['criteria']['start_date']} to {meta['criteria']['end_date']}"
    ws["A3"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A3"].font = Font(size=10, italic=True, color="666666")

    row = 5
    for label, key in (
        ("Allocations", "total_allocations"),
        ("Allocated hours", "total_allocated_hours"),
        ("Actual hours", "total_actual_hours"),
        ("Variance (h)", "total_variance"),
        ("Variance (%)", "variance_percentage"),
    ):
        ws.cell(row=row, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row, column=2, value=summary[key])
        row += 1
    _auto_width(ws)

    # ── Sheet 2: Allocations ──────────────────────────────────────────
    ws2 = wb.create_sheet("Allocations")
    headers = ["Group", "Project", "Resource", "Role", "Allocated (h)", "Actual (h)", "Variance (h)", "Variance (%)"]
    for col, header in enumerate(headers, 1):
        ws2.cell(row=1, column=col, value=header)
    _style_header(ws2, 1, len(headers))
    row = 2
    for group in report["data"]:
        for alloc in group["allocations"]:
            values = [
                group["name"], alloc["project_name"], alloc["resource_name"], alloc["role"],
                alloc["allocated_hours"], alloc["actual_hours"], alloc["variance"], alloc["variance_percentage"],
            ]
            for col, value in enumerate(values, 1):
                cell = ws2.cell(row=row, column=col, value=value)
                cell.border = THIN_BORDER
                if alloc["variance"] > 0:
                    cell.fill = OVER_FILL
            row += 1
    _auto_width(ws2)

    # ── Sheet 3: Weekly breakdown ─────────────────────────────────────
    ws3 = wb.create_sheet("Weekly")
    headers = ["Project", "Resource", "Week", "Allocated (h)", "Actual (h)"]
    for col, header in enumerate(headers, 1):
        ws3.cell(row=1, column=col, value=header)
    _style_header(ws3, 1, len(headers))
    row = 2
    for group in report["data"]:
        for alloc in group["allocations"]:
            for week in alloc["weekly"]:
                for col, value in enumerate(
                    [alloc["project_name"], alloc["resource_name"], week["week"], week["allocated"], week["actual"]], 1,
                ):
                    ws3.cell(row=row, column=col, value=value)
                row += 1
    _auto_width(ws3)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()


def human_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


# ═══════════════════════════════════════════════════════════════
# Recent reports
# ═══════════════════════════════════════════════════════════════
def list_recent_reports(user_id: int | None = None, limit: int = RECENT_REPORTS_LIMIT) -> list[dict]:
    query = RecentReport.query
    if user_id is not None:
        query = query.filter(RecentReport.generated_by == user_id)
    rows = query.order_by(RecentReport.generated_at.desc(), RecentReport.id.desc()).limit(limit).all()
    return [r.to_dict() for r in rows]


def create_recent_report(data: dict, user_id: int | None = None) -> dict:
    errors = {}
    name = (data.get("name") or "").strip()
    report_type = (data.get("report_type") or data.get("type") or "").strip()
    if not name:
        errors["name"] = "required"
    if not report_type:
        errors["report_type"] = "required"
    criteria = data.get("criteria") or {}
    if not isinstance(criteria, dict):
        errors["criteria"] = "must be an object"
    if errors:
        raise ValidationError("Invalid recent report", details=errors)

    report = RecentReport(
        name=name[:200],
        report_type=report_type[:50],
        size=str(data.get("size") or "Unknown")[:50],
        criteria=criteria,
        generated_by=user_id,
    )
    db.session.add(report)
    commit_or_raise("RecentReport")
    logger.info("Recent report recorded id=%s type=%s", report.id, report.report_type)
    return report.to_dict()


def delete_recent_report(report_id: int, user_id: int | None = None) -> None:
    report = get_or_raise(RecentReport, report_id, "Recent report")
    if user_id is not None and report.generated_by not in (None, user_id):
        raise NotFoundError("Recent report", report_id)
    db.session.delete(report)
    commit_or_raise("RecentReport")


def clear_recent_reports(user_id: int | None = None) -> int:
    query = RecentReport.query
    if user_id is not None:
        query = query.filter(RecentReport.generated_by == user_id)
    count = query.delete(synchronize_session=False)
    commit_or_raise("RecentReport")
    logger.info("Recent reports cleared count=%d", count)
    return count
