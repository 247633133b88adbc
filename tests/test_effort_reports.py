"""
Change-effort and business-controller reports, effort notes.

Fixture data (period 2026-01-05 .. 2026-01-18):
    Migration  change project led by Lea
    Gus        flat 20h/week, logs 45h in W02
    Hal        weekly map W02=10, W03=10, logs 20h in W03
    Ivy        on Ledger (business, completed), logs 8h in W03
"""

from datetime import date

import pytest

from app.models import db
from app.models.project import EffortNote

PERIOD = {"start_date": "2026-01-05", "end_date": "2026-01-18"}


@pytest.fixture()
def effort(make_resource, make_project, make_allocation, make_time_entry):
    lea = make_resource("Lea", department="PMO", role="Change Lead")
    migration = make_project(
        "Migration", start_date=date(2026, 1, 5), end_date=date(2026, 2, 1),
        type="change", change_lead_id=lea.id,
    )
    ledger = make_project("Ledger", status="completed", start_date=date(2026, 1, 1), end_date=date(2026, 1, 31))
    gus = make_resource("Gus")
    hal = make_resource("Hal")
    ivy = make_resource("Ivy", department="Finance", role="Analyst")
    gus_alloc = make_allocation(gus, migration, allocated_hours=20)
    hal_alloc = make_allocation(hal, migration, allocated_hours=0, weekly_allocations={"2026-W02": 10, "2026-W03": 10})
    ivy_alloc = make_allocation(ivy, ledger, allocated_hours=4)
    make_time_entry(gus_alloc, date(2026, 1, 5), hours_per_day=9)
    make_time_entry(hal_alloc, date(2026, 1, 12), hours_per_day=4)
    make_time_entry(ivy_alloc, date(2026, 1, 12), hours_per_day=8, days=1)
    return {"lea": lea, "migration": migration, "ledger": ledger, "gus": gus, "hal": hal, "ivy": ivy}


class TestChangeEffort:
    def test_change_projects_only(self, client, effort):
        res = client.post("/api/v1/reports/change-effort", json=PERIOD)
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert [p["project_name"] for p in data] == ["Migration"]
        project = data[0]
        assert project["change_lead"] == "Lea"
        assert project["total_estimated_hours"] == 60.0
        assert project["total_actual_hours"] == 65.0
        assert project["total_deviation"] == 5.0
        assert project["total_deviation_percentage"] == 8.33

    def test_resource_rows_and_logged_weeks(self, client, effort):
        project = client.post("/api/v1/reports/change-effort", json=PERIOD).get_json()["data"][0]
        gus, hal = project["resources"]
        assert (gus["resource_name"], gus["estimated_hours"], gus["actual_hours"], gus["deviation"]) == ("Gus", 40.0, 45.0, 5.0)
        assert gus["weekly_breakdown"] == [
            {"week": "2026-W02", "week_start_date": "2026-01-05", "estimated_hours": 20.0, "actual_hours": 45.0},
        ]
        assert hal["weekly_breakdown"] == [
            {"week": "2026-W03", "week_start_date": "2026-01-12", "estimated_hours": 10.0, "actual_hours": 20.0},
        ]

    def test_note_of_change_lead_is_attached(self, client, effort):
        db.session.add(EffortNote(
            project_id=effort["migration"].id, resource_id=effort["gus"].id,
            change_lead_id=effort["lea"].id, note="Cutover weekend",
        ))
        db.session.commit()
        project = client.post("/api/v1/reports/change-effort", json=PERIOD).get_json()["data"][0]
        assert [r["note"] for r in project["resources"]] == ["Cutover weekend", None]

    def test_project_filter_takes_any_type(self, client, effort):
        body = dict(PERIOD, project_id=effort["ledger"].id)
        data = client.post("/api/v1/reports/change-effort", json=body).get_json()["data"]
        assert [p["project_name"] for p in data] == ["Ledger"]
        assert data[0]["total_actual_hours"] == 8.0

    def test_bad_input(self, client, effort):
        assert client.post("/api/v1/reports/change-effort", json={}).status_code == 400
        assert client.post("/api/v1/reports/change-effort", json=dict(PERIOD, project_id="x")).status_code == 400
        assert client.post("/api/v1/reports/change-effort", json=dict(PERIOD, project_id=9999)).status_code == 404

    def test_change_lead_reports_is_enough(self, client, effort, make_user, auth_headers):
        from app.services import rbac_service

        lead = make_user()
        rbac_service.grant_permission(lead.id, "change_lead_reports")
        res = client.post("/api/v1/reports/change-effort", json=PERIOD, headers=auth_headers(lead))
        assert res.status_code == 200


class TestBusinessController:
    def test_rows_and_summary(self, client, effort):
        res = client.post("/api/v1/reports/business-controller", json=PERIOD)
        assert res.status_code == 200
        body = res.get_json()
        assert [(r["project_name"], r["resource_name"], r["total_actual_hours"]) for r in body["data"]] == [
            ("Ledger", "Ivy", 8.0),
            ("Migration", "Gus", 45.0),
            ("Migration", "Hal", 20.0),
        ]
        summary = body["summary"]
        assert summary["total_projects"] == 2
        assert summary["total_resources"] == 3
        assert summary["total_hours"] == 73.0
        assert summary["avg_hours_per_project"] == 36.5
        assert summary["avg_hours_per_resource"] == 24.33
        assert summary["department_breakdown"] == {
            "Engineering": {"hours": 65.0, "resource_count": 2, "project_count": 1},
            "Finance": {"hours": 8.0, "resource_count": 1, "project_count": 1},
        }
        assert summary["role_breakdown"]["Analyst"]["hours"] == 8.0

    def test_show_only_active(self, client, effort):
        body = client.post(
            "/api/v1/reports/business-controller", json=dict(PERIOD, show_only_active=True),
        ).get_json()
        assert {r["project_name"] for r in body["data"]} == {"Migration"}
        assert body["summary"]["report_period"]["show_only_active"] is True

    def test_show_only_active_must_be_bool(self, client, effort):
        res = client.post("/api/v1/reports/business-controller", json=dict(PERIOD, show_only_active="yes"))
        assert res.status_code == 400

    def test_requires_reports(self, client, effort, make_user, auth_headers):
        from app.services import rbac_service

        lead = make_user()
        rbac_service.grant_permission(lead.id, "change_lead_reports")
        res = client.post("/api/v1/reports/business-controller", json=PERIOD, headers=auth_headers(lead))
        assert res.status_code == 403


class TestEffortNotes:
    def _body(self, effort, note="Needs backfill"):
        return {
            "project_id": effort["migration"].id,
            "resource_id": effort["hal"].id,
            "change_lead_id": effort["lea"].id,
            "note": note,
        }

    def test_create_then_overwrite(self, client, effort):
        res = client.post("/api/v1/reports/effort-notes", json=self._body(effort))
        assert res.status_code == 201
        assert res.get_json()["note"] == "Needs backfill"

        res = client.post("/api/v1/reports/effort-notes", json=self._body(effort, note=""))
        assert res.status_code == 200
        assert EffortNote.query.count() == 1
        assert EffortNote.query.first().note == ""

    def test_list_filters(self, client, effort):
        client.post("/api/v1/reports/effort-notes", json=self._body(effort))
        rows = client.get(f"/api/v1/reports/effort-notes?project_id={effort['migration'].id}").get_json()
        assert [r["resource_id"] for r in rows] == [effort["hal"].id]
        assert client.get(f"/api/v1/reports/effort-notes?change_lead_id={effort['gus'].id}").get_json() == []

    def test_validation(self, client, effort):
        res = client.post("/api/v1/reports/effort-notes", json={"project_id": "1", "resource_id": 9999})
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert details == {
            "project_id": "must be an integer",
            "resource_id": "unknown resource",
            "change_lead_id": "required",
            "note": "required",
        }
