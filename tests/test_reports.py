"""
Reports API — reports dashboard, change-allocation report, XLSX export,
recent reports.

Fixture data (period 2026-01-05 .. 2026-01-18, ISO weeks W02 and W03):
    Gus  flat 20h/week on Migration, logs 45h in W02
    Hal  weekly map W02=10, W03=10 on Migration, logs 20h in W03
"""

import io
from datetime import date

import pytest
from openpyxl import load_workbook

from app.models.settings import RecentReport
from app.services import report_service

PERIOD = {"start_date": "2026-01-05", "end_date": "2026-01-18"}
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture()
def migration(make_resource, make_project, make_allocation, make_time_entry):
    project = make_project("Migration", start_date=date(2026, 1, 5), end_date=date(2026, 2, 1), type="change")
    gus = make_resource("Gus")
    hal = make_resource("Hal")
    gus_alloc = make_allocation(gus, project, allocated_hours=20)
    hal_alloc = make_allocation(hal, project, allocated_hours=0, weekly_allocations={"2026-W02": 10, "2026-W03": 10})
    make_time_entry(gus_alloc, date(2026, 1, 5), hours_per_day=9)
    make_time_entry(hal_alloc, date(2026, 1, 12), hours_per_day=4)
    return {"project": project, "gus": gus, "hal": hal}


class TestDashboardReport:
    def test_kpis(self, client, migration):
        res = client.post("/api/v1/reports/dashboard", json=PERIOD)
        assert res.status_code == 200
        data = res.get_json()
        kpis = data["kpis"]
        assert kpis["total_resources"] == 2
        assert kpis["active_projects"] == 1
        assert kpis["projects_on_track"] == 1
        assert data["metadata"]["period_multiplier"] == 2
        assert len(data["utilization_trend"]) == 6
        assert data["utilization_trend"][-1]["month"] == "2026-01"

    def test_current_month_clipped_to_period_end(self, client, migration):
        trend = client.post("/api/v1/reports/dashboard", json=PERIOD).get_json()["utilization_trend"]
        # 2026-01-01..2026-01-18 stands for 2 weeks of 2 x 32h
        assert trend[-1] == {"month": "2026-01", "utilization": 50.8, "logged_hours": 65.0}
        assert trend[-2]["logged_hours"] == 0.0

    def test_month_windows(self):
        windows = report_service._month_windows(date(2026, 3, 15), 3)
        assert [(w.start, w.end) for w in windows] == [
            (date(2026, 1, 1), date(2026, 1, 31)),
            (date(2026, 2, 1), date(2026, 2, 28)),
            (date(2026, 3, 1), date(2026, 3, 15)),
        ]

    def test_capacity_rows(self, client, migration):
        rows = client.post("/api/v1/reports/dashboard", json=PERIOD).get_json()["resource_capacity"]
        gus = next(r for r in rows if r["name"] == "Gus")
        assert gus["allocated"] == 40.0
        assert gus["actual"] == 45.0
        assert gus["capacity"] == 64.0

    def test_distribution(self, client, migration):
        dist = client.post("/api/v1/reports/dashboard", json=PERIOD).get_json()["project_distribution"]
        assert dist == [{"project_id": migration["project"].id, "name": "Migration", "hours": 60.0, "percentage": 100.0}]

    def test_period_required(self, client):
        res = client.post("/api/v1/reports/dashboard", json={})
        assert res.status_code == 400

    def test_requires_reports_permission(self, client, make_user, auth_headers):
        user = make_user("user")
        assert client.post("/api/v1/reports/dashboard", json=PERIOD, headers=auth_headers(user)).status_code == 403


class TestChangeAllocation:
    def test_grouped_by_project(self, client, migration):
        body = dict(PERIOD, project_ids=[migration["project"].id])
        data = client.post("/api/v1/reports/change-allocation", json=body).get_json()
        assert len(data["data"]) == 1
        group = data["data"][0]
        assert group["name"] == "Migration"
        assert group["total_allocated"] == 60.0
        assert group["total_actual"] == 65.0
        assert group["total_variance"] == 5.0

        rows = {r["resource_name"]: r for r in group["allocations"]}
        assert rows["Gus"]["variance"] == 5.0
        assert rows["Hal"]["weekly"] == [
            {"week": "2026-W02", "allocated": 10.0, "actual": 0.0},
            {"week": "2026-W03", "allocated": 10.0, "actual": 20.0},
        ]
        summary = data["metadata"]["summary"]
        assert summary["total_allocations"] == 2
        assert summary["group_count"] == 1

    def test_grouped_by_resource(self, client, migration):
        body = dict(PERIOD, project_ids=[migration["project"].id], group_by="resource")
        data = client.post("/api/v1/reports/change-allocation", json=body).get_json()
        assert sorted(g["name"] for g in data["data"]) == ["Gus", "Hal"]

    def test_resource_filter(self, client, migration):
        body = dict(PERIOD, project_ids=[migration["project"].id], resource_ids=[migration["hal"].id])
        data = client.post("/api/v1/reports/change-allocation", json=body).get_json()
        assert data["metadata"]["summary"]["total_allocations"] == 1

    @pytest.mark.parametrize("body", [
        dict(PERIOD),
        dict(PERIOD, project_ids=[]),
        dict(PERIOD, project_ids="1,2"),
        dict(PERIOD, project_ids=[1], group_by="month"),
        {"project_ids": [1]},
    ])
    def test_validation(self, client, body):
        assert client.post("/api/v1/reports/change-allocation", json=body).status_code == 400

    def test_change_lead_permission_is_enough(self, client, make_user, auth_headers, migration):
        from app.services import rbac_service

        user = make_user()
        rbac_service.grant_permission(user.id, "change_lead_reports")
        body = dict(PERIOD, project_ids=[migration["project"].id])
        res = client.post("/api/v1/reports/change-allocation", json=body, headers=auth_headers(user))
        assert res.status_code == 200


class TestExport:
    def test_xlsx_download(self, client, migration):
        body = dict(PERIOD, project_ids=[migration["project"].id])
        res = client.post("/api/v1/reports/change-allocation/export", json=body)
        assert res.status_code == 200
        assert res.mimetype == XLSX
        assert "attachment" in res.headers["Content-Disposition"]
        assert "change_allocation_" in res.headers["Content-Disposition"]

        wb = load_workbook(io.BytesIO(res.data))
        assert wb.sheetnames == ["Summary", "Allocations", "Weekly"]
        assert wb["Summary"]["A1"].value == "Change Allocation Report"
        assert wb["Allocations"].max_row == 3
        assert wb["Weekly"].max_row == 5

    def test_export_is_recorded(self, client, migration):
        body = dict(PERIOD, project_ids=[migration["project"].id])
        client.post("/api/v1/reports/change-allocation/export", json=body)
        recent = client.get("/api/v1/reports/recent").get_json()
        assert len(recent) == 1
        assert recent[0]["report_type"] == "change_allocation"
        assert recent[0]["criteria"]["project_ids"] == [migration["project"].id]
        assert recent[0]["name"].endswith(".xlsx")


class TestRecentReports:
    def test_per_user_lists(self, client, make_user, auth_headers):
        alice, bob = make_user("manager"), make_user("manager")
        body = {"name": "Q1 review", "report_type": "dashboard"}
        assert client.post("/api/v1/reports/recent", json=body, headers=auth_headers(alice)).status_code == 201
        client.post("/api/v1/reports/recent", json=dict(body, name="Bob's"), headers=auth_headers(bob))

        mine = client.get("/api/v1/reports/recent", headers=auth_headers(alice)).get_json()
        assert [r["name"] for r in mine] == ["Q1 review"]

        report = client.post("/api/v1/reports/dashboard", json=PERIOD, headers=auth_headers(alice)).get_json()
        assert [r["name"] for r in report["recent_reports"]] == ["Q1 review"]

    def test_cannot_delete_others(self, client, make_user, auth_headers):
        alice, bob = make_user("manager"), make_user("manager")
        rid = client.post(
            "/api/v1/reports/recent", json={"name": "Mine", "report_type": "dashboard"}, headers=auth_headers(alice),
        ).get_json()["id"]
        assert client.delete(f"/api/v1/reports/recent/{rid}", headers=auth_headers(bob)).status_code == 404
        assert client.delete(f"/api/v1/reports/recent/{rid}", headers=auth_headers(alice)).status_code == 200

    def test_clear(self, client, make_user, auth_headers):
        alice = make_user("manager")
        for i in range(3):
            client.post(
                "/api/v1/reports/recent", json={"name": f"R{i}", "report_type": "dashboard"},
                headers=auth_headers(alice),
            )
        res = client.delete("/api/v1/reports/recent", headers=auth_headers(alice))
        assert res.get_json()["deleted"] == 3
        assert RecentReport.query.count() == 0

    def test_validation(self, client):
        res = client.post("/api/v1/reports/recent", json={"name": ""})
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"name", "report_type"}
