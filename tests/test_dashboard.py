"""
Capacity dashboard endpoints.

Team used by most tests (weekly_capacity 40 → 32h effective):

    Ana    40h  125.0 %  critical
    Ben    33h  103.1 %  error
    Cy     30h   93.8 %  warning
    Dee    26h   81.3 %  info
    Eli    10h   31.3 %  under_utilized
    Fay     —      0 %   unassigned
"""

import pytest
from sqlalchemy.exc import OperationalError

from app.services import dataset


@pytest.fixture()
def team(make_resource, make_project, make_allocation):
    core = make_project("Core Upgrade")
    side = make_project("Side Quest", priority="low")
    make_project("Dormant", status="on_hold")
    people = {}
    for name, hours in (("Ana", 40), ("Ben", 33), ("Cy", 30), ("Dee", 26), ("Eli", 10)):
        people[name] = make_resource(name)
        make_allocation(people[name], core if name != "Eli" else side, allocated_hours=hours)
    people["Fay"] = make_resource("Fay", department="Finance")
    return people


@pytest.fixture()
def db_down(monkeypatch):
    def _raise(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("db down"))

    monkeypatch.setattr(dataset, "load_dataset", _raise)


class TestKpis:
    def test_headline_numbers(self, client, team):
        res = client.get("/api/v1/dashboard/kpis")
        assert res.status_code == 200
        data = res.get_json()
        assert data["total_resources"] == 6
        assert data["conflicts"] == 2
        assert data["available_resources"] == 4
        assert data["active_projects"] == 2
        assert data["total_projects"] == 3
        assert 0 < data["utilization"] < 100

    def test_trend_has_seven_points(self, client, team):
        trend = client.get("/api/v1/dashboard/kpis").get_json()["trend_data"]
        assert set(trend) == {"active_projects", "available_resources", "utilization", "conflicts"}
        conflicts = trend["conflicts"]
        assert len(conflicts["trend_data"]) == 7
        assert conflicts["current_value"] == conflicts["trend_data"][-1]
        assert conflicts["period_label"] == "from last week"

    def test_department_scope(self, client, team):
        data = client.get("/api/v1/dashboard/kpis?department=Finance").get_json()
        assert data["total_resources"] == 1
        assert data["total_projects"] == 0
        assert data["metadata"]["department"] == "Finance"

    def test_path_style(self, client, team):
        res = client.get("/api/v1/dashboard/kpis/all/2026-01-05/2026-01-11")
        assert res.status_code == 200
        assert res.get_json()["metadata"]["period"] == {"start_date": "2026-01-05", "end_date": "2026-01-11"}

    def test_bad_period(self, client):
        assert client.get("/api/v1/dashboard/kpis?start_date=2026-02-01").status_code == 400
        assert client.get("/api/v1/dashboard/kpis/all/2026-02-01/2026-01-01").status_code == 400

    def test_fallback(self, client, db_down):
        res = client.get("/api/v1/dashboard/kpis")
        assert res.status_code == 200
        data = res.get_json()
        assert data["total_resources"] == 0
        assert data["utilization"] == 0.0
        assert data["metadata"]["fallback"] is True


class TestAlerts:
    def test_one_category_per_resource(self, client, team):
        data = client.get("/api/v1/dashboard/alerts").get_json()
        by_type = {c["type"]: [r["name"] for r in c["resources"]] for c in data["alerts"]}
        assert by_type == {
            "critical": ["Ana"],
            "error": ["Ben"],
            "warning": ["Cy"],
            "info": ["Dee"],
            "under_utilized": ["Eli"],
            "unassigned": ["Fay"],
        }
        summary = data["summary"]
        assert summary["total_alerts"] == 6
        assert summary["critical_count"] == 1
        assert summary["unassigned_count"] == 1

    def test_category_details(self, client, team):
        data = client.get("/api/v1/dashboard/alerts?severity=critical").get_json()
        assert [c["type"] for c in data["alerts"]] == ["critical"]
        critical = data["alerts"][0]
        assert critical["threshold"] == 120.0
        assert critical["resources"][0]["utilization"] == 125.0
        assert critical["resources"][0]["projects"] == ["Core Upgrade"]
        assert data["metadata"]["severity"] == "critical"

    def test_custom_threshold_moves_tier(self, client, team):
        from app.services import settings_service

        settings_service.update_thresholds({"critical": 130})
        data = client.get("/api/v1/dashboard/alerts").get_json()
        by_type = {c["type"]: [r["name"] for r in c["resources"]] for c in data["alerts"]}
        assert "critical" not in by_type
        assert by_type["error"] == ["Ana", "Ben"]

    def test_invalid_severity(self, client):
        res = client.get("/api/v1/dashboard/alerts?severity=apocalyptic")
        assert res.status_code == 400

    def test_fallback(self, client, db_down):
        data = client.get("/api/v1/dashboard/alerts").get_json()
        assert data["alerts"] == []
        assert data["summary"]["total_alerts"] == 0
        assert data["metadata"]["fallback"] is True

    def test_breakdown(self, client, team):
        ana = team["Ana"]
        data = client.get(f"/api/v1/dashboard/alerts/resource/{ana.id}/breakdown").get_json()
        assert len(data["weeks"]) == 1
        week = data["weeks"][0]
        assert week["hours"] == 40.0
        assert week["severity"] == "critical"
        assert week["projects"][0]["project_name"] == "Core Upgrade"
        assert data["summary"]["status"] == "critical"

    def test_breakdown_unknown(self, client):
        assert client.get("/api/v1/dashboard/alerts/resource/999/breakdown").status_code == 404


class TestBookedWithoutCapacity:
    """8h weekly capacity leaves nothing after the non-project deduction."""

    @pytest.fixture()
    def tiny(self, make_resource, make_project, make_allocation):
        tiny = make_resource("Tiny", weekly_capacity=8)
        make_allocation(tiny, make_project("Core Upgrade"), allocated_hours=30)
        make_resource("Idle", weekly_capacity=8)
        return tiny

    def test_alert_is_critical(self, client, tiny):
        data = client.get("/api/v1/dashboard/alerts").get_json()
        by_type = {c["type"]: [r["name"] for r in c["resources"]] for c in data["alerts"]}
        assert by_type == {"critical": ["Tiny"], "unassigned": ["Idle"]}
        assert data["alerts"][0]["resources"][0]["allocated_hours"] == 30.0

    def test_kpis_count_conflict(self, client, tiny):
        data = client.get("/api/v1/dashboard/kpis").get_json()
        assert data["conflicts"] == 1
        assert data["available_resources"] == 1
        assert data["total_resources"] == 2


class TestHeatmap:
    def test_resources_view(self, client, team):
        data = client.get("/api/v1/dashboard/heatmap").get_json()
        assert [r["name"] for r in data["data"]][:2] == ["Ana", "Ben"]
        assert data["data"][0]["heat_level"] == "critical"
        assert data["summary"]["total"] == 6
        assert data["metadata"]["view"] == "resources"

    def test_projects_view(self, client, team):
        rows = client.get("/api/v1/dashboard/heatmap?view=projects").get_json()["data"]
        assert [r["name"] for r in rows] == ["Core Upgrade", "Side Quest"]
        assert rows[0]["team_size"] == 4
        assert rows[0]["total_hours"] == 129.0

    def test_departments_view(self, client, team):
        rows = client.get("/api/v1/dashboard/heatmap?view=departments").get_json()["data"]
        assert [r["department"] for r in rows] == ["Engineering", "Finance"]
        assert rows[0]["resource_count"] == 5
        assert rows[0]["over_allocated"] == 2

    def test_invalid_view(self, client):
        assert client.get("/api/v1/dashboard/heatmap?view=galaxy").status_code == 400

    def test_fallback(self, client, db_down):
        data = client.get("/api/v1/dashboard/heatmap?view=projects").get_json()
        assert data["data"] == []
        assert data["metadata"]["view"] == "projects"
        assert data["metadata"]["fallback"] is True


class TestTimeline:
    def test_all_projects_without_period(self, client, team):
        data = client.get("/api/v1/dashboard/timeline").get_json()
        names = [p["name"] for p in data["projects"]]
        assert sorted(names) == ["Core Upgrade", "Dormant", "Side Quest"]
        core = next(p for p in data["projects"] if p["name"] == "Core Upgrade")
        assert core["resource_count"] == 4
        assert core["allocated_hours"] == 129.0
        assert 0 < core["completion"] < 100

    def test_department_path(self, client, team):
        data = client.get("/api/v1/dashboard/timeline/Finance/2026-01-05/2026-01-11").get_json()
        assert data["projects"] == []
        assert data["metadata"]["department"] == "Finance"

    def test_period_excludes_non_overlapping(self, client, team):
        data = client.get("/api/v1/dashboard/timeline?start_date=2001-01-01&end_date=2001-01-31").get_json()
        assert data["projects"] == []

    def test_fallback(self, client, db_down):
        data = client.get("/api/v1/dashboard/timeline").get_json()
        assert data["projects"] == []
        assert data["metadata"]["fallback"] is True


class TestGamified:
    def test_metrics(self, client, team):
        data = client.get("/api/v1/dashboard/gamified-metrics").get_json()
        assert data["capacity_hero"] == {"conflicts_count": 2, "badge": "silver", "period_label": "this week"}
        health = data["resource_health"]
        assert health["over_allocated"] == 2
        assert health["under_utilized"] == 2
        assert health["score"] == 60
        assert health["status"] == "watch"
        assert data["firefighter_alerts"]["trend"] == "neutral"
        assert data["continuous_improvement"]["delta"] == 0
        assert len(data["crystal_ball"]["weekly_utilization"]) == 4

    def test_deterministic(self, client, team):
        first = client.get("/api/v1/dashboard/gamified-metrics").get_json()
        second = client.get("/api/v1/dashboard/gamified-metrics").get_json()
        first.pop("metadata")
        second.pop("metadata")
        assert first == second

    def test_fallback(self, client, db_down):
        data = client.get("/api/v1/dashboard/gamified-metrics").get_json()
        assert data["capacity_hero"]["badge"] == "none"
        assert data["forecast_accuracy"]["color"] == "gray"
        assert data["resource_health"]["status"] == "critical"
        assert data["metadata"]["fallback"] is True


class TestDashboardPermission:
    def test_requires_dashboard(self, client, make_user, auth_headers):
        user = make_user()
        assert client.get("/api/v1/dashboard/kpis", headers=auth_headers(user)).status_code == 403
        user_role = make_user("user")
        assert client.get("/api/v1/dashboard/kpis", headers=auth_headers(user_role)).status_code == 200
