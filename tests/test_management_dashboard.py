"""Management dashboard trend endpoints."""

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ValidationError
from app.services import dataset, trend_service


@pytest.fixture()
def staffed(make_resource, make_project, make_allocation):
    today = date.today()
    busy = make_resource("Busy")
    idle = make_resource("Idle")
    make_resource("Bench")
    running = make_project("Running")
    # Started three weeks ago, so the trailing series shows it only recently
    recent = make_project("Recent", start_date=today - timedelta(days=21))
    make_project("Paused", status="on_hold")
    make_allocation(busy, running, allocated_hours=36)
    make_allocation(idle, recent, allocated_hours=8)
    return {"busy": busy, "idle": idle}


class TestParseWeeks:
    def test_default(self):
        assert trend_service.parse_weeks(None) == 12

    @pytest.mark.parametrize("raw", ["0", "53", "many"])
    def test_rejected(self, raw):
        with pytest.raises(ValidationError):
            trend_service.parse_weeks(raw)


class TestSeries:
    def test_active_projects_trend(self, client, staffed):
        data = client.get("/api/v1/management-dashboard/active-projects-trend?weeks=8").get_json()
        series = data["data"]
        assert len(series) == 8
        assert series[-1]["active_projects"] == 2
        assert series[0]["active_projects"] == 1
        assert data["metadata"]["weeks"] == 8

    def test_utilisation_rate_trend(self, client, staffed):
        series = client.get("/api/v1/management-dashboard/utilisation-rate-trend?weeks=2").get_json()["data"]
        latest = series[-1]
        assert latest["allocated_hours"] == 44.0
        assert latest["capacity_hours"] == 96.0
        assert latest["utilisation_rate"] == 45.8

    def test_bad_weeks(self, client):
        assert client.get("/api/v1/management-dashboard/active-projects-trend?weeks=99").status_code == 400


class TestResourceLists:
    def test_under_utilised(self, client, staffed):
        rows = client.get("/api/v1/management-dashboard/under-utilised-resources").get_json()["data"]
        assert [r["name"] for r in rows] == ["Bench", "Idle"]

    def test_over_utilised(self, client, staffed):
        data = client.get("/api/v1/management-dashboard/over-utilised-resources").get_json()
        assert [r["name"] for r in data["data"]] == ["Busy"]
        assert data["data"][0]["utilization"] == 112.5
        assert data["metadata"]["threshold"] == 100.0


class TestFallbackAndAccess:
    def test_fallback(self, client, monkeypatch):
        def _raise(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("db down"))

        monkeypatch.setattr(dataset, "load_dataset", _raise)
        res = client.get("/api/v1/management-dashboard/utilisation-rate-trend")
        assert res.status_code == 200
        data = res.get_json()
        assert data["data"] == []
        assert data["metadata"]["fallback"] is True
        assert data["metadata"]["weeks"] == 12

    def test_needs_dashboard_or_reports(self, client, make_user, auth_headers):
        nobody = make_user()
        res = client.get("/api/v1/management-dashboard/active-projects-trend", headers=auth_headers(nobody))
        assert res.status_code == 403
        manager = make_user("manager")
        res = client.get("/api/v1/management-dashboard/active-projects-trend", headers=auth_headers(manager))
        assert res.status_code == 200
