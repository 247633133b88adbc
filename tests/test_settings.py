"""Settings API — alert thresholds and the department catalogue."""

import pytest

from app.services import settings_service


class TestThresholds:
    def test_defaults(self, client):
        data = client.get("/api/v1/settings/thresholds").get_json()
        assert data["thresholds"] == {
            "critical": 120.0, "error": 100.0, "warning": 90.0, "info": 75.0, "under_utilization": 50.0,
        }
        keys = [s["threshold_key"] for s in data["settings"]]
        assert keys == ["critical", "error", "warning", "info", "under_utilization"]
        assert all(s["is_default"] for s in data["settings"])

    def test_update_wrapped(self, client):
        res = client.put("/api/v1/settings/thresholds", json={"thresholds": {"warning": 85}})
        assert res.status_code == 200
        assert res.get_json()["thresholds"]["warning"] == 85.0

        settings = client.get("/api/v1/settings/thresholds").get_json()["settings"]
        warning = next(s for s in settings if s["threshold_key"] == "warning")
        assert warning["is_default"] is False
        assert warning["default_value"] == 90.0

    def test_update_bare(self, client):
        res = client.put("/api/v1/settings/thresholds", json={"critical": 150, "error": 110})
        assert res.status_code == 200
        assert settings_service.get_thresholds()["critical"] == 150.0

    def test_update_twice_keeps_one_row(self, client):
        client.put("/api/v1/settings/thresholds", json={"info": 70})
        client.put("/api/v1/settings/thresholds", json={"info": 72})
        info = [s for s in settings_service.list_threshold_settings() if s["threshold_key"] == "info"]
        assert len(info) == 1
        assert info[0]["threshold_value"] == 72.0

    def test_ordering_violation(self, client):
        res = client.put("/api/v1/settings/thresholds", json={"warning": 105})
        assert res.status_code == 422
        assert settings_service.get_thresholds()["warning"] == 90.0

    @pytest.mark.parametrize("body", [
        {"mystery": 10},
        {"critical": "lots"},
        {"critical": True},
        {"error": -5},
        {},
    ])
    def test_rejected(self, client, body):
        assert client.put("/api/v1/settings/thresholds", json=body).status_code == 400

    def test_requires_settings_permission(self, client, make_user, auth_headers):
        manager = make_user("manager")
        res = client.get("/api/v1/settings/thresholds", headers=auth_headers(manager))
        assert res.status_code == 403
        admin = make_user("admin")
        res = client.get("/api/v1/settings/thresholds", headers=auth_headers(admin))
        assert res.status_code == 200


class TestDepartments:
    def test_crud(self, client):
        res = client.post("/api/v1/settings/departments", json={"name": "Finance", "description": "Money"})
        assert res.status_code == 201
        dept = res.get_json()
        assert dept["is_active"] is True

        res = client.put(f"/api/v1/settings/departments/{dept['id']}", json={"name": "Finance & Controlling"})
        assert res.get_json()["name"] == "Finance & Controlling"

        res = client.delete(f"/api/v1/settings/departments/{dept['id']}")
        assert res.get_json() == {"message": "Department deleted"}
        assert client.get("/api/v1/settings/departments").get_json() == []

    def test_inactive_hidden_by_default(self, client):
        client.post("/api/v1/settings/departments", json={"name": "Ops"})
        client.post("/api/v1/settings/departments", json={"name": "Archive", "is_active": False})
        names = [d["name"] for d in client.get("/api/v1/settings/departments").get_json()]
        assert names == ["Ops"]
        names = [d["name"] for d in client.get("/api/v1/settings/departments?include_inactive=true").get_json()]
        assert names == ["Archive", "Ops"]

    def test_blank_and_duplicate(self, client):
        assert client.post("/api/v1/settings/departments", json={"name": "  "}).status_code == 400
        client.post("/api/v1/settings/departments", json={"name": "IT"})
        assert client.post("/api/v1/settings/departments", json={"name": "IT"}).status_code == 422

    def test_unknown(self, client):
        assert client.put("/api/v1/settings/departments/404", json={"name": "X"}).status_code == 404
        assert client.delete("/api/v1/settings/departments/404").status_code == 404

    def test_read_open_write_gated(self, client, make_user, auth_headers):
        user = make_user("user")
        assert client.get("/api/v1/settings/departments", headers=auth_headers(user)).status_code == 200
        res = client.post("/api/v1/settings/departments", json={"name": "HR"}, headers=auth_headers(user))
        assert res.status_code == 403
