"""
Resource API — CRUD, soft delete, non-project activities.

Covers:
  - list filters (department, include_inactive) and pagination envelope
  - create validation (name, email, weekly_capacity bounds), duplicates
  - detail with effective capacity
  - soft delete hides the resource
  - non-project activities CRUD
"""

from app.models import db
from app.models.resource import Resource


class TestResourceList:
    def test_envelope_and_department_filter(self, client, make_resource):
        make_resource("Alice", department="Finance")
        make_resource("Bob", department="IT")
        make_resource("Carol", department="Finance")

        res = client.get("/api/v1/resources?department=Finance")
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 2
        assert [r["name"] for r in data["items"]] == ["Alice", "Carol"]
        assert data["limit"] == 200
        assert data["offset"] == 0

    def test_all_department_is_unfiltered(self, client, make_resource):
        make_resource(department="Finance")
        make_resource(department="IT")
        assert client.get("/api/v1/resources?department=all").get_json()["total"] == 2

    def test_inactive_hidden_by_default(self, client, make_resource):
        make_resource("Active")
        make_resource("Gone", is_active=False)
        assert client.get("/api/v1/resources").get_json()["total"] == 1
        assert client.get("/api/v1/resources?include_inactive=true").get_json()["total"] == 2

    def test_pagination(self, client, make_resource):
        for i in range(5):
            make_resource(f"R{i}")
        data = client.get("/api/v1/resources?limit=2&offset=2").get_json()
        assert data["total"] == 5
        assert [r["name"] for r in data["items"]] == ["R2", "R3"]


class TestResourceCrud:
    def test_create(self, client):
        res = client.post("/api/v1/resources", json={
            "name": "Dana", "email": "Dana@Example.com", "department": "Ops", "weekly_capacity": 32,
        })
        assert res.status_code == 201
        data = res.get_json()
        assert data["email"] == "dana@example.com"
        assert data["weekly_capacity"] == 32.0

    def test_create_requires_name_and_email(self, client):
        res = client.post("/api/v1/resources", json={})
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert details["name"] == "required"
        assert details["email"] == "required"

    def test_capacity_out_of_range(self, client):
        res = client.post("/api/v1/resources", json={"name": "X", "email": "x@example.com", "weekly_capacity": 200})
        assert res.status_code == 400
        assert "weekly_capacity" in res.get_json()["details"]

    def test_duplicate_email(self, client, make_resource):
        make_resource(email="dup@example.com")
        res = client.post("/api/v1/resources", json={"name": "Dup", "email": "dup@example.com"})
        assert res.status_code == 409

    def test_detail_has_effective_capacity(self, client, make_resource):
        r = make_resource(weekly_capacity=40)
        data = client.get(f"/api/v1/resources/{r.id}").get_json()
        assert data["effective_capacity"] == 32.0
        assert data["active_allocations"] == 0

    def test_update(self, client, make_resource):
        r = make_resource()
        res = client.put(f"/api/v1/resources/{r.id}", json={"department": "Legal", "is_active": False})
        assert res.status_code == 200
        assert res.get_json()["department"] == "Legal"
        assert res.get_json()["is_active"] is False

    def test_soft_delete(self, client, make_resource):
        r = make_resource()
        res = client.delete(f"/api/v1/resources/{r.id}")
        assert res.get_json() == {"message": "Resource deleted"}
        assert client.get(f"/api/v1/resources/{r.id}").status_code == 404
        assert db.session.get(Resource, r.id).is_deleted is True

    def test_missing(self, client):
        res = client.get("/api/v1/resources/999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_resource_allocations(self, client, make_resource, make_project, make_allocation):
        r = make_resource()
        p = make_project("Ledger")
        make_allocation(r, p, allocated_hours=12)
        make_allocation(r, p, allocated_hours=4, status="completed")
        data = client.get(f"/api/v1/resources/{r.id}/allocations?status=active").get_json()
        assert len(data) == 1
        assert data[0]["project_name"] == "Ledger"
        assert data[0]["weekly_hours"] == 12.0


class TestActivities:
    def test_activity_lifecycle(self, client, make_resource):
        r = make_resource()
        res = client.post(f"/api/v1/resources/{r.id}/activities", json={
            "activity_type": "Training", "hours_per_week": 4,
        })
        assert res.status_code == 201
        activity_id = res.get_json()["id"]

        res = client.put(f"/api/v1/resources/{r.id}/activities/{activity_id}", json={"hours_per_week": 6})
        assert res.get_json()["hours_per_week"] == 6.0

        assert len(client.get(f"/api/v1/resources/{r.id}/activities").get_json()) == 1
        assert client.delete(f"/api/v1/resources/{r.id}/activities/{activity_id}").status_code == 200
        assert client.get(f"/api/v1/resources/{r.id}/activities").get_json() == []

    def test_invalid_type(self, client, make_resource):
        r = make_resource()
        res = client.post(f"/api/v1/resources/{r.id}/activities", json={"activity_type": "Napping"})
        assert res.status_code == 400

    def test_activity_of_other_resource(self, client, make_resource):
        a, b = make_resource(), make_resource()
        activity_id = client.post(
            f"/api/v1/resources/{a.id}/activities", json={"activity_type": "Meetings"},
        ).get_json()["id"]
        res = client.delete(f"/api/v1/resources/{b.id}/activities/{activity_id}")
        assert res.status_code == 404
