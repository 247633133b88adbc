"""Health endpoints."""


def test_liveness(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "app": "Resource Capacity Planner"}


def test_readiness(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "ok"
    assert data["checks"]["redis"]["status"] == "skipped"
    assert data["checks"]["app"]["testing"] is True


def test_public_when_auth_enabled(client, auth_enabled):
    assert client.get("/api/v1/health").status_code == 200
    assert client.get("/api/v1/health/ready").status_code == 200
