"""
HTTP route tests
"""
import pytest
from fastapi.testclient import TestClient

from querydesk.main import app

USER = {"X-User-ID": "u1"}
ADMIN = {"X-User-ID": "admin", "X-User-Roles": "Viewer, Admin"}


@pytest.fixture
def client(config_db, warehouse, connector):
    # lifespan is not entered, so no scheduler is started
    return TestClient(app)


@pytest.fixture
def grant(client, warehouse):
    response = client.post("/api/permissions", json={
        "user_id": "u1",
        "db_config_id": warehouse,
        "allowed_tables": ["Orders"],
        "allowed_columns": {"Orders": ["Id", "Total"]}
    }, headers=ADMIN)
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "scheduler": "stopped"}


def test_database_crud(client):
    response = client.post("/api/databases", json={
        "name": "Reporting",
        "type": "sqlite",
        "url": "sqlite:///:memory:",
        "description": "scratch"
    }, headers=USER)
    assert response.status_code == 201
    created = response.json()
    assert created["is_active"] is True

    assert client.post(f"/api/databases/{created['id']}/test").json()["success"] is True

    response = client.put(f"/api/databases/{created['id']}", json={"name": "Reporting v2"})
    assert response.json()["name"] == "Reporting v2"

    names = [db["name"] for db in client.get("/api/databases").json()]
    assert "Reporting v2" in names

    assert client.delete(f"/api/databases/{created['id']}").status_code == 204
    assert client.get(f"/api/databases/{created['id']}").status_code == 404


def test_unsupported_database_type(client):
    response = client.post("/api/databases", json={"name": "x", "type": "oracle", "url": "x"})

    assert response.status_code == 400


def test_permission_routes(client, grant):
    response = client.get("/api/permissions", params={"user_id": "u1"}, headers=ADMIN)
    assert [g["id"] for g in response.json()] == [grant["id"]]

    response = client.put(f"/api/permissions/{grant['id']}", json={
        "allowed_tables": ["Orders"],
        "allowed_columns": {"Orders": ["Id"]}
    }, headers=ADMIN)
    assert response.json()["allowed_columns"] == {"Orders": ["Id"]}

    response = client.put(
        "/api/permissions/999", json={"allowed_tables": [], "allowed_columns": {}}, headers=ADMIN
    )
    assert response.status_code == 404

    response = client.put(f"/api/permissions/{grant['id']}", json={
        "allowed_tables": [],
        "allowed_columns": {"Orders": ["Id"]}
    }, headers=ADMIN)
    assert response.status_code == 400

    assert client.delete(f"/api/permissions/{grant['id']}", headers=ADMIN).status_code == 204
    assert client.delete(f"/api/permissions/{grant['id']}", headers=ADMIN).status_code == 404


@pytest.mark.parametrize("headers, expected", [
    ({}, 401),
    (USER, 403),
    ({"X-User-ID": "u1", "X-User-Roles": "Viewer,Analyst"}, 403),
])
def test_grant_management_requires_admin(client, warehouse, headers, expected):
    payload = {"user_id": "u1", "db_config_id": warehouse, "allowed_tables": ["Orders"]}

    assert client.post("/api/permissions", json=payload, headers=headers).status_code == expected
    assert client.get("/api/permissions", headers=headers).status_code == expected
    assert client.put("/api/permissions/1", json={}, headers=headers).status_code == expected
    assert client.delete("/api/permissions/1", headers=headers).status_code == expected

    assert client.get("/api/permissions", headers=ADMIN).json() == []


def test_caller_access_checks(client, grant, warehouse):
    def has_access(path, headers=USER):
        response = client.get(f"/api/permissions/check/{path}", headers=headers)
        assert response.status_code == 200
        return response.json()["has_access"]

    assert has_access(f"database/{warehouse}")
    assert not has_access(f"database/{warehouse}", headers={"X-User-ID": "u2"})
    assert has_access(f"table/{warehouse}/orders")
    assert not has_access(f"table/{warehouse}/employees")
    assert has_access(f"column/{warehouse}/Orders/Total")
    assert not has_access(f"column/{warehouse}/Orders/Secret")

    assert client.get(f"/api/permissions/check/database/{warehouse}").status_code == 401

    response = client.get("/api/permissions/my-connections", headers=USER)
    assert response.json() == [{"db_config_id": warehouse, "name": "Warehouse", "type": "sqlite"}]


def test_execute_allowed_query(client, grant, warehouse):
    response = client.post("/api/queries/execute", json={
        "db_config_id": warehouse,
        "sql": "SELECT Id, Total FROM Orders ORDER BY Id"
    }, headers=USER)

    assert response.status_code == 200
    body = response.json()
    assert body["columns"] == ["Id", "Total"]
    assert body["row_count"] == 3


def test_execute_denied_column_is_forbidden(client, grant, warehouse):
    response = client.post("/api/queries/execute", json={
        "db_config_id": warehouse,
        "sql": "SELECT Id, Total, Secret FROM Orders"
    }, headers=USER)

    assert response.status_code == 403
    assert "Secret" in response.json()["detail"]


def test_validate_reports_references(client, grant, warehouse):
    response = client.post("/api/queries/validate", json={
        "db_config_id": warehouse,
        "sql": "SELECT o.Id FROM Orders o"
    }, headers=USER)

    assert response.status_code == 200
    assert response.json() == {"allowed": True, "references": {"Orders": ["Id"]}}


@pytest.mark.parametrize("payload, headers, expected", [
    ({"db_config_id": "warehouse-001", "sql": "SELECT Id FROM Orders WHERE (Id = 1"}, USER, 400),
    ({"db_config_id": "ghost", "sql": "SELECT 1"}, USER, 404),
    ({"db_config_id": "warehouse-001", "sql": "SELECT Id FROM Orders"}, {}, 401),
])
def test_query_error_mapping(client, grant, payload, headers, expected):
    response = client.post("/api/queries/validate", json=payload, headers=headers)

    assert response.status_code == expected


def test_schedule_lifecycle(client, grant, warehouse):
    response = client.post("/api/schedules", json={
        "db_config_id": warehouse,
        "sql_query": "SELECT Id, Total FROM Orders",
        "format": "excel",
        "email": "ops@example.com",
        "scheduled_time": "2024-06-03T09:00:00",
        "frequency": "weekly",
        "timezone": "Europe/Berlin",
        "days_of_week": [1, 4]
    }, headers=USER)
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "Scheduled"
    assert created["scheduled_time_utc"] == "2024-06-03T07:00:00Z"
    assert created["next_run_time_utc"] == "2024-06-06T07:00:00Z"
    assert created["created_by"] == "u1"

    assert [s["id"] for s in client.get("/api/schedules", headers=USER).json()] == [created["id"]]
    assert client.get(f"/api/schedules/{created['id']}", headers=USER).status_code == 200
    assert client.get(f"/api/schedules/{created['id']}", headers={"X-User-ID": "u2"}).status_code == 404

    assert client.delete(f"/api/schedules/{created['id']}", headers=USER).status_code == 204
    assert client.get(f"/api/schedules/{created['id']}", headers=USER).status_code == 404


@pytest.mark.parametrize("overrides, expected", [
    ({"sql_query": "SELECT Secret FROM Orders"}, 403),
    ({"frequency": "monthly"}, 400),
    ({"format": "csv"}, 400),
    ({"db_config_id": "ghost"}, 404),
])
def test_schedule_creation_errors(client, grant, warehouse, overrides, expected):
    payload = {
        "db_config_id": warehouse,
        "sql_query": "SELECT Id FROM Orders",
        "email": "ops@example.com",
        "scheduled_time": "2024-06-03T09:00:00",
    }
    payload.update(overrides)

    response = client.post("/api/schedules", json=payload, headers=USER)

    assert response.status_code == expected
