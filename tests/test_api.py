import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token, get_password_hash
from app.db.session import get_db
from app.main import app
from app.rbac.service import assign_role

from conftest import register_units


@pytest.fixture()
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user):
    token = create_access_token({"sub": user.id, "tenant_id": user.tenant_id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def test_login_issues_token(client, db_session, world):
    world.user.password_hash = get_password_hash("segredo")
    db_session.commit()

    ok = client.post("/api/auth/login", json={"usuario": "ANA", "senha": "segredo"})
    bad = client.post("/api/auth/login", json={"usuario": "ana", "senha": "errada"})

    assert ok.status_code == 200
    assert ok.json()["token_type"] == "bearer"
    assert bad.status_code == 401


def test_me_lists_grants(client, world):
    response = client.get("/api/me", headers=_auth(world.admin))

    assert response.status_code == 200
    assert response.json()["grants"] == [{"key": "*", "requestingServiceId": None}]


def test_rbac_routes_require_users_manage(client, world):
    assert client.get("/api/rbac/roles", headers=_auth(world.user)).status_code == 403
    assert client.get("/api/rbac/roles", headers=_auth(world.admin)).status_code == 200


def test_assignment_patch_rejects_null_is_active(client, db_session, world):
    assignment = assign_role(db_session, world.admin, world.user.id, "AUDITOR")

    response = client.patch(
        f"/api/rbac/assignments/{assignment.id}", json={"is_active": None}, headers=_auth(world.admin)
    )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "is_active_required"


def test_request_workflow_over_http(client, world):
    created = client.post(
        "/api/requests",
        json={"requestingServiceId": world.service.id, "submit": False, "items": [{"description": "Toner"}]},
        headers=_auth(world.user),
    )
    assert created.status_code == 201
    request_id = created.json()["id"]

    submitted = client.post(
        f"/api/workflows/requests/{request_id}/action",
        json={"targetStatus": "SUBMITTED"},
        headers=_auth(world.user),
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "SUBMITTED"

    denied = client.post(
        f"/api/workflows/requests/{request_id}/action", json={"action": "APPROVE"}, headers=_auth(world.user)
    )
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "missing_permission"

    illegal = client.post(
        f"/api/workflows/requests/{request_id}/action", json={"action": "FULFILL"}, headers=_auth(world.admin)
    )
    assert illegal.status_code == 400

    history = client.get(f"/api/workflows/requests/{request_id}/action", headers=_auth(world.user))
    assert [event["action"] for event in history.json()["events"]] == ["SUBMIT"]


def test_unit_routes_map_failures(client, db_session, world):
    register_units(db_session, world.admin, world.product, "PC-001")

    acquired = client.post("/api/units/acquire", json={"code": "PC-001"}, headers=_auth(world.admin))
    again = client.post("/api/units/acquire", json={"code": "PC-001"}, headers=_auth(world.admin))
    missing = client.post("/api/units/acquire", json={"code": "NOPE"}, headers=_auth(world.admin))

    assert acquired.status_code == 200
    assert acquired.json()["unit"]["status"] == "ACQUIRED"
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "already_acquired"
    assert missing.status_code == 404


def test_stock_movements_listing(client, db_session, world):
    register_units(db_session, world.admin, world.product, "PC-001", "PC-002")

    response = client.get(
        "/api/stock-movements", params={"productId": world.product.id, "limit": 1}, headers=_auth(world.admin)
    )
    body = response.json()

    assert response.status_code == 200
    assert len(body["items"]) == 1
    assert body["items"][0]["stockDelta"] == 1
    assert body["nextCursor"] == body["items"][0]["id"]
    assert client.get("/api/stock-movements", headers=_auth(world.user)).status_code == 403
