from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.backend.app import app
from src.backend.dashboard.config.settings import get_services
from src.backend.tests.fakes import (
    OTHER_TOKEN,
    OWNER_TOKEN,
    TEAM_TOKEN,
    TENANT_SHEET,
    build_services,
)


@pytest.fixture
def services():
    svc = build_services()
    app.dependency_overrides[get_services] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(app)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_violations_require_sign_in(client) -> None:
    resp = client.get("/api/violations", params={"subdomain": "acme"})
    assert resp.status_code == 401
    assert resp.json() == {
        "success": False,
        "error": {"kind": "unauthorized", "message": "Unauthorized"},
    }


def test_owner_lists_own_violations(client) -> None:
    resp = client.get(
        "/api/violations", params={"subdomain": "acme", "search": "hose"}, headers=_auth(OWNER_TOKEN)
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["total"] == 2
    assert body["data"]["count"] == 1
    violation = body["data"]["violations"][0]
    assert violation["id"] == "V-1"
    assert violation["status"] == "Working"
    assert violation["flagged_date"] == "2025-01-02"


def test_tenant_taken_from_host_when_not_given(services) -> None:
    client = TestClient(app, base_url="http://acme.sellercentry.com")
    resp = client.get("/api/violations", headers={"Cookie": f"sb-access-token={OWNER_TOKEN}"})
    assert resp.status_code == 200
    assert resp.json()["data"]["subdomain"] == "acme"


def test_other_tenant_is_forbidden(client) -> None:
    resp = client.get("/api/tenant", params={"subdomain": "acme"}, headers=_auth(OTHER_TOKEN))
    assert resp.status_code == 403
    assert resp.json()["error"]["kind"] == "forbidden"


def test_team_member_reads_any_tenant(client) -> None:
    resp = client.get("/api/tenant", params={"subdomain": "acme"}, headers=_auth(TEAM_TOKEN))
    assert resp.status_code == 200
    assert resp.json()["data"]["store_name"] == "Acme Goods"


def test_unknown_tenant_is_not_found(client) -> None:
    resp = client.get("/api/tenant", params={"subdomain": "nope"}, headers=_auth(TEAM_TOKEN))
    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not_found"


def test_user_subdomain_and_sign_in_target(client) -> None:
    resp = client.get("/api/user-subdomain", headers=_auth(OWNER_TOKEN))
    assert resp.json()["data"]["subdomains"] == ["acme"]

    resp = client.get(
        "/api/user-subdomain", params={"email": "other@shop.com"}, headers=_auth(OWNER_TOKEN)
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/auth/sign-in-target",
        json={"redirect": "/reports"},
        headers={**_auth(OWNER_TOKEN), "host": "sellercentry.com"},
    )
    assert resp.json()["data"]["target"] == "https://acme.sellercentry.com/reports"


def test_team_endpoints_refuse_tenant_users(client) -> None:
    resp = client.get("/api/team/clients", headers=_auth(OWNER_TOKEN))
    assert resp.status_code == 403


def test_team_clients(client) -> None:
    resp = client.get("/api/team/clients", headers=_auth(TEAM_TOKEN))
    clients = resp.json()["data"]["clients"]
    assert [c["subdomain"] for c in clients] == ["acme", "othershop"]
    assert clients[0]["at_risk_sales"] == 1500.0


def test_team_update_violation(client, services) -> None:
    resp = client.patch(
        "/api/team/violations/update",
        json={"subdomain": "acme", "violation_id": "V-2", "updates": {"status": "Submitted"}},
        headers=_auth(TEAM_TOKEN),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["fields_updated"] == ["status"]
    assert services.backend.rows(TENANT_SHEET, "All Current Violations")[2][11] == "Submitted"


def test_team_update_rejects_bad_input(client) -> None:
    resp = client.patch(
        "/api/team/violations/update",
        json={"subdomain": "acme", "violation_id": "V-2", "updates": {"id": "V-9"}},
        headers=_auth(TEAM_TOKEN),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid"

    resp = client.patch(
        "/api/team/violations/update", json={"subdomain": "acme"}, headers=_auth(TEAM_TOKEN)
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid"


def test_team_resolve_violation(client, services) -> None:
    resp = client.post(
        "/api/team/violations/resolve",
        json={"subdomain": "acme", "violation_id": "V-1"},
        headers=_auth(TEAM_TOKEN),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["resolved_date"] == "2025-03-10"
    resolved = services.backend.rows(TENANT_SHEET, "All Resolved Violations")
    assert [r[0] for r in resolved[1:]] == ["V-1"]


def test_team_bulk_update(client) -> None:
    resp = client.patch(
        "/api/team/violations/bulk-update",
        json={
            "subdomain": "acme",
            "updates": [
                {"violation_id": "V-1", "updates": {"notes": "called"}},
                {"violation_id": "V-404", "updates": {"notes": "called"}},
            ],
        },
        headers=_auth(TEAM_TOKEN),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert (data["ok"], data["total"], data["succeeded"], data["failed"]) == (False, 2, 1, 1)
    assert data["results"][1]["error_kind"] == "not_found"


def test_team_bulk_update_over_cap(client, services) -> None:
    updates = [{"violation_id": f"V-{i}", "updates": {"notes": "x"}} for i in range(4)]
    services.backend.calls.clear()

    resp = client.patch(
        "/api/team/violations/bulk-update",
        json={"subdomain": "acme", "updates": updates},
        headers=_auth(TEAM_TOKEN),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Maximum 3 violations per bulk update"
    assert services.backend.calls == []
