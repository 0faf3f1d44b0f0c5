import math

import pytest
from fastapi.testclient import TestClient

from fixloop.main import app


@pytest.fixture
def client(db):
    # no context manager: lifespan would connect to a real server
    return TestClient(app)


REPAIR_BODY = {
    "product_name": "Galaxy S21",
    "category": "phone",
    "description": "Battery drains within an hour",
    "location": {"lat": 6.9271, "lng": 79.8612, "address": "Colombo 07"},
}

PROFILE_BODY = {
    "business_name": "Kandy Phone Clinic",
    "provider_type": "repair_center",
    "categories": ["phone"],
    "phone": "0812233445",
    "email": "clinic@example.com",
    "address_line": "4 Temple Street",
    "location": {"lat": 7.2906, "lng": 80.6337},
}


def _approved_profile(client, auth, owner, admin, **overrides):
    body = dict(PROFILE_BODY, **overrides)
    profile = client.post("/providers", json=body, headers=auth(owner)).json()
    r = client.patch(f"/providers/{profile['id']}/approve", headers=auth(admin))
    assert r.status_code == 200
    return r.json()


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_requests_need_a_token(client):
    assert client.get("/repairs").status_code == 401
    r = client.get("/repairs", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_create_and_read_repair(client, auth, customer):
    r = client.post("/repairs", json=REPAIR_BODY, headers=auth(customer))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "Pending"
    assert body["kind"] == "repair"
    assert body["lifecycle"][0]["note"] == "Request created"

    r = client.get(f"/repairs/{body['id']}", headers=auth(customer))
    assert r.status_code == 200
    assert r.json()["id"] == body["id"]

    r = client.get("/recycles", headers=auth(customer))
    assert r.json() == []


def test_body_validation_uses_error_envelope(client, auth, customer):
    r = client.post("/repairs", json={"product_name": "x"}, headers=auth(customer))
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"


def test_claim_race_over_http(client, auth, customer, provider, rival_provider, admin):
    _approved_profile(client, auth, provider, admin)
    _approved_profile(client, auth, rival_provider, admin)
    request_id = client.post("/repairs", json=REPAIR_BODY, headers=auth(customer)).json()["id"]

    r = client.patch(f"/repairs/{request_id}/status", json={"status": "Accepted"}, headers=auth(provider))
    assert r.status_code == 200
    assert r.json()["provider_id"] == provider.user_id

    r = client.patch(f"/repairs/{request_id}/status", json={"status": "Accepted"}, headers=auth(rival_provider))
    assert r.status_code == 409
    assert r.json()["error"] == "AlreadyAssigned"

    r = client.patch(f"/repairs/{request_id}/status", json={"status": "Completed"}, headers=auth(provider))
    assert r.status_code == 400
    assert r.json()["error"] == "IllegalTransition"

    r = client.patch(
        f"/repairs/{request_id}/status",
        json={"status": "Scheduled", "price": 2500},
        headers=auth(provider),
    )
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"


def test_other_customer_is_forbidden(client, auth, customer, other_customer):
    request_id = client.post("/repairs", json=REPAIR_BODY, headers=auth(customer)).json()["id"]

    r = client.patch(f"/repairs/{request_id}/status", json={"status": "Cancelled"}, headers=auth(other_customer))

    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden", "message": "You can only change your own requests"}


def test_provider_profile_approval_flow(client, auth, provider, admin):
    r = client.post("/providers", json=PROFILE_BODY, headers=auth(provider))
    assert r.status_code == 201
    profile = r.json()
    assert profile["provider_code"] == "PROV0000001"
    assert profile["approval_status"] == "pending"
    assert profile["location"] == {"lat": 7.2906, "lng": 80.6337}

    r = client.patch(f"/providers/{profile['id']}/approve", headers=auth(provider))
    assert r.status_code == 403

    r = client.patch(f"/providers/{profile['id']}/approve", headers=auth(admin))
    assert r.json()["approval_status"] == "approved"

    r = client.patch(
        f"/providers/{profile['id']}/reject",
        json={"reason": "incomplete documents"},
        headers=auth(admin),
    )
    assert r.json()["approval_status"] == "rejected"
    assert r.json()["approved_at"] is None

    r = client.get("/providers/me", headers=auth(provider))
    assert [p["provider_code"] for p in r.json()] == ["PROV0000001"]

    r = client.put("/providers/PROV0000001", json={"city": "Kandy"}, headers=auth(provider))
    assert r.json()["city"] == "Kandy"

    r = client.patch("/providers/PROV0000001/deactivate", headers=auth(provider))
    assert r.json()["is_active"] is False


def test_nearby_is_public_and_rounds_distance(client, auth, provider, admin, nearby_store):
    lat = 6.9271 + math.degrees(3.14159 / 6371.0)
    _approved_profile(client, auth, provider, admin, location={"lat": lat, "lng": 79.8612})

    r = client.get("/providers/nearby", params={"lat": 6.9271, "lng": 79.8612, "category": "phone"})

    assert r.status_code == 200
    assert [p["distance_km"] for p in r.json()] == [3.14]

    r = client.get("/providers/nearby", params={"lat": 6.9271, "lng": 79.8612, "radius_km": 80})
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"


def test_admin_endpoints(client, auth, customer, admin):
    request_id = client.post("/recycles", json=REPAIR_BODY, headers=auth(customer)).json()["id"]

    assert client.get("/admin/requests", headers=auth(customer)).status_code == 403

    r = client.get("/admin/requests", headers=auth(admin))
    assert [item["id"] for item in r.json()] == [request_id]

    r = client.put(
        f"/admin/requests/recycle/{request_id}",
        json={"status": "Scheduled", "note": "Pickup arranged by phone"},
        headers=auth(admin),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "Scheduled"
    assert r.json()["lifecycle"][-1]["note"] == "Pickup arranged by phone"

    r = client.delete(f"/admin/requests/recycle/{request_id}", headers=auth(admin))
    assert r.status_code == 204
    assert client.get(f"/recycles/{request_id}", headers=auth(admin)).status_code == 404

    r = client.get("/admin/audit", headers=auth(admin))
    assert sorted(e["type"] for e in r.json()) == ["request.admin_update", "request.delete"]
