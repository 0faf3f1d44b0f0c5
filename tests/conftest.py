from datetime import datetime, timezone

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from fixloop.core.enums import UserRole
from fixloop.core.security import Actor, create_access_token
from fixloop.db.mongo import PROVIDER_PROFILES, mongo
from fixloop.repositories.providers import ProviderRepository
from fixloop.services import notifications
from fixloop.services.geo import EARTH_RADIUS_KM, STORE_EARTH_RADIUS_M, haversine_km


@pytest.fixture
def db():
    database = AsyncMongoMockClient(tz_aware=True)["fixloop_test"]
    mongo.db = database
    yield database
    mongo.db = None
    notifications._pending.clear()


@pytest.fixture
def nearby_store(db, monkeypatch):
    """mongomock has no $nearSphere: answer it here, within $maxDistance and nearest first."""

    async def find_within(query, limit):
        near = query["location"]["$nearSphere"]
        lng, lat = near["$geometry"]["coordinates"]
        max_angle = near["$maxDistance"] / STORE_EARTH_RADIUS_M

        rest = {k: v for k, v in query.items() if k != "location"}
        hits = []
        for doc in await db[PROVIDER_PROFILES].find(rest).to_list(None):
            p_lng, p_lat = doc["location"]["coordinates"]
            angle = haversine_km(lat, lng, p_lat, p_lng) / EARTH_RADIUS_KM
            if angle <= max_angle:
                hits.append((angle, doc))
        hits.sort(key=lambda pair: pair[0])
        return [doc for _, doc in hits[:limit]]

    monkeypatch.setattr(ProviderRepository, "find_within", staticmethod(find_within))


@pytest.fixture
def customer():
    return Actor(user_id="cust-1", role=UserRole.customer)


@pytest.fixture
def other_customer():
    return Actor(user_id="cust-2", role=UserRole.customer)


@pytest.fixture
def provider():
    return Actor(user_id="prov-1", role=UserRole.provider)


@pytest.fixture
def rival_provider():
    return Actor(user_id="prov-2", role=UserRole.provider)


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=UserRole.admin)


def token_for(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_access_token(actor.user_id, actor.role)}"}


@pytest.fixture
def auth():
    return token_for


def make_profile(
    user_id="prov-1",
    provider_type="repair_center",
    categories=("laptop",),
    lat=6.9271,
    lng=79.8612,
    approval_status="approved",
    is_active=True,
    code=None,
):
    now = datetime.now(timezone.utc)
    return {
        "_id": ObjectId(),
        "user_id": user_id,
        "provider_code": code,
        "business_name": f"{user_id} services",
        "provider_type": provider_type,
        "categories": list(categories),
        "description": "",
        "contact_person": "",
        "phone": "0771234567",
        "email": f"{user_id}@example.com",
        "address_line": "1 Galle Road",
        "city": "Colombo",
        "district": "Colombo",
        "location": {"type": "Point", "coordinates": [lng, lat]},
        "service_radius_km": 10,
        "approval_status": approval_status,
        "approved_at": now if approval_status == "approved" else None,
        "rejection_reason": "",
        "is_active": is_active,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def seed_profile(db):
    counter = {"n": 9000000}

    async def _seed(**kwargs):
        if kwargs.get("code") is None:
            counter["n"] += 1
            kwargs["code"] = f"PROV{counter['n']:07d}"
        doc = make_profile(**kwargs)
        await db[PROVIDER_PROFILES].insert_one(doc)
        return doc

    return _seed
