import asyncio

import pytest
from bson import ObjectId

from fixloop.core.errors import Forbidden, NotFound, ValidationError
from fixloop.db.mongo import AUDIT_LOGS, COUNTERS, ensure_indexes
from fixloop.models.providers import ProviderProfileCreate, ProviderProfileUpdate
from fixloop.services import providers as svc


def _payload(**overrides):
    data = {
        "business_name": "Galle Road Fixers",
        "provider_type": "repair_center",
        "categories": ["Laptop", "phone", "laptop"],
        "phone": "0771234567",
        "email": "Shop@Example.com",
        "address_line": "12 Galle Road",
        "city": "Colombo",
        "location": {"lat": 6.9271, "lng": 79.8612},
    }
    data.update(overrides)
    return ProviderProfileCreate(**data)


async def test_create_profile_starts_pending(db, provider):
    doc = await svc.create_profile(provider, _payload())

    assert doc["provider_code"] == "PROV0000001"
    assert doc["approval_status"] == "pending"
    assert doc["is_active"] is True
    assert doc["categories"] == ["laptop", "phone"]
    assert doc["email"] == "shop@example.com"
    assert doc["location"] == {"type": "Point", "coordinates": [79.8612, 6.9271]}
    assert await db[AUDIT_LOGS].count_documents({"type": "provider.create"}) == 1


async def test_only_providers_create_profiles(db, customer):
    with pytest.raises(Forbidden):
        await svc.create_profile(customer, _payload())


async def test_concurrent_creations_get_unique_increasing_codes(db, provider):
    docs = await asyncio.gather(*[svc.create_profile(provider, _payload()) for _ in range(50)])

    codes = sorted(d["provider_code"] for d in docs)
    assert len(set(codes)) == 50
    assert codes == [f"PROV{n:07d}" for n in range(1, 51)]


async def test_counter_resyncs_after_collision(db, provider, seed_profile):
    await ensure_indexes()
    await seed_profile(user_id="legacy", code="PROV0000001")
    await seed_profile(user_id="legacy", code="PROV0000002")

    doc = await svc.create_profile(provider, _payload())

    assert doc["provider_code"] == "PROV0000003"
    counter = await db[COUNTERS].find_one({"_id": "provider_code"})
    assert counter["seq"] == 3


async def test_approve_sets_timestamp_and_is_idempotent(db, admin, provider):
    created = await svc.create_profile(provider, _payload())

    approved = await svc.approve_profile(str(created["_id"]), admin)
    again = await svc.approve_profile(str(created["_id"]), admin)

    assert approved["approval_status"] == "approved"
    assert approved["approved_at"] is not None
    assert again["approved_at"] == approved["approved_at"]
    assert await db[AUDIT_LOGS].count_documents({"type": "provider.approve"}) == 1


async def test_reject_then_repeat_overwrites_reason(db, admin, provider):
    created = await svc.create_profile(provider, _payload())
    await svc.approve_profile(str(created["_id"]), admin)

    rejected = await svc.reject_profile(str(created["_id"]), admin, "incomplete documents")
    assert rejected["approval_status"] == "rejected"
    assert rejected["approved_at"] is None
    assert rejected["rejection_reason"] == "incomplete documents"

    again = await svc.reject_profile(str(created["_id"]), admin, "still missing NIC copy")
    assert again["approval_status"] == "rejected"
    assert again["rejection_reason"] == "still missing NIC copy"


async def test_approving_a_rejected_profile_clears_reason(db, admin, provider):
    created = await svc.create_profile(provider, _payload())
    await svc.reject_profile(str(created["_id"]), admin, "incomplete documents")

    approved = await svc.approve_profile(str(created["_id"]), admin)

    assert approved["approval_status"] == "approved"
    assert approved["rejection_reason"] == ""


async def test_approval_needs_admin_and_reason(db, admin, provider):
    created = await svc.create_profile(provider, _payload())

    with pytest.raises(Forbidden):
        await svc.approve_profile(str(created["_id"]), provider)
    with pytest.raises(Forbidden):
        await svc.reject_profile(str(created["_id"]), provider, "nope")
    with pytest.raises(ValidationError):
        await svc.reject_profile(str(created["_id"]), admin, "   ")
    with pytest.raises(NotFound):
        await svc.approve_profile(str(ObjectId()), admin)


async def test_owner_or_admin_updates_business_fields(db, admin, provider, rival_provider):
    created = await svc.create_profile(provider, _payload())
    code = created["provider_code"]

    updated = await svc.update_profile(
        code, provider, ProviderProfileUpdate(categories=["Tablet"], location={"lat": 7.0, "lng": 80.0})
    )
    assert updated["categories"] == ["tablet"]
    assert updated["location"]["coordinates"] == [80.0, 7.0]
    assert updated["approval_status"] == "pending"

    with pytest.raises(Forbidden):
        await svc.update_profile(code, rival_provider, ProviderProfileUpdate(city="Kandy"))

    by_admin = await svc.update_profile(code, admin, ProviderProfileUpdate(city="Kandy"))
    assert by_admin["city"] == "Kandy"

    with pytest.raises(ValidationError):
        await svc.update_profile(code, provider, ProviderProfileUpdate())


async def test_deactivate_keeps_approval_and_hides_profile(db, admin, provider, customer):
    created = await svc.create_profile(provider, _payload())
    await svc.approve_profile(str(created["_id"]), admin)

    off = await svc.set_active(created["provider_code"], provider, False)
    assert off["is_active"] is False
    assert off["approval_status"] == "approved"
    assert await svc.list_profiles(customer) == []
    assert len(await svc.list_profiles(admin)) == 1

    on = await svc.set_active(created["provider_code"], provider, True)
    assert on["is_active"] is True
    assert [d["_id"] for d in await svc.list_profiles(customer)] == [created["_id"]]


async def test_list_my_profiles(db, provider, rival_provider):
    await svc.create_profile(provider, _payload())
    await svc.create_profile(rival_provider, _payload(business_name="Other shop"))

    mine = await svc.list_my_profiles(provider)

    assert [d["user_id"] for d in mine] == [provider.user_id]
