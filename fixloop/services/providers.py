from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from fixloop.core.config import get_settings
from fixloop.core.enums import ApprovalStatus
from fixloop.core.errors import Forbidden, NotFound, StoreUnavailable, ValidationError
from fixloop.core.security import Actor
from fixloop.models.common import oid_str, parse_oid
from fixloop.models.providers import ProviderProfileCreate, ProviderProfileUpdate
from fixloop.repositories.counters import CounterRepository
from fixloop.repositories.providers import ProviderRepository
from fixloop.services.audit_service import audit_service

logger = logging.getLogger(__name__)

COUNTER_KEY = "provider_code"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _geo_point(point) -> dict:
    return {"type": "Point", "coordinates": [point.lng, point.lat]}


def make_provider_code(seq: int) -> str:
    settings = get_settings()
    return f"{settings.provider_code_prefix}{seq:0{settings.provider_code_width}d}"


def code_seq(code: Optional[str]) -> int:
    prefix = get_settings().provider_code_prefix
    if not code or not code.startswith(prefix):
        return 0
    try:
        return int(code[len(prefix):])
    except ValueError:
        return 0


async def _sync_counter_to_latest() -> int:
    """
    Self-healing:
    if the counter is behind existing profiles, move it up to the highest code in the DB.
    """
    last = await ProviderRepository.find_last_code(get_settings().provider_code_prefix)
    max_seq = code_seq(last)
    await CounterRepository.raise_to(COUNTER_KEY, max_seq)
    return max_seq


def _assert_owner_or_admin(doc: dict, actor: Actor) -> None:
    if actor.is_admin:
        return
    if doc.get("user_id") != actor.user_id:
        raise Forbidden("You can only manage your own provider profiles")


async def _by_code(code: str) -> dict:
    doc = await ProviderRepository.find_by_code(code)
    if not doc:
        raise NotFound("Provider profile not found")
    return doc


async def _by_id(profile_id: str) -> dict:
    oid = parse_oid(profile_id)
    doc = await ProviderRepository.find_by_id(oid) if oid else None
    if not doc:
        raise NotFound("Provider profile not found")
    return doc


# =========================
# Create Provider Profile
# =========================
async def create_profile(actor: Actor, data: ProviderProfileCreate) -> dict:
    if not actor.is_provider:
        raise Forbidden("Only providers can create provider profiles")

    now = _now()
    doc_base = {
        "user_id": actor.user_id,
        "business_name": data.business_name.strip(),
        "provider_type": data.provider_type.value,
        "categories": data.categories,
        "description": data.description.strip(),
        "contact_person": data.contact_person.strip(),
        "phone": data.phone.strip(),
        "email": data.email,
        "address_line": data.address_line.strip(),
        "city": data.city.strip(),
        "district": data.district.strip(),
        "location": _geo_point(data.location),
        "service_radius_km": data.service_radius_km,
        "approval_status": ApprovalStatus.pending.value,
        "approved_at": None,
        "rejection_reason": "",
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }

    attempts = get_settings().provider_code_attempts
    for _ in range(attempts):
        seq = await CounterRepository.next_seq(COUNTER_KEY)
        doc = dict(doc_base)
        doc["provider_code"] = make_provider_code(seq)

        try:
            saved = await ProviderRepository.insert(doc)
        except DuplicateKeyError:
            logger.warning("Provider code %s already taken, resyncing counter", doc["provider_code"])
            await _sync_counter_to_latest()
            continue

        await audit_service.record(
            "provider.create",
            actor,
            "provider_profile",
            saved["provider_code"],
            f"Provider profile created: {saved['provider_code']}",
            meta={"provider_type": saved["provider_type"], "categories": saved["categories"]},
        )
        logger.info("Created provider profile %s for user %s", saved["provider_code"], actor.user_id)
        return saved

    raise StoreUnavailable("Failed to allocate a unique provider code after retries")


# =========================
# Reads
# =========================
async def list_my_profiles(actor: Actor) -> List[dict]:
    return await ProviderRepository.list_profiles(
        {"user_id": actor.user_id}, get_settings().list_limit
    )


async def list_profiles(actor: Actor) -> List[dict]:
    filters: dict = {}
    if not actor.is_admin:
        filters = {"approval_status": ApprovalStatus.approved.value, "is_active": True}
    return await ProviderRepository.list_profiles(filters, get_settings().list_limit)


# =========================
# Owner edits (business fields only)
# =========================
async def update_profile(code: str, actor: Actor, patch: ProviderProfileUpdate) -> dict:
    doc = await _by_code(code)
    _assert_owner_or_admin(doc, actor)

    update_doc = patch.model_dump(exclude_unset=True, exclude_none=True)
    if "location" in update_doc:
        update_doc["location"] = _geo_point(patch.location)
    for key in ("business_name", "description", "contact_person", "phone", "address_line", "city", "district"):
        if key in update_doc:
            update_doc[key] = update_doc[key].strip()

    if not update_doc:
        raise ValidationError("No fields to update")

    update_doc["updated_at"] = _now()
    updated = await ProviderRepository.update({"_id": doc["_id"]}, {"$set": update_doc})
    if not updated:
        raise NotFound("Provider profile not found")

    logger.info("Provider profile %s updated by %s", code, actor.user_id)
    return updated


async def set_active(code: str, actor: Actor, active: bool) -> dict:
    """Deactivate or reactivate a profile; approval state is kept."""
    doc = await _by_code(code)
    _assert_owner_or_admin(doc, actor)

    updated = await ProviderRepository.update(
        {"_id": doc["_id"]},
        {"$set": {"is_active": active, "updated_at": _now()}},
    )
    if not updated:
        raise NotFound("Provider profile not found")

    action = "reactivate" if active else "deactivate"
    await audit_service.record(
        f"provider.{action}",
        actor,
        "provider_profile",
        code,
        f"Provider profile {code} {action}d",
    )
    return updated


# =========================
# Approval workflow (admin only)
# =========================
async def approve_profile(profile_id: str, actor: Actor) -> dict:
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")

    doc = await _by_id(profile_id)
    if doc.get("approval_status") == ApprovalStatus.approved.value:
        return doc

    now = _now()
    updated = await ProviderRepository.update(
        {"_id": doc["_id"], "approval_status": {"$ne": ApprovalStatus.approved.value}},
        {"$set": {
            "approval_status": ApprovalStatus.approved.value,
            "approved_at": now,
            "rejection_reason": "",
            "updated_at": now,
        }},
    )
    if updated is None:
        # approved concurrently
        return await _by_id(profile_id)

    await audit_service.record(
        "provider.approve",
        actor,
        "provider_profile",
        oid_str(doc["_id"]),
        f"Provider profile {doc['provider_code']} approved",
        meta={"previous_status": doc.get("approval_status")},
    )
    logger.info("Provider profile %s approved by %s", doc["provider_code"], actor.user_id)
    return updated


async def reject_profile(profile_id: str, actor: Actor, reason: str) -> dict:
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")

    doc = await _by_id(profile_id)
    updated = await ProviderRepository.update(
        {"_id": doc["_id"]},
        {"$set": {
            "approval_status": ApprovalStatus.rejected.value,
            "approved_at": None,
            "rejection_reason": reason,
            "updated_at": _now(),
        }},
    )
    if not updated:
        raise NotFound("Provider profile not found")

    await audit_service.record(
        "provider.reject",
        actor,
        "provider_profile",
        oid_str(doc["_id"]),
        f"Provider profile {doc['provider_code']} rejected",
        meta={"previous_status": doc.get("approval_status"), "reason": reason},
    )
    logger.info("Provider profile %s rejected by %s", doc["provider_code"], actor.user_id)
    return updated
