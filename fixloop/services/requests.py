from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fixloop.core.config import get_settings
from fixloop.core.enums import RequestKind
from fixloop.core.errors import AlreadyAssigned, Forbidden, IllegalTransition, NotFound
from fixloop.core.security import Actor
from fixloop.models.common import oid_str, parse_oid
from fixloop.models.service_requests import (
    AdminRequestUpdate,
    ServiceRequestCreate,
    TransitionRequest,
)
from fixloop.repositories.requests import ServiceRequestRepository
from fixloop.services import notifications
from fixloop.services.audit_service import audit_service
from fixloop.services.visibility import (
    authorize_transition,
    can_read,
    check_claim_available,
    request_scope,
)
from fixloop.services.workflow import (
    CLAIM_STATUS,
    PENDING,
    apply_transition_updates,
    ensure_known_status,
    is_terminal,
    lifecycle_entry,
    validate_fields,
    validate_transition,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _label(kind: RequestKind) -> str:
    return "Repair" if kind == RequestKind.repair else "Recycling"


async def _load(kind: RequestKind, request_id: str) -> dict:
    oid = parse_oid(request_id)
    doc = await ServiceRequestRepository.find_by_id(kind, oid) if oid else None
    if not doc:
        raise NotFound(f"{_label(kind)} request not found")
    return doc


# ------------------------------------------------------------------
# Create request (status = Pending)
# ------------------------------------------------------------------
async def create_request(kind: RequestKind, actor: Actor, data: ServiceRequestCreate) -> dict:
    if not actor.is_customer:
        raise Forbidden("Only customers can create requests")

    now = _now()
    doc = {
        "customer_id": actor.user_id,
        "provider_id": None,
        "product_name": data.product_name,
        "category": data.category,
        "description": data.description,
        "quantity": data.quantity,
        "image": data.image,
        "location": data.location.model_dump(),
        "status": PENDING,
        "pickup_date": None,
        "lifecycle": [lifecycle_entry(PENDING, now, "Request created")],
        "created_at": now,
        "updated_at": now,
    }

    doc = await ServiceRequestRepository.insert(kind, doc)
    logger.info("Created %s request %s for customer %s", kind.value, doc["_id"], actor.user_id)
    return doc


# ------------------------------------------------------------------
# Reads (role scoped)
# ------------------------------------------------------------------
async def get_request(kind: RequestKind, request_id: str, actor: Actor) -> dict:
    doc = await _load(kind, request_id)
    if not await can_read(actor, kind, doc):
        # do not reveal requests outside the caller's scope
        raise NotFound(f"{_label(kind)} request not found")
    return doc


async def list_requests(
    kind: RequestKind,
    actor: Actor,
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[dict]:
    limit = min(limit or get_settings().list_limit, get_settings().list_limit)
    filters = await request_scope(actor, kind)
    if status:
        ensure_known_status(kind, status)
        filters = {"$and": [filters, {"status": status}]} if filters else {"status": status}
    return await ServiceRequestRepository.list_requests(kind, filters, limit, offset)


async def list_all_requests(actor: Actor) -> List[dict]:
    """Both kinds for the admin report, newest first, each tagged with its kind."""
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")

    limit = get_settings().list_limit
    combined = []
    for kind in RequestKind:
        for doc in await ServiceRequestRepository.list_requests(kind, {}, limit, 0):
            combined.append((kind, doc))
    combined.sort(key=lambda pair: pair[1]["created_at"], reverse=True)
    return combined[:limit]


# ------------------------------------------------------------------
# Transition
# ------------------------------------------------------------------
async def transition_request(
    kind: RequestKind,
    request_id: str,
    actor: Actor,
    change: TransitionRequest,
) -> dict:
    doc = await _load(kind, request_id)
    current = doc["status"]
    target = change.status
    fields = change.supplied_fields()

    ensure_known_status(kind, target)
    validate_fields(target, fields)
    check_claim_available(actor, kind, doc, target)
    validate_transition(kind, current, target)
    claiming = await authorize_transition(actor, kind, doc, target)

    expected = {"_id": doc["_id"], "status": current}
    if claiming:
        expected["provider_id"] = None

    update = apply_transition_updates(
        target,
        _now(),
        note=change.note,
        fields=fields,
        provider_id=actor.user_id if claiming else None,
    )
    updated = await ServiceRequestRepository.compare_and_update(kind, expected, update)

    if updated is None:
        await _raise_lost_update(kind, doc, actor, target)

    logger.info(
        "%s request %s: %s -> %s by %s %s",
        _label(kind), updated["_id"], current, target, actor.role.value, actor.user_id,
    )
    if is_terminal(kind, target):
        notifications.notify_terminal(kind, updated)
    return updated


async def _raise_lost_update(kind: RequestKind, doc: dict, actor: Actor, target: str):
    """The conditional update matched nothing; work out why from a fresh read."""
    fresh = await ServiceRequestRepository.find_by_id(kind, doc["_id"])
    if fresh is None:
        raise NotFound(f"{_label(kind)} request not found")

    if (
        not actor.is_admin
        and target == CLAIM_STATUS[kind]
        and fresh.get("provider_id") is not None
        and fresh.get("provider_id") != actor.user_id
    ):
        logger.warning("Lost claim race on %s request %s for %s", kind.value, doc["_id"], actor.user_id)
        raise AlreadyAssigned("This request has already been accepted by another provider")

    raise IllegalTransition(
        f"Request changed from {doc['status']} to {fresh['status']} while updating; reload and retry"
    )


# ------------------------------------------------------------------
# Administrative override (bypasses the transition graph)
# ------------------------------------------------------------------
async def admin_update_request(
    kind: RequestKind,
    request_id: str,
    actor: Actor,
    patch: AdminRequestUpdate,
) -> dict:
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")

    doc = await _load(kind, request_id)
    if patch.status is not None:
        ensure_known_status(kind, patch.status)

    now = _now()
    target = patch.status or doc["status"]
    fields = patch.supplied_fields()
    update = apply_transition_updates(
        target,
        now,
        note=patch.note or "Updated by administrator",
        fields=fields,
    )

    updated = await ServiceRequestRepository.compare_and_update(
        kind, {"_id": doc["_id"], "status": doc["status"]}, update
    )
    if updated is None:
        await _raise_lost_update(kind, doc, actor, target)

    await audit_service.record(
        "request.admin_update",
        actor,
        f"{kind.value}_request",
        oid_str(doc["_id"]),
        f"{_label(kind)} request updated by administrator",
        meta={"from": doc["status"], "to": target, "fields": sorted(fields)},
    )
    logger.info("Admin %s overrode %s request %s (%s -> %s)", actor.user_id, kind.value, doc["_id"], doc["status"], target)

    if target != doc["status"] and is_terminal(kind, target):
        notifications.notify_terminal(kind, updated)
    return updated


async def delete_request(kind: RequestKind, request_id: str, actor: Actor) -> None:
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")

    oid = parse_oid(request_id)
    deleted = await ServiceRequestRepository.delete(kind, oid) if oid else None
    if not deleted:
        raise NotFound(f"{_label(kind)} request not found")

    snapshot = {
        "customer_id": deleted.get("customer_id"),
        "provider_id": deleted.get("provider_id"),
        "category": deleted.get("category"),
        "status": deleted.get("status"),
        "created_at": deleted.get("created_at"),
    }
    await audit_service.record(
        "request.delete",
        actor,
        f"{kind.value}_request",
        request_id,
        f"{_label(kind)} request deleted: {request_id}",
        meta={"snapshot": snapshot},
    )
    logger.info("Admin %s deleted %s request %s", actor.user_id, kind.value, request_id)
