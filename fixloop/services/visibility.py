"""Role scoped visibility and mutation rules for service requests.

Read scopes are returned as MongoDB query documents so the store can answer
them from the ``(status, provider_id)`` and ``customer_id`` indexes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fixloop.core.config import get_settings
from fixloop.core.enums import PROVIDER_TYPE_BY_KIND, ApprovalStatus, RequestKind
from fixloop.core.errors import AlreadyAssigned, Forbidden
from fixloop.core.security import Actor
from fixloop.repositories.providers import ProviderRepository
from fixloop.services.workflow import (
    CANCELLED,
    CLAIM_STATUS,
    CUSTOMER_CANCELLABLE,
    PENDING,
    is_claim,
)

logger = logging.getLogger(__name__)


async def serviced_profiles(actor: Actor, kind: RequestKind) -> List[dict]:
    """Approved, active profiles through which ``actor`` services ``kind``."""
    return await ProviderRepository.list_profiles(
        {
            "user_id": actor.user_id,
            "provider_type": PROVIDER_TYPE_BY_KIND[kind].value,
            "approval_status": ApprovalStatus.approved.value,
            "is_active": True,
        },
        limit=get_settings().list_limit,
    )


async def claim_pool_filter(actor: Actor, kind: RequestKind) -> Optional[Dict[str, Any]]:
    """Query for the open, unassigned requests this provider may claim, or None."""
    if not actor.is_provider:
        return None

    profiles = await serviced_profiles(actor, kind)
    if not profiles:
        return None

    pool: Dict[str, Any] = {"status": PENDING, "provider_id": None}
    if get_settings().enforce_category_pool:
        categories = sorted({c for p in profiles for c in p.get("categories", [])})
        pool["category"] = {"$in": categories}
    return pool


def matches_pool(doc: dict, pool: Optional[Dict[str, Any]]) -> bool:
    if pool is None:
        return False
    if doc.get("status") != PENDING or doc.get("provider_id") is not None:
        return False
    categories = pool.get("category")
    if categories is not None and doc.get("category") not in categories["$in"]:
        return False
    return True


async def request_scope(actor: Optional[Actor], kind: RequestKind) -> Dict[str, Any]:
    if actor is None:
        raise Forbidden("Authentication required")

    if actor.is_admin:
        return {}

    if actor.is_customer:
        return {"customer_id": actor.user_id}

    pool = await claim_pool_filter(actor, kind)
    if pool is None:
        return {"provider_id": actor.user_id}
    return {"$or": [{"provider_id": actor.user_id}, pool]}


async def can_read(actor: Optional[Actor], kind: RequestKind, doc: dict) -> bool:
    if actor is None:
        return False
    if actor.is_admin:
        return True
    if actor.is_customer:
        return doc.get("customer_id") == actor.user_id
    if doc.get("provider_id") == actor.user_id:
        return True
    return matches_pool(doc, await claim_pool_filter(actor, kind))


def check_claim_available(actor: Actor, kind: RequestKind, doc: dict, target_state: str) -> None:
    """A provider asking for the claim status of a request someone else holds lost the race."""
    if not actor.is_provider or target_state != CLAIM_STATUS[kind]:
        return
    bound = doc.get("provider_id")
    if bound is not None and bound != actor.user_id:
        logger.warning(
            "Claim on %s request %s by %s rejected: already assigned",
            kind.value, doc.get("_id"), actor.user_id,
        )
        raise AlreadyAssigned("This request has already been accepted by another provider")


async def authorize_transition(
    actor: Actor, kind: RequestKind, doc: dict, target_state: str
) -> bool:
    """Raise Forbidden unless ``actor`` may move ``doc`` to ``target_state``.

    Returns True when the move is a claim that binds the actor as provider.
    """
    current = doc["status"]

    if actor.is_admin:
        return False

    if actor.is_customer:
        if doc.get("customer_id") != actor.user_id:
            raise Forbidden("You can only change your own requests")
        if target_state != CANCELLED:
            raise Forbidden("Customers can only cancel their requests")
        if current not in CUSTOMER_CANCELLABLE[kind]:
            raise Forbidden(f"A request cannot be cancelled once it is {current}")
        return False

    bound = doc.get("provider_id")
    if bound == actor.user_id:
        return False

    if bound is None and is_claim(kind, current, target_state):
        pool = await claim_pool_filter(actor, kind)
        if not matches_pool(doc, pool):
            raise Forbidden("This request is outside the pool you service")
        return True

    raise Forbidden("This request is not assigned to you")
