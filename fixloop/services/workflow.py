"""Transition graphs for repair and recycle requests."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Type

from fixloop.core.enums import RecycleStatus, RepairStatus, RequestKind
from fixloop.core.errors import IllegalTransition, ValidationError

PENDING = "Pending"
CANCELLED = "Cancelled"

ALLOWED_TRANSITIONS: Dict[RequestKind, Dict[str, List[str]]] = {
    RequestKind.repair: {
        RepairStatus.pending.value: [RepairStatus.accepted.value, CANCELLED],
        RepairStatus.accepted.value: [RepairStatus.scheduled.value, CANCELLED],
        RepairStatus.scheduled.value: [RepairStatus.in_progress.value, CANCELLED],
        RepairStatus.in_progress.value: [RepairStatus.completed.value, CANCELLED],
        RepairStatus.completed.value: [],
        RepairStatus.cancelled.value: [],
    },
    RequestKind.recycle: {
        RecycleStatus.pending.value: [RecycleStatus.scheduled.value, CANCELLED],
        RecycleStatus.scheduled.value: [RecycleStatus.collected.value, CANCELLED],
        RecycleStatus.collected.value: [RecycleStatus.recycled.value, CANCELLED],
        RecycleStatus.recycled.value: [],
        RecycleStatus.cancelled.value: [],
    },
}

STATUS_ENUMS: Dict[RequestKind, Type] = {
    RequestKind.repair: RepairStatus,
    RequestKind.recycle: RecycleStatus,
}

# the move out of Pending that binds a provider
CLAIM_STATUS: Dict[RequestKind, str] = {
    RequestKind.repair: RepairStatus.accepted.value,
    RequestKind.recycle: RecycleStatus.scheduled.value,
}

# statuses from which the owning customer may still cancel
CUSTOMER_CANCELLABLE: Dict[RequestKind, FrozenSet[str]] = {
    RequestKind.repair: frozenset({
        RepairStatus.pending.value,
        RepairStatus.accepted.value,
        RepairStatus.scheduled.value,
    }),
    RequestKind.recycle: frozenset({
        RecycleStatus.pending.value,
        RecycleStatus.scheduled.value,
    }),
}

# supplementary fields a transition into a given status may carry
TRANSITION_FIELDS: Dict[str, FrozenSet[str]] = {
    "Scheduled": frozenset({"pickup_date"}),
}


def statuses(kind: RequestKind) -> List[str]:
    return [s.value for s in STATUS_ENUMS[kind]]


def get_allowed_next(kind: RequestKind, state: str) -> List[str]:
    return ALLOWED_TRANSITIONS[kind].get(state, [])


def is_terminal(kind: RequestKind, state: str) -> bool:
    return state in ALLOWED_TRANSITIONS[kind] and not ALLOWED_TRANSITIONS[kind][state]


def is_claim(kind: RequestKind, current_state: str, target_state: str) -> bool:
    return current_state == PENDING and target_state == CLAIM_STATUS[kind]


def ensure_known_status(kind: RequestKind, state: str) -> None:
    if state not in ALLOWED_TRANSITIONS[kind]:
        raise ValidationError(
            f"Unknown {kind.value} status '{state}'. Allowed: {statuses(kind)}"
        )


def validate_transition(kind: RequestKind, current_state: str, target_state: str) -> None:
    ensure_known_status(kind, target_state)
    allowed = get_allowed_next(kind, current_state)
    if target_state not in allowed:
        if is_terminal(kind, current_state):
            raise IllegalTransition(
                f"Request is already {current_state}; no further transitions are allowed"
            )
        raise IllegalTransition(
            f"Invalid transition from {current_state} to {target_state}. Allowed next: {allowed}"
        )


def validate_fields(target_state: str, fields: dict) -> None:
    allowed = TRANSITION_FIELDS.get(target_state, frozenset())
    extra = sorted(set(fields) - allowed)
    if extra:
        raise ValidationError(
            f"Fields {extra} cannot be set when moving to {target_state}"
        )


def lifecycle_entry(state: str, now: datetime, note: Optional[str] = None) -> dict:
    return {
        "status": state,
        "timestamp": now,
        "note": note or f"Status updated to {state}",
    }


def apply_transition_updates(
    target_state: str,
    now: datetime,
    note: Optional[str] = None,
    fields: Optional[dict] = None,
    provider_id: Optional[str] = None,
) -> Dict[str, Dict[str, object]]:
    """Build the single update document that moves status and appends to the lifecycle log."""
    updates: Dict[str, Dict[str, object]] = {
        "$set": {
            **(fields or {}),
            "status": target_state,
            "updated_at": now,
        },
        "$push": {"lifecycle": lifecycle_entry(target_state, now, note)},
    }
    if provider_id is not None:
        updates["$set"]["provider_id"] = provider_id
    return updates
