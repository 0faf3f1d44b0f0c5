"""Fire-and-forget notification triggering for terminal transitions.

The engine only writes an outbox document; delivering the email is the job of
an external mailer reading the ``notifications`` collection.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Set

from fixloop.core.enums import RequestKind
from fixloop.db.mongo import NOTIFICATIONS, mongo, store_errors

logger = logging.getLogger(__name__)

_pending: Set[asyncio.Task] = set()


def _recipients(doc: dict) -> list:
    out = [doc["customer_id"]]
    if doc.get("provider_id"):
        out.append(doc["provider_id"])
    return out


async def deliver(kind: RequestKind, doc: dict) -> None:
    last = doc["lifecycle"][-1]
    async with store_errors("notification.insert"):
        await mongo.db[NOTIFICATIONS].insert_one({
            "kind": kind.value,
            "request_id": str(doc["_id"]),
            "status": doc["status"],
            "note": last.get("note"),
            "recipients": _recipients(doc),
            "created_at": datetime.now(timezone.utc),
            "delivered": False,
        })
    logger.info("Queued %s notification for %s request %s", doc["status"], kind.value, doc["_id"])


async def _run(kind: RequestKind, doc: dict) -> None:
    try:
        await deliver(kind, doc)
    except Exception:
        logger.exception("Notification for %s request %s failed", kind.value, doc.get("_id"))


def notify_terminal(kind: RequestKind, doc: dict) -> None:
    """Schedule the notification without waiting for it."""
    task = asyncio.get_running_loop().create_task(_run(kind, doc))
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def wait_pending() -> None:
    """Wait for scheduled notifications; used on shutdown."""
    if _pending:
        await asyncio.gather(*list(_pending))
