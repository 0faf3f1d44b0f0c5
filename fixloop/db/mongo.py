from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, GEOSPHERE
from pymongo.errors import ConnectionFailure, ExecutionTimeout, WTimeoutError

from fixloop.core.config import get_settings
from fixloop.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

REPAIR_REQUESTS = "repair_requests"
RECYCLE_REQUESTS = "recycle_requests"
PROVIDER_PROFILES = "provider_profiles"
COUNTERS = "counters"
AUDIT_LOGS = "audit_logs"
NOTIFICATIONS = "notifications"

# (collection, keys, options)
INDEXES: List[Tuple[str, list, dict]] = [
    (PROVIDER_PROFILES, [("location", GEOSPHERE)], {}),
    (PROVIDER_PROFILES, [("provider_code", ASCENDING)], {"unique": True, "sparse": True}),
    (
        PROVIDER_PROFILES,
        [("provider_type", ASCENDING), ("approval_status", ASCENDING), ("is_active", ASCENDING)],
        {},
    ),
    (PROVIDER_PROFILES, [("user_id", ASCENDING)], {}),
    (AUDIT_LOGS, [("time", DESCENDING)], {}),
]

for _requests in (REPAIR_REQUESTS, RECYCLE_REQUESTS):
    INDEXES += [
        (_requests, [("status", ASCENDING), ("provider_id", ASCENDING)], {}),
        (_requests, [("customer_id", ASCENDING)], {}),
        (_requests, [("created_at", DESCENDING)], {}),
    ]


class Mongo:
    """Holds the shared client; repositories read ``mongo.db`` at call time."""

    def __init__(self) -> None:
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Any = None

    def connect(self) -> None:
        settings = get_settings()
        self.client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
            connectTimeoutMS=settings.mongo_connect_timeout_ms,
            socketTimeoutMS=settings.mongo_socket_timeout_ms,
            tz_aware=True,
        )
        self.db = self.client[settings.mongo_db]
        logger.info("Mongo client created for database %s", settings.mongo_db)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
        self.client = None
        self.db = None


mongo = Mongo()


def get_db():
    """
    FastAPI dependency that returns Mongo database instance
    """
    if mongo.db is None:
        raise StoreUnavailable("Database is not connected")
    return mongo.db


async def ensure_indexes() -> None:
    db = get_db()
    async with store_errors("ensure_indexes"):
        for collection, keys, options in INDEXES:
            await db[collection].create_index(keys, **options)
    logger.info("Ensured %d indexes", len(INDEXES))


@asynccontextmanager
async def store_errors(operation: str):
    """Translate connection level driver failures into StoreUnavailable."""
    try:
        yield
    except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as exc:
        logger.error("Store operation %s failed: %s", operation, exc)
        raise StoreUnavailable(f"Storage is temporarily unavailable ({operation})") from exc
