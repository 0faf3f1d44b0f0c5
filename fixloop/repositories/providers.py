from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from fixloop.db.mongo import PROVIDER_PROFILES, mongo, store_errors


def _col():
    return mongo.db[PROVIDER_PROFILES]


class ProviderRepository:
    @staticmethod
    async def insert(document: Dict[str, Any]) -> Dict[str, Any]:
        async with store_errors("provider.insert"):
            result = await _col().insert_one(document)
        document["_id"] = result.inserted_id
        return document

    @staticmethod
    async def find_by_id(oid: ObjectId) -> Optional[Dict[str, Any]]:
        async with store_errors("provider.find"):
            return await _col().find_one({"_id": oid})

    @staticmethod
    async def find_by_code(code: str) -> Optional[Dict[str, Any]]:
        async with store_errors("provider.find"):
            return await _col().find_one({"provider_code": code})

    @staticmethod
    async def find_last_code(prefix: str) -> Optional[str]:
        async with store_errors("provider.find"):
            doc = await _col().find_one(
                {"provider_code": {"$regex": f"^{prefix}[0-9]+$"}},
                sort=[("provider_code", DESCENDING)],
            )
        return doc["provider_code"] if doc else None

    @staticmethod
    async def list_profiles(filters: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        async with store_errors("provider.list"):
            cursor = _col().find(filters).sort("provider_code", ASCENDING).limit(limit)
            return await cursor.to_list(length=limit)

    @staticmethod
    async def find_within(query: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        """Nearby candidates, nearest first; ``query`` carries the $nearSphere clause."""
        async with store_errors("provider.nearby"):
            return await _col().find(query).to_list(length=limit)

    @staticmethod
    async def update(
        expected: Dict[str, Any], update: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        async with store_errors("provider.update"):
            return await _col().find_one_and_update(
                expected,
                update,
                return_document=ReturnDocument.AFTER,
            )
