from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from fixloop.core.enums import RequestKind
from fixloop.db.mongo import RECYCLE_REQUESTS, REPAIR_REQUESTS, mongo, store_errors

COLLECTIONS = {
    RequestKind.repair: REPAIR_REQUESTS,
    RequestKind.recycle: RECYCLE_REQUESTS,
}


def _col(kind: RequestKind):
    return mongo.db[COLLECTIONS[kind]]


class ServiceRequestRepository:
    @staticmethod
    async def insert(kind: RequestKind, document: Dict[str, Any]) -> Dict[str, Any]:
        async with store_errors("request.insert"):
            result = await _col(kind).insert_one(document)
        document["_id"] = result.inserted_id
        return document

    @staticmethod
    async def find_by_id(kind: RequestKind, oid: ObjectId) -> Optional[Dict[str, Any]]:
        async with store_errors("request.find"):
            return await _col(kind).find_one({"_id": oid})

    @staticmethod
    async def list_requests(
        kind: RequestKind, filters: Dict[str, Any], limit: int, offset: int
    ) -> List[Dict[str, Any]]:
        async with store_errors("request.list"):
            cursor = (
                _col(kind)
                .find(filters)
                .sort("created_at", DESCENDING)
                .skip(offset)
                .limit(limit)
            )
            return await cursor.to_list(length=limit)

    @staticmethod
    async def compare_and_update(
        kind: RequestKind, expected: Dict[str, Any], update: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply ``update`` only if the document still matches ``expected``.

        Returns the updated document, or None when nothing matched.
        """
        async with store_errors("request.update"):
            return await _col(kind).find_one_and_update(
                expected,
                update,
                return_document=ReturnDocument.AFTER,
            )

    @staticmethod
    async def delete(kind: RequestKind, oid: ObjectId) -> Optional[Dict[str, Any]]:
        async with store_errors("request.delete"):
            return await _col(kind).find_one_and_delete({"_id": oid})
