from pymongo import DESCENDING

from fixloop.db.mongo import AUDIT_LOGS, mongo, store_errors
from fixloop.mapper.audit_mapper import to_audit_out


class AuditRepository:
    def __init__(self, collection_name: str = AUDIT_LOGS):
        self.collection_name = collection_name

    @property
    def collection(self):
        return mongo.db[self.collection_name]

    async def list(self, limit: int = 200):
        out = []
        async with store_errors("audit.list"):
            async for doc in self.collection.find().sort("time", DESCENDING).limit(limit):
                out.append(to_audit_out(doc))
        return out

    async def create(self, data: dict):
        async with store_errors("audit.create"):
            await self.collection.insert_one(data)
