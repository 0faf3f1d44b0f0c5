from __future__ import annotations

from pymongo import ReturnDocument

from fixloop.db.mongo import COUNTERS, mongo, store_errors


class CounterRepository:
    @staticmethod
    async def next_seq(key: str) -> int:
        """
        Atomic counter:
        counters: { _id: "provider_code", seq: 4 }
        """
        async with store_errors("counter.next"):
            doc = await mongo.db[COUNTERS].find_one_and_update(
                {"_id": key},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return int(doc["seq"])

    @staticmethod
    async def raise_to(key: str, seq: int) -> None:
        """Move the counter forward to ``seq``; never moves it backwards."""
        async with store_errors("counter.sync"):
            await mongo.db[COUNTERS].update_one(
                {"_id": key},
                {"$max": {"seq": seq}},
                upsert=True,
            )
