from datetime import datetime, timezone
from typing import Optional

from fixloop.core.security import Actor
from fixloop.repositories.audit_repository import AuditRepository


class AuditService:
    def __init__(self, repo: AuditRepository):
        self.repo = repo

    async def list_logs(self, limit: int = 200):
        return await self.repo.list(limit)

    async def log_event(self, event: dict):
        await self.repo.create(event)

    async def record(
        self,
        event_type: str,
        actor: Actor,
        entity_type: str,
        entity_id: str,
        message: str,
        meta: Optional[dict] = None,
    ):
        await self.log_event({
            "time": datetime.now(timezone.utc),
            "type": event_type,
            "actor": actor.audit_ref(),
            "entity": {"type": entity_type, "id": entity_id},
            "message": message,
            "meta": meta or {},
        })


audit_service = AuditService(AuditRepository())
