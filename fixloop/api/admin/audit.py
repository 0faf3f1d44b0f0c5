from fastapi import APIRouter, Depends, Query

from fixloop.core.security import Actor, get_current_admin
from fixloop.services.audit_service import audit_service

router = APIRouter(prefix="/admin/audit", tags=["Admin - Audit"])


@router.get("")
async def list_audit_logs(
    limit: int = Query(200, ge=1, le=1000),
    actor: Actor = Depends(get_current_admin),
):
    return await audit_service.list_logs(limit)
