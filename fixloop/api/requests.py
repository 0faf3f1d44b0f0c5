# fixloop/api/requests.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from fixloop.core.enums import RequestKind
from fixloop.core.security import Actor, get_current_actor
from fixloop.mapper.requests_mapper import to_request_out
from fixloop.models.service_requests import (
    ServiceRequestCreate,
    ServiceRequestOut,
    TransitionRequest,
)
from fixloop.services import requests as request_service


def build_router(kind: RequestKind, prefix: str, tag: str) -> APIRouter:
    """Same endpoints for both request kinds; only the collection and graph differ."""
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.post("", response_model=ServiceRequestOut, status_code=status.HTTP_201_CREATED)
    async def create_request(
        payload: ServiceRequestCreate,
        actor: Actor = Depends(get_current_actor),
    ):
        doc = await request_service.create_request(kind, actor, payload)
        return to_request_out(doc, kind)

    @router.get("", response_model=List[ServiceRequestOut])
    async def list_requests(
        status_filter: Optional[str] = Query(None, alias="status"),
        limit: Optional[int] = Query(None, ge=1),
        offset: int = Query(0, ge=0),
        actor: Actor = Depends(get_current_actor),
    ):
        docs = await request_service.list_requests(kind, actor, status_filter, limit, offset)
        return [to_request_out(d, kind) for d in docs]

    @router.get("/{request_id}", response_model=ServiceRequestOut)
    async def get_request(request_id: str, actor: Actor = Depends(get_current_actor)):
        doc = await request_service.get_request(kind, request_id, actor)
        return to_request_out(doc, kind)

    @router.patch("/{request_id}/status", response_model=ServiceRequestOut)
    async def update_status(
        request_id: str,
        payload: TransitionRequest,
        actor: Actor = Depends(get_current_actor),
    ):
        doc = await request_service.transition_request(kind, request_id, actor, payload)
        return to_request_out(doc, kind)

    return router


repairs_router = build_router(RequestKind.repair, "/repairs", "Repair Requests")
recycles_router = build_router(RequestKind.recycle, "/recycles", "Recycle Requests")
