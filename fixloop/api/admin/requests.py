from fastapi import APIRouter, Depends, Response, status

from fixloop.core.enums import RequestKind
from fixloop.core.security import Actor, get_current_admin
from fixloop.mapper.requests_mapper import to_request_out
from fixloop.models.service_requests import AdminRequestUpdate, ServiceRequestOut
from fixloop.services import requests as request_service

router = APIRouter(prefix="/admin/requests", tags=["Admin Requests"])


@router.get("", response_model=list[ServiceRequestOut])
async def list_all_requests(actor: Actor = Depends(get_current_admin)):
    pairs = await request_service.list_all_requests(actor)
    return [to_request_out(doc, kind) for kind, doc in pairs]


@router.put("/{kind}/{request_id}", response_model=ServiceRequestOut)
async def override_request(
    kind: RequestKind,
    request_id: str,
    payload: AdminRequestUpdate,
    actor: Actor = Depends(get_current_admin),
):
    doc = await request_service.admin_update_request(kind, request_id, actor, payload)
    return to_request_out(doc, kind)


@router.delete("/{kind}/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    kind: RequestKind,
    request_id: str,
    actor: Actor = Depends(get_current_admin),
):
    await request_service.delete_request(kind, request_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
