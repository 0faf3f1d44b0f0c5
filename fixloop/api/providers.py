# fixloop/api/providers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from fixloop.core.enums import ProviderType
from fixloop.core.security import Actor, get_current_actor
from fixloop.mapper.providers_mapper import to_provider_out
from fixloop.models.providers import (
    NearbyProviderOut,
    ProviderProfileCreate,
    ProviderProfileOut,
    ProviderProfileUpdate,
    RejectBody,
)
from fixloop.services import providers as provider_service
from fixloop.services.geo import find_nearby

router = APIRouter(prefix="/providers", tags=["Providers"])


# -------------------------
# Discovery (public)
# -------------------------
@router.get("/nearby", response_model=List[NearbyProviderOut])
async def nearby_providers(
    lat: float = Query(...),
    lng: float = Query(...),
    radius_km: Optional[float] = Query(None),
    category: Optional[str] = Query(None),
    provider_type: Optional[ProviderType] = Query(None),
):
    ranked = await find_nearby(lat, lng, radius_km, category, provider_type)
    out = []
    for doc, distance in ranked:
        item = to_provider_out(doc)
        item["distance_km"] = round(distance, 2)
        out.append(item)
    return out


# -------------------------
# Profiles
# -------------------------
@router.get("/me", response_model=List[ProviderProfileOut])
async def my_profiles(actor: Actor = Depends(get_current_actor)):
    docs = await provider_service.list_my_profiles(actor)
    return [to_provider_out(d) for d in docs]


@router.get("", response_model=List[ProviderProfileOut])
async def list_profiles(actor: Actor = Depends(get_current_actor)):
    docs = await provider_service.list_profiles(actor)
    return [to_provider_out(d) for d in docs]


@router.post("", response_model=ProviderProfileOut, status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: ProviderProfileCreate,
    actor: Actor = Depends(get_current_actor),
):
    doc = await provider_service.create_profile(actor, payload)
    return to_provider_out(doc)


@router.put("/{code}", response_model=ProviderProfileOut)
async def update_profile(
    code: str,
    payload: ProviderProfileUpdate,
    actor: Actor = Depends(get_current_actor),
):
    doc = await provider_service.update_profile(code, actor, payload)
    return to_provider_out(doc)


@router.patch("/{code}/deactivate", response_model=ProviderProfileOut)
async def deactivate_profile(code: str, actor: Actor = Depends(get_current_actor)):
    doc = await provider_service.set_active(code, actor, False)
    return to_provider_out(doc)


@router.patch("/{code}/reactivate", response_model=ProviderProfileOut)
async def reactivate_profile(code: str, actor: Actor = Depends(get_current_actor)):
    doc = await provider_service.set_active(code, actor, True)
    return to_provider_out(doc)


# -------------------------
# Approval (admin)
# -------------------------
@router.patch("/{profile_id}/approve", response_model=ProviderProfileOut)
async def approve_profile(profile_id: str, actor: Actor = Depends(get_current_actor)):
    doc = await provider_service.approve_profile(profile_id, actor)
    return to_provider_out(doc)


@router.patch("/{profile_id}/reject", response_model=ProviderProfileOut)
async def reject_profile(
    profile_id: str,
    payload: RejectBody,
    actor: Actor = Depends(get_current_actor),
):
    doc = await provider_service.reject_profile(profile_id, actor, payload.reason)
    return to_provider_out(doc)
