"""Nearby provider discovery."""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fixloop.core.config import get_settings
from fixloop.core.enums import ApprovalStatus, ProviderType
from fixloop.core.errors import ValidationError
from fixloop.repositories.providers import ProviderRepository

EARTH_RADIUS_KM = 6371.0

# the store measures $maxDistance in metres on this sphere
STORE_EARTH_RADIUS_M = 6378100.0

# $nearSphere returns nearest first, so the cap drops only the farthest rows
CANDIDATE_LIMIT = 1000


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def validate_search(lat: float, lng: float, radius_km: float) -> None:
    if lat is None or lng is None or not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise ValidationError("Coordinates must be lat in [-90, 90] and lng in [-180, 180]")
    max_radius = get_settings().max_search_radius_km
    if radius_km is None or not (0 < radius_km <= max_radius):
        raise ValidationError(f"radius_km must be greater than 0 and at most {max_radius:g}")


def max_distance_m(radius_km: float) -> float:
    """Store radius covering the same angle as ``radius_km`` on the haversine sphere."""
    return radius_km / EARTH_RADIUS_KM * STORE_EARTH_RADIUS_M


def build_nearby_query(
    lat: float,
    lng: float,
    radius_km: float,
    capability: Optional[str] = None,
    provider_type: Optional[ProviderType] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {
        "location": {
            "$nearSphere": {
                "$geometry": {"type": "Point", "coordinates": [lng, lat]},
                "$maxDistance": max_distance_m(radius_km),
            }
        },
        "approval_status": ApprovalStatus.approved.value,
        "is_active": True,
    }
    if capability:
        query["categories"] = capability.strip().lower()
    if provider_type is not None:
        query["provider_type"] = provider_type.value
    return query


def rank_nearby(
    candidates: Iterable[dict], lat: float, lng: float, radius_km: float
) -> List[Tuple[dict, float]]:
    """Exact distances, radius cut-off, ascending by (distance, id)."""
    ranked = []
    for doc in candidates:
        p_lng, p_lat = doc["location"]["coordinates"]
        distance = haversine_km(lat, lng, p_lat, p_lng)
        if distance <= radius_km:
            ranked.append((doc, distance))
    ranked.sort(key=lambda pair: (pair[1], str(pair[0]["_id"])))
    return ranked


async def find_nearby(
    lat: float,
    lng: float,
    radius_km: Optional[float] = None,
    capability: Optional[str] = None,
    provider_type: Optional[ProviderType] = None,
) -> List[Tuple[dict, float]]:
    if radius_km is None:
        radius_km = get_settings().default_search_radius_km
    validate_search(lat, lng, radius_km)

    query = build_nearby_query(lat, lng, radius_km, capability, provider_type)
    candidates = await ProviderRepository.find_within(query, CANDIDATE_LIMIT)
    return rank_nearby(candidates, lat, lng, radius_km)
