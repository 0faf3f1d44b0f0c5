from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from fixloop.core.enums import ApprovalStatus, ProviderType
from fixloop.models.common import FixBaseModel, GeoPointIn


def _norm_categories(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        tag = (v or "").strip().lower()
        if tag and tag not in out:
            out.append(tag)
    if not out:
        raise ValueError("At least one category is required")
    return out


class ProviderProfileCreate(FixBaseModel):
    business_name: str = Field(..., min_length=2, max_length=120)
    provider_type: ProviderType
    categories: List[str]
    description: str = Field("", max_length=1000)
    contact_person: str = Field("", max_length=80)
    phone: str = Field(..., min_length=1, max_length=30)
    email: str = Field(..., min_length=3, max_length=120)
    address_line: str = Field(..., min_length=1, max_length=200)
    city: str = Field("", max_length=80)
    district: str = Field("", max_length=80)
    location: GeoPointIn
    service_radius_km: float = Field(10, ge=1, le=50)

    @field_validator("categories")
    @classmethod
    def normalise_categories(cls, v: List[str]) -> List[str]:
        return _norm_categories(v)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class ProviderProfileUpdate(FixBaseModel):
    """Business fields an owner may edit. Approval state and codes are not editable here."""

    model_config = ConfigDict(extra="forbid")

    business_name: Optional[str] = Field(None, min_length=2, max_length=120)
    categories: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=1000)
    contact_person: Optional[str] = Field(None, max_length=80)
    phone: Optional[str] = Field(None, min_length=1, max_length=30)
    email: Optional[str] = Field(None, min_length=3, max_length=120)
    address_line: Optional[str] = Field(None, min_length=1, max_length=200)
    city: Optional[str] = Field(None, max_length=80)
    district: Optional[str] = Field(None, max_length=80)
    location: Optional[GeoPointIn] = None
    service_radius_km: Optional[float] = Field(None, ge=1, le=50)

    @field_validator("categories")
    @classmethod
    def normalise_categories(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _norm_categories(v)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else v.strip().lower()


class RejectBody(FixBaseModel):
    reason: str = Field(..., max_length=500)


class ProviderProfileOut(FixBaseModel):
    id: str
    user_id: str
    provider_code: str
    business_name: str
    provider_type: ProviderType
    categories: List[str]
    description: str = ""
    contact_person: str = ""
    phone: str
    email: str
    address_line: str
    city: str = ""
    district: str = ""
    location: GeoPointIn
    service_radius_km: float
    approval_status: ApprovalStatus
    approved_at: Optional[datetime] = None
    rejection_reason: str = ""
    is_active: bool
    created_at: datetime
    updated_at: datetime


class NearbyProviderOut(ProviderProfileOut):
    distance_km: float
