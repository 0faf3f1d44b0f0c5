from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from fixloop.core.enums import RequestKind
from fixloop.models.common import FixBaseModel, GeoPointIn


def _norm_tag(value: str) -> str:
    value = (value or "").strip().lower()
    if not value:
        raise ValueError("category must not be empty")
    return value


class LocationIn(GeoPointIn):
    address: str = Field(..., min_length=1, max_length=200)


class LifecycleEntry(FixBaseModel):
    status: str
    timestamp: datetime
    note: str


class ServiceRequestCreate(FixBaseModel):
    product_name: str = Field(..., min_length=1, max_length=120)
    category: str = Field(..., max_length=60)
    description: str = Field(..., min_length=1, max_length=2000)
    quantity: int = Field(1, ge=1)
    image: Optional[str] = Field(None, max_length=500)
    location: LocationIn

    @field_validator("category")
    @classmethod
    def normalise_category(cls, v: str) -> str:
        return _norm_tag(v)


class TransitionRequest(FixBaseModel):
    """Body of a status change. Only the supplementary fields listed here can ever be merged."""

    model_config = ConfigDict(extra="forbid")

    status: str
    note: Optional[str] = Field(None, max_length=500)
    pickup_date: Optional[datetime] = None

    def supplied_fields(self) -> dict:
        return self.model_dump(exclude={"status", "note"}, exclude_unset=True)


class AdminRequestUpdate(FixBaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    note: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=60)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    quantity: Optional[int] = Field(None, ge=1)
    image: Optional[str] = Field(None, max_length=500)
    pickup_date: Optional[datetime] = None

    @field_validator("category")
    @classmethod
    def normalise_category(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _norm_tag(v)

    def supplied_fields(self) -> dict:
        return self.model_dump(exclude={"status", "note"}, exclude_unset=True)


class LocationOut(FixBaseModel):
    lat: float
    lng: float
    address: Optional[str] = None


class ServiceRequestOut(FixBaseModel):
    id: str
    kind: RequestKind
    customer_id: str
    provider_id: Optional[str] = None
    product_name: str
    category: str
    description: str
    quantity: int
    image: Optional[str] = None
    location: LocationOut
    status: str
    pickup_date: Optional[datetime] = None
    lifecycle: List[LifecycleEntry]
    created_at: datetime
    updated_at: datetime
