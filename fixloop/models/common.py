# fixloop/models/common.py
from __future__ import annotations

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


def oid_str(x) -> str | None:
    if x is None:
        return None
    return str(x)


def parse_oid(value: str | None) -> ObjectId | None:
    if not value:
        return None
    value = value.strip()
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class FixBaseModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)


class GeoPointIn(FixBaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
