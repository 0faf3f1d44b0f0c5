from fixloop.models.common import oid_str


def to_provider_out(doc: dict) -> dict:
    # stored as GeoJSON [lng, lat]
    lng, lat = (doc.get("location") or {}).get("coordinates") or [None, None]
    return {
        "id": oid_str(doc["_id"]),
        "user_id": doc["user_id"],
        "provider_code": doc["provider_code"],
        "business_name": doc["business_name"],
        "provider_type": doc["provider_type"],
        "categories": doc.get("categories", []),
        "description": doc.get("description", ""),
        "contact_person": doc.get("contact_person", ""),
        "phone": doc["phone"],
        "email": doc["email"],
        "address_line": doc["address_line"],
        "city": doc.get("city", ""),
        "district": doc.get("district", ""),
        "location": {"lat": lat, "lng": lng},
        "service_radius_km": doc.get("service_radius_km", 10),
        "approval_status": doc.get("approval_status", "pending"),
        "approved_at": doc.get("approved_at"),
        "rejection_reason": doc.get("rejection_reason", ""),
        "is_active": doc.get("is_active", True),
        "created_at": doc["created_at"],
        "updated_at": doc.get("updated_at") or doc["created_at"],
    }
