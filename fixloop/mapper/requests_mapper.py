from fixloop.core.enums import RequestKind
from fixloop.models.common import oid_str


def to_request_out(doc: dict, kind: RequestKind) -> dict:
    """
    Normalize a stored request document (repair or recycle)
    into the API shape.
    """
    location = doc.get("location") or {}
    return {
        "id": oid_str(doc["_id"]),
        "kind": kind.value,
        "customer_id": doc["customer_id"],
        "provider_id": doc.get("provider_id"),
        "product_name": doc.get("product_name", ""),
        "category": doc.get("category", ""),
        "description": doc.get("description", ""),
        "quantity": doc.get("quantity", 1),
        "image": doc.get("image"),
        "location": {
            "lat": location.get("lat"),
            "lng": location.get("lng"),
            "address": location.get("address"),
        },
        "status": doc["status"],
        "pickup_date": doc.get("pickup_date"),
        "lifecycle": list(doc.get("lifecycle") or []),
        "created_at": doc["created_at"],
        "updated_at": doc.get("updated_at") or doc["created_at"],
    }
