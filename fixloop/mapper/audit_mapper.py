from fixloop.models.common import oid_str


def to_audit_out(doc: dict) -> dict:
    return {
        "id": oid_str(doc["_id"]),
        "time": doc["time"],
        "type": doc["type"],
        "actor": doc.get("actor") or {},
        "entity": doc.get("entity") or {},
        "message": doc.get("message", ""),
        "meta": doc.get("meta") or {},
    }
