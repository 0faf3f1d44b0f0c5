from enum import Enum


class UserRole(str, Enum):
    admin = "admin"
    provider = "provider"
    customer = "customer"


class RequestKind(str, Enum):
    repair = "repair"
    recycle = "recycle"


class RepairStatus(str, Enum):
    pending = "Pending"
    accepted = "Accepted"
    scheduled = "Scheduled"
    in_progress = "In Progress"
    completed = "Completed"
    cancelled = "Cancelled"


class RecycleStatus(str, Enum):
    pending = "Pending"
    scheduled = "Scheduled"
    collected = "Collected"
    recycled = "Recycled"
    cancelled = "Cancelled"


class ProviderType(str, Enum):
    repair_center = "repair_center"
    recycler = "recycler"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# which provider profiles service which request kind
PROVIDER_TYPE_BY_KIND = {
    RequestKind.repair: ProviderType.repair_center,
    RequestKind.recycle: ProviderType.recycler,
}
