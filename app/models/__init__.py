from .user import User, UserRole
from .property import Property
from .invite import PropertyInvite, InviteStatus, DeliveryMethod, INVITE_STATUS_TRANSITIONS, TERMINAL_INVITE_STATUSES
from .tenant_link import TenantPropertyLink
from .audit import AuditEvent

__all__ = [
    "User",
    "UserRole",
    "Property",
    "PropertyInvite",
    "InviteStatus",
    "DeliveryMethod",
    "INVITE_STATUS_TRANSITIONS",
    "TERMINAL_INVITE_STATUSES",
    "TenantPropertyLink",
    "AuditEvent",
]
