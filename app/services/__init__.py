from .auth import AuthService
from .audit import AuditService
from .access_policy import AccessPolicyEnforcer
from .token_codec import TokenCodec
from .invite_store import InviteStore, StorageError
from .outcomes import InviteOutcome

__all__ = [
    "AuthService",
    "AuditService",
    "AccessPolicyEnforcer",
    "TokenCodec",
    "InviteStore",
    "StorageError",
    "InviteOutcome",
]
