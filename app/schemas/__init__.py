from .user import UserResponse
from .auth import Token
from .invite import (
    InviteCreate,
    InviteIssuedResponse,
    InviteResponse,
    InviteTokenRequest,
    ValidateInviteRequest,
    ValidateInviteResponse,
    RedeemInviteRequest,
    RedeemInviteResponse,
    RevokeInviteResponse,
)
from .link import TenantLinkResponse

__all__ = [
    "UserResponse",
    "Token",
    "InviteCreate",
    "InviteIssuedResponse",
    "InviteResponse",
    "InviteTokenRequest",
    "ValidateInviteRequest",
    "ValidateInviteResponse",
    "RedeemInviteRequest",
    "RedeemInviteResponse",
    "RevokeInviteResponse",
    "TenantLinkResponse",
]
