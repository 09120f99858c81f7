from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..models.invite import DeliveryMethod
from ..services.outcomes import InviteOutcome


class InviteCreate(BaseModel):
    delivery_method: DeliveryMethod = DeliveryMethod.LINK
    intended_email: Optional[str] = Field(None, max_length=255)
    ttl_days: Optional[int] = Field(None, ge=1)

    @field_validator("intended_email")
    @classmethod
    def intended_email_clean(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        if not v:
            return None
        if "@" not in v:
            raise ValueError("intended_email must be an email address")
        return v


class InviteIssuedResponse(BaseModel):
    invite_id: int
    property_id: int
    token: str
    invite_url: Optional[str] = None
    expires_at: datetime


class InviteResponse(BaseModel):
    """Landlord-side view of an invite. Never carries the token."""
    id: int
    property_id: int
    delivery_method: str
    intended_email: Optional[str] = None
    status: str
    created_at: datetime
    expires_at: datetime
    redeemed_at: Optional[datetime] = None
    redeemed_by: Optional[int] = None
    revoked_at: Optional[datetime] = None


class InviteTokenRequest(BaseModel):
    token: str


class ValidateInviteRequest(InviteTokenRequest):
    # Property id from the invite link, taken as sent
    property_id: Optional[Union[int, str]] = None


class ValidateInviteResponse(BaseModel):
    outcome: InviteOutcome
    message: str
    property_name: Optional[str] = None
    property_address: Optional[str] = None


class RedeemInviteRequest(InviteTokenRequest):
    property_id: Optional[Union[int, str]] = None
    # Sign-up fields, used only when the request carries no bearer token
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=128)
    full_name: Optional[str] = Field(None, max_length=255)


class RedeemInviteResponse(BaseModel):
    outcome: InviteOutcome
    message: str
    property_link_id: Optional[int] = None
    retryable: bool = False


class RevokeInviteResponse(BaseModel):
    outcome: InviteOutcome
    message: str
