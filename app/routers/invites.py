"""Property invite API endpoints.

Landlord endpoints (issue, list, revoke) require a LANDLORD bearer token.
Validation and redemption are PUBLIC: a prospective tenant has no account yet.
Both answer 200 with a typed outcome so the app can render a specific message.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..config import get_settings
from ..deps import Clock, get_clock, get_invite_issuer, get_invite_validator, get_redemption_coordinator
from ..models.invite import PropertyInvite
from ..models.user import User
from ..providers.base import TenantIdentity
from ..schemas.invite import (
    InviteCreate,
    InviteIssuedResponse,
    InviteResponse,
    InviteTokenRequest,
    RedeemInviteRequest,
    RedeemInviteResponse,
    RevokeInviteResponse,
    ValidateInviteRequest,
    ValidateInviteResponse,
)
from ..services.invite_issuer import InviteIssuer
from ..services.invite_validator import InviteValidator
from ..services.outcomes import InviteOutcome, RevocationResult, outcome_message
from ..services.rate_limiter import invite_rate_limiter
from ..services.redemption import RedemptionCoordinator
from .auth import get_client_ip, get_current_user, require_landlord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invites"])

REVOKE_STATUS_CODES = {
    InviteOutcome.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    InviteOutcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    InviteOutcome.ALREADY_USED: status.HTTP_409_CONFLICT,
}


def enforce_invite_rate_limit(request: Request) -> None:
    client_ip = get_client_ip(request)
    if not invite_rate_limiter.hit(client_ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(invite_rate_limiter.window_seconds)},
        )


def _invite_response(invite: PropertyInvite, now: datetime) -> InviteResponse:
    return InviteResponse(
        id=invite.id,
        property_id=invite.property_id,
        delivery_method=invite.delivery_method,
        intended_email=invite.intended_email,
        status=invite.effective_status(now).value,
        created_at=invite.created_at,
        expires_at=invite.expires_at,
        redeemed_at=invite.redeemed_at,
        redeemed_by=invite.redeemed_by,
        revoked_at=invite.revoked_at,
    )


def _revocation_response(result: RevocationResult) -> RevokeInviteResponse:
    if result.outcome != InviteOutcome.SUCCESS:
        raise HTTPException(
            status_code=REVOKE_STATUS_CODES.get(result.outcome, status.HTTP_400_BAD_REQUEST),
            detail={"outcome": result.outcome.value, "message": outcome_message(result.outcome)},
        )
    return RevokeInviteResponse(outcome=result.outcome, message="Invite revoked.")


# =============================================================================
# LANDLORD ENDPOINTS
# =============================================================================

@router.post(
    "/properties/{property_id}/invites",
    response_model=InviteIssuedResponse,
    status_code=status.HTTP_201_CREATED,
)
def issue_invite(
    property_id: int,
    payload: InviteCreate,
    current_user: User = Depends(require_landlord),
    issuer: InviteIssuer = Depends(get_invite_issuer),
):
    """
    Issue a single-use invite for a property the caller owns.

    The raw token is returned here and nowhere else.
    """
    settings = get_settings()
    ttl_days = payload.ttl_days or settings.invite_ttl_days
    if ttl_days > settings.invite_max_ttl_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"ttl_days cannot exceed {settings.invite_max_ttl_days}.",
        )

    result = issuer.issue(
        property_id,
        current_user,
        delivery_method=payload.delivery_method,
        intended_email=payload.intended_email,
        ttl=timedelta(days=ttl_days),
    )
    if result.outcome == InviteOutcome.UNAUTHORIZED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only invite tenants to properties you own.",
        )

    return InviteIssuedResponse(
        invite_id=result.invite.id,
        property_id=result.invite.property_id,
        token=result.token,
        invite_url=result.invite_url,
        expires_at=result.expires_at,
    )


@router.get("/properties/{property_id}/invites", response_model=List[InviteResponse])
def list_property_invites(
    property_id: int,
    current_user: User = Depends(require_landlord),
    issuer: InviteIssuer = Depends(get_invite_issuer),
    clock: Clock = Depends(get_clock),
):
    invites = issuer.list_invites(property_id, current_user)
    if invites is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view invites for properties you own.",
        )
    now = clock()
    return [_invite_response(invite, now) for invite in invites]


@router.post(
    "/properties/{property_id}/invites/{invite_id}/revoke",
    response_model=RevokeInviteResponse,
)
def revoke_property_invite(
    property_id: int,
    invite_id: int,
    current_user: User = Depends(require_landlord),
    issuer: InviteIssuer = Depends(get_invite_issuer),
):
    result = issuer.revoke_by_id(invite_id, current_user, property_id=property_id)
    return _revocation_response(result)


@router.post("/invites/revoke", response_model=RevokeInviteResponse)
def revoke_invite(
    payload: InviteTokenRequest,
    current_user: User = Depends(require_landlord),
    issuer: InviteIssuer = Depends(get_invite_issuer),
):
    result = issuer.revoke(payload.token, current_user)
    return _revocation_response(result)


# =============================================================================
# PUBLIC ENDPOINTS (No authentication required)
# =============================================================================

@router.post(
    "/invites/validate",
    response_model=ValidateInviteResponse,
    dependencies=[Depends(enforce_invite_rate_limit)],
)
def validate_invite(
    payload: ValidateInviteRequest,
    validator: InviteValidator = Depends(get_invite_validator),
):
    """
    Check an invite token before sign-up and return a minimal property preview.

    Only the property's name and address are ever returned, and only for a
    valid token whose property hint matches.
    """
    result = validator.validate(payload.token, payload.property_id)
    response = ValidateInviteResponse(outcome=result.outcome, message=outcome_message(result.outcome))
    if result.is_valid and result.preview is not None:
        response.property_name = result.preview.name
        response.property_address = result.preview.address
    return response


@router.post(
    "/invites/redeem",
    response_model=RedeemInviteResponse,
    dependencies=[Depends(enforce_invite_rate_limit)],
)
def redeem_invite(
    payload: RedeemInviteRequest,
    current_user: Optional[User] = Depends(get_current_user),
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
):
    """
    Redeem an invite as a tenant.

    With a bearer token the signed-in user is linked; without one the request
    must carry email and password and a tenant account is created.
    """
    if current_user is not None:
        identity = TenantIdentity.existing(current_user)
    elif payload.email and payload.password:
        identity = TenantIdentity.signup(payload.email, payload.password, payload.full_name)
    else:
        identity = TenantIdentity()

    result = coordinator.redeem(payload.token, payload.property_id, identity)
    return RedeemInviteResponse(
        outcome=result.outcome,
        message=outcome_message(result.outcome),
        property_link_id=result.property_link_id,
        retryable=result.outcome == InviteOutcome.ACCOUNT_CREATION_FAILED,
    )
