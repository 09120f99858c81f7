"""FastAPI dependency wiring for the invite components.

Every request gets its own InviteStore over the request's session; the
components are built per request and hold no shared backend state.
"""
from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .providers.base import AccountProvisionerBase
from .providers.local import LocalAccountProvisioner
from .services.access_policy import AccessPolicyEnforcer
from .services.invite_issuer import InviteIssuer
from .services.invite_store import InviteStore
from .services.invite_validator import InviteValidator
from .services.redemption import RedemptionCoordinator
from .services.tenant_links import TenantLinkService
from .services.token_codec import TokenCodec

Clock = Callable[[], datetime]


def get_clock() -> Clock:
    return datetime.utcnow


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec(token_bytes=get_settings().invite_token_bytes)


def get_access_policy() -> AccessPolicyEnforcer:
    return AccessPolicyEnforcer()


def get_account_provisioner() -> AccountProvisionerBase:
    return LocalAccountProvisioner()


def get_invite_store(db: Session = Depends(get_db)) -> InviteStore:
    return InviteStore(db)


def get_invite_issuer(
    store: InviteStore = Depends(get_invite_store),
    codec: TokenCodec = Depends(get_token_codec),
    policy: AccessPolicyEnforcer = Depends(get_access_policy),
    clock: Clock = Depends(get_clock),
) -> InviteIssuer:
    settings = get_settings()
    return InviteIssuer(
        store,
        codec,
        policy,
        clock=clock,
        max_attempts=settings.invite_issue_attempts,
        link_base_url=settings.invite_link_base_url,
    )


def get_invite_validator(
    store: InviteStore = Depends(get_invite_store),
    codec: TokenCodec = Depends(get_token_codec),
    clock: Clock = Depends(get_clock),
) -> InviteValidator:
    return InviteValidator(store, codec, clock=clock)


def get_redemption_coordinator(
    store: InviteStore = Depends(get_invite_store),
    validator: InviteValidator = Depends(get_invite_validator),
    policy: AccessPolicyEnforcer = Depends(get_access_policy),
    provisioner: AccountProvisionerBase = Depends(get_account_provisioner),
    clock: Clock = Depends(get_clock),
) -> RedemptionCoordinator:
    return RedemptionCoordinator(store, validator, policy, provisioner=provisioner, clock=clock)


def get_tenant_link_service(
    store: InviteStore = Depends(get_invite_store),
    policy: AccessPolicyEnforcer = Depends(get_access_policy),
) -> TenantLinkService:
    return TenantLinkService(store, policy)
