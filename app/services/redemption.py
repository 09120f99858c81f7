"""Exactly-once invite redemption.

The claim, the tenant account (for sign-ups) and the tenant-property link are
written in one transaction with the conditional claim UPDATE first. The
UPDATE holds the invite row's write lock until commit, so concurrent
redeemers of the same token queue behind the winner and then see the row is
no longer ACTIVE. Any failure after the claim rolls the whole transaction
back: the invite is ACTIVE again with its original expiry and no link or
account survives. A failed redemption never burns the token.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from ..models.invite import PropertyInvite, InviteStatus
from ..models.property import Property
from ..models.tenant_link import TenantPropertyLink
from ..models.user import User
from ..providers.base import (
    AccountProvisionerBase,
    AccountProvisioningError,
    PreparedAccount,
    TenantIdentity,
)
from ..providers.local import LocalAccountProvisioner
from .access_policy import AccessPolicyEnforcer
from .audit import AuditService
from .invite_store import DuplicateLinkError, InviteStore, StorageError
from .invite_validator import REJECTION_REASONS, InviteValidator, check_invite
from .outcomes import InviteOutcome, RedemptionResult

logger = logging.getLogger(__name__)


class RedemptionCoordinator:
    def __init__(
        self,
        store: InviteStore,
        validator: InviteValidator,
        policy: AccessPolicyEnforcer,
        provisioner: Optional[AccountProvisionerBase] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.validator = validator
        self.policy = policy
        self.provisioner = provisioner or LocalAccountProvisioner()
        self.clock = clock

    def redeem(self, token: str, property_id_hint, identity: TenantIdentity) -> RedemptionResult:
        invite = self.validator.lookup(token)
        user = identity.user

        replay = self._replay(invite, property_id_hint, user)
        if replay is not None:
            return replay

        outcome = check_invite(invite, property_id_hint, self.clock())
        if outcome != InviteOutcome.VALID:
            return self._reject(outcome, invite)

        prop = self.store.get_property(invite.property_id)
        if prop is None:
            return self._reject(InviteOutcome.INVALID, invite)
        if not self.policy.can_redeem(user, prop):
            logger.warning(
                "Invite redemption denied",
                extra={"invite_id": invite.id, "user_id": user.id if user else None},
            )
            return RedemptionResult(outcome=InviteOutcome.UNAUTHORIZED)

        if user is not None:
            existing = self.store.get_active_link(user.id, prop.id)
            if existing is not None:
                logger.info(
                    "Tenant already linked, invite left active",
                    extra={"invite_id": invite.id, "link_id": existing.id},
                )
                return RedemptionResult(
                    outcome=InviteOutcome.SUCCESS,
                    property_link_id=existing.id,
                    tenant_id=user.id,
                    already_linked=True,
                )

        prepared = None
        if identity.is_new:
            if identity.new_account is None:
                return RedemptionResult(outcome=InviteOutcome.UNAUTHORIZED)
            try:
                prepared = self.provisioner.prepare(identity.new_account)
            except AccountProvisioningError as e:
                logger.info(f"Tenant account rejected before claim: {e}", extra={"invite_id": invite.id})
                return RedemptionResult(outcome=InviteOutcome.ACCOUNT_CREATION_FAILED)

        return self._claim_and_link(invite, prop, user, prepared, property_id_hint)

    def _claim_and_link(
        self,
        invite: PropertyInvite,
        prop: Property,
        user: Optional[User],
        prepared: Optional[PreparedAccount],
        property_id_hint,
    ) -> RedemptionResult:
        invite_id = invite.id
        property_id = prop.id
        tenant_id = user.id if user is not None else None
        now = self.clock()

        if not self.store.claim(invite, now, tenant_id=tenant_id):
            self.store.rollback()
            return self._after_lost_claim(invite_id, property_id_hint, tenant_id)

        try:
            if prepared is not None:
                user = self.provisioner.provision(self.store, prepared)
                tenant_id = user.id
                self.store.record_redeemer(invite, tenant_id)
                AuditService.log_event(
                    self.store.db,
                    action="TENANT_ACCOUNT_CREATED",
                    invite_id=invite_id,
                    property_id=property_id,
                    actor_user_id=tenant_id,
                )

            link = self.store.insert_link(TenantPropertyLink(
                tenant_id=tenant_id,
                property_id=property_id,
                invite_id=invite_id,
                is_active=True,
                created_at=now,
            ))
            link_id = link.id
        except AccountProvisioningError as e:
            self.store.rollback()
            logger.warning(
                f"Tenant account creation failed after claim, invite restored: {e}",
                extra={"invite_id": invite_id},
            )
            return RedemptionResult(outcome=InviteOutcome.ACCOUNT_CREATION_FAILED)
        except DuplicateLinkError:
            # Store already rolled back, so the claim is undone
            existing = self.store.get_active_link(tenant_id, property_id)
            if existing is None:
                raise StorageError("Tenant link conflict could not be resolved")
            logger.info(
                "Concurrent link for same tenant, invite left active",
                extra={"invite_id": invite_id, "link_id": existing.id},
            )
            return RedemptionResult(
                outcome=InviteOutcome.SUCCESS,
                property_link_id=existing.id,
                tenant_id=tenant_id,
                already_linked=True,
            )
        except Exception:
            self.store.rollback()
            raise

        AuditService.log_event(
            self.store.db,
            action="INVITE_REDEEMED",
            invite_id=invite_id,
            property_id=property_id,
            from_status=InviteStatus.ACTIVE.value,
            to_status=InviteStatus.REDEEMED.value,
            actor_user_id=tenant_id,
        )
        AuditService.log_event(
            self.store.db,
            action="TENANT_LINK_CREATED",
            invite_id=invite_id,
            property_id=property_id,
            actor_user_id=tenant_id,
            metadata={"link_id": link_id},
        )
        self.store.commit()

        logger.info(
            "Invite redeemed",
            extra={"invite_id": invite_id, "link_id": link_id, "tenant_id": tenant_id},
        )
        return RedemptionResult(
            outcome=InviteOutcome.SUCCESS,
            property_link_id=link_id,
            tenant_id=tenant_id,
        )

    def _replay(self, invite: Optional[PropertyInvite], property_id_hint, user: Optional[User]) -> Optional[RedemptionResult]:
        """Success for the original redeemer repeating the call; None otherwise."""
        if invite is None or user is None:
            return None
        if invite.status != InviteStatus.REDEEMED.value or invite.redeemed_by != user.id:
            return None
        if check_invite(invite, property_id_hint, self.clock()) == InviteOutcome.PROPERTY_MISMATCH:
            return None
        link = self.store.get_active_link(user.id, invite.property_id)
        if link is None:
            return None
        logger.info("Repeated redemption by original tenant", extra={"invite_id": invite.id, "link_id": link.id})
        return RedemptionResult(
            outcome=InviteOutcome.SUCCESS,
            property_link_id=link.id,
            tenant_id=user.id,
            already_linked=True,
        )

    def _after_lost_claim(self, invite_id: int, property_id_hint, tenant_id: Optional[int]) -> RedemptionResult:
        invite = self.store.get_invite(invite_id)
        if tenant_id is not None:
            user = self.store.get_user(tenant_id)
            replay = self._replay(invite, property_id_hint, user)
            if replay is not None:
                return replay

        outcome = check_invite(invite, property_id_hint, self.clock())
        if outcome == InviteOutcome.VALID:
            # Row was ACTIVE but the conditional update matched nothing: it
            # expired between the pre-check and the claim.
            outcome = InviteOutcome.EXPIRED
        return self._reject(outcome, invite)

    def _reject(self, outcome: InviteOutcome, invite: Optional[PropertyInvite]) -> RedemptionResult:
        logger.info(
            "Invite redemption rejected",
            extra={
                "invite_id": invite.id if invite is not None else None,
                "rejection_reason": REJECTION_REASONS.get(outcome, outcome.value),
            },
        )
        return RedemptionResult(outcome=outcome)
