import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import urlencode

from ..models.invite import PropertyInvite, InviteStatus, DeliveryMethod
from ..models.user import User
from .access_policy import AccessPolicyEnforcer
from .audit import AuditService
from .invite_store import InviteStore, StorageError, TokenCollisionError
from .outcomes import InviteOutcome, IssueResult, RevocationResult
from .token_codec import TokenCodec

logger = logging.getLogger(__name__)

DEFAULT_INVITE_TTL = timedelta(days=7)


def build_invite_url(base_url: str, token: str, property_id: int) -> str:
    query = urlencode({"t": token, "property": property_id})
    return f"{base_url.rstrip('/')}/invite?{query}"


class InviteIssuer:
    """Creates and revokes invites on behalf of the landlord who owns the property."""

    def __init__(
        self,
        store: InviteStore,
        codec: TokenCodec,
        policy: AccessPolicyEnforcer,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_attempts: int = 3,
        link_base_url: Optional[str] = None,
    ):
        self.store = store
        self.codec = codec
        self.policy = policy
        self.clock = clock
        self.max_attempts = max_attempts
        self.link_base_url = link_base_url

    def issue(
        self,
        property_id: int,
        issuer: User,
        delivery_method: DeliveryMethod = DeliveryMethod.LINK,
        intended_email: Optional[str] = None,
        ttl: timedelta = DEFAULT_INVITE_TTL,
    ) -> IssueResult:
        if ttl <= timedelta(0):
            raise ValueError("Invite TTL must be positive")

        prop = self.store.get_property(property_id)
        if not self.policy.can_issue(issuer, prop):
            logger.warning(
                "Invite issue denied",
                extra={"property_id": property_id, "user_id": issuer.id if issuer else None},
            )
            return IssueResult(outcome=InviteOutcome.UNAUTHORIZED)

        for attempt in range(1, self.max_attempts + 1):
            token = self.codec.generate()
            now = self.clock()
            invite = PropertyInvite(
                token_hash=self.codec.digest(token),
                property_id=prop.id,
                issuer_id=issuer.id,
                intended_email=intended_email,
                delivery_method=DeliveryMethod(delivery_method).value,
                status=InviteStatus.ACTIVE.value,
                created_at=now,
                expires_at=now + ttl,
            )
            try:
                self.store.insert_invite(invite)
            except TokenCollisionError:
                logger.warning(f"Invite token collision on attempt {attempt}/{self.max_attempts}")
                continue

            AuditService.log_invite_created(self.store.db, invite, actor_user_id=issuer.id)
            self.store.commit()

            logger.info(
                "Invite issued",
                extra={"invite_id": invite.id, "property_id": prop.id, "expires_at": invite.expires_at.isoformat()},
            )
            invite_url = build_invite_url(self.link_base_url, token, prop.id) if self.link_base_url else None
            return IssueResult(
                outcome=InviteOutcome.SUCCESS,
                invite=invite,
                token=token,
                invite_url=invite_url,
            )

        raise StorageError(f"Could not store a unique invite token after {self.max_attempts} attempts")

    def list_invites(self, property_id: int, user: User):
        """Invites for a property, newest first. Returns None when the caller may not see them."""
        prop = self.store.get_property(property_id)
        if not self.policy.can_list_invites(user, prop):
            return None
        return [
            invite for invite in self.store.list_invites_for_property(property_id)
            if invite.issuer_id == user.id
        ]

    def revoke(self, token: str, issuer: User) -> RevocationResult:
        if not self.codec.looks_like_token(token):
            return RevocationResult(outcome=InviteOutcome.NOT_FOUND)
        invite = self.store.find_by_token_hash(self.codec.digest(token))
        return self._revoke(invite, issuer)

    def revoke_by_id(self, invite_id: int, issuer: User, property_id: Optional[int] = None) -> RevocationResult:
        invite = self.store.get_invite(invite_id)
        if invite is not None and property_id is not None and invite.property_id != property_id:
            invite = None
        return self._revoke(invite, issuer)

    def _revoke(self, invite: Optional[PropertyInvite], issuer: User) -> RevocationResult:
        if invite is None:
            return RevocationResult(outcome=InviteOutcome.NOT_FOUND)

        prop = self.store.get_property(invite.property_id)
        if not self.policy.can_revoke(issuer, invite, prop):
            logger.warning(
                "Invite revoke denied",
                extra={"invite_id": invite.id, "user_id": issuer.id if issuer else None},
            )
            return RevocationResult(outcome=InviteOutcome.UNAUTHORIZED)

        now = self.clock()
        if not self.store.revoke(invite, issuer.id, now):
            self.store.rollback()
            logger.info(
                "Revoke rejected, invite no longer active",
                extra={"invite_id": invite.id, "rejection_reason": "TOKEN_ALREADY_USED"},
            )
            return RevocationResult(outcome=InviteOutcome.ALREADY_USED)

        AuditService.log_invite_transition(
            self.store.db,
            invite,
            action="INVITE_REVOKED",
            from_status=InviteStatus.ACTIVE,
            to_status=InviteStatus.REVOKED,
            actor_user_id=issuer.id,
        )
        self.store.commit()
        logger.info("Invite revoked", extra={"invite_id": invite.id})
        return RevocationResult(outcome=InviteOutcome.SUCCESS)
