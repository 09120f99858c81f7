import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from ..models.invite import PropertyInvite, InviteStatus
from ..models.property import Property
from .invite_store import InviteStore
from .outcomes import InviteOutcome, PropertyPreview, ValidationResult
from .token_codec import TokenCodec

logger = logging.getLogger(__name__)

REJECTION_REASONS = {
    InviteOutcome.INVALID: "INVALID_TOKEN",
    InviteOutcome.EXPIRED: "TOKEN_EXPIRED",
    InviteOutcome.ALREADY_USED: "TOKEN_ALREADY_USED",
    InviteOutcome.PROPERTY_MISMATCH: "PROPERTY_MISMATCH",
}


def check_invite(
    invite: Optional[PropertyInvite],
    property_id_hint,
    now: datetime,
) -> InviteOutcome:
    """
    Side-effect-free checks shared by validation and redemption.

    Order matters: an unknown token is INVALID, and a hint that does not
    match the bound property is PROPERTY_MISMATCH whatever state the invite
    is in, so a tampered link learns nothing about the token. Expiry then
    wins over the stored status.
    """
    if invite is None:
        return InviteOutcome.INVALID
    if not _hint_matches(invite.property_id, property_id_hint):
        return InviteOutcome.PROPERTY_MISMATCH
    if invite.is_expired(now) or invite.status == InviteStatus.EXPIRED.value:
        return InviteOutcome.EXPIRED
    if invite.status in (InviteStatus.REDEEMED.value, InviteStatus.REVOKED.value):
        return InviteOutcome.ALREADY_USED
    return InviteOutcome.VALID


def _hint_matches(property_id: int, hint) -> bool:
    if hint is None:
        return False
    try:
        return int(hint) == property_id
    except (TypeError, ValueError):
        return False


class InviteValidator:
    """Read-only, pre-authentication check of an invite token."""

    def __init__(
        self,
        store: InviteStore,
        codec: TokenCodec,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.codec = codec
        self.clock = clock

    def lookup(self, token: str) -> Optional[PropertyInvite]:
        if not self.codec.looks_like_token(token):
            return None
        return self.store.find_by_token_hash(self.codec.digest(token))

    def check(self, token: str, property_id_hint) -> Tuple[InviteOutcome, Optional[PropertyInvite]]:
        invite = self.lookup(token)
        outcome = check_invite(invite, property_id_hint, self.clock())
        if outcome != InviteOutcome.VALID:
            logger.info(
                "Invite check rejected",
                extra={
                    "invite_id": invite.id if invite is not None else None,
                    "rejection_reason": REJECTION_REASONS[outcome],
                },
            )
        return outcome, invite

    def validate(self, token: str, property_id_hint) -> ValidationResult:
        outcome, invite = self.check(token, property_id_hint)
        if outcome != InviteOutcome.VALID:
            return ValidationResult(outcome=outcome)

        prop: Optional[Property] = self.store.get_property(invite.property_id)
        if prop is None:
            return ValidationResult(outcome=InviteOutcome.INVALID)
        return ValidationResult(
            outcome=InviteOutcome.VALID,
            preview=PropertyPreview(name=prop.name, address=prop.address),
        )
