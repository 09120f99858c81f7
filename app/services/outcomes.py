from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..models.invite import PropertyInvite


class InviteOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    VALID = "VALID"
    INVALID = "INVALID"
    EXPIRED = "EXPIRED"
    ALREADY_USED = "ALREADY_USED"
    PROPERTY_MISMATCH = "PROPERTY_MISMATCH"
    UNAUTHORIZED = "UNAUTHORIZED"
    ACCOUNT_CREATION_FAILED = "ACCOUNT_CREATION_FAILED"
    NOT_FOUND = "NOT_FOUND"


# INVALID and PROPERTY_MISMATCH share a message so a tampered property hint
# tells the caller nothing about which property the token belongs to.
OUTCOME_MESSAGES = {
    InviteOutcome.SUCCESS: "Done.",
    InviteOutcome.VALID: "This invite link is valid.",
    InviteOutcome.INVALID: "This invite link is no longer valid.",
    InviteOutcome.PROPERTY_MISMATCH: "This invite link is no longer valid.",
    InviteOutcome.EXPIRED: "This invite link has expired. Ask your landlord for a new one.",
    InviteOutcome.ALREADY_USED: "This invite link has already been used.",
    InviteOutcome.UNAUTHORIZED: "You are not allowed to do this.",
    InviteOutcome.ACCOUNT_CREATION_FAILED: "We couldn't finish setting up your account. Please try again.",
    InviteOutcome.NOT_FOUND: "Invite not found.",
}


def outcome_message(outcome: InviteOutcome) -> str:
    return OUTCOME_MESSAGES[outcome]


@dataclass
class PropertyPreview:
    name: str
    address: Optional[str] = None


@dataclass
class IssueResult:
    outcome: InviteOutcome
    invite: Optional[PropertyInvite] = None
    token: Optional[str] = None
    invite_url: Optional[str] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.invite.expires_at if self.invite is not None else None


@dataclass
class ValidationResult:
    outcome: InviteOutcome
    preview: Optional[PropertyPreview] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome == InviteOutcome.VALID


@dataclass
class RedemptionResult:
    outcome: InviteOutcome
    property_link_id: Optional[int] = None
    tenant_id: Optional[int] = None
    already_linked: bool = False


@dataclass
class RevocationResult:
    outcome: InviteOutcome
