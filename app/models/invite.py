"""Property invite model for the tenant onboarding flow."""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base


class InviteStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REDEEMED = "REDEEMED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class DeliveryMethod(str, Enum):
    EMAIL = "EMAIL"
    CODE = "CODE"
    LINK = "LINK"


INVITE_STATUS_TRANSITIONS: Dict[InviteStatus, FrozenSet[InviteStatus]] = {
    InviteStatus.ACTIVE: frozenset({InviteStatus.REDEEMED, InviteStatus.REVOKED, InviteStatus.EXPIRED}),
    InviteStatus.REDEEMED: frozenset(),
    InviteStatus.EXPIRED: frozenset(),
    InviteStatus.REVOKED: frozenset(),
}

TERMINAL_INVITE_STATUSES: FrozenSet[InviteStatus] = frozenset({
    InviteStatus.REDEEMED,
    InviteStatus.EXPIRED,
    InviteStatus.REVOKED,
})


class PropertyInvite(Base):
    """
    Single-use invite letting one person attach themselves to a property as a tenant.

    Only the SHA-256 digest of the token is stored; the raw token is handed to
    the landlord once, when the invite is issued. Rows are kept for audit and
    never deleted.

    EXPIRED is usually not persisted: an ACTIVE row past ``expires_at`` reads as
    expired (see ``effective_status``). The sweep job may persist it later.
    """
    __tablename__ = "property_invites"

    id = Column(Integer, primary_key=True, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    issuer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Delivery hint only, never checked at redemption
    intended_email = Column(String(255), nullable=True)
    delivery_method = Column(String(20), nullable=False, default=DeliveryMethod.LINK.value)

    status = Column(String(20), nullable=False, default=InviteStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    redeemed_at = Column(DateTime, nullable=True)
    redeemed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    property = relationship("Property", back_populates="invites")
    issuer = relationship("User", foreign_keys=[issuer_id])
    redeemer = relationship("User", foreign_keys=[redeemed_by])

    __table_args__ = (
        Index("idx_property_invites_status_expires", "status", "expires_at"),
        CheckConstraint(
            "status IN ('ACTIVE', 'REDEEMED', 'EXPIRED', 'REVOKED')",
            name="ck_property_invites_status",
        ),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return now >= self.expires_at

    def effective_status(self, now: Optional[datetime] = None) -> InviteStatus:
        """Stored status, with ACTIVE past its expiry reported as EXPIRED."""
        status = InviteStatus(self.status)
        if status == InviteStatus.ACTIVE and self.is_expired(now):
            return InviteStatus.EXPIRED
        return status
