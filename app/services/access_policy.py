"""Authorization rules for invites and tenant links.

Each rule is a named predicate over plain model objects, so it can be tested
without a database and mirrored in native row-level policies if the storage
engine has them. A failed predicate is reported by callers as UNAUTHORIZED,
never as INVALID / EXPIRED / ALREADY_USED.
"""
from typing import Optional

from ..models.invite import PropertyInvite
from ..models.property import Property
from ..models.tenant_link import TenantPropertyLink
from ..models.user import User, UserRole


class AccessPolicyEnforcer:
    @staticmethod
    def _is_active(user: Optional[User]) -> bool:
        return user is not None and bool(user.is_active)

    @staticmethod
    def owns_property(user: Optional[User], prop: Optional[Property]) -> bool:
        if not AccessPolicyEnforcer._is_active(user) or prop is None:
            return False
        return user.role == UserRole.LANDLORD.value and prop.landlord_id == user.id

    def can_issue(self, user: Optional[User], prop: Optional[Property]) -> bool:
        return self.owns_property(user, prop)

    def can_list_invites(self, user: Optional[User], prop: Optional[Property]) -> bool:
        return self.owns_property(user, prop)

    def can_read_invite(self, user: Optional[User], invite: PropertyInvite, prop: Optional[Property]) -> bool:
        return self.owns_property(user, prop) and invite.issuer_id == user.id

    def can_revoke(self, user: Optional[User], invite: PropertyInvite, prop: Optional[Property]) -> bool:
        return self.can_read_invite(user, invite, prop)

    def can_redeem(self, user: Optional[User], prop: Property) -> bool:
        """
        Redemption needs no prior authentication; ``user`` is None for a
        sign-up. An authenticated principal must be active and must not own
        the property it would join as a tenant.
        """
        if user is None:
            return True
        if not user.is_active:
            return False
        return prop.landlord_id != user.id

    def can_read_link(
        self,
        user: Optional[User],
        link: TenantPropertyLink,
        prop: Optional[Property],
    ) -> bool:
        if not self._is_active(user):
            return False
        if link.tenant_id == user.id:
            return bool(link.is_active)
        return self.owns_property(user, prop)
