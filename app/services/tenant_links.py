from typing import List, Optional

from ..models.tenant_link import TenantPropertyLink
from ..models.user import User
from .access_policy import AccessPolicyEnforcer
from .invite_store import InviteStore


class TenantLinkService:
    """Read access to tenant-property links. This core never mutates an existing link."""

    def __init__(self, store: InviteStore, policy: AccessPolicyEnforcer):
        self.store = store
        self.policy = policy

    def links_for_tenant(self, user: User) -> List[TenantPropertyLink]:
        return [
            link for link in self.store.list_active_links_for_tenant(user.id)
            if self.policy.can_read_link(user, link, link.property)
        ]

    def links_for_property(self, property_id: int, user: User) -> Optional[List[TenantPropertyLink]]:
        """None when the caller does not own the property."""
        prop = self.store.get_property(property_id)
        if not self.policy.owns_property(user, prop):
            return None
        return [
            link for link in self.store.list_links_for_property(property_id)
            if self.policy.can_read_link(user, link, prop)
        ]

    def get_link(self, link_id: int, user: User) -> Optional[TenantPropertyLink]:
        link = self.store.get_link(link_id)
        if link is None:
            return None
        prop = self.store.get_property(link.property_id)
        if not self.policy.can_read_link(user, link, prop):
            return None
        return link
