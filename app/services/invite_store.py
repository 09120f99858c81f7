"""Durable invite and tenant-link records.

The store is the single point of concurrency control for invites: every
status change is one conditional UPDATE guarded by the current status, never
a read followed by a write. Callers own the transaction boundary
(``commit`` / ``rollback``) so a claim and the rows that depend on it can
commit or disappear together.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.invite import PropertyInvite, InviteStatus
from ..models.property import Property
from ..models.tenant_link import TenantPropertyLink
from ..models.user import User
from ..state_machine import can_transition

logger = logging.getLogger(__name__)


class InviteStoreError(Exception):
    pass


class StorageError(InviteStoreError):
    """Infrastructure failure. Safe to retry with backoff."""
    pass


class TokenCollisionError(InviteStoreError):
    pass


class DuplicateLinkError(InviteStoreError):
    pass


class DuplicateAccountError(InviteStoreError):
    pass


class InviteStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except InviteStoreError:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Invite store failure during {operation}: {e.__class__.__name__}")
            raise StorageError(f"Invite store unavailable during {operation}") from e

    # -- transaction control -------------------------------------------------

    def commit(self) -> None:
        with self._guard("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # -- reads ---------------------------------------------------------------

    def get_property(self, property_id: int) -> Optional[Property]:
        with self._guard("get_property"):
            return self.db.get(Property, property_id)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._guard("get_user"):
            return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._guard("get_user_by_email"):
            return self.db.scalar(select(User).where(User.email == email))

    def get_invite(self, invite_id: int) -> Optional[PropertyInvite]:
        with self._guard("get_invite"):
            return self.db.get(PropertyInvite, invite_id, populate_existing=True)

    def find_by_token_hash(self, token_hash: str) -> Optional[PropertyInvite]:
        with self._guard("find_by_token_hash"):
            return self.db.scalar(
                select(PropertyInvite)
                .where(PropertyInvite.token_hash == token_hash)
                .execution_options(populate_existing=True)
            )

    def list_invites_for_property(self, property_id: int) -> List[PropertyInvite]:
        with self._guard("list_invites_for_property"):
            return list(self.db.scalars(
                select(PropertyInvite)
                .where(PropertyInvite.property_id == property_id)
                .order_by(PropertyInvite.created_at.desc(), PropertyInvite.id.desc())
            ))

    def get_active_link(self, tenant_id: int, property_id: int) -> Optional[TenantPropertyLink]:
        with self._guard("get_active_link"):
            return self.db.scalar(
                select(TenantPropertyLink)
                .where(
                    TenantPropertyLink.tenant_id == tenant_id,
                    TenantPropertyLink.property_id == property_id,
                    TenantPropertyLink.is_active.is_(True),
                )
                .execution_options(populate_existing=True)
            )

    def get_link(self, link_id: int) -> Optional[TenantPropertyLink]:
        with self._guard("get_link"):
            return self.db.get(TenantPropertyLink, link_id)

    def list_active_links_for_tenant(self, tenant_id: int) -> List[TenantPropertyLink]:
        with self._guard("list_active_links_for_tenant"):
            return list(self.db.scalars(
                select(TenantPropertyLink)
                .where(
                    TenantPropertyLink.tenant_id == tenant_id,
                    TenantPropertyLink.is_active.is_(True),
                )
                .order_by(TenantPropertyLink.created_at.desc())
            ))

    def list_links_for_property(self, property_id: int) -> List[TenantPropertyLink]:
        with self._guard("list_links_for_property"):
            return list(self.db.scalars(
                select(TenantPropertyLink)
                .where(TenantPropertyLink.property_id == property_id)
                .order_by(TenantPropertyLink.created_at.desc())
            ))

    # -- writes --------------------------------------------------------------

    def insert_invite(self, invite: PropertyInvite) -> PropertyInvite:
        """Add and flush a new invite. A digest collision rolls back and raises TokenCollisionError."""
        with self._guard("insert_invite"):
            try:
                self.db.add(invite)
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise TokenCollisionError("Invite token digest already exists") from e
        return invite

    def insert_link(self, link: TenantPropertyLink) -> TenantPropertyLink:
        with self._guard("insert_link"):
            try:
                self.db.add(link)
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise DuplicateLinkError(
                    f"Active link already exists for tenant {link.tenant_id} and property {link.property_id}"
                ) from e
        return link

    def add_user(self, user: User) -> User:
        with self._guard("add_user"):
            try:
                self.db.add(user)
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise DuplicateAccountError(f"Account already exists for {user.email}") from e
        return user

    # -- conditional transitions ---------------------------------------------

    @staticmethod
    def _can_move(invite: PropertyInvite, target: InviteStatus) -> bool:
        """Skip the UPDATE when the loaded row is already past ACTIVE."""
        current = InviteStatus(invite.status)
        if can_transition(current, target):
            return True
        logger.debug(
            f"Invite {invite.id} is {current.value}; not attempting {target.value}",
        )
        return False

    def claim(self, invite: PropertyInvite, now: datetime, tenant_id: Optional[int] = None) -> bool:
        """
        Atomically move an invite from ACTIVE to REDEEMED.

        One conditional UPDATE; it matches only while the row is still ACTIVE
        and unexpired, so of any number of concurrent claims at most one sees
        rowcount == 1. The claim is not committed here.
        """
        if not self._can_move(invite, InviteStatus.REDEEMED):
            return False
        values = {"status": InviteStatus.REDEEMED.value, "redeemed_at": now}
        if tenant_id is not None:
            values["redeemed_by"] = tenant_id
        with self._guard("claim"):
            result = self.db.execute(
                update(PropertyInvite)
                .where(
                    PropertyInvite.id == invite.id,
                    PropertyInvite.status == InviteStatus.ACTIVE.value,
                    PropertyInvite.expires_at > now,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        self.db.expire(invite)
        return result.rowcount == 1

    def record_redeemer(self, invite: PropertyInvite, tenant_id: int) -> None:
        """Set redeemed_by on a row this transaction has already claimed."""
        with self._guard("record_redeemer"):
            self.db.execute(
                update(PropertyInvite)
                .where(
                    PropertyInvite.id == invite.id,
                    PropertyInvite.status == InviteStatus.REDEEMED.value,
                    PropertyInvite.redeemed_by.is_(None),
                )
                .values(redeemed_by=tenant_id)
                .execution_options(synchronize_session=False)
            )
        self.db.expire(invite)

    def revoke(self, invite: PropertyInvite, issuer_id: int, now: datetime) -> bool:
        if not self._can_move(invite, InviteStatus.REVOKED):
            return False
        with self._guard("revoke"):
            result = self.db.execute(
                update(PropertyInvite)
                .where(
                    PropertyInvite.id == invite.id,
                    PropertyInvite.issuer_id == issuer_id,
                    PropertyInvite.status == InviteStatus.ACTIVE.value,
                    PropertyInvite.expires_at > now,
                )
                .values(status=InviteStatus.REVOKED.value, revoked_at=now)
                .execution_options(synchronize_session=False)
            )
        self.db.expire(invite)
        return result.rowcount == 1

    def sweep_expired(self, now: datetime) -> int:
        """Persist EXPIRED for ACTIVE rows past their expiry. Returns rows marked."""
        with self._guard("sweep_expired"):
            result = self.db.execute(
                update(PropertyInvite)
                .where(
                    PropertyInvite.status == InviteStatus.ACTIVE.value,
                    PropertyInvite.expires_at <= now,
                )
                .values(status=InviteStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount or 0
