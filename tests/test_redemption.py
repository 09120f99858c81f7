import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models.audit import AuditEvent
from app.models.invite import PropertyInvite, InviteStatus
from app.models.property import Property
from app.models.tenant_link import TenantPropertyLink
from app.models.user import User, UserRole
from app.providers.base import AccountProvisioningError, TenantIdentity
from app.providers.local import LocalAccountProvisioner
from app.services.access_policy import AccessPolicyEnforcer
from app.services.invite_issuer import InviteIssuer
from app.services.invite_store import InviteStore
from app.services.invite_validator import InviteValidator
from app.services.outcomes import InviteOutcome
from app.services.redemption import RedemptionCoordinator
from app.services.token_codec import TokenCodec

from .conftest import PASSWORD_HASH, FrozenClock


class FailingProvisioner(LocalAccountProvisioner):
    def provision(self, store, prepared):
        raise AccountProvisioningError("identity backend unavailable")


class CrashingProvisioner(LocalAccountProvisioner):
    def provision(self, store, prepared):
        raise RuntimeError("unexpected")


class StaleLinkLookupStore(InviteStore):
    """Misses an existing link on the first lookup, as a racing request would."""

    def __init__(self, db):
        super().__init__(db)
        self._lookups = 0

    def get_active_link(self, tenant_id, property_id):
        self._lookups += 1
        if self._lookups == 1:
            return None
        return super().get_active_link(tenant_id, property_id)


def invite_row(db, invite_id):
    db.expire_all()
    return db.query(PropertyInvite).filter(PropertyInvite.id == invite_id).one()


def link_count(db, property_id, tenant_id=None):
    query = db.query(TenantPropertyLink).filter(TenantPropertyLink.property_id == property_id)
    if tenant_id is not None:
        query = query.filter(TenantPropertyLink.tenant_id == tenant_id)
    return query.count()


class TestRedeemExistingTenant:
    def test_success_links_tenant(self, coordinator, issued, tenant, prop, db, clock):
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.SUCCESS
        assert result.property_link_id is not None
        assert not result.already_linked

        link = db.query(TenantPropertyLink).filter(TenantPropertyLink.id == result.property_link_id).one()
        assert (link.tenant_id, link.property_id, link.is_active) == (tenant.id, prop.id, True)
        assert link.invite_id == issued.invite.id

        row = invite_row(db, issued.invite.id)
        assert row.status == InviteStatus.REDEEMED.value
        assert row.redeemed_by == tenant.id
        assert row.redeemed_at == clock.now

    def test_success_writes_audit_events(self, coordinator, issued, tenant, prop, db):
        coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        actions = {e.action for e in db.query(AuditEvent).filter(AuditEvent.invite_id == issued.invite.id)}
        assert {"INVITE_CREATED", "INVITE_REDEEMED", "TENANT_LINK_CREATED"} <= actions

    def test_scenario_c_repeat_by_same_tenant(self, coordinator, issued, tenant, prop, db):
        first = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        second = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert first.outcome == second.outcome == InviteOutcome.SUCCESS
        assert first.property_link_id == second.property_link_id
        assert second.already_linked
        assert link_count(db, prop.id) == 1

    def test_scenario_d_second_tenant_already_used(self, coordinator, issued, tenant, other_tenant, prop, db):
        coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(other_tenant))
        assert result.outcome == InviteOutcome.ALREADY_USED
        assert result.property_link_id is None
        assert link_count(db, prop.id, other_tenant.id) == 0
        assert invite_row(db, issued.invite.id).redeemed_by == tenant.id

    def test_scenario_e_expired(self, coordinator, issued, tenant, prop, db, clock):
        clock.advance(timedelta(days=7, seconds=1))
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.EXPIRED
        assert link_count(db, prop.id) == 0
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value

    def test_unknown_token_invalid(self, coordinator, tenant, prop):
        result = coordinator.redeem("N" * 43, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.INVALID

    def test_revoked_already_used(self, coordinator, issuer, issued, landlord, tenant, prop, db):
        issuer.revoke(issued.token, landlord)
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.ALREADY_USED
        assert link_count(db, prop.id) == 0


class TestPropertyMismatch:
    def _assert_mismatch_without_transition(self, coordinator, issued, tenant, other_prop, db):
        before = invite_row(db, issued.invite.id).status
        result = coordinator.redeem(issued.token, other_prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.PROPERTY_MISMATCH
        assert invite_row(db, issued.invite.id).status == before

    def test_active(self, coordinator, issued, tenant, other_prop, db):
        self._assert_mismatch_without_transition(coordinator, issued, tenant, other_prop, db)
        assert link_count(db, other_prop.id) == 0

    def test_redeemed(self, coordinator, issued, tenant, prop, other_prop, db):
        coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        self._assert_mismatch_without_transition(coordinator, issued, tenant, other_prop, db)

    def test_revoked(self, coordinator, issuer, issued, landlord, tenant, other_prop, db):
        issuer.revoke(issued.token, landlord)
        self._assert_mismatch_without_transition(coordinator, issued, tenant, other_prop, db)

    def test_expired(self, coordinator, issued, tenant, other_prop, db, clock):
        clock.advance(timedelta(days=10))
        self._assert_mismatch_without_transition(coordinator, issued, tenant, other_prop, db)


class TestRedeemedIsFinal:
    def test_revoke_after_redeem_already_used(self, coordinator, issuer, issued, landlord, tenant, prop, db):
        coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert issuer.revoke(issued.token, landlord).outcome == InviteOutcome.ALREADY_USED
        assert invite_row(db, issued.invite.id).status == InviteStatus.REDEEMED.value

    def test_signup_after_redeem_already_used(self, coordinator, issued, tenant, prop, db):
        coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        result = coordinator.redeem(
            issued.token, prop.id, TenantIdentity.signup("late@example.com", "password123")
        )
        assert result.outcome == InviteOutcome.ALREADY_USED
        assert db.query(User).filter(User.email == "late@example.com").count() == 0
        assert invite_row(db, issued.invite.id).redeemed_by == tenant.id


class TestSignup:
    def test_signup_creates_tenant_and_link(self, coordinator, issued, prop, db):
        result = coordinator.redeem(
            issued.token, prop.id, TenantIdentity.signup("New.Tenant@Example.com", "password123", "New Tenant")
        )
        assert result.outcome == InviteOutcome.SUCCESS

        user = db.query(User).filter(User.email == "new.tenant@example.com").one()
        assert user.role == UserRole.TENANT.value
        assert user.full_name == "New Tenant"
        assert user.password_hash != "password123"
        assert result.tenant_id == user.id

        row = invite_row(db, issued.invite.id)
        assert row.redeemed_by == user.id
        assert link_count(db, prop.id, user.id) == 1

        actions = {e.action for e in db.query(AuditEvent).filter(AuditEvent.invite_id == issued.invite.id)}
        assert "TENANT_ACCOUNT_CREATED" in actions

    def test_short_password_rejected_before_claim(self, coordinator, issued, prop, db):
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.signup("a@example.com", "short"))
        assert result.outcome == InviteOutcome.ACCOUNT_CREATION_FAILED
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value

    def test_existing_email_rolls_back_claim(self, coordinator, issued, tenant, prop, db):
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.signup(tenant.email, "password123"))
        assert result.outcome == InviteOutcome.ACCOUNT_CREATION_FAILED
        row = invite_row(db, issued.invite.id)
        assert row.status == InviteStatus.ACTIVE.value
        assert row.redeemed_at is None
        assert link_count(db, prop.id) == 0

    def test_no_identity_unauthorized(self, coordinator, issued, prop, db):
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity())
        assert result.outcome == InviteOutcome.UNAUTHORIZED
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value


class TestAccountFailureRollback:
    def test_failed_provisioning_leaves_token_redeemable(self, store, validator, policy, clock, issued, prop, db):
        failing = RedemptionCoordinator(store, validator, policy, provisioner=FailingProvisioner(), clock=clock)
        identity = TenantIdentity.signup("retry@example.com", "password123")

        result = failing.redeem(issued.token, prop.id, identity)
        assert result.outcome == InviteOutcome.ACCOUNT_CREATION_FAILED

        row = invite_row(db, issued.invite.id)
        assert row.status == InviteStatus.ACTIVE.value
        assert row.redeemed_at is None
        assert row.redeemed_by is None
        assert row.expires_at == issued.invite.expires_at
        assert link_count(db, prop.id) == 0
        assert db.query(User).filter(User.email == "retry@example.com").count() == 0

        working = RedemptionCoordinator(store, validator, policy, clock=clock)
        assert working.redeem(issued.token, prop.id, identity).outcome == InviteOutcome.SUCCESS

    def test_unexpected_error_rolls_back_and_propagates(self, store, validator, policy, clock, issued, prop, db):
        crashing = RedemptionCoordinator(store, validator, policy, provisioner=CrashingProvisioner(), clock=clock)
        with pytest.raises(RuntimeError):
            crashing.redeem(issued.token, prop.id, TenantIdentity.signup("x@example.com", "password123"))
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value
        assert link_count(db, prop.id) == 0


class TestAuthorization:
    def test_owner_cannot_redeem_own_invite(self, coordinator, issued, landlord, prop, db):
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(landlord))
        assert result.outcome == InviteOutcome.UNAUTHORIZED
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value

    def test_inactive_user_unauthorized(self, coordinator, issued, tenant, prop, db):
        tenant.is_active = False
        db.commit()
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.UNAUTHORIZED


class TestAlreadyLinked:
    def test_linked_tenant_gets_existing_link_and_token_survives(self, coordinator, issuer, tenant, landlord, prop, db):
        first = issuer.issue(prop.id, landlord)
        linked = coordinator.redeem(first.token, prop.id, TenantIdentity.existing(tenant))

        second = issuer.issue(prop.id, landlord)
        result = coordinator.redeem(second.token, prop.id, TenantIdentity.existing(tenant))

        assert result.outcome == InviteOutcome.SUCCESS
        assert result.already_linked
        assert result.property_link_id == linked.property_link_id
        assert invite_row(db, second.invite.id).status == InviteStatus.ACTIVE.value
        assert link_count(db, prop.id) == 1

    def test_link_conflict_after_claim_restores_invite(self, validator, policy, clock, issued, tenant, prop, db):
        existing = TenantPropertyLink(tenant_id=tenant.id, property_id=prop.id, is_active=True)
        db.add(existing)
        db.commit()

        store = StaleLinkLookupStore(db)
        coordinator = RedemptionCoordinator(store, validator, policy, clock=clock)
        result = coordinator.redeem(issued.token, prop.id, TenantIdentity.existing(tenant))

        assert result.outcome == InviteOutcome.SUCCESS
        assert result.property_link_id == existing.id
        assert invite_row(db, issued.invite.id).status == InviteStatus.ACTIVE.value
        assert link_count(db, prop.id) == 1

    def test_reinvite_after_deactivation_creates_new_link(self, coordinator, issuer, tenant, landlord, prop, db):
        first = issuer.issue(prop.id, landlord)
        old = coordinator.redeem(first.token, prop.id, TenantIdentity.existing(tenant))
        link = db.query(TenantPropertyLink).filter(TenantPropertyLink.id == old.property_link_id).one()
        link.is_active = False
        db.commit()

        second = issuer.issue(prop.id, landlord)
        result = coordinator.redeem(second.token, prop.id, TenantIdentity.existing(tenant))
        assert result.outcome == InviteOutcome.SUCCESS
        assert result.property_link_id != old.property_link_id
        assert link_count(db, prop.id, tenant.id) == 2


# =============================================================================
# CONCURRENCY (file-backed database, one session per thread)
# =============================================================================

@pytest.fixture
def race_sessions(tmp_path):
    race_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=race_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=race_engine)
    race_engine.dispose()


def _seed_race(Session, tenant_count):
    clock = FrozenClock()
    session = Session()
    try:
        landlord = User(email="race-landlord@example.com", password_hash=PASSWORD_HASH, role=UserRole.LANDLORD.value)
        session.add(landlord)
        session.flush()
        prop = Property(landlord_id=landlord.id, name="Race House")
        tenants = [
            User(email=f"racer{i}@example.com", password_hash=PASSWORD_HASH, role=UserRole.TENANT.value)
            for i in range(tenant_count)
        ]
        session.add(prop)
        session.add_all(tenants)
        session.commit()

        issued = InviteIssuer(InviteStore(session), TokenCodec(), AccessPolicyEnforcer(), clock=clock).issue(
            prop.id, landlord
        )
        return clock, issued.token, prop.id, [t.id for t in tenants]
    finally:
        session.close()


def as_tenants(tenant_ids):
    return [lambda store, tenant_id=tenant_id: TenantIdentity.existing(store.get_user(tenant_id)) for tenant_id in tenant_ids]


def as_newcomers(count):
    return [
        lambda store, i=i: TenantIdentity.signup(f"newcomer{i}@example.com", "password123")
        for i in range(count)
    ]


def _race(Session, clock, token, property_id, identities):
    """Redeem once per entry in ``identities``, all threads released together."""
    barrier = threading.Barrier(len(identities))

    def redeem_as(identify):
        session = Session()
        try:
            store = InviteStore(session)
            validator = InviteValidator(store, TokenCodec(), clock=clock)
            coordinator = RedemptionCoordinator(store, validator, AccessPolicyEnforcer(), clock=clock)
            identity = identify(store)
            barrier.wait()
            return coordinator.redeem(token, property_id, identity)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(identities)) as pool:
        return list(pool.map(redeem_as, identities))


class TestConcurrentRedemption:
    def test_exactly_one_winner_among_distinct_tenants(self, race_sessions):
        clock, token, property_id, tenant_ids = _seed_race(race_sessions, tenant_count=8)

        results = _race(race_sessions, clock, token, property_id, as_tenants(tenant_ids))

        outcomes = [r.outcome for r in results]
        assert outcomes.count(InviteOutcome.SUCCESS) == 1
        assert outcomes.count(InviteOutcome.ALREADY_USED) == len(tenant_ids) - 1

        session = race_sessions()
        try:
            assert link_count(session, property_id) == 1
            winner = next(r for r in results if r.outcome == InviteOutcome.SUCCESS)
            invite = session.query(PropertyInvite).one()
            assert invite.redeemed_by == winner.tenant_id
        finally:
            session.close()

    def test_scenario_c_double_submit_same_link(self, race_sessions):
        clock, token, property_id, tenant_ids = _seed_race(race_sessions, tenant_count=1)

        results = _race(race_sessions, clock, token, property_id, as_tenants(tenant_ids * 2))

        assert [r.outcome for r in results] == [InviteOutcome.SUCCESS, InviteOutcome.SUCCESS]
        assert results[0].property_link_id == results[1].property_link_id

        session = race_sessions()
        try:
            assert link_count(session, property_id) == 1
        finally:
            session.close()

    def test_exactly_one_signup_wins(self, race_sessions):
        clock, token, property_id, _ = _seed_race(race_sessions, tenant_count=0)

        results = _race(race_sessions, clock, token, property_id, as_newcomers(6))

        outcomes = [r.outcome for r in results]
        assert outcomes.count(InviteOutcome.SUCCESS) == 1
        assert outcomes.count(InviteOutcome.ALREADY_USED) == 5

        session = race_sessions()
        try:
            newcomers = session.query(User).filter(User.email.like("newcomer%")).all()
            assert len(newcomers) == 1
            winner = next(r for r in results if r.outcome == InviteOutcome.SUCCESS)
            assert newcomers[0].id == winner.tenant_id
            assert link_count(session, property_id) == 1
            assert link_count(session, property_id, winner.tenant_id) == 1
            assert session.query(PropertyInvite).one().redeemed_by == winner.tenant_id
        finally:
            session.close()
