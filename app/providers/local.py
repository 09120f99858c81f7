import logging

from ..models.user import User, UserRole
from ..services.auth import AuthService, normalize_email
from ..services.invite_store import DuplicateAccountError
from .base import AccountProvisionerBase, AccountProvisioningError, NewTenantAccount, PreparedAccount

logger = logging.getLogger(__name__)


class LocalAccountProvisioner(AccountProvisionerBase):
    """Creates tenant accounts in the application's own users table."""

    def prepare(self, account: NewTenantAccount) -> PreparedAccount:
        email = normalize_email(account.email)
        if not email or "@" not in email:
            raise AccountProvisioningError("A valid email is required to create an account")
        problem = AuthService.password_problem(account.password)
        if problem:
            raise AccountProvisioningError(problem)
        return PreparedAccount(
            email=email,
            password_hash=AuthService.get_password_hash(account.password),
            full_name=account.full_name,
        )

    def provision(self, store, prepared: PreparedAccount) -> User:
        if store.get_user_by_email(prepared.email) is not None:
            raise AccountProvisioningError("An account with this email already exists")
        user = User(
            email=prepared.email,
            password_hash=prepared.password_hash,
            full_name=prepared.full_name,
            role=UserRole.TENANT.value,
            is_active=True,
        )
        try:
            store.add_user(user)
        except DuplicateAccountError as e:
            raise AccountProvisioningError("An account with this email already exists") from e
        logger.info("Tenant account provisioned", extra={"user_id": user.id})
        return user
