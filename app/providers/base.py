from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..models.user import User


class AccountProvisioningError(Exception):
    pass


@dataclass
class NewTenantAccount:
    email: str
    password: str
    full_name: Optional[str] = None


@dataclass
class PreparedAccount:
    email: str
    password_hash: str
    full_name: Optional[str] = None


@dataclass
class TenantIdentity:
    """Who is redeeming: an authenticated user, or someone signing up."""
    user: Optional[User] = None
    new_account: Optional[NewTenantAccount] = None

    @classmethod
    def existing(cls, user: User) -> "TenantIdentity":
        return cls(user=user)

    @classmethod
    def signup(cls, email: str, password: str, full_name: Optional[str] = None) -> "TenantIdentity":
        return cls(new_account=NewTenantAccount(email=email, password=password, full_name=full_name))

    @property
    def is_new(self) -> bool:
        return self.user is None


class AccountProvisionerBase(ABC):
    @abstractmethod
    def prepare(self, account: NewTenantAccount) -> PreparedAccount:
        """Slow, side-effect-free work done before the invite is claimed."""
        pass

    @abstractmethod
    def provision(self, store, prepared: PreparedAccount) -> User:
        """Create the tenant account inside the redeeming transaction."""
        pass
