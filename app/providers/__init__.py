from .base import (
    AccountProvisionerBase,
    AccountProvisioningError,
    NewTenantAccount,
    PreparedAccount,
    TenantIdentity,
)
from .local import LocalAccountProvisioner

__all__ = [
    "AccountProvisionerBase",
    "AccountProvisioningError",
    "NewTenantAccount",
    "PreparedAccount",
    "TenantIdentity",
    "LocalAccountProvisioner",
]
