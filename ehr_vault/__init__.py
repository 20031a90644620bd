"""EHR Vault.

Field-level encryption at rest with role-gated access for health records.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    KeyDerivationError,
    CryptoUnavailable,
    IntegrityError,
    MalformedEnvelope,
    AccessDenied,
)
from .policy import AccessPolicy, Permission, Principal, Role
from .vault import FieldCipher, VaultConfig
from .records import RecordProtector

__all__ = (
    "__version__",
    "VaultError",
    "KeyDerivationError",
    "CryptoUnavailable",
    "IntegrityError",
    "MalformedEnvelope",
    "AccessDenied",
    "AccessPolicy",
    "Permission",
    "Principal",
    "Role",
    "FieldCipher",
    "VaultConfig",
    "RecordProtector",
)
