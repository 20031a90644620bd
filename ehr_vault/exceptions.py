"""
Vault exceptions.

Every failure in the vault is fatal to the call that raised it. None of them
are transient, so callers must not retry with the same inputs.
"""


class VaultError(Exception):
    """Base class for all field vault errors."""


class KeyDerivationError(VaultError, ValueError):
    """Key derivation inputs are invalid or the KDF primitive is unavailable."""


class CryptoUnavailable(VaultError, RuntimeError):
    """The AEAD cipher primitive could not be initialized."""


class IntegrityError(VaultError):
    """Authentication tag did not verify.

    Raised for tampered or corrupted envelopes and for envelopes sealed
    under a different master secret. No plaintext is ever returned.
    """


class MalformedEnvelope(VaultError, ValueError):
    """Stored envelope is structurally invalid (bad encoding or truncated)."""


class AccessDenied(VaultError, PermissionError):
    """Principal's role does not grant the requested permission."""

    def __init__(self, role: str, permission: str):
        self.role = role
        self.permission = permission
        super().__init__(
            f"Role '{role}' is not granted permission '{permission}'"
        )
