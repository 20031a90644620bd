"""Field Vault — Encryption at rest for individual record fields.

Security Note (Threat Model):
    The master secret lives in process memory for the process lifetime and
    derived keys exist briefly during each call. A memory dump of the
    application process could expose them. Mitigation requires HSM/KMS
    integration which is out of scope.
"""

from .field_cipher import FieldCipher
from .config import VaultConfig, load_master_secret, generate_master_secret
from .envelope import EnvelopeLayout, EnvelopeParts, pack, unpack

__all__ = [
    "FieldCipher",
    "VaultConfig",
    "load_master_secret",
    "generate_master_secret",
    "EnvelopeLayout",
    "EnvelopeParts",
    "pack",
    "unpack",
]
