"""
Vault Configuration — Master secret loading and validated settings.

Reads the master secret and tuning values from environment variables:
    EHR_VAULT_MASTER_SECRET = <base64-encoded secret>
    EHR_VAULT_KDF_ITERATIONS = <integer, >= 100000>
    EHR_VAULT_CIPHER_BACKEND = aesgcm | chacha20

Security Note:
    Never log the master secret. Only log lengths, iteration counts and the
    cipher backend name.
"""
import os
import base64
import binascii
import secrets
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from .envelope import EnvelopeLayout

logger = logging.getLogger("ehr.vault")

MASTER_SECRET_ENV = "EHR_VAULT_MASTER_SECRET"
ITERATIONS_ENV = "EHR_VAULT_KDF_ITERATIONS"
CIPHER_BACKEND_ENV = "EHR_VAULT_CIPHER_BACKEND"

MIN_KDF_ITERATIONS = 100_000
SALT_LENGTH = 64
NONCE_LENGTH = 16
TAG_LENGTH = 16  # AES-GCM / Poly1305 tag
KEY_LENGTH = 32  # AES-256

SUPPORTED_BACKENDS = ("aesgcm", "chacha20")


def load_master_secret() -> bytes:
    """Load the master secret from EHR_VAULT_MASTER_SECRET.

    Returns:
        Raw secret bytes.

    Raises:
        RuntimeError: If the variable is unset or empty.
        ValueError: If the value is not valid base64.
    """
    raw = os.environ.get(MASTER_SECRET_ENV)
    if not raw:
        raise RuntimeError(
            f"No vault master secret found in environment. "
            f"Set {MASTER_SECRET_ENV}=<base64-encoded-secret>"
        )
    try:
        secret = base64.b64decode(raw, validate=True)
    except binascii.Error as err:
        raise ValueError(f"{MASTER_SECRET_ENV} is not valid base64") from err
    logger.debug("Loaded master secret (%d bytes)", len(secret))
    return secret


def generate_master_secret(length: int = 32) -> str:
    """Generate a random master secret and return it as base64 string.

    This is a utility for operators provisioning a new deployment.
    """
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated vault configuration.

    The envelope lengths are part of the persisted format: changing any of
    them makes previously stored envelopes unreadable.
    """

    master_secret: bytes = Field(repr=False)
    salt_length: int = Field(default=SALT_LENGTH, ge=16)
    nonce_length: int = Field(default=NONCE_LENGTH, ge=8, le=128)
    tag_length: int = Field(default=TAG_LENGTH)
    key_length: int = Field(default=KEY_LENGTH)
    kdf_iterations: int = Field(default=MIN_KDF_ITERATIONS, ge=MIN_KDF_ITERATIONS)
    cipher_backend: str = Field(default="aesgcm")

    model_config = {"frozen": True}

    @field_validator("master_secret")
    @classmethod
    def validate_secret(cls, v: bytes) -> bytes:
        """Master secret must be non-empty."""
        if not v:
            raise ValueError("master_secret cannot be empty")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("tag_length")
    @classmethod
    def validate_tag(cls, v: int) -> int:
        if v != TAG_LENGTH:
            raise ValueError(f"tag_length must be {TAG_LENGTH}, got {v}")
        return v

    @field_validator("key_length")
    @classmethod
    def validate_key_length(cls, v: int) -> int:
        if v != KEY_LENGTH:
            raise ValueError(f"key_length must be {KEY_LENGTH}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_nonce_for_backend(self) -> "VaultConfig":
        """ChaCha20-Poly1305 only accepts 96-bit nonces."""
        if self.cipher_backend == "chacha20" and self.nonce_length != 12:
            raise ValueError(
                f"chacha20 backend requires nonce_length 12, "
                f"got {self.nonce_length}"
            )
        return self

    @property
    def layout(self) -> EnvelopeLayout:
        """Fixed segment lengths of the persisted envelope."""
        return EnvelopeLayout(
            salt_length=self.salt_length,
            nonce_length=self.nonce_length,
            tag_length=self.tag_length,
        )

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        master_secret = load_master_secret()
        values = {"master_secret": master_secret}
        iterations = os.environ.get(ITERATIONS_ENV)
        if iterations is not None:
            values["kdf_iterations"] = int(iterations)
        backend = os.environ.get(CIPHER_BACKEND_ENV)
        if backend is not None:
            values["cipher_backend"] = backend
            if backend.lower() == "chacha20":
                values["nonce_length"] = 12
        return cls(**values)
