"""
FieldCipher — Encrypts and decrypts individual record fields.

Provides the public API of the vault:
- ``encrypt_field(text)`` / ``decrypt_field(envelope)`` for text columns
- ``encrypt_value(value)`` / ``decrypt_value(envelope)`` for any
  JSON-compatible value

FieldCipher does not know which fields are sensitive; that mapping belongs
to its caller (see :class:`ehr_vault.records.RecordProtector`). Callers
must authorize the principal before calling into it.

Security Note:
    Never log plaintext, envelopes or the master secret. Instances are
    immutable after construction and safe to share between threads.
"""
import os
import logging
from typing import Any

from ..exceptions import IntegrityError, MalformedEnvelope
from .config import VaultConfig
from .crypto import (
    derive_key,
    get_cipher_cls,
    seal,
    open_sealed,
    serialize_value,
    deserialize_value,
)
from .envelope import pack, unpack

logger = logging.getLogger("ehr.vault")


class FieldCipher:
    """Field-level encryption bound to one master secret.

    Every call to :meth:`encrypt_field` draws a fresh salt and nonce, so
    encrypting the same text twice yields two different envelopes.
    """

    def __init__(self, config: VaultConfig):
        self._config = config
        self._layout = config.layout
        self._cipher_cls = get_cipher_cls(config.cipher_backend)

    @classmethod
    def from_env(cls) -> "FieldCipher":
        """Build a FieldCipher from ``VaultConfig.from_env()``."""
        return cls(VaultConfig.from_env())

    @property
    def layout(self):
        return self._layout

    def _derive(self, salt: bytes) -> bytes:
        return derive_key(
            self._config.master_secret,
            salt,
            salt_length=self._config.salt_length,
            iterations=self._config.kdf_iterations,
            length=self._config.key_length,
        )

    # ------------------------------------------------------------------
    # Raw bytes
    # ------------------------------------------------------------------

    def encrypt_bytes(self, plaintext: bytes) -> str:
        """Seal raw bytes into an envelope string."""
        salt = os.urandom(self._config.salt_length)
        nonce = os.urandom(self._config.nonce_length)
        key = self._derive(salt)
        ciphertext, tag = seal(plaintext, key, nonce, self._cipher_cls)
        return pack(self._layout, salt, nonce, tag, ciphertext)

    def decrypt_bytes(self, envelope: str) -> bytes:
        """Open an envelope string back into raw bytes.

        Raises:
            MalformedEnvelope: If the envelope is structurally invalid.
            IntegrityError: If the envelope was tampered with or sealed
                under another master secret.
        """
        parts = unpack(self._layout, envelope)
        key = self._derive(parts.salt)
        try:
            return open_sealed(
                parts.ciphertext, key, parts.nonce, parts.tag, self._cipher_cls,
            )
        except IntegrityError:
            logger.error(
                "Envelope failed integrity check (%d ciphertext bytes)",
                len(parts.ciphertext),
            )
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt_field(self, plaintext: str) -> str:
        """Encrypt a text field.

        Args:
            plaintext: Field value.

        Returns:
            Base64 envelope safe for a text column.
        """
        if not isinstance(plaintext, str):
            raise TypeError(
                f"encrypt_field expects str, got {type(plaintext).__name__}"
            )
        return self.encrypt_bytes(plaintext.encode("utf-8"))

    def decrypt_field(self, envelope: str) -> str:
        """Decrypt a text field produced by :meth:`encrypt_field`.

        Raises:
            MalformedEnvelope: If the decrypted payload is not UTF-8 text.
        """
        try:
            return self.decrypt_bytes(envelope).decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedEnvelope("Decrypted payload is not UTF-8 text") from err

    def encrypt_value(self, value: Any) -> str:
        """Serialize a JSON-compatible value with orjson and encrypt it."""
        return self.encrypt_bytes(serialize_value(value))

    def decrypt_value(self, envelope: str) -> Any:
        """Decrypt and deserialize a value produced by :meth:`encrypt_value`.

        Raises:
            MalformedEnvelope: If the payload was not sealed by
                :meth:`encrypt_value` (e.g. a plain text field).
        """
        return deserialize_value(self.decrypt_bytes(envelope))
