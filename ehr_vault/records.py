"""
RecordProtector — Authorize, then encrypt or decrypt the sensitive fields
of a record mapping.

Two kinds of sensitive fields are supplied by the caller:

- text fields (``ssn``, ``diagnosis``, ...) are sealed with
  :meth:`FieldCipher.encrypt_field`, so their envelopes are interchangeable
  with any other text column encrypted by the vault;
- value fields (``date_of_birth``, ``weight_kg``, ...) are serialized with
  orjson and sealed with :meth:`FieldCipher.encrypt_value`, keeping their
  Python type across the round trip.

Fields whose value is ``None`` are left as is so nullable columns stay
nullable.
"""
import logging
from typing import Any, Iterable, Mapping

from .policy import AccessPolicy, Permission, Principal
from .vault.field_cipher import FieldCipher

logger = logging.getLogger("ehr.vault")


class RecordProtector:
    """Wires the access policy in front of a :class:`FieldCipher`.

    Authorization always happens before any field is touched; a denied
    principal never reaches the cipher.
    """

    def __init__(
        self,
        cipher: FieldCipher,
        policy: AccessPolicy,
        sensitive_fields: Iterable[str],
        value_fields: Iterable[str] = (),
    ):
        self._cipher = cipher
        self._policy = policy
        self._sensitive = frozenset(sensitive_fields)
        self._values = frozenset(value_fields)
        overlap = self._sensitive & self._values
        if overlap:
            raise ValueError(
                f"Fields declared both as text and value fields: {sorted(overlap)}"
            )

    @property
    def sensitive_fields(self) -> frozenset:
        return self._sensitive

    @property
    def value_fields(self) -> frozenset:
        return self._values

    def protect(self, principal: Principal, record: Mapping[str, Any]) -> dict:
        """Return a copy of ``record`` with sensitive fields encrypted.

        Raises:
            AccessDenied: If the principal may not write records.
            TypeError: If a text field holds a non-``str`` value.
        """
        self._policy.require(principal, Permission.WRITE_RECORD)
        protected = dict(record)
        for name in self._sensitive.intersection(protected):
            value = protected[name]
            if value is not None:
                protected[name] = self._cipher.encrypt_field(value)
        for name in self._values.intersection(protected):
            value = protected[name]
            if value is not None:
                protected[name] = self._cipher.encrypt_value(value)
        logger.debug("Protected record for user=%s", principal.user_id)
        return protected

    def reveal(self, principal: Principal, record: Mapping[str, Any]) -> dict:
        """Return a copy of ``record`` with sensitive fields decrypted.

        Raises:
            AccessDenied: If the principal may not read records.
            IntegrityError: If a stored envelope fails verification.
            MalformedEnvelope: If a stored envelope is corrupt.
        """
        self._policy.require(principal, Permission.READ_RECORD)
        revealed = dict(record)
        for name in self._sensitive.intersection(revealed):
            value = revealed[name]
            if value is not None:
                revealed[name] = self._cipher.decrypt_field(value)
        for name in self._values.intersection(revealed):
            value = revealed[name]
            if value is not None:
                revealed[name] = self._cipher.decrypt_value(value)
        logger.debug("Revealed record for user=%s", principal.user_id)
        return revealed
