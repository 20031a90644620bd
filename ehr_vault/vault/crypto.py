"""
Vault Crypto Core — Key derivation, authenticated encryption and serialization.

- Key derivation: PBKDF2-HMAC-SHA256(master_secret, salt) → 32-byte key
- Cipher: AES-GCM (default) or ChaCha20-Poly1305, no associated data
- Serialization: orjson for non-text field values

Security Note:
    Never log plaintext, ciphertext or key material.
    Salts and nonces are random per call; the tag comparison is done in
    constant time by the cryptography backend.
"""
import base64
import binascii
import logging
from typing import Any
from datetime import date, datetime

import orjson
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import (
    KeyDerivationError,
    CryptoUnavailable,
    IntegrityError,
    MalformedEnvelope,
)
from .config import MIN_KDF_ITERATIONS, KEY_LENGTH, TAG_LENGTH

logger = logging.getLogger("ehr.vault")

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"
_DATETIME_WRAPPER_KEY = "__vault_datetime__"
_DATE_WRAPPER_KEY = "__vault_date__"


def get_cipher_cls(backend: str) -> type:
    """Return the AEAD cipher class for a configured backend name.

    Raises:
        CryptoUnavailable: If the backend is unknown.
    """
    try:
        return _CIPHERS[backend]
    except KeyError:
        raise CryptoUnavailable(f"Unknown cipher backend: {backend}") from None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    secret: bytes,
    salt: bytes,
    *,
    salt_length: int,
    iterations: int = MIN_KDF_ITERATIONS,
    length: int = KEY_LENGTH,
) -> bytes:
    """Derive a symmetric key using PBKDF2-HMAC-SHA256.

    Same (secret, salt) always yields the same key, which is how the salt
    stored in an envelope regenerates the encryption key.

    Args:
        secret: Master secret bytes (non-empty).
        salt: Random salt, exactly ``salt_length`` bytes.
        salt_length: Configured salt length.
        iterations: PBKDF2 iteration count (>= 100000).
        length: Derived key length in bytes.

    Returns:
        Derived key bytes.

    Raises:
        KeyDerivationError: On invalid inputs or an unavailable primitive.
    """
    if not secret:
        raise KeyDerivationError("Master secret cannot be empty")
    if len(salt) != salt_length:
        raise KeyDerivationError(
            f"Salt must be {salt_length} bytes, got {len(salt)}"
        )
    if iterations < MIN_KDF_ITERATIONS:
        raise KeyDerivationError(
            f"Iteration count {iterations} below minimum {MIN_KDF_ITERATIONS}"
        )
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(secret)
    except UnsupportedAlgorithm as err:
        raise KeyDerivationError("PBKDF2-HMAC-SHA256 is unavailable") from err


# ---------------------------------------------------------------------------
# Authenticated cipher
# ---------------------------------------------------------------------------

def _cipher(cipher_cls: type, key: bytes):
    try:
        return cipher_cls(key)
    except (ValueError, UnsupportedAlgorithm) as err:
        raise CryptoUnavailable(
            f"Cannot initialize {cipher_cls.__name__}: {err}"
        ) from err


def seal(
    plaintext: bytes,
    key: bytes,
    nonce: bytes,
    cipher_cls: type = AESGCM,
) -> tuple[bytes, bytes]:
    """Encrypt and authenticate plaintext.

    Returns:
        Tuple of (ciphertext, tag). The ciphertext has the plaintext length.

    Raises:
        CryptoUnavailable: If the cipher cannot be initialized for this
            key or nonce.
    """
    cipher = _cipher(cipher_cls, key)
    try:
        sealed = cipher.encrypt(nonce, plaintext, None)
    except ValueError as err:
        raise CryptoUnavailable(f"Cannot seal with given nonce: {err}") from err
    return sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]


def open_sealed(
    ciphertext: bytes,
    key: bytes,
    nonce: bytes,
    tag: bytes,
    cipher_cls: type = AESGCM,
) -> bytes:
    """Verify the tag and decrypt. Fails closed.

    Raises:
        IntegrityError: If the tag does not verify (tampering, corruption
            or wrong key).
        CryptoUnavailable: If the cipher cannot be initialized.
    """
    cipher = _cipher(cipher_cls, key)
    try:
        return cipher.decrypt(nonce, ciphertext + tag, None)
    except InvalidTag:
        raise IntegrityError("Authentication tag verification failed") from None
    except ValueError as err:
        raise CryptoUnavailable(f"Cannot open with given nonce: {err}") from err


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def _wrap(value: Any) -> dict:
    """orjson ``default`` hook: tag types JSON cannot round-trip."""
    if isinstance(value, bytes):
        return {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
    if isinstance(value, datetime):
        return {_DATETIME_WRAPPER_KEY: value.isoformat()}
    if isinstance(value, date):
        return {_DATE_WRAPPER_KEY: value.isoformat()}
    raise TypeError(f"Type is not vault-serializable: {type(value).__name__}")


def _unwrap(value: Any) -> Any:
    if isinstance(value, list):
        return [_unwrap(v) for v in value]
    if not isinstance(value, dict):
        return value
    if len(value) == 1:
        tag, raw = next(iter(value.items()))
        if tag == _BYTES_WRAPPER_KEY:
            return base64.b64decode(raw, validate=True)
        if tag == _DATETIME_WRAPPER_KEY:
            return datetime.fromisoformat(raw)
        if tag == _DATE_WRAPPER_KEY:
            return date.fromisoformat(raw)
    return {k: _unwrap(v) for k, v in value.items()}


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, bool, None, dict, list, bytes, date, datetime.
    bytes, date and datetime are wrapped as single-key tagged objects
    (e.g. {"__vault_date__": "1975-09-12"}) so they come back with their
    original type, also when nested.

    Raises:
        TypeError: For any other type.
    """
    return orjson.dumps(
        value, default=_wrap, option=orjson.OPT_PASSTHROUGH_DATETIME,
    )


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by serialize_value.

    Raises:
        MalformedEnvelope: If the decrypted payload is not a serialized value.
    """
    try:
        return _unwrap(orjson.loads(data))
    except (orjson.JSONDecodeError, binascii.Error, ValueError, TypeError) as err:
        raise MalformedEnvelope("Decrypted payload is not a serialized value") from err
