"""
Tests for RecordProtector.

Tests cover:
- Authorization before any field is encrypted or decrypted
- Text fields sharing the FieldCipher text format
- Value fields keeping their Python type
- Tamper detection on stored records
"""
import base64
from datetime import date

import pytest

from ehr_vault.exceptions import AccessDenied, IntegrityError, MalformedEnvelope
from ehr_vault.policy import AccessPolicy, Principal, Role
from ehr_vault.records import RecordProtector

SENSITIVE = ("ssn", "diagnosis")
VALUES = ("date_of_birth", "weight_kg")


# --- Test Fixtures ---

class SpyCipher:
    """Cipher stand-in that records every call it receives."""

    def __init__(self):
        self.calls = []

    def encrypt_field(self, value):
        self.calls.append(("encrypt", value))
        return f"enc:{value}"

    def decrypt_field(self, envelope):
        self.calls.append(("decrypt", envelope))
        return envelope[len("enc:"):]

    def encrypt_value(self, value):
        self.calls.append(("encrypt_value", value))
        return f"enc:{value}"

    def decrypt_value(self, envelope):
        self.calls.append(("decrypt_value", envelope))
        return envelope[len("enc:"):]


@pytest.fixture
def protector(cipher, policy):
    """RecordProtector with text and value fields over the test cipher."""
    return RecordProtector(cipher, policy, SENSITIVE, VALUES)


@pytest.fixture
def record():
    """A patient record with sensitive and plain fields."""
    return {
        "id": 101,
        "name": "Jane Roe",
        "ssn": "123-45-6789",
        "diagnosis": "Hypertension",
        "date_of_birth": date(1975, 9, 12),
        "weight_kg": 68.5,
        "allergies": None,
    }


@pytest.fixture
def doctor():
    """Principal with the doctor role."""
    return Principal(user_id=2, role=Role.DOCTOR)


@pytest.fixture
def patient():
    """Principal with the patient role."""
    return Principal(user_id=7, role=Role.PATIENT)


# --- Test Protect ---

class TestProtect:
    """Tests for encrypting a record on write."""

    def test_sensitive_fields_encrypted(self, protector, record, doctor):
        """Test that text and value fields are replaced by envelopes."""
        stored = protector.protect(doctor, record)
        for name in SENSITIVE + VALUES:
            assert stored[name] != record[name]
            assert isinstance(stored[name], str)
        assert stored["id"] == 101
        assert stored["name"] == "Jane Roe"

    def test_input_not_mutated(self, protector, record, doctor):
        """Test that protect returns a copy and leaves the input alone."""
        original = dict(record)
        protector.protect(doctor, record)
        assert record == original

    def test_none_left_untouched(self, cipher, policy, doctor):
        """Test that None values in sensitive fields stay None."""
        protector = RecordProtector(cipher, policy, ["allergies"], ["height_cm"])
        stored = protector.protect(doctor, {"allergies": None, "height_cm": None})
        assert stored["allergies"] is None
        assert stored["height_cm"] is None

    def test_round_trip(self, protector, record, doctor, patient):
        """Test that reveal restores the record, including value types."""
        stored = protector.protect(doctor, record)
        revealed = protector.reveal(patient, stored)
        assert revealed == record
        assert isinstance(revealed["date_of_birth"], date)

    def test_text_field_rejects_non_text(self, protector, doctor):
        """Test that a non-str value in a text field raises TypeError."""
        with pytest.raises(TypeError):
            protector.protect(doctor, {"ssn": 123456789})

    def test_patient_cannot_write(self, protector, record, patient):
        """Test that the patient role is denied write access."""
        with pytest.raises(AccessDenied):
            protector.protect(patient, record)

    def test_overlapping_field_sets(self, cipher, policy):
        """Test that a field cannot be both a text and a value field."""
        with pytest.raises(ValueError):
            RecordProtector(cipher, policy, ["ssn"], ["ssn"])


# --- Test Text Format Compatibility ---

class TestTextFormat:
    """Tests that text fields use the plain FieldCipher text format."""

    def test_protected_field_decrypts_as_text(self, protector, cipher, doctor):
        """Test that decrypt_field reads a protected text field verbatim."""
        stored = protector.protect(doctor, {"ssn": "123-45-6789"})
        assert cipher.decrypt_field(stored["ssn"]) == "123-45-6789"

    def test_reveal_reads_encrypt_field_envelope(self, protector, cipher, doctor):
        """Test that reveal accepts envelopes made by encrypt_field."""
        stored = {"ssn": cipher.encrypt_field("123-45-6789")}
        assert protector.reveal(doctor, stored) == {"ssn": "123-45-6789"}

    def test_text_envelope_in_value_field(self, protector, cipher, doctor):
        """Test that a text envelope in a value field is reported as malformed."""
        stored = {"date_of_birth": cipher.encrypt_field("abc")}
        with pytest.raises(MalformedEnvelope):
            protector.reveal(doctor, stored)


# --- Test Authorization Order ---

class TestAuthorizationOrder:
    """Tests that a denied principal never reaches the cipher."""

    def test_denied_write_never_reaches_cipher(self, policy, record, patient):
        """Test that a denied write makes no cipher call."""
        spy = SpyCipher()
        protector = RecordProtector(spy, policy, SENSITIVE, VALUES)
        with pytest.raises(AccessDenied):
            protector.protect(patient, record)
        assert spy.calls == []

    def test_denied_read_never_reaches_cipher(self):
        """Test that a denied read makes no cipher call."""
        spy = SpyCipher()
        restricted = AccessPolicy({"admin": ["write:record"]})
        protector = RecordProtector(spy, restricted, SENSITIVE)
        admin = Principal(user_id=1, role=Role.ADMIN)
        with pytest.raises(AccessDenied):
            protector.reveal(admin, {"ssn": "enc:123-45-6789"})
        assert spy.calls == []

    def test_granted_calls_cipher(self, policy, record, doctor):
        """Test that a granted write calls the cipher once per present field."""
        spy = SpyCipher()
        protector = RecordProtector(spy, policy, SENSITIVE, VALUES)
        stored = protector.protect(doctor, record)
        assert stored["ssn"] == "enc:123-45-6789"
        assert sorted(kind for kind, _ in spy.calls) == [
            "encrypt", "encrypt", "encrypt_value", "encrypt_value",
        ]


# --- Test Reveal ---

class TestReveal:
    """Tests for decrypting a stored record on read."""

    def test_tampered_field(self, protector, record, doctor):
        """Test that a flipped ciphertext byte raises IntegrityError."""
        stored = protector.protect(doctor, record)
        raw = bytearray(base64.b64decode(stored["ssn"]))
        raw[-1] ^= 0x01
        stored["ssn"] = base64.b64encode(bytes(raw)).decode("ascii")
        with pytest.raises(IntegrityError):
            protector.reveal(doctor, stored)

    def test_field_set_properties(self, protector):
        """Test that the configured field sets are exposed as frozensets."""
        assert protector.sensitive_fields == frozenset(SENSITIVE)
        assert protector.value_fields == frozenset(VALUES)
