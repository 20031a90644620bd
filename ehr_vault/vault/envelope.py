"""
Envelope Codec — packs the pieces of a sealed field into one storable string.

Layout (after base64 decoding):
    [salt S bytes][nonce N bytes][tag T bytes][ciphertext, rest]

S, N and T are fixed by configuration, so the envelope carries no length
header. The ciphertext may be empty (empty plaintext); the fixed segments
may not be truncated.
"""
import base64
import binascii
from typing import NamedTuple
from dataclasses import dataclass

from ..exceptions import MalformedEnvelope


@dataclass(frozen=True)
class EnvelopeLayout:
    """Fixed segment lengths shared by every encrypt and decrypt call site."""
    salt_length: int
    nonce_length: int
    tag_length: int

    @property
    def header_length(self) -> int:
        return self.salt_length + self.nonce_length + self.tag_length


class EnvelopeParts(NamedTuple):
    salt: bytes
    nonce: bytes
    tag: bytes
    ciphertext: bytes


def pack(
    layout: EnvelopeLayout,
    salt: bytes,
    nonce: bytes,
    tag: bytes,
    ciphertext: bytes,
) -> str:
    """Concatenate salt‖nonce‖tag‖ciphertext and base64-encode the result.

    Raises:
        ValueError: If a fixed segment does not match the layout.
    """
    for name, segment, expected in (
        ("salt", salt, layout.salt_length),
        ("nonce", nonce, layout.nonce_length),
        ("tag", tag, layout.tag_length),
    ):
        if len(segment) != expected:
            raise ValueError(
                f"{name} must be {expected} bytes, got {len(segment)}"
            )
    blob = salt + nonce + tag + ciphertext
    return base64.b64encode(blob).decode("ascii")


def unpack(layout: EnvelopeLayout, envelope: str) -> EnvelopeParts:
    """Decode an envelope string and split it at the layout offsets.

    Raises:
        MalformedEnvelope: If the text is not base64 or the decoded bytes
            are shorter than salt + nonce + tag.
    """
    try:
        raw = base64.b64decode(envelope, validate=True)
    except (binascii.Error, ValueError, TypeError) as err:
        raise MalformedEnvelope("Envelope is not valid base64") from err
    if len(raw) < layout.header_length:
        raise MalformedEnvelope(
            f"Envelope too short: {len(raw)} bytes "
            f"(minimum {layout.header_length})"
        )
    s = layout.salt_length
    n = s + layout.nonce_length
    t = n + layout.tag_length
    return EnvelopeParts(
        salt=raw[:s],
        nonce=raw[s:n],
        tag=raw[n:t],
        ciphertext=raw[t:],
    )
