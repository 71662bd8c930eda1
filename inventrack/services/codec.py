"""Secret and opaque-token encoding.

TOTP secrets are rendered as unpadded RFC 4648 base32 (A-Z, 2-7), which every
authenticator app accepts and which never contains ``+``, ``/`` or ``=``.
"""

import base64
import binascii
import secrets

from inventrack.services.errors import DecodeError

TOTP_SECRET_BYTES = 20
OPAQUE_TOKEN_BYTES = 32
GROUP_SIZE = 4


def generate_random_secret(byte_length: int = TOTP_SECRET_BYTES) -> bytes:
    if byte_length <= 0:
        raise ValueError("byte_length must be positive")
    return secrets.token_bytes(byte_length)


def encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").rstrip("=")


def decode(text: str) -> bytes:
    """Invert ``encode``. Accepts lowercase, spaces and missing padding."""
    if not isinstance(text, str):
        raise DecodeError("secret must be a string")
    cleaned = strip_separators(text).upper().rstrip("=")
    if not cleaned:
        raise DecodeError("empty secret")
    # Unpadded base32 lengths mod 8 can only be 0, 2, 4, 5 or 7
    if len(cleaned) % 8 in (1, 3, 6):
        raise DecodeError("invalid base32 length")
    padded = cleaned + "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(padded)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base32 secret: {e}") from e


def format_for_manual_entry(encoded_secret: str) -> str:
    return " ".join(
        encoded_secret[i:i + GROUP_SIZE] for i in range(0, len(encoded_secret), GROUP_SIZE)
    )


def strip_separators(text: str) -> str:
    return "".join(text.split())


def generate_opaque_token() -> str:
    """Unguessable refresh/reset token value."""
    return secrets.token_urlsafe(OPAQUE_TOKEN_BYTES)
