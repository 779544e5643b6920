"""Authentication frame handling for the band's challenge-response handshake.

The band answers on the auth characteristic with frames of the form
``0x10 <code-hi> <code-lo> [payload]``.  Frames are classified into an
:class:`AuthResponse` so the handshake loop never pattern-matches raw slices.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from bandlink.bt_ref.constants import (
    AUTH_KEY_LEN,
    AUTH_RESPONSE_PREFIX,
    AUTH_SEND_ENCRYPTED,
)

__all__ = [
    "AuthResponse",
    "AuthFrame",
    "NONCE_LEN",
    "parse_auth_frame",
    "encrypt_nonce",
    "build_challenge_response",
]

NONCE_LEN = 16


class AuthResponse(enum.Enum):
    RESTART = (0x01, 0x01)
    CHALLENGE = (0x02, 0x01)
    SUCCESS = (0x03, 0x01)
    INVALID_KEY = (0x03, 0x08)
    UNKNOWN = None


_BY_CODE = {member.value: member for member in AuthResponse if member.value is not None}


@dataclass(frozen=True)
class AuthFrame:
    response: AuthResponse
    code: bytes
    payload: bytes = b""


def parse_auth_frame(frame: bytes) -> Optional[AuthFrame]:
    """Classify one notification frame; ``None`` means "not for us, ignore"."""
    frame = bytes(frame)
    if len(frame) < 3 or frame[0] != AUTH_RESPONSE_PREFIX:
        return None
    code = frame[1:3]
    response = _BY_CODE.get((code[0], code[1]), AuthResponse.UNKNOWN)
    return AuthFrame(response=response, code=code, payload=frame[3:])


def encrypt_nonce(key: bytes, nonce: bytes) -> bytes:
    """AES-128-CBC, zero IV, PKCS#7 padding over *nonce*; returns the full ciphertext."""
    if len(key) != AUTH_KEY_LEN:
        raise ValueError(f"auth key must be {AUTH_KEY_LEN} bytes, got {len(key)}")
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(bytes(nonce)) + padder.finalize()
    encryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(16))).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def build_challenge_response(key: bytes, frame: AuthFrame) -> bytes:
    # 0x03 0x00 <first 16 bytes of the encrypted nonce>
    nonce = frame.payload[:NONCE_LEN]
    return AUTH_SEND_ENCRYPTED + encrypt_nonce(key, nonce)[:16]
