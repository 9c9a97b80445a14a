"""AES-256-GCM encryption for secrets stored at rest.

Two encodings are used: TOTP secrets are stored as hex
``iv:authTag:ciphertext``; OAuth tokens use the same layout with unpadded
base64url parts.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from exitosx.config import settings

IV_BYTES = 12
TAG_BYTES = 16

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")
_HEX = re.compile(r"^[0-9a-fA-F]{64}$")


class EncryptionError(ValueError):
    pass


def _split(aead_output: bytes) -> tuple[bytes, bytes]:
    """AESGCM appends the tag to the ciphertext."""
    return aead_output[:-TAG_BYTES], aead_output[-TAG_BYTES:]


def _decrypt(key: bytes, iv: bytes, tag: bytes, ciphertext: bytes) -> str:
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None).decode("utf-8")
    except InvalidTag as exc:
        raise EncryptionError("Decryption failed: data was tampered with or the key is wrong") from exc


# ── TOTP secrets (hex) ────────────────────────────────────────────────────────


def _totp_key(raw: str | None = None) -> bytes:
    raw = settings.totp_encryption_key if raw is None else raw
    if not raw:
        raise EncryptionError("TOTP_ENCRYPTION_KEY is not configured")
    if _HEX.match(raw):
        return bytes.fromhex(raw)
    # Passphrase keys are stretched to 32 bytes.
    return hashlib.sha256(raw.encode("utf-8")).digest()


def encrypt_secret(plaintext: str, key: str | None = None) -> str:
    iv = os.urandom(IV_BYTES)
    ciphertext, tag = _split(AESGCM(_totp_key(key)).encrypt(iv, plaintext.encode("utf-8"), None))
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_secret(encrypted: str, key: str | None = None) -> str:
    parts = encrypted.split(":")
    if len(parts) != 3:
        raise EncryptionError("Invalid encrypted secret format")
    try:
        iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
    except ValueError as exc:
        raise EncryptionError("Invalid encrypted secret format") from exc
    return _decrypt(_totp_key(key), iv, tag, ciphertext)


# ── OAuth tokens (base64url) ──────────────────────────────────────────────────


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _token_key(raw: str | None = None) -> bytes:
    raw = settings.token_encryption_key if raw is None else raw
    if not raw:
        raise EncryptionError("TOKEN_ENCRYPTION_KEY is not configured")
    try:
        key = base64.b64decode(raw)
    except binascii.Error as exc:
        raise EncryptionError("TOKEN_ENCRYPTION_KEY must be a base64-encoded 32-byte key") from exc
    if len(key) != 32:
        raise EncryptionError("TOKEN_ENCRYPTION_KEY must be a base64-encoded 32-byte key")
    return key


def encrypt_token(token: str, key: str | None = None) -> str:
    iv = os.urandom(IV_BYTES)
    ciphertext, tag = _split(AESGCM(_token_key(key)).encrypt(iv, token.encode("utf-8"), None))
    return ":".join(_b64url_encode(part) for part in (iv, tag, ciphertext))


def decrypt_token(encrypted: str, key: str | None = None) -> str:
    if not is_encrypted(encrypted):
        raise EncryptionError("Invalid encrypted token format")
    try:
        iv, tag, ciphertext = (_b64url_decode(p) for p in encrypted.split(":"))
    except binascii.Error as exc:
        raise EncryptionError("Invalid encrypted token format") from exc
    return _decrypt(_token_key(key), iv, tag, ciphertext)


def is_encrypted(value: str | None) -> bool:
    if not value:
        return False
    parts = value.split(":")
    return len(parts) == 3 and all(p and _BASE64URL.match(p) for p in parts)
