"""RFC 6238 time-based one-time passwords and backup codes."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import struct
import time
from urllib.parse import quote

TOTP_PERIOD = 30
TOTP_DIGITS = 6
TOTP_WINDOW = 1
TOTP_ISSUER = "Exit OSx"
SECRET_BYTES = 20

BACKUP_CODE_COUNT = 10


def generate_totp_secret() -> str:
    """160-bit secret, base32 without padding."""
    return base64.b32encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.replace(" ", "").upper()
    return base64.b32decode(cleaned + "=" * (-len(cleaned) % 8))


def generate_totp(secret: str, timestamp: float | None = None) -> str:
    """HOTP over the 30-second counter containing ``timestamp``."""
    ts = time.time() if timestamp is None else timestamp
    counter = int(ts // TOTP_PERIOD)
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(code % 10**TOTP_DIGITS).zfill(TOTP_DIGITS)


def verify_totp(secret: str, code: str, timestamp: float | None = None, window: int = TOTP_WINDOW) -> bool:
    """Accept codes from ``window`` periods either side of now."""
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False
    ts = time.time() if timestamp is None else timestamp
    matched = False
    # Check every step so timing does not depend on which one matches.
    for step in range(-window, window + 1):
        candidate = generate_totp(secret, ts + step * TOTP_PERIOD)
        matched |= hmac.compare_digest(candidate, code)
    return matched


def generate_totp_uri(secret: str, email: str, issuer: str = TOTP_ISSUER) -> str:
    label = f"{quote(issuer, safe='')}:{quote(email, safe='')}"
    return (
        f"otpauth://totp/{label}?secret={secret}&issuer={quote(issuer, safe='')}"
        f"&algorithm=SHA1&digits={TOTP_DIGITS}&period={TOTP_PERIOD}"
    )


# ── Backup codes ──────────────────────────────────────────────────────────────


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> list[str]:
    codes: set[str] = set()
    while len(codes) < count:
        raw = secrets.token_hex(4).upper()
        codes.add(f"{raw[:4]}-{raw[4:]}")
    return list(codes)


def normalize_backup_code(code: str) -> str:
    return code.replace("-", "").replace(" ", "").upper()


def hash_backup_code(code: str) -> str:
    return hashlib.sha256(normalize_backup_code(code).encode("utf-8")).hexdigest()


def verify_backup_code(code: str, hashed_codes: list[str]) -> int:
    """Index of the matching hash, or -1."""
    candidate = hash_backup_code(code)
    for index, hashed in enumerate(hashed_codes):
        if hmac.compare_digest(candidate, hashed):
            return index
    return -1
