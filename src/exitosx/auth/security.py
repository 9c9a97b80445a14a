"""Password hashing, session tokens and account lockout."""

from __future__ import annotations

import hashlib
import hmac
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from exitosx.config import settings

logger = logging.getLogger(__name__)

# scrypt work factors: n=2**14, r=8, p=1 (~16 MiB)
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_DKLEN = 64
SALT_BYTES = 16

MAX_FAILED_ATTEMPTS = 5
ATTEMPT_WINDOW = timedelta(hours=1)
LOCKOUT_DURATION = timedelta(minutes=15)

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """Return ``scrypt$n$r$p$salt$hash`` with hex-encoded salt and hash."""
    salt = secrets.token_bytes(SALT_BYTES)
    derived = hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P, dklen=SCRYPT_DKLEN
    )
    return f"scrypt${SCRYPT_N}${SCRYPT_R}${SCRYPT_P}${salt.hex()}${derived.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, n, r, p, salt_hex, hash_hex = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "scrypt":
        return False
    expected = bytes.fromhex(hash_hex)
    derived = hashlib.scrypt(
        password.encode("utf-8"),
        salt=bytes.fromhex(salt_hex),
        n=int(n),
        r=int(r),
        p=int(p),
        dklen=len(expected),
    )
    return hmac.compare_digest(derived, expected)


def validate_password_strength(password: str) -> list[str]:
    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not any(c.isalpha() for c in password):
        problems.append("Password must contain a letter")
    if not any(c.isdigit() for c in password):
        problems.append("Password must contain a number")
    return problems


# ── Session tokens ────────────────────────────────────────────────────────────


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_expiry(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(hours=settings.session_ttl_hours)


# ── Account lockout ───────────────────────────────────────────────────────────


@dataclass
class LockoutStatus:
    locked: bool
    attempts_remaining: int
    locked_until: datetime | None = None
    reason: str | None = None


def _lock_reason(locked_until: datetime, now: datetime) -> str:
    minutes = max(1, math.ceil((locked_until - now).total_seconds() / 60))
    return f"Account temporarily locked due to too many failed login attempts. Try again in {minutes} minutes."


def check_lockout(user, now: datetime | None = None) -> LockoutStatus:
    """Lockout state for ``user``; an expired lock or stale window is cleared in place."""
    now = now or datetime.now(timezone.utc)

    if user.locked_until is not None:
        if now < user.locked_until:
            return LockoutStatus(
                locked=True,
                attempts_remaining=0,
                locked_until=user.locked_until,
                reason=_lock_reason(user.locked_until, now),
            )
        clear_lockout(user)

    if user.last_failed_login_at is not None and now - user.last_failed_login_at > ATTEMPT_WINDOW:
        user.failed_login_attempts = 0

    attempts = user.failed_login_attempts or 0
    return LockoutStatus(locked=False, attempts_remaining=max(0, MAX_FAILED_ATTEMPTS - attempts))


def record_failed_attempt(user, now: datetime | None = None) -> LockoutStatus:
    """Count a failed login; the fifth failure inside the window locks the account."""
    now = now or datetime.now(timezone.utc)

    status = check_lockout(user, now)
    if status.locked:
        return status

    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    user.last_failed_login_at = now

    if user.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
        user.locked_until = now + LOCKOUT_DURATION
        logger.warning(
            "Account locked for user %s after %d failed attempts", user.id, user.failed_login_attempts
        )
        return LockoutStatus(
            locked=True,
            attempts_remaining=0,
            locked_until=user.locked_until,
            reason=_lock_reason(user.locked_until, now),
        )

    return LockoutStatus(locked=False, attempts_remaining=MAX_FAILED_ATTEMPTS - user.failed_login_attempts)


def clear_lockout(user) -> None:
    user.failed_login_attempts = 0
    user.last_failed_login_at = None
    user.locked_until = None


def unlock_account(user) -> None:
    """Admin unlock."""
    clear_lockout(user)
    logger.info("Account unlocked for user %s", user.id)
