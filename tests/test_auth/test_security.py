"""Tests for password hashing, lockout, TOTP and at-rest encryption."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from exitosx.auth import encryption, security, totp

NOW = datetime(2026, 6, 1, 12, tzinfo=timezone.utc)
HEX_KEY = "00" * 32
TOKEN_KEY = base64.b64encode(bytes(range(32))).decode("ascii")
RFC_SECRET = base64.b32encode(b"12345678901234567890").decode("ascii")


def _user(**overrides):
    values = dict(id="u1", failed_login_attempts=0, last_failed_login_at=None, locked_until=None)
    values.update(overrides)
    return SimpleNamespace(**values)


class TestPasswords:
    def test_hash_and_verify(self):
        encoded = security.hash_password("correct horse 1")
        assert encoded.startswith("scrypt$16384$8$1$")
        assert security.verify_password("correct horse 1", encoded)
        assert not security.verify_password("wrong horse 1", encoded)

    def test_malformed_hash(self):
        assert not security.verify_password("anything", "not-a-hash")
        assert not security.verify_password("anything", "bcrypt$1$2$3$aa$bb")

    def test_strength(self):
        assert security.validate_password_strength("abc12345") == []
        problems = security.validate_password_strength("short")
        assert "Password must be at least 8 characters" in problems
        assert "Password must contain a number" in problems

    def test_session_token_hash_is_stable(self):
        token = security.generate_session_token()
        assert security.hash_session_token(token) == security.hash_session_token(token)
        assert security.hash_session_token(token) != token


class TestLockout:
    def test_fifth_failure_locks(self):
        user = _user()
        for _ in range(4):
            status = security.record_failed_attempt(user, NOW)
        assert not status.locked
        assert status.attempts_remaining == 1

        status = security.record_failed_attempt(user, NOW)
        assert status.locked
        assert user.locked_until == NOW + timedelta(minutes=15)
        assert "Try again in 15 minutes" in status.reason

    def test_locked_account_stays_locked(self):
        user = _user(failed_login_attempts=5, locked_until=NOW + timedelta(minutes=5))
        status = security.check_lockout(user, NOW)
        assert status.locked
        assert "5 minutes" in status.reason

    def test_expired_lock_is_cleared(self):
        user = _user(failed_login_attempts=5, locked_until=NOW - timedelta(minutes=1))
        status = security.check_lockout(user, NOW)
        assert not status.locked
        assert status.attempts_remaining == 5
        assert user.locked_until is None

    def test_attempt_window_resets(self):
        user = _user(failed_login_attempts=3, last_failed_login_at=NOW - timedelta(hours=2))
        assert security.check_lockout(user, NOW).attempts_remaining == 5

    def test_unlock(self):
        user = _user(failed_login_attempts=5, locked_until=NOW + timedelta(minutes=10))
        security.unlock_account(user)
        assert user.failed_login_attempts == 0
        assert user.locked_until is None


class TestTotp:
    @pytest.mark.parametrize(
        "timestamp,code",
        [(59, "287082"), (1111111109, "081804"), (1234567890, "005924")],
    )
    def test_rfc6238_vectors(self, timestamp, code):
        assert totp.generate_totp(RFC_SECRET, timestamp) == code

    def test_verify_allows_one_step_of_drift(self):
        code = totp.generate_totp(RFC_SECRET, 1234567890)
        assert totp.verify_totp(RFC_SECRET, code, 1234567890 + 30)
        assert not totp.verify_totp(RFC_SECRET, code, 1234567890 + 90)

    def test_verify_rejects_malformed_codes(self):
        assert not totp.verify_totp(RFC_SECRET, "12345")
        assert not totp.verify_totp(RFC_SECRET, "abcdef")

    def test_secret_and_uri(self):
        secret = totp.generate_totp_secret()
        assert len(secret) == 32
        uri = totp.generate_totp_uri(secret, "owner@example.com")
        assert uri.startswith("otpauth://totp/Exit%20OSx:owner%40example.com?secret=")
        assert "digits=6&period=30" in uri

    def test_backup_codes(self):
        codes = totp.generate_backup_codes()
        assert len(codes) == 10
        hashed = [totp.hash_backup_code(c) for c in codes]
        assert totp.verify_backup_code(codes[3].lower().replace("-", " "), hashed) == 3
        assert totp.verify_backup_code("ZZZZ-ZZZZ", hashed) == -1


class TestEncryption:
    def test_secret_round_trip_with_hex_key(self):
        encrypted = encryption.encrypt_secret("JBSWY3DPEHPK3PXP", HEX_KEY)
        assert len(encrypted.split(":")) == 3
        assert encryption.decrypt_secret(encrypted, HEX_KEY) == "JBSWY3DPEHPK3PXP"

    def test_passphrase_key(self):
        encrypted = encryption.encrypt_secret("secret", "a passphrase")
        assert encryption.decrypt_secret(encrypted, "a passphrase") == "secret"

    def test_wrong_key_fails(self):
        encrypted = encryption.encrypt_secret("secret", HEX_KEY)
        with pytest.raises(encryption.EncryptionError, match="tampered"):
            encryption.decrypt_secret(encrypted, "11" * 32)

    def test_bad_format(self):
        with pytest.raises(encryption.EncryptionError):
            encryption.decrypt_secret("nothex:zz:yy", HEX_KEY)

    def test_token_round_trip(self):
        encrypted = encryption.encrypt_token("access-token-value", TOKEN_KEY)
        assert encryption.is_encrypted(encrypted)
        assert encryption.decrypt_token(encrypted, TOKEN_KEY) == "access-token-value"

    def test_plain_token_is_not_encrypted(self):
        assert not encryption.is_encrypted("eyJhbGciOi.payload")
        assert not encryption.is_encrypted(None)

    def test_token_key_must_be_32_bytes(self):
        with pytest.raises(encryption.EncryptionError, match="32-byte"):
            encryption.encrypt_token("x", base64.b64encode(b"short").decode())
