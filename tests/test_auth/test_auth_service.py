"""Tests for login, registration and two-factor enrollment."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from exitosx.auth import service, totp
from exitosx.auth.encryption import encrypt_secret
from exitosx.auth.permissions import (
    check_granular_permission,
    get_module_permissions,
    has_permission,
    is_role_at_least,
    is_sensitive_permission,
    parse_permission,
    resolve_member_permissions,
)
from exitosx.auth.security import hash_password
from exitosx.config import settings
from exitosx.errors import AuthenticationError, ConflictError, ValidationError

HEX_KEY = "ab" * 32


def _user(password="s3cret-pass", **overrides):
    values = dict(
        id=uuid.uuid4(),
        email="owner@example.com",
        password_hash=hash_password(password),
        is_active=True,
        failed_login_attempts=0,
        last_failed_login_at=None,
        locked_until=None,
        two_factor_enabled=False,
        two_factor_secret=None,
        two_factor_verified_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _returns(session, value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    session.execute.return_value = result


@pytest.fixture
def totp_key(monkeypatch):
    monkeypatch.setattr(settings, "totp_encryption_key", HEX_KEY)


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_unknown_user(self, mock_session):
        _returns(mock_session, None)
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await service.authenticate(mock_session, "nobody@example.com", "whatever1")

    @pytest.mark.asyncio
    async def test_wrong_password_counts_attempt(self, mock_session):
        user = _user()
        _returns(mock_session, user)
        with pytest.raises(AuthenticationError):
            await service.authenticate(mock_session, "owner@example.com", "wrong-pass1")
        assert user.failed_login_attempts == 1
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_success_issues_session(self, mock_session):
        user = _user(failed_login_attempts=2)
        _returns(mock_session, user)
        result = await service.authenticate(mock_session, " Owner@Example.com ", "s3cret-pass", user_agent="pytest")

        assert result.token
        assert not result.requires_two_factor
        assert user.failed_login_attempts == 0
        stored = mock_session.add.call_args.args[0]
        assert stored.user_id == user.id
        assert stored.token_hash != result.token

    @pytest.mark.asyncio
    async def test_two_factor_required(self, mock_session):
        _returns(mock_session, _user(two_factor_enabled=True))
        result = await service.authenticate(mock_session, "owner@example.com", "s3cret-pass")
        assert result.requires_two_factor
        assert result.token is None

    @pytest.mark.asyncio
    async def test_two_factor_code_accepted(self, mock_session, totp_key):
        secret = totp.generate_totp_secret()
        user = _user(two_factor_enabled=True, two_factor_secret=encrypt_secret(secret))
        _returns(mock_session, user)
        result = await service.authenticate(
            mock_session, "owner@example.com", "s3cret-pass", code=totp.generate_totp(secret)
        )
        assert result.token


class TestRegister:
    @pytest.mark.asyncio
    async def test_weak_password(self, mock_session):
        with pytest.raises(ValidationError, match="at least 8"):
            await service.register_user(mock_session, "new@example.com", "abc1")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, mock_session):
        _returns(mock_session, _user())
        with pytest.raises(ConflictError):
            await service.register_user(mock_session, "owner@example.com", "s3cret-pass")

    @pytest.mark.asyncio
    async def test_creates_owner_workspace(self, mock_session):
        _returns(mock_session, None)
        user = await service.register_user(mock_session, " New@Example.com", "s3cret-pass", name="Pat")

        assert user.email == "new@example.com"
        added = [c.args[0] for c in mock_session.add.call_args_list]
        workspace = next(a for a in added if type(a).__name__ == "Workspace")
        member = next(a for a in added if type(a).__name__ == "WorkspaceMember")
        assert workspace.name == "Pat's Workspace"
        assert member.role == "OWNER"


class TestTwoFactorSetup:
    @pytest.mark.asyncio
    async def test_setup_then_enable(self, mock_session, totp_key):
        user = _user()
        setup = await service.begin_two_factor_setup(mock_session, user)
        assert len(setup["backup_codes"]) == 10
        assert setup["qr_code_uri"].startswith("otpauth://totp/")

        await service.enable_two_factor(mock_session, user, totp.generate_totp(setup["secret"]))
        assert user.two_factor_enabled is True
        assert user.two_factor_verified_at is not None

    @pytest.mark.asyncio
    async def test_enable_rejects_bad_code(self, mock_session, totp_key):
        user = _user()
        await service.begin_two_factor_setup(mock_session, user)
        with pytest.raises(ValidationError, match="Invalid verification code"):
            await service.enable_two_factor(mock_session, user, "abcdef")

    @pytest.mark.asyncio
    async def test_setup_when_enabled(self, mock_session):
        with pytest.raises(ConflictError):
            await service.begin_two_factor_setup(mock_session, _user(two_factor_enabled=True))


class TestPermissions:
    def test_workspace_roles(self):
        assert has_permission("ADMIN", "ORG_MANAGE_MEMBERS")
        assert not has_permission("MEMBER", "ORG_DELETE")
        assert is_role_at_least("OWNER", "ADMIN")
        assert not is_role_at_least("BILLING", "ADMIN")

    def test_parse_permission(self):
        assert parse_permission("financials.dcf:edit") == {
            "module": "financials",
            "resource": "dcf",
            "action": "edit",
        }

    def test_module_and_sensitive(self):
        assert "personal.net_worth:view" in get_module_permissions("personal")
        assert is_sensitive_permission("personal.retirement:edit")
        assert not is_sensitive_permission("valuation.summary:view")

    def test_custom_override_beats_template(self):
        resolved = resolve_member_permissions("MEMBER", "cpa", {"financials.dcf:edit": False})
        assert resolved["financials.dcf:view"] is True
        assert resolved["financials.dcf:edit"] is False

    def test_owner_without_template(self):
        check = check_granular_permission("personal.net_worth:view", "OWNER", None, None)
        assert check == {"granted": True, "source": "template", "permission": "personal.net_worth:view"}

    def test_default_deny(self):
        check = check_granular_permission("valuation.detailed:view", "MEMBER", None, None)
        assert check["granted"] is False
        assert check["source"] == "default_deny"

    def test_custom_source(self):
        check = check_granular_permission("valuation.detailed:view", "MEMBER", None, {"valuation.detailed:view": True})
        assert check["granted"] is True
        assert check["source"] == "custom"
