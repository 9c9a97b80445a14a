"""Registration, login sessions and two-factor enrollment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.auth import encryption, security, totp
from exitosx.errors import AuthenticationError, ConflictError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: object
    token: str | None
    expires_at: datetime | None
    requires_two_factor: bool = False


async def register_user(
    session: AsyncSession,
    email: str,
    password: str,
    name: str | None = None,
    workspace_name: str | None = None,
):
    """Create a user and a workspace they own."""
    from exitosx.models.db import User, Workspace, WorkspaceMember

    email = email.strip().lower()
    problems = security.validate_password_strength(password)
    if problems:
        raise ValidationError("; ".join(problems))

    existing = await session.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("An account with this email already exists")

    user = User(email=email, name=name, password_hash=security.hash_password(password))
    session.add(user)
    workspace = Workspace(name=workspace_name or f"{name or email.split('@')[0]}'s Workspace")
    session.add(workspace)
    await session.flush()

    session.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role="OWNER", role_template="owner"))
    await session.flush()

    logger.info("Registered user %s with workspace %s", user.id, workspace.id)
    return user


async def _consume_backup_code(session: AsyncSession, user, code: str) -> bool:
    from exitosx.models.db import BackupCode

    result = await session.execute(
        select(BackupCode).where(BackupCode.user_id == user.id, BackupCode.used_at.is_(None))
    )
    unused = list(result.scalars().all())
    index = totp.verify_backup_code(code, [c.code_hash for c in unused])
    if index == -1:
        return False
    unused[index].used_at = datetime.now(timezone.utc)
    logger.info("Backup code used by user %s", user.id)
    return True


async def verify_second_factor(session: AsyncSession, user, code: str) -> bool:
    """A current TOTP code or an unused backup code."""
    secret = encryption.decrypt_secret(user.two_factor_secret)
    if totp.verify_totp(secret, code):
        return True
    return await _consume_backup_code(session, user, code)


async def create_session(session: AsyncSession, user, user_agent: str | None = None) -> tuple[str, datetime]:
    from exitosx.models.db import UserSession

    token = security.generate_session_token()
    expires_at = security.session_expiry()
    session.add(
        UserSession(
            user_id=user.id,
            token_hash=security.hash_session_token(token),
            user_agent=(user_agent or "")[:500] or None,
            expires_at=expires_at,
        )
    )
    await session.flush()
    return token, expires_at


async def authenticate(
    session: AsyncSession,
    email: str,
    password: str,
    code: str | None = None,
    user_agent: str | None = None,
) -> LoginResult:
    """Check credentials and lockout, then issue a session token.

    Users with 2FA enabled get ``requires_two_factor`` and no token until a
    code is supplied.
    """
    from exitosx.models.db import User

    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid email or password")

    lock = security.check_lockout(user)
    if lock.locked:
        raise AuthenticationError(lock.reason)

    if not security.verify_password(password, user.password_hash):
        lock = security.record_failed_attempt(user)
        # Persist the counter even though the request fails.
        await session.commit()
        if lock.locked:
            raise AuthenticationError(lock.reason)
        raise AuthenticationError("Invalid email or password")

    if user.two_factor_enabled:
        if not code:
            return LoginResult(user=user, token=None, expires_at=None, requires_two_factor=True)
        if not await verify_second_factor(session, user, code):
            lock = security.record_failed_attempt(user)
            await session.commit()
            if lock.locked:
                raise AuthenticationError(lock.reason)
            raise AuthenticationError("Invalid verification code")

    security.clear_lockout(user)
    token, expires_at = await create_session(session, user, user_agent)
    logger.info("User %s logged in", user.id)
    return LoginResult(user=user, token=token, expires_at=expires_at)


async def resolve_session(session: AsyncSession, token: str):
    """The user owning a live session token, or None."""
    from exitosx.models.db import User, UserSession

    now = datetime.now(timezone.utc)
    result = await session.execute(
        select(UserSession, User)
        .join(User, User.id == UserSession.user_id)
        .where(UserSession.token_hash == security.hash_session_token(token), UserSession.expires_at > now)
    )
    row = result.first()
    if row is None:
        return None
    user_session, user = row
    if not user.is_active:
        return None
    user_session.last_seen_at = now
    return user


async def revoke_session(session: AsyncSession, token: str) -> None:
    from exitosx.models.db import UserSession

    await session.execute(delete(UserSession).where(UserSession.token_hash == security.hash_session_token(token)))


# ── Two-factor enrollment ─────────────────────────────────────────────────────


async def _replace_backup_codes(session: AsyncSession, user) -> list[str]:
    from exitosx.models.db import BackupCode

    await session.execute(delete(BackupCode).where(BackupCode.user_id == user.id))
    codes = totp.generate_backup_codes()
    for code in codes:
        session.add(BackupCode(user_id=user.id, code_hash=totp.hash_backup_code(code)))
    await session.flush()
    return codes


async def begin_two_factor_setup(session: AsyncSession, user) -> dict:
    """Store a fresh encrypted secret (not yet enabled) and new backup codes."""
    if user.two_factor_enabled:
        raise ConflictError("Two-factor authentication is already enabled")

    secret = totp.generate_totp_secret()
    user.two_factor_secret = encryption.encrypt_secret(secret)
    user.two_factor_verified_at = None
    backup_codes = await _replace_backup_codes(session, user)

    logger.info("Two-factor setup initiated for user %s", user.id)
    return {
        "secret": secret,
        "qr_code_uri": totp.generate_totp_uri(secret, user.email),
        "backup_codes": backup_codes,
    }


async def enable_two_factor(session: AsyncSession, user, code: str) -> None:
    if user.two_factor_enabled:
        raise ConflictError("Two-factor authentication is already enabled")
    if not user.two_factor_secret:
        raise ValidationError("Two-factor setup not initiated")

    secret = encryption.decrypt_secret(user.two_factor_secret)
    if not totp.verify_totp(secret, code):
        logger.warning("Invalid 2FA code during setup for user %s", user.id)
        raise ValidationError("Invalid verification code")

    user.two_factor_enabled = True
    user.two_factor_verified_at = datetime.now(timezone.utc)
    await session.flush()
    logger.info("Two-factor authentication enabled for user %s", user.id)


async def disable_two_factor(session: AsyncSession, user, code: str) -> None:
    from exitosx.models.db import BackupCode

    if not user.two_factor_enabled:
        raise ValidationError("Two-factor authentication is not enabled")
    if not await verify_second_factor(session, user, code):
        logger.warning("Invalid code when disabling 2FA for user %s", user.id)
        raise ValidationError("Invalid verification code")

    user.two_factor_enabled = False
    user.two_factor_secret = None
    user.two_factor_verified_at = None
    await session.execute(delete(BackupCode).where(BackupCode.user_id == user.id))
    await session.flush()
    logger.info("Two-factor authentication disabled for user %s", user.id)


async def regenerate_backup_codes(session: AsyncSession, user, code: str) -> list[str]:
    if not user.two_factor_enabled:
        raise ValidationError("Two-factor authentication is not enabled")
    secret = encryption.decrypt_secret(user.two_factor_secret)
    if not totp.verify_totp(secret, code):
        raise ValidationError("Invalid verification code")
    codes = await _replace_backup_codes(session, user)
    logger.info("Backup codes regenerated for user %s", user.id)
    return codes


async def get_two_factor_status(session: AsyncSession, user) -> dict:
    from exitosx.models.db import BackupCode

    remaining = 0
    if user.two_factor_enabled:
        result = await session.execute(
            select(BackupCode).where(BackupCode.user_id == user.id, BackupCode.used_at.is_(None))
        )
        remaining = len(result.scalars().all())
    return {
        "enabled": bool(user.two_factor_enabled),
        "verified_at": user.two_factor_verified_at.isoformat() if user.two_factor_verified_at else None,
        "backup_codes_remaining": remaining,
    }
