"""Authentication and two-factor API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import get_current_user, get_db, get_session_token
from exitosx.auth import service
from exitosx.config import settings
from exitosx.models.schemas import LoginRequest, RegisterRequest, TwoFactorCode, UserResponse

router = APIRouter()


def _set_session_cookie(response: Response, token: str, expires_at) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        secure=settings.exitosx_env != "development",
        samesite="lax",
        expires=expires_at,
    )


@router.post("/auth/register", status_code=201)
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db),
):
    """Create an account with its own workspace and log it in."""
    user = await service.register_user(session, data.email, data.password, data.name, data.workspace_name)
    token, expires_at = await service.create_session(session, user, request.headers.get("user-agent"))
    _set_session_cookie(response, token, expires_at)
    return {
        "user": UserResponse.model_validate(user),
        "token": token,
        "expires_at": expires_at.isoformat(),
    }


@router.post("/auth/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_db),
):
    result = await service.authenticate(
        session, data.email, data.password, data.code, request.headers.get("user-agent")
    )
    if result.requires_two_factor:
        return {"requires_two_factor": True}

    _set_session_cookie(response, result.token, result.expires_at)
    return {
        "requires_two_factor": False,
        "user": UserResponse.model_validate(result.user),
        "token": result.token,
        "expires_at": result.expires_at.isoformat(),
    }


@router.post("/auth/logout", status_code=204)
async def logout(
    response: Response,
    token: str | None = Depends(get_session_token),
    session: AsyncSession = Depends(get_db),
):
    if token:
        await service.revoke_session(session, token)
    response.delete_cookie(settings.session_cookie_name)


@router.get("/auth/me")
async def me(user=Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    from sqlalchemy import select

    from exitosx.models.db import Workspace, WorkspaceMember

    result = await session.execute(
        select(WorkspaceMember, Workspace)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .where(WorkspaceMember.user_id == user.id)
    )
    return {
        "user": UserResponse.model_validate(user),
        "workspaces": [
            {"id": str(w.id), "name": w.name, "role": m.role, "role_template": m.role_template}
            for m, w in result.all()
        ],
    }


# ── Two-factor ────────────────────────────────────────────────────────────────


@router.get("/auth/2fa/status")
async def two_factor_status(user=Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    return await service.get_two_factor_status(session, user)


@router.post("/auth/2fa/setup")
async def two_factor_setup(user=Depends(get_current_user), session: AsyncSession = Depends(get_db)):
    """Returns the secret, otpauth URI and backup codes once."""
    return await service.begin_two_factor_setup(session, user)


@router.post("/auth/2fa/enable")
async def two_factor_enable(
    data: TwoFactorCode,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    await service.enable_two_factor(session, user, data.code)
    return {"success": True}


@router.post("/auth/2fa/disable")
async def two_factor_disable(
    data: TwoFactorCode,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    await service.disable_two_factor(session, user, data.code)
    return {"success": True}


@router.post("/auth/2fa/backup-codes")
async def two_factor_backup_codes(
    data: TwoFactorCode,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    codes = await service.regenerate_backup_codes(session, user, data.code)
    return {"backup_codes": codes}
