"""FastAPI dependency injection helpers."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.auth.permissions import check_granular_permission, has_permission
from exitosx.config import settings
from exitosx.db.session import get_session

# API key security (cron jobs, admin tooling)
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async for session in get_session():
        yield session


async def verify_api_key(
    api_key: str | None = Security(api_key_header),
) -> str:
    """Verify the service API key from the request header.

    In development mode, allows requests without an API key.
    """
    if settings.exitosx_env == "development":
        return api_key or "dev"

    if not api_key or api_key != settings.exitosx_api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")

    return api_key


def get_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str | None:
    """Bearer token first, then the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(
    token: str | None = Depends(get_session_token),
    session: AsyncSession = Depends(get_db),
):
    from exitosx.auth.service import resolve_session

    if not token:
        raise HTTPException(status_code=401, detail="You must be logged in to access this resource")
    user = await resolve_session(session, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return user


@dataclass
class CompanyAccess:
    """The caller, their membership in the company's workspace, and the company."""

    user: object
    member: object | None
    company: object

    @property
    def role(self) -> str:
        return self.member.role if self.member is not None else "OWNER"

    def can(self, granular_permission: str) -> bool:
        """Granular checks apply to members carrying a template or overrides."""
        if self.member is None:
            return True
        if not self.member.role_template and not self.member.custom_permissions and self.member.role != "OWNER":
            return True
        return check_granular_permission(
            granular_permission, self.member.role, self.member.role_template, self.member.custom_permissions
        )["granted"]


async def authorize_company(
    session: AsyncSession,
    user,
    company_id: uuid.UUID,
    permission: str = "COMPANY_VIEW",
) -> CompanyAccess:
    """404 for an unknown company, 403 without membership or permission.

    Super admins pass every check.
    """
    from exitosx.models.db import Company, WorkspaceMember

    company = (await session.execute(select(Company).where(Company.id == company_id))).scalar_one_or_none()
    if company is None:
        raise HTTPException(status_code=404, detail="Company not found")

    if user.is_super_admin:
        return CompanyAccess(user=user, member=None, company=company)

    member = (
        await session.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == company.workspace_id,
                WorkspaceMember.user_id == user.id,
            )
        )
    ).scalar_one_or_none()
    if member is None:
        raise HTTPException(status_code=403, detail="You do not have access to this company")
    if not has_permission(member.role, permission):
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")

    return CompanyAccess(user=user, member=member, company=company)


def require_company(permission: str = "COMPANY_VIEW"):
    """Dependency factory for routes with a ``company_id`` path parameter."""

    async def dependency(
        company_id: uuid.UUID,
        user=Depends(get_current_user),
        session: AsyncSession = Depends(get_db),
    ) -> CompanyAccess:
        return await authorize_company(session, user, company_id, permission)

    return dependency


def require_granular(access: CompanyAccess, permission: str) -> None:
    if not access.can(permission):
        raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
