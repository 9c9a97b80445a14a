"""QuickBooks Online connection, sync and webhook routes."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import uuid

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import CompanyAccess, authorize_company, get_db, require_company
from exitosx.config import settings
from exitosx.integrations.quickbooks import (
    exchange_code_for_tokens,
    get_authorization_url,
    read_token,
    revoke_token,
    store_tokens,
)
from exitosx.integrations.quickbooks_sync import sync_quickbooks_data
from exitosx.models.db import Integration, IntegrationSyncLog, User

logger = logging.getLogger(__name__)

router = APIRouter()

PROVIDER = "QUICKBOOKS_ONLINE"


def _state_signature(payload: str) -> str:
    return hmac.new(settings.exitosx_api_key.encode(), payload.encode(), hashlib.sha256).hexdigest()


def sign_oauth_state(company_id: uuid.UUID, user_id: uuid.UUID) -> str:
    payload = f"{company_id}:{user_id}"
    return f"{payload}:{_state_signature(payload)}"


def parse_oauth_state(state: str) -> tuple[uuid.UUID, uuid.UUID]:
    """Return (company_id, user_id) from a signed state, or raise 400."""
    try:
        company_id, user_id, signature = state.split(":")
        parsed = uuid.UUID(company_id), uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")
    if not hmac.compare_digest(_state_signature(f"{company_id}:{user_id}"), signature):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")
    return parsed


def verify_intuit_signature(payload: bytes, signature: str | None) -> bool:
    """Intuit signs webhook bodies with base64 HMAC-SHA256 of the verifier token."""
    if not settings.quickbooks_webhook_verifier_token:
        return settings.exitosx_env == "development"
    if not signature:
        return False
    expected = base64.b64encode(
        hmac.new(settings.quickbooks_webhook_verifier_token.encode(), payload, hashlib.sha256).digest()
    ).decode()
    return hmac.compare_digest(expected, signature)


def _integration_dict(integration: Integration | None) -> dict:
    if integration is None:
        return {"connected": False}
    return {
        "connected": integration.is_active,
        "id": str(integration.id),
        "provider": integration.provider,
        "provider_company_name": integration.provider_company_name,
        "auto_sync_enabled": integration.auto_sync_enabled,
        "last_synced_at": integration.last_synced_at,
        "last_sync_status": integration.last_sync_status,
        "last_sync_error": integration.last_sync_error,
    }


async def _company_integration(session: AsyncSession, company_id) -> Integration | None:
    result = await session.execute(
        select(Integration).where(Integration.company_id == company_id, Integration.provider == PROVIDER)
    )
    return result.scalar_one_or_none()


async def _run_sync(integration_id: uuid.UUID, sync_type: str) -> None:
    """Background task: sync in its own session."""
    from exitosx.db.session import async_session_factory

    async with async_session_factory() as session:
        try:
            await sync_quickbooks_data(session, integration_id, sync_type=sync_type)
            await session.commit()
        except Exception:
            logger.exception("QuickBooks background sync failed for integration %s", integration_id)
            await session.rollback()


@router.get("/companies/{company_id}/integrations/quickbooks")
async def get_quickbooks_status(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Connection state with the five most recent syncs."""
    integration = await _company_integration(session, access.company.id)
    logs = []
    if integration is not None:
        result = await session.execute(
            select(IntegrationSyncLog)
            .where(IntegrationSyncLog.integration_id == integration.id)
            .order_by(IntegrationSyncLog.started_at.desc())
            .limit(5)
        )
        logs = [
            {
                "sync_type": log.sync_type,
                "status": log.status,
                "records_created": log.records_created,
                "records_updated": log.records_updated,
                "error_message": log.error_message,
                "started_at": log.started_at,
                "completed_at": log.completed_at,
            }
            for log in result.scalars().all()
        ]
    return {**_integration_dict(integration), "recent_syncs": logs}


@router.get("/companies/{company_id}/integrations/quickbooks/connect")
async def connect_quickbooks(
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
):
    if not settings.quickbooks_client_id:
        raise HTTPException(status_code=503, detail="QuickBooks integration is not configured")
    state = sign_oauth_state(access.company.id, access.user.id)
    return {"authorization_url": get_authorization_url(state)}


@router.get("/integrations/quickbooks/callback")
async def quickbooks_callback(
    background_tasks: BackgroundTasks,
    code: str,
    state: str,
    realm_id: str = Query(..., alias="realmId"),
    session: AsyncSession = Depends(get_db),
):
    """OAuth redirect target: store tokens and start the initial sync."""
    company_id, user_id = parse_oauth_state(state)
    user = (await session.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")
    await authorize_company(session, user, company_id, "COMPANY_UPDATE")

    try:
        tokens = await exchange_code_for_tokens(code)
    except httpx.HTTPError:
        logger.exception("QuickBooks token exchange failed for company %s", company_id)
        raise HTTPException(status_code=502, detail="Failed to connect to QuickBooks")

    integration = await _company_integration(session, company_id)
    if integration is None:
        integration = Integration(company_id=company_id, provider=PROVIDER)
        session.add(integration)
    integration.provider_company_id = realm_id
    integration.is_active = True
    integration.last_sync_error = None
    store_tokens(integration, tokens)
    await session.flush()

    background_tasks.add_task(_run_sync, integration.id, "INITIAL")
    logger.info("Connected QuickBooks realm %s to company %s", realm_id, company_id)
    return {"status": "connected", "company_id": str(company_id), "integration_id": str(integration.id)}


@router.post("/companies/{company_id}/integrations/quickbooks/sync")
async def sync_quickbooks(
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Run a manual sync and return its outcome."""
    integration = await _company_integration(session, access.company.id)
    if integration is None or not integration.is_active:
        raise HTTPException(status_code=404, detail="QuickBooks is not connected")
    result = await sync_quickbooks_data(session, integration.id, sync_type="MANUAL")
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error or "QuickBooks sync failed")
    return result.to_dict()


@router.delete("/companies/{company_id}/integrations/quickbooks", status_code=204)
async def disconnect_quickbooks(
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    integration = await _company_integration(session, access.company.id)
    if integration is None:
        raise HTTPException(status_code=404, detail="QuickBooks is not connected")

    refresh_token = read_token(integration.refresh_token)
    if refresh_token:
        try:
            await revoke_token(refresh_token)
        except httpx.HTTPError:
            logger.warning("Could not revoke QuickBooks token for integration %s", integration.id)

    integration.is_active = False
    integration.access_token = None
    integration.refresh_token = None
    integration.token_expires_at = None
    await session.flush()
    logger.info("Disconnected QuickBooks for company %s", access.company.id)
    return Response(status_code=204)


@router.post("/integrations/quickbooks/webhook")
async def quickbooks_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    intuit_signature: str | None = Header(None),
    session: AsyncSession = Depends(get_db),
):
    """Receive Intuit change notifications and resync the affected companies."""
    payload = await request.body()
    if not verify_intuit_signature(payload, intuit_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    data = await request.json()
    realm_ids = {
        n.get("realmId") for n in data.get("eventNotifications", []) if isinstance(n, dict) and n.get("realmId")
    }
    if not realm_ids:
        return {"status": "ignored"}

    result = await session.execute(
        select(Integration.id).where(
            Integration.provider == PROVIDER,
            Integration.provider_company_id.in_(realm_ids),
            Integration.is_active.is_(True),
        )
    )
    integration_ids = list(result.scalars().all())
    for integration_id in integration_ids:
        background_tasks.add_task(_run_sync, integration_id, "WEBHOOK")

    logger.info("QuickBooks webhook for %d realm(s), %d sync(s) queued", len(realm_ids), len(integration_ids))
    return {"status": "processing", "syncs_queued": len(integration_ids)}
