"""Signal persistence and lifecycle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.signals.confidence import (
    get_default_confidence_for_channel,
    get_downgraded_confidence,
    get_upgraded_confidence,
)

logger = logging.getLogger(__name__)

CLOSED_RESOLUTIONS = ("RESOLVED", "DISMISSED", "EXPIRED")


async def create_signal(
    session: AsyncSession,
    company_id,
    *,
    channel: str,
    event_type: str,
    title: str,
    severity: str = "MEDIUM",
    category: str | None = None,
    description: str | None = None,
    confidence: str | None = None,
    raw_data: dict[str, Any] | None = None,
    estimated_value_impact: float | None = None,
    estimated_bri_impact: float | None = None,
    expires_at: datetime | None = None,
):
    """Create a signal. Confidence defaults from the channel."""
    from exitosx.models.db import Signal

    signal = Signal(
        company_id=company_id,
        channel=channel,
        event_type=event_type,
        severity=severity,
        category=category,
        title=title,
        description=description,
        confidence=confidence or get_default_confidence_for_channel(channel),
        raw_data=raw_data,
        estimated_value_impact=estimated_value_impact,
        estimated_bri_impact=estimated_bri_impact,
        expires_at=expires_at,
    )
    session.add(signal)
    await session.flush()
    logger.info("Signal %s created for company %s: %s (%s)", signal.id, company_id, event_type, severity)
    return signal


def apply_signal_update(
    signal,
    *,
    resolution_status: str | None = None,
    resolution_notes: str | None = None,
    user_confirmed: bool | None = None,
    now: datetime | None = None,
) -> None:
    """Confirmation upgrades confidence; dismissal downgrades it."""
    now = now or datetime.now(timezone.utc)

    if user_confirmed and not signal.user_confirmed:
        signal.user_confirmed = True
        signal.confirmed_at = now
        signal.confidence = get_upgraded_confidence(signal.confidence)

    if resolution_status is not None and resolution_status != signal.resolution_status:
        if resolution_status == "DISMISSED":
            signal.confidence = get_downgraded_confidence(signal.confidence)
        signal.resolution_status = resolution_status
        signal.resolved_at = now if resolution_status in CLOSED_RESOLUTIONS else None

    if resolution_notes is not None:
        signal.resolution_notes = resolution_notes


async def expire_signals(session: AsyncSession, now: datetime | None = None) -> int:
    """Mark open signals past ``expires_at`` as EXPIRED."""
    from exitosx.models.db import Signal

    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        update(Signal)
        .where(
            Signal.expires_at.is_not(None),
            Signal.expires_at < now,
            Signal.resolution_status.not_in(CLOSED_RESOLUTIONS),
        )
        .values(resolution_status="EXPIRED", resolved_at=now)
    )
    return result.rowcount or 0


async def list_open_signals(session: AsyncSession, company_id) -> list:
    from exitosx.models.db import Signal

    result = await session.execute(
        select(Signal).where(Signal.company_id == company_id, Signal.resolution_status == "OPEN")
    )
    return list(result.scalars().all())
