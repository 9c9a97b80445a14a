"""Signal and value-at-risk routes."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import CompanyAccess, authorize_company, get_current_user, get_db, require_company
from exitosx.models.db import Signal
from exitosx.models.schemas import SignalCreate, SignalUpdate
from exitosx.signals.ranking import process_signals_for_display, signal_to_dict
from exitosx.signals.service import apply_signal_update, create_signal, list_open_signals
from exitosx.signals.value_at_risk import calculate_value_at_risk

router = APIRouter()

VAR_TREND_WINDOW = timedelta(days=30)


@router.get("/companies/{company_id}/signals")
async def list_signals(
    include_closed: bool = False,
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Ranked and grouped signals for display."""
    query = select(Signal).where(Signal.company_id == access.company.id)
    if not include_closed:
        query = query.where(Signal.resolution_status.in_(("OPEN", "ACKNOWLEDGED", "IN_PROGRESS")))
    signals = list((await session.execute(query.order_by(Signal.created_at.desc()))).scalars().all())
    return {
        **process_signals_for_display(signals).to_dict(),
        "signals": [signal_to_dict(s) for s in signals],
    }


@router.post("/companies/{company_id}/signals", status_code=201)
async def create_company_signal(
    data: SignalCreate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    signal = await create_signal(session, access.company.id, **data.model_dump())
    return signal_to_dict(signal)


@router.patch("/signals/{signal_id}")
async def update_signal(
    signal_id: uuid.UUID,
    data: SignalUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Resolve, dismiss or confirm a signal."""
    signal = (await session.execute(select(Signal).where(Signal.id == signal_id))).scalar_one_or_none()
    if not signal:
        raise HTTPException(status_code=404, detail="Signal not found")
    await authorize_company(session, user, signal.company_id, "COMPANY_UPDATE")

    apply_signal_update(signal, **data.model_dump(exclude_unset=True))
    await session.flush()
    await session.refresh(signal)
    return signal_to_dict(signal)


async def _previous_open_signals(session: AsyncSession, company_id, cutoff: datetime) -> list:
    """Signals that were open at ``cutoff``."""
    result = await session.execute(
        select(Signal).where(
            Signal.company_id == company_id,
            Signal.created_at <= cutoff,
            or_(Signal.resolved_at.is_(None), Signal.resolved_at > cutoff),
        )
    )
    return list(result.scalars().all())


@router.get("/companies/{company_id}/value-at-risk")
async def get_value_at_risk(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Confidence-weighted value at risk from open signals, with a 30 day trend."""
    current = await list_open_signals(session, access.company.id)
    previous = await _previous_open_signals(
        session, access.company.id, datetime.now(timezone.utc) - VAR_TREND_WINDOW
    )
    previous_var = calculate_value_at_risk(previous).total_value_at_risk if previous else None
    return calculate_value_at_risk(current, previous_weighted_var=previous_var).to_dict()
