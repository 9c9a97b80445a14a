"""Buyer stage transitions, approvals and deal activity logging."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.deals.stages import ACTIVE_STAGES, EXIT_STAGES, STAGE_LABELS, is_valid_transition
from exitosx.errors import ValidationError

logger = logging.getLogger(__name__)

STALE_BUYER_DAYS = 14

# Milestone timestamp set when a buyer enters the stage.
MILESTONE_FIELDS = {
    "TEASER_SENT": "teaser_sent_at",
    "NDA_EXECUTED": "nda_executed_at",
    "CIM_ACCESS": "cim_access_at",
    "IOI_RECEIVED": "ioi_received_at",
    "LOI_RECEIVED": "loi_received_at",
    "CLOSED": "closed_at",
}

APPROVAL_ACTIVITY_TYPES = {"APPROVED": "APPROVAL_GRANTED", "DENIED": "APPROVAL_DENIED"}


def log_activity(
    session: AsyncSession,
    deal_id,
    activity_type: str,
    subject: str,
    *,
    deal_buyer_id=None,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
    user_id=None,
):
    from exitosx.models.db import DealActivity

    activity = DealActivity(
        deal_id=deal_id,
        deal_buyer_id=deal_buyer_id,
        activity_type=activity_type,
        subject=subject,
        description=description,
        metadata_=metadata,
        performed_by_user_id=user_id,
    )
    session.add(activity)
    return activity


def apply_stage_change(
    buyer,
    to_stage: str,
    *,
    note: str | None = None,
    ioi_amount: float | None = None,
    loi_amount: float | None = None,
    now: datetime,
) -> None:
    """Set the stage, milestone dates, offer amounts and exit reason."""
    buyer.current_stage = to_stage
    buyer.stage_updated_at = now

    milestone = MILESTONE_FIELDS.get(to_stage)
    if milestone:
        setattr(buyer, milestone, now)
    if to_stage == "IOI_RECEIVED" and ioi_amount is not None:
        buyer.ioi_amount = ioi_amount
    if to_stage == "LOI_RECEIVED" and loi_amount is not None:
        buyer.loi_amount = loi_amount
    if to_stage in EXIT_STAGES:
        buyer.exited_at = now
        buyer.exit_reason = note or f"Moved to {STAGE_LABELS[to_stage]}"


async def transition_stage(
    session: AsyncSession,
    buyer,
    to_stage: str,
    user_id=None,
    note: str | None = None,
    ioi_amount: float | None = None,
    loi_amount: float | None = None,
    skip_validation: bool = False,
) -> dict:
    """Move a buyer to ``to_stage``, recording history and an activity."""
    from exitosx.models.db import DealStageHistory

    if to_stage not in STAGE_LABELS:
        raise ValidationError(f"Unknown stage: {to_stage}")

    from_stage = buyer.current_stage
    if not skip_validation and not is_valid_transition(from_stage, to_stage):
        raise ValidationError(
            f"Invalid stage transition from {STAGE_LABELS[from_stage]} to {STAGE_LABELS[to_stage]}"
        )

    now = datetime.now(timezone.utc)
    apply_stage_change(buyer, to_stage, note=note, ioi_amount=ioi_amount, loi_amount=loi_amount, now=now)

    session.add(
        DealStageHistory(
            deal_buyer_id=buyer.id,
            from_stage=from_stage,
            to_stage=to_stage,
            note=note,
            changed_at=now,
            changed_by_user_id=user_id,
        )
    )
    activity = log_activity(
        session,
        buyer.deal_id,
        "STAGE_CHANGED",
        f"Stage changed to {STAGE_LABELS[to_stage]}",
        deal_buyer_id=buyer.id,
        description=note,
        metadata={
            "from_stage": from_stage,
            "to_stage": to_stage,
            "ioi_amount": ioi_amount,
            "loi_amount": loi_amount,
        },
        user_id=user_id,
    )
    await session.flush()

    logger.info("Buyer %s moved %s -> %s", buyer.id, from_stage, to_stage)
    return {
        "success": True,
        "from_stage": from_stage,
        "to_stage": to_stage,
        "activity_id": str(activity.id),
    }


async def set_buyer_approval(
    session: AsyncSession,
    buyer,
    status: str,
    note: str | None = None,
    user_id=None,
) -> dict:
    """Record the seller's decision on a buyer.

    A buyer still under seller review moves to APPROVED or DECLINED.
    """
    now = datetime.now(timezone.utc)
    buyer.approval_status = status
    buyer.approval_note = note
    buyer.approved_at = now if status == "APPROVED" else None

    log_activity(
        session,
        buyer.deal_id,
        APPROVAL_ACTIVITY_TYPES.get(status, "NOTE_ADDED"),
        f"Approval status set to {status.title()}",
        deal_buyer_id=buyer.id,
        description=note,
        metadata={"approval_status": status},
        user_id=user_id,
    )

    transition = None
    if buyer.current_stage == "SELLER_REVIEWING" and status in ("APPROVED", "DENIED"):
        target = "APPROVED" if status == "APPROVED" else "DECLINED"
        transition = await transition_stage(session, buyer, target, user_id=user_id, note=note)
    else:
        await session.flush()
    return {"approval_status": status, "transition": transition}


def get_time_in_stages(history: list) -> list[dict]:
    """Duration per stage from history rows ordered by ``changed_at``."""
    result = []
    for i, entry in enumerate(history):
        next_entry = history[i + 1] if i + 1 < len(history) else None
        duration = None
        if next_entry is not None:
            duration = round((next_entry.changed_at - entry.changed_at).total_seconds() / 86400)
        result.append(
            {
                "stage": entry.to_stage,
                "entered_at": entry.changed_at.isoformat(),
                "exited_at": next_entry.changed_at.isoformat() if next_entry else None,
                "duration_days": duration,
            }
        )
    return result


async def find_stale_buyers(session: AsyncSession, now: datetime | None = None) -> list:
    """Active buyers whose stage has not moved in 14 days."""
    from exitosx.models.db import Deal, DealBuyer

    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(DealBuyer)
        .join(Deal, Deal.id == DealBuyer.deal_id)
        .where(
            Deal.status == "ACTIVE",
            DealBuyer.current_stage.in_(tuple(ACTIVE_STAGES)),
            DealBuyer.stage_updated_at < now - timedelta(days=STALE_BUYER_DAYS),
        )
    )
    return list(result.unique().scalars().all())
