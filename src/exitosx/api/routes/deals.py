"""Deal, buyer pipeline and participant routes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.api.deps import CompanyAccess, authorize_company, get_current_user, get_db, require_company
from exitosx.deals.funnel import calculate_funnel_metrics, get_pipeline_summary
from exitosx.deals.service import get_time_in_stages, log_activity, set_buyer_approval, transition_stage
from exitosx.deals.stages import STAGE_LABELS, get_stage_group, get_valid_next_stages
from exitosx.models.db import (
    BuyerCompany,
    Deal,
    DealActivity,
    DealBuyer,
    DealParticipant,
    DealStageHistory,
    Person,
)
from exitosx.models.enums import ACTIVITY_TYPES
from exitosx.models.schemas import (
    ActivityCreate,
    ApprovalRequest,
    BuyerCreate,
    BuyerUpdate,
    DealCreate,
    DealUpdate,
    ParticipantCreate,
    ParticipantUpdate,
    StageChangeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _deal_dict(deal: Deal, buyer_count: int | None = None) -> dict:
    return {
        "id": str(deal.id),
        "company_id": str(deal.company_id),
        "code_name": deal.code_name,
        "description": deal.description,
        "status": deal.status,
        "started_at": _iso(deal.started_at),
        "target_close_date": _iso(deal.target_close_date),
        "closed_at": _iso(deal.closed_at),
        "terminated_at": _iso(deal.terminated_at),
        "require_seller_approval": deal.require_seller_approval,
        "buyer_count": buyer_count,
    }


def _buyer_dict(buyer: DealBuyer) -> dict:
    company = buyer.buyer_company
    return {
        "id": str(buyer.id),
        "deal_id": str(buyer.deal_id),
        "buyer_company": {
            "id": str(company.id),
            "name": company.name,
            "buyer_type": company.buyer_type,
            "website": company.website,
        },
        "tier": buyer.tier,
        "buyer_rationale": buyer.buyer_rationale,
        "current_stage": buyer.current_stage,
        "stage_label": STAGE_LABELS.get(buyer.current_stage, buyer.current_stage),
        "stage_group": get_stage_group(buyer.current_stage),
        "stage_updated_at": _iso(buyer.stage_updated_at),
        "approval_status": buyer.approval_status,
        "approval_note": buyer.approval_note,
        "ioi_amount": buyer.ioi_amount,
        "ioi_deadline": _iso(buyer.ioi_deadline),
        "loi_amount": buyer.loi_amount,
        "loi_deadline": _iso(buyer.loi_deadline),
        "exit_reason": buyer.exit_reason,
        "internal_notes": buyer.internal_notes,
        "tags": buyer.tags or [],
    }


def _participant_dict(participant: DealParticipant) -> dict:
    person = participant.person
    return {
        "id": str(participant.id),
        "deal_id": str(participant.deal_id),
        "person": {
            "id": str(person.id),
            "first_name": person.first_name,
            "last_name": person.last_name,
            "email": person.email,
            "current_title": person.current_title,
        },
        "deal_buyer_id": str(participant.deal_buyer_id) if participant.deal_buyer_id else None,
        "side": participant.side,
        "role": participant.role,
        "is_primary": participant.is_primary,
        "is_active": participant.is_active,
    }


async def _get_deal(session: AsyncSession, user, deal_id: uuid.UUID, permission: str = "COMPANY_VIEW") -> Deal:
    deal = (await session.execute(select(Deal).where(Deal.id == deal_id))).scalar_one_or_none()
    if not deal:
        raise HTTPException(status_code=404, detail="Deal not found")
    await authorize_company(session, user, deal.company_id, permission)
    return deal


async def _get_buyer(session: AsyncSession, deal: Deal, buyer_id: uuid.UUID) -> DealBuyer:
    result = await session.execute(
        select(DealBuyer)
        .options(selectinload(DealBuyer.stage_history))
        .where(DealBuyer.id == buyer_id, DealBuyer.deal_id == deal.id)
    )
    buyer = result.unique().scalar_one_or_none()
    if not buyer:
        raise HTTPException(status_code=404, detail="Buyer not found")
    return buyer


async def _deal_buyers(session: AsyncSession, deal_id) -> list[DealBuyer]:
    result = await session.execute(
        select(DealBuyer).where(DealBuyer.deal_id == deal_id).order_by(DealBuyer.created_at)
    )
    return list(result.unique().scalars().all())


# ── Deals ─────────────────────────────────────────────────────────────────────


@router.post("/companies/{company_id}/deals", status_code=201)
async def create_deal(
    data: DealCreate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    deal = Deal(company_id=access.company.id, created_by_user_id=access.user.id, **data.model_dump())
    session.add(deal)
    await session.flush()
    await session.refresh(deal)
    logger.info("Created deal %s for company %s", deal.code_name, access.company.id)
    return _deal_dict(deal, buyer_count=0)


@router.get("/companies/{company_id}/deals")
async def list_deals(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    counts = (
        select(DealBuyer.deal_id, func.count().label("n")).group_by(DealBuyer.deal_id).subquery()
    )
    result = await session.execute(
        select(Deal, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.deal_id == Deal.id)
        .where(Deal.company_id == access.company.id)
        .order_by(Deal.created_at.desc())
    )
    items = [_deal_dict(deal, buyer_count=n) for deal, n in result.all()]
    return {"items": items, "total": len(items)}


@router.get("/deals/{deal_id}")
async def get_deal(
    deal_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Deal with its pipeline summary."""
    deal = await _get_deal(session, user, deal_id)
    buyers = await _deal_buyers(session, deal.id)
    return {**_deal_dict(deal, buyer_count=len(buyers)), "pipeline": get_pipeline_summary(buyers)}


@router.patch("/deals/{deal_id}")
async def update_deal(
    deal_id: uuid.UUID,
    data: DealUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.get("status")
    if new_status and new_status != deal.status:
        now = datetime.now(timezone.utc)
        if new_status == "CLOSED":
            deal.closed_at = now
        elif new_status == "TERMINATED":
            deal.terminated_at = now

    for key, value in update_data.items():
        setattr(deal, key, value)

    await session.flush()
    await session.refresh(deal)
    return _deal_dict(deal)


@router.delete("/deals/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_DELETE")
    await session.delete(deal)
    return Response(status_code=204)


@router.get("/deals/{deal_id}/funnel")
async def get_deal_funnel(
    deal_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id)
    return calculate_funnel_metrics(await _deal_buyers(session, deal.id))


# ── Buyers ────────────────────────────────────────────────────────────────────


@router.get("/deals/{deal_id}/buyers")
async def list_buyers(
    deal_id: uuid.UUID,
    stage: str | None = None,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id)
    buyers = await _deal_buyers(session, deal.id)
    if stage:
        buyers = [b for b in buyers if b.current_stage == stage]
    return {"items": [_buyer_dict(b) for b in buyers], "total": len(buyers)}


@router.post("/deals/{deal_id}/buyers", status_code=201)
async def add_buyer(
    deal_id: uuid.UUID,
    data: BuyerCreate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Add a buyer to the pipeline, creating the buyer company when needed."""
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")

    if data.buyer_company_id:
        buyer_company = (
            await session.execute(select(BuyerCompany).where(BuyerCompany.id == data.buyer_company_id))
        ).scalar_one_or_none()
        if not buyer_company:
            raise HTTPException(status_code=404, detail="Buyer company not found")
    elif data.name:
        buyer_company = BuyerCompany(name=data.name, buyer_type=data.buyer_type, website=data.website)
        session.add(buyer_company)
        await session.flush()
    else:
        raise HTTPException(status_code=400, detail="Provide buyer_company_id or name")

    existing = await session.execute(
        select(DealBuyer.id).where(DealBuyer.deal_id == deal.id, DealBuyer.buyer_company_id == buyer_company.id)
    )
    if existing.first():
        raise HTTPException(status_code=409, detail="Buyer is already part of this deal")

    now = datetime.now(timezone.utc)
    buyer = DealBuyer(
        deal_id=deal.id,
        buyer_company_id=buyer_company.id,
        tier=data.tier,
        buyer_rationale=data.buyer_rationale,
        tags=data.tags,
        current_stage="IDENTIFIED",
        stage_updated_at=now,
    )
    session.add(buyer)
    await session.flush()
    session.add(
        DealStageHistory(deal_buyer_id=buyer.id, to_stage="IDENTIFIED", changed_at=now, changed_by_user_id=user.id)
    )
    log_activity(
        session,
        deal.id,
        "NOTE_ADDED",
        f"Added {buyer_company.name} to the buyer list",
        deal_buyer_id=buyer.id,
        user_id=user.id,
    )
    await session.flush()

    return _buyer_dict(await _get_buyer(session, deal, buyer.id))


@router.get("/deals/{deal_id}/buyers/{buyer_id}")
async def get_buyer(
    deal_id: uuid.UUID,
    buyer_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Buyer with stage history, time in each stage and allowed next stages."""
    deal = await _get_deal(session, user, deal_id)
    buyer = await _get_buyer(session, deal, buyer_id)
    return {
        **_buyer_dict(buyer),
        "stage_history": [
            {
                "from_stage": h.from_stage,
                "to_stage": h.to_stage,
                "note": h.note,
                "changed_at": _iso(h.changed_at),
            }
            for h in buyer.stage_history
        ],
        "time_in_stages": get_time_in_stages(buyer.stage_history),
        "valid_next_stages": list(get_valid_next_stages(buyer.current_stage)),
    }


@router.patch("/deals/{deal_id}/buyers/{buyer_id}")
async def update_buyer(
    deal_id: uuid.UUID,
    buyer_id: uuid.UUID,
    data: BuyerUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    buyer = await _get_buyer(session, deal, buyer_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(buyer, key, value)
    await session.flush()
    return _buyer_dict(buyer)


@router.post("/deals/{deal_id}/buyers/{buyer_id}/stage")
async def change_buyer_stage(
    deal_id: uuid.UUID,
    buyer_id: uuid.UUID,
    data: StageChangeRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    buyer = await _get_buyer(session, deal, buyer_id)
    if deal.require_seller_approval and data.to_stage == "TEASER_SENT" and buyer.approval_status != "APPROVED":
        raise HTTPException(status_code=400, detail="Seller approval is required before contacting this buyer")

    outcome = await transition_stage(
        session,
        buyer,
        data.to_stage,
        user_id=user.id,
        note=data.note,
        ioi_amount=data.ioi_amount,
        loi_amount=data.loi_amount,
        skip_validation=data.skip_validation,
    )
    return {**outcome, "buyer": _buyer_dict(buyer)}


@router.post("/deals/{deal_id}/buyers/{buyer_id}/approve")
async def approve_buyer(
    deal_id: uuid.UUID,
    buyer_id: uuid.UUID,
    data: ApprovalRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Seller decision on a prospective buyer."""
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    buyer = await _get_buyer(session, deal, buyer_id)
    outcome = await set_buyer_approval(session, buyer, data.status, note=data.note, user_id=user.id)
    return {**outcome, "buyer": _buyer_dict(buyer)}


# ── Activities ────────────────────────────────────────────────────────────────


@router.get("/deals/{deal_id}/activities")
async def list_activities(
    deal_id: uuid.UUID,
    buyer_id: uuid.UUID | None = None,
    limit: int = 50,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id)
    query = select(DealActivity).where(DealActivity.deal_id == deal.id)
    if buyer_id:
        query = query.where(DealActivity.deal_buyer_id == buyer_id)
    result = await session.execute(query.order_by(DealActivity.performed_at.desc()).limit(limit))
    items = [
        {
            "id": str(a.id),
            "deal_buyer_id": str(a.deal_buyer_id) if a.deal_buyer_id else None,
            "activity_type": a.activity_type,
            "subject": a.subject,
            "description": a.description,
            "metadata": a.metadata_,
            "performed_at": _iso(a.performed_at),
        }
        for a in result.scalars().all()
    ]
    return {"items": items, "total": len(items)}


@router.post("/deals/{deal_id}/activities", status_code=201)
async def create_activity(
    deal_id: uuid.UUID,
    data: ActivityCreate,
    buyer_id: uuid.UUID | None = None,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    if data.activity_type not in ACTIVITY_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown activity type: {data.activity_type}")
    if buyer_id:
        await _get_buyer(session, deal, buyer_id)

    activity = log_activity(
        session,
        deal.id,
        data.activity_type,
        data.subject,
        deal_buyer_id=buyer_id,
        description=data.description,
        metadata=data.metadata,
        user_id=user.id,
    )
    await session.flush()
    return {"id": str(activity.id), "activity_type": activity.activity_type, "subject": activity.subject}


# ── Participants ──────────────────────────────────────────────────────────────


async def _get_participant(session: AsyncSession, deal: Deal, participant_id: uuid.UUID) -> DealParticipant:
    result = await session.execute(
        select(DealParticipant).where(DealParticipant.id == participant_id, DealParticipant.deal_id == deal.id)
    )
    participant = result.unique().scalar_one_or_none()
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    return participant


@router.get("/deals/{deal_id}/participants")
async def list_participants(
    deal_id: uuid.UUID,
    side: str | None = None,
    include_inactive: bool = False,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Participants with counts by side."""
    deal = await _get_deal(session, user, deal_id)
    query = select(DealParticipant).where(DealParticipant.deal_id == deal.id)
    if not include_inactive:
        query = query.where(DealParticipant.is_active.is_(True))
    participants = list((await session.execute(query.order_by(DealParticipant.created_at))).unique().scalars().all())

    counts = {"BUYER": 0, "SELLER": 0, "NEUTRAL": 0}
    for p in participants:
        counts[p.side] += 1
    if side:
        participants = [p for p in participants if p.side == side]
    return {
        "items": [_participant_dict(p) for p in participants],
        "total": len(participants),
        "counts_by_side": counts,
    }


@router.post("/deals/{deal_id}/participants", status_code=201)
async def add_participant(
    deal_id: uuid.UUID,
    data: ParticipantCreate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Add a person to a deal, creating the person when no id is given."""
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")

    if data.person_id:
        person = (await session.execute(select(Person).where(Person.id == data.person_id))).scalar_one_or_none()
        if not person:
            raise HTTPException(status_code=404, detail="Person not found")
    elif data.first_name and data.last_name:
        person = Person(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            current_title=data.current_title,
        )
        session.add(person)
        await session.flush()
    else:
        raise HTTPException(status_code=400, detail="Provide person_id or first_name and last_name")

    existing = await session.execute(
        select(DealParticipant.id).where(DealParticipant.deal_id == deal.id, DealParticipant.person_id == person.id)
    )
    if existing.first():
        raise HTTPException(status_code=409, detail="Person is already a participant in this deal")
    if data.deal_buyer_id:
        await _get_buyer(session, deal, data.deal_buyer_id)

    participant = DealParticipant(
        deal_id=deal.id,
        person_id=person.id,
        deal_buyer_id=data.deal_buyer_id,
        side=data.side,
        role=data.role,
        is_primary=data.is_primary,
    )
    session.add(participant)
    log_activity(
        session,
        deal.id,
        "CONTACT_ADDED",
        f"Added {person.first_name} {person.last_name} ({data.side.lower()} side)",
        deal_buyer_id=data.deal_buyer_id,
        user_id=user.id,
    )
    await session.flush()
    return _participant_dict(await _get_participant(session, deal, participant.id))


@router.patch("/deals/{deal_id}/participants/{participant_id}")
async def update_participant(
    deal_id: uuid.UUID,
    participant_id: uuid.UUID,
    data: ParticipantUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    participant = await _get_participant(session, deal, participant_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("deal_buyer_id"):
        await _get_buyer(session, deal, update_data["deal_buyer_id"])
    for key, value in update_data.items():
        setattr(participant, key, value)
    await session.flush()
    return _participant_dict(participant)


@router.delete("/deals/{deal_id}/participants/{participant_id}", status_code=204)
async def remove_participant(
    deal_id: uuid.UUID,
    participant_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    deal = await _get_deal(session, user, deal_id, "COMPANY_UPDATE")
    participant = await _get_participant(session, deal, participant_id)
    person = participant.person
    log_activity(
        session,
        deal.id,
        "CONTACT_REMOVED",
        f"Removed {person.first_name} {person.last_name}",
        deal_buyer_id=participant.deal_buyer_id,
        user_id=user.id,
    )
    await session.delete(participant)
    return Response(status_code=204)
