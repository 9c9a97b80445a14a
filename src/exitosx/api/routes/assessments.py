"""Initial BRI assessment routes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.api.deps import CompanyAccess, authorize_company, get_current_user, get_db, require_company
from exitosx.models.db import Assessment, AssessmentResponse, Question, QuestionOption
from exitosx.models.schemas import AssessmentResponseSubmit
from exitosx.valuation.snapshot import recalculate_snapshot_for_company

router = APIRouter()


def _assessment_dict(assessment: Assessment) -> dict:
    return {
        "id": str(assessment.id),
        "company_id": str(assessment.company_id),
        "completed_at": assessment.completed_at,
        "created_at": assessment.created_at,
        "responses": [
            {
                "question_id": str(r.question_id),
                "selected_option_id": str(r.selected_option_id) if r.selected_option_id else None,
                "effective_option_id": str(r.effective_option_id) if r.effective_option_id else None,
                "confidence_level": r.confidence_level,
            }
            for r in assessment.responses
        ],
    }


async def _get_assessment(session: AsyncSession, user, assessment_id: uuid.UUID, permission: str) -> Assessment:
    result = await session.execute(
        select(Assessment).options(selectinload(Assessment.responses)).where(Assessment.id == assessment_id)
    )
    assessment = result.scalar_one_or_none()
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    await authorize_company(session, user, assessment.company_id, permission)
    return assessment


@router.get("/questions")
async def list_questions(
    _user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Active BRI questions with their options."""
    result = await session.execute(
        select(Question)
        .options(selectinload(Question.options))
        .where(Question.is_active.is_(True))
        .order_by(Question.bri_category, Question.display_order)
    )
    return {
        "items": [
            {
                "id": str(q.id),
                "bri_category": q.bri_category,
                "question_text": q.question_text,
                "help_text": q.help_text,
                "max_impact_points": q.max_impact_points,
                "options": [
                    {"id": str(o.id), "option_text": o.option_text, "score_value": o.score_value}
                    for o in q.options
                ],
            }
            for q in result.scalars().all()
        ]
    }


@router.post("/companies/{company_id}/assessments", status_code=201)
async def create_assessment(
    access: CompanyAccess = Depends(require_company("ASSESSMENT_CREATE")),
    session: AsyncSession = Depends(get_db),
):
    assessment = Assessment(company_id=access.company.id)
    session.add(assessment)
    await session.flush()
    return {"id": str(assessment.id), "company_id": str(assessment.company_id), "responses": []}


@router.get("/assessments/{assessment_id}")
async def get_assessment(
    assessment_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    assessment = await _get_assessment(session, user, assessment_id, "ASSESSMENT_VIEW")
    return _assessment_dict(assessment)


@router.post("/assessments/{assessment_id}/responses")
async def submit_response(
    assessment_id: uuid.UUID,
    data: AssessmentResponseSubmit,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Record or replace the answer to one question."""
    assessment = await _get_assessment(session, user, assessment_id, "ASSESSMENT_CREATE")
    if assessment.completed_at is not None:
        raise HTTPException(status_code=400, detail="Assessment is already completed")

    option = (
        await session.execute(
            select(QuestionOption).where(
                QuestionOption.id == data.selected_option_id,
                QuestionOption.question_id == data.question_id,
            )
        )
    ).scalar_one_or_none()
    if option is None:
        raise HTTPException(status_code=400, detail="Option does not belong to the question")

    response = next((r for r in assessment.responses if r.question_id == data.question_id), None)
    if response is None:
        response = AssessmentResponse(assessment_id=assessment.id, question_id=data.question_id)
        assessment.responses.append(response)
    response.selected_option_id = data.selected_option_id
    response.effective_option_id = None
    response.confidence_level = data.confidence_level

    await session.flush()
    return _assessment_dict(assessment)


@router.post("/assessments/{assessment_id}/complete")
async def complete_assessment(
    assessment_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Mark the assessment completed and take a valuation snapshot."""
    assessment = await _get_assessment(session, user, assessment_id, "ASSESSMENT_COMPLETE")
    if not assessment.responses:
        raise HTTPException(status_code=400, detail="Assessment has no responses")

    assessment.completed_at = assessment.completed_at or datetime.now(timezone.utc)
    await session.flush()

    outcome = await recalculate_snapshot_for_company(
        session, assessment.company_id, "Assessment completed", created_by_user_id=user.id
    )
    return {"assessment": _assessment_dict(assessment), "snapshot": outcome.to_dict()}
