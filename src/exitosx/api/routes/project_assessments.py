"""Project assessment routes: prioritized follow-up questionnaires."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.api.deps import CompanyAccess, authorize_company, get_current_user, get_db, require_company
from exitosx.assessments.action_plan import generate_action_plan
from exitosx.assessments.cadence import CADENCE_PREFERENCES, build_cadence_inputs, evaluate_batch_cadence
from exitosx.assessments.prioritization import (
    get_next_questions,
    get_question_coverage_stats,
    mark_questions_as_asked,
    recommend_next_assessment_focus,
)
from exitosx.assessments.score_impact import build_score_impact_summary
from exitosx.models.db import (
    ProjectAssessment,
    ProjectAssessmentQuestion,
    ProjectAssessmentResponse,
    ProjectQuestion,
    ProjectQuestionOption,
    Signal,
    Task,
    ValuationSnapshot,
)
from exitosx.models.enums import BRI_CATEGORIES
from exitosx.models.schemas import ProjectAssessmentCreate, ProjectResponseSubmit
from exitosx.valuation.snapshot import refine_bri_for_company

logger = logging.getLogger(__name__)

router = APIRouter()


async def _latest_bri(session: AsyncSession, company_id) -> float | None:
    result = await session.execute(
        select(ValuationSnapshot.bri_score)
        .where(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(1)
    )
    score = result.scalar_one_or_none()
    return float(score) if score is not None else None


async def _load(session: AsyncSession, assessment_id: uuid.UUID) -> ProjectAssessment:
    result = await session.execute(
        select(ProjectAssessment)
        .options(
            selectinload(ProjectAssessment.questions)
            .selectinload(ProjectAssessmentQuestion.question)
            .selectinload(ProjectQuestion.options),
            selectinload(ProjectAssessment.responses),
        )
        .where(ProjectAssessment.id == assessment_id)
        .execution_options(populate_existing=True)
    )
    assessment = result.scalar_one_or_none()
    if not assessment:
        raise HTTPException(status_code=404, detail="Project assessment not found")
    return assessment


def _assessment_dict(assessment: ProjectAssessment) -> dict:
    responses = {r.question_id: r for r in assessment.responses}
    questions = []
    for aq in assessment.questions:
        q = aq.question
        response = responses.get(q.id)
        questions.append(
            {
                "id": str(q.id),
                "question_id": q.question_id,
                "question_text": q.question_text,
                "help_text": q.help_text,
                "bri_category": q.bri_category,
                "sub_category": q.sub_category,
                "display_order": aq.display_order,
                "priority_score": aq.priority_score,
                "selection_reason": aq.selection_reason,
                "skipped": bool(aq.skipped),
                "options": [
                    {"id": str(o.id), "option_text": o.option_text, "score_value": o.score_value}
                    for o in sorted(q.options, key=lambda o: o.display_order)
                ],
                "response": {
                    "selected_option_id": str(response.selected_option_id),
                    "actual_score": response.actual_score,
                    "confidence_level": response.confidence_level,
                    "notes": response.notes,
                }
                if response
                else None,
            }
        )
    return {
        "id": str(assessment.id),
        "company_id": str(assessment.company_id),
        "assessment_number": assessment.assessment_number,
        "title": assessment.title,
        "primary_category": assessment.primary_category,
        "status": assessment.status,
        "started_at": assessment.started_at,
        "completed_at": assessment.completed_at,
        "bri_score_before": assessment.bri_score_before,
        "bri_score_after": assessment.bri_score_after,
        "score_impact": assessment.score_impact,
        "action_plan_generated": assessment.action_plan_generated,
        "questions": questions,
        "answered": len(responses),
        "skipped": sum(1 for aq in assessment.questions if aq.skipped),
        "total": len(questions),
    }


@router.post("/companies/{company_id}/project-assessments", status_code=201)
async def create_project_assessment(
    data: ProjectAssessmentCreate,
    access: CompanyAccess = Depends(require_company("ASSESSMENT_CREATE")),
    session: AsyncSession = Depends(get_db),
):
    """Start a project assessment with the highest-priority unasked questions."""
    company_id = access.company.id
    in_progress = await session.execute(
        select(ProjectAssessment.id).where(
            ProjectAssessment.company_id == company_id,
            ProjectAssessment.status == "IN_PROGRESS",
        )
    )
    if in_progress.first():
        raise HTTPException(status_code=409, detail="A project assessment is already in progress")

    selected = await get_next_questions(session, company_id, data.question_count, data.focus_category)
    if not selected:
        raise HTTPException(status_code=400, detail="No unanswered questions are available")

    number = (
        await session.execute(
            select(func.coalesce(func.max(ProjectAssessment.assessment_number), 0)).where(
                ProjectAssessment.company_id == company_id
            )
        )
    ).scalar_one() + 1

    assessment = ProjectAssessment(
        company_id=company_id,
        assessment_number=number,
        primary_category=data.focus_category or selected[0].bri_category,
        title=data.title or f"Project Assessment #{number}",
        status="IN_PROGRESS",
        bri_score_before=await _latest_bri(session, company_id),
    )
    session.add(assessment)
    await session.flush()

    for order, question in enumerate(selected, start=1):
        session.add(
            ProjectAssessmentQuestion(
                assessment_id=assessment.id,
                question_id=uuid.UUID(question.question_id),
                display_order=order,
                priority_score=question.total_score,
                selection_reason=question.selection_reason[:255],
            )
        )
    await mark_questions_as_asked(session, company_id, [uuid.UUID(q.question_id) for q in selected])
    await session.flush()

    logger.info(
        "Created project assessment #%d for company %s with %d questions", number, company_id, len(selected)
    )
    return _assessment_dict(await _load(session, assessment.id))


@router.get("/companies/{company_id}/project-assessments")
async def list_project_assessments(
    access: CompanyAccess = Depends(require_company("ASSESSMENT_VIEW")),
    session: AsyncSession = Depends(get_db),
):
    result = await session.execute(
        select(ProjectAssessment)
        .where(ProjectAssessment.company_id == access.company.id)
        .order_by(ProjectAssessment.assessment_number.desc())
    )
    items = [
        {
            "id": str(a.id),
            "assessment_number": a.assessment_number,
            "title": a.title,
            "primary_category": a.primary_category,
            "status": a.status,
            "completed_at": a.completed_at,
            "score_impact": a.score_impact,
        }
        for a in result.scalars().all()
    ]
    return {"items": items, "total": len(items)}


@router.get("/companies/{company_id}/project-assessments/focus")
async def get_assessment_focus(
    access: CompanyAccess = Depends(require_company("ASSESSMENT_VIEW")),
    session: AsyncSession = Depends(get_db),
):
    """Recommended focus category plus question coverage."""
    return {
        **await recommend_next_assessment_focus(session, access.company.id),
        "coverage": await get_question_coverage_stats(session, access.company.id),
    }


@router.get("/companies/{company_id}/reassessment-prompts")
async def get_reassessment_prompts(
    cadence: str = Query("monthly"),
    access: CompanyAccess = Depends(require_company("ASSESSMENT_VIEW")),
    session: AsyncSession = Depends(get_db),
):
    """Which BRI category, if any, should prompt a re-assessment now."""
    if cadence not in CADENCE_PREFERENCES:
        raise HTTPException(status_code=400, detail=f"cadence must be one of {', '.join(CADENCE_PREFERENCES)}")
    company_id = access.company.id

    assessed = await session.execute(
        select(ProjectQuestion.bri_category, func.max(ProjectAssessmentResponse.updated_at))
        .join(ProjectAssessmentResponse, ProjectAssessmentResponse.question_id == ProjectQuestion.id)
        .join(ProjectAssessment, ProjectAssessment.id == ProjectAssessmentResponse.assessment_id)
        .where(ProjectAssessment.company_id == company_id)
        .group_by(ProjectQuestion.bri_category)
    )
    completed = await session.execute(
        select(Task.bri_category, func.max(Task.completed_at))
        .where(Task.company_id == company_id, Task.status == "COMPLETED")
        .group_by(Task.bri_category)
    )
    signals = await session.execute(
        select(Signal)
        .where(
            Signal.company_id == company_id,
            Signal.resolution_status == "OPEN",
            Signal.severity.in_(("HIGH", "CRITICAL")),
            Signal.category.is_not(None),
        )
        .order_by(Signal.created_at.desc())
    )
    material_changes: dict[str, str] = {}
    for signal in signals.scalars().all():
        material_changes.setdefault(signal.category, signal.title)

    inputs = build_cadence_inputs(
        BRI_CATEGORIES,
        {category: at for category, at in assessed.all() if at is not None},
        {category: at for category, at in completed.all() if at is not None},
        material_changes,
        cadence,
    )
    batch = evaluate_batch_cadence(inputs)
    top = batch.top_prompt
    return {
        "prompt_count": batch.prompt_count,
        "top_prompt": {"category": top[0], **top[1].to_dict()} if top else None,
        "categories": {category: result.to_dict() for category, result in batch.results.items()},
    }


@router.get("/project-assessments/{assessment_id}")
async def get_project_assessment(
    assessment_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    assessment = await _load(session, assessment_id)
    await authorize_company(session, user, assessment.company_id, "ASSESSMENT_VIEW")
    return _assessment_dict(assessment)


@router.post("/project-assessments/{assessment_id}/responses")
async def submit_project_response(
    assessment_id: uuid.UUID,
    data: ProjectResponseSubmit,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Record or replace the answer to one assessment question."""
    assessment = await _load(session, assessment_id)
    await authorize_company(session, user, assessment.company_id, "ASSESSMENT_CREATE")
    if assessment.status != "IN_PROGRESS":
        raise HTTPException(status_code=400, detail="Assessment is not in progress")
    if data.question_id not in {aq.question_id for aq in assessment.questions}:
        raise HTTPException(status_code=400, detail="Question is not part of this assessment")

    option = (
        await session.execute(
            select(ProjectQuestionOption).where(
                ProjectQuestionOption.id == data.selected_option_id,
                ProjectQuestionOption.question_id == data.question_id,
            )
        )
    ).scalar_one_or_none()
    if option is None:
        raise HTTPException(status_code=400, detail="Option does not belong to the question")

    response = next((r for r in assessment.responses if r.question_id == data.question_id), None)
    if response is None:
        response = ProjectAssessmentResponse(assessment_id=assessment.id, question_id=data.question_id)
        assessment.responses.append(response)
    response.selected_option_id = option.id
    response.effective_option_id = None
    response.actual_score = float(option.score_value)
    response.confidence_level = data.confidence_level
    response.notes = data.notes
    for aq in assessment.questions:
        if aq.question_id == data.question_id:
            aq.skipped = False

    await session.flush()
    return _assessment_dict(assessment)


@router.post("/project-assessments/{assessment_id}/questions/{question_id}/skip")
async def skip_project_question(
    assessment_id: uuid.UUID,
    question_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Skip a question; skipped questions count toward completion."""
    assessment = await _load(session, assessment_id)
    await authorize_company(session, user, assessment.company_id, "ASSESSMENT_CREATE")
    if assessment.status != "IN_PROGRESS":
        raise HTTPException(status_code=400, detail="Assessment is not in progress")
    selected = next((aq for aq in assessment.questions if aq.question_id == question_id), None)
    if selected is None:
        raise HTTPException(status_code=400, detail="Question is not part of this assessment")
    if any(r.question_id == question_id for r in assessment.responses):
        raise HTTPException(status_code=400, detail="Question has already been answered")

    selected.skipped = True
    await session.flush()
    return _assessment_dict(assessment)


def _answer_scores(assessment: ProjectAssessment) -> dict[str, list[float]]:
    categories = {aq.question_id: aq.question.bri_category for aq in assessment.questions}
    scores: dict[str, list[float]] = {}
    for response in assessment.responses:
        category = categories.get(response.question_id)
        if category:
            scores.setdefault(category, []).append(float(response.actual_score))
    return scores


@router.post("/project-assessments/{assessment_id}/complete")
async def complete_project_assessment(
    assessment_id: uuid.UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Complete, refine the BRI with the answers and generate the action plan."""
    assessment = await _load(session, assessment_id)
    await authorize_company(session, user, assessment.company_id, "ASSESSMENT_COMPLETE")
    if assessment.status == "COMPLETED":
        raise HTTPException(status_code=400, detail="Assessment is already completed")

    answered = len(assessment.responses)
    skipped = sum(1 for aq in assessment.questions if aq.skipped)
    total = len(assessment.questions)
    if answered + skipped < total:
        raise HTTPException(
            status_code=400,
            detail={
                "error": f"{total - answered - skipped} question(s) not yet answered",
                "answered": answered,
                "skipped": skipped,
                "total": total,
            },
        )

    assessment.status = "COMPLETED"
    assessment.completed_at = datetime.now(timezone.utc)
    await session.flush()

    refinement = await refine_bri_for_company(
        session, assessment.company_id, f"Project assessment #{assessment.assessment_number} completed", user.id
    )
    bri_before = assessment.bri_score_before
    assessment.bri_score_after = refinement.bri_score
    if bri_before is not None:
        assessment.score_impact = refinement.bri_score - bri_before

    action_plan = await generate_action_plan(session, assessment.id)
    await session.flush()

    summary = build_score_impact_summary(
        _answer_scores(assessment),
        bri_before,
        refinement.bri_score,
        refinement.category_scores,
        refinement.previous_category_scores,
    )
    logger.info(
        "Completed project assessment #%d for company %s: BRI %s -> %.3f",
        assessment.assessment_number,
        assessment.company_id,
        f"{bri_before:.3f}" if bri_before is not None else "n/a",
        refinement.bri_score,
    )
    return {
        "assessment": _assessment_dict(assessment),
        "bri_refinement": {
            "before": bri_before,
            "after": refinement.bri_score,
            "impact": assessment.score_impact,
            "category_scores": refinement.category_scores,
            "previous_category_scores": refinement.previous_category_scores,
        },
        "snapshot_id": refinement.snapshot_id,
        "action_plan": action_plan,
        "score_impact_summary": summary.to_dict(),
    }
