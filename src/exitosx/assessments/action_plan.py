"""Action plan generation from project assessment responses."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.errors import NotFoundError
from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS

logger = logging.getLogger(__name__)

EFFORT_MULTIPLIERS = {"MINIMAL": 0.5, "LOW": 1, "MODERATE": 2, "HIGH": 4, "MAJOR": 8}
DEFAULT_EFFORT_MULTIPLIER = 2
DEFAULT_CATEGORY_WEIGHT = 0.15
DEFAULT_SCORE_STEP = 0.2
SCORE_TOLERANCE = 0.1
MAX_TASKS_PER_PLAN = 15
TOP_TASKS = 5

VERB_ACTION_TYPES = {
    "DOCUMENT": "TYPE_II_DOCUMENTATION",
    "FORMALIZE": "TYPE_IV_INSTITUTIONALIZE",
    "VALIDATE": "TYPE_I_EVIDENCE",
    "REMEDIATE": "TYPE_V_RISK_REDUCTION",
    "STABILIZE": "TYPE_III_OPERATIONAL",
    "PROTECT": "TYPE_V_RISK_REDUCTION",
    "ALIGN": "TYPE_VI_ALIGNMENT",
    "SIMPLIFY": "TYPE_III_OPERATIONAL",
    "SEGREGATE": "TYPE_III_OPERATIONAL",
    "RESTRUCTURE": "TYPE_IV_INSTITUTIONALIZE",
    "CENTRALIZE": "TYPE_IV_INSTITUTIONALIZE",
    "DELEGATE": "TYPE_IV_INSTITUTIONALIZE",
    "PRIORITIZE": "TYPE_VI_ALIGNMENT",
    "PHASE": "TYPE_VII_READINESS",
    "PILOT": "TYPE_VII_READINESS",
    "TRANSITION": "TYPE_VII_READINESS",
    "DEFER": "TYPE_X_DEFER",
    "DISCLOSE": "TYPE_VIII_SIGNALING",
    "FRAME": "TYPE_VIII_SIGNALING",
    "COMMIT": "TYPE_VI_ALIGNMENT",
}
DEFAULT_ACTION_TYPE = "TYPE_II_DOCUMENTATION"


def map_verb_to_action_type(verb: str) -> str:
    return VERB_ACTION_TYPES.get(verb, DEFAULT_ACTION_TYPE)


@dataclass
class TaskDraft:
    title: str
    description: str
    action_type: str
    bri_category: str
    linked_question_id: object
    upgrades_from_option_id: object | None
    upgrades_to_option_id: object | None
    raw_impact: float
    normalized_value: float
    effort_level: str
    complexity: str
    estimated_hours: int | None


def select_strategy(strategies: list, current_score: float):
    """Strategy type by score band, else the first strategy."""
    if current_score < 0.4:
        wanted = ("PARTIAL_MITIGATION", "RISK_ACCEPTANCE")
    elif current_score < 0.7:
        wanted = ("FULL_FIX", "PARTIAL_MITIGATION")
    else:
        wanted = ("FULL_FIX",)
    match = next((s for s in strategies if s.strategy_type in wanted), None)
    if match is None and strategies:
        return strategies[0]
    return match


def draft_tasks_for_response(
    question,
    current_score: float,
    value_gap: float,
) -> list[TaskDraft]:
    """Expand the matching strategy's templates into task drafts.

    ``question`` is a ``ProjectQuestion`` with strategies, templates and
    options loaded.
    """
    if current_score >= 1.0:
        return []
    strategy = select_strategy(list(question.strategies), current_score)
    if strategy is None:
        return []

    weight = DEFAULT_CATEGORY_WEIGHTS.get(question.bri_category, DEFAULT_CATEGORY_WEIGHT)
    drafts = []
    for template in strategy.task_templates:
        from_score = float(template.upgrades_from_score) if template.upgrades_from_score is not None else None
        if from_score is not None and abs(current_score - from_score) > SCORE_TOLERANCE:
            continue

        to_score = (
            float(template.upgrades_to_score)
            if template.upgrades_to_score is not None
            else current_score + DEFAULT_SCORE_STEP
        )
        raw_impact = (to_score - current_score) * weight * value_gap
        normalized = raw_impact / EFFORT_MULTIPLIERS.get(template.effort_level, DEFAULT_EFFORT_MULTIPLIER)

        from_option = next(
            (o for o in question.options if abs(float(o.score_value) - current_score) < SCORE_TOLERANCE), None
        )
        to_option = next(
            (o for o in question.options if abs(float(o.score_value) - to_score) < SCORE_TOLERANCE), None
        )

        drafts.append(
            TaskDraft(
                title=template.title,
                description=(
                    f"{template.outcome or template.object}. "
                    f"Deliverables: {', '.join(template.deliverables or [])}"
                ),
                action_type=map_verb_to_action_type(template.primary_verb),
                bri_category=question.bri_category,
                linked_question_id=question.id,
                upgrades_from_option_id=from_option.id if from_option else None,
                upgrades_to_option_id=to_option.id if to_option else None,
                raw_impact=raw_impact,
                normalized_value=normalized,
                effort_level=template.effort_level,
                complexity=template.complexity,
                estimated_hours=template.estimated_hours,
            )
        )
    return drafts


async def _latest_value_gap(session: AsyncSession, company_id) -> float:
    from exitosx.models.db import ValuationSnapshot

    result = await session.execute(
        select(ValuationSnapshot.value_gap)
        .where(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(1)
    )
    value_gap = result.scalar_one_or_none()
    return float(value_gap) if value_gap is not None else 0.0


async def generate_action_plan(session: AsyncSession, assessment_id) -> dict:
    """Create prioritized tasks for every response below full score."""
    from exitosx.models.db import (
        ProjectAssessment,
        ProjectAssessmentResponse,
        ProjectQuestion,
        ProjectStrategy,
        Task,
    )

    assessment = (
        await session.execute(select(ProjectAssessment).where(ProjectAssessment.id == assessment_id))
    ).scalar_one_or_none()
    if assessment is None:
        raise NotFoundError("Project assessment not found")

    company_id = assessment.company_id
    value_gap = await _latest_value_gap(session, company_id)

    responses = (
        await session.execute(
            select(ProjectAssessmentResponse)
            .where(ProjectAssessmentResponse.assessment_id == assessment_id)
            .options(
                selectinload(ProjectAssessmentResponse.selected_option),
                selectinload(ProjectAssessmentResponse.question)
                .selectinload(ProjectQuestion.strategies)
                .selectinload(ProjectStrategy.task_templates),
                selectinload(ProjectAssessmentResponse.question).selectinload(ProjectQuestion.options),
            )
        )
    ).scalars().all()

    drafts: list[TaskDraft] = []
    for response in responses:
        score = float(response.selected_option.score_value)
        drafts.extend(draft_tasks_for_response(response.question, score, value_gap))

    drafts.sort(key=lambda d: d.normalized_value, reverse=True)
    drafts = drafts[:MAX_TASKS_PER_PLAN]

    open_titles = set(
        (
            await session.execute(
                select(Task.title).where(
                    Task.company_id == company_id,
                    Task.status.not_in(("COMPLETED", "CANCELLED")),
                )
            )
        ).scalars().all()
    )

    created = 0
    total_hours = 0
    total_impact = 0.0
    top_tasks = []
    for draft in drafts:
        if draft.title in open_titles:
            continue
        task = Task(company_id=company_id, status="PENDING", **asdict(draft))
        session.add(task)
        await session.flush()
        open_titles.add(draft.title)

        created += 1
        total_hours += draft.estimated_hours or 0
        total_impact += draft.raw_impact
        if len(top_tasks) < TOP_TASKS:
            top_tasks.append(
                {
                    "id": str(task.id),
                    "title": task.title,
                    "bri_category": task.bri_category,
                    "estimated_hours": task.estimated_hours or 0,
                    "raw_impact": draft.raw_impact,
                }
            )

    assessment.action_plan_generated = True
    logger.info(
        "Generated %d tasks for company %s: %d hours, $%.2f estimated impact",
        created,
        company_id,
        total_hours,
        total_impact,
    )
    return {
        "tasks_created": created,
        "total_estimated_hours": total_hours,
        "estimated_value_impact": total_impact,
        "top_tasks": top_tasks,
    }


def summarize_tasks(tasks: list) -> dict:
    summary = {
        "total_tasks": len(tasks),
        "pending_tasks": 0,
        "completed_tasks": 0,
        "in_progress_tasks": 0,
        "total_estimated_hours": 0,
        "completed_hours": 0,
        "estimated_value_impact": 0.0,
        "completed_value_impact": 0.0,
        "tasks_by_category": {},
    }
    for task in tasks:
        if task.status == "PENDING":
            summary["pending_tasks"] += 1
        elif task.status == "COMPLETED":
            summary["completed_tasks"] += 1
        elif task.status == "IN_PROGRESS":
            summary["in_progress_tasks"] += 1

        if task.estimated_hours:
            summary["total_estimated_hours"] += task.estimated_hours
            if task.status == "COMPLETED":
                summary["completed_hours"] += task.estimated_hours

        impact = float(task.raw_impact or 0)
        summary["estimated_value_impact"] += impact
        if task.status == "COMPLETED":
            summary["completed_value_impact"] += impact

        by_category = summary["tasks_by_category"]
        by_category[task.bri_category] = by_category.get(task.bri_category, 0) + 1
    return summary


async def get_action_plan_summary(session: AsyncSession, company_id) -> dict:
    from exitosx.models.db import Task

    tasks = (await session.execute(select(Task).where(Task.company_id == company_id))).scalars().all()
    return summarize_tasks(list(tasks))


async def get_30_90_day_plan(session: AsyncSession, company_id) -> dict:
    """Open tasks by value: first five are immediate, next ten near-term."""
    from exitosx.models.db import Task

    tasks = (
        await session.execute(
            select(Task)
            .where(Task.company_id == company_id, Task.status.in_(("PENDING", "IN_PROGRESS")))
            .order_by(Task.normalized_value.desc())
        )
    ).scalars().all()

    def brief(task) -> dict:
        return {
            "id": str(task.id),
            "title": task.title,
            "bri_category": task.bri_category,
            "estimated_hours": task.estimated_hours,
        }

    return {
        "immediate": [brief(t) for t in tasks[:5]],
        "near": [brief(t) for t in tasks[5:15]],
        "total_tasks": len(tasks),
        "total_hours": sum(t.estimated_hours or 0 for t in tasks),
    }
