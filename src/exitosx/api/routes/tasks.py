"""Task and action plan routes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import CompanyAccess, authorize_company, get_current_user, get_db, require_company
from exitosx.assessments.action_plan import get_30_90_day_plan, get_action_plan_summary
from exitosx.models.db import ProjectAssessment, ProjectAssessmentResponse, Task
from exitosx.models.schemas import TaskListResponse, TaskResponse, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/companies/{company_id}/tasks", response_model=TaskListResponse)
async def list_tasks(
    status: str | None = None,
    category: str | None = None,
    skip: int = 0,
    limit: int = 100,
    access: CompanyAccess = Depends(require_company("TASK_VIEW")),
    session: AsyncSession = Depends(get_db),
):
    """Tasks ordered by normalized value, optionally filtered."""
    query = select(Task).where(Task.company_id == access.company.id)
    if status:
        query = query.where(Task.status == status)
    if category:
        query = query.where(Task.bri_category == category)

    total = (await session.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await session.execute(
        query.order_by(Task.normalized_value.desc(), Task.created_at).offset(skip).limit(limit)
    )
    return TaskListResponse(items=result.scalars().all(), total=total)


@router.get("/companies/{company_id}/action-plan")
async def get_action_plan(
    access: CompanyAccess = Depends(require_company("TASK_VIEW")),
    session: AsyncSession = Depends(get_db),
):
    """Task summary with the 30 and 90 day plan."""
    return {
        "summary": await get_action_plan_summary(session, access.company.id),
        "plan": await get_30_90_day_plan(session, access.company.id),
    }


async def _apply_upgrade(session: AsyncSession, task: Task) -> bool:
    """Point the latest answer to the task's question at the upgraded option."""
    if not task.linked_question_id or not task.upgrades_to_option_id:
        return False
    result = await session.execute(
        select(ProjectAssessmentResponse)
        .join(ProjectAssessment, ProjectAssessmentResponse.assessment_id == ProjectAssessment.id)
        .where(
            ProjectAssessment.company_id == task.company_id,
            ProjectAssessmentResponse.question_id == task.linked_question_id,
        )
        .order_by(ProjectAssessmentResponse.updated_at.desc())
        .limit(1)
    )
    response = result.scalar_one_or_none()
    if response is None:
        return False
    response.effective_option_id = task.upgrades_to_option_id
    return True


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
):
    """Update status or assignment; completion may upgrade the linked answer."""
    task = (await session.execute(select(Task).where(Task.id == task_id))).scalar_one_or_none()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    await authorize_company(session, user, task.company_id, "TASK_UPDATE")

    update_data = data.model_dump(exclude_unset=True)
    apply_upgrade = update_data.pop("apply_upgrade", True)
    if "assignee_user_id" in update_data:
        await authorize_company(session, user, task.company_id, "TASK_ASSIGN")

    new_status = update_data.get("status")
    if new_status == "DEFERRED" and not (update_data.get("deferred_until") or task.deferred_until):
        raise HTTPException(status_code=400, detail="Deferred tasks need a deferred_until date")

    previous_status = task.status
    for key, value in update_data.items():
        setattr(task, key, value)

    if new_status and new_status != previous_status:
        if new_status == "COMPLETED":
            task.completed_at = datetime.now(timezone.utc)
            if apply_upgrade and await _apply_upgrade(session, task):
                logger.info("Task %s upgraded answer to question %s", task.id, task.linked_question_id)
        elif previous_status == "COMPLETED":
            task.completed_at = None
        if new_status != "DEFERRED":
            task.deferred_until = None
            task.deferral_reason = None

    await session.flush()
    await session.refresh(task)
    return task
