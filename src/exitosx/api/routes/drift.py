"""Drift report routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.api.deps import CompanyAccess, get_db, require_company
from exitosx.drift.report import generate_drift_report
from exitosx.models.db import DriftReport

router = APIRouter()


def _report_dict(report: DriftReport) -> dict:
    return {
        "id": str(report.id),
        "period_start": report.period_start,
        "period_end": report.period_end,
        "bri_score_start": report.bri_score_start,
        "bri_score_end": report.bri_score_end,
        "value_start": report.value_start,
        "value_end": report.value_end,
        "drift_score": report.drift_score,
        "direction": report.direction,
        "category_changes": report.category_changes or [],
        "recommended_actions": report.recommended_actions or [],
        "signals_count": report.signals_count,
        "tasks_completed_count": report.tasks_completed_count,
        "tasks_added_count": report.tasks_added_count,
        "summary": report.summary,
        "created_at": report.created_at,
    }


@router.get("/companies/{company_id}/drift")
async def get_drift(
    days: int = Query(30, ge=1, le=365),
    period_start: datetime | None = None,
    period_end: datetime | None = None,
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Live drift for a period, ending now by default."""
    end = period_end or datetime.now(timezone.utc)
    start = period_start or end - timedelta(days=days)
    if start >= end:
        raise HTTPException(status_code=400, detail="period_start must be before period_end")
    report = await generate_drift_report(session, access.company.id, start, end, dry_run=True)
    return report.to_dict()


@router.get("/companies/{company_id}/drift-reports")
async def list_drift_reports(
    limit: int = Query(12, ge=1, le=100),
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    result = await session.execute(
        select(DriftReport)
        .where(DriftReport.company_id == access.company.id)
        .order_by(DriftReport.period_end.desc())
        .limit(limit)
    )
    items = [_report_dict(r) for r in result.scalars().all()]
    return {"items": items, "total": len(items)}
