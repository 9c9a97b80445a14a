"""Company dashboard route."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.api.deps import CompanyAccess, get_db, require_company
from exitosx.industries import build_industry_path
from exitosx.models.db import (
    Assessment,
    DCFAssumptions,
    EbitdaAdjustment,
    FinancialPeriod,
    ProjectAssessment,
    Task,
    ValuationSnapshot,
)
from exitosx.valuation.calculate import calculate_core_score
from exitosx.valuation.dashboard import (
    build_risk_tier,
    build_task_stats,
    build_trend_tier,
    build_value_tiers,
    resolve_adjusted_ebitda,
)
from exitosx.valuation.industry_multiples import get_industry_multiples

logger = logging.getLogger(__name__)

router = APIRouter()

TREND_SNAPSHOTS = 6


async def _last_assessment_date(session: AsyncSession, company_id) -> datetime | None:
    dates = []
    for model in (Assessment, ProjectAssessment):
        result = await session.execute(
            select(func.max(model.completed_at)).where(model.company_id == company_id)
        )
        value = result.scalar_one_or_none()
        if value is not None:
            dates.append(value)
    return max(dates, default=None)


@router.get("/companies/{company_id}/dashboard")
async def get_dashboard(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Value, drivers, risk, execution and trend tiers for one company."""
    company = access.company
    now = datetime.now(timezone.utc)

    snapshots = list(
        (
            await session.execute(
                select(ValuationSnapshot)
                .where(ValuationSnapshot.company_id == company.id)
                .order_by(ValuationSnapshot.created_at.desc())
                .limit(TREND_SNAPSHOTS)
            )
        )
        .scalars()
        .all()
    )
    latest = snapshots[0] if snapshots else None

    periods = list(
        (
            await session.execute(
                select(FinancialPeriod)
                .options(selectinload(FinancialPeriod.income_statement))
                .where(FinancialPeriod.company_id == company.id, FinancialPeriod.period_type == "ANNUAL")
            )
        )
        .scalars()
        .all()
    )
    adjustments = list(
        (await session.execute(select(EbitdaAdjustment).where(EbitdaAdjustment.company_id == company.id)))
        .scalars()
        .all()
    )
    dcf = (
        await session.execute(select(DCFAssumptions).where(DCFAssumptions.company_id == company.id))
    ).scalar_one_or_none()
    multiples = await get_industry_multiples(
        session, company.icb_sub_sector, company.icb_sector, company.icb_super_sector, company.icb_industry
    )
    await session.refresh(company, ["core_factors"])
    core_score = calculate_core_score(company.core_factors) if company.core_factors else None

    ebitda = resolve_adjusted_ebitda(company, periods, adjustments, latest, multiples, now.date())
    if ebitda.source == "financials":
        statement_ebitda = next(p for p in periods if p.fiscal_year == ebitda.fiscal_year).income_statement.ebitda
        if abs(float(company.annual_ebitda or 0) - float(statement_ebitda)) > 0.01:
            company.annual_ebitda = float(statement_ebitda)
            logger.info("Synced annual EBITDA for company %s from FY %s", company.id, ebitda.fiscal_year)

    tier1, tier2_range = build_value_tiers(
        ebitda.adjusted_ebitda,
        latest,
        multiples,
        core_score,
        dcf,
        build_industry_path(company) or "General Industry",
    )

    tasks = list((await session.execute(select(Task).where(Task.company_id == company.id))).scalars().all())
    last_assessment = await _last_assessment_date(session, company.id)
    completed_since = sum(
        1
        for t in tasks
        if t.status == "COMPLETED"
        and (last_assessment is None or (t.completed_at is not None and t.completed_at > last_assessment))
    )

    return {
        "company": {
            "id": str(company.id),
            "name": company.name,
            "annual_revenue": float(company.annual_revenue or 0),
            "annual_ebitda": float(company.annual_ebitda or 0),
            "adjusted_ebitda": ebitda.adjusted_ebitda,
        },
        "tier1": tier1,
        "tier2": {
            "adjusted_ebitda": ebitda.adjusted_ebitda,
            "is_ebitda_estimated": ebitda.is_estimated,
            "is_ebitda_from_financials": ebitda.source == "financials",
            "ebitda_source": ebitda.source,
            "fiscal_year": ebitda.fiscal_year,
            "multiple_range": tier2_range,
            "has_custom_multiples": tier1["has_custom_multiples"],
        },
        "tier3": build_risk_tier(latest),
        "tier4": {"task_stats": build_task_stats(tasks, now)},
        "tier5": build_trend_tier(snapshots),
        "has_assessment": latest is not None,
        "last_assessment_date": last_assessment.isoformat() if last_assessment else None,
        "tasks_completed_since_assessment": completed_since,
    }
