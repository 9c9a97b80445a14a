"""Valuation snapshot recalculation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.errors import NotFoundError
from exitosx.valuation.bri import (
    SNAPSHOT_FIELDS,
    ScoringResponse,
    calculate_category_scores,
    calculate_weighted_bri_score,
    category_scores_from_snapshot,
    deduplicate_responses,
    get_bri_weights_for_company,
)
from exitosx.valuation.calculate import ALPHA, calculate_core_score, calculate_valuation
from exitosx.valuation.dcf import calculate_auto_dcf
from exitosx.valuation.industry_multiples import estimate_ebitda_from_revenue, get_industry_multiples

logger = logging.getLogger(__name__)

MARKET_SALARY_BY_REVENUE = {
    "UNDER_500K": 80_000,
    "FROM_500K_TO_1M": 120_000,
    "FROM_1M_TO_3M": 150_000,
    "FROM_3M_TO_10M": 200_000,
    "FROM_10M_TO_25M": 300_000,
    "OVER_25M": 400_000,
}
DEFAULT_MARKET_SALARY = 150_000

# Typical EBITDA margin improvement from closing each category's gap
EBITDA_IMPROVEMENT_BY_CATEGORY = {
    "FINANCIAL": 0.05,
    "TRANSFERABILITY": 0.02,
    "OPERATIONAL": 0.08,
    "MARKET": 0.04,
    "LEGAL_TAX": 0.03,
    "PERSONAL": 0.01,
}
MAX_EBITDA_IMPROVEMENT = 0.25

# Project answers count at half weight against ten-point BRI questions
PROJECT_QUESTION_POINTS = 10.0
PROJECT_RESPONSE_WEIGHT = 0.5
REFINED_DEFAULT_SCORE = 0.5


@dataclass
class RecalculateResult:
    success: bool
    company_id: str
    company_name: str
    snapshot_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def get_market_salary(revenue_size_category: str | None) -> float:
    if not revenue_size_category:
        return DEFAULT_MARKET_SALARY
    return MARKET_SALARY_BY_REVENUE.get(revenue_size_category, DEFAULT_MARKET_SALARY)


def calculate_ebitda_improvement_multiplier(
    category_scores: dict[str, float], weights: dict[str, float]
) -> float:
    potential = sum(
        (1 - score) * EBITDA_IMPROVEMENT_BY_CATEGORY.get(category, 0.0) * (weights.get(category, 0.0) / 0.25)
        for category, score in category_scores.items()
    )
    return 1 + min(potential, MAX_EBITDA_IMPROVEMENT)


def calculate_adjusted_ebitda(
    annual_ebitda: float,
    annual_revenue: float,
    owner_compensation: float,
    adjustments: list,
    revenue_size_category: str | None,
    multiples,
) -> float:
    """Base EBITDA plus add-backs and excess owner pay, less deductions.

    Without a positive reported EBITDA the base is estimated from revenue.
    """
    add_backs = sum(float(a.amount) for a in adjustments if a.type == "ADD_BACK")
    deductions = sum(float(a.amount) for a in adjustments if a.type == "DEDUCTION")
    market_salary = min(owner_compensation, get_market_salary(revenue_size_category))
    excess_comp = max(0.0, owner_compensation - market_salary)

    base = annual_ebitda if annual_ebitda > 0 else estimate_ebitda_from_revenue(annual_revenue, multiples)
    return base + add_backs + excess_comp - deductions


async def load_scoring_responses(session: AsyncSession, company_id) -> list[ScoringResponse]:
    """Every BRI response for the company, upgraded answers taking precedence."""
    from exitosx.models.db import Assessment, AssessmentResponse

    result = await session.execute(
        select(AssessmentResponse)
        .join(Assessment, AssessmentResponse.assessment_id == Assessment.id)
        .where(Assessment.company_id == company_id)
        .options(
            selectinload(AssessmentResponse.question),
            selectinload(AssessmentResponse.selected_option),
            selectinload(AssessmentResponse.effective_option),
        )
        .order_by(AssessmentResponse.updated_at.desc())
    )

    responses = []
    for r in result.scalars().all():
        option = r.effective_option or r.selected_option
        responses.append(
            ScoringResponse(
                question_id=str(r.question_id),
                bri_category=r.question.bri_category,
                max_impact_points=float(r.question.max_impact_points),
                score_value=float(option.score_value) if option else None,
                updated_at=r.updated_at,
            )
        )
    return responses


async def load_project_scoring_responses(session: AsyncSession, company_id) -> list[ScoringResponse]:
    """Answers from completed project assessments, as extra BRI evidence."""
    from exitosx.models.db import ProjectAssessment, ProjectAssessmentResponse

    result = await session.execute(
        select(ProjectAssessmentResponse)
        .join(ProjectAssessment, ProjectAssessmentResponse.assessment_id == ProjectAssessment.id)
        .where(ProjectAssessment.company_id == company_id, ProjectAssessment.status == "COMPLETED")
        .options(
            selectinload(ProjectAssessmentResponse.question),
            selectinload(ProjectAssessmentResponse.selected_option),
            selectinload(ProjectAssessmentResponse.effective_option),
        )
        .order_by(ProjectAssessmentResponse.updated_at.desc())
    )

    responses = []
    for r in result.scalars().all():
        option = r.effective_option or r.selected_option
        responses.append(
            ScoringResponse(
                # Kept apart from BRI questions when deduplicating
                question_id=f"project:{r.question_id}",
                bri_category=r.question.bri_category,
                max_impact_points=PROJECT_QUESTION_POINTS * PROJECT_RESPONSE_WEIGHT,
                score_value=float(option.score_value) if option else None,
                updated_at=r.updated_at,
            )
        )
    return responses


def calculate_refined_category_scores(
    bri_responses: list[ScoringResponse],
    project_responses: list[ScoringResponse],
) -> dict[str, float]:
    """Category scores with project answers folded into the BRI answers.

    Once project answers exist, categories with no data at all score
    REFINED_DEFAULT_SCORE instead of 0.
    """
    if not project_responses:
        return calculate_category_scores(deduplicate_responses(bri_responses))
    return calculate_category_scores(
        deduplicate_responses([*bri_responses, *project_responses]), default=REFINED_DEFAULT_SCORE
    )


@dataclass
class BriRefinement:
    bri_score: float
    category_scores: dict[str, float]
    previous_category_scores: dict[str, float] | None = None
    snapshot_id: str | None = None


async def refine_bri_for_company(
    session: AsyncSession,
    company_id,
    snapshot_reason: str,
    created_by_user_id=None,
) -> BriRefinement:
    """Re-score the BRI with project answers and snapshot the result.

    The new snapshot keeps the previous snapshot's EBITDA, multiples and
    core score so only the BRI side of the valuation moves. Without a
    previous snapshot a full recalculation runs instead.
    """
    from exitosx.models.db import Company, ValuationSnapshot

    company = (await session.execute(select(Company).where(Company.id == company_id))).scalar_one_or_none()
    if company is None:
        raise NotFoundError("Company not found")

    responses = await load_scoring_responses(session, company_id)
    project_responses = await load_project_scoring_responses(session, company_id)
    category_scores = calculate_refined_category_scores(responses, project_responses)
    weights = await get_bri_weights_for_company(session, company.bri_weights)
    bri_score = calculate_weighted_bri_score(category_scores, weights)

    previous = (
        await session.execute(
            select(ValuationSnapshot)
            .where(ValuationSnapshot.company_id == company_id)
            .order_by(ValuationSnapshot.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if previous is None:
        outcome = await recalculate_snapshot_for_company(session, company_id, snapshot_reason, created_by_user_id)
        if not outcome.success:
            logger.warning("No refined snapshot for company %s: %s", company_id, outcome.error)
        return BriRefinement(bri_score, category_scores, snapshot_id=outcome.snapshot_id)

    adjusted_ebitda = float(previous.adjusted_ebitda)
    valuation = calculate_valuation(
        adjusted_ebitda,
        float(previous.industry_multiple_low),
        float(previous.industry_multiple_high),
        float(previous.core_score),
        bri_score,
    )
    improvement = calculate_ebitda_improvement_multiplier(category_scores, weights)
    potential_value = adjusted_ebitda * improvement * valuation.base_multiple

    snapshot = ValuationSnapshot(
        id=uuid.uuid4(),
        company_id=company_id,
        created_by_user_id=created_by_user_id,
        adjusted_ebitda=adjusted_ebitda,
        industry_multiple_low=previous.industry_multiple_low,
        industry_multiple_high=previous.industry_multiple_high,
        core_score=previous.core_score,
        bri_score=bri_score,
        base_multiple=valuation.base_multiple,
        discount_fraction=valuation.discount_fraction,
        final_multiple=valuation.final_multiple,
        current_value=valuation.current_value,
        potential_value=potential_value,
        value_gap=potential_value - valuation.current_value,
        alpha_constant=ALPHA,
        snapshot_reason=snapshot_reason,
        dcf_enterprise_value=previous.dcf_enterprise_value,
        dcf_equity_value=previous.dcf_equity_value,
        dcf_wacc=previous.dcf_wacc,
        dcf_implied_multiple=previous.dcf_implied_multiple,
        **{field: category_scores[cat] for cat, field in SNAPSHOT_FIELDS.items()},
    )
    session.add(snapshot)
    await session.flush()

    logger.info(
        "Refined snapshot for company %s: BRI %.3f -> %.3f (%s)",
        company_id,
        float(previous.bri_score),
        bri_score,
        snapshot_reason,
    )
    return BriRefinement(
        bri_score=bri_score,
        category_scores=category_scores,
        previous_category_scores=category_scores_from_snapshot(previous),
        snapshot_id=str(snapshot.id),
    )


async def recalculate_snapshot_for_company(
    session: AsyncSession,
    company_id,
    snapshot_reason: str,
    created_by_user_id=None,
) -> RecalculateResult:
    """Create a new valuation snapshot from the company's latest data."""
    from exitosx.models.db import Company, DCFAssumptions, ValuationSnapshot

    result = await session.execute(
        select(Company)
        .where(Company.id == company_id)
        .options(selectinload(Company.core_factors), selectinload(Company.ebitda_adjustments))
    )
    company = result.scalar_one_or_none()
    if not company:
        return RecalculateResult(
            success=False, company_id=str(company_id), company_name="Unknown", error="Company not found"
        )

    responses = await load_scoring_responses(session, company_id)
    if not responses:
        return RecalculateResult(
            success=False,
            company_id=str(company_id),
            company_name=company.name,
            error="No assessment responses found",
        )
    project_responses = await load_project_scoring_responses(session, company_id)

    category_scores = calculate_refined_category_scores(responses, project_responses)
    weights = await get_bri_weights_for_company(session, company.bri_weights)
    bri_score = calculate_weighted_bri_score(category_scores, weights)
    core_score = calculate_core_score(company.core_factors)

    multiples = await get_industry_multiples(
        session, company.icb_sub_sector, company.icb_sector, company.icb_super_sector, company.icb_industry
    )
    adjusted_ebitda = calculate_adjusted_ebitda(
        float(company.annual_ebitda or 0),
        float(company.annual_revenue or 0),
        float(company.owner_compensation or 0),
        company.ebitda_adjustments,
        company.core_factors.revenue_size_category if company.core_factors else None,
        multiples,
    )

    valuation = calculate_valuation(
        adjusted_ebitda,
        multiples.ebitda_multiple_low,
        multiples.ebitda_multiple_high,
        core_score,
        bri_score,
    )
    improvement = calculate_ebitda_improvement_multiplier(category_scores, weights)
    potential_value = adjusted_ebitda * improvement * valuation.base_multiple

    dcf_fields: dict = {}
    try:
        dcf_result = await session.execute(
            select(DCFAssumptions).where(DCFAssumptions.company_id == company_id)
        )
        assumptions = dcf_result.scalar_one_or_none()
        if assumptions is None or not assumptions.is_manually_configured:
            auto = await calculate_auto_dcf(session, company_id, bri_score)
            if auto.success:
                dcf_fields = {
                    "dcf_enterprise_value": auto.enterprise_value,
                    "dcf_equity_value": auto.equity_value,
                    "dcf_wacc": auto.wacc,
                    "dcf_implied_multiple": auto.implied_multiple,
                }
                logger.info(
                    "Auto-DCF for company %s: EV=%.0f WACC=%.1f%%",
                    company_id,
                    auto.enterprise_value,
                    auto.wacc * 100,
                )
            else:
                logger.info("Auto-DCF skipped for company %s: %s", company_id, auto.reason)
        else:
            logger.info("Auto-DCF skipped for company %s: manually configured", company_id)
    except Exception:
        # Snapshot is still created without DCF fields
        logger.exception("Auto-DCF failed for company %s", company_id)

    snapshot = ValuationSnapshot(
        company_id=company.id,
        created_by_user_id=created_by_user_id,
        adjusted_ebitda=adjusted_ebitda,
        industry_multiple_low=multiples.ebitda_multiple_low,
        industry_multiple_high=multiples.ebitda_multiple_high,
        core_score=core_score,
        bri_score=bri_score,
        base_multiple=valuation.base_multiple,
        discount_fraction=valuation.discount_fraction,
        final_multiple=valuation.final_multiple,
        current_value=valuation.current_value,
        potential_value=potential_value,
        value_gap=potential_value - valuation.current_value,
        alpha_constant=ALPHA,
        snapshot_reason=snapshot_reason,
        **{field: category_scores[cat] for cat, field in SNAPSHOT_FIELDS.items()},
        **dcf_fields,
    )
    session.add(snapshot)
    await session.flush()

    logger.info(
        "Snapshot %s for company %s: BRI=%.3f value=%.0f (%s)",
        snapshot.id,
        company_id,
        bri_score,
        valuation.current_value,
        snapshot_reason,
    )
    return RecalculateResult(
        success=True,
        company_id=str(company.id),
        company_name=company.name,
        snapshot_id=str(snapshot.id),
    )


async def find_affected_companies(
    session: AsyncSession,
    icb_sub_sector: str | None = None,
    icb_sector: str | None = None,
    icb_super_sector: str | None = None,
    icb_industry: str | None = None,
) -> list:
    """Companies matching any of the given ICB levels."""
    from exitosx.models.db import Company

    conditions = []
    if icb_sub_sector:
        conditions.append(Company.icb_sub_sector == icb_sub_sector)
    if icb_sector:
        conditions.append(Company.icb_sector == icb_sector)
    if icb_super_sector:
        conditions.append(Company.icb_super_sector == icb_super_sector)
    if icb_industry:
        conditions.append(Company.icb_industry == icb_industry)
    if not conditions:
        return []

    result = await session.execute(select(Company).where(or_(*conditions)))
    return list(result.scalars().all())


async def recalculate_for_multiple_update(
    session: AsyncSession,
    icb_sub_sector: str | None = None,
    icb_sector: str | None = None,
    icb_super_sector: str | None = None,
    icb_industry: str | None = None,
    update_type: str = "Both",
    created_by_user_id=None,
) -> dict:
    """Re-run snapshots for every company affected by a multiples change."""
    reason = f"Industry {update_type} multiples updated"
    companies = await find_affected_companies(
        session, icb_sub_sector, icb_sector, icb_super_sector, icb_industry
    )

    results = []
    for company in companies:
        try:
            outcome = await recalculate_snapshot_for_company(session, company.id, reason, created_by_user_id)
        except Exception as e:
            logger.exception("Snapshot recalculation failed for company %s", company.id)
            outcome = RecalculateResult(
                success=False, company_id=str(company.id), company_name=company.name, error=str(e)
            )
        results.append(outcome)

    successful = sum(1 for r in results if r.success)
    return {
        "total_companies": len(companies),
        "successful": successful,
        "failed": len(results) - successful,
        "results": [r.to_dict() for r in results],
    }
