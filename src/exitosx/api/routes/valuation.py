"""Valuation snapshot, DCF, comparables and industry multiple routes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.agents.comparables import CompanyProfile, ComparablesAgent
from exitosx.api.deps import CompanyAccess, get_db, require_company, require_granular, verify_api_key
from exitosx.industries import build_industry_path, get_industry_name
from exitosx.models.db import Company, DCFAssumptions, IndustryMultiple, ValuationSnapshot
from exitosx.models.schemas import ComparablesRequest, DCFAssumptionsUpdate, IndustryMultipleCreate
from exitosx.valuation.analysis import analyze_valuation
from exitosx.valuation.bri import get_bri_weights_for_company
from exitosx.valuation.dcf import calculate_dcf, derive_dcf_inputs, load_annual_periods
from exitosx.valuation.industry_multiples import get_industry_multiples
from exitosx.valuation.snapshot import recalculate_for_multiple_update, recalculate_snapshot_for_company
from exitosx.valuation.wacc import (
    DEFAULT_TERMINAL_GROWTH_RATE,
    calculate_wacc_defaults,
    solve_implied_wacc,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SNAPSHOT_HISTORY_LIMIT = 12


def _snapshot_dict(snapshot: ValuationSnapshot | None) -> dict | None:
    if snapshot is None:
        return None
    data = {c.key: getattr(snapshot, c.key) for c in snapshot.__table__.columns}
    data["id"] = str(snapshot.id)
    data["company_id"] = str(snapshot.company_id)
    if data.get("created_by_user_id"):
        data["created_by_user_id"] = str(data["created_by_user_id"])
    return data


async def _latest_snapshot(session: AsyncSession, company_id) -> ValuationSnapshot | None:
    result = await session.execute(
        select(ValuationSnapshot)
        .where(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.get("/companies/{company_id}/valuation")
async def get_valuation(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Latest snapshot plus recent history."""
    require_granular(access, "valuation.summary:view")
    result = await session.execute(
        select(ValuationSnapshot)
        .where(ValuationSnapshot.company_id == access.company.id)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(SNAPSHOT_HISTORY_LIMIT)
    )
    snapshots = result.scalars().all()
    return {
        "current": _snapshot_dict(snapshots[0]) if snapshots else None,
        "history": [_snapshot_dict(s) for s in snapshots],
    }


@router.post("/companies/{company_id}/valuation/recalculate")
async def recalculate_valuation(
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    outcome = await recalculate_snapshot_for_company(
        session, access.company.id, "Manual recalculation", created_by_user_id=access.user.id
    )
    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.error)
    return outcome.to_dict()


@router.get("/companies/{company_id}/valuation/analysis")
async def get_valuation_analysis(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Method recommendation, risk discounts and per-category value gaps."""
    require_granular(access, "valuation.detailed:view")
    company = access.company
    await session.refresh(company, ["core_factors"])
    snapshot = await _latest_snapshot(session, company.id)
    periods = await load_annual_periods(session, company.id)
    multiples = await get_industry_multiples(
        session, company.icb_sub_sector, company.icb_sector, company.icb_super_sector, company.icb_industry
    )
    weights = await get_bri_weights_for_company(session, company.bri_weights)
    return analyze_valuation(
        company,
        company.core_factors,
        snapshot,
        periods,
        multiples,
        weights=weights,
        industry_name=get_industry_name(company),
    )


# ── DCF ───────────────────────────────────────────────────────────────────────


def _resolve_wacc(assumptions: DCFAssumptions, defaults) -> float:
    """Cost of equity from the stored build-up; debt terms fall back to defaults."""
    csr = assumptions.company_specific_risk
    if csr is None:
        csr = defaults.company_specific_risk
    cost_of_equity = (
        assumptions.risk_free_rate
        + assumptions.beta * assumptions.market_risk_premium
        + assumptions.size_risk_premium
        + csr
    )
    cost_of_debt = (
        assumptions.cost_of_debt_override
        if assumptions.cost_of_debt_override is not None
        else defaults.pre_tax_cost_of_debt
    )
    tax_rate = assumptions.tax_rate_override if assumptions.tax_rate_override is not None else defaults.tax_rate
    debt_weight = (
        assumptions.debt_weight_override
        if assumptions.debt_weight_override is not None
        else defaults.debt_weight
    )
    return (1 - debt_weight) * cost_of_equity + debt_weight * cost_of_debt * (1 - tax_rate)


async def _dcf_context(session: AsyncSession, company: Company) -> tuple:
    snapshot = await _latest_snapshot(session, company.id)
    derived = derive_dcf_inputs(await load_annual_periods(session, company.id))
    bri_score = float(snapshot.bri_score) if snapshot else 0.5
    ebitda = (
        float(snapshot.adjusted_ebitda)
        if snapshot and snapshot.adjusted_ebitda
        else (derived.ebitda or float(company.annual_ebitda or 0))
    )
    defaults = calculate_wacc_defaults(
        ebitda,
        bri_score,
        derived_cost_of_debt=derived.derived_cost_of_debt,
        derived_tax_rate=derived.derived_tax_rate,
        derived_debt_weight=derived.derived_debt_weight,
    )
    return snapshot, derived, defaults, ebitda


def _run_dcf(assumptions: DCFAssumptions, derived, defaults, ebitda: float):
    base_fcf = assumptions.base_fcf if assumptions.base_fcf is not None else derived.base_fcf
    if not base_fcf:
        return None, None
    wacc = _resolve_wacc(assumptions, defaults)
    exit_multiple = assumptions.exit_multiple if assumptions.terminal_method == "exit_multiple" else None
    result = calculate_dcf(
        base_fcf=base_fcf,
        growth_rates=list(assumptions.growth_assumptions or derived.growth_rates),
        wacc=wacc,
        terminal_growth=assumptions.perpetual_growth_rate,
        exit_multiple=exit_multiple,
        mid_year=assumptions.use_mid_year_convention,
        net_debt=derived.net_debt or 0.0,
        terminal_ebitda=ebitda if ebitda > 0 else None,
    )
    return result, wacc


def _assumptions_dict(assumptions: DCFAssumptions | None) -> dict | None:
    if assumptions is None:
        return None
    data = {c.key: getattr(assumptions, c.key) for c in assumptions.__table__.columns}
    data["id"] = str(assumptions.id)
    data["company_id"] = str(assumptions.company_id)
    return data


@router.get("/companies/{company_id}/dcf")
async def get_dcf(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """Stored assumptions, calibrated defaults and the resulting DCF."""
    require_granular(access, "financials.dcf:view")
    result = await session.execute(select(DCFAssumptions).where(DCFAssumptions.company_id == access.company.id))
    assumptions = result.scalar_one_or_none()
    snapshot, derived, defaults, ebitda = await _dcf_context(session, access.company)

    dcf = None
    if assumptions is not None:
        dcf, _ = _run_dcf(assumptions, derived, defaults, ebitda)

    implied_wacc = None
    if snapshot and derived.base_fcf:
        implied_wacc = solve_implied_wacc(
            float(snapshot.current_value or 0),
            derived.base_fcf,
            derived.growth_rates,
            assumptions.perpetual_growth_rate if assumptions else DEFAULT_TERMINAL_GROWTH_RATE,
        )

    return {
        "assumptions": _assumptions_dict(assumptions),
        "defaults": defaults.to_dict(),
        "derived": derived.to_dict(),
        "result": dcf.to_dict() if dcf else None,
        "implied_wacc": implied_wacc,
    }


@router.put("/companies/{company_id}/dcf")
async def save_dcf(
    data: DCFAssumptionsUpdate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Save assumptions, recompute the DCF and store WACC, EV and equity value."""
    require_granular(access, "financials.dcf:edit")
    snapshot, derived, defaults, ebitda = await _dcf_context(session, access.company)

    result = await session.execute(select(DCFAssumptions).where(DCFAssumptions.company_id == access.company.id))
    assumptions = result.scalar_one_or_none()
    if assumptions is None:
        assumptions = DCFAssumptions(
            company_id=access.company.id,
            risk_free_rate=defaults.risk_free_rate,
            market_risk_premium=defaults.equity_risk_premium,
            beta=defaults.beta,
            size_risk_premium=defaults.size_risk_premium,
            growth_assumptions=list(derived.growth_rates),
            terminal_method="gordon",
            perpetual_growth_rate=DEFAULT_TERMINAL_GROWTH_RATE,
            use_mid_year_convention=True,
            use_dcf_value=False,
        )
        session.add(assumptions)

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(assumptions, key, value)

    if assumptions.terminal_method == "exit_multiple" and not assumptions.exit_multiple:
        raise HTTPException(status_code=400, detail="An exit multiple is required for the exit multiple method")

    low = assumptions.ebitda_multiple_low_override
    high = assumptions.ebitda_multiple_high_override
    if low is not None and high is not None and low > high:
        raise HTTPException(status_code=400, detail="Multiple low override cannot exceed the high override")

    dcf, wacc = _run_dcf(assumptions, derived, defaults, ebitda)
    assumptions.is_manually_configured = True
    assumptions.ebitda_tier = defaults.ebitda_tier
    assumptions.calculated_wacc = wacc
    assumptions.enterprise_value = dcf.enterprise_value if dcf else None
    assumptions.equity_value = dcf.equity_value if dcf else None

    await session.flush()
    await session.refresh(assumptions)
    return {
        "assumptions": _assumptions_dict(assumptions),
        "defaults": defaults.to_dict(),
        "derived": derived.to_dict(),
        "result": dcf.to_dict() if dcf else None,
    }


# ── Comparables ───────────────────────────────────────────────────────────────


@router.post("/companies/{company_id}/comparables")
async def find_comparables(
    data: ComparablesRequest,
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """AI comparable public companies with relevance-weighted multiples."""
    require_granular(access, "valuation.detailed:view")
    result = await session.execute(
        select(Company).options(selectinload(Company.core_factors)).where(Company.id == access.company.id)
    )
    company = result.scalar_one()
    factors = company.core_factors
    revenue = float(company.annual_revenue or 0)
    ebitda = float(company.annual_ebitda or 0)

    profile = CompanyProfile(
        name=company.name,
        industry=get_industry_name(company) or company.icb_sub_sector,
        revenue=revenue,
        revenue_growth_rate=data.revenue_growth_rate,
        ebitda_margin=ebitda / revenue if revenue > 0 else None,
        industry_path=build_industry_path(company),
        revenue_size_category=factors.revenue_size_category if factors else None,
        revenue_model=factors.revenue_model if factors else None,
        is_recurring_revenue=(
            factors.revenue_model in ("SUBSCRIPTION_SAAS", "RECURRING_CONTRACTS") if factors else None
        ),
        customer_concentration=data.customer_concentration,
        geography=data.geography,
        business_description=company.business_description,
    )
    agent = ComparablesAgent()
    comparables = await agent.find_comparables(profile)
    return comparables.to_dict()


# ── Industry multiples (admin) ────────────────────────────────────────────────


@router.post("/industry-multiples", status_code=201)
async def create_industry_multiple(
    data: IndustryMultipleCreate,
    session: AsyncSession = Depends(get_db),
    _: str = Depends(verify_api_key),
):
    """Record new multiples and re-run snapshots for every affected company."""
    if data.ebitda_multiple_low > data.ebitda_multiple_high:
        raise HTTPException(status_code=400, detail="EBITDA multiple low cannot exceed high")
    if data.revenue_multiple_low > data.revenue_multiple_high:
        raise HTTPException(status_code=400, detail="Revenue multiple low cannot exceed high")

    values = data.model_dump(exclude_none=True)
    values.setdefault("effective_date", datetime.now(timezone.utc))
    multiple = IndustryMultiple(**values)
    session.add(multiple)
    await session.flush()

    recalculation = await recalculate_for_multiple_update(
        session,
        icb_sub_sector=data.icb_sub_sector,
        icb_sector=data.icb_sector,
        icb_super_sector=data.icb_super_sector,
        icb_industry=data.icb_industry,
        update_type="Both",
    )
    logger.info(
        "Industry multiples for %s updated; %d/%d snapshots recalculated",
        data.icb_sub_sector,
        recalculation["successful"],
        recalculation["total_companies"],
    )
    return {"id": str(multiple.id), "recalculation": recalculation}
