"""Financial period and statement routes."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.api.deps import CompanyAccess, get_db, require_company, require_granular
from exitosx.models.db import BalanceSheet, CashFlowStatement, FinancialPeriod, IncomeStatement
from exitosx.models.schemas import (
    BalanceSheetInput,
    CashFlowInput,
    FinancialPeriodCreate,
    FinancialPeriodResponse,
    FinancialPeriodUpdate,
    IncomeStatementInput,
)
from exitosx.valuation.financials import (
    calculate_free_cash_flow,
    derive_balance_sheet,
    derive_income_statement,
)

router = APIRouter()

QUARTER_START_MONTHS = {1: 1, 2: 4, 3: 7, 4: 10}
QUARTER_END = {1: (3, 31), 2: (6, 30), 3: (9, 30), 4: (12, 31)}


def _default_label(data: FinancialPeriodCreate) -> str:
    if data.period_type == "QUARTERLY" and data.quarter:
        return f"Q{data.quarter} {data.fiscal_year}"
    return f"FY {data.fiscal_year}"


def _default_dates(data: FinancialPeriodCreate) -> tuple[date, date]:
    if data.period_type == "QUARTERLY" and data.quarter:
        month, day = QUARTER_END[data.quarter]
        return date(data.fiscal_year, QUARTER_START_MONTHS[data.quarter], 1), date(data.fiscal_year, month, day)
    return date(data.fiscal_year, 1, 1), date(data.fiscal_year, 12, 31)


def _columns(obj) -> dict | None:
    if obj is None:
        return None
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns if c.key not in ("id", "period_id")}


def _period_dict(period: FinancialPeriod) -> dict:
    return {
        **FinancialPeriodResponse.model_validate(period).model_dump(mode="json"),
        "income_statement": _columns(period.income_statement),
        "balance_sheet": _columns(period.balance_sheet),
        "cash_flow_statement": _columns(period.cash_flow_statement),
    }


async def _get_period(session: AsyncSession, company_id: uuid.UUID, period_id: uuid.UUID) -> FinancialPeriod:
    result = await session.execute(
        select(FinancialPeriod)
        .options(
            selectinload(FinancialPeriod.income_statement),
            selectinload(FinancialPeriod.balance_sheet),
            selectinload(FinancialPeriod.cash_flow_statement),
        )
        .where(FinancialPeriod.id == period_id, FinancialPeriod.company_id == company_id)
    )
    period = result.scalar_one_or_none()
    if not period:
        raise HTTPException(status_code=404, detail="Financial period not found")
    return period


async def _ensure_unique_label(session: AsyncSession, company_id, label: str, exclude_id=None) -> None:
    query = select(FinancialPeriod.id).where(
        FinancialPeriod.company_id == company_id, FinancialPeriod.label == label
    )
    if exclude_id is not None:
        query = query.where(FinancialPeriod.id != exclude_id)
    if (await session.execute(query)).first():
        raise HTTPException(status_code=409, detail=f"A financial period labelled '{label}' already exists")


@router.get("/companies/{company_id}/financial-periods")
async def list_periods(
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    """List periods newest first with their statements."""
    require_granular(access, "financials.statements:view")
    result = await session.execute(
        select(FinancialPeriod)
        .options(
            selectinload(FinancialPeriod.income_statement),
            selectinload(FinancialPeriod.balance_sheet),
            selectinload(FinancialPeriod.cash_flow_statement),
        )
        .where(FinancialPeriod.company_id == access.company.id)
        .order_by(FinancialPeriod.fiscal_year.desc(), FinancialPeriod.quarter.desc().nulls_first())
    )
    periods = result.scalars().all()
    return {"items": [_period_dict(p) for p in periods], "total": len(periods)}


@router.post("/companies/{company_id}/financial-periods", status_code=201)
async def create_period(
    data: FinancialPeriodCreate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.statements:edit")
    if data.period_type == "QUARTERLY" and not data.quarter:
        raise HTTPException(status_code=400, detail="Quarterly periods require a quarter")

    label = data.label or _default_label(data)
    await _ensure_unique_label(session, access.company.id, label)

    default_start, default_end = _default_dates(data)
    start_date = data.start_date or default_start
    end_date = data.end_date or default_end
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must be on or after start_date")

    period = FinancialPeriod(
        company_id=access.company.id,
        period_type=data.period_type,
        fiscal_year=data.fiscal_year,
        quarter=data.quarter,
        label=label,
        start_date=start_date,
        end_date=end_date,
    )
    session.add(period)
    await session.flush()
    return _period_dict(await _get_period(session, access.company.id, period.id))


@router.get("/companies/{company_id}/financial-periods/{period_id}")
async def get_period(
    period_id: uuid.UUID,
    access: CompanyAccess = Depends(require_company()),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.statements:view")
    return _period_dict(await _get_period(session, access.company.id, period_id))


@router.patch("/companies/{company_id}/financial-periods/{period_id}")
async def update_period(
    period_id: uuid.UUID,
    data: FinancialPeriodUpdate,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.statements:edit")
    period = await _get_period(session, access.company.id, period_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("label"):
        await _ensure_unique_label(session, access.company.id, update_data["label"], exclude_id=period.id)

    for key, value in update_data.items():
        setattr(period, key, value)
    if period.end_date < period.start_date:
        raise HTTPException(status_code=400, detail="end_date must be on or after start_date")

    await session.flush()
    return _period_dict(period)


@router.delete("/companies/{company_id}/financial-periods/{period_id}", status_code=204)
async def delete_period(
    period_id: uuid.UUID,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.statements:edit")
    period = await _get_period(session, access.company.id, period_id)
    await session.delete(period)


# ── Statements ────────────────────────────────────────────────────────────────


@router.put("/companies/{company_id}/financial-periods/{period_id}/income-statement")
async def upsert_income_statement(
    period_id: uuid.UUID,
    data: IncomeStatementInput,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Store the income statement with derived gross profit, EBITDA and margins."""
    require_granular(access, "financials.statements:edit")
    period = await _get_period(session, access.company.id, period_id)
    values = derive_income_statement(data.model_dump())

    if period.income_statement is None:
        period.income_statement = IncomeStatement(**values)
    else:
        for key, value in values.items():
            setattr(period.income_statement, key, value)

    await session.flush()
    return _columns(period.income_statement)


@router.put("/companies/{company_id}/financial-periods/{period_id}/balance-sheet")
async def upsert_balance_sheet(
    period_id: uuid.UUID,
    data: BalanceSheetInput,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    """Store the balance sheet with derived totals and working capital."""
    require_granular(access, "financials.statements:edit")
    period = await _get_period(session, access.company.id, period_id)
    values = derive_balance_sheet(data.model_dump())

    if period.balance_sheet is None:
        period.balance_sheet = BalanceSheet(**values)
    else:
        for key, value in values.items():
            setattr(period.balance_sheet, key, value)

    await session.flush()
    return _columns(period.balance_sheet)


@router.put("/companies/{company_id}/financial-periods/{period_id}/cash-flow")
async def upsert_cash_flow(
    period_id: uuid.UUID,
    data: CashFlowInput,
    access: CompanyAccess = Depends(require_company("COMPANY_UPDATE")),
    session: AsyncSession = Depends(get_db),
):
    require_granular(access, "financials.statements:edit")
    period = await _get_period(session, access.company.id, period_id)
    values = {
        **data.model_dump(),
        "free_cash_flow": calculate_free_cash_flow(data.cash_from_operations, data.capital_expenditures),
    }

    if period.cash_flow_statement is None:
        period.cash_flow_statement = CashFlowStatement(**values)
    else:
        for key, value in values.items():
            setattr(period.cash_flow_statement, key, value)

    await session.flush()
    return _columns(period.cash_flow_statement)
