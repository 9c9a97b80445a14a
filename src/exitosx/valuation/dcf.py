"""Discounted cash flow engine and input derivation from financial periods."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.errors import ValidationError
from exitosx.valuation.wacc import (
    DEFAULT_GROWTH_RATES,
    DEFAULT_TERMINAL_GROWTH_RATE,
    calculate_wacc_defaults,
    round4,
)

logger = logging.getLogger(__name__)

FCF_CONVERSION_RATIO = 0.70
MAX_DEBT_WEIGHT = 0.80


@dataclass
class DCFResult:
    projected_fcf: list[float]
    discount_factors: list[float]
    present_values: list[float]
    terminal_value: float
    pv_terminal_value: float
    enterprise_value: float
    equity_value: float
    implied_multiple: float | None
    wacc: float
    terminal_method: str

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_dcf(
    base_fcf: float,
    growth_rates: list[float],
    wacc: float,
    terminal_growth: float | None = DEFAULT_TERMINAL_GROWTH_RATE,
    exit_multiple: float | None = None,
    mid_year: bool = True,
    net_debt: float = 0.0,
    terminal_ebitda: float | None = None,
) -> DCFResult:
    """Project free cash flow and discount it back at ``wacc``.

    The terminal value uses an exit multiple of ``terminal_ebitda`` when both
    are given, otherwise Gordon growth, which requires ``wacc > terminal_growth``.
    """
    if not growth_rates:
        raise ValidationError("At least one growth rate is required")
    if wacc <= 0:
        raise ValidationError("WACC must be positive")

    projected: list[float] = []
    factors: list[float] = []
    present: list[float] = []
    fcf = base_fcf
    for i, rate in enumerate(growth_rates):
        fcf *= 1 + rate
        period = i + 0.5 if mid_year else i + 1
        factor = 1 / (1 + wacc) ** period
        projected.append(fcf)
        factors.append(factor)
        present.append(fcf * factor)

    if exit_multiple is not None and terminal_ebitda is not None:
        terminal_method = "exit_multiple"
        terminal_value = terminal_ebitda * exit_multiple
    else:
        terminal_method = "gordon"
        g = terminal_growth if terminal_growth is not None else DEFAULT_TERMINAL_GROWTH_RATE
        if wacc <= g:
            raise ValidationError("WACC must be greater than the terminal growth rate")
        terminal_value = projected[-1] * (1 + g) / (wacc - g)

    pv_terminal = terminal_value / (1 + wacc) ** len(growth_rates)
    enterprise_value = sum(present) + pv_terminal

    return DCFResult(
        projected_fcf=projected,
        discount_factors=factors,
        present_values=present,
        terminal_value=terminal_value,
        pv_terminal_value=pv_terminal,
        enterprise_value=enterprise_value,
        equity_value=enterprise_value - (net_debt or 0.0),
        implied_multiple=enterprise_value / terminal_ebitda if terminal_ebitda else None,
        wacc=wacc,
        terminal_method=terminal_method,
    )


@dataclass
class DerivedDCFInputs:
    base_fcf: float | None = None
    fcf_is_estimated: bool = False
    ebitda: float | None = None
    net_debt: float | None = None
    working_capital: dict = field(default_factory=dict)
    derived_cost_of_debt: float | None = None
    derived_tax_rate: float | None = None
    derived_debt_weight: float | None = None
    growth_rates: list[float] = field(default_factory=lambda: list(DEFAULT_GROWTH_RATES))
    historical_growth: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def _median(values: list[float]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def growth_rates_from_history(fcf_history: list[float]) -> list[float] | None:
    """Fade the median historical FCF growth toward terminal growth.

    ``fcf_history`` is newest first. Only consecutive positive pairs count.
    """
    rates = [
        (current - prior) / prior
        for current, prior in zip(fcf_history, fcf_history[1:])
        if prior > 0 and current > 0
    ]
    if not rates:
        return None

    median = max(0.0, min(0.25, _median(rates)))
    g = DEFAULT_TERMINAL_GROWTH_RATE
    return [
        round4(median),
        round4(median * 0.85 + g * 0.15),
        round4(median * 0.60 + g * 0.40),
        round4(median * 0.35 + g * 0.65),
        g,
    ]


def derive_dcf_inputs(periods: list) -> DerivedDCFInputs:
    """Derive DCF inputs from up to four annual periods, newest first.

    Periods are ``FinancialPeriod`` rows with statements loaded. A label
    starting with ``T12`` marks a trailing-twelve-month period.
    """
    inputs = DerivedDCFInputs()
    if not periods:
        return inputs

    latest = periods[0]
    t12 = next((p for p in periods if (p.label or "").startswith("T12")), None)
    fiscal = [p for p in periods if not (p.label or "").startswith("T12")]

    cfs = latest.cash_flow_statement
    inc = latest.income_statement
    bs = latest.balance_sheet

    actual_fcf = _num(cfs.free_cash_flow) if cfs and cfs.free_cash_flow else None
    inputs.ebitda = _num(inc.ebitda) if inc and inc.ebitda else None
    if actual_fcf:
        inputs.base_fcf = actual_fcf
    elif inputs.ebitda:
        inputs.base_fcf = round(inputs.ebitda * FCF_CONVERSION_RATIO)
        inputs.fcf_is_estimated = True

    if bs:
        total_debt = _num(bs.long_term_debt) + _num(bs.current_portion_ltd)
        inputs.net_debt = total_debt - _num(bs.cash)
        total_equity = _num(bs.total_equity)
        if total_debt + total_equity > 0 and total_equity > 0:
            inputs.derived_debt_weight = min(total_debt / (total_debt + total_equity), MAX_DEBT_WEIGHT)

        if inc:
            interest = _num(inc.interest_expense)
            if interest > 0 and total_debt > 0:
                rate = interest / total_debt
                if 0.03 <= rate <= 0.20:
                    inputs.derived_cost_of_debt = rate

    if inc:
        tax = _num(inc.tax_expense)
        ebt = _num(inc.ebitda) - _num(inc.depreciation) - _num(inc.amortization) - _num(inc.interest_expense)
        if tax > 0 and ebt > 0:
            rate = tax / ebt
            if 0.05 <= rate <= 0.50:
                inputs.derived_tax_rate = rate

    def wc(period) -> float | None:
        if period is None or period.balance_sheet is None or period.balance_sheet.working_capital is None:
            return None
        return _num(period.balance_sheet.working_capital)

    three_year = [v for v in (wc(p) for p in fiscal[:3]) if v is not None]
    inputs.working_capital = {
        "t12": wc(t12),
        "last_fy": wc(fiscal[0]) if fiscal else None,
        "three_year_avg": sum(three_year) / len(three_year) if three_year else None,
    }

    if len(periods) >= 2:
        history = [
            _num(p.cash_flow_statement.free_cash_flow) if p.cash_flow_statement else 0.0
            for p in periods
        ]
        rates = growth_rates_from_history(history)
        if rates:
            inputs.growth_rates = rates
            inputs.historical_growth = True

    return inputs


async def load_annual_periods(session: AsyncSession, company_id, limit: int = 4) -> list:
    from exitosx.models.db import FinancialPeriod

    result = await session.execute(
        select(FinancialPeriod)
        .where(FinancialPeriod.company_id == company_id, FinancialPeriod.period_type == "ANNUAL")
        .options(
            selectinload(FinancialPeriod.income_statement),
            selectinload(FinancialPeriod.balance_sheet),
            selectinload(FinancialPeriod.cash_flow_statement),
        )
        .order_by(FinancialPeriod.end_date.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


@dataclass
class AutoDCFResult:
    success: bool
    reason: str | None = None
    enterprise_value: float | None = None
    equity_value: float | None = None
    wacc: float | None = None
    base_fcf: float | None = None
    growth_rates: list[float] | None = None
    net_debt: float | None = None
    implied_multiple: float | None = None


async def calculate_auto_dcf(session: AsyncSession, company_id, bri_score: float) -> AutoDCFResult:
    """Run a default-assumption DCF from the company's annual financials."""
    periods = await load_annual_periods(session, company_id)
    if not periods:
        return AutoDCFResult(success=False, reason="No annual financial periods")

    inputs = derive_dcf_inputs(periods)
    if not inputs.base_fcf or inputs.base_fcf <= 0:
        return AutoDCFResult(success=False, reason="No positive free cash flow")

    ebitda_for_tier = inputs.ebitda if inputs.ebitda and inputs.ebitda > 0 else inputs.base_fcf / FCF_CONVERSION_RATIO
    defaults = calculate_wacc_defaults(
        ebitda_for_tier,
        bri_score,
        derived_cost_of_debt=inputs.derived_cost_of_debt,
        derived_tax_rate=inputs.derived_tax_rate,
        derived_debt_weight=inputs.derived_debt_weight,
    )

    result = calculate_dcf(
        base_fcf=inputs.base_fcf,
        growth_rates=inputs.growth_rates,
        wacc=defaults.computed_wacc,
        terminal_growth=DEFAULT_TERMINAL_GROWTH_RATE,
        mid_year=True,
        net_debt=inputs.net_debt or 0.0,
        terminal_ebitda=inputs.ebitda if inputs.ebitda and inputs.ebitda > 0 else None,
    )
    return AutoDCFResult(
        success=True,
        enterprise_value=result.enterprise_value,
        equity_value=result.equity_value,
        wacc=defaults.computed_wacc,
        base_fcf=inputs.base_fcf,
        growth_rates=inputs.growth_rates,
        net_debt=inputs.net_debt,
        implied_multiple=result.implied_multiple,
    )
