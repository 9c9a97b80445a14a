"""Industry multiple lookup and revenue-based estimates."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.valuation.calculate import ALPHA


@dataclass
class MultipleResult:
    ebitda_multiple_low: float
    ebitda_multiple_high: float
    revenue_multiple_low: float
    revenue_multiple_high: float
    source: str | None
    is_default: bool
    match_level: str  # subsector | sector | supersector | industry | default

    def to_dict(self) -> dict:
        return asdict(self)


def default_multiples() -> MultipleResult:
    return MultipleResult(
        ebitda_multiple_low=3.0,
        ebitda_multiple_high=6.0,
        revenue_multiple_low=0.5,
        revenue_multiple_high=1.5,
        source="Default SMB multiple range",
        is_default=True,
        match_level="default",
    )


async def get_industry_multiples(
    session: AsyncSession,
    icb_sub_sector: str | None,
    icb_sector: str | None = None,
    icb_super_sector: str | None = None,
    icb_industry: str | None = None,
) -> MultipleResult:
    """Find the most recent multiples, most specific ICB level first."""
    from exitosx.models.db import IndustryMultiple

    levels = (
        ("subsector", IndustryMultiple.icb_sub_sector, icb_sub_sector),
        ("sector", IndustryMultiple.icb_sector, icb_sector),
        ("supersector", IndustryMultiple.icb_super_sector, icb_super_sector),
        ("industry", IndustryMultiple.icb_industry, icb_industry),
    )

    for match_level, column, value in levels:
        if not value:
            continue
        result = await session.execute(
            select(IndustryMultiple)
            .where(column == value)
            .order_by(IndustryMultiple.effective_date.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row:
            return MultipleResult(
                ebitda_multiple_low=float(row.ebitda_multiple_low),
                ebitda_multiple_high=float(row.ebitda_multiple_high),
                revenue_multiple_low=float(row.revenue_multiple_low),
                revenue_multiple_high=float(row.revenue_multiple_high),
                source=row.source,
                is_default=False,
                match_level=match_level,
            )

    return default_multiples()


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def estimate_ebitda_from_revenue(revenue: float, multiples: MultipleResult) -> float:
    """Market-anchored EBITDA estimate when actual EBITDA is unknown.

    ``low = revenue * rev_low / ebitda_high`` and
    ``high = revenue * rev_high / ebitda_low``; the average is capped at a
    35 % margin and rounded to the nearest 100k.
    """
    if multiples.ebitda_multiple_high == 0 or multiples.ebitda_multiple_low == 0:
        return 0

    ebitda_low = revenue * multiples.revenue_multiple_low / multiples.ebitda_multiple_high
    ebitda_high = revenue * multiples.revenue_multiple_high / multiples.ebitda_multiple_low
    blended = (ebitda_low + ebitda_high) / 2
    capped = min(blended, revenue * 0.35)
    return _round_half_up(capped / 100_000) * 100_000


def calculate_revenue_based_valuation(
    revenue: float,
    multiples: MultipleResult,
    core_score: float,
    bri_score: float,
    alpha: float = ALPHA,
) -> dict[str, float]:
    """Revenue-multiple counterpart of the EBITDA valuation."""
    low, high = multiples.revenue_multiple_low, multiples.revenue_multiple_high
    base_multiple = low + core_score * (high - low)
    discount_fraction = (1 - bri_score) ** alpha
    final_multiple = low + (base_multiple - low) * (1 - discount_fraction)

    current_value = revenue * final_multiple
    potential_value = revenue * high
    return {
        "current_value": current_value,
        "potential_value": potential_value,
        "value_gap": potential_value - current_value,
        "revenue_multiple_low": low,
        "revenue_multiple_high": high,
        "base_multiple": base_multiple,
        "final_multiple": final_multiple,
    }


def recommend_valuation_method(
    revenue: float,
    ebitda: float,
    revenue_growth_rate: float | None = None,
    is_recurring_revenue: bool = False,
) -> str:
    """Pick ``ebitda``, ``revenue`` or ``hybrid`` from basic financial shape."""
    if ebitda <= 0:
        return "revenue"

    ebitda_margin = ebitda / revenue if revenue > 0 else 0

    if revenue_growth_rate and revenue_growth_rate > 0.30:
        return "revenue"
    if is_recurring_revenue and ebitda_margin < 0.15:
        return "revenue"
    if ebitda_margin < 0.10:
        return "hybrid"
    return "ebitda"


METHOD_REASONS = {
    "revenue": "Revenue multiples suit businesses with thin or negative EBITDA, high growth or recurring revenue.",
    "hybrid": "Low EBITDA margins make a blend of revenue and EBITDA multiples more reliable.",
    "ebitda": "Profitable, mature businesses are typically valued on an EBITDA multiple.",
}


def recommend_valuation_method_with_reason(
    revenue: float,
    ebitda: float,
    revenue_growth_rate: float | None = None,
    is_recurring_revenue: bool = False,
) -> dict[str, str]:
    method = recommend_valuation_method(revenue, ebitda, revenue_growth_rate, is_recurring_revenue)
    return {"method": method, "reason": METHOD_REASONS[method]}


def calculate_valuation_from_revenue(revenue: float, multiples: MultipleResult) -> dict[str, float]:
    """Low / mid / high enterprise value from the revenue multiple range."""
    low = revenue * multiples.revenue_multiple_low
    high = revenue * multiples.revenue_multiple_high
    return {"low": low, "mid": (low + high) / 2, "high": high}
