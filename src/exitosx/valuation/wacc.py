"""WACC component defaults calibrated by EBITDA size tier and BRI.

Cost of equity is built up as ``Rf + beta * ERP + size premium + CSR`` where
the company-specific risk (CSR) premium falls linearly as BRI rises.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

RISK_FREE_RATE = 0.041
EQUITY_RISK_PREMIUM = 0.050
DEFAULT_BETA = 1.0
DEFAULT_TAX_RATE = 0.25
DEFAULT_TERMINAL_GROWTH_RATE = 0.025
DEFAULT_GROWTH_RATES = [0.05, 0.05, 0.04, 0.03, 0.025]


@dataclass(frozen=True)
class EbitdaTier:
    label: str
    ebitda_min: float
    ebitda_max: float
    size_premium: tuple[float, float]
    company_specific_risk: tuple[float, float]
    pre_tax_cost_of_debt: tuple[float, float]
    typical_debt_weight: float


EBITDA_TIERS: tuple[EbitdaTier, ...] = (
    EbitdaTier("Micro", 0, 500_000, (0.065, 0.080), (0.060, 0.120), (0.110, 0.140), 0.15),
    EbitdaTier("Small", 500_000, 2_000_000, (0.055, 0.070), (0.050, 0.100), (0.100, 0.120), 0.20),
    EbitdaTier("Lower-Mid", 2_000_000, 5_000_000, (0.040, 0.055), (0.030, 0.060), (0.085, 0.100), 0.25),
    EbitdaTier("Mid-Market", 5_000_000, 10_000_000, (0.030, 0.045), (0.020, 0.050), (0.080, 0.095), 0.30),
    EbitdaTier("Upper-Mid", 10_000_000, 25_000_000, (0.020, 0.035), (0.010, 0.030), (0.075, 0.090), 0.35),
    EbitdaTier("Large", 25_000_000, 50_000_000, (0.015, 0.025), (0.005, 0.020), (0.070, 0.085), 0.35),
    EbitdaTier("Enterprise", 50_000_000, math.inf, (0.010, 0.020), (0.000, 0.015), (0.065, 0.080), 0.40),
)

# (EBITDA, size premium) anchors for log-linear interpolation
SIZE_PREMIUM_ANCHORS: tuple[tuple[float, float], ...] = (
    (250_000, 0.080),
    (500_000, 0.070),
    (1_000_000, 0.062),
    (2_000_000, 0.055),
    (5_000_000, 0.042),
    (10_000_000, 0.032),
    (25_000_000, 0.022),
    (50_000_000, 0.015),
)


def round4(value: float) -> float:
    """Round half-up to four decimal places."""
    return math.floor(value * 10000 + 0.5) / 10000


@dataclass
class WACCDefaults:
    risk_free_rate: float
    equity_risk_premium: float
    beta: float
    size_risk_premium: float
    company_specific_risk: float
    pre_tax_cost_of_debt: float
    tax_rate: float
    debt_weight: float
    equity_weight: float
    computed_wacc: float
    ebitda_tier: str

    def to_dict(self) -> dict:
        return asdict(self)


def get_ebitda_tier(ebitda: float) -> EbitdaTier:
    for tier in EBITDA_TIERS:
        if tier.ebitda_min <= ebitda < tier.ebitda_max:
            return tier
    return EBITDA_TIERS[-1]


def interpolate_size_premium(ebitda: float) -> float:
    first_ebitda, first_premium = SIZE_PREMIUM_ANCHORS[0]
    last_ebitda, last_premium = SIZE_PREMIUM_ANCHORS[-1]

    if ebitda <= first_ebitda:
        return first_premium
    if ebitda >= last_ebitda:
        return last_premium

    log_ebitda = math.log(ebitda)
    for (lo_e, lo_p), (hi_e, hi_p) in zip(SIZE_PREMIUM_ANCHORS, SIZE_PREMIUM_ANCHORS[1:]):
        if lo_e <= ebitda < hi_e:
            t = (log_ebitda - math.log(lo_e)) / (math.log(hi_e) - math.log(lo_e))
            return round4(lo_p + t * (hi_p - lo_p))

    return 0.04


def calculate_company_specific_risk(bri_score: float, tier: EbitdaTier) -> float:
    """High BRI maps to the low end of the tier's CSR range."""
    low, high = tier.company_specific_risk
    clamped = max(0.0, min(1.0, bri_score))
    return round4(high - clamped * (high - low))


def calculate_wacc_defaults(
    adjusted_ebitda: float,
    bri_score: float,
    derived_cost_of_debt: float | None = None,
    derived_tax_rate: float | None = None,
    derived_debt_weight: float | None = None,
) -> WACCDefaults:
    """Calibrated WACC components; derived values are used when plausible."""
    tier = get_ebitda_tier(adjusted_ebitda)
    size_premium = interpolate_size_premium(adjusted_ebitda)
    csr = calculate_company_specific_risk(bri_score, tier)

    if derived_cost_of_debt is not None and 0.03 <= derived_cost_of_debt <= 0.20:
        cost_of_debt = derived_cost_of_debt
    else:
        cost_of_debt = sum(tier.pre_tax_cost_of_debt) / 2

    if derived_tax_rate is not None and 0.05 <= derived_tax_rate <= 0.50:
        tax_rate = derived_tax_rate
    else:
        tax_rate = DEFAULT_TAX_RATE

    if derived_debt_weight is not None and 0 <= derived_debt_weight <= 0.80:
        debt_weight = derived_debt_weight
    else:
        debt_weight = tier.typical_debt_weight
    equity_weight = 1 - debt_weight

    cost_of_equity = RISK_FREE_RATE + DEFAULT_BETA * EQUITY_RISK_PREMIUM + size_premium + csr
    wacc = equity_weight * cost_of_equity + debt_weight * cost_of_debt * (1 - tax_rate)

    return WACCDefaults(
        risk_free_rate=RISK_FREE_RATE,
        equity_risk_premium=EQUITY_RISK_PREMIUM,
        beta=DEFAULT_BETA,
        size_risk_premium=size_premium,
        company_specific_risk=csr,
        pre_tax_cost_of_debt=cost_of_debt,
        tax_rate=tax_rate,
        debt_weight=debt_weight,
        equity_weight=equity_weight,
        computed_wacc=wacc,
        ebitda_tier=tier.label,
    )


def _enterprise_value_at(
    wacc: float,
    base_fcf: float,
    growth_rates: list[float],
    terminal_growth: float,
    mid_year: bool,
) -> float | None:
    if wacc <= terminal_growth:
        return None

    fcf = base_fcf
    pv = 0.0
    for i, rate in enumerate(growth_rates):
        fcf *= 1 + rate
        period = i + 0.5 if mid_year else i + 1
        pv += fcf / (1 + wacc) ** period

    terminal_value = fcf * (1 + terminal_growth) / (wacc - terminal_growth)
    return pv + terminal_value / (1 + wacc) ** len(growth_rates)


def solve_implied_wacc(
    target_ev: float,
    base_fcf: float,
    growth_rates: list[float],
    terminal_growth: float,
    mid_year: bool = True,
) -> float | None:
    """Bisect for the WACC that makes the DCF equal ``target_ev``.

    Returns None when either input is non-positive or when the target is not
    bracketed by ``(terminal_growth + 0.1%, 50%]``.
    """
    if target_ev <= 0 or base_fcf <= 0:
        return None

    lo, hi = terminal_growth + 0.001, 0.50
    ev_lo = _enterprise_value_at(lo, base_fcf, growth_rates, terminal_growth, mid_year)
    ev_hi = _enterprise_value_at(hi, base_fcf, growth_rates, terminal_growth, mid_year)
    if ev_lo is None or ev_hi is None:
        return None
    if ev_lo < target_ev or ev_hi > target_ev:
        return None

    for _ in range(50):
        mid = (lo + hi) / 2
        ev_mid = _enterprise_value_at(mid, base_fcf, growth_rates, terminal_growth, mid_year)
        if ev_mid is None:
            lo = mid
            continue
        if abs(ev_mid - target_ev) / target_ev < 0.0001:
            return round4(mid)
        if ev_mid > target_ev:
            lo = mid
        else:
            hi = mid

    return round4((lo + hi) / 2)
