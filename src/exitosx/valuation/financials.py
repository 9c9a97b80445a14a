"""Financial statement arithmetic and value-gap attribution."""

from __future__ import annotations

import math
from dataclasses import dataclass


def calculate_gross_profit(revenue: float, cogs: float) -> float:
    return revenue - cogs


def calculate_gross_margin(gross_profit: float, revenue: float) -> float:
    return gross_profit / revenue if revenue else 0.0


def calculate_ebitda(
    gross_profit: float,
    operating_expenses: float,
    depreciation: float = 0.0,
    amortization: float = 0.0,
    interest_expense: float = 0.0,
    tax_expense: float = 0.0,
) -> float:
    """EBITDA from gross profit.

    Operating expenses include D, A, I and T, so they are added back.
    """
    return (
        gross_profit
        - operating_expenses
        + depreciation
        + amortization
        + interest_expense
        + tax_expense
    )


def calculate_ebitda_margin(ebitda: float, revenue: float) -> float:
    return ebitda / revenue if revenue else 0.0


def calculate_net_income(
    ebitda: float,
    depreciation: float = 0.0,
    amortization: float = 0.0,
    interest_expense: float = 0.0,
    tax_expense: float = 0.0,
) -> float:
    return ebitda - depreciation - amortization - interest_expense - tax_expense


def calculate_working_capital(
    accounts_receivable: float, inventory: float, accounts_payable: float
) -> float:
    """Operating working capital: AR + inventory - AP."""
    return accounts_receivable + inventory - accounts_payable


def calculate_free_cash_flow(cash_from_operations: float, capital_expenditures: float) -> float:
    """CFO + capex; capex is signed (purchases negative, asset sales positive)."""
    return cash_from_operations + capital_expenditures


def derive_income_statement(values: dict) -> dict:
    """Fill in gross profit, EBITDA and margins from raw income statement lines."""
    revenue = values.get("gross_revenue") or 0.0
    cogs = values.get("cogs") or 0.0
    gross_profit = calculate_gross_profit(revenue, cogs)
    ebitda = calculate_ebitda(
        gross_profit,
        values.get("total_operating_expenses") or 0.0,
        values.get("depreciation") or 0.0,
        values.get("amortization") or 0.0,
        values.get("interest_expense") or 0.0,
        values.get("tax_expense") or 0.0,
    )
    derived = dict(values)
    derived.update(
        gross_profit=gross_profit,
        gross_margin_pct=calculate_gross_margin(gross_profit, revenue),
        ebitda=ebitda,
        ebitda_margin_pct=calculate_ebitda_margin(ebitda, revenue),
    )
    if derived.get("net_income") is None:
        derived["net_income"] = calculate_net_income(
            ebitda,
            values.get("depreciation") or 0.0,
            values.get("amortization") or 0.0,
            values.get("interest_expense") or 0.0,
            values.get("tax_expense") or 0.0,
        )
    return derived


def derive_balance_sheet(values: dict) -> dict:
    """Fill in balance sheet totals and working capital."""
    v = {k: (val or 0.0) for k, val in values.items()}
    total_current_assets = (
        v.get("cash", 0.0)
        + v.get("accounts_receivable", 0.0)
        + v.get("inventory", 0.0)
        + v.get("prepaid_expenses", 0.0)
        + v.get("other_current_assets", 0.0)
    )
    total_assets = (
        total_current_assets
        + v.get("ppe_gross", 0.0)
        - v.get("accumulated_depreciation", 0.0)
        + v.get("intangible_assets", 0.0)
        + v.get("other_long_term_assets", 0.0)
    )
    total_current_liabilities = (
        v.get("accounts_payable", 0.0)
        + v.get("accrued_expenses", 0.0)
        + v.get("current_portion_ltd", 0.0)
        + v.get("other_current_liabilities", 0.0)
    )
    total_liabilities = (
        total_current_liabilities
        + v.get("long_term_debt", 0.0)
        + v.get("other_long_term_liabilities", 0.0)
    )
    total_equity = v.get("retained_earnings", 0.0) + v.get("owners_equity", 0.0)

    v.update(
        total_current_assets=total_current_assets,
        total_assets=total_assets,
        total_current_liabilities=total_current_liabilities,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        working_capital=calculate_working_capital(
            v.get("accounts_receivable", 0.0),
            v.get("inventory", 0.0),
            v.get("accounts_payable", 0.0),
        ),
    )
    return v


# ── Value-gap attribution ─────────────────────────────────────────────────────


@dataclass
class CategoryValueGap:
    category: str
    score: float
    weight: float
    raw_gap: float
    dollar_impact: int


def calculate_category_value_gaps(
    categories: list[dict],
    total_value_gap: float,
) -> list[CategoryValueGap]:
    """Split the total value gap across categories.

    Each category's share is proportional to ``(1 - score) * weight``. Whole
    dollars are distributed by largest remainder so the parts sum exactly to
    ``round(total_value_gap)``.
    """
    if not categories:
        return []

    raw = [(1 - c["score"]) * c["weight"] for c in categories]
    total_raw = sum(raw)
    total = math.floor(total_value_gap + 0.5)

    if total <= 0 or total_raw <= 0:
        impacts = [0] * len(categories)
    else:
        exact = [r / total_raw * total for r in raw]
        impacts = [math.floor(e) for e in exact]
        leftover = total - sum(impacts)
        by_remainder = sorted(range(len(exact)), key=lambda i: exact[i] - impacts[i], reverse=True)
        for i in by_remainder[:leftover]:
            impacts[i] += 1

    results = [
        CategoryValueGap(
            category=c["category"],
            score=c["score"],
            weight=c["weight"],
            raw_gap=r,
            dollar_impact=impact,
        )
        for c, r, impact in zip(categories, raw, impacts)
    ]
    results.sort(key=lambda g: g.dollar_impact, reverse=True)
    return results
