"""Pull annual P&L and balance sheet data from QuickBooks into financial periods."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.integrations.quickbooks import (
    BalanceSheetData,
    ProfitAndLoss,
    QuickBooksClient,
    parse_balance_sheet,
    parse_profit_and_loss,
)
from exitosx.valuation.financials import (
    calculate_ebitda,
    calculate_ebitda_margin,
    calculate_net_income,
    calculate_working_capital,
)

logger = logging.getLogger(__name__)

YEARS_TO_SYNC = 6


@dataclass
class SyncResult:
    success: bool
    periods_created: int = 0
    periods_updated: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def income_statement_values(pl: ProfitAndLoss) -> dict:
    ebitda = calculate_ebitda(
        pl.gross_profit,
        pl.operating_expenses,
        depreciation=pl.depreciation,
        interest_expense=pl.interest_expense,
        tax_expense=pl.tax_expense,
    )
    return {
        "gross_revenue": pl.gross_revenue,
        "cogs": pl.cogs,
        "gross_profit": pl.gross_profit,
        "gross_margin_pct": pl.gross_profit / pl.gross_revenue if pl.gross_revenue > 0 else 0.0,
        "total_operating_expenses": pl.operating_expenses,
        "ebitda": ebitda,
        "ebitda_margin_pct": calculate_ebitda_margin(ebitda, pl.gross_revenue),
        "depreciation": pl.depreciation or None,
        "interest_expense": pl.interest_expense or None,
        "tax_expense": pl.tax_expense or None,
        "net_income": pl.net_income
        or calculate_net_income(ebitda, pl.depreciation, 0.0, pl.interest_expense, pl.tax_expense),
    }


def balance_sheet_values(bs: BalanceSheetData) -> dict:
    """Reported totals win; missing totals are rebuilt from the line items."""
    total_current_assets = bs.total_current_assets or (
        bs.cash + bs.accounts_receivable + bs.inventory + bs.prepaid_expenses + bs.other_current_assets
    )
    total_long_term_assets = bs.total_long_term_assets or (
        bs.ppe_gross - bs.accumulated_depreciation + bs.intangible_assets + bs.other_long_term_assets
    )
    total_current_liabilities = bs.total_current_liabilities or (
        bs.accounts_payable + bs.accrued_expenses + bs.current_portion_ltd + bs.other_current_liabilities
    )
    total_long_term_liabilities = bs.total_long_term_liabilities or (
        bs.long_term_debt + bs.other_long_term_liabilities
    )
    return {
        "cash": bs.cash,
        "accounts_receivable": bs.accounts_receivable,
        "inventory": bs.inventory,
        "prepaid_expenses": bs.prepaid_expenses,
        "other_current_assets": bs.other_current_assets,
        "total_current_assets": total_current_assets,
        "ppe_gross": bs.ppe_gross,
        "accumulated_depreciation": bs.accumulated_depreciation,
        "intangible_assets": bs.intangible_assets,
        "other_long_term_assets": bs.other_long_term_assets,
        "total_assets": bs.total_assets or (total_current_assets + total_long_term_assets),
        "accounts_payable": bs.accounts_payable,
        "accrued_expenses": bs.accrued_expenses,
        "current_portion_ltd": bs.current_portion_ltd,
        "other_current_liabilities": bs.other_current_liabilities,
        "total_current_liabilities": total_current_liabilities,
        "long_term_debt": bs.long_term_debt,
        "other_long_term_liabilities": bs.other_long_term_liabilities,
        "total_liabilities": bs.total_liabilities or (total_current_liabilities + total_long_term_liabilities),
        "retained_earnings": bs.retained_earnings,
        "owners_equity": bs.owners_equity,
        "total_equity": bs.total_equity or (bs.retained_earnings + bs.owners_equity),
        "working_capital": calculate_working_capital(bs.accounts_receivable, bs.inventory, bs.accounts_payable),
    }


async def _upsert_year(session: AsyncSession, company_id, year: int, pl: ProfitAndLoss, bs: BalanceSheetData) -> bool:
    """Write one fiscal year; True when the period was created."""
    from exitosx.models.db import BalanceSheet, FinancialPeriod, IncomeStatement

    result = await session.execute(
        select(FinancialPeriod)
        .options(selectinload(FinancialPeriod.income_statement), selectinload(FinancialPeriod.balance_sheet))
        .where(
            FinancialPeriod.company_id == company_id,
            FinancialPeriod.fiscal_year == year,
            FinancialPeriod.period_type == "ANNUAL",
        )
    )
    period = result.scalar_one_or_none()
    created = period is None
    if created:
        period = FinancialPeriod(
            company_id=company_id,
            period_type="ANNUAL",
            fiscal_year=year,
            label=f"FY {year}",
            start_date=date(year, 1, 1),
            end_date=date(year, 12, 31),
        )
        session.add(period)
        await session.flush()

    income = income_statement_values(pl)
    if period.income_statement is None:
        session.add(IncomeStatement(period_id=period.id, **income))
    else:
        for key, value in income.items():
            setattr(period.income_statement, key, value)

    balance = balance_sheet_values(bs)
    if period.balance_sheet is None:
        session.add(BalanceSheet(period_id=period.id, **balance))
    else:
        for key, value in balance.items():
            setattr(period.balance_sheet, key, value)

    await session.flush()
    return created


async def sync_quickbooks_data(
    session: AsyncSession,
    integration_id,
    sync_type: str = "MANUAL",
    client: QuickBooksClient | None = None,
) -> SyncResult:
    """Sync the current and previous five calendar years.

    A year that fails is logged and skipped; a failure outside the per-year
    loop marks the whole sync FAILED.
    """
    from exitosx.models.db import Integration, IntegrationSyncLog

    integration = (
        await session.execute(select(Integration).where(Integration.id == integration_id))
    ).scalar_one_or_none()
    if integration is None:
        return SyncResult(success=False, error="Integration not found")

    sync_log = IntegrationSyncLog(integration_id=integration.id, sync_type=sync_type, status="SYNCING")
    session.add(sync_log)
    integration.last_sync_status = "SYNCING"
    await session.flush()

    client = client or QuickBooksClient(integration)
    try:
        info = await client.get_company_info()
        if not integration.provider_company_name:
            integration.provider_company_name = info["company_name"]

        current_year = datetime.now(timezone.utc).year
        created = updated = 0
        for year in range(current_year - YEARS_TO_SYNC + 1, current_year + 1):
            start, end = f"{year}-01-01", f"{year}-12-31"
            try:
                pl_report, bs_report = await asyncio.gather(
                    client.get_profit_and_loss(start, end),
                    client.get_balance_sheet(end),
                )
                pl = parse_profit_and_loss(pl_report)
                if pl.gross_revenue == 0:
                    continue
                async with session.begin_nested():
                    if await _upsert_year(session, integration.company_id, year, pl, parse_balance_sheet(bs_report)):
                        created += 1
                    else:
                        updated += 1
            except Exception:
                logger.exception("QuickBooks sync failed for year %d (integration %s)", year, integration.id)

        now = datetime.now(timezone.utc)
        integration.last_synced_at = now
        integration.last_sync_status = "SUCCESS"
        integration.last_sync_error = None
        sync_log.status = "SUCCESS"
        sync_log.completed_at = now
        sync_log.records_created = created
        sync_log.records_updated = updated
        await session.flush()

        logger.info(
            "QuickBooks sync for integration %s: %d created, %d updated", integration.id, created, updated
        )
        return SyncResult(success=True, periods_created=created, periods_updated=updated)

    except Exception as exc:
        logger.exception("QuickBooks sync failed for integration %s", integration.id)
        message = str(exc) or exc.__class__.__name__
        integration.last_sync_status = "FAILED"
        integration.last_sync_error = message
        sync_log.status = "FAILED"
        sync_log.completed_at = datetime.now(timezone.utc)
        sync_log.error_message = message
        await session.flush()
        return SyncResult(success=False, error=message)
