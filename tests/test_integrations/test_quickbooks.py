"""Tests for QuickBooks report parsing, sync value mapping and token storage."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from exitosx.config import settings
from exitosx.integrations.quickbooks import (
    BalanceSheetData,
    OAuthTokens,
    ProfitAndLoss,
    find_account,
    find_section_total,
    parse_amount,
    parse_balance_sheet,
    parse_profit_and_loss,
    read_token,
    store_tokens,
)
from exitosx.integrations.quickbooks_sync import balance_sheet_values, income_statement_values


def _account(name: str, amount: str) -> dict:
    return {"ColData": [{"value": name}, {"value": amount}]}


def _section(header: str | None, summary: str, total: str, rows: list[dict] | None = None) -> dict:
    row: dict = {"Summary": {"ColData": [{"value": summary}, {"value": total}]}}
    if header is not None:
        row["Header"] = {"ColData": [{"value": header}]}
    if rows:
        row["Rows"] = {"Row": rows}
    return row


def _report(*rows: dict) -> dict:
    return {"Rows": {"Row": list(rows)}}


@pytest.fixture
def profit_and_loss_report():
    return _report(
        _section("Income", "Total Income", "1,000,000.00", [_account("Sales", "1,000,000.00")]),
        _section("Cost of Goods Sold", "Total Cost of Goods Sold", "400,000.00", [_account("Materials", "400,000.00")]),
        _section(None, "Gross Profit", "600,000.00"),
        _section(
            "Expenses",
            "Total Expenses",
            "450,000.00",
            [
                _account("Rent", "100,000.00"),
                _account("Depreciation Expense", "20,000.00"),
                _account("Interest Expense", "10,000.00"),
            ],
        ),
        _section(None, "Net Income", "150,000.00"),
    )


@pytest.fixture
def balance_sheet_report():
    return _report(
        _section(
            "ASSETS",
            "TOTAL ASSETS",
            "500,000.00",
            [
                _section(
                    "Current Assets",
                    "Total Current Assets",
                    "200,000.00",
                    [
                        _section("Bank Accounts", "Total Bank Accounts", "50,000.00", [_account("Checking", "50,000.00")]),
                        _account("Accounts Receivable (A/R)", "80,000.00"),
                        _account("Inventory Asset", "40,000.00"),
                    ],
                ),
                _section(
                    "Fixed Assets",
                    "Total Fixed Assets",
                    "300,000.00",
                    [_account("Equipment", "350,000.00"), _account("Accumulated Depreciation", "-50,000.00")],
                ),
            ],
        ),
        _section(
            "LIABILITIES AND EQUITY",
            "TOTAL LIABILITIES AND EQUITY",
            "500,000.00",
            [
                _section(
                    "Liabilities",
                    "Total Liabilities",
                    "220,000.00",
                    [
                        _section(
                            "Current Liabilities",
                            "Total Current Liabilities",
                            "70,000.00",
                            [_account("Accounts Payable (A/P)", "60,000.00")],
                        ),
                        _section(
                            "Long-Term Liabilities",
                            "Total Long-Term Liabilities",
                            "150,000.00",
                            [_account("Bank Loan", "150,000.00")],
                        ),
                    ],
                ),
                _section(
                    "Equity",
                    "Total Equity",
                    "280,000.00",
                    [_account("Retained Earnings", "200,000.00"), _account("Owner's Investment", "80,000.00")],
                ),
            ],
        ),
    )


class TestParseAmount:
    @pytest.mark.parametrize(
        "raw, expected",
        [("1,234.50", 1234.5), ("$2,000", 2000.0), ("-50.25", -50.25), ("", 0.0), (None, 0.0), ("n/a", 0.0)],
    )
    def test_parse(self, raw, expected):
        assert parse_amount(raw) == expected


class TestFindSectionTotal:
    def test_matches_header_substring(self):
        rows = [_section("Total Income", "", "1000.00")]
        assert find_section_total(rows, "Total Income") == 1000.0

    def test_matches_exact_summary_label(self):
        rows = [_section("Income", "Total Income", "1000.00")]
        assert find_section_total(rows, "total income") == 1000.0

    def test_summary_label_must_match_exactly(self):
        rows = [_section("LIABILITIES AND EQUITY", "Total Liabilities and Equity", "900.00")]
        assert find_section_total(rows, "Total Liabilities") == 0.0

    def test_searches_nested_sections(self):
        inner = _section("Current Assets", "Total Current Assets", "250.00")
        rows = [_section("ASSETS", "TOTAL ASSETS", "400.00", [inner])]
        assert find_section_total(rows, "Total Current Assets") == 250.0

    def test_section_without_summary_value_is_skipped(self):
        rows = [{"Header": {"ColData": [{"value": "Income"}]}}]
        assert find_section_total(rows, "Income") == 0.0


class TestFindAccount:
    def test_first_matching_account_wins(self):
        rows = [_account("Checking", "10.00"), _account("Savings", "20.00")]
        assert find_account(rows, "savings", "checking") == 10.0

    def test_case_insensitive_and_nested(self):
        rows = [_section("Expenses", "Total Expenses", "5.00", [_account("Depreciation Expense", "5.00")])]
        assert find_account(rows, "DEPRECIATION") == 5.0

    def test_missing_account(self):
        assert find_account([_account("Rent", "5.00")], "interest") == 0.0


class TestParseProfitAndLoss:
    def test_full_report(self, profit_and_loss_report):
        pl = parse_profit_and_loss(profit_and_loss_report)

        assert pl.gross_revenue == 1_000_000.0
        assert pl.cogs == 400_000.0
        assert pl.gross_profit == 600_000.0
        assert pl.operating_expenses == 450_000.0
        assert pl.net_income == 150_000.0
        assert pl.depreciation == 20_000.0
        assert pl.interest_expense == 10_000.0
        assert pl.tax_expense == 0.0

    def test_gross_profit_derived_when_missing(self):
        report = _report(
            _section("Income", "Total Income", "500.00"),
            _section("Cost of Goods Sold", "Total Cost of Goods Sold", "200.00"),
        )
        assert parse_profit_and_loss(report).gross_profit == 300.0

    def test_empty_report(self):
        pl = parse_profit_and_loss({})
        assert pl == ProfitAndLoss()


class TestParseBalanceSheet:
    def test_full_report(self, balance_sheet_report):
        bs = parse_balance_sheet(balance_sheet_report)

        assert bs.cash == 50_000.0
        assert bs.accounts_receivable == 80_000.0
        assert bs.inventory == 40_000.0
        assert bs.total_current_assets == 200_000.0
        assert bs.ppe_gross == 350_000.0
        assert bs.accumulated_depreciation == 50_000.0
        assert bs.total_long_term_assets == 300_000.0
        assert bs.total_assets == 500_000.0
        assert bs.accounts_payable == 60_000.0
        assert bs.total_current_liabilities == 70_000.0
        assert bs.long_term_debt == 150_000.0
        assert bs.total_liabilities == 220_000.0
        assert bs.retained_earnings == 200_000.0
        assert bs.owners_equity == 80_000.0
        assert bs.total_equity == 280_000.0

    def test_other_buckets_absorb_unclassified_amounts(self, balance_sheet_report):
        bs = parse_balance_sheet(balance_sheet_report)

        assert bs.other_current_assets == 30_000.0
        assert bs.other_long_term_assets == 0.0
        assert bs.other_current_liabilities == 10_000.0
        assert bs.other_long_term_liabilities == 0.0


class TestSyncValueMapping:
    def test_income_statement_values(self, profit_and_loss_report):
        values = income_statement_values(parse_profit_and_loss(profit_and_loss_report))

        assert values["ebitda"] == 180_000.0
        assert values["ebitda_margin_pct"] == pytest.approx(0.18)
        assert values["gross_margin_pct"] == pytest.approx(0.6)
        assert values["depreciation"] == 20_000.0
        assert values["tax_expense"] is None
        assert values["net_income"] == 150_000.0

    def test_net_income_computed_when_not_reported(self):
        values = income_statement_values(
            ProfitAndLoss(gross_revenue=100.0, cogs=40.0, gross_profit=60.0, operating_expenses=30.0)
        )
        assert values["ebitda"] == 30.0
        assert values["net_income"] == 30.0
        assert values["depreciation"] is None

    def test_zero_revenue_margin(self):
        assert income_statement_values(ProfitAndLoss())["gross_margin_pct"] == 0.0

    def test_balance_sheet_totals_rebuilt_from_line_items(self):
        values = balance_sheet_values(
            BalanceSheetData(cash=10.0, accounts_receivable=20.0, inventory=5.0, accounts_payable=8.0)
        )
        assert values["total_current_assets"] == 35.0
        assert values["total_assets"] == 35.0
        assert values["total_current_liabilities"] == 8.0
        assert values["total_liabilities"] == 8.0
        assert values["total_equity"] == 0.0
        assert values["working_capital"] == 17.0

    def test_reported_totals_win(self):
        values = balance_sheet_values(BalanceSheetData(cash=10.0, total_current_assets=50.0, total_assets=90.0))
        assert values["total_current_assets"] == 50.0
        assert values["total_assets"] == 90.0


class TestTokenStorage:
    @pytest.fixture(autouse=True)
    def token_key(self, monkeypatch):
        monkeypatch.setattr(settings, "token_encryption_key", base64.b64encode(b"k" * 32).decode())

    def test_store_and_read_tokens(self):
        integration = SimpleNamespace(access_token=None, refresh_token=None, token_expires_at=None)
        expires = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)

        store_tokens(integration, OAuthTokens("access-abc", "refresh-xyz", expires))

        assert integration.access_token != "access-abc"
        assert read_token(integration.access_token) == "access-abc"
        assert read_token(integration.refresh_token) == "refresh-xyz"
        assert integration.token_expires_at == expires

    def test_plaintext_token_passes_through(self):
        assert read_token("legacy-plain-token") == "legacy-plain-token"

    def test_empty_token(self):
        assert read_token(None) == ""
        assert read_token("") == ""
