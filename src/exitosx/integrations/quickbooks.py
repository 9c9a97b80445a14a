"""QuickBooks Online OAuth, API client and report parsers."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from exitosx.auth.encryption import decrypt_token, encrypt_token, is_encrypted
from exitosx.config import settings
from exitosx.errors import IntegrationError

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = "https://appcenter.intuit.com/connect/oauth2"
TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
REVOKE_URL = "https://developer.api.intuit.com/v2/oauth2/tokens/revoke"
SCOPE = "com.intuit.quickbooks.accounting"
MINOR_VERSION = 65

# Refresh when the access token expires within this window.
REFRESH_MARGIN = timedelta(minutes=5)


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str
    expires_at: datetime


# ── OAuth ─────────────────────────────────────────────────────────────────────


def get_authorization_url(state: str) -> str:
    params = {
        "client_id": settings.quickbooks_client_id,
        "response_type": "code",
        "scope": SCOPE,
        "redirect_uri": settings.quickbooks_redirect_uri,
        "state": state,
    }
    return f"{AUTHORIZATION_URL}?{urlencode(params)}"


def _basic_auth_header() -> str:
    raw = f"{settings.quickbooks_client_id}:{settings.quickbooks_client_secret}".encode()
    return f"Basic {base64.b64encode(raw).decode()}"


async def _token_request(data: dict[str, str]) -> OAuthTokens:
    headers = {
        "Authorization": _basic_auth_header(),
        "Accept": "application/json",
        "Content-Type": "application/x-www-form-urlencoded",
    }
    async with httpx.AsyncClient(headers=headers, timeout=30) as client:
        response = await client.post(TOKEN_URL, data=data)
        response.raise_for_status()
        payload = response.json()
    return OAuthTokens(
        access_token=payload["access_token"],
        refresh_token=payload["refresh_token"],
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=int(payload.get("expires_in", 3600))),
    )


async def exchange_code_for_tokens(code: str) -> OAuthTokens:
    try:
        return await _token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": settings.quickbooks_redirect_uri}
        )
    except httpx.HTTPError as exc:
        logger.exception("QuickBooks code exchange failed")
        raise IntegrationError("Failed to connect QuickBooks") from exc


async def refresh_access_token(refresh_token: str) -> OAuthTokens:
    return await _token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})


async def revoke_token(token: str) -> None:
    headers = {"Authorization": _basic_auth_header(), "Accept": "application/json"}
    async with httpx.AsyncClient(headers=headers, timeout=30) as client:
        response = await client.post(REVOKE_URL, json={"token": token})
        response.raise_for_status()


def store_tokens(integration, tokens: OAuthTokens) -> None:
    integration.access_token = encrypt_token(tokens.access_token)
    integration.refresh_token = encrypt_token(tokens.refresh_token)
    integration.token_expires_at = tokens.expires_at


def read_token(stored: str | None) -> str:
    """Decrypt a stored token; rows written before encryption hold plaintext."""
    if not stored:
        return ""
    return decrypt_token(stored) if is_encrypted(stored) else stored


# ── API client ────────────────────────────────────────────────────────────────


class QuickBooksClient:
    """QuickBooks Accounting API bound to one ``Integration`` row.

    Refreshed tokens are written back to the row; the caller commits.
    """

    def __init__(self, integration):
        self.integration = integration

    @property
    def realm_id(self) -> str:
        return self.integration.provider_company_id or ""

    async def _access_token(self) -> str:
        expires_at = self.integration.token_expires_at
        if expires_at is None or expires_at < datetime.now(timezone.utc) + REFRESH_MARGIN:
            try:
                tokens = await refresh_access_token(read_token(self.integration.refresh_token))
            except httpx.HTTPError as exc:
                raise IntegrationError("Failed to refresh QuickBooks token. Please reconnect.") from exc
            store_tokens(self.integration, tokens)
            logger.info("Refreshed QuickBooks token for integration %s", self.integration.id)
            return tokens.access_token
        return read_token(self.integration.access_token)

    async def request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{settings.quickbooks_api_base}/v3/company/{self.realm_id}{endpoint}"
        headers = {
            "Authorization": f"Bearer {await self._access_token()}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(headers=headers, timeout=30) as client:
            response = await client.get(url, params=params)
        if response.is_error:
            raise IntegrationError(f"QuickBooks API error: {response.status_code} - {response.text}")
        return response.json()

    async def get_company_info(self) -> dict[str, Any]:
        data = await self.request(f"/companyinfo/{self.realm_id}")
        info = data.get("CompanyInfo", {})
        try:
            start_month = int(info.get("FiscalYearStartMonth") or 1)
        except ValueError:
            start_month = 1
        return {"company_name": info.get("CompanyName", ""), "fiscal_year_start_month": start_month}

    async def get_profit_and_loss(self, start_date: str, end_date: str) -> dict[str, Any]:
        return await self.request(
            "/reports/ProfitAndLoss",
            {"start_date": start_date, "end_date": end_date, "minorversion": MINOR_VERSION},
        )

    async def get_balance_sheet(self, as_of: str) -> dict[str, Any]:
        return await self.request(
            "/reports/BalanceSheet",
            {"start_date": as_of, "end_date": as_of, "minorversion": MINOR_VERSION},
        )


# ── Report parsing ────────────────────────────────────────────────────────────


def parse_amount(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return float(value.replace(",", "").replace("$", ""))
    except ValueError:
        return 0.0


def _rows(container: dict | None) -> list[dict]:
    return ((container or {}).get("Rows") or {}).get("Row") or []


def _col(row: dict, key: str, index: int) -> str:
    cols = row.get("ColData") if key == "ColData" else (row.get(key) or {}).get("ColData")
    if not cols or len(cols) <= index:
        return ""
    return cols[index].get("value") or ""


def find_section_total(rows: list[dict], name: str) -> float:
    """Summary amount of the first section matching ``name``.

    A section matches when its header contains ``name`` or its summary label
    is exactly ``name`` ("Total Income" lives on the summary row).
    """
    needle = name.lower()
    for row in rows:
        if needle in _col(row, "Header", 0).lower() or needle == _col(row, "Summary", 0).strip().lower():
            summary = _col(row, "Summary", 1)
            if summary:
                return parse_amount(summary)
        nested = find_section_total(_rows(row), needle)
        if nested != 0:
            return nested
    return 0.0


def find_account(rows: list[dict], *names: str) -> float:
    """Amount of the first account row whose name contains any of ``names``."""
    needles = [n.lower() for n in names]
    for row in rows:
        if row.get("ColData"):
            account = _col(row, "ColData", 0).lower()
            if any(n in account for n in needles):
                return parse_amount(_col(row, "ColData", 1) or "0")
        nested = find_account(_rows(row), *needles)
        if nested != 0:
            return nested
    return 0.0


def _first(rows: list[dict], *sections: str) -> float:
    for section in sections:
        value = find_section_total(rows, section)
        if value:
            return value
    return 0.0


@dataclass
class ProfitAndLoss:
    gross_revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    operating_expenses: float = 0.0
    net_income: float = 0.0
    depreciation: float = 0.0
    interest_expense: float = 0.0
    tax_expense: float = 0.0


def parse_profit_and_loss(report: dict) -> ProfitAndLoss:
    rows = _rows(report)
    pl = ProfitAndLoss(
        gross_revenue=_first(rows, "Total Income", "Total for Income", "Total Revenue", "Total for Revenue"),
        cogs=_first(
            rows, "Cost of Goods Sold", "Total for Cost of Goods Sold", "Cost of Sales", "Total for Cost of Sales"
        ),
        gross_profit=_first(rows, "Gross Profit", "Total for Gross Profit"),
        operating_expenses=_first(rows, "Total Expenses", "Total for Expenses", "Operating Expenses"),
        net_income=_first(rows, "Net Income", "Net Operating Income", "Net Ordinary Income"),
        # Amortization is folded into depreciation.
        depreciation=find_account(rows, "Depreciation") + find_account(rows, "Amortization"),
        interest_expense=find_account(rows, "Interest"),
        tax_expense=find_account(rows, "Tax") or find_account(rows, "Income Tax"),
    )
    if pl.gross_profit == 0:
        pl.gross_profit = pl.gross_revenue - pl.cogs
    return pl


@dataclass
class BalanceSheetData:
    cash: float = 0.0
    accounts_receivable: float = 0.0
    inventory: float = 0.0
    prepaid_expenses: float = 0.0
    other_current_assets: float = 0.0
    total_current_assets: float = 0.0
    ppe_gross: float = 0.0
    accumulated_depreciation: float = 0.0
    intangible_assets: float = 0.0
    other_long_term_assets: float = 0.0
    total_long_term_assets: float = 0.0
    total_assets: float = 0.0
    accounts_payable: float = 0.0
    accrued_expenses: float = 0.0
    current_portion_ltd: float = 0.0
    other_current_liabilities: float = 0.0
    total_current_liabilities: float = 0.0
    long_term_debt: float = 0.0
    other_long_term_liabilities: float = 0.0
    total_long_term_liabilities: float = 0.0
    total_liabilities: float = 0.0
    retained_earnings: float = 0.0
    owners_equity: float = 0.0
    total_equity: float = 0.0


def parse_balance_sheet(report: dict) -> BalanceSheetData:
    rows = _rows(report)
    bs = BalanceSheetData(
        cash=find_account(rows, "checking", "savings", "cash", "bank"),
        accounts_receivable=find_account(rows, "accounts receivable", "a/r"),
        inventory=find_account(rows, "inventory"),
        prepaid_expenses=find_account(rows, "prepaid"),
        total_current_assets=_first(rows, "Total Current Assets", "Current Assets"),
        ppe_gross=find_account(rows, "property", "equipment", "furniture", "vehicle", "machinery"),
        accumulated_depreciation=abs(find_account(rows, "accumulated depreciation")),
        intangible_assets=find_account(rows, "intangible", "goodwill"),
        total_long_term_assets=_first(rows, "Total Fixed Assets", "Fixed Assets"),
        total_assets=_first(rows, "Total Assets", "TOTAL ASSETS"),
        accounts_payable=find_account(rows, "accounts payable", "a/p"),
        accrued_expenses=find_account(rows, "accrued"),
        current_portion_ltd=find_account(rows, "current portion", "line of credit"),
        total_current_liabilities=_first(rows, "Total Current Liabilities", "Current Liabilities"),
        long_term_debt=find_account(rows, "long-term", "long term", "loan", "note payable"),
        total_long_term_liabilities=_first(rows, "Total Long-Term Liabilities", "Long-Term Liabilities"),
        total_liabilities=_first(rows, "Total Liabilities", "TOTAL LIABILITIES"),
        retained_earnings=find_account(rows, "retained earnings"),
        owners_equity=find_account(rows, "owner", "capital", "common stock", "opening balance"),
        total_equity=_first(rows, "Total Equity", "TOTAL EQUITY"),
    )
    bs.other_current_assets = max(
        0.0,
        bs.total_current_assets - (bs.cash + bs.accounts_receivable + bs.inventory + bs.prepaid_expenses),
    )
    bs.other_long_term_assets = max(
        0.0,
        bs.total_long_term_assets - (bs.ppe_gross - bs.accumulated_depreciation + bs.intangible_assets),
    )
    bs.other_current_liabilities = max(
        0.0,
        bs.total_current_liabilities - (bs.accounts_payable + bs.accrued_expenses + bs.current_portion_ltd),
    )
    bs.other_long_term_liabilities = max(0.0, bs.total_long_term_liabilities - bs.long_term_debt)
    return bs
