"""Pydantic schemas for API request/response validation."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

BRICategory = Literal["FINANCIAL", "TRANSFERABILITY", "OPERATIONAL", "MARKET", "LEGAL_TAX", "PERSONAL"]
Confidence = Literal["UNCERTAIN", "SOMEWHAT_CONFIDENT", "CONFIDENT", "VERIFIED", "NOT_APPLICABLE"]


# ── Auth ──────────────────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=1, max_length=256)
    name: str | None = Field(None, max_length=255)
    workspace_name: str | None = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: str
    password: str
    code: str | None = None


class TwoFactorCode(BaseModel):
    code: str = Field(..., min_length=6, max_length=9)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str | None
    two_factor_enabled: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Companies ─────────────────────────────────────────────────────────────────


class CompanyCreate(BaseModel):
    workspace_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=255)
    business_description: str | None = None
    icb_sub_sector: str = Field(..., min_length=1)
    annual_revenue: float = Field(0.0, ge=0)
    annual_ebitda: float = 0.0
    owner_compensation: float = Field(0.0, ge=0)


class CompanyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    business_description: str | None = None
    icb_sub_sector: str | None = None
    annual_revenue: float | None = Field(None, ge=0)
    annual_ebitda: float | None = None
    owner_compensation: float | None = Field(None, ge=0)
    bri_weights: dict[BRICategory, float] | None = None


class CompanyResponse(BaseModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    name: str
    business_description: str | None
    icb_industry: str
    icb_super_sector: str
    icb_sector: str
    icb_sub_sector: str
    annual_revenue: float
    annual_ebitda: float
    owner_compensation: float
    bri_weights: dict | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CompanyListResponse(BaseModel):
    items: list[CompanyResponse]
    total: int


class CoreFactorsUpdate(BaseModel):
    revenue_size_category: (
        Literal["UNDER_500K", "FROM_500K_TO_1M", "FROM_1M_TO_3M", "FROM_3M_TO_10M", "FROM_10M_TO_25M", "OVER_25M"]
        | None
    ) = None
    revenue_model: Literal["PROJECT_BASED", "TRANSACTIONAL", "RECURRING_CONTRACTS", "SUBSCRIPTION_SAAS"] | None = None
    gross_margin_proxy: Literal["LOW", "MODERATE", "GOOD", "EXCELLENT"] | None = None
    labor_intensity: Literal["VERY_HIGH", "HIGH", "MODERATE", "LOW"] | None = None
    asset_intensity: Literal["ASSET_HEAVY", "MODERATE", "ASSET_LIGHT"] | None = None
    owner_involvement: Literal["CRITICAL", "HIGH", "MODERATE", "LOW", "MINIMAL"] | None = None
    top_customer_concentration: float | None = Field(None, ge=0, le=1)
    top3_customer_concentration: float | None = Field(None, ge=0, le=1)


class CoreFactorsResponse(CoreFactorsUpdate):
    id: uuid.UUID
    company_id: uuid.UUID

    model_config = {"from_attributes": True}


class AdjustmentCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: float = Field(..., gt=0)
    type: Literal["ADD_BACK", "DEDUCTION"]
    category: str | None = None


class AdjustmentResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    description: str
    amount: float
    type: str
    category: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Financial statements ──────────────────────────────────────────────────────


class FinancialPeriodCreate(BaseModel):
    period_type: Literal["ANNUAL", "QUARTERLY", "MONTHLY"] = "ANNUAL"
    fiscal_year: int = Field(..., ge=1900, le=2200)
    quarter: int | None = Field(None, ge=1, le=4)
    label: str | None = Field(None, max_length=50)
    start_date: date | None = None
    end_date: date | None = None


class FinancialPeriodUpdate(BaseModel):
    label: str | None = Field(None, min_length=1, max_length=50)
    start_date: date | None = None
    end_date: date | None = None


class IncomeStatementInput(BaseModel):
    gross_revenue: float = Field(..., ge=0)
    cogs: float = Field(0.0, ge=0)
    total_operating_expenses: float = Field(0.0, ge=0)
    depreciation: float | None = None
    amortization: float | None = None
    interest_expense: float | None = None
    tax_expense: float | None = None
    net_income: float | None = None


class BalanceSheetInput(BaseModel):
    cash: float = 0.0
    accounts_receivable: float = 0.0
    inventory: float = 0.0
    prepaid_expenses: float = 0.0
    other_current_assets: float = 0.0
    ppe_gross: float = 0.0
    accumulated_depreciation: float = 0.0
    intangible_assets: float = 0.0
    other_long_term_assets: float = 0.0
    accounts_payable: float = 0.0
    accrued_expenses: float = 0.0
    current_portion_ltd: float = 0.0
    other_current_liabilities: float = 0.0
    long_term_debt: float = 0.0
    other_long_term_liabilities: float = 0.0
    retained_earnings: float = 0.0
    owners_equity: float = 0.0


class CashFlowInput(BaseModel):
    cash_from_operations: float
    capital_expenditures: float = 0.0


class FinancialPeriodResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    period_type: str
    fiscal_year: int
    quarter: int | None
    label: str
    start_date: date
    end_date: date

    model_config = {"from_attributes": True}


# ── Valuation ─────────────────────────────────────────────────────────────────


class DCFAssumptionsUpdate(BaseModel):
    """Rates are decimals (0.12 = 12%)."""

    base_fcf: float | None = None
    risk_free_rate: float | None = Field(None, ge=0, le=0.2)
    market_risk_premium: float | None = Field(None, ge=0, le=0.2)
    beta: float | None = Field(None, gt=0, le=5)
    size_risk_premium: float | None = Field(None, ge=0, le=0.2)
    company_specific_risk: float | None = Field(None, ge=0, le=0.3)
    cost_of_debt_override: float | None = Field(None, ge=0, le=0.3)
    tax_rate_override: float | None = Field(None, ge=0, le=0.6)
    debt_weight_override: float | None = Field(None, ge=0, le=0.8)
    growth_assumptions: list[float] | None = Field(None, min_length=1, max_length=10)
    terminal_method: Literal["gordon", "exit_multiple"] | None = None
    perpetual_growth_rate: float | None = Field(None, ge=0, le=0.1)
    exit_multiple: float | None = Field(None, gt=0, le=50)
    use_mid_year_convention: bool | None = None
    use_dcf_value: bool | None = None
    ebitda_multiple_low_override: float | None = Field(None, gt=0)
    ebitda_multiple_high_override: float | None = Field(None, gt=0)


class IndustryMultipleCreate(BaseModel):
    icb_industry: str
    icb_super_sector: str
    icb_sector: str
    icb_sub_sector: str
    revenue_multiple_low: float = Field(..., ge=0)
    revenue_multiple_high: float = Field(..., ge=0)
    ebitda_multiple_low: float = Field(..., ge=0)
    ebitda_multiple_high: float = Field(..., ge=0)
    effective_date: datetime | None = None
    source: str | None = None


class ComparablesRequest(BaseModel):
    revenue_growth_rate: float | None = None
    geography: str | None = None
    customer_concentration: str | None = None


class ClassifyRequest(BaseModel):
    description: str | None = None
    company_id: uuid.UUID | None = None


# ── Assessments, project assessments & tasks ──────────────────────────────────


class AssessmentResponseSubmit(BaseModel):
    question_id: uuid.UUID
    selected_option_id: uuid.UUID
    confidence_level: Confidence = "CONFIDENT"


class ProjectAssessmentCreate(BaseModel):
    question_count: int = Field(10, ge=1, le=30)
    focus_category: BRICategory | None = None
    title: str | None = Field(None, max_length=255)


class ProjectResponseSubmit(BaseModel):
    question_id: uuid.UUID
    selected_option_id: uuid.UUID
    confidence_level: Confidence = "CONFIDENT"
    notes: str | None = None


class TaskUpdate(BaseModel):
    status: Literal["PENDING", "IN_PROGRESS", "COMPLETED", "DEFERRED", "BLOCKED", "CANCELLED"] | None = None
    assignee_user_id: uuid.UUID | None = None
    deferred_until: datetime | None = None
    deferral_reason: str | None = None
    apply_upgrade: bool = True


class TaskResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    title: str
    description: str
    action_type: str
    bri_category: str
    linked_question_id: uuid.UUID | None
    raw_impact: float
    normalized_value: float
    effort_level: str
    complexity: str
    estimated_hours: int | None
    status: str
    assignee_user_id: uuid.UUID | None
    deferred_until: datetime | None
    completed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    items: list[TaskResponse]
    total: int


# ── Signals ───────────────────────────────────────────────────────────────────


class SignalCreate(BaseModel):
    channel: Literal["PROMPTED_DISCLOSURE", "TASK_GENERATED", "TIME_DECAY", "EXTERNAL", "ADVISOR"]
    event_type: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=500)
    severity: Literal["INFO", "LOW", "MEDIUM", "HIGH", "CRITICAL"] = "MEDIUM"
    category: BRICategory | None = None
    description: str | None = None
    confidence: Confidence | None = None
    raw_data: dict | None = None
    estimated_value_impact: float | None = None
    estimated_bri_impact: float | None = None
    expires_at: datetime | None = None


class SignalUpdate(BaseModel):
    resolution_status: Literal["OPEN", "ACKNOWLEDGED", "IN_PROGRESS", "RESOLVED", "DISMISSED", "EXPIRED"] | None = None
    resolution_notes: str | None = None
    user_confirmed: bool | None = None


# ── Deals ─────────────────────────────────────────────────────────────────────


class DealCreate(BaseModel):
    code_name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    target_close_date: datetime | None = None
    require_seller_approval: bool = True


class DealUpdate(BaseModel):
    code_name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: Literal["ACTIVE", "ON_HOLD", "CLOSED", "TERMINATED"] | None = None
    target_close_date: datetime | None = None
    require_seller_approval: bool | None = None


class BuyerCreate(BaseModel):
    buyer_company_id: uuid.UUID | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    buyer_type: Literal["STRATEGIC", "FINANCIAL", "INDIVIDUAL", "MANAGEMENT", "ESOP", "OTHER"] = "STRATEGIC"
    website: str | None = None
    tier: Literal["A_TIER", "B_TIER", "C_TIER", "D_TIER"] = "B_TIER"
    buyer_rationale: str | None = None
    tags: list[str] = Field(default_factory=list)


class BuyerUpdate(BaseModel):
    tier: Literal["A_TIER", "B_TIER", "C_TIER", "D_TIER"] | None = None
    buyer_rationale: str | None = None
    ioi_deadline: datetime | None = None
    loi_deadline: datetime | None = None
    internal_notes: str | None = None
    tags: list[str] | None = None


class StageChangeRequest(BaseModel):
    to_stage: str
    note: str | None = None
    ioi_amount: float | None = Field(None, ge=0)
    loi_amount: float | None = Field(None, ge=0)
    skip_validation: bool = False


class ApprovalRequest(BaseModel):
    status: Literal["PENDING", "APPROVED", "HOLD", "DENIED"]
    note: str | None = None


class ActivityCreate(BaseModel):
    activity_type: str = "NOTE_ADDED"
    subject: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    metadata: dict | None = None


class ParticipantCreate(BaseModel):
    person_id: uuid.UUID | None = None
    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = None
    current_title: str | None = None
    side: Literal["BUYER", "SELLER", "NEUTRAL"]
    role: str = "DEAL_LEAD"
    deal_buyer_id: uuid.UUID | None = None
    is_primary: bool = False


class ParticipantUpdate(BaseModel):
    side: Literal["BUYER", "SELLER", "NEUTRAL"] | None = None
    role: str | None = None
    deal_buyer_id: uuid.UUID | None = None
    is_primary: bool | None = None
    is_active: bool | None = None
