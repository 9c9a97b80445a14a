"""SQLAlchemy ORM models for the Exit OSx platform."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, relationship

from exitosx.models import enums


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Shared enum types (one Postgres type per set)
bri_category_enum = Enum(*enums.BRI_CATEGORIES, name="bri_category")
confidence_enum = Enum(*enums.CONFIDENCE_LEVELS, name="confidence_level")
effort_enum = Enum(*enums.EFFORT_LEVELS, name="effort_level")
complexity_enum = Enum(*enums.COMPLEXITY_LEVELS, name="complexity_level")
deal_stage_enum = Enum(*enums.DEAL_STAGES, name="deal_stage")
sync_status_enum = Enum(*enums.SYNC_STATUSES, name="sync_status")


# ── Workspaces & users ────────────────────────────────────────────────────────


class Workspace(Base):
    """A tenant: owns companies and members."""

    __tablename__ = "workspaces"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan")
    companies = relationship("Company", back_populates="workspace", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_super_admin = Column(Boolean, default=False, nullable=False)

    # Brute-force protection
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    last_failed_login_at = Column(DateTime(timezone=True), nullable=True)
    locked_until = Column(DateTime(timezone=True), nullable=True)

    # Two-factor authentication (secret is AES-GCM encrypted)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    two_factor_secret = Column(Text, nullable=True)
    two_factor_verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    memberships = relationship("WorkspaceMember", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    backup_codes = relationship("BackupCode", back_populates="user", cascade="all, delete-orphan")


class UserSession(Base):
    """An opaque login session; only the SHA-256 of the token is stored."""

    __tablename__ = "user_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_agent = Column(String(500), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="sessions")


class BackupCode(Base):
    __tablename__ = "backup_codes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    code_hash = Column(String(64), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="backup_codes")


class WorkspaceMember(Base):
    """Membership of a user in a workspace with a role and granular permissions."""

    __tablename__ = "workspace_members"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(*enums.WORKSPACE_ROLES, name="workspace_role"), default="MEMBER", nullable=False)
    role_template = Column(String(50), nullable=True)  # e.g. "cpa", "attorney"
    custom_permissions = Column(JSONB, nullable=True)  # {"financials.dcf:edit": false}
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    workspace = relationship("Workspace", back_populates="members")
    user = relationship("User", back_populates="memberships")


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSONB, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ── Companies ─────────────────────────────────────────────────────────────────


class Company(Base):
    """A business being prepared for exit."""

    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False, index=True)
    business_description = Column(Text, nullable=True)
    icb_industry = Column(String(100), nullable=False)
    icb_super_sector = Column(String(100), nullable=False)
    icb_sector = Column(String(100), nullable=False)
    icb_sub_sector = Column(String(100), nullable=False)
    annual_revenue = Column(Float, nullable=False, default=0.0)
    annual_ebitda = Column(Float, nullable=False, default=0.0)
    owner_compensation = Column(Float, nullable=False, default=0.0)
    bri_weights = Column(JSONB, nullable=True)  # company-specific category weights
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="companies")
    core_factors = relationship(
        "CoreFactors", back_populates="company", uselist=False, cascade="all, delete-orphan"
    )
    ebitda_adjustments = relationship(
        "EbitdaAdjustment", back_populates="company", cascade="all, delete-orphan"
    )
    valuation_snapshots = relationship(
        "ValuationSnapshot",
        back_populates="company",
        cascade="all, delete-orphan",
        order_by="desc(ValuationSnapshot.created_at)",
    )
    financial_periods = relationship(
        "FinancialPeriod", back_populates="company", cascade="all, delete-orphan"
    )
    tasks = relationship("Task", back_populates="company", cascade="all, delete-orphan")
    signals = relationship("Signal", back_populates="company", cascade="all, delete-orphan")
    deals = relationship("Deal", back_populates="company", cascade="all, delete-orphan")


class CoreFactors(Base):
    """Structural business characteristics that drive the core score."""

    __tablename__ = "core_factors"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    revenue_size_category = Column(Enum(*enums.REVENUE_SIZE_CATEGORIES, name="revenue_size_category"))
    revenue_model = Column(Enum(*enums.REVENUE_MODELS, name="revenue_model"))
    gross_margin_proxy = Column(Enum(*enums.GROSS_MARGIN_CATEGORIES, name="gross_margin_category"))
    labor_intensity = Column(Enum(*enums.LABOR_INTENSITY_LEVELS, name="labor_intensity_level"))
    asset_intensity = Column(Enum(*enums.ASSET_INTENSITY_LEVELS, name="asset_intensity_level"))
    owner_involvement = Column(Enum(*enums.OWNER_INVOLVEMENT_LEVELS, name="owner_involvement_level"))
    top_customer_concentration = Column(Float, nullable=True)  # share of revenue, 0-1
    top3_customer_concentration = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="core_factors")


class EbitdaAdjustment(Base):
    __tablename__ = "ebitda_adjustments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(Enum(*enums.ADJUSTMENT_TYPES, name="adjustment_type"), nullable=False)
    category = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="ebitda_adjustments")


# ── Valuation ─────────────────────────────────────────────────────────────────


class IndustryMultiple(Base):
    """EBITDA / revenue multiple ranges per ICB classification."""

    __tablename__ = "industry_multiples"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    icb_industry = Column(String(100), nullable=False, index=True)
    icb_super_sector = Column(String(100), nullable=False, index=True)
    icb_sector = Column(String(100), nullable=False, index=True)
    icb_sub_sector = Column(String(100), nullable=False, index=True)
    revenue_multiple_low = Column(Float, nullable=False)
    revenue_multiple_high = Column(Float, nullable=False)
    ebitda_multiple_low = Column(Float, nullable=False)
    ebitda_multiple_high = Column(Float, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)
    source = Column(String(255), nullable=True)


class ValuationSnapshot(Base):
    """Point-in-time valuation of a company."""

    __tablename__ = "valuation_snapshots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    adjusted_ebitda = Column(Float, nullable=False)
    industry_multiple_low = Column(Float, nullable=False)
    industry_multiple_high = Column(Float, nullable=False)
    core_score = Column(Float, nullable=False)
    bri_score = Column(Float, nullable=False)
    bri_financial = Column(Float, nullable=False, default=0.0)
    bri_transferability = Column(Float, nullable=False, default=0.0)
    bri_operational = Column(Float, nullable=False, default=0.0)
    bri_market = Column(Float, nullable=False, default=0.0)
    bri_legal_tax = Column(Float, nullable=False, default=0.0)
    bri_personal = Column(Float, nullable=False, default=0.0)
    base_multiple = Column(Float, nullable=False)
    discount_fraction = Column(Float, nullable=False)
    final_multiple = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False)
    potential_value = Column(Float, nullable=False)
    value_gap = Column(Float, nullable=False)
    alpha_constant = Column(Float, nullable=False, default=1.4)
    snapshot_reason = Column(String(255), nullable=True)

    # Auto-DCF results (null when no financials or DCF is manually configured)
    dcf_enterprise_value = Column(Float, nullable=True)
    dcf_equity_value = Column(Float, nullable=True)
    dcf_wacc = Column(Float, nullable=True)
    dcf_implied_multiple = Column(Float, nullable=True)

    created_by_user_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    company = relationship("Company", back_populates="valuation_snapshots")


class DCFAssumptions(Base):
    """Persisted DCF inputs for a company. Rates are stored as fractions."""

    __tablename__ = "dcf_assumptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    base_fcf = Column(Float, nullable=True)
    risk_free_rate = Column(Float, nullable=False)
    market_risk_premium = Column(Float, nullable=False)
    beta = Column(Float, nullable=False)
    size_risk_premium = Column(Float, nullable=False)
    company_specific_risk = Column(Float, nullable=True)
    cost_of_debt_override = Column(Float, nullable=True)
    tax_rate_override = Column(Float, nullable=True)
    debt_weight_override = Column(Float, nullable=True)
    growth_assumptions = Column(JSONB, default=list)
    terminal_method = Column(
        Enum("gordon", "exit_multiple", name="terminal_method"), default="gordon", nullable=False
    )
    perpetual_growth_rate = Column(Float, default=0.025, nullable=False)
    exit_multiple = Column(Float, nullable=True)
    calculated_wacc = Column(Float, nullable=True)
    enterprise_value = Column(Float, nullable=True)
    equity_value = Column(Float, nullable=True)
    use_mid_year_convention = Column(Boolean, default=True, nullable=False)
    ebitda_tier = Column(String(50), nullable=True)
    use_dcf_value = Column(Boolean, default=False, nullable=False)
    is_manually_configured = Column(Boolean, default=False, nullable=False)
    ebitda_multiple_low_override = Column(Float, nullable=True)
    ebitda_multiple_high_override = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ── Financial statements ──────────────────────────────────────────────────────


class FinancialPeriod(Base):
    __tablename__ = "financial_periods"
    __table_args__ = (UniqueConstraint("company_id", "label", name="uq_financial_period_label"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    period_type = Column(Enum(*enums.PERIOD_TYPES, name="period_type"), default="ANNUAL", nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    quarter = Column(Integer, nullable=True)
    label = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="financial_periods")
    income_statement = relationship(
        "IncomeStatement", back_populates="period", uselist=False, cascade="all, delete-orphan"
    )
    balance_sheet = relationship(
        "BalanceSheet", back_populates="period", uselist=False, cascade="all, delete-orphan"
    )
    cash_flow_statement = relationship(
        "CashFlowStatement", back_populates="period", uselist=False, cascade="all, delete-orphan"
    )


class IncomeStatement(Base):
    __tablename__ = "income_statements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_id = Column(
        UUID(as_uuid=True), ForeignKey("financial_periods.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    gross_revenue = Column(Float, nullable=False, default=0.0)
    cogs = Column(Float, nullable=False, default=0.0)
    gross_profit = Column(Float, nullable=False, default=0.0)
    gross_margin_pct = Column(Float, nullable=False, default=0.0)
    total_operating_expenses = Column(Float, nullable=False, default=0.0)
    ebitda = Column(Float, nullable=False, default=0.0)
    ebitda_margin_pct = Column(Float, nullable=False, default=0.0)
    depreciation = Column(Float, nullable=True)
    amortization = Column(Float, nullable=True)
    interest_expense = Column(Float, nullable=True)
    tax_expense = Column(Float, nullable=True)
    net_income = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    period = relationship("FinancialPeriod", back_populates="income_statement")


class BalanceSheet(Base):
    __tablename__ = "balance_sheets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_id = Column(
        UUID(as_uuid=True), ForeignKey("financial_periods.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # Current assets
    cash = Column(Float, nullable=False, default=0.0)
    accounts_receivable = Column(Float, nullable=False, default=0.0)
    inventory = Column(Float, nullable=False, default=0.0)
    prepaid_expenses = Column(Float, nullable=False, default=0.0)
    other_current_assets = Column(Float, nullable=False, default=0.0)
    total_current_assets = Column(Float, nullable=False, default=0.0)
    # Long-term assets
    ppe_gross = Column(Float, nullable=False, default=0.0)
    accumulated_depreciation = Column(Float, nullable=False, default=0.0)
    intangible_assets = Column(Float, nullable=False, default=0.0)
    other_long_term_assets = Column(Float, nullable=False, default=0.0)
    total_assets = Column(Float, nullable=False, default=0.0)
    # Liabilities
    accounts_payable = Column(Float, nullable=False, default=0.0)
    accrued_expenses = Column(Float, nullable=False, default=0.0)
    current_portion_ltd = Column(Float, nullable=False, default=0.0)
    other_current_liabilities = Column(Float, nullable=False, default=0.0)
    total_current_liabilities = Column(Float, nullable=False, default=0.0)
    long_term_debt = Column(Float, nullable=False, default=0.0)
    other_long_term_liabilities = Column(Float, nullable=False, default=0.0)
    total_liabilities = Column(Float, nullable=False, default=0.0)
    # Equity
    retained_earnings = Column(Float, nullable=False, default=0.0)
    owners_equity = Column(Float, nullable=False, default=0.0)
    total_equity = Column(Float, nullable=False, default=0.0)
    working_capital = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    period = relationship("FinancialPeriod", back_populates="balance_sheet")


class CashFlowStatement(Base):
    __tablename__ = "cash_flow_statements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_id = Column(
        UUID(as_uuid=True), ForeignKey("financial_periods.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    cash_from_operations = Column(Float, nullable=False, default=0.0)
    capital_expenditures = Column(Float, nullable=False, default=0.0)  # negative outflow
    free_cash_flow = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    period = relationship("FinancialPeriod", back_populates="cash_flow_statement")


# ── BRI assessment ────────────────────────────────────────────────────────────


class Question(Base):
    """Initial BRI assessment question."""

    __tablename__ = "questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bri_category = Column(bri_category_enum, nullable=False)
    question_text = Column(Text, nullable=False)
    help_text = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    max_impact_points = Column(Float, nullable=False, default=10.0)
    is_active = Column(Boolean, default=True, nullable=False)

    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.display_order",
    )


class QuestionOption(Base):
    __tablename__ = "question_options"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(UUID(as_uuid=True), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_text = Column(Text, nullable=False)
    score_value = Column(Float, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    responses = relationship("AssessmentResponse", back_populates="assessment", cascade="all, delete-orphan")


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"
    __table_args__ = (UniqueConstraint("assessment_id", "question_id", name="uq_assessment_response"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(UUID(as_uuid=True), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(UUID(as_uuid=True), ForeignKey("questions.id"), nullable=False)
    selected_option_id = Column(UUID(as_uuid=True), ForeignKey("question_options.id"), nullable=True)
    # Set when a completed task upgrades the answer
    effective_option_id = Column(UUID(as_uuid=True), ForeignKey("question_options.id"), nullable=True)
    confidence_level = Column(confidence_enum, default="CONFIDENT", nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assessment = relationship("Assessment", back_populates="responses")
    question = relationship("Question")
    selected_option = relationship("QuestionOption", foreign_keys=[selected_option_id])
    effective_option = relationship("QuestionOption", foreign_keys=[effective_option_id])


# ── Project assessments ───────────────────────────────────────────────────────


class ProjectQuestion(Base):
    """Targeted follow-up question with strategies for remediation."""

    __tablename__ = "project_questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    module_id = Column(String(100), nullable=False, index=True)
    question_id = Column(String(100), nullable=False, unique=True)
    question_text = Column(Text, nullable=False)
    bri_category = Column(bri_category_enum, nullable=False)
    sub_category = Column(String(255), nullable=False)
    question_impact = Column(Enum(*enums.QUESTION_IMPACTS, name="question_impact"), nullable=False)
    buyer_sensitivity = Column(Enum(*enums.BUYER_SENSITIVITIES, name="buyer_sensitivity"), nullable=False)
    help_text = Column(Text, nullable=True)
    risk_definition = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    options = relationship(
        "ProjectQuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="ProjectQuestionOption.score_value",
    )
    strategies = relationship(
        "ProjectStrategy",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="ProjectStrategy.upgrade_from_score",
    )


class ProjectQuestionOption(Base):
    __tablename__ = "project_question_options"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(String(100), nullable=False)
    option_text = Column(Text, nullable=False)
    score_value = Column(Float, nullable=False)
    buyer_interpretation = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    question = relationship("ProjectQuestion", back_populates="options")


class ProjectStrategy(Base):
    __tablename__ = "project_strategies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id", ondelete="CASCADE"), nullable=False)
    strategy_id = Column(String(100), nullable=False)
    strategy_name = Column(String(255), nullable=False)
    strategy_description = Column(Text, nullable=True)
    strategy_type = Column(Enum(*enums.STRATEGY_TYPES, name="strategy_type"), nullable=False)
    upgrade_from_score = Column(Float, nullable=False)
    max_score_achievable = Column(Float, nullable=False)
    estimated_effort = Column(String(100), nullable=False)
    estimated_timeline = Column(String(100), nullable=True)

    question = relationship("ProjectQuestion", back_populates="strategies")
    task_templates = relationship(
        "ProjectTaskTemplate",
        back_populates="strategy",
        cascade="all, delete-orphan",
        order_by="ProjectTaskTemplate.sequence",
    )


class ProjectTaskTemplate(Base):
    __tablename__ = "project_task_templates"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    strategy_id = Column(UUID(as_uuid=True), ForeignKey("project_strategies.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(String(100), nullable=False)
    sequence = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    primary_verb = Column(String(50), nullable=False)
    object = Column(Text, nullable=False)
    outcome = Column(Text, nullable=True)
    effort_level = Column(effort_enum, nullable=False)
    complexity = Column(complexity_enum, nullable=False)
    estimated_hours = Column(Integer, nullable=True)
    deliverables = Column(ARRAY(String), default=list)
    risk_category = Column(bri_category_enum, nullable=False)
    upgrades_from_score = Column(Float, nullable=True)
    upgrades_to_score = Column(Float, nullable=True)

    strategy = relationship("ProjectStrategy", back_populates="task_templates")


class ProjectAssessment(Base):
    __tablename__ = "project_assessments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    assessment_number = Column(Integer, nullable=False)
    primary_category = Column(bri_category_enum, nullable=True)
    title = Column(String(255), nullable=True)
    status = Column(Enum(*enums.ASSESSMENT_STATUSES, name="project_assessment_status"), default="IN_PROGRESS")
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    bri_score_before = Column(Float, nullable=True)
    bri_score_after = Column(Float, nullable=True)
    score_impact = Column(Float, nullable=True)
    action_plan_generated = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    questions = relationship(
        "ProjectAssessmentQuestion",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="ProjectAssessmentQuestion.display_order",
    )
    responses = relationship(
        "ProjectAssessmentResponse", back_populates="assessment", cascade="all, delete-orphan"
    )


class ProjectAssessmentQuestion(Base):
    """A question selected into a project assessment."""

    __tablename__ = "project_assessment_questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(UUID(as_uuid=True), ForeignKey("project_assessments.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id"), nullable=False)
    display_order = Column(Integer, nullable=False)
    priority_score = Column(Float, nullable=False, default=0.0)
    selection_reason = Column(String(255), nullable=True)
    skipped = Column(Boolean, default=False, nullable=False)

    assessment = relationship("ProjectAssessment", back_populates="questions")
    question = relationship("ProjectQuestion")


class ProjectAssessmentResponse(Base):
    __tablename__ = "project_assessment_responses"
    __table_args__ = (UniqueConstraint("assessment_id", "question_id", name="uq_project_assessment_response"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(UUID(as_uuid=True), ForeignKey("project_assessments.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id"), nullable=False)
    selected_option_id = Column(UUID(as_uuid=True), ForeignKey("project_question_options.id"), nullable=False)
    effective_option_id = Column(UUID(as_uuid=True), ForeignKey("project_question_options.id"), nullable=True)
    actual_score = Column(Float, nullable=False)
    confidence_level = Column(confidence_enum, default="CONFIDENT", nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assessment = relationship("ProjectAssessment", back_populates="responses")
    question = relationship("ProjectQuestion")
    selected_option = relationship("ProjectQuestionOption", foreign_keys=[selected_option_id])
    effective_option = relationship("ProjectQuestionOption", foreign_keys=[effective_option_id])


class CompanyQuestionPriority(Base):
    __tablename__ = "company_question_priorities"
    __table_args__ = (UniqueConstraint("company_id", "question_id", name="uq_company_question_priority"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id", ondelete="CASCADE"), nullable=False)
    impact_score = Column(Float, nullable=False)
    relevance_score = Column(Float, nullable=False)
    urgency_score = Column(Float, nullable=False)
    priority_score = Column(Float, nullable=False, index=True)
    has_been_asked = Column(Boolean, default=False, nullable=False)
    asked_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    question = relationship("ProjectQuestion")


# ── Tasks ─────────────────────────────────────────────────────────────────────


class Task(Base):
    """A remediation task in a company's action plan."""

    __tablename__ = "tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    action_type = Column(Enum(*enums.ACTION_TYPES, name="action_item_type"), nullable=False)
    bri_category = Column(bri_category_enum, nullable=False)
    linked_question_id = Column(UUID(as_uuid=True), ForeignKey("project_questions.id"), nullable=True)
    upgrades_from_option_id = Column(UUID(as_uuid=True), ForeignKey("project_question_options.id"), nullable=True)
    upgrades_to_option_id = Column(UUID(as_uuid=True), ForeignKey("project_question_options.id"), nullable=True)
    raw_impact = Column(Float, nullable=False, default=0.0)
    normalized_value = Column(Float, nullable=False, default=0.0)
    effort_level = Column(effort_enum, nullable=False)
    complexity = Column(complexity_enum, nullable=False)
    estimated_hours = Column(Integer, nullable=True)
    status = Column(Enum(*enums.TASK_STATUSES, name="task_status"), default="PENDING", nullable=False)
    assignee_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    deferred_until = Column(DateTime(timezone=True), nullable=True)
    deferral_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="tasks")


# ── Signals & drift ───────────────────────────────────────────────────────────


class Signal(Base):
    """An event that may change a company's risk or value."""

    __tablename__ = "signals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(Enum(*enums.SIGNAL_CHANNELS, name="signal_channel"), nullable=False)
    category = Column(bri_category_enum, nullable=True)
    event_type = Column(String(100), nullable=False)
    severity = Column(Enum(*enums.SIGNAL_SEVERITIES, name="signal_severity"), default="MEDIUM", nullable=False)
    confidence = Column(confidence_enum, default="UNCERTAIN", nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    raw_data = Column(JSONB, nullable=True)
    user_confirmed = Column(Boolean, default=False, nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    resolution_status = Column(
        Enum(*enums.SIGNAL_RESOLUTIONS, name="signal_resolution_status"), default="OPEN", nullable=False
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    estimated_value_impact = Column(Float, nullable=True)
    estimated_bri_impact = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)

    company = relationship("Company", back_populates="signals")


class DriftReport(Base):
    __tablename__ = "drift_reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)
    bri_score_start = Column(Float, nullable=True)
    bri_score_end = Column(Float, nullable=True)
    value_start = Column(Float, nullable=True)
    value_end = Column(Float, nullable=True)
    drift_score = Column(Float, nullable=False, default=0.0)
    direction = Column(String(20), nullable=False)
    category_changes = Column(JSONB, default=list)
    recommended_actions = Column(JSONB, default=list)
    signals_count = Column(Integer, default=0, nullable=False)
    tasks_completed_count = Column(Integer, default=0, nullable=False)
    tasks_added_count = Column(Integer, default=0, nullable=False)
    top_signals = Column(JSONB, default=list)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AIGenerationLog(Base):
    """Audit record for each LLM generation."""

    __tablename__ = "ai_generation_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    generation_type = Column(String(100), nullable=False)
    input_data = Column(JSONB, nullable=True)
    output_data = Column(JSONB, nullable=True)
    model_used = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ── Deal room ─────────────────────────────────────────────────────────────────


class Deal(Base):
    """An active sale process for a company."""

    __tablename__ = "deals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    code_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(*enums.DEAL_STATUSES, name="deal_status"), default="ACTIVE", nullable=False)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    target_close_date = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    terminated_at = Column(DateTime(timezone=True), nullable=True)
    require_seller_approval = Column(Boolean, default=True, nullable=False)
    created_by_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="deals")
    buyers = relationship("DealBuyer", back_populates="deal", cascade="all, delete-orphan")
    participants = relationship("DealParticipant", back_populates="deal", cascade="all, delete-orphan")
    activities = relationship("DealActivity", back_populates="deal", cascade="all, delete-orphan")


class BuyerCompany(Base):
    """A prospective acquirer organization."""

    __tablename__ = "buyer_companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    buyer_type = Column(Enum(*enums.BUYER_TYPES, name="buyer_type"), default="STRATEGIC", nullable=False)
    website = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Person(Base):
    """A contact that can participate in deals."""

    __tablename__ = "people"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    current_title = Column(String(255), nullable=True)
    buyer_company_id = Column(UUID(as_uuid=True), ForeignKey("buyer_companies.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DealBuyer(Base):
    """A buyer's position within a deal's pipeline."""

    __tablename__ = "deal_buyers"
    __table_args__ = (UniqueConstraint("deal_id", "buyer_company_id", name="uq_deal_buyer"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    buyer_company_id = Column(UUID(as_uuid=True), ForeignKey("buyer_companies.id"), nullable=False)
    tier = Column(Enum(*enums.BUYER_TIERS, name="buyer_tier"), default="B_TIER", nullable=False)
    buyer_rationale = Column(Text, nullable=True)
    current_stage = Column(deal_stage_enum, default="IDENTIFIED", nullable=False)
    stage_updated_at = Column(DateTime(timezone=True), server_default=func.now())
    approval_status = Column(Enum(*enums.APPROVAL_STATUSES, name="approval_status"), default="PENDING")
    approval_note = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    teaser_sent_at = Column(DateTime(timezone=True), nullable=True)
    nda_executed_at = Column(DateTime(timezone=True), nullable=True)
    cim_access_at = Column(DateTime(timezone=True), nullable=True)
    ioi_received_at = Column(DateTime(timezone=True), nullable=True)
    loi_received_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    exited_at = Column(DateTime(timezone=True), nullable=True)
    exit_reason = Column(Text, nullable=True)
    ioi_amount = Column(Float, nullable=True)
    ioi_deadline = Column(DateTime(timezone=True), nullable=True)
    loi_amount = Column(Float, nullable=True)
    loi_deadline = Column(DateTime(timezone=True), nullable=True)
    internal_notes = Column(Text, nullable=True)
    tags = Column(ARRAY(String), default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    deal = relationship("Deal", back_populates="buyers")
    buyer_company = relationship("BuyerCompany", lazy="joined")
    stage_history = relationship(
        "DealStageHistory",
        back_populates="deal_buyer",
        cascade="all, delete-orphan",
        order_by="DealStageHistory.changed_at",
    )


class DealStageHistory(Base):
    __tablename__ = "deal_stage_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_buyer_id = Column(UUID(as_uuid=True), ForeignKey("deal_buyers.id", ondelete="CASCADE"), nullable=False)
    from_stage = Column(deal_stage_enum, nullable=True)
    to_stage = Column(deal_stage_enum, nullable=False)
    note = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now())
    changed_by_user_id = Column(UUID(as_uuid=True), nullable=True)

    deal_buyer = relationship("DealBuyer", back_populates="stage_history")


class DealParticipant(Base):
    """A person involved in a deal on the buyer, seller or neutral side."""

    __tablename__ = "deal_participants"
    __table_args__ = (UniqueConstraint("deal_id", "person_id", name="uq_deal_participant"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    person_id = Column(UUID(as_uuid=True), ForeignKey("people.id"), nullable=False)
    deal_buyer_id = Column(UUID(as_uuid=True), ForeignKey("deal_buyers.id", ondelete="SET NULL"), nullable=True)
    side = Column(Enum(*enums.PARTICIPANT_SIDES, name="participant_side"), nullable=False)
    role = Column(String(50), nullable=False, default="DEAL_LEAD")
    is_primary = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    deal = relationship("Deal", back_populates="participants")
    person = relationship("Person", lazy="joined")


class DealActivity(Base):
    __tablename__ = "deal_activities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    deal_buyer_id = Column(UUID(as_uuid=True), ForeignKey("deal_buyers.id", ondelete="CASCADE"), nullable=True)
    activity_type = Column(Enum(*enums.ACTIVITY_TYPES, name="activity_type"), nullable=False)
    subject = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True)
    performed_at = Column(DateTime(timezone=True), server_default=func.now())
    performed_by_user_id = Column(UUID(as_uuid=True), nullable=True)

    deal = relationship("Deal", back_populates="activities")


# ── Integrations ──────────────────────────────────────────────────────────────


class Integration(Base):
    """OAuth connection to an accounting provider. Tokens are encrypted."""

    __tablename__ = "integrations"
    __table_args__ = (UniqueConstraint("company_id", "provider", name="uq_company_integration"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    provider = Column(Enum(*enums.INTEGRATION_PROVIDERS, name="integration_provider"), nullable=False)
    provider_company_id = Column(String(100), nullable=True)  # QuickBooks realm id
    provider_company_name = Column(String(255), nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    auto_sync_enabled = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_status = Column(sync_status_enum, nullable=True)
    last_sync_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    sync_logs = relationship("IntegrationSyncLog", back_populates="integration", cascade="all, delete-orphan")


class IntegrationSyncLog(Base):
    __tablename__ = "integration_sync_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    integration_id = Column(UUID(as_uuid=True), ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False)
    sync_type = Column(String(50), nullable=False, default="FULL")
    status = Column(sync_status_enum, nullable=False)
    records_created = Column(Integer, default=0, nullable=False)
    records_updated = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    integration = relationship("Integration", back_populates="sync_logs")
