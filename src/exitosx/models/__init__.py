"""Data models - SQLAlchemy ORM, Pydantic schemas and shared enums."""

from exitosx.models.db import (
    Base,
    Workspace,
    User,
    UserSession,
    BackupCode,
    WorkspaceMember,
    SystemSetting,
    Company,
    CoreFactors,
    EbitdaAdjustment,
    IndustryMultiple,
    ValuationSnapshot,
    DCFAssumptions,
    FinancialPeriod,
    IncomeStatement,
    BalanceSheet,
    CashFlowStatement,
    Question,
    QuestionOption,
    Assessment,
    AssessmentResponse,
    ProjectQuestion,
    ProjectQuestionOption,
    ProjectStrategy,
    ProjectTaskTemplate,
    ProjectAssessment,
    ProjectAssessmentQuestion,
    ProjectAssessmentResponse,
    CompanyQuestionPriority,
    Task,
    Signal,
    DriftReport,
    AIGenerationLog,
    Deal,
    BuyerCompany,
    Person,
    DealBuyer,
    DealStageHistory,
    DealParticipant,
    DealActivity,
    Integration,
    IntegrationSyncLog,
)

__all__ = [
    "Base",
    "Workspace",
    "User",
    "UserSession",
    "BackupCode",
    "WorkspaceMember",
    "SystemSetting",
    "Company",
    "CoreFactors",
    "EbitdaAdjustment",
    "IndustryMultiple",
    "ValuationSnapshot",
    "DCFAssumptions",
    "FinancialPeriod",
    "IncomeStatement",
    "BalanceSheet",
    "CashFlowStatement",
    "Question",
    "QuestionOption",
    "Assessment",
    "AssessmentResponse",
    "ProjectQuestion",
    "ProjectQuestionOption",
    "ProjectStrategy",
    "ProjectTaskTemplate",
    "ProjectAssessment",
    "ProjectAssessmentQuestion",
    "ProjectAssessmentResponse",
    "CompanyQuestionPriority",
    "Task",
    "Signal",
    "DriftReport",
    "AIGenerationLog",
    "Deal",
    "BuyerCompany",
    "Person",
    "DealBuyer",
    "DealStageHistory",
    "DealParticipant",
    "DealActivity",
    "Integration",
    "IntegrationSyncLog",
]
