"""Enumerated value sets shared by the ORM models and the domain services."""

BRI_CATEGORIES = (
    "FINANCIAL",
    "TRANSFERABILITY",
    "OPERATIONAL",
    "MARKET",
    "LEGAL_TAX",
    "PERSONAL",
)

WORKSPACE_ROLES = ("OWNER", "ADMIN", "BILLING", "MEMBER")

REVENUE_SIZE_CATEGORIES = (
    "UNDER_500K",
    "FROM_500K_TO_1M",
    "FROM_1M_TO_3M",
    "FROM_3M_TO_10M",
    "FROM_10M_TO_25M",
    "OVER_25M",
)
REVENUE_MODELS = ("PROJECT_BASED", "TRANSACTIONAL", "RECURRING_CONTRACTS", "SUBSCRIPTION_SAAS")
GROSS_MARGIN_CATEGORIES = ("LOW", "MODERATE", "GOOD", "EXCELLENT")
LABOR_INTENSITY_LEVELS = ("VERY_HIGH", "HIGH", "MODERATE", "LOW")
ASSET_INTENSITY_LEVELS = ("ASSET_HEAVY", "MODERATE", "ASSET_LIGHT")
OWNER_INVOLVEMENT_LEVELS = ("CRITICAL", "HIGH", "MODERATE", "LOW", "MINIMAL")

ADJUSTMENT_TYPES = ("ADD_BACK", "DEDUCTION")
PERIOD_TYPES = ("ANNUAL", "QUARTERLY", "MONTHLY")

QUESTION_IMPACTS = ("CRITICAL", "HIGH", "MEDIUM", "LOW")
BUYER_SENSITIVITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW")
STRATEGY_TYPES = ("FULL_FIX", "PARTIAL_MITIGATION", "RISK_ACCEPTANCE", "DEFER")
EFFORT_LEVELS = ("MINIMAL", "LOW", "MODERATE", "HIGH", "MAJOR")
COMPLEXITY_LEVELS = ("SIMPLE", "MODERATE", "COMPLEX", "STRATEGIC")
ASSESSMENT_STATUSES = ("IN_PROGRESS", "COMPLETED", "ABANDONED")
CONFIDENCE_LEVELS = (
    "UNCERTAIN",
    "SOMEWHAT_CONFIDENT",
    "CONFIDENT",
    "VERIFIED",
    "NOT_APPLICABLE",
)

TASK_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "DEFERRED", "BLOCKED", "CANCELLED")
ACTION_TYPES = (
    "TYPE_I_EVIDENCE",
    "TYPE_II_DOCUMENTATION",
    "TYPE_III_OPERATIONAL",
    "TYPE_IV_INSTITUTIONALIZE",
    "TYPE_V_RISK_REDUCTION",
    "TYPE_VI_ALIGNMENT",
    "TYPE_VII_READINESS",
    "TYPE_VIII_SIGNALING",
    "TYPE_IX_OPTIONS",
    "TYPE_X_DEFER",
)

SIGNAL_CHANNELS = (
    "PROMPTED_DISCLOSURE",
    "TASK_GENERATED",
    "TIME_DECAY",
    "EXTERNAL",
    "ADVISOR",
)
SIGNAL_SEVERITIES = ("INFO", "LOW", "MEDIUM", "HIGH", "CRITICAL")
SIGNAL_RESOLUTIONS = ("OPEN", "ACKNOWLEDGED", "IN_PROGRESS", "RESOLVED", "DISMISSED", "EXPIRED")

DEAL_STATUSES = ("ACTIVE", "ON_HOLD", "CLOSED", "TERMINATED")
DEAL_STAGES = (
    "IDENTIFIED",
    "SELLER_REVIEWING",
    "APPROVED",
    "DECLINED",
    "TEASER_SENT",
    "INTERESTED",
    "PASSED",
    "NDA_SENT",
    "NDA_NEGOTIATING",
    "NDA_EXECUTED",
    "CIM_ACCESS",
    "LEVEL_2_ACCESS",
    "LEVEL_3_ACCESS",
    "MANAGEMENT_MEETING_SCHEDULED",
    "MANAGEMENT_MEETING_COMPLETED",
    "IOI_REQUESTED",
    "IOI_RECEIVED",
    "IOI_ACCEPTED",
    "IOI_DECLINED",
    "LOI_REQUESTED",
    "LOI_RECEIVED",
    "LOI_SELECTED",
    "LOI_BACKUP",
    "DUE_DILIGENCE",
    "PA_DRAFTING",
    "PA_NEGOTIATING",
    "CLOSING",
    "CLOSED",
    "WITHDRAWN",
    "TERMINATED",
)
BUYER_TYPES = ("STRATEGIC", "FINANCIAL", "INDIVIDUAL", "MANAGEMENT", "ESOP", "OTHER")
BUYER_TIERS = ("A_TIER", "B_TIER", "C_TIER", "D_TIER")
APPROVAL_STATUSES = ("PENDING", "APPROVED", "HOLD", "DENIED")
PARTICIPANT_SIDES = ("BUYER", "SELLER", "NEUTRAL")
ACTIVITY_TYPES = (
    "STAGE_CHANGED",
    "CONTACT_ADDED",
    "CONTACT_REMOVED",
    "DOCUMENT_UPLOADED",
    "DOCUMENT_SENT",
    "DOCUMENT_RECEIVED",
    "MEETING_SCHEDULED",
    "MEETING_COMPLETED",
    "MEETING_CANCELLED",
    "VDR_ACCESS_GRANTED",
    "VDR_ACCESS_REVOKED",
    "NOTE_ADDED",
    "IOI_SUBMITTED",
    "LOI_SUBMITTED",
    "APPROVAL_REQUESTED",
    "APPROVAL_GRANTED",
    "APPROVAL_DENIED",
)

INTEGRATION_PROVIDERS = ("QUICKBOOKS_ONLINE",)
SYNC_STATUSES = ("PENDING", "SYNCING", "SUCCESS", "FAILED")
