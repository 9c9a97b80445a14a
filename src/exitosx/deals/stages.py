"""Deal pipeline stages and their allowed transitions."""

from __future__ import annotations

STAGE_GROUPS: dict[str, tuple[str, tuple[str, ...]]] = {
    "IDENTIFICATION": ("Identification", ("IDENTIFIED", "SELLER_REVIEWING", "APPROVED", "DECLINED")),
    "MARKETING": ("Marketing", ("TEASER_SENT", "INTERESTED", "PASSED")),
    "NDA": ("NDA", ("NDA_SENT", "NDA_NEGOTIATING", "NDA_EXECUTED")),
    "DILIGENCE": ("Diligence", ("CIM_ACCESS", "LEVEL_2_ACCESS", "LEVEL_3_ACCESS")),
    "MANAGEMENT": ("Management", ("MANAGEMENT_MEETING_SCHEDULED", "MANAGEMENT_MEETING_COMPLETED")),
    "IOI": ("IOI", ("IOI_REQUESTED", "IOI_RECEIVED", "IOI_ACCEPTED", "IOI_DECLINED")),
    "LOI": ("LOI", ("LOI_REQUESTED", "LOI_RECEIVED", "LOI_SELECTED", "LOI_BACKUP")),
    "CLOSE": ("Close", ("DUE_DILIGENCE", "PA_DRAFTING", "PA_NEGOTIATING", "CLOSING", "CLOSED")),
    "EXIT": ("Exit", ("WITHDRAWN", "TERMINATED")),
}

STAGE_LABELS = {
    "IDENTIFIED": "Identified",
    "SELLER_REVIEWING": "Seller Reviewing",
    "APPROVED": "Approved",
    "DECLINED": "Declined",
    "TEASER_SENT": "Teaser Sent",
    "INTERESTED": "Interested",
    "PASSED": "Passed",
    "NDA_SENT": "NDA Sent",
    "NDA_NEGOTIATING": "NDA Negotiating",
    "NDA_EXECUTED": "NDA Executed",
    "CIM_ACCESS": "CIM Access",
    "LEVEL_2_ACCESS": "Level 2 Access",
    "LEVEL_3_ACCESS": "Level 3 Access",
    "MANAGEMENT_MEETING_SCHEDULED": "Mgmt Meeting Scheduled",
    "MANAGEMENT_MEETING_COMPLETED": "Mgmt Meeting Completed",
    "IOI_REQUESTED": "IOI Requested",
    "IOI_RECEIVED": "IOI Received",
    "IOI_ACCEPTED": "IOI Accepted",
    "IOI_DECLINED": "IOI Declined",
    "LOI_REQUESTED": "LOI Requested",
    "LOI_RECEIVED": "LOI Received",
    "LOI_SELECTED": "LOI Selected",
    "LOI_BACKUP": "LOI Backup",
    "DUE_DILIGENCE": "Due Diligence",
    "PA_DRAFTING": "PA Drafting",
    "PA_NEGOTIATING": "PA Negotiating",
    "CLOSING": "Closing",
    "CLOSED": "Closed",
    "WITHDRAWN": "Withdrawn",
    "TERMINATED": "Terminated",
}

BUYER_TYPE_LABELS = {
    "STRATEGIC": "Strategic",
    "FINANCIAL": "Financial",
    "INDIVIDUAL": "Individual",
    "MANAGEMENT": "Management",
    "ESOP": "ESOP",
    "OTHER": "Other",
}

BUYER_TIER_LABELS = {"A_TIER": "A Tier", "B_TIER": "B Tier", "C_TIER": "C Tier", "D_TIER": "D Tier"}

CONTACT_ROLE_LABELS = {
    "PRIMARY": "Primary Contact",
    "DECISION_MAKER": "Decision Maker",
    "DEAL_LEAD": "Deal Lead",
    "DILIGENCE": "Diligence",
    "LEGAL": "Legal",
    "FINANCE": "Finance",
    "OPERATIONS": "Operations",
}

DOCUMENT_TYPE_LABELS = {
    "TEASER": "Teaser",
    "NDA_TEMPLATE": "NDA Template",
    "NDA_SIGNED": "Signed NDA",
    "CIM": "CIM",
    "PROCESS_LETTER": "Process Letter",
    "IOI_RECEIVED": "IOI Received",
    "LOI_RECEIVED": "LOI Received",
    "PURCHASE_AGREEMENT": "Purchase Agreement",
    "OTHER": "Other",
}

MEETING_TYPE_LABELS = {
    "INTRO_CALL": "Intro Call",
    "MANAGEMENT_PRESENTATION": "Management Presentation",
    "SITE_VISIT": "Site Visit",
    "EXPERT_SESSION": "Expert Session",
    "NEGOTIATION": "Negotiation",
    "OTHER": "Other",
}

ACTIVE_STAGES = frozenset(
    {
        "IDENTIFIED",
        "SELLER_REVIEWING",
        "APPROVED",
        "TEASER_SENT",
        "INTERESTED",
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
        "LOI_REQUESTED",
        "LOI_RECEIVED",
        "LOI_SELECTED",
        "LOI_BACKUP",
        "DUE_DILIGENCE",
        "PA_DRAFTING",
        "PA_NEGOTIATING",
        "CLOSING",
    }
)
EXIT_STAGES = frozenset({"DECLINED", "PASSED", "IOI_DECLINED", "WITHDRAWN", "TERMINATED"})
COMPLETED_STAGES = frozenset({"CLOSED"})
TERMINAL_STAGES = EXIT_STAGES | COMPLETED_STAGES

PIPELINE_STAGES = (
    "IDENTIFIED",
    "TEASER_SENT",
    "NDA_EXECUTED",
    "CIM_ACCESS",
    "IOI_RECEIVED",
    "LOI_RECEIVED",
    "DUE_DILIGENCE",
    "CLOSING",
)

VALID_STAGE_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "IDENTIFIED": ("SELLER_REVIEWING", "WITHDRAWN"),
    "SELLER_REVIEWING": ("APPROVED", "DECLINED"),
    "APPROVED": ("TEASER_SENT", "WITHDRAWN"),
    "DECLINED": (),
    "TEASER_SENT": ("INTERESTED", "PASSED", "WITHDRAWN"),
    "INTERESTED": ("NDA_SENT", "WITHDRAWN"),
    "PASSED": (),
    "NDA_SENT": ("NDA_NEGOTIATING", "NDA_EXECUTED", "WITHDRAWN"),
    "NDA_NEGOTIATING": ("NDA_EXECUTED", "WITHDRAWN"),
    "NDA_EXECUTED": ("CIM_ACCESS", "WITHDRAWN"),
    "CIM_ACCESS": ("LEVEL_2_ACCESS", "MANAGEMENT_MEETING_SCHEDULED", "IOI_REQUESTED", "WITHDRAWN"),
    "LEVEL_2_ACCESS": ("LEVEL_3_ACCESS", "MANAGEMENT_MEETING_SCHEDULED", "IOI_REQUESTED", "WITHDRAWN"),
    "LEVEL_3_ACCESS": ("MANAGEMENT_MEETING_SCHEDULED", "IOI_REQUESTED", "WITHDRAWN"),
    "MANAGEMENT_MEETING_SCHEDULED": ("MANAGEMENT_MEETING_COMPLETED", "WITHDRAWN"),
    "MANAGEMENT_MEETING_COMPLETED": ("IOI_REQUESTED", "WITHDRAWN"),
    "IOI_REQUESTED": ("IOI_RECEIVED", "WITHDRAWN"),
    "IOI_RECEIVED": ("IOI_ACCEPTED", "IOI_DECLINED"),
    "IOI_ACCEPTED": ("LOI_REQUESTED", "WITHDRAWN"),
    "IOI_DECLINED": (),
    "LOI_REQUESTED": ("LOI_RECEIVED", "WITHDRAWN"),
    "LOI_RECEIVED": ("LOI_SELECTED", "LOI_BACKUP", "WITHDRAWN"),
    "LOI_SELECTED": ("DUE_DILIGENCE", "WITHDRAWN"),
    "LOI_BACKUP": ("LOI_SELECTED", "WITHDRAWN", "TERMINATED"),
    "DUE_DILIGENCE": ("PA_DRAFTING", "WITHDRAWN", "TERMINATED"),
    "PA_DRAFTING": ("PA_NEGOTIATING", "WITHDRAWN", "TERMINATED"),
    "PA_NEGOTIATING": ("CLOSING", "WITHDRAWN", "TERMINATED"),
    "CLOSING": ("CLOSED", "TERMINATED"),
    "CLOSED": (),
    "WITHDRAWN": (),
    "TERMINATED": (),
}


def get_stage_group(stage: str) -> str:
    for key, (_, stages) in STAGE_GROUPS.items():
        if stage in stages:
            return key
    return "UNKNOWN"


def is_valid_transition(from_stage: str, to_stage: str) -> bool:
    return to_stage in VALID_STAGE_TRANSITIONS.get(from_stage, ())


def get_valid_next_stages(from_stage: str) -> tuple[str, ...]:
    return VALID_STAGE_TRANSITIONS.get(from_stage, ())


def is_terminal_stage(stage: str) -> bool:
    return stage in TERMINAL_STAGES


def is_exit_stage(stage: str) -> bool:
    return stage in EXIT_STAGES
