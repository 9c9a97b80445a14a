"""Workspace roles and granular ``module.resource:action`` permissions."""

from __future__ import annotations

from dataclasses import dataclass

# Workspace role permissions: which roles may perform each action.
PERMISSIONS: dict[str, tuple[str, ...]] = {
    "COMPANY_CREATE": ("OWNER", "ADMIN"),
    "COMPANY_UPDATE": ("OWNER", "ADMIN", "MEMBER"),
    "COMPANY_DELETE": ("OWNER", "ADMIN"),
    "COMPANY_VIEW": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "ASSESSMENT_CREATE": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "ASSESSMENT_COMPLETE": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "ASSESSMENT_VIEW": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "TASK_UPDATE": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "TASK_ASSIGN": ("OWNER", "ADMIN"),
    "TASK_VIEW": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "ORG_VIEW": ("OWNER", "ADMIN", "BILLING", "MEMBER"),
    "ORG_MANAGE_MEMBERS": ("OWNER", "ADMIN"),
    "ORG_INVITE_USERS": ("OWNER", "ADMIN"),
    "ORG_UPDATE_ROLES": ("OWNER", "ADMIN"),
    "ORG_DELETE": ("OWNER",),
}

ROLE_HIERARCHY = {"OWNER": 4, "ADMIN": 3, "BILLING": 2, "MEMBER": 1}

ROLE_DISPLAY_NAMES = {"OWNER": "Owner", "ADMIN": "Admin", "BILLING": "Billing", "MEMBER": "Member"}

ROLE_DESCRIPTIONS = {
    "OWNER": "Full access to all features and workspace management",
    "ADMIN": "Can manage companies, assessments, and team members",
    "BILLING": "Can manage subscription and billing",
    "MEMBER": "Can complete assessments and update tasks",
}


def has_permission(role: str, permission: str) -> bool:
    return role in PERMISSIONS.get(permission, ())


def get_permissions_for_role(role: str) -> list[str]:
    return [permission for permission, roles in PERMISSIONS.items() if role in roles]


def is_role_at_least(user_role: str, required_role: str) -> bool:
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


# ── Granular permissions ──────────────────────────────────────────────────────

GRANULAR_PERMISSIONS: dict[str, str] = {
    "assessments.company:view": "View company assessments",
    "assessments.company:edit": "Edit company assessments",
    "assessments.personal:view": "View personal readiness assessments",
    "assessments.personal:edit": "Edit personal readiness assessments",
    "financials.statements:view": "View financial statements",
    "financials.statements:edit": "Edit financial statements",
    "financials.adjustments:view": "View EBITDA adjustments",
    "financials.adjustments:edit": "Edit EBITDA adjustments",
    "financials.dcf:view": "View DCF analysis",
    "financials.dcf:edit": "Edit DCF assumptions",
    "personal.retirement:view": "View retirement accounts",
    "personal.retirement:edit": "Edit retirement accounts",
    "personal.net_worth:view": "View net worth",
    "personal.net_worth:edit": "Edit net worth data",
    "valuation.summary:view": "View valuation summary",
    "valuation.detailed:view": "View detailed valuation breakdown",
    "dataroom.financial:view": "View financial documents",
    "dataroom.financial:upload": "Upload financial documents",
    "dataroom.legal:view": "View legal documents",
    "dataroom.legal:upload": "Upload legal documents",
    "dataroom.operations:view": "View operations documents",
    "dataroom.operations:upload": "Upload operations documents",
    "dataroom.customers:view": "View customer documents",
    "dataroom.customers:upload": "Upload customer documents",
    "dataroom.employees:view": "View employee documents",
    "dataroom.employees:upload": "Upload employee documents",
    "dataroom.ip:view": "View IP documents",
    "dataroom.ip:upload": "Upload IP documents",
    "playbook.tasks:view": "View action plan tasks",
    "playbook.tasks:complete": "Complete tasks",
    "playbook.tasks:create": "Create new tasks",
    "playbook.tasks:assign": "Assign tasks to team members",
    "team.members:view": "View team members",
    "team.members:invite": "Invite new members",
    "team.members:manage": "Manage member permissions",
    "team.members:remove": "Remove team members",
}


@dataclass(frozen=True)
class RoleTemplate:
    slug: str
    name: str
    description: str
    is_external: bool
    granted: frozenset[str]

    @property
    def default_permissions(self) -> dict[str, bool]:
        return {p: p in self.granted for p in GRANULAR_PERMISSIONS}


def _template(slug: str, name: str, description: str, is_external: bool, granted: list[str]) -> RoleTemplate:
    unknown = set(granted) - GRANULAR_PERMISSIONS.keys()
    if unknown:
        raise ValueError(f"Unknown permissions in {slug}: {sorted(unknown)}")
    return RoleTemplate(slug, name, description, is_external, frozenset(granted))


ROLE_TEMPLATES: dict[str, RoleTemplate] = {
    t.slug: t
    for t in (
        _template("owner", "Owner", "Full access to all features and data", False, list(GRANULAR_PERMISSIONS)),
        _template(
            "cpa",
            "CPA / Accountant",
            "Access to financials, valuation, and financial documents",
            True,
            [
                "assessments.company:view",
                "financials.statements:view",
                "financials.statements:edit",
                "financials.adjustments:view",
                "financials.adjustments:edit",
                "financials.dcf:view",
                "financials.dcf:edit",
                "valuation.summary:view",
                "valuation.detailed:view",
                "dataroom.financial:view",
                "dataroom.financial:upload",
                "playbook.tasks:view",
                "team.members:view",
            ],
        ),
        _template(
            "attorney",
            "Attorney",
            "Access to legal documents and compliance data",
            True,
            [
                "assessments.company:view",
                "dataroom.legal:view",
                "dataroom.legal:upload",
                "dataroom.operations:view",
                "dataroom.operations:upload",
                "dataroom.employees:view",
                "dataroom.ip:view",
                "dataroom.ip:upload",
                "playbook.tasks:view",
                "team.members:view",
            ],
        ),
        _template(
            "wealth_advisor",
            "Wealth Advisor",
            "Access to personal financials, valuation, and personal readiness",
            True,
            [
                "assessments.company:view",
                "assessments.personal:view",
                "assessments.personal:edit",
                "financials.statements:view",
                "financials.adjustments:view",
                "financials.dcf:view",
                "personal.retirement:view",
                "personal.retirement:edit",
                "personal.net_worth:view",
                "personal.net_worth:edit",
                "valuation.summary:view",
                "valuation.detailed:view",
                "dataroom.financial:view",
                "playbook.tasks:view",
                "team.members:view",
            ],
        ),
        _template(
            "ma_advisor",
            "M&A Advisor",
            "Full business access for deal preparation",
            True,
            [
                p
                for p in GRANULAR_PERMISSIONS
                if not p.startswith(("personal.", "assessments.personal", "team."))
            ]
            + ["team.members:view"],
        ),
        _template(
            "consultant",
            "Consultant",
            "Access to assessments, operations, and playbook",
            True,
            [
                "assessments.company:view",
                "assessments.company:edit",
                "financials.statements:view",
                "financials.adjustments:view",
                "valuation.summary:view",
                "dataroom.operations:view",
                "dataroom.operations:upload",
                "dataroom.customers:view",
                "dataroom.employees:view",
                "playbook.tasks:view",
                "playbook.tasks:complete",
                "playbook.tasks:create",
                "team.members:view",
            ],
        ),
        _template(
            "internal_team",
            "Internal Team",
            "Access to assessments and assigned tasks",
            False,
            [
                "assessments.company:view",
                "assessments.company:edit",
                "financials.statements:view",
                "financials.adjustments:view",
                "valuation.summary:view",
                "dataroom.financial:view",
                "dataroom.legal:view",
                "dataroom.operations:view",
                "dataroom.operations:upload",
                "dataroom.customers:view",
                "dataroom.employees:view",
                "playbook.tasks:view",
                "playbook.tasks:complete",
                "team.members:view",
            ],
        ),
        _template(
            "view_only",
            "View Only",
            "Read-only access across permitted areas",
            False,
            [
                "assessments.company:view",
                "financials.statements:view",
                "financials.adjustments:view",
                "financials.dcf:view",
                "valuation.summary:view",
                "valuation.detailed:view",
                "dataroom.financial:view",
                "dataroom.legal:view",
                "dataroom.operations:view",
                "dataroom.customers:view",
                "dataroom.employees:view",
                "dataroom.ip:view",
                "playbook.tasks:view",
                "team.members:view",
            ],
        ),
    )
}


def parse_permission(permission: str) -> dict[str, str]:
    """``"financials.dcf:edit"`` -> module, resource and action."""
    module_resource, _, action = permission.partition(":")
    module, _, resource = module_resource.partition(".")
    return {"module": module, "resource": resource, "action": action}


def get_module_permissions(module: str) -> list[str]:
    return [p for p in GRANULAR_PERMISSIONS if p.startswith(f"{module}.")]


def is_sensitive_permission(permission: str) -> bool:
    return permission.startswith("personal.")


def resolve_member_permissions(
    role: str,
    role_template: str | None,
    custom_permissions: dict[str, bool] | None,
) -> dict[str, bool]:
    """Custom override beats template default beats deny.

    Workspace owners without a template get the owner template.
    """
    template = ROLE_TEMPLATES.get(role_template or "")
    if template is None and role == "OWNER":
        template = ROLE_TEMPLATES["owner"]

    resolved = dict(template.default_permissions) if template else {}
    for permission, granted in (custom_permissions or {}).items():
        resolved[permission] = bool(granted)
    return resolved


def check_granular_permission(
    permission: str,
    role: str,
    role_template: str | None,
    custom_permissions: dict[str, bool] | None,
) -> dict:
    resolved = resolve_member_permissions(role, role_template, custom_permissions)
    if permission in (custom_permissions or {}):
        source = "custom"
    elif role_template in ROLE_TEMPLATES or role == "OWNER":
        source = "template"
    else:
        source = "default_deny"
    return {"granted": resolved.get(permission, False), "source": source, "permission": permission}
