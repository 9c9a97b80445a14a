"""Question prioritization for project assessments.

Questions are ranked by buyer impact, buyer sensitivity and how weak the
company is in the question's BRI category, then selected with a quota for
the focus category and a bonus for category diversity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exitosx.valuation.bri import DEFAULT_CATEGORY_WEIGHTS, category_scores_from_snapshot

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {
    "impact": 0.35,
    "sensitivity": 0.25,
    "relevance": 0.25,
    "balance": 0.15,
}
IMPACT_SCORES = {"CRITICAL": 100, "HIGH": 75, "MEDIUM": 50, "LOW": 25}
SENSITIVITY_SCORES = {"CRITICAL": 100, "HIGH": 75, "MEDIUM": 50, "LOW": 25}
DEFAULT_URGENCY = 50

COMPLETED_TASK_PENALTY = 15
NEW_CATEGORY_BONUS = 10
OVERREPRESENTED_PENALTY = -5
OVERREPRESENTED_COUNT = 3
FOCUS_SHARE = 0.5

SAAS_ONLY_MODULE_PREFIXES = ("MOD-FIN-RECURRING", "MOD-RQ-RR", "MOD-FN-RQ")
SAAS_KEYWORDS = (
    "recurring revenue",
    "subscription-based",
    "subscription revenue",
    "net revenue retention",
    "mrr",
    "arr",
    "saas",
)
RECURRING_REVENUE_INDUSTRIES = ("SOFTWARE_AND_COMPUTER_SERVICES", "MEDIA", "TELECOMMUNICATIONS")
SAAS_SUB_SECTORS = ("SOFTWARE", "COMPUTER_SERVICES", "INTERNET")

CATEGORY_NAMES = {
    "FINANCIAL": "Financial Performance",
    "TRANSFERABILITY": "Business Transferability",
    "OPERATIONAL": "Operational Excellence",
    "MARKET": "Market Position",
    "LEGAL_TAX": "Legal & Tax Structure",
    "PERSONAL": "Personal Readiness",
}


@dataclass
class PriorityCandidate:
    question_id: str
    module_id: str
    question_text: str
    bri_category: str
    sub_category: str
    impact_score: float
    relevance_score: float
    priority_score: float


@dataclass
class PrioritizedQuestion:
    question_id: str
    module_id: str
    question_text: str
    bri_category: str
    sub_category: str
    impact_score: float
    relevance_score: float
    balance_bonus: float
    total_score: float
    selection_reason: str

    def to_dict(self) -> dict:
        return asdict(self)


def score_question(question_impact: str, buyer_sensitivity: str, category_score: float) -> dict[str, float]:
    impact = IMPACT_SCORES[question_impact] * PRIORITY_WEIGHTS["impact"]
    sensitivity = SENSITIVITY_SCORES[buyer_sensitivity] * PRIORITY_WEIGHTS["sensitivity"]
    relevance = (1 - category_score) * 100 * PRIORITY_WEIGHTS["relevance"]
    return {
        "impact_score": impact,
        "relevance_score": relevance,
        "urgency_score": DEFAULT_URGENCY,
        "priority_score": impact + sensitivity + relevance,
    }


def is_recurring_revenue_company(company) -> bool:
    upper = [
        (company.icb_industry or "").upper(),
        (company.icb_super_sector or "").upper(),
        (company.icb_sector or "").upper(),
    ]
    if any(ind in level for ind in RECURRING_REVENUE_INDUSTRIES for level in upper):
        return True
    sub = (company.icb_sub_sector or "").upper()
    return any(s in sub for s in SAAS_SUB_SECTORS)


def is_saas_only_question(module_id: str, question_text: str) -> bool:
    if any(module_id.startswith(p) for p in SAAS_ONLY_MODULE_PREFIXES):
        return True
    text = question_text.lower()
    return any(k in text for k in SAAS_KEYWORDS)


def find_weakest_category(category_scores: dict[str, float]) -> str:
    """Category with the lowest ``score * default_weight``; first wins ties."""
    weakest = None
    lowest = math.inf
    for category, weight in DEFAULT_CATEGORY_WEIGHTS.items():
        weighted = category_scores.get(category, 0.5) * weight
        if weighted < lowest:
            lowest, weakest = weighted, category
    return weakest


def select_questions(
    candidates: list[PriorityCandidate],
    target_count: int,
    target_category: str,
    focus_requested: bool,
    resolved_categories: set[str],
) -> list[PrioritizedQuestion]:
    """Pick up to ``target_count`` questions from applicable, unasked candidates."""
    adjusted = []
    for c in candidates:
        mitigated = c.bri_category in resolved_categories
        score = c.priority_score - COMPLETED_TASK_PENALTY if mitigated else c.priority_score
        adjusted.append((c, score, mitigated))
    adjusted.sort(key=lambda a: a[1], reverse=True)

    selected: list[PrioritizedQuestion] = []
    category_count: dict[str, int] = {}

    focus = [a for a in adjusted if a[0].bri_category == target_category]
    quota = min(math.ceil(target_count * FOCUS_SHARE), len(focus))
    for c, score, mitigated in focus[:quota]:
        reason = (
            f"Selected focus: {target_category}"
            if focus_requested
            else f"Priority area: {target_category} (needs improvement)"
        )
        if mitigated:
            reason += " (some risks mitigated by completed tasks)"
        selected.append(_prioritized(c, 0, score, reason))
        category_count[c.bri_category] = category_count.get(c.bri_category, 0) + 1

    selected_ids = {q.question_id for q in selected}
    for c, score, mitigated in adjusted:
        if len(selected) >= target_count:
            break
        if c.question_id in selected_ids:
            continue

        count = category_count.get(c.bri_category, 0)
        if count == 0:
            bonus = NEW_CATEGORY_BONUS
        elif count >= OVERREPRESENTED_COUNT:
            bonus = OVERREPRESENTED_PENALTY
        else:
            bonus = 0

        reason = "High impact, new category coverage" if count == 0 else "High impact question"
        if mitigated:
            reason += " (some risks mitigated)"
        selected.append(_prioritized(c, bonus, score + bonus, reason))
        category_count[c.bri_category] = count + 1
        selected_ids.add(c.question_id)

    selected.sort(key=lambda q: q.total_score, reverse=True)
    return selected


def _prioritized(c: PriorityCandidate, bonus: float, total: float, reason: str) -> PrioritizedQuestion:
    return PrioritizedQuestion(
        question_id=c.question_id,
        module_id=c.module_id,
        question_text=c.question_text,
        bri_category=c.bri_category,
        sub_category=c.sub_category,
        impact_score=c.impact_score,
        relevance_score=c.relevance_score,
        balance_bonus=bonus,
        total_score=total,
        selection_reason=reason,
    )


# ── Database operations ───────────────────────────────────────────────────────


async def _latest_category_scores(session: AsyncSession, company_id) -> tuple[dict[str, float], object]:
    from exitosx.models.db import ValuationSnapshot

    result = await session.execute(
        select(ValuationSnapshot)
        .where(ValuationSnapshot.company_id == company_id)
        .order_by(ValuationSnapshot.created_at.desc())
        .limit(1)
    )
    snapshot = result.scalar_one_or_none()
    return category_scores_from_snapshot(snapshot), snapshot


async def calculate_question_priorities(session: AsyncSession, company_id) -> int:
    """Upsert a priority row for every active project question. Returns the count."""
    from exitosx.models.db import CompanyQuestionPriority, ProjectQuestion

    category_scores, _ = await _latest_category_scores(session, company_id)

    questions = (
        await session.execute(select(ProjectQuestion).where(ProjectQuestion.is_active.is_(True)))
    ).scalars().all()
    existing = {
        p.question_id: p
        for p in (
            await session.execute(
                select(CompanyQuestionPriority).where(CompanyQuestionPriority.company_id == company_id)
            )
        ).scalars().all()
    }

    for question in questions:
        scores = score_question(
            question.question_impact,
            question.buyer_sensitivity,
            category_scores.get(question.bri_category, 0.5),
        )
        row = existing.get(question.id)
        if row is None:
            session.add(CompanyQuestionPriority(company_id=company_id, question_id=question.id, **scores))
        else:
            for key, value in scores.items():
                setattr(row, key, value)

    await session.flush()
    logger.info("Calculated %d question priorities for company %s", len(questions), company_id)
    return len(questions)


async def get_resolved_categories(session: AsyncSession, company_id) -> set[str]:
    """Categories with completed tasks that upgraded a linked answer."""
    from exitosx.models.db import Task

    result = await session.execute(
        select(Task.bri_category).where(
            Task.company_id == company_id,
            Task.status == "COMPLETED",
            Task.linked_question_id.is_not(None),
            Task.upgrades_to_option_id.is_not(None),
        )
    )
    return set(result.scalars().all())


async def get_next_questions(
    session: AsyncSession,
    company_id,
    n: int = 10,
    focus_category: str | None = None,
) -> list[PrioritizedQuestion]:
    """Select questions for the next project assessment."""
    from exitosx.models.db import Company, CompanyQuestionPriority

    await calculate_question_priorities(session, company_id)
    resolved = await get_resolved_categories(session, company_id)

    company = (await session.execute(select(Company).where(Company.id == company_id))).scalar_one_or_none()
    is_saas = bool(company) and is_recurring_revenue_company(company)

    category_scores, _ = await _latest_category_scores(session, company_id)
    target = focus_category or find_weakest_category(category_scores)

    result = await session.execute(
        select(CompanyQuestionPriority)
        .where(
            CompanyQuestionPriority.company_id == company_id,
            CompanyQuestionPriority.has_been_asked.is_(False),
        )
        .options(selectinload(CompanyQuestionPriority.question))
        .order_by(CompanyQuestionPriority.priority_score.desc())
    )

    candidates = []
    for p in result.scalars().all():
        q = p.question
        if not is_saas and is_saas_only_question(q.module_id, q.question_text):
            continue
        candidates.append(
            PriorityCandidate(
                question_id=str(q.id),
                module_id=q.module_id,
                question_text=q.question_text,
                bri_category=q.bri_category,
                sub_category=q.sub_category,
                impact_score=float(p.impact_score),
                relevance_score=float(p.relevance_score),
                priority_score=float(p.priority_score),
            )
        )

    return select_questions(candidates, n, target, focus_category is not None, resolved)


async def mark_questions_as_asked(session: AsyncSession, company_id, question_ids: list) -> None:
    from exitosx.models.db import CompanyQuestionPriority

    if not question_ids:
        return
    await session.execute(
        update(CompanyQuestionPriority)
        .where(
            CompanyQuestionPriority.company_id == company_id,
            CompanyQuestionPriority.question_id.in_(question_ids),
        )
        .values(has_been_asked=True, asked_at=datetime.now(timezone.utc))
    )


async def get_question_coverage_stats(session: AsyncSession, company_id) -> dict:
    from exitosx.models.db import CompanyQuestionPriority, ProjectQuestion

    totals = await session.execute(
        select(ProjectQuestion.bri_category, func.count(ProjectQuestion.id))
        .where(ProjectQuestion.is_active.is_(True))
        .group_by(ProjectQuestion.bri_category)
    )
    by_category = {category: {"total": count, "asked": 0} for category, count in totals.all()}

    asked = await session.execute(
        select(ProjectQuestion.bri_category, func.count(CompanyQuestionPriority.id))
        .join(ProjectQuestion, CompanyQuestionPriority.question_id == ProjectQuestion.id)
        .where(
            CompanyQuestionPriority.company_id == company_id,
            CompanyQuestionPriority.has_been_asked.is_(True),
        )
        .group_by(ProjectQuestion.bri_category)
    )
    questions_asked = 0
    for category, count in asked.all():
        questions_asked += count
        if category in by_category:
            by_category[category]["asked"] = count

    return {
        "total_questions": sum(c["total"] for c in by_category.values()),
        "questions_asked": questions_asked,
        "questions_by_category": by_category,
    }


def build_focus_recommendation(category_scores: dict[str, float] | None, value_gap: float) -> dict:
    if category_scores is None:
        return {
            "recommended_category": "FINANCIAL",
            "reason": "No assessment data available. Financial factors have the highest impact on valuation.",
            "estimated_impact": "Complete Initial BRI Assessment first",
        }

    category = find_weakest_category(category_scores)
    score = category_scores[category]
    weight = DEFAULT_CATEGORY_WEIGHTS[category]
    improvement = min(0.2, 1 - score)
    impact = value_gap * weight * improvement
    return {
        "recommended_category": category,
        "reason": (
            f"{CATEGORY_NAMES[category]} has your lowest BRI score ({score * 100:.0f}%) and represents "
            f"{weight * 100:.0f}% of your overall BRI."
        ),
        "estimated_impact": f"Improving this area could reduce your value gap by up to ${impact / 1000:.0f}K",
    }


async def recommend_next_assessment_focus(session: AsyncSession, company_id) -> dict:
    category_scores, snapshot = await _latest_category_scores(session, company_id)
    if snapshot is None:
        return build_focus_recommendation(None, 0.0)
    return build_focus_recommendation(category_scores, float(snapshot.value_gap))
