"""Business Readiness Index (BRI) scoring."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exitosx.models.enums import BRI_CATEGORIES

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_WEIGHTS: dict[str, float] = {
    "FINANCIAL": 0.25,
    "TRANSFERABILITY": 0.20,
    "OPERATIONAL": 0.20,
    "MARKET": 0.15,
    "LEGAL_TAX": 0.10,
    "PERSONAL": 0.10,
}

BRI_WEIGHTS_SETTING_KEY = "bri_category_weights"

# Snapshot column per category
SNAPSHOT_FIELDS: dict[str, str] = {
    "FINANCIAL": "bri_financial",
    "TRANSFERABILITY": "bri_transferability",
    "OPERATIONAL": "bri_operational",
    "MARKET": "bri_market",
    "LEGAL_TAX": "bri_legal_tax",
    "PERSONAL": "bri_personal",
}


@dataclass
class ScoringResponse:
    question_id: str
    bri_category: str
    max_impact_points: float
    score_value: float | None
    updated_at: datetime | None = None


def deduplicate_responses(responses: Iterable[ScoringResponse]) -> list[ScoringResponse]:
    """Keep only the most recently updated response per question."""
    latest: dict[str, ScoringResponse] = {}
    for r in responses:
        current = latest.get(r.question_id)
        if current is None:
            latest[r.question_id] = r
        elif r.updated_at and (current.updated_at is None or r.updated_at > current.updated_at):
            latest[r.question_id] = r
    return list(latest.values())


def calculate_category_scores(
    responses: Iterable[ScoringResponse],
    default: float = 0.0,
) -> dict[str, float]:
    """Impact-point weighted average score per category.

    Categories without answered questions score ``default``.
    """
    earned = {c: 0.0 for c in BRI_CATEGORIES}
    possible = {c: 0.0 for c in BRI_CATEGORIES}

    for r in responses:
        if r.score_value is None or r.bri_category not in possible:
            continue
        earned[r.bri_category] += r.score_value * r.max_impact_points
        possible[r.bri_category] += r.max_impact_points

    return {
        c: (earned[c] / possible[c] if possible[c] > 0 else default)
        for c in BRI_CATEGORIES
    }


def calculate_weighted_bri_score(
    category_scores: dict[str, float],
    weights: dict[str, float] | None = None,
) -> float:
    weights = weights or DEFAULT_CATEGORY_WEIGHTS
    return sum(category_scores.get(c, 0.0) * weights.get(c, 0.0) for c in BRI_CATEGORIES)


def category_scores_from_snapshot(snapshot, default: float = 0.5) -> dict[str, float]:
    """Read per-category BRI scores off a snapshot (default when missing)."""
    if snapshot is None:
        return {c: default for c in BRI_CATEGORIES}
    return {c: float(getattr(snapshot, field)) for c, field in SNAPSHOT_FIELDS.items()}


async def get_bri_weights_for_company(
    session: AsyncSession,
    company_weights: dict | None,
) -> dict[str, float]:
    """Resolve category weights: company-specific > system setting > defaults."""
    from exitosx.models.db import SystemSetting

    if company_weights and isinstance(company_weights, dict):
        return {k: float(v) for k, v in company_weights.items()}

    try:
        result = await session.execute(
            select(SystemSetting).where(SystemSetting.key == BRI_WEIGHTS_SETTING_KEY)
        )
        setting = result.scalar_one_or_none()
        if setting and setting.value:
            return {k: float(v) for k, v in setting.value.items()}
    except Exception:
        logger.exception("Failed to load global BRI weights, using defaults")

    return dict(DEFAULT_CATEGORY_WEIGHTS)
