"""Re-assessment prompt rules.

Rules are evaluated in order and the first match wins:

1. manual cadence never prompts
2. one prompt per week at most
3. a material change prompts with high urgency
4. a task completed after the last assessment, more than 14 days ago, prompts
5. more than 90 days since the last assessment prompts
6. weekly cadence prompts after 7 days
7. monthly cadence prompts after 30 days
8. otherwise no prompt

Everything here is pure; callers pass in the state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

MAX_PROMPTS_PER_WEEK = 1
TASK_COMPLETION_REASSESS_DAYS = 14
STALE_THRESHOLD_DAYS = 90
WEEKLY_INTERVAL_DAYS = 7
MONTHLY_INTERVAL_DAYS = 30

CADENCE_PREFERENCES = ("weekly", "monthly", "manual")
URGENCY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass
class CadenceInput:
    category_id: str
    last_assessed_at: datetime | None = None
    last_task_completed_at: datetime | None = None
    material_change_detected: bool = False
    material_change_description: str | None = None
    user_cadence_preference: str = "monthly"
    prompts_shown_this_week: int = 0


@dataclass
class CadenceResult:
    should_prompt: bool
    reason: str
    urgency: str
    matched_rule: str
    next_prompt_date: datetime | None = None
    can_defer: bool = True

    def to_dict(self) -> dict:
        return {
            "should_prompt": self.should_prompt,
            "reason": self.reason,
            "urgency": self.urgency,
            "can_defer": self.can_defer,
            "next_prompt_date": self.next_prompt_date.isoformat() if self.next_prompt_date else None,
            "matched_rule": self.matched_rule,
        }


@dataclass
class BatchCadenceResult:
    results: dict[str, CadenceResult] = field(default_factory=dict)
    prompt_count: int = 0
    top_prompt: tuple[str, CadenceResult] | None = None


def days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400


def get_start_of_next_week(now: datetime) -> datetime:
    """Midnight on the next Monday. A Monday maps to the following Monday."""
    days_until_monday = 7 - now.weekday()
    next_monday = now + timedelta(days=days_until_monday)
    return next_monday.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_next_prompt_date(
    last_assessed_at: datetime | None,
    preference: str,
    now: datetime | None = None,
) -> datetime | None:
    now = now or datetime.now(timezone.utc)
    if preference == "manual":
        return None
    if last_assessed_at is None:
        return now

    interval = WEEKLY_INTERVAL_DAYS if preference == "weekly" else MONTHLY_INTERVAL_DAYS
    next_date = last_assessed_at + timedelta(days=interval)
    return now if next_date <= now else next_date


def evaluate_cadence(inp: CadenceInput, now: datetime | None = None) -> CadenceResult:
    now = now or datetime.now(timezone.utc)
    preference = inp.user_cadence_preference
    days_since = (
        days_between(inp.last_assessed_at, now) if inp.last_assessed_at is not None else float("inf")
    )

    if preference == "manual":
        return CadenceResult(
            should_prompt=False,
            reason="Assessment cadence set to manual. Re-assess whenever you choose",
            urgency="low",
            matched_rule="MANUAL_MODE",
        )

    if inp.prompts_shown_this_week >= MAX_PROMPTS_PER_WEEK:
        return CadenceResult(
            should_prompt=False,
            reason="Already shown a prompt this week. Next prompt available next week",
            urgency="low",
            matched_rule="WEEKLY_LIMIT",
            next_prompt_date=get_start_of_next_week(now),
        )

    if inp.material_change_detected:
        return CadenceResult(
            should_prompt=True,
            reason=inp.material_change_description or "A significant change was detected",
            urgency="high",
            matched_rule="MATERIAL_CHANGE",
        )

    if (
        inp.last_task_completed_at is not None
        and inp.last_assessed_at is not None
        and inp.last_task_completed_at > inp.last_assessed_at
        and days_since > TASK_COMPLETION_REASSESS_DAYS
    ):
        return CadenceResult(
            should_prompt=True,
            reason="A task was completed in this category. Time to re-assess and capture the improvement",
            urgency="medium",
            matched_rule="TASK_COMPLETED",
        )

    if days_since > STALE_THRESHOLD_DAYS:
        if inp.last_assessed_at is None:
            reason = "This category has not been assessed yet"
        else:
            reason = f"It's been {int(days_since)} days since your last assessment"
        return CadenceResult(should_prompt=True, reason=reason, urgency="medium", matched_rule="STALE_90_DAYS")

    if preference == "weekly" and days_since > WEEKLY_INTERVAL_DAYS:
        return CadenceResult(
            should_prompt=True,
            reason="Weekly check-in: review and update your scores",
            urgency="low",
            matched_rule="WEEKLY_CADENCE",
        )

    if preference == "monthly" and days_since > MONTHLY_INTERVAL_DAYS:
        return CadenceResult(
            should_prompt=True,
            reason="Monthly review: check if your scores still reflect reality",
            urgency="low",
            matched_rule="MONTHLY_CADENCE",
        )

    return CadenceResult(
        should_prompt=False,
        reason="No re-assessment needed at this time",
        urgency="low",
        matched_rule="NO_PROMPT",
        next_prompt_date=compute_next_prompt_date(inp.last_assessed_at, preference, now),
    )


def evaluate_batch_cadence(inputs: list[CadenceInput], now: datetime | None = None) -> BatchCadenceResult:
    """Evaluate every category but let only the most urgent one prompt."""
    now = now or datetime.now(timezone.utc)
    batch = BatchCadenceResult()
    prompting: list[tuple[str, CadenceResult]] = []

    for inp in inputs:
        result = evaluate_cadence(inp, now)
        batch.results[inp.category_id] = result
        if result.should_prompt:
            prompting.append((inp.category_id, result))

    # stable sort keeps input order among equal urgencies
    prompting.sort(key=lambda item: URGENCY_ORDER[item[1].urgency], reverse=True)
    if not prompting:
        return batch

    top_id, top_result = prompting[0]
    for category_id, result in prompting[1:]:
        batch.results[category_id] = replace(
            result,
            should_prompt=False,
            reason=f"Suppressed: showing prompt for {top_id} instead",
            matched_rule="WEEKLY_LIMIT",
        )
    batch.top_prompt = (top_id, top_result)
    batch.prompt_count = 1
    return batch


def build_cadence_inputs(
    categories: tuple[str, ...],
    last_assessed: dict[str, datetime],
    last_completed: dict[str, datetime],
    material_changes: dict[str, str],
    preference: str,
) -> list[CadenceInput]:
    """One input per category from per-category timestamps and open changes."""
    return [
        CadenceInput(
            category_id=category,
            last_assessed_at=last_assessed.get(category),
            last_task_completed_at=last_completed.get(category),
            material_change_detected=category in material_changes,
            material_change_description=material_changes.get(category),
            user_cadence_preference=preference,
        )
        for category in categories
    ]
