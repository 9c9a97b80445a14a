"""Score impact feedback for completed project assessments."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from exitosx.valuation.dashboard import CATEGORY_LABELS

# Category moves smaller than this are not reported
CATEGORY_CHANGE_THRESHOLD = 0.05
# Rounds to at least one percentage point
OVERALL_CHANGE_THRESHOLD = 0.005
STRONG_SCORE = 0.7
WEAK_SCORE = 0.5


@dataclass
class ScoreImpactSummary:
    overall_change: str
    category_changes: list[dict] = field(default_factory=list)
    key_findings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def describe_overall_change(bri_before: float | None, bri_after: float) -> str:
    after = f"{bri_after * 100:.0f}%"
    if bri_before is None:
        return f"Your refined BRI score is {after}"
    change = bri_after - bri_before
    before = f"{bri_before * 100:.0f}%"
    if change >= OVERALL_CHANGE_THRESHOLD:
        return f"Your BRI score improved from {before} to {after} (+{change * 100:.0f}%)"
    if change <= -OVERALL_CHANGE_THRESHOLD:
        return (
            f"Your BRI score adjusted from {before} to {after} ({change * 100:.0f}%). "
            "The detailed assessment revealed areas that need attention."
        )
    return f"Your BRI score confirmed at {after}"


def build_score_impact_summary(
    answer_scores: dict[str, list[float]],
    bri_before: float | None,
    bri_after: float,
    category_scores: dict[str, float],
    previous_category_scores: dict[str, float] | None = None,
) -> ScoreImpactSummary:
    """Summarize what the assessment's answers did to the BRI.

    ``answer_scores`` maps each category to the scores of the answers given
    in this assessment. Category changes compare the refined category scores
    with the ones on the previous snapshot.
    """
    summary = ScoreImpactSummary(overall_change=describe_overall_change(bri_before, bri_after))

    deltas: dict[str, float] = {}
    if previous_category_scores:
        for category in answer_scores:
            if category not in category_scores or category not in previous_category_scores:
                continue
            delta = category_scores[category] - previous_category_scores[category]
            deltas[category] = delta
            if delta > CATEGORY_CHANGE_THRESHOLD:
                message = f"{_label(category)}: Better than expected (+{delta * 100:.0f}%)"
            elif delta < -CATEGORY_CHANGE_THRESHOLD:
                message = f"{_label(category)}: Risk area identified ({delta * 100:.0f}%)"
            else:
                continue
            summary.category_changes.append({"category": category, "change": delta, "message": message})

    averages = {c: sum(s) / len(s) for c, s in answer_scores.items() if s}
    if averages:
        strongest = max(averages, key=averages.get)
        if averages[strongest] >= STRONG_SCORE:
            summary.key_findings.append(
                f"Your {_label(strongest).lower()} practices are strong, "
                f"scoring {averages[strongest] * 100:.0f}% in this assessment."
            )
        weakest = min(averages, key=averages.get)
        if averages[weakest] < WEAK_SCORE:
            summary.key_findings.append(
                f"Your responses indicate {_label(weakest).lower()} may need attention. "
                "We've identified opportunities for improvement."
            )

    improved = [c for c, d in deltas.items() if d > CATEGORY_CHANGE_THRESHOLD]
    if improved:
        best = max(improved, key=deltas.get)
        summary.key_findings.append(
            f"Your {_label(best).lower()} answers show stronger performance than our initial assessment indicated."
        )
    declined = [c for c, d in deltas.items() if d < -CATEGORY_CHANGE_THRESHOLD]
    if declined:
        worst = min(declined, key=deltas.get)
        summary.key_findings.append(
            f"We uncovered some {_label(worst).lower()} areas that weren't fully captured in earlier "
            "assessments. New improvement tasks have been added."
        )

    if not summary.key_findings:
        summary.key_findings.append(
            f"Your responses have helped us better understand your business across {len(answer_scores)} key areas."
        )
    return summary
