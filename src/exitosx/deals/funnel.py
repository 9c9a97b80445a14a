"""Funnel metrics and pipeline summaries over a deal's buyers.

Both functions take ``DealBuyer`` rows with ``buyer_company`` and
``stage_history`` loaded.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from exitosx.deals.stages import ACTIVE_STAGES, COMPLETED_STAGES, EXIT_STAGES, STAGE_GROUPS
from exitosx.models.enums import BUYER_TIERS, BUYER_TYPES, DEAL_STAGES

STALE_BUYER_DAYS = 14
DEADLINE_WINDOW_DAYS = 7

# Buyers that reached any of these stages count as having passed the milestone.
_TEASER_REACHED = ("TEASER_SENT", "INTERESTED", "NDA_SENT", "NDA_NEGOTIATING", "NDA_EXECUTED")
_INTERESTED_REACHED = ("INTERESTED", "NDA_SENT", "NDA_NEGOTIATING", "NDA_EXECUTED")
_NDA_REACHED = ("NDA_EXECUTED", "CIM_ACCESS", "LEVEL_2_ACCESS", "LEVEL_3_ACCESS")
_IOI_REACHED = ("IOI_RECEIVED", "IOI_ACCEPTED")
_LOI_REACHED = ("LOI_RECEIVED", "LOI_SELECTED", "LOI_BACKUP")


def _buyer_type(buyer) -> str:
    return buyer.buyer_company.buyer_type if buyer.buyer_company is not None else "OTHER"


def _buyer_name(buyer) -> str:
    return buyer.buyer_company.name if buyer.buyer_company is not None else ""


def _ever_reached(buyers: list, stages: tuple[str, ...]) -> int:
    return sum(
        1
        for b in buyers
        if b.current_stage in stages or any(h.to_stage in stages for h in b.stage_history)
    )


def _pct(numerator: int, denominator: int) -> float:
    return numerator / denominator * 100 if denominator > 0 else 0.0


def _avg_days(buyers: list, field: str) -> int | None:
    reached = [b for b in buyers if getattr(b, field) is not None and b.created_at is not None]
    if not reached:
        return None
    total = sum(math.floor((getattr(b, field) - b.created_at).total_seconds() / 86400) for b in reached)
    return math.floor(total / len(reached) + 0.5)


def calculate_funnel_metrics(buyers: list) -> dict:
    by_stage = {stage: 0 for stage in DEAL_STAGES}
    by_type = {t: 0 for t in BUYER_TYPES}
    by_tier = {t: 0 for t in BUYER_TIERS}
    by_group = {key: 0 for key in STAGE_GROUPS}

    for buyer in buyers:
        by_stage[buyer.current_stage] = by_stage.get(buyer.current_stage, 0) + 1
        by_type[_buyer_type(buyer)] = by_type.get(_buyer_type(buyer), 0) + 1
        by_tier[buyer.tier] = by_tier.get(buyer.tier, 0) + 1
        for key, (_, stages) in STAGE_GROUPS.items():
            if buyer.current_stage in stages:
                by_group[key] += 1
                break

    total = len(buyers)
    closed = sum(1 for b in buyers if b.current_stage in COMPLETED_STAGES)
    teaser = _ever_reached(buyers, _TEASER_REACHED)
    interested = _ever_reached(buyers, _INTERESTED_REACHED)
    nda = _ever_reached(buyers, _NDA_REACHED)
    ioi = _ever_reached(buyers, _IOI_REACHED)
    loi = _ever_reached(buyers, _LOI_REACHED)

    ioi_values = [float(b.ioi_amount) for b in buyers if b.ioi_amount is not None]
    loi_values = [float(b.loi_amount) for b in buyers if b.loi_amount is not None]

    return {
        "total_buyers": total,
        "active_buyers": sum(1 for b in buyers if b.current_stage in ACTIVE_STAGES),
        "terminated_buyers": sum(1 for b in buyers if b.current_stage in EXIT_STAGES),
        "closed_deals": closed,
        "by_stage_group": by_group,
        "by_stage": by_stage,
        "by_type": by_type,
        "by_tier": by_tier,
        "conversion_rates": {
            "teaser_to_interested": _pct(interested, teaser),
            "interested_to_nda": _pct(nda, interested),
            "nda_to_ioi": _pct(ioi, nda),
            "ioi_to_loi": _pct(loi, ioi),
            "loi_to_close": _pct(closed, loi),
            "overall_close": _pct(closed, total),
        },
        "timeline": {
            "avg_days_to_nda": _avg_days(buyers, "nda_executed_at"),
            "avg_days_to_ioi": _avg_days(buyers, "ioi_received_at"),
            "avg_days_to_loi": _avg_days(buyers, "loi_received_at"),
            "avg_days_to_close": _avg_days(buyers, "closed_at"),
        },
        "ioi_loi_values": {
            "total_ioi_value": sum(ioi_values),
            "avg_ioi_value": sum(ioi_values) / len(ioi_values) if ioi_values else 0,
            "total_loi_value": sum(loi_values),
            "avg_loi_value": sum(loi_values) / len(loi_values) if loi_values else 0,
            "highest_ioi": max(ioi_values, default=0),
            "highest_loi": max(loi_values, default=0),
        },
    }


def get_pipeline_summary(buyers: list, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    window_end = now + timedelta(days=DEADLINE_WINDOW_DAYS)
    stale_cutoff = now - timedelta(days=STALE_BUYER_DAYS)

    pipeline = {
        key.lower(): sum(1 for b in buyers if b.current_stage in stages)
        for key, (_, stages) in STAGE_GROUPS.items()
        if key not in ("MANAGEMENT", "EXIT")
    }

    def in_window(deadline: datetime | None) -> bool:
        return deadline is not None and now <= deadline <= window_end

    upcoming = []
    for b in buyers:
        if not (in_window(b.ioi_deadline) or in_window(b.loi_deadline)):
            continue
        upcoming.append(
            {
                "id": str(b.id),
                "name": _buyer_name(b),
                "deadline": (b.ioi_deadline or b.loi_deadline).isoformat(),
                "type": "IOI" if b.ioi_deadline is not None and b.ioi_deadline <= window_end else "LOI",
            }
        )

    stale = [
        {
            "id": str(b.id),
            "name": _buyer_name(b),
            "current_stage": b.current_stage,
            "days_since_update": math.floor((now - b.stage_updated_at).total_seconds() / 86400),
        }
        for b in buyers
        if b.current_stage in ACTIVE_STAGES and b.stage_updated_at is not None and b.stage_updated_at < stale_cutoff
    ]

    return {
        "pipeline": pipeline,
        "upcoming_deadlines": upcoming,
        "stale_buyers": stale,
        "total_active": sum(1 for b in buyers if b.current_stage in ACTIVE_STAGES),
    }
