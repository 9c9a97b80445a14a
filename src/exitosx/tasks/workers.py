"""Background workers using APScheduler.

Runs periodic tasks:
- Valuation snapshot refresh for every assessed company (nightly)
- QuickBooks auto-sync for active integrations (every few hours)
- Drift reports for the previous month (1st of the month)
- Stale buyer check for active deals (daily)
- Signal expiry (hourly)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select

from exitosx.config import settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None

STALE_BUYER_SUBJECT = "No stage movement in 14 days"


def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler
    if _scheduler is not None or not settings.scheduler_enabled:
        return

    _scheduler = AsyncIOScheduler(timezone="UTC")

    _scheduler.add_job(
        refresh_all_snapshots,
        "cron",
        hour=settings.snapshot_refresh_hour,
        minute=0,
        id="snapshot_refresh_nightly",
        replace_existing=True,
    )
    _scheduler.add_job(
        sync_all_quickbooks,
        "interval",
        hours=settings.quickbooks_sync_interval_hours,
        id="quickbooks_auto_sync",
        replace_existing=True,
    )
    _scheduler.add_job(
        generate_monthly_drift_reports,
        "cron",
        day=1,
        hour=5,
        minute=0,
        id="drift_reports_monthly",
        replace_existing=True,
    )
    _scheduler.add_job(
        flag_stale_buyers,
        "cron",
        hour=7,
        minute=0,
        id="stale_buyers_daily",
        replace_existing=True,
    )
    _scheduler.add_job(
        expire_old_signals,
        "interval",
        hours=1,
        id="signal_expiry",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")


async def refresh_all_snapshots() -> None:
    """Recalculate the valuation snapshot of every company with a completed assessment."""
    from exitosx.db.session import async_session_factory
    from exitosx.models.db import Assessment, Company
    from exitosx.valuation.snapshot import recalculate_snapshot_for_company

    logger.info("Starting scheduled snapshot refresh")

    async with async_session_factory() as session:
        result = await session.execute(
            select(Company.id)
            .join(Assessment, Assessment.company_id == Company.id)
            .where(Assessment.completed_at.is_not(None))
            .distinct()
        )
        company_ids = list(result.scalars().all())

        refreshed = 0
        for company_id in company_ids:
            try:
                outcome = await recalculate_snapshot_for_company(session, company_id, "Scheduled refresh")
                await session.commit()
                if outcome.success:
                    refreshed += 1
                else:
                    logger.warning("Snapshot refresh skipped for company %s: %s", company_id, outcome.error)
            except Exception:
                logger.exception("Snapshot refresh failed for company %s", company_id)
                await session.rollback()

    logger.info("Snapshot refresh finished: %d of %d companies", refreshed, len(company_ids))


async def sync_all_quickbooks() -> None:
    """Sync every active QuickBooks integration with auto-sync enabled."""
    from exitosx.db.session import async_session_factory
    from exitosx.integrations.quickbooks_sync import sync_quickbooks_data
    from exitosx.models.db import Integration

    async with async_session_factory() as session:
        result = await session.execute(
            select(Integration.id).where(
                Integration.is_active.is_(True),
                Integration.auto_sync_enabled.is_(True),
            )
        )
        integration_ids = list(result.scalars().all())

        for integration_id in integration_ids:
            try:
                await sync_quickbooks_data(session, integration_id, sync_type="SCHEDULED")
                await session.commit()
            except Exception:
                logger.exception("Scheduled QuickBooks sync failed for integration %s", integration_id)
                await session.rollback()


def previous_month(now: datetime) -> tuple[datetime, datetime]:
    """First instant of last month and first instant of this month."""
    end = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    start = (end - timedelta(days=1)).replace(day=1)
    return start, end


async def generate_monthly_drift_reports() -> None:
    """Persist a drift report (and any drift signal) for the previous month."""
    from exitosx.db.session import async_session_factory
    from exitosx.drift.report import generate_drift_report
    from exitosx.models.db import ValuationSnapshot

    period_start, period_end = previous_month(datetime.now(timezone.utc))
    logger.info("Generating drift reports for %s - %s", period_start.date(), period_end.date())

    async with async_session_factory() as session:
        result = await session.execute(select(ValuationSnapshot.company_id).distinct())
        company_ids = list(result.scalars().all())

        for company_id in company_ids:
            try:
                await generate_drift_report(session, company_id, period_start, period_end)
                await session.commit()
            except Exception:
                logger.exception("Drift report failed for company %s", company_id)
                await session.rollback()


async def flag_stale_buyers() -> None:
    """Log an activity for buyers whose stage has not moved in 14 days.

    A buyer is flagged at most once per staleness window.
    """
    from exitosx.db.session import async_session_factory
    from exitosx.deals.service import STALE_BUYER_DAYS, find_stale_buyers, log_activity
    from exitosx.models.db import DealActivity

    now = datetime.now(timezone.utc)
    window_start = now - timedelta(days=STALE_BUYER_DAYS)

    async with async_session_factory() as session:
        try:
            buyers = await find_stale_buyers(session, now)
            flagged = 0
            for buyer in buyers:
                already = await session.execute(
                    select(DealActivity.id).where(
                        DealActivity.deal_buyer_id == buyer.id,
                        DealActivity.subject == STALE_BUYER_SUBJECT,
                        DealActivity.performed_at >= window_start,
                    )
                )
                if already.first():
                    continue
                log_activity(
                    session,
                    buyer.deal_id,
                    "NOTE_ADDED",
                    STALE_BUYER_SUBJECT,
                    deal_buyer_id=buyer.id,
                    metadata={"current_stage": buyer.current_stage},
                )
                flagged += 1
            await session.commit()
            logger.info("Flagged %d stale buyers", flagged)
        except Exception:
            logger.exception("Stale buyer check failed")
            await session.rollback()


async def expire_old_signals() -> None:
    from exitosx.db.session import async_session_factory
    from exitosx.signals.service import expire_signals

    async with async_session_factory() as session:
        try:
            count = await expire_signals(session)
            await session.commit()
            if count:
                logger.info("Expired %d signals", count)
        except Exception:
            logger.exception("Signal expiry failed")
            await session.rollback()
