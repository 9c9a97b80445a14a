"""Exit OSx CLI: maintenance commands that run in-process against the database.

Usage::

    # Recalculate the valuation snapshot of one company
    exitosx recalc --company-id <UUID>

    # Recalculate every company with a completed assessment
    exitosx recalc --all

    # Pull financials from QuickBooks
    exitosx sync-quickbooks --integration-id <UUID>

    # Classify a business description into an ICB sub-sector
    exitosx classify "We run three family restaurants in Ohio"

    # Load questions, project modules and industry multiples
    exitosx seed

    # Run the API server
    exitosx serve --reload
"""

from __future__ import annotations

import asyncio
import json
import sys

import click


@click.group()
def cli():
    """Exit OSx: exit readiness, valuation and deal room."""
    pass


# ── recalc ────────────────────────────────────────────────────────────


@cli.command()
@click.option("--company-id", default=None, help="Company UUID to recalculate.")
@click.option("--all", "all_companies", is_flag=True, default=False, help="Recalculate every assessed company.")
@click.option("--reason", default="Manual recalculation", help="Reason stored on the snapshot.")
def recalc(company_id: str | None, all_companies: bool, reason: str):
    """Recalculate valuation snapshots."""
    if not company_id and not all_companies:
        click.secho("Error: pass --company-id or --all.", fg="red", err=True)
        sys.exit(1)
    asyncio.run(_recalc(company_id, all_companies, reason))


async def _recalc(company_id: str | None, all_companies: bool, reason: str) -> None:
    from sqlalchemy import select

    from exitosx.db.session import async_session_factory
    from exitosx.models.db import Assessment
    from exitosx.valuation.snapshot import recalculate_snapshot_for_company

    async with async_session_factory() as session:
        if all_companies:
            result = await session.execute(
                select(Assessment.company_id).where(Assessment.completed_at.is_not(None)).distinct()
            )
            company_ids = list(result.scalars().all())
        else:
            company_ids = [company_id]

        failures = 0
        for cid in company_ids:
            outcome = await recalculate_snapshot_for_company(session, cid, reason)
            if outcome.success:
                await session.commit()
                click.echo(f"  {outcome.company_name}: snapshot {outcome.snapshot_id}")
            else:
                await session.rollback()
                failures += 1
                click.secho(f"  {cid}: {outcome.error}", fg="yellow", err=True)

    click.echo(f"Recalculated {len(company_ids) - failures} of {len(company_ids)} companies.")
    if failures and not all_companies:
        sys.exit(1)


# ── sync-quickbooks ───────────────────────────────────────────────────


@cli.command("sync-quickbooks")
@click.option("--integration-id", required=True, help="Integration UUID to sync.")
def sync_quickbooks(integration_id: str):
    """Pull profit & loss and balance sheets from QuickBooks."""
    asyncio.run(_sync_quickbooks(integration_id))


async def _sync_quickbooks(integration_id: str) -> None:
    from exitosx.db.session import session_scope
    from exitosx.errors import ExitOSxError
    from exitosx.integrations.quickbooks_sync import sync_quickbooks_data

    try:
        async with session_scope() as session:
            result = await sync_quickbooks_data(session, integration_id, sync_type="MANUAL")
    except ExitOSxError as exc:
        click.secho(f"Error: {exc.message}", fg="red", err=True)
        sys.exit(1)

    click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    if not result.success:
        sys.exit(1)


# ── classify ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("description")
def classify(description: str):
    """Classify a business description into the ICB taxonomy."""
    asyncio.run(_classify(description))


async def _classify(description: str) -> None:
    from exitosx.agents.business_classifier import BusinessClassifier
    from exitosx.db.session import session_scope
    from exitosx.errors import ValidationError

    try:
        async with session_scope() as session:
            result = await BusinessClassifier().classify(session, description)
    except ValidationError as exc:
        click.secho(f"Error: {exc.message}", fg="red", err=True)
        sys.exit(1)

    primary = result.primary_industry
    click.echo(f"{primary.icb_sub_sector}  ({primary.confidence:.0%}, source={result.source})")
    click.echo(f"  {result.explanation}")


# ── seed ──────────────────────────────────────────────────────────────


@cli.command()
def seed():
    """Load BRI questions, project modules and industry multiples."""
    from exitosx.seed import main as seed_main

    asyncio.run(seed_main())


# ── serve ─────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("exitosx.main:app", host=host, port=port, reload=reload)


# ── Entry point ───────────────────────────────────────────────────────


def main():
    cli()


if __name__ == "__main__":
    main()
