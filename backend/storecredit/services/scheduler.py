"""Background scheduler: runs the daily ledger audit for every store.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at the configured hour.  Each store is audited
in its own session, so one failing store does not roll back the others.

Configuration:
    LEDGER_AUDIT_ENABLED=true
    LEDGER_AUDIT_HOUR=2        (run at 02:00 UTC daily, via .env)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from sqlalchemy import select

from storecredit.config import settings
from storecredit.database import async_session
from storecredit.models.store import Store
from storecredit.services.ledger_audit import run_ledger_audit
from storecredit.utils.redis_client import close_redis

logger = logging.getLogger("storecredit.scheduler")


async def _audit_store(store_id: str) -> dict | None:
    """Run the ledger audit for a single store and commit its alerts."""
    try:
        async with async_session() as db:
            try:
                summary = await run_ledger_audit(db, store_id)
                await db.commit()
                return summary
            except Exception:
                await db.rollback()
                raise
    except Exception:
        logger.exception("Ledger audit failed for store %s", store_id)
        return None


async def run_daily_ledger_audit() -> dict[str, dict | None]:
    """Audit every active store; returns {store_id: summary or None}."""
    logger.info("Starting daily ledger audit")

    async with async_session() as db:
        result = await db.execute(
            select(Store.id).where(Store.is_active == True)  # noqa: E712
        )
        store_ids = [row[0] for row in result.all()]

    logger.info("Found %d active stores", len(store_ids))

    summaries: dict[str, dict | None] = {}
    for store_id in store_ids:
        summary = await _audit_store(store_id)
        summaries[store_id] = summary
        if summary and summary["mismatches"]:
            logger.warning(
                "Store %s: %d customers out of balance",
                store_id, summary["mismatches"],
            )

    logger.info("Daily ledger audit complete for %d stores", len(store_ids))
    return summaries


def _next_run(now: datetime, target_hour: int) -> datetime:
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return next_run


async def _scheduler_loop() -> None:
    while True:
        now = datetime.now(timezone.utc)
        next_run = _next_run(now, settings.ledger_audit_hour)
        wait_seconds = (next_run - now).total_seconds()
        logger.info(
            "Next ledger audit at %s (in %.0f seconds)",
            next_run.isoformat(),
            wait_seconds,
        )

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_ledger_audit()
        except Exception:
            logger.exception("Unhandled error in daily ledger audit")

        # Avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the scheduler on startup, cancel on shutdown."""
    task = None
    if settings.ledger_audit_enabled:
        task = asyncio.create_task(_scheduler_loop())
        logger.info("Ledger audit scheduler started")
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Ledger audit scheduler stopped")
        await close_redis()
