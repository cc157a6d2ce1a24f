"""Tracionar — Scheduler Jobs.

APScheduler jobs:
- one-shot date jobs that run a requested account sync detached
- daily incremental sync of every active account at the configured hour
- hourly purge of expired insight cache entries
"""

import asyncio
from datetime import datetime, timezone
from typing import Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.ai.insight_cache import insight_cache
from app.config import settings
from app.core.logging import get_logger
from app.database import session_scope
from app.models.analytics_models import SyncMode
from app.services.sync_service import run_account_sync
from app.storage.gateway import PersistenceGateway

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler(timezone=timezone.utc)

_detached: Set[asyncio.Task] = set()


def schedule_sync(account_id: int, mode: str) -> None:
    """Fire-and-forget: queue one account sync to start right away."""
    if not scheduler.running:
        # Serverless or SCHEDULER_ENABLED=false: run on the current loop instead
        task = asyncio.get_running_loop().create_task(run_account_sync(account_id, mode))
        _detached.add(task)
        task.add_done_callback(_detached.discard)
        return

    scheduler.add_job(
        run_account_sync,
        "date",
        run_date=datetime.now(timezone.utc),
        args=[account_id, mode],
        misfire_grace_time=None,
    )


async def daily_sync_job():
    """Incremental sync of every active account, one after another."""
    logger.info("Scheduled daily sync starting...")
    with session_scope() as session:
        account_ids = [a.id for a in PersistenceGateway(session).active_accounts()]

    for account_id in account_ids:
        await run_account_sync(account_id, SyncMode.INCREMENTAL.value)
    logger.info(f"Scheduled daily sync complete for {len(account_ids)} accounts")


def purge_insight_cache_job():
    insight_cache.purge_expired()


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_sync_job,
        "cron",
        hour=settings.daily_sync_hour,
        minute=0,
        id="daily_sync",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        purge_insight_cache_job,
        "interval",
        hours=1,
        id="insight_cache_purge",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Daily sync at {settings.daily_sync_hour}:00 UTC"
    )


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
