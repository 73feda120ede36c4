"""
Scheduler for automated marketplace syncs

Uses APScheduler to run the three sync types for every active customer.
Customers are always processed one at a time.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
import time

from marketplace_audit.models.base import session_scope
from marketplace_audit.models.enums import SyncType
from marketplace_audit.services.data_sync_service import MarketplaceSyncService
from marketplace_audit.config import get_settings
from marketplace_audit.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler(timezone="UTC")


async def _run_for_all_customers(sync_type: str) -> dict:
    start = time.time()
    with session_scope() as db:
        try:
            results = await MarketplaceSyncService(db).sync_all_customers(sync_type)
        except Exception as e:
            log.error(f"Scheduled {sync_type} sync error: {str(e)}")
            return {"success": False, "sync_type": sync_type, "error": str(e)}

    failed = [r for r in results if r["status"] != "ok"]
    log.info(
        f"Scheduled {sync_type} sync finished: {len(results) - len(failed)} ok, "
        f"{len(failed)} errors in {time.time() - start:.1f}s"
    )
    return {"success": True, "sync_type": sync_type, "results": results}


# Sync Functions

async def sync_main():
    """Main sync for all active customers (daily)"""
    return await _run_for_all_customers(SyncType.MAIN.value)


async def sync_complete():
    """Poll pending offers exports (every few minutes)"""
    return await _run_for_all_customers(SyncType.COMPLETE.value)


async def sync_extended():
    """Competitor, ranking and catalog data (every few hours)"""
    return await _run_for_all_customers(SyncType.EXTENDED.value)


def setup_scheduler():
    """Configure all scheduled jobs"""

    # ── Main sync ────────────────────────────────────────
    # Daily at 02:00 UTC
    scheduler.add_job(
        sync_main,
        trigger=CronTrigger(hour=settings.main_sync_hour, minute=settings.main_sync_minute, timezone="UTC"),
        id='marketplace_main_sync',
        name='Marketplace Main Daily Sync',
        replace_existing=True,
        max_instances=1
    )

    # ── Complete (export polling) ────────────────────────
    scheduler.add_job(
        sync_complete,
        trigger=IntervalTrigger(minutes=settings.complete_sync_interval_minutes),
        id='marketplace_complete_sync',
        name='Marketplace Export Polling',
        replace_existing=True,
        max_instances=1
    )

    # ── Extended ─────────────────────────────────────────
    scheduler.add_job(
        sync_extended,
        trigger=IntervalTrigger(hours=settings.extended_sync_interval_hours),
        id='marketplace_extended_sync',
        name='Marketplace Extended Sync',
        replace_existing=True,
        max_instances=1
    )

    log.info("Scheduler configured with marketplace sync jobs (timezone: UTC)")


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
    log.info("Scheduler stopped")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs

    Returns:
        List of job info dicts
    """
    jobs = []

    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs
