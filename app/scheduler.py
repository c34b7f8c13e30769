"""
Scheduled tasks for the booking sync service.

Three interval jobs run inside the FastAPI process:

- ``run_due_syncs`` syncs every active auto-sync integration whose
  ``sync_frequency_hours`` has elapsed since its last successful sync.
- ``run_calendar_imports`` imports the iCal feed of every villa with
  calendar sync enabled, hourly by default. One bad feed never stops the rest.
- ``flush_sync_log`` retries sync log entries that could not be written
  when their run finished.

Jobs call the application's shared BookingSyncService so they respect the
same per-(villa, platform) locks as API-triggered syncs.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from app.core.config import get_settings
from app.core.enums import IntegrationStatus, SyncTrigger
from app.core.exceptions import CalendarImportError, SyncError, VillaNotFoundError
from app.core.utils import ensure_aware, utcnow
from app.models.platform_integration import PlatformIntegration
from app.models.villa import Villa
from app.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)

# Feed events carry their own source hints; this is the fallback
ICAL_FEED_SOURCE = "ical"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def is_due(integration: PlatformIntegration, now: datetime) -> bool:
    last_sync = ensure_aware(integration.last_sync)
    if last_sync is None:
        return True
    return now - last_sync >= timedelta(hours=integration.sync_frequency_hours or 1)


async def due_integrations(session_factory, now: datetime) -> List[Tuple[int, str]]:
    async with session_factory() as session:
        stmt = select(PlatformIntegration).where(
            PlatformIntegration.status == IntegrationStatus.ACTIVE.value,
            PlatformIntegration.auto_sync.is_(True),
        )
        integrations = (await session.execute(stmt)).scalars().all()
    return [(i.villa_id, i.platform) for i in integrations if is_due(i, now)]


async def run_due_syncs(sync_service) -> int:
    """Sync every integration that is due. Returns how many runs completed."""
    due = await due_integrations(sync_service.session_factory, utcnow())
    if not due:
        logger.debug("No integrations due for sync")
        return 0

    logger.info(f"=== SCHEDULED SYNC STARTING: {len(due)} integrations due ===")
    completed = 0
    for villa_id, platform in due:
        try:
            result = await sync_service.sync_platform(villa_id, platform, trigger=SyncTrigger.SCHEDULED)
            completed += 1
            logger.info(f"Scheduled sync villa {villa_id}/{platform}: {result.status}")
        except SyncError as e:
            # Already running or disconnected since we looked
            logger.info(f"Skipping scheduled sync villa {villa_id}/{platform}: {e}")
        except Exception as e:
            logger.exception(f"Error in scheduled sync of villa {villa_id}/{platform}: {str(e)}")
    return completed


async def calendar_sync_villas(session_factory) -> List[Tuple[int, str]]:
    """Villas with calendar sync switched on and a feed to import."""
    async with session_factory() as session:
        stmt = (
            select(Villa.id, Villa.ical_url)
            .where(Villa.calendar_sync_enabled.is_(True), Villa.ical_url.is_not(None), Villa.ical_url != "")
            .order_by(Villa.id)
        )
        return [(villa_id, url) for villa_id, url in (await session.execute(stmt)).all()]


async def run_calendar_imports(sync_service) -> int:
    """Import every enabled villa's iCal feed. Returns how many imports completed."""
    villas = await calendar_sync_villas(sync_service.session_factory)
    if not villas:
        logger.debug("No villas with calendar sync enabled")
        return 0

    logger.info(f"=== CALENDAR SYNC STARTING: {len(villas)} feeds ===")
    calendar = CalendarService(sync_service, sync_service.session_factory, sync_service.settings)
    completed = 0
    for villa_id, url in villas:
        try:
            result = await calendar.import_feed(villa_id, ICAL_FEED_SOURCE, url)
            completed += 1
            logger.info(f"Calendar sync villa {villa_id}: {result.status} "
                        f"(new={result.new_bookings}, conflicts={len(result.conflicts)})")
        except (CalendarImportError, SyncError, VillaNotFoundError) as e:
            logger.warning(f"Skipping calendar sync of villa {villa_id}: {e}")
        except Exception as e:
            logger.exception(f"Error in calendar sync of villa {villa_id}: {str(e)}")
    return completed


async def flush_sync_log(sync_log) -> int:
    if not sync_log.pending_count:
        return 0
    written = await sync_log.flush()
    logger.info(f"Flushed {written} buffered sync log entries ({sync_log.pending_count} still pending)")
    return written


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(sync_service) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SCHEDULER_ENABLED:
        scheduler.add_job(
            run_due_syncs,
            IntervalTrigger(minutes=settings.SCHEDULER_INTERVAL_MINUTES),
            args=[sync_service],
            id="run_due_syncs",
            name="Run Due Platform Syncs",
            replace_existing=True,
            max_instances=1,  # Only one sweep at a time
            coalesce=True,
        )
        logger.info(f"Scheduled sync job added, every {settings.SCHEDULER_INTERVAL_MINUTES} minutes")
        scheduler.add_job(
            run_calendar_imports,
            IntervalTrigger(minutes=settings.CALENDAR_SYNC_INTERVAL_MINUTES),
            args=[sync_service],
            id="run_calendar_imports",
            name="Import Villa iCal Feeds",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Calendar sync job added, every {settings.CALENDAR_SYNC_INTERVAL_MINUTES} minutes")
    else:
        logger.info("Scheduled sync is disabled. Set SCHEDULER_ENABLED=true to enable")

    # Log buffering applies to manual syncs too, so this job always runs
    scheduler.add_job(
        flush_sync_log,
        IntervalTrigger(minutes=1),
        args=[sync_service.sync_log],
        id="flush_sync_log",
        name="Flush Sync Log Buffer",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    return scheduler


async def start_scheduler(sync_service):
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(sync_service)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        jobs = scheduler.get_jobs()
        logger.info(f"Active scheduled jobs: {len(jobs)}")
        for job in jobs:
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
