import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .db import SessionLocal
from .locks import KeyedLocks
from .storage import build_storage
from ..application.use_cases.notifications import NotificationCenter
from ..config import settings

logger = structlog.get_logger()

scheduler = AsyncIOScheduler()


def notification_scan_job(locks: KeyedLocks):
    """Rescan every active user's courses and store new notifications."""
    db = SessionLocal()
    try:
        center = NotificationCenter(build_storage(db), locks)
        total = center.generate_for_all()
        logger.info("notification_scan_finished", emitted=total)
    except Exception as e:
        logger.error("notification_scan_failed", error=str(e))
    finally:
        db.close()


def start_scheduler(locks: KeyedLocks):
    scheduler.add_job(
        notification_scan_job,
        trigger=IntervalTrigger(seconds=settings.NOTIFICATION_SCAN_SECONDS),
        args=[locks],
        id="notification_scan",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info("scheduler_started", interval_seconds=settings.NOTIFICATION_SCAN_SECONDS)


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
