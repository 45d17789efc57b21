"""
Background scheduler for periodic tasks.

This module manages background jobs that run on a schedule:
- Purge expired refresh tokens: Runs every hour
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker
from app.services.auth_service import purge_expired_refresh_tokens
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def purge_refresh_tokens_job(session_factory: sessionmaker) -> None:
    """
    Background job removing refresh token rows past their time-to-live.

    Expired rows are already refused at authentication time; this only
    keeps the table from growing.
    """
    db = session_factory()
    try:
        deleted = purge_expired_refresh_tokens(db)
        if deleted > 0:
            logger.info(f"Token purge completed: Deleted {deleted} expired refresh tokens")
        else:
            logger.info("Token purge completed: No expired refresh tokens found")
    except Exception as e:
        logger.error(f"Error in purge_refresh_tokens_job: {str(e)}")
        db.rollback()
    finally:
        db.close()


def start_scheduler(session_factory: sessionmaker) -> None:
    """
    Start the background scheduler.

    Called from the FastAPI lifespan on startup.
    """
    if not scheduler.running:
        scheduler.add_job(
            purge_refresh_tokens_job,
            trigger=IntervalTrigger(hours=1),
            args=[session_factory],
            id="purge_refresh_tokens",
            name="Purge expired refresh tokens",
            replace_existing=True
        )

        scheduler.start()
        logger.info("Background scheduler started. Token purge scheduled to run every hour.")


def stop_scheduler() -> None:
    """
    Stop the background scheduler.

    Called from the FastAPI lifespan on shutdown.
    """
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
