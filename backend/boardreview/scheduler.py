"""APScheduler jobs for the board review service.

Contains the daily stale-review reminder and the scheduler lifecycle helpers
``start_scheduler()`` and ``shutdown_scheduler()``.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from boardreview.deps import get_workflow
from boardreview.settings import get_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scheduler singleton
# ---------------------------------------------------------------------------
scheduler = AsyncIOScheduler()


# ---------------------------------------------------------------------------
# Scheduled job functions
# ---------------------------------------------------------------------------


async def run_stale_review_reminders():
    """Remind board members about applications waiting too long for votes.

    Looks for applications still under review or in discussion that were
    submitted ``REVIEW_STALE_DAYS`` or more days ago and notifies every
    current board member who has not voted on them yet.
    """
    logger.info("Starting stale review reminder check...")
    try:
        sent = await get_workflow().send_stale_review_reminders()
    except Exception:
        logger.exception("Stale review reminder job failed")
        return
    logger.info("Stale review reminder check complete: %d reminder(s)", sent)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def start_scheduler():
    """Start the APScheduler for background jobs."""
    if scheduler.running:
        logger.info("Scheduler already running; skipping start")
        return

    settings = get_settings()

    # Daily stale review reminder
    scheduler.add_job(
        run_stale_review_reminders,
        "cron",
        hour=settings.reminder_hour,
        minute=0,
        id="stale_review_reminders",
        name="Remind board members about overdue votes",
        max_instances=1,
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started (stale review reminders daily at %02d:00 UTC)",
        settings.reminder_hour,
    )


def shutdown_scheduler():
    """Gracefully shut down the scheduler if it is running."""
    if getattr(scheduler, "running", False):
        scheduler.shutdown()
        logger.info("Scheduler stopped")
