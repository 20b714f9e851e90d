"""Dedicated APScheduler worker process sending window-open reminders."""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from tandem.core.config import settings
from tandem.core.logging import configure_logging
from tandem.db.session import SessionLocal
from tandem.services.job_runner import run_planning_reminders, run_review_reminders


logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running reminder jobs once on startup")
            _run_review_job()
            _run_planning_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    """Fire each reminder when its window opens: review on Friday, planning on Sunday."""
    scheduler.add_job(
        _run_review_job,
        trigger="cron",
        day_of_week="fri",
        hour=settings.review_window_hour,
        minute=0,
        id="review_reminder_job",
        replace_existing=True,
    )
    scheduler.add_job(
        _run_planning_job,
        trigger="cron",
        day_of_week="sun",
        hour=settings.planning_window_hour,
        minute=0,
        id="planning_reminder_job",
        replace_existing=True,
    )
    logger.info(
        "Registered reminder jobs (review fri %02d:00, planning sun %02d:00 %s)",
        settings.review_window_hour,
        settings.planning_window_hour,
        settings.timezone,
    )


def _run_review_job() -> None:
    session = SessionLocal()
    try:
        result = run_review_reminders(session)
        logger.info(
            "Review reminder job complete: users=%s, sent=%s, already_reviewed=%s",
            result.users_processed,
            result.notifications_sent,
            result.skipped_already_done,
        )
    except Exception:  # pragma: no cover - keep the scheduler alive
        logger.exception("Review reminder job failed")
    finally:
        session.close()


def _run_planning_job() -> None:
    session = SessionLocal()
    try:
        result = run_planning_reminders(session)
        logger.info(
            "Planning reminder job complete: users=%s, sent=%s, already_planned=%s",
            result.users_processed,
            result.notifications_sent,
            result.skipped_already_done,
        )
    except Exception:  # pragma: no cover - keep the scheduler alive
        logger.exception("Planning reminder job failed")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
