"""
APScheduler Configuration

Background scheduler for recurring work. The only job is the scheduled
report sweep: every SCHEDULED_REPORT_SWEEP_SECONDS it selects active reports
whose next_send_at has passed and dispatches each one independently.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from app.core.config import settings

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'scheduled_report_sweep'

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # A sweep never overlaps the previous one
    'misfire_grace_time': 60,
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='UTC'
)


async def run_scheduled_report_sweep():
    """
    Called by APScheduler. Per-report failures are recorded on the report
    by the service; anything escaping here is logged so the job stays scheduled.
    """
    from app.services.scheduled_report_service import scheduled_report_service

    try:
        summary = await scheduled_report_service.run_due_reports()
        if summary.processed:
            logger.info(
                f"Job '{SWEEP_JOB_ID}' completed: "
                f"{summary.succeeded}/{summary.processed} reports sent"
            )
    except Exception as e:
        logger.error(f"Job '{SWEEP_JOB_ID}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        scheduler.add_job(
            run_scheduled_report_sweep,
            'interval',
            seconds=settings.SCHEDULED_REPORT_SWEEP_SECONDS,
            id=SWEEP_JOB_ID,
            name='Scheduled Report Sweep',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        # Log all scheduled jobs
        jobs = scheduler.get_jobs()
        for job in jobs:
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")

