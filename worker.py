"""
Dramatiq Background Worker
Processes scheduled HubSpot sync runs

Usage:
    dramatiq worker -p 1 -t 1

One process and one thread: runs of the same accounts must not overlap.

Enqueue a run (e.g. from cron or a scheduler):
    from app.services.jobs.tasks import sync_crm_task
    sync_crm_task.send()
"""
import logging

from app.core.monitoring import configure_logging, init_sentry

configure_logging()
logger = logging.getLogger(__name__)

init_sentry("worker")

# Importing the tasks registers them with the broker Dramatiq discovers here
try:
    from app.services.jobs.broker import broker
    from app.services.jobs.tasks import sync_crm_task

    logger.info(f"✅ HubSync worker initialized ({broker.__class__.__name__})")
    logger.info(f"📋 Registered tasks: {sync_crm_task.actor_name}")

except Exception as e:
    logger.error(f"❌ Failed to initialize worker: {e}", exc_info=True)
    raise
