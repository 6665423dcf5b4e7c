"""
Dramatiq Redis Broker Configuration
Queue for scheduled HubSpot sync runs
"""
import logging
from typing import Optional

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AgeLimit, Callbacks, Pipelines, Retries, ShutdownNotifications

from app.core.config import settings

logger = logging.getLogger(__name__)


def build_broker(redis_url: Optional[str], max_age_seconds: int) -> RedisBroker:
    """
    Create the Redis broker.

    Sync runs are never retried by Dramatiq (the next tick resumes from the
    stored watermarks) and ticks older than `max_age_seconds` are skipped so
    a backed-up queue does not start several overlapping pulls.
    """
    if not redis_url:
        logger.warning("⚠️  REDIS_URL not set - scheduled sync runs will not be delivered")
        return RedisBroker()

    broker = RedisBroker(
        url=redis_url,
        middleware=[
            AgeLimit(max_age=max_age_seconds * 1000),
            Retries(max_retries=0),
            Callbacks(),
            Pipelines(),
            ShutdownNotifications(),
        ]
    )
    logger.info(f"✅ Redis broker initialized: {redis_url[:20]}...")
    return broker


broker = build_broker(settings.redis_url, settings.sync_job_max_age_seconds)
dramatiq.set_broker(broker)
