"""
Logging and Sentry setup
Shared by the one-shot entry point (main.py) and the Dramatiq worker
"""
import logging
from typing import Optional

from app.core.config import Settings, settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers that would drown the per-page sync logs
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def configure_logging(config: Settings = settings):
    level = logging.DEBUG if config.debug or config.environment == "development" else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def init_sentry(component: str, config: Settings = settings, dsn: Optional[str] = None) -> bool:
    """
    Initialize Sentry error tracking if a DSN is configured.

    ERROR log records become Sentry events, so every failed object type scan
    and dropped action batch is reported without explicit capture calls.

    Args:
        component: Tag value ("main" / "worker") to tell processes apart
        config: Settings to read sentry_dsn / environment from
        dsn: Overrides config.sentry_dsn

    Returns:
        True if Sentry was initialized
    """
    logger = logging.getLogger(__name__)
    dsn = dsn or config.sentry_dsn

    if not dsn:
        logger.info(f"ℹ️  Sentry not configured for {component} (SENTRY_DSN not set)")
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=dsn,
            environment=config.environment,
            traces_sample_rate=0.1,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        sentry_sdk.set_tag("component", component)
        logger.info(f"✅ Sentry initialized in {component}")
        return True
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry in {component}: {e}")
        return False
