"""
HubSync - Incremental HubSpot Pull
==================================

One-shot batch entry point: loads every connected HubSpot account, pulls the
contacts / companies / meetings changed since each account's watermarks,
persists the resulting actions and exits.

Architecture:
- app/core/: Configuration, retry policy, error taxonomy
- app/models/: Pydantic schemas (accounts, actions, CRM payloads)
- app/services/sync/: HubSpot client, token lifecycle, scanner, action queue
- app/services/jobs/: Dramatiq worker task for scheduled runs

Usage:
    python main.py
"""
import sys
import asyncio
import logging
import traceback

# Startup error handling
try:
    import httpx
    from supabase import create_client

    from app.core.config import settings
    from app.core.monitoring import configure_logging, init_sentry
    from app.services.sync.orchestration.crm_sync import run_crm_sync

except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

configure_logging()
logger = logging.getLogger(__name__)

init_sentry("main")


# ============================================================================
# MAIN
# ============================================================================

async def main() -> int:
    logger.info("=" * 80)
    logger.info("Starting HubSync incremental pull")
    logger.info("=" * 80)
    logger.info(f"Environment: {settings.environment}")

    try:
        supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        return 1

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    ) as http_client:
        try:
            result = await run_crm_sync(http_client, supabase)
        except Exception as e:
            logger.error(f"❌ HubSpot sync could not run: {e}", exc_info=True)
            return 1

    logger.info(f"✅ HubSpot sync finished with status '{result['status']}'")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
