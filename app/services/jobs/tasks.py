"""
Dramatiq Background Tasks
Runs the scheduled HubSpot pull outside the request path
"""
import dramatiq
import asyncio
import logging
import httpx
from typing import Optional
from supabase import create_client

logger = logging.getLogger(__name__)


def get_sync_dependencies():
    """
    Create fresh instances of dependencies for background tasks.
    Dramatiq workers run in separate processes, so we can't share global clients.
    """
    from app.core.config import settings

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    )
    supabase = create_client(settings.supabase_url, settings.supabase_service_key)

    return http_client, supabase


async def _run_crm_sync_with_cleanup(http_client: httpx.AsyncClient, supabase):
    """
    Async wrapper that runs the sync and closes the HTTP client in the same event loop.
    """
    from app.services.sync.orchestration.crm_sync import run_crm_sync

    try:
        return await run_crm_sync(http_client, supabase)
    finally:
        await http_client.aclose()


def _update_job(supabase, job_id: Optional[str], values: dict):
    if not job_id:
        return
    try:
        supabase.table("sync_jobs").update(values).eq("id", job_id).execute()
    except Exception as e:
        logger.error(f"Failed to update sync job {job_id}: {e}")


@dramatiq.actor(max_retries=0)
def sync_crm_task(job_id: Optional[str] = None):
    """
    Background job for the incremental HubSpot pull.

    Not retried by Dramatiq: the next scheduled run resumes from the
    stored watermarks.

    Args:
        job_id: Optional sync job ID for status tracking
    """
    logger.info(f"🚀 Starting HubSpot sync job {job_id or '(untracked)'}")

    http_client, supabase = get_sync_dependencies()

    _update_job(supabase, job_id, {"status": "running", "started_at": "now()"})

    try:
        result = asyncio.run(_run_crm_sync_with_cleanup(http_client, supabase))
    except Exception as e:
        logger.error(f"❌ HubSpot sync job {job_id} failed: {e}")
        _update_job(supabase, job_id, {
            "status": "failed",
            "completed_at": "now()",
            "error_message": str(e)
        })
        raise

    _update_job(supabase, job_id, {
        "status": "completed" if result["status"] != "failed" else "failed",
        "completed_at": "now()",
        "result": result
    })

    logger.info(f"✅ HubSpot sync job {job_id} complete: {result['accounts_synced']} account(s), status={result['status']}")
    return result
