"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- HubSpot OAuth app credentials (refresh-token exchange per account)
- Supabase for account state (tokens + watermarks) and persisted actions
- Redis only for the Dramatiq worker (scheduled sync ticks)

SYNC TUNING:
- process_* options drive pagination and retries per object type
- queue_* options drive the action batching sink
"""
from typing import List, Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Unified application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # RUNTIME
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # DATABASE (Supabase) - accounts + actions
    # ============================================================================

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service key (backend uses this)")
    accounts_table: str = Field(default="hubspot_accounts", description="Table holding per-account tokens and watermarks")
    actions_table: str = Field(default="actions", description="Table receiving flushed actions")

    # ============================================================================
    # HUBSPOT
    # ============================================================================

    hubspot_client_id: Optional[str] = Field(default=None, description="HubSpot OAuth app client ID")
    hubspot_client_secret: Optional[str] = Field(default=None, description="HubSpot OAuth app client secret")
    hubspot_api_base: str = Field(default="https://api.hubapi.com", description="HubSpot API base URL")
    http_timeout: float = Field(default=60.0, description="HTTP timeout in seconds for CRM calls")

    # ============================================================================
    # SYNC ENGINE
    # ============================================================================

    sync_object_types: str = Field(
        default="contacts,companies,meetings",
        description="Comma-separated object types to pull per account"
    )
    process_retry_count: int = Field(default=4, ge=1, description="Attempts per CRM call before giving up")
    process_retry_delay: float = Field(default=1.5, ge=0, description="Exponential backoff base in seconds")
    process_batch_limit: int = Field(default=100, ge=1, le=100, description="Search page size (CRM max 100)")
    process_max_iteration_page_count: int = Field(
        default=100, ge=2,
        description="Pages per time window before the watermark is rewound"
    )
    association_batch_limit: int = Field(default=100, ge=1, le=100, description="Ids per association/batch-read call")
    parallel_object_scans: bool = Field(default=False, description="Scan object types of one account concurrently")

    # ============================================================================
    # ACTION QUEUE
    # ============================================================================

    queue_batch_size: int = Field(default=2000, ge=1, description="Actions per persistence flush")
    queue_concurrency: int = Field(default=5, ge=1, description="ActionQueue worker count")

    # ============================================================================
    # BACKGROUND JOBS / MONITORING
    # ============================================================================

    redis_url: Optional[str] = Field(default=None, description="Redis connection URL (Dramatiq broker)")
    sync_job_max_age_seconds: int = Field(
        default=3600, ge=1,
        description="Queued sync runs older than this are skipped by the worker"
    )
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    # ============================================================================
    # OPTIONAL SETTINGS
    # ============================================================================

    save_jsonl: bool = Field(default=False, description="Also append flushed actions to a JSONL file for debugging")
    jsonl_path: str = Field(default="./actions.jsonl", description="JSONL debug output path")

    @property
    def object_type_names(self) -> List[str]:
        return [name.strip() for name in self.sync_object_types.split(",") if name.strip()]

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        - Warn if HubSpot OAuth credentials are missing (token refresh will fail)
        - Warn if Supabase is missing (accounts cannot be loaded)
        - Warn if debug mode enabled in production
        """
        if self.environment == "production" and self.debug:
            logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION!")

        if not self.hubspot_client_id or not self.hubspot_client_secret:
            logger.warning("⚠️  HUBSPOT_CLIENT_ID / HUBSPOT_CLIENT_SECRET not set. Token refresh will fail.")

        if not self.supabase_url or not self.supabase_service_key:
            logger.warning("⚠️  SUPABASE_URL / SUPABASE_SERVICE_KEY not set. Accounts cannot be loaded.")

        logger.debug("=" * 80)
        logger.debug("HubSync Configuration Loaded")
        logger.debug("=" * 80)
        logger.debug(f"Environment: {self.environment}")
        logger.debug(f"Object types: {self.sync_object_types}")
        logger.debug(
            f"Paging: limit={self.process_batch_limit}, "
            f"max_pages={self.process_max_iteration_page_count}, retries={self.process_retry_count}"
        )
        logger.debug(f"Queue: batch_size={self.queue_batch_size}, concurrency={self.queue_concurrency}")
        logger.debug(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.debug(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.debug("=" * 80)

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
