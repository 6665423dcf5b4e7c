"""
HubSpot sync engine
Coordinates token refresh, object type scans and action queue drain per account

Follows the same per-source isolation as the other sync engines:
1. Refresh the account's access token
2. Scan every configured object type (failures isolated per type)
3. Drain the action queue into the store
4. Persist the account's tokens and watermarks

One run is a one-shot batch job: accounts are processed one after another
and the run ends when the last account is done.
"""
import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from supabase import Client

from app.core.config import Settings, settings
from app.models.schemas.account import Account
from app.services.sync.action_queue import ActionQueue, ActionSink
from app.services.sync.database import load_accounts, save_account
from app.services.sync.hubspot_client import ClientRegistry
from app.services.sync.object_types import ObjectTypeSpec, parse_object_types
from app.services.sync.orchestration.scanner import LOG_PREFIX, PaginatedScanner
from app.services.sync.persistence import SupabaseActionSink
from app.services.sync.tokens import TokenManager, utc_now

logger = logging.getLogger(__name__)

AccountSaver = Callable[[Account], Awaitable[None]]


class SyncOrchestrator:
    """
    Runs the incremental pull for a list of accounts.

    Errors are caught at two boundaries: the object type (sibling types keep
    going) and the account (later accounts keep going). Nothing is retried
    at this level; the next scheduled run resumes from the watermarks.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        sink: ActionSink,
        object_types: List[ObjectTypeSpec],
        save_account: Optional[AccountSaver] = None,
        retry_count: int = 4,
        retry_delay: float = 1.5,
        batch_limit: int = 100,
        max_iteration_page_count: int = 100,
        association_batch_limit: int = 100,
        queue_batch_size: int = 2000,
        queue_concurrency: int = 5,
        parallel_object_scans: bool = False,
        clock=utc_now,
        sleep=asyncio.sleep,
    ):
        self.registry = registry
        self.sink = sink
        self.object_types = object_types
        self.save_account = save_account
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.batch_limit = batch_limit
        self.max_iteration_page_count = max_iteration_page_count
        self.association_batch_limit = association_batch_limit
        self.queue_batch_size = queue_batch_size
        self.queue_concurrency = queue_concurrency
        self.parallel_object_scans = parallel_object_scans
        self.clock = clock
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        registry: ClientRegistry,
        sink: ActionSink,
        save_account: Optional[AccountSaver] = None,
        config: Settings = settings,
    ) -> "SyncOrchestrator":
        """
        Build an orchestrator from Settings.

        Raises:
            UnknownObjectTypeError: If sync_object_types names an unsupported type
        """
        return cls(
            registry,
            sink,
            parse_object_types(config.object_type_names),
            save_account=save_account,
            retry_count=config.process_retry_count,
            retry_delay=config.process_retry_delay,
            batch_limit=config.process_batch_limit,
            max_iteration_page_count=config.process_max_iteration_page_count,
            association_batch_limit=config.association_batch_limit,
            queue_batch_size=config.queue_batch_size,
            queue_concurrency=config.queue_concurrency,
            parallel_object_scans=config.parallel_object_scans,
        )

    # ============================================================================
    # RUN
    # ============================================================================

    async def run(self, accounts: List[Account]) -> Dict[str, Any]:
        """
        Sync every account once.

        Returns:
            Run summary with per-account results and errors
        """
        logger.info(f"{LOG_PREFIX}[Start]: {len(accounts)} account(s)")

        results = []
        errors = []

        for account in accounts:
            try:
                results.append(await self.sync_account(account))
            except Exception as e:
                logger.error(f"{LOG_PREFIX}[Error]: Account {account.hub_id} failed: {e}", exc_info=True)
                errors.append(f"{account.hub_id}: {e}")
                results.append({"hub_id": account.hub_id, "status": "failed", "errors": [str(e)]})

        errors.extend(
            f"{result['hub_id']}: {error}"
            for result in results if result["status"] != "failed"
            for error in result["errors"]
        )

        failed = sum(1 for result in results if result["status"] == "failed")
        if not errors:
            status = "success"
        elif accounts and failed == len(accounts):
            status = "failed"
        else:
            status = "partial"

        logger.info("=" * 80)
        logger.info(f"{LOG_PREFIX}[Finish]: {len(accounts) - failed}/{len(accounts)} account(s) synced")
        logger.info(f"Actions flushed: {sum(r.get('actions_flushed', 0) for r in results)}")
        logger.info(f"Errors: {len(errors)}")
        logger.info("=" * 80)

        return {
            "status": status,
            "accounts_synced": len(accounts) - failed,
            "results": results,
            "errors": errors,
        }

    async def sync_account(self, account: Account) -> Dict[str, Any]:
        """
        Sync one account: token refresh, object type scans, queue drain.

        Returns:
            Per-account stats ("success" or "partial" with errors)
        """
        prefix = f"{LOG_PREFIX}[{account.hub_id}]"
        logger.info(f"{prefix}[Account][Start]")

        client = self.registry.for_account(account)
        token_manager = TokenManager(client, clock=self.clock)
        errors: List[str] = []
        stats: Dict[str, Any] = {}

        try:
            await token_manager.ensure_valid(account)
            logger.info(f"{prefix}: Access token ready")
        except Exception as e:
            # Scans still run: their retry hook tries the refresh again
            logger.error(f"{prefix}[Error]: refreshAccessToken - {e}")
            errors.append(f"token: {e}")

        queue = ActionQueue(
            self.sink,
            batch_size=self.queue_batch_size,
            concurrency=self.queue_concurrency,
            label=prefix,
        )

        async with queue:
            scanner = PaginatedScanner(
                client,
                token_manager,
                queue,
                batch_limit=self.batch_limit,
                max_iteration_page_count=self.max_iteration_page_count,
                retry_count=self.retry_count,
                retry_delay=self.retry_delay,
                association_batch_limit=self.association_batch_limit,
                clock=self.clock,
                sleep=self.sleep,
            )

            scans = [
                self._scan_object_type(scanner, account, spec, stats, errors)
                for spec in self.object_types
            ]
            if self.parallel_object_scans:
                await asyncio.gather(*scans)
            else:
                for scan in scans:
                    await scan

            try:
                await queue.drain()
                logger.info(f"{prefix}[Queue]: Drained")
            except Exception as e:
                logger.error(f"{prefix}[Error][Queue]: drain failed - {e}", exc_info=True)
                errors.append(f"queue: {e}")

        # Watermarks are persisted only once the queue has flushed the actions behind them
        await self._save(account, errors)
        self.registry.release(account)

        logger.info(f"{prefix}[Account][Finish]: {len(errors)} error(s)")

        return {
            "hub_id": account.hub_id,
            "status": "success" if not errors else "partial",
            "stats": stats,
            "actions_pushed": queue.pushed,
            "actions_flushed": queue.flushed,
            "actions_dropped": queue.dropped,
            "errors": errors,
        }

    async def _scan_object_type(
        self,
        scanner: PaginatedScanner,
        account: Account,
        spec: ObjectTypeSpec,
        stats: Dict[str, Any],
        errors: List[str],
    ):
        prefix = f"{LOG_PREFIX}[{account.hub_id}][{spec.label}]"
        try:
            result = await scanner.scan(account, spec)
            stats[spec.object_type.value] = result.model_dump(mode="json")
        except Exception as e:
            logger.error(f"{prefix}[Error]: scan failed - {e}", exc_info=True)
            errors.append(f"{spec.object_type.value}: {e}")

    async def _save(self, account: Account, errors: List[str]):
        if self.save_account is None:
            return
        try:
            await self.save_account(account)
        except Exception as e:
            logger.error(f"{LOG_PREFIX}[{account.hub_id}][Error]: saveAccount - {e}")
            errors.append(f"save: {e}")


# ============================================================================
# ENTRY POINT
# ============================================================================

async def run_crm_sync(
    http_client: httpx.AsyncClient,
    supabase: Client,
    config: Settings = settings,
) -> Dict[str, Any]:
    """
    Run a full incremental HubSpot pull for every stored account.

    Args:
        http_client: Async HTTP client shared by every account's CRM client
        supabase: Supabase client (accounts table + actions table)
        config: Settings to use

    Returns:
        Run summary (see SyncOrchestrator.run)
    """
    accounts = await load_accounts(supabase, config.accounts_table)

    registry = ClientRegistry(
        http_client,
        base_url=config.hubspot_api_base,
        client_id=config.hubspot_client_id,
        client_secret=config.hubspot_client_secret,
    )
    sink = SupabaseActionSink(
        supabase,
        table=config.actions_table,
        save_jsonl=config.save_jsonl,
        jsonl_path=config.jsonl_path,
    )
    orchestrator = SyncOrchestrator.from_settings(
        registry,
        sink,
        save_account=partial(save_account, supabase, table=config.accounts_table),
        config=config,
    )
    return await orchestrator.run(accounts)
