"""
Paginated scanner
Drives one object type's incremental scan for one account

State machine per (account, object type):
    FETCHING -> RESOLVING -> TRANSFORMING -> ADVANCING -> (FETCHING | DONE)

The HubSpot search API refuses offsets past 10,000 results. Once a window
has been paged past (max pages - 1) * page size records, the window start is
rewound to the last record's modification time and paging restarts from
offset zero.
"""
import asyncio
import logging
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Optional, Set, Tuple

from pydantic import BaseModel

from app.core.circuit_breakers import call_with_retry
from app.models.schemas.account import Account
from app.models.schemas.crm import AssociationContext, CrmObject, SearchRequest
from app.services.sync.action_queue import ActionQueue
from app.services.sync.associations import AssociationResolver
from app.services.sync.hubspot_client import HubSpotClient
from app.services.sync.object_types import ObjectTypeSpec
from app.services.sync.tokens import TokenManager, utc_now

logger = logging.getLogger(__name__)

LOG_PREFIX = "[Sync][HubSpot]"


class ScanState(str, Enum):
    FETCHING = "fetching"
    RESOLVING = "resolving"
    TRANSFORMING = "transforming"
    ADVANCING = "advancing"
    DONE = "done"


class Cursor(BaseModel):
    """
    Pagination position inside one scan.

    after: offset token of the next page (None = first page of the window)
    last_modified_date: window start override set by a rewind
    """
    after: Optional[int] = None
    last_modified_date: Optional[datetime] = None


class ScanResult(BaseModel):
    object_type: str
    state: ScanState = ScanState.FETCHING
    pages: int = 0
    records: int = 0
    actions: int = 0
    suppressed: int = 0
    duplicates_skipped: int = 0
    rewinds: int = 0


def modified_at(crm_object: CrmObject) -> Optional[datetime]:
    return crm_object.updated_at or crm_object.created_at


class PaginatedScanner:
    """
    Incremental scan of one object type.

    The account's watermark for the object type only moves on DONE, and then
    to the scan's start time, so any failure leaves it where it was.
    """

    def __init__(
        self,
        client: HubSpotClient,
        token_manager: TokenManager,
        queue: ActionQueue,
        batch_limit: int = 100,
        max_iteration_page_count: int = 100,
        retry_count: int = 4,
        retry_delay: float = 1.5,
        association_batch_limit: int = 100,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.token_manager = token_manager
        self.queue = queue
        self.batch_limit = batch_limit
        self.max_iteration_page_count = max_iteration_page_count
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self.clock = clock
        self.sleep = sleep
        self.resolver = AssociationResolver(client, association_batch_limit)

    @property
    def rewind_threshold(self) -> int:
        """Offset at which the window is rewound (9900 with the defaults)."""
        return (self.max_iteration_page_count - 1) * self.batch_limit

    async def _with_retry(self, operation, operation_name: str, account: Account):
        return await call_with_retry(
            operation,
            operation_name=operation_name,
            attempts=self.retry_count,
            delay=self.retry_delay,
            before_retry=partial(self.token_manager.ensure_valid, account),
            sleep=self.sleep,
        )

    async def scan(self, account: Account, spec: ObjectTypeSpec) -> ScanResult:
        """
        Run the scan to completion.

        Args:
            account: Account being synced (watermark advanced on success)
            spec: Object type to pull

        Returns:
            ScanResult in state DONE

        Raises:
            FetchExhausted: If a search or association call kept failing
        """
        name = spec.object_type.value
        prefix = f"{LOG_PREFIX}[{account.hub_id}][{spec.label}]"
        started_at = self.clock()
        watermark = account.watermark(name)

        cursor = Cursor()
        result = ScanResult(object_type=name)

        # (modified_at, id) of records already emitted at the window boundary
        boundary_seen: Set[Tuple[datetime, str]] = set()
        # Records sharing the newest modification time seen in this window
        tail_time: Optional[datetime] = None
        tail: Set[Tuple[datetime, str]] = set()

        logger.info(f"{prefix}: Scan started (watermark={watermark.isoformat() if watermark else 'none'})")

        while True:
            # FETCHING
            result.state = ScanState.FETCHING
            window_start = cursor.last_modified_date or watermark
            request = SearchRequest.for_window(
                object_type=name,
                properties=spec.properties,
                modified_property=spec.modified_property,
                since=window_start,
                until=started_at,
                limit=self.batch_limit,
                after=cursor.after,
            )
            page = await self._with_retry(
                partial(self.client.search, request), f"search {name}", account
            )
            result.pages += 1
            result.records += len(page.results)

            offset = cursor.after or 0
            logger.info(
                f"{prefix}: Batch - {offset} - {offset + len(page.results)}"
                f"{'' if page.next_after is not None else ' (last)'}"
            )

            fresh = []
            for crm_object in page.results:
                key = (modified_at(crm_object), crm_object.id)
                if key[0] is not None:
                    if tail_time is None or key[0] > tail_time:
                        tail_time, tail = key[0], set()
                    if key[0] == tail_time:
                        tail.add(key)
                if key in boundary_seen:
                    result.duplicates_skipped += 1
                    continue
                fresh.append(crm_object)

            # RESOLVING
            result.state = ScanState.RESOLVING
            context = AssociationContext()
            if spec.association is not None and fresh:
                context = await self._with_retry(
                    partial(
                        self.resolver.resolve,
                        name,
                        spec.association.to_type,
                        [crm_object.id for crm_object in fresh],
                        spec.association.properties,
                    ),
                    f"resolve {name}->{spec.association.to_type} associations",
                    account,
                )

            # TRANSFORMING
            result.state = ScanState.TRANSFORMING
            for crm_object in fresh:
                action = spec.transform(crm_object, context, watermark)
                if action is None:
                    result.suppressed += 1
                    continue
                await self.queue.push(action)
                result.actions += 1

            # ADVANCING
            result.state = ScanState.ADVANCING
            if page.next_after is None:
                break

            if page.next_after >= self.rewind_threshold and page.results:
                boundary = modified_at(page.results[-1])
                if boundary is None or (window_start is not None and boundary <= window_start):
                    logger.warning(
                        f"{prefix}: Window starting {window_start} holds more than {self.rewind_threshold} "
                        f"records with one modification time, paging on without rewind"
                    )
                    cursor.after = page.next_after
                    continue

                cursor.last_modified_date = boundary
                cursor.after = None
                boundary_seen = set(tail) if tail_time == boundary else set()
                result.rewinds += 1
                logger.info(f"{prefix}: Offset limit reached, rewinding window to {boundary.isoformat()}")
                continue

            cursor.after = page.next_after

        result.state = ScanState.DONE
        account.advance_watermark(name, started_at)
        logger.info(
            f"{prefix}: Processed - {result.records} records, {result.actions} actions, "
            f"{result.suppressed} suppressed, {result.rewinds} rewinds"
        )
        return result
