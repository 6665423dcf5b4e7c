"""
Action queue
Concurrency-bounded ingestion sink that batches Actions for persistence
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from app.models.schemas.action import Action

logger = logging.getLogger(__name__)

ActionSink = Callable[[List[Action]], Awaitable[None]]


class ActionQueue:
    """
    Bounded channel + worker pool.

    Workers append accepted Actions to a shared batch. A batch that reaches
    `batch_size` is swapped out and flushed; `drain()` is the barrier that
    waits for every pushed Action to be accepted and then flushes the rest.

    Flush failures are logged and the batch is dropped (no dead-letter
    queue yet). Actions may be persisted out of push order.
    """

    def __init__(
        self,
        sink: ActionSink,
        batch_size: int = 2000,
        concurrency: int = 5,
        max_pending: Optional[int] = None,
        label: str = "",
    ):
        self.sink = sink
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.label = label
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending or concurrency * 2)
        self._batch: List[Action] = []
        self._flush_lock = asyncio.Lock()
        self._workers: List[asyncio.Task] = []

        self.pushed = 0
        self.flushed = 0
        self.dropped = 0
        self.flush_count = 0

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    def start(self):
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index)) for index in range(self.concurrency)
        ]

    async def close(self):
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def __aenter__(self) -> "ActionQueue":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ============================================================================
    # PRODUCER SIDE
    # ============================================================================

    async def push(self, action: Action):
        """Enqueue one Action, waiting while the channel is full."""
        if not self._workers:
            self.start()
        await self._queue.put(action)
        self.pushed += 1

    async def drain(self):
        """
        Wait until every pushed Action has been accepted, then flush the
        remaining partial batch regardless of size.
        """
        await self._queue.join()
        remaining = self._take_batch()
        if remaining:
            await self._flush(remaining)

    # ============================================================================
    # WORKERS
    # ============================================================================

    async def _worker(self, index: int):
        while True:
            action = await self._queue.get()
            try:
                self._batch.append(action)
                if len(self._batch) >= self.batch_size:
                    await self._flush(self._take_batch())
            finally:
                self._queue.task_done()

    def _take_batch(self) -> List[Action]:
        # No await between reading and replacing the batch
        batch, self._batch = self._batch, []
        return batch

    async def _flush(self, actions: List[Action]):
        async with self._flush_lock:
            logger.info(f"💾 {self.label}[Queue]: Inserting {len(actions)} actions")
            try:
                await self.sink(actions)
                self.flushed += len(actions)
                self.flush_count += 1
            except Exception as e:
                # TODO: route dropped batches to a dead-letter table instead of discarding them
                self.dropped += len(actions)
                logger.error(
                    f"❌ {self.label}[Queue]: Flush of {len(actions)} actions failed, batch dropped: {e}",
                    exc_info=True
                )
