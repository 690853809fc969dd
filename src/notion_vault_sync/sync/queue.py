"""Batched operation queue with retry and offline handling.

Operations are executed on worker threads in batches of ``batch_size``,
with ``batch_delay`` seconds between batches to stay under Notion's rate
limit.  A batch never holds two operations for the same path, so one
document's operations always run one after another in enqueue order.

Failure handling depends on the error class:

- ``NetworkError``: the failed operations go back to the front of the queue
  and the queue goes offline until :meth:`SyncQueue.connectivity_restored`.
- ``ValidationError`` and ``LocalStoreError``: terminal at once.
- anything else: retried at the back of the queue until ``max_retries``
  attempts have failed, then reported once as terminal.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum

from notion_vault_sync.remote.errors import APIError, NetworkError, ValidationError
from notion_vault_sync.remote.pages import RemoteDocument
from notion_vault_sync.vault.store import LocalStoreError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 1.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RATE_LIMIT_DELAY = 10.0


class OperationKind(StrEnum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE = "delete"


class QueueState(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    OFFLINE = "offline"


@dataclass
class SyncOperation:
    """One unit of work for the queue."""

    kind: OperationKind
    path: str
    remote_id: str | None = None
    # Already-fetched remote page for downloads, so it is not fetched twice.
    payload: RemoteDocument | None = None
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retry_count: int = 0

    def describe(self) -> str:
        return f"{self.kind.value} {self.path}"


@dataclass
class OperationFailure:
    operation: SyncOperation
    error: Exception

    def __str__(self) -> str:
        return f"{self.operation.describe()}: {self.error}"


@dataclass
class QueueReport:
    """Outcome of one :meth:`SyncQueue.process` run."""

    completed: list[SyncOperation] = field(default_factory=list)
    failures: list[OperationFailure] = field(default_factory=list)
    pending: int = 0
    offline: bool = False


_TERMINAL_ERRORS = (ValidationError, LocalStoreError)


class SyncQueue:
    """FIFO of sync operations, drained in paced concurrent batches.

    Args:
        executor: Blocking callable that performs one operation; it runs on a
            worker thread via ``asyncio.to_thread``.
        batch_size: Maximum operations executed concurrently.
        batch_delay: Seconds to wait between batches.
        max_retries: Attempts allowed for an operation failing with a
            retryable error.
        rate_limit_delay: Seconds to wait after a batch that Notion answered
            with HTTP 429, instead of ``batch_delay``.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        executor: Callable[[SyncOperation], object],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._executor = executor
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.max_retries = max(1, max_retries)
        self.rate_limit_delay = rate_limit_delay
        self._sleep = sleep
        self._queue: deque[SyncOperation] = deque()
        self._state = QueueState.IDLE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def pending(self) -> list[SyncOperation]:
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, operation: SyncOperation) -> None:
        """Append *operation*; nothing runs until :meth:`process`."""
        self._queue.append(operation)
        logger.debug("Queued %s", operation.describe())

    def connectivity_lost(self) -> None:
        self._state = QueueState.OFFLINE

    def mark_online(self) -> None:
        """Leave the offline state without processing anything yet."""
        if self._state == QueueState.OFFLINE:
            logger.info("Connectivity restored, %d operations pending", len(self._queue))
            self._state = QueueState.IDLE

    async def connectivity_restored(self) -> QueueReport:
        """Leave the offline state and continue with the pending operations."""
        self.mark_online()
        return await self.process()

    async def process(self) -> QueueReport:
        """Drain the queue until it is empty or the queue goes offline."""
        report = QueueReport()
        if self._state == QueueState.OFFLINE:
            logger.info("Queue is offline; %d operations pending", len(self._queue))
            report.pending = len(self._queue)
            report.offline = True
            return report

        self._state = QueueState.SYNCING
        first_batch = True
        throttled = False
        while self._queue:
            delay = max(self.batch_delay, self.rate_limit_delay) if throttled else self.batch_delay
            if not first_batch and delay > 0:
                if throttled:
                    logger.warning("Rate limited by Notion; pausing %.1fs", delay)
                await self._sleep(delay)
            first_batch = False

            batch = self._take_batch()
            results = await asyncio.gather(
                *(asyncio.to_thread(self._executor, op) for op in batch),
                return_exceptions=True,
            )
            throttled = any(isinstance(r, APIError) and r.rate_limited for r in results)
            if self._handle_results(batch, results, report):
                break

        if self._state != QueueState.OFFLINE:
            self._state = QueueState.IDLE
        report.pending = len(self._queue)
        report.offline = self._state == QueueState.OFFLINE
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _take_batch(self) -> list[SyncOperation]:
        """Pop up to ``batch_size`` operations with distinct paths.

        Operations skipped because their path is already in the batch stay
        at the front, in their original order.
        """
        batch: list[SyncOperation] = []
        deferred: list[SyncOperation] = []
        paths: set[str] = set()
        while self._queue and len(batch) < self.batch_size:
            op = self._queue.popleft()
            if op.path in paths:
                deferred.append(op)
                continue
            paths.add(op.path)
            batch.append(op)
        self._queue.extendleft(reversed(deferred))
        return batch

    def _handle_results(
        self,
        batch: list[SyncOperation],
        results: list[object],
        report: QueueReport,
    ) -> bool:
        """Apply the failure policy to a finished batch.

        Returns:
            ``True`` if the queue went offline.
        """
        network_failed: list[SyncOperation] = []
        for op, result in zip(batch, results):
            if not isinstance(result, BaseException):
                report.completed.append(op)
                continue
            if not isinstance(result, Exception):
                raise result
            if isinstance(result, NetworkError):
                logger.warning("Network failure on %s: %s", op.describe(), result)
                network_failed.append(op)
            elif isinstance(result, _TERMINAL_ERRORS):
                logger.error("Failed %s: %s", op.describe(), result)
                report.failures.append(OperationFailure(op, result))
            else:
                op.retry_count += 1
                if op.retry_count < self.max_retries:
                    logger.warning(
                        "Retrying %s (attempt %d of %d): %s",
                        op.describe(),
                        op.retry_count + 1,
                        self.max_retries,
                        result,
                    )
                    self._requeue(op)
                else:
                    logger.error(
                        "Giving up on %s after %d attempts: %s",
                        op.describe(),
                        op.retry_count,
                        result,
                    )
                    report.failures.append(OperationFailure(op, result))

        if network_failed:
            self._queue.extendleft(reversed(network_failed))
            self._state = QueueState.OFFLINE
            return True
        return False

    def _requeue(self, op: SyncOperation) -> None:
        """Re-append *op* at the back, ahead of any later work on its path."""
        for index, queued in enumerate(self._queue):
            if queued.path == op.path:
                self._queue.insert(index, op)
                return
        self._queue.append(op)
