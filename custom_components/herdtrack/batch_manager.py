"""Bounded batch ingestion for HerdTrack.

Python: 3.13+

Splits a batch into fixed-size chunks, runs chunks with bounded concurrency
and accounts for every report as accepted or rejected. One bad report never
aborts its siblings or the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_BATCH_CHUNK_SIZE,
    DEFAULT_BATCH_MAX_CONCURRENCY,
    DEFAULT_BATCH_TIMEOUT_SECONDS,
)
from .exceptions import BatchDeadlineExceededError
from .types import BatchResult, IngestResult, LocationReport, RejectedReport

_LOGGER = logging.getLogger(__name__)

type RawReport = LocationReport | Mapping[str, Any]
type IngestCallable = Callable[[RawReport], Awaitable[IngestResult]]


class _BatchRun:
    """Bookkeeping of one batch invocation."""

    def __init__(self, items: Sequence[RawReport]) -> None:
        self.items = items
        self.recorded = [False] * len(items)
        self.result = BatchResult()

    def accept(self, index: int, outcome: IngestResult) -> None:
        self.recorded[index] = True
        self.result.accepted.append(outcome)

    def reject(self, index: int, error: Exception) -> None:
        self.recorded[index] = True
        self.result.rejected.append(RejectedReport(self.items[index], error))

    def reject_unrecorded(self, error: Exception) -> int:
        count = 0
        for index, recorded in enumerate(self.recorded):
            if not recorded:
                self.reject(index, error)
                count += 1
        return count


class BatchProcessor:
    """Fans reports out to an ingest callable with bounded concurrency."""

    def __init__(
        self,
        ingest: IngestCallable,
        chunk_size: int = DEFAULT_BATCH_CHUNK_SIZE,
        max_concurrency: int = DEFAULT_BATCH_MAX_CONCURRENCY,
        timeout: float | None = DEFAULT_BATCH_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the processor.

        Args:
            ingest: Coroutine function ingesting a single report
            chunk_size: Reports per chunk
            max_concurrency: Chunks processed at the same time
            timeout: Overall batch deadline in seconds, ``None`` for none
        """
        self._ingest = ingest
        self._chunk_size = chunk_size
        self._max_concurrency = max_concurrency
        self._timeout = timeout

        self._batches_processed = 0
        self._reports_processed = 0
        self._deadline_exceeded = 0
        self._last_batch_time: datetime | None = None

        _LOGGER.debug(
            "BatchProcessor initialized with chunk_size=%d max_concurrency=%d",
            chunk_size,
            max_concurrency,
        )

    async def async_process(self, reports: Sequence[RawReport]) -> BatchResult:
        """Ingest ``reports`` and collect per-report outcomes.

        Reports not processed before the deadline are rejected with
        :class:`BatchDeadlineExceededError` and are safe to resubmit. Reports
        the ingest callable was already applying finish and count as
        accepted.

        Returns:
            Partial result; every input report appears exactly once
        """
        run = _BatchRun(list(reports))
        if not run.items:
            return run.result

        semaphore = asyncio.Semaphore(self._max_concurrency)
        tasks = [
            asyncio.create_task(self._async_process_chunk(run, indices, semaphore))
            for indices in self._chunks(len(run.items))
        ]

        try:
            _, pending = await asyncio.wait(tasks, timeout=self._timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            timed_out = run.reject_unrecorded(
                BatchDeadlineExceededError(self._timeout or 0.0)
            )
            self._deadline_exceeded += 1
            _LOGGER.warning(
                "Batch deadline of %ss exceeded, %d of %d reports not processed",
                self._timeout,
                timed_out,
                len(run.items),
            )

        self._batches_processed += 1
        self._reports_processed += len(run.items)
        self._last_batch_time = dt_util.utcnow()

        _LOGGER.debug(
            "Processed batch of %d reports: %d accepted, %d rejected",
            len(run.items),
            len(run.result.accepted),
            len(run.result.rejected),
        )
        return run.result

    def _chunks(self, total: int) -> list[range]:
        return [
            range(start, min(start + self._chunk_size, total))
            for start in range(0, total, self._chunk_size)
        ]

    async def _async_process_chunk(
        self,
        run: _BatchRun,
        indices: range,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            await asyncio.gather(
                *(self._async_process_item(run, index) for index in indices)
            )

    async def _async_process_item(self, run: _BatchRun, index: int) -> None:
        try:
            outcome = await self._ingest(run.items[index])
        except Exception as err:  # noqa: BLE001
            _LOGGER.debug("Rejected batch report %d: %s", index, err)
            run.reject(index, err)
        else:
            run.accept(index, outcome)

    def get_stats(self) -> dict[str, Any]:
        """Get batch processor statistics.

        Returns:
            Dictionary with batch statistics
        """
        return {
            "chunk_size": self._chunk_size,
            "max_concurrency": self._max_concurrency,
            "timeout": self._timeout,
            "batches_processed": self._batches_processed,
            "reports_processed": self._reports_processed,
            "deadline_exceeded": self._deadline_exceeded,
            "last_batch_time": (
                self._last_batch_time.isoformat() if self._last_batch_time else None
            ),
        }
