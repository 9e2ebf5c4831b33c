"""Tests for HerdTrack batch processing.

Python: 3.13+
"""

from __future__ import annotations

import asyncio

import pytest
from custom_components.herdtrack.batch_manager import BatchProcessor
from custom_components.herdtrack.const import (
    DEFAULT_BATCH_CHUNK_SIZE,
    DEFAULT_BATCH_MAX_CONCURRENCY,
)
from custom_components.herdtrack.exceptions import (
    BatchDeadlineExceededError,
    InvalidReportError,
)
from custom_components.herdtrack.types import IngestResult


class TestBatchProcessor:
    """Test batch processor core functionality."""

    @pytest.fixture
    def accept_all(self):
        """Ingest callable accepting every report."""

        async def _ingest(report):
            return IngestResult(report, accepted=True)

        return _ingest

    async def test_initialization(self, accept_all):
        """Test default limits."""
        processor = BatchProcessor(accept_all)
        stats = processor.get_stats()

        assert stats["chunk_size"] == DEFAULT_BATCH_CHUNK_SIZE
        assert stats["max_concurrency"] == DEFAULT_BATCH_MAX_CONCURRENCY
        assert stats["batches_processed"] == 0
        assert stats["last_batch_time"] is None

    async def test_empty_batch(self, accept_all):
        """Test an empty batch returns an empty result."""
        processor = BatchProcessor(accept_all)
        result = await processor.async_process([])

        assert result.total == 0
        assert processor.get_stats()["batches_processed"] == 0

    async def test_every_report_accounted_for(self, make_report):
        """Test failing reports are rejected without aborting the batch."""

        async def _ingest(report):
            if report.entity_id == "cow-2":
                raise InvalidReportError("bad collar", report.entity_id)
            return IngestResult(report, accepted=True)

        reports = [
            make_report(entity_id, seconds=index)
            for index in range(7)
            for entity_id in ("cow-1", "cow-2", "cow-3")
        ]
        processor = BatchProcessor(_ingest, chunk_size=4)

        result = await processor.async_process(reports)

        assert result.total == 21
        assert len(result.accepted) == 14
        assert len(result.rejected) == 7
        assert all(
            isinstance(rejected.error, InvalidReportError)
            for rejected in result.rejected
        )
        assert {rejected.report.entity_id for rejected in result.rejected} == {
            "cow-2"
        }

    async def test_chunks_preserve_submission_order(self, make_report):
        """Test items start in submission order."""
        started: list[int] = []

        async def _ingest(report):
            started.append(int(report.timestamp.timestamp()))
            await asyncio.sleep(0)
            return IngestResult(report, accepted=True)

        reports = [make_report(seconds=index) for index in range(25)]
        processor = BatchProcessor(_ingest, chunk_size=10, max_concurrency=3)

        await processor.async_process(reports)

        assert started == sorted(started)

    async def test_concurrency_is_bounded(self, make_report):
        """Test at most chunk_size x max_concurrency reports are in flight."""
        in_flight = 0
        peak = 0

        async def _ingest(report):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return IngestResult(report, accepted=True)

        reports = [make_report(seconds=index) for index in range(30)]
        processor = BatchProcessor(_ingest, chunk_size=2, max_concurrency=3)

        result = await processor.async_process(reports)

        assert len(result.accepted) == 30
        assert 1 < peak <= 6

    async def test_deadline(self, make_report):
        """Test unfinished reports are rejected when the deadline passes."""
        release = asyncio.Event()

        async def _ingest(report):
            if report.entity_id != "cow-1":
                await release.wait()
            return IngestResult(report, accepted=True)

        reports = [
            make_report("cow-1"),
            make_report("cow-2"),
            make_report("cow-3"),
            make_report("cow-2", seconds=600),
        ]
        processor = BatchProcessor(
            _ingest, chunk_size=1, max_concurrency=1, timeout=0.05
        )

        result = await processor.async_process(reports)

        assert result.total == 4
        assert [outcome.report for outcome in result.accepted] == [reports[0]]
        assert len(result.rejected) == 3
        assert all(
            isinstance(rejected.error, BatchDeadlineExceededError)
            for rejected in result.rejected
        )
        stats = processor.get_stats()
        assert stats["deadline_exceeded"] == 1
        assert stats["batches_processed"] == 1
        assert stats["reports_processed"] == 4

    async def test_no_deadline(self, make_report):
        """Test a batch without deadline waits for every report."""

        async def _ingest(report):
            await asyncio.sleep(0.01)
            return IngestResult(report, accepted=True)

        processor = BatchProcessor(_ingest, timeout=None)
        result = await processor.async_process([make_report()])

        assert len(result.accepted) == 1
        assert processor.get_stats()["last_batch_time"] is not None

    async def test_caller_cancellation(self, make_report):
        """Test cancelling the batch cancels its chunks."""
        cancelled = asyncio.Event()

        async def _ingest(report):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return IngestResult(report, accepted=True)

        processor = BatchProcessor(_ingest, timeout=None)
        task = asyncio.create_task(processor.async_process([make_report()]))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.wait_for(cancelled.wait(), timeout=1)
