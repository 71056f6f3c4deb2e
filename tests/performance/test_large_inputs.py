"""
Performance tests for larger CUR exports and aggregation inputs.
"""

import asyncio
import time

import pytest

from cur_migration_assessment.models import AggregatorSettings, ParserSettings
from cur_migration_assessment.services.aggregation import ReportAggregator
from cur_migration_assessment.services.memory import NullMemoryMonitor
from cur_migration_assessment.services.parser import StreamingCurParser


class TestLargeInputs:
    """Test behaviour on inputs with many rows and workloads."""

    @pytest.mark.performance
    def test_aggregate_ten_thousand_records(self):
        """Test grouping a large record set in small batches."""
        services = ("EC2", "S3", "RDS")
        records = [
            {
                "id": f"w-{i}",
                "service": services[i % 3],
                "region": ("us-east-1", "eu-west-1")[i % 2],
                "monthlyCost": 1.0 + (i % 3),
                "complexityScore": 1 + (i % 10),
            }
            for i in range(10_000)
        ]
        aggregator = ReportAggregator(AggregatorSettings(batch_size=500))

        buckets = aggregator.by_service(records)

        assert [b.service for b in buckets] == ["RDS", "S3", "EC2"]
        assert sum(b.count for b in buckets) == 10_000
        assert all(len(b.workloads) <= 100 for b in buckets)

        report = aggregator.summarize(records)
        assert report.summary.total_workloads == 10_000
        assert report.summary.total_monthly_cost == pytest.approx(19_999.0)
        assert report.complexity.low.count + report.complexity.medium.count + report.complexity.high.count == 10_000

    @pytest.mark.performance
    @pytest.mark.asyncio
    async def test_parse_many_rows(self, make_row, make_cur):
        """Test a 20k row export folding into 500 workloads."""
        rows = [make_row(resource_id=f"i-{i % 500}", cost="0.5") for i in range(20_000)]
        data = make_cur(rows)
        parser = StreamingCurParser(
            ParserSettings(chunk_size_bytes=64 * 1024, max_lines_per_batch=500),
            memory_monitor=NullMemoryMonitor(),
        )

        start = time.monotonic()
        result = await parser.parse(data)
        elapsed = time.monotonic() - start

        assert result.metadata.unique_workloads == 500
        assert result.metadata.total_raw_cost == pytest.approx(10_000.0)
        assert elapsed < 30

    @pytest.mark.performance
    @pytest.mark.asyncio
    async def test_parse_yields_to_event_loop(self, make_row, make_cur):
        """Test that other tasks run while a parse is in progress."""
        data = make_cur([make_row(resource_id=f"i-{i}") for i in range(2_000)])
        parser = StreamingCurParser(
            ParserSettings(chunk_size_bytes=4096, max_lines_per_batch=100),
            memory_monitor=NullMemoryMonitor(),
        )
        ticks = 0
        done = False

        async def ticker():
            nonlocal ticks
            while not done:
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(ticker())
        try:
            await parser.parse(data)
        finally:
            done = True
            await task

        assert ticks > 10
