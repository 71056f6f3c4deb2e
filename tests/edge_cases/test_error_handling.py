"""
Resource limits, memory pressure and overflow edge case tests.
"""

import asyncio

import pytest

from cur_migration_assessment.exceptions import (
    FieldLimitExceededError,
    LineTooLongError,
    MemoryLimitExceededError,
    ParseTimeoutError,
    RecordLimitExceededError,
    ResourceLimitError,
)
from cur_migration_assessment.models import ParserSettings
from cur_migration_assessment.services.memory import NullMemoryMonitor
from cur_migration_assessment.services.parser import StreamingCurParser
from cur_migration_assessment.services.sinks import InMemoryRecordSink, JsonLinesRecordSink

SHORT_HEADER = ["lineItem/ProductCode", "lineItem/ResourceId", "lineItem/UnblendedCost"]


class FakeClock:
    """Monotonic clock that advances a fixed step on every reading"""

    def __init__(self, step):
        self.step = step
        self.now = 0.0

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


def make_parser(monitor=None, clock=None, **overrides):
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return StreamingCurParser(
        ParserSettings(**overrides), memory_monitor=monitor or NullMemoryMonitor(), **kwargs
    )


def dated_rows(make_row, days, resource_id="i-1"):
    return [
        make_row(resource_id=resource_id, start=f"2024-01-{day:02d}T00:00:00Z", end=f"2024-01-{day:02d}T23:00:00Z")
        for day in days
    ]


class TestResourceLimits:
    """Test that ceilings abort the parse with a state snapshot."""

    @pytest.mark.asyncio
    async def test_record_limit(self, make_row, make_cur):
        data = make_cur(
            [make_row(resource_id="a"), make_row(resource_id="b"), make_row(resource_id="a"), make_row(resource_id="c")]
        )

        with pytest.raises(RecordLimitExceededError) as exc_info:
            await make_parser(max_records=2).parse(data)

        state = exc_info.value.state
        assert state["records_created"] == 2
        assert state["line_number"] == 5
        assert state["total_bytes"] == len(data)
        assert set(state) == {"line_number", "records_created", "bytes_processed", "total_bytes", "elapsed_seconds"}
        assert "records_created=2" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_record_limit_counts_unique_workloads_only(self, make_row, make_cur):
        data = make_cur([make_row(resource_id="a", cost=str(i)) for i in range(10)])
        result = await make_parser(max_records=1).parse(data)
        assert result.records[0].monthly_cost == pytest.approx(45.0)

    @pytest.mark.asyncio
    async def test_record_limit_ignores_workloads_seen_before_flush(self, make_row, make_cur):
        """Test that workloads recurring after a flush are not counted twice."""
        rows = [make_row(resource_id=rid, cost="1") for rid in ("a", "b", "c", "a", "b")]
        parser = make_parser(max_records=3, overflow_threshold=2, max_lines_per_batch=1)

        result = await parser.parse(make_cur(rows), overflow_sink=InMemoryRecordSink())

        assert result.metadata.overflow_flushes == 2
        assert sorted(r.id for r in result.records) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_record_limit_with_overflow_still_enforced(self, make_row, make_cur):
        rows = [make_row(resource_id=rid, cost="1") for rid in ("a", "b", "c", "a", "d")]
        parser = make_parser(max_records=3, overflow_threshold=2, max_lines_per_batch=1)

        with pytest.raises(RecordLimitExceededError) as exc_info:
            await parser.parse(make_cur(rows), overflow_sink=InMemoryRecordSink())
        assert exc_info.value.state["records_created"] == 3
        assert exc_info.value.state["line_number"] == 5

    @pytest.mark.asyncio
    async def test_line_too_long(self, make_cur):
        data = make_cur([], header=SHORT_HEADER) + b"AmazonEC2,i-" + b"x" * 200 + b",1\n"

        with pytest.raises(LineTooLongError) as exc_info:
            await make_parser(max_line_length=100).parse(data)
        assert exc_info.value.state["line_number"] == 1

    @pytest.mark.asyncio
    async def test_unterminated_line_too_long(self, make_cur):
        data = make_cur([], header=SHORT_HEADER) + b"AmazonEC2,i-" + b"x" * 500

        with pytest.raises(LineTooLongError):
            await make_parser(max_line_length=100, chunk_size_bytes=16).parse(data)

    @pytest.mark.asyncio
    async def test_too_many_fields_in_row(self, make_row, make_cur):
        data = make_cur([make_row()]) + b",".join([b"x"] * 40) + b"\n"

        with pytest.raises(FieldLimitExceededError):
            await make_parser(max_fields_per_row=20).parse(data)

    @pytest.mark.asyncio
    async def test_too_many_fields_in_header(self, make_row, make_cur):
        with pytest.raises(FieldLimitExceededError) as exc_info:
            await make_parser(max_fields_per_row=5).parse(make_cur([make_row()]))
        assert exc_info.value.state["line_number"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self, make_row, make_cur):
        data = make_cur([make_row(resource_id=f"i-{i}") for i in range(20)])
        parser = make_parser(
            clock=FakeClock(step=5.0),
            base_timeout_seconds=10,
            timeout_seconds_per_mb=0,
            max_lines_per_batch=1,
        )

        with pytest.raises(ParseTimeoutError) as exc_info:
            await parser.parse(data)

        assert isinstance(exc_info.value, ResourceLimitError)
        assert exc_info.value.state["elapsed_seconds"] > 10
        assert exc_info.value.state["line_number"] < 21

    @pytest.mark.asyncio
    async def test_time_budget_scales_with_size(self, make_row, make_cur):
        data = make_cur([make_row(resource_id=f"i-{i}") for i in range(5)])
        parser = make_parser(clock=FakeClock(step=0.0), base_timeout_seconds=1)

        result = await parser.parse(data)
        assert len(result.records) == 5
        assert parser._time_budget(2 * 1024 * 1024) == pytest.approx(5.0)


class TestMemoryPressure:
    """Test memory sampling, compaction and the critical threshold."""

    @pytest.mark.asyncio
    async def test_critical_memory_aborts(self, make_row, make_cur, memory_monitor_at):
        data = make_cur([make_row(), make_row(resource_id="i-2")])
        parser = make_parser(monitor=memory_monitor_at(0.99), memory_check_interval_lines=1)

        with pytest.raises(MemoryLimitExceededError) as exc_info:
            await parser.parse(data)
        assert exc_info.value.state["line_number"] == 2

    @pytest.mark.asyncio
    async def test_high_water_compacts_history(self, make_row, make_cur, memory_monitor_at):
        data = make_cur(dated_rows(make_row, [1, 2, 3, 4, 5]))
        monitor = memory_monitor_at(0.85)
        parser = make_parser(monitor=monitor, memory_check_interval_lines=1, compacted_dates_per_record=2)

        result = await parser.parse(data)

        record = result.records[0]
        assert record.seen_dates == ("2024-01-04", "2024-01-05")
        assert record.date_range.start == "2024-01-01T00:00:00Z"
        assert record.monthly_cost == pytest.approx(5.0)
        assert result.diagnostics.compactions == 5
        assert result.diagnostics.peak_memory_ratio == 0.85
        assert monitor.calls == 5

    @pytest.mark.asyncio
    async def test_sampling_interval(self, make_row, make_cur, memory_monitor_at):
        data = make_cur([make_row(resource_id=f"i-{i}") for i in range(9)])
        monitor = memory_monitor_at(0.1)

        result = await make_parser(monitor=monitor, memory_check_interval_lines=3).parse(data)

        assert monitor.calls == 3
        assert result.diagnostics.memory_samples == 3
        assert result.diagnostics.compactions == 0

    @pytest.mark.asyncio
    async def test_unknown_memory_is_ignored(self, make_row, make_cur, memory_monitor_at):
        data = make_cur(dated_rows(make_row, [1, 2, 3]))
        parser = make_parser(monitor=memory_monitor_at(None), memory_check_interval_lines=1)

        result = await parser.parse(data)

        assert len(result.records[0].seen_dates) == 3
        assert result.diagnostics.memory_samples == 3
        assert result.diagnostics.peak_memory_ratio is None

    @pytest.mark.asyncio
    async def test_seen_dates_are_capped(self, make_row, make_cur):
        data = make_cur(dated_rows(make_row, [1, 2, 3, 4, 5]))

        result = await make_parser(max_dates_per_record=3).parse(data)

        record = result.records[0]
        assert record.seen_dates == ("2024-01-01", "2024-01-02", "2024-01-03")
        assert record.date_range.end == "2024-01-05T23:00:00Z"


class TestOverflowSink:
    """Test flushing records out of memory and merging them back."""

    def rows(self, make_row):
        return [
            make_row(resource_id="a", cost="1", start="2024-01-01T00:00:00Z"),
            make_row(resource_id="b", cost="2"),
            make_row(resource_id="c", cost="3"),
            make_row(resource_id="a", cost="4", start="2024-01-04T00:00:00Z", instance_type="m5.large"),
            make_row(resource_id="b", cost="5"),
        ]

    def overflow_parser(self):
        return make_parser(overflow_threshold=2, overflow_batch_size=1, max_lines_per_batch=1)

    @pytest.mark.asyncio
    async def test_in_memory_sink(self, make_row, make_cur):
        sink = InMemoryRecordSink()

        result = await self.overflow_parser().parse(make_cur(self.rows(make_row)), overflow_sink=sink)

        costs = {r.id: r.monthly_cost for r in result.records}
        assert costs == {"a": 5.0, "b": 7.0, "c": 3.0}
        assert sink.save_calls == 4
        assert result.metadata.overflow_flushes == 2
        assert result.metadata.unique_workloads == 3
        assert result.metadata.total_aggregated_cost == pytest.approx(15.0)
        assert result.diagnostics.records_flushed == 4
        assert result.diagnostics.records_reloaded == 4

    @pytest.mark.asyncio
    async def test_merge_keeps_history_and_details(self, make_row, make_cur):
        result = await self.overflow_parser().parse(
            make_cur(self.rows(make_row)), overflow_sink=InMemoryRecordSink()
        )

        record = next(r for r in result.records if r.id == "a")
        assert record.seen_dates == ("2024-01-01", "2024-01-04")
        assert record.date_range.start == "2024-01-01T00:00:00Z"
        assert record.aws_instance_type == "m5.large"
        assert record.cpu == 2.0

    @pytest.mark.asyncio
    async def test_jsonl_sink(self, make_row, make_cur, temp_dir):
        sink = JsonLinesRecordSink(temp_dir / "overflow.jsonl", buffer_size=3)

        result = await self.overflow_parser().parse(make_cur(self.rows(make_row)), overflow_sink=sink)

        assert {r.id: r.monthly_cost for r in result.records} == {"a": 5.0, "b": 7.0, "c": 3.0}
        assert len((temp_dir / "overflow.jsonl").read_text().splitlines()) == 4

    @pytest.mark.asyncio
    async def test_sink_unused_below_threshold(self, make_row, make_cur):
        sink = InMemoryRecordSink()

        result = await make_parser().parse(make_cur(self.rows(make_row)), overflow_sink=sink)

        assert sink.save_calls == 0
        assert result.metadata.overflow_flushes == 0
        assert len(result.records) == 3

    @pytest.mark.asyncio
    async def test_concurrent_parses_share_nothing(self, make_row, make_cur):
        parser = make_parser(max_lines_per_batch=1)
        first = make_cur([make_row(resource_id=f"x-{i}") for i in range(10)])
        second = make_cur([make_row(resource_id="y", cost="2")])

        a, b = await asyncio.gather(parser.parse(first), parser.parse(second))

        assert len(a.records) == 10
        assert [r.id for r in b.records] == ["y"]
        assert b.metadata.total_raw_cost == pytest.approx(2.0)
