"""
Streaming parser for AWS Cost and Usage Report (CUR) CSV exports.

The parser decodes the input incrementally, splits it into lines, and folds
every billable line item into one workload record per
``(resource id, service, region)``. Control returns to the event loop after
every batch of lines so other tasks keep running while large files are read.
"""

import asyncio
import codecs
import gc
import inspect
import math
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)

from ..exceptions import (
    CurSchemaError,
    EmptyCurError,
    MalformedRowError,
    MemoryLimitExceededError,
    ParseTimeoutError,
    RecordLimitExceededError,
    ResourceLimitError,
)
from ..models.diagnostics import IngestionDiagnostics
from ..models.ingestion import ParseMetadata, ParseProgressEvent, ParseResult
from ..models.settings import ParserSettings
from ..models.types import OperatingSystem, SkipReason, WorkloadType
from ..models.workloads import DateRange, WorkloadRecord
from ..utils.batching import batched_sum, iter_batches
from ..utils.logging import get_logger
from .csv_tokenizer import LineBuffer, split_csv_line
from .memory import MemoryMonitor, PsutilMemoryMonitor
from .product_codes import get_service_category, normalize_product_code, parse_instance_type
from .sinks import RecordSink

logger = get_logger(__name__)

ProgressCallback = Callable[[ParseProgressEvent], Union[None, Awaitable[None]]]
CurSource = Any

# Candidate header names per logical column, in priority order
COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "product_code": ("productcode", "servicecode", "service"),
    "cost": ("unblendedcost", "cost", "blendedcost"),
    "resource_id": ("resourceid", "resource"),
    "usage_type": ("usagetype",),
    "instance_type": ("instancetype",),
    "os": ("operatingsystem", "os"),
    "region": ("region", "regioncode", "availabilityzone", "location"),
    "usage_amount": ("usageamount", "quantity"),
    "start_date": ("usagestartdate", "billingperiodstartdate"),
    "end_date": ("usageenddate", "billingperiodenddate"),
}

REQUIRED_COLUMNS = ("product_code", "cost")

# Aliases this short would match inside unrelated names ("os" in "cost")
MIN_SUBSTRING_ALIAS = 4

_DATE_LIKE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_HEADER_JUNK = re.compile(r"[^a-z0-9/]")


def _normalize_header(name: str) -> str:
    return _HEADER_JUNK.sub("", name.strip().lower())


def resolve_columns(header: List[str]) -> Dict[str, int]:
    """Map logical column names to header indices (-1 when absent).

    Exact matches on the last path segment (``lineItem/UnblendedCost`` ->
    ``unblendedcost``) win over substring matches.
    """
    normalized = [_normalize_header(name) for name in header]
    segments = [name.rsplit("/", 1)[-1] for name in normalized]

    columns: Dict[str, int] = {}
    for column, aliases in COLUMN_ALIASES.items():
        index = -1
        for alias in aliases:
            if alias in segments:
                index = segments.index(alias)
                break
        if index == -1:
            for alias in aliases:
                if len(alias) < MIN_SUBSTRING_ALIAS:
                    continue
                index = next(
                    (i for i, segment in enumerate(segments) if alias in segment), -1
                )
                if index != -1:
                    break
        columns[column] = index

    missing = [column for column in REQUIRED_COLUMNS if columns[column] == -1]
    if missing:
        raise CurSchemaError(
            f"CUR header is missing required column(s): {', '.join(missing)}. "
            f"Expected one of: "
            + "; ".join(f"{c} -> {'/'.join(COLUMN_ALIASES[c])}" for c in missing)
        )
    return columns


def parse_cost(text: str) -> float:
    """Parse a cost cell; empty means 0.0, anything non-numeric is malformed"""
    if not text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        raise MalformedRowError(f"Unparseable cost value: {text!r}")
    if not math.isfinite(value):
        raise MalformedRowError(f"Non-finite cost value: {text!r}")
    return value


class _WorkloadAccumulator:
    """Mutable per-workload state while a parse is running"""

    __slots__ = (
        "id",
        "name",
        "service",
        "type",
        "os",
        "region",
        "cpu",
        "memory",
        "storage",
        "cost",
        "instance_type",
        "product_code",
        "start",
        "end",
        "seen_dates",
    )

    def __init__(self, resource_id, service, region, product_code, instance_type, os_name):
        self.id = resource_id
        self.name = resource_id.rsplit("/", 1)[-1] or resource_id
        self.service = service
        self.type = get_service_category(service)
        self.os = OperatingSystem.WINDOWS if "windows" in os_name.lower() else OperatingSystem.LINUX
        self.region = region
        self.cpu, self.memory = parse_instance_type(instance_type)
        self.storage = 0.0
        self.cost = 0.0
        self.instance_type = instance_type
        self.product_code = product_code
        self.start = ""
        self.end = ""
        self.seen_dates: List[str] = []

    @classmethod
    def from_record(cls, record: WorkloadRecord) -> "_WorkloadAccumulator":
        acc = cls.__new__(cls)
        acc.id = record.id
        acc.name = record.name
        acc.service = record.service
        acc.type = record.type
        acc.os = record.os
        acc.region = record.region
        acc.cpu = record.cpu
        acc.memory = record.memory
        acc.storage = record.storage
        acc.cost = record.monthly_cost
        acc.instance_type = record.aws_instance_type
        acc.product_code = record.aws_product_code
        acc.start = record.date_range.start
        acc.end = record.date_range.end
        acc.seen_dates = list(record.seen_dates)
        return acc

    def add_usage(self, cost: float, start: str, end: str, storage: float, max_dates: int) -> None:
        self.cost += cost
        self.storage += storage
        self._extend_range(start, end)
        if start:
            day = start[:10]
            if len(self.seen_dates) < max_dates and day not in self.seen_dates:
                self.seen_dates.append(day)

    def merge(self, other: "_WorkloadAccumulator", max_dates: int) -> None:
        self.cost += other.cost
        self.storage += other.storage
        self._extend_range(other.start, other.end)
        for day in other.seen_dates:
            if len(self.seen_dates) >= max_dates:
                break
            if day not in self.seen_dates:
                self.seen_dates.append(day)
        if not self.instance_type and other.instance_type:
            self.instance_type = other.instance_type
            self.cpu, self.memory = other.cpu, other.memory

    def compact(self, keep: int) -> None:
        if len(self.seen_dates) > keep:
            self.seen_dates = self.seen_dates[-keep:] if keep else []

    def to_record(self) -> WorkloadRecord:
        return WorkloadRecord(
            id=self.id,
            name=self.name,
            service=self.service,
            type=self.type,
            os=self.os,
            monthly_cost=self.cost,
            region=self.region,
            cpu=self.cpu,
            memory=self.memory,
            storage=self.storage,
            aws_instance_type=self.instance_type,
            aws_product_code=self.product_code,
            date_range=DateRange(start=self.start, end=self.end),
            seen_dates=tuple(self.seen_dates),
        )

    def _extend_range(self, start: str, end: str) -> None:
        if start and (not self.start or start < self.start):
            self.start = start
        if end and (not self.end or end > self.end):
            self.end = end


@dataclass
class _ParseState:
    """Everything one parse owns; never shared between parses"""

    total_bytes: int
    started_at: float
    deadline: float
    diagnostics: IngestionDiagnostics
    columns: Optional[Dict[str, int]] = None
    line_number: int = 0
    bytes_processed: int = 0
    records_created: int = 0
    total_raw_cost: float = 0.0
    tax_cost: float = 0.0
    credit_total: float = 0.0
    negative_cost_rows: int = 0
    overflow_flushes: int = 0

    def __post_init__(self):
        self.records: Dict[Tuple[str, str, str], _WorkloadAccumulator] = {}
        # Keys already handed to the overflow sink, counted once toward max_records
        self.flushed_keys: Set[Tuple[str, str, str]] = set()

    def snapshot(self, now: float) -> Dict[str, Any]:
        return {
            "line_number": self.line_number,
            "records_created": self.records_created,
            "bytes_processed": self.bytes_processed,
            "total_bytes": self.total_bytes,
            "elapsed_seconds": round(now - self.started_at, 3),
        }


class StreamingCurParser:
    """Memory-bounded CUR parser.

    Args:
        settings: Ceilings and thresholds, see ``ParserSettings``
        memory_monitor: Memory pressure source; defaults to psutil
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        memory_monitor: Optional[MemoryMonitor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or ParserSettings()
        self.memory_monitor = memory_monitor or PsutilMemoryMonitor(
            self.settings.memory_limit_mb
        )
        self.clock = clock

    async def parse(
        self,
        source: CurSource,
        on_progress: Optional[ProgressCallback] = None,
        overflow_sink: Optional[RecordSink] = None,
        diagnostics: Optional[IngestionDiagnostics] = None,
    ) -> ParseResult:
        """Parse a CUR export into deduplicated workload records.

        Args:
            source: bytes, a file path, a binary file object (sync or async
                ``read``), or a sync/async iterable of byte chunks
            on_progress: Optional callback (plain or async) for progress events
            overflow_sink: Optional sink used when the record map grows too large.
                It should be empty; everything it returns is merged into the result.
            diagnostics: Collector for this parse; a fresh one is created when omitted

        Raises:
            CurSchemaError: required columns are missing or the input is empty
            ResourceLimitError: a ceiling was exceeded; ``error.state`` says where
        """
        settings = self.settings
        started_at = self.clock()
        total_bytes = _source_size(source)
        state = _ParseState(
            total_bytes=total_bytes,
            started_at=started_at,
            deadline=started_at + self._time_budget(total_bytes),
            diagnostics=diagnostics or IngestionDiagnostics(),
        )

        logger.info(
            "Starting CUR parse",
            total_bytes=total_bytes,
            chunk_size=settings.chunk_size_bytes,
            overflow_enabled=overflow_sink is not None,
        )

        decoder = codecs.getincrementaldecoder("utf-8-sig")(errors="replace")
        lines = LineBuffer(settings.max_line_length)

        try:
            async for chunk in _iter_chunks(source, settings.chunk_size_bytes):
                state.bytes_processed += len(chunk)
                lines.feed(decoder.decode(chunk))
                await self._drain_lines(lines, state, on_progress, overflow_sink)
                self._check_deadline(state)
                await self._report_progress(on_progress, state)
                await asyncio.sleep(0)

            lines.feed(decoder.decode(b"", final=True))
            await self._drain_lines(lines, state, on_progress, overflow_sink)
            tail = lines.drain()
            if tail.strip():
                self._process_line(tail, state)

            if state.columns is None:
                raise EmptyCurError("CUR input is empty")
            if state.diagnostics.rows_read == 0:
                raise EmptyCurError("CUR input has a header but no data rows")

            records = await self._collect_records(state, overflow_sink)
        except ResourceLimitError as e:
            e.attach_state(state.snapshot(self.clock()))
            logger.error("CUR parse aborted", error=str(e), **e.state)
            raise

        await self._report_progress(on_progress, state)
        metadata = self._build_metadata(state, records)

        logger.info(
            "CUR parse completed",
            total_rows=metadata.total_rows,
            unique_workloads=metadata.unique_workloads,
            total_raw_cost=round(metadata.total_raw_cost, 2),
            total_aggregated_cost=round(metadata.total_aggregated_cost, 2),
            skipped=metadata.skipped_rows.total_skipped,
            elapsed_seconds=metadata.elapsed_seconds,
        )
        return ParseResult(records=records, metadata=metadata, diagnostics=state.diagnostics)

    def _time_budget(self, total_bytes: int) -> float:
        size_mb = total_bytes / (1024 * 1024)
        return self.settings.base_timeout_seconds + self.settings.timeout_seconds_per_mb * size_mb

    async def _drain_lines(
        self,
        lines: LineBuffer,
        state: _ParseState,
        on_progress: Optional[ProgressCallback],
        overflow_sink: Optional[RecordSink],
    ) -> None:
        processed = 0
        while True:
            line = lines.next_line()
            if line is None:
                break
            if not line.strip():
                continue
            self._process_line(line, state)
            processed += 1
            if processed >= self.settings.max_lines_per_batch:
                await self._end_of_batch(state, on_progress, overflow_sink)
                processed = 0
        if processed:
            await self._end_of_batch(state, on_progress, overflow_sink)

    async def _end_of_batch(
        self,
        state: _ParseState,
        on_progress: Optional[ProgressCallback],
        overflow_sink: Optional[RecordSink],
    ) -> None:
        self._check_deadline(state)
        if overflow_sink is not None and len(state.records) >= self.settings.overflow_threshold:
            await self._flush_to_sink(state, overflow_sink)
        await self._report_progress(on_progress, state)
        await asyncio.sleep(0)

    def _process_line(self, line: str, state: _ParseState) -> None:
        state.line_number += 1

        if state.columns is None:
            try:
                header = split_csv_line(line, self.settings.max_fields_per_row)
            except MalformedRowError as e:
                raise CurSchemaError(f"Unreadable CUR header: {e}") from e
            state.columns = resolve_columns(header)
            logger.debug("Resolved CUR columns", columns=state.columns)
            return

        state.diagnostics.rows_read += 1
        try:
            values = split_csv_line(line, self.settings.max_fields_per_row)
            self._ingest_row(values, state)
        except MalformedRowError as e:
            state.diagnostics.record_skip(
                SkipReason.MALFORMED, line_number=state.line_number, detail=str(e)
            )
            if state.diagnostics.skipped_rows.malformed <= self.settings.max_logged_row_errors:
                logger.warning(
                    "Skipping malformed CUR row", line_number=state.line_number, error=str(e)
                )

        if state.line_number % self.settings.memory_check_interval_lines == 0:
            self._check_memory(state)

    def _ingest_row(self, values: List[str], state: _ParseState) -> None:
        columns = state.columns

        def field(name: str) -> str:
            index = columns[name]
            if 0 <= index < len(values):
                return values[index]
            return ""

        product_code = field("product_code")
        if not product_code or _DATE_LIKE.match(product_code):
            state.diagnostics.record_skip(SkipReason.NO_PRODUCT_CODE)
            return

        if product_code.upper() == "TAX":
            state.diagnostics.record_skip(SkipReason.TAX)
            try:
                state.tax_cost += parse_cost(field("cost"))
            except MalformedRowError:
                logger.debug("Unparseable tax cost", line_number=state.line_number)
            return

        cost = parse_cost(field("cost"))
        service = normalize_product_code(product_code)
        region = field("region") or self.settings.default_region
        usage_type = field("usage_type")

        resource_id = field("resource_id")
        if not resource_id:
            parts = [product_code, usage_type, region] if usage_type else [product_code, region]
            resource_id = ("_".join(parts) + "_aggregated").lower()

        key = (resource_id.lower(), service.lower(), region.lower())
        acc = state.records.get(key)
        if acc is None:
            is_new = key not in state.flushed_keys
            if is_new and state.records_created >= self.settings.max_records:
                raise RecordLimitExceededError(
                    f"More than {self.settings.max_records} unique workloads; "
                    "split the CUR export or raise max_records"
                )
            acc = _WorkloadAccumulator(
                resource_id, service, region, product_code, field("instance_type"), field("os")
            )
            state.records[key] = acc
            if is_new:
                state.records_created += 1
        elif not acc.instance_type:
            instance_type = field("instance_type")
            if instance_type:
                acc.instance_type = instance_type
                acc.cpu, acc.memory = parse_instance_type(instance_type)

        storage = 0.0
        if acc.type == WorkloadType.STORAGE and "GB" in usage_type.upper():
            try:
                storage = float(field("usage_amount") or 0)
            except ValueError:
                storage = 0.0
            if not math.isfinite(storage):
                storage = 0.0

        acc.add_usage(
            cost, field("start_date"), field("end_date"), storage,
            self.settings.max_dates_per_record,
        )

        state.total_raw_cost += cost
        if cost == 0:
            state.diagnostics.record_zero_cost()
        elif cost < 0:
            state.negative_cost_rows += 1
            state.credit_total += cost
        state.diagnostics.processed_rows += 1

    def _check_deadline(self, state: _ParseState) -> None:
        if self.clock() > state.deadline:
            budget = state.deadline - state.started_at
            raise ParseTimeoutError(f"CUR parse exceeded its time budget of {budget:.0f}s")

    def _check_memory(self, state: _ParseState) -> None:
        ratio = self.memory_monitor.usage_ratio()
        state.diagnostics.record_memory_sample(ratio)
        if ratio is None:
            return

        if ratio >= self.settings.memory_critical_ratio:
            raise MemoryLimitExceededError(
                f"Memory usage at {ratio:.0%} crossed the critical threshold of "
                f"{self.settings.memory_critical_ratio:.0%}; use an overflow sink "
                "or a smaller export"
            )

        if ratio >= self.settings.memory_high_water_ratio:
            keep = self.settings.compacted_dates_per_record
            for acc in state.records.values():
                acc.compact(keep)
            gc.collect()
            state.diagnostics.compactions += 1
            logger.warning(
                "High memory usage, compacted workload history",
                usage_ratio=round(ratio, 3),
                records_in_memory=len(state.records),
                line_number=state.line_number,
            )

    async def _flush_to_sink(self, state: _ParseState, sink: RecordSink) -> None:
        pending = list(state.records.values())
        state.flushed_keys.update(state.records)
        state.records.clear()
        logger.info("Flushing workloads to overflow sink", count=len(pending))

        await asyncio.sleep(0)
        for batch in iter_batches(pending, self.settings.overflow_batch_size):
            for acc in batch:
                await sink.save(acc.to_record())
            await asyncio.sleep(0)

        state.overflow_flushes += 1
        state.diagnostics.record_flush(len(pending))

    async def _collect_records(
        self, state: _ParseState, sink: Optional[RecordSink]
    ) -> List[WorkloadRecord]:
        if sink is None or state.overflow_flushes == 0:
            return [acc.to_record() for acc in state.records.values()]

        await asyncio.sleep(0)
        stored = await sink.find_all()
        state.diagnostics.records_reloaded += len(stored)
        max_dates = self.settings.max_dates_per_record

        merged: Dict[Tuple[str, str, str], _WorkloadAccumulator] = {}
        for batch in iter_batches(stored, self.settings.overflow_batch_size):
            for record in batch:
                key = record.dedupe_key
                if key in merged:
                    merged[key].merge(_WorkloadAccumulator.from_record(record), max_dates)
                else:
                    merged[key] = _WorkloadAccumulator.from_record(record)
            await asyncio.sleep(0)

        for key, acc in state.records.items():
            if key in merged:
                merged[key].merge(acc, max_dates)
            else:
                merged[key] = acc

        logger.info(
            "Merged overflow workloads",
            reloaded=len(stored),
            in_memory=len(state.records),
            unique=len(merged),
        )
        return [acc.to_record() for acc in merged.values()]

    def _build_metadata(self, state: _ParseState, records: List[WorkloadRecord]) -> ParseMetadata:
        diagnostics = state.diagnostics
        aggregated = batched_sum(records, key=lambda record: record.monthly_cost)
        return ParseMetadata(
            total_raw_cost=state.total_raw_cost,
            total_aggregated_cost=aggregated,
            tax_cost=state.tax_cost,
            credit_total=state.credit_total,
            negative_cost_rows=state.negative_cost_rows,
            has_negative_total=aggregated < 0,
            total_rows=diagnostics.rows_read,
            processed_rows=diagnostics.processed_rows,
            unique_workloads=len(records),
            skipped_rows=diagnostics.skipped_rows.model_copy(),
            bytes_processed=state.bytes_processed,
            elapsed_seconds=round(self.clock() - state.started_at, 3),
            overflow_flushes=state.overflow_flushes,
        )

    async def _report_progress(
        self, on_progress: Optional[ProgressCallback], state: _ParseState
    ) -> None:
        if on_progress is None:
            return
        percent = None
        if state.total_bytes > 0:
            percent = min(100, round(state.bytes_processed / state.total_bytes * 100))
        event = ParseProgressEvent(
            bytes_processed=state.bytes_processed,
            total_bytes=state.total_bytes,
            percent=percent,
            lines_processed=state.line_number,
        )
        result = on_progress(event)
        if inspect.isawaitable(result):
            await result


def _source_size(source: CurSource) -> int:
    """Best-effort total size in bytes; 0 when it cannot be known"""
    if isinstance(source, (bytes, bytearray)):
        return len(source)
    if isinstance(source, memoryview):
        return source.nbytes
    if isinstance(source, (str, os.PathLike)):
        return os.path.getsize(source)
    seek = getattr(source, "seek", None)
    tell = getattr(source, "tell", None)
    if callable(seek) and callable(tell) and not inspect.iscoroutinefunction(seek):
        try:
            position = tell()
            end = seek(0, os.SEEK_END)
            seek(position)
            return max(0, end - position)
        except (OSError, ValueError):
            return 0
    return 0


async def _iter_chunks(source: CurSource, chunk_size: int) -> AsyncIterator[bytes]:
    """Normalize every supported source into an async stream of byte chunks"""
    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source).cast("B")
        for offset in range(0, len(view), chunk_size):
            yield bytes(view[offset:offset + chunk_size])
        return

    if isinstance(source, (str, os.PathLike)):
        with open(Path(source), "rb") as f:
            while True:
                chunk = await asyncio.to_thread(f.read, chunk_size)
                if not chunk:
                    return
                yield chunk

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            if isinstance(chunk, str):
                raise TypeError("CUR sources must be opened in binary mode")
            yield chunk

    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
        return

    if hasattr(source, "__iter__"):
        for chunk in source:
            yield chunk
        return

    raise TypeError(f"Unsupported CUR source type: {type(source).__name__}")
