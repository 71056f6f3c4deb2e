"""
Structured counters collected during ingestion and aggregation.

Both collectors are injectable: pass an instance in and read the counts
back out after the run.
"""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel
from .types import SkipReason


class SkippedRows(CamelModel):
    """Rows that did not produce a record, plus zero-cost rows that did"""

    no_product_code: int = 0
    tax: int = 0
    zero_cost: int = 0
    malformed: int = 0

    @property
    def total_skipped(self) -> int:
        return self.no_product_code + self.tax + self.malformed


class RowIssue(CamelModel):
    """One rejected input item, kept for troubleshooting"""

    line_number: Optional[int] = None
    index: Optional[int] = None
    reason: str
    detail: str = ""


class IngestionDiagnostics(CamelModel):
    """Counters for a single parse"""

    rows_read: int = 0
    processed_rows: int = 0
    skipped_rows: SkippedRows = Field(default_factory=SkippedRows)
    issues: List[RowIssue] = Field(default_factory=list)
    max_issues: int = 100
    memory_samples: int = 0
    peak_memory_ratio: Optional[float] = None
    compactions: int = 0
    sink_flushes: int = 0
    records_flushed: int = 0
    records_reloaded: int = 0

    def record_skip(
        self, reason: SkipReason, line_number: Optional[int] = None, detail: str = ""
    ) -> None:
        if reason == SkipReason.NO_PRODUCT_CODE:
            self.skipped_rows.no_product_code += 1
        elif reason == SkipReason.TAX:
            self.skipped_rows.tax += 1
        else:
            self.skipped_rows.malformed += 1
            self._add_issue(
                RowIssue(line_number=line_number, reason=reason.value, detail=detail)
            )

    def record_zero_cost(self) -> None:
        self.skipped_rows.zero_cost += 1

    def record_memory_sample(self, ratio: Optional[float]) -> None:
        self.memory_samples += 1
        if ratio is None:
            return
        if self.peak_memory_ratio is None or ratio > self.peak_memory_ratio:
            self.peak_memory_ratio = ratio

    def record_flush(self, record_count: int) -> None:
        self.sink_flushes += 1
        self.records_flushed += record_count

    def _add_issue(self, issue: RowIssue) -> None:
        if len(self.issues) < self.max_issues:
            self.issues.append(issue)


class AggregationDiagnostics(CamelModel):
    """Counters accumulated across aggregator calls"""

    operations: int = 0
    records_seen: int = 0
    records_failed: int = 0
    records_truncated: int = 0
    issues: List[RowIssue] = Field(default_factory=list)
    max_issues: int = 100

    def record_failure(self, index: int, operation: str, detail: str) -> None:
        self.records_failed += 1
        if len(self.issues) < self.max_issues:
            self.issues.append(RowIssue(index=index, reason=operation, detail=detail))
