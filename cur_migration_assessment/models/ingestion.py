"""
Progress, metadata and result models for a CUR parse.
"""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel
from .diagnostics import IngestionDiagnostics, SkippedRows
from .workloads import WorkloadRecord


class ParseProgressEvent(CamelModel):
    """Advisory progress notification emitted while parsing"""

    bytes_processed: int
    total_bytes: int
    percent: Optional[int] = None  # None when the source size is unknown
    lines_processed: int


class ParseMetadata(CamelModel):
    """Totals describing one completed parse"""

    total_raw_cost: float = 0.0
    total_aggregated_cost: float = 0.0
    tax_cost: float = 0.0
    credit_total: float = 0.0
    negative_cost_rows: int = 0
    has_negative_total: bool = False
    total_rows: int = 0
    processed_rows: int = 0
    unique_workloads: int = 0
    skipped_rows: SkippedRows = Field(default_factory=SkippedRows)
    bytes_processed: int = 0
    elapsed_seconds: float = 0.0
    overflow_flushes: int = 0


class ParseResult(CamelModel):
    """Deduplicated workload records plus the metadata of the parse"""

    records: List[WorkloadRecord] = Field(default_factory=list)
    metadata: ParseMetadata = Field(default_factory=ParseMetadata)
    diagnostics: IngestionDiagnostics = Field(default_factory=IngestionDiagnostics)

    def __len__(self) -> int:
        return len(self.records)
