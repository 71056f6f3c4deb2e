"""
Data models for CUR ingestion and migration reporting.

- types: Core enums
- workloads: Deduplicated workload records
- ingestion: Parse progress, metadata and results
- aggregates: Grouping buckets and the report summary
- diagnostics: Injectable counters
- settings: Parser and aggregator configuration
"""

from .types import (
    WorkloadType,
    OperatingSystem,
    ComplexityBand,
    ReadinessTier,
    SkipReason,
    MigrationStrategy,
    MigrationEffort,
)
from .workloads import DateRange, WorkloadRecord
from .diagnostics import (
    SkippedRows,
    RowIssue,
    IngestionDiagnostics,
    AggregationDiagnostics,
)
from .ingestion import ParseProgressEvent, ParseMetadata, ParseResult
from .aggregates import (
    WorkloadView,
    GcpServiceMapping,
    AggregateBucket,
    ServiceBucket,
    RegionBucket,
    ComplexityReport,
    ReadinessReport,
    ServicesOverview,
    SummaryTotals,
    ReportSummary,
)
from .settings import ParserSettings, AggregatorSettings, AssessmentConfig

__all__ = [
    # Types
    "WorkloadType",
    "OperatingSystem",
    "ComplexityBand",
    "ReadinessTier",
    "SkipReason",
    "MigrationStrategy",
    "MigrationEffort",

    # Workloads
    "DateRange",
    "WorkloadRecord",

    # Diagnostics
    "SkippedRows",
    "RowIssue",
    "IngestionDiagnostics",
    "AggregationDiagnostics",

    # Ingestion
    "ParseProgressEvent",
    "ParseMetadata",
    "ParseResult",

    # Aggregates
    "WorkloadView",
    "GcpServiceMapping",
    "AggregateBucket",
    "ServiceBucket",
    "RegionBucket",
    "ComplexityReport",
    "ReadinessReport",
    "ServicesOverview",
    "SummaryTotals",
    "ReportSummary",

    # Settings
    "ParserSettings",
    "AggregatorSettings",
    "AssessmentConfig",
]
