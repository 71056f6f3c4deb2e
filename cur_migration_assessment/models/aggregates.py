"""
Aggregated report models consumed by migration reporting.
"""

from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel, FrozenCamelModel
from .types import MigrationEffort, MigrationStrategy


class WorkloadView(CamelModel):
    """Normalized, read-only slice of a workload used for grouping and samples"""

    id: str = ""
    name: str = ""
    service: str = "Unknown"
    region: str = "unknown"
    type: str = "other"
    monthly_cost: float = 0.0
    complexity_score: Optional[float] = None
    readiness_score: Optional[float] = None
    risk_factor_count: int = 0
    has_comprehensive_assessment: bool = False


class GcpServiceMapping(FrozenCamelModel):
    """Target GCP service for an AWS service"""

    gcp_service: str
    gcp_api: Optional[str] = None
    migration_strategy: MigrationStrategy = MigrationStrategy.REFACTOR
    effort: MigrationEffort = MigrationEffort.HIGH
    notes: str = ""


class AggregateBucket(CamelModel):
    """Shared shape of every grouping bucket"""

    count: int = 0
    total_cost: float = 0.0
    average_complexity: Optional[float] = None
    workloads: List[WorkloadView] = Field(default_factory=list)


class ServiceBucket(AggregateBucket):
    service: str
    gcp_mapping: Optional[GcpServiceMapping] = None


class RegionBucket(AggregateBucket):
    region: str
    top_services: List[str] = Field(default_factory=list)
    top_services_costs: Dict[str, float] = Field(default_factory=dict)


class ComplexityReport(CamelModel):
    low: AggregateBucket = Field(default_factory=AggregateBucket)
    medium: AggregateBucket = Field(default_factory=AggregateBucket)
    high: AggregateBucket = Field(default_factory=AggregateBucket)
    unassigned: AggregateBucket = Field(default_factory=AggregateBucket)


class ReadinessReport(CamelModel):
    ready: AggregateBucket = Field(default_factory=AggregateBucket)
    conditional: AggregateBucket = Field(default_factory=AggregateBucket)
    not_ready: AggregateBucket = Field(default_factory=AggregateBucket)
    unassigned: AggregateBucket = Field(default_factory=AggregateBucket)


class ServicesOverview(CamelModel):
    """Top-N services with everything else folded into ``other``"""

    top_services: List[ServiceBucket] = Field(default_factory=list)
    other: Optional[ServiceBucket] = None


class SummaryTotals(CamelModel):
    total_workloads: int = 0
    total_monthly_cost: float = 0.0
    average_complexity: Optional[float] = None
    total_services: int = 0
    total_regions: int = 0
    negative_cost_workloads: int = 0
    credit_total: float = 0.0
    has_negative_total: bool = False
    truncated_records: int = 0


class ReportSummary(CamelModel):
    """Everything downstream reporting needs in one object"""

    summary: SummaryTotals = Field(default_factory=SummaryTotals)
    complexity: ComplexityReport = Field(default_factory=ComplexityReport)
    readiness: ReadinessReport = Field(default_factory=ReadinessReport)
    services: List[ServiceBucket] = Field(default_factory=list)
    regions: List[RegionBucket] = Field(default_factory=list)
    services_overview: ServicesOverview = Field(default_factory=ServicesOverview)
