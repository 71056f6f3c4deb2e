"""
Batch-safe aggregation of workload records into report groupings.

Every grouping walks its input in fixed-size batches and normalizes each
record exactly once into a ``WorkloadView``, so inputs may be parser
records, plain dicts (camelCase or snake_case) or other pydantic models.
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from ..exceptions import AggregationCapacityError
from ..models.aggregates import (
    AggregateBucket,
    ComplexityReport,
    ReadinessReport,
    RegionBucket,
    ReportSummary,
    ServiceBucket,
    ServicesOverview,
    SummaryTotals,
    WorkloadView,
)
from ..models.diagnostics import AggregationDiagnostics
from ..models.ingestion import ParseResult
from ..models.settings import AggregatorSettings
from ..models.types import ComplexityBand, ReadinessTier
from ..utils.batching import batched_mean, iter_batches
from ..utils.logging import get_logger
from .service_mapping import ServiceMapper, ServiceMappingPort

logger = get_logger(__name__)

# Lookup paths for the complexity score, first match wins
COMPLEXITY_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("assessment", "complexity_score"),
    ("complexity_score",),
    ("assessment", "infrastructure_assessment", "complexity_score"),
)
READINESS_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("assessment", "readiness_score"),
    ("readiness_score",),
)
RISK_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("assessment", "risk_factors"),
    ("assessment", "infrastructure_assessment", "risk_factors"),
)
COST_PATHS: Tuple[Tuple[str, ...], ...] = (("monthly_cost",), ("cost",))


def _read(container: Any, key: str) -> Any:
    if container is None:
        return None
    if isinstance(container, Mapping):
        value = container.get(key)
        if value is None:
            value = container.get(to_camel(key))
        return value
    return getattr(container, key, None)


def _lookup(item: Any, paths: Sequence[Tuple[str, ...]]) -> Any:
    for path in paths:
        value = item
        for key in path:
            value = _read(value, key)
            if value is None:
                break
        if value is not None:
            return value
    return None


def _to_score(value: Any) -> Optional[float]:
    """Numeric score or None; non-numeric scores count as missing"""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return score


def _to_cost(value: Any) -> float:
    """Accepts a number, a numeric string or a mapping with ``amount``/``value``"""
    if value is None:
        return 0.0
    if isinstance(value, Mapping):
        value = value.get("amount", value.get("value", 0))
    if isinstance(value, bool):
        raise ValueError("boolean is not a cost")
    if isinstance(value, str):
        value = value.strip() or 0
    cost = float(value)
    if cost != cost or cost in (float("inf"), float("-inf")):
        raise ValueError(f"non-finite cost: {value!r}")
    return cost


def _as_sequence(records: Any) -> Sequence[Any]:
    if isinstance(records, ParseResult):
        return records.records
    if isinstance(records, Sequence):
        return records
    return list(records)


def to_workload_view(item: Any) -> WorkloadView:
    """Normalize one input record; raises on shapes that cannot be read"""
    if isinstance(item, WorkloadView):
        return item
    if not isinstance(item, (Mapping, BaseModel)):
        raise TypeError(f"Unsupported workload record type: {type(item).__name__}")

    assessment = _read(item, "assessment")
    risk_factors = _lookup(item, RISK_PATHS)
    service = _read(item, "service")
    region = _read(item, "region")
    workload_type = _read(item, "type")

    return WorkloadView(
        id=str(_read(item, "id") or ""),
        name=str(_read(item, "name") or ""),
        service=str(service) if service else "Unknown",
        region=str(region) if region else "unknown",
        type=str(getattr(workload_type, "value", workload_type) or "other"),
        monthly_cost=_to_cost(_lookup(item, COST_PATHS)),
        complexity_score=_to_score(_lookup(item, COMPLEXITY_PATHS)),
        readiness_score=_to_score(_lookup(item, READINESS_PATHS)),
        risk_factor_count=len(risk_factors) if isinstance(risk_factors, (list, tuple)) else 0,
        has_comprehensive_assessment=bool(
            _read(assessment, "infrastructure_assessment")
            and _read(assessment, "application_assessment")
        ),
    )


class _Tally:
    """Running totals for one bucket"""

    __slots__ = ("count", "total_cost", "complexity_sum", "complexity_count", "samples", "sub_costs")

    def __init__(self):
        self.count = 0
        self.total_cost = 0.0
        self.complexity_sum = 0.0
        self.complexity_count = 0
        self.samples: List[WorkloadView] = []
        self.sub_costs: Dict[str, float] = {}

    def add(self, view: WorkloadView, sample_limit: int) -> None:
        self.count += 1
        self.total_cost += view.monthly_cost
        if view.complexity_score is not None:
            self.complexity_sum += view.complexity_score
            self.complexity_count += 1
        if len(self.samples) < sample_limit:
            self.samples.append(view)

    @property
    def average_complexity(self) -> Optional[float]:
        if self.complexity_count == 0:
            return None
        return self.complexity_sum / self.complexity_count

    def to_bucket(self) -> AggregateBucket:
        return AggregateBucket(
            count=self.count,
            total_cost=self.total_cost,
            average_complexity=self.average_complexity,
            workloads=list(self.samples),
        )


class ReportAggregator:
    """Groups workload records by complexity, service, region and readiness.

    Results depend only on the input; the injected diagnostics object is
    the only state that changes between calls.
    """

    def __init__(
        self,
        settings: Optional[AggregatorSettings] = None,
        service_mapper: Optional[ServiceMappingPort] = None,
        diagnostics: Optional[AggregationDiagnostics] = None,
    ):
        self.settings = settings or AggregatorSettings()
        self.service_mapper = service_mapper or ServiceMapper()
        self.diagnostics = diagnostics or AggregationDiagnostics()

    def normalize(self, records: Iterable[Any], operation: str = "normalize") -> List[WorkloadView]:
        """Guard, batch and normalize the input; bad records are logged and dropped"""
        items = _as_sequence(records)
        limit = self.settings.max_records
        if len(items) > limit:
            logger.warning(
                "Truncating aggregation input",
                operation=operation,
                received=len(items),
                limit=limit,
            )
            self.diagnostics.records_truncated += len(items) - limit
            items = items[:limit]

        self.diagnostics.operations += 1
        total = len(items)
        views: List[WorkloadView] = []
        index = 0
        for batch in iter_batches(items, self.settings.batch_size):
            for item in batch:
                try:
                    views.append(to_workload_view(item))
                except (RecursionError, MemoryError) as e:
                    raise AggregationCapacityError(
                        f"{operation} ran out of resources at record {index} of {total}; "
                        "aggregate the records in smaller batches"
                    ) from e
                except Exception as e:
                    self.diagnostics.record_failure(index, operation, str(e))
                    logger.warning(
                        "Skipping unreadable workload record",
                        operation=operation,
                        index=index,
                        error=str(e),
                    )
                index += 1
            self.diagnostics.records_seen += len(batch)
            if total > self.settings.progress_log_interval and index % self.settings.progress_log_interval == 0:
                logger.info("Aggregation progress", operation=operation, processed=index, total=total)
        return views

    def complexity_band(self, score: Optional[float]) -> ComplexityBand:
        s = self.settings
        if score is None or score < s.complexity_min or score > s.complexity_max:
            return ComplexityBand.UNASSIGNED
        if score <= s.low_complexity_max:
            return ComplexityBand.LOW
        if score <= s.medium_complexity_max:
            return ComplexityBand.MEDIUM
        return ComplexityBand.HIGH

    def readiness_score(self, view: WorkloadView) -> Optional[float]:
        """Explicit readiness when present, otherwise derived from complexity"""
        if view.readiness_score is not None:
            return view.readiness_score
        if view.complexity_score is None:
            return None
        s = self.settings
        score = 100.0
        score -= (view.complexity_score - 1) * s.complexity_penalty
        score -= view.risk_factor_count * s.risk_penalty
        if view.has_comprehensive_assessment:
            score += s.completeness_bonus
        return float(round(min(100.0, max(0.0, score))))

    def readiness_tier(self, view: WorkloadView) -> ReadinessTier:
        score = self.readiness_score(view)
        if score is None:
            return ReadinessTier.UNASSIGNED
        if score >= self.settings.ready_threshold:
            return ReadinessTier.READY
        if score >= self.settings.conditional_threshold:
            return ReadinessTier.CONDITIONAL
        return ReadinessTier.NOT_READY

    def by_complexity(self, records: Iterable[Any]) -> ComplexityReport:
        return self._complexity(self.normalize(records, "by_complexity"))

    def by_readiness(self, records: Iterable[Any]) -> ReadinessReport:
        return self._readiness(self.normalize(records, "by_readiness"))

    def by_service(self, records: Iterable[Any]) -> List[ServiceBucket]:
        return self._services(self.normalize(records, "by_service"))

    def by_region(self, records: Iterable[Any]) -> List[RegionBucket]:
        return self._regions(self.normalize(records, "by_region"))

    def summarize(self, records: Iterable[Any]) -> ReportSummary:
        """Full report: totals plus every grouping, from one normalization pass"""
        items = _as_sequence(records)
        truncated = max(0, len(items) - self.settings.max_records)
        views = self.normalize(items, "summarize")

        services = self._services(views)
        regions = self._regions(views)

        total_cost = 0.0
        credit_total = 0.0
        negative = 0
        for batch in iter_batches(views, self.settings.batch_size):
            for view in batch:
                total_cost += view.monthly_cost
                if view.monthly_cost < 0:
                    negative += 1
                    credit_total += view.monthly_cost

        totals = SummaryTotals(
            total_workloads=len(views),
            total_monthly_cost=total_cost,
            average_complexity=batched_mean(
                views, self.settings.batch_size, key=lambda v: v.complexity_score
            ),
            total_services=len(services),
            total_regions=len(regions),
            negative_cost_workloads=negative,
            credit_total=credit_total,
            has_negative_total=total_cost < 0,
            truncated_records=truncated,
        )
        if totals.has_negative_total:
            logger.warning("Net workload cost is negative", total_monthly_cost=total_cost)

        return ReportSummary(
            summary=totals,
            complexity=self._complexity(views),
            readiness=self._readiness(views),
            services=services,
            regions=regions,
            services_overview=self.top_services_with_other(services),
        )

    def top_services_with_other(
        self, services: List[ServiceBucket], top_n: Optional[int] = None
    ) -> ServicesOverview:
        """Keep the ``top_n`` costliest services and fold the rest into "Other"."""
        if top_n is None:
            top_n = self.settings.top_services_limit
        if top_n < 0:
            raise ValueError(f"top_n must be non-negative, got {top_n}")
        if len(services) <= top_n:
            return ServicesOverview(top_services=list(services), other=None)

        rest = services[top_n:]
        weighted = [
            (bucket.average_complexity, bucket.count)
            for bucket in rest
            if bucket.average_complexity is not None
        ]
        weight = sum(count for _, count in weighted)
        other = ServiceBucket(
            service="Other",
            count=sum(bucket.count for bucket in rest),
            total_cost=sum(bucket.total_cost for bucket in rest),
            average_complexity=(
                sum(avg * count for avg, count in weighted) / weight if weight else None
            ),
        )
        return ServicesOverview(top_services=list(services[:top_n]), other=other)

    def _complexity(self, views: List[WorkloadView]) -> ComplexityReport:
        tallies = {band: _Tally() for band in ComplexityBand}
        limit = self.settings.complexity_sample_limit
        self._each(views, lambda v: tallies[self.complexity_band(v.complexity_score)].add(v, limit))
        return ComplexityReport(**{band.value: tallies[band].to_bucket() for band in ComplexityBand})

    def _readiness(self, views: List[WorkloadView]) -> ReadinessReport:
        tallies = {tier: _Tally() for tier in ReadinessTier}
        limit = self.settings.complexity_sample_limit
        self._each(views, lambda v: tallies[self.readiness_tier(v)].add(v, limit))
        return ReadinessReport(
            ready=tallies[ReadinessTier.READY].to_bucket(),
            conditional=tallies[ReadinessTier.CONDITIONAL].to_bucket(),
            not_ready=tallies[ReadinessTier.NOT_READY].to_bucket(),
            unassigned=tallies[ReadinessTier.UNASSIGNED].to_bucket(),
        )

    def _services(self, views: List[WorkloadView]) -> List[ServiceBucket]:
        tallies: Dict[str, _Tally] = {}
        limit = self.settings.service_sample_limit

        def add(view: WorkloadView) -> None:
            tally = tallies.get(view.service)
            if tally is None:
                tally = tallies[view.service] = _Tally()
            tally.add(view, limit)

        self._each(views, add)
        buckets = [
            ServiceBucket(
                service=service,
                gcp_mapping=self.service_mapper.get_mapping(service),
                **self._bucket_fields(tally),
            )
            for service, tally in tallies.items()
        ]
        buckets.sort(key=lambda bucket: bucket.total_cost, reverse=True)
        return buckets

    def _regions(self, views: List[WorkloadView]) -> List[RegionBucket]:
        tallies: Dict[str, _Tally] = {}
        limit = self.settings.region_sample_limit

        def add(view: WorkloadView) -> None:
            tally = tallies.get(view.region)
            if tally is None:
                tally = tallies[view.region] = _Tally()
            tally.add(view, limit)
            tally.sub_costs[view.service] = tally.sub_costs.get(view.service, 0.0) + view.monthly_cost

        self._each(views, add)
        top = self.settings.region_top_services
        buckets = []
        for region, tally in tallies.items():
            ranked = sorted(tally.sub_costs.items(), key=lambda item: item[1], reverse=True)[:top]
            buckets.append(
                RegionBucket(
                    region=region,
                    top_services=[service for service, _ in ranked],
                    top_services_costs=dict(ranked),
                    **self._bucket_fields(tally),
                )
            )
        buckets.sort(key=lambda bucket: bucket.total_cost, reverse=True)
        return buckets

    def _each(self, views: List[WorkloadView], fn: Callable[[WorkloadView], None]) -> None:
        for batch in iter_batches(views, self.settings.batch_size):
            for view in batch:
                fn(view)

    @staticmethod
    def _bucket_fields(tally: _Tally) -> Dict[str, Any]:
        return {
            "count": tally.count,
            "total_cost": tally.total_cost,
            "average_complexity": tally.average_complexity,
            "workloads": list(tally.samples),
        }


def by_complexity(records: Iterable[Any]) -> ComplexityReport:
    return ReportAggregator().by_complexity(records)


def by_service(records: Iterable[Any]) -> List[ServiceBucket]:
    return ReportAggregator().by_service(records)


def by_region(records: Iterable[Any]) -> List[RegionBucket]:
    return ReportAggregator().by_region(records)


def by_readiness(records: Iterable[Any]) -> ReadinessReport:
    return ReportAggregator().by_readiness(records)


def summarize(records: Iterable[Any]) -> ReportSummary:
    return ReportAggregator().summarize(records)


def top_services_with_other(services: List[ServiceBucket], top_n: int = 15) -> ServicesOverview:
    return ReportAggregator().top_services_with_other(services, top_n)
