"""
Workload record models produced by CUR ingestion.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import Field, field_validator

from .base import FrozenCamelModel
from .types import OperatingSystem, WorkloadType


class DateRange(FrozenCamelModel):
    """Inclusive usage window as ISO date strings (empty when unknown)"""

    start: str = ""
    end: str = ""


class WorkloadRecord(FrozenCamelModel):
    """One deduplicated workload built from many CUR line items.

    Unique per ``(id, service, region)``; the ``dedupe_key`` property gives
    the case-insensitive form of that identity.
    """

    id: str
    name: str
    service: str
    type: WorkloadType = WorkloadType.OTHER
    os: OperatingSystem = OperatingSystem.LINUX
    monthly_cost: float = 0.0
    region: str = "us-east-1"
    cpu: float = 0.0
    memory: float = 0.0
    storage: float = 0.0
    aws_instance_type: str = ""
    aws_product_code: str = ""
    date_range: DateRange = Field(default_factory=DateRange)
    seen_dates: Tuple[str, ...] = ()

    # Filled by upstream assessment producers, never by the parser
    complexity_score: Optional[float] = None
    assessment: Optional[Dict[str, Any]] = None

    @field_validator("monthly_cost", "cpu", "memory", "storage", mode="before")
    @classmethod
    def none_to_zero(cls, v):
        return 0.0 if v is None else v

    @property
    def dedupe_key(self) -> Tuple[str, str, str]:
        return (self.id.lower(), self.service.lower(), self.region.lower())
