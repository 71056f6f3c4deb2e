"""
Tunable ceilings and thresholds for the parser and the aggregator.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ParserSettings(BaseModel):
    """Streaming CUR parser configuration"""

    chunk_size_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    max_lines_per_batch: int = Field(default=1000, gt=0)
    max_line_length: int = Field(default=10_000_000, gt=0)
    max_fields_per_row: int = Field(default=10_000, gt=0)
    max_records: int = Field(default=2_000_000, gt=0)
    max_dates_per_record: int = Field(default=1000, gt=0)
    compacted_dates_per_record: int = Field(default=31, ge=0)
    base_timeout_seconds: float = Field(default=300.0, gt=0)
    timeout_seconds_per_mb: float = Field(default=2.0, ge=0)
    memory_check_interval_lines: int = Field(default=10_000, gt=0)
    memory_high_water_ratio: float = Field(default=0.80, gt=0, le=1)
    memory_critical_ratio: float = Field(default=0.95, gt=0, le=1)
    memory_limit_mb: Optional[int] = Field(default=None, gt=0)
    overflow_threshold: int = Field(default=500_000, gt=0)
    overflow_batch_size: int = Field(default=5000, gt=0)
    max_logged_row_errors: int = Field(default=10, ge=0)
    default_region: str = "us-east-1"

    @model_validator(mode="after")
    def check_memory_thresholds(self):
        if self.memory_high_water_ratio > self.memory_critical_ratio:
            raise ValueError(
                "memory_high_water_ratio must not exceed memory_critical_ratio"
            )
        return self


class AggregatorSettings(BaseModel):
    """Report aggregation configuration"""

    max_records: int = Field(default=1_000_000, gt=0)
    batch_size: int = Field(default=10_000, gt=0)
    complexity_sample_limit: int = Field(default=1000, ge=0)
    service_sample_limit: int = Field(default=100, ge=0)
    region_sample_limit: int = Field(default=100, ge=0)
    region_top_services: int = Field(default=3, ge=0)
    top_services_limit: int = Field(default=15, gt=0)
    progress_log_interval: int = Field(default=50_000, gt=0)

    # Complexity bands on the 1-10 scale; upper bounds are inclusive
    complexity_min: float = 1.0
    low_complexity_max: float = 3.0
    medium_complexity_max: float = 6.0
    complexity_max: float = 10.0

    # Derived readiness score
    ready_threshold: float = 70.0
    conditional_threshold: float = 40.0
    complexity_penalty: float = 5.0
    risk_penalty: float = 10.0
    completeness_bonus: float = 10.0

    @model_validator(mode="after")
    def check_bands(self):
        bounds = [
            self.complexity_min,
            self.low_complexity_max,
            self.medium_complexity_max,
            self.complexity_max,
        ]
        if bounds != sorted(bounds):
            raise ValueError("complexity band bounds must be ascending")
        if self.conditional_threshold > self.ready_threshold:
            raise ValueError("conditional_threshold must not exceed ready_threshold")
        return self


class AssessmentConfig(BaseModel):
    """Global configuration loaded from config/global/assessment.yaml"""

    parser: ParserSettings = Field(default_factory=ParserSettings)
    aggregator: AggregatorSettings = Field(default_factory=AggregatorSettings)
    overflow_dir: Optional[str] = None
