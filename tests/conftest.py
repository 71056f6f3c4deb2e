"""
Pytest configuration and shared fixtures for the CUR Migration Assessment.
"""

import pytest
import tempfile
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

from cur_migration_assessment.models import ParserSettings, AggregatorSettings
from cur_migration_assessment.services.memory import NullMemoryMonitor
from cur_migration_assessment.services.parser import StreamingCurParser
from cur_migration_assessment.services.aggregation import ReportAggregator


CUR_HEADER = [
    "identity/LineItemId",
    "lineItem/UsageStartDate",
    "lineItem/UsageEndDate",
    "lineItem/ProductCode",
    "lineItem/ResourceId",
    "lineItem/UsageType",
    "lineItem/UsageAmount",
    "lineItem/UnblendedCost",
    "product/instanceType",
    "product/operatingSystem",
    "product/region",
]


def cur_row(
    product_code: str = "AmazonEC2",
    resource_id: str = "i-1",
    cost: Any = "1.00",
    region: str = "us-east-1",
    usage_type: str = "BoxUsage:t3.micro",
    start: str = "2024-01-01T00:00:00Z",
    end: str = "2024-01-02T00:00:00Z",
    instance_type: str = "",
    os: str = "Linux",
    usage_amount: Any = "1",
    line_item_id: str = "li-1",
) -> Dict[str, str]:
    """Build one CUR line item keyed by header name."""
    return {
        "identity/LineItemId": line_item_id,
        "lineItem/UsageStartDate": start,
        "lineItem/UsageEndDate": end,
        "lineItem/ProductCode": product_code,
        "lineItem/ResourceId": resource_id,
        "lineItem/UsageType": usage_type,
        "lineItem/UsageAmount": str(usage_amount),
        "lineItem/UnblendedCost": str(cost),
        "product/instanceType": instance_type,
        "product/operatingSystem": os,
        "product/region": region,
    }


def build_cur(rows: List[Dict[str, str]], header: Optional[List[str]] = None, newline: str = "\n") -> bytes:
    """Render rows as CUR CSV bytes; fields containing commas or quotes are quoted."""
    header = header or CUR_HEADER

    def render(value: str) -> str:
        if "," in value or '"' in value:
            return '"' + value.replace('"', '""') + '"'
        return value

    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join(render(row.get(name, "")) for name in header))
    return (newline.join(lines) + newline).encode("utf-8")


class FixedMemoryMonitor:
    """Memory monitor that always reports the same ratio."""

    def __init__(self, ratio: Optional[float]):
        self.ratio = ratio
        self.calls = 0

    def usage_ratio(self) -> Optional[float]:
        self.calls += 1
        return self.ratio


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_dir(temp_dir):
    """Create a configuration directory with small, test-friendly limits."""
    config_dir = temp_dir / "config"
    (config_dir / "global").mkdir(parents=True, exist_ok=True)

    assessment_config = {
        "parser": {
            "chunk_size_bytes": 4096,
            "max_lines_per_batch": 50,
            "max_records": 5000,
            "memory_limit_mb": 4096,
            "default_region": "us-east-1",
        },
        "aggregator": {
            "batch_size": 100,
            "top_services_limit": 3,
        },
    }
    with open(config_dir / "global" / "assessment.yaml", "w") as f:
        yaml.dump(assessment_config, f)

    return config_dir


@pytest.fixture
def parser_settings():
    """Small chunks and batches so boundaries are exercised."""
    return ParserSettings(chunk_size_bytes=64, max_lines_per_batch=3)


@pytest.fixture
def cur_parser(parser_settings):
    """Parser with memory sampling disabled."""
    return StreamingCurParser(parser_settings, memory_monitor=NullMemoryMonitor())


@pytest.fixture
def aggregator():
    return ReportAggregator(AggregatorSettings(batch_size=2))


@pytest.fixture
def assessed_workloads() -> List[Dict[str, Any]]:
    """Workloads as produced by an upstream assessment step (camelCase dicts)."""
    return [
        {
            "id": "i-web-1",
            "name": "web-1",
            "service": "EC2",
            "region": "us-east-1",
            "monthlyCost": 120.0,
            "assessment": {"complexityScore": 2, "riskFactors": []},
        },
        {
            "id": "i-web-2",
            "name": "web-2",
            "service": "EC2",
            "region": "us-west-2",
            "monthlyCost": "80.5",
            "complexityScore": 5,
        },
        {
            "id": "db-orders",
            "name": "orders",
            "service": "RDS",
            "region": "us-east-1",
            "monthlyCost": {"amount": 300.0},
            "assessment": {
                "infrastructureAssessment": {"complexityScore": 8, "riskFactors": ["licensing"]},
            },
        },
        {
            "id": "bucket-logs",
            "name": "logs",
            "service": "S3",
            "region": "eu-west-1",
            "monthlyCost": 15.25,
        },
    ]


@pytest.fixture
def make_row():
    """Factory for CUR line items, see ``cur_row``."""
    return cur_row


@pytest.fixture
def make_cur():
    """Factory rendering line items into CUR CSV bytes, see ``build_cur``."""
    return build_cur


@pytest.fixture
def cur_header():
    return list(CUR_HEADER)


@pytest.fixture
def memory_monitor_at():
    """Factory for memory monitors pinned to one usage ratio."""
    return FixedMemoryMonitor
