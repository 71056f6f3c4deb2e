"""
Ingestion service for AWS Cost and Usage Report exports.
"""

import random
from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from ..models import IngestionDiagnostics, ParserSettings, ParseResult
from ..utils.logging import get_logger
from .memory import MemoryMonitor
from .parser import CurSource, ProgressCallback, StreamingCurParser
from .sinks import JsonLinesRecordSink, RecordSink

logger = get_logger(__name__)


class DataIngestionService:
    """Service for ingesting CUR billing exports"""

    def __init__(
        self,
        data_dir: str = "data",
        settings: Optional[ParserSettings] = None,
        memory_monitor: Optional[MemoryMonitor] = None,
        overflow_dir: Optional[str] = None,
    ):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(exist_ok=True)
        (self.data_dir / "billing").mkdir(exist_ok=True)

        self.settings = settings or ParserSettings()
        self.memory_monitor = memory_monitor
        self.overflow_dir = Path(overflow_dir) if overflow_dir else None

    def create_parser(self) -> StreamingCurParser:
        return StreamingCurParser(self.settings, memory_monitor=self.memory_monitor)

    def create_overflow_sink(self, name: str = "workloads") -> Optional[RecordSink]:
        """File-backed sink under ``overflow_dir``, or None when overflow is disabled"""
        if self.overflow_dir is None:
            return None
        path = self.overflow_dir / f"{name}.jsonl"
        if path.exists():
            path.unlink()
        return JsonLinesRecordSink(path)

    async def ingest_billing_data(
        self,
        source: Union[CurSource, str, Path],
        on_progress: Optional[ProgressCallback] = None,
        overflow_sink: Optional[RecordSink] = None,
        diagnostics: Optional[IngestionDiagnostics] = None,
    ) -> ParseResult:
        """Parse a CUR export; file paths are resolved against the working directory"""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Billing file not found: {path}")
            logger.info("Ingesting billing data", file_path=str(path))
            if overflow_sink is None:
                overflow_sink = self.create_overflow_sink(path.stem)
        else:
            logger.info("Ingesting billing data", source_type=type(source).__name__)

        result = await self.create_parser().parse(
            source,
            on_progress=on_progress,
            overflow_sink=overflow_sink,
            diagnostics=diagnostics,
        )

        logger.info(
            "Billing data ingested",
            workloads=len(result.records),
            total_rows=result.metadata.total_rows,
            skipped=result.metadata.skipped_rows.total_skipped,
        )
        return result

    def create_sample_data(
        self, num_rows: int = 500, seed: Optional[int] = None, file_name: str = "sample_cur.csv"
    ) -> Path:
        """Write a synthetic CUR export with realistic edge cases.

        Besides regular usage lines the file contains credits, tax lines,
        zero-cost lines and lines without a resource id.
        """
        logger.info("Creating sample CUR data", num_rows=num_rows, seed=seed)
        rng = random.Random(seed)

        services = {
            "AmazonEC2": {
                "usage_types": ["BoxUsage:t3.micro", "BoxUsage:m5.large", "BoxUsage:c5.xlarge"],
                "instance_types": ["t3.micro", "m5.large", "c5.xlarge"],
                "cost_range": (0.5, 40),
                "prefix": "i-",
            },
            "AmazonS3": {
                "usage_types": ["TimedStorage-ByteHrs", "Requests-Tier1", "TimedStorage-GBMo"],
                "instance_types": [""],
                "cost_range": (0.01, 15),
                "prefix": "bucket-",
            },
            "AmazonRDS": {
                "usage_types": ["InstanceUsage:db.t3.small", "InstanceUsage:db.r5.large"],
                "instance_types": ["db.t3.small", "db.r5.large"],
                "cost_range": (1, 60),
                "prefix": "db-",
            },
            "AWSLambda": {
                "usage_types": ["Request", "Lambda-GB-Second"],
                "instance_types": [""],
                "cost_range": (0.001, 2),
                "prefix": "function-",
            },
            "AmazonCloudFront": {
                "usage_types": ["DataTransfer-Out-Bytes", "Requests-HTTPS"],
                "instance_types": [""],
                "cost_range": (0.05, 10),
                "prefix": "",
            },
        }
        regions = ["us-east-1", "us-west-2", "eu-west-1", "ap-southeast-1"]
        period_start = date(2024, 1, 1)

        # A small pool of resources so usage lines repeat and deduplicate
        pool = []
        for _ in range(max(1, num_rows // 10)):
            product_code = rng.choice(list(services))
            config = services[product_code]
            resource_id = ""
            if config["prefix"]:
                resource_id = f"{config['prefix']}{rng.randrange(16 ** 12):012x}"
            pool.append((product_code, resource_id, rng.choice(regions)))

        rows = []
        for i in range(num_rows):
            product_code, resource_id, region = rng.choice(pool)
            config = services[product_code]
            index = rng.randrange(len(config["usage_types"]))
            usage_type = config["usage_types"][index]
            instance_type = config["instance_types"][min(index, len(config["instance_types"]) - 1)]
            day = period_start + timedelta(days=rng.randrange(31))
            cost = round(rng.uniform(*config["cost_range"]), 6)

            roll = rng.random()
            if roll < 0.03:
                cost = -round(cost * rng.uniform(1, 5), 6)
            elif roll < 0.06:
                cost = 0.0

            rows.append(
                {
                    "identity/LineItemId": f"li-{i:08d}",
                    "bill/BillingPeriodStartDate": period_start.isoformat() + "T00:00:00Z",
                    "lineItem/UsageStartDate": day.isoformat() + "T00:00:00Z",
                    "lineItem/UsageEndDate": (day + timedelta(days=1)).isoformat() + "T00:00:00Z",
                    "lineItem/ProductCode": product_code,
                    "lineItem/ResourceId": resource_id,
                    "lineItem/UsageType": usage_type,
                    "lineItem/UsageAmount": round(rng.uniform(1, 744), 4),
                    "lineItem/UnblendedCost": cost,
                    "product/instanceType": instance_type,
                    "product/operatingSystem": rng.choice(["Linux", "Linux", "Windows"]) if instance_type else "",
                    "product/region": region,
                }
            )

        # One tax line per region, as in real exports
        for region in regions:
            rows.append(
                {
                    "identity/LineItemId": f"tax-{region}",
                    "bill/BillingPeriodStartDate": period_start.isoformat() + "T00:00:00Z",
                    "lineItem/UsageStartDate": period_start.isoformat() + "T00:00:00Z",
                    "lineItem/UsageEndDate": (period_start + timedelta(days=31)).isoformat() + "T00:00:00Z",
                    "lineItem/ProductCode": "TAX",
                    "lineItem/ResourceId": "",
                    "lineItem/UsageType": "",
                    "lineItem/UsageAmount": 0,
                    "lineItem/UnblendedCost": round(rng.uniform(1, 20), 2),
                    "product/instanceType": "",
                    "product/operatingSystem": "",
                    "product/region": region,
                }
            )

        output_path = self.data_dir / "billing" / file_name
        pd.DataFrame(rows).to_csv(output_path, index=False)

        logger.info("Sample CUR data created", path=str(output_path), rows=len(rows))
        return output_path
