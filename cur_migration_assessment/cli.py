"""
Command line interface for the CUR migration assessment.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml
from pydantic import ValidationError

from .exceptions import AggregationCapacityError, CurSchemaError, ResourceLimitError
from .models import ParseResult, ReportSummary
from .services.aggregation import ReportAggregator
from .services.config import ConfigManager
from .services.ingestion import DataIngestionService
from .utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


class AssessmentApp:
    """Main application class"""

    def __init__(self, config_dir: str = "config", data_dir: str = "data"):
        self.config_manager = ConfigManager(config_dir)
        config = self.config_manager.global_config
        self.data_service = DataIngestionService(
            data_dir,
            settings=config.parser,
            overflow_dir=config.overflow_dir,
        )
        self.aggregator = ReportAggregator(config.aggregator)
        self.last_parse: Optional[ParseResult] = None

        logger.debug("Application initialized", config_dir=config_dir, data_dir=data_dir)

    async def run_analysis(
        self,
        billing_file: Optional[str] = None,
        use_sample_data: bool = False,
        sample_rows: int = 500,
        overflow_dir: Optional[str] = None,
    ) -> Optional[ReportSummary]:
        """Ingest a CUR export and aggregate it into a report summary"""
        logger.info("Starting assessment", use_sample_data=use_sample_data)

        if use_sample_data:
            billing_file = str(self.data_service.create_sample_data(sample_rows))

        if not billing_file:
            logger.error("No billing file provided")
            return None

        if overflow_dir:
            self.data_service.overflow_dir = Path(overflow_dir)

        try:
            result = await self.data_service.ingest_billing_data(billing_file)
        except CurSchemaError as e:
            logger.error("Billing file is not a usable CUR export", error=str(e))
            raise
        except ResourceLimitError as e:
            logger.error(
                "Billing file exceeded processing limits; split the export or adjust config",
                error=e.message,
                state=e.state,
            )
            raise

        self.last_parse = result
        summary = self.aggregator.summarize(result.records)

        logger.info(
            "Assessment completed",
            workloads=summary.summary.total_workloads,
            total_monthly_cost=round(summary.summary.total_monthly_cost, 2),
            services=summary.summary.total_services,
            regions=summary.summary.total_regions,
        )
        return summary

    def print_report_summary(self, report: ReportSummary) -> None:
        """Print a human-readable report summary"""
        totals = report.summary
        print("\n" + "=" * 80)
        print("CUR MIGRATION ASSESSMENT")
        print(f"Total Workloads: {totals.total_workloads}")
        print(f"Monthly Cost: ${totals.total_monthly_cost:,.2f}")
        if totals.credit_total:
            print(f"Credits: ${totals.credit_total:,.2f} across {totals.negative_cost_workloads} workloads")
        if totals.has_negative_total:
            print("WARNING: net cost is negative (credits exceed usage)")
        print(f"Services: {totals.total_services}   Regions: {totals.total_regions}")

        if self.last_parse is not None:
            meta = self.last_parse.metadata
            skipped = meta.skipped_rows
            print()
            print("INGESTION:")
            print(f"  Rows read:        {meta.total_rows}")
            print(f"  Rows processed:   {meta.processed_rows}")
            print(f"  Raw cost:         ${meta.total_raw_cost:,.2f}")
            print(f"  Tax (excluded):   ${meta.tax_cost:,.2f}")
            print(
                f"  Skipped:          {skipped.no_product_code} no product code, "
                f"{skipped.tax} tax, {skipped.malformed} malformed"
            )
        print()

        print("COMPLEXITY:")
        for band in ("low", "medium", "high", "unassigned"):
            bucket = getattr(report.complexity, band)
            print(f"  {band.title():<11} {bucket.count:>8} workloads  ${bucket.total_cost:,.2f}")
        print()

        print("READINESS:")
        for tier in ("ready", "conditional", "not_ready", "unassigned"):
            bucket = getattr(report.readiness, tier)
            label = tier.replace("_", " ").title()
            print(f"  {label:<11} {bucket.count:>8} workloads  ${bucket.total_cost:,.2f}")
        print()

        if report.services:
            print("TOP SERVICES:")
            for bucket in report.services_overview.top_services:
                target = bucket.gcp_mapping.gcp_service if bucket.gcp_mapping else "-"
                print(f"  {bucket.service:<24} ${bucket.total_cost:>14,.2f}  -> {target}")
            other = report.services_overview.other
            if other is not None:
                print(f"  {'Other':<24} ${other.total_cost:>14,.2f}")
            print()

        if report.regions:
            print("REGIONS:")
            for bucket in report.regions[:10]:
                print(
                    f"  {bucket.region:<16} ${bucket.total_cost:>14,.2f}  "
                    f"top: {', '.join(bucket.top_services)}"
                )

        print("\n" + "=" * 80)

    def export_report(self, report: ReportSummary, output_file: str, format_type: str = "json") -> Dict[str, Any]:
        """Export report in specified format

        Returns:
            dict: Information about exported files
        """
        try:
            format_type = format_type.lower()
            if format_type == "json":
                with open(output_file, "w") as f:
                    json.dump(report.model_dump(mode="json", by_alias=True), f, indent=2)
                logger.info("JSON report exported", file=output_file)
                return {"format": "json", "files": [output_file]}

            tables = self._report_tables(report)

            if format_type == "csv":
                base_path = Path(output_file)
                files = []
                for name, frame in tables.items():
                    path = base_path.parent / f"{base_path.stem}_{name}.csv"
                    frame.to_csv(path, index=False)
                    files.append(str(path))
                logger.info("CSV reports exported", files=files)
                return {"format": "csv", "files": files}

            if format_type == "excel":
                with pd.ExcelWriter(output_file, engine="openpyxl") as writer:
                    for name, frame in tables.items():
                        frame.to_excel(writer, sheet_name=name.replace("_", " ").title(), index=False)
                logger.info("Excel report exported", file=output_file, sheets=len(tables))
                return {"format": "excel", "files": [output_file]}

            raise ValueError(f"Unsupported export format: {format_type}")

        except (OSError, ValueError) as e:
            logger.error("Export failed", error=str(e), format=format_type)
            return {"format": format_type, "files": [], "error": str(e)}

    def _report_tables(self, report: ReportSummary) -> Dict[str, pd.DataFrame]:
        totals = report.summary
        summary_rows = [
            {"Metric": "Total Workloads", "Value": totals.total_workloads},
            {"Metric": "Total Monthly Cost", "Value": round(totals.total_monthly_cost, 2)},
            {"Metric": "Credit Total", "Value": round(totals.credit_total, 2)},
            {"Metric": "Average Complexity", "Value": totals.average_complexity},
            {"Metric": "Services", "Value": totals.total_services},
            {"Metric": "Regions", "Value": totals.total_regions},
        ]

        grouping_rows: List[Dict[str, Any]] = []
        for dimension, report_part, names in (
            ("complexity", report.complexity, ("low", "medium", "high", "unassigned")),
            ("readiness", report.readiness, ("ready", "conditional", "not_ready", "unassigned")),
        ):
            for name in names:
                bucket = getattr(report_part, name)
                grouping_rows.append(
                    {
                        "Dimension": dimension,
                        "Bucket": name,
                        "Count": bucket.count,
                        "Total Cost": bucket.total_cost,
                        "Average Complexity": bucket.average_complexity,
                    }
                )

        service_rows = [
            {
                "Service": bucket.service,
                "Count": bucket.count,
                "Total Cost": bucket.total_cost,
                "Average Complexity": bucket.average_complexity,
                "GCP Service": bucket.gcp_mapping.gcp_service if bucket.gcp_mapping else "",
                "Strategy": bucket.gcp_mapping.migration_strategy.value if bucket.gcp_mapping else "",
                "Effort": bucket.gcp_mapping.effort.value if bucket.gcp_mapping else "",
            }
            for bucket in report.services
        ]
        region_rows = [
            {
                "Region": bucket.region,
                "Count": bucket.count,
                "Total Cost": bucket.total_cost,
                "Top Services": ", ".join(bucket.top_services),
            }
            for bucket in report.regions
        ]

        return {
            "summary": pd.DataFrame(summary_rows),
            "groupings": pd.DataFrame(grouping_rows),
            "services": pd.DataFrame(service_rows, columns=["Service", "Count", "Total Cost", "Average Complexity", "GCP Service", "Strategy", "Effort"]),
            "regions": pd.DataFrame(region_rows, columns=["Region", "Count", "Total Cost", "Top Services"]),
        }

    def get_status(self) -> Dict[str, Any]:
        """Get application status"""
        return {
            "config": self.config_manager.get_status(),
            "data_dir": str(self.data_service.data_dir),
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AWS CUR ingestion and migration assessment",
        prog="python -m cur_migration_assessment",
    )
    subparsers = parser.add_subparsers(dest="mode", help="Operation mode")

    analyze_parser = subparsers.add_parser("analyze", help="Ingest a CUR export and summarize it")
    analyze_parser.add_argument("--billing-file", help="Path to CUR CSV export")
    analyze_parser.add_argument(
        "--sample-data", action="store_true", help="Generate and analyze a synthetic CUR export"
    )
    analyze_parser.add_argument(
        "--sample-rows", type=int, default=500, help="Rows to generate with --sample-data"
    )
    analyze_parser.add_argument(
        "--overflow-dir", help="Spill workload records to JSON Lines files in this directory"
    )
    analyze_parser.add_argument("--output-file", help="Output file for detailed report")
    analyze_parser.add_argument(
        "--output-format",
        choices=["json", "csv", "excel"],
        default="json",
        help="Output format for detailed report",
    )
    analyze_parser.add_argument("--status", action="store_true", help="Show application status")

    sample_parser = subparsers.add_parser("generate-sample", help="Write a synthetic CUR export")
    sample_parser.add_argument("--rows", type=int, default=500, help="Number of usage rows")
    sample_parser.add_argument("--seed", type=int, help="Random seed for reproducible output")

    for subparser in (analyze_parser, sample_parser):
        subparser.add_argument("--config-dir", default="config", help="Configuration directory")
        subparser.add_argument("--data-dir", default="data", help="Data directory")
        subparser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose (DEBUG) logging"
        )
        subparser.add_argument(
            "--quiet", "-q", action="store_true", help="Reduce output (WARNING+ only)"
        )
        subparser.add_argument(
            "--log-format",
            choices=["auto", "json", "human"],
            default="auto",
            help="Log output format (auto=detect based on terminal)",
        )
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns a process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mode is None:
        parser.print_help()
        return 2

    if args.quiet:
        log_level = "WARNING"
    elif args.verbose:
        log_level = "DEBUG"
    else:
        log_level = "INFO"

    configure_logging(level=log_level, format_type=args.log_format, component="cli")

    try:
        if args.mode == "generate-sample":
            service = DataIngestionService(args.data_dir)
            path = service.create_sample_data(args.rows, seed=args.seed)
            print(f"Sample CUR export written to: {path}")
            return 0

        app = AssessmentApp(args.config_dir, args.data_dir)

        if args.status:
            print(json.dumps(app.get_status(), indent=2))
            return 0

        report = await app.run_analysis(
            billing_file=args.billing_file,
            use_sample_data=args.sample_data,
            sample_rows=args.sample_rows,
            overflow_dir=args.overflow_dir,
        )
        if report is None:
            print("Nothing to analyze: pass --billing-file or --sample-data")
            return 1

        app.print_report_summary(report)

        if args.output_file:
            export_result = app.export_report(report, args.output_file, args.output_format)
            if export_result.get("error"):
                print(f"\nExport failed: {export_result['error']}")
                return 1
            print("\nDetailed report saved to:")
            for file_path in export_result["files"]:
                print(f"  {file_path}")
        return 0

    except FileNotFoundError as e:
        logger.error("Input not found", error=str(e))
        print(f"Error: {e}")
        return 1
    except CurSchemaError as e:
        print(f"Error: {e}")
        return 1
    except ResourceLimitError as e:
        print(f"Error: {e}")
        return 1
    except AggregationCapacityError as e:
        logger.error("Aggregation ran out of capacity", error=str(e))
        print(f"Error: {e}. Lower aggregator.batch_size or analyze a smaller export.")
        return 1
    except (ValidationError, yaml.YAMLError) as e:
        config_file = Path(args.config_dir) / "global" / "assessment.yaml"
        logger.error("Invalid configuration", path=str(config_file), error=str(e))
        print(f"Error: invalid configuration in {config_file}\n{e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130


def main_sync() -> None:
    """Console script wrapper"""
    sys.exit(asyncio.run(main()))
