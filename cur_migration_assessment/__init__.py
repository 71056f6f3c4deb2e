"""
CUR Migration Assessment

Streaming ingestion of AWS Cost and Usage Report exports and aggregation
of the resulting workloads into migration-planning summaries.
"""

from .cli import AssessmentApp
from .services.config import ConfigManager
from .services.ingestion import DataIngestionService
from .services.parser import StreamingCurParser
from .services.aggregation import ReportAggregator

__version__ = "1.0.0"
__author__ = "Cloud Migration Assessment Team"

__all__ = [
    "AssessmentApp",
    "ConfigManager",
    "DataIngestionService",
    "StreamingCurParser",
    "ReportAggregator",
]
