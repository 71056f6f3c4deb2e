"""
Services package for CUR ingestion and report aggregation.
"""

from .config import ConfigManager
from .ingestion import DataIngestionService
from .parser import StreamingCurParser
from .aggregation import ReportAggregator
from .memory import MemoryMonitor, PsutilMemoryMonitor, NullMemoryMonitor
from .sinks import RecordSink, InMemoryRecordSink, JsonLinesRecordSink
from .service_mapping import ServiceMapper, ServiceMappingPort

__all__ = [
    "ConfigManager",
    "DataIngestionService",
    "StreamingCurParser",
    "ReportAggregator",
    "MemoryMonitor",
    "PsutilMemoryMonitor",
    "NullMemoryMonitor",
    "RecordSink",
    "InMemoryRecordSink",
    "JsonLinesRecordSink",
    "ServiceMapper",
    "ServiceMappingPort",
]
