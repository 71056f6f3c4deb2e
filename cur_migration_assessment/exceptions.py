"""
Error taxonomy for CUR ingestion and report aggregation.

Schema errors abort a parse, row errors only skip the offending row, and
resource-limit errors abort with a snapshot of how far the parse got.
"""

from typing import Any, Dict, Optional


class CurAssessmentError(Exception):
    """Base class for all errors raised by this package"""


class CurSchemaError(CurAssessmentError, ValueError):
    """The CUR header is missing a required column or cannot be parsed"""


class EmptyCurError(CurSchemaError):
    """The input holds no header or no data rows"""


class MalformedRowError(CurAssessmentError, ValueError):
    """A single data row could not be interpreted; the row is skipped"""


class ResourceLimitError(CurAssessmentError):
    """A configured ceiling was exceeded while parsing.

    ``state`` carries the diagnostic snapshot taken at the point of failure:
    ``line_number``, ``records_created``, ``bytes_processed``,
    ``total_bytes`` and ``elapsed_seconds``.
    """

    def __init__(self, message: str, state: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.state = state

    def attach_state(self, state: Dict[str, Any]) -> None:
        if self.state is None:
            self.state = dict(state)

    def __str__(self) -> str:
        if not self.state:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.state.items())
        return f"{self.message} ({details})"


class LineTooLongError(ResourceLimitError):
    """A single line exceeded the maximum line length"""


class FieldLimitExceededError(ResourceLimitError):
    """A row had more fields than allowed"""


class RecordLimitExceededError(ResourceLimitError):
    """The number of unique workload records exceeded the ceiling"""


class ParseTimeoutError(ResourceLimitError):
    """The parse ran past its size-scaled time budget"""


class MemoryLimitExceededError(ResourceLimitError):
    """Memory usage crossed the critical threshold"""


class AggregationCapacityError(CurAssessmentError):
    """The aggregator ran out of stack or memory; split the input into smaller batches"""
