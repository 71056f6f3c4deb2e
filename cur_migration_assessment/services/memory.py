"""
Memory pressure sampling for the streaming parser.
"""

from typing import Optional, Protocol

import psutil

from ..utils.logging import get_logger

logger = get_logger(__name__)


class MemoryMonitor(Protocol):
    """Reports memory usage as a 0-1 ratio, or None when unknown"""

    def usage_ratio(self) -> Optional[float]:
        ...


class PsutilMemoryMonitor:
    """Process RSS against a configured limit, or system memory when unset"""

    def __init__(self, limit_mb: Optional[int] = None):
        self.limit_bytes = limit_mb * 1024 * 1024 if limit_mb else None
        self._process = psutil.Process()

    def usage_ratio(self) -> Optional[float]:
        try:
            if self.limit_bytes:
                return self._process.memory_info().rss / self.limit_bytes
            return psutil.virtual_memory().percent / 100.0
        except psutil.Error as e:
            logger.debug("Memory sample unavailable", error=str(e))
            return None


class NullMemoryMonitor:
    """Used where no memory introspection is available; always unknown"""

    def usage_ratio(self) -> Optional[float]:
        return None
