"""
Utility helpers for the CUR migration assessment package.
"""

from .batching import iter_batches, batched_sum, batched_mean
from .logging import configure_logging, get_logger

__all__ = [
    "iter_batches",
    "batched_sum",
    "batched_mean",
    "configure_logging",
    "get_logger",
]
