"""Dependency planning module.

This module handles:
- Internal/external classification of images
- Ancestor chain resolution
- Build order scheduling
"""

from imagechain.planning.dependencies import (
    BatchPartition,
    CyclicDependencyError,
    ancestors,
    classify,
    filter_batch,
)
from imagechain.planning.scheduler import order, order_batch

__all__ = [
    "BatchPartition",
    "CyclicDependencyError",
    "ancestors",
    "classify",
    "filter_batch",
    "order",
    "order_batch",
]
