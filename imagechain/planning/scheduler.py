"""Build order scheduling.

External images come first, in discovery order. Internal images follow in
topological order over their parent links (Kahn's algorithm, ties broken by
ascending key), so every image is built after all of its internal ancestors.
"""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from collections.abc import Mapping

from imagechain.descriptors.image import BuildDescriptor
from imagechain.planning.dependencies import (
    CyclicDependencyError,
    classify,
    dependency_reference,
)

logger = logging.getLogger(__name__)


def order(batch: Mapping[str, BuildDescriptor]) -> list[str]:
    """Compute the build plan for a batch.

    Args:
        batch: Mapping of image key to descriptor, in discovery order.

    Returns:
        Image keys in build order.

    Raises:
        CyclicDependencyError: If internal images depend on each other in a loop.
    """
    partition = classify(batch)
    internal = set(partition.internal)

    children: dict[str, list[str]] = defaultdict(list)
    in_degree = dict.fromkeys(partition.internal, 0)
    for key in partition.internal:
        parent = dependency_reference(batch[key].parent_reference)
        if parent in internal:
            children[parent].append(key)
            in_degree[key] += 1

    ready = [key for key, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    ordered_internal: list[str] = []
    while ready:
        key = heapq.heappop(ready)
        ordered_internal.append(key)
        for child in children[key]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                heapq.heappush(ready, child)

    if len(ordered_internal) != len(internal):
        remaining = sorted(k for k, degree in in_degree.items() if degree > 0)
        raise CyclicDependencyError(remaining)

    plan = list(partition.external) + ordered_internal
    logger.debug("Build order: %s", ", ".join(plan))
    return plan


def order_batch(
    batch: Mapping[str, BuildDescriptor],
) -> dict[str, BuildDescriptor]:
    """Return the batch re-keyed in build order."""
    return {key: batch[key] for key in order(batch)}


__all__ = ["order", "order_batch"]
