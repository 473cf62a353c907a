"""Dependency classification and ancestor resolution.

An image is *internal* when its parent reference, with any ``:tag`` suffix
removed, names another image of the same batch. Every other image is
*external*: its parent is pulled from a registry. Classification always
uses the batch as loaded, so skipping a parent turns its children external.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from imagechain.descriptors.image import BuildDescriptor

TAG_SUFFIX = re.compile(r":[^:]*$")


class CyclicDependencyError(Exception):
    """Raised when parent references form a cycle inside the batch."""

    def __init__(
        self,
        cycle: list[str],
        code: str = "cyclic_dependency",
    ) -> None:
        super().__init__(f"Cyclic image dependency: {' -> '.join(cycle)}")
        self.cycle = cycle
        self.code = code


@dataclass(frozen=True)
class BatchPartition:
    """Internal and external image keys of a batch, each in batch order."""

    internal: tuple[str, ...]
    external: tuple[str, ...]


def dependency_reference(parent_reference: str) -> str:
    """Strip the tag from a parent reference.

    Everything from the last colon to the end is removed, so
    ``example/base:1.0`` becomes ``example/base``.
    """
    return TAG_SUFFIX.sub("", parent_reference)


def is_internal(batch: Mapping[str, BuildDescriptor], key: str) -> bool:
    """Return True if the image's parent is another image of the batch."""
    return dependency_reference(batch[key].parent_reference) in batch


def classify(batch: Mapping[str, BuildDescriptor]) -> BatchPartition:
    """Partition the batch into internal and external images.

    Args:
        batch: Mapping of image key to descriptor.

    Returns:
        BatchPartition covering every key exactly once.
    """
    internal: list[str] = []
    external: list[str] = []
    for key in batch:
        if is_internal(batch, key):
            internal.append(key)
        else:
            external.append(key)
    return BatchPartition(internal=tuple(internal), external=tuple(external))


def filter_batch(
    batch: Mapping[str, BuildDescriptor],
    external: bool = False,
) -> dict[str, BuildDescriptor]:
    """Select the internal (default) or external part of the batch.

    Args:
        batch: Mapping of image key to descriptor.
        external: Return external images instead of internal ones.

    Returns:
        Sub-mapping in batch order.
    """
    return {
        key: descriptor
        for key, descriptor in batch.items()
        if is_internal(batch, key) != external
    }


def ancestors(
    batch: Mapping[str, BuildDescriptor],
    descriptor: BuildDescriptor,
    path: list[str] | None = None,
) -> list[str]:
    """Walk the chain of internal parents of a descriptor.

    Args:
        batch: Mapping of image key to descriptor.
        descriptor: Image whose ancestors are resolved.
        path: Chain collected so far; not modified.

    Returns:
        Internal ancestor keys, nearest parent first. Empty when the
        image's parent is external.

    Raises:
        CyclicDependencyError: If the chain revisits a key.
    """
    chain = list(path or [])
    current = descriptor

    while True:
        parent_key = dependency_reference(current.parent_reference)
        if parent_key not in batch:
            return chain
        if parent_key in chain:
            raise CyclicDependencyError(chain + [parent_key])
        chain.append(parent_key)
        current = batch[parent_key]


def ancestors_of(batch: Mapping[str, BuildDescriptor], key: str) -> list[str]:
    """Ancestor chain of the image stored under ``key``."""
    return ancestors(batch, batch[key])


__all__ = [
    "TAG_SUFFIX",
    "BatchPartition",
    "CyclicDependencyError",
    "ancestors",
    "ancestors_of",
    "classify",
    "dependency_reference",
    "filter_batch",
    "is_internal",
]
