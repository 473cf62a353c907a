"""Shared type definitions for imagechain.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class RunState(str, Enum):
    """State of a pipeline run."""

    LOADING = "loading"
    STAGING = "staging"
    BUILDING = "building"
    CLEANUP = "cleanup"
    DONE = "done"
    ABORTED = "aborted"


class ImageState(str, Enum):
    """State of a single image within a run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"
    BUILDING = "building"
    BUILT = "built"
    FAILED = "failed"


class BatchMode(str, Enum):
    """Failure policy for a batch of builds."""

    FAIL_FAST = "fail-fast"
    BEST_EFFORT = "best-effort"


@dataclass
class ArtifactInfo:
    """Information about a saved image archive."""

    filename: str
    path: str
    size_bytes: int
    sha256: str


@dataclass
class CommandResult:
    """Outcome of one external process invocation."""

    command: str
    exit_code: int
    log_path: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class ImageResult:
    """Result of processing one image in the plan."""

    key: str
    state: ImageState = ImageState.PENDING
    error_message: str | None = None
    artifact: ArtifactInfo | None = None
    commands: list[CommandResult] = field(default_factory=list)


@dataclass
class CheckoutResult:
    """Result of cloning, updating or probing one project."""

    url: str
    project_name: str
    action: str
    success: bool
    error_message: str | None = None


__all__ = [
    "ArtifactInfo",
    "BatchMode",
    "CheckoutResult",
    "CommandResult",
    "ImageResult",
    "ImageState",
    "RunState",
]
