"""Saved image archives.

This module handles:
- Naming image archives
- Moving archives to the output directory
- Computing checksums
- Writing a JSON report of a run
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from imagechain.builds.runner import safe_name
from imagechain.types import ArtifactInfo

logger = logging.getLogger(__name__)

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


class ArtifactError(Exception):
    """Raised when an archive cannot be persisted."""

    def __init__(self, message: str, code: str = "artifact_error") -> None:
        super().__init__(message)
        self.code = code


def archive_filename(key: str) -> str:
    """Archive file name for an image key (``a/b`` -> ``a_b.tar``)."""
    return f"{safe_name(key)}.tar"


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def persist_archive(archive: Path, output_dir: Path) -> ArtifactInfo:
    """Move a saved archive to the output directory.

    An existing archive with the same name is replaced.

    Args:
        archive: Archive written by the save step.
        output_dir: Final location for archives.

    Returns:
        ArtifactInfo for the moved archive.

    Raises:
        ArtifactError: If the archive is missing or cannot be moved.
    """
    if not archive.is_file():
        raise ArtifactError(
            f"Saved archive not found: {archive}",
            code="archive_not_found",
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    dest = output_dir / archive.name
    try:
        if dest.exists():
            dest.unlink()
        shutil.move(str(archive), dest)
    except OSError as e:
        raise ArtifactError(
            f"Failed to move {archive} -> {dest}: {e}",
            code="move_error",
        ) from e

    info = ArtifactInfo(
        filename=dest.name,
        path=str(dest),
        size_bytes=dest.stat().st_size,
        sha256=compute_file_hash(dest),
    )
    logger.info("Saved %s (%d bytes)", dest, info.size_bytes)
    return info


def write_report(report: dict[str, Any], output_path: Path) -> Path:
    """Write a run report to a JSON file.

    Args:
        report: Report dictionary.
        output_path: Output file path.

    Returns:
        Path to written report file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data = {"generated_at": datetime.now(timezone.utc).isoformat(), **report}

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)

    logger.info("Wrote report to %s", output_path)
    return output_path


__all__ = [
    "HASH_CHUNK_SIZE",
    "ArtifactError",
    "archive_filename",
    "compute_file_hash",
    "persist_archive",
    "write_report",
]
