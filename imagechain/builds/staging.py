"""Asset staging for builds.

This module handles:
- Copying an image's declared assets into the shared staging directory
- Guarding against assets that escape the image directory
- Clearing the staging directory after a run

Assets land in the staging directory under their base name, so a
Dockerfile can refer to them as ``assets/<name>``.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class StagingError(Exception):
    """Raised when asset staging fails."""

    def __init__(self, message: str, code: str = "staging_error") -> None:
        super().__init__(message)
        self.code = code


def _validate_path_within_base(path: Path, base: Path) -> Path:
    """Validate that a path is contained within a base directory.

    Raises:
        StagingError: If path escapes base directory.
    """
    resolved_path = path.resolve()
    try:
        resolved_path.relative_to(base.resolve())
    except ValueError:
        raise StagingError(
            f"Asset path traversal detected: {path} resolves outside {base}",
            code="path_traversal",
        ) from None
    return resolved_path


def stage_asset(source: Path, staging_dir: Path) -> Path:
    """Copy one file or directory into the staging directory.

    Existing content under the same name is replaced.

    Args:
        source: File or directory to copy.
        staging_dir: Destination directory.

    Returns:
        Path of the staged copy.

    Raises:
        StagingError: If copying fails.
    """
    dest = staging_dir / source.name
    try:
        if source.is_dir():
            shutil.copytree(source, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(source, dest)
    except OSError as e:
        raise StagingError(
            f"Failed to stage {source} -> {dest}: {e}",
            code="copy_error",
        ) from e
    return dest


def stage_assets(
    image_dir: Path,
    assets: Iterable[str],
    staging_dir: Path,
) -> list[Path]:
    """Stage the assets of one image.

    Args:
        image_dir: Directory of the image's build file.
        assets: Asset paths relative to ``image_dir``.
        staging_dir: Destination directory.

    Returns:
        Paths of the staged copies.

    Raises:
        StagingError: If an asset is missing, escapes ``image_dir`` or
            cannot be copied.
    """
    staging_dir.mkdir(parents=True, exist_ok=True)
    staged: list[Path] = []

    for asset in assets:
        source = image_dir / asset
        _validate_path_within_base(source, image_dir)
        if not source.exists():
            raise StagingError(
                f"Asset not found: {source}",
                code="asset_not_found",
            )
        logger.debug("Staging asset: %s", source)
        staged.append(stage_asset(source, staging_dir))

    return staged


def clear_staging(staging_dir: Path) -> int:
    """Remove everything inside the staging directory, keeping the directory.

    Returns:
        Number of top-level entries removed.
    """
    if not staging_dir.exists():
        return 0

    removed = 0
    for entry in staging_dir.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    return removed


__all__ = [
    "StagingError",
    "clear_staging",
    "stage_asset",
    "stage_assets",
]
