"""Discovery and evaluation of build descriptors.

Every ``build.py``, ``build.yaml`` or ``build.yml`` found beneath the
images root defines one image. The image key is the path of the containing
directory relative to the images root, with ``/`` as separator.

``build.py`` files are executed and must bind a module-level ``image`` or
define a ``build()`` function returning the descriptor. YAML files are
validated against ``DescriptorSchema``.
"""

from __future__ import annotations

import logging
import os
import runpy
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from imagechain.descriptors.image import BuildDescriptor
from imagechain.descriptors.schema import DescriptorSchema

logger = logging.getLogger(__name__)

PYTHON_ENTRY_POINT = "build.py"
YAML_ENTRY_POINTS = ("build.yaml", "build.yml")
ENTRY_POINTS = (PYTHON_ENTRY_POINT, *YAML_ENTRY_POINTS)


class LoadError(Exception):
    """Raised when the batch of descriptors cannot be loaded."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        code: str = "load_error",
    ) -> None:
        super().__init__(message)
        self.key = key
        self.code = code


def image_key(images_dir: Path, entry_point: Path) -> str:
    """Derive the image key of an entry point.

    Args:
        images_dir: Images root.
        entry_point: Path to a build file beneath the root.

    Returns:
        Slash-separated directory path relative to the root.
    """
    return entry_point.parent.relative_to(images_dir).as_posix()


def discover_entry_points(images_dir: Path) -> list[tuple[str, Path]]:
    """Find all build files beneath the images root.

    Directories are visited depth-first, parents before children, siblings
    in name order.

    Args:
        images_dir: Images root.

    Returns:
        List of ``(key, entry_point)`` tuples in discovery order.

    Raises:
        LoadError: If a directory holds more than one entry point.
    """
    found: list[tuple[str, Path]] = []

    for dirpath, dirnames, filenames in os.walk(images_dir):
        dirnames.sort()
        present = [name for name in ENTRY_POINTS if name in filenames]
        if not present:
            continue

        directory = Path(dirpath)
        if len(present) > 1:
            key = directory.relative_to(images_dir).as_posix()
            raise LoadError(
                f"Image {key} has more than one build file: {', '.join(present)}",
                key=key,
                code="ambiguous_entry_point",
            )

        entry_point = directory / present[0]
        found.append((image_key(images_dir, entry_point), entry_point))

    return found


def _evaluate_python(path: Path) -> Any:
    namespace = runpy.run_path(str(path), run_name="__imagechain_build__")
    if "image" in namespace:
        return namespace["image"]
    factory = namespace.get("build")
    if callable(factory):
        return factory()
    return None


def _evaluate_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return DescriptorSchema.model_validate(data).to_image()


def evaluate_descriptor(path: Path, key: str | None = None) -> BuildDescriptor:
    """Evaluate a build file into a descriptor.

    Args:
        path: Path to ``build.py`` or ``build.yaml``.
        key: Image key, used in error messages.

    Returns:
        The evaluated descriptor.

    Raises:
        LoadError: If evaluation fails or yields no usable descriptor.
    """
    label = key or str(path)
    try:
        if path.name == PYTHON_ENTRY_POINT:
            descriptor = _evaluate_python(path)
        else:
            descriptor = _evaluate_yaml(path)
    except ValidationError as e:
        raise LoadError(
            f"Invalid build file for {label}: {e}",
            key=key,
            code="invalid_descriptor",
        ) from e
    except Exception as e:
        raise LoadError(
            f"Failed to evaluate build file for {label}: {e}",
            key=key,
            code="evaluation_error",
        ) from e

    if not isinstance(descriptor, BuildDescriptor):
        raise LoadError(
            f"Build file for {label} did not produce a build descriptor "
            f"(got {type(descriptor).__name__})",
            key=key,
            code="invalid_descriptor",
        )
    return descriptor


def load_descriptors(
    images_dir: Path,
    skip_set: frozenset[str] | set[str] = frozenset(),
) -> dict[str, BuildDescriptor]:
    """Load every build descriptor beneath the images root.

    Keys in ``skip_set`` are excluded before their build file is evaluated.

    Args:
        images_dir: Images root.
        skip_set: Image keys to exclude.

    Returns:
        Mapping of image key to descriptor, in discovery order.

    Raises:
        LoadError: If the root is missing or any build file fails to load.
    """
    if not images_dir.is_dir():
        raise LoadError(
            f"Images directory not found: {images_dir}",
            code="images_root_missing",
        )

    batch: dict[str, BuildDescriptor] = {}
    for key, entry_point in discover_entry_points(images_dir):
        if key in skip_set:
            logger.info("Skipping %s", key)
            continue
        logger.info("Loading %s", key)
        batch[key] = evaluate_descriptor(entry_point, key=key)

    logger.debug("Loaded %d build descriptors from %s", len(batch), images_dir)
    return batch


__all__ = [
    "ENTRY_POINTS",
    "LoadError",
    "discover_entry_points",
    "evaluate_descriptor",
    "image_key",
    "load_descriptors",
]
