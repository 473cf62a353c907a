"""Ignore list parsing.

The ignore list (``.posignore``) names image keys that are excluded from
loading and building. One key per line; blank lines and ``#`` comments are
ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class IgnoreListReadError(Exception):
    """Raised (or recorded) when the ignore list cannot be read completely."""

    def __init__(self, message: str, code: str = "ignore_read_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class IgnoreList:
    """Parsed ignore list.

    Attributes:
        entries: Image keys in file order.
        error: Read error encountered after ``entries`` were parsed, if any.
    """

    entries: list[str] = field(default_factory=list)
    error: IgnoreListReadError | None = None

    @property
    def skip_set(self) -> frozenset[str]:
        return frozenset(self.entries)


def parse_ignore_line(line: str) -> str | None:
    """Return the image key on a line, or None for blanks and comments."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return stripped


def read_ignore_list(path: Path) -> IgnoreList:
    """Read an ignore list file.

    A missing file is not an error. A read failure part way through is
    reported on the result; the entries read before it are kept.

    Args:
        path: Path to the ignore list.

    Returns:
        IgnoreList with the parsed entries.
    """
    result = IgnoreList()
    if not path.exists():
        logger.debug("No ignore list at %s", path)
        return result

    try:
        with path.open("rb") as f:
            for raw in f:
                key = parse_ignore_line(raw.decode("utf-8"))
                if key is not None:
                    result.entries.append(key)
    except (OSError, UnicodeDecodeError) as e:
        result.error = IgnoreListReadError(f"Reading {path.name} failed: {e}")
        logger.error(
            "Reading %s failed after %d entries: %s",
            path,
            len(result.entries),
            e,
        )

    return result


__all__ = [
    "IgnoreList",
    "IgnoreListReadError",
    "parse_ignore_line",
    "read_ignore_list",
]
