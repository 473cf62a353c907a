"""Read-only access to the GitHub token used inside images.

The token comes from the ``github_token`` setting or from a Composer-style
``auth.json``. Acquiring a token interactively is not handled here; a
missing or unreadable file simply means there is no token.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"


def _lookup(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def read_token(auth_file: Path, host: str = GITHUB_HOST) -> str | None:
    """Read a GitHub OAuth token from an auth file.

    Both ``{"config": {"github-oauth": {...}}}`` and the flat
    ``{"github-oauth": {...}}`` layouts are accepted.

    Args:
        auth_file: Path to the JSON auth file.
        host: Host whose token is looked up.

    Returns:
        The token, or None if absent or unreadable.
    """
    if not auth_file.exists():
        return None

    try:
        with open(auth_file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable auth file %s: %s", auth_file, e)
        return None

    token = _lookup(data, "config", "github-oauth", host)
    if token is None:
        token = _lookup(data, "github-oauth", host)
    if token is not None and not isinstance(token, str):
        logger.warning("Ignoring non-string token in %s", auth_file)
        return None
    return token or None


class TokenProvider:
    """Supplies the token injected into images.

    Args:
        auth_file: Auth file consulted when no explicit token is given.
        token: Explicit token; takes precedence over the file.
    """

    def __init__(self, auth_file: Path, token: str | None = None) -> None:
        self.auth_file = auth_file
        self._token = token

    def get_token(self) -> str | None:
        if self._token:
            return self._token
        return read_token(self.auth_file)


__all__ = ["GITHUB_HOST", "TokenProvider", "read_token"]
