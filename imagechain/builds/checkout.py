"""Checkout of source projects referenced by build descriptors.

Projects are cloned once into the project directory and updated with
``git pull`` on later runs. In dry-run mode the remote is only probed with
``git ls-remote``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from imagechain.builds.runner import BuildExecutionError, CommandExecutor, run_command
from imagechain.descriptors.image import BuildDescriptor
from imagechain.types import CheckoutResult

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised when a project URL cannot be mapped to a checkout."""

    def __init__(self, message: str, code: str = "checkout_error") -> None:
        super().__init__(message)
        self.code = code


def project_name(url: str) -> str:
    """Derive the checkout directory name from a repository URL.

    ``git@github.com:org/app.git`` and ``https://github.com/org/app`` both
    give ``app``.

    Raises:
        CheckoutError: If no name can be derived.
    """
    last = url.rstrip("/").split("/")[-1]
    last = last.split(":")[-1]
    name = last.removesuffix(".git")
    if not name or name in (".", ".."):
        raise CheckoutError(f"Cannot derive a project name from {url!r}")
    return name


def unique_projects(batch: Mapping[str, BuildDescriptor]) -> list[str]:
    """Collect project URLs of the batch without duplicates, first seen first."""
    return list(dict.fromkeys(url for d in batch.values() for url in d.projects))


def compose_checkout_command(
    url: str,
    target: Path,
    git_bin: str = "git",
    dry_run: bool = False,
) -> tuple[str, list[str]]:
    """Compose the git command for one project.

    Returns:
        Tuple of (action, command) where action is probe, update or clone.
    """
    if dry_run:
        return "probe", [git_bin, "ls-remote", url]
    if target.exists():
        return "update", [git_bin, "-C", str(target), "pull"]
    return "clone", [git_bin, "clone", "--recursive", url, str(target)]


def checkout_projects(
    urls: Iterable[str],
    project_dir: Path,
    log_dir: Path,
    git_bin: str = "git",
    dry_run: bool = False,
    timeout: int | None = None,
    executor: CommandExecutor = run_command,
) -> list[CheckoutResult]:
    """Clone or update every project, one after another.

    Failures are recorded on the results; remaining projects are still
    processed. A URL whose directory name is already taken by an earlier
    URL is not checked out.

    Args:
        urls: Repository URLs (already deduplicated).
        project_dir: Directory holding the checkouts.
        log_dir: Directory for git logs.
        git_bin: Git executable.
        dry_run: Only probe the remotes.
        timeout: Timeout per git invocation.
        executor: Command executor.

    Returns:
        One CheckoutResult per URL.
    """
    results: list[CheckoutResult] = []
    claimed: dict[str, str] = {}

    for url in urls:
        try:
            name = project_name(url)
            if claimed.setdefault(name, url) != url:
                raise CheckoutError(
                    f"{url} and {claimed[name]} both check out to {name}/",
                    code="name_collision",
                )
        except CheckoutError as e:
            logger.error(str(e))
            results.append(
                CheckoutResult(
                    url=url,
                    project_name="",
                    action="none",
                    success=False,
                    error_message=str(e),
                )
            )
            continue

        action, cmd = compose_checkout_command(
            url, project_dir / name, git_bin=git_bin, dry_run=dry_run
        )
        logger.info("Checkout %s (%s)", name, action)

        try:
            outcome = executor(cmd, log_dir / f"checkout_{name}.log", timeout=timeout)
        except BuildExecutionError as e:
            results.append(
                CheckoutResult(
                    url=url,
                    project_name=name,
                    action=action,
                    success=False,
                    error_message=str(e),
                )
            )
            continue

        results.append(
            CheckoutResult(
                url=url,
                project_name=name,
                action=action,
                success=outcome.success,
                error_message=None
                if outcome.success
                else f"git {action} exited with {outcome.exit_code}",
            )
        )

    return results


__all__ = [
    "CheckoutError",
    "checkout_projects",
    "compose_checkout_command",
    "project_name",
    "unique_projects",
]
