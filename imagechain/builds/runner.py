"""Runner for external build commands.

This module handles:
- Composing ``docker build`` and ``docker save`` commands
- Executing commands with subprocess
- Capturing stdout/stderr to log files
- Enforcing timeouts
- Scoped changes of the working directory
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from imagechain.types import CommandResult

logger = logging.getLogger(__name__)


class BuildExecutionError(Exception):
    """Raised when an external command cannot be run to completion."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "execution_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class CommandExecutor(Protocol):
    """Callable that runs one external command."""

    def __call__(
        self,
        cmd: Sequence[str],
        log_path: Path,
        timeout: int | None = None,
        cwd: Path | None = None,
    ) -> CommandResult: ...


def safe_name(key: str) -> str:
    """Turn an image key into a file name component."""
    return key.replace("/", "_").replace(":", "_")


def compose_build_command(
    key: str,
    docker_bin: str = "docker",
    context: str = ".",
) -> list[str]:
    """Compose the image build command.

    Images are always built without layer cache and intermediate containers
    are removed.

    Args:
        key: Image key used as the tag.
        docker_bin: Builder executable.
        context: Build context path.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [
        docker_bin,
        "build",
        "--force-rm",
        "--rm",
        "--no-cache=true",
        "-t",
        key,
        context,
    ]


def compose_save_command(
    key: str,
    archive: str,
    docker_bin: str = "docker",
) -> list[str]:
    """Compose the command saving an image to a tar archive."""
    return [docker_bin, "save", "-o", archive, key]


@contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    """Change the working directory for the duration of the block.

    The previous directory is restored on every exit path.

    Args:
        path: Directory to change into.

    Yields:
        The directory changed into.
    """
    previous = Path.cwd()
    os.chdir(path)
    logger.debug("Changed working directory to %s", path)
    try:
        yield path
    finally:
        os.chdir(previous)
        logger.debug("Restored working directory to %s", previous)


def run_command(
    cmd: Sequence[str],
    log_path: Path,
    timeout: int | None = None,
    cwd: Path | None = None,
) -> CommandResult:
    """Execute a command, appending its output to a log file.

    A non-zero exit status is returned, not raised.

    Args:
        cmd: Command to run.
        log_path: Log file receiving stdout and stderr.
        timeout: Timeout in seconds (None = no timeout).
        cwd: Working directory (None = current directory).

    Returns:
        CommandResult with the exit code.

    Raises:
        BuildExecutionError: If the command times out or cannot be started.
    """
    cmd_str = shlex.join(cmd)
    workdir = cwd or Path.cwd()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", workdir)

    started_at = datetime.now(timezone.utc)

    try:
        with log_path.open("a") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {workdir}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()

            result = subprocess.run(
                list(cmd),
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                check=False,
            )

    except subprocess.TimeoutExpired as e:
        message = f"Command timed out after {timeout} seconds: {cmd_str}"
        logger.error("%s. See log: %s", message, log_path)
        with log_path.open("a") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise BuildExecutionError(message, exit_code=-1, code="timeout") from e

    except OSError as e:
        message = f"Failed to execute {cmd_str}: {e}"
        logger.error(message)
        raise BuildExecutionError(message, code="execution_error") from e

    finished_at = datetime.now(timezone.utc)
    exit_code = result.returncode

    with log_path.open("a") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {exit_code}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n\n")

    if exit_code != 0:
        logger.error(
            "Command failed with exit code %d: %s. See log: %s",
            exit_code,
            cmd_str,
            log_path,
        )

    return CommandResult(command=cmd_str, exit_code=exit_code, log_path=str(log_path))


__all__ = [
    "BuildExecutionError",
    "CommandExecutor",
    "compose_build_command",
    "compose_save_command",
    "run_command",
    "safe_name",
    "working_directory",
]
