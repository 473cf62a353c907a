"""Build descriptors and Dockerfile rendering.

A build descriptor names the parent image, the assets and projects it needs
and the directories requiring dependency installation. It also carries the
ordered instruction list that is rendered into the final Dockerfile.

Descriptors are mutable builders: ``append_instruction`` and the
convenience helpers change the instance in place and return it, so calls
can be chained.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# Instructions rendered in exec form (JSON array)
EXEC_FORM_KEYWORDS = frozenset({"RUN", "CMD", "ENTRYPOINT"})


@runtime_checkable
class BuildDescriptor(Protocol):
    """Contract every evaluated build file must satisfy."""

    parent_reference: str
    assets: list[str]
    projects: list[str]
    install_targets: list[str]

    def to_manifest(self) -> str: ...

    def append_instruction(self, tokens: Sequence[str]) -> BuildDescriptor: ...


@dataclass(frozen=True)
class Instruction:
    """A single Dockerfile instruction.

    Attributes:
        keyword: Upper-case instruction keyword (RUN, ADD, ...).
        arguments: Instruction arguments.
    """

    keyword: str
    arguments: tuple[str, ...] = ()

    def render(self) -> str:
        """Render the instruction as one Dockerfile line."""
        if self.keyword in EXEC_FORM_KEYWORDS:
            return f"{self.keyword} {json.dumps(list(self.arguments))}"
        if not self.arguments:
            return self.keyword
        return f"{self.keyword} {' '.join(self.arguments)}"


@dataclass
class BaseImage:
    """Concrete build descriptor.

    Attributes:
        parent_reference: Parent image, e.g. ``ubuntu:20.04`` or ``example/base``.
        assets: Paths relative to the image directory to stage into the context.
        projects: Source repository URLs needed by the image.
        install_targets: In-image directories that need dependency installation.
        instructions: Ordered instruction list rendered after ``FROM``.
    """

    parent_reference: str
    assets: list[str] = field(default_factory=list)
    projects: list[str] = field(default_factory=list)
    install_targets: list[str] = field(default_factory=list)
    instructions: list[Instruction] = field(default_factory=list)

    def append_instruction(self, tokens: Sequence[str]) -> BaseImage:
        """Append an instruction given as ``[KEYWORD, arg, ...]``.

        Args:
            tokens: Instruction keyword followed by its arguments.

        Returns:
            This descriptor.

        Raises:
            ValueError: If no keyword is given.
        """
        if not tokens or not str(tokens[0]).strip():
            raise ValueError("An instruction needs at least a keyword")
        keyword = str(tokens[0]).strip().upper()
        if keyword == "FROM":
            raise ValueError("FROM is derived from parent_reference")
        self.instructions.append(
            Instruction(keyword, tuple(str(t) for t in tokens[1:]))
        )
        return self

    def run(self, command: Sequence[str]) -> BaseImage:
        return self.append_instruction(["RUN", *command])

    def add(self, source: str, destination: str) -> BaseImage:
        return self.append_instruction(["ADD", source, destination])

    def copy(self, source: str, destination: str) -> BaseImage:
        return self.append_instruction(["COPY", source, destination])

    def env(self, name: str, value: str) -> BaseImage:
        return self.append_instruction(["ENV", f"{name}={value}"])

    def workdir(self, path: str) -> BaseImage:
        return self.append_instruction(["WORKDIR", path])

    def expose(self, *ports: int | str) -> BaseImage:
        return self.append_instruction(["EXPOSE", *(str(p) for p in ports)])

    def user(self, name: str) -> BaseImage:
        return self.append_instruction(["USER", name])

    def volume(self, path: str) -> BaseImage:
        return self.append_instruction(["VOLUME", path])

    def label(self, name: str, value: str) -> BaseImage:
        return self.append_instruction(["LABEL", f"{name}={json.dumps(value)}"])

    def cmd(self, command: Sequence[str]) -> BaseImage:
        return self.append_instruction(["CMD", *command])

    def entrypoint(self, command: Sequence[str]) -> BaseImage:
        return self.append_instruction(["ENTRYPOINT", *command])

    def to_manifest(self) -> str:
        """Render the descriptor as Dockerfile text."""
        lines = [f"FROM {self.parent_reference}"]
        lines.extend(instruction.render() for instruction in self.instructions)
        return "\n".join(lines) + "\n"


__all__ = [
    "EXEC_FORM_KEYWORDS",
    "BaseImage",
    "BuildDescriptor",
    "Instruction",
]
