"""Injection of operational instructions into build descriptors.

Before an image is rendered the pipeline appends:
- a git URL rewrite so ``git://github.com/`` fetches go over https
- the GitHub token, when one is available
- the dependency installer, one install run per install target and the
  removal of the installer and credentials afterwards
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

from imagechain.descriptors.image import BuildDescriptor

logger = logging.getLogger(__name__)

GIT_CONFIG_PATH = "/root/.gitconfig"


@dataclass(frozen=True)
class InjectionOptions:
    """How installer and credentials are placed inside images.

    Attributes:
        installer_name: Installer file name inside the build context.
        image_installer_path: Installer location inside the image.
        image_auth_path: Auth file location inside the image.
        auth_file_available: Whether ``auth.json`` exists in the build context.
        git_protocol_rewrite: Rewrite git:// GitHub URLs to https://.
        debug: Ask the installer for verbose output.
    """

    installer_name: str = "composer.phar"
    image_installer_path: str = "/usr/share/composer/composer.phar"
    image_auth_path: str = "/root/.composer/auth.json"
    auth_file_available: bool = False
    git_protocol_rewrite: bool = True
    debug: bool = False


def compose_install_command(directory: str, options: InjectionOptions) -> list[str]:
    """Compose the dependency install command for one in-image directory."""
    cmd = [
        "php",
        options.image_installer_path,
        "--no-interaction",
        "--no-dev",
        f"--working-dir={directory}",
    ]
    if options.debug:
        cmd.append("-vvv")
    cmd.append("install")
    return cmd


def inject_instructions(
    descriptor: BuildDescriptor,
    token: str | None,
    options: InjectionOptions,
) -> BuildDescriptor:
    """Append operational instructions to a descriptor.

    Args:
        descriptor: Descriptor to mutate.
        token: GitHub token, or None.
        options: Installer and credential layout.

    Returns:
        The same descriptor.
    """
    if options.git_protocol_rewrite:
        descriptor.append_instruction(
            [
                "RUN",
                "git",
                "config",
                "--global",
                "url.https://github.com/.insteadOf",
                "git://github.com/",
            ]
        )

    if token:
        descriptor.append_instruction(
            ["RUN", "git", "config", "--global", "github.accesstoken", token]
        )
    else:
        logger.debug("No token found.")

    if not descriptor.install_targets:
        if token:
            descriptor.append_instruction(
                ["RUN", "git", "config", "--global", "--unset", "github.accesstoken"]
            )
        return descriptor

    if options.auth_file_available:
        descriptor.append_instruction(["ADD", "auth.json", options.image_auth_path])
    else:
        logger.warning("No auth.json in build context; installing without it")

    descriptor.append_instruction(
        ["ADD", options.installer_name, options.image_installer_path]
    )
    for directory in descriptor.install_targets:
        descriptor.append_instruction(
            ["RUN", *compose_install_command(directory, options)]
        )

    descriptor.append_instruction(
        [
            "RUN",
            "rm",
            "-rf",
            options.image_installer_path,
            str(PurePosixPath(options.image_auth_path).parent),
            GIT_CONFIG_PATH,
        ]
    )
    return descriptor


__all__ = [
    "GIT_CONFIG_PATH",
    "InjectionOptions",
    "compose_install_command",
    "inject_instructions",
]
