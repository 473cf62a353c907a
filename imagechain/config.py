"""Configuration settings for imagechain.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

Workspace paths are derived once from the project root and carried around
in a ``Workspace`` value object rather than module-level constants.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagechain.types import BatchMode


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the IMAGECHAIN_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMAGECHAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    root_dir: Path = Field(
        default_factory=Path.cwd,
        description="Project root containing the images/ directory",
    )
    installer_archive: Path | None = Field(
        default=None,
        description="Dependency installer archive copied into the build context",
    )

    # External tools
    docker_bin: str = Field(default="docker", description="Image builder executable")
    git_bin: str = Field(default="git", description="Git executable")

    # Operational modes
    batch_mode: BatchMode = Field(
        default=BatchMode.BEST_EFFORT,
        description="What to do after a failed build: continue or stop",
    )
    debug: bool = Field(
        default=False,
        description="Print additional debugging information",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Credentials and in-image layout
    github_token: str | None = Field(
        default=None,
        description="GitHub token injected into images (overrides auth file)",
    )
    image_installer_path: str = Field(
        default="/usr/share/composer/composer.phar",
        description="Location of the dependency installer inside the image",
    )
    image_auth_path: str = Field(
        default="/root/.composer/auth.json",
        description="Location of the auth file inside the image",
    )
    git_protocol_rewrite: bool = Field(
        default=True,
        description="Rewrite git:// GitHub URLs to https:// inside images",
    )

    # Timeouts (in seconds)
    checkout_timeout: int = Field(
        default=600,
        ge=1,
        description="Timeout for a single clone/pull/ls-remote",
    )
    build_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for a single image build",
    )
    save_timeout: int = Field(
        default=1800,
        ge=60,
        description="Timeout for saving an image archive",
    )

    def workspace(self) -> "Workspace":
        """Return the workspace layout rooted at ``root_dir``."""
        return Workspace.from_root(self.root_dir)


@dataclass(frozen=True)
class Workspace:
    """Filesystem layout of a build run.

    Attributes:
        root_dir: Project root.
        images_dir: Root of the image descriptors tree.
        build_dir: Transient workspace and docker build context.
        auth_file: Credential file inside the build context.
        project_dir: Checked-out projects (kept across runs).
        assets_dir: Staged assets (cleared at the end of each run).
        cache_dir: Layer cache directory (reserved).
        manifest_file: The currently rendered Dockerfile.
        ignore_file: Ignore list of image keys.
        output_dir: Final location of saved image archives.
        log_dir: Logs of external invocations.
    """

    root_dir: Path
    images_dir: Path
    build_dir: Path
    auth_file: Path
    project_dir: Path
    assets_dir: Path
    cache_dir: Path
    manifest_file: Path
    ignore_file: Path
    output_dir: Path
    log_dir: Path

    @classmethod
    def from_root(cls, root_dir: Path) -> "Workspace":
        """Derive the standard layout from a project root."""
        root = Path(root_dir).resolve()
        build = root / ".tmp"
        return cls(
            root_dir=root,
            images_dir=root / "images",
            build_dir=build,
            auth_file=build / "auth.json",
            project_dir=build / "project",
            assets_dir=build / "assets",
            cache_dir=build / "cache",
            manifest_file=build / "Dockerfile",
            ignore_file=root / ".posignore",
            output_dir=root / "builds",
            log_dir=build / "logs",
        )

    def ensure_directories(self) -> None:
        """Create the transient directories used during a run."""
        for directory in (
            self.cache_dir,
            self.assets_dir,
            self.project_dir,
            self.output_dir,
            self.log_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2, exclude={"github_token"})


__all__ = ["Settings", "Workspace", "get_settings", "print_settings_json"]
