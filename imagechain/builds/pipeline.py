"""Build pipeline.

This module provides the high-level build API:
- BuildPipeline.run(): load, order, check out, build and clean up
- Per-image processing: skip, stage assets, inject, render, build, save
- The batch failure policy (best-effort or fail-fast)

A run moves through LOADING -> STAGING -> BUILDING -> CLEANUP -> DONE.
A missing images root, a broken build file or a dependency cycle aborts
the run during LOADING. Later failures are recorded per image and the
run continues according to the batch mode; CLEANUP always runs.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from imagechain.builds.artifacts import (
    ArtifactError,
    archive_filename,
    persist_archive,
    write_report,
)
from imagechain.builds.checkout import checkout_projects, unique_projects
from imagechain.builds.credentials import TokenProvider
from imagechain.builds.injection import InjectionOptions, inject_instructions
from imagechain.builds.runner import (
    BuildExecutionError,
    CommandExecutor,
    compose_build_command,
    compose_save_command,
    run_command,
    safe_name,
    working_directory,
)
from imagechain.builds.staging import StagingError, clear_staging, stage_assets
from imagechain.config import Settings, Workspace
from imagechain.descriptors.ignore import IgnoreListReadError, read_ignore_list
from imagechain.descriptors.image import BuildDescriptor
from imagechain.descriptors.loader import LoadError, load_descriptors
from imagechain.planning.dependencies import CyclicDependencyError
from imagechain.planning.scheduler import order_batch
from imagechain.types import (
    BatchMode,
    CheckoutResult,
    ImageResult,
    ImageState,
    RunState,
)

logger = logging.getLogger(__name__)

SUPPORTED_SELECTION = "all"
DEFAULT_INSTALLER_NAME = "composer.phar"


class UnsupportedSelectionError(Exception):
    """Raised when an image selection other than 'all' is requested."""

    def __init__(self, selection: str, code: str = "unsupported_selection") -> None:
        super().__init__(
            f"Building a single image is not supported yet (got {selection!r}); "
            f"use '{SUPPORTED_SELECTION}'"
        )
        self.selection = selection
        self.code = code


def validate_selection(selection: str) -> None:
    """Raise UnsupportedSelectionError unless ``selection`` is 'all'."""
    if selection != SUPPORTED_SELECTION:
        raise UnsupportedSelectionError(selection)


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""

    state: RunState
    dry_run: bool
    plan: list[str] = field(default_factory=list)
    images: list[ImageResult] = field(default_factory=list)
    checkouts: list[CheckoutResult] = field(default_factory=list)
    ignore_error: str | None = None
    stopped_early: bool = False

    @property
    def failed(self) -> list[ImageResult]:
        return [r for r in self.images if r.state == ImageState.FAILED]

    @property
    def failed_checkouts(self) -> list[CheckoutResult]:
        return [c for c in self.checkouts if not c.success]

    @property
    def success(self) -> bool:
        """True when no checkout, build or save invocation failed."""
        return not self.failed and not self.failed_checkouts

    def state_of(self, key: str) -> ImageState | None:
        for image in self.images:
            if image.key == key:
                return image.state
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "dry_run": self.dry_run,
            "success": self.success,
            "stopped_early": self.stopped_early,
            "ignore_error": self.ignore_error,
            "plan": list(self.plan),
            "checkouts": [asdict(c) for c in self.checkouts],
            "images": [
                {
                    "key": r.key,
                    "state": r.state.value,
                    "error_message": r.error_message,
                    "artifact": asdict(r.artifact) if r.artifact else None,
                    "commands": [asdict(c) for c in r.commands],
                }
                for r in self.images
            ],
        }


class BuildPipeline:
    """Sequential build of a batch of images.

    Args:
        workspace: Filesystem layout of the run.
        settings: Application settings.
        executor: Runs external commands; replaceable in tests.
        token_provider: Source of the GitHub token.
    """

    def __init__(
        self,
        workspace: Workspace,
        settings: Settings,
        executor: CommandExecutor = run_command,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self.workspace = workspace
        self.settings = settings
        self.executor = executor
        self.token_provider = token_provider or TokenProvider(
            workspace.auth_file, token=settings.github_token
        )
        self.state = RunState.LOADING
        self.skip_set: frozenset[str] = frozenset()
        self.ignore_error: IgnoreListReadError | None = None
        self._prepared: set[str] = set()
        self._token: str | None = None
        self._installer_name = DEFAULT_INSTALLER_NAME

    # LOADING

    def _copy_installer(self) -> str:
        archive = self.settings.installer_archive
        if archive is None:
            return DEFAULT_INSTALLER_NAME
        if not archive.is_file():
            logger.warning("Installer archive not found: %s", archive)
            return archive.name
        shutil.copy2(archive, self.workspace.build_dir / archive.name)
        logger.debug("Copied installer %s into build context", archive)
        return archive.name

    def load(self) -> dict[str, BuildDescriptor]:
        """Load and order the batch.

        Returns:
            The batch keyed in build order.

        Raises:
            LoadError: If the images root is missing or a build file fails.
            CyclicDependencyError: If the batch cannot be ordered.
        """
        self.state = RunState.LOADING
        images_dir = self.workspace.images_dir
        if not images_dir.is_dir():
            self.state = RunState.ABORTED
            raise LoadError(
                f"Images directory not found: {images_dir}. "
                "Run this tool from your project root.",
                code="images_root_missing",
            )

        self.workspace.ensure_directories()
        self._installer_name = self._copy_installer()

        ignore = read_ignore_list(self.workspace.ignore_file)
        self.skip_set = ignore.skip_set
        self.ignore_error = ignore.error

        try:
            batch = load_descriptors(images_dir, self.skip_set)
            plan = order_batch(batch)
        except (LoadError, CyclicDependencyError):
            self.state = RunState.ABORTED
            raise

        self._token = self.token_provider.get_token()
        return plan

    # STAGING

    def stage(
        self, batch: Mapping[str, BuildDescriptor], dry_run: bool = False
    ) -> list[CheckoutResult]:
        """Check out every project referenced by the batch once."""
        self.state = RunState.STAGING
        return checkout_projects(
            unique_projects(batch),
            self.workspace.project_dir,
            self.workspace.log_dir,
            git_bin=self.settings.git_bin,
            dry_run=dry_run,
            timeout=self.settings.checkout_timeout,
            executor=self.executor,
        )

    # BUILDING

    def injection_options(self) -> InjectionOptions:
        return InjectionOptions(
            installer_name=self._installer_name,
            image_installer_path=self.settings.image_installer_path,
            image_auth_path=self.settings.image_auth_path,
            auth_file_available=self.workspace.auth_file.is_file(),
            git_protocol_rewrite=self.settings.git_protocol_rewrite,
            debug=self.settings.debug,
        )

    def check_installer(self, descriptor: BuildDescriptor) -> None:
        """Ensure the installer is in the build context when it will be added.

        Raises:
            StagingError: If the image has install targets and the installer
                is missing.
        """
        if not descriptor.install_targets:
            return
        installer = self.workspace.build_dir / self._installer_name
        if not installer.is_file():
            raise StagingError(
                f"Installer not found in build context: {installer}. "
                "Set IMAGECHAIN_INSTALLER_ARCHIVE to the installer to copy.",
                code="installer_missing",
            )

    def prepare(self, key: str, descriptor: BuildDescriptor) -> BuildDescriptor:
        """Inject operational instructions, at most once per image."""
        if key in self._prepared:
            return descriptor
        descriptor = inject_instructions(
            descriptor, self._token, self.injection_options()
        )
        self._prepared.add(key)
        return descriptor

    def render(self, descriptor: BuildDescriptor) -> Path:
        """Write the rendered Dockerfile into the build context."""
        manifest = self.workspace.manifest_file
        manifest.parent.mkdir(parents=True, exist_ok=True)
        manifest.write_text(descriptor.to_manifest(), encoding="utf-8")
        return manifest

    def _fail(self, result: ImageResult, message: str) -> ImageResult:
        result.state = ImageState.FAILED
        result.error_message = message
        logger.error("Image %s failed: %s", result.key, message)
        return result

    def build_image(
        self,
        key: str,
        descriptor: BuildDescriptor,
        dry_run: bool = False,
    ) -> ImageResult:
        """Process one image of the plan.

        Args:
            key: Image key.
            descriptor: Image descriptor.
            dry_run: Stop after rendering the Dockerfile.

        Returns:
            ImageResult describing what happened.
        """
        result = ImageResult(key=key)

        if key in self.skip_set:
            result.state = ImageState.SKIPPED
            logger.info("Skipping %s", key)
            return result

        result.state = ImageState.BUILDING
        logger.info("Building %s%s", key, " (dry mode)" if dry_run else "")

        try:
            stage_assets(
                self.workspace.images_dir / key,
                descriptor.assets,
                self.workspace.assets_dir,
            )
            self.check_installer(descriptor)
            self.prepare(key, descriptor)
            self.render(descriptor)
        except StagingError as e:
            return self._fail(result, str(e))
        except OSError as e:
            return self._fail(result, f"Failed to write Dockerfile: {e}")
        except Exception as e:
            # build.py descriptors run user code
            return self._fail(result, f"Failed to render Dockerfile: {e}")

        if dry_run:
            result.state = ImageState.DRY_RUN
            return result

        log_path = self.workspace.log_dir / f"{safe_name(key)}.log"
        archive = archive_filename(key)
        docker_bin = self.settings.docker_bin

        try:
            with working_directory(self.workspace.build_dir) as build_dir:
                built = self.executor(
                    compose_build_command(key, docker_bin=docker_bin),
                    log_path,
                    timeout=self.settings.build_timeout,
                )
                result.commands.append(built)
                if not built.success:
                    return self._fail(result, f"build exited with {built.exit_code}")

                saved = self.executor(
                    compose_save_command(key, archive, docker_bin=docker_bin),
                    log_path,
                    timeout=self.settings.save_timeout,
                )
                result.commands.append(saved)
                if not saved.success:
                    return self._fail(result, f"save exited with {saved.exit_code}")

                result.artifact = persist_archive(
                    build_dir / archive, self.workspace.output_dir
                )
        except (BuildExecutionError, ArtifactError) as e:
            return self._fail(result, str(e))

        result.state = ImageState.BUILT
        return result

    # CLEANUP

    def cleanup(self) -> None:
        """Remove the rendered Dockerfile and empty the staging directory."""
        self.state = RunState.CLEANUP
        logger.info("Cleaning up ...")
        self.workspace.manifest_file.unlink(missing_ok=True)
        clear_staging(self.workspace.assets_dir)

    def run(
        self,
        selection: str = SUPPORTED_SELECTION,
        dry_run: bool = False,
    ) -> PipelineResult:
        """Run the whole pipeline.

        Args:
            selection: Images to build; only 'all' is supported.
            dry_run: Prepare everything but do not invoke the builder.

        Returns:
            PipelineResult for the run.

        Raises:
            UnsupportedSelectionError: If ``selection`` is not 'all'.
            LoadError: If loading aborts the run.
            CyclicDependencyError: If the batch cannot be ordered.
        """
        validate_selection(selection)
        batch = self.load()

        result = PipelineResult(
            state=self.state,
            dry_run=dry_run,
            plan=list(batch),
            ignore_error=str(self.ignore_error) if self.ignore_error else None,
        )
        fail_fast = self.settings.batch_mode == BatchMode.FAIL_FAST

        try:
            result.checkouts = self.stage(batch, dry_run=dry_run)
            if fail_fast and result.failed_checkouts:
                result.stopped_early = True

            self.state = RunState.BUILDING
            for key, descriptor in batch.items():
                if result.stopped_early:
                    result.images.append(ImageResult(key=key))
                    continue
                image_result = self.build_image(key, descriptor, dry_run=dry_run)
                result.images.append(image_result)
                if fail_fast and image_result.state == ImageState.FAILED:
                    logger.warning("Stopping after failure of %s (fail-fast)", key)
                    result.stopped_early = True
        finally:
            self.cleanup()

        self.state = RunState.DONE
        result.state = self.state
        write_report(result.to_dict(), self.workspace.log_dir / "report.json")

        if not result.success:
            logger.error(
                "%d image(s) and %d checkout(s) failed",
                len(result.failed),
                len(result.failed_checkouts),
            )
        return result


__all__ = [
    "SUPPORTED_SELECTION",
    "BuildPipeline",
    "PipelineResult",
    "UnsupportedSelectionError",
    "validate_selection",
]
