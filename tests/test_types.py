"""Tests for shared types."""

from imagechain.types import (
    BatchMode,
    CommandResult,
    ImageResult,
    ImageState,
    RunState,
)


class TestEnums:
    """Test enum values used in reports and settings."""

    def test_batch_mode_values(self) -> None:
        """Batch modes should parse from their CLI spelling."""
        assert BatchMode("fail-fast") is BatchMode.FAIL_FAST
        assert BatchMode("best-effort") is BatchMode.BEST_EFFORT

    def test_states_are_strings(self) -> None:
        """States should serialize as plain strings."""
        assert ImageState.DRY_RUN.value == "dry_run"
        assert RunState.ABORTED == "aborted"


class TestCommandResult:
    """Test CommandResult dataclass."""

    def test_success(self) -> None:
        """Exit code zero means success."""
        assert CommandResult(command="true", exit_code=0).success is True
        assert CommandResult(command="false", exit_code=1).success is False


class TestImageResult:
    """Test ImageResult dataclass."""

    def test_defaults(self) -> None:
        """A new result should be pending without commands."""
        result = ImageResult(key="example/image1")

        assert result.state == ImageState.PENDING
        assert result.commands == []
        assert result.artifact is None
