"""Thin CLI wrapper for imagechain.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from imagechain import __version__
from imagechain.config import Settings, get_settings, print_settings_json
from imagechain.types import BatchMode, ImageState

app = typer.Typer(
    name="imagechain",
    help="imagechain - build interdependent container images in dependency order",
    no_args_is_help=True,
)
console = Console()

STATE_STYLES = {
    ImageState.BUILT: "green",
    ImageState.DRY_RUN: "blue",
    ImageState.SKIPPED: "yellow",
    ImageState.FAILED: "red",
    ImageState.PENDING: "dim",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"imagechain version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _effective_settings(
    root: Path | None = None,
    debug: bool = False,
    mode: str | None = None,
) -> Settings:
    settings = get_settings()
    updates: dict[str, object] = {}
    if root is not None:
        updates["root_dir"] = root
    if debug:
        updates["debug"] = True
        updates["log_level"] = "DEBUG"
    if mode is not None:
        try:
            updates["batch_mode"] = BatchMode(mode)
        except ValueError:
            console.print(f"[red]Invalid mode: {mode}[/red]")
            console.print("Valid values: fail-fast, best-effort")
            raise typer.Exit(code=1) from None
    return settings.model_copy(update=updates) if updates else settings


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """imagechain - build interdependent container images in dependency order."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    workspace = settings.workspace()
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Root directory:      {workspace.root_dir}")
    console.print(f"  Images directory:    {workspace.images_dir}")
    console.print(f"  Build directory:     {workspace.build_dir}")
    console.print(f"  Output directory:    {workspace.output_dir}")
    console.print(f"  Ignore list:         {workspace.ignore_file}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Batch mode:          {settings.batch_mode.value}")
    console.print(f"  Debug:               {settings.debug}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Builder:             {settings.docker_bin}")
    console.print(f"  Git:                 {settings.git_bin}")
    console.print()
    console.print("[bold]Timeouts (seconds):[/bold]")
    console.print(f"  Checkout timeout:    {settings.checkout_timeout}")
    console.print(f"  Build timeout:       {settings.build_timeout}")
    console.print(f"  Save timeout:        {settings.save_timeout}")


@app.command()
def plan(
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Project root (default: current dir)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the build order without building anything."""
    from imagechain.descriptors.ignore import read_ignore_list
    from imagechain.descriptors.loader import LoadError, load_descriptors
    from imagechain.planning.dependencies import (
        CyclicDependencyError,
        ancestors_of,
        is_internal,
    )
    from imagechain.planning.scheduler import order

    settings = _effective_settings(root=root)
    configure_logging("WARNING")
    workspace = settings.workspace()

    ignore = read_ignore_list(workspace.ignore_file)
    if ignore.error is not None:
        console.print(f"[yellow]{ignore.error}[/yellow]")

    try:
        batch = load_descriptors(workspace.images_dir, ignore.skip_set)
        keys = order(batch)
    except (LoadError, CyclicDependencyError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    entries = [
        {
            "key": key,
            "from": batch[key].parent_reference,
            "internal": is_internal(batch, key),
            "ancestors": ancestors_of(batch, key),
        }
        for key in keys
    ]

    if json_output:
        console.print(json.dumps(entries, indent=2))
        return

    if not entries:
        console.print("[yellow]No images found[/yellow]")
        return

    console.print(f"[bold]Build order ({len(entries)} image(s)):[/bold]")
    for position, entry in enumerate(entries, start=1):
        kind = "internal" if entry["internal"] else "external"
        console.print(f"  {position}. [green]{entry['key']}[/green] ({kind})")
        console.print(f"      From: {entry['from']}")
        if entry["ancestors"]:
            console.print(f"      Ancestors: {' -> '.join(entry['ancestors'])}")


@app.command()
def build(
    image: Annotated[
        str,
        typer.Argument(help="Docker image to build (only 'all' is supported)"),
    ] = "all",
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Process the images but don't build them"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Print additional debugging information"),
    ] = False,
    mode: Annotated[
        str | None,
        typer.Option(
            "--mode", "-m", help="Batch mode: fail-fast or best-effort (default)"
        ),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", "-r", help="Project root (default: current dir)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build the docker images found under images/ in dependency order."""
    from imagechain.builds.pipeline import (
        BuildPipeline,
        UnsupportedSelectionError,
        validate_selection,
    )
    from imagechain.descriptors.loader import LoadError
    from imagechain.planning.dependencies import CyclicDependencyError

    try:
        validate_selection(image)
    except UnsupportedSelectionError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return

    settings = _effective_settings(root=root, debug=debug, mode=mode)
    configure_logging(settings.log_level)

    pipeline = BuildPipeline(settings.workspace(), settings)
    try:
        result = pipeline.run(selection=image, dry_run=dry_run)
    except (LoadError, CyclicDependencyError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(json.dumps(result.to_dict(), indent=2))
    else:
        if result.ignore_error:
            console.print(f"[yellow]Error: {result.ignore_error}[/yellow]")
        title = "Build Results (dry mode):" if dry_run else "Build Results:"
        console.print()
        console.print(f"[bold]{title}[/bold]")
        for checkout in result.failed_checkouts:
            console.print(
                f"  [red]✗ checkout {checkout.url}: {checkout.error_message}[/red]"
            )
        for r in result.images:
            style = STATE_STYLES.get(r.state, "white")
            console.print(f"  [{style}]{r.state.value:<8} {r.key}[/{style}]")
            if r.error_message:
                console.print(f"      Error: {r.error_message}")
            if r.artifact:
                console.print(f"      {r.artifact.path}")
        if result.stopped_early:
            console.print("  [yellow]Stopped early (fail-fast mode)[/yellow]")

    if not result.success:
        raise typer.Exit(code=1)


__all__ = ["app"]
