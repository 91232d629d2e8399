"""Command-line interface for the HEIC batch converter."""

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from heic_batch import __version__
from heic_batch.config import create_config
from heic_batch.controller import PipelineController
from heic_batch.errors import ConversionError
from heic_batch.filesystem import FileSystemHandler
from heic_batch.logging_config import setup_logging
from heic_batch.models import BatchOutcome, ImageFormat, SourceItem
from heic_batch.notifications import Notification, NotificationKind
from heic_batch.preferences import InMemoryPreferencesStore, JsonPreferencesStore

# Create console for rich output
console = Console()


def display_notification(notification: Notification) -> None:
    """Print a pipeline notification.

    Completion notices are summarized in the table instead.
    """
    if notification.kind is NotificationKind.CONVERSION_COMPLETE:
        return
    if notification.destructive:
        console.print(f"[red]✗[/red] {notification.title}: {notification.message}")
    else:
        console.print(f"[yellow]![/yellow] {notification.title}: {notification.message}")


def display_summary(outcome: BatchOutcome, skipped: int, saved: list[Path]) -> None:
    """Display a summary of the conversion.

    Args:
        outcome: Result of the conversion pass
        skipped: Files that never entered the pipeline
        saved: Paths of the written files
    """
    table = Table(title="Conversion Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Total Files", str(outcome.total + skipped))
    table.add_row("Successful", f"[green]{outcome.succeeded}[/green]")
    table.add_row("Failed", f"[red]{outcome.failed_count}[/red]")
    table.add_row("Skipped", f"[yellow]{skipped}[/yellow]")
    table.add_row("Success Rate", f"{outcome.success_rate():.1f}%")
    table.add_row("Total Time", f"{outcome.total_time:.2f}s")

    console.print()
    console.print(table)

    if outcome.failed:
        console.print()
        console.print("[bold red]Failed Conversions:[/bold red]")
        for failure in outcome.failed:
            console.print(f"  [red]✗[/red] {failure.item.source.name}: {failure.message}")

    if saved:
        console.print()
        for path in saved:
            console.print(f"  [green]✓[/green] {path}")


def handle_error(error: Exception) -> None:
    """Display a formatted error message.

    Args:
        error: Exception to display
    """
    console.print(f"[bold red]Error:[/bold red] {str(error)}", style="red")


def read_sources(files: list[Path], filesystem: FileSystemHandler) -> list[SourceItem]:
    """Read input files, reporting and skipping the unreadable ones."""
    sources = []
    for path in files:
        try:
            sources.append(filesystem.read_source(path))
        except ConversionError as e:
            console.print(f"[yellow]⊘[/yellow] Skipped: {path.name} - {e}")
    return sources


async def run_conversion(
    controller: PipelineController,
    sources: list[SourceItem],
    target_format: ImageFormat | None,
    quality: float | None,
) -> BatchOutcome | None:
    """Apply the requested target, then convert the sources with a progress bar.

    Returns:
        BatchOutcome of the submission, or None if no file was accepted
    """
    if target_format is not None:
        await controller.set_format(target_format)
    if quality is not None:
        await controller.set_quality(quality)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(
            f"[cyan]Converting to {controller.format.value.upper()}...", total=100
        )
        controller.progress_callback = lambda value: progress.update(task, completed=value)
        try:
            outcome = await controller.submit_files(sources)
        finally:
            controller.progress_callback = None
        progress.update(task, completed=100, description="[green]Conversion complete!")

    return outcome


@click.command()
@click.argument(
    "files",
    nargs=-1,
    type=click.Path(exists=True, path_type=Path),
    required=False,
)
@click.option(
    "--format",
    "-f",
    "target_format",
    type=click.Choice(["jpg", "jpeg", "png", "webp"], case_sensitive=False),
    default=None,
    help="Target format. Default: last used, or jpg.",
)
@click.option(
    "--quality",
    "-q",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Quality for lossy formats (0-1). Ignored for png.",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for converted files. Default: current directory.",
)
@click.option("--max-files", type=click.IntRange(min=1), default=None, help="Batch cap.")
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=None,
    help="Images converted concurrently.",
)
@click.option(
    "--stall-timeout",
    type=click.FloatRange(min=0.0, min_open=True),
    default=None,
    help="Seconds before a conversion without progress is retried.",
)
@click.option(
    "--prefs",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON file remembering the last format and qualities.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging.",
)
@click.option(
    "--version",
    is_flag=True,
    default=False,
    help="Show version information and exit.",
)
@click.help_option("--help", "-h")
def main(
    files: tuple[Path, ...],
    target_format: str | None,
    quality: float | None,
    output_dir: Path | None,
    max_files: int | None,
    chunk_size: int | None,
    stall_timeout: float | None,
    prefs: Path | None,
    verbose: bool,
    version: bool,
) -> None:
    """Convert HEIC/HEIF images to JPG, PNG or WEBP.

    FILES: One or more HEIC files to convert. Supports wildcards (e.g., *.heic).

    Examples:

        # Convert to JPG with the default quality
        heic-batch photo.heic

        # Convert a batch to WEBP at quality 0.8
        heic-batch *.heic --format webp --quality 0.8

        # Convert into an output directory
        heic-batch *.heic --output-dir ./converted
    """
    if version:
        console.print(f"HEIC Batch Converter v{__version__}")
        sys.exit(0)

    try:
        file_list = list(files)
        if not file_list:
            console.print("[bold red]Error:[/bold red] No files specified.", style="red")
            sys.exit(1)

        logger = setup_logging(verbose=verbose)
        # Format and quality are applied through the controller so they persist.
        config = create_config(
            max_files=max_files,
            chunk_size=chunk_size,
            stall_timeout=stall_timeout,
            verbose=verbose,
        )
        preferences = JsonPreferencesStore(prefs) if prefs else InMemoryPreferencesStore()
        controller = PipelineController(
            config, preferences, logger=logger, notify=display_notification
        )

        if verbose:
            console.print(f"[cyan]Format:[/cyan] {controller.format.value}")
            console.print(f"[cyan]Quality:[/cyan] {controller.quality:g}")
            console.print(f"[cyan]Max Files:[/cyan] {config.max_files}")
            console.print(f"[cyan]Chunk Size:[/cyan] {config.chunk_size}")
            console.print()

        filesystem = FileSystemHandler(logger)
        sources = read_sources(file_list, filesystem)

        console.print(f"Converting [cyan]{len(sources)}[/cyan] files...")
        outcome = asyncio.run(
            run_conversion(
                controller,
                sources,
                ImageFormat.parse(target_format) if target_format else None,
                quality,
            )
        )
        if outcome is None:
            console.print("[bold red]Error:[/bold red] No files were converted.", style="red")
            sys.exit(1)

        saved = filesystem.save_all(controller.items, output_dir or Path.cwd())
        skipped = len(file_list) - outcome.total
        display_summary(outcome, skipped, saved)
        controller.close()

        if outcome.failed:
            sys.exit(1)

    except Exception as e:
        handle_error(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
