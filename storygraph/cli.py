"""
storygraph.cli - Typer CLI entry point.

Provides all subcommands for the StoryGraph ingest pipeline.
"""

from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from storygraph import __version__
from storygraph.config import StoryGraphConfig, get_access_token, load_config, write_config
from storygraph.discovery import LocalFolderLister, crawl
from storygraph.exceptions import ConfigError, ProjectError, StoryGraphError
from storygraph.logging import configure_logging
from storygraph.models import ClipType, MediaCategory
from storygraph.pipeline.orchestrator import Orchestrator
from storygraph.pipeline.phases import Phase
from storygraph.pipeline.poller import StatusPoller
from storygraph.project import Project, compute_file_md5, find_project_dir
from storygraph.registry import AssetRegistry
from storygraph.services.client import create_client_from_config
from storygraph.services.dispatcher import ForensicDispatcher
from storygraph.services.transcode import TranscodeTrigger
from storygraph.utils import format_duration, format_offset, format_size

app = typer.Typer(
    name="storygraph",
    help="Forensic media ingest pipeline.\n\n"
    "Discovers footage, extracts technical specs, categorizes and waveform-syncs "
    "camera angles, and exports a multicam timeline for DaVinci Resolve/Premiere Pro.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"storygraph {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """StoryGraph - forensic media ingest and multicam sync."""
    configure_logging(verbose)


def _require_project() -> Path:
    project_dir = find_project_dir()
    if not project_dir:
        console.print("[red]Error: Not in a StoryGraph project directory[/red]")
        console.print("[dim]Run 'storygraph init' first or cd into a project directory[/dim]")
        raise typer.Exit(1)
    return project_dir


def _load_config(project_dir: Path) -> StoryGraphConfig:
    try:
        return load_config(project_dir)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _open_registry(project: Project) -> AssetRegistry:
    registry = project.open_registry()
    if not registry.ready:
        console.print(f"[red]Error: Registry unavailable at {project.registry_dir}[/red]")
        raise typer.Exit(1)
    return registry


def _build_orchestrator(
    project_dir: Path, with_transcoder: bool = False
) -> tuple[Orchestrator, TranscodeTrigger | None]:
    config = _load_config(project_dir)
    registry = _open_registry(Project(project_dir))
    client = create_client_from_config(config, access_token=get_access_token())
    dispatcher = ForensicDispatcher(client, config)
    transcoder = None
    if with_transcoder:
        transcoder = TranscodeTrigger(client, config.services.transcode_url)
    return Orchestrator(registry, dispatcher, config, transcoder=transcoder), transcoder


def _run_phase(phase: Phase, next_step: str | None = None) -> None:
    project_dir = _require_project()
    orchestrator, transcoder = _build_orchestrator(
        project_dir, with_transcoder=phase == Phase.CATEGORIZATION
    )

    try:
        results = orchestrator.run_phase(phase, console=console)
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        if transcoder is not None:
            transcoder.shutdown()

    if transcoder is not None:
        for outcome in transcoder.outcomes:
            if outcome.ok:
                console.print(f"[dim]  Proxy transcode queued: {outcome.filename}[/dim]")
            else:
                console.print(
                    f"[yellow]  Transcode trigger failed for {outcome.filename}: "
                    f"{outcome.error}[/yellow]"
                )

    if results["targets"] == 0:
        console.print(f"[dim]{phase.label}: nothing to do[/dim]")
        return

    console.print(
        f"\n[green]✓[/green] {phase.label}: processed {results['processed']}, "
        f"failed {results['failed']}"
    )
    if results["processed"] > 0 and next_step:
        console.print(f"\nNext step: [cyan]{next_step}[/cyan]")
    if results["failed"] > 0:
        raise typer.Exit(1)


# Project Management


@app.command("init")
def init_project(
    name: str = typer.Argument(..., help="Project name"),
    path: str = typer.Option(".", "--path", "-d", help="Directory to create project in"),
) -> None:
    """Create a new StoryGraph project.

    Creates a project directory with configuration, registry and export folders.
    """
    project_path = Path(path) / name

    if project_path.exists():
        console.print(f"[red]Error: Directory '{project_path}' already exists[/red]")
        raise typer.Exit(1)

    try:
        project = Project(project_path)
        project.create()
    except (OSError, ProjectError) as e:
        console.print(f"[red]Error creating project: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Created project '{name}'")
    console.print(f"[dim]  {project_path}[/dim]")
    console.print("\nNext steps:")
    console.print(f"  cd {name}")
    console.print("  storygraph index <media_folder>")


@app.command("index")
def index_media(
    folder: str = typer.Argument(..., help="Folder to discover media in"),
    no_checksum: bool = typer.Option(
        False, "--no-checksum", help="Skip MD5 checksums (faster on large media)"
    ),
) -> None:
    """Discover audio/video files breadth-first and register them.

    Assets already in the registry are left untouched.
    """
    project_dir = _require_project()
    config = _load_config(project_dir)
    project = Project(project_dir)
    registry = _open_registry(project)

    root = Path(folder).expanduser().resolve()
    if not root.is_dir():
        console.print(f"[red]Error: Not a directory: {root}[/red]")
        raise typer.Exit(1)

    lister = LocalFolderLister(root, checksum=None if no_checksum else compute_file_md5)

    added = 0
    skipped = 0
    try:
        for asset in crawl(lister, ""):
            if registry.get(asset.id) is not None:
                skipped += 1
                continue
            registry.upsert(asset)
            added += 1
            console.print(f"[dim]  + {asset.id} ({asset.media_category.value})[/dim]")
    except (StoryGraphError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not config.media_root:
        config.media_root = str(root)
        write_config(config.model_dump(exclude_none=True), project.config_path)
        console.print(f"[dim]  Media root set to {root}[/dim]")

    console.print(f"\n[green]✓[/green] Indexed {added} asset(s), {skipped} already registered")
    if added > 0:
        console.print("\nNext step: [cyan]storygraph tech[/cyan]")


# Analysis phases


@app.command("tech")
def tech_specs() -> None:
    """Phase 0: extract technical specs (timecode, frame rate, frames)."""
    _run_phase(Phase.TECH_SPECS, next_step="storygraph categorize")


@app.command("categorize")
def categorize() -> None:
    """Phase 1: snippet triage into interview / b-roll."""
    _run_phase(Phase.CATEGORIZATION, next_step="storygraph sync")


@app.command("sync")
def waveform_sync() -> None:
    """Phase 2: waveform-sync interview camera angles against the master audio."""
    _run_phase(Phase.WAVEFORM_SYNC, next_step="storygraph export")


@app.command("analyze")
def deep_analysis() -> None:
    """Phase 3: submit transcription / visual analysis jobs.

    Jobs run remotely; use 'storygraph poll' to collect results.
    """
    _run_phase(Phase.DEEP_ANALYSIS, next_step="storygraph poll --watch")


@app.command("poll")
def poll_jobs(
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep polling until interrupted"),
) -> None:
    """Check outstanding remote analysis jobs."""
    project_dir = _require_project()
    config = _load_config(project_dir)
    registry = _open_registry(Project(project_dir))
    client = create_client_from_config(config, access_token=get_access_token())
    poller = StatusPoller(
        registry,
        ForensicDispatcher(client, config),
        interval=config.poll_interval_seconds,
    )

    if not watch:
        try:
            summary = poller.poll_once()
        except StoryGraphError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)
        finally:
            poller.stop()
        if summary["checked"] == 0:
            console.print("[dim]No outstanding jobs[/dim]")
            return
        console.print(
            f"[green]✓[/green] Checked {summary['checked']} job(s): "
            f"{summary['completed']} completed, {summary['failed']} failed, "
            f"{summary['pending']} pending"
        )
        return

    console.print(
        f"[cyan]Polling every {config.poll_interval_seconds:g}s (Ctrl+C to stop)...[/cyan]"
    )
    poller.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping poller...[/dim]")
    finally:
        poller.stop()


# Registry


@app.command("status")
def show_status() -> None:
    """Show the asset registry and pipeline progress."""
    project_dir = _require_project()
    registry = _open_registry(Project(project_dir))

    try:
        assets = registry.get_all()
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not assets:
        console.print("[yellow]Registry is empty. Run 'storygraph index' first.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Assets ({len(assets)})")
    table.add_column("Asset", style="cyan")
    table.add_column("Category")
    table.add_column("Clip Type", style="magenta")
    table.add_column("Duration", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Stage")
    table.add_column("Job", style="yellow")
    table.add_column("Offset", justify="right", style="green")

    for asset in assets:
        table.add_row(
            asset.id,
            asset.media_category.value,
            asset.clip_type.value,
            format_duration(asset.duration_seconds) if asset.duration_seconds else "-",
            format_size(asset.size_bytes),
            asset.last_stage.value,
            asset.job_state.value,
            format_offset(asset.sync_offset_frames),
        )

    console.print(table)


@app.command("tag")
def tag_asset(
    asset_id: str = typer.Argument(..., help="Asset id (see 'storygraph status')"),
    clip_type: ClipType | None = typer.Option(None, "--clip-type", "-t", help="Clip type"),
    category: MediaCategory | None = typer.Option(None, "--category", "-c", help="Media category"),
) -> None:
    """Manually override an asset's clip type or media category."""
    if clip_type is None and category is None:
        console.print("[red]Error: Provide --clip-type and/or --category[/red]")
        raise typer.Exit(1)

    project_dir = _require_project()
    registry = _open_registry(Project(project_dir))

    changes = {}
    if clip_type is not None:
        changes["clip_type"] = clip_type
    if category is not None:
        changes["media_category"] = category

    try:
        asset = registry.patch(asset_id, **changes)
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] {asset.id}: {asset.media_category.value} / {asset.clip_type.value}"
    )


@app.command("export")
def export_timeline(
    output: str | None = typer.Option(None, "--output", "-o", help="Output file path"),
    name: str | None = typer.Option(None, "--name", "-n", help="Sequence name"),
) -> None:
    """Export the synchronized multicam timeline as XMEML.

    Requires a resolvable master audio and at least one synchronized angle.
    """
    project_dir = _require_project()
    orchestrator, _ = _build_orchestrator(project_dir)
    config = orchestrator.config

    if output:
        output_path = Path(output)
    else:
        output_path = Project(project_dir).export_dir / config.export_filename

    try:
        document = orchestrator.export_timeline(output_path, sequence_name=name)
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Exported to {output_path}")
    console.print(
        f"[dim]  Sequence: {document.sequence_name}, {len(document.angles)} angle(s), "
        f"{document.duration} frames @ {document.fps}fps[/dim]"
    )


@app.command("reset")
def reset_registry(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every asset record from the registry."""
    project_dir = _require_project()
    registry = _open_registry(Project(project_dir))

    try:
        count = registry.count()
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if count == 0:
        console.print("[dim]Registry is already empty[/dim]")
        return

    if not yes:
        typer.confirm(f"Delete all {count} asset record(s)?", abort=True)

    try:
        removed = registry.clear()
    except StoryGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Removed {removed} asset record(s)")


if __name__ == "__main__":
    app()
