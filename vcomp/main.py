import typer
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.table import Table
from vcomp.config.loader import load_config
from vcomp.config.models import AppConfig
from vcomp.domain.errors import CompressorError, user_message
from vcomp.domain.events import RequestCancel
from vcomp.domain.models import JobState, QualityTier, SourceVideo, format_size
from vcomp.infrastructure.event_bus import EventBus
from vcomp.infrastructure.ffmpeg import FFmpegEncodingService
from vcomp.infrastructure.ffprobe import FFprobeAdapter
from vcomp.infrastructure.housekeeping import HousekeepingService
from vcomp.infrastructure.logging import setup_logging
from vcomp.pipeline.controller import CompressionSession, JobController
from vcomp.pipeline.prober import MetadataProber
from vcomp.ui.dashboard import Dashboard
from vcomp.ui.keyboard import KeyboardListener
from vcomp.ui.manager import UIManager
from vcomp.ui.state import UIState

app = typer.Typer(help="VCOMP - compress a single video at a chosen quality tier")
console = Console()

def _load(config_path: Optional[Path], scratch_dir: Optional[Path], debug: bool) -> AppConfig:
    config = load_config(config_path)
    if scratch_dir is not None:
        config.general.scratch_dir = scratch_dir
    if debug:
        config.general.debug = True
    return config

def _check_source(source: Path, config: AppConfig):
    if not source.is_file():
        typer.secho(f"Error: {source} does not exist.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if source.suffix.lower() not in config.general.input_extensions:
        allowed = ", ".join(config.general.input_extensions)
        typer.secho(f"Error: unsupported container {source.suffix} (expected {allowed}).", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

@app.command()
def probe(
    source: Path = typer.Argument(..., help="Video file to inspect"),
    config_path: Optional[Path] = typer.Option(Path("conf/vcomp.yaml"), "--config", "-c", help="Path to YAML config"),
):
    """Show size, resolution, orientation and duration of a video."""
    config = _load(config_path, None, False)
    _check_source(source, config)

    prober = MetadataProber(FFprobeAdapter(config.general.ffprobe_path))
    video = SourceVideo(path=source)
    try:
        prober.probe_source(video)
    except CompressorError as e:
        typer.secho(user_message(e.kind, e.message), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    table = Table(title=video.path.name, show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("Size", video.formatted_size)
    table.add_row("Resolution", f"{video.metadata.display_width}×{video.metadata.display_height}")
    table.add_row("Orientation", video.metadata.orientation.label)
    table.add_row("Duration", video.formatted_duration)
    table.add_row("Codec", video.metadata.codec)
    console.print(table)

@app.command()
def compress(
    source: Path = typer.Argument(..., help="Video file to compress (.mp4 or .mov)"),
    quality: Optional[QualityTier] = typer.Option(None, "--quality", "-q", help="Quality tier"),
    config_path: Optional[Path] = typer.Option(Path("conf/vcomp.yaml"), "--config", "-c", help="Path to YAML config"),
    scratch_dir: Optional[Path] = typer.Option(None, "--scratch-dir", help="Override the scratch directory"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Compress one video with live progress; press C to cancel."""
    config = _load(config_path, scratch_dir, debug)
    _check_source(source, config)
    general = config.general

    logger = setup_logging(general.scratch_dir, debug=general.debug)
    logger.info(f"VCOMP started: source={source}, scratch={general.scratch_dir}")

    if general.clean_scratch_on_start:
        HousekeepingService(general.output_extension).cleanup_scratch(
            general.scratch_dir, keep=[source], older_than=general.scratch_stale_after
        )

    bus = EventBus()
    state = UIState()
    manager = UIManager(bus, state)
    controller = JobController(
        service=FFmpegEncodingService(general.ffmpeg_path, debug=general.debug),
        config=general,
        event_bus=bus,
        prober=MetadataProber(FFprobeAdapter(general.ffprobe_path)),
        state=state,
    )
    bus.subscribe(RequestCancel, lambda event: controller.cancel())
    session = CompressionSession(controller, SourceVideo(path=source))

    try:
        session.start(quality or general.default_quality)
    except CompressorError as e:
        logger.error(f"Could not start compression: {e.message}")
        typer.secho(user_message(e.kind, e.message), fg=typer.colors.RED, err=True)
        controller.close()
        raise typer.Exit(code=1)

    keyboard = KeyboardListener(bus)
    keyboard.start()
    interrupted = False
    try:
        with Dashboard(state, console=console):
            try:
                job = controller.wait()
            except KeyboardInterrupt:
                interrupted = True
                controller.cancel()
                job = controller.wait()
    finally:
        keyboard.stop()
        controller.close()

    message = manager.messages[-1] if manager.messages else job.status_text
    if job.state == JobState.COMPLETED:
        console.print(f"[green]{message}[/green]")
        console.print(f"Output: {job.result.output_path} ({format_size(job.result.output_size_bytes)})")
        return
    if job.state == JobState.CANCELLED:
        console.print(f"[yellow]{message}[/yellow]")
        raise typer.Exit(code=130 if interrupted else 0)
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
