"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from icy_ripper import __version__
from icy_ripper.core.session import RipSession, probe_stream
from icy_ripper.exceptions import IcyRipperError
from icy_ripper.media import Tagger, TrackWriter
from icy_ripper.models.config import RipConfig
from icy_ripper.models.stats import RipStats
from icy_ripper.storage.config_manager import ConfigManager
from icy_ripper.stream.source import close_connection_pool, open_source
from icy_ripper.utils.formatting import parse_size
from icy_ripper.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_headers_panel,
    print_output_template_help,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("icy_ripper")

app = typer.Typer(
    name="icy-ripper",
    help=(
        "Record ICY/Shoutcast internet radio streams into one file per track."
        " Use 'icy-ripper <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "icy-ripper"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration file."
    ),
    output_help: bool = typer.Option(
        False,
        "--output-help",
        help="Show help for track file name templates and exit.",
        is_eager=True,
    ),
):
    """ICY Stream Ripper CLI"""
    if output_help:
        print_output_template_help()
        raise typer.Exit()

    if version:
        console.print(f"[bold]icy-ripper[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 0:
        log_level = "WARNING"
    logging.getLogger("icy_ripper").setLevel(log_level)

    if show_config:
        try:
            config_data = ConfigManager(CONFIG_FILE).get_config_as_dict()
        except IcyRipperError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config()
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to record! Try: [cyan]icy-ripper rip <URL>[/cyan]")


def save_session_stats(config: RipConfig, stats: RipStats, duration_s: float):
    """Appends the session's stats to a history file."""
    stats_file = Path(config.config_path) / "session_history.jsonl"
    try:
        stats_file.parent.mkdir(parents=True, exist_ok=True)
        with open(stats_file, "a", encoding="utf-8") as f:
            session_data = {
                "timestamp": int(time.time()),
                "source": config.source,
                "station": stats.station,
                "tracks_started": stats.tracks_started,
                "metadata_blocks": stats.metadata_blocks,
                "metadata_skipped": stats.metadata_skipped,
                "bytes_written": stats.bytes_written,
                "capacity_reached": stats.capacity_reached,
                "duration_seconds": round(duration_s, 2),
            }
            json.dump(session_data, f)
            f.write("\n")
    except OSError as e:
        log.warning(f"[yellow]Could not save session stats:[/] {e}")


@app.command()
def rip(
    source: str = typer.Argument(
        ..., help="Stream URL (http/https) or a raw capture file."
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output-dir", help="Directory for the recorded tracks."
    ),
    output_template: str | None = typer.Option(
        None,
        "-t",
        "--template",
        help="Track file name template. See icy-ripper --output-help.",
    ),
    max_bytes: str | None = typer.Option(
        None,
        "-m",
        "--max-bytes",
        help="Stop after writing this much audio (e.g. 700M, 2G). 0 = unlimited.",
    ),
    tag_tracks: bool | None = typer.Option(
        None, "--tag/--no-tag", help="Write ID3 tags to finished MP3 tracks."
    ),
    log_json: bool | None = typer.Option(
        None, "--json-log/--no-json-log", help="Also write a JSON lines event log."
    ),
    no_progress: bool = typer.Option(
        False, "--no-progress", help="Do not show the live progress display."
    ),
):
    """Record a stream, splitting it into tracks by its metadata."""
    cli_options = {
        key: value
        for key, value in {
            "source": source,
            "output_dir": output_dir,
            "output_template": output_template,
            "tag_tracks": tag_tracks,
            "log_json": log_json,
        }.items()
        if value is not None
    }
    if max_bytes is not None:
        try:
            cli_options["max_bytes"] = parse_size(max_bytes)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e

    async def _rip_async() -> tuple[RipConfig, RipStats, float]:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        log_dir = CONFIG_DIR / "logs" if config.log_json else None
        base_logger, rip_logger = create_structured_logger(log_dir, config.log_json)
        base_logger.set_session_context(source=config.source)

        writer = TrackWriter(Path(config.output_dir).expanduser(), config.max_bytes)
        tagger = Tagger() if config.tag_tracks else None
        start_time = time.monotonic()
        try:
            stream_source = open_source(config.source, config)
            async with ProgressManager(console, enabled=not no_progress) as progress:
                session = RipSession(
                    config,
                    stream_source,
                    writer,
                    tagger=tagger,
                    logger=rip_logger,
                    progress=progress,
                )
                console.print(
                    f"[bold cyan]🎙  Recording[/bold cyan] [dim]{config.source}[/dim]"
                )
                stats = await session.run()
        finally:
            await writer.close()
            await close_connection_pool()
            base_logger.close()
        return config, stats, time.monotonic() - start_time

    try:
        config, stats, duration = asyncio.run(_rip_async())
    except IcyRipperError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_summary_panel(stats, duration)
    if config.save_history:
        save_session_stats(config, stats, duration)


@app.command()
def probe(
    source: str = typer.Argument(
        ..., help="Stream URL (http/https) or a raw capture file."
    ),
):
    """Show the station headers and what is playing now, without recording."""

    async def _probe_async():
        config = ConfigManager(CONFIG_FILE).load_config({"source": source})
        try:
            return await probe_stream(open_source(config.source, config))
        finally:
            await close_connection_pool()

    try:
        with console.status("[cyan]Waiting for stream metadata...[/cyan]"):
            headers, metadata = asyncio.run(_probe_async())
    except IcyRipperError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    if headers is None:
        console.print("[red]✗ The stream ended before its headers were complete.[/red]")
        raise typer.Exit(code=1)
    print_headers_panel(headers, metadata)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except IcyRipperError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
