"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from icy_ripper.core.icy import IcyHeaders, StreamMetadata
from icy_ripper.models.config import RipConfig
from icy_ripper.models.stats import RipStats
from icy_ripper.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "MissingMetaIntError": [
            "• The server did not announce an ICY metadata interval.",
            "• Check that the URL points at the stream itself, not a playlist"
            " (.pls/.m3u).",
            "• Some servers only send metadata to specific players.",
        ],
        "StreamConnectionError": [
            "• Check the stream URL and your internet connection.",
            "• The station may be offline or have reached its listener limit.",
            "• Increase 'connect_timeout' or 'max_attempts' in the config file.",
        ],
        "ConfigurationError": [
            "• Run `icy-ripper validate` to see the offending setting.",
            "• Run `icy-ripper init --force` to write a fresh config file.",
        ],
        "StateMachineError": [
            "• This is a bug in the demultiplexer setup. Please report it.",
        ],
        "TrackWriterError": [
            "• Check that the output directory exists and is writable.",
            "• Check the free space on the output disk.",
        ],
        "TimeoutError": [
            "• The stream stopped sending data.",
            "• Increase 'read_timeout' in the config file.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration file contents."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: RipConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    limit = format_size(config.max_bytes) if config.max_bytes else "Unlimited"
    table.add_row("Output Directory:", config.output_dir)
    table.add_row("Output Template:", f"[dim]{config.output_template}[/dim]")
    table.add_row("Size Limit:", limit)
    table.add_row("ID3 Tagging:", "✓ Enabled" if config.tag_tracks else "✗ Disabled")
    table.add_row("Read Size:", format_size(config.chunk_size))
    table.add_row(
        "Timeouts:",
        f"connect {config.connect_timeout:g}s, read {config.read_timeout:g}s",
    )
    table.add_row("Connect Attempts:", str(config.max_attempts))
    table.add_row("JSON Log:", "✓ Enabled" if config.log_json else "✗ Disabled")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_headers_panel(headers: IcyHeaders, metadata: StreamMetadata | None):
    """Displays what a probe learned about a station."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("Status:", headers.status_line or "[dim]none[/dim]")
    table.add_row("Station:", headers.name or "[dim]unknown[/dim]")
    if headers.genre:
        table.add_row("Genre:", headers.genre)
    if headers.bitrate:
        table.add_row("Bitrate:", f"{headers.bitrate} kbps")
    table.add_row("Content-Type:", headers.content_type or "[dim]unknown[/dim]")
    table.add_row("Metadata Interval:", f"{headers.metaint} bytes")
    if headers.url:
        table.add_row("Homepage:", headers.url)

    table.add_row("", "")
    if metadata:
        identity = metadata.identity
        table.add_row("Artist:", identity.artist or "[dim]none[/dim]")
        table.add_row("Title:", identity.title or "[dim]none[/dim]")
        if metadata.stream_url:
            table.add_row("Stream URL:", metadata.stream_url)
    else:
        table.add_row("Now Playing:", "[yellow]No metadata received[/yellow]")

    console.print(
        Panel(table, title="[bold]📻 Station Info[/bold]", border_style="cyan")
    )


def print_summary_panel(stats: RipStats, duration_s: float):
    """Displays the final summary of a rip session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    if stats.station:
        stats_table.add_row("Station:", stats.station)
    stats_table.add_row(
        "✓ Tracks Started:", f"[bold green]{stats.tracks_started}[/bold green]"
    )
    stats_table.add_row("Metadata Blocks:", str(stats.metadata_blocks))
    if stats.metadata_skipped > 0:
        stats_table.add_row(
            "⚠ Malformed Blocks:", f"[yellow]{stats.metadata_skipped}[/yellow]"
        )

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_written)}[/cyan]"
    )
    avg_speed = stats.bytes_written / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    if stats.peak_speed_bps > 0:
        stats_table.add_row(
            "Peak Speed:",
            f"[magenta]{format_size(int(stats.peak_speed_bps))}/s[/magenta]",
        )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.capacity_reached:
        title = "💾 [bold]Size Limit Reached[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Recording Finished[/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_output_template_help():
    """Displays a help panel for track file name templates."""
    console = Console()

    ph_table = Table(
        box=box.ROUNDED,
        title="[bold]Placeholder Reference[/bold]",
        title_style="",
    )
    ph_table.add_column("Placeholder", style="bold magenta", no_wrap=True)
    ph_table.add_column("Description")
    ph_table.add_column("Example")
    ph_table.add_row("{tracknumber}", "Track counter for the session, zero-padded.", "'007'")
    ph_table.add_row("{artist}", "Artist from StreamTitle (may be empty).", "'Daft Punk'")
    ph_table.add_row("{title}", "Title from StreamTitle.", "'Veridis Quo'")
    ph_table.add_row("{station}", "Station name from 'icy-name'.", "'Radio X'")
    ph_table.add_row("{date}", "Date the track started.", "'2026-10-19'")

    cond_grid = Table.grid(expand=True, padding=(0, 1))
    cond_grid.add_row(
        "[bold cyan]Syntax:[/bold cyan]", "`%{?key,value_if_true|value_if_false}`"
    )
    cond_grid.add_row(
        "[bold cyan]Default:[/bold cyan]",
        "`{tracknumber} - %{?artist,{artist} - |}{title}`",
    )
    cond_grid.add_row(
        "  ↳ Result:", "`007 - Daft Punk - Veridis Quo.mp3`", style="dim"
    )
    cond_grid.add_row(
        "• Folder per station:", "`{station}/{date}/{tracknumber} - {title}`"
    )

    console.print(ph_table)
    console.print(
        Panel(
            cond_grid,
            title="[bold]Conditional Logic[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
