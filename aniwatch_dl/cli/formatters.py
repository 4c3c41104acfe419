"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aniwatch_dl.models.config import DownloadConfig
from aniwatch_dl.models.episode import EpisodeRef, StreamSource
from aniwatch_dl.models.stats import RunContext
from aniwatch_dl.utils.formatting import (
    format_duration,
    format_episode_list,
    format_size,
)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Set ANIWATCH_API_URL to the base URL of your AniWatch API instance.",
            "• Check the values in ~/.config/aniwatch-dl/config.ini.",
            "• Run `aniwatch-dl config` to see the effective settings.",
        ],
        "DependencyError": [
            "• Install ffmpeg and make sure it is on your PATH.",
            "• Use --list to print stream links without downloading.",
        ],
        "APIError": [
            "• Make sure your AniWatch API instance is running and reachable.",
            "• Double-check the anime ID passed with -i.",
            "• Please try again in a few minutes.",
        ],
        "SelectionError": [
            "• Try a different or shorter search term with -a.",
            "• Pass the anime ID directly with -i.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The API or media host might be temporarily unavailable.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Try increasing --timeout or reducing --threads.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with --debug for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: DownloadConfig):
    """Displays the effective configuration."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    values: dict[str, Any] = {
        "api_url": config.api_url,
        "video_dir": config.video_dir,
        "temp_dir": config.temp_parent,
        "audio_type": config.audio_type.value,
        "subtitles": str(config.subtitles),
        "server": config.server or "[dim](first available)[/dim]",
        "resolution": config.resolution or "[dim](highest bandwidth)[/dim]",
        "threads": config.threads,
        "segment_timeout": config.segment_timeout or "[dim](none)[/dim]",
        "user_agent": f"[dim]{escape(config.user_agent)}[/dim]",
    }
    for key, value in values.items():
        table.add_row(f"{key}:", str(value))

    console.print(
        Panel(
            table,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_episode_table(
    console: Console, anime_title: str, episodes: Sequence[EpisodeRef]
):
    """Displays the episode list so the user can type a selection."""
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Title")
    for episode in episodes:
        table.add_row(episode.number, escape(episode.display_title))

    console.print(
        Panel(
            table,
            title=f"Available episodes for [bold]{escape(anime_title)}[/bold]",
            border_style="cyan",
            expand=False,
        )
    )


def print_episode_links(
    console: Console, anime_title: str, episode: EpisodeRef, source: StreamSource
):
    """Prints the resolved links of one episode (list-only mode)."""
    console.print(f"Anime: {escape(anime_title)}", highlight=False)
    console.print(
        f"Episode {episode.number}: {escape(episode.display_title)}", highlight=False
    )
    console.print(
        f"  Video URL (M3U8: {str(source.is_segmented).lower()}): {source.video_url}",
        highlight=False,
        soft_wrap=True,
    )
    for track in source.subtitle_tracks:
        console.print(
            f"  Subtitle ({escape(track.language or 'N/A')}): {track.url}",
            highlight=False,
            soft_wrap=True,
        )


def print_summary_panel(run: RunContext, list_only: bool = False):
    """Displays the final summary of the download session."""
    console = Console(stderr=True)
    duration_s = run.elapsed

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Planned:", str(run.episodes_planned))
    if list_only:
        stats_table.add_row("✓ Listed:", f"[bold green]{run.succeeded}[/bold green]")
    else:
        stats_table.add_row(
            "✓ Downloaded:", f"[bold green]{run.downloaded}[/bold green]"
        )
    if run.skipped > 0:
        stats_table.add_row("○ Skipped:", f"[yellow]{run.skipped} (exists)[/yellow]")
    if run.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{run.failed}[/bold red]")
        stats_table.add_row(
            "Failed Episodes:", f"[red]{format_episode_list(run.failed_episodes)}[/red]"
        )

    stats_table.add_row("", "")  # Spacer

    if not list_only:
        stats_table.add_row(
            "Total Size:", f"[cyan]{format_size(run.total_size_downloaded)}[/cyan]"
        )
        avg_speed = run.total_size_downloaded / duration_s if duration_s > 0 else 0
        stats_table.add_row(
            "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
        )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if run.has_failures:
        title = "[bold]Download Finished With Errors[/bold]"
        border_color = "red"
    elif list_only:
        title = "[bold]Link Listing Summary[/bold]"
        border_color = "yellow"
    else:
        title = "[bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            subtitle=escape(run.anime_title) if run.anime_title else None,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
