"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import contextlib
import logging
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from aniwatch_dl import __version__
from aniwatch_dl.api.client import AniwatchAPIClient
from aniwatch_dl.core.download_manager import DownloadManager
from aniwatch_dl.exceptions import AniwatchDLError, ConfigurationError
from aniwatch_dl.media.assembler import Assembler, find_ffmpeg
from aniwatch_dl.models.config import MAX_THREADS
from aniwatch_dl.models.stats import RunContext
from aniwatch_dl.storage.config_manager import ConfigManager, default_config_path

from .formatters import print_config, print_summary_panel
from .progress_manager import ProgressManager

# Logs and progress go to stderr so that --list output on stdout stays clean.
console = Console(stderr=True)
stdout_console = Console()

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
log = logging.getLogger("aniwatch_dl")

app = typer.Typer(
    name="aniwatch-dl",
    help=(
        "Download anime episodes from a self-hosted AniWatch API instance. "
        "Run without a command to download; see 'aniwatch-dl config' for settings."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

CONFIG_FILE = default_config_path()


def configure_logging(debug: bool, list_only: bool) -> None:
    """Sets the package log level for the current run."""
    if debug:
        level = logging.DEBUG
    elif list_only:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.getLogger("aniwatch_dl").setLevel(level)


def _version_callback(value: bool):
    if value:
        console.print(f"[bold]aniwatch-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    anime: Optional[str] = typer.Option(
        None, "-a", "--anime", help="Anime name to search for."
    ),
    anime_id: Optional[str] = typer.Option(
        None, "-i", "--id", help="Anime ID (takes precedence over --anime)."
    ),
    episodes: Optional[str] = typer.Option(
        None,
        "-e",
        "--episodes",
        help="Episode selection, e.g. '1,3-5,!4', '*', 'L3', 'F2', '5-', '-5'.",
    ),
    server: Optional[str] = typer.Option(
        None, "-S", "--server", help="Preferred server name (substring match)."
    ),
    resolution: Optional[str] = typer.Option(
        None, "-r", "--resolution", help="Preferred resolution keyword, e.g. '1080'."
    ),
    audio: Optional[str] = typer.Option(
        None, "-o", "--audio", help="Audio type: 'sub' (default) or 'dub'."
    ),
    subtitles: Optional[str] = typer.Option(
        None,
        "-L",
        "--subtitles",
        help="Subtitles: 'none', 'default', 'all' or codes like 'eng,spa'.",
    ),
    threads: Optional[int] = typer.Option(
        None,
        "-t",
        "--threads",
        help=f"Parallel segment downloads (default 4, max {MAX_THREADS}).",
    ),
    timeout: Optional[int] = typer.Option(
        None, "-T", "--timeout", help="Timeout in seconds for each segment download."
    ),
    list_only: bool = typer.Option(
        False, "-l", "--list", help="Only print stream links, do not download."
    ),
    debug: bool = typer.Option(
        False, "-d", "--debug", help="Debug logging; keep temporary workspaces."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        is_eager=True,
        callback=_version_callback,
    ),
):
    """AniWatch anime downloader."""
    if ctx.invoked_subcommand is not None:
        configure_logging(debug, list_only=False)
        return

    configure_logging(debug, list_only)

    if not anime and not anime_id:
        raise ConfigurationError(
            "No anime specified. Use -a <name> to search or -i <id>."
        )

    cli_options = {
        "anime_name": anime,
        "anime_id": anime_id,
        "episodes": episodes,
        "server": server,
        "resolution": resolution,
        "audio_type": audio,
        "subtitles": subtitles,
        "threads": threads,
        "segment_timeout": timeout,
        "list_only": list_only,
        "debug": debug,
    }
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    log.debug(f"Effective configuration: {config.model_dump(exclude={'user_agent'})}")

    assembler = None
    if not config.list_only:
        assembler = Assembler(find_ffmpeg())

    async def _download_async() -> RunContext:
        # SIGTERM unwinds like Ctrl-C so temporary workspaces are removed
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, asyncio.current_task().cancel)

        async with AniwatchAPIClient(
            config.api_url, user_agent=config.user_agent
        ) as api_client:
            async with ProgressManager(
                console=console, disabled=config.list_only
            ) as progress_manager:
                manager = DownloadManager(
                    config,
                    api_client,
                    progress_manager,
                    assembler=assembler,
                    console=stdout_console,
                )
                return await manager.execute_downloads()

    run = asyncio.run(_download_async())

    if run.episodes_planned:
        print_summary_panel(run, list_only=config.list_only)
    if run.has_failures:
        raise typer.Exit(code=1)


@app.command(name="config")
def config_command():
    """Show the effective configuration (file, environment and defaults)."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except AniwatchDLError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_config(CONFIG_FILE, config)
