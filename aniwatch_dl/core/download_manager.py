"""
The main orchestrator: picks the anime, resolves the episode selection and
runs every selected episode through the EpisodeProcessor.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from aniwatch_dl.api.client import AniwatchAPIClient
from aniwatch_dl.cli import prompts
from aniwatch_dl.cli.formatters import print_episode_table
from aniwatch_dl.cli.progress_manager import ProgressManager
from aniwatch_dl.exceptions import SelectionError
from aniwatch_dl.media import Assembler, Downloader, ManifestResolver
from aniwatch_dl.models.config import DownloadConfig
from aniwatch_dl.models.episode import EpisodeRef
from aniwatch_dl.models.stats import RunContext
from aniwatch_dl.storage.workspace import WorkspaceRegistry

from .episode_processor import EpisodeProcessor
from .selection import select_episodes
from .stream_resolver import StreamResolver

log = logging.getLogger(__name__)

AnimeChooser = Callable[[List[Dict[str, Any]], str], Awaitable[Optional[Dict[str, Any]]]]


class DownloadManager:
    """Orchestrates the entire download process for one anime."""

    def __init__(
        self,
        config: DownloadConfig,
        api_client: AniwatchAPIClient,
        progress_manager: ProgressManager,
        downloader: Optional[Downloader] = None,
        assembler: Optional[Assembler] = None,
        console: Optional[Console] = None,
        choose_anime: AnimeChooser = prompts.choose_anime,
        ask_selection: Callable[[], str] = prompts.ask_episode_selection,
        stream_resolver: Optional[StreamResolver] = None,
    ):
        self.config = config
        self.api_client = api_client
        self.progress_manager = progress_manager
        self.downloader = downloader or Downloader(
            user_agent=config.user_agent,
            max_workers=config.threads,
            request_timeout=config.segment_timeout,
        )
        self.assembler = assembler
        self.console = console or Console()
        self.choose_anime = choose_anime
        self.ask_selection = ask_selection
        self.stream_resolver = stream_resolver or StreamResolver(api_client)
        self.run = RunContext()

    async def resolve_anime(self) -> Tuple[str, str]:
        """
        Determines the anime to download, by ID or by interactive search.

        Returns:
            The anime ID and its display title.

        Raises:
            SelectionError: If no anime could be found or none was chosen.
        """
        if self.config.anime_id:
            if self.config.anime_name:
                log.warning(
                    "[yellow]⚠ Both an anime name and an ID were given; "
                    "using the ID.[/yellow]"
                )
            anime_id = self.config.anime_id
            log.info(f"Fetching title for anime ID: [bold]{escape(anime_id)}[/bold]")
            info = await self.api_client.fetch_anime_info(anime_id)
            title = info.get("name") or anime_id
            log.info(f"[green]✓ Found Anime:[/green] [bold]{escape(title)}[/bold]")
            return anime_id, title

        term = self.config.anime_name
        log.info(f"Searching for anime: [bold]{escape(term)}[/bold]")
        results = await self.api_client.search(term)
        if not results:
            raise SelectionError(f"No anime found for '{term}'.")

        selected = await self.choose_anime(results, term)
        if not selected or not selected.get("id"):
            raise SelectionError("No anime selected.")

        anime_id = str(selected["id"])
        title = selected.get("name") or anime_id
        log.info(
            f"[green]✓ Selected Anime:[/green] [bold]{escape(title)}[/bold] "
            f"(ID: {escape(anime_id)})"
        )
        return anime_id, title

    def resolve_episode_selection(
        self, episodes: List[EpisodeRef]
    ) -> List[EpisodeRef]:
        """Applies the configured (or prompted) selection to the episode list."""
        expression = self.config.episodes
        if not expression:
            print_episode_table(self.console, self.run.anime_title, episodes)
            expression = self.ask_selection()
            if not expression:
                raise SelectionError("No episode selection provided.")

        selected, _ = select_episodes(expression, episodes)
        return selected

    async def execute_downloads(self) -> RunContext:
        """Runs the whole session and returns its RunContext."""
        try:
            await self._execute()
        finally:
            await self.downloader.close()
        return self.run

    async def _execute(self) -> None:
        anime_id, title = await self.resolve_anime()
        self.run.anime_id = anime_id
        self.run.anime_title = title

        log.info(f"Fetching episode list for [bold]{escape(title)}[/bold]...")
        total, episodes = await self.api_client.fetch_episodes(anime_id)
        if not episodes:
            log.info(f"No episodes found for {escape(title)}. Exiting.")
            return
        self.run.total_episodes = max(total, len(episodes))
        log.info(f"[green]✓ Found {len(episodes)} episodes.[/green]")

        selected = self.resolve_episode_selection(episodes)
        if not selected:
            log.info("No episodes selected based on input. Exiting.")
            return
        self.run.episodes_planned = len(selected)

        workspaces = None
        if not self.config.list_only:
            workspaces = WorkspaceRegistry(
                self.config.temp_parent, anime_id, keep=self.config.debug
            )

        processor = EpisodeProcessor(
            self.config,
            self.run,
            self.stream_resolver,
            self.downloader,
            ManifestResolver(self.downloader),
            self.assembler,
            workspaces,
            self.progress_manager,
            console=self.console,
        )

        try:
            for position, episode in enumerate(selected, start=1):
                log.info(
                    f"\n[magenta]>>> Processing Episode {episode.number} "
                    f"({position}/{len(selected)}) <<<[/magenta]"
                )
                await processor.process_episode(episode)
        finally:
            if workspaces:
                workspaces.cleanup()
