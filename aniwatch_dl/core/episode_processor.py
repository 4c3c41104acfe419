"""
Handles the processing of a single episode, from source resolution to the
final video file and its subtitles.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from aniwatch_dl.cli.formatters import print_episode_links
from aniwatch_dl.cli.progress_manager import ProgressManager
from aniwatch_dl.exceptions import SegmentFetchError, StreamResolutionError
from aniwatch_dl.media import (
    Assembler,
    Downloader,
    ManifestResolver,
    SegmentFetcher,
    build_segment_jobs,
)
from aniwatch_dl.media.assembler import partial_output_path
from aniwatch_dl.media.subtitles import download_subtitles, select_subtitles
from aniwatch_dl.models.config import DownloadConfig
from aniwatch_dl.models.episode import AcquisitionResult, EpisodeRef, StreamSource
from aniwatch_dl.models.stats import RunContext
from aniwatch_dl.storage.workspace import WorkspaceRegistry
from aniwatch_dl.utils.formatting import format_size
from aniwatch_dl.utils.path import create_dir, episode_output_base

from .stream_resolver import StreamResolver

log = logging.getLogger(__name__)


class EpisodeProcessor:
    """
    Orchestrates the acquisition of a single episode: skip if present,
    resolve the stream, download it (directly or segment by segment),
    assemble, then fetch subtitles.
    """

    def __init__(
        self,
        config: DownloadConfig,
        run: RunContext,
        stream_resolver: StreamResolver,
        downloader: Downloader,
        manifest_resolver: ManifestResolver,
        assembler: Optional[Assembler],
        workspaces: Optional[WorkspaceRegistry],
        progress_manager: ProgressManager,
        console: Optional[Console] = None,
    ):
        self.config = config
        self.run = run
        self.stream_resolver = stream_resolver
        self.downloader = downloader
        self.manifest_resolver = manifest_resolver
        self.assembler = assembler
        self.workspaces = workspaces
        self.progress_manager = progress_manager
        self.console = console or Console()

    def output_base(self, episode: EpisodeRef) -> Path:
        return episode_output_base(
            Path(self.config.video_dir),
            self.run.anime_title,
            episode.number,
            episode.title,
            self.run.total_episodes,
        )

    async def process_episode(self, episode: EpisodeRef) -> AcquisitionResult:
        """
        Manages the complete lifecycle of one episode and records its outcome
        in the run context. Never raises for episode-level failures.
        """
        result = await self._process(episode)
        self.run.record(episode.number, result)
        return result

    async def _process(self, episode: EpisodeRef) -> AcquisitionResult:
        output_base = self.output_base(episode)
        output_path = output_base.with_name(f"{output_base.name}.mp4")

        if output_path.is_file():
            log.info(
                f"  [green]✓ Ep {episode.number} already exists. Skipping.[/green] "
                f"[dim]{escape(output_path.name)}[/dim]"
            )
            return AcquisitionResult.SKIPPED_EXISTS

        log.info(
            f"Processing Episode [bold]{episode.number}[/bold]: "
            f"[bold]{escape(episode.display_title)}[/bold]"
        )

        try:
            source = await self.stream_resolver.resolve(
                episode, self.config.audio_type, self.config.server or None
            )
        except StreamResolutionError as e:
            log.error(f"  [red]✗ Could not get stream details for Ep {episode.number}:[/red] {e}")
            return AcquisitionResult.FAILED

        if self.config.list_only:
            print_episode_links(self.console, self.run.anime_title, episode, source)
            return AcquisitionResult.LISTED

        is_segmented = source.is_segmented
        if not is_segmented and ".m3u8" in source.video_url:
            log.warning(
                "  [yellow]⚠ API reported non-M3U8, but URL suggests otherwise. "
                "Treating as M3U8.[/yellow]"
            )
            is_segmented = True

        create_dir(output_path.parent)
        try:
            if is_segmented:
                await self._download_segmented(episode, source, str(output_path))
            else:
                await self._download_direct(source, str(output_path))
        except Exception as e:
            log.error(
                f"  [red]✗ Failed to download video for Ep {episode.number}:[/red] {e}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            _remove_if_exists(str(output_path))
            return AcquisitionResult.FAILED

        log.info(
            f"[green]✓ Downloaded Ep {episode.number} to "
            f"{escape(output_path.name)}[/green]"
        )

        tracks = select_subtitles(source.subtitle_tracks, self.config.subtitles)
        await download_subtitles(
            self.downloader, tracks, output_base, referer=source.referer
        )
        return AcquisitionResult.SUCCEEDED

    async def _download_direct(self, source: StreamSource, output_path: str) -> None:
        log.info("  Downloading direct video file...")
        temp_path = partial_output_path(output_path)
        try:
            size = await self.downloader.download_file(
                source.video_url, temp_path, referer=source.referer
            )
            os.replace(temp_path, output_path)
        finally:
            _remove_if_exists(temp_path)
        self.run.add_downloaded_bytes(size)
        log.debug(f"Direct download finished ({format_size(size)}).")

    async def _download_segmented(
        self, episode: EpisodeRef, source: StreamSource, output_path: str
    ) -> None:
        playlist = await self.manifest_resolver.resolve(
            source.video_url, source.referer, self.config.resolution or None
        )

        workspace = self.workspaces.create(episode.number)
        task_id = self.progress_manager.add_episode_task(
            f"Ep {episode.number}", len(playlist.segment_urls)
        )
        try:
            jobs = build_segment_jobs(playlist.segment_urls, workspace)
            fetcher = SegmentFetcher(
                self.downloader,
                max_workers=self.config.threads,
                on_segment_done=lambda job, ok: self.progress_manager.advance(
                    task_id, ok
                ),
            )
            log.info(
                f"    Downloading {len(jobs)} segments using "
                f"{self.config.threads} parallel jobs..."
            )
            success_count = await fetcher.fetch_all(jobs, referer=source.referer)
            self.run.add_downloaded_bytes(fetcher.bytes_downloaded)

            if success_count < len(jobs):
                raise SegmentFetchError(success_count, len(jobs))
            log.info(
                f"    [green]✓ All {len(jobs)} segments downloaded "
                f"({format_size(fetcher.bytes_downloaded)}).[/green]"
            )

            await self.assembler.assemble(
                [job.local_path for job in jobs],
                episode.display_title,
                episode.number,
                output_path,
            )
        finally:
            self.progress_manager.remove_task(task_id)
            self.workspaces.release(workspace)


def _remove_if_exists(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
