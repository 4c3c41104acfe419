"""
Parallel fetching of HLS media segments.
"""

import asyncio
import logging
import os
from typing import Callable, List, Optional, Sequence

from aniwatch_dl.exceptions import DownloadError
from aniwatch_dl.models.episode import SegmentJob
from aniwatch_dl.utils.path import segment_filename

from .downloader import Downloader

log = logging.getLogger(__name__)


def build_segment_jobs(segment_urls: Sequence[str], workspace: str) -> List[SegmentJob]:
    """Creates one job per segment URL, numbered in playlist order."""
    return [
        SegmentJob(
            index=index,
            source_url=url,
            local_path=os.path.join(workspace, segment_filename(index, url)),
        )
        for index, url in enumerate(segment_urls, start=1)
    ]


class SegmentFetcher:
    """
    Downloads a list of segment jobs with a fixed concurrency ceiling.

    Each job is retried by the underlying Downloader; a job that still fails
    leaves no file behind and is simply counted as missing.
    """

    def __init__(
        self,
        downloader: Downloader,
        max_workers: int = 4,
        on_segment_done: Optional[Callable[[SegmentJob, bool], None]] = None,
    ):
        """
        Args:
            downloader: Transport used for every segment.
            max_workers: Maximum number of segments in flight at once.
            on_segment_done: Called after each job with its success flag.
        """
        self.downloader = downloader
        self.max_workers = max(1, max_workers)
        self.on_segment_done = on_segment_done
        self.bytes_downloaded = 0

    async def fetch_all(
        self, jobs: Sequence[SegmentJob], referer: Optional[str] = None
    ) -> int:
        """
        Fetches every job and returns how many succeeded.

        The caller decides what a partial result means; nothing is raised for
        individual segment failures.
        """
        if not jobs:
            return 0

        semaphore = asyncio.Semaphore(self.max_workers)
        results: List[bool] = [False] * len(jobs)
        log.debug(
            f"Fetching {len(jobs)} segments with {self.max_workers} parallel workers."
        )

        async def fetch_single(position: int, job: SegmentJob) -> None:
            async with semaphore:
                try:
                    size = await self.downloader.download_file(
                        job.source_url, job.local_path, referer=referer
                    )
                except DownloadError as e:
                    log.debug(f"Segment {job.index} failed permanently: {e}")
                else:
                    results[position] = True
                    self.bytes_downloaded += size
            if self.on_segment_done:
                self.on_segment_done(job, results[position])

        await asyncio.gather(
            *(fetch_single(position, job) for position, job in enumerate(jobs))
        )

        success_count = sum(results)
        if success_count < len(jobs):
            failed = [job.index for job, ok in zip(jobs, results) if not ok]
            log.debug(f"Missing segments: {failed}")
        return success_count
