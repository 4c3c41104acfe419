"""
Subtitle track selection and download.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from rich.markup import escape

from aniwatch_dl.exceptions import DownloadError
from aniwatch_dl.models.config import SubtitleMode, SubtitlePolicy
from aniwatch_dl.models.episode import SubtitleTrack
from aniwatch_dl.utils.path import subtitle_path

from .downloader import Downloader

log = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "english"


def _first_matching(
    tracks: Sequence[SubtitleTrack], needle: str
) -> Optional[SubtitleTrack]:
    needle = needle.lower()
    for track in tracks:
        if needle in track.language.lower():
            return track
    return None


def select_subtitles(
    tracks: Sequence[SubtitleTrack], policy: SubtitlePolicy
) -> List[SubtitleTrack]:
    """
    Chooses which subtitle tracks to download.

    - ``none``: nothing.
    - ``default``: the first English track, else the first track.
    - ``all``: every track.
    - language codes: for each code, the first track whose language contains
      it; duplicates (by URL) are dropped.
    """
    if not tracks or policy.mode is SubtitleMode.NONE:
        return []

    if policy.mode is SubtitleMode.ALL:
        return list(tracks)

    if policy.mode is SubtitleMode.DEFAULT:
        return [_first_matching(tracks, DEFAULT_LANGUAGE) or tracks[0]]

    selected: List[SubtitleTrack] = []
    seen_urls = set()
    for code in policy.languages:
        track = _first_matching(tracks, code)
        if track and track.url not in seen_urls:
            seen_urls.add(track.url)
            selected.append(track)
    return selected


async def download_subtitles(
    downloader: Downloader,
    tracks: Sequence[SubtitleTrack],
    output_base: Path,
    referer: Optional[str] = None,
) -> int:
    """
    Downloads subtitle tracks next to the episode video.

    Failures are logged as warnings and never raised.

    Returns:
        The number of subtitle files written.
    """
    if not tracks:
        return 0

    log.info(f"  Downloading {len(tracks)} subtitle track(s)...")
    written = 0
    for track in tracks:
        destination = subtitle_path(output_base, track.language)
        log.info(f"    Downloading: {escape(track.language)}")
        try:
            await downloader.download_file(track.url, str(destination), referer=referer)
            written += 1
        except DownloadError as e:
            log.warning(
                f"    [yellow]⚠ Failed to download subtitle: "
                f"{escape(track.language)}[/yellow]"
            )
            log.debug(f"Subtitle download error: {e}")
    return written
