"""
HLS manifest handling: variant selection and media playlist resolution.
"""

import logging
from typing import List, Optional

import m3u8
from rich.markup import escape

from aniwatch_dl.exceptions import DownloadError, ManifestError
from aniwatch_dl.models.episode import ManifestVariant, ResolvedPlaylist
from aniwatch_dl.utils.path import resolve_url

from .downloader import Downloader

log = logging.getLogger(__name__)


def parse_variants(playlist: m3u8.M3U8) -> List[ManifestVariant]:
    """
    Extracts the renditions of a master playlist.

    Entries lacking either a resolution or a bandwidth are ignored.
    """
    variants = []
    for entry in playlist.playlists:
        info = entry.stream_info
        if not info or not info.resolution or not info.bandwidth or not entry.uri:
            continue
        width, height = info.resolution
        variants.append(
            ManifestVariant(
                resolution=f"{width}x{height}",
                bandwidth=int(info.bandwidth),
                uri=entry.uri,
            )
        )
    return variants


def _highest_bandwidth(variants: List[ManifestVariant]) -> ManifestVariant:
    best = variants[0]
    for variant in variants[1:]:
        if variant.bandwidth > best.bandwidth:
            best = variant
    return best


def select_variant(
    variants: List[ManifestVariant], keyword: Optional[str] = None
) -> Optional[ManifestVariant]:
    """
    Picks the variant to download.

    With a keyword, the highest-bandwidth variant whose resolution contains it
    wins. Without one, or when nothing matches, the highest-bandwidth variant
    overall wins. Ties keep the earlier entry.
    """
    if not variants:
        return None

    if keyword:
        matches = [v for v in variants if keyword.lower() in v.resolution.lower()]
        if matches:
            return _highest_bandwidth(matches)
        log.warning(
            f"    [yellow]⚠ Resolution '{escape(keyword)}' not found. "
            "Selecting highest bandwidth.[/yellow]"
        )
    return _highest_bandwidth(variants)


class ManifestResolver:
    """Resolves a master manifest URL into an ordered list of segment URLs."""

    def __init__(self, downloader: Downloader):
        self.downloader = downloader

    async def _load(self, url: str, referer: Optional[str], what: str) -> m3u8.M3U8:
        try:
            text = await self.downloader.fetch_text(url, referer=referer)
        except DownloadError as e:
            raise ManifestError(f"Failed to download {what} ({url}): {e}") from e
        return m3u8.loads(text, uri=url)

    async def resolve(
        self,
        master_url: str,
        referer: Optional[str] = None,
        resolution_keyword: Optional[str] = None,
    ) -> ResolvedPlaylist:
        """
        Fetches the manifest and returns the media playlist to download.

        Raises:
            ManifestError: If a playlist cannot be fetched or has no segments.
        """
        log.info("    Downloading master M3U8...")
        master = await self._load(master_url, referer, "master M3U8")

        variants = parse_variants(master)
        variant = select_variant(variants, resolution_keyword)

        if variant is None:
            log.debug("Manifest declares no variants; treating it as the media playlist.")
            media_url, media = master_url, master
        else:
            log.info(
                f"    Selected stream: [bold]{variant.resolution}[/bold] "
                f"(Bandwidth: {variant.bandwidth})"
            )
            media_url = resolve_url(variant.uri, master_url)
            log.debug(f"    Media playlist URL: {media_url}")
            log.info("    Downloading media playlist...")
            media = await self._load(media_url, referer, "media playlist")

        segment_urls = tuple(
            resolve_url(segment.uri, media_url)
            for segment in media.segments
            if segment.uri
        )
        if not segment_urls:
            raise ManifestError(f"No segments found in playlist {media_url}.")

        log.info(f"    Found {len(segment_urls)} segments.")
        return ResolvedPlaylist(
            media_url=media_url, segment_urls=segment_urls, variant=variant
        )
