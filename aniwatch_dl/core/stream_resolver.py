"""
Resolves an episode to a playable stream source through the catalog API.
"""

import logging
from typing import Any, Dict, List, Optional

from rich.markup import escape

from aniwatch_dl.api.client import AniwatchAPIClient
from aniwatch_dl.exceptions import APIError, StreamResolutionError
from aniwatch_dl.models.config import AudioType
from aniwatch_dl.models.episode import EpisodeRef, StreamSource, SubtitleTrack
from aniwatch_dl.utils.retry import retry_async

log = logging.getLogger(__name__)

DEFAULT_MEDIA_REFERER = "https://megacloud.blog/"
SOURCE_ATTEMPTS = 3
SOURCE_RETRY_DELAY = 5.0


class EmptySourcesError(APIError):
    """The sources endpoint answered without any usable payload."""


def choose_server(
    server_names: List[str], keyword: Optional[str]
) -> Optional[str]:
    """
    Picks the first server whose name contains ``keyword`` (case-insensitive),
    or the first server overall when there is no keyword or no match.
    """
    if not server_names:
        return None
    if keyword:
        matches = [name for name in server_names if keyword.lower() in name.lower()]
        if matches:
            return matches[0]
        log.warning(
            f"  [yellow]⚠ Server '{escape(keyword)}' not found; "
            "using first available.[/yellow]"
        )
    return server_names[0]


def parse_stream_source(
    sources_data: Dict[str, Any], server_name: str, audio_type: AudioType
) -> StreamSource:
    """
    Builds a StreamSource from the ``data`` object of the sources endpoint.

    Raises:
        StreamResolutionError: If no video URL is present.
    """
    sources = sources_data.get("sources") or []
    first = sources[0] if sources and isinstance(sources[0], dict) else {}
    video_url = first.get("url")
    if not video_url:
        raise StreamResolutionError(
            f"Video URL is empty for server '{server_name}'."
        )

    is_segmented = first.get("isM3U8")
    if is_segmented is None:
        is_segmented = True

    subtitles = tuple(
        SubtitleTrack(language=track.get("lang") or "sub", url=track["url"])
        for track in sources_data.get("tracks") or []
        if isinstance(track, dict)
        and track.get("url")
        and track.get("lang") != "thumbnails"
    )

    referer = (sources_data.get("headers") or {}).get("Referer")

    return StreamSource(
        video_url=video_url,
        is_segmented=bool(is_segmented),
        subtitle_tracks=subtitles,
        referer=referer or DEFAULT_MEDIA_REFERER,
        server_name=server_name,
        audio_type=audio_type,
    )


class StreamResolver:
    """
    Turns an episode into a StreamSource: lists servers, applies the audio
    fallback and server keyword, then fetches the sources with retries.
    """

    def __init__(
        self,
        api_client: AniwatchAPIClient,
        attempts: int = SOURCE_ATTEMPTS,
        retry_delay: float = SOURCE_RETRY_DELAY,
    ):
        self.api_client = api_client
        self.attempts = attempts
        self.retry_delay = retry_delay

    async def resolve(
        self,
        episode: EpisodeRef,
        audio_type: AudioType,
        server_keyword: Optional[str] = None,
    ) -> StreamSource:
        """
        Resolves one episode to a stream source.

        Raises:
            StreamResolutionError: If no server or no video URL can be obtained.
        """
        log.debug(
            f"Fetching stream details for Ep {episode.number} "
            f"(Type: {audio_type.value})..."
        )
        try:
            servers = await self.api_client.fetch_servers(episode.stream_id)
        except APIError as e:
            raise StreamResolutionError(
                f"Could not list servers for Ep {episode.number}: {e}"
            ) from e

        server_names = servers.get(audio_type.value) or []
        if audio_type is AudioType.DUB and not server_names:
            log.warning(
                f"  [yellow]⚠ No 'dub' servers for Ep {episode.number}. "
                "Falling back to 'sub'...[/yellow]"
            )
            audio_type = AudioType.SUB
            server_names = servers.get(AudioType.SUB.value) or []

        if not server_names:
            raise StreamResolutionError(
                f"No servers of type '{audio_type.value}' found for "
                f"Ep {episode.number}."
            )

        server_name = choose_server(server_names, server_keyword)
        log.info(f"  Selected server: [bold]{escape(server_name)}[/bold]")

        sources_data = await self._fetch_sources(episode, server_name, audio_type)
        source = parse_stream_source(sources_data, server_name, audio_type)
        log.info(
            f"    [green]✓ Video URL found.[/green] (M3U8: {source.is_segmented})"
        )
        log.debug(f"  Using download Referer: {source.referer}")
        return source

    async def _fetch_sources(
        self, episode: EpisodeRef, server_name: str, audio_type: AudioType
    ) -> Dict[str, Any]:
        attempt_counter = {"n": 0}

        async def _attempt() -> Dict[str, Any]:
            attempt_counter["n"] += 1
            log.info(
                f"    Fetching sources (Attempt {attempt_counter['n']}/"
                f"{self.attempts})..."
            )
            data = await self.api_client.fetch_sources(
                episode.stream_id, server_name, audio_type.value
            )
            if not data:
                raise EmptySourcesError("Sources endpoint returned no data.")
            return data

        def _on_retry(attempt: int, error: BaseException) -> None:
            log.warning(
                f"    [yellow]⚠ Failed to fetch sources. Waiting "
                f"{self.retry_delay:g} seconds before retrying...[/yellow]"
            )

        try:
            return await retry_async(
                _attempt,
                attempts=self.attempts,
                delay=self.retry_delay,
                retry_on=(APIError,),
                description=f"Sources for Ep {episode.number}",
                on_retry=_on_retry,
            )
        except APIError as e:
            raise StreamResolutionError(
                f"Failed to fetch sources for Ep {episode.number} after "
                f"{self.attempts} attempts: {e}"
            ) from e
