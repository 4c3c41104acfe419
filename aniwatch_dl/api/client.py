"""
Async client for the AniWatch (hianime) JSON API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from aniwatch_dl.exceptions import APIError
from aniwatch_dl.models.config import DEFAULT_USER_AGENT
from aniwatch_dl.models.episode import EpisodeRef
from aniwatch_dl.utils.retry import retry_async

log = logging.getLogger(__name__)

# The /sources endpoint performs its own referer check.
SOURCES_REFERER = "https://megacloud.club/"


def unwrap_response(url: str, status: int, payload: Any) -> Dict[str, Any]:
    """
    Validates an API response and returns its ``data`` object.

    A body carrying ``"success": false`` is an error. A body with no
    ``success`` field at all is accepted as long as the HTTP status was 2xx.

    Raises:
        APIError: On a non-2xx status, an unsuccessful body, or a missing
        ``data`` field.
    """
    if status < 200 or status >= 300:
        raise APIError(f"API {url} failed (HTTP: {status}).")

    if not isinstance(payload, dict):
        raise APIError(f"API {url} returned an unexpected response body.")

    if "success" in payload:
        if payload.get("success") is not True:
            message = (
                payload.get("message") or payload.get("error") or "Unknown API error"
            )
            raise APIError(f"API {url} not successful. Msg: {message}")
    else:
        log.debug(
            f"API response for {url} missing 'success' field. "
            f"Proceeding as HTTP code was {status}."
        )

    data = payload.get("data")
    if data is None:
        raise APIError(f"Failed to extract 'data' from API response for {url}.")
    return data


class AniwatchAPIClient:
    """
    Async client for a self-hosted AniWatch API instance.

    Transport failures are retried a small number of times with a fixed
    delay; application-level errors are raised immediately as APIError.
    """

    API_PREFIX = "/api/v2/hianime"

    def __init__(
        self,
        base_url: str,
        user_agent: str = DEFAULT_USER_AGENT,
        max_attempts: int = 3,
        retry_delay: float = 3.0,
    ):
        """
        Initializes the API client.

        Args:
            base_url: Root URL of the AniWatch API instance.
            user_agent: User-Agent header sent with every request.
            max_attempts: Attempts per request for transport failures.
            retry_delay: Seconds to wait between attempts.
        """
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=60, connect=15, sock_read=30),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AniwatchAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def api_call(
        self,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        referer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Performs a GET request against the API and returns the ``data`` object.
        """
        await self._initialize_session()
        url = f"{self.base_url}{self.API_PREFIX}{endpoint}"
        headers = {"Referer": referer} if referer else None

        async def _request() -> Tuple[int, Any]:
            log.debug(f"API GET: {url} {params or ''}")
            async with self._session.get(url, params=params, headers=headers) as r:
                try:
                    payload = await r.json(content_type=None)
                except ValueError:
                    payload = None
                return r.status, payload

        try:
            status, payload = await retry_async(
                _request,
                attempts=self.max_attempts,
                delay=self.retry_delay,
                retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
                description=f"API call to {endpoint}",
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise APIError(f"Request to {url} failed: {e}") from e

        return unwrap_response(url, status, payload)

    # Public API Methods
    async def search(self, query: str) -> List[Dict[str, Any]]:
        data = await self.api_call("/search", {"q": query})
        return data.get("animes") or []

    async def fetch_anime_info(self, anime_id: str) -> Dict[str, Any]:
        data = await self.api_call(f"/anime/{anime_id}")
        info = (data.get("anime") or {}).get("info")
        if not info:
            raise APIError(f"No information returned for anime ID '{anime_id}'.")
        return info

    async def fetch_episodes(self, anime_id: str) -> Tuple[int, List[EpisodeRef]]:
        """
        Fetches the episode list of an anime.

        Returns:
            The reported total episode count and the episode references.
        """
        data = await self.api_call(f"/anime/{anime_id}/episodes")
        total = int(data.get("totalEpisodes") or 0)
        episodes = [
            EpisodeRef(
                number=str(item.get("number")),
                stream_id=str(item.get("episodeId")),
                title=item.get("title") or "",
            )
            for item in data.get("episodes") or []
            if item.get("number") is not None and item.get("episodeId")
        ]
        return total, episodes

    async def fetch_servers(self, episode_id: str) -> Dict[str, List[str]]:
        """Returns server names grouped by audio category ('sub', 'dub', ...)."""
        data = await self.api_call(
            "/episode/servers", {"animeEpisodeId": episode_id}
        )
        servers: Dict[str, List[str]] = {}
        for category, entries in data.items():
            if isinstance(entries, list):
                servers[category] = [
                    entry["serverName"]
                    for entry in entries
                    if isinstance(entry, dict) and entry.get("serverName")
                ]
        return servers

    async def fetch_sources(
        self, episode_id: str, server: str, category: str
    ) -> Dict[str, Any]:
        return await self.api_call(
            "/episode/sources",
            {"animeEpisodeId": episode_id, "server": server, "category": category},
            referer=SOURCES_REFERER,
        )
