"""
Handles the low-level downloading of files and playlists over HTTP with a
shared connection pool and fixed-delay retries.
"""

import asyncio
import logging
import os
from typing import Optional

import aiofiles
import aiohttp

from aniwatch_dl.exceptions import DownloadError
from aniwatch_dl.models.config import DEFAULT_USER_AGENT
from aniwatch_dl.utils.retry import retry_async

log = logging.getLogger(__name__)

CONNECT_TIMEOUT = 15
CHUNK_SIZE = 262144  # 256 KB


class EmptyResponseError(aiohttp.ClientError):
    """The server answered successfully but sent no content."""


class Downloader:
    """A low-level file downloader with retry logic and a pooled session."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        max_workers: int = 4,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        request_timeout: Optional[int] = None,
    ):
        """
        Args:
            user_agent: User-Agent header for every media request.
            max_workers: Expected number of concurrent transfers, used to size
                the connection pool.
            max_attempts: Attempts per file before giving up.
            retry_delay: Fixed pause between attempts, in seconds.
            request_timeout: Optional overall limit for a single transfer.
        """
        self.user_agent = user_agent
        self.max_workers = max_workers
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the pooled session used for all media requests."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_workers * 2,
                limit_per_host=self.max_workers,
                ttl_dns_cache=600,
                enable_cleanup_closed=True,
                ssl=False,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=CONNECT_TIMEOUT, sock_read=90
                ),
                headers={"User-Agent": self.user_agent},
            )
            log.debug(f"Created download pool with limit_per_host={self.max_workers}")
        return self._session

    async def close(self) -> None:
        """Closes the pooled session."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                self._session = None
                log.debug("Downloader connection pool closed.")

    async def __aenter__(self) -> "Downloader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _request_kwargs(self, referer: Optional[str]) -> dict:
        kwargs: dict = {"allow_redirects": True}
        if referer:
            kwargs["headers"] = {"Referer": referer}
        if self.request_timeout:
            kwargs["timeout"] = aiohttp.ClientTimeout(
                total=self.request_timeout, sock_connect=CONNECT_TIMEOUT
            )
        return kwargs

    async def fetch_text(self, url: str, referer: Optional[str] = None) -> str:
        """
        Fetches a small text resource such as an HLS playlist.

        Raises:
            DownloadError: If every attempt fails.
        """

        async def _fetch() -> str:
            session = await self.get_session()
            async with session.get(url, **self._request_kwargs(referer)) as response:
                response.raise_for_status()
                text = await response.text(errors="replace")
                if not text.strip():
                    raise EmptyResponseError(f"Empty response from {url}")
                return text

        try:
            return await retry_async(
                _fetch,
                attempts=self.max_attempts,
                delay=self.retry_delay,
                retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
                description=f"Fetch of '{url}'",
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(f"Failed to fetch {url}: {e}") from e

    async def download_file(
        self, url: str, destination_path: str, referer: Optional[str] = None
    ) -> int:
        """
        Downloads ``url`` to ``destination_path``.

        A failed or empty transfer never leaves a file behind.

        Returns:
            The number of bytes written.

        Raises:
            DownloadError: If every attempt fails.
        """
        os.makedirs(os.path.dirname(destination_path) or ".", exist_ok=True)

        async def _download() -> int:
            session = await self.get_session()
            bytes_downloaded = 0
            try:
                async with session.get(
                    url, **self._request_kwargs(referer)
                ) as response:
                    response.raise_for_status()
                    async with aiofiles.open(destination_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)
                if bytes_downloaded == 0:
                    raise EmptyResponseError(f"Empty response from {url}")
                return bytes_downloaded
            except BaseException:
                _remove_quietly(destination_path)
                raise

        try:
            return await retry_async(
                _download,
                attempts=self.max_attempts,
                delay=self.retry_delay,
                retry_on=(aiohttp.ClientError, asyncio.TimeoutError, OSError),
                description=f"Download of '{os.path.basename(destination_path)}'",
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise DownloadError(f"Failed to download {url}: {e}") from e


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.debug(f"Could not remove partial file '{path}': {e}")
