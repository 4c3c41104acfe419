"""
Shared fakes for the network collaborators of the download pipeline.
"""

import io
import os

import pytest
from rich.console import Console

from aniwatch_dl.cli.progress_manager import ProgressManager
from aniwatch_dl.exceptions import APIError, DownloadError
from aniwatch_dl.models.config import DownloadConfig
from aniwatch_dl.models.stats import RunContext


class FakeDownloader:
    """Serves canned playlists and file bodies keyed by URL."""

    def __init__(self, texts=None, files=None, failing=()):
        self.texts = dict(texts or {})
        self.files = dict(files or {})
        self.failing = set(failing)
        self.text_calls = []
        self.file_calls = []
        self.closed = False

    async def fetch_text(self, url, referer=None):
        self.text_calls.append((url, referer))
        if url not in self.texts:
            raise DownloadError(f"Failed to fetch {url}: 404")
        return self.texts[url]

    async def download_file(self, url, destination_path, referer=None):
        self.file_calls.append((url, destination_path, referer))
        if url in self.failing or url not in self.files:
            raise DownloadError(f"Failed to download {url}")
        body = self.files[url]
        os.makedirs(os.path.dirname(destination_path), exist_ok=True)
        with open(destination_path, "wb") as f:
            f.write(body)
        return len(body)

    async def close(self):
        self.closed = True


class FakeAPIClient:
    """Answers catalog calls from in-memory data."""

    def __init__(
        self,
        servers=None,
        sources=None,
        search_results=None,
        anime_info=None,
        episodes=None,
        total_episodes=None,
    ):
        self.servers = servers or {"sub": ["hd-1"], "dub": []}
        # Either one payload for every call, or a list consumed call by call.
        self.sources = sources
        self.search_results = search_results or []
        self.anime_info = anime_info or {}
        self.episodes = episodes or []
        self.total_episodes = total_episodes
        self.calls = []

    async def search(self, query):
        self.calls.append(("search", query))
        return self.search_results

    async def fetch_anime_info(self, anime_id):
        self.calls.append(("info", anime_id))
        if not self.anime_info:
            raise APIError(f"No information returned for anime ID '{anime_id}'.")
        return self.anime_info

    async def fetch_episodes(self, anime_id):
        self.calls.append(("episodes", anime_id))
        total = (
            self.total_episodes
            if self.total_episodes is not None
            else len(self.episodes)
        )
        return total, list(self.episodes)

    async def fetch_servers(self, episode_id):
        self.calls.append(("servers", episode_id))
        return self.servers

    async def fetch_sources(self, episode_id, server, category):
        self.calls.append(("sources", episode_id, server, category))
        response = self.sources
        if isinstance(self.sources, list):
            response = self.sources.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeAssembler:
    """Records assemble() calls and writes a placeholder output file."""

    def __init__(self):
        self.calls = []

    async def assemble(self, segment_paths, title, number, output_path):
        self.calls.append((list(segment_paths), title, number, output_path))
        with open(output_path, "wb") as f:
            for path in segment_paths:
                with open(path, "rb") as segment:
                    f.write(segment.read())


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO(), force_terminal=False, width=200)


@pytest.fixture
def progress(quiet_console):
    return ProgressManager(quiet_console, disabled=True)


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        settings = {
            "api_url": "http://api.local",
            "video_dir": str(tmp_path / "videos"),
            "anime_id": "show-123",
        }
        settings.update(overrides)
        return DownloadConfig(**settings)

    return _make


@pytest.fixture
def run_context():
    return RunContext(anime_id="show-123", anime_title="Show", total_episodes=12)
