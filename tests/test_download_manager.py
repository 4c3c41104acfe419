import asyncio
import os

import pytest

from aniwatch_dl.core.download_manager import DownloadManager
from aniwatch_dl.core.stream_resolver import StreamResolver
from aniwatch_dl.exceptions import APIError, SelectionError
from aniwatch_dl.models.episode import AcquisitionResult, EpisodeRef

from .conftest import FakeAPIClient, FakeAssembler, FakeDownloader

EPISODES = [
    EpisodeRef(number=str(n), stream_id=f"show-123?ep={n}", title=f"Ep {n}")
    for n in range(1, 6)
]
SOURCES = {"sources": [{"url": "https://cdn.example/video.mp4", "isM3U8": False}]}


def make_manager(config, client, progress, quiet_console, **kwargs):
    downloader = kwargs.pop(
        "downloader",
        FakeDownloader(files={"https://cdn.example/video.mp4": b"video"}),
    )
    return DownloadManager(
        config,
        client,
        progress,
        downloader=downloader,
        assembler=FakeAssembler(),
        console=quiet_console,
        stream_resolver=StreamResolver(client, retry_delay=0),
        **kwargs,
    )


def test_resolve_anime_by_id(make_config, progress, quiet_console):
    client = FakeAPIClient(anime_info={"name": "Show"})
    manager = make_manager(make_config(anime_name="ignored"), client, progress, quiet_console)

    assert asyncio.run(manager.resolve_anime()) == ("show-123", "Show")
    assert ("search", "ignored") not in client.calls


def test_resolve_anime_by_search_uses_chooser(make_config, progress, quiet_console):
    results = [{"id": "a-1", "name": "Alpha"}, {"id": "b-2", "name": "Beta"}]
    client = FakeAPIClient(search_results=results)

    async def choose(found, term):
        assert term == "alp"
        return found[1]

    manager = make_manager(
        make_config(anime_id="", anime_name="alp"),
        client,
        progress,
        quiet_console,
        choose_anime=choose,
    )
    assert asyncio.run(manager.resolve_anime()) == ("b-2", "Beta")


def test_search_without_results_is_a_selection_error(make_config, progress, quiet_console):
    manager = make_manager(
        make_config(anime_id="", anime_name="nothing"),
        FakeAPIClient(),
        progress,
        quiet_console,
    )
    with pytest.raises(SelectionError):
        asyncio.run(manager.resolve_anime())


def test_cancelled_choice_is_a_selection_error(make_config, progress, quiet_console):
    async def choose(found, term):
        return None

    manager = make_manager(
        make_config(anime_id="", anime_name="x"),
        FakeAPIClient(search_results=[{"id": "a"}, {"id": "b"}]),
        progress,
        quiet_console,
        choose_anime=choose,
    )
    with pytest.raises(SelectionError):
        asyncio.run(manager.resolve_anime())


def test_full_run_records_every_selected_episode(make_config, progress, quiet_console):
    client = FakeAPIClient(
        anime_info={"name": "Show"},
        episodes=EPISODES,
        servers={"sub": ["hd-1"]},
        sources=SOURCES,
    )
    downloader = FakeDownloader(files={"https://cdn.example/video.mp4": b"video"})
    manager = make_manager(
        make_config(episodes="2-4,!3", subtitles="none"),
        client,
        progress,
        quiet_console,
        downloader=downloader,
    )

    run = asyncio.run(manager.execute_downloads())

    assert run.results == {
        "2": AcquisitionResult.SUCCEEDED,
        "4": AcquisitionResult.SUCCEEDED,
    }
    assert run.episodes_planned == 2
    assert run.total_episodes == 5
    assert not run.has_failures
    assert downloader.closed


def test_prompted_selection(make_config, progress, quiet_console):
    client = FakeAPIClient(anime_info={"name": "Show"}, episodes=EPISODES, sources=SOURCES)
    manager = make_manager(
        make_config(episodes="", list_only=True),
        client,
        progress,
        quiet_console,
        ask_selection=lambda: "L1",
    )

    run = asyncio.run(manager.execute_downloads())
    assert run.results == {"5": AcquisitionResult.LISTED}


def test_empty_prompted_selection_is_an_error(make_config, progress, quiet_console):
    client = FakeAPIClient(anime_info={"name": "Show"}, episodes=EPISODES)
    manager = make_manager(
        make_config(episodes=""), client, progress, quiet_console, ask_selection=lambda: ""
    )
    with pytest.raises(SelectionError):
        asyncio.run(manager.execute_downloads())


def test_no_episodes_ends_quietly(make_config, progress, quiet_console):
    client = FakeAPIClient(anime_info={"name": "Show"}, episodes=[])
    run = asyncio.run(
        make_manager(make_config(episodes="*"), client, progress, quiet_console).execute_downloads()
    )
    assert run.results == {}
    assert run.episodes_planned == 0


class StallingDownloader(FakeDownloader):
    """Serves the playlist, then hangs on every segment transfer."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.transfer_started = None

    async def download_file(self, url, destination_path, referer=None):
        self.file_calls.append((url, destination_path, referer))
        self.transfer_started.set()
        await asyncio.Event().wait()


def test_cancelled_run_removes_workspaces(make_config, progress, quiet_console):
    playlist = "https://cdn.example/ep1/index.m3u8"
    media = "#EXTM3U\n#EXTINF:10.0,\nseg-1.ts\n#EXTINF:10.0,\nseg-2.ts\n#EXT-X-ENDLIST\n"
    client = FakeAPIClient(
        anime_info={"name": "Show"},
        episodes=EPISODES,
        sources={"sources": [{"url": playlist, "isM3U8": True}]},
    )
    downloader = StallingDownloader(texts={playlist: media})
    config = make_config(episodes="1", subtitles="none")
    manager = make_manager(config, client, progress, quiet_console, downloader=downloader)

    async def cancel_during_transfer():
        downloader.transfer_started = asyncio.Event()
        task = asyncio.create_task(manager.execute_downloads())
        await asyncio.wait_for(downloader.transfer_started.wait(), timeout=5)
        assert [name for name in os.listdir(config.temp_parent) if name.startswith("aniwatch_dl_")]
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancel_during_transfer())

    assert not [name for name in os.listdir(config.temp_parent) if name.startswith("aniwatch_dl_")]
    assert downloader.closed


def test_unresolvable_episode_in_list_mode_counts_as_failure(
    make_config, progress, quiet_console
):
    client = FakeAPIClient(
        anime_info={"name": "Show"},
        episodes=EPISODES,
        sources=[SOURCES, APIError("gone"), APIError("gone"), APIError("gone")],
    )
    manager = make_manager(
        make_config(episodes="1,2", list_only=True), client, progress, quiet_console
    )

    run = asyncio.run(manager.execute_downloads())

    assert run.results == {
        "1": AcquisitionResult.LISTED,
        "2": AcquisitionResult.FAILED,
    }
    assert run.has_failures
