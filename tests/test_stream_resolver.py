import asyncio
import logging

import pytest

from aniwatch_dl.core.stream_resolver import (
    DEFAULT_MEDIA_REFERER,
    StreamResolver,
    choose_server,
    parse_stream_source,
)
from aniwatch_dl.exceptions import APIError, StreamResolutionError
from aniwatch_dl.models.config import AudioType
from aniwatch_dl.models.episode import EpisodeRef, SubtitleTrack

from .conftest import FakeAPIClient

EPISODE = EpisodeRef(number="7", stream_id="show-123?ep=7007", title="Seven")

SOURCES = {
    "sources": [{"url": "https://cdn.example/master.m3u8", "isM3U8": True}],
    "tracks": [
        {"lang": "English", "url": "https://cdn.example/en.vtt"},
        {"lang": "thumbnails", "url": "https://cdn.example/thumbs.vtt"},
    ],
    "headers": {"Referer": "https://media.example/"},
}


def resolve(client, audio=AudioType.SUB, server=None):
    resolver = StreamResolver(client, retry_delay=0)
    return asyncio.run(resolver.resolve(EPISODE, audio, server))


def test_choose_server_matches_keyword_case_insensitively():
    assert choose_server(["hd-1", "HD-2", "vidstream"], "hd-2") == "HD-2"


def test_choose_server_falls_back_to_first(caplog):
    with caplog.at_level(logging.WARNING):
        assert choose_server(["hd-1", "hd-2"], "megacloud") == "hd-1"
    assert "not found" in caplog.text


def test_choose_server_without_keyword():
    assert choose_server(["hd-2", "hd-1"], None) == "hd-2"
    assert choose_server([], "x") is None


def test_parse_stream_source_defaults():
    source = parse_stream_source(
        {"sources": [{"url": "https://cdn.example/video.m3u8"}]},
        "hd-1",
        AudioType.SUB,
    )
    assert source.is_segmented is True
    assert source.referer == DEFAULT_MEDIA_REFERER
    assert source.subtitle_tracks == ()


def test_parse_stream_source_filters_thumbnails():
    source = parse_stream_source(SOURCES, "hd-1", AudioType.SUB)
    assert source.subtitle_tracks == (
        SubtitleTrack(language="English", url="https://cdn.example/en.vtt"),
    )
    assert source.referer == "https://media.example/"


def test_parse_stream_source_requires_url():
    with pytest.raises(StreamResolutionError):
        parse_stream_source({"sources": []}, "hd-1", AudioType.SUB)


def test_resolve_sub():
    client = FakeAPIClient(servers={"sub": ["hd-1", "hd-2"]}, sources=SOURCES)
    source = resolve(client, server="hd-2")

    assert source.server_name == "hd-2"
    assert source.audio_type is AudioType.SUB
    assert ("sources", EPISODE.stream_id, "hd-2", "sub") in client.calls


def test_dub_falls_back_to_sub_with_warning(caplog):
    client = FakeAPIClient(servers={"sub": ["hd-1"], "dub": []}, sources=SOURCES)
    with caplog.at_level(logging.WARNING):
        source = resolve(client, audio=AudioType.DUB)

    assert source.audio_type is AudioType.SUB
    assert ("sources", EPISODE.stream_id, "hd-1", "sub") in client.calls
    assert "Falling back to 'sub'" in caplog.text


def test_dub_is_used_when_available():
    client = FakeAPIClient(servers={"sub": ["hd-1"], "dub": ["hd-2"]}, sources=SOURCES)
    source = resolve(client, audio=AudioType.DUB)
    assert source.audio_type is AudioType.DUB
    assert source.server_name == "hd-2"


def test_sub_never_falls_back_to_dub():
    client = FakeAPIClient(servers={"sub": [], "dub": ["hd-1"]}, sources=SOURCES)
    with pytest.raises(StreamResolutionError):
        resolve(client)


def test_sources_are_retried_on_api_errors_and_empty_payloads():
    client = FakeAPIClient(
        servers={"sub": ["hd-1"]},
        sources=[APIError("boom"), {}, SOURCES],
    )
    source = resolve(client)

    assert source.video_url == "https://cdn.example/master.m3u8"
    assert len([c for c in client.calls if c[0] == "sources"]) == 3


def test_sources_give_up_after_three_attempts():
    client = FakeAPIClient(
        servers={"sub": ["hd-1"]},
        sources=[APIError("one"), APIError("two"), APIError("three"), SOURCES],
    )
    with pytest.raises(StreamResolutionError):
        resolve(client)
    assert len([c for c in client.calls if c[0] == "sources"]) == 3


def test_missing_video_url_is_not_retried():
    client = FakeAPIClient(
        servers={"sub": ["hd-1"]}, sources=[{"sources": [{"url": ""}]}, SOURCES]
    )
    with pytest.raises(StreamResolutionError):
        resolve(client)
    assert len([c for c in client.calls if c[0] == "sources"]) == 1
