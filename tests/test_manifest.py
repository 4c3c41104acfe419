import asyncio

import m3u8
import pytest

from aniwatch_dl.exceptions import ManifestError
from aniwatch_dl.media.manifest import ManifestResolver, parse_variants, select_variant
from aniwatch_dl.models.episode import ManifestVariant

from .conftest import FakeDownloader

MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1000000,RESOLUTION=1280x720
720/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=3000000,RESOLUTION=1920x1080
/1080/index.m3u8
"""

MEDIA = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:10
#EXTINF:10.0,
seg-1.ts
#EXTINF:10.0,
https://other.cdn/abs/seg-2.ts
#EXTINF:10.0,
seg-3.ts?token=abc
#EXT-X-ENDLIST
"""

MASTER_URL = "https://cdn.example/hls/abc/master.m3u8?sig=1"

V720 = ManifestVariant(resolution="1280x720", bandwidth=1_000_000, uri="720.m3u8")
V1080 = ManifestVariant(resolution="1920x1080", bandwidth=3_000_000, uri="1080.m3u8")


def test_parse_variants_reads_resolution_and_bandwidth():
    variants = parse_variants(m3u8.loads(MASTER))
    assert variants == [
        ManifestVariant("1280x720", 1_000_000, "720/index.m3u8"),
        ManifestVariant("1920x1080", 3_000_000, "/1080/index.m3u8"),
    ]


def test_parse_variants_skips_entries_without_resolution():
    text = (
        "#EXTM3U\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=500000\n"
        "audio.m3u8\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=900000,RESOLUTION=640x360\n"
        "360.m3u8\n"
    )
    assert [v.uri for v in parse_variants(m3u8.loads(text))] == ["360.m3u8"]


def test_select_variant_by_keyword():
    assert select_variant([V720, V1080], "720") == V720


def test_select_variant_defaults_to_highest_bandwidth():
    assert select_variant([V720, V1080]) == V1080
    assert select_variant([V720, V1080], "4k") == V1080


def test_select_variant_ties_keep_first():
    first = ManifestVariant("1280x720", 2_000_000, "a.m3u8")
    second = ManifestVariant("1280x720", 2_000_000, "b.m3u8")
    assert select_variant([first, second]) == first
    assert select_variant([first, second], "720") == first


def test_select_variant_highest_bandwidth_among_matches():
    low = ManifestVariant("1920x1080", 2_000_000, "low.m3u8")
    high = ManifestVariant("1920x1080", 5_000_000, "high.m3u8")
    assert select_variant([V720, low, high], "1080") == high


def test_select_variant_empty():
    assert select_variant([], "720") is None


def test_resolve_master_picks_variant_and_resolves_segments():
    downloader = FakeDownloader(
        texts={
            MASTER_URL: MASTER,
            "https://cdn.example/hls/abc/1080/index.m3u8": MEDIA,
        }
    )
    resolver = ManifestResolver(downloader)
    playlist = asyncio.run(resolver.resolve(MASTER_URL, "https://ref/"))

    assert playlist.media_url == "https://cdn.example/hls/abc/1080/index.m3u8"
    assert playlist.variant == ManifestVariant(
        "1920x1080", 3_000_000, "/1080/index.m3u8"
    )
    assert playlist.segment_urls == (
        "https://cdn.example/hls/abc/1080/seg-1.ts",
        "https://other.cdn/abs/seg-2.ts",
        "https://cdn.example/hls/abc/1080/seg-3.ts?token=abc",
    )
    assert all(referer == "https://ref/" for _, referer in downloader.text_calls)


def test_resolve_uses_resolution_keyword():
    downloader = FakeDownloader(
        texts={
            MASTER_URL: MASTER,
            "https://cdn.example/hls/abc/720/index.m3u8": MEDIA,
        }
    )
    playlist = asyncio.run(ManifestResolver(downloader).resolve(MASTER_URL, None, "720"))
    assert playlist.media_url.endswith("/720/index.m3u8")


def test_manifest_without_variants_is_the_media_playlist():
    url = "https://cdn.example/ep/index.m3u8"
    downloader = FakeDownloader(texts={url: MEDIA})
    playlist = asyncio.run(ManifestResolver(downloader).resolve(url))

    assert playlist.media_url == url
    assert playlist.variant is None
    assert len(playlist.segment_urls) == 3
    assert len(downloader.text_calls) == 1


def test_unreachable_master_raises():
    with pytest.raises(ManifestError):
        asyncio.run(ManifestResolver(FakeDownloader()).resolve(MASTER_URL))


def test_unreachable_media_playlist_raises():
    downloader = FakeDownloader(texts={MASTER_URL: MASTER})
    with pytest.raises(ManifestError):
        asyncio.run(ManifestResolver(downloader).resolve(MASTER_URL))


def test_playlist_without_segments_raises():
    url = "https://cdn.example/ep/index.m3u8"
    downloader = FakeDownloader(texts={url: "#EXTM3U\n#EXT-X-ENDLIST\n"})
    with pytest.raises(ManifestError, match="No segments"):
        asyncio.run(ManifestResolver(downloader).resolve(url))
