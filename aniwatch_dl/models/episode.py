"""
Immutable value objects passed between the stages of the episode pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum

from .config import AudioType


@dataclass(frozen=True)
class EpisodeRef:
    """One entry of an anime's episode list, as returned by the catalog."""

    number: str
    stream_id: str
    title: str = ""

    @property
    def display_title(self) -> str:
        return self.title or f"Episode {self.number}"


@dataclass(frozen=True)
class SubtitleTrack:
    language: str
    url: str


@dataclass(frozen=True)
class StreamSource:
    """A resolved, playable media reference for one episode."""

    video_url: str
    is_segmented: bool
    subtitle_tracks: tuple[SubtitleTrack, ...] = ()
    referer: str | None = None
    server_name: str = ""
    audio_type: AudioType = AudioType.SUB


@dataclass(frozen=True)
class ManifestVariant:
    """One rendition declared in a master HLS playlist."""

    resolution: str
    bandwidth: int
    uri: str


@dataclass(frozen=True)
class SegmentJob:
    """A single media segment to fetch, addressed by its playlist position."""

    index: int
    source_url: str
    local_path: str


@dataclass(frozen=True)
class ResolvedPlaylist:
    """The media playlist chosen for an episode and its ordered segments."""

    media_url: str
    segment_urls: tuple[str, ...] = field(default_factory=tuple)
    variant: ManifestVariant | None = None


class AcquisitionResult(str, Enum):
    """Terminal state of one episode within a run."""

    SKIPPED_EXISTS = "skipped_exists"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    LISTED = "listed"
