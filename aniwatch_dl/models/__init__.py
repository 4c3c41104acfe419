"""
Data Models Layer.

This package contains the Pydantic configuration model, the immutable value
objects exchanged between pipeline stages, and the run-level statistics.
"""

from .config import AudioType, DownloadConfig, SubtitleMode, SubtitlePolicy
from .episode import (
    AcquisitionResult,
    EpisodeRef,
    ManifestVariant,
    ResolvedPlaylist,
    SegmentJob,
    StreamSource,
    SubtitleTrack,
)
from .stats import RunContext

__all__ = [
    "AcquisitionResult",
    "AudioType",
    "DownloadConfig",
    "EpisodeRef",
    "ManifestVariant",
    "ResolvedPlaylist",
    "RunContext",
    "SegmentJob",
    "StreamSource",
    "SubtitleMode",
    "SubtitlePolicy",
    "SubtitleTrack",
]
