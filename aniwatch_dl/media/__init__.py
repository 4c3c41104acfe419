"""
Media Processing Layer.

This package is responsible for all media file operations: HTTP transfers,
HLS manifest resolution, parallel segment fetching, ffmpeg assembly and
subtitle downloads.
"""

from .assembler import Assembler, find_ffmpeg
from .downloader import Downloader
from .manifest import ManifestResolver, select_variant
from .segments import SegmentFetcher, build_segment_jobs

__all__ = [
    "Assembler",
    "Downloader",
    "ManifestResolver",
    "SegmentFetcher",
    "build_segment_jobs",
    "find_ffmpeg",
    "select_variant",
]
