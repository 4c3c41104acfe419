"""
Utilities for building output paths and resolving playlist URLs.
"""

import posixpath
import re
from pathlib import Path

from pathvalidate import sanitize_filename

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def safe_name(value: str, fallback: str = "unknown") -> str:
    """Sanitizes a title so it can be used as a single path component."""
    cleaned = sanitize_filename(value or "", platform="auto").strip()
    cleaned = re.sub(r"_{2,}", "_", cleaned)
    return cleaned or fallback


def padding_width(total_episodes: int) -> int:
    """
    Chooses the zero-padding width for episode numbers so that lexicographic
    and numeric order agree for the whole series.
    """
    if total_episodes > 999:
        return 4
    if total_episodes > 99:
        return 3
    if total_episodes > 9:
        return 2
    return 1


def pad_episode_number(number: str, total_episodes: int) -> str:
    """Zero-pads an episode number according to the series length."""
    width = padding_width(total_episodes)
    if number.isdigit() and len(number) < width:
        return number.zfill(width)
    return number


def episode_output_base(
    video_dir: Path,
    anime_title: str,
    episode_number: str,
    episode_title: str,
    total_episodes: int,
) -> Path:
    """
    Builds the extension-less output path for an episode:
    ``<video_dir>/<anime>/Episode_<padded>_<title>``.
    """
    padded = pad_episode_number(episode_number, total_episodes)
    title = safe_name(episode_title, fallback=f"Episode {episode_number}")
    return video_dir / safe_name(anime_title) / f"Episode_{padded}_{title}"


def subtitle_path(output_base: Path, language: str) -> Path:
    """Path of a subtitle file stored next to the episode video."""
    return output_base.with_name(
        f"{output_base.name}.{safe_name(language, fallback='sub')}.vtt"
    )


def resolve_url(reference: str, playlist_url: str) -> str:
    """
    Resolves a playlist entry against the playlist's own URL.

    Absolute http(s) URLs pass through unchanged; anything else is joined to
    the directory containing the playlist.
    """
    reference = reference.strip()
    if _ABSOLUTE_URL.match(reference):
        return reference
    base = posixpath.dirname(playlist_url.split("?", 1)[0])
    return f"{base.rstrip('/')}/{reference.lstrip('/')}"


def segment_filename(index: int, reference: str) -> str:
    """Local file name for a segment, prefixed by its playlist position."""
    name = posixpath.basename(reference.split("?", 1)[0].split("#", 1)[0])
    return f"{index:05d}_{safe_name(name, fallback='segment.ts')}"
