"""
Resolves a free-form episode selection expression into concrete episode numbers.

Expressions are comma-separated terms, each optionally negated with ``!``:

    *       every available episode
    L3      the last 3 episodes
    F3      the first 3 episodes
    5-      episode 5 and later
    -5      episodes up to 5
    2-7     episodes 2 through 7
    12      episode 12

All inclusions are unioned, all exclusions are unioned, and the exclusions
are subtracted once at the end. Malformed terms are skipped with a warning.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from aniwatch_dl.models.episode import EpisodeRef

log = logging.getLogger(__name__)

_LAST_N = re.compile(r"^L(\d+)$", re.IGNORECASE)
_FIRST_N = re.compile(r"^F(\d+)$", re.IGNORECASE)
_OPEN_RANGE = re.compile(r"^(\d+)-$")
_UPPER_RANGE = re.compile(r"^-(\d+)$")
_RANGE = re.compile(r"^(\d+)-(\d+)$")
_LITERAL = re.compile(r"^\d+$")


@dataclass
class SelectionResult:
    """Outcome of evaluating a selection expression."""

    numbers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _sorted_unique(numbers: Iterable[str]) -> list[str]:
    return sorted(set(numbers), key=int)


def _match_term(pattern: str, available: list[str]) -> list[str] | None:
    """
    Returns the episode numbers a single (non-negated) term refers to, or
    None if the term is not recognized.
    """
    if pattern == "*":
        return list(available)

    if match := _LAST_N.match(pattern):
        n = int(match.group(1))
        return available[-n:] if n > 0 else []

    if match := _FIRST_N.match(pattern):
        n = int(match.group(1))
        return available[:n] if n > 0 else []

    if match := _OPEN_RANGE.match(pattern):
        start = int(match.group(1))
        return [ep for ep in available if int(ep) >= start]

    if match := _UPPER_RANGE.match(pattern):
        end = int(match.group(1))
        return [ep for ep in available if int(ep) <= end]

    if match := _RANGE.match(pattern):
        start, end = int(match.group(1)), int(match.group(2))
        if start > end:
            return []
        return [ep for ep in available if start <= int(ep) <= end]

    if _LITERAL.match(pattern):
        wanted = int(pattern)
        return [ep for ep in available if int(ep) == wanted]

    return None


def parse_selection(expression: str, available: Iterable[str]) -> SelectionResult:
    """
    Evaluates a selection expression against the available episode numbers.

    Never raises: unrecognized terms and unknown episode numbers are reported
    as warnings and otherwise ignored.

    Args:
        expression: The user's selection string, e.g. ``"1,3-5,!4,L2"``.
        available: Every episode number of the anime.

    Returns:
        A SelectionResult whose numbers are sorted, unique and a subset of
        ``available``.
    """
    result = SelectionResult()
    available_sorted = _sorted_unique(
        str(n) for n in available if str(n).isdigit()
    )

    def warn(message: str) -> None:
        result.warnings.append(message)
        log.warning(f"[yellow]⚠ {message}[/yellow]")

    if not available_sorted:
        warn("No available episodes for selection.")
        return result

    include: set[str] = set()
    exclude: set[str] = set()

    for raw_part in (expression or "").split(","):
        part = "".join(raw_part.split())
        if not part:
            continue

        target = include
        pattern = part
        if pattern.startswith("!"):
            target = exclude
            pattern = pattern[1:]

        matched = _match_term(pattern, available_sorted)
        if matched is None:
            warn(f"Unrecognized pattern: {part}")
            continue
        if not matched and _LITERAL.match(pattern):
            warn(f"Ep {pattern} not found.")
            continue
        target.update(matched)

    result.numbers = _sorted_unique(include - exclude)
    if not result.numbers:
        warn("No episodes remaining after parsing selection.")
    return result


def resolve_selection(expression: str, available: Iterable[str]) -> list[str]:
    """Returns only the selected episode numbers, sorted ascending."""
    return parse_selection(expression, available).numbers


def select_episodes(
    expression: str, episodes: list[EpisodeRef]
) -> tuple[list[EpisodeRef], list[str]]:
    """
    Applies a selection expression to an episode list.

    Returns:
        The selected episodes in ascending numeric order, and any warnings.
    """
    by_number = {episode.number: episode for episode in episodes}
    result = parse_selection(expression, by_number.keys())
    return [by_number[number] for number in result.numbers], result.warnings
