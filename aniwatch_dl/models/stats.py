"""
Run-level state for a download session: episode outcomes, counters and timing.
"""

import time
from dataclasses import dataclass, field

from .episode import AcquisitionResult


@dataclass
class RunContext:
    """
    Tracks the outcome of every episode processed during one run.

    Episodes are processed sequentially, so no locking is needed.
    """

    anime_id: str = ""
    anime_title: str = ""
    total_episodes: int = 0
    episodes_planned: int = 0
    total_size_downloaded: int = 0
    results: dict[str, AcquisitionResult] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    def record(self, episode_number: str, result: AcquisitionResult) -> None:
        self.results[episode_number] = result

    def add_downloaded_bytes(self, size: int) -> None:
        self.total_size_downloaded += max(size, 0)

    def _count(self, *kinds: AcquisitionResult) -> int:
        return sum(1 for result in self.results.values() if result in kinds)

    @property
    def succeeded(self) -> int:
        """Episodes acquired, listed or already present."""
        return self._count(
            AcquisitionResult.SUCCEEDED,
            AcquisitionResult.SKIPPED_EXISTS,
            AcquisitionResult.LISTED,
        )

    @property
    def downloaded(self) -> int:
        return self._count(AcquisitionResult.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(AcquisitionResult.SKIPPED_EXISTS)

    @property
    def failed(self) -> int:
        return self._count(AcquisitionResult.FAILED)

    @property
    def failed_episodes(self) -> list[str]:
        return [
            number
            for number, result in self.results.items()
            if result is AcquisitionResult.FAILED
        ]

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def has_failures(self) -> bool:
        return self.failed > 0
