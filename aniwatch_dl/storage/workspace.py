"""
Per-episode temporary workspaces and their cleanup.
"""

import logging
import os
import shutil
import tempfile
from typing import List

log = logging.getLogger(__name__)


class WorkspaceRegistry:
    """
    Creates temporary directories for episode downloads and remembers them,
    so that only directories created by this run are ever removed.
    """

    def __init__(self, parent_dir: str, anime_id: str, keep: bool = False):
        """
        Args:
            parent_dir: Directory under which workspaces are created.
            anime_id: Used in workspace names for easier inspection.
            keep: Leave workspaces on disk (debug mode).
        """
        self.parent_dir = parent_dir
        self.anime_id = anime_id
        self.keep = keep
        self._workspaces: List[str] = []

    @property
    def active(self) -> List[str]:
        return list(self._workspaces)

    def create(self, episode_number: str) -> str:
        """Creates and registers a new workspace for one episode."""
        os.makedirs(self.parent_dir, exist_ok=True)
        path = tempfile.mkdtemp(
            prefix=f"aniwatch_dl_{self.anime_id}_ep{episode_number}_",
            dir=self.parent_dir,
        )
        self._workspaces.append(path)
        log.debug(f"Created workspace {path}")
        return path

    def release(self, path: str) -> None:
        """Removes one workspace once its episode has finished."""
        if path not in self._workspaces:
            return
        if self.keep:
            log.debug(f"Keeping workspace for inspection: {path}")
            return
        self._workspaces.remove(path)
        shutil.rmtree(path, ignore_errors=True)
        log.debug(f"Removed workspace {path}")

    def cleanup(self) -> None:
        """Removes every workspace this registry created and still tracks."""
        if self.keep:
            if self._workspaces:
                log.info(
                    f"[yellow]Debug mode: keeping {len(self._workspaces)} "
                    f"temporary workspace(s) under {self.parent_dir}[/yellow]"
                )
            return
        for path in list(self._workspaces):
            shutil.rmtree(path, ignore_errors=True)
            log.debug(f"Cleaned up workspace {path}")
        self._workspaces.clear()
