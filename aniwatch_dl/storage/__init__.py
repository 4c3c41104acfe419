"""
Storage Layer.

This package manages the persistent configuration and the temporary
per-episode workspaces used while downloading.
"""

from .config_manager import ConfigManager
from .workspace import WorkspaceRegistry

__all__ = ["ConfigManager", "WorkspaceRegistry"]
