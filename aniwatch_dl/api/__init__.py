"""
AniWatch API Layer.

This package handles all communication with the AniWatch catalog API.
"""

from .client import AniwatchAPIClient

__all__ = ["AniwatchAPIClient"]
