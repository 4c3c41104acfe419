"""
aniwatch-dl: download anime episodes from a self-hosted AniWatch API instance.
"""

__version__ = "0.1.0"
