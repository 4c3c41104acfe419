"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AniwatchDLError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(AniwatchDLError):
    """Raised for issues related to configuration loading or validation."""


class DependencyError(AniwatchDLError):
    """Raised when a required external tool (such as ffmpeg) is not available."""


class APIError(AniwatchDLError):
    """Raised when the AniWatch API returns an error or an unusable response."""


class SelectionError(AniwatchDLError):
    """Raised when no anime or episode could be selected."""


class StreamResolutionError(AniwatchDLError):
    """Raised when an episode cannot be resolved to a playable source."""


class DownloadError(AniwatchDLError):
    """Raised when a file could not be downloaded after all retries."""


class ManifestError(AniwatchDLError):
    """Raised when an HLS manifest cannot be fetched or contains no usable media."""


class SegmentFetchError(AniwatchDLError):
    """
    Raised when one or more segments of an episode could not be downloaded.
    """

    def __init__(self, succeeded: int, total: int):
        self.succeeded = succeeded
        self.total = total
        super().__init__(
            f"{total - succeeded} of {total} segment(s) failed to download."
        )


class AssemblyError(AniwatchDLError):
    """Raised when ffmpeg fails to concatenate the downloaded segments."""
