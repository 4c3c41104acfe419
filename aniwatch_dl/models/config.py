"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)
MAX_THREADS = 32


class AudioType(str, Enum):
    """Audio track category offered by the catalog."""

    SUB = "sub"
    DUB = "dub"


class SubtitleMode(str, Enum):
    """How subtitle tracks are chosen after a video download succeeds."""

    NONE = "none"
    DEFAULT = "default"
    ALL = "all"
    LANGUAGES = "languages"


class SubtitlePolicy(BaseModel):
    """A parsed subtitle preference such as 'default', 'all' or 'eng,spa'."""

    mode: SubtitleMode = SubtitleMode.DEFAULT
    languages: tuple[str, ...] = ()

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @classmethod
    def parse(cls, value: str) -> "SubtitlePolicy":
        """Builds a policy from the user-facing string form."""
        raw = (value or "").strip()
        keyword = raw.lower()
        if keyword in ("", SubtitleMode.DEFAULT.value):
            return cls(mode=SubtitleMode.DEFAULT)
        if keyword == SubtitleMode.NONE.value:
            return cls(mode=SubtitleMode.NONE)
        if keyword == SubtitleMode.ALL.value:
            return cls(mode=SubtitleMode.ALL)

        languages = tuple(
            dict.fromkeys(code.strip() for code in raw.split(",") if code.strip())
        )
        if not languages:
            raise ValueError(f"Invalid subtitle preference: '{value}'.")
        return cls(mode=SubtitleMode.LANGUAGES, languages=languages)

    def __str__(self) -> str:
        if self.mode is SubtitleMode.LANGUAGES:
            return ",".join(self.languages)
        return self.mode.value


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    # API & transport
    api_url: str = Field(default="", validate_default=True)
    user_agent: str = DEFAULT_USER_AGENT

    # Storage
    video_dir: str
    temp_dir: str = ""

    # Anime & episode selection
    anime_name: str = ""
    anime_id: str = ""
    episodes: str = ""

    # Stream preferences
    server: str = ""
    resolution: str = ""
    audio_type: AudioType = AudioType.SUB
    subtitles: SubtitlePolicy = Field(default_factory=SubtitlePolicy)

    # Download behaviour
    threads: int = 4
    segment_timeout: int | None = None
    list_only: bool = False
    debug: bool = False

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Ensures the AniWatch API base URL is set and normalized."""
        if not v:
            raise ValueError(
                "AniWatch API URL is not set. Please set the ANIWATCH_API_URL "
                "environment variable."
            )
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https://: {v}")
        return v.rstrip("/")

    @field_validator("audio_type", mode="before")
    @classmethod
    def validate_audio_type(cls, v):
        """Accepts 'sub'/'dub' in any letter case."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in (AudioType.SUB.value, AudioType.DUB.value):
                raise ValueError("Invalid audio type: 'sub' or 'dub'.")
        return v

    @field_validator("subtitles", mode="before")
    @classmethod
    def validate_subtitles(cls, v):
        """Parses the subtitle preference string into a policy."""
        if isinstance(v, str):
            return SubtitlePolicy.parse(v)
        return v

    @field_validator("threads")
    @classmethod
    def validate_threads(cls, v: int) -> int:
        """Ensures a reasonable number of parallel segment downloads."""
        if v < 1 or v > MAX_THREADS:
            raise ValueError(f"Threads must be between 1 and {MAX_THREADS}.")
        return v

    @field_validator("segment_timeout")
    @classmethod
    def validate_timeout(cls, v: int | None) -> int | None:
        """Ensures the per-segment timeout is a positive number of seconds."""
        if v is not None and v < 1:
            raise ValueError("Segment timeout must be a positive integer.")
        return v

    @property
    def temp_parent(self) -> str:
        """The directory under which per-episode workspaces are created."""
        return self.temp_dir or f"{self.video_dir.rstrip('/')}/.tmp"

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns the set of keys that may be set from the INI file."""
        return {
            "api_url",
            "user_agent",
            "video_dir",
            "temp_dir",
            "server",
            "resolution",
            "audio_type",
            "subtitles",
            "threads",
            "segment_timeout",
        }
