"""
Loads the layered configuration: INI file, environment variables, CLI options.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from aniwatch_dl.exceptions import ConfigurationError
from aniwatch_dl.models.config import DownloadConfig

log = logging.getLogger(__name__)

DEFAULT_VIDEO_DIR = "~/Videos/AniWatchAnime"

# Environment variable -> config field
ENV_OVERRIDES = {
    "ANIWATCH_API_URL": "api_url",
    "ANIWATCH_DL_VIDEO_DIR": "video_dir",
    "ANIWATCH_DL_TMP_DIR": "temp_dir",
}


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Returns ``$XDG_CONFIG_HOME/aniwatch-dl/config.ini``."""
    environ = os.environ if environ is None else environ
    base = environ.get("XDG_CONFIG_HOME") or os.path.join("~", ".config")
    return Path(os.path.expanduser(base)) / "aniwatch-dl" / "config.ini"


class ConfigManager:
    """Builds a validated DownloadConfig from every configuration source."""

    def __init__(
        self,
        config_file_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.environ = os.environ if environ is None else environ
        self.config_file_path = config_file_path or default_config_path(self.environ)
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Merges the config file, the environment and CLI options, then validates.

        Later sources win. CLI options whose value is None are ignored so that
        unset flags never mask file or environment values.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        settings: dict[str, Any] = {"video_dir": DEFAULT_VIDEO_DIR}
        settings.update(self._read_file())

        for env_name, key in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                settings[key] = value
                log.debug(f"Config '{key}' taken from ${env_name}.")

        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        for key in ("video_dir", "temp_dir"):
            if settings.get(key):
                settings[key] = os.path.abspath(os.path.expanduser(settings[key]))

        try:
            return DownloadConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _read_file(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file, if there is one."""
        if not self.config_file_path.is_file():
            log.debug(f"No config file at '{self.config_file_path}'.")
            return {}

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        section = self._parser["DEFAULT"]
        allowed = DownloadConfig.get_ini_keys()
        unknown = sorted(set(section) - allowed)
        if unknown:
            log.warning(
                f"[yellow]⚠ Ignoring unknown config keys: {', '.join(unknown)}[/yellow]"
            )

        settings: dict[str, Any] = {}
        for key in allowed & set(section):
            value = section.get(key, "").strip()
            if value:
                settings[key] = value
        log.debug(f"Loaded {len(settings)} setting(s) from '{self.config_file_path}'.")
        return settings
