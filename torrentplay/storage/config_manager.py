"""
Manages loading of the optional INI defaults file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from torrentplay.exceptions import ConfigurationError
from torrentplay.models.config import DEFAULT_PORT, PlayerChoice

log = logging.getLogger(__name__)

DEFAULTS_KEYS = ("port", "out", "blocklist", "player", "quiet")


class ConfigManager:
    """Reads run defaults from the user's INI file, if one exists."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_defaults(self) -> dict[str, Any]:
        """
        Loads defaults from the INI file. Values missing from the file are omitted.

        Returns:
            A dictionary of option names to typed values.

        Raises:
            ConfigurationError: If the file cannot be parsed or holds invalid values.
        """
        if not self.config_file_path.is_file():
            log.debug(f"No defaults file at '{self.config_file_path}'.")
            return {}

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        section = self._parser["DEFAULT"]
        for key in section:
            if key not in DEFAULTS_KEYS:
                log.warning(
                    f"[yellow]Ignoring unknown key '{key}' in "
                    f"{self.config_file_path}[/yellow]"
                )

        defaults: dict[str, Any] = {}
        try:
            if "port" in section:
                defaults["port"] = section.getint("port", DEFAULT_PORT)
            if "quiet" in section:
                defaults["quiet"] = section.getboolean("quiet", False)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if out := section.get("out", "").strip():
            defaults["out"] = Path(out).expanduser()
        if blocklist := section.get("blocklist", "").strip():
            defaults["blocklist"] = blocklist
        if player := section.get("player", "").strip().lower():
            try:
                defaults["player"] = PlayerChoice(player)
            except ValueError as e:
                valid = ", ".join(choice.value for choice in PlayerChoice)
                raise ConfigurationError(
                    f"Unknown player '{player}' in configuration file. "
                    f"Expected one of: {valid}"
                ) from e
        return defaults

    def describe(self) -> dict[str, str]:
        """Returns the effective defaults as display strings."""
        defaults = self.load_defaults()
        return {
            "port": str(defaults.get("port", DEFAULT_PORT)),
            "out": str(defaults.get("out", "(temporary directory)")),
            "blocklist": defaults.get("blocklist", "(none)"),
            "player": defaults.get("player", PlayerChoice.NONE).value,
            "quiet": "true" if defaults.get("quiet") else "false",
        }
