"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from icy_ripper.exceptions import ConfigurationError
from icy_ripper.models.config import RipConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> RipConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: the built-in defaults are used instead.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated RipConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return RipConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save over the defaults.
        """
        settings = settings or {}
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = RipConfig.model_construct()
        for key in sorted(RipConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if value is not None:
                config["DEFAULT"][key] = self._to_ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = RipConfig.model_construct()
        try:
            return {
                "output_dir": section.get("output_dir", defaults.output_dir),
                "output_template": section.get(
                    "output_template", defaults.output_template
                ),
                "max_bytes": section.getint("max_bytes", defaults.max_bytes),
                "tag_tracks": section.getboolean("tag_tracks", defaults.tag_tracks),
                "chunk_size": section.getint("chunk_size", defaults.chunk_size),
                "user_agent": section.get("user_agent", defaults.user_agent),
                "connect_timeout": section.getfloat(
                    "connect_timeout", defaults.connect_timeout
                ),
                "read_timeout": section.getfloat("read_timeout", defaults.read_timeout),
                "max_attempts": section.getint("max_attempts", defaults.max_attempts),
                "log_json": section.getboolean("log_json", defaults.log_json),
                "save_history": section.getboolean(
                    "save_history", defaults.save_history
                ),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the config file for display purposes."""
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Run 'icy-ripper init' first."
            )
        self._parser.read(self.config_file_path, encoding="utf-8")
        return self._get_config_as_dict()

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = RipConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(RipConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = self._to_ini_value(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
