"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from debrid_dl.exceptions import ConfigurationError
from debrid_dl.models.config import ServerConfig

log = logging.getLogger(__name__)

INT_KEYS = {"port", "max_errors", "chunk_size"}
FLOAT_KEYS = {"ping_interval", "progress_interval", "request_timeout"}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ServerConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ServerConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'debrid-dl init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        config_from_file = self._get_config_as_dict()

        # Override with CLI options
        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return ServerConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file, filling unspecified keys
        with the model defaults.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = ServerConfig.model_construct()
        for key in sorted(ServerConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, ""))
            config["DEFAULT"][key] = "" if value is None else str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        try:
            for key in ServerConfig.get_ini_keys():
                if key not in section:
                    continue
                if key in INT_KEYS:
                    values[key] = section.getint(key)
                elif key in FLOAT_KEYS:
                    values[key] = section.getfloat(key)
                else:
                    values[key] = section.get(key, "")
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ServerConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in ServerConfig.get_ini_keys():
            if key not in config_section and hasattr(defaults, key):
                config_section[key] = str(getattr(defaults, key))
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
