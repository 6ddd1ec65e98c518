"""
Configuration loader module.

Handles loading and validation of the JSON sync configuration:
- sync_config.json: sheet layout, tracker thresholds, API connection
- token file (optional): API token kept outside the main config
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from sheetsync.domain.errors import ConfigError
from sheetsync.domain.settings import SyncSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "sync_config.json"


class ConfigLoader:
    """
    Load and validate configuration files.

    Provides typed access to the sync settings.
    """

    def __init__(self, config_dir: str | Path = "config") -> None:
        """
        Initialize config loader.

        Args:
            config_dir: Directory containing configuration files
        """
        self.config_dir = Path(config_dir)
        logger.debug("ConfigLoader initialized with directory: %s", self.config_dir)

    def _load_json_file(self, filepath: Path, required: bool = True) -> dict | None:
        """
        Load and parse a JSON file with clear error messages.

        Args:
            filepath: Path to JSON file
            required: If True, raises ConfigError when missing

        Returns:
            Parsed JSON as dict, or None if optional file not found

        Raises:
            ConfigError: If the file is missing (when required), empty,
                unreadable or malformed
        """
        if not filepath.exists():
            if required:
                raise ConfigError(
                    f"Configuration file not found: {filepath}\n"
                    f"Hint: Copy sync_config.example.json and customize it."
                )
            logger.debug("Optional config not found: %s", filepath)
            return None

        try:
            content = filepath.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ConfigError(f"Cannot read config file (permission denied): {filepath}") from e

        if not content.strip():
            raise ConfigError(f"Configuration file is empty: {filepath}")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in config file: {filepath}\n"
                f"Error at line {e.lineno}, column {e.colno}: {e.msg}"
            ) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a JSON object: {filepath}")
        return data

    def load_settings(self, filename: str = DEFAULT_CONFIG_FILE) -> SyncSettings:
        """
        Load the sync settings.

        Args:
            filename: Config file name (relative to config_dir) or absolute path

        Returns:
            Validated SyncSettings

        Raises:
            ConfigError: If the file is missing or fails validation
        """
        path = Path(filename)
        filepath = path if path.is_absolute() else self.config_dir / path
        logger.info("Loading sync config from: %s", filepath)

        data = self._load_json_file(filepath, required=True)

        try:
            settings = SyncSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid sync config {filepath}:\n{e}") from e

        if settings.api.token_file and not settings.api.api_token:
            token = self._load_token_file(settings.api.token_file)
            if token:
                settings.api.api_token = token

        logger.info(
            "Loaded sync config for sheet '%s' (%d columns)",
            settings.sheet_name,
            len(settings.columns.fields),
        )
        return settings

    def _load_token_file(self, filepath: str) -> str | None:
        """
        Load the API token from a JSON file.

        Args:
            filepath: Path to token file (relative to the config directory's parent, or absolute)

        Returns:
            Token string, or None if the file is absent
        """
        path = Path(filepath)
        if not path.is_absolute():
            path = self.config_dir.parent / filepath

        data = self._load_json_file(path, required=False)
        if data is None:
            logger.warning("Token file not found: %s", filepath)
            return None
        return data.get("api_token")

    def validate_config(self, filename: str = DEFAULT_CONFIG_FILE) -> bool:
        """
        Validate the configuration file.

        Returns:
            True if valid, False otherwise
        """
        try:
            self.load_settings(filename)
            logger.info("Configuration validation passed")
            return True
        except ConfigError as e:
            logger.error("Configuration validation failed: %s", e)
            return False
