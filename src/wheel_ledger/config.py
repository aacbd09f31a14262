"""Configuration management for the wheel ledger CLI.

This module provides configuration loading, validation, and management
for wheel ledger analysis, including the ledger source, parsing defaults
and output options.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .ledger import LEDGER_FORMATS

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    pass


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() not in ("", "0", "false", "no")


class LedgerConfig:
    """Configuration for wheel ledger analysis.

    Manages configuration from files, environment variables, and defaults.

    Attributes:
        ledger_path: Default trade ledger file or directory
        ledger_format: Ledger format (auto, csv, json, flex)
        option_multiplier: Contract multiplier assumed when a record has none
        display_places: Decimal places for money in CLI output
        verbose: Enable verbose logging
        json_output: Output in JSON format
    """

    def __init__(
        self,
        ledger_path: Optional[str] = None,
        ledger_format: str = "auto",
        option_multiplier: int = 100,
        display_places: int = 2,
        verbose: bool = False,
        json_output: bool = False,
    ):
        """Initialize configuration.

        Args:
            ledger_path: Default trade ledger file or directory
            ledger_format: Ledger format (auto, csv, json, flex)
            option_multiplier: Contract multiplier assumed when a record has none
            display_places: Decimal places for money in CLI output
            verbose: Enable verbose logging
            json_output: Output in JSON format

        Example:
            >>> config = LedgerConfig(
            ...     ledger_path="~/reports/trades.csv",
            ...     display_places=4
            ... )
        """
        self.ledger_path = ledger_path
        self.ledger_format = ledger_format
        self.option_multiplier = option_multiplier
        self.display_places = display_places
        self.verbose = verbose
        self.json_output = json_output

        self._validate()

    def _validate(self):
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.ledger_format not in LEDGER_FORMATS:
            raise ConfigurationError(
                f"ledger_format must be one of: {', '.join(LEDGER_FORMATS)}"
            )

        if self.option_multiplier < 1 or self.option_multiplier > 10000:
            raise ConfigurationError("option_multiplier must be between 1 and 10000")

        if self.display_places < 0 or self.display_places > 8:
            raise ConfigurationError("display_places must be between 0 and 8")

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get default configuration file path.

        Returns:
            Path to default config file (~/.wheel_ledger/config.yaml)
        """
        return Path.home() / ".wheel_ledger" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "LedgerConfig":
        """Load configuration from YAML file.

        Loads configuration from the specified path or the default path.
        If the file doesn't exist, returns default configuration.
        Merges file configuration with environment variable overrides.

        Args:
            path: Optional path to config file (default: ~/.wheel_ledger/config.yaml)

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration file is invalid
        """
        config_path = path or cls.get_default_config_path()

        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {e}"
                ) from e
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to load configuration file: {e}"
                ) from e
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "LedgerConfig":
        """Merge configuration dictionary with defaults and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values
        3. Default values

        Args:
            config_dict: Configuration dictionary from file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            >>> config = LedgerConfig.merge_with_defaults({
            ...     "ledger": {"path": "trades.csv", "format": "csv"}
            ... })
        """
        ledger_config = config_dict.get("ledger", {}) or {}
        display_config = config_dict.get("display", {}) or {}
        cli_config = config_dict.get("cli", {}) or {}

        ledger_path = os.getenv("WHEEL_LEDGER_PATH", ledger_config.get("path"))
        ledger_format = os.getenv(
            "WHEEL_LEDGER_FORMAT",
            ledger_config.get("format", "auto"),
        )

        try:
            option_multiplier = int(
                os.getenv(
                    "WHEEL_LEDGER_MULTIPLIER",
                    ledger_config.get("option_multiplier", 100),
                )
            )
            display_places = int(
                os.getenv(
                    "WHEEL_LEDGER_PLACES",
                    display_config.get("places", 2),
                )
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        verbose = _env_flag("WHEEL_LEDGER_VERBOSE")
        if verbose is None:
            verbose = bool(cli_config.get("verbose", False))
        json_output = _env_flag("WHEEL_LEDGER_JSON")
        if json_output is None:
            json_output = bool(cli_config.get("json_output", False))

        return cls(
            ledger_path=ledger_path,
            ledger_format=ledger_format,
            option_multiplier=option_multiplier,
            display_places=display_places,
            verbose=verbose,
            json_output=json_output,
        )

    def save_to_file(self, path: Optional[Path] = None):
        """Save configuration to YAML file.

        Args:
            path: Optional path to save to (default: ~/.wheel_ledger/config.yaml)

        Raises:
            ConfigurationError: If save fails
        """
        config_path = path or self.get_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w") as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to the nested file layout."""
        return {
            "ledger": {
                "path": self.ledger_path,
                "format": self.ledger_format,
                "option_multiplier": self.option_multiplier,
            },
            "display": {
                "places": self.display_places,
            },
            "cli": {
                "verbose": self.verbose,
                "json_output": self.json_output,
            },
        }

    def __repr__(self) -> str:
        return (
            f"LedgerConfig("
            f"ledger_path={self.ledger_path!r}, "
            f"ledger_format={self.ledger_format!r}, "
            f"option_multiplier={self.option_multiplier}, "
            f"display_places={self.display_places}, "
            f"verbose={self.verbose}, "
            f"json_output={self.json_output}"
            ")"
        )


def load_config(config_path: Optional[Path] = None) -> LedgerConfig:
    """Load configuration from file or defaults.

    Args:
        config_path: Optional path to config file

    Returns:
        Configuration instance
    """
    return LedgerConfig.load_from_file(config_path)
