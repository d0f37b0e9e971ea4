"""
Configuration management for the weather client.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli

import lib.utils as utils

logger = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "YOUR_API_KEY_HERE"


def replaceMatchToEnv(match: re.Match[str]) -> str:
    """Replace environment variable placeholders with actual values.

    Args:
        match: A regex match object containing the environment variable name.

    Returns:
        str: The value of the environment variable or the original placeholder
             if the variable is not set.
    """
    key = match.group(1)
    return os.getenv(key, match.group(0))


def substituteEnvVars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} placeholders in strings, dicts and lists.

    Values of other types are returned unchanged.
    """
    if isinstance(value, str):
        return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_-]*)\}", replaceMatchToEnv, value)
    elif isinstance(value, dict):
        return {k: substituteEnvVars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substituteEnvVars(item) for item in value]
    return value


class ConfigManager:
    """Manages configuration loading for the weather client."""

    def __init__(
        self, configPath: str = "config.toml", configDirs: Optional[List[str]] = None, dotEnvFile: str = ".env"
    ):
        """Initialize ConfigManager with config file path and optional config directories."""
        self.config_path = configPath
        self.config_dirs = configDirs or []
        utils.load_dotenv(path=dotEnvFile)
        self.config = substituteEnvVars(self._loadConfig())

    def _findTomlFilesRecursive(self, directory: str) -> List[Path]:
        """Recursively find all .toml files in a directory"""
        toml_files = []
        dir_path = Path(directory)

        if not dir_path.exists():
            logger.warning(f"Config directory {directory} does not exist, skipping")
            return toml_files

        if not dir_path.is_dir():
            logger.warning(f"Config path {directory} is not a directory, skipping")
            return toml_files

        try:
            for toml_file in dir_path.rglob("*.toml"):
                if toml_file.is_file():
                    toml_files.append(toml_file)
                    logger.debug(f"Found config file: {toml_file}")
        except Exception as e:
            logger.error(f"Error scanning directory {directory}: {e}")

        return sorted(toml_files)  # Sort for consistent ordering

    def _mergeConfigs(self, base_config: Dict[str, Any], new_config: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries"""
        merged = base_config.copy()

        for key, value in new_config.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._mergeConfigs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _loadConfig(self) -> Dict[str, Any]:
        """
        Load configuration from TOML file and optional config directories.

        Files found in config directories are merged on top of the main
        config in sorted order; a broken file there is logged and skipped.

        Raises:
            SystemExit: If the main config file is missing and no config
                directories are provided, or the main file cannot be parsed.
        """
        config_file = Path(self.config_path)
        hasConfigFile = config_file.exists()
        if not hasConfigFile and not self.config_dirs:
            logger.error(f"Configuration file {self.config_path} not found!")
            sys.exit(1)

        try:
            config: Dict[str, Any] = {}
            if hasConfigFile:
                with open(config_file, "rb") as f:
                    config = tomli.load(f)
                logger.info(f"Loaded main config from {self.config_path}")

            if self.config_dirs:
                logger.info(f"Scanning {len(self.config_dirs)} config directories for .toml files")

                for config_dir in self.config_dirs:
                    toml_files = self._findTomlFilesRecursive(config_dir)
                    logger.info(f"Found {len(toml_files)} .toml files in {config_dir}")

                    for toml_file in toml_files:
                        try:
                            with open(toml_file, "rb") as f:
                                dir_config = tomli.load(f)

                            config = self._mergeConfigs(config, dir_config)
                            logger.info(f"Merged config from {toml_file}")

                        except Exception as e:
                            logger.error(f"Failed to load config file {toml_file}: {e}")
                            # Continue with other files instead of exiting

            logger.info("Configuration loaded and merged successfully")
            return config

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            sys.exit(1)

    def get(self, key: str, default=None) -> Any:
        """Get configuration value by key."""
        return self.config.get(key, default)

    def getLoggingConfig(self) -> Dict[str, Any]:
        """Get logging-specific configuration."""
        return self.get("logging", {})

    def getOpenWeatherMapConfig(self) -> Dict[str, Any]:
        """
        Get OpenWeatherMap configuration

        Returns:
            Dict with OpenWeatherMap settings:
            - api-key: API key (use "${OPENWEATHERMAP_API_KEY}" to read it from env)
            - units: "metric", "imperial" or "standard" (default: "metric")
            - language: condition description language (optional)
            - request-timeout: HTTP timeout in seconds (default: 10)
            - base-url: One Call endpoint override (optional)
        """
        return self.get("openweathermap", {})

    def getOpenWeatherMapApiKey(self) -> str:
        """Get OpenWeatherMap API key, exit if it is not configured."""
        apiKey = self.getOpenWeatherMapConfig().get("api-key", "")
        if apiKey in ["", API_KEY_PLACEHOLDER] or apiKey.startswith("${"):
            logger.error("Please set openweathermap.api-key in config.toml (or OPENWEATHERMAP_API_KEY in .env)!")
            sys.exit(1)
        return apiKey

    def getWeatherCacheConfig(self) -> Dict[str, Any]:
        """
        Get resource cache configuration

        Returns:
            Dict with cache settings:
            - ttl: freshness window in seconds (default: 300)
            - max-locations: LRU bound on cached locations (default: 256)
        """
        return self.get("weather-cache", {})

    def getTelemetryConfig(self) -> Dict[str, Any]:
        """
        Get telemetry configuration

        Returns:
            Dict with telemetry settings:
            - sink: "logging" or "null" (default: "logging")
        """
        return self.get("telemetry", {})
