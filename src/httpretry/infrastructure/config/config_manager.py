"""Configuration manager for loading and validating .httpretry.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from httpretry.domain.config import AppConfig, HTTPConfig, RetryConfig
from httpretry.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".httpretry.yml"

# Environment variable -> (section, key, parser)
ENV_OVERRIDES: Dict[str, tuple] = {
    "HTTPRETRY_RETRY_MAX": ("retry", "retry_max", int),
    "HTTPRETRY_RETRY_WAIT_MIN": ("retry", "retry_wait_min", float),
    "HTTPRETRY_RETRY_WAIT_MAX": ("retry", "retry_wait_max", float),
    "HTTPRETRY_TIMEOUT": ("http", "timeout", float),
    "HTTPRETRY_USER_AGENT": ("http", "user_agent", str),
}


class ConfigManager:
    """Manages configuration from .httpretry.yml and environment variables

    Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .httpretry.yml file (searched from current directory upwards)
    3. Environment variables (HTTPRETRY_*)
    4. CLI arguments (handled by CLI layer)
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize config manager

        Args:
            config_path: Path to .httpretry.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .httpretry.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and environment, validate with Pydantic

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the file cannot be parsed
        """
        config_dict: Dict[str, Any] = {"retry": {}, "http": {}}

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")
        elif self.config_path:
            logger.warning(f"Config file {self.config_path} does not exist, using defaults")

        config_dict = self._apply_env_overrides(copy.deepcopy(config_dict))
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply HTTPRETRY_* environment variable overrides

        Raises:
            ConfigurationError: If a variable cannot be parsed
        """
        for env_name, (section, key, parse) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                value = parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][key] = value
            logger.debug(f"{env_name} overrides {section}.{key}")
        return config

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration

        Returns:
            Retry configuration model
        """
        return self.config.retry

    def get_http_config(self) -> HTTPConfig:
        """Get HTTP transport configuration

        Returns:
            HTTP configuration model
        """
        return self.config.http

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "retry.retry_max" or "retry")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
