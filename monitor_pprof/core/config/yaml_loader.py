"""
YAML Configuration Loader for the pprof Capture Service
Author: Drmusab
Last Modified: 2026-10-19 09:31:47 UTC

This module provides YAML-first configuration loading: a base ``config.yaml``,
an optional environment override file, deep merging, and environment variable
interpolation with ``${env:NAME:default}`` placeholders.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from monitor_pprof.core.error_handling import ConfigurationError
from monitor_pprof.observability.logging.config import get_logger

DEFAULT_CONFIG_DIR = Path(__file__).parent

_ENV_PATTERN = re.compile(r"\$\{env:([^}:]+)(?::([^}]*))?\}")

_ENV_ABBREVIATIONS = {
    "development": "dev",
    "production": "prod",
    "testing": "test",
}


class YamlConfigLoader:
    """
    YAML-first configuration loader.

    Environment files override the base file key by key; nested mappings are
    merged rather than replaced.
    """

    def __init__(self, environment: Optional[str] = None, config_dir: Union[str, Path, None] = None):
        """
        Initialize the YAML configuration loader.

        Args:
            environment: Environment name (development, production, testing)
            config_dir: Directory containing configuration files
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.logger = get_logger(__name__)

        self._config: Dict[str, Any] = {}
        self._loaded = False

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from YAML files.

        Returns:
            Complete configuration dictionary
        """
        if self._loaded:
            return self._config

        base_config = self._load_yaml_file("config.yaml")
        if base_config is None:
            raise ConfigurationError(
                f"Base configuration file config.yaml not found in {self.config_dir}",
                config_key="config.yaml",
            )

        env_config = self._load_yaml_file(f"config.{self.environment}.yaml")
        if env_config is None and self.environment in _ENV_ABBREVIATIONS:
            env_config = self._load_yaml_file(
                f"config.{_ENV_ABBREVIATIONS[self.environment]}.yaml"
            )

        self._config = self._deep_merge(base_config, env_config or {})
        self._config = self._interpolate_variables(self._config)
        self._config.setdefault("app", {})["environment"] = self.environment

        self._loaded = True
        self.logger.info(f"Configuration loaded for environment: {self.environment}")
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'controller.dotnet_monitor_url')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if not self._loaded:
            self.load()

        current: Any = self._config
        for part in key.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        value = self.get(section, {})
        return value if isinstance(value, dict) else {}

    def _load_yaml_file(self, filename: str) -> Optional[Dict[str, Any]]:
        file_path = self.config_dir / filename

        if not file_path.exists():
            self.logger.debug(f"Configuration file not found: {file_path}")
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML file {file_path}: {str(e)}", config_key=filename
            ) from e

        self.logger.debug(f"Loaded configuration from: {file_path}")
        return config or {}

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _interpolate_variables(self, config: Any) -> Any:
        if isinstance(config, dict):
            return {k: self._interpolate_variables(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._interpolate_variables(item) for item in config]
        elif isinstance(config, str) and "${" in config:
            return self._interpolate_string(config)
        else:
            return config

    def _interpolate_string(self, value: str) -> Union[str, int, float, bool]:
        """Replace ``${env:VAR:default}`` placeholders and coerce the result."""

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.getenv(var_name, default_value)

        result = _ENV_PATTERN.sub(replace_env_var, value)
        result = result.replace("${pid}", str(os.getpid()))

        return self._convert_type(result)

    def _convert_type(self, value: str) -> Union[str, int, float, bool]:
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False
        elif value.isdigit():
            return int(value)
        elif value.replace(".", "", 1).isdigit():
            return float(value)
        else:
            return value


__all__ = ["YamlConfigLoader", "DEFAULT_CONFIG_DIR"]
