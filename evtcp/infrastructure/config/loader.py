"""
Configuration loading and saving utilities.

This module loads configuration from YAML or JSON files and overlays
environment variables prefixed with ``EVTCP_``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ...core.exceptions import ConfigurationError
from .models import ClientAppConfig


class ConfigLoader:
    """Configuration loader supporting multiple formats and sources."""

    def __init__(self, env_prefix: str = "EVTCP_") -> None:
        self._env_prefix = env_prefix

    def load_config(self, config_file: Optional[str] = None) -> ClientAppConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to configuration file (optional)

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigurationError: If the file or a value is invalid
        """
        config_data: Dict[str, Any] = {}

        if config_file:
            config_data = self._load_from_file(config_file)

        env_overrides = self._load_from_environment()
        config_data = self._merge_configs(config_data, env_overrides)

        config = ClientAppConfig.from_dict(config_data)
        config.config_file_path = config_file

        return config

    def save_config(self, config: ClientAppConfig, file_path: str, format: str = "yaml") -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: File format (yaml or json)
        """
        config_data = config.to_dict()
        config_data.pop('config_file_path', None)

        if format.lower() == "yaml":
            self._save_yaml(config_data, file_path)
        elif format.lower() == "json":
            self._save_json(config_data, file_path)
        else:
            raise ConfigurationError(f"Unsupported format: {format}")

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        path = Path(file_path)

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        if path.suffix.lower() in ['.yaml', '.yml']:
            data = self._load_yaml(path)
        elif path.suffix.lower() == '.json':
            data = self._load_json(path)
        else:
            raise ConfigurationError(
                f"Unsupported configuration file format: {path.suffix}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping in {file_path}")
        return data

    def _load_yaml(self, path: Path) -> Any:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading {path}: {e}")

    def _load_json(self, path: Path) -> Any:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading {path}: {e}")

    def _save_yaml(self, data: Dict[str, Any], file_path: str) -> None:
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(f"Error writing YAML to {file_path}: {e}")

    def _save_json(self, data: Dict[str, Any], file_path: str) -> None:
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error writing JSON to {file_path}: {e}")

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables."""
        config: Dict[str, Any] = {}

        env_mappings = {
            f"{self._env_prefix}DEBUG": ("debug", self._parse_bool),
            f"{self._env_prefix}SEND_INTERVAL": ("send_interval", int),
            f"{self._env_prefix}TCP_HOST": ("tcp.host", str),
            f"{self._env_prefix}TCP_PORT": ("tcp.port", int),
            f"{self._env_prefix}TCP_NODELAY": ("tcp.nodelay", self._parse_bool),
            f"{self._env_prefix}TCP_KEEPALIVE": ("tcp.keepalive", self._parse_bool),
            f"{self._env_prefix}RECONNECT_ENABLED": ("reconnect.enabled", self._parse_bool),
            f"{self._env_prefix}RECONNECT_MIN_DELAY": ("reconnect.min_delay", int),
            f"{self._env_prefix}RECONNECT_MAX_DELAY": ("reconnect.max_delay", int),
            f"{self._env_prefix}RECONNECT_POLICY": ("reconnect.delay_policy", str),
            f"{self._env_prefix}RECONNECT_MAX_RETRY": ("reconnect.max_retry_cnt", int),
            f"{self._env_prefix}LOG_LEVEL": ("logging.level", str),
            f"{self._env_prefix}LOG_DIR": ("logging.log_directory", str),
            f"{self._env_prefix}LOG_FILE_ENABLED": ("logging.file_enabled", self._parse_bool),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    converted_value = converter(value)  # type: ignore[operator]
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_var}: {value} ({e})")
                self._set_nested_value(config, config_path, converted_value)

        return config

    def _parse_bool(self, value: str) -> bool:
        """Parse boolean value from string."""
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result
