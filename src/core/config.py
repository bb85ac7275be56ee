"""
Configuration Management System for the Gotify MQTT Forwarder

Handles loading service configuration from environment variables and
config files, and provides validation and runtime updates.
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, List, Optional, Callable
from pathlib import Path
from dataclasses import dataclass


@dataclass
class ConfigSource:
    """Configuration source definition"""
    name: str
    priority: int
    loader: Callable
    path: Optional[str] = None


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


class ConfigurationManager:
    """
    Manages service configuration with support for multiple sources,
    validation, and runtime updates.

    Sources are merged lowest priority first: built-in defaults,
    ``default.yaml``, ``config.yaml``, then ``GOTIFY_MQTT_*`` environment
    variables.
    """

    ENV_MAPPINGS = {
        "GOTIFY_MQTT_DEBUG": "app.debug",
        "GOTIFY_MQTT_LOG_LEVEL": "logging.level",
        "GOTIFY_MQTT_HOST": "server.host",
        "GOTIFY_MQTT_PORT": "server.port",
        "GOTIFY_MQTT_HUB_URL": "hub.url",
        "GOTIFY_MQTT_HUB_TOKEN": "hub.app_token",
        "GOTIFY_MQTT_BASE_PATH": "plugin.base_path",
        "GOTIFY_MQTT_PLUGIN_CONFIG": "plugin.config",
    }

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.sources: List[ConfigSource] = []
        self.logger = logging.getLogger(__name__)

        # Default configuration values
        self.defaults = {
            "app": {
                "name": "gotify-mqtt-forwarder",
                "version": "1.0.0",
                "debug": False
            },
            "server": {
                "host": "0.0.0.0",
                "port": 8080
            },
            "hub": {
                "url": "http://127.0.0.1:80",
                "app_token": "",
                "timeout": 10
            },
            "plugin": {
                "base_path": "/plugin/mqtt/",
                "location": "",
                "config": {}
            },
            "logging": {
                "level": "INFO",
                "file": "",
                "max_size": "10MB",
                "backup_count": 5,
                "console": True,
                "console_level": "INFO",
                "plugins": {}
            }
        }

        self._setup_sources()

    def _setup_sources(self):
        """Set up configuration sources in priority order"""
        # Environment variables (highest priority)
        self.sources.append(ConfigSource(
            name="environment",
            priority=4,
            loader=self._load_from_env
        ))

        # Local config file
        local_config_path = str(self.config_dir / "config.yaml")
        self.sources.append(ConfigSource(
            name="local_config",
            priority=3,
            loader=lambda: self._load_from_file(local_config_path),
            path=local_config_path
        ))

        # Default config file
        default_config_path = str(self.config_dir / "default.yaml")
        self.sources.append(ConfigSource(
            name="default_config",
            priority=2,
            loader=lambda: self._load_from_file(default_config_path),
            path=default_config_path
        ))

        # Built-in defaults (lowest priority)
        self.sources.append(ConfigSource(
            name="defaults",
            priority=1,
            loader=lambda: self.defaults
        ))

    def load_config(self) -> None:
        """Load configuration from all sources"""
        self.logger.info("Loading configuration from all sources")

        merged_config = {}

        # Lowest priority first so later sources override earlier ones
        for source in sorted(self.sources, key=lambda x: x.priority):
            try:
                source_config = source.loader()
                if source_config:
                    merged_config = self._deep_merge(merged_config, source_config)
                    self.logger.debug(f"Loaded configuration from {source.name}")
            except Exception as e:
                self.logger.warning(f"Failed to load config from {source.name}: {e}")

        self.config = merged_config
        self._validate_config()
        self.logger.info("Configuration loaded successfully")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config = {}

        for env_var, config_key in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            # Convert string values to appropriate types
            if config_key == "plugin.config":
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    self.logger.warning(f"Invalid JSON in {env_var}: {value}")
                    continue
            elif value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            elif value.isdigit():
                value = int(value)

            self._set_nested_value(config, config_key, value)

        return config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file"""
        path = Path(file_path)

        if not path.exists():
            return {}

        try:
            with open(path, 'r') as f:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    return yaml.safe_load(f) or {}
                elif path.suffix.lower() == '.json':
                    return json.load(f)
                else:
                    self.logger.warning(f"Unsupported config file format: {path}")
                    return {}
        except Exception as e:
            self.logger.error(f"Error loading config file {path}: {e}")
            return {}

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, key_path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation"""
        keys = key_path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """Validate configuration values"""
        errors = []

        required_sections = ['app', 'server', 'hub', 'plugin']
        for section in required_sections:
            if section not in self.config:
                errors.append(f"Missing required configuration section: {section}")

        server_port = self.get('server.port')
        if not isinstance(server_port, int) or server_port < 1 or server_port > 65535:
            errors.append(f"Invalid server port: {server_port}")

        hub_url = self.get('hub.url')
        if not isinstance(hub_url, str) or not hub_url.startswith(('http://', 'https://')):
            errors.append(f"Invalid hub url: {hub_url}")

        base_path = self.get('plugin.base_path')
        if not isinstance(base_path, str) or not base_path.startswith('/'):
            errors.append(f"Invalid plugin base path: {base_path}")

        if not isinstance(self.get('plugin.config', {}), dict):
            errors.append("plugin.config must be a mapping")

        log_level = self.get('logging.level', 'INFO')
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if not isinstance(log_level, str) or log_level.upper() not in valid_levels:
            errors.append(f"Invalid log level: {log_level}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split('.')
        current = self.config

        try:
            for k in keys:
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        self._set_nested_value(self.config, key, value)

    def get_plugin_config(self) -> Dict[str, Any]:
        """Get the MQTT plugin's JSON configuration (may be empty)"""
        return self.get('plugin.config', {}) or {}
