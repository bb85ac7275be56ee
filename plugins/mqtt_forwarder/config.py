"""
Configuration for the MQTT Forwarder plugin

Defines the immutable broker configuration record, its defaults, and the
validation applied before a configuration is installed.
"""

import ipaddress
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping


class ConfigValidationError(ValueError):
    """Raised when a plugin configuration is rejected"""
    pass


# JSON key -> dataclass field
_JSON_FIELDS = {
    'ip': 'ip',
    'port': 'port',
    'username': 'username',
    'password': 'password',
    'qos': 'qos',
    'topic': 'topic',
    'keepAlive': 'keep_alive',
    'retain': 'retain',
    'queueMaxSize': 'queue_max_size',
}


@dataclass(frozen=True)
class MQTTConfig:
    """Broker connection and publish settings"""
    ip: str = "127.0.0.1"
    port: int = 1883
    username: str = ""
    password: str = ""
    qos: int = 0
    topic: str = "gotify/messages"
    keep_alive: int = 60
    retain: bool = False
    queue_max_size: int = 0

    @property
    def broker(self) -> str:
        """Broker address as ``host:port`` (IPv6 hosts are bracketed)"""
        if ':' in self.ip:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the plugin's JSON configuration schema"""
        values = asdict(self)
        return {key: values[attr] for key, attr in _JSON_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MQTTConfig':
        """
        Build a validated configuration from the JSON schema.

        Keys missing from ``data`` keep their default values and unknown
        keys are ignored.

        Raises:
            ConfigValidationError: If any value is invalid
        """
        if not isinstance(data, Mapping):
            raise ConfigValidationError(
                f"Configuration validation failed: expected a mapping, got {type(data).__name__}"
            )

        values = asdict(cls())
        for key, attr in _JSON_FIELDS.items():
            if key in data:
                values[attr] = data[key]
            elif attr in data:
                values[attr] = data[attr]

        config = cls(**values)
        validate_config(config)
        return config


def default_config() -> MQTTConfig:
    """Get the configuration used when the user has not set one"""
    return MQTTConfig()


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(
            f"Configuration validation failed: {name} must be an integer, got {type(value).__name__}"
        )


def _require_str(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise ConfigValidationError(
            f"Configuration validation failed: {name} must be a string, got {type(value).__name__}"
        )


def validate_config(config: MQTTConfig) -> None:
    """
    Validate a broker configuration.

    Raises:
        ConfigValidationError: Describing the first invalid value found
    """
    _require_str('ip', config.ip)
    try:
        ipaddress.ip_address(config.ip)
    except ValueError:
        raise ConfigValidationError(f"invalid IP address: {config.ip}")

    _require_int('port', config.port)
    if config.port < 1 or config.port > 65535:
        raise ConfigValidationError(f"port out of range: {config.port}")

    _require_int('keepAlive', config.keep_alive)
    if config.keep_alive < 0:
        raise ConfigValidationError(f"invalid KeepAlive value: {config.keep_alive}")

    _require_str('username', config.username)
    _require_str('password', config.password)

    _require_int('qos', config.qos)
    if config.qos not in (0, 1, 2):
        raise ConfigValidationError(f"invalid QoS level: {config.qos}, must be 0, 1, or 2")

    _require_str('topic', config.topic)
    if not config.topic.strip():
        raise ConfigValidationError("Configuration validation failed: topic cannot be empty")
    if '+' in config.topic or '#' in config.topic:
        raise ConfigValidationError(
            f"Configuration validation failed: topic cannot contain MQTT wildcards (+ or #), got '{config.topic}'"
        )

    if not isinstance(config.retain, bool):
        raise ConfigValidationError(
            f"Configuration validation failed: retain must be a boolean, got {type(config.retain).__name__}"
        )

    _require_int('queueMaxSize', config.queue_max_size)
    if config.queue_max_size < 0:
        raise ConfigValidationError(
            f"Configuration validation failed: queueMaxSize must be >= 0 (0 for unbounded), got {config.queue_max_size}"
        )
