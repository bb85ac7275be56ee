"""MQTT Forwarder Plugin for Gotify.

This plugin records webhook messages in the hub and forwards them to an
MQTT broker, queueing them while the broker is unreachable.
"""

from .config import MQTTConfig, ConfigValidationError
from .mqtt_client import ConnectError, PublishError
from .plugin import MQTTForwarderPlugin, PluginStateError

__all__ = [
    'MQTTForwarderPlugin',
    'MQTTConfig',
    'ConfigValidationError',
    'ConnectError',
    'PublishError',
    'PluginStateError',
]
