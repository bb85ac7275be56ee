"""
Core module for the Gotify MQTT Forwarder

Contains configuration management, logging, and the plugin/host interfaces.
"""

from .plugin_interfaces import (
    BasePlugin,
    DeliveryError,
    MessageHandler,
    PluginMetadata
)

__all__ = [
    'BasePlugin',
    'DeliveryError',
    'MessageHandler',
    'PluginMetadata'
]
