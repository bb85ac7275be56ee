"""
Plugin Interfaces for the Gotify MQTT Forwarder

Defines the seams between a hub plugin and its host: plugin metadata,
the lifecycle hooks the host calls, and the message handler the host
provides for delivering messages into the hub itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

try:
    from ..models.message import Message
except ImportError:
    from models.message import Message


class DeliveryError(Exception):
    """Raised when the hub fails to record a message"""
    pass


@dataclass
class PluginMetadata:
    """Plugin metadata reported to the hub"""
    name: str
    version: str
    description: str
    author: str
    module_path: str = ""
    website: str = ""
    license: str = ""

    def __post_init__(self):
        """Validate metadata after initialization"""
        if not self.name or not isinstance(self.name, str):
            raise ValueError("Plugin name must be a non-empty string")
        if not self.version or not isinstance(self.version, str):
            raise ValueError("Plugin version must be a non-empty string")


class MessageHandler(ABC):
    """Hub-side delivery of messages produced by a plugin"""

    @abstractmethod
    def send_message(self, message: Message) -> None:
        """
        Deliver a message to the hub.

        Args:
            message: The message to record

        Raises:
            DeliveryError: If the hub did not record the message
        """
        pass


class BasePlugin(ABC):
    """
    Abstract base class for hub plugins.

    The host drives a plugin only through these hooks. Calls may arrive
    from any thread.
    """

    @abstractmethod
    def enable(self) -> None:
        """Enable the plugin."""
        pass

    @abstractmethod
    def disable(self) -> None:
        """Disable the plugin."""
        pass

    @abstractmethod
    def set_message_handler(self, handler: MessageHandler) -> None:
        """Install the hub's message handler."""
        pass

    @abstractmethod
    def default_config(self) -> Any:
        """Get the configuration installed when the user has none."""
        pass

    @abstractmethod
    def validate_and_set_config(self, config: Any) -> None:
        """
        Validate a configuration and install it.

        Raises an exception describing the problem if the configuration is
        invalid; the previous configuration stays installed.
        """
        pass

    @abstractmethod
    def get_display(self, location: Optional[str]) -> str:
        """Get the text shown on the plugin's page in the hub."""
        pass

    @abstractmethod
    def get_metadata(self) -> PluginMetadata:
        """Get plugin metadata."""
        pass
