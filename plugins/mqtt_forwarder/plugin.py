"""
MQTT Forwarder Plugin for Gotify

Forwards messages posted to the plugin's webhook into the hub and on to an
MQTT broker. Messages that arrive while the broker is unreachable are held
in memory and replayed, in arrival order, on the next successful enable.

Author: FaintGhost
Version: 1.0.0
License: MIT
"""

import sys
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

# Add src directory to path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from core.logging import get_logger
from core.plugin_interfaces import BasePlugin, MessageHandler, PluginMetadata
from models.message import Message

from plugins.mqtt_forwarder.config import MQTTConfig, default_config
from plugins.mqtt_forwarder.message_queue import MessageQueue, QueuedMessage
from plugins.mqtt_forwarder.mqtt_client import MQTTClient, ConnectError, PublishError


DISCONNECT_GRACE_MS = 250


class PluginStateError(RuntimeError):
    """Raised when a lifecycle hook is called in the wrong state"""
    pass


class MQTTForwarderPlugin(BasePlugin):
    """
    MQTT Forwarder Plugin

    Holds the broker configuration, the broker client and the pending
    queue for one hub user. One lock covers the queue and every
    connection-state check, so deciding to publish or to queue never races
    with a drain.
    """

    def __init__(self, mqtt_client: Optional[MQTTClient] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the plugin.

        Args:
            mqtt_client: Broker client to use (a new one is created if omitted)
            logger: Logger instance
        """
        self.logger = logger or get_logger('plugin_mqtt')

        self.enabled = False
        self.base_path = ""
        self.last_error: Optional[str] = None

        self._config: Optional[MQTTConfig] = None
        self._msg_handler: Optional[MessageHandler] = None
        self.mqtt_client = mqtt_client or MQTTClient(logger=self.logger)
        self.message_queue = MessageQueue(logger=self.logger)

        self._lock = threading.Lock()

        self.stats = {
            'messages_received': 0,
            'messages_published': 0,
            'messages_queued': 0,
            'publish_errors': 0,
            'last_publish_time': None,
        }

    @property
    def config(self) -> Optional[MQTTConfig]:
        """The installed configuration, or None before one is set"""
        return self._config

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    def get_metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="gotify/mqtt",
            version="1.0.0",
            description="A Gotify plugin for MQTT message forwarding with customizable settings.",
            author="FaintGhost",
            module_path="github.com/FaintGhost/gotify-webhook-mqtt",
            website="https://github.com/FaintGhost/gotify-webhook-mqtt",
            license="MIT"
        )

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._msg_handler = handler

    @property
    def message_handler(self) -> Optional[MessageHandler]:
        return self._msg_handler

    def default_config(self) -> MQTTConfig:
        return default_config()

    def validate_and_set_config(self, config: Union[MQTTConfig, Mapping[str, Any]]) -> None:
        """
        Validate a configuration and install it wholesale.

        Args:
            config: An MQTTConfig or a mapping in the plugin's JSON schema

        Raises:
            ConfigValidationError: If the configuration is invalid; the
                previously installed configuration is kept
        """
        if isinstance(config, MQTTConfig):
            # Re-run validation on a copy built from its own values
            new_config = MQTTConfig.from_dict(config.to_dict())
        else:
            new_config = MQTTConfig.from_dict(config)

        with self._lock:
            self._config = new_config
            self.message_queue.max_size = new_config.queue_max_size

        self.logger.info(
            f"Configuration installed - "
            f"broker={new_config.broker}, "
            f"topic={new_config.topic}, "
            f"qos={new_config.qos}, "
            f"retain={new_config.retain}, "
            f"keepalive={new_config.keep_alive}s, "
            f"queue_max={new_config.queue_max_size or 'unbounded'}"
        )

    def enable(self) -> None:
        """
        Enable the plugin and connect to the broker.

        On a successful connect every queued message is published in arrival
        order. On failure the error is kept for the display, the plugin stays
        enabled, and later messages queue.

        Raises:
            PluginStateError: If no configuration has been installed
            ConnectError: If the broker connection failed
        """
        config = self._config
        if config is None:
            raise PluginStateError("cannot enable MQTT forwarder: no configuration installed")

        self.enabled = True
        self.last_error = None

        try:
            self.mqtt_client.connect(config)
        except ConnectError as e:
            self.last_error = str(e)
            self.logger.error(
                f"{self.last_error} - "
                f"broker={config.broker}, "
                f"queued={self.message_queue.size()}"
            )
            raise

        with self._lock:
            pending = self.message_queue.size()
            if pending:
                self.logger.info(f"Replaying queued messages - queue_size={pending}")
            self._drain_locked(config)

        self.logger.info(f"Successfully connected to MQTT Broker - broker={config.broker}")

    def disable(self) -> None:
        """
        Disable the plugin and disconnect from the broker.

        Queued messages stay queued for the next successful enable.
        """
        self.enabled = False
        self.mqtt_client.disconnect(DISCONNECT_GRACE_MS)

        queued = self.message_queue.size()
        if queued:
            self.logger.info(f"MQTT forwarder disabled with messages still queued - queue_size={queued}")
        else:
            self.logger.info("MQTT forwarder disabled")

    def get_display(self, location: Optional[str]) -> str:
        """
        Get the text shown on the plugin's page.

        Args:
            location: URL the hub is served from, e.g. ``http://gotify.local``
        """
        usage = f"Send messages to {location or ''}{self.base_path}message to forward them to MQTT."
        if self.last_error:
            return f"Error: {self.last_error}\n\n{usage}"
        return usage

    def register_webhook(self, base_path: str, router) -> None:
        """
        Mount the inbound message endpoint.

        Args:
            base_path: Path the hub serves this plugin under, with a
                trailing slash
            router: FastAPI APIRouter the endpoint is added to
        """
        from plugins.mqtt_forwarder.webhook import add_message_route

        self.base_path = base_path
        add_message_route(router, self)

    # ------------------------------------------------------------------
    # Forwarding
    # ------------------------------------------------------------------

    def handle_message(self, message: Message) -> bool:
        """
        Publish a message now, or queue it if the broker is unreachable.

        The connection check and the resulting publish or enqueue happen
        under one lock hold.

        Returns:
            True if the message was published, False if it was queued
        """
        with self._lock:
            self.stats['messages_received'] += 1
            config = self._config

            if config is None or not self.mqtt_client.is_connected():
                self._enqueue_locked(message)
                return False

            # A backlog while connected means an earlier publish failed or the
            # transport restored the link on its own; it goes out first.
            if not self.message_queue.is_empty():
                if not self._drain_locked(config):
                    self._enqueue_locked(message)
                    return False

            entry = QueuedMessage(message=message)
            if self._publish_locked(config, entry):
                return True

            self._enqueue_locked(message, attempts=entry.attempts)
            return False

    def _enqueue_locked(self, message: Message, attempts: int = 0) -> None:
        entry = self.message_queue.enqueue(message)
        entry.attempts = attempts
        self.stats['messages_queued'] += 1
        self.logger.debug(
            f"Broker unavailable, queued message - "
            f"title={message.title!r}, "
            f"queue_size={self.message_queue.size()}"
        )

    def _publish_locked(self, config: MQTTConfig, entry: QueuedMessage) -> bool:
        """Publish one entry; the caller holds the lock"""
        entry.attempts += 1
        try:
            self.mqtt_client.publish(config.topic, config.qos, config.retain, entry.message.payload())
        except PublishError as e:
            self.stats['publish_errors'] += 1
            self.logger.warning(
                f"Publish failed, message kept for retry - "
                f"title={entry.message.title!r}, "
                f"topic={config.topic}, "
                f"attempts={entry.attempts}, "
                f"error={e}"
            )
            return False

        self.stats['messages_published'] += 1
        self.stats['last_publish_time'] = datetime.now(timezone.utc)
        self.logger.debug(
            f"Forwarded message to MQTT - "
            f"title={entry.message.title!r}, "
            f"topic={config.topic}, "
            f"size={len(entry.message.message)}"
        )
        return True

    def _drain_locked(self, config: MQTTConfig) -> bool:
        """
        Publish every queued message in FIFO order; the caller holds the lock.

        Stops at the first failed publish and puts that message and all
        later ones back at the head of the queue.

        Returns:
            True if the queue was fully drained
        """
        entries: List[QueuedMessage] = self.message_queue.drain_all()

        for index, entry in enumerate(entries):
            if not self._publish_locked(config, entry):
                remaining = entries[index:]
                self.message_queue.requeue_front(remaining)
                self.logger.warning(
                    f"Queue replay interrupted - "
                    f"published={index}, "
                    f"requeued={len(remaining)}"
                )
                return False

        if entries:
            self.logger.info(f"Replayed queued messages - published={len(entries)}")
        return True

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return self.mqtt_client.is_connected()

    def get_health_status(self) -> Dict[str, Any]:
        """
        Get plugin health status.

        Returns:
            Dictionary with lifecycle state, connection status, last error,
            message counters, queue statistics and broker client statistics
        """
        with self._lock:
            queue_stats = self.message_queue.get_statistics()
            stats = self.stats.copy()

        connected = self.is_connected()
        client_stats = self.mqtt_client.get_stats()
        config = self._config

        return {
            'healthy': self.enabled and connected,
            'enabled': self.enabled,
            'connected': connected,
            'last_error': self.last_error,
            'broker': config.broker if config else None,
            'topic': config.topic if config else None,

            'messages_received': stats['messages_received'],
            'messages_published': stats['messages_published'],
            'messages_queued': stats['messages_queued'],
            'publish_errors': stats['publish_errors'],
            'last_publish_time': stats['last_publish_time'].isoformat() if stats['last_publish_time'] else None,

            'queue': queue_stats,

            'connection_count': client_stats.get('connection_count', 0),
            'connection_failures': client_stats.get('connection_failures', 0),
            'disconnection_count': client_stats.get('disconnection_count', 0),
            'last_connect_time': client_stats['last_connect_time'].isoformat() if client_stats.get('last_connect_time') else None,
            'last_disconnect_time': client_stats['last_disconnect_time'].isoformat() if client_stats.get('last_disconnect_time') else None,
        }


def create_plugin(mqtt_client: Optional[MQTTClient] = None) -> MQTTForwarderPlugin:
    """
    Factory function to create a plugin instance.

    Returns:
        MQTTForwarderPlugin instance
    """
    return MQTTForwarderPlugin(mqtt_client=mqtt_client)
