"""
MQTT Client Wrapper for the Gotify MQTT Forwarder

Provides a blocking wrapper around paho-mqtt: connect waits for the
broker's CONNACK, publish waits on paho's completion token, and disconnect
is bounded by a grace period.

Author: FaintGhost
Version: 1.0.0
License: MIT
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from plugins.mqtt_forwarder.config import MQTTConfig


class ConnectError(Exception):
    """Raised when a broker session cannot be established"""
    pass


class PublishError(Exception):
    """Raised when the transport does not accept a message"""
    pass


class MQTTClient:
    """
    Synchronous MQTT client wrapper for paho-mqtt.

    Every ``connect`` builds a fresh paho client for the given
    configuration; the network loop runs on paho's own thread. Connection
    state is never cached here, ``is_connected`` asks paho each time.
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 connect_timeout: float = 10.0, publish_timeout: float = 10.0):
        """
        Initialize MQTT client.

        Args:
            logger: Logger instance (optional)
            connect_timeout: Seconds to wait for the broker's CONNACK
            publish_timeout: Seconds to wait for a publish completion token
        """
        self.logger = logger or logging.getLogger(__name__)
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout

        self._client: Optional[mqtt.Client] = None
        self._config: Optional[MQTTConfig] = None

        # Set by the network thread
        self._connack_event = threading.Event()
        self._connack_reason = None
        self._disconnected_event = threading.Event()
        self._disconnected_event.set()

        self.stats = {
            'connection_count': 0,
            'connection_failures': 0,
            'disconnection_count': 0,
            'messages_published': 0,
            'publish_errors': 0,
            'last_connect_time': None,
            'last_disconnect_time': None,
        }

    def _create_client(self, config: MQTTConfig) -> mqtt.Client:
        """Create and configure a paho client for ``config``"""
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"gotify_mqtt_{uuid.uuid4().hex[:12]}",
            clean_session=True,
            protocol=mqtt.MQTTv311
        )

        if config.username:
            client.username_pw_set(config.username, config.password)
            self.logger.debug(f"Set MQTT credentials for user: {config.username}")

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_publish = self._on_publish
        return client

    def connect(self, config: MQTTConfig) -> None:
        """
        Connect to the MQTT broker described by ``config``.

        Blocks until the broker answers the handshake or the connect timeout
        expires. Any previous session is torn down first.

        Raises:
            ConnectError: If the broker is unreachable, refuses the
                connection, or does not answer in time
        """
        if self._client is not None:
            self._teardown(self._client)

        self._config = config
        self._connack_event.clear()
        self._connack_reason = None
        self._disconnected_event.clear()

        client = self._create_client(config)
        self._client = client

        self.logger.info(f"Connecting to MQTT broker at {config.broker} (keepalive={config.keep_alive}s)")

        try:
            client.connect(config.ip, config.port, keepalive=config.keep_alive)
        except (OSError, ValueError) as e:
            self._fail_connect(client)
            raise ConnectError(f"Failed to connect to MQTT Broker: {e}") from e

        client.loop_start()

        if not self._connack_event.wait(self.connect_timeout):
            self._fail_connect(client)
            raise ConnectError(
                f"Failed to connect to MQTT Broker: no answer from {config.broker} "
                f"within {self.connect_timeout:g} seconds"
            )

        reason = self._connack_reason
        if reason is not None and reason.is_failure:
            self._fail_connect(client)
            raise ConnectError(f"Failed to connect to MQTT Broker: {reason}")

        self.stats['connection_count'] += 1
        self.stats['last_connect_time'] = datetime.now(timezone.utc)

    def _fail_connect(self, client: mqtt.Client) -> None:
        self.stats['connection_failures'] += 1
        self._teardown(client)
        if self._client is client:
            self._client = None
        self._disconnected_event.set()

    def _teardown(self, client: mqtt.Client) -> None:
        """Stop a client's network loop and close its socket"""
        try:
            client.disconnect()
        except Exception as e:
            self.logger.debug(f"Ignoring error while closing MQTT session: {e}")
        try:
            client.loop_stop()
        except Exception as e:
            self.logger.warning(f"Error stopping MQTT network loop: {e}")

    def is_connected(self) -> bool:
        """
        Check if connected to MQTT broker.

        Returns:
            True if the current paho session is connected, False otherwise
        """
        client = self._client
        return client is not None and client.is_connected()

    def publish(self, topic: str, qos: int, retain: bool, payload: bytes) -> None:
        """
        Publish a message and wait for the transport to accept it.

        Args:
            topic: MQTT topic to publish to
            qos: Quality of Service level (0, 1, or 2)
            retain: Whether the broker retains the message
            payload: Message payload

        Raises:
            PublishError: If the message was not accepted
        """
        client = self._client
        if client is None or not client.is_connected():
            self.stats['publish_errors'] += 1
            raise PublishError("not connected to MQTT broker")

        try:
            info = client.publish(topic, payload, qos=qos, retain=retain)
        except ValueError as e:
            self.stats['publish_errors'] += 1
            raise PublishError(f"invalid publish parameters: {e}") from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self.stats['publish_errors'] += 1
            raise PublishError(f"publish rejected: {mqtt.error_string(info.rc)}")

        try:
            info.wait_for_publish(timeout=self.publish_timeout)
        except (RuntimeError, ValueError) as e:
            self.stats['publish_errors'] += 1
            raise PublishError(f"publish failed: {e}") from e

        if not info.is_published():
            self.stats['publish_errors'] += 1
            raise PublishError(
                f"publish not confirmed within {self.publish_timeout:g} seconds (mid={info.mid})"
            )

        self.stats['messages_published'] += 1
        self.logger.debug(
            f"Published message to MQTT - "
            f"topic={topic}, "
            f"size={len(payload)} bytes, "
            f"qos={qos}, "
            f"retain={retain}, "
            f"mid={info.mid}"
        )

    def disconnect(self, grace_period_ms: int = 250) -> None:
        """
        Disconnect from the MQTT broker.

        Best effort: waits at most ``grace_period_ms`` for the broker to
        acknowledge, then stops the network loop. Never raises.
        """
        client = self._client
        if client is None:
            self.logger.debug("Already disconnected from MQTT broker")
            return

        self.logger.info(f"Disconnecting from MQTT broker (grace={grace_period_ms}ms)")
        try:
            client.disconnect()
            if not self._disconnected_event.wait(grace_period_ms / 1000.0):
                self.logger.debug("Disconnect not acknowledged within grace period")
        except Exception as e:
            self.logger.warning(f"Error during disconnect: {e}")
        finally:
            try:
                client.loop_stop()
            except Exception as e:
                self.logger.warning(f"Error stopping MQTT network loop: {e}")
            if self._client is client:
                self._client = None
            self._disconnected_event.set()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get connection statistics.

        Returns:
            Dictionary of statistics
        """
        return self.stats.copy()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Network thread: CONNACK received"""
        if client is not self._client:
            return

        broker = self._config.broker if self._config else 'unknown'
        if reason_code.is_failure:
            self.logger.error(f"MQTT connection refused: {reason_code} - broker={broker}")
        else:
            username = self._config.username if self._config else ''
            self.logger.info(
                f"MQTT connection established - "
                f"broker={broker}, "
                f"username={username if username else 'anonymous'}"
            )
            self._disconnected_event.clear()

        self._connack_reason = reason_code
        self._connack_event.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        """Network thread: session closed"""
        if client is not self._client:
            return

        broker = self._config.broker if self._config else 'unknown'
        if reason_code.is_failure:
            self.logger.warning(f"MQTT disconnected unexpectedly ({reason_code}) - broker={broker}")
        else:
            self.logger.info(f"MQTT disconnected cleanly - broker={broker}")

        self.stats['disconnection_count'] += 1
        self.stats['last_disconnect_time'] = datetime.now(timezone.utc)
        self._disconnected_event.set()

    def _on_publish(self, client, userdata, mid, reason_code, properties):
        self.logger.debug(f"Message {mid} published successfully")
