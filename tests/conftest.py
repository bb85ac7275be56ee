"""
Global pytest configuration and fixtures for the Gotify MQTT Forwarder tests.
"""
import sys
import tempfile
from pathlib import Path

import pytest

# Make the src packages and the project root importable
ROOT_DIR = Path(__file__).parent.parent
for path in (ROOT_DIR / "src", ROOT_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from plugins.mqtt_forwarder.config import MQTTConfig
from plugins.mqtt_forwarder.plugin import MQTTForwarderPlugin
from tests.mocks.broker_mocks import FakeMQTTClient, RecordingMessageHandler


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def valid_config_dict():
    """Provide a valid plugin configuration in its JSON schema."""
    return {
        'ip': '192.168.1.10',
        'port': 1883,
        'username': 'gotify',
        'password': 'secret',
        'qos': 1,
        'topic': 'home/notifications',
        'keepAlive': 30,
        'retain': False,
    }


@pytest.fixture
def mqtt_config(valid_config_dict):
    """Provide a validated MQTTConfig."""
    return MQTTConfig.from_dict(valid_config_dict)


@pytest.fixture
def fake_client():
    """Provide a broker client double."""
    return FakeMQTTClient()


@pytest.fixture
def hub_handler():
    """Provide a hub message handler double."""
    return RecordingMessageHandler()


@pytest.fixture
def plugin(fake_client, hub_handler, mqtt_config):
    """Provide a configured, not yet enabled forwarder plugin."""
    plugin = MQTTForwarderPlugin(mqtt_client=fake_client)
    plugin.set_message_handler(hub_handler)
    plugin.validate_and_set_config(mqtt_config)
    return plugin

