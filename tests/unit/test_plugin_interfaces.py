"""
Unit tests for the plugin interfaces
"""

import pytest
from pathlib import Path
import sys

# Add src directory to path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from core.plugin_interfaces import BasePlugin, MessageHandler, PluginMetadata
from plugins.mqtt_forwarder.plugin import MQTTForwarderPlugin


class TestPluginMetadata:
    """Tests for PluginMetadata validation"""

    def test_valid_metadata(self):
        metadata = PluginMetadata(
            name="gotify/mqtt",
            version="1.0.0",
            description="Forwarder",
            author="Someone"
        )
        assert metadata.module_path == ""

    @pytest.mark.parametrize("name,version", [("", "1.0.0"), ("gotify/mqtt", ""), (None, "1.0.0")])
    def test_invalid_metadata(self, name, version):
        with pytest.raises(ValueError):
            PluginMetadata(name=name, version=version, description="", author="")


class TestAbstractInterfaces:
    """Tests for the abstract host seams"""

    def test_message_handler_is_abstract(self):
        with pytest.raises(TypeError):
            MessageHandler()

    def test_base_plugin_is_abstract(self):
        with pytest.raises(TypeError):
            BasePlugin()

    def test_forwarder_implements_base_plugin(self, fake_client):
        assert isinstance(MQTTForwarderPlugin(mqtt_client=fake_client), BasePlugin)
