"""
Property-based tests for the MQTT Forwarder

Tests universal properties of queueing while disconnected and replaying on
enable: arrival order is kept, nothing is published twice, nothing queued
is lost, and a bounded queue keeps the newest messages.
"""

import pytest
from hypothesis import given, strategies as st, settings
from pathlib import Path
import sys

# Add src directory to path for imports
src_path = Path(__file__).parent.parent.parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.message import Message
from plugins.mqtt_forwarder.message_queue import MessageQueue
from plugins.mqtt_forwarder.mqtt_client import ConnectError
from plugins.mqtt_forwarder.plugin import MQTTForwarderPlugin
from tests.mocks.broker_mocks import FakeMQTTClient


# ============================================================================
# Hypothesis Strategies for Generating Test Data
# ============================================================================

message_text_strategy = st.text(min_size=0, max_size=50)

# A session script: each step either delivers a message or toggles the plugin
step_strategy = st.one_of(
    st.just("enable"),
    st.just("disable"),
    st.just("refuse_enable"),
    st.just("fail_publish"),
    st.just("message"),
)


def _new_plugin(queue_max_size=0):
    client = FakeMQTTClient()
    plugin = MQTTForwarderPlugin(mqtt_client=client)
    plugin.validate_and_set_config({'queueMaxSize': queue_max_size})
    return plugin, client


# ============================================================================
# Property Tests
# ============================================================================

class TestReplayOrdering:
    """Messages queued while disconnected are published in arrival order"""

    @settings(max_examples=100, deadline=None)
    @given(texts=st.lists(message_text_strategy, min_size=0, max_size=40))
    def test_fifo_replay(self, texts):
        plugin, client = _new_plugin()

        for text in texts:
            assert plugin.handle_message(Message(message=text)) is False

        plugin.enable()

        assert client.payloads == texts
        assert plugin.message_queue.is_empty()

    @settings(max_examples=50, deadline=None)
    @given(
        before=st.lists(message_text_strategy, max_size=20),
        after=st.lists(message_text_strategy, max_size=20),
    )
    def test_replay_precedes_later_messages(self, before, after):
        plugin, client = _new_plugin()

        for text in before:
            plugin.handle_message(Message(message=text))
        plugin.enable()
        for text in after:
            assert plugin.handle_message(Message(message=text)) is True

        assert client.payloads == before + after

    @settings(max_examples=50, deadline=None)
    @given(count=st.integers(min_value=0, max_value=10))
    def test_enable_with_empty_queue_publishes_nothing(self, count):
        plugin, client = _new_plugin()

        for _ in range(count):
            plugin.enable()
            plugin.disable()

        assert client.published == []


class TestDeliveryAccounting:
    """Every accepted message is either published once or still queued"""

    @settings(max_examples=200, deadline=None)
    @given(steps=st.lists(step_strategy, min_size=1, max_size=60))
    def test_no_loss_no_duplicates(self, steps):
        plugin, client = _new_plugin()
        sent = []

        for step in steps:
            if step == "enable":
                client.refuse_connect = False
                plugin.enable()
            elif step == "refuse_enable":
                client.refuse_connect = True
                with pytest.raises(ConnectError):
                    plugin.enable()
            elif step == "disable":
                plugin.disable()
            elif step == "fail_publish":
                client.fail_next_publishes += 1
            else:
                text = f"msg-{len(sent)}"
                sent.append(text)
                plugin.handle_message(Message(message=text))

        queued = [entry.message.message for entry in plugin.message_queue.drain_all()]
        published = client.payloads

        assert sorted(published + queued) == sorted(sent)
        assert len(set(published)) == len(published)
        # Published messages form a prefix of arrival order
        assert published + queued == sent


class TestBoundedQueue:
    """A bounded queue keeps the newest messages"""

    @settings(max_examples=100, deadline=None)
    @given(
        max_size=st.integers(min_value=1, max_value=20),
        texts=st.lists(message_text_strategy, max_size=60),
    )
    def test_keeps_newest(self, max_size, texts):
        queue = MessageQueue(max_size=max_size)

        for text in texts:
            queue.enqueue(Message(message=text))

        assert queue.size() == min(len(texts), max_size)
        assert [e.message.message for e in queue.drain_all()] == texts[-max_size:]

    @settings(max_examples=100, deadline=None)
    @given(
        texts=st.lists(message_text_strategy, max_size=30),
        split=st.integers(min_value=0, max_value=30),
    )
    def test_requeue_restores_order(self, texts, split):
        queue = MessageQueue()
        for text in texts:
            queue.enqueue(Message(message=text))

        entries = queue.drain_all()
        split = min(split, len(entries))
        queue.requeue_front(entries[split:])

        assert [e.message.message for e in queue.drain_all()] == texts[split:]
