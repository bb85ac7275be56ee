"""
Unit tests for logging setup
"""

import json
import logging
import logging.handlers

import pytest
import structlog
from pathlib import Path
import sys

# Add src directory to path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

import core.logging as core_logging
from core.logging import (
    ForwarderLogger,
    LOGGER_PREFIX,
    LogSettings,
    get_logger,
    get_structured_logger,
    initialize_logging,
    parse_size,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger back after each test"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestForwarderLogger:
    """Tests for ForwarderLogger"""

    def test_file_handler_with_rotation(self, temp_dir):
        log_file = temp_dir / "logs" / "forwarder.log"
        ForwarderLogger({'logging': {'level': 'DEBUG', 'file': str(log_file), 'max_size': '1MB', 'console': False}})

        handlers = logging.getLogger().handlers
        rotating = [h for h in handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 1024 * 1024
        assert log_file.parent.exists()

    def test_console_disabled_installs_no_handlers(self):
        ForwarderLogger({'logging': {'console': False}})
        assert logging.getLogger().handlers == []

    def test_console_handler_level(self):
        ForwarderLogger({'logging': {'level': 'DEBUG', 'console_level': 'warning'}})

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG

    def test_plugin_log_level(self):
        forwarder_logger = ForwarderLogger({'logging': {'console': False, 'plugins': {'mqtt': 'debug'}}})

        logger = forwarder_logger.get_logger('plugin_mqtt')

        assert logger.name == f'{LOGGER_PREFIX}.plugin_mqtt'
        assert logger.level == logging.DEBUG

    def test_prefixed_name_not_doubled(self):
        forwarder_logger = ForwarderLogger({'logging': {'console': False}})
        assert forwarder_logger.get_logger(f'{LOGGER_PREFIX}.main').name == f'{LOGGER_PREFIX}.main'

    def test_third_party_loggers_quieted(self):
        ForwarderLogger({'logging': {'console': False}})
        assert logging.getLogger('paho.mqtt.client').level == logging.WARNING

    def test_global_logger(self):
        initialize_logging({'logging': {'console': False}})
        assert get_logger('main').name == f'{LOGGER_PREFIX}.main'


class TestLogSettings:
    """Tests for reading the logging section"""

    @pytest.mark.parametrize("size,expected", [("10KB", 10240), ("2MB", 2 * 1024 * 1024), ("1GB", 1024 ** 3), ("512", 512), (4096, 4096)])
    def test_parse_size(self, size, expected):
        assert parse_size(size) == expected

    def test_defaults_for_missing_section(self):
        settings = LogSettings.from_config({})

        assert settings.level == 'INFO'
        assert settings.file == ''
        assert settings.max_size == 10 * 1024 * 1024
        assert settings.console is True
        assert settings.plugins == {}
        assert settings.service == 'gotify-mqtt-forwarder'

    def test_reads_service_name_and_levels(self):
        settings = LogSettings.from_config({
            'app': {'name': 'forwarder-test'},
            'logging': {'level': 'warning', 'plugins': {'mqtt': 'debug'}},
        })

        assert settings.service == 'forwarder-test'
        assert settings.level == 'WARNING'
        assert settings.plugins == {'mqtt': 'DEBUG'}


class TestStructuredEvents:
    """Tests for structlog event rendering"""

    def test_events_are_json_with_service(self, caplog):
        initialize_logging({'app': {'name': 'forwarder-test'}, 'logging': {'console': False}})
        logging.getLogger().addHandler(caplog.handler)
        events = get_structured_logger('events_check')

        with caplog.at_level(logging.INFO, logger=f'{LOGGER_PREFIX}.events_check'):
            events.info("message_forwarded", topic="home/alerts")

        record = json.loads(caplog.records[-1].getMessage())
        assert record['event'] == "message_forwarded"
        assert record['service'] == 'forwarder-test'
        assert record['topic'] == "home/alerts"
        assert record['level'] == "info"

    def test_uninitialized_logger_leaves_structlog_unconfigured(self, monkeypatch):
        monkeypatch.setattr(core_logging, '_logger_instance', None)
        structlog.reset_defaults()

        get_structured_logger('early').info("before_setup")

        assert not structlog.is_configured()
