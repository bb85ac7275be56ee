"""
Logging setup for the Gotify MQTT Forwarder

Routes the forwarder's loggers to the console and an optional rotating
log file. Webhook and lifecycle events are emitted through structlog as
JSON lines tagged with the service name.
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import structlog


LOGGER_PREFIX = 'gotify_mqtt'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that log every request or packet at INFO/DEBUG
QUIET_LOGGERS = (
    'paho.mqtt.client',
    'urllib3.connectionpool',
    'uvicorn.access',
)

_SIZE_UNITS = {'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}


def parse_size(value) -> int:
    """Convert a size such as '10MB' or 4096 to bytes"""
    text = str(value).strip().upper()
    for suffix, factor in _SIZE_UNITS.items():
        if text.endswith(suffix):
            return int(text[:-len(suffix)]) * factor
    return int(text)


@dataclass
class LogSettings:
    """The ``logging`` section of the service configuration"""
    level: str = 'INFO'
    file: str = ''
    max_size: int = 10 * 1024 ** 2
    backup_count: int = 5
    console: bool = True
    console_level: str = 'INFO'
    plugins: Dict[str, str] = field(default_factory=dict)
    service: str = 'gotify-mqtt-forwarder'

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LogSettings':
        section = config.get('logging', {}) or {}
        return cls(
            level=str(section.get('level', 'INFO')).upper(),
            file=section.get('file', '') or '',
            max_size=parse_size(section.get('max_size', '10MB')),
            backup_count=int(section.get('backup_count', 5)),
            console=bool(section.get('console', True)),
            console_level=str(section.get('console_level', 'INFO')).upper(),
            plugins={name: str(level).upper() for name, level in (section.get('plugins') or {}).items()},
            service=config.get('app', {}).get('name', cls.service),
        )


class ForwarderLogger:
    """
    Owns the process-wide logging configuration.

    Creating an instance replaces the root handlers, so the forwarder
    creates one at startup through ``initialize_logging``.
    """

    def __init__(self, config: Dict):
        self.settings = LogSettings.from_config(config)
        self._configure_structlog()
        self._install_handlers()
        self._apply_plugin_levels()
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def _add_service(self, logger, method_name, event_dict):
        event_dict.setdefault('service', self.settings.service)
        return event_dict

    def _configure_structlog(self):
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                self._add_service,
                structlog.processors.TimeStamper(fmt="ISO", utc=True),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _install_handlers(self):
        root = logging.getLogger()
        root.setLevel(getattr(logging, self.settings.level))
        root.handlers.clear()
        for handler in self._build_handlers():
            root.addHandler(handler)

    def _build_handlers(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if self.settings.file:
            log_path = Path(self.settings.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=self.settings.max_size,
                backupCount=self.settings.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
            file_handler.setLevel(getattr(logging, self.settings.level))
            handlers.append(file_handler)

        if self.settings.console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
            console_handler.setLevel(getattr(logging, self.settings.console_level))
            handlers.append(console_handler)

        return handlers

    def _apply_plugin_levels(self):
        for plugin_name, level in self.settings.plugins.items():
            logging.getLogger(plugin_logger_name(plugin_name)).setLevel(getattr(logging, level))

    def get_logger(self, name: str) -> logging.Logger:
        """Get the logger for a component, named under the forwarder prefix"""
        return logging.getLogger(qualified_name(name))


def qualified_name(name: str) -> str:
    if name.startswith(LOGGER_PREFIX):
        return name
    return f'{LOGGER_PREFIX}.{name}'


def plugin_logger_name(plugin_name: str) -> str:
    return qualified_name(f'plugin_{plugin_name}')


# Global logger instance
_logger_instance: Optional[ForwarderLogger] = None


def initialize_logging(config: Dict) -> ForwarderLogger:
    """Initialize the global logging system"""
    global _logger_instance
    _logger_instance = ForwarderLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    if _logger_instance is None:
        # Fallback to basic logging if not initialized
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        return logging.getLogger(qualified_name(name))

    return _logger_instance.get_logger(name)


def get_structured_logger(name: str):
    """
    Get a structured logger instance.

    Before ``initialize_logging`` runs, the logger wraps the stdlib logger
    directly and leaves structlog's global configuration untouched.
    """
    if _logger_instance is None:
        return structlog.wrap_logger(
            logging.getLogger(qualified_name(name)),
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="ISO", utc=True),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
        )

    return structlog.get_logger(qualified_name(name))
