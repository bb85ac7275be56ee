"""
Message data models for the Gotify MQTT Forwarder

Defines the hub message structure carried from the webhook to the broker.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class Message:
    """
    Hub message.

    Mirrors the hub's message JSON. Only ``message`` is published to the
    broker; the remaining fields are metadata carried through untouched.
    """
    message: str = ""
    title: str = ""
    priority: int = 0
    extras: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    appid: Optional[int] = None
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def payload(self) -> bytes:
        """Get the bytes published to the broker"""
        return self.message.encode('utf-8')
