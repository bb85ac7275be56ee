"""
Data models for the Gotify MQTT Forwarder
"""

from .message import Message

__all__ = ['Message']
