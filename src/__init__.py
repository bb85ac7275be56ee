"""
Gotify MQTT Forwarder

Forwards messages received by a Gotify notification hub to an MQTT broker,
queueing them in memory while the broker is unreachable.
"""

__version__ = "1.0.0"
__author__ = "FaintGhost"
