"""Connections used by the bridge: Modbus value source and MQTT sink."""

from .base import MessageSink, ValueListener, ValueSource

__all__ = [
    "MessageSink",
    "ValueListener",
    "ValueSource",
]
