"""Bridge dispatcher: turns one polled value into one published message."""
from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Dict, Union

from regbridge.core.catalog import RegisterDescriptor
from regbridge.exceptions import DecodeError, EvaluationError
from regbridge.transports.base import MessageSink, ValueListener

logger = logging.getLogger("regbridge.dispatcher")


def format_value(value: Union[int, float]) -> str:
    """Render a transformed value as a decimal string.

    Integers keep their integer form ("1"). Floats use the digits of the
    shortest round-trip representation, written out in positional notation
    ("25.0", "0.1", "0.0000001", "10000000000000000.0").
    """
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    text = format(Decimal(repr(float(value))), "f")
    if "." not in text:
        text += ".0"
    return text


class BridgeDispatcher(ValueListener):
    """Value source listener that decodes, transforms and publishes.

    Called on the value source's polling thread. Descriptors are immutable so
    no locking is needed on the data path; failures for a single value are
    logged and the value is dropped.
    """

    def __init__(self, sink: MessageSink, data_topic: str) -> None:
        self._sink = sink
        self._prefix = data_topic.rstrip("/")
        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "published": 0,
            "dropped": 0,
            "transport_errors": 0,
        }

    def topic_for(self, descriptor: RegisterDescriptor) -> str:
        return f"{self._prefix}/{descriptor.name}"

    def on_value(self, descriptor: RegisterDescriptor, raw: bytes) -> None:
        try:
            value = descriptor.convert(raw)
        except DecodeError as e:
            logger.error("Cannot decode register '%s' (%s): %s", descriptor.name, bytes(raw or b"").hex().upper(), e, exc_info=e)
            self._count("dropped")
            return
        except EvaluationError as e:
            logger.error("Cannot transform register '%s': %s", descriptor.name, e, exc_info=e)
            self._count("dropped")
            return

        topic = self.topic_for(descriptor)
        payload = format_value(value)
        self._sink.publish(topic, payload)
        self._count("published")
        logger.debug("%s = %s", topic, payload)

    def on_error(self, cause: BaseException) -> None:
        logger.error("Poll error: %s", cause, exc_info=cause)
        self._count("transport_errors")

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)
