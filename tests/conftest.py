"""Shared fixtures: in-memory value source and sink for the bridge core."""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest

from regbridge.config import parse_config
from regbridge.exceptions import RegistrationError, TransportConnectionError
from regbridge.transports.base import MessageSink, ValueListener, ValueSource


class FakeSource(ValueSource):
    def __init__(self, fail_start: bool = False, reject: Optional[str] = None) -> None:
        self.registered: List[Any] = []
        self.listener: Optional[ValueListener] = None
        self.interval: Optional[float] = None
        self.fail_start = fail_start
        self.reject = reject
        self.start_calls = 0
        self.stop_calls = 0

    def add_register(self, descriptor) -> None:
        if descriptor.name == self.reject:
            raise RegistrationError(f"rejected {descriptor.name}")
        self.registered.append(descriptor)

    def set_poll_interval(self, seconds: float) -> None:
        self.interval = seconds

    def set_listener(self, listener) -> None:
        self.listener = listener

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_start:
            raise TransportConnectionError("no device")

    def stop(self) -> None:
        self.stop_calls += 1

    def deliver(self, name: str, raw: bytes) -> None:
        desc = next(d for d in self.registered if d.name == name)
        self.listener.on_value(desc, raw)


class FakeSink(MessageSink):
    def __init__(self, fail_connect: bool = False) -> None:
        self.published: List[Tuple[str, str]] = []
        self.subscriptions: Dict[str, Any] = {}
        self.connected_to: Optional[Tuple[str, int]] = None
        self.fail_connect = fail_connect
        self.start_calls = 0
        self.stop_calls = 0
        self._lock = threading.Lock()

    def connect(self, host: str, port: int) -> None:
        if self.fail_connect:
            raise TransportConnectionError("no broker")
        self.connected_to = (host, port)

    def start(self) -> None:
        self.start_calls += 1

    def stop(self) -> None:
        self.stop_calls += 1

    def publish(self, topic: str, payload: str) -> None:
        with self._lock:
            self.published.append((topic, payload))

    def subscribe(self, topic: str, callback) -> None:
        self.subscriptions[topic] = callback

    def send(self, topic: str, payload: str) -> None:
        self.subscriptions[topic](topic, payload)


def make_raw_config(**overrides) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "mqtt": {
            "broker": {"host": "broker.local", "port": 1883},
            "command_topic": "wattnode/cmd",
            "data_topic": "wattnode/data",
        },
        "modbus": {
            "serial": {"port": "/dev/ttyUSB0", "speed": 9600},
            "device_id": 3,
            "zero_based": False,
            "poll_interval": 2.5,
        },
        "registers": [
            {"name": "energy", "address": 1001, "length": 2, "type": "float", "transform": "_ * 2"},
            {"name": "count", "address": 1100, "length": 1, "type": "int", "transform": "_"},
        ],
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def raw_config() -> Dict[str, Any]:
    return make_raw_config()


@pytest.fixture
def config(raw_config):
    return parse_config(raw_config)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()
