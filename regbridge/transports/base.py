"""Interfaces the bridge core uses to talk to its two connections.

Both collaborators run their own background threads and call back into the
core from those threads: the value source calls its listener once per polled
register, the sink calls subscription callbacks once per received message.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from regbridge.core.catalog import RegisterDescriptor

MessageCallback = Callable[[str, str], None]


class ValueListener(ABC):
    @abstractmethod
    def on_value(self, descriptor: "RegisterDescriptor", raw: bytes) -> None:
        pass

    @abstractmethod
    def on_error(self, cause: BaseException) -> None:
        pass


class ValueSource(ABC):
    """Polls registered ranges and reports raw bytes to a listener."""

    @abstractmethod
    def add_register(self, descriptor: "RegisterDescriptor") -> None:
        pass

    @abstractmethod
    def set_poll_interval(self, seconds: float) -> None:
        pass

    @abstractmethod
    def set_listener(self, listener: Optional[ValueListener]) -> None:
        pass

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class MessageSink(ABC):
    """Topic based publish/subscribe connection."""

    @abstractmethod
    def connect(self, host: str, port: int) -> None:
        pass

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def publish(self, topic: str, payload: str) -> None:
        pass

    @abstractmethod
    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        pass
