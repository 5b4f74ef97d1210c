"""MQTT sink built on paho-mqtt.

paho runs its network loop on its own thread (``loop_start``); subscription
callbacks are invoked on that thread with ``(topic, payload)`` strings.
Subscriptions are (re)issued on every successful connect so they survive
broker reconnects.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

import paho.mqtt.client as mqtt

from regbridge.exceptions import TransportConnectionError
from regbridge.transports.base import MessageCallback, MessageSink

logger = logging.getLogger("regbridge.transports.mqtt")


class MqttConnector(MessageSink):
    def __init__(
        self,
        client_id: str = "wattnode-mqtt",
        qos: int = 0,
        retain: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        connect_timeout: float = 10.0,
        client: Optional[mqtt.Client] = None,
    ) -> None:
        self.qos = qos
        self.retain = retain
        self.keepalive = keepalive
        self.connect_timeout = connect_timeout
        self._client = client or mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        if username:
            self._client.username_pw_set(username, password)
        self._client.reconnect_delay_set(min_delay=1, max_delay=120)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        self._handlers: Dict[str, MessageCallback] = {}
        self._lock = threading.Lock()
        self._opened = False
        self._started = False
        self._connack = threading.Event()
        self._refusal: Optional[str] = None
        self.connected = False

    @classmethod
    def from_config(cls, config) -> "MqttConnector":
        """Build a connector from an :class:`~regbridge.config.MqttConfig`."""
        return cls(
            client_id=config.client_id,
            qos=config.qos,
            retain=config.retain,
            username=config.username,
            password=config.password,
        )

    def connect(self, host: str, port: int) -> None:
        logger.info("Connecting to MQTT broker at %s:%d", host, port)
        try:
            self._client.connect(host, port, self.keepalive)
        except (OSError, ValueError) as e:
            raise TransportConnectionError(f"Cannot connect to MQTT broker at {host}:{port}: {e}") from e
        self._opened = True

    def start(self) -> None:
        """Run the network loop and wait for the broker to accept the session.

        Raises:
            TransportConnectionError: The broker refused the connection or did
                not answer within ``connect_timeout`` seconds.
        """
        if self._started:
            return
        self._connack.clear()
        self._client.loop_start()
        self._started = True
        if not self._connack.wait(self.connect_timeout):
            raise TransportConnectionError(f"No answer from MQTT broker within {self.connect_timeout:g}s")
        if self._refusal is not None:
            raise TransportConnectionError(f"MQTT connection refused: {self._refusal}")

    def stop(self) -> None:
        if not (self._opened or self._started):
            return
        if self._opened:
            self._opened = False
            self._client.disconnect()
        if self._started:
            self._started = False
            self._client.loop_stop()
        self.connected = False
        logger.info("MQTT disconnected")

    def publish(self, topic: str, payload: str) -> None:
        result = self._client.publish(topic, payload, qos=self.qos, retain=self.retain)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("Publish to %s failed: %s", topic, mqtt.error_string(result.rc))

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        with self._lock:
            self._handlers[topic] = callback
        if self.connected:
            self._client.subscribe(topic, qos=self.qos)
        logger.debug("subscribe %s", topic)

    # paho-mqtt v2 callback signatures

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
            self._refusal = str(reason_code)
            self._connack.set()
            return
        self._refusal = None
        self.connected = True
        logger.info("MQTT connected")
        with self._lock:
            topics = list(self._handlers)
        for topic in topics:
            client.subscribe(topic, qos=self.qos)
        self._connack.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self.connected = False
        if reason_code.is_failure:
            logger.warning("MQTT unexpected disconnection: %s", reason_code)

    def _on_message(self, client, userdata, msg) -> None:
        with self._lock:
            handlers = [
                cb for sub, cb in self._handlers.items() if mqtt.topic_matches_sub(sub, msg.topic)
            ]
        if not handlers:
            return
        try:
            payload = msg.payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.error("Non UTF-8 payload on %s: %r", msg.topic, msg.payload)
            return
        for handler in handlers:
            try:
                handler(msg.topic, payload)
            except Exception:
                logger.exception("Handler for %s failed", msg.topic)
