"""Service lifecycle - owns both connections and the running state.

States move STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED. A single
condition variable guards the state; the controlling thread blocks on it in
:meth:`BridgeService.wait` until a stop completes.

Example:
    service = BridgeService(config, ModbusReader(config.modbus), MqttConnector())
    service.run()   # returns once "quit" arrives on the command topic
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Tuple

from regbridge.config import Configuration
from regbridge.core.catalog import RegisterDescriptor, build_catalog
from regbridge.core.commands import QUIT, CommandHandler
from regbridge.core.dispatcher import BridgeDispatcher
from regbridge.models import ServiceState
from regbridge.transports.base import MessageSink, ValueSource

logger = logging.getLogger("regbridge.service")


class BridgeService:
    """Coordinates the value source, the sink and the register catalog."""

    name = "wattnode-mqtt"

    def __init__(self, config: Configuration, source: ValueSource, sink: MessageSink) -> None:
        self._config = config
        self._source = source
        self._sink = sink
        self._cond = threading.Condition()
        self._state = ServiceState.STOPPED
        self._running = False
        self._source_open = False
        self._sink_open = False
        self._catalog: Tuple[RegisterDescriptor, ...] = ()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="regbridge-worker")

        self.dispatcher = BridgeDispatcher(sink, config.mqtt.data_topic)
        self.commands = CommandHandler(self.submit)
        self.commands.register(QUIT, self.stop)

    # --- State ---

    @property
    def state(self) -> ServiceState:
        with self._cond:
            return self._state

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def catalog(self) -> Tuple[RegisterDescriptor, ...]:
        return self._catalog

    def submit(self, task: Callable[[], None]) -> Future:
        """Run ``task`` on the worker thread."""
        return self._executor.submit(self._run_task, task)

    @staticmethod
    def _run_task(task: Callable[[], None]) -> None:
        try:
            task()
        except Exception:
            logger.exception("Background task failed")
            raise

    # --- Lifecycle ---

    def start(self) -> None:
        """Open both connections and register every configured register.

        Raises:
            TransportConnectionError: The broker or device cannot be reached.
            RegistrationError: The value source rejected a register.
            TransformError/ConfigError: A register definition is invalid.
        """
        with self._cond:
            if self._state != ServiceState.STOPPED:
                raise RuntimeError(f"Cannot start service in state {self._state.value}")
            self._state = ServiceState.STARTING

        try:
            self._start_sink()
            self._start_source()
            self._catalog = build_catalog(self._config, self._source)
        except BaseException:
            logger.error("Service failed to start")
            self._close_connections()
            with self._cond:
                self._state = ServiceState.STOPPED
                self._cond.notify_all()
            raise

        with self._cond:
            self._state = ServiceState.RUNNING
            self._running = True
        logger.info("service started")

    def _start_sink(self) -> None:
        mqtt = self._config.mqtt
        logger.info("Connecting to broker %s", mqtt.broker.address)
        self._sink.connect(mqtt.broker.host, mqtt.broker.port)
        self._sink_open = True
        self._sink.subscribe(mqtt.command_topic, self.commands.on_message)
        self._sink.start()

    def _start_source(self) -> None:
        modbus = self._config.modbus
        logger.info("Connecting to device %d on %s", modbus.device_id, modbus.describe())
        self._source.set_listener(self.dispatcher)
        self._source.set_poll_interval(modbus.poll_interval)
        self._source.start()
        self._source_open = True

    def stop(self) -> bool:
        """Close both connections and release :meth:`wait`.

        Only acts when RUNNING; returns False for every other state so a
        repeated stop never closes a connection twice.
        """
        with self._cond:
            if self._state != ServiceState.RUNNING:
                logger.debug("Stop ignored in state %s", self._state.value)
                return False
            self._state = ServiceState.STOPPING
        logger.info("service stopping")

        try:
            self._close_connections()
        finally:
            with self._cond:
                self._state = ServiceState.STOPPED
                self._running = False
                self._cond.notify_all()
        logger.info("service stopped")
        return True

    def request_stop(self) -> Optional[Future]:
        """Schedule :meth:`stop` on the worker without blocking the caller."""
        with self._cond:
            if self._state != ServiceState.RUNNING:
                return None
        try:
            return self.submit(self.stop)
        except RuntimeError:
            # worker already shut down
            return None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the service is no longer running.

        Returns True if it stopped, False if ``timeout`` elapsed first.
        """
        with self._cond:
            return self._cond.wait_for(lambda: not self._running, timeout)

    def run(self) -> None:
        """Start, then block until stopped."""
        self.start()
        logger.info("service running")
        try:
            self.wait()
        finally:
            self.close()

    def close(self) -> None:
        """Stop if still running and shut the worker down."""
        self.stop()
        self._executor.shutdown(wait=True)

    def _close_connections(self) -> None:
        if self._sink_open:
            self._sink_open = False
            try:
                self._sink.stop()
            except Exception:
                logger.exception("Error closing broker connection")
        if self._source_open:
            self._source_open = False
            try:
                self._source.stop()
            except Exception:
                logger.exception("Error closing device connection")

    def get_stats(self) -> dict:
        return {
            "state": self.state.value,
            "registers": len(self._catalog),
            **self.dispatcher.get_stats(),
        }
