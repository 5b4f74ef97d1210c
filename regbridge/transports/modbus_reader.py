"""Polling Modbus value source.

Reads every registered range once per poll interval on a background thread and
hands the raw bytes to the listener. Read failures are reported through the
listener's ``on_error`` and polling carries on with the next register.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from regbridge.config import ModbusConfig
from regbridge.core.data_types import READ_METHODS
from regbridge.exceptions import RegistrationError, TransportConnectionError, TransportError
from regbridge.transports.base import ValueListener, ValueSource
from regbridge.utils.ieee754 import registers_to_bytes_be
from regbridge.utils.modbus_compat import (
    call_read_method,
    close_client,
    create_client,
    response_registers,
)

if TYPE_CHECKING:
    from regbridge.core.catalog import RegisterDescriptor

logger = logging.getLogger("regbridge.transports.modbus")

# FC03/FC04 quantity limit
MAX_READ_REGISTERS = 125


def client_from_config(config: ModbusConfig) -> Any:
    if config.serial is not None:
        return create_client(
            kind='serial',
            serial_port=config.serial.port,
            baudrate=config.serial.speed,
            parity=config.serial.parity,
            stopbits=config.serial.stopbits,
            bytesize=config.serial.bytesize,
            timeout=config.timeout,
            retries=config.retries,
        )
    return create_client(
        kind='tcp',
        host=config.tcp.host,
        port=config.tcp.port,
        timeout=config.timeout,
        retries=config.retries,
    )


class ModbusReader(ValueSource):
    """Value source backed by a synchronous pymodbus client."""

    def __init__(
        self,
        config: ModbusConfig,
        client_factory: Callable[[ModbusConfig], Any] = client_from_config,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._client: Any = None
        self._registers: List["RegisterDescriptor"] = []
        self._lock = threading.Lock()
        self._listener: Optional[ValueListener] = None
        self._interval = config.poll_interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def registers(self) -> List["RegisterDescriptor"]:
        with self._lock:
            return list(self._registers)

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    def set_listener(self, listener: Optional[ValueListener]) -> None:
        self._listener = listener

    def set_poll_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError("poll interval must be > 0")
        self._interval = seconds

    def wire_address(self, descriptor: "RegisterDescriptor") -> int:
        """Protocol address for a configured (zero or one based) address."""
        return descriptor.address if self._config.zero_based else descriptor.address - 1

    def add_register(self, descriptor: "RegisterDescriptor") -> None:
        first = 0 if self._config.zero_based else 1
        if descriptor.address < first:
            raise RegistrationError(
                f"Register '{descriptor.name}': address {descriptor.address} is below "
                f"{first} for {'zero' if first == 0 else 'one'} based addressing"
            )
        if not 1 <= descriptor.length <= MAX_READ_REGISTERS:
            raise RegistrationError(
                f"Register '{descriptor.name}': length must be 1..{MAX_READ_REGISTERS}, got {descriptor.length}"
            )
        if self.wire_address(descriptor) + descriptor.length > 0x10000:
            raise RegistrationError(f"Register '{descriptor.name}': range exceeds the 16-bit address space")

        with self._lock:
            for existing in self._registers:
                if existing.name == descriptor.name:
                    raise RegistrationError(f"Register '{descriptor.name}' is already registered")
                if existing.overlaps(descriptor):
                    raise RegistrationError(
                        f"Register '{descriptor.name}' ({descriptor.address}+{descriptor.length}) overlaps "
                        f"'{existing.name}' ({existing.address}+{existing.length})"
                    )
            self._registers.append(descriptor)

    def start(self) -> None:
        if self._thread is not None:
            return
        try:
            client = self._client_factory(self._config)
            connected = client.connect()
        except Exception as e:
            raise TransportConnectionError(
                f"Cannot connect to Modbus device on {self._config.describe()}: {e}"
            ) from e
        if connected is False:
            close_client(client)
            raise TransportConnectionError(f"Cannot connect to Modbus device on {self._config.describe()}")

        self._client = client
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="regbridge-poller", daemon=True)
        self._thread.start()
        logger.info("Polling %s every %.3gs", self._config.describe(), self._interval)

    def stop(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._thread = None
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=self._config.timeout * (self._config.retries + 1) + 1.0)
        close_client(self._client)
        self._client = None
        logger.info("Modbus connection closed")

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self._interval)

    def poll_once(self) -> None:
        """Read every registered range once."""
        for descriptor in self.registers:
            if self._stop_event.is_set():
                break
            self._poll_register(descriptor)

    def _poll_register(self, descriptor: "RegisterDescriptor") -> None:
        listener = self._listener
        method = READ_METHODS[descriptor.table]
        try:
            response = call_read_method(
                self._client,
                method,
                self.wire_address(descriptor),
                descriptor.length,
                self._config.device_id,
            )
            raw = registers_to_bytes_be(response_registers(response))
        except Exception as e:
            error = TransportError(f"Read of register '{descriptor.name}' failed: {e}")
            error.__cause__ = e
            if listener is None:
                logger.warning("%s", error)
                return
            try:
                listener.on_error(error)
            except Exception:
                logger.exception("Listener on_error failed")
            return

        if listener is None:
            return
        try:
            listener.on_value(descriptor, raw)
        except Exception:
            logger.exception("Listener failed for register '%s'", descriptor.name)
