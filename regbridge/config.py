"""Configuration model for the register bridge.

The configuration document is YAML or JSON (selected by file suffix) and is
turned into an immutable :class:`Configuration`. Structural validation happens
here; transform expressions are only compiled later, when the register catalog
is built.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from regbridge.core.data_types import (
    parse_register_table,
    parse_register_type,
    parse_word_order,
)
from regbridge.exceptions import ConfigError
from regbridge.models import RegisterDefinition

_PARITIES = ("N", "E", "O", "M", "S")


@dataclass(frozen=True, slots=True)
class BrokerConfig:
    host: str
    port: int = 1883

    @property
    def address(self) -> str:
        return f"tcp://{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class MqttConfig:
    """Message bus connection and topic layout."""

    broker: BrokerConfig
    command_topic: str
    data_topic: str
    client_id: str = "wattnode-mqtt"
    qos: int = 0
    retain: bool = False
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SerialConfig:
    port: str
    speed: int = 9600
    parity: str = "N"
    stopbits: int = 1
    bytesize: int = 8


@dataclass(frozen=True, slots=True)
class TcpConfig:
    host: str
    port: int = 502


@dataclass(frozen=True, slots=True)
class ModbusConfig:
    """Field device connection. Exactly one of ``serial``/``tcp`` is set."""

    device_id: int = 1
    zero_based: bool = False
    poll_interval: float = 5.0
    serial: Optional[SerialConfig] = None
    tcp: Optional[TcpConfig] = None
    timeout: float = 1.0
    retries: int = 3

    def describe(self) -> str:
        if self.serial is not None:
            return f"{self.serial.port} @ {self.serial.speed} baud"
        if self.tcp is not None:
            return f"{self.tcp.host}:{self.tcp.port}"
        return "<unset>"


@dataclass(frozen=True, slots=True)
class Configuration:
    """Top-level, validated configuration."""

    mqtt: MqttConfig
    modbus: ModbusConfig
    registers: Tuple[RegisterDefinition, ...] = field(default_factory=tuple)


def _section(raw: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        raise ConfigError(f"{path}{key}: required section missing")
    if not isinstance(value, Mapping):
        raise ConfigError(f"{path}{key}: must be a mapping")
    return value


def _required(raw: Mapping[str, Any], key: str, path: str) -> Any:
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"{path}{key}: required field missing")
    return value


def _as_int(value: Any, path: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ConfigError(f"{path}: expected an integer, got {value!r}")
    try:
        number = int(value, 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError, OverflowError):
        raise ConfigError(f"{path}: expected an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{path}: expected an integer, got {value!r}")
    if minimum is not None and number < minimum:
        raise ConfigError(f"{path}: must be >= {minimum}, got {number}")
    if maximum is not None and number > maximum:
        raise ConfigError(f"{path}: must be <= {maximum}, got {number}")
    return number


def _as_float(value: Any, path: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{path}: expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{path}: expected a number, got {value!r}")
    if not math.isfinite(number):
        raise ConfigError(f"{path}: expected a finite number, got {value!r}")
    return number


def _as_bool(value: Any, path: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "on", "1"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "off", "0"}:
        return False
    raise ConfigError(f"{path}: expected a boolean, got {value!r}")


def _as_topic(value: Any, path: str) -> str:
    topic = str(value).strip()
    if "#" in topic or "+" in topic:
        raise ConfigError(f"{path}: wildcards are not allowed in '{topic}'")
    return topic


def _to_mqtt(raw: Mapping[str, Any]) -> MqttConfig:
    broker_raw = _section(raw, "broker", "mqtt.")
    broker = BrokerConfig(
        host=str(_required(broker_raw, "host", "mqtt.broker.")),
        port=_as_int(broker_raw.get("port", 1883), "mqtt.broker.port", 1, 65535),
    )
    data_topic = _as_topic(_required(raw, "data_topic", "mqtt."), "mqtt.data_topic").rstrip("/")
    if not data_topic:
        raise ConfigError("mqtt.data_topic: required field missing")
    qos = _as_int(raw.get("qos", 0), "mqtt.qos", 0, 2)
    username = raw.get("username")
    password = raw.get("password")
    return MqttConfig(
        broker=broker,
        command_topic=_as_topic(_required(raw, "command_topic", "mqtt."), "mqtt.command_topic"),
        data_topic=data_topic,
        client_id=str(raw.get("client_id") or "wattnode-mqtt"),
        qos=qos,
        retain=_as_bool(raw.get("retain", False), "mqtt.retain"),
        username=str(username) if username is not None else None,
        password=str(password) if password is not None else None,
    )


def _to_modbus(raw: Mapping[str, Any]) -> ModbusConfig:
    serial_raw = raw.get("serial")
    tcp_raw = raw.get("tcp")
    if serial_raw and tcp_raw:
        raise ConfigError("modbus: serial and tcp transports are mutually exclusive")
    if not serial_raw and not tcp_raw:
        raise ConfigError("modbus: select either a serial or a tcp transport")

    serial = None
    tcp = None
    if serial_raw:
        if not isinstance(serial_raw, Mapping):
            raise ConfigError("modbus.serial: must be a mapping")
        parity = str(serial_raw.get("parity", "N")).strip().upper()
        if parity not in _PARITIES:
            raise ConfigError(f"modbus.serial.parity: must be one of {', '.join(_PARITIES)}")
        serial = SerialConfig(
            port=str(_required(serial_raw, "port", "modbus.serial.")),
            speed=_as_int(serial_raw.get("speed", 9600), "modbus.serial.speed", 1),
            parity=parity,
            stopbits=_as_int(serial_raw.get("stopbits", 1), "modbus.serial.stopbits", 1, 2),
            bytesize=_as_int(serial_raw.get("bytesize", 8), "modbus.serial.bytesize", 5, 8),
        )
    else:
        if not isinstance(tcp_raw, Mapping):
            raise ConfigError("modbus.tcp: must be a mapping")
        tcp = TcpConfig(
            host=str(_required(tcp_raw, "host", "modbus.tcp.")),
            port=_as_int(tcp_raw.get("port", 502), "modbus.tcp.port", 1, 65535),
        )

    poll_interval = _as_float(raw.get("poll_interval", 5.0), "modbus.poll_interval")
    if poll_interval <= 0:
        raise ConfigError(f"modbus.poll_interval: must be > 0, got {poll_interval}")
    timeout = _as_float(raw.get("timeout", 1.0), "modbus.timeout")
    if timeout <= 0:
        raise ConfigError(f"modbus.timeout: must be > 0, got {timeout}")

    return ModbusConfig(
        device_id=_as_int(raw.get("device_id", 1), "modbus.device_id", 0, 247),
        zero_based=_as_bool(raw.get("zero_based", False), "modbus.zero_based"),
        poll_interval=poll_interval,
        serial=serial,
        tcp=tcp,
        timeout=timeout,
        retries=_as_int(raw.get("retries", 3), "modbus.retries", 0),
    )


def _to_register(data: Any, index: int) -> RegisterDefinition:
    path = f"registers[{index}]"
    if not isinstance(data, Mapping):
        raise ConfigError(f"{path}: must be a mapping")
    name = str(_required(data, "name", f"{path}.")).strip()
    try:
        rtype = parse_register_type(_required(data, "type", f"{path}."))
        table = parse_register_table(data.get("table"))
        word_order = parse_word_order(data.get("word_order"))
    except ValueError as e:
        raise ConfigError(f"{path}: {e}")
    transform = data.get("transform")
    if transform is None:
        transform = "_"
    if not isinstance(transform, str):
        # numeric YAML scalars such as `transform: 1` are valid constant expressions
        transform = str(transform)
    return RegisterDefinition(
        name=name,
        address=_as_int(_required(data, "address", f"{path}."), f"{path}.address"),
        length=_as_int(_required(data, "length", f"{path}."), f"{path}.length", 1),
        type=rtype,
        transform=transform,
        table=table,
        word_order=word_order,
        signed=_as_bool(data.get("signed", True), f"{path}.signed"),
    )


def parse_config(raw: Any) -> Configuration:
    """Validate an already-parsed document and build a :class:`Configuration`."""

    if not isinstance(raw, Mapping):
        raise ConfigError("Configuration must be an object/dict")

    mqtt = _to_mqtt(_section(raw, "mqtt", ""))
    modbus = _to_modbus(_section(raw, "modbus", ""))

    entries = raw.get("registers")
    if not entries:
        raise ConfigError("registers: at least one register must be defined")
    if not isinstance(entries, list):
        raise ConfigError("registers: must be a list")

    registers = []
    seen: Dict[str, int] = {}
    for index, entry in enumerate(entries):
        reg = _to_register(entry, index)
        if reg.name in seen:
            raise ConfigError(
                f"registers[{index}].name: duplicate register name '{reg.name}' "
                f"(first defined at registers[{seen[reg.name]}])"
            )
        if "/" in reg.name or "#" in reg.name or "+" in reg.name:
            raise ConfigError(f"registers[{index}].name: '{reg.name}' is not a valid topic suffix")
        seen[reg.name] = index
        registers.append(reg)

    return Configuration(mqtt=mqtt, modbus=modbus, registers=tuple(registers))


def load_config(path: str | Path) -> Configuration:
    """Parse a YAML/JSON config file into a validated configuration."""

    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file '{file_path}': {e}")

    try:
        if file_path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"Cannot parse configuration file '{file_path}': {e}")

    return parse_config(raw)
