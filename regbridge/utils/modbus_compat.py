"""Helpers for creating pymodbus clients and reading registers across API variants.

pymodbus renamed the unit keyword several times (``unit`` -> ``slave`` ->
``device_id``) and dropped some constructor arguments; these helpers inspect the
installed version's signatures instead of pinning one.
"""
from __future__ import annotations

import inspect
from typing import Any, List, Optional

_UNIT_KW_OPTIONS = ['device_id', 'slave', 'unit', 'device', 'unit_id']


def _invoke_pymodbus_read(fn, address: int, count: int, unit: int):
    try:
        sig = inspect.signature(fn)
        params = list(sig.parameters.keys())
    except (TypeError, ValueError):
        params = []

    try:
        if 'count' in params:
            for kw in _UNIT_KW_OPTIONS:
                if kw in params:
                    try:
                        return fn(address, count=count, **{kw: unit})
                    except TypeError:
                        continue
            return fn(address, count=count)
    except TypeError:
        pass

    try:
        return fn(address, count, unit)
    except TypeError:
        return fn(address, count)


def call_read_method(client: Any, method_name: str, address: int, count: int, unit: int):
    fn = getattr(client, method_name, None)
    if fn is None:
        raise AttributeError(f"Client does not support {method_name}")
    return _invoke_pymodbus_read(fn, address, count, unit)


def response_registers(response: Any) -> List[int]:
    """Extract register words from a read response.

    Raises:
        ValueError: If the response is missing or reports an error.
    """
    if response is None:
        raise ValueError("no response")
    is_error = getattr(response, 'isError', None)
    if callable(is_error) and is_error():
        raise ValueError(f"error response: {response}")
    registers = getattr(response, 'registers', None)
    if registers is None:
        raise ValueError(f"response carries no registers: {response}")
    return list(registers)


def _import_clients():
    """Attempt to import pymodbus client constructors from different versions."""
    candidates = [
        ('pymodbus.client', 'ModbusTcpClient', 'ModbusSerialClient'),
        ('pymodbus.client.sync', 'ModbusTcpClient', 'ModbusSerialClient'),
    ]
    for module, tcp_name, serial_name in candidates:
        try:
            mod = __import__(module, fromlist=[tcp_name])
        except ImportError:
            continue
        return getattr(mod, tcp_name, None), getattr(mod, serial_name, None)
    return None, None


def _filter_params(ctor, params: dict) -> dict:
    """Keep only the keyword arguments ``ctor`` accepts."""
    try:
        paramspecs = inspect.signature(ctor.__init__).parameters
    except (TypeError, ValueError):
        return {k: v for k, v in params.items() if v is not None}
    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in paramspecs.values()):
        return {k: v for k, v in params.items() if v is not None}
    allowed = {
        name for name, p in paramspecs.items()
        if name != 'self' and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    }
    return {k: v for k, v in params.items() if k in allowed and v is not None}


def create_client(kind: str = 'serial', host: Optional[str] = None, port: Optional[int] = None,
                  serial_port: Optional[str] = None, baudrate: int = 9600, parity: str = 'N',
                  stopbits: int = 1, bytesize: int = 8, timeout: float = 1.0,
                  retries: Optional[int] = None) -> Any:
    """Create a synchronous pymodbus client in a version-robust way.

    Args:
        kind: 'tcp' or 'serial'
        host/port: for TCP clients
        serial_port, baudrate, parity, stopbits, bytesize: for RTU serial clients
        timeout: seconds per request
        retries: request retries performed by pymodbus itself
    """
    ModbusTcpClient, ModbusSerialClient = _import_clients()
    if kind == 'tcp':
        if ModbusTcpClient is None:
            raise ImportError('pymodbus ModbusTcpClient not available')
        params = {'host': host, 'port': port, 'timeout': timeout, 'retries': retries}
        return ModbusTcpClient(**_filter_params(ModbusTcpClient, params))

    if kind == 'serial':
        if ModbusSerialClient is None:
            raise ImportError('pymodbus ModbusSerialClient not available')
        params = {
            'method': 'rtu',
            'port': serial_port,
            'baudrate': baudrate,
            'parity': parity,
            'stopbits': stopbits,
            'bytesize': bytesize,
            'timeout': timeout,
            'retries': retries,
        }
        return ModbusSerialClient(**_filter_params(ModbusSerialClient, params))

    raise ValueError('kind must be "tcp" or "serial"')


def close_client(client: Any) -> None:
    """Close a pymodbus client, falling back to its socket."""
    if client is None:
        return
    close = getattr(client, 'close', None)
    if callable(close):
        close()
        return
    sock = getattr(client, 'socket', None)
    if sock:
        sock.close()
