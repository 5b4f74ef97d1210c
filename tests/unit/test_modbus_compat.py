import types

import pytest

from unittest.mock import Mock

from regbridge.utils import modbus_compat as mc


def test_call_read_method_with_device_id_kw():
    def read_fn(address, count=1, device_id=1):
        return (address, count, device_id)

    client = types.SimpleNamespace(read_input_registers=read_fn)
    res = mc.call_read_method(client, 'read_input_registers', 10, 2, 5)
    assert res == (10, 2, 5)


def test_call_read_method_with_slave_kw():
    def read_fn(address, count, slave=1):
        return (address, count, slave)

    client = types.SimpleNamespace(read_holding_registers=read_fn)
    res = mc.call_read_method(client, 'read_holding_registers', 1, 4, 3)
    assert res == (1, 4, 3)


def test_call_read_method_positional_unit():
    def read_fn(address, count, unit):
        return (address, count, unit)

    client = types.SimpleNamespace(read_holding_registers=read_fn)
    res = mc.call_read_method(client, 'read_holding_registers', 7, 1, 9)
    assert res == (7, 1, 9)


def test_call_read_method_missing():
    with pytest.raises(AttributeError):
        mc.call_read_method(types.SimpleNamespace(), 'read_input_registers', 0, 1, 1)


def test_response_registers():
    ok = types.SimpleNamespace(isError=lambda: False, registers=[1, 2])
    assert mc.response_registers(ok) == [1, 2]

    with pytest.raises(ValueError):
        mc.response_registers(None)
    with pytest.raises(ValueError):
        mc.response_registers(types.SimpleNamespace(isError=lambda: True))
    with pytest.raises(ValueError):
        mc.response_registers(types.SimpleNamespace(isError=lambda: False))


def test_create_client_uses_imported_constructors(monkeypatch):
    class FakeTcp:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

    class FakeSerial:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

    monkeypatch.setattr(mc, '_import_clients', lambda: (FakeTcp, FakeSerial))

    tcp = mc.create_client(kind='tcp', host='127.0.0.1', port=502, timeout=0.5)
    assert isinstance(tcp, FakeTcp)
    assert tcp.kwargs == {'host': '127.0.0.1', 'port': 502, 'timeout': 0.5}

    serial = mc.create_client(kind='serial', serial_port='/dev/ttyUSB0', baudrate=19200, parity='E', retries=0)
    assert isinstance(serial, FakeSerial)
    assert serial.kwargs['port'] == '/dev/ttyUSB0'
    assert serial.kwargs['baudrate'] == 19200
    assert serial.kwargs['parity'] == 'E'
    assert serial.kwargs['retries'] == 0


def test_create_client_drops_unsupported_params(monkeypatch):
    class StrictSerial:
        def __init__(self, port, baudrate=9600, timeout=1.0):
            self.port = port
            self.baudrate = baudrate

    monkeypatch.setattr(mc, '_import_clients', lambda: (None, StrictSerial))
    client = mc.create_client(kind='serial', serial_port='COM3', baudrate=4800)
    assert client.port == 'COM3'
    assert client.baudrate == 4800


def test_create_client_rejects_unknown_kind(monkeypatch):
    monkeypatch.setattr(mc, '_import_clients', lambda: (object, object))
    with pytest.raises(ValueError):
        mc.create_client(kind='udp')


def test_close_client_calls_close():
    mock = Mock()
    mc.close_client(mock)
    mock.close.assert_called_once()


def test_close_client_socket_fallback():
    sock = Mock()
    client = types.SimpleNamespace(close=None, socket=sock)
    mc.close_client(client)
    sock.close.assert_called_once()
