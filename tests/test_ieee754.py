import pytest

from regbridge.exceptions import DecodeError
from regbridge.utils.ieee754 import (
    from_bytes_to_float,
    registers_to_bytes_be,
)


def test_float32_normal():
    b = (0x41, 0x20, 0x00, 0x00)  # 10.0 in >f
    val = from_bytes_to_float(bytes(b))
    assert isinstance(val, float)
    assert abs(val - 10.0) < 1e-6


def test_float64_normal():
    val = from_bytes_to_float(bytes.fromhex("4029000000000000"))
    assert val == 12.5


def test_float16_normal():
    # 0x3C00 is 1.0 in binary16
    assert from_bytes_to_float(bytes([0x3C, 0x00])) == 1.0


def test_float32_nan_is_sensor_fault():
    with pytest.raises(DecodeError, match="SENSOR FAULT"):
        from_bytes_to_float(bytes([0x7F, 0xC0, 0x00, 0x01]))


def test_float32_inf_is_overflow():
    with pytest.raises(DecodeError, match="OVERFLOW"):
        from_bytes_to_float(bytes([0x7F, 0x80, 0x00, 0x00]))


def test_float_rejects_odd_width():
    with pytest.raises(DecodeError):
        from_bytes_to_float(b"\x00\x00\x00")


def test_registers_to_bytes_be():
    assert registers_to_bytes_be([0x4148, 0x0000]) == bytes.fromhex("41480000")
    assert registers_to_bytes_be([1, 2, 3], start=1, count=1) == b"\x00\x02"


def test_registers_to_bytes_be_range_checks():
    with pytest.raises(IndexError):
        registers_to_bytes_be([1], start=0, count=2)
    with pytest.raises(ValueError):
        registers_to_bytes_be([0x10000])
