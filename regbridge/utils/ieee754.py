import math
import struct
from typing import Sequence

from regbridge.exceptions import DecodeError

# byte width -> struct format
_FLOAT_FORMATS = {2: ">e", 4: ">f", 8: ">d"}


def _check_finite(val: float) -> float:
    if math.isnan(val):
        raise DecodeError("SENSOR FAULT (NaN)")
    if math.isinf(val):
        raise DecodeError("OVERFLOW (infinity)")
    return val


def from_bytes_to_float(b: bytes) -> float:
    """Interpret 2, 4 or 8 big-endian bytes as an IEEE-754 binary16/32/64.

    NaN is reported as a sensor fault and infinities as an overflow, both
    through :class:`DecodeError`.
    """
    fmt = _FLOAT_FORMATS.get(len(b))
    if fmt is None:
        raise DecodeError(f"float requires 2, 4 or 8 bytes, got {len(b)}")
    return _check_finite(struct.unpack(fmt, b)[0])


def registers_to_bytes_be(registers: Sequence[int], start: int = 0, count: int | None = None) -> bytes:
    """Convert `count` 16-bit registers starting at `start` into big-endian bytes.

    Each register is expected as an integer 0..0xFFFF.
    """
    if count is None:
        count = len(registers) - start
    end = start + count
    if end > len(registers):
        raise IndexError("Not enough registers")
    out = bytearray()
    for r in registers[start:end]:
        if not (0 <= r <= 0xFFFF):
            raise ValueError("register values must be 0..0xFFFF")
        out.append((r >> 8) & 0xFF)
        out.append(r & 0xFF)
    return bytes(out)
