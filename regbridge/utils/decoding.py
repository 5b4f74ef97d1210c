"""Decoding of polled register bytes into numbers.

Raw bytes arrive big-endian within each 16-bit word, exactly as they sit in the
Modbus response. Multi-word values may be transmitted low word first, which
``word_order=LITTLE`` undoes before interpretation.
"""
from __future__ import annotations

from typing import Union

from regbridge.core.data_types import RegisterType, WordOrder
from regbridge.exceptions import DecodeError
from regbridge.utils.ieee754 import from_bytes_to_float

WORD_SIZE = 2


def swap_words(raw: bytes) -> bytes:
    """Reverse the order of 16-bit words, keeping bytes within each word.

    >>> swap_words(bytes.fromhex("00004148")).hex()
    '41480000'
    """
    words = [raw[i:i + WORD_SIZE] for i in range(0, len(raw), WORD_SIZE)]
    return b"".join(reversed(words))


def decode_int(raw: bytes, signed: bool = True) -> int:
    if not raw:
        raise DecodeError("integer requires at least one byte")
    return int.from_bytes(raw, byteorder="big", signed=signed)


def decode_value(
    rtype: RegisterType,
    raw: bytes,
    length: int,
    word_order: WordOrder = WordOrder.BIG,
    signed: bool = True,
) -> Union[int, float]:
    """Decode ``raw`` bytes of a ``length``-word register.

    Args:
        rtype: INT (two's complement or unsigned) or FLOAT (IEEE-754 by width)
        raw: Register bytes as read from the device
        length: Number of 16-bit words the register occupies
        word_order: Word order of multi-word values
        signed: Two's complement interpretation for INT

    Raises:
        DecodeError: On a truncated/oversized payload or an unusable float.
    """
    expected = length * WORD_SIZE
    if raw is None or len(raw) != expected:
        got = 0 if raw is None else len(raw)
        raise DecodeError(f"expected {expected} bytes for {length} register(s), got {got}")

    data = bytes(raw)
    if word_order == WordOrder.LITTLE and length > 1:
        data = swap_words(data)

    if rtype == RegisterType.INT:
        return decode_int(data, signed=signed)
    if rtype == RegisterType.FLOAT:
        return from_bytes_to_float(data)
    raise DecodeError(f"Unknown register type '{rtype}'")
