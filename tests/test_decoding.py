"""Tests for regbridge.utils.decoding module."""

import struct

import pytest

from regbridge.core.data_types import RegisterType, WordOrder
from regbridge.exceptions import DecodeError
from regbridge.utils.decoding import decode_int, decode_value, swap_words


class TestDecodeInt:
    def test_one_word(self):
        assert decode_value(RegisterType.INT, b"\x00\x01", 1) == 1

    def test_signed_negative(self):
        assert decode_value(RegisterType.INT, b"\xff\xff", 1) == -1

    def test_unsigned(self):
        assert decode_value(RegisterType.INT, b"\xff\xff", 1, signed=False) == 65535

    def test_two_words(self):
        assert decode_value(RegisterType.INT, bytes.fromhex("00010000"), 2) == 0x10000

    def test_two_words_little_word_order(self):
        # low word first on the wire
        raw = bytes.fromhex("00000001")
        assert decode_value(RegisterType.INT, raw, 2, WordOrder.LITTLE) == 0x10000

    def test_four_words(self):
        raw = (-5).to_bytes(8, "big", signed=True)
        assert decode_value(RegisterType.INT, raw, 4) == -5

    def test_decode_int_empty(self):
        with pytest.raises(DecodeError):
            decode_int(b"")


class TestDecodeFloat:
    def test_float32(self):
        assert decode_value(RegisterType.FLOAT, struct.pack(">f", 12.5), 2) == 12.5

    def test_float32_little_word_order(self):
        raw = struct.pack(">f", 12.5)
        assert decode_value(RegisterType.FLOAT, raw[2:] + raw[:2], 2, WordOrder.LITTLE) == 12.5

    def test_float64(self):
        assert decode_value(RegisterType.FLOAT, struct.pack(">d", -0.25), 4) == -0.25

    def test_float16(self):
        assert decode_value(RegisterType.FLOAT, struct.pack(">e", 1.5), 1) == 1.5

    def test_nan(self):
        with pytest.raises(DecodeError):
            decode_value(RegisterType.FLOAT, struct.pack(">f", float("nan")), 2)


class TestPayloadLength:
    @pytest.mark.parametrize("raw", [b"", b"\x41", b"\x41\x48\x00", b"\x00" * 6])
    def test_wrong_length(self, raw):
        with pytest.raises(DecodeError, match="expected 4 bytes"):
            decode_value(RegisterType.FLOAT, raw, 2)

    def test_none_payload(self):
        with pytest.raises(DecodeError):
            decode_value(RegisterType.INT, None, 1)


def test_swap_words():
    assert swap_words(bytes.fromhex("11223344")) == bytes.fromhex("33441122")
    assert swap_words(bytes.fromhex("1122")) == bytes.fromhex("1122")
