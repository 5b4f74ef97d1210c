from __future__ import annotations

import logging
import struct

import pytest

from regbridge.core.catalog import make_descriptor
from regbridge.core.data_types import RegisterType
from regbridge.core.dispatcher import BridgeDispatcher, format_value
from regbridge.exceptions import TransportError
from regbridge.models import RegisterDefinition


def _descriptor(name="energy", rtype=RegisterType.FLOAT, length=2, transform="_"):
    return make_descriptor(
        RegisterDefinition(name=name, address=1001, length=length, type=rtype, transform=transform)
    )


def test_float_register_is_transformed_and_published(sink) -> None:
    dispatcher = BridgeDispatcher(sink, "wattnode/data")
    dispatcher.on_value(_descriptor(transform="_ * 2"), struct.pack(">f", 12.5))
    assert sink.published == [("wattnode/data/energy", "25.0")]


def test_int_register_identity_publishes_integer_string(sink) -> None:
    dispatcher = BridgeDispatcher(sink, "wattnode/data/")
    dispatcher.on_value(_descriptor(name="count", rtype=RegisterType.INT, length=1), b"\x00\x01")
    assert sink.published == [("wattnode/data/count", "1")]


def test_every_poll_publishes_even_if_unchanged(sink) -> None:
    dispatcher = BridgeDispatcher(sink, "d")
    desc = _descriptor(name="count", rtype=RegisterType.INT, length=1)
    for _ in range(3):
        dispatcher.on_value(desc, b"\x00\x05")
    assert sink.published == [("d/count", "5")] * 3
    assert dispatcher.get_stats()["published"] == 3


def test_decode_failure_is_logged_and_polling_continues(sink, caplog) -> None:
    dispatcher = BridgeDispatcher(sink, "d")
    desc = _descriptor()

    with caplog.at_level(logging.ERROR, logger="regbridge.dispatcher"):
        dispatcher.on_value(desc, b"\x41\x48")  # truncated
    dispatcher.on_value(desc, struct.pack(">f", 1.5))

    assert sink.published == [("d/energy", "1.5")]
    assert "Cannot decode register 'energy'" in caplog.text
    assert dispatcher.get_stats()["dropped"] == 1


def test_evaluation_failure_drops_value(sink, caplog) -> None:
    dispatcher = BridgeDispatcher(sink, "d")
    desc = _descriptor(name="count", rtype=RegisterType.INT, length=1, transform="10 / _")

    with caplog.at_level(logging.ERROR, logger="regbridge.dispatcher"):
        dispatcher.on_value(desc, b"\x00\x00")
    dispatcher.on_value(desc, b"\x00\x04")

    assert sink.published == [("d/count", "2.5")]
    assert "Cannot transform register 'count'" in caplog.text


def test_transport_error_is_logged(sink, caplog) -> None:
    dispatcher = BridgeDispatcher(sink, "d")
    with caplog.at_level(logging.ERROR, logger="regbridge.dispatcher"):
        dispatcher.on_error(TransportError("timeout"))
    assert "Poll error: timeout" in caplog.text
    assert dispatcher.get_stats()["transport_errors"] == 1
    assert sink.published == []


@pytest.mark.parametrize(
    "value, text",
    [
        (1, "1"),
        (-3, "-3"),
        (25.0, "25.0"),
        (0.1, "0.1"),
        (1e-07, "0.0000001"),
        (-2.5e-5, "-0.000025"),
        (1e16, "10000000000000000.0"),
        (True, "1"),
    ],
)
def test_format_value(value, text) -> None:
    assert format_value(value) == text
