"""Error taxonomy for the register bridge.

Startup errors (configuration, transforms, registration, connection) abort the
service. Per-value errors (decode, evaluation, transport) are logged by the
dispatcher and the data point is dropped.
"""
from __future__ import annotations

from typing import Sequence


class BridgeError(Exception):
    """Base exception for all register bridge errors."""

    pass


class ConfigError(BridgeError):
    """Malformed or incomplete configuration."""

    pass


class TransformError(BridgeError):
    """A register transform expression failed validation."""

    def __init__(self, expression: str, errors: Sequence[str]) -> None:
        self.expression = expression
        self.errors = list(errors)
        super().__init__(f"Invalid transform '{expression}': {self.errors}")


class RegistrationError(BridgeError):
    """The value source rejected a register (duplicate or invalid range)."""

    pass


class TransportError(BridgeError):
    """A field-bus or message-bus operation failed."""

    pass


class TransportConnectionError(TransportError):
    """Failed to connect to the device or broker."""

    pass


class DecodeError(BridgeError):
    """Raw register bytes could not be decoded."""

    pass


class EvaluationError(BridgeError):
    """A compiled transform failed while evaluating a value."""

    pass
