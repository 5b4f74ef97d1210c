"""Register catalog: resolves configured registers into runtime descriptors."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple, Union

from regbridge.core.data_types import (
    VALID_LENGTHS,
    RegisterTable,
    RegisterType,
    WordOrder,
)
from regbridge.core.transform import CompiledTransform, compile_transform, evaluate
from regbridge.exceptions import ConfigError
from regbridge.models import RegisterDefinition
from regbridge.transports.base import ValueSource
from regbridge.utils.decoding import decode_value

if TYPE_CHECKING:
    from regbridge.config import Configuration

logger = logging.getLogger("regbridge.catalog")


@dataclass(frozen=True, slots=True)
class RegisterDescriptor:
    """Immutable runtime view of one register."""

    name: str
    address: int
    length: int
    type: RegisterType
    transform: CompiledTransform
    table: RegisterTable = RegisterTable.HOLDING
    word_order: WordOrder = WordOrder.BIG
    signed: bool = True

    @property
    def end(self) -> int:
        return self.address + self.length

    def overlaps(self, other: "RegisterDescriptor") -> bool:
        return self.table == other.table and self.address < other.end and other.address < self.end

    def decode(self, raw: bytes) -> Union[int, float]:
        return decode_value(self.type, raw, self.length, self.word_order, self.signed)

    def convert(self, raw: bytes) -> Union[int, float]:
        """Decode ``raw`` and apply the register's transform."""
        return evaluate(self.transform, self.decode(raw))


def make_descriptor(reg: RegisterDefinition) -> RegisterDescriptor:
    """Compile one definition. Raises TransformError or ConfigError."""
    valid = VALID_LENGTHS[reg.type]
    if reg.length not in valid:
        raise ConfigError(
            f"Register '{reg.name}': {reg.type.value} registers must be "
            f"{', '.join(str(n) for n in valid)} words long, got {reg.length}"
        )
    return RegisterDescriptor(
        name=reg.name,
        address=reg.address,
        length=reg.length,
        type=reg.type,
        transform=compile_transform(reg.transform),
        table=reg.table,
        word_order=reg.word_order,
        signed=reg.signed,
    )


def build_catalog(
    config: Configuration,
    source: Optional[ValueSource] = None,
) -> Tuple[RegisterDescriptor, ...]:
    """Build descriptors for every configured register, in configuration order.

    All transforms are compiled before anything is registered, so a single
    invalid register leaves ``source`` untouched. When ``source`` is given each
    descriptor is then registered for polling; a RegistrationError from the
    source propagates to the caller.
    """
    descriptors = tuple(make_descriptor(reg) for reg in config.registers)

    if source is not None:
        for desc in descriptors:
            source.add_register(desc)
            logger.debug(
                "reg: %s (%s %d+%d, %s, transform '%s')",
                desc.name,
                desc.table.value,
                desc.address,
                desc.length,
                desc.type.value,
                desc.transform.expression,
            )
    logger.info("Register catalog built with %d register(s)", len(descriptors))
    return descriptors
