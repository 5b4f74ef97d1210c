from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from regbridge.core.data_types import RegisterTable, RegisterType, WordOrder


class ServiceState(str, Enum):
    """Lifecycle states of the bridge service."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True, slots=True)
class RegisterDefinition:
    """A register entry as declared in configuration."""

    name: str
    address: int
    length: int
    type: RegisterType
    transform: str = "_"
    table: RegisterTable = RegisterTable.HOLDING
    word_order: WordOrder = WordOrder.BIG
    signed: bool = True
