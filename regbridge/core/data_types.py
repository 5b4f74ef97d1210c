from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class RegisterType(str, Enum):
    """Numeric interpretation of a register's raw bytes."""

    INT = "int"
    FLOAT = "float"


class RegisterTable(str, Enum):
    """Modbus table a register is read from."""

    HOLDING = "holding"
    INPUT = "input"


class WordOrder(str, Enum):
    """Order of 16-bit words for multi-word values."""

    BIG = "big"
    LITTLE = "little"


# pymodbus client method per table (FC03 / FC04)
READ_METHODS: Dict[RegisterTable, str] = {
    RegisterTable.HOLDING: "read_holding_registers",
    RegisterTable.INPUT: "read_input_registers",
}

# Word counts each type can be decoded from
VALID_LENGTHS: Dict[RegisterType, tuple] = {
    RegisterType.INT: (1, 2, 4),
    RegisterType.FLOAT: (1, 2, 4),
}


_REGISTER_TYPE_ALIASES = {
    "int": RegisterType.INT,
    "integer": RegisterType.INT,
    "float": RegisterType.FLOAT,
}

_REGISTER_TABLE_ALIASES = {
    "holding": RegisterTable.HOLDING,
    "hr": RegisterTable.HOLDING,
    "h": RegisterTable.HOLDING,
    "input": RegisterTable.INPUT,
    "input_register": RegisterTable.INPUT,
    "ir": RegisterTable.INPUT,
}


def parse_register_type(value: Optional[str]) -> RegisterType:
    if not value:
        raise ValueError("Register type is required")
    dtype = _REGISTER_TYPE_ALIASES.get(str(value).strip().lower())
    if dtype is None:
        raise ValueError(f"Unknown register type '{value}'")
    return dtype


def parse_register_table(value: Optional[str]) -> RegisterTable:
    if not value:
        return RegisterTable.HOLDING
    table = _REGISTER_TABLE_ALIASES.get(str(value).strip().lower())
    if table is None:
        raise ValueError(f"Unknown register table '{value}'")
    return table


def parse_word_order(value: Optional[str]) -> WordOrder:
    if not value:
        return WordOrder.BIG
    try:
        return WordOrder(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown word order '{value}'")
