# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Value domain of Kconfig symbols.

Tristate is the three-valued logic used by bool/tristate symbols and by every expression. It is ordered
n < m < y and the logical operators are defined on top of that order:

    a && b  =  min(a, b)
    a || b  =  max(a, b)
    !a      =  y - a        (so !y = n, !n = y and !m = m)

The last rule is the kernel convention: a module negates to itself.

ConfigValue is the tagged union holding the value of one symbol. Its variant must always match the type the
symbol was declared with (see SymbolType).
"""
from dataclasses import dataclass
from enum import Enum
from enum import IntEnum
from typing import ClassVar
from typing import Union


class SymbolType(Enum):
    BOOL = "bool"
    TRISTATE = "tristate"
    STRING = "string"
    INT = "int"
    HEX = "hex"

    @property
    def is_logical(self) -> bool:
        return self in (SymbolType.BOOL, SymbolType.TRISTATE)

    @property
    def base(self) -> int:
        """Numeric base of int/hex values, 0 for the other types."""
        if self == SymbolType.INT:
            return 10
        elif self == SymbolType.HEX:
            return 16
        else:
            return 0

    def __str__(self) -> str:
        return self.value


class Tristate(IntEnum):
    NO = 0
    MODULE = 1
    YES = 2

    def __and__(self, other: "Tristate") -> "Tristate":  # type: ignore[override]
        return Tristate(min(self, other))

    def __or__(self, other: "Tristate") -> "Tristate":  # type: ignore[override]
        return Tristate(max(self, other))

    def __invert__(self) -> "Tristate":  # type: ignore[override]
        return Tristate(2 - self)

    def __str__(self) -> str:
        return TRISTATE_TO_STR[self]

    @classmethod
    def from_str(cls, s: str) -> "Tristate":
        try:
            return STR_TO_TRISTATE[s]
        except KeyError:
            raise ValueError(f"'{s}' is not a tristate value (expected n, m or y)")


TRISTATE_TO_STR = {Tristate.NO: "n", Tristate.MODULE: "m", Tristate.YES: "y"}
STR_TO_TRISTATE = {"n": Tristate.NO, "m": Tristate.MODULE, "y": Tristate.YES}


class ConfigValue:
    """
    Base of the symbol value variants. Use the concrete subclasses (BoolValue, TristateValue, StringValue,
    IntValue, HexValue) to build values; 'type' tells which SymbolType a variant belongs to.
    """

    type: ClassVar[SymbolType]
    value: Union[bool, Tristate, str, int]

    def to_tristate(self) -> Tristate:
        # Non-logical values are always n when used in a logical context
        return Tristate.NO


@dataclass(frozen=True)
class BoolValue(ConfigValue):
    type: ClassVar[SymbolType] = SymbolType.BOOL
    value: bool

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise TypeError(f"BoolValue needs a bool, got {self.value!r}")

    def to_tristate(self) -> Tristate:
        return Tristate.YES if self.value else Tristate.NO

    def __str__(self) -> str:
        return "y" if self.value else "n"


@dataclass(frozen=True)
class TristateValue(ConfigValue):
    type: ClassVar[SymbolType] = SymbolType.TRISTATE
    value: Tristate

    def __post_init__(self) -> None:
        if not isinstance(self.value, Tristate):
            raise TypeError(f"TristateValue needs a Tristate, got {self.value!r}")

    def to_tristate(self) -> Tristate:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class StringValue(ConfigValue):
    type: ClassVar[SymbolType] = SymbolType.STRING
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(f"StringValue needs a str, got {self.value!r}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class IntValue(ConfigValue):
    type: ClassVar[SymbolType] = SymbolType.INT
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"IntValue needs an int, got {self.value!r}")

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class HexValue(ConfigValue):
    """
    The textual form ("0x1F", "0xdead") is kept as written, only the numeric value matters for comparisons.
    """

    type: ClassVar[SymbolType] = SymbolType.HEX
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not _is_base_n(self.value, 16) or int(self.value, 16) < 0:
            raise TypeError(f"HexValue needs a non-negative hexadecimal string, got {self.value!r}")

    @property
    def number(self) -> int:
        return int(self.value, 16)

    def __str__(self) -> str:
        return self.value


def zero_value(symbol_type: SymbolType) -> ConfigValue:
    """
    The "off" value of a type: n, empty string or zero.
    """
    if symbol_type == SymbolType.BOOL:
        return BoolValue(False)
    elif symbol_type == SymbolType.TRISTATE:
        return TristateValue(Tristate.NO)
    elif symbol_type == SymbolType.STRING:
        return StringValue("")
    elif symbol_type == SymbolType.INT:
        return IntValue(0)
    else:
        return HexValue("0x0")


def logical_value(symbol_type: SymbolType, tri: Tristate) -> ConfigValue:
    if symbol_type == SymbolType.BOOL:
        # There is no module state for bool symbols, m is promoted to y
        return BoolValue(tri != Tristate.NO)
    return TristateValue(tri)


def number_value(symbol_type: SymbolType, number: int) -> ConfigValue:
    if symbol_type == SymbolType.INT:
        return IntValue(number)
    return HexValue(hex(number))


def parse_value(symbol_type: SymbolType, text: str) -> ConfigValue:
    """
    Converts the textual form of a value (as found in a .config file, quotes already removed) to a
    ConfigValue of the given type. Raises ValueError if 'text' is not valid for the type.
    """
    if symbol_type == SymbolType.BOOL:
        if text not in ("y", "n"):
            raise ValueError(f"'{text}' is not a valid value for a bool symbol")
        return BoolValue(text == "y")
    elif symbol_type == SymbolType.TRISTATE:
        return TristateValue(Tristate.from_str(text))
    elif symbol_type == SymbolType.STRING:
        return StringValue(text)
    elif symbol_type == SymbolType.INT:
        if not _is_base_n(text, 10):
            raise ValueError(f"'{text}' is not a valid value for an int symbol")
        return IntValue(int(text, 10))
    else:
        if not _is_base_n(text, 16) or int(text, 16) < 0:
            raise ValueError(f"'{text}' is not a valid value for a hex symbol")
        if not text.startswith(("0x", "0X")):
            text = "0x" + text
        return HexValue(text)


def _is_base_n(s: str, n: int) -> bool:
    try:
        int(s, n)
        return True
    except ValueError:
        return False
