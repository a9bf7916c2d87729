# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Exceptions raised by kbuildlib.

LexError and ParseError (and its subclasses) are fatal for the whole configuration session: a Kconfig tree
that does not parse cannot be configured. ResolutionError and its subclasses are raised per edit and leave
the SymbolTable untouched, so the caller may report them and carry on.
"""
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple


class KconfigError(Exception):
    """
    Base class of all Kconfig-related errors.
    """


class LexError(KconfigError):
    """
    Malformed token (unterminated string, invalid escape sequence, ...).
    """

    def __init__(self, location: Tuple[str, int], reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"{location[0]}:{location[1]}: error: {reason}")


class ParseError(KconfigError):
    """
    Structural grammar violation. 'location' is a (filename, linenr) tuple when it is known.
    """

    def __init__(self, msg: str, location: Optional[Tuple[str, int]] = None):
        self.location = location
        if location is not None:
            msg = f"{location[0]}:{location[1]}: error: {msg}"
        super().__init__(msg)


def _chain_str(chain: Sequence[Tuple[str, int]]) -> str:
    return "".join(f"\n    sourced from {filename}:{linenr}" for filename, linenr in reversed(chain))


class CyclicSourceError(ParseError):
    def __init__(self, path: str, chain: List[Tuple[str, int]]):
        self.path = path
        self.chain = chain
        super().__init__(f"recursive source of '{path}' detected{_chain_str(chain)}", chain[-1] if chain else None)


class SourceNotFoundError(ParseError):
    def __init__(self, path: str, chain: List[Tuple[str, int]], srctree: str = ""):
        self.path = path
        self.chain = chain
        super().__init__(
            f"'{path}' not found (source tree root is '{srctree or '.'}'). Check that environment variables are set "
            f"correctly; unset environment variables expand to the empty string.{_chain_str(chain)}",
            chain[-1] if chain else None,
        )


class UnterminatedBlockError(ParseError):
    def __init__(self, kind: str, opened_at: Tuple[str, int]):
        self.kind = kind
        self.opened_at = opened_at
        super().__init__(f"'{kind}' block opened here is never closed", opened_at)


class SymbolTypeConflictError(ParseError):
    def __init__(self, name: str, first: str, second: str, location: Optional[Tuple[str, int]] = None):
        self.name = name
        super().__init__(f"symbol {name} redeclared with type {second}, it was first declared as {first}", location)


class ResolutionError(KconfigError):
    """
    Recoverable error raised while reading or changing symbol values.
    """


class CyclicDependencyError(ResolutionError):
    def __init__(self, symbols: List[str]):
        self.symbols = symbols
        super().__init__("dependency loop detected: " + " -> ".join(symbols))


class TypeMismatchError(ResolutionError):
    def __init__(self, name: str, expected: str, got: str):
        self.name = name
        self.expected = expected
        self.got = got
        super().__init__(f"symbol {name} has type {expected}, a {got} value cannot be assigned to it")


class OutOfRangeError(ResolutionError):
    def __init__(self, name: str, value: str, low: str, high: str):
        self.name = name
        self.value = value
        self.low = low
        self.high = high
        super().__init__(f"value {value} of {name} is outside the active range [{low}, {high}]")


class UnknownSymbolError(ResolutionError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"symbol {name} is not defined in the configuration")
