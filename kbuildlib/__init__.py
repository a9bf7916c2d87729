# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Kconfig language front-end and resolution engine.

    ast = parse("Kconfig", source_tree_root=".")
    symtab = SymbolTable.from_ast(ast)
    symtab.set_user_value("FOO", BoolValue(True))
    symtab.effective_value("BAR")
"""
from kbuildlib.core import SymbolTable
from kbuildlib.errors import CyclicDependencyError
from kbuildlib.errors import CyclicSourceError
from kbuildlib.errors import KconfigError
from kbuildlib.errors import LexError
from kbuildlib.errors import OutOfRangeError
from kbuildlib.errors import ParseError
from kbuildlib.errors import ResolutionError
from kbuildlib.errors import SourceNotFoundError
from kbuildlib.errors import SymbolTypeConflictError
from kbuildlib.errors import TypeMismatchError
from kbuildlib.errors import UnknownSymbolError
from kbuildlib.errors import UnterminatedBlockError
from kbuildlib.kconfig_parser import parse
from kbuildlib.values import BoolValue
from kbuildlib.values import ConfigValue
from kbuildlib.values import HexValue
from kbuildlib.values import IntValue
from kbuildlib.values import StringValue
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate
from kbuildlib.values import TristateValue

__all__ = [
    "parse",
    "SymbolTable",
    "SymbolType",
    "Tristate",
    "ConfigValue",
    "BoolValue",
    "TristateValue",
    "StringValue",
    "IntValue",
    "HexValue",
    "KconfigError",
    "LexError",
    "ParseError",
    "CyclicSourceError",
    "SourceNotFoundError",
    "UnterminatedBlockError",
    "SymbolTypeConflictError",
    "ResolutionError",
    "CyclicDependencyError",
    "TypeMismatchError",
    "OutOfRangeError",
    "UnknownSymbolError",
]
