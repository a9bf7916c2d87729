# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Abstract syntax tree produced by kbuildlib.kconfig_parser.

The tree only describes what is written in the Kconfig files. Nothing is evaluated here and nothing is inherited:
a "depends on" of a menu is stored once on the Menu and applied to its children by the resolution engine.

Entry = Menu | Config | MenuConfig | Choice | Comment

"if EXPR ... endif" blocks are represented as a Menu with no title, its condition being the menu dependency.
"""
from dataclasses import dataclass
from dataclasses import field
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from kbuildlib.expr import Expression
from kbuildlib.values import SymbolType

# (filename, linenr)
Location = Tuple[str, int]


@dataclass
class Prompt:
    text: str
    condition: Optional[Expression] = None


@dataclass
class Default:
    value: Expression
    condition: Optional[Expression] = None


@dataclass
class Select:
    """
    Used for both "select" and "imply".
    """

    target: str
    condition: Optional[Expression] = None


@dataclass
class Range:
    low: Expression
    high: Expression
    condition: Optional[Expression] = None


@dataclass
class Config:
    name: str
    symbol_type: Optional[SymbolType] = None
    prompt: Optional[Prompt] = None
    depends_on: List[Expression] = field(default_factory=list)
    defaults: List[Default] = field(default_factory=list)
    selects: List[Select] = field(default_factory=list)
    implies: List[Select] = field(default_factory=list)
    ranges: List[Range] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    help: Optional[str] = None
    location: Optional[Location] = None

    keyword = "config"


@dataclass
class MenuConfig(Config):
    """
    A config which is also shown as a menu; behaves as a Config everywhere else.
    """

    keyword = "menuconfig"


@dataclass
class Menu:
    title: Optional[str]
    depends_on: List[Expression] = field(default_factory=list)
    visible_if: List[Expression] = field(default_factory=list)
    entries: List["Entry"] = field(default_factory=list)
    location: Optional[Location] = None

    @property
    def is_if_block(self) -> bool:
        return self.title is None


@dataclass
class Choice:
    name: Optional[str] = None
    prompt: Optional[Prompt] = None
    symbol_type: Optional[SymbolType] = None
    is_optional: bool = False
    depends_on: List[Expression] = field(default_factory=list)
    defaults: List[Default] = field(default_factory=list)
    entries: List["Entry"] = field(default_factory=list)
    help: Optional[str] = None
    location: Optional[Location] = None


@dataclass
class Comment:
    text: str
    depends_on: List[Expression] = field(default_factory=list)
    location: Optional[Location] = None


Entry = Union[Menu, Config, MenuConfig, Choice, Comment]


@dataclass
class KconfigAST:
    mainmenu: Optional[str] = None
    entries: List[Entry] = field(default_factory=list)
    # Every file read, in the order in which it was sourced
    files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def walk(entries: List[Entry]):
    """
    Yields (entry, menus, choice) for every entry in the tree, depth-first and left-to-right. 'menus' is the tuple of
    enclosing Menu entries (outermost first), 'choice' the enclosing Choice, if any.
    """

    def rec(entries: List[Entry], menus: Tuple[Menu, ...], choice: Optional[Choice]):
        for entry in entries:
            yield entry, menus, choice
            if isinstance(entry, Menu):
                yield from rec(entry.entries, menus + (entry,), choice)
            elif isinstance(entry, Choice):
                yield from rec(entry.entries, menus, entry)

    yield from rec(entries, (), None)
