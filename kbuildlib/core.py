# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Symbol table and resolution engine.

Overview
========

SymbolTable.from_ast() walks a KconfigAST once (depth-first, left-to-right) and creates one Symbol per symbol
name. A symbol defined several times gets several Definitions, each remembering the entry it comes from, the
menus (and if blocks) enclosing it and the choice it belongs to. Nothing is copied or propagated: conditions of
menus are ANDed in when a value is computed.

Values are never cached across calls. Every public method evaluates what it needs in a fresh _Evaluation,
which memoizes symbol values for the duration of that call only and detects dependency loops.

Value of a symbol
=================

  (a) If the dependencies of the symbol ("depends on", enclosing menus and if blocks, owning choice) are not met,
      the value is the "off" value of its type (n, "", 0, 0x0). A stored user value is kept, and applies again
      once the dependencies are met.

  (b) For bool/tristate symbols, "select" raises the value to at least the value of each selecting symbol,
      ANDed with the "if" condition of the select. A user value lower than that is overridden.

  (c) A user value is used while the symbol is visible (tristate values are limited by the visibility). int and
      hex user values are clamped to the active range.

  (d) Otherwise, the first "default" whose condition is met is used ("imply" then works as a weak "select").

  (e) Otherwise, the value is the "off" value of the type (int/hex values are clamped to the active range).

A symbol with a prompt is visible when the prompt condition, the "visible if" conditions of the enclosing menus
and the dependencies are met. A symbol without a prompt is visible when its dependencies are met.

bool symbols have no "m" state: m is promoted to y.

Choices
=======

The mode of a choice is y for non-optional choices and n for optional ones, unless the user set it (by setting
a member to y, or a member of a tristate choice to m). In y mode, exactly one member is y: the member selected
by the user if its dependencies are met, otherwise the first member named by a choice "default" whose condition
is met, otherwise the first member whose own default is y, otherwise the first member whose dependencies are met.
"""
import os
import sys
from dataclasses import dataclass
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from kbuildlib.ast import Choice as ChoiceEntry
from kbuildlib.ast import Config
from kbuildlib.ast import Default
from kbuildlib.ast import Entry
from kbuildlib.ast import KconfigAST
from kbuildlib.ast import Menu
from kbuildlib.ast import Range
from kbuildlib.ast import walk
from kbuildlib.errors import CyclicDependencyError
from kbuildlib.errors import OutOfRangeError
from kbuildlib.errors import ParseError
from kbuildlib.errors import SymbolTypeConflictError
from kbuildlib.errors import TypeMismatchError
from kbuildlib.errors import UnknownSymbolError
from kbuildlib.expr import Expression
from kbuildlib.expr import Symbol as SymbolRef
from kbuildlib.expr import expr_items
from kbuildlib.expr import expr_string_value
from kbuildlib.expr import expr_value
from kbuildlib.report import KconfigReport
from kbuildlib.report import MiscArea
from kbuildlib.report import MultipleDefinitionArea
from kbuildlib.report import UndefinedSymbolArea
from kbuildlib.values import ConfigValue
from kbuildlib.values import HexValue
from kbuildlib.values import IntValue
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate
from kbuildlib.values import logical_value
from kbuildlib.values import number_value
from kbuildlib.values import parse_value
from kbuildlib.values import zero_value

# User values by symbol name, and (user selection, user mode) of each choice
UserState = Tuple[Dict[str, Optional[ConfigValue]], List[Tuple[Optional[str], Optional[Tristate]]]]


@dataclass
class Definition:
    """
    One "config"/"menuconfig" entry defining a symbol, with the menus (and if blocks) enclosing it, outermost
    first, and the choice it is a member of.
    """

    entry: Config
    menus: Tuple[Menu, ...]
    choice: Optional["ChoiceGroup"] = None

    @property
    def location(self) -> str:
        filename, linenr = self.entry.location or ("<unknown>", 0)
        return f"{filename}:{linenr}"


@dataclass
class ChoiceDefinition:
    entry: ChoiceEntry
    menus: Tuple[Menu, ...]


class Symbol:
    """
    Represents a configuration symbol:

      (menu)config FOO
          ...

    Prompts, defaults and the other properties stay in the Config entries (see 'definitions'); the Symbol only
    adds what is needed to evaluate it: the reverse select/imply edges, the owning choice and the user value.

    name:
      Name of the symbol, e.g. "FOO".

    symbol_type:
      SymbolType of the symbol. The first definition with a type decides it; choice members without a type
      inherit the type of the choice.

    definitions:
      List of Definitions, in the order in which they appear in the Kconfig files.

    choice:
      ChoiceGroup the symbol is a member of, or None.

    user_value:
      ConfigValue set with SymbolTable.set_user_value() or loaded from a .config file, None if not set.

    selected_by / implied_by:
      Lists of (symbol name, condition) tuples of the symbols selecting/implying this one. 'condition' is the
      expression after "if", or None.
    """

    def __init__(self, name: str, symbol_type: Optional[SymbolType] = None) -> None:
        self.name = name
        self.symbol_type = symbol_type
        self.definitions: List[Definition] = []
        self.choice: Optional["ChoiceGroup"] = None
        self.user_value: Optional[ConfigValue] = None
        self.selected_by: List[Tuple[str, Optional[Expression]]] = []
        self.implied_by: List[Tuple[str, Optional[Expression]]] = []

    @property
    def has_prompt(self) -> bool:
        return any(definition.entry.prompt is not None for definition in self.definitions)

    @property
    def defaults(self) -> Iterator[Tuple[Default, Definition]]:
        for definition in self.definitions:
            for default in definition.entry.defaults:
                yield default, definition

    @property
    def ranges(self) -> Iterator[Tuple[Range, Definition]]:
        for definition in self.definitions:
            for rng in definition.entry.ranges:
                yield rng, definition

    @property
    def help(self) -> Optional[str]:
        return next((d.entry.help for d in self.definitions if d.entry.help is not None), None)

    @property
    def prompt_text(self) -> Optional[str]:
        return next((d.entry.prompt.text for d in self.definitions if d.entry.prompt is not None), None)

    def __repr__(self) -> str:
        locations = ", ".join(definition.location for definition in self.definitions)
        return f"<symbol {self.name}, {self.symbol_type}, defined at {locations}>"


class ChoiceGroup:
    """
    Represents a choice, possibly defined in several places if it is named:

      choice [NAME]
          ...
      endchoice

    members:
      Names of the member symbols, in definition order.

    user_selection:
      Name of the member set to y by the user, or None.

    user_mode:
      Tristate mode set by the user (through set_user_value() on a member), or None.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name
        self.definitions: List[ChoiceDefinition] = []
        self.members: List[str] = []
        self.symbol_type: Optional[SymbolType] = None
        self.user_selection: Optional[str] = None
        self.user_mode: Optional[Tristate] = None

    @property
    def is_optional(self) -> bool:
        return any(definition.entry.is_optional for definition in self.definitions)

    @property
    def prompt_text(self) -> Optional[str]:
        return next((d.entry.prompt.text for d in self.definitions if d.entry.prompt is not None), None)

    def __repr__(self) -> str:
        return f"<choice {self.name or '(unnamed)'}, members {', '.join(self.members)}>"


class _Evaluation:
    """
    Evaluation context of a single public SymbolTable call. Symbol values are memoized for the duration of the
    call; '_evaluating' holds the symbols (and choices) whose value is being computed, to detect dependency loops.
    """

    def __init__(self, symtab: "SymbolTable") -> None:
        self.symtab = symtab
        self._values: Dict[str, ConfigValue] = {}
        self._choice_modes: Dict[int, Tristate] = {}
        self._choice_selections: Dict[int, Optional[str]] = {}
        self._evaluating: List[str] = []

    #
    # Interface used by expr_value()
    #

    def symbol_type(self, name: str) -> Optional[SymbolType]:
        sym = self.symtab._symbols.get(name)
        return sym.symbol_type if sym else None

    def tristate_value(self, name: str) -> Tristate:
        sym = self.symtab._symbols.get(name)
        # Undefined symbols are n
        return self.value(sym).to_tristate() if sym else Tristate.NO

    def string_value(self, name: str) -> str:
        sym = self.symtab._symbols.get(name)
        return str(self.value(sym)) if sym else ""

    def eval(self, expr: Optional[Expression]) -> Tristate:
        return expr_value(expr, self)

    #
    # Cycle detection
    #

    def _enter(self, key: str) -> None:
        if key in self._evaluating:
            loop = self._evaluating[self._evaluating.index(key) :] + [key]
            raise CyclicDependencyError(loop)
        self._evaluating.append(key)

    def _leave(self) -> None:
        self._evaluating.pop()

    #
    # Dependencies and visibility
    #

    def _all(self, exprs: List[Expression]) -> Tristate:
        val = Tristate.YES
        for expr in exprs:
            val &= self.eval(expr)
            if val == Tristate.NO:
                break
        return val

    def menus_dependency(self, menus: Tuple[Menu, ...]) -> Tristate:
        val = Tristate.YES
        for menu in menus:
            val &= self._all(menu.depends_on)
            if val == Tristate.NO:
                break
        return val

    def menus_visibility(self, menus: Tuple[Menu, ...]) -> Tristate:
        val = Tristate.YES
        for menu in menus:
            val &= self._all(menu.visible_if)
        return val

    def definition_dependency(self, definition: Definition) -> Tristate:
        val = self._all(definition.entry.depends_on)
        if val != Tristate.NO:
            val &= self.menus_dependency(definition.menus)
        if val != Tristate.NO and definition.choice is not None:
            val &= self.choice_dependency(definition.choice)
        return val

    def definition_visibility(self, definition: Definition) -> Tristate:
        val = self.definition_dependency(definition)
        prompt = definition.entry.prompt
        if prompt is None or val == Tristate.NO:
            return val
        return val & self.eval(prompt.condition) & self.menus_visibility(definition.menus)

    def dependency(self, sym: Symbol) -> Tristate:
        val = Tristate.NO
        for definition in sym.definitions:
            val |= self.definition_dependency(definition)
            if val == Tristate.YES:
                break
        return val

    def visibility(self, sym: Symbol) -> Tristate:
        prompted = [definition for definition in sym.definitions if definition.entry.prompt is not None]
        if not prompted:
            return self.dependency(sym)
        val = Tristate.NO
        for definition in prompted:
            val |= self.definition_visibility(definition)
        return val

    #
    # Choices
    #

    def choice_dependency(self, choice: ChoiceGroup) -> Tristate:
        val = Tristate.NO
        for definition in choice.definitions:
            val |= self._all(definition.entry.depends_on) & self.menus_dependency(definition.menus)
        return val

    def choice_visibility(self, choice: ChoiceGroup) -> Tristate:
        prompted = [definition for definition in choice.definitions if definition.entry.prompt is not None]
        if not prompted:
            return self.choice_dependency(choice)
        val = Tristate.NO
        for definition in prompted:
            val |= (
                self._all(definition.entry.depends_on)
                & self.menus_dependency(definition.menus)
                & self.eval(definition.entry.prompt.condition)
                & self.menus_visibility(definition.menus)
            )
        return val

    def choice_mode(self, choice: ChoiceGroup) -> Tristate:
        key = id(choice)
        if key not in self._choice_modes:
            if choice.user_mode is not None:
                mode = choice.user_mode
            else:
                mode = Tristate.NO if choice.is_optional else Tristate.YES
            mode &= self.choice_visibility(choice)
            if choice.symbol_type == SymbolType.BOOL and mode == Tristate.MODULE:
                mode = Tristate.YES
            self._choice_modes[key] = mode
        return self._choice_modes[key]

    def choice_selection(self, choice: ChoiceGroup) -> Optional[str]:
        key = id(choice)
        if key not in self._choice_selections:
            self._enter(f"<choice {choice.name or '(unnamed)'}>")
            try:
                self._choice_selections[key] = self._compute_selection(choice)
            finally:
                self._leave()
        return self._choice_selections[key]

    def _compute_selection(self, choice: ChoiceGroup) -> Optional[str]:
        symbols = self.symtab._symbols
        available = [name for name in choice.members if self.dependency(symbols[name]) != Tristate.NO]

        if choice.user_selection in available:
            return choice.user_selection

        for definition in choice.definitions:
            for default in definition.entry.defaults:
                if (
                    isinstance(default.value, SymbolRef)
                    and default.value.name in available
                    and self.eval(default.condition) != Tristate.NO
                ):
                    return default.value.name

        for name in available:
            if self._default_tristate(symbols[name]) == Tristate.YES:
                return name

        return available[0] if available else None

    #
    # Values
    #

    def value(self, sym: Symbol) -> ConfigValue:
        if sym.name not in self._values:
            self._enter(sym.name)
            try:
                self._values[sym.name] = self._compute(sym)
            finally:
                self._leave()
        return self._values[sym.name]

    def _compute(self, sym: Symbol) -> ConfigValue:
        dep = self.dependency(sym)
        if dep == Tristate.NO:
            return zero_value(sym.symbol_type)

        if sym.symbol_type.is_logical:
            return self._logical_value(sym, dep)
        if sym.symbol_type == SymbolType.STRING:
            return self._string_value(sym)
        return self._number_value(sym)

    def _logical_value(self, sym: Symbol, dep: Tristate) -> ConfigValue:
        if sym.choice is not None:
            mode = self.choice_mode(sym.choice)
            if mode == Tristate.YES:
                val = Tristate.YES if self.choice_selection(sym.choice) == sym.name else Tristate.NO
            elif mode == Tristate.MODULE:
                val = self._user_or_default_tristate(sym, dep) & Tristate.MODULE
            else:
                val = Tristate.NO
            return logical_value(sym.symbol_type, val)

        val = self._user_or_default_tristate(sym, dep)
        # "select" sets a lower bound on the value
        for selector, condition in sym.selected_by:
            val |= self.tristate_value(selector) & self.eval(condition)
        return logical_value(sym.symbol_type, val)

    def _user_or_default_tristate(self, sym: Symbol, dep: Tristate) -> Tristate:
        vis = self.visibility(sym)
        if sym.user_value is not None and vis != Tristate.NO:
            return sym.user_value.to_tristate() & vis

        val = self._default_tristate(sym) & dep
        # "imply" works like "select", but only when the user did not set a value
        for implier, condition in sym.implied_by:
            val |= self.tristate_value(implier) & self.eval(condition) & dep
        return val

    def _default_tristate(self, sym: Symbol) -> Tristate:
        for default, definition in sym.defaults:
            cond = self.eval(default.condition) & self.definition_dependency(definition)
            if cond != Tristate.NO:
                return self.eval(default.value) & cond
        return Tristate.NO

    def _default_value(self, sym: Symbol) -> Optional[ConfigValue]:
        for default, definition in sym.defaults:
            if self.eval(default.condition) & self.definition_dependency(definition) == Tristate.NO:
                continue
            text = expr_string_value(default.value, self)
            try:
                return parse_value(sym.symbol_type, text)
            except ValueError:
                self.symtab._warn(
                    f"the default value '{text}' of {sym.name} is not a valid {sym.symbol_type} value, "
                    f"{zero_value(sym.symbol_type)} is used instead",
                    *_location(definition.entry),
                )
                return None
        return None

    def _string_value(self, sym: Symbol) -> ConfigValue:
        if sym.user_value is not None and self.visibility(sym) != Tristate.NO:
            return sym.user_value
        return self._default_value(sym) or zero_value(sym.symbol_type)

    def _number_value(self, sym: Symbol) -> ConfigValue:
        if sym.user_value is not None and self.visibility(sym) != Tristate.NO:
            value = sym.user_value
        else:
            value = self._default_value(sym) or zero_value(sym.symbol_type)

        active_range = self.active_range(sym)
        if active_range is None:
            return value
        low, high = active_range
        number = _number(value)
        if number < low:
            return number_value(sym.symbol_type, low)
        if number > high:
            return number_value(sym.symbol_type, high)
        return value

    def active_range(self, sym: Symbol) -> Optional[Tuple[int, int]]:
        for rng, definition in sym.ranges:
            if self.eval(rng.condition) & self.definition_dependency(definition) != Tristate.NO:
                return self._bound(sym, rng.low), self._bound(sym, rng.high)
        return None

    def _bound(self, sym: Symbol, expr: Expression) -> int:
        text = expr_string_value(expr, self)
        try:
            return int(text, sym.symbol_type.base)
        except ValueError:
            self.symtab._warn(f"the range bound '{text}' of {sym.name} is not a valid {sym.symbol_type} value")
            return 0


def _location(entry) -> Tuple[Optional[str], Optional[int]]:
    # (filename, linenr) for _warn(), entries built by hand may have no location
    return entry.location or (None, None)


def _number(value: ConfigValue) -> int:
    if isinstance(value, HexValue):
        return value.number
    if isinstance(value, IntValue):
        return value.value
    raise TypeError(f"{value!r} is not a number")


class SymbolTable:
    """
    Owns all the symbols and choices of one configuration session and computes their values.

    Symbols are kept in declaration order and never removed. The table must not be shared between threads;
    a front-end owns it for the whole session and serializes reads and writes.

    warnings:
      List of the warning messages emitted so far (parser warnings included when created with from_ast()).

    missing_syms:
      Names found by load_overlay() which are not defined in the Kconfig files.

    report:
      KconfigReport with the structural findings about the tree (multiple definitions, references to
      undefined symbols, ...).

    config_prefix:
      Prefix of symbol names in .config and header files, $CONFIG_ or "CONFIG_" if unset.
    """

    def __init__(self, warn: bool = True, warn_to_stderr: bool = True) -> None:
        self.warn = warn
        self.warn_to_stderr = warn_to_stderr
        self.warn_undef = os.getenv("KCONFIG_WARN_UNDEF") == "y"
        self.config_prefix = os.getenv("CONFIG_", "CONFIG_")
        self.warnings: List[str] = []
        self.missing_syms: List[str] = []

        self.mainmenu_text: Optional[str] = None
        self.ast: Optional[KconfigAST] = None
        self._symbols: Dict[str, Symbol] = {}
        self.choices: List[ChoiceGroup] = []
        self.named_choices: Dict[str, ChoiceGroup] = {}
        # id(entry) -> (enclosing menus, owning choice) for every entry of the tree
        self._entry_context: Dict[int, Tuple[Tuple[Menu, ...], Optional[ChoiceGroup]]] = {}
        self._entry_definitions: Dict[int, Definition] = {}
        self._choice_of_entry: Dict[int, ChoiceGroup] = {}

        self.report = KconfigReport(self)

    #
    # Population
    #

    @classmethod
    def from_ast(cls, ast: KconfigAST, warn: bool = True, warn_to_stderr: bool = True) -> "SymbolTable":
        """
        Creates the symbol table of 'ast'. Raises ParseError (SymbolTypeConflictError for symbols declared with
        two different types) if the tree is not semantically valid.
        """
        symtab = cls(warn=warn, warn_to_stderr=warn_to_stderr)
        symtab.ast = ast
        symtab.mainmenu_text = ast.mainmenu
        symtab.warnings.extend(ast.warnings)
        symtab._populate(ast)
        return symtab

    def _populate(self, ast: KconfigAST) -> None:
        for entry, menus, choice_entry in walk(ast.entries):
            choice = self._choice_of_entry[id(choice_entry)] if choice_entry is not None else None
            self._entry_context[id(entry)] = (menus, choice)

            if isinstance(entry, Config):
                self._add_definition(entry, menus, choice)
            elif isinstance(entry, ChoiceEntry):
                self._add_choice(entry, menus)

        self._set_choice_types()
        for sym in self._symbols.values():
            if sym.symbol_type is None:
                raise ParseError(f"symbol {sym.name} is defined without a type", sym.definitions[0].entry.location)
        self._add_reverse_dependencies()
        self._check_references(ast)

    def _add_definition(self, entry: Config, menus: Tuple[Menu, ...], choice: Optional[ChoiceGroup]) -> None:
        sym = self._symbols.get(entry.name)
        if sym is None:
            sym = self._symbols[entry.name] = Symbol(entry.name, entry.symbol_type)
        elif entry.symbol_type is not None:
            if sym.symbol_type is None:
                sym.symbol_type = entry.symbol_type
            elif sym.symbol_type != entry.symbol_type:
                raise SymbolTypeConflictError(
                    entry.name, str(sym.symbol_type), str(entry.symbol_type), entry.location
                )

        if choice is not None:
            if sym.choice is None:
                sym.choice = choice
                choice.members.append(sym.name)
            elif sym.choice is not choice:
                raise ParseError(f"symbol {sym.name} is a member of two different choices", entry.location)
        elif sym.choice is not None:
            self._warn(f"choice member {sym.name} is also defined outside of its choice", *_location(entry))

        definition = Definition(entry, menus, choice)
        sym.definitions.append(definition)
        self._entry_definitions[id(entry)] = definition

    def _add_choice(self, entry: ChoiceEntry, menus: Tuple[Menu, ...]) -> None:
        choice = self.named_choices.get(entry.name) if entry.name else None
        if choice is None:
            choice = ChoiceGroup(entry.name)
            self.choices.append(choice)
            if entry.name:
                self.named_choices[entry.name] = choice
        elif entry.symbol_type is not None and choice.symbol_type not in (None, entry.symbol_type):
            raise SymbolTypeConflictError(
                f"<choice {entry.name}>", str(choice.symbol_type), str(entry.symbol_type), entry.location
            )

        if entry.symbol_type is not None and choice.symbol_type is None:
            choice.symbol_type = entry.symbol_type
        if entry.prompt is None:
            self._warn(f"<choice {entry.name or '(unnamed)'}> defined without a prompt", *_location(entry))
        choice.definitions.append(ChoiceDefinition(entry, menus))
        self._choice_of_entry[id(entry)] = choice

    def _set_choice_types(self) -> None:
        for choice in self.choices:
            if choice.symbol_type is None:
                # Type of the first member with a type, bool if none
                member_types = (self._symbols[name].symbol_type for name in choice.members)
                choice.symbol_type = next((t for t in member_types if t is not None), SymbolType.BOOL)

            for name in choice.members:
                sym = self._symbols[name]
                if sym.symbol_type is None:
                    sym.symbol_type = choice.symbol_type
                elif not sym.symbol_type.is_logical:
                    raise ParseError(
                        f"choice member {name} has type {sym.symbol_type}, only bool and tristate are allowed",
                        sym.definitions[0].entry.location,
                    )

            if not choice.members:
                self._warn(
                    f"<choice {choice.name or '(unnamed)'}> has no members", *_location(choice.definitions[0].entry)
                )

            for definition in choice.definitions:
                for default in definition.entry.defaults:
                    if not (isinstance(default.value, SymbolRef) and default.value.name in choice.members):
                        self._warn(
                            f"the default '{default.value}' of <choice {choice.name or '(unnamed)'}> is not one of "
                            "its members, ignoring it",
                            *_location(definition.entry),
                        )

    def _add_reverse_dependencies(self) -> None:
        for sym in self._symbols.values():
            for definition in sym.definitions:
                clauses = [(s, "select") for s in definition.entry.selects]
                clauses += [(s, "imply") for s in definition.entry.implies]
                for clause, keyword in clauses:
                    target = self._symbols.get(clause.target)
                    if target is None:
                        self._undefined_reference(clause.target, definition.entry)
                        continue
                    if not target.symbol_type.is_logical:
                        self._warn(
                            f"{sym.name} tries to {keyword} {target.name}, which has type {target.symbol_type}, "
                            "ignoring it",
                            *_location(definition.entry),
                        )
                        continue
                    if target.choice is not None:
                        self._warn(
                            f"{sym.name} tries to {keyword} the choice member {target.name}, ignoring it",
                            *_location(definition.entry),
                        )
                        self.report.add_record(
                            MiscArea, message=f"{keyword} of choice member {target.name} by {sym.name} is ignored"
                        )
                        continue
                    edges = target.selected_by if keyword == "select" else target.implied_by
                    edges.append((sym.name, clause.condition))

            if len(sym.definitions) > 1:
                self.report.add_record(
                    MultipleDefinitionArea, name=sym.name, occurrences=[d.location for d in sym.definitions]
                )

        for choice in self.named_choices.values():
            if len(choice.definitions) > 1:
                self.report.add_record(
                    MultipleDefinitionArea,
                    name=f"<choice {choice.name}>",
                    occurrences=[
                        "{}:{}".format(*_location(definition.entry)) for definition in choice.definitions
                    ],
                )

    def _check_references(self, ast: KconfigAST) -> None:
        for entry, _, _ in walk(ast.entries):
            exprs: List[Optional[Expression]] = list(entry.depends_on)
            if isinstance(entry, Menu):
                exprs += entry.visible_if
            if isinstance(entry, (Config, ChoiceEntry)):
                if entry.prompt is not None:
                    exprs.append(entry.prompt.condition)
                for default in entry.defaults:
                    exprs += [default.value, default.condition]
            if isinstance(entry, Config):
                for clause in entry.selects + entry.implies:
                    exprs.append(clause.condition)
                for rng in entry.ranges:
                    exprs += [rng.low, rng.high, rng.condition]

            for expr in exprs:
                for name in expr_items(expr):
                    if name not in self._symbols:
                        self._undefined_reference(name, entry)

    def _undefined_reference(self, name: str, entry: Entry) -> None:
        self.report.add_record(UndefinedSymbolArea, name=name, referenced_from=_describe(entry))
        if self.warn_undef:
            self._warn(f"{_describe(entry)} references undefined symbol {name}", *_location(entry))

    #
    # Lookup
    #

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    @property
    def symbols(self) -> List[Symbol]:
        """
        All symbols, in declaration order.
        """
        return list(self._symbols.values())

    def get_symbol(self, name: str) -> Symbol:
        try:
            return self._symbols[name]
        except KeyError:
            raise UnknownSymbolError(name)

    def _lookup_choice(self, choice: Union[str, ChoiceGroup, ChoiceEntry]) -> ChoiceGroup:
        if isinstance(choice, ChoiceGroup):
            return choice
        if isinstance(choice, ChoiceEntry):
            return self._choice_of_entry[id(choice)]
        if choice in self.named_choices:
            return self.named_choices[choice]
        # Name of a member
        sym = self.get_symbol(choice)
        if sym.choice is None:
            raise ValueError(f"{choice} is neither a choice nor a choice member")
        return sym.choice

    #
    # Values
    #

    def effective_value(self, name: str) -> Optional[ConfigValue]:
        """
        Returns the current value of the symbol 'name', or None if no such symbol is defined. Raises
        CyclicDependencyError if the value depends on itself.
        """
        sym = self._symbols.get(name)
        if sym is None:
            return None
        return _Evaluation(self).value(sym)

    def all_symbols(self) -> Iterator[Tuple[str, SymbolType, ConfigValue]]:
        """
        Returns an iterator over (name, type, effective value) of all symbols, in declaration order. The values
        are computed when this method is called.
        """
        evaluation = _Evaluation(self)
        return iter([(sym.name, sym.symbol_type, evaluation.value(sym)) for sym in self._symbols.values()])

    def is_visible(self, name_or_entry: Union[str, Entry, ChoiceGroup]) -> bool:
        """
        Returns True if the symbol (given by name) or the menu entry (Config, Menu, Choice, Comment from the AST,
        or a ChoiceGroup) would be shown to the user. Undefined symbols are never visible.
        """
        evaluation = _Evaluation(self)

        if isinstance(name_or_entry, str):
            sym = self._symbols.get(name_or_entry)
            return sym is not None and evaluation.visibility(sym) != Tristate.NO

        if isinstance(name_or_entry, ChoiceGroup):
            return evaluation.choice_visibility(name_or_entry) != Tristate.NO

        if id(name_or_entry) not in self._entry_context:
            raise ValueError(f"{name_or_entry!r} is not an entry of this configuration")
        menus, choice = self._entry_context[id(name_or_entry)]

        if isinstance(name_or_entry, Config):
            return evaluation.definition_visibility(self._entry_definitions[id(name_or_entry)]) != Tristate.NO
        if isinstance(name_or_entry, ChoiceEntry):
            return evaluation.choice_visibility(self._choice_of_entry[id(name_or_entry)]) != Tristate.NO

        val = evaluation.menus_dependency(menus) & evaluation.menus_visibility(menus)
        if choice is not None:
            val &= evaluation.choice_dependency(choice)
        val &= evaluation._all(name_or_entry.depends_on)
        if isinstance(name_or_entry, Menu):
            val &= evaluation._all(name_or_entry.visible_if)
        return val != Tristate.NO

    def dependencies_met(self, name: str) -> bool:
        """
        Returns True if the "depends on" conditions of the symbol (and of its menus and choice) are met.
        """
        return _Evaluation(self).dependency(self.get_symbol(name)) != Tristate.NO

    def choice_mode(self, choice: Union[str, ChoiceGroup, ChoiceEntry]) -> Tristate:
        return _Evaluation(self).choice_mode(self._lookup_choice(choice))

    def choice_selection(self, choice: Union[str, ChoiceGroup, ChoiceEntry]) -> Optional[str]:
        """
        Returns the name of the member of 'choice' (a choice name, the name of one of its members, a ChoiceGroup
        or a Choice entry) which is y, or None if no member is y.
        """
        evaluation = _Evaluation(self)
        choice = self._lookup_choice(choice)
        if evaluation.choice_mode(choice) != Tristate.YES:
            return None
        return evaluation.choice_selection(choice)

    def active_range(self, name: str) -> Optional[Tuple[int, int]]:
        """
        Returns the (low, high) bounds of the first "range" of the int/hex symbol 'name' whose condition is met,
        or None.
        """
        sym = self.get_symbol(name)
        if sym.symbol_type not in (SymbolType.INT, SymbolType.HEX):
            return None
        return _Evaluation(self).active_range(sym)

    #
    # Mutation
    #

    def set_user_value(self, name: str, value: ConfigValue) -> None:
        """
        Sets the user value of the symbol 'name'. Raises UnknownSymbolError, TypeMismatchError (the variant of
        'value' does not match the type of the symbol) or OutOfRangeError (int/hex value outside of the active
        range); the table is left unchanged in that case.

        Side effect: setting a member of a choice to y sets every other member of the choice to n.
        """
        sym = self.get_symbol(name)
        if not isinstance(value, ConfigValue):
            raise TypeMismatchError(name, str(sym.symbol_type), type(value).__name__)
        if value.type != sym.symbol_type:
            raise TypeMismatchError(name, str(sym.symbol_type), str(value.type))

        if sym.symbol_type in (SymbolType.INT, SymbolType.HEX):
            active_range = _Evaluation(self).active_range(sym)
            if active_range is not None and not active_range[0] <= _number(value) <= active_range[1]:
                low, high = (str(number_value(sym.symbol_type, bound)) for bound in active_range)
                raise OutOfRangeError(name, str(value), low, high)

        self._assign(sym, value)

    def _assign(self, sym: Symbol, value: ConfigValue) -> None:
        choice = sym.choice
        if choice is not None:
            tri = value.to_tristate()
            if tri == Tristate.YES:
                for member in choice.members:
                    if member != sym.name:
                        self._symbols[member].user_value = logical_value(
                            self._symbols[member].symbol_type, Tristate.NO
                        )
                choice.user_selection = sym.name
                choice.user_mode = Tristate.YES
            elif tri == Tristate.MODULE:
                choice.user_mode = Tristate.MODULE
            elif choice.user_selection == sym.name:
                choice.user_selection = None
                if choice.is_optional:
                    choice.user_mode = Tristate.NO
        sym.user_value = value

    def unset_user_value(self, name: str) -> None:
        """
        Removes the user value of the symbol 'name', its value is computed from its defaults again.
        """
        sym = self.get_symbol(name)
        sym.user_value = None
        choice = sym.choice
        if choice is not None:
            if choice.user_selection == name:
                choice.user_selection = None
            # The mode follows the defaults again once no member has a user value
            if all(self._symbols[member].user_value is None for member in choice.members):
                choice.user_mode = None

    def load_overlay(self, values: Dict[str, str]) -> None:
        """
        Sets user values from a NAME -> text mapping, as returned by config_io.read_config() (quotes already
        removed). Texts are converted according to the type of each symbol; names which are not defined are
        added to 'missing_syms', malformed values are skipped with a warning. Values are not checked against
        ranges, they are clamped when evaluated. Values of symbols without a prompt are ignored, those symbols
        are always computed from their defaults and selections.
        """
        for name, text in values.items():
            sym = self._symbols.get(name)
            if sym is None:
                self.missing_syms.append(name)
                continue
            if not sym.has_prompt:
                continue
            try:
                value = parse_value(sym.symbol_type, text)
            except ValueError as e:
                self._warn(f"{e}, ignoring the value of {name}")
                continue
            self._assign(sym, value)

    def user_state(self) -> UserState:
        """
        Returns a snapshot of all user values and choice selections, which can be passed to restore_user_state().
        """
        values = {name: sym.user_value for name, sym in self._symbols.items()}
        choices = [(choice.user_selection, choice.user_mode) for choice in self.choices]
        return values, choices

    def restore_user_state(self, state: UserState) -> None:
        values, choices = state
        for name, value in values.items():
            self._symbols[name].user_value = value
        for choice, (selection, mode) in zip(self.choices, choices):
            choice.user_selection = selection
            choice.user_mode = mode

    #
    # Menu tree
    #

    def menu_entries(self) -> Iterator[Tuple[Entry, int]]:
        """
        Yields (entry, depth) for every entry of the menu tree, depth-first. If blocks are not entries of the menu
        tree: their contents are yielded at the depth of the block.
        """

        def rec(entries: List[Entry], depth: int):
            for entry in entries:
                if isinstance(entry, Menu) and entry.is_if_block:
                    yield from rec(entry.entries, depth)
                    continue
                yield entry, depth
                if isinstance(entry, (Menu, ChoiceEntry)):
                    yield from rec(entry.entries, depth + 1)

        if self.ast is not None:
            yield from rec(self.ast.entries, 0)

    #
    # Diagnostics
    #

    def _warn(self, msg: str, filename: Optional[str] = None, linenr: Optional[int] = None) -> None:
        # For printing general warnings

        if not self.warn:
            return

        msg = "warning: " + msg
        if filename is not None:
            msg = f"{filename}:{linenr}: {msg}"

        if msg in self.warnings:
            return
        self.warnings.append(msg)
        if self.warn_to_stderr:
            sys.stderr.write(msg + "\n")

    def _info(self, msg: str) -> None:
        sys.stderr.write(f"info: {msg}\n")


def _describe(entry: Entry) -> str:
    if isinstance(entry, Config):
        return entry.name
    if isinstance(entry, ChoiceEntry):
        return f"<choice {entry.name or '(unnamed)'}>"
    if isinstance(entry, Menu):
        return f'menu "{entry.title}"' if entry.title is not None else "if block"
    return f'comment "{entry.text}"'
