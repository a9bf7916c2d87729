# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Reading and writing of configuration files.

  .config       CONFIG_FOO=y / # CONFIG_FOO is not set / CONFIG_BAR="text" / CONFIG_BAZ=0x10
  auto.conf     same as .config, but n-valued symbols are left out
  autoconf.h    #define CONFIG_FOO 1 / #define CONFIG_FOO_MODULE 1 / #define CONFIG_BAR "text"

Symbols appear in the order in which they are first defined in the Kconfig files. A symbol defined in several
places is written once, at its first definition whose dependencies are met.
"""
import os
import re
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

from kbuildlib.ast import Choice as ChoiceEntry
from kbuildlib.ast import Comment
from kbuildlib.ast import Config
from kbuildlib.ast import Entry
from kbuildlib.ast import Menu
from kbuildlib.core import SymbolTable
from kbuildlib.expr import escape
from kbuildlib.expr import unescape
from kbuildlib.values import ConfigValue
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate

__all__ = [
    "read_config",
    "load_config",
    "config_contents",
    "autoconf_contents",
    "header_contents",
    "write_if_changed",
    "standard_config_filename",
    "escape",
    "unescape",
]

_conf_string_match = re.compile(r'"((?:[^\\"]|\\.)*)"', re.ASCII).match


def standard_config_filename() -> str:
    """
    Path of the .config file: $KCONFIG_CONFIG, or ".config" if unset.
    """
    return os.getenv("KCONFIG_CONFIG") or ".config"


def read_config(
    filename: str, prefix: str = "CONFIG_", warn: Optional[Callable[[str, str, int], None]] = None
) -> Dict[str, str]:
    """
    Reads the assignments of a .config file into a NAME -> text dictionary, NAME without 'prefix'.

    Quoted values are unquoted and unescaped, "# CONFIG_FOO is not set" gives "n". Later assignments override
    earlier ones. Lines which are neither assignments nor comments are reported through
    warn(message, filename, linenr) and ignored.
    """
    set_match = re.compile(re.escape(prefix) + r"([^=]+)=(.*)", re.ASCII).match
    unset_match = re.compile(rf"# {re.escape(prefix)}([^ ]+) is not set", re.ASCII).match

    values: Dict[str, str] = {}
    with open(filename, "r", encoding="utf-8") as f:
        for linenr, line in enumerate(f, 1):
            # Trailing whitespace is not part of the value
            line = line.rstrip()

            match = set_match(line)
            if match:
                name, val = match.groups()
                if val.startswith('"'):
                    string_match = _conf_string_match(val)
                    if not string_match:
                        if warn:
                            warn(f"malformed string literal in assignment to {name}, ignoring it", filename, linenr)
                        continue
                    val = unescape(string_match.group(1))
                values[name] = val
                continue

            match = unset_match(line)
            if match:
                values[match.group(1)] = "n"
                continue

            if line and not line.lstrip().startswith("#") and warn:
                warn(f"ignoring malformed line '{line}'", filename, linenr)

    return values


def load_config(symtab: SymbolTable, filename: str) -> List[str]:
    """
    Loads the .config file 'filename' as user values of 'symtab'. Returns the names assigned in the file which are
    not defined in the Kconfig files.
    """
    missing_before = len(symtab.missing_syms)
    symtab.load_overlay(read_config(filename, symtab.config_prefix, warn=symtab._warn))
    return symtab.missing_syms[missing_before:]


def _config_string(symtab: SymbolTable, name: str, symbol_type: SymbolType, value: ConfigValue) -> str:
    prefix = symtab.config_prefix
    if symbol_type.is_logical:
        if value.to_tristate() == Tristate.NO:
            return f"# {prefix}{name} is not set\n"
        return f"{prefix}{name}={value}\n"
    if symbol_type == SymbolType.STRING:
        return f'{prefix}{name}="{escape(str(value))}"\n'
    return f"{prefix}{name}={value}\n"


def _is_written(entry: Config) -> bool:
    # Symbols taking their value from the environment are not part of the configuration
    return not any(option.startswith("env=") for option in entry.options)


def config_contents(symtab: SymbolTable, header: str = "") -> str:
    """
    Returns the contents of the .config file of the current configuration, starting with 'header'.

    Symbols whose dependencies are not met are left out. Visible menus and comments get a "#\\n# Title\\n#" heading,
    and menus an "# end of Title" line after their last entry.
    """
    chunks = [header]
    add = chunks.append
    written = set()
    values = {name: value for name, _, value in symtab.all_symbols()}
    # Did we just print an '# end of ...' comment?
    after_end_comment = False

    def rec(entries: List[Entry]) -> None:
        nonlocal after_end_comment
        for entry in entries:
            if isinstance(entry, Config):
                if entry.name in written or not _is_written(entry) or not symtab.dependencies_met(entry.name):
                    continue
                written.add(entry.name)
                if after_end_comment:
                    after_end_comment = False
                    add("\n")
                sym = symtab.get_symbol(entry.name)
                add(_config_string(symtab, sym.name, sym.symbol_type, values[sym.name]))

            elif isinstance(entry, Menu):
                if entry.is_if_block:
                    rec(entry.entries)
                    continue
                shown = symtab.is_visible(entry)
                if shown:
                    add(f"\n#\n# {entry.title}\n#\n")
                    after_end_comment = False
                rec(entry.entries)
                if shown:
                    add(f"# end of {entry.title}\n")
                    after_end_comment = True

            elif isinstance(entry, ChoiceEntry):
                rec(entry.entries)

            elif isinstance(entry, Comment) and symtab.is_visible(entry):
                add(f"\n#\n# {entry.text}\n#\n")
                after_end_comment = False

    if symtab.ast is not None:
        rec(symtab.ast.entries)
    return "".join(chunks)


def _written_symbols(symtab: SymbolTable):
    # (name, type, value) of the symbols config_contents() would write, in the same order
    if symtab.ast is None:
        return
    values = {name: (symbol_type, value) for name, symbol_type, value in symtab.all_symbols()}
    written = set()
    for entry, _ in symtab.menu_entries():
        if not isinstance(entry, Config) or entry.name in written or not _is_written(entry):
            continue
        if not symtab.dependencies_met(entry.name):
            continue
        written.add(entry.name)
        yield (entry.name,) + values[entry.name]


def autoconf_contents(symtab: SymbolTable, header: str = "") -> str:
    """
    Returns the contents of the auto.conf file: the .config assignments without the n-valued symbols and without
    menu headings.
    """
    chunks = [header]
    for name, symbol_type, value in _written_symbols(symtab):
        if symbol_type.is_logical and value.to_tristate() == Tristate.NO:
            continue
        chunks.append(_config_string(symtab, name, symbol_type, value))
    return "".join(chunks)


def header_contents(symtab: SymbolTable, header: str = "") -> str:
    """
    Returns the contents of the C header with one #define per symbol which is not n. A tristate symbol set to m
    defines <prefix>NAME_MODULE instead.
    """
    prefix = symtab.config_prefix
    chunks = [header]
    add = chunks.append
    for name, symbol_type, value in _written_symbols(symtab):
        if symbol_type.is_logical:
            tri = value.to_tristate()
            if tri == Tristate.YES:
                add(f"#define {prefix}{name} 1\n")
            elif tri == Tristate.MODULE:
                add(f"#define {prefix}{name}_MODULE 1\n")
        elif symbol_type == SymbolType.STRING:
            add(f'#define {prefix}{name} "{escape(str(value))}"\n')
        else:
            add(f"#define {prefix}{name} {value}\n")
    return "".join(chunks)


def write_if_changed(filename: str, contents: str) -> bool:
    """
    Writes 'contents' into 'filename', but only if it differs from the current contents of the file, so that the
    modification time of an up-to-date file is kept. Returns True if the file was written.
    """
    if _contents_eq(filename, contents):
        return False
    with open(filename, "w", encoding="utf-8") as f:
        f.write(contents)
    return True


def _contents_eq(filename: str, contents: str) -> bool:
    try:
        with open(filename, "r", encoding="utf-8") as f:
            return f.read(len(contents) + 1) == contents
    except OSError:
        return False
