#!/usr/bin/env python
#
# Command line tool to take in .config files with project settings and
# output data in multiple formats (update config, generate header file,
# JSON for IDEs, etc).
#
# SPDX-FileCopyrightText: 2018-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import argparse
import json
import os.path
import re
import sys
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

import kbuildlib.config_io as config_io
from kbuild_kconfig import __version__
from kbuildlib.ast import Choice as ChoiceEntry
from kbuildlib.ast import Comment
from kbuildlib.ast import Config
from kbuildlib.ast import Entry
from kbuildlib.ast import Menu
from kbuildlib.ast import MenuConfig
from kbuildlib.core import SymbolTable
from kbuildlib.errors import ResolutionError
from kbuildlib.expr import expr_str
from kbuildlib.kconfig_parser import parse
from kbuildlib.report import STATUS_OK
from kbuildlib.values import SymbolType
from kbuildlib.values import parse_value


class FatalError(RuntimeError):
    """
    Class for runtime errors (not caused by bugs but by user input).
    """

    pass


CONFIG_HEADING = "# Automatically generated file. DO NOT EDIT.\n# Configuration\n#\n"

HEADER_HEADING = """/*
 * Automatically generated file. DO NOT EDIT.
 * Configuration Header
 */
#pragma once
"""


def write_config(symtab: SymbolTable, filename: str) -> None:
    config_io.write_if_changed(filename, config_io.config_contents(symtab, header=CONFIG_HEADING))


def write_autoconf(symtab: SymbolTable, filename: str) -> None:
    config_io.write_if_changed(filename, config_io.autoconf_contents(symtab, header=CONFIG_HEADING))


def write_header(symtab: SymbolTable, filename: str) -> None:
    config_io.write_if_changed(filename, config_io.header_contents(symtab, header=HEADER_HEADING))


def get_json_values(symtab: SymbolTable) -> Dict[str, Any]:
    """
    Returns a NAME -> value dictionary of the symbols written to .config: bool values as True/False, tristate
    values as "y"/"m"/"n", int and hex values as integers, strings as they are.
    """
    config_dict: Dict[str, Any] = {}
    values = {name: value for name, _, value in symtab.all_symbols()}

    for entry, _ in symtab.menu_entries():
        if not isinstance(entry, Config) or entry.name in config_dict:
            continue
        if not symtab.dependencies_met(entry.name):
            continue
        sym = symtab.get_symbol(entry.name)
        val = values[sym.name]
        if sym.symbol_type == SymbolType.BOOL:
            config_dict[sym.name] = val.value
        elif sym.symbol_type == SymbolType.HEX:
            config_dict[sym.name] = val.number
        elif sym.symbol_type == SymbolType.INT:
            config_dict[sym.name] = val.value
        else:
            config_dict[sym.name] = str(val)
    return config_dict


def write_json(symtab: SymbolTable, filename: str) -> None:
    config_dict = get_json_values(symtab)
    config_io.write_if_changed(filename, json.dumps(config_dict, indent=4, sort_keys=True))


def get_menu_node_id(entry: Entry, parents: List[Entry]) -> str:
    """Given a menu entry and the menus/choices enclosing it, return a unique id
    which can be used to identify it in the menu structure

    Will either be the config symbol name, or a menu identifier
    'slug'

    """
    if isinstance(entry, Config):
        return entry.name

    result = []
    for node in parents + [entry]:
        title = _title(node)
        if title:
            result.append(re.sub(r"\W+", "-", title).lower())
    return "-".join(result)


def _title(entry: Entry) -> Optional[str]:
    if isinstance(entry, Menu):
        return entry.title
    if isinstance(entry, Comment):
        return entry.text
    if entry.prompt is not None:
        return entry.prompt.text
    return None


def _depends_str(entry: Entry) -> Optional[str]:
    if not entry.depends_on:
        return None
    return " && ".join(expr_str(expr) for expr in entry.depends_on)


def get_json_menus(symtab: SymbolTable) -> List[Dict[str, Any]]:
    existing_ids: Set[str] = set()
    result: List[Dict[str, Any]] = []  # root level items
    ranges = get_json_ranges(symtab)

    def write_node(entry: Entry, parents: List[Entry], json_parent: List[Dict[str, Any]]) -> None:
        if isinstance(entry, Menu) and entry.is_if_block:
            for child in entry.entries:
                write_node(child, parents, json_parent)
            return

        new_json: Dict[str, Any] = {}
        if isinstance(entry, Menu) or isinstance(entry, MenuConfig):
            new_json = {
                "type": "menu",
                "title": _title(entry) or "",
                "depends_on": _depends_str(entry),
                "children": [],
            }
            if isinstance(entry, MenuConfig):
                new_json["name"] = entry.name
                new_json["help"] = entry.help
                new_json["is_menuconfig"] = True
                new_json["range"] = ranges.get(entry.name)
        elif isinstance(entry, Config):
            new_json = {
                "type": str(symtab.get_symbol(entry.name).symbol_type),
                "name": entry.name,
                "title": _title(entry),
                "depends_on": _depends_str(entry),
                "help": entry.help,
                "range": ranges.get(entry.name),
                "children": [],
            }
        elif isinstance(entry, ChoiceEntry):
            new_json = {
                "type": "choice",
                "title": _title(entry) or "",
                "name": entry.name,
                "depends_on": _depends_str(entry),
                "help": entry.help,
                "children": [],
            }

        if not new_json:
            return

        node_id = get_menu_node_id(entry, parents)
        if node_id in existing_ids:
            raise FatalError(
                f"Config file contains two items with the same id: {node_id} ({_title(entry) or ''}). "
                "Please rename one of these items to avoid ambiguity."
            )
        existing_ids.add(node_id)
        new_json["id"] = node_id
        json_parent.append(new_json)

        if isinstance(entry, (Menu, ChoiceEntry)):
            for child in entry.entries:
                write_node(child, parents + [entry], new_json["children"])

    if symtab.ast is not None:
        for entry in symtab.ast.entries:
            write_node(entry, [], result)
    return result


def write_json_menus(symtab: SymbolTable, filename: str) -> None:
    config_io.write_if_changed(filename, json.dumps(get_json_menus(symtab), sort_keys=True, indent=4))


def get_json_ranges(symtab: SymbolTable) -> Dict[str, List[int]]:
    """
    Returns a NAME -> [low, high] dictionary of the int/hex symbols with an active range.
    """
    ranges = {}
    for sym in symtab.symbols:
        active_range = symtab.active_range(sym.name)
        if active_range is not None:
            ranges[sym.name] = list(active_range)
    return ranges


OUTPUT_FORMATS = {
    "config": write_config,
    "autoconf": write_autoconf,
    "header": write_header,
    "json": write_json,
    "json_menus": write_json_menus,
}


def set_values(symtab: SymbolTable, assignments: List[str]) -> List[str]:
    """
    Applies NAME=VALUE assignments given on the command line. Returns the error messages of the assignments
    which could not be applied; the others are applied regardless.
    """
    errors = []
    for assignment in assignments:
        name, sep, text = assignment.partition("=")
        if not sep:
            errors.append(f"--set arguments must have the form NAME=VALUE, got '{assignment}'")
            continue
        try:
            sym = symtab.get_symbol(name)
            if sym.symbol_type == SymbolType.STRING and len(text) > 1 and text[0] == text[-1] == '"':
                text = config_io.unescape(text[1:-1])
            symtab.set_user_value(name, parse_value(sym.symbol_type, text))
        except (ResolutionError, ValueError) as e:
            errors.append(f"cannot set {name}: {e}")
    return errors


def main():
    parser = argparse.ArgumentParser(
        description="kbuildgen.py v%s - Config Generation Tool" % __version__,
        prog=os.path.basename(sys.argv[0]),
    )

    parser.add_argument("--config", help="Project configuration settings", nargs="?", default=None)

    parser.add_argument(
        "--defaults",
        help="Optional project defaults file, loaded before the --config file. "
        "Multiple files can be specified using multiple --defaults arguments.",
        default=[],
        action="append",
    )

    parser.add_argument("--kconfig", help="KConfig file with config item definitions", required=True)

    parser.add_argument(
        "--srctree",
        help="Directory which 'source' paths are relative to (default: $srctree, or the current directory)",
        default=None,
    )

    parser.add_argument(
        "--set",
        action="append",
        default=[],
        help="Set a symbol to a value after the configuration files are loaded",
        metavar="NAME=VALUE",
    )

    parser.add_argument(
        "--output",
        nargs=2,
        action="append",
        help="Write output file (format and output filename)",
        metavar=("FORMAT", "FILENAME"),
        default=[],
    )

    parser.add_argument(
        "--env",
        action="append",
        default=[],
        help="Environment to set when evaluating the config file",
        metavar="NAME=VAL",
    )

    parser.add_argument(
        "--env-file",
        type=argparse.FileType("r"),
        help="Optional file to load environment variables from. Contents "
        "should be a JSON object where each key/value pair is a variable.",
    )

    parser.add_argument(
        "--report-format",
        choices=["table", "json"],
        default="table",
        help="Format of the configuration report, printed when there is something to report",
    )

    parser.add_argument("--report-file", help="Write the configuration report into this file instead of stderr")

    args = parser.parse_args()

    for fmt, filename in args.output:
        if fmt not in OUTPUT_FORMATS.keys():
            print("Format '%s' not recognised. Known formats: %s" % (fmt, ", ".join(OUTPUT_FORMATS.keys())))
            sys.exit(1)

    try:
        args.env = [(name, value) for (name, value) in (e.split("=", 1) for e in args.env)]
    except ValueError:
        print("--env arguments must each contain =. To unset an environment variable, use 'ENV='")
        sys.exit(1)

    for name, value in args.env:
        os.environ[name] = value

    if args.env_file is not None:
        env = json.load(args.env_file)
        os.environ.update(env)

    symtab = SymbolTable.from_ast(parse(args.kconfig, args.srctree))

    # always load defaults first, so any items which are not defined in the args.config
    # will have the default defined in the defaults file
    for name in args.defaults:
        print("Loading defaults file %s..." % name, file=sys.stderr)
        if not os.path.exists(name):
            raise FatalError("Defaults file not found: %s" % name)
        for symbol in config_io.load_config(symtab, name):
            print(f"warning: unknown kconfig symbol '{symbol}' assigned in {name}", file=sys.stderr)

    # If previous .config file exists, load it
    if args.config and os.path.exists(args.config):
        for symbol in config_io.load_config(symtab, args.config):
            print(f"warning: unknown kconfig symbol '{symbol}' assigned in {args.config}", file=sys.stderr)

    for error in set_values(symtab, args.set):
        print(f"error: {error}", file=sys.stderr)

    # Output the files specified in the arguments
    for output_type, filename in args.output:
        output_function = OUTPUT_FORMATS[output_type]
        output_function(symtab, filename)

    if symtab.report.status != STATUS_OK:
        if args.report_format == "json":
            symtab.report.output_json(args.report_file)
        else:
            symtab.report.print_report(args.report_file)
