#!/usr/bin/env python
# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
#
# Long-running server process uses stdin & stdout to communicate JSON
# with a caller
#
import argparse
import json
import os
import sys
from json import JSONDecodeError
from typing import Any
from typing import Dict
from typing import List

import kbuildgen.core as kbuildgen
import kbuildlib.config_io as config_io
from kbuild_kconfig import __version__
from kbuildlib.ast import Choice as ChoiceEntry
from kbuildlib.ast import Config
from kbuildlib.ast import Entry
from kbuildlib.ast import Menu
from kbuildlib.core import SymbolTable
from kbuildlib.errors import KconfigError
from kbuildlib.errors import ResolutionError
from kbuildlib.kconfig_parser import parse
from kbuildlib.values import BoolValue
from kbuildlib.values import ConfigValue
from kbuildlib.values import HexValue
from kbuildlib.values import IntValue
from kbuildlib.values import StringValue
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate
from kbuildlib.values import TristateValue

# Min/Max supported protocol versions
MIN_PROTOCOL_VERSION = 1
MAX_PROTOCOL_VERSION = 3


def main():
    parser = argparse.ArgumentParser(
        description="kbuildserver.py v%s - Config Generation Tool" % __version__,
        prog=os.path.basename(sys.argv[0]),
    )

    parser.add_argument("--config", help="Project configuration settings", required=True)

    parser.add_argument("--kconfig", help="Kconfig file with config item definitions", required=True)

    parser.add_argument(
        "--srctree",
        help="Directory which 'source' paths are relative to (default: $srctree, or the current directory)",
        default=None,
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
        "--version",
        help="Set protocol version to use on initial status",
        type=int,
        default=MAX_PROTOCOL_VERSION,
    )

    args = parser.parse_args()

    if args.version < MIN_PROTOCOL_VERSION:
        print(
            "Version %d is older than minimum supported protocol version %d. Client is much older than the server?"
            % (args.version, MIN_PROTOCOL_VERSION),
            file=sys.stderr,
        )

    if args.version > MAX_PROTOCOL_VERSION:
        print(
            "Version %d is newer than maximum supported protocol version %d. Client is newer than the server?"
            % (args.version, MAX_PROTOCOL_VERSION),
            file=sys.stderr,
        )

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

    run_server(args.kconfig, args.config, args.srctree, args.version)


def send(response: Dict[str, Any]) -> None:
    json.dump(response, sys.stdout)
    print("\n")
    sys.stdout.flush()


def run_server(kconfig, config_path, srctree=None, default_version=MAX_PROTOCOL_VERSION):
    symtab = SymbolTable.from_ast(parse(kconfig, srctree))
    if os.path.exists(config_path):
        config_io.load_config(symtab, config_path)

    print("Server running, waiting for requests on stdin...", file=sys.stderr)

    config_dict = kbuildgen.get_json_values(symtab)
    ranges_dict = get_ranges(symtab)
    visible_dict = get_visible(symtab)

    if default_version == 1:
        # V1: no 'visibility' key, send value False for any invisible item
        values_dict = dict((k, v if visible_dict.get(k, False) else False) for (k, v) in config_dict.items())
        send({"version": 1, "values": values_dict, "ranges": ranges_dict})
    else:
        # V2 onwards: separate visibility from version
        resp = {
            "version": default_version,
            "values": config_dict,
            "ranges": ranges_dict,
            "visible": visible_dict,
        }
        # V3 onwards: send which values come from the defaults
        if default_version >= 3:
            resp["defaults"] = get_sym_default_value_dict(symtab)
        send(resp)

    while True:
        line = sys.stdin.readline()
        if not line:
            break
        if not line.strip():
            continue
        try:
            req = json.loads(line)
        except JSONDecodeError as e:
            send({"version": default_version, "error": [f"JSON formatting error: {e}"]})
            continue
        if not isinstance(req, dict):
            send({"version": default_version, "error": ["JSON formatting error: request must be a JSON object"]})
            continue

        version = req.get("version", default_version)
        if not isinstance(version, int):
            version = default_version

        before = kbuildgen.get_json_values(symtab)
        before_ranges = get_ranges(symtab)
        before_visible = get_visible(symtab)
        before_defaults = get_sym_default_value_dict(symtab)

        if "load" in req:  # load a new .config
            if version == 1:
                # for V1 protocol, send all items when loading new .config.
                # (V2+ will only send changes, same as when setting an item)
                before = {}
                before_ranges = {}
                before_visible = {}

            # if no new filename is supplied, use existing .config path, otherwise update the path
            if req["load"] is None:
                req["load"] = config_path
            else:
                config_path = req["load"]

        if "save" in req:
            if req["save"] is None:
                req["save"] = config_path
            else:
                config_path = req["save"]

        state = symtab.user_state()
        try:
            error = handle_request(symtab, req)
            after = kbuildgen.get_json_values(symtab)
            after_ranges = get_ranges(symtab)
            after_visible = get_visible(symtab)
        except ResolutionError as e:
            # The new values can't be evaluated, go back to the configuration before the request
            symtab.restore_user_state(state)
            error = [f"{e}, the request was not applied"]
            after, after_ranges, after_visible = before, before_ranges, before_visible

        values_diff = diff(before, after)
        ranges_diff = diff(before_ranges, after_ranges)
        visible_diff = diff(before_visible, after_visible)

        if version == 1:
            # V1 response, invisible items have value None
            for k in (k for (k, v) in visible_diff.items() if not v):
                values_diff[k] = None
            response = {"version": 1, "values": values_diff, "ranges": ranges_diff}
        else:
            # V2+ response, separate visibility values
            response = {
                "version": version,
                "values": values_diff,
                "ranges": ranges_diff,
                "visible": visible_diff,
            }
            if version >= 3:
                response["defaults"] = diff(before_defaults, get_sym_default_value_dict(symtab))

        if error:
            for err in error:
                print(f"Error: {err}", file=sys.stderr)
            response["error"] = error
        send(response)


def get_sym_default_value_dict(symtab: SymbolTable) -> Dict[str, bool]:
    """
    Returns a dict with <config symbol>:<value comes from the defaults?> pairs.
    """
    return {sym.name: sym.user_value is None for sym in symtab.symbols}


def handle_request(symtab: SymbolTable, req: Dict[str, Any]) -> List[str]:
    if "version" not in req:
        return ["All requests must have a 'version'"]

    if not isinstance(req["version"], int) or not MIN_PROTOCOL_VERSION <= req["version"] <= MAX_PROTOCOL_VERSION:
        return [
            "Unsupported request version %s. Server supports versions %d-%d"
            % (req["version"], MIN_PROTOCOL_VERSION, MAX_PROTOCOL_VERSION)
        ]

    error: List[str] = []

    if "load" in req:
        print("Loading config from %s..." % req["load"], file=sys.stderr)
        try:
            # Loading replaces the whole configuration
            for sym in symtab.symbols:
                symtab.unset_user_value(sym.name)
            config_io.load_config(symtab, req["load"])
        except (OSError, KconfigError) as e:
            error += ["Failed to load from %s: %s" % (req["load"], e)]

    if "set" in req:
        handle_set(symtab, error, req["set"])

    if "reset" in req:
        if req["version"] >= 3:
            handle_reset(symtab, error, req["reset"])
        else:
            error += [f"Resetting config symbols is not supported in protocol version {req['version']}"]

    if "save" in req:
        try:
            print("Saving config to %s..." % req["save"], file=sys.stderr)
            kbuildgen.write_config(symtab, req["save"])
        except OSError as e:
            error += ["Failed to save to %s: %s" % (req["save"], e)]

    return error


def handle_reset(symtab: SymbolTable, error: List[str], to_reset: List[str]) -> None:
    """
    Reset the config symbols to their default values.
    If a symbol is not found, add an error message to the error list.

    Special name "all" can be used to reset all symbols at once.
    """
    if "all" in to_reset:
        for sym in symtab.symbols:
            symtab.unset_user_value(sym.name)
        print("Reset the whole configuration to default values", file=sys.stderr)
        return

    menu_ids = get_menu_ids(symtab)
    for name in to_reset:
        if name in symtab:
            symtab.unset_user_value(name)
            print(f"Reset {name} to default value", file=sys.stderr)
        elif name in menu_ids:
            for sym_name in _symbols_in(menu_ids[name].entries):
                symtab.unset_user_value(sym_name)
            print(f"Reset menu {name} to default values", file=sys.stderr)
        else:
            error.append(f"The following config symbol or menu was not found: {name}")


def _value_from_json(symtab: SymbolTable, name: str, val: Any) -> ConfigValue:
    # Raises ValueError if 'val' is not a valid JSON value for the type of the symbol
    symbol_type = symtab.get_symbol(name).symbol_type
    if symbol_type == SymbolType.BOOL:
        if not isinstance(val, bool):
            raise ValueError(f"Boolean symbol {name} only accepts true/false values")
        return BoolValue(val)
    if symbol_type == SymbolType.TRISTATE:
        if isinstance(val, bool):
            return TristateValue(Tristate.YES if val else Tristate.NO)
        return TristateValue(Tristate.from_str(str(val)))
    if symbol_type == SymbolType.HEX:
        try:
            if not isinstance(val, int):
                val = int(val, 16)  # input can be a decimal JSON value or a string of hex digits
        except (TypeError, ValueError):
            raise ValueError(f"Hex symbol {name} can accept a decimal integer or a string of hex digits, only")
        if val < 0:
            raise ValueError(f"Hex symbol {name} does not accept negative values")
        return HexValue(hex(val))
    if symbol_type == SymbolType.INT:
        try:
            return IntValue(int(val))
        except (TypeError, ValueError):
            raise ValueError(f"Int symbol {name} only accepts integer values")
    return StringValue(str(val))


def handle_set(symtab: SymbolTable, error: List[str], to_set: Dict[str, Any]) -> None:
    missing = [k for k in to_set if k not in symtab]
    if missing:
        error.append("The following config symbol(s) were not found: %s" % (", ".join(missing)))
    to_set = dict((k, v) for (k, v) in to_set.items() if k not in missing)

    # Work through the list of values to set, noting that
    # some may not be immediately applicable (maybe they depend
    # on another value which is being set). Therefore, defer
    # knowing if any value is unsettable until then end

    while len(to_set):
        set_pass = [(k, v) for (k, v) in to_set.items() if symtab.is_visible(k)]
        if not set_pass:
            break  # no visible keys left
        for name, val in set_pass:
            try:
                symtab.set_user_value(name, _value_from_json(symtab, name, val))
                print("Set %s" % name, file=sys.stderr)
            except (ValueError, ResolutionError) as e:
                error.append(str(e))
            del to_set[name]

    if len(to_set):
        error.append(
            "The following config symbol(s) were not visible so were not updated: %s" % (", ".join(to_set))
        )


def diff(before, after):
    """
    Return a dictionary with the difference between 'before' and 'after',
    for items which are present in 'after' dictionary
    """
    diff = dict((k, v) for (k, v) in after.items() if before.get(k, None) != v)
    return diff


def get_ranges(symtab: SymbolTable) -> Dict[str, List[int]]:
    return kbuildgen.get_json_ranges(symtab)


def get_menu_ids(symtab: SymbolTable) -> Dict[str, Entry]:
    """
    Returns a dict mapping the ids of menus and choices (as in the json_menus output) to their entries.
    """
    result: Dict[str, Entry] = {}

    def rec(entries: List[Entry], parents: List[Entry]) -> None:
        for entry in entries:
            if isinstance(entry, Menu) and entry.is_if_block:
                rec(entry.entries, parents)
            elif isinstance(entry, (Menu, ChoiceEntry)):
                result[kbuildgen.get_menu_node_id(entry, parents)] = entry
                rec(entry.entries, parents + [entry])

    if symtab.ast is not None:
        rec(symtab.ast.entries, [])
    return result


def _symbols_in(entries: List[Entry]) -> List[str]:
    names: List[str] = []
    for entry in entries:
        if isinstance(entry, Config):
            names.append(entry.name)
        elif isinstance(entry, (Menu, ChoiceEntry)):
            names += _symbols_in(entry.entries)
    return names


def get_visible(symtab: SymbolTable) -> Dict[str, bool]:
    """
    Return a dict mapping node IDs (config names or menu node IDs) to True/False for their visibility.
    A menu is visible if any of its children is visible.
    """
    result: Dict[str, bool] = {}

    def rec(entries: List[Entry], parents: List[Entry]) -> bool:
        any_visible = False
        for entry in entries:
            if isinstance(entry, Menu) and entry.is_if_block:
                any_visible |= bool(rec(entry.entries, parents))
            elif isinstance(entry, (Menu, ChoiceEntry)):
                visible = bool(rec(entry.entries, parents + [entry]))
                if isinstance(entry, ChoiceEntry):
                    visible = visible and symtab.is_visible(entry)
                result[kbuildgen.get_menu_node_id(entry, parents)] = visible
                any_visible |= visible
            elif isinstance(entry, Config):
                visible = symtab.is_visible(entry.name)
                result[entry.name] = visible
                any_visible |= visible
        return any_visible

    if symtab.ast is not None:
        rec(symtab.ast.entries, [])
    return result
