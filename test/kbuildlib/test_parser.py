# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import os
import textwrap

import pytest

from kbuildlib.ast import Choice
from kbuildlib.ast import Comment
from kbuildlib.ast import Config
from kbuildlib.ast import Menu
from kbuildlib.ast import MenuConfig
from kbuildlib.ast import walk
from kbuildlib.errors import CyclicSourceError
from kbuildlib.errors import ParseError
from kbuildlib.errors import SourceNotFoundError
from kbuildlib.errors import SymbolTypeConflictError
from kbuildlib.errors import UnterminatedBlockError
from kbuildlib.expr import And
from kbuildlib.expr import Const
from kbuildlib.expr import Equals
from kbuildlib.expr import Literal
from kbuildlib.expr import Not
from kbuildlib.expr import Or
from kbuildlib.expr import Symbol
from kbuildlib.expr import expr_str
from kbuildlib.kconfig_grammar import parse_expression
from kbuildlib.kconfig_parser import parse
from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return str(path)


def names(entries):
    return [entry.name for entry, _, _ in walk(entries) if isinstance(entry, Config)]


class TestExpressions:
    def test_precedence(self):
        assert parse_expression("A || B && !C") == Or(Symbol("A"), And(Symbol("B"), Not(Symbol("C"))))

    def test_left_associative(self):
        assert parse_expression("A && B && C") == And(And(Symbol("A"), Symbol("B")), Symbol("C"))

    def test_parentheses(self):
        assert parse_expression("(A || B) && C") == And(Or(Symbol("A"), Symbol("B")), Symbol("C"))

    def test_relation_binds_tighter_than_not(self):
        assert parse_expression('!A = "foo"') == Not(Equals(Symbol("A"), Const("foo")))

    def test_constants(self):
        assert parse_expression("y") == Literal(Tristate.YES)
        assert parse_expression('"m"') == Literal(Tristate.MODULE)
        assert parse_expression("0x10") == Const("0x10")
        assert parse_expression("yes") == Symbol("yes")

    def test_expr_str(self):
        assert expr_str(parse_expression("A && (B || !C) && D != 3")) == "A && (B || !C) && D != 3"

    def test_malformed(self):
        with pytest.raises(ParseError):
            parse_expression("A &&", ("Kconfig", 3))


class TestEntries:
    def test_config_properties(self, tmp_path):
        root = write(
            tmp_path / "Kconfig",
            """
            mainmenu "Test configuration"

            config FOO
                int "Foo value" if BAR
                default 5 if BAR
                default 3
                range 1 10
                depends on BAR
                help
                    Help of FOO.

            menuconfig BAR
                bool "Bar"
                select BAZ if !FOO_DISABLED
                imply QUX

            config BAZ
                def_bool y
            """,
        )
        ast = parse(root, str(tmp_path))
        assert ast.mainmenu == "Test configuration"
        foo, bar, baz = ast.entries
        assert foo.symbol_type == SymbolType.INT
        assert foo.prompt.text == "Foo value"
        assert foo.prompt.condition == Symbol("BAR")
        assert [d.value for d in foo.defaults] == [Const("5"), Const("3")]
        assert foo.ranges[0].low == Const("1")
        assert foo.depends_on == [Symbol("BAR")]
        assert foo.help == "Help of FOO."
        assert foo.location == (root, 4)

        assert isinstance(bar, MenuConfig)
        assert bar.selects[0].target == "BAZ"
        assert bar.selects[0].condition == Not(Symbol("FOO_DISABLED"))
        assert bar.implies[0].target == "QUX"

        assert baz.symbol_type == SymbolType.BOOL
        assert baz.defaults[0].value == Literal(Tristate.YES)

    def test_menus_choices_comments(self, tmp_path):
        root = write(
            tmp_path / "Kconfig",
            """
            menu "Networking"
                depends on NET
                visible if EXPERT

                comment "Protocols"
                    depends on INET

                choice PROTO
                    prompt "Protocol"
                    optional
                    default PROTO_B

                    config PROTO_A
                        bool "A"
                    config PROTO_B
                        bool "B"
                endchoice
            endmenu

            if DEBUG
            config TRACE
                bool "Trace"
            endif
            """,
        )
        ast = parse(root, str(tmp_path))
        menu, block = ast.entries
        assert isinstance(menu, Menu)
        assert menu.title == "Networking"
        assert menu.depends_on == [Symbol("NET")]
        assert menu.visible_if == [Symbol("EXPERT")]

        comment, choice = menu.entries
        assert isinstance(comment, Comment)
        assert comment.depends_on == [Symbol("INET")]
        assert isinstance(choice, Choice)
        assert choice.name == "PROTO"
        assert choice.is_optional
        assert choice.defaults[0].value == Symbol("PROTO_B")
        assert [entry.name for entry in choice.entries] == ["PROTO_A", "PROTO_B"]

        assert block.is_if_block
        assert block.depends_on == [Symbol("DEBUG")]
        assert names(block.entries) == ["TRACE"]

    def test_menu_dependency_is_not_copied(self, tmp_path):
        root = write(
            tmp_path / "Kconfig",
            """
            menu "M"
                depends on A
            config B
                bool "B"
            endmenu
            """,
        )
        menu = parse(root, str(tmp_path)).entries[0]
        assert menu.entries[0].depends_on == []

    def test_unknown_symbols_are_not_errors(self, tmp_path):
        root = write(
            tmp_path / "Kconfig",
            """
            config A
                bool
                depends on NEVER_DEFINED
            """,
        )
        assert names(parse(root, str(tmp_path)).entries) == ["A"]


class TestSource:
    def test_nested_source_order(self, tmp_path):
        write(
            tmp_path / "Kconfig",
            """
            config ROOT_1
                bool
            source "b/Kconfig"
            config ROOT_2
                bool
            """,
        )
        write(
            tmp_path / "b" / "Kconfig",
            """
            config B_1
                bool
            source "c/Kconfig"
            config B_2
                bool
            """,
        )
        write(
            tmp_path / "c" / "Kconfig",
            """
            config C_1
                bool
            """,
        )
        ast = parse(str(tmp_path / "Kconfig"), str(tmp_path))
        assert names(ast.entries) == ["ROOT_1", "B_1", "C_1", "B_2", "ROOT_2"]
        assert [os.path.relpath(f, str(tmp_path)) for f in ast.files] == [
            "Kconfig",
            os.path.join("b", "Kconfig"),
            os.path.join("c", "Kconfig"),
        ]

    def test_rsource_and_glob(self, tmp_path, monkeypatch):
        write(tmp_path / "Kconfig", 'rsource "sub/Kconfig"\n')
        write(tmp_path / "sub" / "Kconfig", 'source "$COMPONENTS_DIR/*/Kconfig"\n')
        write(tmp_path / "components" / "b" / "Kconfig", "config B\n    bool\n")
        write(tmp_path / "components" / "a" / "Kconfig", "config A\n    bool\n")
        monkeypatch.setenv("COMPONENTS_DIR", "components")
        ast = parse(str(tmp_path / "Kconfig"), str(tmp_path))
        assert names(ast.entries) == ["A", "B"]

    def test_optional_source(self, tmp_path):
        root = write(tmp_path / "Kconfig", 'osource "missing/Kconfig"\norsource "also_missing"\nconfig A\n    bool\n')
        assert names(parse(root, str(tmp_path)).entries) == ["A"]

    def test_missing_source(self, tmp_path):
        root = write(tmp_path / "Kconfig", '\nsource "missing/Kconfig"\n')
        with pytest.raises(SourceNotFoundError) as e:
            parse(root, str(tmp_path))
        assert e.value.chain == [(root, 2)]
        assert e.value.path.endswith(os.path.join("missing", "Kconfig"))

    def test_cyclic_source(self, tmp_path):
        write(tmp_path / "Kconfig", 'source "b/Kconfig"\n')
        write(tmp_path / "b" / "Kconfig", 'source "c/Kconfig"\n')
        write(tmp_path / "c" / "Kconfig", 'source "Kconfig"\n')
        with pytest.raises(CyclicSourceError) as e:
            parse(str(tmp_path / "Kconfig"), str(tmp_path))
        assert len(e.value.chain) == 3


class TestParseErrors:
    @pytest.mark.parametrize(
        "text,kind",
        [
            ('menu "M"\nconfig A\n    bool\n', "menu"),
            ("choice\n    prompt \"C\"\nconfig A\n    bool\n", "choice"),
            ("if A\nconfig B\n    bool\n", "if"),
        ],
    )
    def test_unterminated_block(self, tmp_path, text, kind):
        root = write(tmp_path / "Kconfig", text)
        with pytest.raises(UnterminatedBlockError) as e:
            parse(root, str(tmp_path))
        assert e.value.kind == kind
        assert e.value.opened_at == (root, 1)

    def test_block_closed_in_another_file(self, tmp_path):
        root = write(tmp_path / "Kconfig", 'menu "M"\nsource "end"\n')
        write(tmp_path / "end", "endmenu\n")
        with pytest.raises(ParseError):
            parse(root, str(tmp_path))

    def test_stray_terminator(self, tmp_path):
        root = write(tmp_path / "Kconfig", "config A\n    bool\nendmenu\n")
        with pytest.raises(ParseError) as e:
            parse(root, str(tmp_path))
        assert e.value.location == (root, 3)

    def test_type_conflict_in_one_entry(self, tmp_path):
        root = write(tmp_path / "Kconfig", "config A\n    bool\n    int\n")
        with pytest.raises(SymbolTypeConflictError):
            parse(root, str(tmp_path))

    @pytest.mark.parametrize(
        "text",
        [
            'menu "M"\n    select A\nendmenu\n',
            "config A\n    string\n    range 1 2\n",
            "config A\n    int\n    select B\n",
            "choice\n    int\nendchoice\n",
            "    default y\n",
            'mainmenu "late"\nmainmenu "twice"\n',
        ],
        ids=["select_on_menu", "range_on_string", "select_on_int", "int_choice", "orphan_property", "mainmenu"],
    )
    def test_invalid_properties(self, tmp_path, text):
        root = write(tmp_path / "Kconfig", text)
        with pytest.raises(ParseError):
            parse(root, str(tmp_path))
