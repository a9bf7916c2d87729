# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import textwrap

import pytest

from kbuildlib.errors import LexError
from kbuildlib.kconfig_lexer import Lexer
from kbuildlib.kconfig_lexer import TokenKind


def kinds_and_texts(text):
    return [(token.kind, token.text) for token in Lexer(textwrap.dedent(text), "Kconfig")]


class TestTokens:
    def test_entry(self):
        tokens = kinds_and_texts(
            """\
            config FOO
                bool "Enable foo"
                default y if BAR && !BAZ
            """
        )
        assert tokens == [
            (TokenKind.KEYWORD, "config"),
            (TokenKind.IDENT, "FOO"),
            (TokenKind.NEWLINE, "\n"),
            (TokenKind.KEYWORD, "bool"),
            (TokenKind.STRING, "Enable foo"),
            (TokenKind.NEWLINE, "\n"),
            (TokenKind.KEYWORD, "default"),
            (TokenKind.IDENT, "y"),
            (TokenKind.KEYWORD, "if"),
            (TokenKind.IDENT, "BAR"),
            (TokenKind.OPERATOR, "&&"),
            (TokenKind.OPERATOR, "!"),
            (TokenKind.IDENT, "BAZ"),
            (TokenKind.NEWLINE, "\n"),
            (TokenKind.EOF, ""),
        ]

    def test_numbers_and_operators(self):
        tokens = kinds_and_texts("range 0x10 -5 if A>=B || (C!=D)\n")
        assert tokens[1:4] == [(TokenKind.NUMBER, "0x10"), (TokenKind.NUMBER, "-5"), (TokenKind.KEYWORD, "if")]
        operators = [text for kind, text in tokens if kind == TokenKind.OPERATOR]
        assert operators == [">=", "||", "(", "!=", ")"]

    def test_comments_are_skipped(self):
        tokens = kinds_and_texts(
            """\
            # A comment line
            config FOO # trailing comment
                string "not # a comment"
            """
        )
        assert (TokenKind.STRING, "not # a comment") in tokens
        assert all("comment" not in text for kind, text in tokens if kind != TokenKind.STRING)

    def test_line_continuation(self):
        tokens = list(Lexer("depends on A && \\\n    B\nconfig C\n", "Kconfig"))
        assert [t.text for t in tokens if t.kind == TokenKind.IDENT] == ["A", "B", "C"]
        newlines = [t for t in tokens if t.kind == TokenKind.NEWLINE]
        assert [t.linenr for t in newlines] == [1, 3]

    def test_string_escapes(self):
        tokens = kinds_and_texts(r"""prompt "a \"quoted\" back\\slash" 'single \' quote'""" + "\n")
        assert tokens[1] == (TokenKind.STRING, 'a "quoted" back\\slash')
        assert tokens[2] == (TokenKind.STRING, "single ' quote")

    def test_locations(self):
        tokens = list(Lexer("\n\nconfig FOO\n", "dir/Kconfig"))
        assert tokens[0].location == ("dir/Kconfig", 3)
        assert tokens[1].col == 7

    def test_restartable(self):
        lexer = Lexer("config FOO\n    bool\n", "Kconfig")
        assert list(lexer) == list(lexer)


class TestHelp:
    def test_help_text_is_dedented(self):
        tokens = list(
            Lexer(
                textwrap.dedent(
                    """\
                    config FOO
                        bool
                        help
                          First line.
                            Indented line.

                          Second paragraph.

                    config BAR
                        bool
                    """
                ),
                "Kconfig",
            )
        )
        help_tokens = [t for t in tokens if t.kind == TokenKind.HELP]
        assert len(help_tokens) == 1
        assert help_tokens[0].text == "First line.\n  Indented line.\n\nSecond paragraph."
        assert [t.text for t in tokens if t.kind == TokenKind.IDENT] == ["FOO", "BAR"]

    def test_old_style_help_keyword(self):
        tokens = kinds_and_texts(
            """\
            config FOO
                bool
                ---help---
                    Text.
            """
        )
        assert (TokenKind.HELP, "Text.") in tokens

    def test_help_at_end_of_file(self):
        tokens = kinds_and_texts("config FOO\n    bool\n    help\n        Last.")
        assert (TokenKind.HELP, "Last.") in tokens
        assert tokens[-1] == (TokenKind.EOF, "")

    def test_empty_help(self):
        tokens = list(Lexer("config FOO\n    bool\n    help\n\n    default y\nconfig BAR\n    bool\n", "Kconfig"))
        help_tokens = [t for t in tokens if t.kind == TokenKind.HELP]
        assert [(t.text, t.linenr) for t in help_tokens] == [("", 3)]
        assert [t.text for t in tokens if t.kind == TokenKind.IDENT] == ["FOO", "BAR"]
        assert "default" in [t.text for t in tokens if t.kind == TokenKind.KEYWORD]

    def test_help_at_end_of_file_without_text(self):
        tokens = kinds_and_texts("config FOO\n    bool\n    help\n")
        assert (TokenKind.HELP, "") in tokens
        assert tokens[-1] == (TokenKind.EOF, "")


class TestErrors:
    @pytest.mark.parametrize(
        "text,reason",
        [
            ('prompt "unterminated\n', "unterminated string"),
            ('prompt "bad \\q escape"\n', "invalid escape sequence"),
            ("config FOO@\n", "unexpected character '@'"),
        ],
        ids=["unterminated", "escape", "character"],
    )
    def test_lex_errors(self, text, reason):
        with pytest.raises(LexError) as e:
            list(Lexer(text, "Kconfig"))
        assert reason in e.value.reason
        assert e.value.location == ("Kconfig", 1)
