# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Tokenizer of the Kconfig language.

Kconfig is line oriented: every statement takes one logical line (physical lines ending with '\\' are joined with
the next one) and ends with a NEWLINE token. Indentation is irrelevant, with the exception of help texts, which
are returned as a single HELP token containing the whole (dedented) text.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator
from typing import List
from typing import Tuple

from kbuildlib.errors import LexError


class TokenKind(Enum):
    KEYWORD = "keyword"
    IDENT = "identifier"
    STRING = "string"
    NUMBER = "number"
    OPERATOR = "operator"
    NEWLINE = "end of line"
    HELP = "help text"
    EOF = "end of file"


KEYWORDS = frozenset(
    (
        "mainmenu",
        "config",
        "menuconfig",
        "menu",
        "endmenu",
        "choice",
        "endchoice",
        "comment",
        "if",
        "endif",
        "source",
        "rsource",
        "osource",
        "orsource",
        "bool",
        "tristate",
        "string",
        "int",
        "hex",
        "def_bool",
        "def_tristate",
        "prompt",
        "default",
        "depends",
        "on",
        "select",
        "imply",
        "range",
        "visible",
        "optional",
        "option",
        "help",
        "---help---",
    )
)

OPERATORS = ("&&", "||", "!=", "<=", ">=", "!", "=", "<", ">", "(", ")")

ESCAPES = {"\\": "\\", '"': '"', "'": "'", "n": "\n", "t": "\t"}

_number_match = re.compile(r"-?(?:0[xX][0-9a-fA-F]+|\d+)(?![A-Za-z0-9_])").match
_word_match = re.compile(r"---help---|[A-Za-z0-9_]+").match


@dataclass(frozen=True)
class Token:
    """
    'text' is the literal text of the token, except for STRING tokens (the unescaped contents without quotes) and
    HELP tokens (the help text). 'col' and 'end' delimit the token in 'line', the logical line it comes from.
    """

    kind: TokenKind
    text: str
    filename: str
    linenr: int
    col: int = 0
    end: int = 0
    line: str = ""

    @property
    def location(self) -> Tuple[str, int]:
        return self.filename, self.linenr

    def is_keyword(self, *keywords: str) -> bool:
        return self.kind == TokenKind.KEYWORD and self.text in keywords

    def __str__(self) -> str:
        if self.kind in (TokenKind.NEWLINE, TokenKind.EOF, TokenKind.HELP):
            return self.kind.value
        if self.kind == TokenKind.STRING:
            return f'"{self.text}"'
        return f"'{self.text}'"


class Lexer:
    """
    Iterating over a Lexer yields the tokens of 'text'. Every iteration starts from the beginning of the text,
    LexError is raised when a malformed token is found.
    """

    def __init__(self, text: str, filename: str = "<string>"):
        self.text = text
        self.filename = filename

    def __iter__(self) -> Iterator[Token]:
        return self._tokens()

    def tokens(self) -> List[Token]:
        return list(self)

    def _tokens(self) -> Iterator[Token]:
        lines = self.text.splitlines()
        idx = 0
        linenr = 0
        while idx < len(lines):
            linenr = idx + 1
            line = lines[idx]
            idx += 1
            # Joined lines are reported at the location of the first one
            while line.endswith("\\"):
                line = line[:-1]
                if idx < len(lines):
                    line += lines[idx]
                    idx += 1

            tokens = self._tokenize_line(line, linenr)
            if not tokens:
                continue

            if tokens[0].is_keyword("help", "---help---"):
                if len(tokens) > 1:
                    raise LexError((self.filename, linenr), f"unexpected {tokens[1]} after {tokens[0].text}")
                help_text, idx = self._help_text(lines, idx, _indentation(line))
                tokens = [Token(TokenKind.HELP, help_text, self.filename, linenr, tokens[0].col, tokens[0].end, line)]

            yield from tokens
            yield Token(TokenKind.NEWLINE, "\n", self.filename, linenr, len(line), len(line), line)

        yield Token(TokenKind.EOF, "", self.filename, linenr)

    def _tokenize_line(self, line: str, linenr: int) -> List[Token]:
        tokens = []
        pos = 0
        length = len(line)

        def token(kind: TokenKind, text: str, col: int, end: int) -> Token:
            return Token(kind, text, self.filename, linenr, col, end, line)

        while pos < length:
            char = line[pos]
            if char.isspace():
                pos += 1
                continue

            if char == "#":
                # Comment till the end of the line
                break

            if char in ('"', "'"):
                text, end = self._string(line, pos, linenr)
                tokens.append(token(TokenKind.STRING, text, pos, end))
                pos = end
                continue

            match = _number_match(line, pos)
            if match:
                tokens.append(token(TokenKind.NUMBER, match.group(), pos, match.end()))
                pos = match.end()
                continue

            match = _word_match(line, pos)
            if match:
                word = match.group()
                kind = TokenKind.KEYWORD if word in KEYWORDS else TokenKind.IDENT
                tokens.append(token(kind, word, pos, match.end()))
                pos = match.end()
                continue

            for operator in OPERATORS:
                if line.startswith(operator, pos):
                    tokens.append(token(TokenKind.OPERATOR, operator, pos, pos + len(operator)))
                    pos += len(operator)
                    break
            else:
                raise LexError((self.filename, linenr), f"unexpected character '{char}'")

        return tokens

    def _string(self, line: str, pos: int, linenr: int) -> Tuple[str, int]:
        """
        Scans the quoted string starting at line[pos]. Returns its unescaped contents and the index just after the
        closing quote.
        """
        quote = line[pos]
        result = []
        pos += 1
        while pos < len(line):
            char = line[pos]
            if char == quote:
                return "".join(result), pos + 1
            if char == "\\":
                if pos + 1 >= len(line):
                    break
                escaped = line[pos + 1]
                if escaped not in ESCAPES:
                    raise LexError((self.filename, linenr), f"invalid escape sequence '\\{escaped}' in string")
                result.append(ESCAPES[escaped])
                pos += 2
                continue
            result.append(char)
            pos += 1
        raise LexError((self.filename, linenr), "unterminated string")

    def _help_text(self, lines: List[str], idx: int, help_indent: int) -> Tuple[str, int]:
        """
        Collects the help text starting at lines[idx]. The text is made of all the lines indented at least as much
        as its first non-blank line, blank lines included when the text continues after them. Returns the text and
        the index of the first line after it. The text is empty if the first non-blank line is not indented more
        than the help keyword.
        """
        first = idx
        while first < len(lines) and not lines[first].strip():
            first += 1
        if first == len(lines) or _indentation(lines[first]) <= help_indent:
            return "", idx

        block_indent = _indentation(lines[first])
        result: List[str] = []
        idx = first
        while idx < len(lines):
            line = lines[idx].expandtabs()
            if not line.strip():
                result.append("")
            elif _indentation(line) >= block_indent:
                result.append(line[block_indent:].rstrip())
            else:
                break
            idx += 1

        # Trailing blank lines belong to the surrounding file
        while result and not result[-1]:
            result.pop()
            idx -= 1
        return "\n".join(result), idx


def _indentation(line: str) -> int:
    expanded = line.expandtabs()
    return len(expanded) - len(expanded.lstrip())
