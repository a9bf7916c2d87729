# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import os
import sys
from glob import iglob
from os.path import dirname
from os.path import expandvars
from os.path import join
from os.path import realpath
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from kbuildlib.ast import Choice
from kbuildlib.ast import Comment
from kbuildlib.ast import Config
from kbuildlib.ast import Default
from kbuildlib.ast import Entry
from kbuildlib.ast import KconfigAST
from kbuildlib.ast import Location
from kbuildlib.ast import Menu
from kbuildlib.ast import MenuConfig
from kbuildlib.ast import Prompt
from kbuildlib.ast import Range
from kbuildlib.ast import Select
from kbuildlib.errors import CyclicSourceError
from kbuildlib.errors import ParseError
from kbuildlib.errors import SourceNotFoundError
from kbuildlib.errors import SymbolTypeConflictError
from kbuildlib.errors import UnterminatedBlockError
from kbuildlib.expr import Const
from kbuildlib.expr import Expression
from kbuildlib.kconfig_grammar import parse_expression
from kbuildlib.kconfig_lexer import Lexer
from kbuildlib.kconfig_lexer import Token
from kbuildlib.kconfig_lexer import TokenKind
from kbuildlib.values import SymbolType

TYPE_KEYWORDS = {
    "bool": SymbolType.BOOL,
    "tristate": SymbolType.TRISTATE,
    "string": SymbolType.STRING,
    "int": SymbolType.INT,
    "hex": SymbolType.HEX,
}
DEF_KEYWORDS = {"def_bool": SymbolType.BOOL, "def_tristate": SymbolType.TRISTATE}

SOURCE_KEYWORDS = ("source", "rsource", "osource", "orsource")
BLOCK_END = {"menu": "endmenu", "choice": "endchoice", "if": "endif"}

# Which properties each kind of entry accepts. Type keywords, def_bool and def_tristate go under "type".
CONFIG_PROPERTIES = ("type", "prompt", "default", "depends", "select", "imply", "range", "option", "help")
CHOICE_PROPERTIES = ("type", "prompt", "default", "depends", "optional", "help")
MENU_PROPERTIES = ("depends", "visible")
COMMENT_PROPERTIES = ("depends",)

PropertyOwner = Union[Config, Choice, Menu, Comment]


class Parser:
    """
    Recursive descent parser building a KconfigAST out of a root Kconfig file and everything it sources.

    Every file is read, tokenized by the Lexer and closed before its tokens are parsed. Blocks (menu, choice, if)
    must be closed in the file in which they were opened. Expressions are parsed by the pyparsing grammar from
    kconfig_grammar.py.

    'srctree' is the directory "source" paths are relative to. "rsource"/"orsource" paths are relative to the
    directory of the file containing them. Environment variables in source paths are expanded and glob patterns
    are allowed; "osource"/"orsource" are silently skipped when nothing matches.
    """

    def __init__(self, srctree: Optional[str] = None, warn_to_stderr: bool = True) -> None:
        self.srctree = srctree or ""
        self.warn_to_stderr = warn_to_stderr
        self.warnings: List[str] = []
        self.files: List[str] = []

        # Canonical paths of the files being parsed, the root file first
        self.file_stack: List[str] = []
        # Locations of the source statements that led to the current file
        self.location_stack: List[Location] = []

        self._tokens: List[Token] = []
        self._pos = 0
        self._filename = ""
        self._mainmenu: Optional[str] = None
        self._mainmenu_allowed = False

    def parse(self, root_path: str) -> KconfigAST:
        ast = KconfigAST()
        self._mainmenu_allowed = True
        ast.entries = self._parse_file(root_path)
        ast.mainmenu = self._mainmenu
        ast.files = self.files
        ast.warnings = self.warnings
        return ast

    def _warn(self, msg: str, location: Optional[Location] = None) -> None:
        msg = "warning: " + msg
        if location is not None:
            msg = f"{location[0]}:{location[1]}: {msg}"

        self.warnings.append(msg)
        if self.warn_to_stderr:
            sys.stderr.write(msg + "\n")

    ###########################
    # Files and sourcing
    ###########################

    def _parse_file(self, filename: str) -> List[Entry]:
        canonical = realpath(filename)
        if canonical in self.file_stack:
            raise CyclicSourceError(filename, list(self.location_stack))

        try:
            with open(filename, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError:
            raise SourceNotFoundError(filename, list(self.location_stack), self.srctree)

        # Tokenize the whole file up front, so that LexErrors are reported before anything is parsed
        tokens = Lexer(text, filename).tokens()
        self.files.append(filename)

        saved_state = (self._tokens, self._pos, self._filename)
        self._tokens, self._pos, self._filename = tokens, 0, filename
        self.file_stack.append(canonical)
        try:
            return self._parse_entries(None)
        finally:
            self.file_stack.pop()
            self._tokens, self._pos, self._filename = saved_state

    def _parse_source(self) -> List[Entry]:
        keyword = self._next()
        path_token = self._expect(TokenKind.STRING, f"expected a quoted path after '{keyword.text}'")
        self._expect_newline()

        path = expandvars(path_token.text)
        if keyword.text in ("rsource", "orsource"):
            path = join(dirname(self._filename), path)
        else:
            path = join(self.srctree, path)

        filenames = sorted(iglob(path))
        if not filenames:
            if keyword.text in ("osource", "orsource"):
                return []
            raise SourceNotFoundError(path, self.location_stack + [keyword.location], self.srctree)

        entries: List[Entry] = []
        for filename in filenames:
            self.location_stack.append(keyword.location)
            try:
                entries.extend(self._parse_file(filename))
            finally:
                self.location_stack.pop()
        return entries

    ###########################
    # Token stream helpers
    ###########################

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _next(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind != TokenKind.EOF:
            self._pos += 1
        return token

    def _expect(self, kind: TokenKind, msg: str) -> Token:
        token = self._next()
        if token.kind != kind:
            raise ParseError(f"{msg}, got {token}", token.location)
        return token

    def _expect_newline(self) -> None:
        token = self._next()
        if token.kind not in (TokenKind.NEWLINE, TokenKind.EOF):
            raise ParseError(f"unexpected {token} at the end of the line", token.location)

    def _rest_of_line(self) -> List[Token]:
        tokens = []
        while self._peek().kind not in (TokenKind.NEWLINE, TokenKind.EOF):
            tokens.append(self._next())
        self._next()
        return tokens

    def _expression(self, tokens: List[Token], location: Location) -> Expression:
        if not tokens:
            raise ParseError("expected an expression", location)
        for token in tokens:
            if token.kind in (TokenKind.KEYWORD, TokenKind.HELP):
                raise ParseError(f"unexpected keyword {token} in expression", token.location)
        # Expressions are parsed from their source text, tokens are only used to delimit them
        text = tokens[0].line[tokens[0].col : tokens[-1].end]
        return parse_expression(text, location)

    def _split_condition(self, tokens: List[Token], location: Location) -> Tuple[List[Token], Optional[Expression]]:
        """
        Splits "<tokens> if <expr>" into the tokens before "if" and the parsed condition (None if there is no "if").
        """
        for idx, token in enumerate(tokens):
            if token.is_keyword("if"):
                return tokens[:idx], self._expression(tokens[idx + 1 :], location)
        return tokens, None

    ###########################
    # Entries
    ###########################

    def _parse_entries(self, block: Optional[Tuple[str, Location]]) -> List[Entry]:
        """
        Parses entries until the end of 'block' ((kind, opened_at), e.g. ("menu", location)) or until the end of the
        file if 'block' is None.
        """
        entries: List[Entry] = []
        while True:
            token = self._peek()

            if token.kind == TokenKind.NEWLINE:
                self._next()
                continue

            if token.kind == TokenKind.EOF:
                if block is not None:
                    raise UnterminatedBlockError(block[0], block[1])
                return entries

            if block is not None and token.is_keyword(BLOCK_END[block[0]]):
                self._next()
                self._expect_newline()
                return entries

            if token.is_keyword(*BLOCK_END.values()):
                raise ParseError(f"'{token.text}' without a matching '{_opening(token.text)}'", token.location)

            if token.is_keyword("mainmenu"):
                self._parse_mainmenu()
                continue

            self._mainmenu_allowed = False
            entries.extend(self._parse_entry())

    def _parse_entry(self) -> List[Entry]:
        token = self._peek()
        parsers: Dict[str, Callable[[], Entry]] = {
            "config": self._parse_config,
            "menuconfig": self._parse_config,
            "menu": self._parse_menu,
            "choice": self._parse_choice,
            "comment": self._parse_comment,
            "if": self._parse_if,
        }

        if token.kind == TokenKind.KEYWORD:
            if token.text in SOURCE_KEYWORDS:
                return self._parse_source()
            if token.text in parsers:
                return [parsers[token.text]()]
            if token.text in TYPE_KEYWORDS or token.text in DEF_KEYWORDS or token.text in PROPERTY_OF_KEYWORD:
                raise ParseError(f"property {token} outside of an entry", token.location)

        raise ParseError(f"unexpected {token}, expected an entry (config, menu, choice, ...)", token.location)

    def _parse_mainmenu(self) -> None:
        keyword = self._next()
        if not self._mainmenu_allowed or len(self.file_stack) > 1:
            raise ParseError(
                "'mainmenu' is only allowed as the first statement of the root Kconfig file", keyword.location
            )
        self._mainmenu = self._expect(TokenKind.STRING, "expected a quoted title after 'mainmenu'").text
        self._expect_newline()
        self._mainmenu_allowed = False

    def _parse_config(self) -> Config:
        keyword = self._next()
        name = self._expect(TokenKind.IDENT, f"expected a symbol name after '{keyword.text}'")
        self._expect_newline()

        config_class = MenuConfig if keyword.text == "menuconfig" else Config
        config = config_class(name=name.text, location=keyword.location)
        self._parse_properties(config, CONFIG_PROPERTIES)

        if config.ranges and config.symbol_type not in (None, SymbolType.INT, SymbolType.HEX):
            raise ParseError(
                f"'range' is only valid for int and hex symbols, {config.name} is {config.symbol_type}",
                config.location,
            )
        if (config.selects or config.implies) and not (config.symbol_type is None or config.symbol_type.is_logical):
            raise ParseError(
                f"'select' and 'imply' are only valid for bool and tristate symbols, {config.name} is "
                f"{config.symbol_type}",
                config.location,
            )
        return config

    def _parse_menu(self) -> Menu:
        keyword = self._next()
        title = self._expect(TokenKind.STRING, "expected a quoted title after 'menu'")
        self._expect_newline()

        menu = Menu(title=title.text, location=keyword.location)
        self._parse_properties(menu, MENU_PROPERTIES)
        menu.entries = self._parse_entries(("menu", keyword.location))
        return menu

    def _parse_choice(self) -> Choice:
        keyword = self._next()
        tokens = self._rest_of_line()
        if len(tokens) > 1 or (tokens and tokens[0].kind != TokenKind.IDENT):
            raise ParseError("expected an optional choice name after 'choice'", keyword.location)

        choice = Choice(name=tokens[0].text if tokens else None, location=keyword.location)
        self._parse_properties(choice, CHOICE_PROPERTIES)
        choice.entries = self._parse_entries(("choice", keyword.location))
        self._check_choice_members(choice, choice.entries)
        return choice

    def _check_choice_members(self, choice: Choice, entries: List[Entry]) -> None:
        for entry in entries:
            if isinstance(entry, Menu) and entry.is_if_block:
                self._check_choice_members(choice, entry.entries)
            elif isinstance(entry, (Menu, Choice)):
                kind = "menu" if isinstance(entry, Menu) else "choice"
                raise ParseError(f"a {kind} cannot be nested in a choice", entry.location)

    def _parse_comment(self) -> Comment:
        keyword = self._next()
        text = self._expect(TokenKind.STRING, "expected a quoted text after 'comment'")
        self._expect_newline()

        comment = Comment(text=text.text, location=keyword.location)
        self._parse_properties(comment, COMMENT_PROPERTIES)
        return comment

    def _parse_if(self) -> Menu:
        keyword = self._next()
        condition = self._expression(self._rest_of_line(), keyword.location)
        block = Menu(title=None, depends_on=[condition], location=keyword.location)
        block.entries = self._parse_entries(("if", keyword.location))
        return block

    ###########################
    # Properties
    ###########################

    def _parse_properties(self, entry: PropertyOwner, allowed: Tuple[str, ...]) -> None:
        """
        Parses the properties following an entry header, until the first token which is not a property keyword.
        """
        while True:
            token = self._peek()
            if token.kind == TokenKind.NEWLINE:
                self._next()
                continue

            if token.kind == TokenKind.HELP:
                prop = "help"
            elif token.kind == TokenKind.KEYWORD and (token.text in TYPE_KEYWORDS or token.text in DEF_KEYWORDS):
                prop = "type"
            elif token.kind == TokenKind.KEYWORD and token.text in PROPERTY_OF_KEYWORD:
                prop = PROPERTY_OF_KEYWORD[token.text]
            else:
                return

            if prop not in allowed:
                raise ParseError(f"{token} is not a valid property of {_describe(entry)}", token.location)
            getattr(self, f"_property_{prop}")(entry)

    def _set_prompt(self, entry: PropertyOwner, prompt: Prompt, location: Location) -> None:
        if entry.prompt is not None:
            self._warn(f"{_describe(entry)} defined with multiple prompts in a single location", location)
        entry.prompt = prompt

    def _property_type(self, entry: Union[Config, Choice]) -> None:
        keyword = self._next()
        symbol_type = TYPE_KEYWORDS.get(keyword.text) or DEF_KEYWORDS[keyword.text]
        if entry.symbol_type is not None and entry.symbol_type != symbol_type:
            raise SymbolTypeConflictError(
                getattr(entry, "name", None) or "<choice>", str(entry.symbol_type), str(symbol_type), keyword.location
            )
        if isinstance(entry, Choice) and not symbol_type.is_logical:
            raise ParseError(f"choices can only be bool or tristate, not {symbol_type}", keyword.location)
        entry.symbol_type = symbol_type

        tokens = self._rest_of_line()
        if keyword.text in DEF_KEYWORDS:
            value_tokens, condition = self._split_condition(tokens, keyword.location)
            entry.defaults.append(Default(self._expression(value_tokens, keyword.location), condition))
        elif tokens:
            # Inline prompt: bool "Enable FOO" [if EXPR]
            if tokens[0].kind != TokenKind.STRING:
                raise ParseError(
                    f"expected a quoted prompt after '{keyword.text}', got {tokens[0]}", keyword.location
                )
            prompt_tokens, condition = self._split_condition(tokens, keyword.location)
            if len(prompt_tokens) > 1:
                raise ParseError(f"unexpected {prompt_tokens[1]} after the prompt", keyword.location)
            self._set_prompt(entry, Prompt(tokens[0].text, condition), keyword.location)

    def _property_prompt(self, entry: PropertyOwner) -> None:
        keyword = self._next()
        tokens = self._rest_of_line()
        prompt_tokens, condition = self._split_condition(tokens, keyword.location)
        if len(prompt_tokens) != 1 or prompt_tokens[0].kind != TokenKind.STRING:
            raise ParseError("'prompt' must be followed by exactly one quoted string", keyword.location)
        self._set_prompt(entry, Prompt(prompt_tokens[0].text, condition), keyword.location)

    def _property_default(self, entry: Union[Config, Choice]) -> None:
        keyword = self._next()
        value_tokens, condition = self._split_condition(self._rest_of_line(), keyword.location)
        if isinstance(entry, Choice) and (len(value_tokens) != 1 or value_tokens[0].kind != TokenKind.IDENT):
            raise ParseError("the default of a choice must be the name of one of its members", keyword.location)
        entry.defaults.append(Default(self._expression(value_tokens, keyword.location), condition))

    def _property_depends(self, entry: PropertyOwner) -> None:
        keyword = self._next()
        tokens = self._rest_of_line()
        if not tokens or not tokens[0].is_keyword("on"):
            raise ParseError("'depends' must be followed by 'on'", keyword.location)
        entry.depends_on.append(self._expression(tokens[1:], keyword.location))

    def _property_visible(self, entry: Menu) -> None:
        keyword = self._next()
        tokens = self._rest_of_line()
        if not tokens or not tokens[0].is_keyword("if"):
            raise ParseError("'visible' must be followed by 'if'", keyword.location)
        entry.visible_if.append(self._expression(tokens[1:], keyword.location))

    def _property_select(self, entry: Config) -> None:
        keyword = self._next()
        target_tokens, condition = self._split_condition(self._rest_of_line(), keyword.location)
        if len(target_tokens) != 1 or target_tokens[0].kind != TokenKind.IDENT:
            raise ParseError(f"'{keyword.text}' must be followed by a single symbol name", keyword.location)
        clauses = entry.selects if keyword.text == "select" else entry.implies
        clauses.append(Select(target_tokens[0].text, condition))

    _property_imply = _property_select

    def _property_range(self, entry: Config) -> None:
        keyword = self._next()
        bound_tokens, condition = self._split_condition(self._rest_of_line(), keyword.location)
        if len(bound_tokens) != 2 or any(t.kind not in (TokenKind.IDENT, TokenKind.NUMBER) for t in bound_tokens):
            raise ParseError("'range' must be followed by two numbers or symbols", keyword.location)
        low = self._expression(bound_tokens[:1], keyword.location)
        high = self._expression(bound_tokens[1:], keyword.location)
        entry.ranges.append(Range(low, high, condition))

    def _property_optional(self, entry: Choice) -> None:
        self._next()
        self._expect_newline()
        entry.is_optional = True

    def _property_option(self, entry: Config) -> None:
        keyword = self._next()
        tokens = self._rest_of_line()
        if not tokens or tokens[0].kind != TokenKind.IDENT:
            raise ParseError("'option' must be followed by an option name", keyword.location)

        if len(tokens) == 3 and tokens[1].text == "=" and tokens[2].kind == TokenKind.STRING:
            option = f"{tokens[0].text}={tokens[2].text}"
        elif len(tokens) == 1:
            option = tokens[0].text
        else:
            raise ParseError("malformed 'option', expected 'option NAME' or 'option NAME=\"VALUE\"'", keyword.location)
        entry.options.append(option)

        if tokens[0].text == "env" and len(tokens) == 3:
            # "option env" is a default taken from the environment
            env_var = tokens[2].text
            if env_var not in os.environ:
                self._warn(
                    f"{entry.name} takes its default from environment variable {env_var}, which is not set",
                    keyword.location,
                )
            entry.defaults.append(Default(Const(os.environ.get(env_var, ""))))

    def _property_help(self, entry: Union[Config, Choice]) -> None:
        token = self._next()
        if entry.help is not None:
            self._warn(f"{_describe(entry)} has multiple help texts, the last one is used", token.location)
        entry.help = token.text


PROPERTY_OF_KEYWORD = {
    "prompt": "prompt",
    "default": "default",
    "depends": "depends",
    "select": "select",
    "imply": "imply",
    "range": "range",
    "visible": "visible",
    "optional": "optional",
    "option": "option",
}


def _opening(end_keyword: str) -> str:
    return next(kind for kind, end in BLOCK_END.items() if end == end_keyword)


def _describe(entry: PropertyOwner) -> str:
    if isinstance(entry, Config):
        return f"{entry.keyword} {entry.name}"
    if isinstance(entry, Choice):
        return f"choice {entry.name}" if entry.name else "choice"
    if isinstance(entry, Menu):
        return "if block" if entry.is_if_block else f'menu "{entry.title}"'
    return f'comment "{entry.text}"'


def parse(root_path: str, source_tree_root: Optional[str] = None, warn_to_stderr: bool = True) -> KconfigAST:
    """
    Parses the Kconfig file 'root_path' and every file it sources. Raises LexError or ParseError (or one of its
    subclasses) if the tree is malformed.

    source_tree_root (default: $srctree, or the current directory if unset):
      Directory which "source" paths are relative to.
    """
    if source_tree_root is None:
        source_tree_root = os.environ.get("srctree", "")
    return Parser(str(source_tree_root), warn_to_stderr).parse(str(root_path))
