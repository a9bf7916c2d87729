# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
pyparsing grammar of Kconfig expressions.

The statement structure of Kconfig is handled by the recursive descent parser in kconfig_parser.py, which hands the
source text of every expression to parse_expression(). Parse actions build the Expression trees from expr.py.

Operator precedence, from the tightest:

    A = B, A != B, A < B, ...   (relations between two operands)
    !A
    A && B
    A || B

Relations take plain operands only (symbol, n/m/y, quoted string or number), so "!A = B" means "!(A = B)".
Binary operators are left-associative, parentheses may be used anywhere.
"""
from typing import Optional
from typing import Tuple

from pyparsing import Literal as PPLiteral
from pyparsing import ParseBaseException
from pyparsing import ParserElement
from pyparsing import QuotedString
from pyparsing import Regex
from pyparsing import infix_notation
from pyparsing import one_of
from pyparsing import opAssoc

from kbuildlib.errors import ParseError
from kbuildlib.expr import And
from kbuildlib.expr import Const
from kbuildlib.expr import Equals
from kbuildlib.expr import Expression
from kbuildlib.expr import Literal
from kbuildlib.expr import Not
from kbuildlib.expr import NotEquals
from kbuildlib.expr import Or
from kbuildlib.expr import Ordering
from kbuildlib.expr import Symbol
from kbuildlib.values import STR_TO_TRISTATE

# Sub-expressions like "A && B" are shared by many properties in large trees
ParserElement.enable_packrat(cache_size_limit=None)


def _string_action(tokens) -> Expression:
    # "y", "n" and "m" in quotes are the same as the unquoted constants
    text = tokens[0]
    if text in STR_TO_TRISTATE:
        return Literal(STR_TO_TRISTATE[text])
    return Const(text)


def _relation_action(tokens) -> Expression:
    left, op, right = tokens
    if op == "=":
        return Equals(left, right)
    if op == "!=":
        return NotEquals(left, right)
    return Ordering(op, left, right)


def _not_action(tokens) -> Expression:
    # tokens[0] is ["!", operand]
    return Not(tokens[0][-1])


def _binary_action(cls):
    def action(tokens) -> Expression:
        # tokens[0] is [operand, op, operand, op, operand, ...]
        items = tokens[0]
        result = items[0]
        for operand in items[2::2]:
            result = cls(result, operand)
        return result

    return action


quoted_string = (QuotedString('"', esc_char="\\") | QuotedString("'", esc_char="\\")).set_parse_action(_string_action)
number = Regex(r"-?(?:0[xX][0-9a-fA-F]+|\d+)(?![A-Za-z0-9_])").set_parse_action(lambda t: Const(t[0]))
tristate = Regex(r"[ymn](?![A-Za-z0-9_])").set_parse_action(lambda t: Literal(STR_TO_TRISTATE[t[0]]))
symbol = Regex(r"[A-Za-z0-9_]+").set_parse_action(lambda t: Symbol(t[0]))

operand = quoted_string | number | tristate | symbol
relation = (operand + one_of("= != < <= > >=") + operand).set_parse_action(_relation_action)

operator_with_precedence = [
    (PPLiteral("!"), 1, opAssoc.RIGHT, _not_action),
    (PPLiteral("&&"), 2, opAssoc.LEFT, _binary_action(And)),
    (PPLiteral("||"), 2, opAssoc.LEFT, _binary_action(Or)),
]

# Expression has operators above and relations/operands as atoms
expression = infix_notation(relation | operand, operator_with_precedence)


def parse_expression(text: str, location: Optional[Tuple[str, int]] = None) -> Expression:
    """
    Parses the expression 'text'. Raises ParseError (reported at 'location') if it is malformed.
    """
    if not text.strip():
        raise ParseError("expected an expression", location)
    try:
        return expression.parse_string(text, parse_all=True)[0]
    except ParseBaseException as e:
        raise ParseError(f"malformed expression '{text.strip()}': {e.msg} (col {e.col})", location)
