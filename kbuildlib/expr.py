# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Expression model used by "depends on", "if", "default", "select ... if", "range ... if" and "visible if".

Expressions are immutable trees built by the grammar in kconfig_grammar.py. They refer to symbols by name only;
the values are looked up lazily through an evaluation context (see kbuildlib.core._Evaluation), which is what
allows forward references to symbols defined later in the tree, or not at all.

The context passed to expr_value()/expr_string_value() must provide:

    tristate_value(name) -> Tristate
    string_value(name) -> str
    symbol_type(name) -> Optional[SymbolType]   (None for undefined symbols)
"""
import re
from dataclasses import dataclass
from typing import Optional
from typing import Set
from typing import Tuple

from kbuildlib.values import SymbolType
from kbuildlib.values import Tristate


class Expression:
    """
    Base class of the expression variants below.
    """

    def __str__(self) -> str:
        return expr_str(self)


@dataclass(frozen=True)
class And(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Or(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Not(Expression):
    operand: Expression


@dataclass(frozen=True)
class Symbol(Expression):
    name: str


@dataclass(frozen=True)
class Literal(Expression):
    """
    One of the tristate constants n, m, y.
    """

    value: Tristate


@dataclass(frozen=True)
class Const(Expression):
    """
    Quoted string or number. It has no value in a logical context (n), it is only meaningful as a default value or
    as an operand of a comparison.
    """

    text: str


@dataclass(frozen=True)
class Equals(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class NotEquals(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Ordering(Expression):
    """
    <, <=, > or >= comparison.
    """

    op: str
    left: Expression
    right: Expression


YES = Literal(Tristate.YES)
NO = Literal(Tristate.NO)

_RELATIONS = {
    "<": lambda comp: comp < 0,
    "<=": lambda comp: comp <= 0,
    ">": lambda comp: comp > 0,
    ">=": lambda comp: comp >= 0,
}


def make_and(left: Optional[Expression], right: Optional[Expression]) -> Optional[Expression]:
    """
    ANDs two expressions, treating None as "no condition" (y).
    """
    if left is None or left == YES:
        return right
    if right is None or right == YES:
        return left
    return And(left, right)


def make_or(left: Optional[Expression], right: Optional[Expression]) -> Optional[Expression]:
    if left is None or right is None:
        return None
    if left == NO:
        return right
    if right == NO:
        return left
    return Or(left, right)


def expr_value(expr: Optional[Expression], ctx) -> Tristate:
    """
    Evaluates 'expr' in the tristate logic. A missing expression (None) is y.
    """
    if expr is None:
        return Tristate.YES

    if isinstance(expr, And):
        left = expr_value(expr.left, ctx)
        # Short-circuit the n case, the right side may depend on what the left side guards
        return Tristate.NO if left == Tristate.NO else left & expr_value(expr.right, ctx)

    if isinstance(expr, Or):
        left = expr_value(expr.left, ctx)
        return Tristate.YES if left == Tristate.YES else left | expr_value(expr.right, ctx)

    if isinstance(expr, Not):
        return ~expr_value(expr.operand, ctx)

    if isinstance(expr, Symbol):
        return ctx.tristate_value(expr.name)

    if isinstance(expr, Literal):
        return expr.value

    if isinstance(expr, Const):
        return Tristate.NO

    # Relation
    comp = _compare(expr.left, expr.right, ctx)
    if isinstance(expr, Equals):
        result = comp == 0
    elif isinstance(expr, NotEquals):
        result = comp != 0
    else:
        result = _RELATIONS[expr.op](comp)
    return Tristate.YES if result else Tristate.NO


def expr_string_value(expr: Expression, ctx) -> str:
    """
    Value of 'expr' used as a default of a string/int/hex symbol or as an operand of a comparison.
    """
    if isinstance(expr, Symbol):
        return ctx.string_value(expr.name)
    if isinstance(expr, Const):
        return expr.text
    return str(expr_value(expr, ctx))


def _operand(expr: Expression, ctx) -> Tuple[Optional[SymbolType], str]:
    if isinstance(expr, Symbol):
        return ctx.symbol_type(expr.name), ctx.string_value(expr.name)
    if isinstance(expr, Const):
        return None, expr.text
    return SymbolType.TRISTATE, str(expr_value(expr, ctx))


def _to_num(symbol_type: Optional[SymbolType], value: str) -> int:
    # Raises ValueError for operands that are not numbers. n/m/y count as 0/1/2.
    if symbol_type is not None and symbol_type.is_logical:
        return int(Tristate.from_str(value))
    if symbol_type is None:
        return int(value, 0) if _number_re.match(value) else int(value)
    return int(value, symbol_type.base)


_number_re = re.compile(r"-?0[xX]")


def _strcmp(s1: str, s2: str) -> int:
    return (s1 > s2) - (s1 < s2)


def _compare(left: Expression, right: Expression, ctx) -> int:
    left_type, left_value = _operand(left, ctx)
    right_type, right_value = _operand(right, ctx)

    # Two string symbols are compared lexicographically
    if left_type == SymbolType.STRING and right_type == SymbolType.STRING:
        return _strcmp(left_value, right_value)
    try:
        return _to_num(left_type, left_value) - _to_num(right_type, right_value)
    except ValueError:
        # Fall back on a lexicographic comparison if the operands don't parse as numbers
        return _strcmp(left_value, right_value)


def expr_items(expr: Optional[Expression]) -> Set[str]:
    """
    Returns the names of all symbols referenced in 'expr'.
    """
    res: Set[str] = set()

    def rec(subexpr: Optional[Expression]) -> None:
        if isinstance(subexpr, (And, Or, Equals, NotEquals, Ordering)):
            rec(subexpr.left)
            rec(subexpr.right)
        elif isinstance(subexpr, Not):
            rec(subexpr.operand)
        elif isinstance(subexpr, Symbol):
            res.add(subexpr.name)

    rec(expr)
    return res


def escape(s: str) -> str:
    r"""
    Escapes the string 's' the way it is written in Kconfig files and .config files: " and \ are replaced by \"
    and \\, respectively.
    """
    # \ must be escaped before " to avoid double escaping
    return s.replace("\\", r"\\").replace('"', r"\"")


def unescape(s: str) -> str:
    r"""
    Unescapes the string 's'. \ followed by any character is replaced with just that character.
    """
    return _unescape_sub(r"\1", s)


_unescape_sub = re.compile(r"\\(.)").sub


def expr_str(expr: Optional[Expression]) -> str:
    """
    Returns the string representation of 'expr', as in a Kconfig file.
    """
    if expr is None:
        return "y"

    if isinstance(expr, Symbol):
        return expr.name

    if isinstance(expr, Literal):
        return str(expr.value)

    if isinstance(expr, Const):
        if re.fullmatch(r"-?(0[xX][0-9a-fA-F]+|\d+)", expr.text):
            return expr.text
        return f'"{escape(expr.text)}"'

    if isinstance(expr, And):
        return f"{_parenthesize(expr.left, Or)} && {_parenthesize(expr.right, Or)}"

    if isinstance(expr, Or):
        # This turns A && B || C && D into "(A && B) || (C && D)", which is redundant, but more readable
        return f"{_parenthesize(expr.left, And)} || {_parenthesize(expr.right, And)}"

    if isinstance(expr, Not):
        if isinstance(expr.operand, (Symbol, Literal, Const)):
            return f"!{expr_str(expr.operand)}"
        return f"!({expr_str(expr.operand)})"

    if isinstance(expr, Equals):
        op = "="
    elif isinstance(expr, NotEquals):
        op = "!="
    else:
        op = expr.op
    return f"{expr_str(expr.left)} {op} {expr_str(expr.right)}"


def _parenthesize(expr: Expression, type_) -> str:
    # expr_str() helper. Adds parentheses around expressions of type 'type_'.
    if isinstance(expr, type_):
        return f"({expr_str(expr)})"
    return expr_str(expr)
