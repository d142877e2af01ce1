"""
Formula evaluator.

Applies an operator-prefixed arithmetic formula to a base price:

    apply_formula(100, "*1.2+3")  ->  100*1.2+3  ->  123.0

A formula starting with a digit gets an implicit leading "*", so "1.2" is the
same as "*1.2". Everything outside digits, "+ - * / ( ) ." is stripped before
parsing. The expression is evaluated by a small recursive-descent parser; no
Python code is ever evaluated.
"""

import logging
import math
import re
from decimal import Decimal
from typing import List, Union

from silvercharter.exceptions import FORMULA_PARSE_WARNING

logger = logging.getLogger(__name__)

_DISALLOWED_CHARS = re.compile(r"[^0-9+\-*/().]")
_TOKEN_PATTERN = re.compile(r"\d+\.?\d*|\.\d+|[+\-*/()]")
# "++" and "--" are increment/decrement operators, not two signs
_DOUBLE_SIGN = re.compile(r"\+\+|--")

Token = Union[Decimal, str]


class FormulaSyntaxError(ValueError):
    """Raised internally when a sanitized formula cannot be parsed."""


def sanitize_formula(formula: str) -> str:
    """
    Normalize a formula string to its operator-prefixed form.

    Args:
        formula: Raw formula as entered by the operator.

    Returns:
        str: Formula with an implicit "*" added and unsafe characters removed.
    """
    text = formula.strip()
    if text and text[0] in "0123456789":
        text = f"*{text}"
    return _DISALLOWED_CHARS.sub("", text)


def _tokenize(expression: str) -> List[Token]:
    if _DOUBLE_SIGN.search(expression):
        raise FormulaSyntaxError(f"Invalid operator sequence in {expression!r}")

    tokens: List[Token] = []
    position = 0
    while position < len(expression):
        match = _TOKEN_PATTERN.match(expression, position)
        if match is None:
            raise FormulaSyntaxError(f"Unexpected character at {position} in {expression!r}")
        text = match.group()
        tokens.append(text if text in "+-*/()" else Decimal(text))
        position = match.end()
    return tokens


class _Parser:
    """
    Recursive-descent parser for the grammar:

        expr   := term (("+" | "-") term)*
        term   := unary (("*" | "/") unary)*
        unary  := ("+" | "-") unary | primary
        primary := NUMBER | "(" expr ")"
    """

    def __init__(self, tokens: List[Token]) -> None:
        self.tokens = tokens
        self.position = 0

    def _peek(self) -> Token | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise FormulaSyntaxError("Unexpected end of formula")
        self.position += 1
        return token

    def parse(self) -> Decimal:
        value = self._expr()
        if self._peek() is not None:
            raise FormulaSyntaxError(f"Unexpected token {self._peek()!r}")
        return value

    def _expr(self) -> Decimal:
        value = self._term()
        while self._peek() in ("+", "-"):
            operator = self._next()
            right = self._term()
            value = value + right if operator == "+" else value - right
        return value

    def _term(self) -> Decimal:
        value = self._unary()
        while self._peek() in ("*", "/"):
            operator = self._next()
            right = self._unary()
            value = value * right if operator == "*" else value / right
        return value

    def _unary(self) -> Decimal:
        if self._peek() in ("+", "-"):
            operator = self._next()
            value = self._unary()
            return -value if operator == "-" else value
        return self._primary()

    def _primary(self) -> Decimal:
        token = self._next()
        if isinstance(token, Decimal):
            return token
        if token == "(":
            value = self._expr()
            if self._next() != ")":
                raise FormulaSyntaxError("Missing closing parenthesis")
            return value
        raise FormulaSyntaxError(f"Unexpected token {token!r}")


def evaluate_expression(base: Decimal, expression: str) -> Decimal:
    """
    Evaluate ``base`` followed by a sanitized operator expression.

    Raises:
        FormulaSyntaxError: If the expression is malformed.
        ArithmeticError: On division by zero or invalid decimal operations.
    """
    tokens: List[Token] = [base, *_tokenize(expression)]
    return _Parser(tokens).parse()


def apply_formula(base: float, formula: str) -> float:
    """
    Apply a pricing formula relative to ``base``.

    Formulas are user input and never abort a pricing run: anything that
    cannot be evaluated logs a warning and returns ``base`` unchanged.

    Args:
        base: Base amount (any finite number).
        formula: Formula such as "*1.2", "+3", "/2" or "1.2".

    Returns:
        float: Formula result, or ``base`` if the formula is unusable.
    """
    if not isinstance(formula, str):
        logger.warning(
            f"Invalid formula {formula!r}, expected a string",
            extra={"event": FORMULA_PARSE_WARNING},
        )
        return base

    safe = sanitize_formula(formula)
    if not safe or safe[0] not in "+-*/":
        logger.warning(
            f'Invalid formula format "{formula}", expected to start with + - * or /',
            extra={"event": FORMULA_PARSE_WARNING},
        )
        return base

    try:
        result = evaluate_expression(Decimal(str(base)), safe)
    except (FormulaSyntaxError, ArithmeticError, RecursionError) as e:
        logger.warning(
            f'Error applying pricing formula "{formula}": {e}',
            extra={"event": FORMULA_PARSE_WARNING},
        )
        return base

    value = float(result)
    if not math.isfinite(value):
        logger.warning(
            f'Pricing formula "{formula}" produced a non-finite result',
            extra={"event": FORMULA_PARSE_WARNING},
        )
        return base

    return value
