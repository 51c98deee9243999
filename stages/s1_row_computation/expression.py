"""Bracket-tag formula evaluation.

A formula such as ``[Quantity] * [Price]`` is resolved in four steps:
tags are replaced by the row's numeric values, the text is reduced to an
arithmetic-only character set, a recursive-descent parser builds an AST, and
the AST is evaluated directly. Failures never propagate; they resolve to the
empty-string "no value" result.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from config import settings
from core.exceptions import FormulaSyntaxError
from core.models import Column, FormulaCheck
from utils.numbers import format_plain, parse_float, round_half_up

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"\[(.*?)\]")
UNSAFE_CHARS = re.compile(r"[^0-9+\-*/().\s]")
TOKEN_PATTERN = re.compile(
    r"(?P<number>\d+\.?\d*|\.\d+)"
    r"|(?P<op>[+\-*/])"
    r"|(?P<lparen>\()"
    r"|(?P<rparen>\))"
    r"|(?P<ws>\s+)"
    r"|(?P<invalid>.)"
)

NO_VALUE = ""

FormulaResult = Union[float, str]


def tokenize(expr: str) -> List[Dict[str, str]]:
    tokens: List[Dict[str, str]] = []
    for match in TOKEN_PATTERN.finditer(expr):
        kind = match.lastgroup
        if kind == "ws":
            continue
        if kind == "invalid":
            raise FormulaSyntaxError(
                f"Unexpected character {match.group()!r}", expression=expr, position=match.start()
            )
        tokens.append({"type": kind or "", "value": match.group(kind)})
    return tokens


class ExpressionParser:
    """Recursive-descent parser for ``+ - * /``, unary signs and parentheses.

    Grammar::

        expression := term (("+" | "-") term)*
        term       := unary (("*" | "/") unary)*
        unary      := ("+" | "-") unary | primary
        primary    := NUMBER | "(" expression ")"
    """

    def __init__(self, tokens: List[Dict[str, str]], source: str = ""):
        self.tokens = tokens
        self.source = source
        self.pos = 0

    def parse(self) -> Dict[str, Any]:
        if not self.tokens:
            return {"type": "empty"}
        node = self._expression()
        if self.pos < len(self.tokens):
            self._fail(f"Unexpected token {self.tokens[self.pos]['value']!r}")
        return node

    def _peek(self) -> Optional[Dict[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _advance(self) -> Dict[str, str]:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _fail(self, message: str):
        raise FormulaSyntaxError(message, expression=self.source, position=self.pos)

    def _match_op(self, *operators: str) -> Optional[str]:
        token = self._peek()
        if token and token["type"] == "op" and token["value"] in operators:
            self.pos += 1
            return token["value"]
        return None

    def _expression(self) -> Dict[str, Any]:
        node = self._term()
        while True:
            op = self._match_op("+", "-")
            if op is None:
                return node
            node = {"type": "binary", "operator": op, "left": node, "right": self._term()}

    def _term(self) -> Dict[str, Any]:
        node = self._unary()
        while True:
            op = self._match_op("*", "/")
            if op is None:
                return node
            node = {"type": "binary", "operator": op, "left": node, "right": self._unary()}

    def _unary(self) -> Dict[str, Any]:
        op = self._match_op("+", "-")
        if op is not None:
            return {"type": "unary", "operator": op, "value": self._unary()}
        return self._primary()

    def _primary(self) -> Dict[str, Any]:
        token = self._peek()
        if token is None:
            self._fail("Unexpected end of expression")
        if token["type"] == "number":
            self._advance()
            return {"type": "number", "value": float(token["value"])}
        if token["type"] == "lparen":
            self._advance()
            node = self._expression()
            closing = self._peek()
            if closing is None or closing["type"] != "rparen":
                self._fail("Missing closing parenthesis")
            self._advance()
            return node
        self._fail(f"Unexpected token {token['value']!r}")


def parse_expression(expr: str) -> Dict[str, Any]:
    """Parse sanitized arithmetic text into an AST"""
    return ExpressionParser(tokenize(expr), expr).parse()


def evaluate_ast(node: Dict[str, Any]) -> float:
    ntype = node.get("type")
    if ntype == "number":
        return node["value"]
    if ntype == "unary":
        value = evaluate_ast(node["value"])
        return -value if node["operator"] == "-" else value
    if ntype == "binary":
        left = evaluate_ast(node["left"])
        right = evaluate_ast(node["right"])
        op = node["operator"]
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                return math.nan
            return left / right
    raise FormulaSyntaxError(f"Cannot evaluate node of type {ntype!r}")


def build_label_map(columns: Iterable[Column]) -> Dict[str, str]:
    """Map column labels to keys; the first column wins on duplicate labels"""
    label_to_key: Dict[str, str] = {}
    for column in columns:
        if column.label and column.label not in label_to_key:
            label_to_key[column.label] = column.key
    return label_to_key


def resolve_label(label: str, label_to_key: Mapping[str, str]) -> Optional[str]:
    """Exact label match first, then case-insensitive"""
    if label in label_to_key:
        return label_to_key[label]
    folded = label.strip().casefold()
    for candidate, key in label_to_key.items():
        if candidate.strip().casefold() == folded:
            return key
    return None


def extract_tags(formula: str) -> List[str]:
    return TAG_PATTERN.findall(formula or "")


def substitute_tags(formula: str, row: Mapping[str, Any], label_to_key: Mapping[str, str]) -> str:
    """Replace every ``[Label]`` with the row's numeric value for that column"""

    def replace(match: re.Match) -> str:
        key = resolve_label(match.group(1), label_to_key)
        value = parse_float(row.get(key)) if key is not None else None
        return format_plain(value if value is not None else 0.0)

    return TAG_PATTERN.sub(replace, formula)


def sanitize(expr: str) -> str:
    """Strip everything that is not a digit, operator, parenthesis, dot or space"""
    return UNSAFE_CHARS.sub("", expr)


def evaluate(formula: str, row: Mapping[str, Any], label_to_key: Mapping[str, str]) -> FormulaResult:
    """
    Evaluate a bracket-tag formula against one row.

    Args:
        formula: Formula text, e.g. "[Qty] * [Rate]"
        row: Current values keyed by column key
        label_to_key: Column label -> column key

    Returns:
        Result rounded to the configured decimals, or "" when the formula is
        empty, malformed or yields a non-finite number
    """
    if not formula:
        return NO_VALUE
    expression = sanitize(substitute_tags(formula, row, label_to_key))
    if not expression.strip():
        return NO_VALUE
    try:
        ast = parse_expression(expression)
        if ast.get("type") == "empty":
            return NO_VALUE
        result = evaluate_ast(ast)
    except (FormulaSyntaxError, ArithmeticError, RecursionError) as e:
        logger.debug(f"Formula {formula!r} did not evaluate: {e}")
        return NO_VALUE
    if not math.isfinite(result):
        return NO_VALUE
    return round_half_up(result, settings.RESULT_DECIMALS)


def check_formula(formula: str, labels: Iterable[str]) -> FormulaCheck:
    """Report referenced labels, unknown labels and whether the formula parses"""
    label_to_key = {label: label for label in labels}
    tags = extract_tags(formula)
    unknown = [tag for tag in tags if resolve_label(tag, label_to_key) is None]

    probe = sanitize(TAG_PATTERN.sub("1", formula or ""))
    valid = bool(probe.strip())
    if valid:
        try:
            parse_expression(probe)
        except (FormulaSyntaxError, RecursionError):
            valid = False

    return FormulaCheck(tags=tags, unknown_labels=unknown, valid=valid)
