"""Logic expressions over positional condition references.

A rule combines its conditions with a small boolean language::

    1 AND (2 OR 3) AND NOT 4

Tokens are positive integers (1-based index into the rule's condition
list), ``AND``, ``OR``, ``NOT`` and parentheses. Keywords are
case-insensitive. Precedence from highest to lowest: parentheses, ``NOT``,
``AND``, ``OR``. A run of the same joiner parses into a single n-ary node.

Usage:
```python
from formrules.lib.expressions import evaluate, validate

check = validate("1 OR (2 AND 3)", condition_count=3)
if check.valid:
    evaluate("1 OR (2 AND 3)", [False, True, True])  # True
```
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple, Union

from formrules.lib.errors import InvalidExpressionError

logger = logging.getLogger(__name__)

__all__ = [
    "And",
    "ExpressionValidation",
    "Not",
    "Or",
    "Ref",
    "effective_expression",
    "evaluate",
    "extract_condition_ids",
    "generate_default_expression",
    "parse",
    "validate",
]

JOINERS = ("AND", "OR")
KEYWORDS = ("AND", "OR", "NOT")

_TOKEN_PATTERN = re.compile(r"\s*(?:(\()|(\))|([^\s()]+))")


@dataclass(frozen=True)
class Ref:
    """Reference to the n-th condition (1-based)."""

    index: int


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class And:
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    operands: Tuple["Node", ...]


Node = Union[Ref, Not, And, Or]


@dataclass(frozen=True)
class ExpressionValidation:
    """Outcome of validate(): ``error`` is a human-readable reason when invalid."""

    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class _Token:
    text: str
    position: int

    @property
    def is_operand(self) -> bool:
        return self.text not in KEYWORDS and self.text not in ("(", ")")


def _tokenize(expression: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    stripped_end = len(expression.rstrip())
    while pos < stripped_end:
        match = _TOKEN_PATTERN.match(expression, pos)
        # The pattern matches any non-space run, so match is never None here
        text = match.group(1) or match.group(2) or match.group(3)
        tokens.append(_Token(text.upper(), match.start(match.lastindex)))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser producing an immutable expression tree."""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> Optional[_Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _advance(self) -> _Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _fail(self, message: str, token: Optional[_Token] = None) -> InvalidExpressionError:
        position = token.position if token else len(self.expression)
        return InvalidExpressionError(message, expression=self.expression, position=position)

    def parse(self) -> Node:
        if not self.tokens:
            raise self._fail("Expression is required")
        try:
            node = self._parse_or()
        except RecursionError:
            raise self._fail("Expression is too deeply nested") from None
        token = self._peek()
        if token is not None:
            if token.text == ")":
                raise self._fail("Unbalanced parentheses", token)
            if token.is_operand:
                raise self._fail("Missing operator between conditions", token)
            raise self._fail(f"Unexpected token '{token.text}'", token)
        return node

    def _accept(self, keyword: str) -> bool:
        token = self._peek()
        if token is not None and token.text == keyword:
            self._advance()
            return True
        return False

    def _parse_or(self) -> Node:
        operands = [self._parse_and()]
        while self._accept("OR"):
            operands.append(self._parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def _parse_and(self) -> Node:
        operands = [self._parse_not()]
        while self._accept("AND"):
            operands.append(self._parse_not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def _parse_not(self) -> Node:
        negations = 0
        while self._accept("NOT"):
            negations += 1
        node = self._parse_primary()
        for _ in range(negations):
            node = Not(node)
        return node

    def _parse_primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._fail("Expression cannot end with an operator")

        if token.text == "(":
            self._advance()
            node = self._parse_or()
            closing = self._peek()
            if closing is None or closing.text != ")":
                raise self._fail("Unbalanced parentheses", closing)
            self._advance()
            return node

        if token.text == ")":
            raise self._fail("Unbalanced parentheses" if self.pos == 0 else "Empty or incomplete group", token)

        if token.text in JOINERS:
            raise self._fail(f"Operator '{token.text}' is missing a left operand", token)

        if not token.text.isdecimal():
            raise self._fail(f"Invalid token '{token.text}'", token)

        self._advance()
        return Ref(int(token.text))


@lru_cache(maxsize=512)
def parse(expression: str) -> Node:
    """Parse an expression into a tree.

    Raises:
        InvalidExpressionError: If the expression is malformed
    """
    return _Parser(expression).parse()


def _children(node: Node) -> Tuple[Node, ...]:
    if isinstance(node, Ref):
        return ()
    if isinstance(node, Not):
        return (node.operand,)
    return node.operands


def _references(node: Node) -> List[int]:
    refs = []
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Ref):
            refs.append(current.index)
        else:
            stack.extend(reversed(_children(current)))
    return refs


def _check_range(expression: str, node: Node, condition_count: int) -> None:
    invalid = sorted({i for i in _references(node) if i < 1 or i > condition_count})
    if invalid:
        refs = ", ".join(str(i) for i in invalid)
        valid_range = f"1-{condition_count}" if condition_count > 0 else "none"
        raise InvalidExpressionError(
            f"Invalid condition reference(s): {refs}. Valid: {valid_range}",
            expression=expression,
        )


def validate(expression: str, condition_count: int) -> ExpressionValidation:
    """Check syntax and that every reference is within ``[1, condition_count]``.

    Args:
        expression: Logic expression as authored
        condition_count: Number of conditions on the rule

    Returns:
        ExpressionValidation with a human-readable error on failure
    """
    try:
        node = parse(expression)
        _check_range(expression, node, condition_count)
    except InvalidExpressionError as e:
        logger.debug(f"Rejected expression '{expression}': {e.reason}")
        return ExpressionValidation(valid=False, error=e.reason)
    return ExpressionValidation(valid=True)


def extract_condition_ids(expression: str) -> List[int]:
    """Condition indices referenced by an expression, in order of appearance.

    Malformed expressions yield the integer operands that could be tokenized.
    """
    return [int(t.text) for t in _tokenize(expression) if t.text.isdecimal()]


def _evaluate_node(root: Node, results: Sequence[bool]) -> bool:
    # Post-order walk: operands are reduced once all their children are on the value stack
    stack = [(root, False)]
    values: List[bool] = []
    while stack:
        node, expanded = stack.pop()
        if isinstance(node, Ref):
            values.append(bool(results[node.index - 1]))
        elif not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(_children(node)))
        elif isinstance(node, Not):
            values.append(not values.pop())
        else:
            count = len(node.operands)
            operands = values[-count:]
            del values[-count:]
            values.append(all(operands) if isinstance(node, And) else any(operands))
    return values[0]


def evaluate(expression: str, condition_results: Sequence[bool]) -> bool:
    """Evaluate an expression against per-condition results.

    A blank expression over a single condition is treated as ``"1"``.

    Raises:
        InvalidExpressionError: If the expression is malformed or references
            a condition index that does not exist
    """
    if not expression.strip() and len(condition_results) == 1:
        expression = "1"

    node = parse(expression)
    _check_range(expression, node, len(condition_results))
    return _evaluate_node(node, condition_results)


def generate_default_expression(condition_count: int, joiner: str = "AND") -> str:
    """Build ``"1 <joiner> 2 <joiner> ... <joiner> n"``.

    Used when a rule gains or loses a condition so the expression stays valid
    for the current condition count.

    Raises:
        ValueError: If ``joiner`` is not AND or OR
    """
    joiner = joiner.upper()
    if joiner not in JOINERS:
        raise ValueError(f"joiner must be one of: {list(JOINERS)}")
    return f" {joiner} ".join(str(i) for i in range(1, condition_count + 1))


def effective_expression(expression: Optional[str], condition_count: int, joiner: str = "AND") -> str:
    """The expression a rule actually evaluates: its own, or the default join."""
    if expression and expression.strip():
        return expression
    return generate_default_expression(condition_count, joiner)
