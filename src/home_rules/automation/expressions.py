"""
Text condition expressions.

Compiles strings such as::

    battery < 20 AND reachable = true
    temperature > 80 OR (humidity >= 70 AND fan = false)

into a ConditionGroup of SensorThresholdConditions for one device. An
expression is compiled once when the automation is saved; evaluation then
uses the structured tree like any other automation.

OR binds looser than AND. Input length, parenthesis depth and the operand
character set are all bounded.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from home_rules.core.config import EngineConfig

from .models import Comparator, ConditionGroup, LogicOperator, SensorThresholdCondition

logger = logging.getLogger(__name__)

_OPERATORS = {
    ">=": Comparator.GREATER_OR_EQUAL,
    "<=": Comparator.LESS_OR_EQUAL,
    "!=": Comparator.NOT_EQUALS,
    ">": Comparator.GREATER_THAN,
    "<": Comparator.LESS_THAN,
    "=": Comparator.EQUALS,
}

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<op>>=|<=|!=|>|<|=)|(?P<paren>[()])|(?P<word>[A-Za-z0-9_.\-]+))"
)

Node = Union[SensorThresholdCondition, ConditionGroup]


class ExpressionError(ValueError):
    """Raised when a condition expression cannot be compiled."""


@dataclass(frozen=True)
class _Token:
    kind: str  # "op", "paren", "word", "and", "or"
    text: str
    position: int


def tokenize(text: str) -> List[_Token]:
    """Split an expression into tokens, rejecting unexpected characters."""
    tokens: List[_Token] = []
    position = 0
    while position < len(text):
        if text[position:].strip() == "":
            break
        match = _TOKEN_RE.match(text, position)
        if not match or match.end() == position:
            bad = text[position:].lstrip()[:1]
            raise ExpressionError(f"Invalid character {bad!r} at position {position}")

        kind = match.lastgroup or ""
        value = match.group(kind)
        if kind == "word" and value in ("AND", "OR"):
            kind = value.lower()
        tokens.append(_Token(kind=kind, text=value, position=match.start(match.lastgroup)))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[_Token], device_id: str, max_depth: int) -> None:
        self._tokens = tokens
        self._index = 0
        self._device_id = device_id
        self._max_depth = max_depth

    def parse(self) -> ConditionGroup:
        if not self._tokens:
            raise ExpressionError("Empty expression")
        node = self._parse_or(depth=0)
        if self._peek() is not None:
            token = self._peek()
            raise ExpressionError(f"Unexpected {token.text!r} at position {token.position}")
        if isinstance(node, ConditionGroup):
            return node
        return ConditionGroup(LogicOperator.AND, (node,))

    def _parse_or(self, depth: int) -> Node:
        nodes = [self._parse_and(depth)]
        while self._accept("or"):
            nodes.append(self._parse_and(depth))
        return _combine(LogicOperator.OR, nodes)

    def _parse_and(self, depth: int) -> Node:
        nodes = [self._parse_term(depth)]
        while self._accept("and"):
            nodes.append(self._parse_term(depth))
        return _combine(LogicOperator.AND, nodes)

    def _parse_term(self, depth: int) -> Node:
        token = self._peek()
        if token is not None and token.kind == "paren" and token.text == "(":
            if depth + 1 > self._max_depth:
                raise ExpressionError(f"Expression nesting exceeds {self._max_depth} levels")
            self._index += 1
            node = self._parse_or(depth + 1)
            closing = self._next("paren")
            if closing.text != ")":
                raise ExpressionError(f"Expected ')' at position {closing.position}")
            return node
        return self._parse_comparison()

    def _parse_comparison(self) -> SensorThresholdCondition:
        prop = self._next("word")
        op = self._next("op")
        value = self._next("word")
        return SensorThresholdCondition(
            device_id=self._device_id,
            characteristic=prop.text.lower(),
            comparator=_OPERATORS[op.text],
            value=coerce_value(value.text),
        )

    def _peek(self) -> Optional[_Token]:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _accept(self, kind: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == kind:
            self._index += 1
            return True
        return False

    def _next(self, kind: str) -> _Token:
        token = self._peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression, expected {kind}")
        if token.kind != kind:
            raise ExpressionError(
                f"Expected {kind} at position {token.position}, got {token.text!r}"
            )
        self._index += 1
        return token


def _combine(logic: LogicOperator, nodes: List[Node]) -> Node:
    if len(nodes) == 1:
        return nodes[0]
    return ConditionGroup(
        logic,
        conditions=tuple(n for n in nodes if isinstance(n, SensorThresholdCondition)),
        groups=tuple(n for n in nodes if isinstance(n, ConditionGroup)),
    )


def coerce_value(text: str) -> Union[bool, int, float, str]:
    """Interpret an operand: booleans, then ints, then floats, else text."""
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def parse_expression(
    text: str,
    device_id: str,
    config: Optional[EngineConfig] = None,
) -> ConditionGroup:
    """
    Compile an expression into a condition tree.

    Args:
        text: Expression text
        device_id: Device whose characteristics the expression reads
        config: Engine limits (defaults if omitted)

    Returns:
        Equivalent ConditionGroup

    Raises:
        ExpressionError: If the text is too long, too deeply nested, or
            not a valid expression
    """
    config = config or EngineConfig()
    if len(text) > config.expression_max_length:
        raise ExpressionError(
            f"Expression is {len(text)} characters; limit is {config.expression_max_length}"
        )
    tokens = tokenize(text)
    return _Parser(tokens, device_id, config.expression_max_depth).parse()


def compile_expression(
    text: str,
    device_id: str,
    config: Optional[EngineConfig] = None,
) -> ConditionGroup:
    """
    Compile an expression, failing closed.

    Invalid expressions are logged and compile to an empty OR group, which
    never holds.
    """
    try:
        return parse_expression(text, device_id, config)
    except ExpressionError as e:
        logger.warning(f"Rejected condition expression for {device_id}: {e}")
        return ConditionGroup(LogicOperator.OR, ())
