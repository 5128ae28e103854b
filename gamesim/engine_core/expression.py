"""
Condition Evaluator - Safe arithmetic/comparison expressions.

Conditions are strings such as "temperature > 800" or
"(power + reactor.output) / 2 >= 40". Evaluation:
1. Substitutes every variable name and every entity.property reference
   with its current literal value (whole-word matching)
2. Rejects the result unless every character is in the whitelist
   [0-9+-*/().<>=!&| ]
3. Tokenizes and evaluates with a small recursive-descent parser

Supported grammar (lowest to highest precedence):
    ||    &&    == !=    < <= > >=    + -    * /    unary - + !    ( )

Nothing here executes host-language code. Anything malformed or
disallowed evaluates to False (or None for numeric evaluation); callers
never see an exception.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, TYPE_CHECKING
import logging
import math
import re

if TYPE_CHECKING:
    from .state import SimulationState

logger = logging.getLogger(__name__)

ALLOWED_EXPRESSION = re.compile(r"^[0-9+\-*/().<>=!&| ]+$")

# Parenthesis and unary operator nesting allowed before parsing gives up
MAX_NESTING = 32

TOKEN_PATTERN = re.compile(
    r"\s*(?:"
    r"(?P<number>\d+(?:\.\d*)?|\.\d+)"
    r"|(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>+\-*/()!])"
    r")"
)


class ExpressionError(Exception):
    """Raised internally for malformed expressions. Never escapes evaluate_condition."""


@dataclass
class ExpressionContext:
    """Named values visible to an expression."""
    variables: Mapping[str, Any] = field(default_factory=dict)
    entities: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: SimulationState) -> ExpressionContext:
        return cls(variables=state.variables, entities=state.entities)


@dataclass(frozen=True)
class Token:
    kind: str  # "number" | "op" | "end"
    text: str
    value: float = 0.0


def _literal(value: Any) -> str:
    """Render a value as it should appear after substitution."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return str(value)  # inf/nan: contains letters, rejected by the whitelist
        if value == int(value) and abs(value) < 1e15:
            return str(int(value))
        text = repr(float(value))
        if "e" in text:
            text = f"{value:.17f}".rstrip("0").rstrip(".")
        return text
    return str(value)


def tokenize(text: str) -> list[Token]:
    """Split a whitelisted expression into tokens."""
    tokens: list[Token] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = TOKEN_PATTERN.match(text, pos)
        if not match or match.end() == pos:
            raise ExpressionError(f"Unexpected character at {pos}: {text[pos:]!r}")
        if match.group("number") is not None:
            number = match.group("number")
            tokens.append(Token("number", number, float(number)))
        else:
            op = match.group("op")
            # Strict and loose equality mean the same thing on numbers
            op = {"===": "==", "!==": "!="}.get(op, op)
            tokens.append(Token("op", op))
        pos = match.end()
    tokens.append(Token("end", ""))
    return tokens


class _Parser:
    """Recursive-descent evaluator over a token list."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _nest(self):
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise ExpressionError(f"Expression nested deeper than {MAX_NESTING} levels")

    def _accept(self, *ops: str) -> str | None:
        token = self.current
        if token.kind == "op" and token.text in ops:
            self.pos += 1
            return token.text
        return None

    def parse(self) -> float | bool:
        if self.current.kind == "end":
            raise ExpressionError("Empty expression")
        value = self._or()
        if self.current.kind != "end":
            raise ExpressionError(f"Unexpected token {self.current.text!r}")
        return value

    def _or(self) -> float | bool:
        value = self._and()
        while self._accept("||"):
            right = self._and()
            value = bool(value) or bool(right)
        return value

    def _and(self) -> float | bool:
        value = self._equality()
        while self._accept("&&"):
            right = self._equality()
            value = bool(value) and bool(right)
        return value

    def _equality(self) -> float | bool:
        value = self._comparison()
        while True:
            op = self._accept("==", "!=")
            if not op:
                return value
            right = self._comparison()
            value = (value == right) if op == "==" else (value != right)

    def _comparison(self) -> float | bool:
        value = self._additive()
        while True:
            op = self._accept("<", "<=", ">", ">=")
            if not op:
                return value
            right = self._additive()
            if op == "<":
                value = value < right
            elif op == "<=":
                value = value <= right
            elif op == ">":
                value = value > right
            else:
                value = value >= right

    def _additive(self) -> float | bool:
        value = self._term()
        while True:
            op = self._accept("+", "-")
            if not op:
                return value
            right = self._term()
            value = float(value) + float(right) if op == "+" else float(value) - float(right)

    def _term(self) -> float | bool:
        value = self._unary()
        while True:
            op = self._accept("*", "/")
            if not op:
                return value
            right = self._unary()
            if op == "*":
                value = float(value) * float(right)
            else:
                if float(right) == 0:
                    raise ExpressionError("Division by zero")
                value = float(value) / float(right)

    def _unary(self) -> float | bool:
        op = self._accept("-", "+", "!")
        if not op:
            return self._primary()
        self._nest()
        value = self._unary()
        self.depth -= 1
        if op == "-":
            return -float(value)
        if op == "+":
            return float(value)
        return not bool(value)

    def _primary(self) -> float | bool:
        token = self.current
        if token.kind == "number":
            self.pos += 1
            return token.value
        if self._accept("("):
            self._nest()
            value = self._or()
            if not self._accept(")"):
                raise ExpressionError("Unmatched parenthesis")
            self.depth -= 1
            return value
        raise ExpressionError(f"Unexpected token {token.text or 'end of input'!r}")


class ExpressionEvaluator:
    """
    Evaluates condition expressions against named values.

    Stateless apart from caching the substitution patterns per name.
    """

    def __init__(self):
        self._patterns: dict[str, re.Pattern[str]] = {}

    def _pattern(self, name: str) -> re.Pattern[str]:
        pattern = self._patterns.get(name)
        if pattern is None:
            pattern = re.compile(rf"(?<![\w.]){re.escape(name)}(?![\w.])")
            self._patterns[name] = pattern
        return pattern

    def substitute(self, expression: str, context: ExpressionContext) -> str:
        """Replace entity.property references, then variable names, with literals."""
        result = expression
        for entity_name, properties in context.entities.items():
            if not isinstance(properties, Mapping):
                continue
            for prop_name, prop_value in properties.items():
                literal = _literal(prop_value)
                result = self._pattern(f"{entity_name}.{prop_name}").sub(lambda _: literal, result)

        for var_name, var_value in context.variables.items():
            literal = _literal(var_value)
            result = self._pattern(var_name).sub(lambda _: literal, result)
        return result

    def evaluate(self, expression: str, context: ExpressionContext) -> float | bool:
        """
        Evaluate an expression.

        Raises:
            ExpressionError: if the expression is empty, contains anything
            outside the whitelist after substitution, or fails to parse
        """
        if not isinstance(expression, str) or not expression.strip():
            raise ExpressionError("Empty expression")

        substituted = self.substitute(expression, context)
        if not ALLOWED_EXPRESSION.match(substituted):
            raise ExpressionError(f"Disallowed content in expression: {expression!r}")

        try:
            return _Parser(tokenize(substituted)).parse()
        except (ValueError, OverflowError, RecursionError) as e:
            raise ExpressionError(str(e)) from e

    def evaluate_condition(self, expression: str, context: ExpressionContext) -> bool:
        """Evaluate as a boolean. Malformed or disallowed input is False."""
        try:
            return bool(self.evaluate(expression, context))
        except ExpressionError as e:
            logger.debug("Condition %r rejected: %s", expression, e)
            return False

    def evaluate_number(self, expression: str, context: ExpressionContext) -> float | None:
        """Evaluate as a number. Boolean results and failures give None."""
        try:
            value = self.evaluate(expression, context)
        except ExpressionError as e:
            logger.debug("Numeric expression %r rejected: %s", expression, e)
            return None
        if isinstance(value, bool):
            return None
        return value


_default_evaluator = ExpressionEvaluator()


def evaluate_condition(expression: str, state: SimulationState) -> bool:
    """Evaluate a condition string against the current simulation state."""
    return _default_evaluator.evaluate_condition(expression, ExpressionContext.from_state(state))


def evaluate_conditions(
    conditions: Iterable[str],
    state: SimulationState,
    operator: str = "AND",
) -> bool:
    """Evaluate several conditions combined with AND (default) or OR."""
    context = ExpressionContext.from_state(state)
    results = (_default_evaluator.evaluate_condition(c, context) for c in conditions)
    if operator.upper() == "OR":
        return any(results)
    return all(results)


def evaluate_number(expression: str, state: SimulationState) -> float | None:
    """Evaluate a numeric expression against the current simulation state."""
    return _default_evaluator.evaluate_number(expression, ExpressionContext.from_state(state))
