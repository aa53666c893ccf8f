"""
Filter expression parser.

Turns command-line style expressions of the form ``field:operator:value``
into a field map of predicates. Operators are looked up in a fixed table
keyed by OperatorKind; each entry declares the argument shape it accepts,
and arguments are tokenized and converted to typed values accordingly.

Argument lists are comma-separated. Double quotes group text that contains
commas and keep it as text (``"42"`` stays a string); a quote inside
unquoted text is kept as is. Unquoted arguments become int/float when
numeric, True/False/None for ``true``/``false``/``null``, and text
otherwise. ``match`` additionally accepts ``/regex/``.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import operators
from .models import FieldMap, Predicate

logger = logging.getLogger(__name__)


class FilterSyntaxError(SyntaxError):
    """Raised for malformed filter expressions."""


@dataclass
class Token:
    """Represents a lexical token."""
    type: str
    value: str
    position: int


class Tokenizer:
    """Tokenizes operator argument lists."""

    # Token patterns
    TOKEN_PATTERNS = [
        (r'"[^"]*"', 'STRING'),
        (r',', 'COMMA'),
        (r'\s+', 'WHITESPACE'),
        (r'[^,"][^,]*', 'WORD'),
    ]

    REGEX_PATTERN = (r'/.+/$', 'REGEX')

    def __init__(self, text: str, allow_regex: bool = False):
        """Initialize tokenizer with an argument string.

        Args:
            text: The raw value part of a filter expression
            allow_regex: Whether a ``/.../`` value is read as one REGEX token
        """
        self.text = text
        self.position = 0
        self.tokens: List[Token] = []
        patterns = list(self.TOKEN_PATTERNS)
        if allow_regex:
            patterns.insert(0, self.REGEX_PATTERN)
        self._patterns = [(re.compile(p), t) for p, t in patterns]
        self._tokenize()

    def _tokenize(self) -> None:
        """Tokenize the input text."""
        while self.position < len(self.text):
            matched = False

            for regex, token_type in self._patterns:
                match = regex.match(self.text, self.position)

                if match:
                    value = match.group(0)

                    if token_type == 'WORD':
                        value = value.strip()
                    if token_type != 'WHITESPACE':
                        self.tokens.append(
                            Token(token_type, value, self.position)
                        )

                    self.position = match.end()
                    matched = True
                    break

            if not matched:
                raise FilterSyntaxError(
                    f"unterminated quoted string at position {self.position}"
                )

    def get_tokens(self) -> List[Token]:
        """Return the list of tokens."""
        return self.tokens


@dataclass(frozen=True)
class Argument:
    """A single operator argument before type conversion."""
    text: str
    quoted: bool = False
    regex: bool = False


def split_arguments(text: str, allow_regex: bool = False) -> List[Argument]:
    """Split an argument list on commas, honouring double quotes.

    Args:
        text: Raw argument text
        allow_regex: Whether to recognise a whole-value ``/regex/``

    Returns:
        Arguments in order; an empty string yields no arguments

    Raises:
        FilterSyntaxError: On unterminated quotes or missing separators
    """
    tokens = Tokenizer(text, allow_regex=allow_regex).get_tokens()
    if not tokens:
        return []

    arguments: List[Argument] = []
    expect_value = True

    for token in tokens:
        if token.type == 'COMMA':
            if expect_value:
                # empty slot between commas
                arguments.append(Argument(''))
            expect_value = True
            continue

        if not expect_value:
            raise FilterSyntaxError(
                f"expected ',' before {token.value!r} at position {token.position}"
            )

        if token.type == 'STRING':
            arguments.append(Argument(token.value[1:-1], quoted=True))
        elif token.type == 'REGEX':
            arguments.append(Argument(token.value[1:-1], regex=True))
        else:
            arguments.append(Argument(token.value))
        expect_value = False

    return arguments


_NUMBER_RE = re.compile(r'[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$')
_INT_RE = re.compile(r'[-+]?\d+$')
_KEYWORDS = {'true': True, 'false': False, 'null': None}


def parse_scalar(argument: Argument) -> Any:
    """Convert an argument to int, float, bool, None, or text."""
    if argument.quoted or argument.regex:
        return argument.text

    text = argument.text
    if _INT_RE.match(text):
        return int(text)
    if _NUMBER_RE.match(text):
        return float(text)
    if text in _KEYWORDS:
        return _KEYWORDS[text]
    return text


def parse_float(argument: Argument, position: int) -> float:
    """Convert an argument to float or raise a positional error."""
    if _NUMBER_RE.match(argument.text):
        return float(argument.text)
    raise FilterSyntaxError(f"argument {position}: expected float, got: {argument.text}")


class ArgShape(Enum):
    """Argument shapes accepted by operators."""
    SCALAR = 'value'
    TEXT = 'text'
    PATTERN = 'text or /regex/'
    VARIADIC = 'value[,value...]'
    COORDINATES = 'lat,lng,radius_km'


class OperatorKind(Enum):
    """Operators available in filter expressions."""
    EQ = 'eq'
    GT = 'gt'
    LT = 'lt'
    GTE = 'gte'
    LTE = 'lte'
    MATCH = 'match'
    CONTAINS = 'contains'
    HASITEM = 'hasitem'
    CONTAINSALL = 'containsall'
    CONTAINSANY = 'containsany'
    IN = 'in'
    NOT = 'not'
    AND = 'and'
    OR = 'or'
    GEOWITHIN = 'geowithin'

    @classmethod
    def lookup(cls, name: str) -> 'OperatorKind':
        """Find an operator kind by its expression name."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise FilterSyntaxError(f"unknown operator: {name}") from None


@dataclass(frozen=True)
class OperatorSpec:
    """How an operator's arguments are parsed and which builder receives them."""
    kind: OperatorKind
    shape: ArgShape
    builder: Callable[..., Predicate]
    description: str


OPERATORS: Dict[OperatorKind, OperatorSpec] = {
    spec.kind: spec for spec in [
        OperatorSpec(OperatorKind.EQ, ArgShape.SCALAR, operators.Eq, "Equal to"),
        OperatorSpec(OperatorKind.GT, ArgShape.SCALAR, operators.Gt, "Greater than"),
        OperatorSpec(OperatorKind.LT, ArgShape.SCALAR, operators.Lt, "Less than"),
        OperatorSpec(OperatorKind.GTE, ArgShape.SCALAR, operators.Gte, "Greater than or equal"),
        OperatorSpec(OperatorKind.LTE, ArgShape.SCALAR, operators.Lte, "Less than or equal"),
        OperatorSpec(OperatorKind.MATCH, ArgShape.PATTERN, operators.Match, "Case-insensitive text match"),
        OperatorSpec(OperatorKind.CONTAINS, ArgShape.TEXT, operators.Contains, "String contains substring"),
        OperatorSpec(OperatorKind.HASITEM, ArgShape.SCALAR, operators.HasItem, "Array contains value"),
        OperatorSpec(OperatorKind.CONTAINSALL, ArgShape.VARIADIC, operators.ContainsAll, "Array contains all values"),
        OperatorSpec(OperatorKind.CONTAINSANY, ArgShape.VARIADIC, operators.ContainsAny, "Array contains any value"),
        OperatorSpec(OperatorKind.IN, ArgShape.VARIADIC, operators.In, "Value in comma-separated list"),
        OperatorSpec(OperatorKind.NOT, ArgShape.SCALAR, operators.Not, "Not equal to"),
        OperatorSpec(OperatorKind.AND, ArgShape.VARIADIC, operators.And, "Equal to every value"),
        OperatorSpec(OperatorKind.OR, ArgShape.VARIADIC, operators.Or, "Equal to any value"),
        OperatorSpec(OperatorKind.GEOWITHIN, ArgShape.COORDINATES, operators.GeoWithin, "Geospatial within radius"),
    ]
}


def _expect_count(kind: OperatorKind, arguments: List[Argument], count: int) -> None:
    if len(arguments) != count:
        raise FilterSyntaxError(
            f"operator {kind.value} expects {count} argument{'s' if count != 1 else ''}, "
            f"got {len(arguments)}"
        )


def build_predicate(kind: OperatorKind, value: str) -> Predicate:
    """Parse an operator's arguments and build its predicate.

    Args:
        kind: Operator to build
        value: Raw argument text

    Returns:
        The predicate returned by the operator's builder

    Raises:
        FilterSyntaxError: If the arguments do not fit the operator
    """
    spec = OPERATORS[kind]
    arguments = split_arguments(value, allow_regex=spec.shape is ArgShape.PATTERN)

    if spec.shape is ArgShape.SCALAR:
        _expect_count(kind, arguments, 1)
        return spec.builder(parse_scalar(arguments[0]))

    if spec.shape is ArgShape.TEXT:
        _expect_count(kind, arguments, 1)
        return spec.builder(arguments[0].text)

    if spec.shape is ArgShape.PATTERN:
        _expect_count(kind, arguments, 1)
        argument = arguments[0]
        if argument.regex:
            try:
                return spec.builder(re.compile(argument.text))
            except re.error as e:
                raise FilterSyntaxError(f"invalid regex pattern: {e}") from e
        return spec.builder(argument.text)

    if spec.shape is ArgShape.VARIADIC:
        if not arguments:
            raise FilterSyntaxError(f"operator {kind.value} expects at least 1 argument, got 0")
        return spec.builder(*[parse_scalar(a) for a in arguments])

    if spec.shape is ArgShape.COORDINATES:
        _expect_count(kind, arguments, 3)
        lat, lng, radius = [
            parse_float(argument, position)
            for position, argument in enumerate(arguments, 1)
        ]
        return spec.builder(lat, lng, radius)

    raise FilterSyntaxError(f"operator {kind.value} has no argument parser")


def parse_filter(expression: str) -> Tuple[str, Predicate]:
    """Parse one ``field:operator:value`` expression.

    Args:
        expression: The filter expression

    Returns:
        A tuple of (field_name, predicate)

    Raises:
        FilterSyntaxError: If the expression is malformed
    """
    parts = expression.split(':', 2)
    if len(parts) != 3:
        raise FilterSyntaxError(f"invalid filter format: {expression}")

    field_name, operator, value = parts
    kind = OperatorKind.lookup(operator)
    return field_name, build_predicate(kind, value)


def parse_filters(expressions: Iterable[str]) -> Optional[FieldMap]:
    """Parse filter expressions into a single field map.

    Args:
        expressions: Filter expressions; each field may appear once, a
            repeated field keeps its last expression

    Returns:
        A FieldMap of predicates, or None if there are no expressions

    Raises:
        FilterSyntaxError: If any expression is malformed
    """
    fields: Dict[str, Predicate] = {}

    for expression in expressions:
        field_name, predicate = parse_filter(expression)
        if field_name in fields:
            logger.warning(
                f"Filter on field '{field_name}' given more than once, "
                f"keeping {predicate.name}"
            )
        fields[field_name] = predicate

    if not fields:
        return None
    return FieldMap(fields)


def describe_operators() -> List[Dict[str, str]]:
    """List available operators with their argument shapes."""
    return [
        {
            'name': spec.kind.value,
            'arguments': spec.shape.value,
            'description': spec.description,
        }
        for spec in OPERATORS.values()
    ]
