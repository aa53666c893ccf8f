"""
Equality and ordering across heterogeneous values.

Numbers of any real kind compare by value (``3 == 3.0``, ``Decimal('2') ==
2``); ``bool`` is kept out of the numeric domain so ``True`` never equals
``1``. Containers are compared structurally, element by element, with the
same rules applied at every level.
"""

import numbers
from collections.abc import Mapping, Set
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .models import ABSENT


class Ordering(Enum):
    """Outcome of comparing two values."""
    LESS = -1
    EQUAL = 0
    GREATER = 1
    INCOMPARABLE = None


_TEMPORAL_TYPES = (datetime, date, time, timedelta)


def is_nullish(value: Any) -> bool:
    """Return True for None and the ABSENT field marker."""
    return value is None or value is ABSENT


def is_number(value: Any) -> bool:
    """Return True for real numbers and decimals, excluding booleans."""
    return isinstance(value, (numbers.Real, Decimal)) and not isinstance(value, bool)


def is_sequence(value: Any) -> bool:
    """Return True for lists and tuples (text and bytes are not sequences)."""
    return isinstance(value, (list, tuple))


def to_number(value: Any) -> Optional[float]:
    """Widen any real number to a float.

    Strings are not parsed.

    Args:
        value: Value to convert

    Returns:
        The float value, or None if the value is not a number
    """
    if not is_number(value):
        return None
    try:
        return float(value)
    except (OverflowError, TypeError, ValueError):
        return None


def _compare_numbers(a: Any, b: Any) -> Ordering:
    try:
        if a < b:
            return Ordering.LESS
        if a > b:
            return Ordering.GREATER
        if a == b:
            return Ordering.EQUAL
        return Ordering.INCOMPARABLE
    except (TypeError, ArithmeticError):
        # decimal NaN raises InvalidOperation on ordering
        pass

    a_num, b_num = to_number(a), to_number(b)
    if a_num is None or b_num is None:
        return Ordering.INCOMPARABLE
    if a_num < b_num:
        return Ordering.LESS
    if a_num > b_num:
        return Ordering.GREATER
    if a_num == b_num:
        return Ordering.EQUAL
    # NaN
    return Ordering.INCOMPARABLE


def _compare_native(a: Any, b: Any) -> Ordering:
    try:
        if a < b:
            return Ordering.LESS
        if a > b:
            return Ordering.GREATER
    except TypeError:
        # naive against aware datetimes, date against datetime
        return Ordering.INCOMPARABLE
    return Ordering.EQUAL


def order(a: Any, b: Any) -> Ordering:
    """Order two values.

    Null sorts before any non-null value. Numbers, strings and temporal
    values of the same kind compare natively; anything else falls back to
    numeric normalization, and values that still cannot be ordered are
    reported as INCOMPARABLE.

    Args:
        a: Left value
        b: Right value

    Returns:
        The Ordering of ``a`` relative to ``b``
    """
    a_null, b_null = is_nullish(a), is_nullish(b)
    if a_null and b_null:
        return Ordering.EQUAL
    if a_null:
        return Ordering.LESS
    if b_null:
        return Ordering.GREATER

    if is_number(a) and is_number(b):
        return _compare_numbers(a, b)
    if isinstance(a, str) and isinstance(b, str):
        return _compare_native(a, b)
    if isinstance(a, _TEMPORAL_TYPES) and isinstance(b, _TEMPORAL_TYPES):
        return _compare_native(a, b)

    a_num, b_num = to_number(a), to_number(b)
    if a_num is not None and b_num is not None:
        return _compare_numbers(a_num, b_num)

    return Ordering.INCOMPARABLE


def _is_structural(value: Any) -> bool:
    return (
        isinstance(value, (Mapping, Set))
        or is_sequence(value)
        or callable(value)
    )


def _same_kind(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return isinstance(a, type(b)) or isinstance(b, type(a))


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality for containers, recursing through ``equal``.

    Mappings match when they hold the same keys with equal values; lists and
    tuples match element by element; callables match only by identity.

    Args:
        a: Left value
        b: Right value

    Returns:
        True if the values are structurally equal
    """
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        for key, value in a.items():
            if key not in b:
                return False
            if not equal(value, b[key]):
                return False
        return True

    if is_sequence(a) and is_sequence(b):
        if len(a) != len(b):
            return False
        return all(equal(x, y) for x, y in zip(a, b))

    if isinstance(a, Set) and isinstance(b, Set):
        return a == b

    if callable(a) or callable(b):
        return a is b

    if is_nullish(a) or is_nullish(b):
        return is_nullish(a) and is_nullish(b)

    if is_number(a) and is_number(b):
        return _compare_numbers(a, b) is Ordering.EQUAL

    if type(a) is type(b):
        return bool(a == b)

    return False


def equal(a: Any, b: Any) -> bool:
    """Test two values for equality.

    Args:
        a: Left value
        b: Right value

    Returns:
        True if both are null, numerically equal, structurally equal, or
        equal values of the same kind
    """
    a_null, b_null = is_nullish(a), is_nullish(b)
    if a_null or b_null:
        return a_null and b_null

    if is_number(a) and is_number(b):
        return _compare_numbers(a, b) is Ordering.EQUAL

    if _is_structural(a) or _is_structural(b):
        return deep_equal(a, b)

    if _same_kind(a, b):
        return bool(a == b)

    return deep_equal(a, b)
