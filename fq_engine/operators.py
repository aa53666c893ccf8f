"""
Operator library.

Every builder returns a Predicate closed over its arguments. Comparison
operators are built on the equality/ordering rules in ``compare``; logical
combinators accept any query (literals, field maps, predicates, nested
combinators) and evaluate it with the same rules as a top-level query.
"""

import math
import re
from typing import Any, Optional, Pattern, Tuple, Union

from .compare import Ordering, equal, is_number, is_sequence, order, to_number
from .engine import evaluate
from .models import Predicate

EARTH_RADIUS_KM = 6371.0


def _describe(name: str, *args: Any) -> str:
    return f"{name}({', '.join(repr(a) for a in args)})"


def Eq(expected: Any) -> Predicate:
    """Match values equal to ``expected``."""
    return Predicate(lambda v: equal(v, expected), _describe('eq', expected))


def Gt(threshold: Any) -> Predicate:
    """Match values ordered strictly after ``threshold``."""
    return Predicate(
        lambda v: order(v, threshold) is Ordering.GREATER,
        _describe('gt', threshold),
    )


def Gte(threshold: Any) -> Predicate:
    """Match values ordered after or equal to ``threshold``."""
    return Predicate(
        lambda v: order(v, threshold) in (Ordering.GREATER, Ordering.EQUAL),
        _describe('gte', threshold),
    )


def Lt(threshold: Any) -> Predicate:
    """Match values ordered strictly before ``threshold``."""
    return Predicate(
        lambda v: order(v, threshold) is Ordering.LESS,
        _describe('lt', threshold),
    )


def Lte(threshold: Any) -> Predicate:
    """Match values ordered before or equal to ``threshold``."""
    return Predicate(
        lambda v: order(v, threshold) in (Ordering.LESS, Ordering.EQUAL),
        _describe('lte', threshold),
    )


def In(*candidates: Any) -> Predicate:
    """Match values equal to any of the candidates."""
    return Predicate(
        lambda v: any(equal(v, c) for c in candidates),
        _describe('in', *candidates),
    )


def Contains(substring: str) -> Predicate:
    """Match strings containing ``substring`` (case-sensitive)."""
    def contains(v: Any) -> bool:
        return isinstance(v, str) and substring in v
    return Predicate(contains, _describe('contains', substring))


def Match(pattern: Union[str, Pattern[str]]) -> Predicate:
    """Match strings against text or a compiled regular expression.

    Plain text matches as a case-insensitive substring. A compiled pattern
    matches if it is found anywhere in the value (``re.search``).
    """
    if isinstance(pattern, re.Pattern):
        def match_regex(v: Any) -> bool:
            return isinstance(v, str) and pattern.search(v) is not None
        return Predicate(match_regex, f"match(/{pattern.pattern}/)")

    needle = str(pattern).casefold()

    def match_text(v: Any) -> bool:
        return isinstance(v, str) and needle in v.casefold()
    return Predicate(match_text, _describe('match', pattern))


def HasItem(item: Any) -> Predicate:
    """Match sequences with at least one element equal to ``item``."""
    def has_item(v: Any) -> bool:
        return is_sequence(v) and any(equal(element, item) for element in v)
    return Predicate(has_item, _describe('hasitem', item))


def ContainsAll(*items: Any) -> Predicate:
    """Match sequences containing every one of ``items``."""
    def contains_all(v: Any) -> bool:
        if not is_sequence(v):
            return False
        return all(any(equal(element, item) for element in v) for item in items)
    return Predicate(contains_all, _describe('containsall', *items))


def ContainsAny(*items: Any) -> Predicate:
    """Match sequences containing at least one of ``items``."""
    def contains_any(v: Any) -> bool:
        if not is_sequence(v):
            return False
        return any(equal(element, item) for item in items for element in v)
    return Predicate(contains_any, _describe('containsany', *items))


def _coordinates(value: Any) -> Optional[Tuple[float, float]]:
    """Read (lat, lng) from the first two elements of a sequence."""
    if not is_sequence(value) or len(value) < 2:
        return None
    lat, lng = value[0], value[1]
    if not (is_number(lat) and is_number(lng)):
        return None
    return to_number(lat), to_number(lng)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def GeoWithin(lat: float, lng: float, radius_km: float) -> Predicate:
    """Match coordinates within ``radius_km`` of (lat, lng).

    The value must be a sequence whose first two elements are numeric
    latitude and longitude; anything else does not match.
    """
    def geo_within(v: Any) -> bool:
        point = _coordinates(v)
        if point is None:
            return False
        return haversine_km(lat, lng, point[0], point[1]) <= radius_km
    return Predicate(geo_within, _describe('geowithin', lat, lng, radius_km))


def And(*queries: Any) -> Predicate:
    """Match values satisfying every query; stops at the first failure."""
    return Predicate(
        lambda v: all(evaluate(q, v) for q in queries),
        _describe('and', *queries),
    )


def Or(*queries: Any) -> Predicate:
    """Match values satisfying any query; stops at the first success."""
    return Predicate(
        lambda v: any(evaluate(q, v) for q in queries),
        _describe('or', *queries),
    )


def Not(query: Any) -> Predicate:
    """Match values that do not satisfy ``query``."""
    return Predicate(lambda v: not evaluate(query, v), _describe('not', query))
