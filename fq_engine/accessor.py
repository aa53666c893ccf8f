"""
Field resolution over arbitrary record shapes.

Records are either keyed mappings or objects exposing named attributes
(dataclasses, named tuples, plain instances). The evaluator only talks to
the FieldResolver protocol; the adapter is picked per record at lookup time.
"""

from typing import Any, Mapping, Protocol

from .models import ABSENT


class FieldResolver(Protocol):
    """Capability to resolve a named field on a wrapped record."""

    def resolve(self, name: str) -> Any:
        ...


class MappingResolver:
    """Resolves fields on a mapping by key lookup."""

    __slots__ = ('record',)

    def __init__(self, record: Mapping[Any, Any]):
        self.record = record

    def resolve(self, name: str) -> Any:
        try:
            return self.record[name]
        except (KeyError, TypeError):
            return ABSENT


class AttributeResolver:
    """Resolves fields on an object by attribute name.

    Names with a leading underscore are treated as private and never resolved.
    """

    __slots__ = ('record',)

    def __init__(self, record: Any):
        self.record = record

    def resolve(self, name: str) -> Any:
        if not name or name.startswith('_'):
            return ABSENT
        try:
            value = getattr(self.record, name)
        except AttributeError:
            return ABSENT
        if callable(value) and not _is_data_attribute(self.record, name):
            # bound methods are behaviour, not fields
            return ABSENT
        return value


class _NullResolver:
    __slots__ = ()

    def resolve(self, name: str) -> Any:
        return ABSENT


_NULL_RESOLVER = _NullResolver()

# scalars have attributes (e.g. int.real) but no fields
_SCALAR_TYPES = (str, bytes, bytearray, int, float, complex, bool)


def _is_data_attribute(record: Any, name: str) -> bool:
    """Check whether a callable attribute is stored data rather than a method."""
    instance_dict = getattr(record, '__dict__', None)
    if instance_dict is not None and name in instance_dict:
        return True
    fields = getattr(type(record), '_fields', None)
    return isinstance(fields, tuple) and name in fields


def resolver_for(record: Any) -> FieldResolver:
    """Pick the resolver adapter for a record.

    Args:
        record: Mapping, object, or None

    Returns:
        A FieldResolver bound to the record
    """
    if record is None or record is ABSENT:
        return _NULL_RESOLVER
    if isinstance(record, Mapping):
        return MappingResolver(record)
    if isinstance(record, _SCALAR_TYPES):
        return _NULL_RESOLVER
    if isinstance(record, tuple) and not hasattr(type(record), '_fields'):
        return _NULL_RESOLVER
    if isinstance(record, (list, set, frozenset)):
        return _NULL_RESOLVER
    return AttributeResolver(record)


def get_field(record: Any, name: str) -> Any:
    """Get a named field from a record.

    Args:
        record: Record to read from
        name: Field name

    Returns:
        The field value, or ABSENT if the record is null or has no such field
    """
    return resolver_for(record).resolve(name)
