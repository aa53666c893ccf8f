"""
Data models for the filter query engine.

Defines the query variants (literal, predicate, field map), the absent-field
sentinel, the fault hierarchy raised or reported during filtering, and the
result containers returned by the bulk and streaming entry points.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional


class _Absent:
    """Marker for a field that does not exist on a record."""

    _instance: Optional['_Absent'] = None

    def __new__(cls) -> '_Absent':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'ABSENT'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


@dataclass(frozen=True)
class Literal:
    """A query that matches by equality against a fixed value.

    Plain values passed as queries are treated as literals already; wrapping
    forces equality semantics for values that would otherwise be read as a
    field map (mappings) or a predicate (callables).

    Attributes:
        value: The value to compare against
    """
    value: Any


class Predicate:
    """A boolean test over a single value.

    The wrapped function is treated as a black box and may raise; the filter
    engine decides how such faults are contained.

    Attributes:
        func: Callable taking one value and returning a truthy result
        name: Readable label used in logs and reprs
    """

    __slots__ = ('func', 'name')

    def __init__(self, func: Callable[[Any], Any], name: Optional[str] = None):
        if not callable(func):
            raise TypeError(f"Predicate requires a callable, got {type(func).__name__}")
        self.func = func
        self.name = name or getattr(func, '__name__', 'predicate')

    def __call__(self, value: Any) -> bool:
        return bool(self.func(value))

    def __repr__(self) -> str:
        return f"Predicate({self.name})"


class FieldMap(Mapping[str, Any]):
    """Mapping from field name to sub-query, with all entries AND-ed.

    The empty-string key applies its sub-query to the whole current value
    instead of a named field. Instances copy their input and are read-only.
    """

    WHOLE_VALUE = ''

    __slots__ = ('_fields',)

    def __init__(self, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        merged: Dict[str, Any] = {}
        if fields is not None:
            merged.update(fields)
        merged.update(kwargs)
        for key in merged:
            if not isinstance(key, str):
                raise TypeError(f"Field names must be strings, got {key!r}")
        self._fields = merged

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Q({self._fields!r})"


Q = FieldMap


class FilterError(Exception):
    """Base class for errors produced by the filter engine."""


class EvaluationFault(FilterError):
    """A predicate or comparison raised while a record was being evaluated.

    Attributes:
        index: Zero-based position of the record in its input
        record: The record being evaluated
        cause: The original exception
    """

    def __init__(self, index: int, record: Any, cause: BaseException):
        self.index = index
        self.record = record
        self.cause = cause
        super().__init__(
            f"fault during filter evaluation of item {index}: "
            f"{type(cause).__name__}: {cause}"
        )


class SourceIOFault(FilterError):
    """The record source could not be opened or read.

    Attributes:
        path: Path of the source
        cause: The underlying OS error
    """

    def __init__(self, path: str, cause: BaseException, action: str = 'open'):
        self.path = path
        self.cause = cause
        super().__init__(f"failed to {action} file {path}: {cause}")


class RecordParseFault(FilterError):
    """A single input record could not be decoded.

    Attributes:
        line_number: One-based line number of the malformed record
        line: The raw text of the line
        cause: The decoding error
    """

    def __init__(self, line_number: int, line: str, cause: BaseException):
        self.line_number = line_number
        self.line = line
        self.cause = cause
        super().__init__(f"line {line_number}: error parsing JSON: {cause}")


@dataclass
class FilterResult:
    """Result of a bulk filter call.

    Unpacks as ``(matches, error)``.

    Attributes:
        matches: Matched records in input order, after skip/limit
        error: The fault that aborted the scan, if any
        total_records_processed: Records examined before the scan ended
        execution_time_ms: Wall time of the call in milliseconds
    """
    matches: List[Any]
    error: Optional[EvaluationFault] = None
    total_records_processed: int = 0
    execution_time_ms: float = 0.0

    @property
    def total_matches(self) -> int:
        return len(self.matches)

    def __iter__(self) -> Iterator[Any]:
        return iter((self.matches, self.error))


@dataclass
class StreamStats:
    """Counters maintained by a streaming filter worker."""
    processed: int = 0
    matched: int = 0
    emitted: int = 0
    faults: int = 0
    stopped_early: bool = False
