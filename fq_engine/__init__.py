"""
Filter Query Engine Package.

A schema-less query engine for filtering in-memory records, in bulk or as an
asynchronous stream.
"""

from .accessor import get_field
from .channels import Channel, ChannelClosed
from .compare import Ordering, equal, is_nullish, order, to_number
from .engine import (
    FilterEngine,
    FilterStream,
    collect,
    evaluate,
    filter_records,
    filter_stream,
)
from .models import (
    ABSENT,
    EvaluationFault,
    FieldMap,
    FilterError,
    FilterResult,
    Literal,
    Predicate,
    Q,
    RecordParseFault,
    SourceIOFault,
)
from .operators import (
    And,
    Contains,
    ContainsAll,
    ContainsAny,
    Eq,
    GeoWithin,
    Gt,
    Gte,
    HasItem,
    In,
    Lt,
    Lte,
    Match,
    Not,
    Or,
)
from .parser import FilterSyntaxError, OperatorKind, parse_filters
from .sources import SourceStream, jsonl_file_source, load_records

__all__ = [
    'ABSENT',
    'And',
    'Channel',
    'ChannelClosed',
    'Contains',
    'ContainsAll',
    'ContainsAny',
    'Eq',
    'EvaluationFault',
    'FieldMap',
    'FilterEngine',
    'FilterError',
    'FilterResult',
    'FilterStream',
    'FilterSyntaxError',
    'GeoWithin',
    'Gt',
    'Gte',
    'HasItem',
    'In',
    'Literal',
    'Lt',
    'Lte',
    'Match',
    'Not',
    'OperatorKind',
    'Or',
    'Ordering',
    'Predicate',
    'Q',
    'RecordParseFault',
    'SourceIOFault',
    'SourceStream',
    'collect',
    'equal',
    'evaluate',
    'filter_records',
    'filter_stream',
    'get_field',
    'is_nullish',
    'jsonl_file_source',
    'load_records',
    'order',
    'parse_filters',
    'to_number',
]
