"""
Query evaluation and filter execution.

Implements the recursive evaluator plus the two execution surfaces: a bulk
scan over a materialized sequence that aborts on the first fault and keeps
its partial result, and a streaming stage over an asynchronous source that
isolates faults per record and reports them on a separate error channel.
Both apply skip/limit pagination over matching records.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from itertools import islice
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator, List, Optional, Tuple

from .accessor import get_field
from .channels import Channel, ChannelClosed, drain_pair
from .compare import equal, is_nullish
from .models import (
    EvaluationFault,
    FieldMap,
    FilterResult,
    Literal,
    Predicate,
    StreamStats,
)

logger = logging.getLogger(__name__)


def evaluate(query: Any, value: Any) -> bool:
    """Evaluate a query against a value.

    Args:
        query: Literal, predicate, field map, None, or a plain value
        value: Record or sub-value to test

    Returns:
        True if the value satisfies the query

    Raises:
        Exception: Whatever a predicate raises; containment is the caller's job
    """
    if query is None:
        return is_nullish(value)
    if isinstance(query, Literal):
        return equal(value, query.value)
    if isinstance(query, Predicate):
        return query(value)
    if isinstance(query, Mapping):
        return _evaluate_field_map(query, value)
    if callable(query) and not isinstance(query, type):
        return bool(query(value))
    return equal(value, query)


def _evaluate_field_map(query: Mapping, value: Any) -> bool:
    """Evaluate every field condition of a field map (AND logic)."""
    for field_name, condition in query.items():
        if field_name == FieldMap.WHOLE_VALUE:
            field_value = value
        else:
            field_value = get_field(value, field_name)

        if not evaluate(condition, field_value):
            return False
    return True


def _check_pagination(skip: int, limit: int) -> None:
    if skip < 0:
        raise ValueError(f"skip must be non-negative, got {skip}")
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")


async def _iterate(source: AsyncIterable[Any] | Iterable[Any]) -> AsyncIterator[Any]:
    for item in source:
        yield item


@dataclass
class FilterStream:
    """Output of a streaming filter call.

    Unpacks as ``(results, errors)``. Both channels are closed when the
    worker finishes; consumers must drain both.

    Attributes:
        results: Matching records, in input order
        errors: EvaluationFault per failed record, or the source's own error
        task: The worker task
        stats: Counters updated by the worker as it runs
    """
    results: Channel[Any]
    errors: Channel[BaseException]
    task: 'asyncio.Task[None]'
    stats: StreamStats

    def __iter__(self) -> Iterator[Channel]:
        return iter((self.results, self.errors))

    async def wait(self) -> StreamStats:
        """Wait for the worker to finish and return its counters."""
        await self.task
        return self.stats


class FilterEngine:
    """Runs queries over records in bulk or as a stream."""

    def __init__(self, stream_buffer: int = 1, error_buffer: int = 1):
        """Initialize the filter engine.

        Args:
            stream_buffer: Capacity of the streaming results channel
            error_buffer: Capacity of the streaming errors channel
        """
        self.stream_buffer = stream_buffer
        self.error_buffer = error_buffer

    def filter(
        self,
        records: Iterable[Any],
        query: Any = None,
        skip: int = 0,
        limit: int = 0,
    ) -> FilterResult:
        """Filter a finite sequence of records.

        Iterators are consumed lazily and only as far as needed. A ``None``
        query returns the requested page without evaluating anything.
        Otherwise records are scanned in order; the first ``skip``
        matches are dropped and the scan stops once ``limit`` matches have
        been collected (0 means no limit). A fault raised during evaluation
        ends the scan; the matches collected so far are kept.

        Args:
            records: Records to filter
            query: Query to evaluate against each record
            skip: Number of leading matches to discard
            limit: Maximum number of matches to return

        Returns:
            FilterResult with matches, the aborting fault (if any) and stats
        """
        _check_pagination(skip, limit)
        start_time = time.time()

        if query is None:
            page = list(islice(records, skip, skip + limit if limit else None))
            return FilterResult(
                matches=page,
                total_records_processed=len(page),
                execution_time_ms=(time.time() - start_time) * 1000,
            )

        matches: List[Any] = []
        error: Optional[EvaluationFault] = None
        matched = 0
        processed = 0

        for index, record in enumerate(records):
            processed += 1
            try:
                is_match = evaluate(query, record)
            except Exception as e:
                error = EvaluationFault(index, record, e)
                logger.warning(f"Filter scan aborted after {len(matches)} matches: {error}")
                break

            if not is_match:
                continue

            matched += 1
            if matched <= skip:
                continue

            matches.append(record)
            if limit and len(matches) >= limit:
                break

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Bulk filter processed {processed} records, "
            f"{len(matches)} returned in {elapsed_ms:.2f}ms"
        )

        return FilterResult(
            matches=matches,
            error=error,
            total_records_processed=processed,
            execution_time_ms=elapsed_ms,
        )

    def filter_stream(
        self,
        source: AsyncIterable[Any] | Iterable[Any],
        query: Any = None,
        skip: int = 0,
        limit: int = 0,
    ) -> FilterStream:
        """Filter an asynchronous sequence of records.

        Starts one worker task on the running event loop. The worker reads the
        source in order, reports evaluation faults per record on the errors
        channel and keeps going, and stops as soon as ``limit`` matches have
        been emitted. When it stops before the source is exhausted it closes
        the source (if the source supports ``aclose()``), which releases a
        producer waiting to deliver more records.

        Args:
            source: Async iterable (or plain iterable) of records
            query: Query to evaluate; None passes every record through
            skip: Number of leading matches to discard
            limit: Maximum number of matches to emit (0 = unbounded)

        Returns:
            FilterStream holding the results and errors channels

        Raises:
            RuntimeError: If called without a running event loop
        """
        _check_pagination(skip, limit)
        loop = asyncio.get_running_loop()

        results: Channel[Any] = Channel(self.stream_buffer)
        errors: Channel[BaseException] = Channel(self.error_buffer)
        stats = StreamStats()

        task = loop.create_task(
            self._run_stream(source, query, skip, limit, results, errors, stats)
        )
        return FilterStream(results=results, errors=errors, task=task, stats=stats)

    async def _run_stream(
        self,
        source: AsyncIterable[Any] | Iterable[Any],
        query: Any,
        skip: int,
        limit: int,
        results: Channel[Any],
        errors: Channel[BaseException],
        stats: StreamStats,
    ) -> None:
        """Worker body for filter_stream."""
        if not hasattr(source, '__aiter__'):
            source = _iterate(source)
        exhausted = False

        try:
            index = 0
            async for record in source:
                stats.processed += 1
                current = index
                index += 1

                if query is None:
                    is_match = True
                else:
                    try:
                        is_match = evaluate(query, record)
                    except Exception as e:
                        stats.faults += 1
                        fault = EvaluationFault(current, record, e)
                        logger.warning(f"Skipping record: {fault}")
                        await errors.send(fault)
                        continue

                if not is_match:
                    continue

                stats.matched += 1
                if stats.matched <= skip:
                    continue

                await results.send(record)
                stats.emitted += 1

                if limit and stats.emitted >= limit:
                    stats.stopped_early = True
                    logger.debug(f"Stream limit of {limit} reached after {stats.processed} records")
                    break
            else:
                exhausted = True

        except ChannelClosed:
            logger.debug("Stream consumer closed its channel, stopping")
        except Exception as e:
            logger.error(f"Stream source failed: {e}")
            try:
                await errors.send(e)
            except ChannelClosed:
                pass
        finally:
            if not exhausted:
                await _close_source(source)
            results.close()
            errors.close()


async def _close_source(source: Any) -> None:
    """Close a source that was abandoned before it was exhausted."""
    aclose = getattr(source, 'aclose', None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug(f"Error while closing stream source: {e}")


_default_engine = FilterEngine()


def filter_records(
    records: Iterable[Any],
    query: Any = None,
    skip: int = 0,
    limit: int = 0,
) -> FilterResult:
    """Filter a finite sequence of records with the default engine."""
    return _default_engine.filter(records, query, skip, limit)


def filter_stream(
    source: AsyncIterable[Any] | Iterable[Any],
    query: Any = None,
    skip: int = 0,
    limit: int = 0,
) -> FilterStream:
    """Filter an asynchronous sequence of records with the default engine."""
    return _default_engine.filter_stream(source, query, skip, limit)


async def collect(stream: FilterStream) -> Tuple[List[Any], List[BaseException]]:
    """Drain a stream's results and errors concurrently.

    Returns:
        A tuple of (results, errors)
    """
    return await drain_pair(stream.results, stream.errors)
