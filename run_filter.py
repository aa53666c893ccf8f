#!/usr/bin/env python3
"""
CLI entry point for filtering newline-delimited JSON records.

Streams a file through the filter engine and prints every matching record
as one JSON line. Filters are given as field:operator:value expressions and
combined with AND logic.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime, time
from typing import Any, Optional, TextIO

from fq_engine import FilterEngine, jsonl_file_source, parse_filters
from fq_engine.channels import Channel
from fq_engine.config import ConfigError, EngineConfig, load_config, setup_logging
from fq_engine.parser import FilterSyntaxError, describe_operators

logger = logging.getLogger('run_filter')

EXAMPLES = """\
Examples:
  fq data.jsonl "price:lt:500"
  fq data.jsonl "status:eq:active" "category:in:electronics,books"
  fq data.jsonl "location:geowithin:40.7,-74.0,10"
  fq --skip 10 --limit 5 data.jsonl "name:match:/^lap/"
"""


def serialize_for_json(obj: Any) -> Any:
    """Recursively serialize objects for JSON output.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable version of the object
    """
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    elif isinstance(obj, dict):
        return {k: serialize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [serialize_for_json(item) for item in obj]
    else:
        return obj


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line argument parser."""
    operator_lines = "\n".join(
        f"  {info['name']:<12} {info['description']} ({info['arguments']})"
        for info in describe_operators()
    )

    parser = argparse.ArgumentParser(
        prog="fq",
        description="Filter newline-delimited JSON records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Filters:\n  field:operator:value\n\n"
            f"Operators:\n{operator_lines}\n\n{EXAMPLES}"
        ),
    )

    parser.add_argument(
        "data_file",
        nargs="?",
        help="Path to records file (NDJSON format)",
    )

    parser.add_argument(
        "filters",
        nargs="*",
        help="Filter expressions (field:operator:value)",
    )

    parser.add_argument(
        "--skip",
        type=int,
        help="Skip first N results",
    )

    parser.add_argument(
        "--limit",
        type=int,
        help="Limit to N results",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=None,
        help="Suppress error messages",
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to YAML config file with default settings",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


async def stream_matches(
    data_file: str,
    query: Any,
    config: EngineConfig,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> int:
    """Stream a file through the filter and print matches.

    Args:
        data_file: Path to the NDJSON file
        query: Query to apply (None passes every record)
        config: Pagination, quiet mode and buffer sizes
        out: Stream for matches (defaults to stdout)
        err: Stream for error messages (defaults to stderr)

    Returns:
        Number of source and filter errors encountered
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err

    source = jsonl_file_source(data_file, config.source_buffer, config.error_buffer)
    engine = FilterEngine(config.stream_buffer, config.error_buffer)
    stream = engine.filter_stream(source.records, query, config.skip, config.limit)

    error_count = 0

    async def report(channel: Channel, label: str) -> None:
        nonlocal error_count
        async for error in channel:
            error_count += 1
            if not config.quiet:
                print(f"{label} error: {error}", file=err)

    async def output() -> None:
        async for record in stream.results:
            print(json.dumps(serialize_for_json(record), separators=(',', ':')), file=out)

    await asyncio.gather(
        output(),
        report(source.errors, "Source"),
        report(stream.errors, "Filter"),
    )
    stats = await stream.wait()
    await source.task

    logger.debug(
        f"Processed {stats.processed} records: {stats.matched} matched, "
        f"{stats.emitted} printed, {stats.faults} faults"
    )
    return error_count


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config).merged(
            skip=args.skip,
            limit=args.limit,
            quiet=args.quiet,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging("DEBUG" if args.verbose else config.log_level)

    if not args.data_file:
        if not config.quiet:
            print("Error: data file required", file=sys.stderr)
        return 1

    try:
        query = parse_filters(args.filters)
    except FilterSyntaxError as e:
        if not config.quiet:
            print(f"Error parsing filters: {e}", file=sys.stderr)
        return 1

    error_count = asyncio.run(stream_matches(args.data_file, query, config))
    return 1 if error_count else 0


if __name__ == "__main__":
    sys.exit(main())
