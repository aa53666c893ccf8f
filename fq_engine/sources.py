"""
Record sources.

Reads newline-delimited JSON files either eagerly into a list or as an
asynchronous stream with a parallel error channel. Malformed lines are
reported and skipped; a file that cannot be opened is reported once.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List

from .channels import Channel, ChannelClosed
from .models import RecordParseFault, SourceIOFault

logger = logging.getLogger(__name__)

# bytes of lines fetched per background read
READ_CHUNK_SIZE = 64 * 1024


@dataclass
class SourceStream:
    """Output of an asynchronous record source.

    Unpacks as ``(records, errors)``.

    Attributes:
        records: Decoded records in file order
        errors: SourceIOFault or RecordParseFault instances
        task: The reader task
    """
    records: Channel[Any]
    errors: Channel[BaseException]
    task: 'asyncio.Task[None]'

    def __iter__(self) -> Iterator[Channel]:
        return iter((self.records, self.errors))


def jsonl_file_source(
    path: str | Path,
    buffer_size: int = 100,
    error_buffer: int = 10,
) -> SourceStream:
    """Stream records from a newline-delimited JSON file.

    Must be called with a running event loop; the file is opened and read by
    a background task, with blocking file I/O on worker threads. Closing
    ``records`` from the consumer side stops the reader.

    Args:
        path: Path to the NDJSON file
        buffer_size: Capacity of the records channel
        error_buffer: Capacity of the errors channel

    Returns:
        SourceStream with records and errors channels
    """
    loop = asyncio.get_running_loop()
    records: Channel[Any] = Channel(buffer_size)
    errors: Channel[BaseException] = Channel(error_buffer)
    task = loop.create_task(_read_jsonl(Path(path), records, errors))
    return SourceStream(records=records, errors=errors, task=task)


async def _read_jsonl(
    path: Path,
    records: Channel[Any],
    errors: Channel[BaseException],
) -> None:
    """Reader task body for jsonl_file_source."""
    try:
        try:
            handle = await asyncio.to_thread(open, path, 'r', encoding='utf-8')
        except OSError as e:
            fault = SourceIOFault(str(path), e)
            logger.error(str(fault))
            await errors.send(fault)
            return

        with handle:
            line_num = 0
            try:
                while True:
                    # blocking reads run off the event loop
                    lines = await asyncio.to_thread(handle.readlines, READ_CHUNK_SIZE)
                    if not lines:
                        break

                    for line in lines:
                        line_num += 1
                        if not line.strip():
                            continue

                        try:
                            record = json.loads(line)
                        except json.JSONDecodeError as e:
                            fault = RecordParseFault(line_num, line.rstrip('\n'), e)
                            logger.warning(str(fault))
                            await errors.send(fault)
                            continue

                        await records.send(record)
            except (OSError, UnicodeDecodeError) as e:
                fault = SourceIOFault(str(path), e, action='read')
                logger.error(str(fault))
                await errors.send(fault)

        logger.debug(f"Finished reading {line_num} lines from {path}")

    except ChannelClosed:
        logger.debug(f"Consumer stopped reading {path}")
    finally:
        records.close()
        errors.close()


def load_records(input_file: str | Path) -> List[Any]:
    """Load records from an NDJSON or JSON array file.

    Args:
        input_file: Path to input file (NDJSON or JSON)

    Returns:
        List of decoded records

    Raises:
        SourceIOFault: If the file cannot be read
        RecordParseFault: If a line (or the array document) is not valid JSON
    """
    path = Path(input_file)

    try:
        content = path.read_text(encoding='utf-8').strip()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceIOFault(str(path), e) from e

    if not content:
        return []

    # Try to detect format
    if content.startswith('['):
        try:
            records = json.loads(content)
        except json.JSONDecodeError as e:
            raise RecordParseFault(e.lineno, content, e) from e
        if isinstance(records, list):
            return records

    records = []
    for line_num, line in enumerate(content.split('\n'), 1):
        line = line.strip()
        if not line:
            continue

        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise RecordParseFault(line_num, line, e) from e

    return records
