"""
Decoder for gzip-compressed W3C extended log files (CloudFront access logs)

A file looks like:

    #Version: 1.0
    #Fields: date time x-edge-location sc-bytes c-ip ...
    2024-01-01	00:00:00	FRA2-C1	1234	1.2.3.4 ...

Data lines are only decoded once the #Fields: directive has been seen and
must have exactly one token per header field.
"""

import gzip
import json
import zlib
from typing import BinaryIO, Iterable, Iterator, List

from cloudfront_logs_shipper.errors import DecompressError, FieldCountMismatchError
from cloudfront_logs_shipper.models.w3c import LogEntry, W3CLog

HEADER_DIRECTIVE = '#Fields:'
COMMENT_MARKER = '#'


def parse_header_line(line: str) -> List[str]:
    """Return the field names declared by a #Fields: directive"""
    return line[len(HEADER_DIRECTIVE):].split()


def parse_data_line(line: str, header_fields: List[str], line_number: int = 0) -> LogEntry:
    """
    Split a data line on whitespace and map tokens onto the header fields

    Raises:
        FieldCountMismatchError: If the token count differs from the header length
    """
    fields = line.split()

    if len(fields) != len(header_fields):
        raise FieldCountMismatchError(len(header_fields), len(fields), line_number)

    return dict(zip(header_fields, fields))


def iter_entries(lines: Iterable[str], log: W3CLog = None) -> Iterator[LogEntry]:
    """
    Yield one LogEntry per data line

    Args:
        lines: Decompressed text lines, with or without line terminators
        log: Optional W3CLog receiving the header fields as they are parsed

    Raises:
        FieldCountMismatchError: On the first malformed data line; entries
            already yielded are not affected
    """
    if log is None:
        log = W3CLog()

    for line_number, line in enumerate(lines, start=1):
        line = line.rstrip('\r\n')

        if line.startswith(HEADER_DIRECTIVE):
            log.header_fields = parse_header_line(line)
            continue

        # Skip other directives or lines before the header is found
        if line.startswith(COMMENT_MARKER) or not log.header_fields:
            continue

        yield parse_data_line(line, log.header_fields, line_number)


def iter_gzip_lines(fileobj: BinaryIO, encoding: str = 'utf-8') -> Iterator[str]:
    """
    Stream text lines out of a gzip-compressed binary file object

    Raises:
        DecompressError: If the stream is not valid gzip or is truncated
    """
    try:
        with gzip.GzipFile(fileobj=fileobj, mode='rb') as gz:
            # Lines end at \n only, a stray \r is left for split() to treat as whitespace
            for raw_line in gz:
                yield raw_line.decode(encoding, errors='replace')
    except (gzip.BadGzipFile, EOFError, zlib.error) as e:
        raise DecompressError(f"failed to decompress gzip stream: {str(e)}")


def to_json_line(entry: LogEntry) -> str:
    """Compact JSON rendering of an entry, keys in header order"""
    return json.dumps(entry, separators=(',', ':'), ensure_ascii=False)


def decode_file(fileobj: BinaryIO) -> W3CLog:
    """Decode a whole gzip log file into memory"""
    log = W3CLog()
    log.records.extend(iter_entries(iter_gzip_lines(fileobj), log))
    return log
