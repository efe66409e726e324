"""
Chrome/Edge compatible CSV line parsing and escaping.

Rows follow the browser password export layout:
name,url,username,password[,note]
"""

import logging
import collections
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from . import config
from .exceptions import ParseSkip
from .storage import PasswordEntry

logger = logging.getLogger(__name__)

QUOTE = '"'
DELIMITER = ','


def parse_line(line: str) -> List[str]:
    """
    Split one CSV record into its fields.

    Commas inside double quotes are part of the field, and a doubled quote
    inside quotes is a literal quote. The record may contain line breaks
    when they sit inside a quoted field.
    """
    fields = []
    field = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        c = line[i]
        if c == QUOTE:
            if in_quotes and i + 1 < length and line[i + 1] == QUOTE:
                field.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif c == DELIMITER and not in_quotes:
            fields.append(''.join(field))
            field = []
        else:
            field.append(c)
        i += 1

    fields.append(''.join(field))
    return fields


def escape_field(field: Optional[str]) -> str:
    """Quote a field if it contains a comma, a quote or a line break."""
    if field is None:
        return ""
    if any(c in field for c in (DELIMITER, QUOTE, '\n', '\r')):
        return QUOTE + field.replace(QUOTE, QUOTE * 2) + QUOTE
    return field


def format_line(fields: Iterable[Optional[str]]) -> str:
    """Escape and join fields into one CSV record without a line terminator."""
    return DELIMITER.join(escape_field(f) for f in fields)


def entry_to_row(entry: PasswordEntry) -> List[str]:
    """Return the export columns of an entry in header order."""
    return [entry.name, entry.url, entry.username, entry.password, entry.notes]


def row_to_entry(fields: Sequence[str], line_number: Optional[int] = None) -> PasswordEntry:
    """
    Map parsed CSV fields to a new, unsaved entry.

    Args:
        fields: Fields from parse_line()
        line_number: Source line, used in the skip reason

    Returns:
        PasswordEntry with every field trimmed and name defaulted to url

    Raises:
        ParseSkip: If there are too few fields or the url is empty
    """
    if len(fields) < config.CSV_MIN_FIELDS:
        raise ParseSkip(
            f"expected at least {config.CSV_MIN_FIELDS} fields, got {len(fields)}",
            line_number,
        )

    name = fields[0].strip()
    url = fields[1].strip()
    username = fields[2].strip()
    password = fields[3].strip()
    notes = fields[config.CSV_NOTES_INDEX].strip() if len(fields) > config.CSV_NOTES_INDEX else ""

    if not url:
        raise ParseSkip("url is empty", line_number)
    if not name:
        name = url

    return PasswordEntry(name=name, url=url, username=username, password=password, notes=notes)


def _ends_in_quoted_field(line: str, in_quotes: bool = False) -> bool:
    """
    Return True if a quoted field is still open at the end of line.

    Only a quote at the very start of a field opens a quoted field; a quote
    in the middle of an unquoted field is taken literally.
    """
    field_start = not in_quotes
    i = 0
    length = len(line)
    while i < length:
        c = line[i]
        if in_quotes:
            if c == QUOTE:
                if i + 1 < length and line[i + 1] == QUOTE:
                    i += 1
                else:
                    in_quotes = False
            field_start = False
        elif c == DELIMITER:
            field_start = True
        else:
            in_quotes = c == QUOTE and field_start
            field_start = False
        i += 1
    return in_quotes


def parse_record(record: str, line_number: Optional[int] = None) -> List[str]:
    """
    Check a record from iter_records() and split it into fields.

    Raises:
        ParseSkip: If the record holds undecodable bytes or ends inside a
            quoted field
    """
    try:
        record.encode(config.CSV_ENCODING)
    except UnicodeEncodeError:
        raise ParseSkip("invalid UTF-8", line_number) from None
    if _ends_in_quoted_field(record):
        raise ParseSkip("unterminated quoted field", line_number)
    return parse_line(record)


def iter_records(lines: Iterable[str],
                 max_record_lines: int = config.CSV_MAX_RECORD_LINES) -> Iterator[Tuple[int, str]]:
    """
    Join physical lines into logical CSV records.

    A quoted field may span several lines; those lines are joined with
    their line breaks kept. If the field is still open at the end of input
    or after max_record_lines lines, the opening line is yielded alone and
    the lines after it are read again as records of their own. Blank
    records are dropped.

    Yields:
        (line_number, record) where line_number is the 1-based physical
        line on which the record starts
    """
    numbered = enumerate(lines, start=1)
    replay = collections.deque()

    def next_line():
        if replay:
            return replay.popleft()
        return next(numbered, None)

    while True:
        item = next_line()
        if item is None:
            return
        start, line = item

        in_quotes = _ends_in_quoted_field(line)
        block = [line]
        swallowed = []
        while in_quotes and len(block) < max_record_lines:
            item = next_line()
            if item is None:
                break
            swallowed.append(item)
            block.append(item[1])
            in_quotes = _ends_in_quoted_field(item[1], in_quotes=True)

        if in_quotes:
            logger.warning(f"Unterminated quoted field starting at line {start}, reading the following lines on their own")
            replay.extendleft(reversed(swallowed))
            block = [line]

        record = ''.join(block).rstrip('\r\n')
        if record.strip():
            yield start, record
