"""
Browser password CSV import and export.

SECURITY NOTICE:
Exported files contain every password in plain text. Callers must warn the
user before writing one and should delete it once it has been imported
elsewhere.
"""

import os
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from . import config
from .csv_codec import entry_to_row, format_line, iter_records, parse_record, row_to_entry
from .exceptions import ParseSkip, StorageUnavailable, ValidationError
from .storage import PasswordEntry, StorageManager

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of an import: rows stored, rows skipped and why."""
    accepted: int = 0
    skipped: int = 0
    diagnostics: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total(self) -> int:
        return self.accepted + self.skipped

    def skip(self, reason: str) -> None:
        self.skipped += 1
        self.diagnostics.append(reason)


def _data_records(lines: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """Yield records after the header, which is skipped unvalidated."""
    records = iter_records(lines)
    header = next(records, None)
    if header is not None:
        logger.debug(f"CSV header: {header[1]}")
    yield from records


def parse_entries(lines: Iterable[str]) -> Tuple[List[PasswordEntry], List[ParseSkip]]:
    """
    Parse a whole CSV source without storing anything.

    Useful for previewing an import before asking the user to confirm it.

    Returns:
        (entries, skipped rows)
    """
    entries = []
    skipped = []
    for line_number, record in _data_records(lines):
        try:
            entries.append(row_to_entry(parse_record(record, line_number), line_number))
        except ParseSkip as e:
            logger.warning(f"Skipping CSV row: {e}")
            skipped.append(e)
    return entries, skipped


class BrowserImporter:
    """Moves entries between a StorageManager and Chrome/Edge CSV files."""

    def __init__(self, storage: StorageManager):
        self.storage = storage

    def import_lines(self, lines: Iterable[str],
                     cancel_event: Optional[threading.Event] = None) -> ImportResult:
        """
        Store every valid row of a CSV source.

        Each row is parsed, validated and saved on its own, so the import can
        stop between rows without leaving a half-written entry behind.

        Args:
            lines: Source lines, header first
            cancel_event: When set, the import stops before the next row

        Returns:
            ImportResult with accepted and skipped counts

        Raises:
            StorageUnavailable: If the database cannot be written
        """
        result = ImportResult()
        for line_number, record in _data_records(lines):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Import cancelled after {result.total} rows")
                result.cancelled = True
                break

            try:
                entry = row_to_entry(parse_record(record, line_number), line_number)
                self.storage.add_entry(entry)
            except ParseSkip as e:
                logger.warning(f"Skipping CSV row: {e}")
                result.skip(str(e))
                continue
            except ValidationError as e:
                logger.warning(f"Skipping CSV row at line {line_number}: {e}")
                result.skip(f"line {line_number}: {e}")
                continue
            except StorageUnavailable:
                logger.error(f"Import aborted at line {line_number} after {result.accepted} entries were stored")
                raise
            result.accepted += 1

        logger.info(f"Imported {result.accepted} entries, skipped {result.skipped}")
        return result

    def import_from_file(self, filepath: str,
                         cancel_event: Optional[threading.Event] = None) -> ImportResult:
        """
        Import passwords from a browser CSV export.

        Rows with bytes that are not valid UTF-8 are skipped; the rest of the
        file is still imported.

        Args:
            filepath: Path to CSV file

        Returns:
            ImportResult with accepted and skipped counts
        """
        # newline='' keeps line breaks inside quoted fields intact
        with open(filepath, 'r', encoding=config.CSV_IMPORT_ENCODING,
                  errors=config.CSV_IMPORT_ERRORS, newline='') as f:
            return self.import_lines(f, cancel_event)

    def export_lines(self, entries: Optional[Iterable[PasswordEntry]] = None) -> Iterator[str]:
        """Yield the export header and one record per entry, without terminators."""
        if entries is None:
            entries = self.storage.get_entries()
        yield config.CSV_EXPORT_HEADER
        for entry in entries:
            yield format_line(entry_to_row(entry))

    def export_to_file(self, filepath: str,
                       entries: Optional[Iterable[PasswordEntry]] = None) -> int:
        """
        Write entries as a Chrome/Edge compatible CSV file.

        Args:
            filepath: Destination path; overwritten if it exists
            entries: Entries to write; defaults to every stored entry

        Returns:
            Number of entries written
        """
        count = 0
        tmp_path = filepath + '.tmp'
        try:
            with open(tmp_path, 'w', encoding=config.CSV_ENCODING, newline='') as f:
                for i, line in enumerate(self.export_lines(entries)):
                    f.write(line + '\n')
                    count = i
            os.replace(tmp_path, filepath)
        except OSError as e:
            logger.error(f"Error writing CSV export {filepath}: {e}", exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"Exported {count} entries to {filepath}")
        return count
