"""
Storage management for the password store.

SECURITY NOTICE:
Only the password column is encrypted. Names, URLs, usernames, notes and
timestamps are stored as plain text in the SQLite file, which is restricted
to its owner on creation.
"""

import os
import sqlite3
import datetime
import threading
import logging
import contextlib
import dataclasses
from typing import Any, Callable, Dict, Iterable, List, Optional
from dataclasses import dataclass, asdict

from . import config
from .crypto import SecretCipher
from .duplicates import DuplicateGroup, DuplicateKey, find_duplicate_groups
from .exceptions import CryptoFailure, StorageUnavailable, ValidationError
from .utils import set_owner_only_permissions

logger = logging.getLogger(__name__)


@dataclass
class PasswordEntry:
    """Represents a single password entry."""
    name: str = ""
    url: str = ""
    username: str = ""
    password: str = ""
    notes: str = ""
    id: Optional[int] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        for key in ('created_at', 'updated_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    def __str__(self) -> str:
        if self.username:
            return f"{self.url} ({self.username})"
        return self.url


def _validate(entry: PasswordEntry) -> None:
    if not (entry.url or "").strip():
        raise ValidationError("URL is required")


def _normalize(entry: PasswordEntry) -> None:
    entry.username = entry.username or ""
    entry.password = entry.password or ""
    entry.notes = entry.notes or ""
    if not (entry.name or "").strip():
        entry.name = entry.url


class StorageManager:
    """Manages encrypted storage of password entries in a SQLite file."""

    def __init__(self, filepath: str, cipher: Optional[SecretCipher] = None,
                 clock: Optional[Callable[[], datetime.datetime]] = None):
        """
        Initialize storage manager and create the table if needed.

        Args:
            filepath: Path to the SQLite database file
            cipher: Cipher for the password column; defaults to SecretCipher()
            clock: Returns the current time; defaults to datetime.now

        Raises:
            StorageUnavailable: If the database cannot be created or opened
        """
        self.filepath = filepath
        self.cipher = cipher if cipher is not None else SecretCipher()
        self._clock = clock or datetime.datetime.now
        self._lock = threading.Lock()
        self._initialize()

    @contextlib.contextmanager
    def _connect(self):
        """Open a short-lived connection that commits on success."""
        try:
            conn = sqlite3.connect(self.filepath, timeout=config.SQLITE_TIMEOUT_SECONDS)
        except sqlite3.Error as e:
            logger.error(f"Cannot open database {self.filepath}: {e}")
            raise StorageUnavailable(f"Cannot open database {self.filepath}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.filepath}: {e}", exc_info=True)
            raise StorageUnavailable(f"Database error on {self.filepath}: {e}") from e
        finally:
            conn.close()

    def _initialize(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.filepath))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot create directory {directory}: {e}") from e

        is_new = not os.path.exists(self.filepath)
        with self._connect() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {config.TABLE_NAME} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    url TEXT NOT NULL,
                    username TEXT,
                    password_token TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
        logger.info(f"Table {config.TABLE_NAME} ready in {self.filepath}")

        if is_new and not set_owner_only_permissions(self.filepath):
            logger.warning(f"Failed to set secure file permissions for database: {self.filepath}")

    def _row_to_entry(self, row: sqlite3.Row) -> PasswordEntry:
        try:
            password = self.cipher.decrypt(row['password_token'])
        except CryptoFailure as e:
            logger.warning(f"Could not decrypt password of entry {row['id']}, returning it empty: {e}")
            password = ""
        return PasswordEntry(
            id=row['id'],
            name=row['name'] or "",
            url=row['url'],
            username=row['username'] or "",
            password=password,
            notes=row['notes'] or "",
            created_at=datetime.datetime.fromisoformat(row['created_at']),
            updated_at=datetime.datetime.fromisoformat(row['updated_at']),
        )

    def add_entry(self, entry: PasswordEntry) -> int:
        """
        Persist a new entry and assign its id.

        Any id already set on the entry is ignored.

        Returns:
            The generated id, also stored on the entry

        Raises:
            ValidationError: If the URL is empty
            StorageUnavailable: If the database cannot be written
        """
        _validate(entry)
        candidate = dataclasses.replace(entry)
        _normalize(candidate)
        with self._lock:
            now = self._clock()
            token = self.cipher.encrypt(candidate.password)
            with self._connect() as conn:
                cursor = conn.execute(
                    f"""
                    INSERT INTO {config.TABLE_NAME}
                        (name, url, username, password_token, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (candidate.name, candidate.url, candidate.username, token, candidate.notes,
                     now.isoformat(), now.isoformat()),
                )
                entry_id = cursor.lastrowid
            for field in config.EDITABLE_FIELDS:
                setattr(entry, field, getattr(candidate, field))
            entry.id = entry_id
            entry.created_at = now
            entry.updated_at = now
        logger.debug(f"Saved entry {entry_id} for {entry.url}")
        return entry_id

    def get_entry(self, entry_id: int) -> Optional[PasswordEntry]:
        """Get one entry by id, or None if it does not exist."""
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT * FROM {config.TABLE_NAME} WHERE id = ?", (entry_id,)
                ).fetchone()
            return self._row_to_entry(row) if row is not None else None

    def get_entries(self) -> List[PasswordEntry]:
        """Get all entries ordered by URL."""
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT * FROM {config.TABLE_NAME} ORDER BY url, id"
                ).fetchall()
            entries = [self._row_to_entry(row) for row in rows]
        logger.info(f"Loaded {len(entries)} entries")
        return entries

    def search_entries(self, term: str) -> List[PasswordEntry]:
        """
        Find entries whose URL or username contains term.

        Matching ignores case (str.casefold). Results are ordered like
        get_entries().
        """
        needle = (term or "").casefold()
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT * FROM {config.TABLE_NAME} ORDER BY url, id"
                ).fetchall()
            return [
                self._row_to_entry(row) for row in rows
                if needle in (row['url'] or "").casefold()
                or needle in (row['username'] or "").casefold()
            ]

    def update_entry(self, entry: PasswordEntry, **changes: Any) -> bool:
        """
        Apply changes to a saved entry and persist it.

        Keyword arguments name fields to change (name, url, username,
        password, notes). The password is re-encrypted, updated_at is moved
        forward and created_at is left as stored.

        Returns:
            True if the entry was updated, False if its id does not exist

        Raises:
            ValidationError: If the entry was never saved, a field name is
                unknown, or the resulting URL is empty
            StorageUnavailable: If the database cannot be written
        """
        if entry.id is None:
            raise ValidationError("Entry has not been saved yet")
        unknown = set(changes) - set(config.EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        candidate = dataclasses.replace(entry, **changes)
        _validate(candidate)
        _normalize(candidate)

        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT created_at, updated_at FROM {config.TABLE_NAME} WHERE id = ?",
                    (entry.id,),
                ).fetchone()
                if row is None:
                    logger.debug(f"Update skipped, entry {entry.id} does not exist")
                    return False

                previous = datetime.datetime.fromisoformat(row['updated_at'])
                now = self._clock()
                if now <= previous:
                    now = previous + datetime.timedelta(microseconds=1)

                conn.execute(
                    f"""
                    UPDATE {config.TABLE_NAME}
                    SET name = ?, url = ?, username = ?, password_token = ?, notes = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (candidate.name, candidate.url, candidate.username,
                     self.cipher.encrypt(candidate.password), candidate.notes,
                     now.isoformat(), entry.id),
                )

            for field in config.EDITABLE_FIELDS:
                setattr(entry, field, getattr(candidate, field))
            entry.created_at = datetime.datetime.fromisoformat(row['created_at'])
            entry.updated_at = now
        logger.debug(f"Updated entry {entry.id}")
        return True

    def _delete(self, entry_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM {config.TABLE_NAME} WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    def delete_entry(self, entry_id: int) -> bool:
        """
        Delete an entry.

        Returns:
            True if a row was removed, False if the id did not exist
        """
        with self._lock:
            return self._delete(entry_id)

    def delete_entries(self, entry_ids: Iterable[int]) -> int:
        """
        Delete multiple entries by their IDs.

        Each id is deleted on its own; a failure on one is logged and the
        rest are still attempted.

        Returns:
            Number of entries actually removed
        """
        deleted = 0
        with self._lock:
            for entry_id in entry_ids:
                try:
                    if self._delete(entry_id):
                        deleted += 1
                except StorageUnavailable as e:
                    logger.error(f"Failed to delete entry {entry_id}: {e}")
        logger.info(f"Deleted {deleted} entries")
        return deleted

    def find_duplicate_entries(self) -> Dict[DuplicateKey, DuplicateGroup]:
        """Group entries sharing URL, username and password. See duplicates.find_duplicate_groups."""
        groups = find_duplicate_groups(self.get_entries())
        logger.info(f"Found {len(groups)} duplicate groups")
        return groups

    def count(self) -> int:
        """Return the number of stored entries."""
        with self._lock:
            with self._connect() as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {config.TABLE_NAME}").fetchone()[0]
