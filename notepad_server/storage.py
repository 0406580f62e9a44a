"""SQLite-backed storage for notepads."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from threading import RLock
from typing import Iterator

from .config import Config
from .errors import CONFIG_ERROR, INTERNAL_ERROR, NotepadError
from .logging import get_logger
from .models import Notepad

logger = get_logger(__name__)

_TABLE_NAME = "notepads"
_REQUIRED_COLUMNS = ("id", "name", "content")

# AUTOINCREMENT keeps ids from being reused once the highest row is deleted.
_CREATE_TABLE_SQL = (
    f"CREATE TABLE IF NOT EXISTS {_TABLE_NAME} "
    "(id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, content TEXT)"
)
_INSERT_SQL = f"INSERT INTO {_TABLE_NAME} (name, content) VALUES (?, ?)"
_DELETE_SQL = f"DELETE FROM {_TABLE_NAME} WHERE id = ?"
_UPDATE_SQL = f"UPDATE {_TABLE_NAME} SET content = ? WHERE id = ?"
_SELECT_ALL_SQL = f"SELECT id, name, content FROM {_TABLE_NAME} ORDER BY id"
_SELECT_ONE_SQL = f"SELECT id, name, content FROM {_TABLE_NAME} WHERE id = ?"


class StorageError(NotepadError):
    """Raised when storage operations fail."""


def synchronized(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class NotepadStore:
    """Single-connection SQLite persistence for notepads.

    The connection is opened and the schema bootstrapped on construction.
    Every public method issues exactly one SQL statement while holding the
    store lock, so callers on worker threads never interleave on the
    connection.
    """

    def __init__(self, config: Config) -> None:
        self._path: Path = config.database_path
        self._lock = RLock()
        self._conn: sqlite3.Connection | None = None
        self.created = False
        self.bootstrap()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._conn is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @synchronized
    def bootstrap(self) -> None:
        """Open the database file, creating it and the notepads table when absent."""

        if self._conn is not None:
            return
        existed = self._path.exists()
        context = {"path": str(self._path)}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._path), check_same_thread=False, isolation_level=None)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(CONFIG_ERROR, f"Unable to open database: {exc}", details=context) from exc

        try:
            conn.row_factory = sqlite3.Row
            conn.execute(_CREATE_TABLE_SQL)
            columns = {row["name"] for row in conn.execute(f"PRAGMA table_info({_TABLE_NAME})")}
        except sqlite3.Error as exc:
            conn.close()
            raise StorageError(CONFIG_ERROR, f"Unable to create {_TABLE_NAME} table: {exc}", details=context) from exc

        missing = [column for column in _REQUIRED_COLUMNS if column not in columns]
        if missing:
            conn.close()
            raise StorageError(
                CONFIG_ERROR,
                f"Existing {_TABLE_NAME} table missing required columns",
                details={**context, "missing": missing},
            )

        self._conn = conn
        self.created = not existed
        event = "storage.bootstrap.created" if self.created else "storage.bootstrap.opened"
        logger.info(event, extra={"context": context})

    @synchronized
    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None
        logger.info("storage.closed", extra={"context": {"path": str(self._path)}})

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------

    @synchronized
    def add_notepad(self, name: str, content: str) -> Notepad:
        with self._translate_errors("insert"):
            cursor = self._connection().execute(_INSERT_SQL, (name, content))
        return Notepad(id=int(cursor.lastrowid), name=name, content=content)

    @synchronized
    def delete_notepad(self, notepad_id: int) -> bool:
        """Delete a notepad; returns False when no row matched."""

        with self._translate_errors("delete"):
            cursor = self._connection().execute(_DELETE_SQL, (notepad_id,))
        return cursor.rowcount > 0

    @synchronized
    def update_notepad(self, notepad_id: int, content: str) -> bool:
        """Replace a notepad's content; returns False when no row matched."""

        with self._translate_errors("update"):
            cursor = self._connection().execute(_UPDATE_SQL, (content, notepad_id))
        return cursor.rowcount > 0

    @synchronized
    def list_notepads(self) -> list[Notepad]:
        with self._translate_errors("select_all"):
            rows = self._connection().execute(_SELECT_ALL_SQL).fetchall()
        return [Notepad.from_row(row) for row in rows]

    @synchronized
    def get_notepad(self, notepad_id: int) -> Notepad | None:
        with self._translate_errors("select"):
            row = self._connection().execute(_SELECT_ONE_SQL, (notepad_id,)).fetchone()
        if row is None:
            return None
        return Notepad.from_row(row)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(INTERNAL_ERROR, "Database connection is closed", details={"path": str(self._path)})
        return self._conn

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (sqlite3.Error, OverflowError) as exc:
            logger.error(
                "storage.statement.failed",
                extra={"context": {"operation": operation, "path": str(self._path), "error": str(exc)}},
            )
            raise StorageError(INTERNAL_ERROR, str(exc), details={"operation": operation}) from exc
