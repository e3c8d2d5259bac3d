import sqlite3
import threading
from typing import Any, List, Optional, Sequence

_WRITE_PREFIXES = ("INSERT", "UPDATE", "DELETE", "REPLACE")


class SqliteClient:
    """Shared SQLite connection for the stores.

    The event loop thread and the worker threads used by async callers go
    through the same connection, so every statement runs under a lock.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._db = sqlite3.connect(path, check_same_thread=False)
        self._db.execute("PRAGMA foreign_keys = ON")

    @property
    def connection(self) -> sqlite3.Connection:
        return self._db

    def execute_query(self, query: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        """Run a statement and return its rows."""
        with self._lock:
            cursor = self._run(query, params)
            try:
                return cursor.fetchall()
            finally:
                cursor.close()

    def execute_write(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a write statement and return the number of rows it changed."""
        with self._lock:
            cursor = self._run(query, params)
            try:
                return cursor.rowcount
            finally:
                cursor.close()

    def _run(self, query: str, params: Optional[Sequence[Any]]) -> sqlite3.Cursor:
        cursor = self._db.cursor()
        try:
            cursor.execute(query, params or ())
            if query.lstrip().upper().startswith(_WRITE_PREFIXES):
                self._db.commit()
        except sqlite3.Error:
            cursor.close()
            self._db.rollback()
            raise
        return cursor

    def close(self) -> None:
        self._db.close()

    def __enter__(self) -> "SqliteClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
