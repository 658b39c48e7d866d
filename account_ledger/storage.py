"""
Storage Backend Module

Abstract key/document storage interface with an in-memory implementation
(testing) and a SQLite implementation (persistence). Records are plain JSON
documents; monetary values are stored as Decimal strings by the callers.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
from pathlib import Path
from contextlib import contextmanager
import sqlite3
import json
import threading

from .exceptions import StorageError
from .logging_config import get_logger


logger = get_logger("ledger.storage")


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""
        pass

    @abstractmethod
    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Load a record, or None when the key is unknown"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records of a table in insertion order"""
        pass

    @abstractmethod
    def exists(self, table: str, key: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Remove all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release backend resources"""
        pass

    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Run the enclosed writes as one transaction where supported"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise

    @staticmethod
    def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        return all(key in record and record[key] == value for key, value in filters.items())


class InMemoryStorage(StorageInterface):
    """In-memory storage for tests and ephemeral runs.

    Writes are never rolled back: atomic() only keeps other threads out of
    the block, so callers needing multi-record atomicity must compensate on
    failure.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(table, {})

    @staticmethod
    def _copy(record: Dict[str, Any]) -> Dict[str, Any]:
        return json.loads(json.dumps(record, default=str))

    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._table(table)[key] = self._copy(data)

    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(key)
            return self._copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [self._copy(record) for record in self._table(table).values()]

    def exists(self, table: str, key: str) -> bool:
        with self._lock:
            return key in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                self._copy(record)
                for record in self._table(table).values()
                if self._matches(record, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._data[table] = {}

    @contextmanager
    def atomic(self):
        # Writes are not rolled back; the lock keeps other threads out of the block.
        with self._lock:
            with super().atomic():
                yield

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage with one JSON document per row"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._transaction_depth = 0
        self._tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    def _ensure_table(self, table: str) -> None:
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        if not self.in_transaction:
            self._connection.commit()
        self._tables.add(table)

    def _maybe_commit(self) -> None:
        if not self.in_transaction:
            self._connection.commit()

    def save(self, table: str, key: str, data: Dict[str, Any]) -> None:
        with self._lock:
            try:
                self._ensure_table(table)
                now = datetime.now(timezone.utc).isoformat()
                # Upsert keeps the original rowid so load_all stays in insertion order
                self._connection.execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                """, (key, json.dumps(data, default=str), now, now))
                self._maybe_commit()
            except sqlite3.Error as e:
                logger.error(f"SQLite save failed for {table}/{key}: {e}")
                raise StorageError(f"Failed to save {table}/{key}: {e}") from e

    def load(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (key,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            rows = self._connection.execute(f"SELECT data FROM {table} ORDER BY rowid").fetchall()
            return [json.loads(row['data']) for row in rows]

    def exists(self, table: str, key: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (key,)
            ).fetchone()
            return row is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [record for record in self.load_all(table) if self._matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(f"SELECT COUNT(*) AS count FROM {table}").fetchone()['count']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._maybe_commit()

    def begin_transaction(self) -> None:
        with self._lock:
            self._transaction_depth += 1

    def commit(self) -> None:
        with self._lock:
            if self._transaction_depth == 0:
                return
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._connection.commit()

    def rollback(self) -> None:
        with self._lock:
            if self._transaction_depth == 0:
                return
            self._transaction_depth = 0
            self._connection.rollback()
            # Tables created inside the transaction are gone too
            self._tables.clear()

    @contextmanager
    def atomic(self):
        # The connection is shared, so the lock is held for the whole
        # transaction to keep other threads' writes out of it.
        with self._lock:
            with super().atomic():
                yield

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(config) -> StorageInterface:
    """Build the storage backend named by the configuration"""
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(config.database_path)
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")
