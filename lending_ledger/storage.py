"""
Storage Backend Module

Document-per-record persistence for ledger records. Every record is a JSON
object keyed by table and id; amounts travel as Decimal strings so nothing is
lost to float conversion. InMemoryStorage backs tests, SQLiteStorage backs the
service.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import date, datetime
from enum import Enum
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .config import LedgerConfig, get_config


Document = Dict[str, Any]


def _to_storable(value: Any) -> Any:
    """Decimal, date and Enum values as their JSON-friendly stored form"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _copy(document: Document) -> Document:
    return json.loads(json.dumps(document, default=str))


def _matches(document: Document, filters: Dict[str, Any]) -> bool:
    return all(key in document and document[key] == value for key, value in filters.items())


@dataclass
class StorageRecord:
    """Identity and timestamps shared by customers, loans, payments and audit events"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Document:
        return {key: _to_storable(value) for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Document) -> 'StorageRecord':
        """Rebuild a record; subclasses convert their own typed fields first"""
        data = dict(data)
        for stamp in ('created_at', 'updated_at'):
            if isinstance(data.get(stamp), str):
                data[stamp] = datetime.fromisoformat(data[stamp])
        return cls(**data)


class StorageInterface(ABC):
    """
    Table/id keyed document store.

    Writes made inside ``atomic()`` land together or not at all. Nested
    ``atomic()`` blocks join the outermost one.
    """

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Insert or replace the document stored under record_id"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Document stored under record_id, or None"""

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Every document in the table"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a document; False when there was nothing to remove"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        """Documents whose top-level keys equal every filter value"""

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """Group writes; any exception inside the block undoes all of them"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """Process-local store used by tests and the ``memory`` backend"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[str] = None
        self._depth = 0

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            # Stored documents never alias caller objects
            self._table(table)[record_id] = _copy(data)

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            document = self._table(table).get(record_id)
            return _copy(document) if document else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            return [_copy(document) for document in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        with self._lock:
            return [
                _copy(document) for document in self._table(table).values()
                if _matches(document, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}

    def begin_transaction(self) -> None:
        """Take the lock for the whole block and snapshot at the outermost level"""
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = json.dumps(self._tables)
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._snapshot is not None:
            self._tables = json.loads(self._snapshot)
            self._snapshot = None
        self._lock.release()

    def close(self) -> None:
        pass


_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
"""
_CREATE_INDEX = "CREATE INDEX IF NOT EXISTS idx_{table}_created_at ON {table}(created_at)"

# Re-saving a document keeps the created_at of its first insert
_UPSERT = """
    INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
    VALUES (?, ?, COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?), ?)
"""


class SQLiteStorage(StorageInterface):
    """
    One row per document: id, JSON body and two timestamps.

    Outside ``atomic()`` every write commits on its own. Inside it, writes
    accumulate in the connection's implicit transaction until the outermost
    block ends.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level='DEFERRED'
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    @property
    def _in_transaction(self) -> bool:
        return self._depth > 0

    def _execute(self, table: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Run a statement against table, creating the table on first use"""
        # DDL is re-issued every time; a rollback may have undone an earlier create
        self._connection.execute(_CREATE_TABLE.format(table=table))
        self._connection.execute(_CREATE_INDEX.format(table=table))
        return self._connection.execute(sql.format(table=table), params)

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            now = datetime.now().isoformat()
            created_at = str(data.get('created_at', now))
            self._execute(table, _UPSERT, (
                record_id, json.dumps(data, default=str), record_id, created_at, now
            ))
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            row = self._execute(table, "SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        """Every document, oldest created_at first"""
        with self._lock:
            rows = self._execute(table, "SELECT data FROM {table} ORDER BY created_at").fetchall()
            return [json.loads(row['data']) for row in rows]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._execute(table, "DELETE FROM {table} WHERE id = ?", (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._execute(table, "SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Document]:
        # Filters apply to the decoded JSON body, not to columns
        with self._lock:
            return [document for document in self.load_all(table) if _matches(document, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return self._execute(table, "SELECT COUNT(*) AS n FROM {table}").fetchone()['n']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._execute(table, "DELETE FROM {table}")
            self._autocommit()

    def begin_transaction(self) -> None:
        """Hold the connection lock until the outermost block commits or rolls back"""
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.commit()
        finally:
            self._lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.rollback()
        finally:
            self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(config: Optional[LedgerConfig] = None) -> StorageInterface:
    """
    Build the backend named by ``storage_backend`` (``memory`` or ``sqlite``)

    Raises:
        ValueError: For any other backend name
    """
    config = config or get_config()
    backend = config.storage_backend.lower()

    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(config.sqlite_path)

    raise ValueError(f"Unknown storage backend '{config.storage_backend}'")
