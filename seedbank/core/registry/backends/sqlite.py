from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, List, Optional, Union

from ..models import ObjectLocator, RegistryEntry
from .base import RegistryBackend

log = logging.getLogger("seedbank.registry")

TABLE_NAME = "seed_registry_entries"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    object_class TEXT NOT NULL,
    object_id TEXT NOT NULL,
    description TEXT,
    context TEXT,
    created_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_object ON {TABLE_NAME} (object_class, object_id);
CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_context ON {TABLE_NAME} (context);
"""

_COLUMNS = "id, key, object_class, object_id, description, context, created_at"


def connect(path: Union[str, Path]) -> sqlite3.Connection:
    # autocommit mode: transactions are driven explicitly through savepoints
    conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def provision(conn: sqlite3.Connection) -> None:
    """Create the registry table and its indexes if missing."""
    conn.executescript(_SCHEMA)


def _row_to_entry(row: sqlite3.Row) -> RegistryEntry:
    return RegistryEntry(
        key=row["key"],
        object_type=row["object_class"],
        object_id=json.loads(row["object_id"]),
        description=row["description"],
        context=row["context"],
        created_at=row["created_at"],
        entry_id=row["id"],
    )


class SqliteRegistryBackend(RegistryBackend):
    """
    Durable table backend.

    Table: seed_registry_entries (see ``provision``). Object ids are stored
    JSON-encoded so integer and string ids survive the round trip.
    """

    name = "sqlite"

    def __init__(
        self,
        path: Union[str, Path] = ":memory:",
        *,
        locator: ObjectLocator,
        connection: Optional[sqlite3.Connection] = None,
    ):
        if locator is None:
            raise ValueError("SqliteRegistryBackend requires an object locator")
        self.locator = locator
        self.conn = connection if connection is not None else connect(path)
        self.conn.row_factory = sqlite3.Row
        provision(self.conn)
        self._depth = 0

    def put(self, entry: RegistryEntry, obj: Any) -> RegistryEntry:
        cur = self.conn.execute(
            f"INSERT INTO {TABLE_NAME} (key, object_class, object_id, description, context, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                entry.key,
                entry.object_type,
                json.dumps(entry.object_id),
                entry.description,
                entry.context,
                entry.created_at,
            ),
        )
        return RegistryEntry(
            key=entry.key,
            object_type=entry.object_type,
            object_id=entry.object_id,
            description=entry.description,
            context=entry.context,
            created_at=entry.created_at,
            entry_id=cur.lastrowid,
        )

    def fetch(self, key: str) -> Optional[RegistryEntry]:
        row = self.conn.execute(f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE key = ?", (key,)).fetchone()
        return _row_to_entry(row) if row is not None else None

    def resolve(self, entry: RegistryEntry) -> Optional[Any]:
        try:
            return self.locator.find(entry.object_type, entry.object_id)
        except LookupError as e:
            log.error(
                "Failed to load object %s#%s for key '%s': %s",
                entry.object_type,
                entry.object_id,
                entry.key,
                e,
            )
            return None

    def delete(self, key: str) -> bool:
        cur = self.conn.execute(f"DELETE FROM {TABLE_NAME} WHERE key = ?", (key,))
        return cur.rowcount > 0

    def entries(self) -> List[RegistryEntry]:
        rows = self.conn.execute(f"SELECT {_COLUMNS} FROM {TABLE_NAME} ORDER BY id").fetchall()
        return [_row_to_entry(r) for r in rows]

    def keys(self) -> List[str]:
        return [r["key"] for r in self.conn.execute(f"SELECT key FROM {TABLE_NAME} ORDER BY id")]

    def contains(self, key: str) -> bool:
        row = self.conn.execute(f"SELECT 1 FROM {TABLE_NAME} WHERE key = ?", (key,)).fetchone()
        return row is not None

    def count(self) -> int:
        return int(self.conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0])

    def clear(self) -> None:
        self.conn.execute(f"DELETE FROM {TABLE_NAME}")

    def _savepoint(self) -> str:
        return f"seedbank_sp_{self._depth}"

    def begin(self) -> None:
        self._depth += 1
        self.conn.execute(f"SAVEPOINT {self._savepoint()}")

    def commit(self) -> None:
        if self._depth == 0:
            return
        self.conn.execute(f"RELEASE SAVEPOINT {self._savepoint()}")
        self._depth -= 1

    def rollback(self) -> None:
        if self._depth == 0:
            return
        name = self._savepoint()
        self.conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
        self.conn.execute(f"RELEASE SAVEPOINT {name}")
        self._depth -= 1

    def close(self) -> None:
        self.conn.close()
