"""SQLite persistence for credentials, search results and dataset caches."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine


class SQLiteKeyValueStore:
    """Durable key-value table behind the :class:`KeyValueStore` interface."""

    def __init__(self, database_uri: str, *, echo: bool = False) -> None:
        self._engine: Engine = create_engine(database_uri, echo=echo, future=True)
        self._ensure_schema()

    # -----------------
    # Schema management
    # -----------------
    def _ensure_schema(self) -> None:
        """Create the backing table if it does not already exist."""
        ddl = [
            """
            CREATE TABLE IF NOT EXISTS kv_store (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL,
              updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
        ]
        with self._engine.begin() as conn:
            for statement in ddl:
                conn.execute(text(statement))

    # ---------
    # Key/value
    # ---------
    def get(self, key: str) -> Optional[str]:
        query = text(
            """
            SELECT value
            FROM kv_store
            WHERE key = :key
            LIMIT 1
            """
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"key": key}).mappings().first()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        stmt = text(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (:key, :value, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
              value=excluded.value,
              updated_at=CURRENT_TIMESTAMP
            """
        )
        with self._engine.begin() as conn:
            conn.execute(stmt, {"key": key, "value": value})

    def delete(self, key: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(text("DELETE FROM kv_store WHERE key = :key"), {"key": key})

    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with ``prefix``."""
        query = text(
            """
            SELECT key
            FROM kv_store
            WHERE substr(key, 1, :length) = :prefix
            ORDER BY key
            """
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"prefix": prefix, "length": len(prefix)})
            return [row[0] for row in rows]

    def close(self) -> None:
        self._engine.dispose()
