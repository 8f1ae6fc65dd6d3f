"""
Base repository: shared SQL helpers for the survey store.

Every repository wraps one ``sqlite3.Connection`` opened by the caller
(normally via ``risk_engine.db.connection.get_connection()``).

Conventions:
  - Plain SQL in repository methods; no ORM.
  - Methods accept and return pydantic models, never raw dicts.
  - Transaction boundaries belong to the caller; repositories never commit.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]

NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%SZ', 'now')"


class BaseRepository:
    """Shared SQL execution helpers.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Run one statement with ``?`` or ``:name`` placeholders."""
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), params)
        return self.conn.execute(sql, params)

    def executemany(self, sql: str, params_list: list[Params]) -> sqlite3.Cursor:
        logger.debug("SQL (many): %s | count: %d", " ".join(sql.split()), len(params_list))
        return self.conn.executemany(sql, params_list)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        """First row of a query, or ``None``."""
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: Params = ()) -> Any:
        """First column of the first row, or ``None`` when there is no row."""
        row = self.fetchone(sql, params)
        return row[0] if row is not None else None

    def update(self, sql: str, params: Params = ()) -> int:
        """Run an UPDATE/DELETE and return the number of rows changed."""
        return self.execute(sql, params).rowcount

    def last_insert_rowid(self) -> int:
        """Rowid of the last successful INSERT on this connection."""
        rowid = self.scalar("SELECT last_insert_rowid();")
        assert rowid is not None
        return int(rowid)
