"""
SQLite connections for the survey store.

``get_connection()`` is where the engine's transactions end: it commits when
the block exits cleanly and rolls back when it raises.  Repositories and the
recommendation pipeline only write inside that transaction (the pipeline
through savepoints), so one ``with`` block is one unit of work.

Every connection is configured by ``configure_connection()``:
  - ``sqlite3.Row`` rows, so repositories read columns by name.
  - ``foreign_keys`` ON; recommendations reference library templates.
  - ``busy_timeout``: a store locked by another writer raises
    ``OperationalError`` after a bounded wait.
  - WAL journalling when enabled, so report reads run beside survey saves.

Reporting commands open the store with ``read_only=True``.  Such connections
never create the database file and reject writes.

Usage::

    from risk_engine.db.connection import get_connection

    with get_connection("data/db/risk_engine.db") as conn:
        RecommendationPipeline(conn, catalog).ensure_recommendation_from_rating(...)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


def configure_connection(
    conn: sqlite3.Connection,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> sqlite3.Connection:
    """Apply the store's row factory and pragmas to an open connection."""
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
    if wal_mode:
        conn.execute("PRAGMA journal_mode = WAL;")
    return conn


def _open(db_path: str, busy_timeout_ms: int, read_only: bool) -> sqlite3.Connection:
    timeout = busy_timeout_ms / 1000
    if not read_only:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(db_path, timeout=timeout)

    db_file = Path(db_path)
    if db_path == ":memory:" or not db_file.exists():
        raise FileNotFoundError(f"Survey store not found: {db_path}")
    return sqlite3.connect(f"{db_file.resolve().as_uri()}?mode=ro", uri=True, timeout=timeout)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
    read_only: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured connection; commit on clean exit, roll back on error.

    Args:
        db_path:         Database file, or ``":memory:"`` (writable only).
        wal_mode:        Enable WAL journalling.  Ignored for read-only
                         connections, which cannot change the journal mode.
        busy_timeout_ms: Wait this long on a locked store before raising.
        read_only:       Open with ``mode=ro``.  The file must already exist.

    Raises:
        FileNotFoundError:       ``read_only`` and the database does not exist.
        sqlite3.OperationalError: The database cannot be opened or stays locked.
    """
    conn = _open(db_path, busy_timeout_ms, read_only)
    logger.debug("Opened %s store connection to %s.", "read-only" if read_only else "writable", db_path)

    try:
        configure_connection(
            conn, wal_mode=wal_mode and not read_only, busy_timeout_ms=busy_timeout_ms
        )
        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()
