"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Table creation order respects foreign key dependencies:
  1. module_instances          (no FKs)
  2. actions                   (no FKs)
  3. recommendation_templates  (no FKs)
  4. recommendations           (→ recommendation_templates)

Identity of auto-generated recommendations
------------------------------------------
``uq_recommendations_active_auto`` is a *partial* UNIQUE index over
(document_id, source_module_key, source_factor_key, variant) restricted to
``source_type = 'auto' AND is_suppressed = 0``.  It is what makes concurrent
``INSERT … ON CONFLICT DO NOTHING`` calls converge on a single row.
``source_factor_key`` and ``variant`` are NOT NULL with an empty-string
default because NULLs never compare equal inside a UNIQUE index.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_MODULE_INSTANCES = """
CREATE TABLE IF NOT EXISTS module_instances (
    instance_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     TEXT    NOT NULL,
    module_key      TEXT    NOT NULL,
    outcome         TEXT    CHECK (outcome IS NULL OR outcome IN
                        ('compliant', 'minor_def', 'material_def', 'info_gap', 'na')),
    assessor_notes  TEXT    NOT NULL DEFAULT '',
    data_json       TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (document_id, module_key)
);
"""

_DDL_ACTIONS = """
CREATE TABLE IF NOT EXISTS actions (
    action_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     TEXT    NOT NULL,
    title           TEXT,
    priority        TEXT    CHECK (priority IS NULL OR priority IN ('P1', 'P2', 'P3', 'P4')),
    category        TEXT    NOT NULL DEFAULT 'Other',
    trigger_text    TEXT,
    status          TEXT    NOT NULL DEFAULT 'open' CHECK (status IN
                        ('open', 'in_progress', 'complete', 'deferred', 'not_applicable')),
    target_date     TEXT,
    owner           TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at      TEXT
);
"""

_DDL_ACTIONS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_actions_document_status
    ON actions (document_id, status);
"""

_DDL_RECOMMENDATION_TEMPLATES = """
CREATE TABLE IF NOT EXISTS recommendation_templates (
    template_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    title            TEXT    NOT NULL,
    observation      TEXT    NOT NULL DEFAULT '',
    action_required  TEXT    NOT NULL DEFAULT '',
    hazard           TEXT    NOT NULL DEFAULT '',
    default_priority TEXT    NOT NULL DEFAULT 'Medium' CHECK (default_priority IN ('High', 'Medium', 'Low')),
    sort_priority    INTEGER NOT NULL DEFAULT 0,
    is_active        INTEGER NOT NULL DEFAULT 1,
    rules_json       TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS recommendations (
    recommendation_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id         TEXT    NOT NULL,
    source_type         TEXT    NOT NULL CHECK (source_type IN ('auto', 'manual')),
    source_module_key   TEXT    NOT NULL,
    source_factor_key   TEXT    NOT NULL DEFAULT '',
    variant             TEXT    NOT NULL DEFAULT '',
    priority            TEXT    NOT NULL CHECK (priority IN ('High', 'Medium', 'Low')),
    status              TEXT    NOT NULL DEFAULT 'open' CHECK (status IN
                            ('open', 'in_progress', 'complete', 'deferred', 'not_applicable')),
    is_suppressed       INTEGER NOT NULL DEFAULT 0,
    title               TEXT    NOT NULL,
    observation         TEXT    NOT NULL DEFAULT '',
    action_required     TEXT    NOT NULL DEFAULT '',
    hazard              TEXT    NOT NULL DEFAULT '',
    library_template_id INTEGER REFERENCES recommendation_templates(template_id),
    target_date         TEXT,
    owner               TEXT,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_RECOMMENDATIONS_INDEXES = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_recommendations_active_auto
    ON recommendations (document_id, source_module_key, source_factor_key, variant)
    WHERE source_type = 'auto' AND is_suppressed = 0;
CREATE INDEX IF NOT EXISTS idx_recommendations_document
    ON recommendations (document_id);
"""

_ALL_DDL = [
    _DDL_MODULE_INSTANCES,
    _DDL_ACTIONS,
    _DDL_ACTIONS_INDEXES,
    _DDL_RECOMMENDATION_TEMPLATES,
    _DDL_RECOMMENDATIONS,
    _DDL_RECOMMENDATIONS_INDEXES,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "module_instances",
    "actions",
    "recommendation_templates",
    "recommendations",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return index names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
