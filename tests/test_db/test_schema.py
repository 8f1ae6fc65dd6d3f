"""Tests for SQLite schema — idempotency, table/index creation, identity index, FK enforcement."""

from __future__ import annotations

import sqlite3

import pytest

from risk_engine.db.schema import (
    ALL_TABLE_NAMES,
    apply_schema,
    get_existing_indexes,
    get_existing_tables,
)

_AUTO_INSERT = """
    INSERT INTO recommendations (
        document_id, source_type, source_module_key, source_factor_key,
        priority, title, is_suppressed
    ) VALUES (?, ?, 'RE_03_OCCUPANCY', 'construction', 'High', 'T', ?);
"""


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found in database. "
                f"Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        tables = get_existing_tables(in_memory_db)
        assert len(tables) >= len(ALL_TABLE_NAMES)

    def test_key_indexes_created(self, in_memory_db):
        indexes = get_existing_indexes(in_memory_db)
        for idx in [
            "uq_recommendations_active_auto",
            "idx_recommendations_document",
            "idx_actions_document_status",
        ]:
            assert idx in indexes, f"Expected index '{idx}' not found. Found: {indexes}"


class TestActiveAutoIdentity:
    def test_duplicate_active_auto_rejected(self, in_memory_db):
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 0))
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 0))

    def test_suppressed_rows_do_not_collide(self, in_memory_db):
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 1))
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 1))
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 0))

    def test_manual_rows_do_not_collide(self, in_memory_db):
        in_memory_db.execute(_AUTO_INSERT, ("D1", "manual", 0))
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 0))
        in_memory_db.execute(_AUTO_INSERT, ("D1", "manual", 0))

    def test_on_conflict_do_nothing(self, in_memory_db):
        in_memory_db.execute(_AUTO_INSERT, ("D1", "auto", 0))
        in_memory_db.execute(_AUTO_INSERT.replace(";", " ON CONFLICT DO NOTHING;"), ("D1", "auto", 0))
        n = in_memory_db.execute("SELECT COUNT(*) FROM recommendations;").fetchone()[0]
        assert n == 1


class TestConstraints:
    def test_invalid_priority_rejected(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                "INSERT INTO actions (document_id, priority) VALUES ('D1', 'P9');"
            )

    def test_null_action_priority_allowed(self, in_memory_db):
        in_memory_db.execute("INSERT INTO actions (document_id) VALUES ('D1');")


class TestForeignKeyEnforcement:
    def test_fk_enforcement_is_on(self, in_memory_db):
        row = in_memory_db.execute("PRAGMA foreign_keys;").fetchone()
        assert row[0] == 1, "PRAGMA foreign_keys should be 1 (enabled)"

    def test_invalid_template_fk_raises(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO recommendations (
                    document_id, source_type, source_module_key, priority, title,
                    library_template_id
                ) VALUES ('D1', 'manual', 'M', 'Low', 'T', 9999);
                """
            )
