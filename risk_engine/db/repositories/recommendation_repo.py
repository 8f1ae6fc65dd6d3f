"""
Repository for recommendations — idempotent auto inserts, lookups, transitions.

Recommendations are never deleted.  They move through statuses
(open → in_progress → complete / deferred / not_applicable) or are
suppressed, which frees their identity for a fresh auto-generated record.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from risk_engine.db.repositories.base import NOW_SQL, BaseRepository
from risk_engine.models.recommendation import Recommendation
from risk_engine.taxonomy.finding_taxonomy import (
    ActionStatus,
    RecommendationPriority,
    SourceType,
)

logger = logging.getLogger(__name__)

_INSERT_COLUMNS = """
    document_id, source_type, source_module_key, source_factor_key, variant,
    priority, status, is_suppressed, title, observation, action_required,
    hazard, library_template_id, target_date, owner
"""

_ACTIVE_AUTO_WHERE = """
    document_id = ? AND source_module_key = ? AND source_factor_key = ?
    AND variant = ? AND source_type = 'auto' AND is_suppressed = 0
"""


def _insert_params(rec: Recommendation) -> tuple:
    return (
        rec.document_id,
        rec.source_type.value,
        rec.source_module_key,
        rec.source_factor_key,
        rec.variant,
        rec.priority.value,
        rec.status.value,
        int(rec.is_suppressed),
        rec.title,
        rec.observation,
        rec.action_required,
        rec.hazard,
        rec.library_template_id,
        rec.target_date.isoformat() if rec.target_date else None,
        rec.owner,
    )


class RecommendationRepository(BaseRepository):
    """Read/write access to the ``recommendations`` table."""

    def insert(self, rec: Recommendation) -> int:
        """Insert any recommendation (typically manual) and return its id.

        Raises:
            sqlite3.IntegrityError: If ``rec`` is an active auto record whose
                identity is already taken.
        """
        self.execute(
            f"INSERT INTO recommendations ({_INSERT_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            _insert_params(rec),
        )
        return self.last_insert_rowid()

    def insert_auto_if_absent(self, rec: Recommendation) -> Optional[int]:
        """Insert an active auto record unless its identity is taken.

        The insert is conditional on the partial UNIQUE index and is followed
        by a re-read, so concurrent callers all get the id of the single
        surviving row.  Nothing is committed here; the transaction belongs to
        the caller.

        Returns:
            The id of the active auto record for ``rec.identity``.
        """
        if not rec.is_active_auto:
            raise ValueError("insert_auto_if_absent requires an active auto recommendation.")

        self.execute(
            f"INSERT INTO recommendations ({_INSERT_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT DO NOTHING;",
            _insert_params(rec),
        )
        existing = self.find_active_auto(*rec.identity)
        return existing.recommendation_id if existing is not None else None

    def find_active_auto(
        self,
        document_id: str,
        source_module_key: str,
        source_factor_key: str = "",
        variant: str = "",
    ) -> Optional[Recommendation]:
        """The active (non-suppressed) auto record for an identity, if any."""
        row = self.fetchone(
            f"SELECT * FROM recommendations WHERE {_ACTIVE_AUTO_WHERE};",
            (document_id, source_module_key, source_factor_key, variant),
        )
        return _row_to_recommendation(row) if row else None

    def get_by_id(self, recommendation_id: int) -> Optional[Recommendation]:
        row = self.fetchone(
            "SELECT * FROM recommendations WHERE recommendation_id = ?;",
            (recommendation_id,),
        )
        return _row_to_recommendation(row) if row else None

    def get_for_document(
        self,
        document_id: str,
        include_suppressed: bool = False,
    ) -> list[Recommendation]:
        """All recommendations on a document, oldest first."""
        sql = "SELECT * FROM recommendations WHERE document_id = ?"
        if not include_suppressed:
            sql += " AND is_suppressed = 0"
        rows = self.fetchall(sql + " ORDER BY recommendation_id;", (document_id,))
        return [_row_to_recommendation(r) for r in rows]

    def count_active_auto(self, document_id: str) -> int:
        n = self.scalar(
            "SELECT COUNT(*) FROM recommendations "
            "WHERE document_id = ? AND source_type = 'auto' AND is_suppressed = 0;",
            (document_id,),
        )
        return int(n or 0)

    def suppress(self, recommendation_id: int) -> bool:
        """Mark a recommendation suppressed.  Returns False if it was not found
        or already suppressed."""
        changed = self.update(
            f"UPDATE recommendations SET is_suppressed = 1, updated_at = {NOW_SQL} "
            "WHERE recommendation_id = ? AND is_suppressed = 0;",
            (recommendation_id,),
        )
        return changed > 0

    def set_status(self, recommendation_id: int, status: ActionStatus) -> bool:
        changed = self.update(
            f"UPDATE recommendations SET status = ?, updated_at = {NOW_SQL} "
            "WHERE recommendation_id = ?;",
            (status.value, recommendation_id),
        )
        return changed > 0


# ── Private helper ────────────────────────────────────────────────────────────


def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    return Recommendation(
        recommendation_id=row["recommendation_id"],
        document_id=row["document_id"],
        source_type=SourceType(row["source_type"]),
        source_module_key=row["source_module_key"],
        source_factor_key=row["source_factor_key"],
        variant=row["variant"],
        priority=RecommendationPriority(row["priority"]),
        status=ActionStatus(row["status"]),
        is_suppressed=bool(row["is_suppressed"]),
        title=row["title"],
        observation=row["observation"],
        action_required=row["action_required"],
        hazard=row["hazard"],
        library_template_id=row["library_template_id"],
        target_date=date.fromisoformat(row["target_date"]) if row["target_date"] else None,
        owner=row["owner"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
    )
