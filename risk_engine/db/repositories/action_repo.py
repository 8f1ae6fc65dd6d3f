"""
Repository for assessment actions — the input to executive aggregation.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date

from risk_engine.db.repositories.base import NOW_SQL, BaseRepository
from risk_engine.models.action import Action
from risk_engine.taxonomy.finding_taxonomy import ACTIVE_STATUSES, ActionStatus

logger = logging.getLogger(__name__)


class ActionRepository(BaseRepository):
    """Read/write access to the ``actions`` table."""

    def insert(self, action: Action) -> int:
        """Insert an action and return its ``action_id``."""
        self.execute(
            """
            INSERT INTO actions (
                document_id, title, priority, category, trigger_text,
                status, target_date, owner
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                action.document_id,
                action.title,
                action.priority.value if action.priority else None,
                action.category.value,
                action.trigger_text,
                action.status.value,
                action.target_date.isoformat() if action.target_date else None,
                action.owner,
            ),
        )
        return self.last_insert_rowid()

    def get_for_document(self, document_id: str) -> list[Action]:
        """All actions on a document in insertion order."""
        rows = self.fetchall(
            "SELECT * FROM actions WHERE document_id = ? ORDER BY action_id;",
            (document_id,),
        )
        return [_row_to_action(r) for r in rows]

    def get_open_for_document(self, document_id: str) -> list[Action]:
        """Open and in-progress actions, in insertion order."""
        statuses = sorted(s.value for s in ACTIVE_STATUSES)
        rows = self.fetchall(
            "SELECT * FROM actions WHERE document_id = ? AND status IN (?, ?) "
            "ORDER BY action_id;",
            (document_id, *statuses),
        )
        return [_row_to_action(r) for r in rows]

    def set_status(self, action_id: int, status: ActionStatus) -> bool:
        changed = self.update(
            f"UPDATE actions SET status = ?, updated_at = {NOW_SQL} WHERE action_id = ?;",
            (status.value, action_id),
        )
        return changed > 0


# ── Private helper ────────────────────────────────────────────────────────────


def _row_to_action(row: sqlite3.Row) -> Action:
    return Action(
        action_id=row["action_id"],
        document_id=row["document_id"],
        title=row["title"],
        priority=row["priority"],
        category=row["category"],
        trigger_text=row["trigger_text"],
        status=ActionStatus(row["status"]),
        target_date=date.fromisoformat(row["target_date"]) if row["target_date"] else None,
        owner=row["owner"],
    )
