"""
Repository for the recommendation template library.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from risk_engine.db.repositories.base import BaseRepository
from risk_engine.models.recommendation import RecommendationTemplate, RelevanceRules
from risk_engine.taxonomy.finding_taxonomy import RecommendationPriority

logger = logging.getLogger(__name__)


class TemplateRepository(BaseRepository):
    """Read/write access to the ``recommendation_templates`` table."""

    def insert(self, template: RecommendationTemplate) -> int:
        """Insert a template and return its ``template_id``."""
        self.execute(
            """
            INSERT INTO recommendation_templates (
                title, observation, action_required, hazard,
                default_priority, sort_priority, is_active, rules_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                template.title,
                template.observation,
                template.action_required,
                template.hazard,
                template.default_priority.value,
                template.sort_priority,
                int(template.is_active),
                template.rules.model_dump_json(exclude_defaults=True),
            ),
        )
        return self.last_insert_rowid()

    def insert_many(self, templates: list[RecommendationTemplate]) -> list[int]:
        return [self.insert(t) for t in templates]

    def get_by_id(self, template_id: int) -> Optional[RecommendationTemplate]:
        row = self.fetchone(
            "SELECT * FROM recommendation_templates WHERE template_id = ?;",
            (template_id,),
        )
        return _row_to_template(row) if row else None

    def get_active(self) -> list[RecommendationTemplate]:
        """Active templates, highest ``sort_priority`` first, then oldest first.

        Rows whose priority or relevance rules no longer parse are skipped
        with a WARNING rather than failing the whole library.
        """
        rows = self.fetchall(
            "SELECT * FROM recommendation_templates WHERE is_active = 1 "
            "ORDER BY sort_priority DESC, template_id ASC;"
        )
        templates: list[RecommendationTemplate] = []
        for row in rows:
            try:
                templates.append(_row_to_template(row))
            except ValueError as exc:
                # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors.
                logger.warning("Skipping malformed template %s: %s", row["template_id"], exc)
        return templates

    def deactivate(self, template_id: int) -> bool:
        changed = self.update(
            "UPDATE recommendation_templates SET is_active = 0 WHERE template_id = ?;",
            (template_id,),
        )
        return changed > 0

    def count(self) -> int:
        return int(self.scalar("SELECT COUNT(*) FROM recommendation_templates;") or 0)


# ── Private helper ────────────────────────────────────────────────────────────


def _row_to_template(row: sqlite3.Row) -> RecommendationTemplate:
    return RecommendationTemplate(
        template_id=row["template_id"],
        title=row["title"],
        observation=row["observation"],
        action_required=row["action_required"],
        hazard=row["hazard"],
        default_priority=RecommendationPriority(row["default_priority"]),
        sort_priority=row["sort_priority"],
        is_active=bool(row["is_active"]),
        rules=RelevanceRules.model_validate(json.loads(row["rules_json"] or "{}")),
    )
