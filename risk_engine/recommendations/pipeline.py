"""
Recommendation persistence pipeline: a low rating becomes exactly one durable record.

``ensure_recommendation_from_rating`` is idempotent per identity
(document, canonical module key, factor key, variant):

  1. Absent/invalid rating or rating > 2  → no-op, returns ``None``.
     Existing auto recommendations are left alone; improving a rating
     never deletes an assessor-visible record.
  2. The module key is resolved to its canonical key.
  3. An active auto record for the identity already exists → its id.
  4. Otherwise the first matching active library template (highest
     ``sort_priority`` first) supplies the text; blank template fields and
     the no-template case fall back to generated text.
  5. The record is inserted with ``INSERT … ON CONFLICT DO NOTHING``
     against the partial UNIQUE identity index, then re-read, so racing
     callers all return the id of the one surviving row.

Writes run inside a ``SAVEPOINT``.  The pipeline never commits or rolls back
the caller's transaction: a failure undoes only its own statements, and an
enclosing transaction is left open for the caller to finish.  With no
enclosing transaction, releasing the savepoint makes the write durable.

Store failures (``sqlite3.Error``, including busy timeouts) and unusable
stored data (``ValueError``) are logged at ERROR and surfaced as
``None`` / ``False``: auto-suggestions must never break the caller's save path.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from risk_engine.db.repositories.recommendation_repo import RecommendationRepository
from risk_engine.db.repositories.template_repo import TemplateRepository
from risk_engine.models.recommendation import Recommendation
from risk_engine.models.survey import coerce_rating
from risk_engine.recommendations.templates import (
    find_matching_template,
    merge_template_text,
    rating_priority,
)
from risk_engine.recommendations.triggers import INADEQUATE_THRESHOLD
from risk_engine.taxonomy.finding_taxonomy import ActionStatus, SourceType
from risk_engine.taxonomy.module_catalog import ModuleCatalog

logger = logging.getLogger(__name__)

_SAVEPOINT = "recommendation_pipeline"


class RecommendationPipeline:
    """Creates and transitions auto-generated recommendations.

    Args:
        conn:    Open connection (see ``risk_engine.db.connection``).
        catalog: Module catalog used for alias resolution.  Without one,
                 module keys are stored as given.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        catalog: Optional[ModuleCatalog] = None,
    ) -> None:
        self.conn = conn
        self.catalog = catalog
        self.recommendations = RecommendationRepository(conn)
        self.templates = TemplateRepository(conn)

    def _canonical(self, module_key: str) -> str:
        return self.catalog.resolve_canonical_key(module_key) if self.catalog else module_key

    @contextmanager
    def _savepoint(self) -> Iterator[None]:
        """Scope the enclosed statements to a savepoint on ``self.conn``."""
        self.conn.execute(f"SAVEPOINT {_SAVEPOINT};")
        try:
            yield
        except Exception:
            # SQLite may already have rolled back the whole transaction.
            if self.conn.in_transaction:
                self.conn.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT};")
                self.conn.execute(f"RELEASE SAVEPOINT {_SAVEPOINT};")
            raise
        self.conn.execute(f"RELEASE SAVEPOINT {_SAVEPOINT};")

    def ensure_recommendation_from_rating(
        self,
        document_id: str,
        module_key: str,
        factor_key: Optional[str],
        rating: object,
        industry_key: Optional[str] = None,
        variant: str = "",
    ) -> Optional[int]:
        """Ensure an auto recommendation exists for an inadequate rating.

        Returns:
            The recommendation id, or ``None`` when the rating does not call
            for one or the store failed.
        """
        value = coerce_rating(rating)
        if value is None or value > INADEQUATE_THRESHOLD:
            logger.debug(
                "No recommendation for %s/%s/%s: rating %r.",
                document_id, module_key, factor_key, rating,
            )
            return None

        canonical = self._canonical(module_key)
        factor = factor_key or ""

        try:
            with self._savepoint():
                existing = self.recommendations.find_active_auto(
                    document_id, canonical, factor, variant
                )
                if existing is not None:
                    logger.debug(
                        "Auto recommendation %s already exists for %s/%s/%s.",
                        existing.recommendation_id, document_id, canonical, factor,
                    )
                    return existing.recommendation_id

                template = find_matching_template(
                    self.templates.get_active(), canonical, factor_key, value, industry_key
                )
                text = merge_template_text(template, factor_key, value)

                rec = Recommendation(
                    document_id=document_id,
                    source_type=SourceType.AUTO,
                    source_module_key=canonical,
                    source_factor_key=factor,
                    variant=variant,
                    priority=rating_priority(value),
                    title=text.title,
                    observation=text.observation,
                    action_required=text.action_required,
                    hazard=text.hazard,
                    library_template_id=template.template_id if template else None,
                )
                rec_id = self.recommendations.insert_auto_if_absent(rec)

        except sqlite3.Error as exc:
            logger.error(
                "Store error ensuring recommendation for %s/%s/%s: %s",
                document_id, canonical, factor, exc,
            )
            return None
        except ValueError as exc:
            logger.error(
                "Invalid data ensuring recommendation for %s/%s/%s: %s",
                document_id, canonical, factor, exc,
            )
            return None

        logger.info(
            "Ensured auto recommendation %s for %s/%s/%s (template=%s).",
            rec_id, document_id, canonical, factor,
            template.template_id if template else None,
        )
        return rec_id

    def has_auto_recommendation(
        self,
        document_id: str,
        module_key: str,
        factor_key: Optional[str] = None,
        variant: str = "",
    ) -> bool:
        """True if an active auto record exists for the identity; False on store errors."""
        try:
            return self.recommendations.find_active_auto(
                document_id, self._canonical(module_key), factor_key or "", variant
            ) is not None
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Store error checking recommendation for %s: %s", document_id, exc)
            return False

    def suppress_recommendation(self, recommendation_id: int) -> bool:
        """Suppress a recommendation, freeing its identity for a new auto record."""
        try:
            with self._savepoint():
                changed = self.recommendations.suppress(recommendation_id)
        except sqlite3.Error as exc:
            logger.error("Store error suppressing recommendation %s: %s", recommendation_id, exc)
            return False
        return changed

    def complete_recommendation(self, recommendation_id: int) -> bool:
        """Mark a recommendation complete."""
        try:
            with self._savepoint():
                changed = self.recommendations.set_status(recommendation_id, ActionStatus.COMPLETE)
        except sqlite3.Error as exc:
            logger.error("Store error completing recommendation %s: %s", recommendation_id, exc)
            return False
        return changed
