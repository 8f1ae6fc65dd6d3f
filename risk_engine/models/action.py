"""
Action and assessment-context models consumed by executive aggregation.

An ``Action`` is a remedial item recorded against a fire risk assessment.
Priority may be missing on legacy rows; it is then treated as P4 everywhere
(``effective_priority``).  Unrecognised priority or category strings are
coerced rather than rejected so one malformed row cannot block a summary.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict

from risk_engine.taxonomy.finding_taxonomy import (
    ActionPriority,
    ActionStatus,
    FindingCategory,
    OccupancyRisk,
)

logger = logging.getLogger(__name__)


def _coerce_priority(value: Any) -> Optional[ActionPriority]:
    if value is None or value == "":
        return None
    try:
        return ActionPriority(str(value).strip().upper())
    except ValueError:
        logger.debug("Unrecognised action priority %r treated as absent.", value)
        return None


def _coerce_category(value: Any) -> FindingCategory:
    if value is None or value == "":
        return FindingCategory.OTHER
    try:
        return FindingCategory(value)
    except ValueError:
        logger.debug("Unrecognised finding category %r mapped to Other.", value)
        return FindingCategory.OTHER


class Action(BaseModel):
    """A remedial action on an assessment.

    Attributes:
        action_id:    Auto-assigned DB PK; ``None`` before insertion.
        document_id:  Owning document.
        title:        Short description; may be missing on legacy rows.
        priority:     P1..P4, or ``None`` (treated as P4).
        category:     Finding category; unknown values map to ``Other``.
        trigger_text: Why the action was raised.
        status:       Lifecycle status.
        target_date:  Due date, if set.
        owner:        Responsible person, if set.
    """

    model_config = ConfigDict(frozen=True)

    action_id: Optional[int] = None
    document_id: str
    title: Optional[str] = None
    priority: Annotated[Optional[ActionPriority], BeforeValidator(_coerce_priority)] = None
    category: Annotated[FindingCategory, BeforeValidator(_coerce_category)] = FindingCategory.OTHER
    trigger_text: Optional[str] = None
    status: ActionStatus = ActionStatus.OPEN
    target_date: Optional[date] = None
    owner: Optional[str] = None

    @property
    def effective_priority(self) -> ActionPriority:
        return self.priority if self.priority is not None else ActionPriority.P4


class AssessmentContext(BaseModel):
    """Premises context used to phrase the executive tone paragraph."""

    model_config = ConfigDict(frozen=True)

    occupancy_risk: OccupancyRisk = OccupancyRisk.NON_SLEEPING
    storeys: Optional[int] = None
