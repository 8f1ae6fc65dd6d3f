"""
Executive aggregation: open actions → outcome, counts, top issues, tone.

Ordering of top issues
----------------------
Actions are ranked by an explicit sort key:

  (priority rank,
   0 if band is High/VeryHigh and category is high-priority else 1,
   original index)

so equal keys keep their input order without relying on sort stability.
A missing priority ranks as P4.  Only the first ``TOP_ISSUE_LIMIT`` actions
become top issues, and trigger text is carried only for P1/P2.

Tone paragraph
--------------
One sentence per axis in the fixed order complexity → occupancy → outcome,
joined with single spaces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from risk_engine.executive.severity import DefaultSeverityClassifier, SeverityClassifier
from risk_engine.models.action import Action, AssessmentContext
from risk_engine.taxonomy.finding_taxonomy import (
    ACTIVE_STATUSES,
    HIGH_PRIORITY_CATEGORIES,
    ActionPriority,
    ComplexityBand,
    ExecutiveOutcome,
    FindingCategory,
    OccupancyRisk,
)

logger = logging.getLogger(__name__)

TOP_ISSUE_LIMIT = 3
UNTITLED_ACTION = "Untitled action"

_HIGH_COMPLEXITY_BANDS = frozenset({ComplexityBand.HIGH, ComplexityBand.VERY_HIGH})
_TRIGGER_PRIORITIES = frozenset({ActionPriority.P1, ActionPriority.P2})

# ── Tone sentences ────────────────────────────────────────────────────────────

COMPLEXITY_SENTENCES: dict[ComplexityBand, str] = {
    ComplexityBand.VERY_HIGH: (
        "The premises comprises a complex building with significant reliance on "
        "structural and active fire protection systems. Effective maintenance and "
        "management controls are critical."
    ),
    ComplexityBand.HIGH: (
        "The building presents structural and occupancy complexity which increases "
        "reliance on fire protection measures."
    ),
    ComplexityBand.MODERATE: (
        "The building has moderate complexity requiring appropriate fire safety provisions."
    ),
    ComplexityBand.LOW: (
        "The premises presents a relatively straightforward fire safety context."
    ),
}

OCCUPANCY_SENTENCES: dict[OccupancyRisk, str] = {
    OccupancyRisk.VULNERABLE: (
        "The presence of vulnerable occupants increases the criticality of "
        "maintaining robust fire safety systems."
    ),
    OccupancyRisk.SLEEPING: (
        "As sleeping accommodation, occupants may be less alert to fire cues, "
        "requiring higher standards of detection and alarm provision."
    ),
    OccupancyRisk.NON_SLEEPING: (
        "Occupants are expected to be awake and familiar with the premises."
    ),
}

OUTCOME_SENTENCES: dict[ExecutiveOutcome, str] = {
    ExecutiveOutcome.MATERIAL_LIFE_SAFETY_RISK_PRESENT: (
        "Material life safety deficiencies have been identified which require "
        "immediate attention."
    ),
    ExecutiveOutcome.SIGNIFICANT_DEFICIENCIES: (
        "Significant deficiencies have been identified which require prompt "
        "remedial action."
    ),
    ExecutiveOutcome.IMPROVEMENTS_REQUIRED: (
        "Improvements are required to achieve compliance with fire safety standards."
    ),
    ExecutiveOutcome.SATISFACTORY_WITH_IMPROVEMENTS: (
        "Overall, fire safety arrangements are satisfactory subject to the "
        "improvements identified."
    ),
}


# ── Output types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TopIssue:
    """One ranked issue in the executive summary.

    ``trigger_text`` is ``None`` for P3/P4 issues.
    """

    title: str
    priority: ActionPriority
    category: FindingCategory
    trigger_text: Optional[str] = None


@dataclass(frozen=True)
class ExecutiveSummary:
    computed_outcome: ExecutiveOutcome
    counts: dict[str, int]
    top_issues: list[TopIssue] = field(default_factory=list)
    material_deficiency: bool = False
    tone_paragraph: str = ""


# ── Aggregation ───────────────────────────────────────────────────────────────


def sort_actions(actions: Sequence[Action], complexity_band: ComplexityBand) -> list[Action]:
    """Rank actions for the top-issue list."""
    promote = complexity_band in _HIGH_COMPLEXITY_BANDS

    def key(item: tuple[int, Action]) -> tuple[int, int, int]:
        index, action = item
        category_rank = 0 if promote and action.category in HIGH_PRIORITY_CATEGORIES else 1
        return (action.effective_priority.rank, category_rank, index)

    return [action for _, action in sorted(enumerate(actions), key=key)]


def _to_top_issue(action: Action) -> TopIssue:
    priority = action.effective_priority
    return TopIssue(
        title=action.title or UNTITLED_ACTION,
        priority=priority,
        category=action.category,
        trigger_text=action.trigger_text if priority in _TRIGGER_PRIORITIES else None,
    )


def count_by_priority(actions: Sequence[Action]) -> dict[str, int]:
    """Tally of explicit priorities; actions with no priority are not counted."""
    counts = {p.value: 0 for p in ActionPriority}
    for action in actions:
        if action.priority is not None:
            counts[action.priority.value] += 1
    return counts


def build_tone_paragraph(
    complexity_band: ComplexityBand,
    occupancy_risk: OccupancyRisk,
    outcome: ExecutiveOutcome,
) -> str:
    return " ".join([
        COMPLEXITY_SENTENCES[complexity_band],
        OCCUPANCY_SENTENCES[occupancy_risk],
        OUTCOME_SENTENCES[outcome],
    ])


def compute_summary(
    open_actions: Sequence[Action],
    complexity_band: ComplexityBand,
    context: AssessmentContext,
    classifier: Optional[SeverityClassifier] = None,
) -> ExecutiveSummary:
    """Aggregate open actions into an executive summary.

    Args:
        open_actions:    Actions for the document; anything not open or in
                         progress is filtered out again here.
        complexity_band: Premises complexity band.
        context:         Occupancy context for the severity policy and tone.
        classifier:      Severity policy. Defaults to ``DefaultSeverityClassifier``.
    """
    classifier = classifier or DefaultSeverityClassifier()
    active = [a for a in open_actions if a.status in ACTIVE_STATUSES]
    if len(active) != len(open_actions):
        logger.debug("Ignored %d closed action(s).", len(open_actions) - len(active))

    outcome = classifier.derive_outcome(active)
    ranked = sort_actions(active, complexity_band)

    return ExecutiveSummary(
        computed_outcome=outcome,
        counts=count_by_priority(active),
        top_issues=[_to_top_issue(a) for a in ranked[:TOP_ISSUE_LIMIT]],
        material_deficiency=classifier.is_material_deficiency(active, context),
        tone_paragraph=build_tone_paragraph(complexity_band, context.occupancy_risk, outcome),
    )
