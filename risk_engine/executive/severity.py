"""
Severity classification of an open-action set.

``compute_summary`` delegates the outcome verdict and the material-deficiency
flag to a ``SeverityClassifier``.  Callers with their own policy pass an
object implementing the protocol; ``DefaultSeverityClassifier`` carries the
platform's standard policy:

  any P1         → MaterialLifeSafetyRiskPresent  (material deficiency)
  3 or more P2   → SignificantDeficiencies
  1 or 2 P2      → ImprovementsRequired
  otherwise      → SatisfactoryWithImprovements

Only explicit priorities count; an action with no priority never escalates
the outcome.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from risk_engine.models.action import Action, AssessmentContext
from risk_engine.taxonomy.finding_taxonomy import ActionPriority, ExecutiveOutcome

SIGNIFICANT_P2_COUNT = 3


class SeverityClassifier(Protocol):
    """Outcome policy consumed by executive aggregation."""

    def derive_outcome(self, actions: Sequence[Action]) -> ExecutiveOutcome: ...

    def is_material_deficiency(
        self, actions: Sequence[Action], context: AssessmentContext
    ) -> bool: ...


def _count(actions: Sequence[Action], priority: ActionPriority) -> int:
    return sum(1 for a in actions if a.priority == priority)


class DefaultSeverityClassifier:
    """Standard P1/P2-count policy."""

    def derive_outcome(self, actions: Sequence[Action]) -> ExecutiveOutcome:
        p1 = _count(actions, ActionPriority.P1)
        p2 = _count(actions, ActionPriority.P2)
        if p1 >= 1:
            return ExecutiveOutcome.MATERIAL_LIFE_SAFETY_RISK_PRESENT
        if p2 >= SIGNIFICANT_P2_COUNT:
            return ExecutiveOutcome.SIGNIFICANT_DEFICIENCIES
        if p2 >= 1:
            return ExecutiveOutcome.IMPROVEMENTS_REQUIRED
        return ExecutiveOutcome.SATISFACTORY_WITH_IMPROVEMENTS

    def is_material_deficiency(
        self, actions: Sequence[Action], context: AssessmentContext
    ) -> bool:
        return _count(actions, ActionPriority.P1) > 0
