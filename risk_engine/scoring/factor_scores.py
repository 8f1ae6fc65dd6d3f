"""
Weighted risk-factor scores for a risk-engineering survey.

For every factor enabled for the site's occupancy:

    score = rating × industry weight

Absent ratings are left out of both the total and the maximum achievable
(``5 × weight``), so a partly completed survey reports a percentage of what
has actually been assessed rather than a deflated one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from risk_engine.models.survey import MAX_RATING, coerce_rating
from risk_engine.weighting.models import WeightingTables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorScore:
    """Weighted score for one factor."""

    factor_key: str
    rating: Optional[int]
    weight: float

    @property
    def score(self) -> Optional[float]:
        return None if self.rating is None else self.rating * self.weight

    @property
    def max_score(self) -> float:
        return MAX_RATING * self.weight


@dataclass(frozen=True)
class FactorScoreSummary:
    """Aggregate of the enabled factors for one survey."""

    industry_key: Optional[str]
    occupancy_key: Optional[str]
    factors: list[FactorScore] = field(default_factory=list)

    @property
    def total_score(self) -> float:
        return sum(f.score for f in self.factors if f.score is not None)

    @property
    def max_achievable(self) -> float:
        return sum(f.max_score for f in self.factors if f.rating is not None)

    @property
    def percentage(self) -> Optional[float]:
        """Total as a percentage of the achievable maximum; ``None`` if nothing rated."""
        if self.max_achievable == 0:
            return None
        return round(100.0 * self.total_score / self.max_achievable, 1)

    @property
    def rated_count(self) -> int:
        return sum(1 for f in self.factors if f.rating is not None)


def compute_factor_scores(
    ratings: Mapping[str, object],
    industry_key: Optional[str],
    occupancy_key: Optional[str],
    tables: WeightingTables,
) -> FactorScoreSummary:
    """Score the factors enabled for ``occupancy_key``.

    Args:
        ratings:       factor key -> raw rating (coerced to 1..5 or absent).
        industry_key:  Selects the weight row; unknown keys use the default weight.
        occupancy_key: Selects the enabled factor set.
        tables:        Loaded weighting tables.

    Returns:
        ``FactorScoreSummary`` with one entry per enabled factor, sorted by key.
    """
    enabled = tables.get_enabled_factors(occupancy_key)
    ignored = sorted(set(ratings) - enabled)
    if ignored:
        logger.debug("Ratings for factors not enabled for %r ignored: %s", occupancy_key, ignored)

    factors = [
        FactorScore(
            factor_key=key,
            rating=coerce_rating(ratings.get(key)),
            weight=tables.get_factor_weight(industry_key, key),
        )
        for key in sorted(enabled)
    ]
    return FactorScoreSummary(
        industry_key=industry_key,
        occupancy_key=occupancy_key,
        factors=factors,
    )
