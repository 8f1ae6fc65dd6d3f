"""
Overall risk profile: section-grade mean and sector-weighted risk score.

Overall grade
-------------
Mean of the recorded section grades (numeric and > 0); no grades → 3.
Banded: < 2 Critical, < 3 High, < 4 Medium, otherwise Low.

Sector-weighted risk score
--------------------------
Six dimension scores on a 0–100 scale are combined with the weights of the
site's industry sector (each profile sums to 1):

    score = round_half_up(Σ dimension score × sector weight)

Banded: ≥ 85 Very Good, ≥ 70 Good, ≥ 55 Tolerable, ≥ 40 Poor, else
Very Poor.  Unknown sectors use the General Industrial profile.  A dimension
without a score contributes 0.

All functions here are pure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from risk_engine.scoring.fire_protection import round_half_up
from risk_engine.taxonomy.finding_taxonomy import (
    DIMENSION_LABELS,
    GradeBand,
    RiskBand,
    RiskDimension,
)

logger = logging.getLogger(__name__)

DEFAULT_GRADE = 3.0
DEFAULT_SECTOR = "General Industrial"


def _weights(construction, protection, detection, management, hazards, bi) -> dict:
    return {
        RiskDimension.CONSTRUCTION: Decimal(construction),
        RiskDimension.PROTECTION: Decimal(protection),
        RiskDimension.DETECTION: Decimal(detection),
        RiskDimension.MANAGEMENT: Decimal(management),
        RiskDimension.HAZARDS: Decimal(hazards),
        RiskDimension.BI: Decimal(bi),
    }


@dataclass(frozen=True)
class SectorProfile:
    name: str
    weights: Mapping[RiskDimension, Decimal]
    description: str = ""


SECTOR_PROFILES: dict[str, SectorProfile] = {
    p.name: p
    for p in (
        SectorProfile(
            "Food & Beverage",
            _weights("0.35", "0.30", "0.15", "0.10", "0.05", "0.05"),
            "Combustible construction, insulated panels and ceiling-void fire "
            "spread drive losses; construction and protection weigh most.",
        ),
        SectorProfile(
            "Foundry / Metal",
            _weights("0.15", "0.20", "0.15", "0.25", "0.15", "0.10"),
            "Non-combustible buildings but molten metal, high-energy plant and "
            "critical equipment; management and special hazards weigh more.",
        ),
        SectorProfile(
            "Chemical / ATEX",
            _weights("0.15", "0.25", "0.15", "0.20", "0.20", "0.05"),
            "Flammable materials, explosive atmospheres and reactive processes; "
            "protection, management and special hazards are prioritised.",
        ),
        SectorProfile(
            "Logistics / Warehouse",
            _weights("0.30", "0.35", "0.15", "0.10", "0.05", "0.05"),
            "High-piled storage in large open spaces; protection coverage and "
            "construction weigh most.",
        ),
        SectorProfile(
            "Office / Commercial",
            _weights("0.20", "0.20", "0.20", "0.15", "0.05", "0.20"),
            "Lower fire risk with significant business interruption exposure.",
        ),
        SectorProfile(
            "General Industrial",
            _weights("0.25", "0.25", "0.15", "0.15", "0.10", "0.10"),
            "Balanced weighting for typical manufacturing.",
        ),
        SectorProfile(
            "Other",
            _weights("0.25", "0.25", "0.15", "0.15", "0.10", "0.10"),
            "Default balanced weighting.",
        ),
    )
}

RISK_BAND_THRESHOLDS: tuple[tuple[int, RiskBand], ...] = (
    (85, RiskBand.VERY_GOOD),
    (70, RiskBand.GOOD),
    (55, RiskBand.TOLERABLE),
    (40, RiskBand.POOR),
)


# ── Section grades ────────────────────────────────────────────────────────────


def calculate_overall_grade(section_grades: Mapping[str, object]) -> float:
    """Mean of the positive numeric section grades; 3.0 when there are none."""
    grades = [
        float(g) for g in section_grades.values()
        if isinstance(g, (int, float)) and not isinstance(g, bool) and g > 0
    ]
    if not grades:
        return DEFAULT_GRADE
    return sum(grades) / len(grades)


def grade_band(grade: float) -> GradeBand:
    if grade < 2:
        return GradeBand.CRITICAL
    if grade < 3:
        return GradeBand.HIGH
    if grade < 4:
        return GradeBand.MEDIUM
    return GradeBand.LOW


def grade_priority_level(grade: int) -> GradeBand:
    """Priority shown for a single 1–5 grade: 1 Critical, 2 High, 3 Medium, else Low."""
    return {1: GradeBand.CRITICAL, 2: GradeBand.HIGH, 3: GradeBand.MEDIUM}.get(
        grade, GradeBand.LOW
    )


# ── Sector-weighted risk score ────────────────────────────────────────────────


def get_sector_profile(sector: Optional[str]) -> SectorProfile:
    """Profile for ``sector``; General Industrial when unknown."""
    profile = SECTOR_PROFILES.get(sector or "")
    if profile is None:
        logger.warning("Unknown sector %r; using %s weights.", sector, DEFAULT_SECTOR)
        return SECTOR_PROFILES[DEFAULT_SECTOR]
    return profile


def _score(scores: Mapping[RiskDimension, float], dimension: RiskDimension) -> Decimal:
    value = scores.get(dimension)
    return Decimal(str(value)) if value is not None else Decimal(0)


def calculate_overall_risk_score(
    scores: Mapping[RiskDimension, float],
    weights: Mapping[RiskDimension, Decimal],
) -> int:
    total = sum((_score(scores, d) * weights[d] for d in RiskDimension), Decimal(0))
    return round_half_up(total)


def risk_band(score: float) -> RiskBand:
    for threshold, band in RISK_BAND_THRESHOLDS:
        if score >= threshold:
            return band
    return RiskBand.VERY_POOR


@dataclass(frozen=True)
class DimensionContribution:
    """One dimension's share of the overall risk score."""

    dimension: RiskDimension
    score: float
    weight: Decimal
    contribution: Decimal

    @property
    def name(self) -> str:
        return DIMENSION_LABELS[self.dimension]

    @property
    def percentage(self) -> str:
        """Sector weight as a whole percentage, e.g. ``"35%"``."""
        return f"{round_half_up(self.weight * 100)}%"


def dimension_contributions(
    scores: Mapping[RiskDimension, float],
    weights: Mapping[RiskDimension, Decimal],
) -> list[DimensionContribution]:
    """Contributions in fixed dimension order."""
    return [
        DimensionContribution(
            dimension=d,
            score=float(_score(scores, d)),
            weight=weights[d],
            contribution=_score(scores, d) * weights[d],
        )
        for d in RiskDimension
    ]


def lowest_contributors(
    contributions: list[DimensionContribution], count: int = 2
) -> list[DimensionContribution]:
    """The ``count`` smallest contributions; ties keep dimension order."""
    return sorted(contributions, key=lambda c: c.contribution)[:count]


@dataclass(frozen=True)
class RiskProfile:
    """Sector-weighted risk score with its breakdown."""

    sector: str
    score: int
    band: RiskBand
    contributions: list[DimensionContribution]

    @property
    def lowest(self) -> list[DimensionContribution]:
        return lowest_contributors(self.contributions)


def compute_risk_profile(
    scores: Mapping[RiskDimension, float], sector: Optional[str]
) -> RiskProfile:
    """Score, band and per-dimension breakdown for a site in ``sector``."""
    profile = get_sector_profile(sector)
    score = calculate_overall_risk_score(scores, profile.weights)
    return RiskProfile(
        sector=profile.name,
        score=score,
        band=risk_band(score),
        contributions=dimension_contributions(scores, profile.weights),
    )
