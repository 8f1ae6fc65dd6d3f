"""
Construction & combustibility rating (1–5) for risk-engineering documents.

Building rating
---------------
Starts at 3 (adequate) and is adjusted by keywords in the assessor's
free-text construction fields (case-insensitive):

  frame         steel / concrete / reinforced      +1
                timber / wood                      -2
  roof/ceiling  non-combustible / concrete / metal +0.5
                combustible / timber / wood        -1.5
  walls         non-combustible / brick / concrete +0.5
                combustible / metal clad           -0.5
  combustible   < 10 %                             +1
  area          < 25 %                             +0.5
                > 50 %                             -1

Within each row the first keyword group that matches wins, so
"non-combustible" never counts as "combustible".  The sum is rounded half-up
and clamped to 1..5.

Site rating
-----------
An assessor site rating in the payload wins.  Otherwise the worst (lowest)
building rating is the site rating; no buildings means 3.

``resolve_construction_rating`` adds the document-level order: an assessor
section grade, then the construction module, then the default 3.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from risk_engine.models.survey import BuildingConstruction, ConstructionPayload, coerce_rating
from risk_engine.scoring.fire_protection import clamp, round_half_up

logger = logging.getLogger(__name__)

BASE_RATING = Decimal(3)
DEFAULT_RATING = 3

# (keywords, adjustment) pairs; the first matching pair applies.
FRAME_RULES: tuple[tuple[tuple[str, ...], Decimal], ...] = (
    (("steel", "concrete", "reinforced"), Decimal("1")),
    (("timber", "wood"), Decimal("-2")),
)
ROOF_RULES: tuple[tuple[tuple[str, ...], Decimal], ...] = (
    (("non-combustible", "concrete", "metal"), Decimal("0.5")),
    (("combustible", "timber", "wood"), Decimal("-1.5")),
)
WALL_RULES: tuple[tuple[tuple[str, ...], Decimal], ...] = (
    (("non-combustible", "brick", "concrete"), Decimal("0.5")),
    (("combustible", "metal clad"), Decimal("-0.5")),
)


class RatingSource(StrEnum):
    SECTION_GRADE = "section_grade"
    SITE_RATING = "site_rating"
    COMPUTED = "computed"
    DEFAULT = "default"


@dataclass(frozen=True)
class ConstructionRating:
    """A construction rating and where it came from."""

    rating: int
    source: RatingSource
    details: str = ""


def _keyword_adjustment(text: Optional[str], rules) -> Decimal:
    value = (text or "").lower()
    for keywords, adjustment in rules:
        if any(keyword in value for keyword in keywords):
            return adjustment
    return Decimal(0)


def _combustible_area_adjustment(percent: Optional[float]) -> Decimal:
    if percent is None:
        return Decimal(0)
    if percent < 10:
        return Decimal("1")
    if percent < 25:
        return Decimal("0.5")
    if percent > 50:
        return Decimal("-1")
    return Decimal(0)


def compute_building_construction_rating(building: BuildingConstruction) -> int:
    """Construction rating 1–5 for one building."""
    raw = (
        BASE_RATING
        + _keyword_adjustment(building.frame_type, FRAME_RULES)
        + _keyword_adjustment(building.roof_ceiling_combustibility, ROOF_RULES)
        + _keyword_adjustment(building.wall_combustibility, WALL_RULES)
        + _combustible_area_adjustment(building.area_weighted_combustible_percent)
    )
    return clamp(round_half_up(raw))


def compute_site_construction_rating(payload: ConstructionPayload) -> ConstructionRating:
    """Site construction rating from the construction module payload."""
    site_rating = payload.ratings.site_rating_1_5
    if site_rating is not None:
        return ConstructionRating(site_rating, RatingSource.SITE_RATING, "From the site rating.")

    if not payload.buildings:
        return ConstructionRating(
            DEFAULT_RATING, RatingSource.DEFAULT, "No buildings defined."
        )

    worst = min(compute_building_construction_rating(b) for b in payload.buildings)
    return ConstructionRating(
        worst,
        RatingSource.COMPUTED,
        f"Worst of {len(payload.buildings)} building(s): {worst}.",
    )


def resolve_construction_rating(
    section_grade: object = None,
    payload: Optional[ConstructionPayload] = None,
) -> ConstructionRating:
    """Document construction rating: section grade, then module data, then 3.

    Args:
        section_grade: Assessor's construction section grade, if recorded.
                       Values that are not a 1..5 rating are ignored.
        payload:       The document's construction module payload, if any.
    """
    grade = coerce_rating(section_grade)
    if grade is not None:
        return ConstructionRating(grade, RatingSource.SECTION_GRADE, "From the section grade.")
    if payload is not None:
        return compute_site_construction_rating(payload)
    logger.debug("No construction data; defaulting to %d.", DEFAULT_RATING)
    return ConstructionRating(
        DEFAULT_RATING, RatingSource.DEFAULT, "No construction data available."
    )
