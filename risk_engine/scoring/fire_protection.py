"""
Derived fire protection scores for buildings and sites.

Building score
--------------
  suppression = sprinklers rating if present, else water-mist rating
  detection   = detection & alarm rating

  both present : raw = 0.7 * suppression + 0.3 * detection
  one present  : raw = that rating
  neither      : no score (``None``)

  score = clamp(round_half_up(raw), 1, 5)

Site score
----------
  Weighted mean of building scores, weighted by floor area (falling back to
  footprint) when known and > 0, else weight 1.  Buildings without a score
  are skipped; no contributing building means no site score.  The mean is
  taken in ``Decimal`` arithmetic, rounded half-up and clamped, then capped
  by water supply reliability:

    reliable    no cap
    unknown     at most 4   (also applied when reliability is not recorded)
    unreliable  at most 3

All functions here are pure.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

from risk_engine.models.survey import (
    BuildingFireProtection,
    BuildingMeta,
    FireProtectionPayload,
    SiteFireProtection,
    WaterSupplyReliability,
)

SUPPRESSION_WEIGHT = Decimal("0.7")
DETECTION_WEIGHT = Decimal("0.3")

RELIABILITY_CAPS: dict[WaterSupplyReliability, int] = {
    WaterSupplyReliability.RELIABLE: 5,
    WaterSupplyReliability.UNKNOWN: 4,
    WaterSupplyReliability.UNRELIABLE: 3,
}


def round_half_up(value: Decimal | float) -> int:
    """Round to the nearest integer, halves away from zero.

    Scores are computed in ``Decimal`` so an exact half such as a 2.5 mean
    rounds to 3.  Floats go through ``Decimal(str(value))``.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp(value: int, low: int = 1, high: int = 5) -> int:
    return max(low, min(high, value))


def _suppression_rating(building: BuildingFireProtection) -> Optional[int]:
    suppression = building.suppression
    if suppression is None:
        return None
    if suppression.sprinklers is not None and suppression.sprinklers.rating is not None:
        return suppression.sprinklers.rating
    if suppression.water_mist is not None:
        return suppression.water_mist.rating
    return None


def compute_building_score(building: Optional[BuildingFireProtection]) -> Optional[int]:
    """Fire protection score 1–5 for one building, or ``None`` without data."""
    if building is None:
        return None

    supp = _suppression_rating(building)
    det = building.detection_alarm.rating if building.detection_alarm else None

    if supp is not None and det is not None:
        raw = SUPPRESSION_WEIGHT * supp + DETECTION_WEIGHT * det
    elif supp is not None:
        raw = Decimal(supp)
    elif det is not None:
        raw = Decimal(det)
    else:
        return None

    return clamp(round_half_up(raw))


def _meta_index(building_meta: Optional[Iterable[BuildingMeta]]) -> dict[str, BuildingMeta]:
    return {m.id: m for m in building_meta or ()}


def compute_site_score(
    buildings: Optional[Mapping[str, BuildingFireProtection]],
    site: Optional[SiteFireProtection],
    building_meta: Optional[Iterable[BuildingMeta]] = None,
) -> Optional[int]:
    """Site fire protection score 1–5, or ``None`` when no building contributes.

    Args:
        buildings:     building id -> fire protection data.
        site:          Site data (water supply reliability).
        building_meta: Optional floor-area metadata, matched on building id.
    """
    if not buildings:
        return None

    meta = _meta_index(building_meta)
    weighted_sum = Decimal(0)
    total_weight = Decimal(0)
    for building_id, building in buildings.items():
        score = compute_building_score(building)
        if score is None:
            continue
        m = meta.get(building_id)
        weight = Decimal(str(m.area_weight)) if m is not None else Decimal(1)
        weighted_sum += score * weight
        total_weight += weight

    if total_weight == 0:
        return None

    site_score = clamp(round_half_up(weighted_sum / total_weight))

    reliability = (
        site.water_supply_reliability
        if site is not None and site.water_supply_reliability is not None
        else WaterSupplyReliability.UNKNOWN
    )
    return min(site_score, RELIABILITY_CAPS[reliability])


def compute_all_derived_scores(
    payload: FireProtectionPayload,
    building_meta: Optional[Iterable[BuildingMeta]] = None,
) -> dict:
    """Per-building and site scores for a fire protection module.

    Returns:
        ``{"building_scores": {building_id: score | None}, "site_score": score | None}``
    """
    meta = list(building_meta or ())
    return {
        "building_scores": {
            building_id: compute_building_score(building)
            for building_id, building in payload.buildings.items()
        },
        "site_score": compute_site_score(payload.buildings, payload.site, meta),
    }
