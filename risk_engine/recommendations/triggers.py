"""
Recommendation trigger rules: structured survey data → recommendation descriptors.

Pure and stateless.  Only recorded data triggers anything; an absent rating,
an absent coverage percentage, or an unrecorded water-supply reliability
never produces a recommendation.

Rules
-----
Inadequate rating (sprinklers, water mist, detection, risk factors):
    fires when rating <= 2;  rating 1 → high,  rating 2 → medium.

Coverage gap (sprinklers, water mist):
    fires when provided % and required % are both recorded and
    provided < required;  gap >= 30 points → high, else medium.

Water supply (site):
    unreliable → WATER_UNRELIABLE (high)
    unknown    → WATER_UNKNOWN    (low)

One building carries at most one inadequate-suppression trigger and one
coverage-gap trigger: water-mist triggers are dropped when the matching
sprinkler trigger already fired.

Identifiers are deterministic: ``building:<id>:<CODE>``, ``site:<CODE>``
or ``factor:<key>:RATING_INADEQUATE``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from risk_engine.models.survey import (
    FireProtectionPayload,
    SiteFireProtection,
    Suppression,
    SuppressionSystem,
    WaterSupplyReliability,
)
from risk_engine.recommendations.templates import factor_action_text
from risk_engine.taxonomy.factor_taxonomy import GlobalPillar, is_factor

logger = logging.getLogger(__name__)

INADEQUATE_THRESHOLD = 2
HIGH_GAP_POINTS = 30.0
_PILLAR_KEYS = frozenset(p.value for p in GlobalPillar)

# ── Codes & categories ────────────────────────────────────────────────────────

SPRINKLER_INADEQUATE = "SPRINKLER_INADEQUATE"
WATER_MIST_INADEQUATE = "WATER_MIST_INADEQUATE"
COVERAGE_GAP = "COVERAGE_GAP"
DETECTION_INADEQUATE = "DETECTION_INADEQUATE"
WATER_UNRELIABLE = "WATER_UNRELIABLE"
WATER_UNKNOWN = "WATER_UNKNOWN"
RATING_INADEQUATE = "RATING_INADEQUATE"

CATEGORY_SUPPRESSION = "suppression"
CATEGORY_DETECTION = "detection"
CATEGORY_WATER_SUPPLY = "water_supply"
CATEGORY_RISK_FACTOR = "risk_factor"

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"


@dataclass(frozen=True)
class RecommendationDescriptor:
    """A triggered recommendation, before persistence.

    Attributes:
        id:          Deterministic identifier.
        scope:       ``building``, ``site`` or ``factor``.
        category:    ``suppression``, ``detection``, ``water_supply`` or ``risk_factor``.
        priority:    ``high``, ``medium`` or ``low``.
        code:        Machine code, e.g. ``COVERAGE_GAP``.
        trigger:     Machine-readable reason, e.g. ``sprinklers_rating=1``.
        text:        Human-readable recommendation.
        building_id: Set for building-scoped descriptors.
        factor_key:  Set for factor-scoped descriptors.
    """

    id: str
    scope: str
    category: str
    priority: str
    code: str
    trigger: str
    text: str
    building_id: Optional[str] = None
    factor_key: Optional[str] = None


def building_recommendation_id(building_id: str, code: str) -> str:
    return f"building:{building_id}:{code}"


def site_recommendation_id(code: str) -> str:
    return f"site:{code}"


def _fmt_num(value: float) -> str:
    """Render 40.0 as ``40`` and 37.5 as ``37.5``."""
    return str(int(value)) if float(value).is_integer() else str(value)


# ── Primitive rules ───────────────────────────────────────────────────────────


def inadequate_rating_priority(rating: Optional[int]) -> Optional[str]:
    """``high`` for 1, ``medium`` for 2, ``None`` (no trigger) otherwise."""
    if rating is None or rating > INADEQUATE_THRESHOLD:
        return None
    return PRIORITY_HIGH if rating == 1 else PRIORITY_MEDIUM


def coverage_gap(system: Optional[SuppressionSystem]) -> Optional[float]:
    """Percentage-point shortfall, or ``None`` when there is no recorded gap."""
    if system is None or system.provided_pct is None or system.required_pct is None:
        return None
    if system.provided_pct >= system.required_pct:
        return None
    return system.required_pct - system.provided_pct


def coverage_gap_priority(gap: float) -> str:
    return PRIORITY_HIGH if gap >= HIGH_GAP_POINTS else PRIORITY_MEDIUM


# ── Building rules ────────────────────────────────────────────────────────────

_SYSTEM_LABELS = {"sprinklers": "sprinkler", "water_mist": "water mist"}


def _inadequate_suppression(
    building_id: str, field_name: str, code: str, system: Optional[SuppressionSystem]
) -> Optional[RecommendationDescriptor]:
    rating = system.rating if system is not None else None
    priority = inadequate_rating_priority(rating)
    if priority is None:
        return None
    return RecommendationDescriptor(
        id=building_recommendation_id(building_id, code),
        scope="building",
        category=CATEGORY_SUPPRESSION,
        priority=priority,
        code=code,
        trigger=f"{field_name}_rating={rating}",
        text=(
            f"Upgrade {_SYSTEM_LABELS[field_name]} system to achieve adequate "
            f"protection (currently rated {rating})."
        ),
        building_id=building_id,
    )


def _coverage_gap(
    building_id: str, field_name: str, system: Optional[SuppressionSystem]
) -> Optional[RecommendationDescriptor]:
    gap = coverage_gap(system)
    if gap is None:
        return None
    assert system is not None and system.provided_pct is not None and system.required_pct is not None
    provided = _fmt_num(system.provided_pct)
    required = _fmt_num(system.required_pct)
    return RecommendationDescriptor(
        id=building_recommendation_id(building_id, COVERAGE_GAP),
        scope="building",
        category=CATEGORY_SUPPRESSION,
        priority=coverage_gap_priority(gap),
        code=COVERAGE_GAP,
        trigger=f"{field_name}_provided={provided}%_required={required}%",
        text=(
            f"Extend {_SYSTEM_LABELS[field_name]} coverage from {provided}% to "
            f"{required}% to meet requirements ({_fmt_num(gap)}% gap)."
        ),
        building_id=building_id,
    )


def suppression_triggers(
    building_id: str, suppression: Optional[Suppression]
) -> list[RecommendationDescriptor]:
    """Inadequate-rating and coverage-gap triggers for one building's suppression.

    Sprinklers are evaluated first; the water-mist trigger of the same kind
    is suppressed when the sprinkler trigger fired.
    """
    if suppression is None:
        return []

    out: list[RecommendationDescriptor] = []

    sprinkler_inadequate = _inadequate_suppression(
        building_id, "sprinklers", SPRINKLER_INADEQUATE, suppression.sprinklers
    )
    sprinkler_gap = _coverage_gap(building_id, "sprinklers", suppression.sprinklers)

    if sprinkler_inadequate is not None:
        out.append(sprinkler_inadequate)
    if sprinkler_gap is not None:
        out.append(sprinkler_gap)

    if sprinkler_inadequate is None:
        mist_inadequate = _inadequate_suppression(
            building_id, "water_mist", WATER_MIST_INADEQUATE, suppression.water_mist
        )
        if mist_inadequate is not None:
            out.append(mist_inadequate)
    if sprinkler_gap is None:
        mist_gap = _coverage_gap(building_id, "water_mist", suppression.water_mist)
        if mist_gap is not None:
            out.append(mist_gap)

    return out


def detection_trigger(
    building_id: str, rating: Optional[int]
) -> Optional[RecommendationDescriptor]:
    priority = inadequate_rating_priority(rating)
    if priority is None:
        return None
    return RecommendationDescriptor(
        id=building_recommendation_id(building_id, DETECTION_INADEQUATE),
        scope="building",
        category=CATEGORY_DETECTION,
        priority=priority,
        code=DETECTION_INADEQUATE,
        trigger=f"detection_rating={rating}",
        text=(
            "Upgrade fire detection and alarm system to achieve adequate "
            f"protection (currently rated {rating})."
        ),
        building_id=building_id,
    )


# ── Site rules ────────────────────────────────────────────────────────────────


def water_supply_triggers(site: Optional[SiteFireProtection]) -> list[RecommendationDescriptor]:
    """Site water-supply triggers; an unrecorded reliability triggers nothing."""
    if site is None or site.water_supply_reliability is None:
        return []

    reliability = site.water_supply_reliability
    if reliability == WaterSupplyReliability.UNRELIABLE:
        return [RecommendationDescriptor(
            id=site_recommendation_id(WATER_UNRELIABLE),
            scope="site",
            category=CATEGORY_WATER_SUPPLY,
            priority=PRIORITY_HIGH,
            code=WATER_UNRELIABLE,
            trigger="water_reliability=unreliable",
            text=(
                "Improve water supply reliability through redundant mains connection, "
                "on-site storage, or pump upgrade to support fire protection systems."
            ),
        )]
    if reliability == WaterSupplyReliability.UNKNOWN:
        return [RecommendationDescriptor(
            id=site_recommendation_id(WATER_UNKNOWN),
            scope="site",
            category=CATEGORY_WATER_SUPPLY,
            priority=PRIORITY_LOW,
            code=WATER_UNKNOWN,
            trigger="water_reliability=unknown",
            text=(
                "Conduct water supply assessment to determine adequacy and "
                "reliability for fire protection systems."
            ),
        )]
    return []


# ── Risk factor rule ──────────────────────────────────────────────────────────


def factor_rating_trigger(
    factor_key: str, rating: Optional[int]
) -> Optional[RecommendationDescriptor]:
    """Inadequate-rating trigger for a risk factor or global pillar rating.

    Unrecognised factor keys are treated as no-ops.
    """
    if not is_factor(factor_key) and factor_key not in _PILLAR_KEYS:
        logger.debug("Rating for unrecognised factor %r ignored.", factor_key)
        return None
    priority = inadequate_rating_priority(rating)
    if priority is None:
        return None
    return RecommendationDescriptor(
        id=f"factor:{factor_key}:{RATING_INADEQUATE}",
        scope="factor",
        category=CATEGORY_RISK_FACTOR,
        priority=priority,
        code=RATING_INADEQUATE,
        trigger=f"{factor_key}_rating={rating}",
        text=factor_action_text(factor_key, rating),
        factor_key=factor_key,
    )


# ── Module-level generation & helpers ─────────────────────────────────────────


def generate_fire_protection_recommendations(
    payload: Optional[FireProtectionPayload],
) -> list[RecommendationDescriptor]:
    """All fire protection triggers for one module, buildings first then site.

    Descriptor ids are unique within the result.
    """
    if payload is None:
        return []

    found: list[RecommendationDescriptor] = []
    for building_id, building in payload.buildings.items():
        found.extend(suppression_triggers(building_id, building.suppression))
        det = detection_trigger(
            building_id,
            building.detection_alarm.rating if building.detection_alarm else None,
        )
        if det is not None:
            found.append(det)
    found.extend(water_supply_triggers(payload.site))

    seen: set[str] = set()
    unique: list[RecommendationDescriptor] = []
    for rec in found:
        if rec.id not in seen:
            seen.add(rec.id)
            unique.append(rec)
    return unique


def summarize_by_priority(recs: list[RecommendationDescriptor]) -> dict[str, int]:
    """Counts: ``{"total", "high", "medium", "low"}``."""
    counts = Counter(r.priority for r in recs)
    return {
        "total": len(recs),
        PRIORITY_HIGH: counts.get(PRIORITY_HIGH, 0),
        PRIORITY_MEDIUM: counts.get(PRIORITY_MEDIUM, 0),
        PRIORITY_LOW: counts.get(PRIORITY_LOW, 0),
    }


def group_by_category(
    recs: list[RecommendationDescriptor],
) -> dict[str, list[RecommendationDescriptor]]:
    groups: dict[str, list[RecommendationDescriptor]] = {
        CATEGORY_SUPPRESSION: [],
        CATEGORY_DETECTION: [],
        CATEGORY_WATER_SUPPLY: [],
    }
    for rec in recs:
        groups.setdefault(rec.category, []).append(rec)
    return groups


def building_recommendations(
    recs: list[RecommendationDescriptor], building_id: str
) -> list[RecommendationDescriptor]:
    return [r for r in recs if r.scope == "building" and r.building_id == building_id]


def site_recommendations(recs: list[RecommendationDescriptor]) -> list[RecommendationDescriptor]:
    return [r for r in recs if r.scope == "site"]
