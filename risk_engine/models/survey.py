"""
Survey input models: ratings, module instances and module payloads.

A *rating* is an integer 1–5 (1 = critical/inadequate, 5 = best) or absent.
Anything else arriving from a stored payload (0, negatives, 2.5, "n/a",
booleans) is coerced to ``None`` here, at the model boundary, so the scoring
and trigger code downstream only ever sees ``1..5`` or ``None``.

Module payloads are stored as free-form JSON.  ``parse_module_payload``
validates a payload once, on read, into one of four typed variants keyed
by canonical module key:

  - ``FireProtectionPayload``  — per-building suppression/detection ratings
                                 plus site water-supply reliability.
  - ``ConstructionPayload``    — per-building frame and combustibility notes
                                 plus an optional assessor site rating.
  - ``RiskEngineeringPayload`` — factor ratings plus industry/occupancy keys.
  - ``GenericPayload``         — everything else, kept as an opaque dict.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from risk_engine.taxonomy.finding_taxonomy import ModuleOutcome

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


# ── Coercion helpers ──────────────────────────────────────────────────────────


def coerce_rating(value: Any) -> Optional[int]:
    """Return ``value`` as an int in 1..5, or ``None``.

    Accepts ints, integral floats (``3.0``) and digit strings (``"3"``).
    """
    if value is None or isinstance(value, bool):
        return None
    candidate: Optional[int] = None
    if isinstance(value, int):
        candidate = value
    elif isinstance(value, float) and value.is_integer():
        candidate = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        candidate = int(value.strip())

    if candidate is None or not MIN_RATING <= candidate <= MAX_RATING:
        logger.debug("Rating %r coerced to absent.", value)
        return None
    return candidate


def coerce_percentage(value: Any) -> Optional[float]:
    """Return a numeric percentage, or ``None`` for missing/non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            logger.debug("Percentage %r coerced to absent.", value)
    return None


def _coerce_positive(value: Any) -> Optional[float]:
    pct = coerce_percentage(value)
    return pct if pct is not None and pct > 0 else None


Rating = Annotated[Optional[int], BeforeValidator(coerce_rating)]
Percentage = Annotated[Optional[float], BeforeValidator(coerce_percentage)]
PositiveArea = Annotated[Optional[float], BeforeValidator(_coerce_positive)]


class WaterSupplyReliability(StrEnum):
    RELIABLE = "reliable"
    UNRELIABLE = "unreliable"
    UNKNOWN = "unknown"


def _coerce_reliability(value: Any) -> Optional[WaterSupplyReliability]:
    if value is None:
        return None
    try:
        return WaterSupplyReliability(str(value).strip().lower())
    except ValueError:
        logger.debug("Water supply reliability %r coerced to absent.", value)
        return None


# ── Fire protection payload ───────────────────────────────────────────────────


class SuppressionSystem(BaseModel):
    """One suppression system (sprinklers or water mist) in a building."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    rating: Rating = None
    provided_pct: Percentage = None
    required_pct: Percentage = None


class Suppression(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    sprinklers: Optional[SuppressionSystem] = None
    water_mist: Optional[SuppressionSystem] = None


class DetectionAlarm(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    rating: Rating = None


class BuildingFireProtection(BaseModel):
    """Fire protection ratings for one building."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    suppression: Optional[Suppression] = None
    detection_alarm: Optional[DetectionAlarm] = None


class SiteFireProtection(BaseModel):
    """Site-level fire protection data.

    An absent ``water_supply_reliability`` is scored as ``unknown`` but does
    not raise the ``WATER_UNKNOWN`` recommendation; only an explicit value does.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    water_supply_reliability: Annotated[
        Optional[WaterSupplyReliability], BeforeValidator(_coerce_reliability)
    ] = None


class FireProtectionPayload(BaseModel):
    """Payload of the fire protection module, keyed by building id."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    buildings: dict[str, BuildingFireProtection] = Field(default_factory=dict)
    site: Optional[SiteFireProtection] = None


class BuildingMeta(BaseModel):
    """Building metadata used to weight site aggregation by floor area."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    floor_area_sqm: PositiveArea = None
    footprint_m2: PositiveArea = None

    @property
    def area_weight(self) -> float:
        """Floor area (falling back to footprint) when known and > 0, else 1."""
        area = self.floor_area_sqm if self.floor_area_sqm is not None else self.footprint_m2
        return area if area is not None else 1.0


# ── Construction payload ──────────────────────────────────────────────────────


class BuildingConstruction(BaseModel):
    """Construction description of one building.

    The combustibility fields are free text as entered by the assessor
    (e.g. ``"Non-combustible metal deck"``); scoring matches keywords in them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[str] = None
    frame_type: Optional[str] = None
    roof_ceiling_combustibility: Optional[str] = None
    wall_combustibility: Optional[str] = None
    area_weighted_combustible_percent: Percentage = None


class ConstructionRatings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    site_rating_1_5: Rating = None


class ConstructionPayload(BaseModel):
    """Payload of the construction module."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    buildings: list[BuildingConstruction] = Field(default_factory=list)
    ratings: ConstructionRatings = Field(default_factory=ConstructionRatings)


# ── Risk engineering payload ──────────────────────────────────────────────────


class RiskEngineeringPayload(BaseModel):
    """Factor ratings for a risk-engineering module.

    ``ratings`` maps factor keys (or global pillar keys) to a rating; invalid
    values are coerced to ``None`` and kept so the assessor's gaps are visible.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    industry_key: Optional[str] = None
    occupancy_key: Optional[str] = None
    ratings: dict[str, Rating] = Field(default_factory=dict)


class GenericPayload(BaseModel):
    """Payload of any module the engine does not interpret."""

    model_config = ConfigDict(frozen=True)

    data: dict[str, Any] = Field(default_factory=dict)


ModulePayload = Union[
    FireProtectionPayload, ConstructionPayload, RiskEngineeringPayload, GenericPayload
]

FIRE_PROTECTION_MODULE_KEY = "RE_06_FIRE_PROTECTION"
CONSTRUCTION_MODULE_KEY = "RE_02_CONSTRUCTION"

PAYLOAD_TYPES: dict[str, type[BaseModel]] = {
    FIRE_PROTECTION_MODULE_KEY: FireProtectionPayload,
    CONSTRUCTION_MODULE_KEY: ConstructionPayload,
    "RE_03_OCCUPANCY": RiskEngineeringPayload,
    "RE_10_PROCESS_RISK": RiskEngineeringPayload,
    "RISK_ENGINEERING": RiskEngineeringPayload,
}


def parse_module_payload(canonical_key: str, data: Optional[dict[str, Any]]) -> ModulePayload:
    """Validate a raw module payload into its typed variant.

    Args:
        canonical_key: Canonical module key (resolve aliases first).
        data:          Raw JSON-decoded payload; ``None`` means empty.

    Returns:
        The typed payload.

    Raises:
        pydantic.ValidationError: If the payload shape is structurally wrong
            (e.g. ``buildings`` is not a mapping).
    """
    data = data or {}
    payload_type = PAYLOAD_TYPES.get(canonical_key)
    if payload_type is None:
        return GenericPayload(data=data)
    return payload_type.model_validate(data)  # type: ignore[return-value]


# ── Module instance ───────────────────────────────────────────────────────────


class ModuleInstance(BaseModel):
    """One catalog module attached to a document.

    ``payload`` is parsed from ``data`` at construction when not supplied.
    Rows read from the store may carry a legacy ``module_key``; the repository
    resolves the key through the catalog before choosing the payload variant.

    Attributes:
        instance_id:    Auto-assigned DB PK; ``None`` before insertion.
        document_id:    Owning document.
        module_key:     Stored module key (possibly legacy).
        outcome:        Assessor's outcome for the module, if recorded.
        assessor_notes: Free text.
        data:           Raw payload as stored.
        payload:        Typed payload variant.
        updated_at:     Last modification time, if known.
    """

    model_config = ConfigDict(frozen=True)

    instance_id: Optional[int] = None
    document_id: str
    module_key: str
    outcome: Optional[ModuleOutcome] = None
    assessor_notes: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    payload: ModulePayload = Field(default_factory=GenericPayload)
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def build_payload(cls, values: Any) -> Any:
        if isinstance(values, dict) and values.get("payload") is None:
            values = dict(values)
            values["payload"] = parse_module_payload(
                values.get("module_key", ""), values.get("data")
            )
        return values
