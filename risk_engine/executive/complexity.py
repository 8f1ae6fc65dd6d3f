"""
Structural complexity score (SCS) and band for a premises.

Five sub-scores are summed:

  height    storeys ≤2 → 1, ≤4 → 2, ≤6 → 3, else 4   (unknown counts as 4 storeys)
  area      m² <300 → 1, <1000 → 2, <5000 → 3, else 4 (unknown counts as 1000 m²)
  sleeping  None 0, HMO 2, BlockOrHotel 3, Vulnerable 4
  layout    Simple 1, Moderate 2, Complex 3, MixedUse 4
  reliance  Basic 1, DetectionAndEmergencyLighting 2,
            CompartmentationCritical 3, EngineeredSystemsCritical 4

Band: ≥18 VeryHigh, ≥14 High, ≥9 Moderate, else Low.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from risk_engine.taxonomy.finding_taxonomy import ComplexityBand

UNKNOWN_STOREYS = 4
UNKNOWN_AREA_M2 = 1000.0

BAND_THRESHOLDS: list[tuple[int, ComplexityBand]] = [
    (18, ComplexityBand.VERY_HIGH),
    (14, ComplexityBand.HIGH),
    (9, ComplexityBand.MODERATE),
]


class SleepingRisk(StrEnum):
    NONE = "None"
    HMO = "HMO"
    BLOCK_OR_HOTEL = "BlockOrHotel"
    VULNERABLE = "Vulnerable"


class LayoutComplexity(StrEnum):
    SIMPLE = "Simple"
    MODERATE = "Moderate"
    COMPLEX = "Complex"
    MIXED_USE = "MixedUse"


class ProtectionReliance(StrEnum):
    BASIC = "Basic"
    DETECTION_AND_EMERGENCY_LIGHTING = "DetectionAndEmergencyLighting"
    COMPARTMENTATION_CRITICAL = "CompartmentationCritical"
    ENGINEERED_SYSTEMS_CRITICAL = "EngineeredSystemsCritical"


_SLEEPING_SCORES = {
    SleepingRisk.NONE: 0,
    SleepingRisk.HMO: 2,
    SleepingRisk.BLOCK_OR_HOTEL: 3,
    SleepingRisk.VULNERABLE: 4,
}
_LAYOUT_SCORES = {
    LayoutComplexity.SIMPLE: 1,
    LayoutComplexity.MODERATE: 2,
    LayoutComplexity.COMPLEX: 3,
    LayoutComplexity.MIXED_USE: 4,
}
_RELIANCE_SCORES = {
    ProtectionReliance.BASIC: 1,
    ProtectionReliance.DETECTION_AND_EMERGENCY_LIGHTING: 2,
    ProtectionReliance.COMPARTMENTATION_CRITICAL: 3,
    ProtectionReliance.ENGINEERED_SYSTEMS_CRITICAL: 4,
}


class ComplexityInputs(BaseModel):
    """Premises metrics feeding the complexity score.

    Non-positive storeys/area are treated as unknown.
    """

    model_config = ConfigDict(frozen=True)

    storeys: Optional[float] = None
    floor_area_m2: Optional[float] = None
    sleeping_risk: SleepingRisk = SleepingRisk.NONE
    layout: LayoutComplexity = LayoutComplexity.SIMPLE
    reliance: ProtectionReliance = ProtectionReliance.BASIC

    @field_validator("storeys", "floor_area_m2")
    @classmethod
    def _positive_or_unknown(cls, v: Optional[float]) -> Optional[float]:
        if v is None or v <= 0:
            return None
        return v


@dataclass(frozen=True)
class ComplexityResult:
    score: int
    band: ComplexityBand
    breakdown: dict[str, int]


def _height_score(storeys: float) -> int:
    if storeys <= 2:
        return 1
    if storeys <= 4:
        return 2
    if storeys <= 6:
        return 3
    return 4


def _area_score(area_m2: float) -> int:
    if area_m2 < 300:
        return 1
    if area_m2 < 1000:
        return 2
    if area_m2 < 5000:
        return 3
    return 4


def band_for_score(score: int) -> ComplexityBand:
    for threshold, band in BAND_THRESHOLDS:
        if score >= threshold:
            return band
    return ComplexityBand.LOW


def compute_complexity(inputs: ComplexityInputs) -> ComplexityResult:
    """Score a premises and return the total, band and per-axis breakdown."""
    storeys = inputs.storeys if inputs.storeys is not None else UNKNOWN_STOREYS
    area = inputs.floor_area_m2 if inputs.floor_area_m2 is not None else UNKNOWN_AREA_M2

    breakdown = {
        "height":   _height_score(storeys),
        "area":     _area_score(area),
        "sleeping": _SLEEPING_SCORES[inputs.sleeping_risk],
        "layout":   _LAYOUT_SCORES[inputs.layout],
        "reliance": _RELIANCE_SCORES[inputs.reliance],
    }
    score = sum(breakdown.values())
    return ComplexityResult(score=score, band=band_for_score(score), breakdown=breakdown)


def derive_complexity_band(inputs: ComplexityInputs) -> ComplexityBand:
    return compute_complexity(inputs).band
