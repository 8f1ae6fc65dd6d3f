"""
Finding, priority, and outcome taxonomy for fire risk assessments.

Dimensions used by executive aggregation:
  - ``ActionPriority``   — P1 (most urgent) to P4.
  - ``FindingCategory``  — area of the premises a finding relates to.
  - ``ComplexityBand``   — structural complexity of the premises.
  - ``OccupancyRisk``    — who is at risk (awake, sleeping, vulnerable).
  - ``ExecutiveOutcome`` — overall document-level verdict.

Recommendation persistence uses:
  - ``RecommendationPriority`` — High / Medium / Low.
  - ``ActionStatus``           — lifecycle status shared by actions and
                                 recommendations.
  - ``SourceType``             — auto (engine-generated) vs manual.

Overall risk profile uses:
  - ``GradeBand``     — Critical / High / Medium / Low for 1–5 grades.
  - ``RiskBand``      — Very Good … Very Poor for 0–100 risk scores.
  - ``RiskDimension`` — the six sector-weighted score dimensions.

This module has NO imports from any other ``risk_engine`` package.
"""

from enum import StrEnum


class ActionPriority(StrEnum):
    """Urgency of a remedial action. Lower number = more urgent."""

    P1 = "P1"
    """Immediate risk to life; material deficiency."""

    P2 = "P2"
    """Significant deficiency; prompt action required."""

    P3 = "P3"
    """Improvement needed within normal maintenance cycles."""

    P4 = "P4"
    """Advisory / good practice."""

    @property
    def rank(self) -> int:
        """Sort rank: 1 for P1 through 4 for P4."""
        return int(self.value[1])


class FindingCategory(StrEnum):
    """Premises area a finding relates to."""

    MEANS_OF_ESCAPE = "MeansOfEscape"
    DETECTION_ALARM = "DetectionAlarm"
    EMERGENCY_LIGHTING = "EmergencyLighting"
    COMPARTMENTATION = "Compartmentation"
    FIRE_DOORS = "FireDoors"
    FIRE_FIGHTING = "FireFighting"
    MANAGEMENT = "Management"
    HOUSEKEEPING = "Housekeeping"
    OTHER = "Other"


# Categories promoted within a priority tier on complex premises.
HIGH_PRIORITY_CATEGORIES: frozenset[FindingCategory] = frozenset({
    FindingCategory.MEANS_OF_ESCAPE,
    FindingCategory.DETECTION_ALARM,
    FindingCategory.COMPARTMENTATION,
})


class ComplexityBand(StrEnum):
    """Structural complexity band of the premises."""

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"


class OccupancyRisk(StrEnum):
    """Occupant profile."""

    NON_SLEEPING = "NonSleeping"
    SLEEPING = "Sleeping"
    VULNERABLE = "Vulnerable"


class ExecutiveOutcome(StrEnum):
    """Document-level verdict derived from open actions."""

    MATERIAL_LIFE_SAFETY_RISK_PRESENT = "MaterialLifeSafetyRiskPresent"
    SIGNIFICANT_DEFICIENCIES = "SignificantDeficiencies"
    IMPROVEMENTS_REQUIRED = "ImprovementsRequired"
    SATISFACTORY_WITH_IMPROVEMENTS = "SatisfactoryWithImprovements"


class ActionStatus(StrEnum):
    """Lifecycle status of an action or recommendation."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    DEFERRED = "deferred"
    NOT_APPLICABLE = "not_applicable"


ACTIVE_STATUSES: frozenset[ActionStatus] = frozenset({
    ActionStatus.OPEN,
    ActionStatus.IN_PROGRESS,
})


class RecommendationPriority(StrEnum):
    """Priority on a persisted recommendation record."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class SourceType(StrEnum):
    """Origin of a recommendation record."""

    AUTO = "auto"
    MANUAL = "manual"


class ModuleOutcome(StrEnum):
    """Assessor's outcome for one module instance."""

    COMPLIANT = "compliant"
    MINOR_DEF = "minor_def"
    MATERIAL_DEF = "material_def"
    INFO_GAP = "info_gap"
    NA = "na"


# ── Overall risk profile ──────────────────────────────────────────────────────


class GradeBand(StrEnum):
    """Band of a 1–5 grade, or of the mean of section grades."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RiskBand(StrEnum):
    """Band of a 0–100 sector-weighted risk score (higher is better)."""

    VERY_GOOD = "Very Good"
    GOOD = "Good"
    TOLERABLE = "Tolerable"
    POOR = "Poor"
    VERY_POOR = "Very Poor"


class RiskDimension(StrEnum):
    """Dimensions combined into the sector-weighted risk score."""

    CONSTRUCTION = "construction"
    PROTECTION = "protection"
    DETECTION = "detection"
    MANAGEMENT = "management"
    HAZARDS = "hazards"
    BI = "bi"


DIMENSION_LABELS: dict[RiskDimension, str] = {
    RiskDimension.CONSTRUCTION: "Construction & Combustibility",
    RiskDimension.PROTECTION: "Fire Protection",
    RiskDimension.DETECTION: "Detection Systems",
    RiskDimension.MANAGEMENT: "Management Systems",
    RiskDimension.HAZARDS: "Special Hazards",
    RiskDimension.BI: "Business Interruption",
}
