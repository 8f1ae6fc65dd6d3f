"""
Risk factor taxonomy for property risk-engineering surveys.

Two disjoint families of assessable dimensions:
  - ``Factor``       — the fixed universe of 10 risk-engineering factors whose
                       relevance depends on occupancy and whose weight depends
                       on industry (see ``risk_engine.weighting``).
  - ``GlobalPillar`` — dimensions that are assessed on every site regardless
                       of occupancy; implicitly always enabled.

Usage example::

    from risk_engine.taxonomy.factor_taxonomy import Factor, humanize_key

    Factor("process_safety_management")          # Factor.PROCESS_SAFETY_MANAGEMENT
    humanize_key("process_safety_management")    # "Process Safety Management"

This module has NO imports from any other ``risk_engine`` package.
"""

from enum import StrEnum


class Factor(StrEnum):
    """Canonical risk-engineering factor keys."""

    # ── Process ───────────────────────────────────────────────────────────────
    PROCESS_CONTROL_AND_STABILITY = "process_control_and_stability"
    PROCESS_SAFETY_MANAGEMENT = "process_safety_management"
    HIGH_ENERGY_PROCESS_EQUIPMENT = "high_energy_process_equipment"
    HIGH_ENERGY_MATERIALS_CONTROL = "high_energy_materials_control"

    # ── Protection & control ─────────────────────────────────────────────────
    SAFETY_AND_CONTROL_SYSTEMS = "safety_and_control_systems"
    FLAMMABLE_LIQUIDS_AND_FIRE_RISK = "flammable_liquids_and_fire_risk"

    # ── Site & utilities ─────────────────────────────────────────────────────
    NATURAL_HAZARD_EXPOSURE_AND_CONTROLS = "natural_hazard_exposure_and_controls"
    ELECTRICAL_AND_UTILITIES_RELIABILITY = "electrical_and_utilities_reliability"
    CRITICAL_EQUIPMENT_RELIABILITY = "critical_equipment_reliability"

    # ── Resilience ───────────────────────────────────────────────────────────
    EMERGENCY_RESPONSE_AND_BCP = "emergency_response_and_bcp"


class GlobalPillar(StrEnum):
    """Always-enabled assessment pillars, outside the occupancy relevance map."""

    CONSTRUCTION = "construction"
    FIRE_PROTECTION = "fire_protection"
    MANAGEMENT = "management"


ALL_FACTOR_KEYS: frozenset[str] = frozenset(f.value for f in Factor)
"""Every recognised factor key, as plain strings."""

# Factor order used by the weighting table rows in config/weighting.toml.
FACTOR_ORDER: tuple[Factor, ...] = (
    Factor.PROCESS_CONTROL_AND_STABILITY,
    Factor.SAFETY_AND_CONTROL_SYSTEMS,
    Factor.NATURAL_HAZARD_EXPOSURE_AND_CONTROLS,
    Factor.ELECTRICAL_AND_UTILITIES_RELIABILITY,
    Factor.PROCESS_SAFETY_MANAGEMENT,
    Factor.FLAMMABLE_LIQUIDS_AND_FIRE_RISK,
    Factor.CRITICAL_EQUIPMENT_RELIABILITY,
    Factor.HIGH_ENERGY_MATERIALS_CONTROL,
    Factor.HIGH_ENERGY_PROCESS_EQUIPMENT,
    Factor.EMERGENCY_RESPONSE_AND_BCP,
)


def is_factor(key: str) -> bool:
    """Return True if ``key`` names one of the 10 canonical factors."""
    return key in ALL_FACTOR_KEYS


def humanize_key(key: str) -> str:
    """Turn a snake_case key into a Title Case label.

    ``"electrical_and_utilities_reliability"`` →
    ``"Electrical And Utilities Reliability"``.
    """
    return " ".join(part.capitalize() for part in key.split("_") if part)
