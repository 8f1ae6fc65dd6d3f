"""
Pydantic v2 models for industry weighting and occupancy relevance tables.

Instances are loaded from config/weighting.toml by ``risk_engine.weighting.registry``
and are immutable (frozen=True).

Model hierarchy
---------------
  WeightingTables
    ├── IndustryWeights      — per-industry factor weights in [1, 5] + help text
    └── OccupancyRelevance   — per-occupancy enabled factor set

Validation
----------
Every factor key must belong to the 10-key ``Factor`` universe; global
pillars are rejected here because they are implicitly always enabled.
Weights must lie in [1, 5].
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from risk_engine.taxonomy.factor_taxonomy import ALL_FACTOR_KEYS

MIN_WEIGHT = 1.0
MAX_WEIGHT = 5.0
DEFAULT_WEIGHT = 1.0

NO_INDUSTRY_HELP = (
    "No industry selected. Please select an industry classification in "
    "RE-1 Document Control."
)
NO_FACTOR_HELP = "No configuration available for this risk factor."


def _check_factor_keys(keys) -> None:
    unknown = sorted(set(keys) - ALL_FACTOR_KEYS)
    if unknown:
        raise ValueError(f"Unknown factor key(s): {unknown}.")


class IndustryWeights(BaseModel):
    """Factor weights for one industry.

    Attributes:
        key:       Industry key, e.g. ``"chemical_batch_processing"``.
        label:     Display label.
        weights:   factor key -> weight in [1, 5].
        help_text: factor key -> assessor guidance for this industry.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    weights: dict[str, float] = Field(default_factory=dict)
    help_text: dict[str, str] = Field(default_factory=dict)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        _check_factor_keys(v.keys())
        for factor, weight in v.items():
            if not MIN_WEIGHT <= weight <= MAX_WEIGHT:
                raise ValueError(
                    f"Weight for '{factor}' must be in [{MIN_WEIGHT}, {MAX_WEIGHT}], "
                    f"got {weight}."
                )
        return v

    @field_validator("help_text")
    @classmethod
    def validate_help_text(cls, v: dict[str, str]) -> dict[str, str]:
        _check_factor_keys(v.keys())
        return v


class FactorConfig(BaseModel):
    """Weight and assessor guidance for one (industry, factor) pair."""

    model_config = ConfigDict(frozen=True)

    weight: float
    help_text: str = ""


class OccupancyRelevance(BaseModel):
    """Factors relevant to one occupancy type."""

    model_config = ConfigDict(frozen=True)

    key: str
    enabled_factors: frozenset[str]

    @field_validator("enabled_factors")
    @classmethod
    def validate_factors(cls, v: frozenset[str]) -> frozenset[str]:
        _check_factor_keys(v)
        return v


class WeightingTables(BaseModel):
    """Immutable weighting and relevance lookup tables.

    Both lookups are total: unrecognised inputs fall back to a default
    rather than raising.
    """

    model_config = ConfigDict(frozen=True)

    version: str = "unversioned"
    default_weight: float = DEFAULT_WEIGHT
    default_enabled_factors: frozenset[str]
    industries: dict[str, IndustryWeights] = Field(default_factory=dict)
    occupancies: dict[str, OccupancyRelevance] = Field(default_factory=dict)

    @field_validator("default_enabled_factors")
    @classmethod
    def validate_default_factors(cls, v: frozenset[str]) -> frozenset[str]:
        _check_factor_keys(v)
        return v

    @field_validator("default_weight")
    @classmethod
    def validate_default_weight(cls, v: float) -> float:
        if not MIN_WEIGHT <= v <= MAX_WEIGHT:
            raise ValueError(
                f"default_weight must be in [{MIN_WEIGHT}, {MAX_WEIGHT}], got {v}."
            )
        return v

    def get_factor_weight(
        self, industry_key: Optional[str], factor_key: str
    ) -> float:
        """Industry-specific weight, or ``default_weight`` when either key is unknown."""
        industry = self.industries.get(industry_key) if industry_key else None
        if industry is None:
            return self.default_weight
        return float(industry.weights.get(factor_key, self.default_weight))

    def get_factor_config(
        self, industry_key: Optional[str], factor_key: str
    ) -> FactorConfig:
        """Weight plus help text for a factor, with guidance on why a default applies.

        No or unknown industry → default weight with ``NO_INDUSTRY_HELP``.
        Factor not configured for the industry → default weight with
        ``NO_FACTOR_HELP``.
        """
        industry = self.industries.get(industry_key) if industry_key else None
        if industry is None:
            return FactorConfig(weight=self.default_weight, help_text=NO_INDUSTRY_HELP)
        if factor_key not in industry.weights:
            return FactorConfig(weight=self.default_weight, help_text=NO_FACTOR_HELP)
        return FactorConfig(
            weight=float(industry.weights[factor_key]),
            help_text=industry.help_text.get(factor_key, ""),
        )

    def get_enabled_factors(self, occupancy_key: Optional[str]) -> frozenset[str]:
        """Factors relevant to ``occupancy_key``; conservative default set otherwise."""
        occupancy = self.occupancies.get(occupancy_key) if occupancy_key else None
        if occupancy is None:
            return self.default_enabled_factors
        return occupancy.enabled_factors

    def is_factor_relevant(self, occupancy_key: Optional[str], factor_key: str) -> bool:
        return factor_key in self.get_enabled_factors(occupancy_key)

    def list_industries(self) -> list[str]:
        """Industry keys, sorted."""
        return sorted(self.industries)

    def industry_label(self, industry_key: str) -> str:
        """Display label for an industry; the key itself when unknown."""
        industry = self.industries.get(industry_key)
        return industry.label if industry is not None else industry_key
