"""
Weighting table loader.

Reads config/weighting.toml into a frozen ``WeightingTables``.

Usage
-----
    from risk_engine.weighting.registry import load_weighting_tables

    tables = load_weighting_tables("config/weighting.toml")
    tables.get_factor_weight("data_center", "electrical_and_utilities_reliability")  # 5.0
    tables.get_enabled_factors("retail")

Callers load the tables once (see ``risk_engine.bootstrap``) and pass them
along; nothing here caches.

TOML structure expected in weighting.toml
-----------------------------------------
    [meta]
    version = "2026.1"
    default_weight = 1.0

    [defaults]
    enabled_factors = ["safety_and_control_systems", ...]

    [industries.<key>]
    label = "Data Center / Telecom"

    [industries.<key>.weights]
    electrical_and_utilities_reliability = 5
    ...

    [industries.<key>.help_text]          # optional
    electrical_and_utilities_reliability = "Critical for uptime. ..."

    [occupancies.<key>]
    enabled_factors = [...]
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from risk_engine.weighting.models import (
    DEFAULT_WEIGHT,
    IndustryWeights,
    OccupancyRelevance,
    WeightingTables,
)

logger = logging.getLogger(__name__)


def _parse_industry(key: str, raw: dict) -> IndustryWeights:
    """Parse one [industries.<key>] block.

    Raises:
        pydantic.ValidationError: On unknown factor keys, out-of-range weights
            or non-string help text.
    """
    return IndustryWeights(
        key=key,
        label=raw.get("label", key),
        weights=raw.get("weights", {}),
        help_text=raw.get("help_text", {}),
    )


def _parse_occupancy(key: str, raw: dict) -> OccupancyRelevance:
    return OccupancyRelevance(
        key=key,
        enabled_factors=frozenset(raw.get("enabled_factors", [])),
    )


def load_weighting_tables(weighting_path: Path | str) -> WeightingTables:
    """Load and validate the weighting tables.

    Args:
        weighting_path: Path to the weighting TOML file.

    Returns:
        Frozen ``WeightingTables``.

    Raises:
        FileNotFoundError: If ``weighting_path`` does not exist.
        tomllib.TOMLDecodeError: If the TOML is malformed.
        pydantic.ValidationError: If any weight or factor key is invalid.
    """
    weighting_path = Path(weighting_path)
    if not weighting_path.exists():
        raise FileNotFoundError(
            f"Weighting table file not found: {weighting_path}\n"
            "Expected at config/weighting.toml.  "
            "Set reference.weighting_file in default.toml to override."
        )

    with open(weighting_path, "rb") as f:
        raw = tomllib.load(f)

    meta = raw.get("meta", {})
    tables = WeightingTables(
        version=str(meta.get("version", "unversioned")),
        default_weight=meta.get("default_weight", DEFAULT_WEIGHT),
        default_enabled_factors=frozenset(
            raw.get("defaults", {}).get("enabled_factors", [])
        ),
        industries={
            key: _parse_industry(key, block)
            for key, block in raw.get("industries", {}).items()
        },
        occupancies={
            key: _parse_occupancy(key, block)
            for key, block in raw.get("occupancies", {}).items()
        },
    )

    logger.info(
        "Loaded weighting tables v%s: %d industries, %d occupancies.",
        tables.version,
        len(tables.industries),
        len(tables.occupancies),
    )
    return tables
