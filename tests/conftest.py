"""
Shared pytest fixtures for the survey risk engine test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``catalog`` / ``tables``: the shipped module catalog and weighting
    tables, loaded from config/.
  - Sample domain object factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Generator

import pytest

from risk_engine.db.connection import configure_connection
from risk_engine.db.schema import apply_schema
from risk_engine.models.action import Action
from risk_engine.models.recommendation import RecommendationTemplate, RelevanceRules
from risk_engine.models.survey import FireProtectionPayload
from risk_engine.taxonomy.finding_taxonomy import RecommendationPriority
from risk_engine.taxonomy.module_catalog import ModuleCatalog, load_module_catalog
from risk_engine.weighting.models import WeightingTables
from risk_engine.weighting.registry import load_weighting_tables

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Schema is applied idempotently.
    Connection is closed after the test.
    """
    conn = configure_connection(sqlite3.connect(":memory:"), wal_mode=False)
    apply_schema(conn)
    yield conn
    conn.close()


# ── Reference tables ──────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def catalog() -> ModuleCatalog:
    """The shipped module catalog (config/module_catalog.toml)."""
    return load_module_catalog(CONFIG_DIR / "module_catalog.toml")


@pytest.fixture(scope="session")
def tables() -> WeightingTables:
    """The shipped weighting tables (config/weighting.toml)."""
    return load_weighting_tables(CONFIG_DIR / "weighting.toml")


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def sample_fire_protection_payload() -> FireProtectionPayload:
    """Two buildings: B1 well protected, B2 with an inadequate sprinkler system."""
    return FireProtectionPayload.model_validate({
        "buildings": {
            "B1": {
                "suppression": {"sprinklers": {"rating": 5}},
                "detection_alarm": {"rating": 5},
            },
            "B2": {
                "suppression": {
                    "sprinklers": {"rating": 1, "provided_pct": 40, "required_pct": 80},
                },
                "detection_alarm": {"rating": 2},
            },
        },
        "site": {"water_supply_reliability": "unreliable"},
    })


@pytest.fixture
def sample_template() -> RecommendationTemplate:
    """A flammable-liquids template restricted to inadequate ratings."""
    return RecommendationTemplate(
        title="Flammable Liquids Storage and Handling",
        observation="Flammable liquids are stored without adequate segregation.",
        action_required="Provide approved flammable liquid storage.",
        hazard="",
        default_priority=RecommendationPriority.HIGH,
        sort_priority=10,
        rules=RelevanceRules(factors=("flammable_liquids_and_fire_risk",), max_rating=2),
    )


@pytest.fixture
def sample_actions() -> list[Action]:
    """Five open actions: P1, P2 (Management), P2 (DetectionAlarm), P3, P4."""
    return [
        Action(document_id="DOC-1", title="Final exit locked", priority="P1",
               category="MeansOfEscape", trigger_text="Final exit secured by padlock"),
        Action(document_id="DOC-1", title="Fire policy out of date", priority="P2",
               category="Management", trigger_text="Policy last reviewed 2019"),
        Action(document_id="DOC-1", title="Detector coverage gaps", priority="P2",
               category="DetectionAlarm", trigger_text="No detection in plant room"),
        Action(document_id="DOC-1", title="Housekeeping in store", priority="P3",
               category="Housekeeping", trigger_text="Combustibles stored under stairs"),
        Action(document_id="DOC-1", title="Signage faded", priority="P4",
               category="Other", trigger_text="Fire action notices faded"),
    ]
