"""
Tests for risk_engine/scoring/fire_protection.py.

What we test
------------
round_half_up():
  - Halves round away from zero (2.5 → 3, 3.5 → 4), float noise is ignored,
    Decimal inputs are rounded as given.
compute_building_score():
  - Fixed point: equal suppression and detection rating r → r, for r in 1..5.
  - 0.7 / 0.3 weighting with half-up rounding.
  - Water mist used only when sprinklers carry no rating.
  - One rating present → that rating; none → None.
compute_site_score():
  - Area-weighted mean (floor area, then footprint, else weight 1).
  - The mean is exact: decimal floor areas averaging to a half round up.
  - Unscored buildings are skipped; none scored → None.
  - Reliability caps: reliable none, unknown/absent 4, unreliable 3.
compute_all_derived_scores():
  - Returns building and site scores together.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from risk_engine.models.survey import (
    BuildingFireProtection,
    BuildingMeta,
    FireProtectionPayload,
    SiteFireProtection,
)
from risk_engine.scoring.fire_protection import (
    compute_all_derived_scores,
    compute_building_score,
    compute_site_score,
    round_half_up,
)


def _building(sprinklers=None, water_mist=None, detection=None) -> BuildingFireProtection:
    suppression = {}
    if sprinklers is not None:
        suppression["sprinklers"] = {"rating": sprinklers}
    if water_mist is not None:
        suppression["water_mist"] = {"rating": water_mist}
    data: dict = {"suppression": suppression}
    if detection is not None:
        data["detection_alarm"] = {"rating": detection}
    return BuildingFireProtection.model_validate(data)


def _site(reliability) -> SiteFireProtection:
    return SiteFireProtection(water_supply_reliability=reliability)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [
        (2.5, 3), (3.5, 4), (2.4999, 2), (1.0, 1), (4.6, 5),
        (0.7 * 3 + 0.3 * 4, 3),
        (Decimal("2.5"), 3), (Decimal("2.4999999999999999"), 2),
    ])
    def test_values(self, value, expected):
        assert round_half_up(value) == expected


class TestBuildingScore:
    @pytest.mark.parametrize("r", [1, 2, 3, 4, 5])
    def test_equal_ratings_fixed_point(self, r):
        assert compute_building_score(_building(sprinklers=r, detection=r)) == r

    def test_weighting(self):
        # 0.7*5 + 0.3*1 = 3.8 → 4
        assert compute_building_score(_building(sprinklers=5, detection=1)) == 4
        # 0.7*1 + 0.3*5 = 2.2 → 2
        assert compute_building_score(_building(sprinklers=1, detection=5)) == 2

    def test_half_rounds_up(self):
        # 0.7*2 + 0.3*5 = 2.9 → 3 ; 0.7*4 + 0.3*1 = 3.1 → 3
        assert compute_building_score(_building(sprinklers=2, detection=5)) == 3
        assert compute_building_score(_building(sprinklers=4, detection=1)) == 3

    def test_water_mist_when_no_sprinkler_rating(self):
        assert compute_building_score(_building(water_mist=2, detection=2)) == 2

    def test_sprinklers_take_precedence(self):
        assert compute_building_score(_building(sprinklers=5, water_mist=1)) == 5

    def test_suppression_only(self):
        assert compute_building_score(_building(sprinklers=3)) == 3

    def test_detection_only(self):
        assert compute_building_score(_building(detection=4)) == 4

    def test_no_ratings(self):
        assert compute_building_score(_building()) is None

    def test_none_building(self):
        assert compute_building_score(None) is None

    def test_invalid_rating_treated_as_absent(self):
        assert compute_building_score(_building(sprinklers="n/a", detection=4)) == 4


class TestSiteScore:
    def test_unweighted_mean_half_up(self):
        buildings = {"B1": _building(sprinklers=2, detection=2), "B2": _building(sprinklers=3, detection=3)}
        # mean 2.5 → 3 ; reliable → no cap
        assert compute_site_score(buildings, _site("reliable")) == 3

    def test_area_weighted(self):
        buildings = {"B1": _building(sprinklers=5, detection=5), "B2": _building(sprinklers=1, detection=1)}
        meta = [BuildingMeta(id="B1", floor_area_sqm=100), BuildingMeta(id="B2", floor_area_sqm=300)]
        # (5*100 + 1*300) / 400 = 2.0
        assert compute_site_score(buildings, _site("reliable"), meta) == 2

    def test_area_weighted_exact_half_rounds_up(self):
        buildings = {"B1": _building(detection=1), "B2": _building(detection=3)}
        meta = [BuildingMeta(id="B1", floor_area_sqm=0.1), BuildingMeta(id="B2", floor_area_sqm=0.3)]
        # (1*0.1 + 3*0.3) / 0.4 = 2.5 exactly; float arithmetic gives 2.4999999999999996
        assert compute_site_score(buildings, _site("reliable"), meta) == 3

    def test_footprint_fallback_and_zero_area(self):
        buildings = {"B1": _building(sprinklers=5, detection=5), "B2": _building(sprinklers=1, detection=1)}
        meta = [BuildingMeta(id="B1", floor_area_sqm=0, footprint_m2=3), BuildingMeta(id="B2", floor_area_sqm=-5)]
        # B1 weight 3, B2 weight 1 → (15 + 1) / 4 = 4.0
        assert compute_site_score(buildings, _site("reliable"), meta) == 4

    def test_unscored_buildings_skipped(self):
        buildings = {"B1": _building(sprinklers=4, detection=4), "B2": _building()}
        assert compute_site_score(buildings, _site("reliable")) == 4

    def test_no_scored_buildings(self):
        assert compute_site_score({"B1": _building()}, _site("reliable")) is None
        assert compute_site_score({}, _site("reliable")) is None

    @pytest.mark.parametrize("reliability,expected", [
        ("reliable", 5), ("unknown", 4), ("unreliable", 3), (None, 4),
    ])
    def test_reliability_caps(self, reliability, expected):
        buildings = {"B1": _building(sprinklers=5, detection=5)}
        assert compute_site_score(buildings, _site(reliability)) == expected

    def test_absent_site_caps_as_unknown(self):
        buildings = {"B1": _building(sprinklers=5, detection=5)}
        assert compute_site_score(buildings, None) == 4

    def test_cap_does_not_raise_low_score(self):
        buildings = {"B1": _building(sprinklers=2, detection=2)}
        assert compute_site_score(buildings, _site("unreliable")) == 2


class TestAllDerivedScores:
    def test_payload(self, sample_fire_protection_payload):
        result = compute_all_derived_scores(sample_fire_protection_payload)
        # B2: 0.7*1 + 0.3*2 = 1.3 → 1 ; site mean 3.0, unreliable cap 3
        assert result["building_scores"] == {"B1": 5, "B2": 1}
        assert result["site_score"] == 3

    def test_empty_payload(self):
        result = compute_all_derived_scores(FireProtectionPayload())
        assert result == {"building_scores": {}, "site_score": None}
