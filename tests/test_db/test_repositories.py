"""
Tests for the repository layer — insert, fetch, upsert, transitions.

Stored rows that no longer parse (template rules, module payloads) are
skipped or read back empty rather than failing the whole read.

Uses the in_memory_db fixture from conftest.py.
"""

from __future__ import annotations

import logging

import pytest

from risk_engine.db.repositories.action_repo import ActionRepository
from risk_engine.db.repositories.module_repo import ModuleInstanceRepository
from risk_engine.db.repositories.recommendation_repo import RecommendationRepository
from risk_engine.db.repositories.template_repo import TemplateRepository
from risk_engine.models.action import Action
from risk_engine.models.recommendation import Recommendation, RecommendationTemplate
from risk_engine.models.survey import FireProtectionPayload, ModuleInstance
from risk_engine.taxonomy.finding_taxonomy import (
    ActionPriority,
    ActionStatus,
    ModuleOutcome,
    RecommendationPriority,
    SourceType,
)


def _auto(factor: str = "construction", variant: str = "") -> Recommendation:
    return Recommendation(
        document_id="D1",
        source_type=SourceType.AUTO,
        source_module_key="RE_03_OCCUPANCY",
        source_factor_key=factor,
        variant=variant,
        priority=RecommendationPriority.HIGH,
        title="Construction Improvement Required",
    )


class TestActionRepository:
    def test_insert_and_fetch(self, in_memory_db, sample_actions):
        repo = ActionRepository(in_memory_db)
        ids = [repo.insert(a) for a in sample_actions]
        assert ids == sorted(ids)

        fetched = repo.get_for_document("DOC-1")
        assert [a.title for a in fetched] == [a.title for a in sample_actions]
        assert fetched[0].priority == ActionPriority.P1
        assert fetched[0].action_id == ids[0]

    def test_open_filter(self, in_memory_db, sample_actions):
        repo = ActionRepository(in_memory_db)
        ids = [repo.insert(a) for a in sample_actions]
        assert repo.set_status(ids[0], ActionStatus.COMPLETE)
        assert repo.set_status(ids[1], ActionStatus.IN_PROGRESS)

        open_titles = [a.title for a in repo.get_open_for_document("DOC-1")]
        assert "Final exit locked" not in open_titles
        assert "Fire policy out of date" in open_titles
        assert len(open_titles) == 4

    def test_missing_priority_round_trips_as_none(self, in_memory_db):
        repo = ActionRepository(in_memory_db)
        repo.insert(Action(document_id="D2", title="Legacy"))
        (action,) = repo.get_for_document("D2")
        assert action.priority is None

    def test_set_status_missing(self, in_memory_db):
        assert not ActionRepository(in_memory_db).set_status(999, ActionStatus.COMPLETE)


class TestTemplateRepository:
    def test_insert_and_get(self, in_memory_db, sample_template):
        repo = TemplateRepository(in_memory_db)
        tid = repo.insert(sample_template)
        fetched = repo.get_by_id(tid)
        assert fetched.template_id == tid
        assert fetched.title == sample_template.title
        assert fetched.rules == sample_template.rules

    def test_active_ordering(self, in_memory_db):
        repo = TemplateRepository(in_memory_db)
        low = repo.insert(RecommendationTemplate(title="low", sort_priority=1))
        high = repo.insert(RecommendationTemplate(title="high", sort_priority=9))
        tie = repo.insert(RecommendationTemplate(title="tie", sort_priority=9))
        assert [t.template_id for t in repo.get_active()] == [high, tie, low]

    def test_deactivate(self, in_memory_db, sample_template):
        repo = TemplateRepository(in_memory_db)
        tid = repo.insert(sample_template)
        assert repo.deactivate(tid)
        assert repo.get_active() == []
        assert repo.count() == 1

    @pytest.mark.parametrize("rules_json", ["{not json", '{"max_rating": 9}', "[1, 2]"])
    def test_malformed_rows_skipped(self, in_memory_db, sample_template, caplog, rules_json):
        in_memory_db.execute(
            "INSERT INTO recommendation_templates (title, sort_priority, rules_json) "
            "VALUES ('Broken', 99, ?);",
            (rules_json,),
        )
        repo = TemplateRepository(in_memory_db)
        good = repo.insert(sample_template)

        with caplog.at_level(logging.WARNING, logger="risk_engine.db.repositories.template_repo"):
            active = repo.get_active()

        assert [t.template_id for t in active] == [good]
        assert any("Skipping malformed template" in r.message for r in caplog.records)


class TestRecommendationRepository:
    def test_insert_auto_if_absent_idempotent(self, in_memory_db):
        repo = RecommendationRepository(in_memory_db)
        first = repo.insert_auto_if_absent(_auto())
        second = repo.insert_auto_if_absent(_auto())
        assert first == second
        assert repo.count_active_auto("D1") == 1

    def test_identity_axes(self, in_memory_db):
        repo = RecommendationRepository(in_memory_db)
        ids = {
            repo.insert_auto_if_absent(_auto()),
            repo.insert_auto_if_absent(_auto(variant="B1")),
            repo.insert_auto_if_absent(_auto(factor="process_safety_management")),
        }
        assert len(ids) == 3

    def test_manual_insert_alongside_auto(self, in_memory_db):
        repo = RecommendationRepository(in_memory_db)
        repo.insert_auto_if_absent(_auto())
        manual = _auto().model_copy(update={"source_type": SourceType.MANUAL})
        repo.insert(manual)
        assert len(repo.get_for_document("D1")) == 2
        assert repo.count_active_auto("D1") == 1

    def test_suppress_hides_from_default_listing(self, in_memory_db):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert_auto_if_absent(_auto())
        assert repo.suppress(rec_id)
        assert repo.find_active_auto("D1", "RE_03_OCCUPANCY", "construction") is None
        assert repo.get_for_document("D1") == []
        assert repo.get_by_id(rec_id).is_suppressed

    def test_set_status(self, in_memory_db):
        repo = RecommendationRepository(in_memory_db)
        rec_id = repo.insert_auto_if_absent(_auto())
        assert repo.set_status(rec_id, ActionStatus.DEFERRED)
        assert repo.get_by_id(rec_id).status == ActionStatus.DEFERRED

    def test_get_missing(self, in_memory_db):
        assert RecommendationRepository(in_memory_db).get_by_id(42) is None


class TestModuleInstanceRepository:
    def test_upsert_replaces(self, in_memory_db, catalog):
        repo = ModuleInstanceRepository(in_memory_db, catalog)
        first = repo.upsert(ModuleInstance(document_id="D1", module_key="FRA_1_HAZARDS"))
        second = repo.upsert(ModuleInstance(
            document_id="D1", module_key="FRA_1_HAZARDS",
            outcome=ModuleOutcome.MINOR_DEF, assessor_notes="updated",
        ))
        assert first == second
        inst = repo.get("D1", "FRA_1_HAZARDS")
        assert inst.outcome == ModuleOutcome.MINOR_DEF
        assert inst.assessor_notes == "updated"

    def test_legacy_key_payload_resolved(self, in_memory_db, catalog):
        repo = ModuleInstanceRepository(in_memory_db, catalog)
        repo.upsert(ModuleInstance(
            document_id="D1", module_key="RE_04_FIRE_PROTECTION",
            data={"buildings": {"B1": {"detection_alarm": {"rating": 2}}}},
        ))
        inst = repo.get("D1", "RE_06_FIRE_PROTECTION")
        assert inst.module_key == "RE_04_FIRE_PROTECTION"
        assert isinstance(inst.payload, FireProtectionPayload)
        assert inst.payload.buildings["B1"].detection_alarm.rating == 2

    def test_canonical_row_preferred(self, in_memory_db, catalog):
        repo = ModuleInstanceRepository(in_memory_db, catalog)
        repo.upsert(ModuleInstance(document_id="D1", module_key="RE_04_FIRE_PROTECTION"))
        repo.upsert(ModuleInstance(document_id="D1", module_key="RE_06_FIRE_PROTECTION"))
        assert repo.get("D1", "RE_04_FIRE_PROTECTION").module_key == "RE_06_FIRE_PROTECTION"

    def test_seed_missing_and_reconcile(self, in_memory_db, catalog):
        repo = ModuleInstanceRepository(in_memory_db, catalog)
        repo.upsert(ModuleInstance(document_id="D1", module_key="FRA_6_MANAGEMENT_SYSTEMS"))

        created = repo.seed_missing("D1", "FRA")
        expected = catalog.expected_module_keys("FRA")
        assert "A4_MANAGEMENT_CONTROLS" not in created
        assert len(created) == len(expected) - 1

        reconciled = repo.get_reconciled("D1", "FRA")
        assert len(reconciled) == len(expected)
        assert repo.seed_missing("D1", "FRA") == []

    def test_catalog_required(self, in_memory_db):
        repo = ModuleInstanceRepository(in_memory_db)
        with pytest.raises(ValueError):
            repo.seed_missing("D1", "FRA")

    def test_malformed_payload_read_as_empty(self, in_memory_db, catalog, caplog):
        in_memory_db.execute(
            "INSERT INTO module_instances (document_id, module_key, data_json) VALUES (?, ?, ?);",
            ("D1", "RE_06_FIRE_PROTECTION", '{"buildings": [{"id": "B1"}]}'),
        )
        repo = ModuleInstanceRepository(in_memory_db, catalog)
        repo.upsert(ModuleInstance(document_id="D1", module_key="FRA_1_HAZARDS"))

        with caplog.at_level(logging.WARNING, logger="risk_engine.db.repositories.module_repo"):
            instances = repo.get_for_document("D1")

        assert [i.module_key for i in instances] == ["RE_06_FIRE_PROTECTION", "FRA_1_HAZARDS"]
        broken = instances[0]
        assert broken.payload == FireProtectionPayload()
        assert broken.data == {"buildings": [{"id": "B1"}]}
        assert any("Malformed payload" in r.message for r in caplog.records)
