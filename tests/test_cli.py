"""
Tests for risk_engine/cli.py, driven through typer's CliRunner.

Each test writes a throwaway config whose database, output directory and
reference-table paths are absolute paths (under tmp_path or the repo's
config/), so nothing touches the working tree.

What we test
------------
  - init-db creates the schema and is repeatable.
  - validate-config accepts the shipped tables and rejects a broken one.
  - list-modules prints modules in order; unknown doc type exits 1.
  - score-fire-protection prints scores/recommendations and writes CSV.
  - ensure-recommendation is idempotent; adequate ratings create nothing.
  - import-templates validates, supports --dry-run and writes rows.
  - executive-summary aggregates stored actions and writes JSON, and
    refuses to run against a database that does not exist yet.
  - factor-help prints weight and guidance, with a note when no industry
    is selected.
  - risk-profile prints the sector-weighted score and rejects scores
    outside 0..100.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from risk_engine.cli import app
from risk_engine.db.connection import get_connection
from risk_engine.db.repositories.action_repo import ActionRepository

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path) -> dict:
    """Config file + paths for one isolated CLI session."""
    db_path = tmp_path / "db" / "test.db"
    out_dir = tmp_path / "outputs"
    config_path = tmp_path / "test.toml"
    config_path.write_text(
        f"""
[database]
db_path = "{db_path.as_posix()}"
wal_mode = false

[reference]
catalog_file = "{(CONFIG_DIR / 'module_catalog.toml').as_posix()}"
weighting_file = "{(CONFIG_DIR / 'weighting.toml').as_posix()}"

[output]
output_dir = "{out_dir.as_posix()}"

[logging]
level = "WARNING"
log_file = ""
""",
        encoding="utf-8",
    )
    return {"config": str(config_path), "db_path": db_path, "out_dir": out_dir, "tmp": tmp_path}


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _init(cli_env) -> None:
    result = _invoke("init-db", "--config", cli_env["config"])
    assert result.exit_code == 0, result.output


class TestInitDb:
    def test_creates_and_repeats(self, cli_env):
        _init(cli_env)
        assert cli_env["db_path"].exists()
        result = _invoke("init-db", "--config", cli_env["config"])
        assert result.exit_code == 0
        assert "Migrations applied: 0" in result.output
        assert "[OK] Database ready." in result.output

    def test_missing_config(self, tmp_path):
        result = _invoke("init-db", "--config", str(tmp_path / "absent.toml"))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestValidateConfig:
    def test_ok(self, cli_env):
        result = _invoke("validate-config", "--config", cli_env["config"])
        assert result.exit_code == 0, result.output
        assert "v2026.1" in result.output
        assert "[OK] Config valid." in result.output

    def test_broken_weighting_table(self, cli_env):
        broken = cli_env["tmp"] / "weighting.toml"
        broken.write_text(
            "[industries.x.weights]\nsafety_and_control_systems = 9\n", encoding="utf-8"
        )
        cfg = Path(cli_env["config"])
        cfg.write_text(
            cfg.read_text(encoding="utf-8").replace(
                (CONFIG_DIR / "weighting.toml").as_posix(), broken.as_posix()
            ),
            encoding="utf-8",
        )
        result = _invoke("validate-config", "--config", cli_env["config"])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestListModules:
    def test_fra(self, cli_env):
        result = _invoke("list-modules", "--doc-type", "FRA", "--config", cli_env["config"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("FRA: ")
        assert result.output.index("A1_DOC_CONTROL") < result.output.index("A2_BUILDING_PROFILE")

    def test_unknown_doc_type(self, cli_env):
        result = _invoke("list-modules", "--doc-type", "XYZ", "--config", cli_env["config"])
        assert result.exit_code == 1
        assert "Invalid --doc-type" in result.output


class TestScoreFireProtection:
    def test_scores_and_csv(self, cli_env, sample_fire_protection_payload):
        payload = sample_fire_protection_payload.model_dump(mode="json")
        payload["building_meta"] = [
            {"id": "B1", "floor_area_sqm": 1000},
            {"id": "B2", "floor_area_sqm": 3000},
        ]
        payload_file = cli_env["tmp"] / "payload.json"
        payload_file.write_text(json.dumps(payload), encoding="utf-8")

        result = _invoke(
            "score-fire-protection", "--file", str(payload_file),
            "--document-id", "DOC-9", "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Site score:" in result.output
        assert "Recommendations: 4 (high=3, medium=1, low=0)" in result.output
        assert list((cli_env["out_dir"] / "recommendations").glob("recommendations_DOC-9_*.csv"))

    def test_missing_file(self, cli_env):
        result = _invoke(
            "score-fire-protection", "--file", str(cli_env["tmp"] / "none.json"),
            "--config", cli_env["config"],
        )
        assert result.exit_code == 1

    def test_non_object_payload(self, cli_env):
        payload_file = cli_env["tmp"] / "list.json"
        payload_file.write_text("[1, 2]", encoding="utf-8")
        result = _invoke("score-fire-protection", "-f", str(payload_file), "--config", cli_env["config"])
        assert result.exit_code == 1
        assert "JSON object" in result.output


class TestEnsureRecommendation:
    def _ensure(self, cli_env, rating: str):
        return _invoke(
            "ensure-recommendation",
            "--document-id", "DOC-1",
            "--module-key", "RE_03_OCCUPANCY",
            "--factor-key", "process_safety_management",
            "--rating", rating,
            "--config", cli_env["config"],
        )

    def test_idempotent(self, cli_env):
        _init(cli_env)
        first = self._ensure(cli_env, "1")
        second = self._ensure(cli_env, "1")
        assert first.exit_code == 0, first.output
        assert "[OK] Recommendation id: 1" in first.output
        assert "[OK] Recommendation id: 1" in second.output

        with sqlite3.connect(cli_env["db_path"]) as conn:
            n = conn.execute("SELECT COUNT(*) FROM recommendations;").fetchone()[0]
        assert n == 1

    def test_adequate_rating(self, cli_env):
        _init(cli_env)
        result = self._ensure(cli_env, "4")
        assert result.exit_code == 0
        assert "No recommendation created." in result.output


class TestImportTemplates:
    def test_dry_run(self, cli_env):
        result = _invoke(
            "import-templates", "--file", str(CONFIG_DIR / "recommendation_templates.toml"),
            "--dry-run", "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Validated 3 template(s)." in result.output
        assert "[DRY RUN]" in result.output

    def test_import(self, cli_env):
        _init(cli_env)
        result = _invoke(
            "import-templates", "--file", str(CONFIG_DIR / "recommendation_templates.toml"),
            "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Inserted 3 template(s)" in result.output

    def test_invalid_template(self, cli_env):
        bad = cli_env["tmp"] / "bad.toml"
        bad.write_text('[[templates]]\ntitle = " "\n', encoding="utf-8")
        result = _invoke("import-templates", "--file", str(bad), "--config", cli_env["config"])
        assert result.exit_code == 1
        assert "failed validation" in result.output


class TestExecutiveSummary:
    def test_summary_and_json(self, cli_env, sample_actions):
        _init(cli_env)
        with get_connection(str(cli_env["db_path"]), wal_mode=False) as conn:
            repo = ActionRepository(conn)
            for action in sample_actions:
                repo.insert(action)

        result = _invoke(
            "executive-summary", "--document-id", "DOC-1", "--band", "High",
            "--occupancy", "Sleeping", "--json", "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Outcome: MaterialLifeSafetyRiskPresent" in result.output
        assert "Counts: P1=1, P2=2, P3=1, P4=1" in result.output
        assert "2. [P2] Detector coverage gaps" in result.output

        (json_file,) = (cli_env["out_dir"] / "executive").glob("executive_DOC-1_*.json")
        data = json.loads(json_file.read_text(encoding="utf-8"))
        assert data["material_deficiency"] is True

    def test_missing_database(self, cli_env):
        result = _invoke(
            "executive-summary", "--document-id", "DOC-1", "--band", "High",
            "--config", cli_env["config"],
        )
        assert result.exit_code == 1
        assert "Run init-db first" in result.output
        assert not cli_env["db_path"].exists()

    def test_invalid_band(self, cli_env):
        _init(cli_env)
        result = _invoke(
            "executive-summary", "--document-id", "DOC-1", "--band", "Extreme",
            "--config", cli_env["config"],
        )
        assert result.exit_code == 1
        assert "Invalid --band" in result.output


class TestFactorHelp:
    def test_industry_guidance(self, cli_env):
        result = _invoke(
            "factor-help", "--industry", "chemical_batch_processing",
            "--factor-key", "process_control_and_stability", "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Weight:   5" in result.output
        assert "Guidance: Batch chemical operations" in result.output

    def test_no_industry(self, cli_env):
        result = _invoke(
            "factor-help", "--factor-key", "process_control_and_stability",
            "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Weight:   1" in result.output
        assert "No industry selected" in result.output


class TestRiskProfile:
    def test_food_and_beverage(self, cli_env):
        result = _invoke(
            "risk-profile", "--sector", "Food & Beverage",
            "--construction", "60", "--protection", "70", "--detection", "80",
            "--management", "50", "--hazards", "40", "--bi", "90",
            "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "Risk score: 66 (Tolerable)" in result.output
        assert "Lowest contributors: Special Hazards, Business Interruption" in result.output

    def test_score_out_of_range(self, cli_env):
        result = _invoke("risk-profile", "--protection", "120", "--config", cli_env["config"])
        assert result.exit_code == 1
        assert "--protection must be in 0..100" in result.output
