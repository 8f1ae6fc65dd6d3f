"""
Survey Risk Engine — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Load reference tables / validate inputs.
  4. Execute action (DB init, scoring, recommendation, summary).
  5. Report result to stdout.

Install and run::

    pip install -e .
    risk-engine --help
    risk-engine init-db
    risk-engine validate-config
    risk-engine list-modules --doc-type FRA
    risk-engine score-fire-protection --file payload.json
    risk-engine ensure-recommendation --document-id D1 --module-key RE_03_OCCUPANCY \\
        --factor-key flammable_liquids_and_fire_risk --rating 1
    risk-engine factor-help --industry data_center --factor-key electrical_and_utilities_reliability
    risk-engine risk-profile --sector "Food & Beverage" --construction 60 --protection 70 ...
    risk-engine import-templates --file config/recommendation_templates.toml
    risk-engine executive-summary --document-id D1 --band High --occupancy Sleeping
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="risk-engine",
    help="Survey risk engine — scoring, recommendations and executive summaries.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from risk_engine.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from risk_engine.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_tables_or_exit(config):
    """Load catalog + weighting tables, exiting on failure."""
    from risk_engine.bootstrap import load_engine_tables

    try:
        return load_engine_tables(config)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"[ERROR] Reference table validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _db_settings(config, db_path: Optional[str]) -> dict:
    return {
        "db_path": db_path or config.database.db_path,
        "wal_mode": config.database.wal_mode,
        "busy_timeout_ms": config.database.busy_timeout_ms,
    }


def _parse_choice(enum_cls, value: str, option: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        typer.echo(f"[ERROR] Invalid {option} '{value}'. Choose from: {allowed}.", err=True)
        raise typer.Exit(code=1)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from risk_engine.db.connection import get_connection
    from risk_engine.db.migrations import run_migrations
    from risk_engine.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration and reference tables, then print parsed values.

    Exits with code 1 if the config, module catalog or weighting tables fail
    validation.
    """
    config = _load_config_or_exit(config_path)
    engine = _load_tables_or_exit(config)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Module catalog:   {config.reference.catalog_file} "
               f"(v{engine.catalog.version}, {len(engine.catalog)} modules)")
    typer.echo(f"  Weighting tables: {config.reference.weighting_file} "
               f"(v{engine.tables.version}, {len(engine.tables.industries)} industries)")
    typer.echo(f"  Output dir:       {config.output.output_dir}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("list-modules")
def list_modules(
    doc_type: str = typer.Option(
        ...,
        "--doc-type",
        help="Document type (FRA, FSD, DSEAR, RE).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """List the catalog modules applicable to a document type, in display order."""
    from risk_engine.taxonomy.module_catalog import DocType

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    engine = _load_tables_or_exit(config)

    dt = _parse_choice(DocType, doc_type, "--doc-type")
    keys = engine.catalog.get_module_keys_for_doc_type(dt)

    typer.echo(f"{dt.value}: {len(keys)} module(s)")
    for key in keys:
        entry = engine.catalog.get_entry(key)
        order = entry.order if entry and entry.order is not None else "-"
        kind = entry.kind.value if entry else "?"
        typer.echo(f"  {str(order):>3}  {key:<32} {engine.catalog.get_module_name(key)}  [{kind}]")


@app.command("score-fire-protection")
def score_fire_protection(
    payload_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help=(
            "JSON file with the fire protection module data "
            "({'buildings': {...}, 'site': {...}}); an optional top-level "
            "'building_meta' array supplies floor areas."
        ),
    ),
    document_id: Optional[str] = typer.Option(
        None,
        "--document-id",
        help="If set, write the triggered recommendations to CSV under this id.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Compute building/site fire protection scores and triggered recommendations."""
    from pydantic import ValidationError

    from risk_engine.config import resolve_path
    from risk_engine.models.survey import BuildingMeta, FireProtectionPayload
    from risk_engine.recommendations.reporter import write_descriptor_csv
    from risk_engine.recommendations.triggers import (
        generate_fire_protection_recommendations,
        summarize_by_priority,
    )
    from risk_engine.scoring.fire_protection import compute_all_derived_scores

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(payload_file)
    if not path.exists():
        typer.echo(f"[ERROR] Payload file not found: {path}", err=True)
        raise typer.Exit(code=1)

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        typer.echo(f"[ERROR] JSON parse error: {exc}", err=True)
        raise typer.Exit(code=1)

    if not isinstance(raw, dict):
        typer.echo("[ERROR] Payload file must contain a JSON object.", err=True)
        raise typer.Exit(code=1)

    try:
        meta = [BuildingMeta.model_validate(m) for m in raw.pop("building_meta", None) or []]
        payload = FireProtectionPayload.model_validate(raw)
    except ValidationError as exc:
        typer.echo(f"[ERROR] Payload validation failed:\n{exc}", err=True)
        raise typer.Exit(code=1)

    scores = compute_all_derived_scores(payload, meta)
    recs = generate_fire_protection_recommendations(payload)

    typer.echo("Building scores:")
    for building_id, score in scores["building_scores"].items():
        typer.echo(f"  {building_id:<16} {score if score is not None else '-'}")
    site_score = scores["site_score"]
    typer.echo(f"Site score: {site_score if site_score is not None else '-'}")

    summary = summarize_by_priority(recs)
    typer.echo(
        f"Recommendations: {summary['total']} "
        f"(high={summary['high']}, medium={summary['medium']}, low={summary['low']})"
    )
    for rec in recs:
        typer.echo(f"  [{rec.priority}] {rec.id}: {rec.text}")

    if document_id:
        out_dir = resolve_path(config.output.output_dir) / "recommendations"
        csv_path = write_descriptor_csv(recs, out_dir, document_id)
        typer.echo(f"  CSV written: {csv_path}")

    typer.echo("[OK] Scoring complete.")


@app.command("ensure-recommendation")
def ensure_recommendation(
    document_id: str = typer.Option(..., "--document-id", help="Owning document id."),
    module_key: str = typer.Option(..., "--module-key", help="Module key (aliases accepted)."),
    rating: str = typer.Option(..., "--rating", help="Rating 1-5."),
    factor_key: Optional[str] = typer.Option(None, "--factor-key", help="Rated factor key."),
    industry_key: Optional[str] = typer.Option(None, "--industry", help="Industry key."),
    variant: str = typer.Option("", "--variant", help="Identity variant."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Ensure an auto recommendation exists for an inadequate (1-2) rating.

    Idempotent: running twice returns the same recommendation id.
    """
    from risk_engine.db.connection import get_connection
    from risk_engine.recommendations.pipeline import RecommendationPipeline

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    engine = _load_tables_or_exit(config)
    settings = _db_settings(config, db_path)

    with get_connection(
        settings["db_path"],
        wal_mode=settings["wal_mode"],
        busy_timeout_ms=settings["busy_timeout_ms"],
    ) as conn:
        pipeline = RecommendationPipeline(conn, engine.catalog)
        rec_id = pipeline.ensure_recommendation_from_rating(
            document_id, module_key, factor_key, rating, industry_key, variant
        )

    if rec_id is None:
        typer.echo("No recommendation created.")
        return
    typer.echo(f"[OK] Recommendation id: {rec_id}")


@app.command("factor-help")
def factor_help(
    factor_key: str = typer.Option(..., "--factor-key", help="Risk factor key."),
    industry_key: Optional[str] = typer.Option(None, "--industry", help="Industry key."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Show the weight and assessor guidance for a factor in an industry."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    engine = _load_tables_or_exit(config)

    factor_config = engine.tables.get_factor_config(industry_key, factor_key)
    label = engine.tables.industry_label(industry_key) if industry_key else "-"
    typer.echo(f"Industry: {label}")
    typer.echo(f"Factor:   {factor_key}")
    typer.echo(f"Weight:   {factor_config.weight:g}")
    if factor_config.help_text:
        typer.echo(f"Guidance: {factor_config.help_text}")


@app.command("risk-profile")
def risk_profile(
    sector: str = typer.Option("General Industrial", "--sector", help="Industry sector."),
    construction: float = typer.Option(0.0, "--construction", help="Score 0-100."),
    protection: float = typer.Option(0.0, "--protection", help="Score 0-100."),
    detection: float = typer.Option(0.0, "--detection", help="Score 0-100."),
    management: float = typer.Option(0.0, "--management", help="Score 0-100."),
    hazards: float = typer.Option(0.0, "--hazards", help="Score 0-100."),
    bi: float = typer.Option(0.0, "--bi", help="Business interruption score 0-100."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Sector-weighted overall risk score, band and dimension breakdown."""
    from risk_engine.scoring.overall import compute_risk_profile
    from risk_engine.taxonomy.finding_taxonomy import RiskDimension

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    scores = {
        RiskDimension.CONSTRUCTION: construction,
        RiskDimension.PROTECTION: protection,
        RiskDimension.DETECTION: detection,
        RiskDimension.MANAGEMENT: management,
        RiskDimension.HAZARDS: hazards,
        RiskDimension.BI: bi,
    }
    for dimension, value in scores.items():
        if not 0 <= value <= 100:
            typer.echo(f"[ERROR] --{dimension.value} must be in 0..100, got {value:g}.", err=True)
            raise typer.Exit(code=1)

    profile = compute_risk_profile(scores, sector)

    typer.echo(f"Sector: {profile.sector}")
    typer.echo(f"Risk score: {profile.score} ({profile.band.value})")
    for c in profile.contributions:
        typer.echo(
            f"  {c.name:<30} score={c.score:g}  weight={c.percentage:>4}  "
            f"contribution={float(c.contribution):.2f}"
        )
    typer.echo("Lowest contributors: " + ", ".join(c.name for c in profile.lowest))


@app.command("import-templates")
def import_templates(
    templates_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="TOML file with one [[templates]] table per recommendation template.",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate templates but do not write to the database.",
    ),
) -> None:
    """Import recommendation library templates from a TOML file."""
    import tomllib

    from pydantic import ValidationError

    from risk_engine.db.connection import get_connection
    from risk_engine.db.repositories.template_repo import TemplateRepository
    from risk_engine.models.recommendation import RecommendationTemplate

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(templates_file)
    if not path.exists():
        typer.echo(f"[ERROR] Templates file not found: {path}", err=True)
        raise typer.Exit(code=1)

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        typer.echo(f"[ERROR] TOML parse error: {exc}", err=True)
        raise typer.Exit(code=1)

    validated: list[RecommendationTemplate] = []
    errors: list[tuple[int, str]] = []
    for i, item in enumerate(raw.get("templates", [])):
        try:
            validated.append(RecommendationTemplate.model_validate(item))
        except ValidationError as exc:
            errors.append((i, str(exc)))

    if errors:
        typer.echo(f"[ERROR] {len(errors)} template(s) failed validation:", err=True)
        for idx, msg in errors[:5]:
            typer.echo(f"  Template #{idx}: {msg}", err=True)
        if len(errors) > 5:
            typer.echo(f"  ... and {len(errors) - 5} more.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Validated {len(validated)} template(s).")

    if dry_run:
        typer.echo("[DRY RUN] No templates written to database.")
        for t in validated:
            typer.echo(f"  {t.sort_priority:>3} | {t.title}")
        return

    settings = _db_settings(config, db_path)
    with get_connection(
        settings["db_path"],
        wal_mode=settings["wal_mode"],
        busy_timeout_ms=settings["busy_timeout_ms"],
    ) as conn:
        ids = TemplateRepository(conn).insert_many(validated)

    typer.echo(f"  Inserted {len(ids)} template(s) into database.")
    typer.echo("[OK] Templates imported.")


@app.command("executive-summary")
def executive_summary(
    document_id: str = typer.Option(..., "--document-id", help="Document id."),
    band: str = typer.Option("Low", "--band", help="Complexity band (Low, Moderate, High, VeryHigh)."),
    occupancy: str = typer.Option(
        "NonSleeping",
        "--occupancy",
        help="Occupancy risk (NonSleeping, Sleeping, Vulnerable).",
    ),
    storeys: Optional[int] = typer.Option(None, "--storeys", help="Number of storeys."),
    write_json: bool = typer.Option(False, "--json", help="Also write the summary as JSON."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Aggregate a document's open actions into an executive summary."""
    from risk_engine.config import resolve_path
    from risk_engine.db.connection import get_connection
    from risk_engine.db.repositories.action_repo import ActionRepository
    from risk_engine.executive.summary import compute_summary
    from risk_engine.models.action import AssessmentContext
    from risk_engine.recommendations.reporter import write_executive_json
    from risk_engine.taxonomy.finding_taxonomy import ComplexityBand, OccupancyRisk

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    complexity_band = _parse_choice(ComplexityBand, band, "--band")
    occupancy_risk = _parse_choice(OccupancyRisk, occupancy, "--occupancy")
    context = AssessmentContext(occupancy_risk=occupancy_risk, storeys=storeys)

    settings = _db_settings(config, db_path)
    try:
        with get_connection(
            settings["db_path"],
            busy_timeout_ms=settings["busy_timeout_ms"],
            read_only=True,
        ) as conn:
            actions = ActionRepository(conn).get_open_for_document(document_id)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}. Run init-db first.", err=True)
        raise typer.Exit(code=1)

    summary = compute_summary(actions, complexity_band, context)

    typer.echo(f"Outcome: {summary.computed_outcome.value}")
    typer.echo(f"Material deficiency: {summary.material_deficiency}")
    typer.echo("Counts: " + ", ".join(f"{k}={v}" for k, v in summary.counts.items()))
    typer.echo("Top issues:")
    for rank, issue in enumerate(summary.top_issues, start=1):
        line = f"  {rank}. [{issue.priority.value}] {issue.title}"
        if issue.trigger_text:
            line += f": {issue.trigger_text}"
        typer.echo(line)
    typer.echo("")
    typer.echo(summary.tone_paragraph)

    if write_json:
        out_dir = resolve_path(config.output.output_dir) / "executive"
        json_path = write_executive_json(summary, out_dir, document_id)
        typer.echo(f"  JSON written: {json_path}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
