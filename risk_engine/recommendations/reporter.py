"""
Recommendation report writer: CSV and JSON output for trigger descriptors and
executive summaries.

All functions are pure I/O, no DB access.  They consume in-memory
``RecommendationDescriptor`` lists and ``ExecutiveSummary`` objects.

Output files
------------
  data/outputs/recommendations/
    recommendations_{document_id}_{date}.csv   -- one row per triggered descriptor
    executive_{document_id}_{date}.json        -- structured executive summary
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path

from risk_engine.executive.summary import ExecutiveSummary
from risk_engine.recommendations.triggers import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    RecommendationDescriptor,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "v1.0.0"

_PRIORITY_RANK = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1, PRIORITY_LOW: 2}

DESCRIPTOR_FIELDNAMES = [
    "id", "scope", "building_id", "factor_key", "category",
    "priority", "code", "trigger", "text",
]


def _descriptor_sort_key(rec: RecommendationDescriptor) -> tuple[int, str]:
    return (_PRIORITY_RANK.get(rec.priority, len(_PRIORITY_RANK)), rec.id)


def write_descriptor_csv(
    recs: list[RecommendationDescriptor],
    output_dir: Path,
    document_id: str,
    run_date: date | None = None,
) -> Path:
    """Write triggered recommendation descriptors to a CSV file.

    Rows are ordered by priority (high first), then by id.

    Args:
        recs:        Descriptors from the trigger rules.
        output_dir:  Directory to write the file (created if missing).
        document_id: Used in the filename.
        run_date:    Date label for the filename. Defaults to today.

    Returns:
        Path to the written CSV file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"recommendations_{document_id}_{run_date}.csv"

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=DESCRIPTOR_FIELDNAMES)
        writer.writeheader()
        for rec in sorted(recs, key=_descriptor_sort_key):
            writer.writerow(
                {
                    "id":          rec.id,
                    "scope":       rec.scope,
                    "building_id": rec.building_id or "",
                    "factor_key":  rec.factor_key or "",
                    "category":    rec.category,
                    "priority":    rec.priority,
                    "code":        rec.code,
                    "trigger":     rec.trigger,
                    "text":        rec.text,
                }
            )

    logger.info("Recommendation CSV written: %s (%d rows)", csv_path, len(recs))
    return csv_path


def summary_to_dict(summary: ExecutiveSummary, document_id: str = "") -> dict:
    """Plain-dict form of an executive summary, as written to JSON."""
    return {
        "schema_version":      SCHEMA_VERSION,
        "document_id":         document_id,
        "computed_outcome":    summary.computed_outcome.value,
        "material_deficiency": summary.material_deficiency,
        "counts":              dict(summary.counts),
        "top_issues": [
            {
                "rank":         rank,
                "title":        issue.title,
                "priority":     issue.priority.value,
                "category":     issue.category.value,
                "trigger_text": issue.trigger_text,
            }
            for rank, issue in enumerate(summary.top_issues, start=1)
        ],
        "tone_paragraph":      summary.tone_paragraph,
    }


def write_executive_json(
    summary: ExecutiveSummary,
    output_dir: Path,
    document_id: str,
    run_date: date | None = None,
) -> Path:
    """Write an executive summary to a structured JSON file.

    Returns:
        Path to the written JSON file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"executive_{document_id}_{run_date}.json"

    payload = summary_to_dict(summary, document_id)
    payload["generated_at"] = run_date.isoformat()

    with json_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info("Executive summary JSON written: %s", json_path)
    return json_path
