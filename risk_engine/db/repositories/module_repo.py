"""
Repository for module instances — one row per (document, module key).

Stored rows may carry legacy module keys.  When a ``ModuleCatalog`` is
supplied, keys are resolved to canonical keys before the payload variant is
chosen, and ``get_reconciled`` collapses legacy/canonical duplicates into
the document's expected module list.

A stored payload that no longer fits its typed variant is logged at WARNING
and read back with an empty payload, so one bad row never hides the rest of
the document.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Iterable, Optional

from pydantic import ValidationError

from risk_engine.db.repositories.base import NOW_SQL, BaseRepository
from risk_engine.models.survey import ModuleInstance, parse_module_payload
from risk_engine.taxonomy.finding_taxonomy import ModuleOutcome
from risk_engine.taxonomy.module_catalog import ModuleCatalog

logger = logging.getLogger(__name__)


class ModuleInstanceRepository(BaseRepository):
    """Read/write access to the ``module_instances`` table.

    Args:
        conn:    Open connection.
        catalog: Optional catalog for alias resolution.  Without one, stored
                 keys are used as-is.
    """

    def __init__(
        self, conn: sqlite3.Connection, catalog: Optional[ModuleCatalog] = None
    ) -> None:
        super().__init__(conn)
        self.catalog = catalog

    def _canonical(self, key: str) -> str:
        return self.catalog.resolve_canonical_key(key) if self.catalog else key

    def upsert(self, instance: ModuleInstance) -> int:
        """Insert or replace the row for (document_id, module_key); returns its id."""
        self.execute(
            f"""
            INSERT INTO module_instances (
                document_id, module_key, outcome, assessor_notes, data_json, updated_at
            ) VALUES (?, ?, ?, ?, ?, {NOW_SQL})
            ON CONFLICT(document_id, module_key) DO UPDATE SET
                outcome        = excluded.outcome,
                assessor_notes = excluded.assessor_notes,
                data_json      = excluded.data_json,
                updated_at     = excluded.updated_at;
            """,
            (
                instance.document_id,
                instance.module_key,
                instance.outcome.value if instance.outcome else None,
                instance.assessor_notes,
                json.dumps(instance.data),
            ),
        )
        row_id = self.scalar(
            "SELECT instance_id FROM module_instances WHERE document_id = ? AND module_key = ?;",
            (instance.document_id, instance.module_key),
        )
        assert row_id is not None
        return int(row_id)

    def get(self, document_id: str, module_key: str) -> Optional[ModuleInstance]:
        """Fetch one instance, preferring the canonical key over legacy aliases."""
        canonical = self._canonical(module_key)
        candidates = [
            inst for inst in self.get_for_document(document_id)
            if self._canonical(inst.module_key) == canonical
        ]
        for inst in candidates:
            if inst.module_key == canonical:
                return inst
        return candidates[0] if candidates else None

    def get_for_document(self, document_id: str) -> list[ModuleInstance]:
        """All stored instances for a document, in insertion order."""
        rows = self.fetchall(
            "SELECT * FROM module_instances WHERE document_id = ? ORDER BY instance_id;",
            (document_id,),
        )
        return [self._row_to_instance(r) for r in rows]

    def get_reconciled(
        self,
        document_id: str,
        doc_type: str,
        enabled_modules: Optional[Iterable[str]] = None,
    ) -> list[ModuleInstance]:
        """One instance per expected module key, in catalog order.

        Raises:
            ValueError: If the repository was built without a catalog.
        """
        if self.catalog is None:
            raise ValueError("get_reconciled requires a ModuleCatalog.")
        expected = self.catalog.expected_module_keys(doc_type, enabled_modules)
        return self.catalog.reconcile_instances(self.get_for_document(document_id), expected)

    def seed_missing(
        self,
        document_id: str,
        doc_type: str,
        enabled_modules: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Create empty instances for expected modules with no row yet.

        Returns:
            The module keys that were created.

        Raises:
            ValueError: If the repository was built without a catalog.
        """
        if self.catalog is None:
            raise ValueError("seed_missing requires a ModuleCatalog.")
        existing = [inst.module_key for inst in self.get_for_document(document_id)]
        missing = self.catalog.missing_module_keys(existing, doc_type, enabled_modules)
        for key in missing:
            self.upsert(ModuleInstance(document_id=document_id, module_key=key))
        if missing:
            logger.info("Seeded %d module(s) for document %s.", len(missing), document_id)
        return missing

    def _row_to_instance(self, row: sqlite3.Row) -> ModuleInstance:
        data = json.loads(row["data_json"] or "{}")
        canonical = self._canonical(row["module_key"])
        try:
            payload = parse_module_payload(canonical, data)
        except ValidationError as exc:
            # ``data`` stays as stored; only the typed view is reset.
            logger.warning(
                "Malformed payload for %s/%s (instance %s); using an empty payload: %s",
                row["document_id"], row["module_key"], row["instance_id"], exc,
            )
            payload = parse_module_payload(canonical, {})
        return ModuleInstance(
            instance_id=row["instance_id"],
            document_id=row["document_id"],
            module_key=row["module_key"],
            outcome=ModuleOutcome(row["outcome"]) if row["outcome"] else None,
            assessor_notes=row["assessor_notes"],
            data=data,
            payload=payload,
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
