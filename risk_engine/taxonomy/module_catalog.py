"""
Canonical module catalog and legacy-key alias table.

Every survey document is made of *module instances*, each keyed by a module
key such as ``FRA_2_ESCAPE_ASIS`` or ``RE_06_FIRE_PROTECTION``.  Module keys
have been renamed over the life of the platform, so stored rows may carry a
legacy key.  This module is the single place that knows:

  - which canonical keys exist, their display names and sort order,
  - which document types (FRA, FSD, DSEAR, RE) each module belongs to,
  - whether a module is an *input* (assessor-edited) or *derived* module,
  - how legacy keys map onto canonical keys.

Resolution is a single-step lookup: the loader rejects alias tables whose
targets are not catalog keys or whose sources shadow a catalog key, so
``resolve_canonical_key`` is idempotent by construction.

TOML structure expected in config/module_catalog.toml
------------------------------------------------------
    [meta]
    version = "2026.1"

    [modules.FRA_2_ESCAPE_ASIS]
    name      = "FRA-2 - Means of Escape (As-Is)"
    doc_types = ["FRA"]
    order     = 11
    kind      = "input"
    hidden    = false

    [aliases]
    RE_01_DOC_CONTROL = "RE_01_DOCUMENT_CONTROL"

The catalog is loaded once at process start (``risk_engine.bootstrap``) and
passed by reference; there is no module-level cache.
"""

from __future__ import annotations

import logging
import math
import tomllib
from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)


class DocType(StrEnum):
    """Survey document types."""

    FRA = "FRA"
    FSD = "FSD"
    DSEAR = "DSEAR"
    RE = "RE"


_DOC_TYPE_VALUES = frozenset(d.value for d in DocType)


class ModuleKind(StrEnum):
    """Whether assessors edit a module or the engine derives it."""

    INPUT = "input"
    DERIVED = "derived"


class CatalogEntry(BaseModel):
    """One canonical module definition.

    ``kind`` has no default: an entry that omits it fails validation and
    aborts the catalog load.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    doc_types: tuple[DocType, ...]
    order: Optional[int] = None
    kind: ModuleKind
    hidden: bool = False

    @field_validator("key", "name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Catalog key and name must be non-empty.")
        return v


class HasModuleKey(Protocol):
    """Anything carrying a ``module_key`` attribute (e.g. ``ModuleInstance``)."""

    module_key: str


_T = TypeVar("_T", bound=HasModuleKey)


class ModuleCatalog:
    """Immutable view over catalog entries and the alias table.

    Args:
        entries: Catalog entries in definition order.
        aliases: Mapping of legacy key -> canonical key.
        version: Catalog version string from ``[meta]``.

    Raises:
        ValueError: If keys repeat, an alias target is not a catalog key, or
            an alias source shadows a catalog key.
    """

    def __init__(
        self,
        entries: Sequence[CatalogEntry],
        aliases: Mapping[str, str] | None = None,
        version: str = "unversioned",
    ) -> None:
        by_key: dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.key in by_key:
                raise ValueError(f"Duplicate module key in catalog: '{entry.key}'.")
            by_key[entry.key] = entry

        alias_map = dict(aliases or {})
        for legacy, target in alias_map.items():
            if legacy in by_key:
                raise ValueError(
                    f"Alias '{legacy}' shadows a canonical catalog key."
                )
            if target not in by_key:
                raise ValueError(
                    f"Alias '{legacy}' targets unknown module key '{target}'."
                )

        self._entries: tuple[CatalogEntry, ...] = tuple(by_key.values())
        self._by_key = by_key
        self._definition_index = {key: i for i, key in enumerate(by_key)}
        self._aliases = alias_map
        self.version = version

    # ── Lookups ───────────────────────────────────────────────────────────────

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    @property
    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._entries)

    def resolve_canonical_key(self, key: str) -> str:
        """Map a legacy key to its canonical key; unknown keys pass through."""
        return self._aliases.get(key, key)

    def get_entry(self, key: str) -> Optional[CatalogEntry]:
        """Return the catalog entry for ``key`` (aliases resolved), or None."""
        return self._by_key.get(self.resolve_canonical_key(key))

    def get_module_name(self, key: str) -> str:
        """Display name for ``key``; falls back to the key itself."""
        entry = self.get_entry(key)
        return entry.name if entry is not None else key

    def _order_key(self, key: str) -> float:
        entry = self.get_entry(key)
        if entry is None or entry.order is None:
            return math.inf
        return float(entry.order)

    # ── Document-type queries ─────────────────────────────────────────────────

    def get_module_keys_for_doc_type(self, doc_type: str) -> list[str]:
        """Visible module keys for ``doc_type``, ascending by ``order``.

        Entries without an order sort after every ordered entry; ties keep
        catalog definition order.
        """
        matching = [
            e for e in self._entries
            if doc_type in e.doc_types and not e.hidden
        ]
        ranked = sorted(
            matching,
            key=lambda e: (
                math.inf if e.order is None else e.order,
                self._definition_index[e.key],
            ),
        )
        return [e.key for e in ranked]

    def expected_module_keys(
        self,
        doc_type: str,
        enabled_modules: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Module keys a document should hold.

        A combined assessment (e.g. an FRA with DSEAR enabled) also expects
        the baseline modules of every additionally enabled document type.
        Duplicates are removed, first occurrence wins.
        """
        expected = list(self.get_module_keys_for_doc_type(doc_type))
        for extra in enabled_modules or ():
            if extra == doc_type or extra not in _DOC_TYPE_VALUES:
                continue
            expected.extend(self.get_module_keys_for_doc_type(extra))
        return list(dict.fromkeys(expected))

    def missing_module_keys(
        self,
        existing_keys: Iterable[str],
        doc_type: str,
        enabled_modules: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Expected keys with no existing instance (legacy keys count as present)."""
        present = {self.resolve_canonical_key(k) for k in existing_keys}
        return [
            k for k in self.expected_module_keys(doc_type, enabled_modules)
            if k not in present
        ]

    # ── Instance ordering & reconciliation ───────────────────────────────────

    def sort_by_order(self, instances: Sequence[_T]) -> list[_T]:
        """Stable sort of module instances by catalog order.

        Unknown keys sort last, keeping their relative input order.
        """
        indexed = list(enumerate(instances))
        indexed.sort(key=lambda pair: (self._order_key(pair[1].module_key), pair[0]))
        return [inst for _, inst in indexed]

    def reconcile_instances(
        self,
        instances: Sequence[_T],
        canonical_keys: Sequence[str],
    ) -> list[_T]:
        """Collapse instances to one per canonical key.

        When several rows resolve to the same canonical key, the row stored
        under the canonical key itself wins; otherwise the first row seen.
        Rows resolving outside ``canonical_keys`` are dropped with a warning.
        The result follows the order of ``canonical_keys``.
        """
        wanted = set(canonical_keys)
        chosen: dict[str, _T] = {}

        for inst in instances:
            canonical = self.resolve_canonical_key(inst.module_key)
            if canonical not in wanted:
                logger.warning(
                    "Dropping module instance '%s' (resolves to '%s'): "
                    "not expected for this document.",
                    inst.module_key,
                    canonical,
                )
                continue

            current = chosen.get(canonical)
            if current is None:
                chosen[canonical] = inst
            elif inst.module_key == canonical and current.module_key != canonical:
                chosen[canonical] = inst
            else:
                logger.debug(
                    "Duplicate module instance '%s' for '%s' ignored.",
                    inst.module_key,
                    canonical,
                )

        return [chosen[k] for k in dict.fromkeys(canonical_keys) if k in chosen]


# ── Loader ────────────────────────────────────────────────────────────────────


def _parse_entry(key: str, raw: dict) -> CatalogEntry:
    """Parse one ``[modules.<KEY>]`` block.

    Raises:
        pydantic.ValidationError: If a field is missing (notably ``kind``)
            or invalid.
    """
    return CatalogEntry(key=key, **raw)


def load_module_catalog(catalog_path: Path | str) -> ModuleCatalog:
    """Load config/module_catalog.toml into a ``ModuleCatalog``.

    Args:
        catalog_path: Path to the catalog TOML file.

    Returns:
        Validated ``ModuleCatalog``.

    Raises:
        FileNotFoundError: If ``catalog_path`` does not exist.
        tomllib.TOMLDecodeError: If the TOML is malformed.
        pydantic.ValidationError: If an entry fails validation.
        ValueError: If the alias table is inconsistent with the catalog.
    """
    catalog_path = Path(catalog_path)
    if not catalog_path.exists():
        raise FileNotFoundError(
            f"Module catalog file not found: {catalog_path}\n"
            "Expected at config/module_catalog.toml.  "
            "Set reference.catalog_file in default.toml to override."
        )

    with open(catalog_path, "rb") as f:
        raw = tomllib.load(f)

    entries = [
        _parse_entry(key, block) for key, block in raw.get("modules", {}).items()
    ]
    version = str(raw.get("meta", {}).get("version", "unversioned"))
    catalog = ModuleCatalog(entries, raw.get("aliases", {}), version=version)

    logger.info(
        "Loaded module catalog v%s: %d modules, %d aliases.",
        catalog.version,
        len(catalog),
        len(catalog.aliases),
    )
    return catalog
