"""
Reference-table bootstrap.

Loads the module catalog and weighting tables named in ``AppConfig.reference``
once, returning an immutable bundle that callers pass by reference into the
scoring, trigger and persistence layers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from risk_engine.config import AppConfig, resolve_path
from risk_engine.taxonomy.module_catalog import ModuleCatalog, load_module_catalog
from risk_engine.weighting.models import WeightingTables
from risk_engine.weighting.registry import load_weighting_tables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineTables:
    catalog: ModuleCatalog
    tables: WeightingTables


def load_engine_tables(config: AppConfig) -> EngineTables:
    """Load catalog + weighting tables.

    Raises:
        FileNotFoundError: If either reference file is missing.
        ValueError:        If either file fails validation.
    """
    catalog = load_module_catalog(resolve_path(config.reference.catalog_file))
    tables = load_weighting_tables(resolve_path(config.reference.weighting_file))
    logger.debug(
        "Engine tables ready: catalog v%s (%d modules), weighting v%s.",
        catalog.version, len(catalog), tables.version,
    )
    return EngineTables(catalog=catalog, tables=tables)
