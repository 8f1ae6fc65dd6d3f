"""
Industry weighting and occupancy relevance tables.

Modules
-------
models   : IndustryWeights, FactorConfig, OccupancyRelevance, WeightingTables (frozen).
registry : load_weighting_tables() — reads config/weighting.toml.
"""
