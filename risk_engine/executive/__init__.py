"""
Executive aggregation for fire risk assessments.

Modules
-------
severity   : SeverityClassifier protocol + DefaultSeverityClassifier.
complexity : ComplexityInputs + compute_complexity() / derive_complexity_band().
summary    : ExecutiveSummary / TopIssue + compute_summary().
"""
