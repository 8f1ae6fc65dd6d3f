"""
Derived scoring: deterministic scores from raw survey ratings.

Modules
-------
fire_protection : round_half_up() + compute_building_score() +
                  compute_site_score() + compute_all_derived_scores().
construction    : compute_building_construction_rating() +
                  compute_site_construction_rating() +
                  resolve_construction_rating().
factor_scores   : FactorScore / FactorScoreSummary + compute_factor_scores()
                  — industry-weighted factor totals.
overall         : calculate_overall_grade() + grade_band(), and the
                  sector-weighted compute_risk_profile().

All functions are pure: no DB, no I/O.
"""
