"""
Recommendation derivation, persistence and reporting.

Modules
-------
triggers  : RecommendationDescriptor + trigger rules for fire-protection
            payloads and inadequate factor ratings.
templates : RecommendationText, template matching and generated fallback text.
pipeline  : RecommendationPipeline — idempotent rating → stored recommendation.
reporter  : write_descriptor_csv() / write_executive_json().
"""
