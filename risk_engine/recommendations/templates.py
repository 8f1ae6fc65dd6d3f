"""
Recommendation text: library template selection and generated fallback text.

Template selection
------------------
``find_matching_template`` walks the active library in descending
``sort_priority`` (ties keep library order) and returns the first template
whose relevance rules accept (module, factor, rating, industry).

Generated text
--------------
When no template matches, or a matching template leaves a field blank,
``generic_recommendation_text`` fills it from the factor label::

    title           "<Label> Improvement Required"
    observation     "<Label> is currently rated as Critical (rating 1/5)."
    action_required "Review and implement improvements to bring <Label> up to acceptable standards."
    hazard          "Inadequate <Label> increases facility risk profile."

Factor action text
------------------
``factor_action_text`` returns the canned critical (rating 1) or moderate
(rating 2) remediation text for each of the 10 risk factors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from risk_engine.models.recommendation import RecommendationTemplate
from risk_engine.taxonomy.factor_taxonomy import Factor, humanize_key
from risk_engine.taxonomy.finding_taxonomy import RecommendationPriority

DEFAULT_FACTOR_LABEL = "Factor"


@dataclass(frozen=True)
class RecommendationText:
    title: str
    observation: str
    action_required: str
    hazard: str


def rating_priority(rating: int) -> RecommendationPriority:
    """Persisted priority for an inadequate rating: High for 1, else Medium."""
    return RecommendationPriority.HIGH if rating == 1 else RecommendationPriority.MEDIUM


def factor_label(factor_key: Optional[str]) -> str:
    return humanize_key(factor_key) if factor_key else DEFAULT_FACTOR_LABEL


def generic_recommendation_text(factor_key: Optional[str], rating: int) -> RecommendationText:
    label = factor_label(factor_key)
    severity = "Critical" if rating == 1 else "Below Standard"
    return RecommendationText(
        title=f"{label} Improvement Required",
        observation=f"{label} is currently rated as {severity} (rating {rating}/5).",
        action_required=(
            f"Review and implement improvements to bring {label} up to acceptable standards."
        ),
        hazard=f"Inadequate {label} increases facility risk profile.",
    )


def find_matching_template(
    templates: Iterable[RecommendationTemplate],
    module_key: str,
    factor_key: Optional[str],
    rating: int,
    industry_key: Optional[str],
) -> Optional[RecommendationTemplate]:
    """First active template (highest ``sort_priority`` first) whose rules match."""
    indexed = [(i, t) for i, t in enumerate(templates) if t.is_active]
    indexed.sort(key=lambda pair: (-pair[1].sort_priority, pair[0]))
    for _, template in indexed:
        if template.rules.matches(module_key, factor_key, rating, industry_key):
            return template
    return None


def merge_template_text(
    template: Optional[RecommendationTemplate],
    factor_key: Optional[str],
    rating: int,
) -> RecommendationText:
    """Template text with blank fields filled from generated text."""
    generated = generic_recommendation_text(factor_key, rating)
    if template is None:
        return generated
    return RecommendationText(
        title=template.title.strip() or generated.title,
        observation=template.observation.strip() or generated.observation,
        action_required=template.action_required.strip() or generated.action_required,
        hazard=template.hazard.strip() or generated.hazard,
    )


# ── Per-factor action text ────────────────────────────────────────────────────

# factor -> (critical text, moderate text)
_FACTOR_ACTION_TEXT: dict[Factor, tuple[str, str]] = {
    Factor.PROCESS_CONTROL_AND_STABILITY: (
        "CRITICAL: Process control and stability requires immediate improvement. "
        "Review and upgrade instrumentation, implement robust control loops, and "
        "establish clear operational procedures to prevent process deviations.",
        "Process control systems need enhancement. Recommend review of control "
        "strategies, upgrade aging instrumentation, and implement additional "
        "monitoring for critical parameters.",
    ),
    Factor.SAFETY_AND_CONTROL_SYSTEMS: (
        "CRITICAL: Fire protection and safety systems are inadequate. Immediate "
        "action required to upgrade detection, suppression, and emergency response "
        "systems to meet acceptable standards.",
        "Fire protection systems require improvement. Recommend installation of "
        "additional detection coverage, upgrade suppression systems, and enhance "
        "emergency response procedures.",
    ),
    Factor.NATURAL_HAZARD_EXPOSURE_AND_CONTROLS: (
        "CRITICAL: Natural hazard exposure presents severe risk. Implement immediate "
        "physical protection measures, flood barriers, seismic bracing, or other "
        "controls appropriate to site-specific perils.",
        "Natural hazard controls need strengthening. Review site exposure to flood, "
        "wind, earthquake and implement appropriate mitigation measures based on "
        "risk assessment.",
    ),
    Factor.ELECTRICAL_AND_UTILITIES_RELIABILITY: (
        "CRITICAL: Electrical and utilities infrastructure is unreliable. Install "
        "backup power systems, upgrade critical electrical distribution, and "
        "implement redundancy for essential utilities.",
        "Utilities reliability requires improvement. Recommend installation of UPS "
        "systems, backup generators, or enhanced utility monitoring and maintenance "
        "programs.",
    ),
    Factor.PROCESS_SAFETY_MANAGEMENT: (
        "CRITICAL: Process safety management is severely deficient. Establish "
        "comprehensive PSM program including procedures, training, maintenance "
        "systems, and safety culture initiatives immediately.",
        "Process safety management needs development. Enhance safety procedures, "
        "improve training programs, and strengthen maintenance and inspection regimes.",
    ),
    Factor.FLAMMABLE_LIQUIDS_AND_FIRE_RISK: (
        "CRITICAL: Flammable liquid storage and handling presents unacceptable fire "
        "risk. Implement proper segregation, containment, fire protection, and "
        "control measures urgently.",
        "Flammable materials handling needs improvement. Enhance storage "
        "arrangements, improve containment and separation, and upgrade fire "
        "protection for storage areas.",
    ),
    Factor.CRITICAL_EQUIPMENT_RELIABILITY: (
        "CRITICAL: Critical equipment reliability is poor with high failure risk. "
        "Implement immediate preventive maintenance program, condition monitoring, "
        "and spare parts management.",
        "Equipment reliability requires enhancement. Develop comprehensive "
        "maintenance program, implement condition-based monitoring, and establish "
        "critical spares inventory.",
    ),
    Factor.HIGH_ENERGY_MATERIALS_CONTROL: (
        "CRITICAL: High-energy materials present severe hazard. Implement stringent "
        "controls for reactive chemicals or explosives including segregation, "
        "quantity limits, and specialized handling procedures.",
        "High-energy materials handling needs improvement. Review storage "
        "arrangements, enhance control measures, and implement additional safety "
        "protocols for reactive substances.",
    ),
    Factor.HIGH_ENERGY_PROCESS_EQUIPMENT: (
        "CRITICAL: High-pressure or high-energy equipment presents major hazard. "
        "Conduct immediate inspection program, upgrade relief systems, and implement "
        "enhanced monitoring and maintenance.",
        "High-energy equipment requires improved controls. Enhance inspection "
        "programs, upgrade safety systems, and implement additional monitoring for "
        "pressure vessels and energetic equipment.",
    ),
    Factor.EMERGENCY_RESPONSE_AND_BCP: (
        "CRITICAL: Emergency response and business continuity capabilities are "
        "inadequate. Develop comprehensive emergency plans, establish response "
        "teams, and implement business continuity strategies immediately.",
        "Emergency preparedness needs strengthening. Enhance emergency response "
        "procedures, conduct regular drills, and develop robust business continuity "
        "plans.",
    ),
}


def factor_action_text(factor_key: str, rating: int) -> str:
    """Canned remediation text for an inadequate factor rating.

    Keys outside the 10-factor universe get a generic sentence.
    """
    try:
        critical, moderate = _FACTOR_ACTION_TEXT[Factor(factor_key)]
    except ValueError:
        return f"{humanize_key(factor_key)} requires improvement to meet acceptable standards."
    return critical if rating == 1 else moderate
