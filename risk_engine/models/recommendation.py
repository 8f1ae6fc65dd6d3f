"""
Recommendation and recommendation-template models.

``Recommendation`` is the persisted record.  Auto-generated recommendations
are identified by (document_id, source_module_key, source_factor_key,
variant); at most one *active* (non-suppressed) auto record may exist per
identity.  The store enforces this with a partial UNIQUE index, see
``risk_engine.db.schema``.  Manual recommendations carry no such constraint.

``RecommendationTemplate`` is a reusable library entry with optional
relevance rules; an empty rule axis matches everything.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from risk_engine.taxonomy.finding_taxonomy import (
    ActionStatus,
    RecommendationPriority,
    SourceType,
)


class Recommendation(BaseModel):
    """A remediation recommendation on a document.

    Attributes:
        recommendation_id: Auto-assigned DB PK; ``None`` before insertion.
        document_id:        Owning document.
        source_type:        ``auto`` (engine) or ``manual`` (assessor).
        source_module_key:  Canonical module key the rating came from.
        source_factor_key:  Factor or field key within the module ("" if none).
        variant:            Distinguishes several auto recs for one factor ("" default).
        priority:           High / Medium / Low.
        status:             Lifecycle status.
        is_suppressed:      Suppressed records no longer count as active.
        title, observation, action_required, hazard: Recommendation text.
        library_template_id: Template the text came from, if any.
        target_date, owner:  Optional tracking fields.
    """

    model_config = ConfigDict(frozen=True)

    recommendation_id: Optional[int] = None
    document_id: str
    source_type: SourceType
    source_module_key: str
    source_factor_key: str = ""
    variant: str = ""
    priority: RecommendationPriority
    status: ActionStatus = ActionStatus.OPEN
    is_suppressed: bool = False
    title: str
    observation: str = ""
    action_required: str = ""
    hazard: str = ""
    library_template_id: Optional[int] = None
    target_date: Optional[date] = None
    owner: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def identity(self) -> tuple[str, str, str, str]:
        return (
            self.document_id,
            self.source_module_key,
            self.source_factor_key,
            self.variant,
        )

    @property
    def is_active_auto(self) -> bool:
        return self.source_type == SourceType.AUTO and not self.is_suppressed


class RelevanceRules(BaseModel):
    """When a template applies.  Empty lists and ``None`` bounds match anything."""

    model_config = ConfigDict(frozen=True)

    modules: tuple[str, ...] = ()
    factors: tuple[str, ...] = ()
    industries: tuple[str, ...] = ()
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None

    @model_validator(mode="after")
    def validate_bounds(self) -> "RelevanceRules":
        for bound in (self.min_rating, self.max_rating):
            if bound is not None and not 1 <= bound <= 5:
                raise ValueError(f"Rating bounds must be in 1..5, got {bound}.")
        if (
            self.min_rating is not None
            and self.max_rating is not None
            and self.min_rating > self.max_rating
        ):
            raise ValueError(
                f"min_rating ({self.min_rating}) must be <= max_rating ({self.max_rating})."
            )
        return self

    def matches(
        self,
        module_key: str,
        factor_key: Optional[str],
        rating: int,
        industry_key: Optional[str],
    ) -> bool:
        """True when every non-empty rule axis accepts the inputs.

        The factor and industry axes only constrain when the caller supplies
        a factor / industry key.
        """
        if self.modules and module_key not in self.modules:
            return False
        if factor_key and self.factors and factor_key not in self.factors:
            return False
        if industry_key and self.industries and industry_key not in self.industries:
            return False
        if self.min_rating is not None and rating < self.min_rating:
            return False
        if self.max_rating is not None and rating > self.max_rating:
            return False
        return True


class RecommendationTemplate(BaseModel):
    """A reusable recommendation library entry.

    Templates are tried in descending ``sort_priority``; the first whose
    relevance rules match wins.
    """

    model_config = ConfigDict(frozen=True)

    template_id: Optional[int] = None
    title: str
    observation: str = ""
    action_required: str = ""
    hazard: str = ""
    default_priority: RecommendationPriority = RecommendationPriority.MEDIUM
    sort_priority: int = 0
    is_active: bool = True
    rules: RelevanceRules = Field(default_factory=RelevanceRules)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Template title must be non-empty.")
        return v
