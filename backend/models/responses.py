from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.schemas.job_description import JobDescription


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire. Immutable once built."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CategoryScore(CamelModel):
    score: int = Field(ge=1, le=10)
    max_score: Literal[10] = 10
    feedback: str


class KeywordsRelevance(CategoryScore):
    keywords: list[str] = []


class AchievementsMetrics(CategoryScore):
    highlights: list[str] = []


class CategoryScores(CamelModel):
    keywords_relevance: KeywordsRelevance
    achievements_metrics: AchievementsMetrics
    structure_readability: CategoryScore
    summary_clarity: CategoryScore
    overall_polish: CategoryScore


class GeneralFeedback(CamelModel):
    overall: str


class JobAnalysis(CamelModel):
    alignment_and_strengths: list[str] = Field(min_length=1)
    gaps_and_concerns: list[str] = Field(min_length=1)
    recommendations_to_tailor: list[str] = Field(min_length=1)
    overall_fit: str = Field(min_length=1)


class AnalysisDetails(CamelModel):
    """Everything in an analysis except the headline score."""
    scores: CategoryScores
    identified_skills: list[str] = []
    primary_keywords: list[str] = []
    suggested_improvements: list[str] = []
    general_feedback: GeneralFeedback
    job_analysis: JobAnalysis | None = None
    degraded: bool = False  # True when synthesized without a usable model answer


class AnalysisResult(AnalysisDetails):
    score: int = Field(ge=0, le=100)

    def details(self) -> AnalysisDetails:
        return AnalysisDetails.model_validate(self.model_dump(exclude={"score"}))


class StoredAnalysis(CamelModel):
    """A persisted analysis as handed back by the storage adapter."""
    id: int
    user_id: str | None = None
    content: str
    score: int
    job_description: JobDescription | None = None
    analysis: AnalysisDetails
    created_at: datetime
    updated_at: datetime


class AnalysisResponse(AnalysisResult):
    """AnalysisResult merged with the identifiers assigned on save."""
    id: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_stored(cls, stored: StoredAnalysis) -> "AnalysisResponse":
        return cls(
            id=stored.id,
            score=stored.score,
            created_at=stored.created_at,
            updated_at=stored.updated_at,
            **stored.analysis.model_dump(),
        )
