"""
ExplainRank - Pydantic Validation Schemas
==========================================

Pydantic models for validating API payloads and service inputs.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from ..config import get_settings


# Enums
class ExplanationStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    HIDDEN = "hidden"


class EventName(str, Enum):
    EXPLANATION_VIEWED = "explanation_viewed"
    EXPLANATION_SAVED = "explanation_saved"


class ViewPeriod(str, Enum):
    HOUR = "hour"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class MatchMode(str, Enum):
    NORMAL = "normal"
    FORCE = "force"


# Base Schemas
class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, populate_by_name=True, str_strip_whitespace=True
    )


class TimestampMixin(BaseModel):
    created_at: datetime | None = None
    updated_at: datetime | None = None


def check_embedding_dimensions(embedding: list[float] | None) -> list[float] | None:
    """Embeddings must match the configured vector size."""
    if embedding is None:
        return embedding
    expected = get_settings().EMBEDDING_DIMENSIONS
    if len(embedding) != expected:
        raise ValueError(f"embedding must have {expected} dimensions, got {len(embedding)}")
    return embedding


# Explanation Schemas
class ExplanationCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    topic_id: int | None = None
    status: ExplanationStatus = ExplanationStatus.PUBLISHED
    summary_teaser: str | None = None
    embedding: list[float] | None = None

    @field_validator("embedding")
    @classmethod
    def check_embedding(cls, value):
        return check_embedding_dimensions(value)


class ExplanationUpdate(BaseSchema):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, min_length=1)
    topic_id: int | None = None
    status: ExplanationStatus | None = None
    summary_teaser: str | None = None
    embedding: list[float] | None = None

    @field_validator("embedding")
    @classmethod
    def check_embedding(cls, value):
        return check_embedding_dimensions(value)


class ExplanationResponse(TimestampMixin, BaseSchema):
    id: int
    title: str
    content: str
    topic_id: int | None = None
    status: ExplanationStatus
    summary_teaser: str | None = None
    has_embedding: bool = False


# Lineage Schemas
class LineageEdgeCreate(BaseSchema):
    parent_id: int = Field(..., ge=1)
    child_id: int = Field(..., ge=1)
    created_by: str | None = Field(default=None, max_length=255)


class LineageEdgeResponse(LineageEdgeCreate):
    id: int
    created_at: datetime | None = None


class AncestorResponse(BaseSchema):
    ancestor_id: int
    depth: int = Field(..., ge=1)


# Engagement Schemas
class EventCreate(BaseSchema):
    event_name: EventName
    user_id: str = Field(..., min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class EventResponse(BaseSchema):
    id: int
    explanation_id: int
    user_id: str
    event_name: EventName
    created_at: datetime | None = None


class MetricsResponse(BaseSchema):
    explanation_id: int
    total_views: int = Field(default=0, ge=0)
    total_saves: int = Field(default=0, ge=0)
    save_rate: float = Field(default=0.0, ge=0.0)
    last_updated: datetime | None = None


class ViewCountResponse(BaseSchema):
    explanation_id: int
    view_count: int = Field(..., ge=0)


# Score Schemas
class ContributionResponse(BaseSchema):
    ancestor_id: int
    depth: int
    similarity: float
    feedback_weight: float
    raw_weight: float
    weight: float
    ancestor_rate: float


class ScoreResponse(BaseSchema):
    explanation_id: int
    views: int
    saves: int
    own_rate: float | None = None
    inherited_rate: float | None = None
    prior_rate: float
    saf_score: float
    wilson_lower: float
    wilson_upper: float
    exploration_bonus: float
    final_score: float
    is_stale: bool = False
    calculated_at: datetime | None = None
    contributions: list[ContributionResponse] = Field(default_factory=list)


class RecomputeResponse(BaseSchema):
    recomputed: int = Field(..., ge=0)


# Match Schemas
class VectorSearchResult(BaseSchema):
    explanation_id: int
    topic_id: int | None = None
    score: float = 0.0
    text: str = ""


class MatchRanking(BaseSchema):
    similarity: float = 0.0
    diversity_score: float | None = None


class Match(BaseSchema):
    explanation_id: int
    topic_id: int | None = None
    text: str = ""
    current_title: str = ""
    current_content: str = ""
    summary_teaser: str | None = None
    timestamp: datetime | None = None
    ranking: MatchRanking = Field(default_factory=MatchRanking)


class SimilarRequest(BaseSchema):
    embedding: list[float]
    limit: int = Field(default=10, ge=1, le=100)
    exclude_ids: list[int] = Field(default_factory=list)
    diversity_embedding: list[float] | None = None

    @field_validator("embedding", "diversity_embedding")
    @classmethod
    def check_embeddings(cls, value):
        return check_embedding_dimensions(value)


class MatchSelectRequest(BaseSchema):
    matches: list[Match] = Field(default_factory=list, max_length=100)
    mode: MatchMode = MatchMode.NORMAL
    saved_id: int | None = None


class MatchError(BaseSchema):
    code: str
    message: str
    details: Any | None = None


class MatchSelection(BaseSchema):
    selected_index: int | None = None
    explanation_id: int | None = None
    topic_id: int | None = None
    error: MatchError | None = None


# Utility
def validate_and_prepare(schema_class: type[BaseSchema], data: dict[str, Any]) -> dict[str, Any]:
    instance = schema_class(**data)
    return instance.model_dump(exclude_unset=True)
