"""Pydantic schemas for request/response validation."""
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, ConfigDict, field_validator

T = TypeVar("T")


class Sentiment(str, Enum):
    """Classification axis for feedback."""

    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"
    POSITIVE = "Positive"
    UNKNOWN = "Unknown"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


# The model is only ever asked for these three
MODEL_SENTIMENTS = [Sentiment.NEGATIVE.value, Sentiment.NEUTRAL.value, Sentiment.POSITIVE.value]


class FeedbackSubmission(BaseModel):
    """A single feedback item as submitted by a producer."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "source": "Discord",
                "user_tier": "Enterprise",
                "product_area": "Workers",
                "content": "Deploys have been failing since this morning."
            }
        }
    )

    source: Optional[str] = None
    user_tier: Optional[str] = None
    product_area: Optional[str] = None
    content: str = Field(..., min_length=1, description="Feedback text")

    @field_validator("source", "user_tier", "product_area", mode="before")
    @classmethod
    def default_unknown(cls, value):
        """Missing or empty metadata is stored as "unknown"."""
        if not isinstance(value, str) or not value:
            return "unknown"
        return value


class ClassificationResult(BaseModel):
    """Typed output of the classifier."""

    sentiment: Sentiment
    confidence: float = Field(..., ge=0.0, le=1.0)
    summary: str


class FeedbackResponse(BaseModel):
    """Response schema for a stored feedback record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    source: str
    user_tier: str
    product_area: str
    content: str
    sentiment: str = Field(..., description="Automated sentiment: Negative, Neutral, Positive or Unknown")
    confidence: Optional[float] = Field(None, description="Classifier confidence between 0 and 1")
    ai_analysis: Optional[str] = Field(None, description="One sentence summary from the model")
    human_sentiment: Optional[str] = Field(None, description="Reviewer correction, if any")
    is_critical: bool = Field(..., description="Enterprise tier with Negative sentiment")
    created_at: Optional[str] = None


class PaginatedResult(BaseModel, Generic[T]):
    """One page of results."""

    data: List[T]
    total: int
    page: int
    per_page: int
    total_pages: int


class CorrectionRequest(BaseModel):
    """Request schema for a human sentiment correction."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"human_sentiment": "Negative"}}
    )

    human_sentiment: Optional[str] = None


class CorrectionResponse(BaseModel):
    success: bool
    id: int
    human_sentiment: str


class IngestResponse(BaseModel):
    message: str
    queued: int


class FeedbackFilters(BaseModel):
    """Filters for the feedback listing."""

    source: Optional[str] = None
    user_tier: Optional[str] = None
    product_area: Optional[str] = None
    sentiment: Optional[str] = None
    critical: bool = False
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: str = "DESC"
    page: int = 1
    per_page: Optional[int] = None


class DashboardStats(BaseModel):
    """Aggregate counts over stored feedback."""

    total: int = 0
    negative: int = 0
    positive: int = 0
    neutral: int = 0
    unknown: int = 0
    enterprise_negative: int = 0
    low_confidence: int = 0
    by_product_area: dict[str, int] = Field(default_factory=dict)
    by_sentiment: dict[str, int] = Field(default_factory=dict)
    by_product_sentiment: dict[str, dict[str, int]] = Field(default_factory=dict)
