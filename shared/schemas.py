from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


# -------------------------
# API payloads
# -------------------------
class PredictRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # older clients still send "nls_score"
    rating: Optional[StrictInt] = Field(
        default=None,
        validation_alias=AliasChoices("rating", "nls_score"),
    )
    feedback_text: Optional[StrictStr] = ""

    @field_validator("feedback_text")
    @classmethod
    def _null_text_is_empty(cls, v: Optional[str]) -> str:
        return v or ""


class PredictResponse(BaseModel):
    customer_id: str
    churn_probability: float
    reason: str
    comment_sentiment: Optional[str] = None
    comment_topics: Optional[List[str]] = None


class ErrorResponse(BaseModel):
    error: str


# -------------------------
# Persisted records
# -------------------------
class FeedbackRecord(BaseModel):
    id: Optional[str] = None
    nls_score: int = Field(ge=0, le=10)
    feedback_text: str = ""
    created_at: Optional[datetime] = None
    comment_sentiment: str                     # POSITIVE/NEGATIVE/NEUTRAL/UNKNOWN
    comment_topics: List[str] = Field(default_factory=list)

    def to_row(self) -> dict:
        """Column/value mapping for the store; the id is always store-assigned."""
        return self.model_dump(mode="json", exclude={"id"}, exclude_none=True)


class ChurnPrediction(BaseModel):
    id: Optional[str] = None
    customer_feedback_id: str
    churn_probability: float
    reason: str
    predicted_at: Optional[datetime] = None

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude={"id"}, exclude_none=True)
