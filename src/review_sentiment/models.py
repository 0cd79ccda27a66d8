"""Data models for the review sentiment flow."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SentimentCategory(str, Enum):
    """Three-way bucket derived from the raw classifier output."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ClassificationOutcome(BaseModel):
    """Top-ranked label and confidence returned by the classifier."""

    model_config = ConfigDict(frozen=True)

    raw_label: str
    raw_score: float = Field(..., ge=0.0, le=1.0)


class ReviewBatch(BaseModel):
    """Reviews handed to the flow by the source loader."""

    reviews: list[str] = Field(..., min_length=1)
    origin: str
    from_fallback: bool = False


class ClientHints(BaseModel):
    """Optional environment details sent by the page with an analyze request."""

    platform: Optional[str] = None
    language: Optional[str] = None
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None


class ClientMetadata(BaseModel):
    """Environment metadata attached to every log record."""

    model_config = ConfigDict(protected_namespaces=())

    user_agent: str
    platform: str
    language: Optional[str] = None
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None
    reviews_count: int
    model: str
    timestamp_client: int = Field(..., description="Client clock, epoch milliseconds.")


class LogRecord(BaseModel):
    """One analysis event, written once and sent to the reporting endpoint."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    review_text: str
    category: SentimentCategory
    raw_label: str
    raw_score: float
    client_metadata: ClientMetadata
    token: Optional[str] = None

    def to_payload(self) -> dict:
        """Render the wire format expected by the spreadsheet script."""
        meta = self.client_metadata
        payload = {
            "timestamp": self.timestamp.isoformat(),
            "review": self.review_text,
            "sentiment": {
                "label": self.raw_label,
                "score": self.raw_score,
                "category": self.category.value,
            },
            "meta": {
                "userAgent": meta.user_agent,
                "platform": meta.platform,
                "language": meta.language,
                "screenResolution": meta.screen_resolution,
                "timezone": meta.timezone,
                "reviewsCount": meta.reviews_count,
                "model": meta.model,
                "timestampClient": meta.timestamp_client,
            },
        }
        if self.token:
            payload["token"] = self.token
        return payload
