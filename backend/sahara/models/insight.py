# insight models - ai-derived analysis attached to an entry
# InsightResult is the validated shape the decoder always produces

from typing import Literal, Optional
from pydantic import BaseModel, Field


class Sentiment(BaseModel):
    score: float = Field(0.0, ge=-1.0, le=1.0, description="overall polarity")
    magnitude: float = Field(0.0, ge=0.0, description="emotional strength regardless of polarity")


class Emotion(BaseModel):
    name: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class InsightResult(BaseModel):
    """decoded provider analysis of one diary entry"""
    sentiment: Sentiment = Field(default_factory=Sentiment)
    emotions: list[Emotion] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    coping_strategies: list[str] = Field(default_factory=list, alias="copingStrategies")

    model_config = {"populate_by_name": True}


class InsightResponse(InsightResult):
    """stored insight row"""
    id: str
    entry_id: str = Field(..., alias="entryId")
    created_at: str = Field(..., alias="createdAt")

    model_config = {"populate_by_name": True}


class MessageSentiment(BaseModel):
    """sentiment gate for a single chat message"""
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    urgency: Literal["low", "medium", "high"] = "low"
    emotions: list[str] = Field(default_factory=lambda: ["unknown"])
    needs_support: bool = Field(False, alias="needsSupport")

    model_config = {"populate_by_name": True}


class WritingPromptsResponse(BaseModel):
    prompts: list[str]
    source: Optional[str] = None
