# analytics models - writing stats and emotional insight rollups

from typing import Literal
from pydantic import BaseModel, Field


class EmotionCount(BaseModel):
    emotion: str
    count: int


class ThemeCount(BaseModel):
    theme: str
    count: int


class WritingStats(BaseModel):
    total_entries: int = Field(0, alias="totalEntries")
    total_words: int = Field(0, alias="totalWords")
    average_words_per_entry: int = Field(0, alias="averageWordsPerEntry")
    days_active: int = Field(0, alias="daysActive")
    writing_streak: int = Field(0, alias="writingStreak")

    model_config = {"populate_by_name": True}


class EmotionalInsights(BaseModel):
    average_sentiment: float = Field(0.0, alias="averageSentiment")
    sentiment_trend: Literal["improving", "declining", "stable", "neutral"] = Field("neutral", alias="sentimentTrend")
    top_emotions: list[EmotionCount] = Field(default_factory=list, alias="topEmotions")
    top_themes: list[ThemeCount] = Field(default_factory=list, alias="topThemes")
    common_triggers: list[str] = Field(default_factory=list, alias="commonTriggers")
    effective_coping_strategies: list[str] = Field(default_factory=list, alias="effectiveCopingStrategies")

    model_config = {"populate_by_name": True}


class UserAnalytics(WritingStats, EmotionalInsights):
    """writing stats and emotional insights in one payload"""
    period: str = ""

    model_config = {"populate_by_name": True}


class PeriodStats(WritingStats):
    period: str = ""


class PeriodInsights(EmotionalInsights):
    period: str = ""


class QueueStats(BaseModel):
    queued: int = 0
    running: int = 0
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    rejected: int = 0


class ProcessPendingResponse(BaseModel):
    submitted: int
    message: str
    queue: QueueStats
