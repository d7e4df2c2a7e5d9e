# aggregator - read-only rollups over an owner's entries and insights
# writing stats (counts, words, active days, streak) and emotional
# insights (average sentiment, trend, top emotions/themes/triggers/coping)

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from sahara.services.entry_store import EntryStore

logger = logging.getLogger(__name__)

TOP_N = 5
# newest entries considered for the insight rollup
MAX_INSIGHT_ENTRIES = 100
TREND_THRESHOLD = 0.1


def _entry_day(created_at: str) -> date:
    ts = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).date()


def calculate_writing_streak(days: Iterable[date], today: date) -> int:
    """consecutive calendar days with an entry, counted back from today.

    a day matching the anchor, or the day right before it, extends the streak
    and moves the anchor back; any larger gap ends the count.
    """
    streak = 0
    anchor = today
    for day in sorted(set(days), reverse=True):
        if day > today:
            continue
        if day == anchor:
            streak += 1
            anchor = day - timedelta(days=1)
        elif day == anchor - timedelta(days=1):
            streak += 1
            anchor = day - timedelta(days=1)
        else:
            break
    return streak


def calculate_trend(scores: list[float]) -> str:
    """compare the mean of the second half of the scores against the first half"""
    if len(scores) < 2:
        return "neutral"
    mid = len(scores) // 2
    first, second = scores[:mid], scores[mid:]
    diff = sum(second) / len(second) - sum(first) / len(first)
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def top_counts(values: Iterable[str], n: int = TOP_N) -> list[tuple[str, int]]:
    """frequency ranked, ties kept in first-seen order"""
    counts = Counter()
    for value in values:
        if value:
            counts[value] += 1
    # Counter preserves insertion order and sorted() is stable
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:n]


def first_seen_unique(values: Iterable[str], n: int = TOP_N) -> list[str]:
    unique: list[str] = []
    for value in values:
        if value and value not in unique:
            unique.append(value)
    return unique[:n]


class Aggregator:
    """rollup statistics computed on demand from the entry store"""

    def __init__(self, store: EntryStore):
        self.store = store

    @staticmethod
    def _window_start(window_days: int) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=window_days)

    async def compute_stats(self, owner_id: str, window_days: int = 30, today: Optional[date] = None) -> dict:
        entries = await self.store.list_entries(owner_id, start_date=self._window_start(window_days))

        total_entries = len(entries)
        total_words = sum(e.get("metadata", {}).get("word_count", 0) for e in entries)
        days = {_entry_day(e["created_at"]) for e in entries}

        return {
            "total_entries": total_entries,
            "total_words": total_words,
            "average_words_per_entry": round(total_words / total_entries) if total_entries else 0,
            "days_active": len(days),
            "writing_streak": calculate_writing_streak(days, today or datetime.now(timezone.utc).date()),
        }

    async def aggregate_insights(self, owner_id: str, window_days: int = 30) -> dict:
        entries = await self.store.list_entries(
            owner_id,
            start_date=self._window_start(window_days),
            limit=MAX_INSIGHT_ENTRIES,
        )
        insights = await self.store.insights_for_entries([e["entry_id"] for e in entries])

        scores = [float(i.get("sentiment", {}).get("score", 0.0)) for i in insights]
        emotions = top_counts(e.get("name", "") for i in insights for e in i.get("emotions", []))
        themes = top_counts(t for i in insights for t in i.get("themes", []))

        return {
            "average_sentiment": round(sum(scores) / len(scores), 3) if scores else 0.0,
            "sentiment_trend": calculate_trend(scores),
            "top_emotions": [{"emotion": name, "count": count} for name, count in emotions],
            "top_themes": [{"theme": name, "count": count} for name, count in themes],
            "common_triggers": first_seen_unique(t for i in insights for t in i.get("triggers", [])),
            "effective_coping_strategies": first_seen_unique(
                c for i in insights for c in i.get("coping_strategies", [])
            ),
        }

    async def user_analytics(self, owner_id: str, window_days: int = 30) -> dict:
        stats = await self.compute_stats(owner_id, window_days)
        insights = await self.aggregate_insights(owner_id, window_days)
        logger.debug(f"Analytics computed for {owner_id} over {window_days} days")
        return {**stats, **insights, "period": f"{window_days} days"}
