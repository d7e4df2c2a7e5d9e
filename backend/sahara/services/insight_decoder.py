# decode-with-fallback for loosely typed provider json
# the only place malformed upstream output is tolerated: every field is
# coerced toward the nearest valid shape, nothing here raises

from typing import Any, Optional

from sahara.models.insight import Emotion, InsightResult, MessageSentiment, Sentiment

FALLBACK_THEMES = ["personal_reflection"]
UNKNOWN_EMOTION = "unknown"

# coarse polarity labels some models answer with instead of a score
SENTIMENT_LABEL_SCORES = {
    "very positive": 0.8,
    "positive": 0.5,
    "mixed": 0.0,
    "neutral": 0.0,
    "negative": -0.5,
    "very negative": -0.8,
}

URGENCY_LEVELS = ("low", "medium", "high")
TRUE_STRINGS = ("true", "yes", "1")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _string_list(value: Any) -> list[str]:
    """list of non-empty unique strings from a list, a csv string or a list of {name: ...}"""
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return []

    result: list[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("name") or item.get("label") or item.get("text")
        if not isinstance(item, str):
            continue
        text = item.strip()
        if text and text not in result:
            result.append(text)
    return result


def _decode_sentiment(value: Any) -> Sentiment:
    if isinstance(value, dict):
        score = _as_float(value.get("score", value.get("polarity")))
        magnitude = _as_float(value.get("magnitude"))
        if score is None:
            label = value.get("label")
            if isinstance(label, str):
                score = SENTIMENT_LABEL_SCORES.get(label.strip().lower())
        score = _clamp(score, -1.0, 1.0) if score is not None else 0.0
        magnitude = max(0.0, magnitude) if magnitude is not None else abs(score)
        return Sentiment(score=score, magnitude=magnitude)

    number = _as_float(value)
    if number is not None:
        score = _clamp(number, -1.0, 1.0)
        return Sentiment(score=score, magnitude=abs(score))

    if isinstance(value, str):
        score = SENTIMENT_LABEL_SCORES.get(value.strip().lower(), 0.0)
        return Sentiment(score=score, magnitude=abs(score))

    return Sentiment()


def emotions_from_sentiment(sentiment: Sentiment) -> list[Emotion]:
    """basic emotion guess from document polarity and strength"""
    score, magnitude = sentiment.score, sentiment.magnitude
    if score > 0.25 and magnitude > 0.3:
        return [Emotion(name="joy", confidence=_clamp(score, 0.0, 1.0))]
    if score < -0.25 and magnitude > 0.3:
        return [Emotion(name="sadness", confidence=_clamp(abs(score), 0.0, 1.0))]
    if magnitude > 0.6:
        return [Emotion(name="anxiety", confidence=_clamp(magnitude, 0.0, 1.0))]
    return []


def _emotion(name: Any, confidence: Any) -> Optional[Emotion]:
    if not isinstance(name, str) or not name.strip():
        return None
    conf = _as_float(confidence)
    return Emotion(
        name=name.strip().lower(),
        confidence=_clamp(conf, 0.0, 1.0) if conf is not None else 0.0,
    )


def _decode_emotions(value: Any) -> list[Emotion]:
    candidates: list[Optional[Emotion]] = []
    if isinstance(value, dict):
        if "name" in value or "emotion" in value:
            value = [value]
        else:
            # {"joy": 0.7, "fear": 0.2}
            candidates = [_emotion(name, conf) for name, conf in value.items()]
            value = []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, dict):
                candidates.append(_emotion(
                    item.get("name", item.get("emotion")),
                    item.get("confidence", item.get("score")),
                ))
            else:
                candidates.append(_emotion(item, None))

    emotions: list[Emotion] = []
    seen: set[str] = set()
    for emotion in candidates:
        if emotion is not None and emotion.name not in seen:
            seen.add(emotion.name)
            emotions.append(emotion)
    return emotions


def decode_insight(payload: Any) -> InsightResult:
    """coerce a decoded provider object into a valid InsightResult"""
    if not isinstance(payload, dict):
        payload = {}

    sentiment = _decode_sentiment(payload.get("sentiment", payload.get("sentimentScore")))
    emotions = (
        _decode_emotions(payload.get("emotions"))
        or emotions_from_sentiment(sentiment)
        or [Emotion(name=UNKNOWN_EMOTION, confidence=0.0)]
    )
    coping = payload.get("copingStrategies", payload.get("coping_strategies"))

    return InsightResult(
        sentiment=sentiment,
        emotions=emotions,
        entities=_string_list(payload.get("entities")),
        themes=_string_list(payload.get("themes")) or list(FALLBACK_THEMES),
        triggers=_string_list(payload.get("triggers")),
        coping_strategies=_string_list(coping),
    )


def decode_message_sentiment(payload: Any) -> MessageSentiment:
    """coerce a decoded provider object into a valid MessageSentiment"""
    if not isinstance(payload, dict):
        payload = {}

    raw_sentiment = payload.get("sentiment")
    sentiment = "neutral"
    if isinstance(raw_sentiment, str) and raw_sentiment.strip().lower() in ("positive", "neutral", "negative"):
        sentiment = raw_sentiment.strip().lower()
    else:
        score = _decode_sentiment(raw_sentiment).score
        if score > 0.25:
            sentiment = "positive"
        elif score < -0.25:
            sentiment = "negative"

    urgency = payload.get("urgency")
    urgency = urgency.strip().lower() if isinstance(urgency, str) else ""
    if urgency not in URGENCY_LEVELS:
        urgency = "low"

    emotions = [e.lower() for e in _string_list(payload.get("emotions"))] or [UNKNOWN_EMOTION]

    needs_support = payload.get("needsSupport", payload.get("needs_support", False))
    if isinstance(needs_support, str):
        needs_support = needs_support.strip().lower() in TRUE_STRINGS
    else:
        needs_support = bool(needs_support)

    return MessageSentiment(
        sentiment=sentiment,
        urgency=urgency,
        emotions=emotions,
        needs_support=needs_support,
    )

