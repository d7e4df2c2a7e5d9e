# insight pipeline - turns diary text into structured insights off the request path
#
# per entry state machine:
#   unprocessed -> analyzing -> processed
#   unprocessed -> analyzing -> (failure) -> unprocessed
#
# analysis flow:
#   1. claim the entry atomically (only one analysis per entry at a time)
#   2. ask the llm for a json analysis of the text
#   3. decode with fallback (malformed json still yields an insight)
#   4. persist the insight and flip processed, conditioned on the claimed revision
#   5. anything else: release the claim and record the error, never raise
#   6. cancellation also releases the claim; a claim older than the ttl counts as abandoned

import asyncio
import logging
from typing import Optional

from langchain_core.prompts import PromptTemplate

from sahara.errors import MalformedProviderJSON, ProviderError
from sahara.models.insight import MessageSentiment
from sahara.services.analysis_queue import AnalysisQueue
from sahara.services.entry_store import EntryStore
from sahara.services.insight_decoder import decode_insight, decode_message_sentiment
from sahara.services.providers import ProviderAdapter

logger = logging.getLogger(__name__)

# diary analysis is near-deterministic, prompts are more creative
ANALYSIS_MAX_TOKENS = 1024
ANALYSIS_TEMPERATURE = 0.2
SENTIMENT_MAX_TOKENS = 256
PROMPTS_MAX_TOKENS = 512
PROMPTS_TEMPERATURE = 0.8

# recent entries whose insights personalise the writing prompts
PROMPT_CONTEXT_ENTRIES = 10

DEFAULT_WRITING_PROMPTS = [
    "What is one thing that went well today, and why did it matter to you?",
    "Describe a moment this week when you felt calm. What helped you get there?",
    "What is something that has been on your mind lately that you haven't said out loud?",
    "Write about someone who made you feel supported recently.",
    "What is one small thing you could do tomorrow to take care of yourself?",
]


DIARY_ANALYSIS_PROMPT = PromptTemplate.from_template(
    """You analyse private diary entries written by young people for a wellness app.
Read the entry and answer with ONLY a JSON object, no prose, in this shape:

{{
  "sentiment": {{"score": <float -1..1>, "magnitude": <float >= 0>}},
  "emotions": [{{"name": "<emotion>", "confidence": <float 0..1>}}],
  "entities": ["<people, places or things mentioned>"],
  "themes": ["<short snake_case theme>"],
  "triggers": ["<what caused stress or strong feelings>"],
  "copingStrategies": ["<what the writer did or could do to cope>"]
}}

DIARY ENTRY:
\"\"\"{content}\"\"\""""
)

MESSAGE_SENTIMENT_PROMPT = PromptTemplate.from_template(
    """Analyze the emotional tone and urgency level of this message from a young person:

"{message}"

Answer with ONLY a JSON object with:
- sentiment: positive/neutral/negative
- urgency: low/medium/high
- emotions: array of detected emotions
- needsSupport: boolean"""
)

WRITING_PROMPTS_PROMPT = PromptTemplate.from_template(
    """You write gentle, open-ended journaling prompts for teenagers and young adults.

Recent themes in their diary: {themes}
Recent emotions: {emotions}
Recent stressors: {triggers}

Write {count} short, supportive journaling prompts that fit these patterns without
repeating them back verbatim. Answer with ONLY a JSON object: {{"prompts": ["...", "..."]}}"""
)


class InsightPipeline:
    """analysis scheduling, the analysis itself and small llm helpers around it"""

    def __init__(
        self,
        store: EntryStore,
        provider: ProviderAdapter,
        workers: int = 4,
        queue_maxsize: int = 100,
    ):
        self.store = store
        self.provider = provider
        self.queue = AnalysisQueue(self.analyze, concurrency=workers, maxsize=queue_maxsize)

    # scheduling

    def schedule(self, entry_id: str, content: str) -> bool:
        """hand an entry to the analysis workers without waiting for the result"""
        accepted = self.queue.submit(entry_id, content)
        if accepted:
            logger.debug(f"Scheduled analysis for entry {entry_id}")
        return accepted

    async def process_pending(self, limit: int = 5) -> int:
        """queue up to `limit` unprocessed entries; returns how many were accepted"""
        entries = await self.store.list_unprocessed(limit)
        submitted = 0
        for entry in entries:
            if self.schedule(entry["entry_id"], entry["content"]):
                submitted += 1
        logger.info(f"Process pending: {submitted}/{len(entries)} entries queued for analysis")
        return submitted

    # analysis

    async def analyze(self, entry_id: str, content: Optional[str] = None) -> bool:
        """analyse one entry; true when an insight was stored"""
        claimed = await self.store.claim_for_analysis(entry_id)
        if claimed is None:
            logger.debug(f"Entry {entry_id} not claimable (processed, running or deleted)")
            return False

        revision = claimed.get("revision", 0)
        # the stored text is what the claimed revision refers to
        text = claimed.get("content") or content or ""

        try:
            try:
                payload = await self.provider.generate_json(
                    DIARY_ANALYSIS_PROMPT.format(content=text),
                    max_tokens=ANALYSIS_MAX_TOKENS,
                    temperature=ANALYSIS_TEMPERATURE,
                )
            except MalformedProviderJSON as e:
                logger.warning(f"Analysis of entry {entry_id} returned malformed JSON, using fallback insight: {e}")
                payload = {}

            insight = decode_insight(payload)
            stored = await self.store.store_insight(entry_id, claimed["owner_id"], revision, insight)
        except asyncio.CancelledError:
            # worker shutdown mid-call: hand the entry back before unwinding
            logger.warning(f"Analysis of entry {entry_id} cancelled, releasing claim")
            await self._release(entry_id, revision, "analysis cancelled")
            raise
        except Exception as e:
            logger.warning(f"Analysis failed for entry {entry_id}: {e}")
            await self._release(entry_id, revision, str(e) or e.__class__.__name__)
            return False

        if stored is None:
            return False
        logger.info(f"Entry {entry_id} analysed: themes={insight.themes}")
        return True

    async def _release(self, entry_id: str, revision: int, error: str):
        try:
            await self.store.release_analysis(entry_id, revision, error)
        except Exception as e:
            logger.error(f"Could not release analysis claim for entry {entry_id}: {e}")

    # chat sentiment gate

    async def analyze_message(self, message: str) -> MessageSentiment:
        """sentiment/urgency of one chat message; neutral defaults when the provider fails"""
        try:
            payload = await self.provider.generate_json(
                MESSAGE_SENTIMENT_PROMPT.format(message=message),
                max_tokens=SENTIMENT_MAX_TOKENS,
                temperature=ANALYSIS_TEMPERATURE,
            )
        except ProviderError as e:
            logger.warning(f"Message sentiment unavailable, using defaults: {e}")
            payload = {}
        return decode_message_sentiment(payload)

    # writing prompts

    async def writing_prompts(self, owner_id: str, count: int = 3) -> dict:
        """personalised journaling prompts from recent insights, static ones as fallback"""
        count = max(1, min(count, 10))
        entries = await self.store.list_entries(owner_id, limit=PROMPT_CONTEXT_ENTRIES)
        insights = await self.store.insights_for_entries([e["entry_id"] for e in entries])

        if not insights:
            return {"prompts": DEFAULT_WRITING_PROMPTS[:count], "source": "default"}

        themes = _first_seen(t for i in insights for t in i.get("themes", []))
        emotions = _first_seen(e.get("name", "") for i in insights for e in i.get("emotions", []))
        triggers = _first_seen(t for i in insights for t in i.get("triggers", []))

        prompt = WRITING_PROMPTS_PROMPT.format(
            themes=", ".join(themes[:5]) or "none yet",
            emotions=", ".join(emotions[:5]) or "none yet",
            triggers=", ".join(triggers[:5]) or "none yet",
            count=count,
        )
        try:
            payload = await self.provider.generate_json(
                prompt, max_tokens=PROMPTS_MAX_TOKENS, temperature=PROMPTS_TEMPERATURE,
            )
        except ProviderError as e:
            logger.warning(f"Writing prompt generation failed for {owner_id}, using defaults: {e}")
            return {"prompts": DEFAULT_WRITING_PROMPTS[:count], "source": "default"}

        prompts = [
            p.strip() for p in payload.get("prompts", [])
            if isinstance(p, str) and p.strip()
        ][:count]
        if not prompts:
            return {"prompts": DEFAULT_WRITING_PROMPTS[:count], "source": "default"}
        return {"prompts": prompts, "source": "ai"}


def _first_seen(values) -> list[str]:
    seen: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.append(v)
    return seen
