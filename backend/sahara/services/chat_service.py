# chat service - supportive wellness chat over the text generation provider
#
# message flow:
#   1. resolve or mint the session id
#   2. load user context and the recent turns of the session
#   3. gate the message through sentiment/urgency analysis
#   4. store the user message, generate the reply
#   5. append coping resources when the user needs support
#   6. store the reply and refresh the session summary

import logging
import uuid
from typing import Optional

from langchain_core.prompts import PromptTemplate

from sahara.config import Settings
from sahara.errors import ValidationError
from sahara.models.insight import MessageSentiment
from sahara.services.entry_store import KIND_CHAT, EntryStore, utc_now_iso
from sahara.services.insight_pipeline import InsightPipeline
from sahara.services.providers import ProviderAdapter
from sahara.services.resource_service import SUPPORT_CATEGORY, ResourceService

logger = logging.getLogger(__name__)

REPLY_MAX_TOKENS = 1000
REPLY_TEMPERATURE = 0.7
SUPPORT_RESOURCES = 2

CHAT_PROMPT = PromptTemplate.from_template(
    """You are a supportive youth wellness chatbot designed to help teenagers and young adults with mental health, emotional wellness, and personal development.

Key Guidelines:
- Be empathetic, supportive, and non-judgmental
- Provide practical coping strategies and wellness tips
- Encourage professional help when needed
- Use age-appropriate language
- Focus on building resilience and positive mental health habits
- Never provide medical diagnoses or replace professional therapy

User Context:
- Age Range: {age_range}
- Interests: {interests}
- Previous concerns: {concerns}

{history_block}

User: {message}

Assistant:"""
)


def build_history_block(messages: list[dict]) -> str:
    if not messages:
        return "Conversation History: This is the start of the conversation."
    lines = [
        f"{'User' if m.get('role') == 'user' else 'Assistant'}: {m.get('content', '')}"
        for m in messages
    ]
    return "Conversation History:\n" + "\n".join(lines)


def _as_text(value) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or None
    return value or None


class ChatService:
    def __init__(
        self,
        store: EntryStore,
        pipeline: InsightPipeline,
        provider: ProviderAdapter,
        resources: ResourceService,
        settings: Settings,
    ):
        self.store = store
        self.pipeline = pipeline
        self.provider = provider
        self.resources = resources
        self.settings = settings

    async def _user_context(self, owner_id: str) -> dict:
        user = await self.store.db.users.find_one({"user_id": owner_id}) or {}
        return {
            "age_range": _as_text(user.get("age_range")) or "Teen/Young Adult",
            "interests": _as_text(user.get("interests")) or "General wellness",
            "concerns": _as_text(user.get("concerns")) or "None specified",
        }

    async def _with_resources(self, reply: str, sentiment: MessageSentiment) -> str:
        if not (sentiment.needs_support or sentiment.urgency == "high"):
            return reply
        resources = await self.resources.list_resources(SUPPORT_CATEGORY, limit=SUPPORT_RESOURCES)
        if not resources:
            return reply
        lines = "\n".join(f"• {r['title']}: {r['description']}" for r in resources)
        return f"{reply}\n\nHere are some additional resources that might help:\n{lines}"

    async def process_message(self, owner_id: str, message: str, session_id: Optional[str] = None) -> dict:
        if not message or not message.strip():
            raise ValidationError("Message is required")

        if session_id:
            existing = await self.store.db.chats.find_one({"session_id": session_id})
            if existing:
                # raises Unauthorized for someone else's session
                await self.store.get_session(session_id, owner_id)
        else:
            session_id = uuid.uuid4().hex

        context = await self._user_context(owner_id)
        history = await self.store.list_session_messages(session_id, limit=self.settings.CHAT_HISTORY_TURNS)
        sentiment = await self.pipeline.analyze_message(message)

        await self.store.create(
            owner_id, message, kind=KIND_CHAT,
            extra={"session_id": session_id, "role": "user", "sentiment": sentiment.model_dump()},
        )
        await self.store.touch_session(session_id, owner_id, message)

        prompt = CHAT_PROMPT.format(
            history_block=build_history_block(history),
            message=message,
            **context,
        )
        reply = await self.provider.generate(prompt, max_tokens=REPLY_MAX_TOKENS, temperature=REPLY_TEMPERATURE)
        reply = await self._with_resources(reply, sentiment)

        # replies are not bound by the user message limit
        await self.store.db.entries.insert_one({
            "entry_id": uuid.uuid4().hex,
            "owner_id": owner_id,
            "kind": KIND_CHAT,
            "session_id": session_id,
            "role": "assistant",
            "content": reply,
            "created_at": utc_now_iso(),
            "provider": self.provider.provider_name,
        })
        await self.store.touch_session(session_id, owner_id, reply)

        logger.info(
            f"Chat reply for {owner_id} in session {session_id} "
            f"(sentiment={sentiment.sentiment}, urgency={sentiment.urgency})"
        )
        return {
            "response": reply,
            "session_id": session_id,
            "sentiment": sentiment,
            "timestamp": utc_now_iso(),
        }

    async def history(self, session_id: str, owner_id: str, limit: int = 50) -> list[dict]:
        await self.store.get_session(session_id, owner_id)
        return await self.store.list_session_messages(session_id, limit=limit)

    async def sessions(self, owner_id: str) -> list[dict]:
        return await self.store.list_sessions(owner_id)
