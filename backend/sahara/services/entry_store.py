# entry store - crud and query layer over diary entries and chat messages
# owns identity, ordering and filter semantics plus the insight rows that
# hang off each entry (weak entry_id reference, cascaded on delete)
#
# timestamps are stored as utc iso-8601 strings so range filters and
# ordering work lexicographically

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Union

from pymongo import ReturnDocument

from sahara.config import Settings
from sahara.errors import NotFound, Unauthorized, ValidationError
from sahara.models.insight import InsightResult

logger = logging.getLogger(__name__)

KIND_DIARY = "diary"
KIND_CHAT = "chat"

STATUS_UNPROCESSED = "unprocessed"
STATUS_ANALYZING = "analyzing"
STATUS_PROCESSED = "processed"

WRITABLE_FIELDS = ("content", "mood", "tags")
MAX_TAGS = 20
MAX_TAG_LENGTH = 50


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_utc_iso(value: Union[datetime, date, str]) -> str:
    """normalize a filter bound to the stored timestamp format"""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}")
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def compute_metadata(content: str) -> dict:
    return {
        "word_count": len(content.split()),
        "char_count": len(content),
    }


def _clean_tags(tags: Optional[Iterable[Any]]) -> list[str]:
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set)):
        raise ValidationError("Tags must be a list of strings")
    cleaned: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be a list of strings")
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag too long (max {MAX_TAG_LENGTH} characters)")
        if tag not in cleaned:
            cleaned.append(tag)
    if len(cleaned) > MAX_TAGS:
        raise ValidationError(f"Too many tags (max {MAX_TAGS})")
    return cleaned


def _strip_id(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    out = dict(doc)
    out.pop("_id", None)
    return out


class EntryStore:
    """persistence for entries and their insights"""

    def __init__(self, db, settings: Settings):
        self.db = db
        self.settings = settings

    def _max_length(self, kind: str) -> int:
        if kind == KIND_CHAT:
            return self.settings.CHAT_MESSAGE_MAX_LENGTH
        return self.settings.DIARY_MAX_LENGTH

    def _validate_content(self, content: Any, kind: str) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Entry content is required")
        max_length = self._max_length(kind)
        if len(content) > max_length:
            raise ValidationError(f"Entry content is too long (max {max_length:,} characters)")
        return content

    # entries

    async def create(
        self,
        owner_id: str,
        content: str,
        tags: Optional[list[str]] = None,
        *,
        kind: str = KIND_DIARY,
        mood: Optional[int] = None,
        extra: Optional[dict] = None,
    ) -> dict:
        """create an entry; raises ValidationError on empty or oversized content"""
        content = self._validate_content(content, kind)
        now = utc_now_iso()

        doc = {
            "entry_id": uuid.uuid4().hex,
            "owner_id": owner_id,
            "kind": kind,
            "content": content,
            "mood": mood,
            "tags": _clean_tags(tags),
            "created_at": now,
            "updated_at": now,
            "processed": False,
            "analysis_status": STATUS_UNPROCESSED,
            "analysis_attempts": 0,
            "last_analysis_error": None,
            "revision": 0,
            "metadata": compute_metadata(content),
        }
        if extra:
            doc.update({k: v for k, v in extra.items() if k not in doc})

        await self.db.entries.insert_one(doc)
        logger.info(f"Entry created: {doc['entry_id']} ({kind}) by {owner_id}")
        return _strip_id(doc)

    async def get_by_id(self, entry_id: str, owner_id: str, *, kind: str = KIND_DIARY) -> dict:
        """fetch one entry of the given kind; NotFound before Unauthorized"""
        doc = await self.db.entries.find_one({"entry_id": entry_id, "kind": kind})
        if not doc:
            raise NotFound("Entry not found")
        if doc.get("owner_id") != owner_id:
            raise Unauthorized("Unauthorized access to this entry")
        return _strip_id(doc)

    async def list_entries(
        self,
        owner_id: str,
        start_date: Union[datetime, date, str, None] = None,
        end_date: Union[datetime, date, str, None] = None,
        limit: Optional[int] = None,
        *,
        kind: str = KIND_DIARY,
    ) -> list[dict]:
        """owner's entries newest first; date bounds and limit are conjunctive"""
        query: dict = {"owner_id": owner_id, "kind": kind}
        created: dict = {}
        if start_date is not None:
            created["$gte"] = to_utc_iso(start_date)
        if end_date is not None:
            created["$lte"] = to_utc_iso(end_date)
        if created:
            query["created_at"] = created

        cursor = self.db.entries.find(query).sort("created_at", -1)
        if limit is not None:
            if limit < 1:
                raise ValidationError("Limit must be a positive integer")
            cursor = cursor.limit(limit)

        return [_strip_id(doc) async for doc in cursor]

    async def update(self, entry_id: str, owner_id: str, fields: dict) -> dict:
        """partial update of content, mood and tags"""
        entry = await self.get_by_id(entry_id, owner_id)
        now = utc_now_iso()

        updates: dict = {"updated_at": now}
        inc: dict = {}

        if fields.get("content") is not None:
            content = self._validate_content(fields["content"], entry.get("kind", KIND_DIARY))
            if content != entry.get("content"):
                updates.update({
                    "content": content,
                    "metadata": compute_metadata(content),
                    "processed": False,
                    "analysis_status": STATUS_UNPROCESSED,
                })
                inc["revision"] = 1
        if "mood" in fields:
            updates["mood"] = fields["mood"]
        if fields.get("tags") is not None:
            updates["tags"] = _clean_tags(fields["tags"])

        ignored = set(fields) - set(WRITABLE_FIELDS)
        if ignored:
            logger.debug(f"Ignoring read-only fields on entry {entry_id}: {sorted(ignored)}")

        operation: dict = {"$set": updates}
        if inc:
            operation["$inc"] = inc

        doc = await self.db.entries.find_one_and_update(
            {"entry_id": entry_id},
            operation,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            # deleted between the ownership check and the write
            raise NotFound("Entry not found")

        logger.info(f"Entry updated: {entry_id} by {owner_id}")
        return _strip_id(doc)

    async def delete(self, entry_id: str, owner_id: str) -> None:
        """remove an entry and cascade its insights"""
        await self.get_by_id(entry_id, owner_id)
        await self.db.entries.delete_one({"entry_id": entry_id})
        removed = await self.delete_insights(entry_id)
        logger.info(f"Entry deleted: {entry_id} by {owner_id} ({removed} insights removed)")

    async def search(
        self,
        owner_id: str,
        query: str,
        start_date: Union[datetime, date, str, None] = None,
        end_date: Union[datetime, date, str, None] = None,
        limit: int = 50,
    ) -> list[dict]:
        """case-insensitive match over content and tags"""
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        needle = query.strip().lower()
        entries = await self.list_entries(owner_id, start_date=start_date, end_date=end_date, limit=limit)
        return [
            e for e in entries
            if needle in e.get("content", "").lower()
            or any(needle in tag.lower() for tag in e.get("tags", []))
        ]

    # analysis bookkeeping

    def _claimable(self) -> list[dict]:
        """not claimed, or claimed so long ago that the worker must have died"""
        stale_before = datetime.now(timezone.utc) - timedelta(seconds=self.settings.analysis_claim_ttl_seconds)
        return [
            {"analysis_status": {"$ne": STATUS_ANALYZING}},
            {"analysis_started_at": {"$lt": stale_before.isoformat()}},
        ]

    async def list_unprocessed(self, limit: int = 10) -> list[dict]:
        """oldest diary entries waiting for analysis and not currently claimed"""
        cursor = self.db.entries.find({
            "kind": KIND_DIARY,
            "processed": False,
            "$or": self._claimable(),
        }).sort("created_at", 1).limit(limit)
        return [_strip_id(doc) async for doc in cursor]

    async def claim_for_analysis(self, entry_id: str) -> Optional[dict]:
        """atomically move an unprocessed entry to analyzing; none if not claimable"""
        doc = await self.db.entries.find_one_and_update(
            {
                "entry_id": entry_id,
                "kind": KIND_DIARY,
                "processed": False,
                "$or": self._claimable(),
            },
            {"$set": {"analysis_status": STATUS_ANALYZING, "analysis_started_at": utc_now_iso()}},
            return_document=ReturnDocument.AFTER,
        )
        return _strip_id(doc)

    async def release_analysis(self, entry_id: str, revision: int, error: str) -> None:
        """failed attempt: back to unprocessed so a later batch can retry"""
        await self.db.entries.update_one(
            {"entry_id": entry_id, "revision": revision, "analysis_status": STATUS_ANALYZING},
            {
                "$set": {
                    "analysis_status": STATUS_UNPROCESSED,
                    "processed": False,
                    "last_analysis_error": error[:500],
                },
                "$inc": {"analysis_attempts": 1},
            },
        )

    # insights

    async def store_insight(
        self,
        entry_id: str,
        owner_id: str,
        revision: int,
        insight: InsightResult,
    ) -> Optional[dict]:
        """persist an insight then flip the entry to processed.

        returns none (and drops the row again) when the entry was deleted or
        its content changed since the analysis was claimed.
        """
        now = utc_now_iso()
        doc = {
            "insight_id": uuid.uuid4().hex,
            "entry_id": entry_id,
            "owner_id": owner_id,
            "revision": revision,
            "sentiment": insight.sentiment.model_dump(),
            "emotions": [e.model_dump() for e in insight.emotions],
            "entities": list(insight.entities),
            "themes": list(insight.themes),
            "triggers": list(insight.triggers),
            "coping_strategies": list(insight.coping_strategies),
            "created_at": now,
        }
        await self.db.insights.insert_one(doc)

        result = await self.db.entries.update_one(
            {"entry_id": entry_id, "revision": revision},
            {"$set": {
                "processed": True,
                "analysis_status": STATUS_PROCESSED,
                "processed_at": now,
                "last_analysis_error": None,
            }},
        )
        if result.matched_count == 0:
            await self.db.insights.delete_one({"insight_id": doc["insight_id"]})
            logger.info(f"Discarded insight for {entry_id}: entry deleted or edited during analysis")
            return None

        return _strip_id(doc)

    async def get_insights(self, entry_id: str) -> list[dict]:
        cursor = self.db.insights.find({"entry_id": entry_id}).sort("created_at", 1)
        return [_strip_id(doc) async for doc in cursor]

    async def insights_for_entries(self, entry_ids: list[str]) -> list[dict]:
        """insights of several entries in chronological order"""
        if not entry_ids:
            return []
        cursor = self.db.insights.find({"entry_id": {"$in": list(entry_ids)}}).sort("created_at", 1)
        return [_strip_id(doc) async for doc in cursor]

    async def delete_insights(self, entry_id: str) -> int:
        result = await self.db.insights.delete_many({"entry_id": entry_id})
        return result.deleted_count

    # chat sessions

    async def touch_session(self, session_id: str, owner_id: str, last_message: str) -> None:
        """upsert the session summary after a stored message"""
        now = utc_now_iso()
        await self.db.chats.update_one(
            {"session_id": session_id},
            {
                "$set": {
                    "owner_id": owner_id,
                    "last_message": last_message[:200],
                    "last_message_at": now,
                },
                "$inc": {"message_count": 1},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    async def get_session(self, session_id: str, owner_id: str) -> dict:
        doc = await self.db.chats.find_one({"session_id": session_id})
        if not doc:
            raise NotFound("Chat session not found")
        if doc.get("owner_id") != owner_id:
            raise Unauthorized("Unauthorized access to this chat session")
        return _strip_id(doc)

    async def list_sessions(self, owner_id: str, limit: int = 50) -> list[dict]:
        cursor = self.db.chats.find({"owner_id": owner_id}).sort("last_message_at", -1).limit(limit)
        return [_strip_id(doc) async for doc in cursor]

    async def list_session_messages(self, session_id: str, limit: int = 10) -> list[dict]:
        """last `limit` messages of a session in chronological order"""
        cursor = self.db.entries.find(
            {"kind": KIND_CHAT, "session_id": session_id}
        ).sort("created_at", -1).limit(limit)
        messages = [_strip_id(doc) async for doc in cursor]
        messages.reverse()
        return messages
