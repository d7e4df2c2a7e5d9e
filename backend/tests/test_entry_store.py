# tests for the entry store - crud, ordering, filters and insight bookkeeping
# unit tests for sahara/services/entry_store.py against the mock db

from datetime import datetime, timedelta, timezone
from typing import get_type_hints

import pytest

from sahara.errors import NotFound, Unauthorized, ValidationError
from sahara.models.insight import Emotion, InsightResult, Sentiment
from sahara.services.entry_store import EntryStore, to_utc_iso
from tests.conftest import OTHER_ID, OWNER_ID


@pytest.fixture
def store(mock_db, test_settings):
    return EntryStore(mock_db, test_settings)


def _insight(score=0.5):
    return InsightResult(
        sentiment=Sentiment(score=score, magnitude=abs(score)),
        emotions=[Emotion(name="joy", confidence=0.7)],
        themes=["friends"],
    )


async def _backdate(mock_db, entry_id, created_at):
    await mock_db.entries.update_one({"entry_id": entry_id}, {"$set": {"created_at": created_at}})


class TestCreate:
    """entry creation and validation"""

    async def test_create_sets_defaults(self, store):
        entry = await store.create(OWNER_ID, "Had a good day with friends", ["friends", "friends", " school "])
        assert entry["owner_id"] == OWNER_ID
        assert entry["kind"] == "diary"
        assert entry["processed"] is False
        assert entry["analysis_status"] == "unprocessed"
        assert entry["revision"] == 0
        assert entry["tags"] == ["friends", "school"]
        assert entry["metadata"] == {"word_count": 6, "char_count": 27}
        assert entry["created_at"] == entry["updated_at"]
        assert "_id" not in entry

    async def test_ids_are_unique(self, store):
        a = await store.create(OWNER_ID, "one")
        b = await store.create(OWNER_ID, "two")
        assert a["entry_id"] != b["entry_id"]

    @pytest.mark.parametrize("content", ["", "   \n\t"])
    async def test_empty_content_rejected(self, store, mock_db, content):
        with pytest.raises(ValidationError):
            await store.create(OWNER_ID, content)
        assert await mock_db.entries.count_documents() == 0

    async def test_oversized_content_rejected(self, store, mock_db):
        with pytest.raises(ValidationError, match="too long"):
            await store.create(OWNER_ID, "x" * 10001)
        assert await mock_db.entries.count_documents() == 0

    async def test_content_at_limit_accepted(self, store):
        entry = await store.create(OWNER_ID, "x" * 10000)
        assert entry["metadata"]["char_count"] == 10000

    async def test_chat_messages_use_chat_limit(self, store):
        with pytest.raises(ValidationError):
            await store.create(OWNER_ID, "x" * 5001, kind="chat")


class TestGetById:
    """lookup with ownership check"""

    async def test_get_own_entry(self, store):
        created = await store.create(OWNER_ID, "mine")
        fetched = await store.get_by_id(created["entry_id"], OWNER_ID)
        assert fetched["content"] == "mine"

    async def test_missing_entry(self, store):
        with pytest.raises(NotFound):
            await store.get_by_id("does-not-exist", OWNER_ID)

    async def test_foreign_entry(self, store):
        created = await store.create(OTHER_ID, "not yours")
        with pytest.raises(Unauthorized):
            await store.get_by_id(created["entry_id"], OWNER_ID)

    async def test_chat_message_is_not_a_diary_entry(self, store):
        message = await store.create(OWNER_ID, "hi", kind="chat", extra={"session_id": "s1", "role": "user"})
        with pytest.raises(NotFound):
            await store.get_by_id(message["entry_id"], OWNER_ID)
        with pytest.raises(NotFound):
            await store.update(message["entry_id"], OWNER_ID, {"content": "rewritten"})
        with pytest.raises(NotFound):
            await store.delete(message["entry_id"], OWNER_ID)

        fetched = await store.get_by_id(message["entry_id"], OWNER_ID, kind="chat")
        assert fetched["content"] == "hi"


class TestMethodNames:
    def test_annotations_resolve_to_builtin_list(self):
        # a method named list would shadow the builtin inside the class body
        assert not hasattr(EntryStore, "list")
        assert get_type_hints(EntryStore.list_unprocessed)["return"] == list[dict]
        assert get_type_hints(EntryStore.list_entries)["return"] == list[dict]


class TestList:
    """ordering and filters"""

    async def test_newest_first(self, store, mock_db):
        a = await store.create(OWNER_ID, "first")
        b = await store.create(OWNER_ID, "second")
        c = await store.create(OWNER_ID, "third")
        await _backdate(mock_db, a["entry_id"], "2025-06-01T10:00:00+00:00")
        await _backdate(mock_db, b["entry_id"], "2025-06-03T10:00:00+00:00")
        await _backdate(mock_db, c["entry_id"], "2025-06-02T10:00:00+00:00")

        entries = await store.list_entries(OWNER_ID)
        assert [e["content"] for e in entries] == ["second", "third", "first"]

    async def test_only_own_entries(self, store):
        await store.create(OWNER_ID, "mine")
        await store.create(OTHER_ID, "theirs")
        entries = await store.list_entries(OWNER_ID)
        assert [e["content"] for e in entries] == ["mine"]

    async def test_date_range_and_limit_are_conjunctive(self, store, mock_db):
        for day in range(1, 6):
            e = await store.create(OWNER_ID, f"day {day}")
            await _backdate(mock_db, e["entry_id"], f"2025-06-0{day}T12:00:00+00:00")

        entries = await store.list_entries(OWNER_ID, start_date="2025-06-02", end_date="2025-06-04T23:59:59Z", limit=2)
        assert [e["content"] for e in entries] == ["day 4", "day 3"]

    async def test_invalid_date_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.list_entries(OWNER_ID, start_date="last tuesday")

    async def test_chat_messages_not_listed_as_diary(self, store):
        await store.create(OWNER_ID, "hi", kind="chat", extra={"session_id": "s1", "role": "user"})
        assert await store.list_entries(OWNER_ID) == []

    def test_to_utc_iso_normalizes_offsets(self):
        assert to_utc_iso("2025-06-01T12:00:00+02:00") == "2025-06-01T10:00:00+00:00"


class TestUpdate:
    """partial updates and analysis reset"""

    async def test_content_change_resets_processed(self, store, mock_db):
        entry = await store.create(OWNER_ID, "original text")
        await mock_db.entries.update_one(
            {"entry_id": entry["entry_id"]},
            {"$set": {"processed": True, "analysis_status": "processed"}},
        )

        updated = await store.update(entry["entry_id"], OWNER_ID, {"content": "new words here"})
        assert updated["content"] == "new words here"
        assert updated["processed"] is False
        assert updated["analysis_status"] == "unprocessed"
        assert updated["revision"] == 1
        assert updated["metadata"]["word_count"] == 3

    async def test_mood_only_keeps_processed(self, store, mock_db):
        entry = await store.create(OWNER_ID, "text")
        await mock_db.entries.update_one({"entry_id": entry["entry_id"]}, {"$set": {"processed": True}})

        updated = await store.update(entry["entry_id"], OWNER_ID, {"mood": 4})
        assert updated["mood"] == 4
        assert updated["processed"] is True
        assert updated["revision"] == 0

    async def test_same_content_is_not_a_change(self, store):
        entry = await store.create(OWNER_ID, "text")
        updated = await store.update(entry["entry_id"], OWNER_ID, {"content": "text"})
        assert updated["revision"] == 0

    async def test_read_only_fields_ignored(self, store):
        entry = await store.create(OWNER_ID, "text")
        updated = await store.update(
            entry["entry_id"], OWNER_ID, {"owner_id": OTHER_ID, "processed": True, "tags": ["x"]},
        )
        assert updated["owner_id"] == OWNER_ID
        assert updated["processed"] is False
        assert updated["tags"] == ["x"]

    async def test_updated_at_refreshed(self, store, mock_db):
        entry = await store.create(OWNER_ID, "text")
        await mock_db.entries.update_one(
            {"entry_id": entry["entry_id"]}, {"$set": {"updated_at": "2020-01-01T00:00:00+00:00"}},
        )
        updated = await store.update(entry["entry_id"], OWNER_ID, {"tags": ["a"]})
        assert updated["updated_at"] > "2020-01-01T00:00:00+00:00"

    async def test_update_foreign_entry(self, store):
        entry = await store.create(OTHER_ID, "text")
        with pytest.raises(Unauthorized):
            await store.update(entry["entry_id"], OWNER_ID, {"content": "hijack"})

    async def test_update_with_empty_content(self, store):
        entry = await store.create(OWNER_ID, "text")
        with pytest.raises(ValidationError):
            await store.update(entry["entry_id"], OWNER_ID, {"content": "  "})


class TestDelete:
    """deletion cascades to insights"""

    async def test_delete_removes_entry_and_insights(self, store, mock_db):
        entry = await store.create(OWNER_ID, "text")
        await store.store_insight(entry["entry_id"], OWNER_ID, 0, _insight())
        assert await mock_db.insights.count_documents({"entry_id": entry["entry_id"]}) == 1

        await store.delete(entry["entry_id"], OWNER_ID)

        with pytest.raises(NotFound):
            await store.get_by_id(entry["entry_id"], OWNER_ID)
        assert await mock_db.insights.count_documents({"entry_id": entry["entry_id"]}) == 0

    async def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            await store.delete("nope", OWNER_ID)

    async def test_delete_foreign(self, store, mock_db):
        entry = await store.create(OTHER_ID, "text")
        with pytest.raises(Unauthorized):
            await store.delete(entry["entry_id"], OWNER_ID)
        assert await mock_db.entries.count_documents() == 1


class TestSearch:
    async def test_matches_content_and_tags_case_insensitively(self, store):
        await store.create(OWNER_ID, "Went RUNNING this morning")
        await store.create(OWNER_ID, "quiet day", ["running"])
        await store.create(OWNER_ID, "nothing relevant")

        results = await store.search(OWNER_ID, "running")
        assert len(results) == 2

    async def test_blank_query_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.search(OWNER_ID, "  ")


class TestAnalysisBookkeeping:
    """claim, release and store_insight"""

    async def test_claim_is_exclusive(self, store):
        entry = await store.create(OWNER_ID, "text")
        first = await store.claim_for_analysis(entry["entry_id"])
        second = await store.claim_for_analysis(entry["entry_id"])
        assert first["analysis_status"] == "analyzing"
        assert second is None

    async def test_list_unprocessed_skips_claimed_and_processed(self, store):
        a = await store.create(OWNER_ID, "a")
        b = await store.create(OWNER_ID, "b")
        c = await store.create(OWNER_ID, "c")
        await store.claim_for_analysis(a["entry_id"])
        claimed = await store.claim_for_analysis(b["entry_id"])
        await store.store_insight(b["entry_id"], OWNER_ID, claimed["revision"], _insight())

        pending = await store.list_unprocessed(10)
        assert [e["entry_id"] for e in pending] == [c["entry_id"]]

    async def test_stale_claim_can_be_reclaimed(self, store, mock_db, test_settings):
        stale = await store.create(OWNER_ID, "worker died on this one")
        fresh = await store.create(OWNER_ID, "still being analysed")
        await store.claim_for_analysis(stale["entry_id"])
        await store.claim_for_analysis(fresh["entry_id"])
        long_ago = datetime.now(timezone.utc) - timedelta(seconds=test_settings.analysis_claim_ttl_seconds + 60)
        await mock_db.entries.update_one(
            {"entry_id": stale["entry_id"]}, {"$set": {"analysis_started_at": long_ago.isoformat()}},
        )

        pending = await store.list_unprocessed(10)
        assert [e["entry_id"] for e in pending] == [stale["entry_id"]]

        reclaimed = await store.claim_for_analysis(stale["entry_id"])
        assert reclaimed is not None
        assert reclaimed["analysis_started_at"] > long_ago.isoformat()
        assert await store.claim_for_analysis(fresh["entry_id"]) is None

    async def test_chat_messages_are_never_claimed(self, store):
        message = await store.create(OWNER_ID, "hi", kind="chat", extra={"session_id": "s1", "role": "user"})
        assert await store.claim_for_analysis(message["entry_id"]) is None

    async def test_release_returns_entry_to_unprocessed(self, store):
        entry = await store.create(OWNER_ID, "text")
        await store.claim_for_analysis(entry["entry_id"])
        await store.release_analysis(entry["entry_id"], 0, "provider down")

        fetched = await store.get_by_id(entry["entry_id"], OWNER_ID)
        assert fetched["analysis_status"] == "unprocessed"
        assert fetched["processed"] is False
        assert fetched["analysis_attempts"] == 1
        assert fetched["last_analysis_error"] == "provider down"

    async def test_store_insight_flips_processed(self, store):
        entry = await store.create(OWNER_ID, "text")
        await store.claim_for_analysis(entry["entry_id"])
        stored = await store.store_insight(entry["entry_id"], OWNER_ID, 0, _insight())

        assert stored["entry_id"] == entry["entry_id"]
        fetched = await store.get_by_id(entry["entry_id"], OWNER_ID)
        assert fetched["processed"] is True
        assert fetched["analysis_status"] == "processed"
        assert len(await store.get_insights(entry["entry_id"])) == 1

    async def test_store_insight_for_stale_revision_is_discarded(self, store, mock_db):
        entry = await store.create(OWNER_ID, "text")
        await store.claim_for_analysis(entry["entry_id"])
        await store.update(entry["entry_id"], OWNER_ID, {"content": "edited meanwhile"})

        stored = await store.store_insight(entry["entry_id"], OWNER_ID, 0, _insight())
        assert stored is None
        assert await mock_db.insights.count_documents() == 0
        fetched = await store.get_by_id(entry["entry_id"], OWNER_ID)
        assert fetched["processed"] is False

    async def test_store_insight_for_deleted_entry_leaves_no_orphan(self, store, mock_db):
        entry = await store.create(OWNER_ID, "text")
        await store.claim_for_analysis(entry["entry_id"])
        await store.delete(entry["entry_id"], OWNER_ID)

        assert await store.store_insight(entry["entry_id"], OWNER_ID, 0, _insight()) is None
        assert await mock_db.insights.count_documents() == 0


class TestChatSessions:
    async def test_touch_session_upserts_and_counts(self, store):
        await store.touch_session("s1", OWNER_ID, "hello")
        await store.touch_session("s1", OWNER_ID, "how are you")

        session = await store.get_session("s1", OWNER_ID)
        assert session["message_count"] == 2
        assert session["last_message"] == "how are you"

    async def test_foreign_session(self, store):
        await store.touch_session("s1", OTHER_ID, "hello")
        with pytest.raises(Unauthorized):
            await store.get_session("s1", OWNER_ID)

    async def test_missing_session(self, store):
        with pytest.raises(NotFound):
            await store.get_session("nope", OWNER_ID)

    async def test_session_messages_chronological_and_limited(self, store, mock_db):
        for i in range(4):
            m = await store.create(OWNER_ID, f"msg {i}", kind="chat", extra={"session_id": "s1", "role": "user"})
            await _backdate(mock_db, m["entry_id"], f"2025-06-01T10:0{i}:00+00:00")

        messages = await store.list_session_messages("s1", limit=3)
        assert [m["content"] for m in messages] == ["msg 1", "msg 2", "msg 3"]
