# shared fixtures for backend api tests
# provides mock db, fake provider, test users, auth tokens, and httpx test clients

import asyncio
import copy
import json
import re

import pytest
import pytest_asyncio
from unittest.mock import MagicMock
from bson import ObjectId

from httpx import AsyncClient, ASGITransport

from sahara.config import Settings
from sahara.main import app
from sahara.dependencies import get_current_user, get_services
from sahara.errors import ProviderUnavailable
from sahara.services.auth_service import create_access_token
from sahara.services.container import build_services
from sahara.services.providers import ProviderAdapter


# test ids (plain strings so importing this module twice stays consistent)
OWNER_ID = "user_owner_001"
OTHER_ID = "user_other_002"


# test documents (as they'd appear from mongodb)

OWNER_DOC = {
    "user_id": OWNER_ID,
    "email": "maya@example.com",
    "name": "Maya",
    "age_range": "16-18",
    "interests": ["music", "running"],
    "concerns": "exam stress",
}

OTHER_DOC = {
    "user_id": OTHER_ID,
    "email": "sam@example.com",
    "name": "Sam",
}

COPING_RESOURCES = [
    {
        "resource_id": "res_breathing",
        "title": "Box Breathing",
        "description": "Breathe in for 4, hold for 4, out for 4, hold for 4.",
        "category": "coping-strategies",
        "tags": ["anxiety"],
        "created_at": "2025-06-02T00:00:00+00:00",
    },
    {
        "resource_id": "res_grounding",
        "title": "5-4-3-2-1 Grounding",
        "description": "Name five things you can see, four you can touch.",
        "category": "coping-strategies",
        "tags": ["panic"],
        "created_at": "2025-06-01T00:00:00+00:00",
    },
    {
        "resource_id": "res_journal",
        "title": "Gratitude Journaling",
        "description": "Write down three good things each evening.",
        "category": "self-care",
        "tags": [],
        "created_at": "2025-06-03T00:00:00+00:00",
    },
]

ANALYSIS_JSON = {
    "sentiment": {"score": -0.4, "magnitude": 0.8},
    "emotions": [{"name": "anxiety", "confidence": 0.9}, {"name": "sadness", "confidence": 0.4}],
    "entities": ["exam", "mum"],
    "themes": ["school_stress", "family"],
    "triggers": ["exams"],
    "copingStrategies": ["going for a run"],
}

SENTIMENT_JSON = {
    "sentiment": "negative",
    "urgency": "medium",
    "emotions": ["worried"],
    "needsSupport": False,
}


# async cursor mock

class AsyncCursorMock:
    """mock for motor's async cursor - supports async for and chained methods"""

    def __init__(self, data=None):
        self._data = list(data or [])
        self._index = 0

    def sort(self, key, direction=1):
        if isinstance(key, list):
            for k, d in reversed(key):
                self._data.sort(key=lambda doc: (doc.get(k) is None, doc.get(k)), reverse=d == -1)
            return self
        self._data.sort(key=lambda doc: (doc.get(key) is None, doc.get(key)), reverse=direction == -1)
        return self

    def skip(self, n):
        self._data = self._data[n:]
        return self

    def limit(self, n):
        if n:
            self._data = self._data[:n]
        return self

    def __aiter__(self):
        self._index = 0
        return self

    async def __anext__(self):
        if self._index >= len(self._data):
            raise StopAsyncIteration
        item = self._data[self._index]
        self._index += 1
        return item

    async def to_list(self, length=None):
        if length is not None:
            return self._data[:length]
        return self._data


class MockCollection:
    """mock for a motor collection with async methods"""

    def __init__(self, data=None):
        self._data = data or []
        self.inserted = []

    def find(self, query=None, projection=None):
        results = self._data
        if query:
            results = [d for d in results if self._matches(d, query)]
        return AsyncCursorMock(results)

    async def find_one(self, query=None, projection=None):
        if not query:
            return self._data[0] if self._data else None
        for doc in self._data:
            if self._matches(doc, query):
                return doc
        return None

    async def insert_one(self, doc):
        oid = doc.get("_id", ObjectId())
        doc["_id"] = oid
        self._data.append(doc)
        self.inserted.append(doc)
        result = MagicMock()
        result.inserted_id = oid
        return result

    async def count_documents(self, query=None):
        if not query:
            return len(self._data)
        return len([d for d in self._data if self._matches(d, query)])

    def _apply(self, doc, update, inserting=False):
        if "$set" in update:
            doc.update(copy.deepcopy(update["$set"]))
        if "$inc" in update:
            for key, val in update["$inc"].items():
                doc[key] = doc.get(key, 0) + val
        if inserting and "$setOnInsert" in update:
            doc.update(update["$setOnInsert"])
        if "$addToSet" in update:
            for key, val in update["$addToSet"].items():
                if key not in doc:
                    doc[key] = []
                if val not in doc[key]:
                    doc[key].append(val)

    async def update_one(self, query, update, upsert=False):
        result = MagicMock()
        result.matched_count = 0
        result.modified_count = 0
        result.upserted_id = None
        for doc in self._data:
            if self._matches(doc, query):
                self._apply(doc, update)
                result.matched_count = 1
                result.modified_count = 1
                return result
        if upsert:
            doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
            doc["_id"] = ObjectId()
            self._apply(doc, update, inserting=True)
            self._data.append(doc)
            result.upserted_id = doc["_id"]
        return result

    async def find_one_and_update(self, query, update, return_document=False, upsert=False):
        for doc in self._data:
            if self._matches(doc, query):
                before = copy.deepcopy(doc)
                self._apply(doc, update)
                return doc if return_document else before
        return None

    async def delete_one(self, query):
        result = MagicMock()
        result.deleted_count = 0
        for i, doc in enumerate(self._data):
            if self._matches(doc, query):
                del self._data[i]
                result.deleted_count = 1
                break
        return result

    async def delete_many(self, query):
        keep = [d for d in self._data if not self._matches(d, query)]
        result = MagicMock()
        result.deleted_count = len(self._data) - len(keep)
        self._data[:] = keep
        return result

    async def create_index(self, *args, **kwargs):
        return "mock_index"

    def _matches(self, doc, query):
        """basic mongodb query matching for tests"""
        for key, value in query.items():
            if key == "$or":
                if not any(self._matches(doc, cond) for cond in value):
                    return False
                continue
            doc_val = doc.get(key)
            if isinstance(value, dict):
                if "$in" in value and doc_val not in value["$in"]:
                    return False
                if "$ne" in value and doc_val == value["$ne"]:
                    return False
                if "$gte" in value and (doc_val is None or doc_val < value["$gte"]):
                    return False
                if "$lte" in value and (doc_val is None or doc_val > value["$lte"]):
                    return False
                if "$lt" in value and (doc_val is None or doc_val >= value["$lt"]):
                    return False
                if "$regex" in value:
                    flags = re.IGNORECASE if value.get("$options") == "i" else 0
                    if doc_val is None or not re.search(value["$regex"], str(doc_val), flags):
                        return False
            elif doc_val != value:
                return False
        return True


class MockDatabase:
    """mock database that mimics the Database class"""

    def __init__(self):
        self.users = MockCollection([OWNER_DOC.copy(), OTHER_DOC.copy()])
        self.entries = MockCollection([])
        self.insights = MockCollection([])
        self.chats = MockCollection([])
        self.resources = MockCollection([dict(r) for r in COPING_RESOURCES])

    async def connect(self):
        pass

    async def close(self):
        pass


# fake provider

class FakeProviderAdapter(ProviderAdapter):
    """scripted provider: picks a canned reply by prompt kind and records every call"""

    provider_name = "fake"

    def __init__(self):
        self.analysis_reply = "Here is the analysis:\n```json\n" + json.dumps(ANALYSIS_JSON) + "\n```"
        self.sentiment_reply = json.dumps(SENTIMENT_JSON)
        self.prompts_reply = json.dumps({"prompts": ["What made you smile today?", "Who helped you this week?"]})
        self.chat_reply = "That sounds really tough. Want to talk about what's been weighing on you?"
        self.transcript = "hello from the test"
        self.audio = b"ID3-fake-audio"
        self.voices = [
            {"name": "en-US-Journey-D", "ssml_gender": "MALE", "natural_sample_rate_hertz": 24000,
             "language_codes": ["en-US"]},
        ]
        # raised from every call when set
        self.error = None
        # seconds each generate call takes
        self.delay = 0.0
        self.prompts = []
        self.transcribe_calls = []
        self.synthesize_calls = []

    def _reply_for(self, prompt):
        if "DIARY ENTRY" in prompt:
            return self.analysis_reply
        if "emotional tone and urgency" in prompt:
            return self.sentiment_reply
        if "journaling prompts" in prompt:
            return self.prompts_reply
        return self.chat_reply

    async def generate(self, prompt, max_tokens=1000, temperature=0.7):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self._reply_for(prompt)

    async def transcribe(self, audio, options):
        self.transcribe_calls.append((audio, options))
        if self.error is not None:
            raise self.error
        return self.transcript

    async def synthesize(self, text=None, ssml=None, options=None):
        self.synthesize_calls.append({"text": text, "ssml": ssml, "options": options})
        if self.error is not None:
            raise self.error
        return self.audio

    async def list_voices(self, language_code="en-US"):
        if self.error is not None:
            raise self.error
        return self.voices

    def fail_with_unavailable(self):
        self.error = ProviderUnavailable("Text generation failed: connection refused")


# fixtures

@pytest.fixture
def mock_db():
    """create a fresh mock database for each test"""
    return MockDatabase()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        UPLOAD_DIR=str(tmp_path / "uploads"),
        TTS_OUTPUT_DIR=str(tmp_path / "outputs"),
        ANALYSIS_WORKERS=2,
        ANALYSIS_QUEUE_MAXSIZE=50,
        MAX_AUDIO_UPLOAD_MB=1,
    )


@pytest.fixture
def fake_provider():
    return FakeProviderAdapter()


@pytest_asyncio.fixture
async def services(mock_db, test_settings, fake_provider):
    """service container over the mock db with analysis workers running"""
    built = build_services(test_settings, mock_db, provider=fake_provider)
    built.pipeline.queue.start()
    yield built
    await built.pipeline.queue.stop()


def _owner_dict():
    """owner identity as get_current_user would return it"""
    return {"id": OWNER_ID, "email": OWNER_DOC["email"]}


@pytest.fixture
def owner_token():
    """jwt access token for the test owner"""
    return create_access_token({"sub": OWNER_ID, "email": OWNER_DOC["email"]})


@pytest_asyncio.fixture
async def client(services):
    """httpx async test client with real bearer auth"""

    def override_get_services():
        return services

    app.dependency_overrides[get_services] = override_get_services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def owner_client(services):
    """client authenticated as the owner"""

    def override_get_services():
        return services

    async def override_get_current_user():
        return _owner_dict()

    app.dependency_overrides[get_services] = override_get_services
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
