# resource service - wellness resources (articles, exercises, hotlines)
# listed by category and appended to chat replies when a user needs support

import logging
import uuid
from typing import Optional

from sahara.errors import ValidationError
from sahara.services.entry_store import utc_now_iso

logger = logging.getLogger(__name__)

SUPPORT_CATEGORY = "coping-strategies"


class ResourceService:
    def __init__(self, db):
        self.db = db

    async def list_resources(self, category: Optional[str] = None, limit: int = 10) -> list[dict]:
        if limit < 1:
            raise ValidationError("Limit must be a positive integer")
        query = {"category": category} if category and category != "all" else {}
        cursor = self.db.resources.find(query).sort("created_at", -1).limit(limit)
        resources = []
        async for doc in cursor:
            doc = dict(doc)
            doc.pop("_id", None)
            resources.append(doc)
        return resources

    async def create(
        self,
        title: str,
        description: str,
        category: str,
        content: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> dict:
        if not title.strip() or not description.strip() or not category.strip():
            raise ValidationError("Title, description, and category are required")

        doc = {
            "resource_id": uuid.uuid4().hex,
            "title": title.strip(),
            "description": description.strip(),
            "category": category.strip(),
            "content": content,
            "tags": tags or [],
            "created_at": utc_now_iso(),
        }
        await self.db.resources.insert_one(doc)
        doc.pop("_id", None)
        logger.info(f"Resource added: {doc['resource_id']} ({doc['category']})")
        return doc
