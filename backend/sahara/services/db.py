# async mongodb client for the backend api
# uses motor for non-blocking operations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from sahara.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Database:
    """async mongodb connection manager"""

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self):
        """establish connection to mongodb"""
        if self.client is not None:
            return

        logger.info(f"Connecting to MongoDB database: {self.settings.MONGODB_DATABASE}")
        self.client = AsyncIOMotorClient(self.settings.MONGODB_URI)
        self.db = self.client[self.settings.MONGODB_DATABASE]

        # verify connection
        await self.client.admin.command("ping")
        logger.info("MongoDB connection established")

        await self.ensure_indexes()

    async def ensure_indexes(self):
        """indexes backing the entry store queries"""
        await self.entries.create_index("entry_id", unique=True)
        await self.entries.create_index([("owner_id", ASCENDING), ("kind", ASCENDING), ("created_at", DESCENDING)])
        await self.entries.create_index([("processed", ASCENDING), ("analysis_status", ASCENDING)])
        await self.entries.create_index([("session_id", ASCENDING), ("created_at", DESCENDING)])
        await self.insights.create_index("entry_id")
        await self.chats.create_index("session_id", unique=True)
        await self.resources.create_index("category")

    async def close(self):
        """close mongodb connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed")

    # collection accessors

    @property
    def users(self):
        return self.db["users"]

    @property
    def entries(self):
        return self.db["entries"]

    @property
    def insights(self):
        return self.db["insights"]

    @property
    def chats(self):
        return self.db["chats"]

    @property
    def resources(self):
        return self.db["resources"]


# singleton instance
db = Database()
