"""
MongoDB connection manager
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, GEOSPHERE

from streetsupport.core.config import settings

logger = logging.getLogger(__name__)


class MongoDB:
    """Owns the motor client. Stays disconnected when no URI is configured."""

    def __init__(self, uri: Optional[str] = None, database: Optional[str] = None):
        self.uri = uri
        self.database_name = database or settings.MONGODB_DATABASE
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    @property
    def is_connected(self) -> bool:
        return self.db is not None

    async def connect(self):
        if not self.uri:
            logger.warning("MONGODB_URI is not set; serving fallback data only")
            return

        self.client = AsyncIOMotorClient(self.uri)
        self.db = self.client[self.database_name]
        logger.info(f"Using MongoDB database: {self.database_name}")

        try:
            await self.create_indexes()
        except Exception as e:
            # Reads still work without the indexes, except $geoNear
            logger.error(f"Failed to create MongoDB indexes: {e}")

    async def disconnect(self):
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed")

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def create_indexes(self):
        """Indexes the search queries depend on."""
        services = self.db[settings.SERVICES_COLLECTION]
        providers = self.db[settings.PROVIDERS_COLLECTION]
        accommodation = self.db[settings.ACCOMMODATION_COLLECTION]

        # $geoNear needs exactly one 2dsphere index on the collection
        await services.create_index([("Address.Location", GEOSPHERE)])
        await services.create_index([("IsPublished", ASCENDING), ("ParentCategoryKey", ASCENDING)])
        await services.create_index("ServiceProviderKey")

        await providers.create_index("Key", unique=True)
        await self.db[settings.PROVIDER_ADDRESSES_COLLECTION].create_index("ServiceProviderKey")

        await accommodation.create_index([("Address.Location", GEOSPHERE)])
        await accommodation.create_index("GeneralInfo.ServiceProviderId")

        logger.info("MongoDB indexes created")


mongodb = MongoDB(settings.MONGODB_URI)
