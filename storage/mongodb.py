"""
MongoDB access for asset metadata.

One motor client per process. Collections are resolved per call so a
repository can point at another database than the configured one.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from core.config import (
    MONGODB_COLLECTION_ASSET_METADATA,
    MONGODB_COLLECTION_PRESENTATION_ASSETS,
    ExtractionSettings,
    get_settings,
)
from core.exceptions import ConfigurationError, RepositoryError

logger = logging.getLogger(__name__)

# Secondary indexes backing the repository queries
COLLECTION_INDEXES: Dict[str, List[List[Tuple[str, int]]]] = {
    MONGODB_COLLECTION_ASSET_METADATA: [
        [("presentation_id", 1), ("type", 1)],
        [("presentation_id", 1), ("slide_index", 1)],
        [("presentation_id", 1), ("format", 1)],
    ],
    MONGODB_COLLECTION_PRESENTATION_ASSETS: [
        [("assets.asset_id", 1)],
    ],
}

SERVER_SELECTION_TIMEOUT_MS = 5000

# Global singleton
_mongo_service_instance = None


def get_mongo_service() -> 'MongoDBService':
    """Get singleton instance of MongoDBService."""
    global _mongo_service_instance
    if _mongo_service_instance is None:
        _mongo_service_instance = MongoDBService()
    return _mongo_service_instance


class MongoDBService:
    """
    Connection holder for the asset metadata store.

    Args:
        settings: Connection URI and default database (environment by default)
        client: Pre-built motor client; skips connecting in ``initialize``
    """

    def __init__(self, settings: Optional[ExtractionSettings] = None, client: Optional[Any] = None):
        self.settings = settings or get_settings()
        self.client: Optional[AsyncIOMotorClient] = client
        self._initialized = client is not None

    @property
    def database_name(self) -> str:
        return self.settings.mongodb_database

    async def initialize(self, create_indexes: bool = True):
        """
        Connect, verify the server answers, and create the query indexes.

        Raises:
            RepositoryError: if the server cannot be reached
        """
        if self._initialized:
            logger.info("MongoDB already initialized")
            return

        client = AsyncIOMotorClient(self.settings.mongodb_uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
        try:
            await client.admin.command("ping")
        except Exception as e:
            client.close()
            logger.error(f"MongoDB initialization failed: {e}")
            raise RepositoryError(f"MongoDB not reachable: {e}") from e

        self.client = client
        self._initialized = True
        logger.info(f"MongoDB initialized: database={self.database_name}")

        if create_indexes:
            await self.ensure_indexes()

    def get_collection(self, collection_name: str, database_name: Optional[str] = None) -> AsyncIOMotorCollection:
        """
        Collection handle in ``database_name`` or the configured database.

        Raises:
            ConfigurationError: before ``initialize``
        """
        if not self._initialized or self.client is None:
            raise ConfigurationError("MongoDB not initialized. Call await mongo_service.initialize() first.")
        return self.client[database_name or self.database_name][collection_name]

    async def ensure_indexes(self, database_name: Optional[str] = None) -> int:
        """
        Create the repository's secondary indexes; existing ones are left alone.

        Returns:
            Number of index specs that were applied
        """
        applied = 0
        for collection_name, specs in COLLECTION_INDEXES.items():
            collection = self.get_collection(collection_name, database_name)
            for keys in specs:
                try:
                    await collection.create_index(keys)
                    applied += 1
                except Exception as e:
                    logger.warning(f"Index {keys} on {collection_name} not created: {e}")
        logger.info(f"MongoDB indexes ensured: {applied}")
        return applied

    async def close(self):
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")
        self.client = None
        self._initialized = False
