from __future__ import annotations
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from config import get_settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
        logger.info("Connected to MongoDB database=%s", settings.DATABASE_NAME)
    return _db

async def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("Closed MongoDB client")
    _client = None
    _db = None
