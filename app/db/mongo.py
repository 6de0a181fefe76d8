import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    await create_indexes()
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    users = mongodb.db["users"]
    await users.create_index("email", unique=True)
    await users.create_index("username", unique=True)

    expenditures = mongodb.db["expenditures"]
    await expenditures.create_index([("user_id", 1), ("date", -1)])
    await expenditures.create_index([("user_id", 1), ("category", 1)])
    await expenditures.create_index([("user_id", 1), ("tags", 1)])
    await expenditures.create_index([("splits.user_id", 1), ("splits.paid", 1)])
    await expenditures.create_index([("paid_by", 1), ("is_settled", 1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
