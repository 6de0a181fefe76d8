from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId
from typing import Optional
from app.models.base import to_object_id, utcnow
from app.models.user import UserCreate, UserInDB
from app.core.security import hash_password

class UserRepository:
    """User database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def create_user(self, user_data: UserCreate) -> UserInDB:
        """Create a new user."""
        now = utcnow()
        user_dict = {
            "email": user_data.email,
            "username": user_data.username,
            "first_name": user_data.first_name,
            "last_name": user_data.last_name,
            "password_hash": hash_password(user_data.password),
            "created_at": now,
            "updated_at": now
        }

        result = await self.collection.insert_one(user_dict)
        user_dict["_id"] = result.inserted_id
        return UserInDB(**user_dict)

    async def get_user_by_email(self, email: str) -> UserInDB | None:
        """Get user by email."""
        user = await self.collection.find_one({"email": email})
        if user:
            return UserInDB(**user)
        return None

    async def get_user_by_id(self, user_id: str) -> UserInDB | None:
        """Get user by ID."""
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = await self.collection.find_one({"_id": oid})
        if user:
            return UserInDB(**user)
        return None

    async def find_conflict(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[ObjectId] = None
    ) -> Optional[str]:
        """Name of the field ("email" or "username") already taken by another user, if any."""
        clauses = []
        if email:
            clauses.append({"email": email})
        if username:
            clauses.append({"username": username})
        if not clauses:
            return None

        query = {"$or": clauses}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}

        existing = await self.collection.find_one(query)
        if not existing:
            return None
        return "email" if email and existing.get("email") == email else "username"

    async def update_user(self, user_id: str, update_data: dict) -> UserInDB | None:
        """Update user."""
        oid = to_object_id(user_id)
        if oid is None:
            return None
        if "password" in update_data:
            update_data["password_hash"] = hash_password(update_data.pop("password"))
        update_data["updated_at"] = utcnow()
        result = await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": update_data},
            return_document=True
        )
        if result:
            return UserInDB(**result)
        return None
