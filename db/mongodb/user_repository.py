from typing import List, Optional, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from core.interfaces.repositories import UserRepository, User
from .schemas import UserDocument
from .connection import get_database
from utils.logger import logger


class MongoUserRepository(UserRepository):
    """MongoDB implementation of UserRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else get_database()
        self.collection = self.database["users"]

    def _document_to_domain(self, doc: Dict[str, Any]) -> User:
        user_doc = UserDocument(**doc)
        return User(
            uid=str(user_doc.id),
            name=user_doc.name,
            email=user_doc.email,
            role=user_doc.role,
            active=user_doc.active,
            created_on=user_doc.created_on
        )

    async def get_users(self) -> List[User]:
        """Get all users ordered by name"""
        try:
            docs = await self.collection.find({}).sort("name", 1).to_list(length=None)
            return [self._document_to_domain(doc) for doc in docs]
        except Exception as e:
            logger.error(f"Error listing users: {e}")
            raise

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address"""
        try:
            doc = await self.collection.find_one({"email": email.strip().lower()})
            if doc:
                return self._document_to_domain(doc)
            return None
        except Exception as e:
            logger.error(f"Error getting user by email {email}: {e}")
            raise

    async def create_user(self, name: str, email: str, role: str = "agent") -> User:
        """Create a new user"""
        try:
            # Check if user already exists
            existing_user = await self.get_by_email(email)
            if existing_user:
                return existing_user

            user_doc = UserDocument(name=name, email=email.strip().lower(), role=role)
            doc_dict = user_doc.model_dump(by_alias=True)
            await self.collection.insert_one(doc_dict)
            logger.info(f"Created user {user_doc.email}")
            return self._document_to_domain(doc_dict)
        except Exception as e:
            logger.error(f"Error creating user {email}: {e}")
            raise
