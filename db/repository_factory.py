from core.interfaces.repositories import (
    ContactRepository,
    ContactFieldRepository,
    UserRepository,
    ImportSessionRepository,
)
from db.mongodb.contact_repository import MongoContactRepository
from db.mongodb.field_repository import MongoContactFieldRepository
from db.mongodb.user_repository import MongoUserRepository
from db.mongodb.import_session_repository import MongoImportSessionRepository
from db.mongodb.connection import mongodb_connection
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional


class RepositoryFactory:
    """Factory for creating repository instances"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database

    def _get_database(self) -> AsyncIOMotorDatabase:
        if self.database is None:
            self.database = mongodb_connection.get_database()
        return self.database

    async def create_contact_repository(self) -> ContactRepository:
        """Create contact repository instance"""
        return MongoContactRepository(self._get_database())

    async def create_field_repository(self) -> ContactFieldRepository:
        """Create field definition repository instance"""
        return MongoContactFieldRepository(self._get_database())

    async def create_user_repository(self) -> UserRepository:
        """Create user repository instance"""
        return MongoUserRepository(self._get_database())

    async def create_import_session_repository(self) -> ImportSessionRepository:
        """Create import session repository instance"""
        return MongoImportSessionRepository(self._get_database())


# Global factory instance
repository_factory = RepositoryFactory()


async def get_contact_repository() -> ContactRepository:
    """Convenience function to get contact repository"""
    return await repository_factory.create_contact_repository()


async def get_field_repository() -> ContactFieldRepository:
    """Convenience function to get field definition repository"""
    return await repository_factory.create_field_repository()


async def get_user_repository() -> UserRepository:
    """Convenience function to get user repository"""
    return await repository_factory.create_user_repository()


async def get_import_session_repository() -> ImportSessionRepository:
    """Convenience function to get import session repository"""
    return await repository_factory.create_import_session_repository()
