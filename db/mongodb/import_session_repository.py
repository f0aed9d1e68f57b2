from typing import List, Optional, Dict, Any
from datetime import datetime
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from core.interfaces.repositories import ImportSessionRecord, ImportSessionRepository
from db.mongodb.schemas import ImportSessionDocument
from db.mongodb.connection import get_database
from utils.logger import logger


class MongoImportSessionRepository(ImportSessionRepository):
    """MongoDB implementation of ImportSessionRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        """Initialize repository with database connection"""
        self.database = database if database is not None else get_database()
        self.collection = self.database.import_sessions

    def _document_to_domain(self, doc: Dict[str, Any]) -> ImportSessionRecord:
        """Convert MongoDB document to domain model"""
        return ImportSessionRecord(
            id=str(doc["_id"]),
            file_name=doc["file_name"],
            file_size=doc.get("file_size", 0),
            total_rows=doc.get("total_rows", 0),
            mapped_fields=doc.get("mapped_fields", {}),
            status=doc["status"],
            results=doc.get("results", {}),
            created_by=doc.get("created_by", "anonymous"),
            created_on=doc["created_on"],
            completed_on=doc.get("completed_on")
        )

    async def create_session(
        self,
        file_name: str,
        file_size: int,
        total_rows: int,
        mapped_fields: Dict[str, str],
        created_by: str,
        status: str = "processing"
    ) -> ImportSessionRecord:
        """Create a new import session record"""
        session_doc = ImportSessionDocument(
            file_name=file_name,
            file_size=file_size,
            total_rows=total_rows,
            mapped_fields=mapped_fields,
            status=status,
            created_by=created_by
        )

        doc_dict = session_doc.model_dump(by_alias=True, exclude={"id"})
        result = await self.collection.insert_one(doc_dict)

        doc_dict["_id"] = result.inserted_id
        logger.info(f"Created import session {result.inserted_id} for '{file_name}'")

        return self._document_to_domain(doc_dict)

    async def update_session(
        self,
        session_id: str,
        status: str,
        results: Dict[str, Any]
    ) -> Optional[ImportSessionRecord]:
        """Record the outcome of an import run"""
        await self.collection.update_one(
            {"_id": ObjectId(session_id)},
            {"$set": {
                "status": status,
                "results": results,
                "completed_on": datetime.utcnow()
            }}
        )
        return await self.get_session(session_id)

    async def get_session(self, session_id: str) -> Optional[ImportSessionRecord]:
        """Get import session by ID"""
        if not ObjectId.is_valid(session_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(session_id)})

        if doc:
            return self._document_to_domain(doc)
        return None

    async def get_sessions(self, skip: int = 0, limit: int = 50) -> List[ImportSessionRecord]:
        """Get import sessions with pagination"""
        cursor = self.collection.find({}).sort("created_on", -1).skip(skip).limit(limit)

        sessions = await cursor.to_list(length=limit)
        return [self._document_to_domain(doc) for doc in sessions]
