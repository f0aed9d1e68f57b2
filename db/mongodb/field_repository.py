from typing import List, Optional, Dict, Any
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from core.fields.exceptions import CoreFieldProtectedError
from core.interfaces.repositories import ContactField, ContactFieldRepository
from db.mongodb.schemas import ContactFieldDocument
from db.mongodb.connection import get_database
from utils.logger import logger


class MongoContactFieldRepository(ContactFieldRepository):
    """MongoDB implementation of ContactFieldRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else get_database()
        self.collection = self.database.contact_fields

    def _document_to_domain(self, doc: Dict[str, Any]) -> ContactField:
        """Convert MongoDB document to domain model"""
        return ContactField(
            id=str(doc["_id"]),
            label=doc["label"],
            field_name=doc["field_name"],
            type=doc.get("type", "text"),
            core=doc.get("core", False),
            required=doc.get("required", False),
            created_on=doc["created_on"],
            options=doc.get("options", [])
        )

    async def get_fields(self) -> List[ContactField]:
        """Get all field definitions in creation order"""
        cursor = self.collection.find({}).sort("created_on", 1)
        docs = await cursor.to_list(length=None)
        return [self._document_to_domain(doc) for doc in docs]

    async def get_by_id(self, field_id: str) -> Optional[ContactField]:
        """Get field definition by ID"""
        if not ObjectId.is_valid(field_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(field_id)})
        if doc:
            return self._document_to_domain(doc)
        return None

    async def get_by_field_name(self, field_name: str) -> Optional[ContactField]:
        """Get field definition by its internal name"""
        doc = await self.collection.find_one({"field_name": field_name})
        if doc:
            return self._document_to_domain(doc)
        return None

    async def create_field(
        self,
        label: str,
        field_name: str,
        type: str,
        core: bool = False,
        required: bool = False,
        options: Optional[List[str]] = None
    ) -> ContactField:
        """Create a field definition"""
        field_doc = ContactFieldDocument(
            label=label,
            field_name=field_name,
            type=type,
            core=core,
            required=required,
            options=options or []
        )

        doc_dict = field_doc.model_dump(by_alias=True, exclude={"id"})
        try:
            result = await self.collection.insert_one(doc_dict)
        except Exception as e:
            logger.error(f"Error creating field {field_name}: {e}")
            raise

        doc_dict["_id"] = result.inserted_id
        logger.info(f"Created field {field_name} ({result.inserted_id})")
        return self._document_to_domain(doc_dict)

    async def update_field(self, field_id: str, updates: Dict[str, Any]) -> Optional[ContactField]:
        """Update a field definition"""
        if not ObjectId.is_valid(field_id):
            return None
        if updates:
            await self.collection.update_one(
                {"_id": ObjectId(field_id)},
                {"$set": updates}
            )
        return await self.get_by_id(field_id)

    async def delete_field(self, field_id: str) -> bool:
        """Delete a field definition; core fields are protected"""
        field = await self.get_by_id(field_id)
        if field is None:
            return False
        if field.core:
            raise CoreFieldProtectedError("Cannot delete core fields")

        result = await self.collection.delete_one({"_id": ObjectId(field_id)})
        if result.deleted_count > 0:
            logger.info(f"Deleted field {field.field_name}")
            return True
        return False
