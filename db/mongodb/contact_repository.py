import re
from typing import List, Optional, Dict, Any
from datetime import datetime
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from core.interfaces.repositories import Contact, ContactRepository, CONTACT_FIELD_ATTRIBUTES
from core.imports.duplicate_resolver import normalize_email, normalize_phone
from db.mongodb.schemas import ContactDocument
from db.mongodb.connection import get_database
from utils.logger import logger


class MongoContactRepository(ContactRepository):
    """MongoDB implementation of ContactRepository"""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        """Initialize repository with database connection"""
        self.database = database if database is not None else get_database()
        self.collection = self.database.contacts

    def _document_to_domain(self, doc: Dict[str, Any]) -> Contact:
        """Convert MongoDB document to domain model"""
        return Contact(
            id=str(doc["_id"]),
            first_name=doc.get("first_name"),
            last_name=doc.get("last_name"),
            phone=doc.get("phone"),
            email=doc.get("email"),
            agent_uid=doc.get("agent_uid"),
            custom_fields=doc.get("custom_fields", {}),
            source=doc.get("source", "import"),
            created_on=doc["created_on"],
            updated_on=doc.get("updated_on")
        )

    def _build_document(self, data: Dict[str, Any], source: str) -> Dict[str, Any]:
        """Split field-name keyed data into document attributes and custom fields"""
        values = {}
        custom_fields = {}
        for field_name, value in data.items():
            attribute = CONTACT_FIELD_ATTRIBUTES.get(field_name)
            if attribute:
                values[attribute] = value
            else:
                custom_fields[field_name] = value

        contact_doc = ContactDocument(
            **values,
            custom_fields=custom_fields,
            source=source,
            normalized_email=normalize_email(values.get("email")),
            normalized_phone=normalize_phone(values.get("phone"))
        )
        return contact_doc.model_dump(by_alias=True, exclude={"id"})

    def _build_update(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Translate field-name keyed data into a $set document"""
        updates: Dict[str, Any] = {}
        for field_name, value in data.items():
            attribute = CONTACT_FIELD_ATTRIBUTES.get(field_name)
            if attribute:
                updates[attribute] = value
            else:
                updates[f"custom_fields.{field_name}"] = value

        if "email" in updates:
            updates["normalized_email"] = normalize_email(updates["email"])
        if "phone" in updates:
            updates["normalized_phone"] = normalize_phone(updates["phone"])
        updates["updated_on"] = datetime.utcnow()
        return updates

    async def search_contacts(self, term: str) -> List[Contact]:
        """Case-insensitive substring match against names, email and phone"""
        term = (term or "").strip()
        if not term:
            return []

        pattern = {"$regex": re.escape(term), "$options": "i"}
        query = {"$or": [
            {"first_name": pattern},
            {"last_name": pattern},
            {"email": pattern},
            {"phone": pattern},
            {"normalized_email": pattern},
            {"normalized_phone": pattern},
        ]}
        try:
            docs = await self.collection.find(query).to_list(length=None)
        except Exception as e:
            logger.error(f"Error searching contacts for '{term}': {e}")
            raise
        return [self._document_to_domain(doc) for doc in docs]

    async def create_contact(self, data: Dict[str, Any], source: str = "import") -> str:
        """Create a new contact"""
        doc_dict = self._build_document(data, source)
        try:
            result = await self.collection.insert_one(doc_dict)
        except Exception as e:
            logger.error(f"Error creating contact: {e}")
            raise

        logger.info(f"Created contact {result.inserted_id}")
        return str(result.inserted_id)

    async def update_contact(self, contact_id: str, data: Dict[str, Any]) -> None:
        """Set the supplied fields and refresh updated_on"""
        try:
            await self.collection.update_one(
                {"_id": ObjectId(contact_id)},
                {"$set": self._build_update(data)}
            )
        except Exception as e:
            logger.error(f"Error updating contact {contact_id}: {e}")
            raise

    async def create_contacts_batch(
        self,
        records: List[Dict[str, Any]],
        source: str = "import"
    ) -> List[str]:
        """Create multiple contacts in bulk"""
        if not records:
            return []

        documents = [self._build_document(record, source) for record in records]
        result = await self.collection.insert_many(documents)
        logger.info(f"Created {len(result.inserted_ids)} contacts in bulk")
        return [str(inserted_id) for inserted_id in result.inserted_ids]

    async def get_by_id(self, contact_id: str) -> Optional[Contact]:
        """Get contact by ID"""
        if not ObjectId.is_valid(contact_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(contact_id)})
        if doc:
            return self._document_to_domain(doc)
        return None

    async def get_contacts(self, skip: int = 0, limit: int = 50) -> List[Contact]:
        """Get contacts with pagination"""
        cursor = self.collection.find({}).sort("created_on", -1).skip(skip).limit(limit)
        contacts = await cursor.to_list(length=limit)
        return [self._document_to_domain(doc) for doc in contacts]

    async def count_contacts(self) -> int:
        """Count all contacts"""
        return await self.collection.count_documents({})
