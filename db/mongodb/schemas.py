from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import core_schema
from typing import List, Optional, Dict, Any
from datetime import datetime
from bson import ObjectId


class PyObjectId(ObjectId):
    """Custom ObjectId for Pydantic models"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        return core_schema.union_schema([
            core_schema.is_instance_schema(ObjectId),
            core_schema.no_info_plain_validator_function(cls.validate),
        ])

    @classmethod
    def validate(cls, v):
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError("Invalid ObjectId")

    @classmethod
    def __get_pydantic_json_schema__(cls, core_schema, handler):
        return {"type": "string"}


DOCUMENT_CONFIG = ConfigDict(
    populate_by_name=True,
    arbitrary_types_allowed=True,
)


class ContactDocument(BaseModel):
    """MongoDB document schema for contacts collection"""
    model_config = DOCUMENT_CONFIG

    id: Optional[PyObjectId] = Field(default_factory=PyObjectId, alias="_id")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    agent_uid: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    source: str = "import"  # 'import' or 'manual'
    # Kept alongside the raw values so duplicate lookups can match them
    normalized_email: str = ""
    normalized_phone: str = ""
    created_on: datetime = Field(default_factory=datetime.utcnow)
    updated_on: datetime = Field(default_factory=datetime.utcnow)


class ContactFieldDocument(BaseModel):
    """MongoDB document schema for contact_fields collection"""
    model_config = DOCUMENT_CONFIG

    id: Optional[PyObjectId] = Field(default_factory=PyObjectId, alias="_id")
    label: str
    field_name: str
    type: str  # text, number, phone, email, datetime, checkbox
    core: bool = False
    required: bool = False
    options: List[str] = Field(default_factory=list)
    created_on: datetime = Field(default_factory=datetime.utcnow)


class UserDocument(BaseModel):
    """MongoDB document schema for users collection"""
    model_config = DOCUMENT_CONFIG

    id: Optional[PyObjectId] = Field(default_factory=PyObjectId, alias="_id")
    name: str
    email: str
    role: str = "agent"  # 'admin' or 'agent'
    active: bool = True
    created_on: datetime = Field(default_factory=datetime.utcnow)


class ImportSessionDocument(BaseModel):
    """MongoDB document schema for import_sessions collection"""
    model_config = DOCUMENT_CONFIG

    id: Optional[PyObjectId] = Field(default_factory=PyObjectId, alias="_id")
    file_name: str
    file_size: int
    total_rows: int
    mapped_fields: Dict[str, str] = Field(default_factory=dict)
    status: str = "processing"  # 'processing', 'completed', 'failed'
    results: Dict[str, Any] = Field(default_factory=dict)
    created_by: str
    created_on: datetime = Field(default_factory=datetime.utcnow)
    completed_on: Optional[datetime] = None
