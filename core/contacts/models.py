from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime


class ContactItem(BaseModel):
    """Single contact item"""
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    agent_uid: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    source: str
    created_on: datetime
    updated_on: Optional[datetime] = None


class ContactListResponse(BaseModel):
    """Response for listing contacts"""
    contacts: List[ContactItem]
    total: int
    page: int
    page_size: int


class BatchCreateRequest(BaseModel):
    """Field-name keyed records to create in one write"""
    records: List[Dict[str, Any]] = Field(min_length=1)
    source: str = "manual"


class BatchCreateResponse(BaseModel):
    """Response for a batch create"""
    success: bool
    created: int
    ids: List[str] = Field(default_factory=list)
