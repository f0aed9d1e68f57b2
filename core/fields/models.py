from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from core.imports.models import FieldType


class FieldItem(BaseModel):
    """Single field definition"""
    id: str
    label: str
    field_name: str
    type: str
    core: bool
    required: bool
    options: List[str] = Field(default_factory=list)
    created_on: datetime


class FieldListResponse(BaseModel):
    """Response for listing field definitions"""
    fields: List[FieldItem]
    total: int


class CreateFieldRequest(BaseModel):
    """Request to create a custom field"""
    label: str = Field(min_length=1)
    field_name: Optional[str] = None  # Derived from the label if omitted
    type: FieldType = "text"
    required: bool = False
    options: List[str] = Field(default_factory=list)


class UpdateFieldRequest(BaseModel):
    """Request to update a custom field"""
    label: Optional[str] = None
    type: Optional[FieldType] = None
    required: Optional[bool] = None
    options: Optional[List[str]] = None


class DeleteFieldResponse(BaseModel):
    """Response for field deletion"""
    success: bool
    message: str
