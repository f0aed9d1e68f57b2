from pydantic import BaseModel, Field
from typing import List, Literal
from datetime import datetime


class UserItem(BaseModel):
    """Single user item"""
    uid: str
    name: str
    email: str
    role: str
    active: bool
    created_on: datetime


class UserListResponse(BaseModel):
    """Response for listing users"""
    users: List[UserItem]
    total: int


class CreateUserRequest(BaseModel):
    """Request to create a user"""
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: Literal["admin", "agent"] = "agent"
