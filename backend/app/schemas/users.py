from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=200)
    role: Literal["employee", "supervisor", "admin"] = "employee"
    hourly_cost: Optional[Decimal] = Field(default=None, ge=0)


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[Literal["employee", "supervisor", "admin"]] = None
    hourly_cost: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    company_id: UUID
    email: str
    name: str
    role: str
    hourly_cost: Optional[Decimal] = None
    is_active: bool
    created_at: Optional[datetime] = None


class GdprEraseResponse(BaseModel):
    message: str
    entries: int
    week_locks: int
    attachments: int
