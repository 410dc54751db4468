from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal


ActivityCategory = Literal["WORK", "TRAVEL", "MEETING", "INTERNAL", "CHANGE_ORDER", "ABSENCE"]


# ─── Customer ────────────────────────────────────────────────────────

class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    org_number: Optional[str] = None
    contact_email: Optional[str] = None
    default_rate: Optional[Decimal] = Field(default=None, ge=0)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    org_number: Optional[str] = None
    contact_email: Optional[str] = None
    default_rate: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    org_number: Optional[str] = None
    contact_email: Optional[str] = None
    default_rate: Optional[Decimal] = None
    active: bool
    created_at: Optional[datetime] = None


# ─── Project ─────────────────────────────────────────────────────────

class ProjectCreate(BaseModel):
    customer_id: Optional[UUID] = None
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    default_rate: Optional[Decimal] = Field(default=None, ge=0)
    budget_hours: Optional[Decimal] = Field(default=None, ge=0)


class ProjectUpdate(BaseModel):
    customer_id: Optional[UUID] = None
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    default_rate: Optional[Decimal] = Field(default=None, ge=0)
    budget_hours: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: Optional[UUID] = None
    code: str
    name: str
    description: Optional[str] = None
    default_rate: Optional[Decimal] = None
    budget_hours: Optional[Decimal] = None
    active: bool
    created_at: Optional[datetime] = None


# ─── Activity ────────────────────────────────────────────────────────

class ActivityCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    category: ActivityCategory = "WORK"
    billable_default: bool = True
    rate_override: Optional[Decimal] = Field(default=None, ge=0)
    sort_order: int = 0


class ActivityUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[ActivityCategory] = None
    billable_default: Optional[bool] = None
    rate_override: Optional[Decimal] = Field(default=None, ge=0)
    sort_order: Optional[int] = None
    active: Optional[bool] = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    category: str
    billable_default: bool
    rate_override: Optional[Decimal] = None
    sort_order: int
    active: bool
