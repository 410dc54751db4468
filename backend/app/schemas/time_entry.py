from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime
from datetime import date as DateType
from uuid import UUID
from decimal import Decimal


_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TimeEntryCreate(BaseModel):
    project_id: Optional[UUID] = None
    activity_id: UUID
    date: date
    start_time: Optional[str] = Field(default=None, pattern=_TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=_TIME_PATTERN)
    hours: Decimal = Field(ge=0, le=24)
    billable: Optional[bool] = None  # None -> activity's billable default
    note: Optional[str] = None
    gps_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    gps_lng: Optional[float] = Field(default=None, ge=-180, le=180)


class TimeEntryUpdate(BaseModel):
    project_id: Optional[UUID] = None
    activity_id: Optional[UUID] = None
    date: Optional[DateType] = None
    start_time: Optional[str] = Field(default=None, pattern=_TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=_TIME_PATTERN)
    hours: Optional[Decimal] = Field(default=None, ge=0, le=24)
    billable: Optional[bool] = None
    note: Optional[str] = None
    gps_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    gps_lng: Optional[float] = Field(default=None, ge=-180, le=180)


class TimeEntrySyncItem(TimeEntryCreate):
    local_id: Optional[str] = Field(default=None, max_length=100)
    id: Optional[UUID] = None


class SyncResult(BaseModel):
    local_id: Optional[str] = None
    id: Optional[UUID] = None
    synced: bool
    duplicate: bool = False
    error: Optional[str] = None
    code: Optional[str] = None


class SyncResponse(BaseModel):
    results: list[SyncResult]


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    time_entry_id: UUID
    original_name: str
    mime_type: str
    size: int
    created_at: Optional[datetime] = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    project_id: Optional[UUID] = None
    activity_id: UUID
    date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    hours: Decimal
    billable: bool
    note: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    status: str
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approver_id: Optional[UUID] = None
    reject_note: Optional[str] = None
    attachments: list[AttachmentResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WeekSummary(BaseModel):
    total_hours: float
    billable_hours: float
    daily_totals: dict[str, float]


class WeekViewResponse(BaseModel):
    user_id: UUID
    week_start: date
    week_end: date
    entries: list[TimeEntryResponse]
    lock: dict
    summary: WeekSummary
