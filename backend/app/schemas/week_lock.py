from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime
from uuid import UUID


class WeekSubmit(BaseModel):
    # any day of the week; normalized to its Monday
    week_start_date: date


class WeekReject(BaseModel):
    comment: str = Field(min_length=1, max_length=2000)


class WeekLockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    week_start_date: date
    status: str
    comment: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[UUID] = None


class WeekLockSummary(WeekLockResponse):
    user_name: Optional[str] = None
    total_hours: float = 0
    billable_hours: float = 0
    entry_count: int = 0
