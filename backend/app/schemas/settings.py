from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from decimal import Decimal


class SettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    csv_delimiter: str
    vat_rate: Decimal
    privileged_edit_locked_weeks: bool
    allow_self_review: bool


class SettingsUpdate(BaseModel):
    csv_delimiter: Optional[str] = Field(default=None, pattern=r"^[;,\t|]$")
    vat_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    privileged_edit_locked_weeks: Optional[bool] = None
    allow_self_review: Optional[bool] = None
