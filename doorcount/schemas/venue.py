from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from doorcount.constants import CountingMode


class BusinessCreate(BaseModel):
    id: str
    name: str
    timezone: str = "UTC"
    age_threshold: Optional[int] = Field(default=None, ge=0)
    auto_increment_on_scan: Optional[bool] = None


class BusinessOut(BaseModel):
    id: str
    name: str
    timezone: str
    age_threshold: Optional[int]
    auto_increment_on_scan: Optional[bool]

    class Config:
        from_attributes = True


class VenueCreate(BaseModel):
    id: str
    business_id: str
    name: str
    capacity: Optional[int] = None


class VenueOut(BaseModel):
    id: str
    business_id: str
    name: str
    capacity: Optional[int]

    class Config:
        from_attributes = True


class AreaCreate(BaseModel):
    id: str
    venue_id: str
    name: str
    capacity: Optional[int] = None
    counting_mode: CountingMode = CountingMode.BOTH


class AreaOut(BaseModel):
    id: str
    business_id: str
    venue_id: str
    name: str
    capacity: Optional[int]
    counting_mode: str
    current_occupancy: int = 0
    occupancy_percent: Optional[float] = None
    is_full: Optional[bool] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
