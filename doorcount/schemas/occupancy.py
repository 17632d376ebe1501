from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from doorcount.constants import OccupancyEventType, ResetScope


class DeltaIn(BaseModel):
    business_id: str
    venue_id: str
    area_id: str
    device_id: Optional[str] = None
    user_id: Optional[str] = None
    delta: int
    event_type: OccupancyEventType = OccupancyEventType.MANUAL
    source: Optional[str] = None


class DeltaOut(BaseModel):
    event_id: int
    current_occupancy: int


class AbsoluteCountIn(BaseModel):
    male: int = Field(ge=0)
    female: int = Field(ge=0)
    device_id: Optional[str] = None
    user_id: Optional[str] = None


class AreaOccupancyOut(BaseModel):
    area_id: str
    current_occupancy: int


class SnapshotOut(BaseModel):
    area_id: str
    business_id: str
    venue_id: str
    current_occupancy: int
    last_event_id: Optional[int]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OccupancyEventOut(BaseModel):
    id: int
    business_id: str
    venue_id: str
    area_id: str
    device_id: Optional[str]
    user_id: Optional[str]
    delta: int
    event_type: str
    source: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ResetIn(BaseModel):
    business_id: str
    scope: ResetScope
    target_id: str
    user_id: Optional[str] = None


class AreaResetOut(BaseModel):
    area_id: str
    success: bool


class ResetOut(BaseModel):
    results: list[AreaResetOut]


class RebuildOut(BaseModel):
    area_id: str
    previous: Optional[int]
    rebuilt: int
    event_count: int
    drift: int
