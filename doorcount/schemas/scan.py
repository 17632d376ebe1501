from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from doorcount.constants import DenialReason, ScanOutcomeCode


class ScanSubmit(BaseModel):
    raw_payload: str
    venue_id: str
    area_id: Optional[str] = None
    device_id: Optional[str] = None
    user_id: Optional[str] = None


class ScanIdentityData(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    dob: Optional[str] = None               # YYYY-MM-DD
    expiration_date: Optional[str] = None   # YYYY-MM-DD
    issuing_state: Optional[str] = None


class BanDetails(BaseModel):
    reason: str
    notes: Optional[str] = None
    period: str                             # "Permanent" | "Until YYYY-MM-DD"


class ScanResultOut(BaseModel):
    scan_id: Optional[int] = None           # None when nothing was recorded (INVALID_FORMAT)
    outcome: ScanOutcomeCode
    reason: Optional[DenialReason] = None
    data: ScanIdentityData
    ban_details: Optional[BanDetails] = None
    current_occupancy: Optional[int] = None
    warnings: list[str] = []


class ScanEventOut(BaseModel):
    id: int
    business_id: str
    venue_id: str
    area_id: Optional[str]
    device_id: Optional[str]
    user_id: Optional[str]
    outcome: str
    denial_reason: Optional[str]
    scan_metadata: Optional[dict]
    created_at: datetime

    class Config:
        from_attributes = True


class ScanSummaryOut(BaseModel):
    date: str
    total_scans: int
    accepted: int
    denied: int
    denial_reasons: dict[str, int]
    age_bands: dict[str, int]
