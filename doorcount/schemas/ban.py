from pydantic import BaseModel, model_validator
from datetime import date, datetime
from typing import Optional

from doorcount.constants import BanDuration, BanScope


class ManualIdentity(BaseModel):
    state: str
    id_number: str
    dob: date


class BanCreate(BaseModel):
    # Identity: either a prior scan or a manually entered document
    scan_id: Optional[int] = None
    manual_identity: Optional[ManualIdentity] = None
    business_id: Optional[str] = None       # required with manual_identity

    scope: BanScope = BanScope.BUSINESS
    venue_id: Optional[str] = None          # required when scope == VENUE
    reason_code: str
    notes: Optional[str] = None
    duration: BanDuration = BanDuration.PERMANENT
    end_date: Optional[datetime] = None     # required when duration == DATED
    created_by: Optional[str] = None

    @model_validator(mode="after")
    def check_combination(self):
        if (self.scan_id is None) == (self.manual_identity is None):
            raise ValueError("Provide exactly one of scan_id or manual_identity")
        if self.manual_identity is not None and not self.business_id:
            raise ValueError("business_id is required for a manual ban")
        if self.scope == BanScope.VENUE and not self.venue_id:
            raise ValueError("venue_id is required for a venue ban")
        if self.duration == BanDuration.DATED and self.end_date is None:
            raise ValueError("end_date is required for a dated ban")
        return self


class BanRevoke(BaseModel):
    revoked_by: Optional[str] = None


class BanOut(BaseModel):
    id: int
    business_id: str
    venue_id: Optional[str]
    reason_code: str
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    end_at: Optional[datetime]
    active: bool
    revoked_at: Optional[datetime]

    class Config:
        from_attributes = True
