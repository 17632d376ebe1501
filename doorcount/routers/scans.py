"""
Scan submission + scan ledger viewer.
POST /scans  runs one identity scan through the admission pipeline.
GET  /scans  lists recorded scans, newest first.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from doorcount.database import get_db
from doorcount.exceptions import AdmissionError
from doorcount.schemas.scan import BanDetails, ScanEventOut, ScanIdentityData, ScanResultOut, ScanSubmit
from doorcount.services.admission_service import ScanRequest, process_scan
from doorcount.services.ban_registry import ban_period
from doorcount.services.scan_ledger import list_scans
from doorcount.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/scans", response_model=ScanResultOut, summary="Submit an ID scan")
async def submit_scan(body: ScanSubmit, db: Session = Depends(get_db)):
    """
    Parses the payload, checks bans, age and expiry, records the scan and,
    for accepted scans at an area, counts the guest in.
    Denials are normal results (HTTP 200) with a reason code.
    """
    try:
        decision = await process_scan(db, ScanRequest(**body.model_dump()))
    except AdmissionError as e:
        raise HTTPException(status_code=404, detail=str(e))

    identity = decision.identity
    ban = decision.ban
    occupancy = decision.occupancy
    return ScanResultOut(
        scan_id=decision.scan_id,
        outcome=decision.outcome.code,
        reason=decision.outcome.reason,
        data=ScanIdentityData(
            first_name=identity.first_name,
            last_name=identity.last_name,
            age=decision.age,
            gender=identity.gender,
            dob=identity.date_of_birth.isoformat() if identity.date_of_birth else None,
            expiration_date=identity.expiration_date.isoformat() if identity.expiration_date else None,
            issuing_state=identity.issuing_region,
        ),
        ban_details=BanDetails(reason=ban.reason_code or "Unspecified", notes=ban.notes,
                               period=ban_period(ban)) if ban else None,
        current_occupancy=occupancy.applied.current_occupancy if occupancy and occupancy.ok else None,
        warnings=decision.warnings,
    )


@router.get("/scans", response_model=list[ScanEventOut], summary="List recorded scans")
def get_scans(business_id: Optional[str] = None, venue_id: Optional[str] = None,
              outcome: Optional[str] = None, limit: int = 50, db: Session = Depends(get_db)):
    """Scan ledger with optional business, venue and outcome filters."""
    return list_scans(db, business_id=business_id, venue_id=venue_id, outcome=outcome, limit=limit)
