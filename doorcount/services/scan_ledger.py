"""
Scan ledger: append-only record of every completed admission decision,
plus the minimal identities summary (region, birth year, initials).
"""

from collections import Counter
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from doorcount.models.scan_event import Identity, ScanEvent
from doorcount.services.id_parser import ParsedIdentity, age_band
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)


def touch_identity(db: Session, business_id: str, identity_token: str, parsed: ParsedIdentity) -> Identity:
    """Create or refresh the identities summary row. Flushes, does not commit."""
    now = datetime.utcnow()
    identity = db.query(Identity).filter(
        Identity.business_id == business_id, Identity.identity_token == identity_token
    ).first()
    if identity is None:
        identity = Identity(
            business_id=business_id,
            identity_token=identity_token,
            issuing_region=parsed.issuing_region,
            birth_year=parsed.date_of_birth.year if parsed.date_of_birth else None,
            initials=parsed.initials or None,
            scan_count=0,
            first_seen_at=now,
        )
        try:
            with db.begin_nested():
                db.add(identity)
        except IntegrityError:
            # Another request inserted the same identity first
            identity = db.query(Identity).filter(
                Identity.business_id == business_id, Identity.identity_token == identity_token
            ).one()
    identity.scan_count = (identity.scan_count or 0) + 1
    identity.last_seen_at = now
    db.flush()
    return identity


def record_scan(db: Session, *, business_id: str, venue_id: str, identity_token: str,
                outcome: str, denial_reason: Optional[str] = None,
                area_id: Optional[str] = None, device_id: Optional[str] = None,
                user_id: Optional[str] = None, age: Optional[int] = None,
                gender: Optional[str] = None, postal_code: Optional[str] = None) -> ScanEvent:
    """Append one scan row and commit. Rows are never updated afterwards."""
    scan = ScanEvent(
        business_id=business_id,
        venue_id=venue_id,
        area_id=area_id,
        device_id=device_id,
        user_id=user_id,
        identity_token=identity_token,
        outcome=outcome,
        denial_reason=denial_reason,
        scan_metadata={
            "age": age,
            "age_band": age_band(age),
            "gender": gender,
            "zip": postal_code,
        },
        created_at=datetime.utcnow(),
    )
    db.add(scan)
    db.commit()
    db.refresh(scan)
    logger.info(
        f"[SCAN] #{scan.id} venue={venue_id} area={area_id or '-'} "
        f"outcome={outcome} reason={denial_reason or '-'} token={identity_token[:8]}"
    )
    return scan


def list_scans(db: Session, business_id: Optional[str] = None, venue_id: Optional[str] = None,
               outcome: Optional[str] = None, limit: int = 50) -> list[ScanEvent]:
    q = db.query(ScanEvent)
    if business_id:
        q = q.filter(ScanEvent.business_id == business_id)
    if venue_id:
        q = q.filter(ScanEvent.venue_id == venue_id)
    if outcome:
        q = q.filter(ScanEvent.outcome == outcome)
    return q.order_by(ScanEvent.created_at.desc(), ScanEvent.id.desc()).limit(limit).all()


def summarize_scans(db: Session, business_id: str, start: datetime, end: datetime,
                    venue_id: Optional[str] = None) -> dict:
    """Scan counts for a window: by outcome, by denial reason and by age band."""
    q = db.query(ScanEvent).filter(
        ScanEvent.business_id == business_id,
        ScanEvent.created_at >= start,
        ScanEvent.created_at <= end,
    )
    if venue_id:
        q = q.filter(ScanEvent.venue_id == venue_id)

    outcomes, reasons, bands = Counter(), Counter(), Counter()
    for scan in q.all():
        outcomes[scan.outcome] += 1
        if scan.denial_reason:
            reasons[scan.denial_reason] += 1
        bands[(scan.scan_metadata or {}).get("age_band") or "Unknown"] += 1

    return {
        "total_scans": sum(outcomes.values()),
        "accepted": outcomes.get("ACCEPTED", 0),
        "denied": outcomes.get("DENIED", 0),
        "denial_reasons": dict(reasons),
        "age_bands": dict(bands),
    }
