"""
Ban registry: create, evaluate and revoke prohibition records.
Bans are keyed by identity token only. A ban with no venue applies to every
venue of the business; a venue ban applies only there. Either kind denies.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from doorcount.exceptions import BanNotFound, BanTargetNotFound
from doorcount.models.ban import Ban
from doorcount.models.scan_event import ScanEvent
from doorcount.services.id_parser import format_dob
from doorcount.services.identity_hasher import hash_identity
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class BanMatch:
    business_wide: bool = False
    venue_specific: bool = False
    match: Optional[Ban] = None

    @property
    def banned(self) -> bool:
        return self.business_wide or self.venue_specific


def find_active_bans(db: Session, business_id: str, identity_token: str,
                     now: Optional[datetime] = None) -> list[Ban]:
    """All active, unexpired bans on this identity within the business."""
    now = now or datetime.utcnow()
    return (
        db.query(Ban)
        .filter(
            Ban.business_id == business_id,
            Ban.identity_token == identity_token,
            Ban.active.is_(True),
            or_(Ban.end_at.is_(None), Ban.end_at > now),
        )
        .order_by(Ban.created_at, Ban.id)
        .all()
    )


def is_banned(bans: list[Ban], venue_id: str) -> BanMatch:
    result = BanMatch()
    for ban in bans:
        if ban.venue_id is None:
            result.business_wide = True
        elif ban.venue_id == venue_id:
            result.venue_specific = True
        else:
            continue
        if result.match is None:
            result.match = ban
    return result


def ban_period(ban: Ban) -> str:
    if ban.end_at is None:
        return "Permanent"
    return f"Until {ban.end_at.date().isoformat()}"


def create_ban(db: Session, business_id: str, identity_token: str, reason_code: str,
               notes: Optional[str] = None, venue_id: Optional[str] = None,
               end_at: Optional[datetime] = None, created_by: Optional[str] = None) -> Ban:
    """Insert a new active ban. venue_id=None → business-wide, end_at=None → permanent."""
    ban = Ban(
        business_id=business_id,
        venue_id=venue_id,
        identity_token=identity_token,
        reason_code=reason_code,
        notes=notes,
        created_by=created_by,
        created_at=datetime.utcnow(),
        end_at=end_at,
        active=True,
    )
    db.add(ban)
    db.commit()
    db.refresh(ban)
    logger.info(
        f"[BAN] Created ban {ban.id} business={business_id} scope={venue_id or 'BUSINESS'} "
        f"reason={reason_code} token={identity_token[:8]} period={ban_period(ban)}"
    )
    return ban


def create_ban_from_scan(db: Session, scan_id: int, reason_code: str, **kwargs) -> Ban:
    """Ban the identity behind an earlier scan."""
    scan = db.query(ScanEvent).filter(ScanEvent.id == scan_id).first()
    if not scan:
        raise BanTargetNotFound(f"Scan {scan_id} not found")
    return create_ban(db, scan.business_id, scan.identity_token, reason_code, **kwargs)


def create_ban_from_identity(db: Session, business_id: str, state: str, id_number: str,
                             dob: date, reason_code: str, **kwargs) -> Ban:
    """Ban a manually entered identity (state + id number + date of birth)."""
    token = hash_identity(state, id_number, format_dob(dob))
    return create_ban(db, business_id, token, reason_code, **kwargs)


def revoke_ban(db: Session, ban_id: int, revoked_by: Optional[str] = None) -> Ban:
    """Deactivate a ban. Revoking an inactive ban changes nothing."""
    ban = db.query(Ban).filter(Ban.id == ban_id).first()
    if not ban:
        raise BanNotFound(ban_id)
    if not ban.active:
        logger.debug(f"[BAN] Ban {ban_id} already inactive, revoke is a no-op")
        return ban
    ban.active = False
    ban.revoked_at = datetime.utcnow()
    ban.revoked_by = revoked_by
    db.commit()
    logger.info(f"[BAN] Revoked ban {ban_id} business={ban.business_id}")
    return ban


def list_bans(db: Session, business_id: str, active_only: bool = False, limit: int = 100) -> list[Ban]:
    q = db.query(Ban).filter(Ban.business_id == business_id)
    if active_only:
        q = q.filter(Ban.active.is_(True), or_(Ban.end_at.is_(None), Ban.end_at > datetime.utcnow()))
    return q.order_by(Ban.created_at.desc()).limit(limit).all()
