"""Ban registry: create, list and revoke bans."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from doorcount.constants import BanDuration, BanScope
from doorcount.database import get_db
from doorcount.exceptions import BanNotFound, BanTargetNotFound
from doorcount.schemas.ban import BanCreate, BanOut, BanRevoke
from doorcount.services import ban_registry

router = APIRouter()


@router.post("/bans", response_model=BanOut, summary="Ban a guest")
def create_ban(body: BanCreate, db: Session = Depends(get_db)):
    """
    Ban the identity behind a prior scan (scan_id) or a manually entered
    document (manual_identity). Scope BUSINESS bans at every venue.
    """
    options = dict(
        notes=body.notes,
        venue_id=body.venue_id if body.scope == BanScope.VENUE else None,
        end_at=body.end_date if body.duration == BanDuration.DATED else None,
        created_by=body.created_by,
    )
    if body.scan_id is not None:
        try:
            return ban_registry.create_ban_from_scan(db, body.scan_id, body.reason_code, **options)
        except BanTargetNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))

    identity = body.manual_identity
    return ban_registry.create_ban_from_identity(
        db, body.business_id, identity.state, identity.id_number, identity.dob, body.reason_code, **options
    )


@router.get("/bans", response_model=list[BanOut], summary="List bans for a business")
def list_bans(business_id: str, active_only: bool = False, limit: int = 100, db: Session = Depends(get_db)):
    return ban_registry.list_bans(db, business_id, active_only=active_only, limit=limit)


@router.put("/bans/{ban_id}/revoke", response_model=BanOut, summary="Revoke a ban")
def revoke_ban(ban_id: int, body: Optional[BanRevoke] = None, db: Session = Depends(get_db)):
    """Deactivates the ban. Revoking an already revoked ban returns it unchanged."""
    try:
        return ban_registry.revoke_ban(db, ban_id, revoked_by=body.revoked_by if body else None)
    except BanNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
