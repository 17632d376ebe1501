"""Live occupancy: deltas, absolute corrections, resets, snapshot rebuilds and reads."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from doorcount.database import get_db
from doorcount.exceptions import AreaNotFound
from doorcount.schemas.occupancy import (
    AbsoluteCountIn, AreaOccupancyOut, AreaResetOut, DeltaIn, DeltaOut,
    OccupancyEventOut, RebuildOut, ResetIn, ResetOut, SnapshotOut,
)
from doorcount.services import occupancy_ledger, reset_service

router = APIRouter()


@router.post("/occupancy/delta", response_model=DeltaOut, summary="Apply an occupancy delta")
def apply_delta(body: DeltaIn, db: Session = Depends(get_db)):
    """
    Used by counters (+1/-1 taps, bulk adds). The count never drops below zero.
    An area registered to another business or venue is a 404.
    """
    try:
        result = occupancy_ledger.apply_delta(
            db, body.business_id, body.venue_id, body.area_id, body.delta,
            event_type=body.event_type, device_id=body.device_id,
            source=body.source, user_id=body.user_id,
        )
    except AreaNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DeltaOut(event_id=result.event_id, current_occupancy=result.current_occupancy)


@router.get("/occupancy", response_model=list[SnapshotOut], summary="Current occupancy for all areas")
def get_all_occupancy(business_id: str, venue_id: Optional[str] = None, db: Session = Depends(get_db)):
    return occupancy_ledger.list_snapshots(db, business_id, venue_id=venue_id)


@router.get("/occupancy/events", response_model=list[OccupancyEventOut], summary="Occupancy ledger")
def get_events(business_id: str, area_id: Optional[str] = None, limit: int = 100,
               db: Session = Depends(get_db)):
    """Newest events first."""
    return occupancy_ledger.list_events(db, business_id, area_id=area_id, limit=limit)


@router.post("/occupancy/reset", response_model=ResetOut, summary="Reset occupancy to zero")
def reset_occupancy(body: ResetIn, db: Session = Depends(get_db)):
    """
    Zero one area, every area of a venue, or every area of a business.
    Each area reports its own success; one failure does not stop the rest.
    """
    results = reset_service.reset(db, body.business_id, body.scope, body.target_id, user_id=body.user_id)
    return ResetOut(results=[AreaResetOut(area_id=r.area_id, success=r.success) for r in results])


@router.get("/occupancy/{area_id}", response_model=AreaOccupancyOut, summary="Occupancy for one area")
def get_area_occupancy(area_id: str, business_id: str, db: Session = Depends(get_db)):
    """Areas with no events yet report 0."""
    return AreaOccupancyOut(
        area_id=area_id,
        current_occupancy=occupancy_ledger.get_current_occupancy(db, business_id, area_id),
    )


@router.put("/occupancy/{area_id}/absolute", response_model=DeltaOut, summary="Set an area's count")
def set_absolute(area_id: str, body: AbsoluteCountIn, db: Session = Depends(get_db)):
    """Manual counter correction: the difference is recorded as one adjustment event."""
    try:
        result = occupancy_ledger.set_absolute(
            db, area_id, body.male, body.female, device_id=body.device_id, user_id=body.user_id
        )
    except AreaNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DeltaOut(event_id=result.event_id, current_occupancy=result.current_occupancy)


@router.post("/occupancy/{area_id}/rebuild", response_model=RebuildOut, summary="Rebuild snapshot from ledger")
def rebuild_snapshot(area_id: str, db: Session = Depends(get_db)):
    """Replays every event for the area. Use after a failed write or suspected drift."""
    result = occupancy_ledger.rebuild_snapshot(db, area_id)
    return RebuildOut(
        area_id=result.area_id, previous=result.previous, rebuilt=result.rebuilt,
        event_count=result.event_count, drift=result.drift,
    )
