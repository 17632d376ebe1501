"""Venue directory: register businesses, venues and areas; list areas with live counts."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from doorcount.database import get_db
from doorcount.models.occupancy import OccupancySnapshot
from doorcount.models.venue import Area, Business, Venue
from doorcount.schemas.venue import AreaCreate, AreaOut, BusinessCreate, BusinessOut, VenueCreate, VenueOut

router = APIRouter()


@router.post("/businesses", response_model=BusinessOut, summary="Register a business")
def create_business(body: BusinessCreate, db: Session = Depends(get_db)):
    if db.query(Business).filter(Business.id == body.id).first():
        raise HTTPException(status_code=400, detail=f"Business '{body.id}' already exists")
    business = Business(**body.model_dump(), created_at=datetime.utcnow())
    db.add(business)
    db.commit()
    return business


@router.post("/venues", response_model=VenueOut, summary="Register a venue")
def create_venue(body: VenueCreate, db: Session = Depends(get_db)):
    if not db.query(Business).filter(Business.id == body.business_id).first():
        raise HTTPException(status_code=404, detail=f"Business '{body.business_id}' not found")
    if db.query(Venue).filter(Venue.id == body.id).first():
        raise HTTPException(status_code=400, detail=f"Venue '{body.id}' already exists")
    venue = Venue(**body.model_dump(), created_at=datetime.utcnow())
    db.add(venue)
    db.commit()
    return venue


@router.post("/areas", response_model=AreaOut, summary="Register an area inside a venue")
def create_area(body: AreaCreate, db: Session = Depends(get_db)):
    venue = db.query(Venue).filter(Venue.id == body.venue_id).first()
    if not venue:
        raise HTTPException(status_code=404, detail=f"Venue '{body.venue_id}' not found")
    if db.query(Area).filter(Area.id == body.id).first():
        raise HTTPException(status_code=400, detail=f"Area '{body.id}' already exists")
    area = Area(
        id=body.id,
        business_id=venue.business_id,
        venue_id=venue.id,
        name=body.name,
        capacity=body.capacity,
        counting_mode=body.counting_mode.value,
        created_at=datetime.utcnow(),
    )
    db.add(area)
    db.commit()
    return area


@router.get("/areas", response_model=list[AreaOut], summary="Areas with current occupancy")
def list_areas(venue_id: Optional[str] = None, business_id: Optional[str] = None,
               db: Session = Depends(get_db)):
    """Each area with its live count, percent of capacity and full flag."""
    q = db.query(Area)
    if venue_id:
        q = q.filter(Area.venue_id == venue_id)
    if business_id:
        q = q.filter(Area.business_id == business_id)
    areas = q.order_by(Area.id).all()

    counts = dict(
        db.query(OccupancySnapshot.area_id, OccupancySnapshot.current_occupancy)
        .filter(OccupancySnapshot.area_id.in_([a.id for a in areas]))
        .all()
    ) if areas else {}

    result = []
    for a in areas:
        out = AreaOut.model_validate(a)
        out.current_occupancy = counts.get(a.id, 0)
        if a.capacity:
            out.occupancy_percent = round(out.current_occupancy / a.capacity * 100, 1)
            out.is_full = out.current_occupancy >= a.capacity
        result.append(out)
    return result
