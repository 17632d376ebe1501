"""
Administrative occupancy reset for one area, a venue or a whole business.
Each non-zero area gets a compensating 'reset' event of -current before its
snapshot is zeroed, so replaying the ledger still lands on the snapshot.
Areas are reset independently: one failure does not stop the others.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from doorcount.constants import OccupancyEventType, ResetScope
from doorcount.exceptions import AreaNotFound
from doorcount.models.occupancy import OccupancyEvent, OccupancySnapshot
from doorcount.models.venue import Area
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AreaResetResult:
    area_id: str
    success: bool
    cleared: int = 0            # occupancy removed by the compensating event
    error: Optional[str] = None


def resolve_area_ids(db: Session, business_id: str, scope: ResetScope, target_id: str) -> list[str]:
    """Registered areas in scope plus any area that only exists as a snapshot."""
    scope = ResetScope(scope)
    if scope == ResetScope.AREA:
        return [target_id]

    area_q = db.query(Area.id).filter(Area.business_id == business_id)
    snap_q = db.query(OccupancySnapshot.area_id).filter(OccupancySnapshot.business_id == business_id)
    if scope == ResetScope.VENUE:
        area_q = area_q.filter(Area.venue_id == target_id)
        snap_q = snap_q.filter(OccupancySnapshot.venue_id == target_id)

    ids = {row[0] for row in area_q.all()} | {row[0] for row in snap_q.all()}
    return sorted(ids)


def reset_area(db: Session, business_id: str, area_id: str, user_id: Optional[str] = None) -> int:
    """
    Zero one area. Returns the occupancy that was cleared (0 → nothing written).
    The snapshot row is locked so no delta can land between read and reset.
    Raises AreaNotFound for an area this business neither registered nor counted.
    """
    try:
        snapshot = (
            db.query(OccupancySnapshot)
            .filter(OccupancySnapshot.business_id == business_id, OccupancySnapshot.area_id == area_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if snapshot is None:
            known = db.query(Area.id).filter(Area.id == area_id, Area.business_id == business_id).first()
            db.rollback()
            if known is None:
                raise AreaNotFound(area_id)
            return 0
        if snapshot.current_occupancy == 0:
            db.rollback()
            return 0

        cleared = snapshot.current_occupancy
        now = datetime.utcnow()
        event = OccupancyEvent(
            business_id=business_id,
            venue_id=snapshot.venue_id,
            area_id=area_id,
            user_id=user_id,
            delta=-cleared,
            event_type=OccupancyEventType.RESET.value,
            source="reset",
            created_at=now,
        )
        db.add(event)
        db.flush()
        snapshot.current_occupancy = 0
        snapshot.last_event_id = event.id
        snapshot.updated_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    return cleared


def reset(db: Session, business_id: str, scope: ResetScope, target_id: str,
          user_id: Optional[str] = None) -> list[AreaResetResult]:
    area_ids = resolve_area_ids(db, business_id, scope, target_id)
    logger.info(f"[RESET] business={business_id} scope={ResetScope(scope).value} target={target_id} → {len(area_ids)} area(s)")

    results = []
    for area_id in area_ids:
        try:
            cleared = reset_area(db, business_id, area_id, user_id=user_id)
        except AreaNotFound as e:
            logger.warning(f"[RESET] {area_id} skipped: {e}")
            results.append(AreaResetResult(area_id=area_id, success=False, error=str(e)))
            continue
        except Exception as e:
            logger.error(f"[RESET] {area_id} failed: {e}", exc_info=True)
            results.append(AreaResetResult(area_id=area_id, success=False, error=str(e)))
            continue
        if cleared:
            logger.info(f"[RESET] {area_id}: cleared {cleared}")
        results.append(AreaResetResult(area_id=area_id, success=True, cleared=cleared))
    return results
