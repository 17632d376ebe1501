"""
Occupancy ledger + snapshot.

Every change to an area's count is appended to occupancy_events as a signed
delta, and the area's row in occupancy_snapshots is moved in the same
transaction:

    snapshot_after = max(0, snapshot_before + delta)

The clamp is applied at every step, so the snapshot always equals
replay_occupancy() over the area's events in id order. rebuild_snapshot()
uses that to repair a snapshot from the ledger.

Concurrency: handlers share nothing in memory, so the per-area snapshot
update is serialized by the database, and the snapshot row is moved before
the event row is inserted. The event therefore gets its id while the
snapshot row is held, and id order equals the order deltas were applied.
PostgreSQL and SQLite get a single INSERT ... ON CONFLICT DO UPDATE ...
RETURNING with the clamp computed in SQL. Other dialects use a conditional
UPDATE on the value we read and retry on conflict, re-reading under a row
lock.

An area id belongs to one business and venue. Deltas naming another owner
are rejected with AreaNotFound.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import case, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from doorcount.config import settings
from doorcount.constants import OccupancyEventType
from doorcount.exceptions import AreaNotFound, OccupancyWriteError
from doorcount.models.occupancy import OccupancyEvent, OccupancySnapshot
from doorcount.models.venue import Area
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)

UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


@dataclass
class DeltaResult:
    event_id: int
    current_occupancy: int


@dataclass
class OccupancyWriteResult:
    """Outcome of a delta write that must not abort its caller."""
    applied: Optional[DeltaResult] = None
    error: Optional[OccupancyWriteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RebuildResult:
    area_id: str
    previous: Optional[int]
    rebuilt: int
    event_count: int

    @property
    def drift(self) -> int:
        return self.rebuilt - (self.previous or 0)


def clamp(value: int) -> int:
    return value if value > 0 else 0


def replay_occupancy(deltas: Iterable[int]) -> int:
    """Fold deltas from zero, clamping at the floor after every step."""
    occupancy = 0
    for delta in deltas:
        occupancy = clamp(occupancy + delta)
    return occupancy


# ── Writes ───────────────────────────────────────────────────────────────────

def check_area_scope(db: Session, business_id: str, venue_id: str, area_id: str) -> Optional[Area]:
    """
    Reject an area id owned by another business or venue. Registered areas are
    checked against the directory, unregistered ones against their snapshot.
    Returns the registered Area, or None.
    """
    area = db.query(Area).filter(Area.id == area_id).first()
    if area is not None:
        if (area.business_id, area.venue_id) != (business_id, venue_id):
            raise AreaNotFound(area_id)
        return area

    owner = (
        db.query(OccupancySnapshot.business_id, OccupancySnapshot.venue_id)
        .filter(OccupancySnapshot.area_id == area_id)
        .first()
    )
    if owner is not None and tuple(owner) != (business_id, venue_id):
        raise AreaNotFound(area_id)
    return None


def apply_delta(db: Session, business_id: str, venue_id: str, area_id: str, delta: int,
                event_type: str = OccupancyEventType.MANUAL, device_id: Optional[str] = None,
                source: Optional[str] = None, user_id: Optional[str] = None) -> DeltaResult:
    """
    Append one occupancy event and move the area snapshot, atomically.
    The event is written even when the clamp leaves the count unchanged.
    Raises AreaNotFound when the area belongs to another business or venue.
    """
    kind = OccupancyEventType(event_type).value
    area = check_area_scope(db, business_id, venue_id, area_id)
    capacity = area.capacity if area else None
    now = datetime.utcnow()
    try:
        # Snapshot row first: the event id is taken while the row is held,
        # so id order is application order.
        occupancy = _apply_to_snapshot(db, business_id, venue_id, area_id, delta, now)
        event = OccupancyEvent(
            business_id=business_id,
            venue_id=venue_id,
            area_id=area_id,
            device_id=device_id,
            user_id=user_id,
            delta=delta,
            event_type=kind,
            source=source,
            created_at=now,
        )
        db.add(event)
        db.flush()
        event_id = event.id
        db.execute(
            update(OccupancySnapshot)
            .where(OccupancySnapshot.area_id == area_id)
            .values(last_event_id=event_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"[OCC] {area_id}: {delta:+d} ({kind}) → {occupancy} [event #{event_id}]")
    _warn_if_near_capacity(area_id, occupancy, capacity)
    return DeltaResult(event_id=event_id, current_occupancy=occupancy)


def try_apply_delta(db: Session, business_id: str, venue_id: str, area_id: str, delta: int,
                    **kwargs) -> OccupancyWriteResult:
    """apply_delta for callers that must carry on when the write fails."""
    try:
        return OccupancyWriteResult(applied=apply_delta(db, business_id, venue_id, area_id, delta, **kwargs))
    except (SQLAlchemyError, AreaNotFound) as e:
        error = OccupancyWriteError(area_id, delta, e)
        logger.error(f"[OCC] {error}", exc_info=True)
        return OccupancyWriteResult(error=error)


def _apply_to_snapshot(db: Session, business_id: str, venue_id: str, area_id: str,
                       delta: int, at: datetime) -> int:
    dialect = db.get_bind().dialect.name
    if dialect in UPSERT_DIALECTS:
        return _upsert_snapshot(db, UPSERT_DIALECTS[dialect], business_id, venue_id, area_id, delta, at)
    return _update_snapshot_optimistic(db, business_id, venue_id, area_id, delta, at)


def _upsert_snapshot(db: Session, insert, business_id: str, venue_id: str, area_id: str,
                     delta: int, at: datetime) -> int:
    table = OccupancySnapshot.__table__
    moved = table.c.current_occupancy + delta
    stmt = insert(table).values(
        area_id=area_id,
        business_id=business_id,
        venue_id=venue_id,
        current_occupancy=clamp(delta),
        updated_at=at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.area_id],
        set_={
            "current_occupancy": case((moved < 0, 0), else_=moved),
            "updated_at": at,
        },
        # a row owned by another business/venue is left alone and returns nothing
        where=(table.c.business_id == business_id) & (table.c.venue_id == venue_id),
    ).returning(table.c.current_occupancy)
    occupancy = db.execute(stmt).scalar_one_or_none()
    if occupancy is None:
        raise AreaNotFound(area_id)
    return occupancy


def _read_snapshot(db: Session, area_id: str, lock: bool = False):
    q = db.query(
        OccupancySnapshot.business_id,
        OccupancySnapshot.venue_id,
        OccupancySnapshot.current_occupancy,
        OccupancySnapshot.last_event_id,
    ).filter(OccupancySnapshot.area_id == area_id)
    if lock:
        q = q.with_for_update()
    return q.first()


def _update_snapshot_optimistic(db: Session, business_id: str, venue_id: str, area_id: str,
                                delta: int, at: datetime) -> int:
    attempt = 0
    while True:
        seen = _read_snapshot(db, area_id, lock=attempt > 0)

        if seen is None:
            occupancy = clamp(delta)
            try:
                with db.begin_nested():
                    db.add(OccupancySnapshot(
                        area_id=area_id, business_id=business_id, venue_id=venue_id,
                        current_occupancy=occupancy, updated_at=at,
                    ))
                return occupancy
            except IntegrityError:
                attempt += 1
                logger.debug(f"[OCC] Snapshot for {area_id} created concurrently, retry {attempt}")
                continue

        if (seen.business_id, seen.venue_id) != (business_id, venue_id):
            raise AreaNotFound(area_id)

        occupancy = clamp(seen.current_occupancy + delta)
        seen_last = (OccupancySnapshot.last_event_id.is_(None) if seen.last_event_id is None
                     else OccupancySnapshot.last_event_id == seen.last_event_id)
        result = db.execute(
            update(OccupancySnapshot)
            .where(
                OccupancySnapshot.area_id == area_id,
                OccupancySnapshot.current_occupancy == seen.current_occupancy,
                seen_last,
            )
            .values(current_occupancy=occupancy, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return occupancy
        attempt += 1
        logger.debug(f"[OCC] Snapshot conflict on {area_id}, retry {attempt}")


def set_absolute(db: Session, area_id: str, male: int, female: int,
                 device_id: Optional[str] = None, user_id: Optional[str] = None) -> DeltaResult:
    """
    Set an area to male + female by appending the difference as one
    adjustment delta. The snapshot is never overwritten directly.
    """
    if male < 0 or female < 0:
        raise ValueError("Counts cannot be negative")
    area = db.query(Area).filter(Area.id == area_id).first()
    if not area:
        raise AreaNotFound(area_id)

    current = get_current_occupancy(db, area.business_id, area_id)
    delta = (male + female) - current
    logger.info(f"[OCC] {area_id}: absolute set M={male} F={female} (was {current}, delta {delta:+d})")
    return apply_delta(
        db, area.business_id, area.venue_id, area_id, delta,
        event_type=OccupancyEventType.ADJUSTMENT, device_id=device_id,
        source="absolute", user_id=user_id,
    )


def rebuild_snapshot(db: Session, area_id: str) -> RebuildResult:
    """Recompute an area's snapshot by replaying its whole event history."""
    try:
        snapshot = (
            db.query(OccupancySnapshot)
            .filter(OccupancySnapshot.area_id == area_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        events = (
            db.query(OccupancyEvent)
            .filter(OccupancyEvent.area_id == area_id)
            .order_by(OccupancyEvent.id)
            .all()
        )
        previous = snapshot.current_occupancy if snapshot else None
        rebuilt = replay_occupancy(e.delta for e in events)
        last = events[-1] if events else None

        if snapshot is None and last is not None:
            snapshot = OccupancySnapshot(area_id=area_id, business_id=last.business_id, venue_id=last.venue_id)
            db.add(snapshot)
        if snapshot is not None:
            snapshot.current_occupancy = rebuilt
            snapshot.last_event_id = last.id if last else None
            snapshot.updated_at = datetime.utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise

    result = RebuildResult(area_id=area_id, previous=previous, rebuilt=rebuilt, event_count=len(events))
    if result.drift:
        logger.warning(f"[OCC] {area_id}: snapshot drift {result.drift:+d} corrected ({previous} → {rebuilt})")
    else:
        logger.info(f"[OCC] {area_id}: snapshot verified at {rebuilt} over {len(events)} events")
    return result


# ── Reads ────────────────────────────────────────────────────────────────────

def get_current_occupancy(db: Session, business_id: str, area_id: str) -> int:
    """Live occupancy for an area; 0 when the area has no events yet."""
    snapshot = db.query(OccupancySnapshot).filter(
        OccupancySnapshot.business_id == business_id,
        OccupancySnapshot.area_id == area_id,
    ).first()
    return snapshot.current_occupancy if snapshot else 0


def list_snapshots(db: Session, business_id: str, venue_id: Optional[str] = None) -> list[OccupancySnapshot]:
    q = db.query(OccupancySnapshot).filter(OccupancySnapshot.business_id == business_id)
    if venue_id:
        q = q.filter(OccupancySnapshot.venue_id == venue_id)
    return q.order_by(OccupancySnapshot.area_id).all()


def list_events(db: Session, business_id: str, area_id: Optional[str] = None, limit: int = 100) -> list[OccupancyEvent]:
    q = db.query(OccupancyEvent).filter(OccupancyEvent.business_id == business_id)
    if area_id:
        q = q.filter(OccupancyEvent.area_id == area_id)
    return q.order_by(OccupancyEvent.id.desc()).limit(limit).all()


def _warn_if_near_capacity(area_id: str, occupancy: int, capacity: Optional[int]):
    if capacity and occupancy / capacity >= settings.OCCUPANCY_ALERT_THRESHOLD:
        logger.warning(f"[OCC] {area_id} at {int(occupancy / capacity * 100)}% capacity ({occupancy}/{capacity})")
