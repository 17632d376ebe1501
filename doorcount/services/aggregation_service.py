"""
Traffic reports built by replaying the occupancy ledger. Read-only.

aggregate() simulates occupancy over the window only: the running counter
starts at 0 at the window start and is not clamped, so a window that opens
with exits shows a negative closing value rather than borrowing from the
live snapshot.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from doorcount.models.occupancy import OccupancyEvent
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class HourBucket:
    hour: int
    entries: int = 0
    exits: int = 0
    peak: int = 0


@dataclass
class TrafficReport:
    total_entries: int = 0
    total_exits: int = 0
    peak_occupancy: int = 0
    closing_occupancy: int = 0
    hourly_breakdown: list[HourBucket] = field(default_factory=lambda: [HourBucket(h) for h in range(24)])


def day_window(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def aggregate_events(events: Iterable[OccupancyEvent]) -> TrafficReport:
    """Fold events (already in timestamp, id order) into a TrafficReport."""
    report = TrafficReport()
    running = 0
    for event in events:
        bucket = report.hourly_breakdown[event.created_at.hour]
        running += event.delta
        if event.delta > 0:
            report.total_entries += event.delta
            bucket.entries += event.delta
        elif event.delta < 0:
            report.total_exits += -event.delta
            bucket.exits += -event.delta

        report.peak_occupancy = max(report.peak_occupancy, running)
        bucket.peak = max(bucket.peak, running)

    report.closing_occupancy = running
    return report


def aggregate(db: Session, business_id: str, start: datetime, end: datetime) -> TrafficReport:
    events = (
        db.query(OccupancyEvent)
        .filter(
            OccupancyEvent.business_id == business_id,
            OccupancyEvent.created_at >= start,
            OccupancyEvent.created_at <= end,
        )
        .order_by(OccupancyEvent.created_at, OccupancyEvent.id)
        .all()
    )
    report = aggregate_events(events)
    logger.info(
        f"[REPORT] business={business_id} {start:%Y-%m-%d %H:%M} → {end:%Y-%m-%d %H:%M}: "
        f"{len(events)} events, in={report.total_entries} out={report.total_exits} peak={report.peak_occupancy}"
    )
    return report


def traffic_by_area(db: Session, business_id: str, start: datetime, end: datetime,
                    venue_id: Optional[str] = None, area_id: Optional[str] = None) -> list[dict]:
    """Gross in/out totals per area for the window."""
    q = db.query(OccupancyEvent.area_id, OccupancyEvent.delta).filter(
        OccupancyEvent.business_id == business_id,
        OccupancyEvent.created_at >= start,
        OccupancyEvent.created_at <= end,
    )
    if venue_id:
        q = q.filter(OccupancyEvent.venue_id == venue_id)
    if area_id:
        q = q.filter(OccupancyEvent.area_id == area_id)

    totals: dict[str, dict] = {}
    for row_area_id, delta in q.all():
        stats = totals.setdefault(row_area_id, {"area_id": row_area_id, "total_in": 0, "total_out": 0})
        if delta > 0:
            stats["total_in"] += delta
        else:
            stats["total_out"] += -delta
    if area_id and area_id not in totals:
        totals[area_id] = {"area_id": area_id, "total_in": 0, "total_out": 0}
    return [totals[k] for k in sorted(totals)]
