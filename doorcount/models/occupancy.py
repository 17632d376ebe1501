"""
Occupancy ledger tables.
occupancy_events is append-only: every count change (scan, manual tap,
absolute correction, reset) is a signed delta row. The autoincrement id is
the application order.
occupancy_snapshots holds one row per area with the step-wise clamped sum
of that area's deltas, for O(1) reads. It can always be rebuilt from the
events (occupancy_ledger.rebuild_snapshot).
"""

from sqlalchemy import Column, DateTime, Integer, String, Index
from doorcount.database import Base


class OccupancyEvent(Base):
    __tablename__ = "occupancy_events"
    __table_args__ = (
        Index("ix_occupancy_events_area_id_id", "area_id", "id"),
        Index("ix_occupancy_events_business_created", "business_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(64), nullable=False)
    venue_id = Column(String(64), nullable=False, index=True)
    area_id = Column(String(64), nullable=False)
    device_id = Column(String(64))
    user_id = Column(String(64))
    delta = Column(Integer, nullable=False)
    event_type = Column(String(20), nullable=False)     # scan | manual | reset | adjustment
    source = Column(String(50))
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<OccupancyEvent {self.id} area={self.area_id} delta={self.delta:+d} type={self.event_type}>"


class OccupancySnapshot(Base):
    __tablename__ = "occupancy_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    area_id = Column(String(64), unique=True, nullable=False, index=True)
    business_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64), nullable=False)
    current_occupancy = Column(Integer, default=0, nullable=False)
    last_event_id = Column(Integer)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<OccupancySnapshot {self.area_id} occupancy={self.current_occupancy}>"
