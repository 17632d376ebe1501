"""
Venue directory tables: businesses, their venues, and the physical areas
inside each venue. Businesses carry the admission settings consumed by
admission_service (age threshold, auto-increment on accepted scans).
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from doorcount.database import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)
    age_threshold = Column(Integer)                 # NULL → settings.DEFAULT_AGE_THRESHOLD
    auto_increment_on_scan = Column(Boolean)        # NULL → settings.AUTO_INCREMENT_ON_SCAN
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Business {self.id} name={self.name}>"


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(64), primary_key=True)
    business_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    capacity = Column(Integer)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Venue {self.id} business={self.business_id}>"


class Area(Base):
    __tablename__ = "areas"

    id = Column(String(64), primary_key=True)
    business_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    capacity = Column(Integer)
    counting_mode = Column(String(20), default="BOTH", nullable=False)  # MANUAL | AUTO_FROM_SCANS | BOTH
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Area {self.id} venue={self.venue_id}>"
