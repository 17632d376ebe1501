"""
Scan ledger tables.
scan_events: one immutable row per completed admission decision.
identities: minimal per-business summary of each identity token seen
(region, birth year, initials only) for repeat-visit analytics.
"""

from sqlalchemy import Column, DateTime, Integer, JSON, String, UniqueConstraint
from doorcount.database import Base


class ScanEvent(Base):
    __tablename__ = "scan_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64), nullable=False, index=True)
    area_id = Column(String(64))
    device_id = Column(String(64))
    user_id = Column(String(64))
    identity_token = Column(String(64), nullable=False, index=True)
    outcome = Column(String(10), nullable=False)        # ACCEPTED | DENIED
    denial_reason = Column(String(20))                  # UNDERAGE | EXPIRED | BANNED
    scan_metadata = Column("metadata", JSON)            # age, age_band, gender, zip
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ScanEvent {self.id} venue={self.venue_id} outcome={self.outcome}>"


class Identity(Base):
    __tablename__ = "identities"
    __table_args__ = (UniqueConstraint("business_id", "identity_token", name="uq_identity_business_token"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(64), nullable=False)
    identity_token = Column(String(64), nullable=False, index=True)
    issuing_region = Column(String(10))
    birth_year = Column(Integer)
    initials = Column(String(4))
    scan_count = Column(Integer, default=0, nullable=False)
    first_seen_at = Column(DateTime)
    last_seen_at = Column(DateTime)

    def __repr__(self):
        return f"<Identity {self.identity_token[:8]} business={self.business_id} scans={self.scan_count}>"
