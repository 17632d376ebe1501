"""
Ban registry table.
A ban with venue_id NULL applies to every venue of the business.
Bans are never deleted: revoke sets active=False and stamps revoked_at.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from doorcount.database import Base


class Ban(Base):
    __tablename__ = "bans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64))                        # NULL → business-wide
    identity_token = Column(String(64), nullable=False, index=True)
    reason_code = Column(String(50), nullable=False)
    notes = Column(Text)
    created_by = Column(String(64))
    created_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime)                            # NULL → permanent
    active = Column(Boolean, default=True, nullable=False)
    revoked_at = Column(DateTime)
    revoked_by = Column(String(64))

    def __repr__(self):
        scope = self.venue_id or "business"
        return f"<Ban {self.id} scope={scope} active={self.active}>"
