from sqlalchemy import Column, DateTime, String

from app.db.base_class import Base


class PollLease(Base):
    """Mutual-exclusion lease for periodic jobs, keyed by job name."""

    __tablename__ = "poll_leases"

    name = Column(String(100), primary_key=True)
    holder = Column(String(64), nullable=False)
    acquired_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
