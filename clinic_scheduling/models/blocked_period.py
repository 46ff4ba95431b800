"""Blocked period model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from clinic_scheduling.database import Base


class BlockedPeriod(Base):
    """Time a dentist is unavailable that is not tied to a patient (leave, admin block)."""
    __tablename__ = "blocked_periods"

    id = Column(Integer, primary_key=True)
    dentist_id = Column(Integer, ForeignKey("dentists.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String)
    created_at = Column(DateTime, default=datetime.now)
