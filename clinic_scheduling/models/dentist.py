"""Dentist and working-hours model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from clinic_scheduling.database import Base


class Dentist(Base):
    """A dentist whose calendar can be booked. Deactivated, never deleted."""
    __tablename__ = "dentists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    working_hours = relationship(
        "WorkingHours",
        back_populates="dentist",
        cascade="all, delete-orphan",
        order_by="WorkingHours.weekday",
    )


class WorkingHours(Base):
    """One weekday of a dentist's weekly template (0 = Monday)."""
    __tablename__ = "dentist_working_hours"
    __table_args__ = (UniqueConstraint("dentist_id", "weekday", name="uq_working_hours_dentist_weekday"),)

    id = Column(Integer, primary_key=True)
    dentist_id = Column(Integer, ForeignKey("dentists.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    dentist = relationship("Dentist", back_populates="working_hours")
