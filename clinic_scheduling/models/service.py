"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, Integer, String

from clinic_scheduling.database import Base


class Service(Base):
    """A bookable service. Its duration decides the length of every appointment."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
