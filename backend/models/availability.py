"""Weekly availability model definitions."""

from sqlalchemy import Column, Integer, ForeignKey, JSON
from backend.database import Base


class WeeklyAvailability(Base):
    """A doctor's recurring weekday -> ["HH:MM", ...] slot template."""
    __tablename__ = "weekly_availability"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    template = Column(JSON, nullable=False, default=dict)
