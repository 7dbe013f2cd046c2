"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, String, text
from backend.database import Base

STATUS_UPCOMING = "upcoming"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no-show"

APPOINTMENT_STATUSES = (STATUS_UPCOMING, STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

_ACTIVE_ONLY = text("status = 'upcoming'")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """Represents a booked 30-minute visit. Times are stored as naive UTC."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_doctor_active_start",
            "doctor_id",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_appointments_patient_active_start",
            "patient_id",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("idx_appointments_doctor_time_range", "doctor_id", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String)
    status = Column(String, nullable=False, default=STATUS_UPCOMING)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime)
    no_show_marked_at = Column(DateTime)
