"""User model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Text
from backend.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Represents a patient or doctor account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)  # patient/doctor
    name = Column(String, nullable=False)
    phone = Column(String)
    dob = Column(String)
    specialty = Column(String, index=True)
    about = Column(Text)
    contact = Column(String)
    additional_info = Column(Text)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime)
