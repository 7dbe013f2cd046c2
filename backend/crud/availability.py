from typing import Optional

from sqlalchemy.orm import Session

from backend.models.availability import WeeklyAvailability


def find_availability(db: Session, doctor_id: int) -> Optional[dict]:
    record = db.query(WeeklyAvailability).filter(WeeklyAvailability.doctor_id == doctor_id).first()
    if record is None:
        return None
    return record.template


def upsert_availability(db: Session, doctor_id: int, template: dict) -> bool:
    """Replace the doctor's template wholesale. Returns True when created."""
    record = db.query(WeeklyAvailability).filter(WeeklyAvailability.doctor_id == doctor_id).first()
    created = record is None
    if created:
        record = WeeklyAvailability(doctor_id=doctor_id, template=template)
        db.add(record)
    else:
        record.template = dict(template)
    db.commit()
    return created
