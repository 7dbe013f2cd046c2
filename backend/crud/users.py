from typing import Optional, Sequence

from sqlalchemy.orm import Session

from backend.models.user import User

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLES = (ROLE_PATIENT, ROLE_DOCTOR)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def get_doctor(db: Session, doctor_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == doctor_id, User.role == ROLE_DOCTOR).first()


def list_doctors(db: Session, specialty: Optional[str] = None) -> Sequence[User]:
    q = db.query(User).filter(User.role == ROLE_DOCTOR)
    if specialty:
        q = q.filter(User.specialty.ilike(f'%{specialty}%'))
    return q.order_by(User.name.asc()).all()


def list_specialties(db: Session) -> list[str]:
    rows = db.query(User.specialty).filter(
        User.role == ROLE_DOCTOR,
        User.specialty.is_not(None),
    ).distinct().all()
    return sorted(specialty for (specialty,) in rows)


def create_user(db: Session, **fields) -> User:
    user = User(**fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
