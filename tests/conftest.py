from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from backend.crud import availability as availability_crud
from backend.crud import users as users_crud
from backend.database import Database

CLINIC_ZONE = ZoneInfo('America/New_York')

FULL_WEEK_TEMPLATE = {
    'Monday': ['09:00', '09:30', '10:00'],
    'Tuesday': ['09:00'],
    'Wednesday': [],
    'Thursday': [],
    'Friday': [],
    'Saturday': [],
    'Sunday': [],
}


@pytest.fixture
def clinic_time():
    """Return the UTC instant of a wall-clock time at the clinic."""

    def build(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime.combine(day, time(hour, minute), tzinfo=CLINIC_ZONE).astimezone(timezone.utc)

    return build


@pytest.fixture
def database():
    store = Database('sqlite:///:memory:')
    store.open()
    store.create_schema()
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    counter = {'value': 0}

    def build(role: str = users_crud.ROLE_PATIENT, **fields):
        counter['value'] += 1
        fields.setdefault('email', f'{role}{counter["value"]}@example.com')
        fields.setdefault('name', f'{role.title()} {counter["value"]}')
        fields.setdefault('hashed_password', '')
        return users_crud.create_user(db_session, role=role, **fields)

    return build


@pytest.fixture
def doctor(make_user, db_session):
    user = make_user(users_crud.ROLE_DOCTOR, name='Dr. Rivera', specialty='Cardiology')
    availability_crud.upsert_availability(db_session, user.id, dict(FULL_WEEK_TEMPLATE))
    return user


@pytest.fixture
def patient(make_user):
    return make_user(users_crud.ROLE_PATIENT, name='Pat Jones')
