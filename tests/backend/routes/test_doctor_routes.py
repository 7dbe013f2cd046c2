from datetime import date, datetime, timedelta, timezone

import pytest

from backend.crud import appointments as appointments_crud
from backend.routes.doctor_routes import (
    get_doctor_availability,
    list_doctors,
    list_specialties,
    parse_query_date,
)
from backend.scheduling.errors import NotFoundError, ValidationError

MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('backend.routes.doctor_routes.utcnow', lambda: NOW)


def _availability(doctor, db_session, current_user=None, day: str = '2026-01-05'):
    return get_doctor_availability(doctor_id=doctor.id, date=day, current_user=current_user, db=db_session)


def _book(db_session, doctor, patient, start: datetime, status: str = 'upcoming'):
    appointment = appointments_crud.insert_appointment(
        db_session,
        patient_id=patient.id,
        doctor_id=doctor.id,
        start=start,
        end=start + timedelta(minutes=30),
    )
    if status != 'upcoming':
        appointments_crud.update_appointment(db_session, appointment, status=status)
    return appointment


def test_parse_query_date_accepts_iso_date() -> None:
    assert parse_query_date(' 2026-01-05 ') == MONDAY


@pytest.mark.parametrize(
    ('value', 'message'),
    [
        (None, 'Date parameter required (YYYY-MM-DD).'),
        ('', 'Date parameter required (YYYY-MM-DD).'),
        ('01/05/2026', 'Date must be in YYYY-MM-DD format.'),
        ('2026-02-30', 'Date must be in YYYY-MM-DD format.'),
    ],
)
def test_parse_query_date_rejects_bad_input(value, message: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        parse_query_date(value)

    assert exception_info.value.message == message


def test_availability_lists_every_open_slot(db_session, doctor, clinic_time) -> None:
    response = _availability(doctor, db_session)

    assert response.doctor.id == doctor.id
    assert response.doctor.name == 'Dr. Rivera'
    assert response.date == MONDAY
    assert response.timezone == 'America/New_York'
    assert [(slot.time, slot.available) for slot in response.slots] == [
        ('9:00 AM', True),
        ('9:30 AM', True),
        ('10:00 AM', True),
    ]
    assert response.slots[0].start == clinic_time(MONDAY, 9, 0)
    assert response.slots[0].end == clinic_time(MONDAY, 9, 30)


def test_availability_marks_booked_slot_unavailable(db_session, doctor, patient, clinic_time) -> None:
    _book(db_session, doctor, patient, clinic_time(MONDAY, 9, 0))

    response = _availability(doctor, db_session)

    assert [(slot.time, slot.available) for slot in response.slots] == [
        ('9:00 AM', False),
        ('9:30 AM', True),
        ('10:00 AM', True),
    ]


def test_availability_reopens_cancelled_slot(db_session, doctor, patient, clinic_time) -> None:
    _book(db_session, doctor, patient, clinic_time(MONDAY, 9, 0), status='cancelled')

    response = _availability(doctor, db_session)

    assert all(slot.available for slot in response.slots)


def test_availability_includes_requesting_patient_conflicts(
    db_session, doctor, patient, make_user, clinic_time
) -> None:
    other_doctor = make_user('doctor', specialty='Dermatology')
    _book(db_session, other_doctor, patient, clinic_time(MONDAY, 9, 30))

    anonymous = _availability(doctor, db_session)
    as_patient = _availability(doctor, db_session, current_user=patient)

    assert [slot.available for slot in anonymous.slots] == [True, True, True]
    assert [slot.available for slot in as_patient.slots] == [True, False, True]


def test_availability_ignores_doctor_callers_own_schedule(db_session, doctor, patient, make_user, clinic_time) -> None:
    other_doctor = make_user('doctor')
    _book(db_session, other_doctor, patient, clinic_time(MONDAY, 9, 30))

    response = _availability(doctor, db_session, current_user=other_doctor)

    assert all(slot.available for slot in response.slots)


def test_availability_applies_lead_time(db_session, doctor, monkeypatch: pytest.MonkeyPatch, clinic_time) -> None:
    monkeypatch.setattr(
        'backend.routes.doctor_routes.utcnow',
        lambda: clinic_time(MONDAY, 8, 15),
    )

    response = _availability(doctor, db_session)

    assert [slot.available for slot in response.slots] == [False, True, True]


def test_availability_is_empty_for_day_without_template(db_session, doctor) -> None:
    response = _availability(doctor, db_session, day='2026-01-07')

    assert response.slots == []


def test_availability_rejects_unknown_doctor(db_session, patient) -> None:
    with pytest.raises(NotFoundError):
        get_doctor_availability(doctor_id=patient.id, date='2026-01-05', current_user=None, db=db_session)


def test_list_doctors_filters_by_specialty(db_session, doctor, make_user) -> None:
    make_user('doctor', name='Dr. Skin', specialty='Dermatology')
    make_user('patient', name='Not A Doctor')

    everyone = list_doctors(specialty=None, db=db_session)
    cardiology = list_doctors(specialty='cardio', db=db_session)

    assert [item.name for item in everyone] == ['Dr. Rivera', 'Dr. Skin']
    assert [item.id for item in cardiology] == [doctor.id]


def test_list_specialties_is_sorted_and_distinct(db_session, doctor, make_user) -> None:
    make_user('doctor', specialty='Dermatology')
    make_user('doctor', specialty='Cardiology')
    make_user('doctor')

    assert list_specialties(db=db_session) == ['Cardiology', 'Dermatology']
