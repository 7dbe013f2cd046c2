"""
Conflict detection between candidate slots and existing appointments.

Appointments are read through their ``start_time``, ``end_time``, ``status``
and ``no_show_marked_at`` attributes, so ORM rows and plain objects both
work. Naive datetimes are treated as UTC.
"""

from datetime import datetime, timedelta
from typing import Iterable, Sequence

from backend.core import config
from backend.models.appointment import STATUS_CANCELLED, STATUS_NO_SHOW
from backend.scheduling.availability import Slot
from backend.scheduling.clock import ensure_utc


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap test; intervals that only touch do not overlap."""
    return ensure_utc(start_a) < ensure_utc(end_b) and ensure_utc(end_a) > ensure_utc(start_b)


def holds_time(appointment) -> bool:
    """Whether the appointment occupies its interval for booking purposes.

    Cancelled appointments never do. A no-show releases its interval once
    marked; the short hold that follows is handled by :func:`is_no_show_locked`.
    """
    return appointment.status not in (STATUS_CANCELLED, STATUS_NO_SHOW)


def is_no_show_locked(appointment, now: datetime) -> bool:
    if appointment.status != STATUS_NO_SHOW or appointment.no_show_marked_at is None:
        return False
    elapsed = ensure_utc(now) - ensure_utc(appointment.no_show_marked_at)
    return elapsed < timedelta(minutes=config.NO_SHOW_LOCK_MINUTES)


def blocks_time(appointment, now: datetime) -> bool:
    return holds_time(appointment) or is_no_show_locked(appointment, now)


def violates_lead_time(start: datetime, now: datetime) -> bool:
    """True when ``start`` is not strictly more than the lead time after ``now``."""
    return ensure_utc(start) <= ensure_utc(now) + timedelta(minutes=config.BOOKING_LEAD_TIME_MINUTES)


def _overlapping(appointments: Iterable, start: datetime, end: datetime) -> list:
    return [
        appointment
        for appointment in appointments
        if intervals_overlap(start, end, appointment.start_time, appointment.end_time)
    ]


def annotate(
    slots: list[Slot],
    doctor_appointments: Sequence,
    patient_appointments: Sequence | None,
    now: datetime,
) -> list[Slot]:
    """Set ``available`` on each slot and return the same list.

    A slot is unavailable when it overlaps a doctor or patient appointment
    that holds its time, when it overlaps a doctor appointment still inside
    the no-show lock window, or when it starts within the booking lead time.
    """
    patient_appointments = patient_appointments or []

    for slot in slots:
        doctor_overlaps = _overlapping(doctor_appointments, slot.start, slot.end)
        is_doctor_booked = any(holds_time(appointment) for appointment in doctor_overlaps)
        is_locked = any(is_no_show_locked(appointment, now) for appointment in doctor_overlaps)
        is_patient_booked = any(
            holds_time(appointment)
            for appointment in _overlapping(patient_appointments, slot.start, slot.end)
        )

        slot.available = not (
            is_doctor_booked
            or is_patient_booked
            or is_locked
            or violates_lead_time(slot.start, now)
        )

    return slots
