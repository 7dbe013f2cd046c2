"""
Write-time validation for booking and rescheduling.

These functions only decide; the caller performs the insert or update.
Availability is re-derived from the doctor's template so that a request
cannot target a time the doctor never offered, and the lead time and
overlap rules are applied again to close the gap between reading the
availability listing and submitting the booking.
"""

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Mapping, Sequence

from backend.core import config
from backend.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_NO_SHOW,
    STATUS_UPCOMING,
)
from backend.scheduling.availability import resolve_slots
from backend.scheduling.clock import ensure_utc, normalize_instant
from backend.scheduling.conflicts import blocks_time, holds_time, intervals_overlap, violates_lead_time
from backend.scheduling.errors import ConflictError, InvalidStateError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_UPCOMING: {STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW},
}

TRANSITION_ACTIONS = {
    STATUS_CANCELLED: 'cancel',
    STATUS_COMPLETED: 'complete',
    STATUS_NO_SHOW: 'mark as no-show',
}


def ensure_status_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        action = TRANSITION_ACTIONS.get(target, 'update')
        raise InvalidStateError(f'Can only {action} upcoming appointments.')


def ensure_reschedulable(appointment) -> None:
    if appointment.status != STATUS_UPCOMING:
        raise InvalidStateError('Can only reschedule upcoming appointments.')


def find_conflict(
    doctor_id: int,
    patient_id: int,
    start: datetime,
    end: datetime,
    existing_appointments: Sequence,
    now: datetime,
    exclude_appointment_id: int | None = None,
):
    for appointment in existing_appointments:
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if appointment.doctor_id == doctor_id:
            # The no-show lock only holds the doctor's own slot.
            if not blocks_time(appointment, now):
                continue
        elif appointment.patient_id == patient_id:
            if not holds_time(appointment):
                continue
        else:
            continue
        if intervals_overlap(start, end, appointment.start_time, appointment.end_time):
            return appointment
    return None


def validate_booking(
    doctor_id: int,
    patient_id: int,
    start: datetime | None,
    end: datetime | None,
    existing_appointments: Sequence,
    *,
    weekly_availability: Mapping[str, Sequence[str]] | None,
    clinic_zone: tzinfo,
    now: datetime,
    exclude_appointment_id: int | None = None,
) -> tuple[datetime, datetime]:
    """Validate a requested appointment interval.

    ``existing_appointments`` may contain appointments of any doctor or
    patient; only those sharing the doctor or the patient are considered.
    Returns the normalized UTC ``(start, end)`` pair to persist.

    Raises ``ValidationError`` for missing or misaligned times and for lead
    time violations, ``ConflictError`` when the doctor or the patient
    already holds an overlapping appointment.
    """
    if start is None or end is None:
        raise ValidationError('startDateTime and endDateTime are required.')

    start = normalize_instant(start)
    end = normalize_instant(end)

    if end - start != timedelta(minutes=config.SLOT_DURATION_MINUTES):
        raise ValidationError(f'Appointments must be exactly {config.SLOT_DURATION_MINUTES} minutes long.')

    if violates_lead_time(start, now):
        raise ValidationError('Appointments must be booked at least 1 hour in advance.')

    local_day = start.astimezone(clinic_zone).date()
    offered = {slot.start for slot in resolve_slots(doctor_id, local_day, weekly_availability, clinic_zone)}
    if start not in offered:
        raise ValidationError('The requested time is not one of the doctor\'s available slots.')

    conflict = find_conflict(
        doctor_id,
        patient_id,
        start,
        end,
        existing_appointments,
        now,
        exclude_appointment_id=exclude_appointment_id,
    )
    if conflict is not None:
        logger.info(
            'Booking rejected: doctor=%s patient=%s start=%s overlaps appointment %s',
            doctor_id,
            patient_id,
            start.isoformat(),
            conflict.id,
        )
        raise ConflictError('Time slot already booked.')

    return start, end


def validate_reschedule(
    appointment,
    start: datetime | None,
    end: datetime | None,
    existing_appointments: Sequence,
    *,
    weekly_availability: Mapping[str, Sequence[str]] | None,
    clinic_zone: tzinfo,
    now: datetime,
) -> tuple[datetime, datetime]:
    """Validate moving ``appointment`` to a new interval.

    A missing start keeps the stored one; a missing end is derived from
    the start. The appointment itself is ignored in the overlap check.
    """
    ensure_reschedulable(appointment)

    if start is None:
        start = appointment.start_time
    if end is None:
        end = ensure_utc(start) + timedelta(minutes=config.SLOT_DURATION_MINUTES)

    return validate_booking(
        appointment.doctor_id,
        appointment.patient_id,
        start,
        end,
        existing_appointments,
        weekly_availability=weekly_availability,
        clinic_zone=clinic_zone,
        now=now,
        exclude_appointment_id=appointment.id,
    )
