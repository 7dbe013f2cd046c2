"""
Availability resolution.

Turns a doctor's weekly template (weekday name -> list of "HH:MM" start
times) into concrete 30-minute slots for one calendar date. Wall-clock
times are interpreted in the clinic time zone, so a slot keeps its local
time across daylight saving transitions while its UTC instant moves.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Mapping, Sequence

from backend.core import config
from backend.scheduling.errors import ValidationError

WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')

TIME_OF_DAY_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


@dataclass
class Slot:
    doctor_id: int
    start: datetime
    end: datetime
    label: str
    available: bool = True


def parse_time_of_day(value) -> time | None:
    """Parse an "HH:MM" string, returning None for anything malformed."""
    if not isinstance(value, str):
        return None
    match = TIME_OF_DAY_PATTERN.match(value)
    if match is None:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def localize(day: date, wall_time: time, zone: tzinfo) -> datetime | None:
    """Return the UTC instant for a wall-clock time on ``day`` in ``zone``.

    Returns None when the wall-clock time does not exist on that day (the
    hour skipped by a spring-forward transition). Ambiguous times during a
    fall-back transition resolve to the first occurrence.
    """
    local = datetime.combine(day, wall_time, tzinfo=zone)
    instant = local.astimezone(timezone.utc)
    round_trip = instant.astimezone(zone)
    if (round_trip.date(), round_trip.time()) != (day, wall_time):
        return None
    return instant


def clinic_day_bounds(day: date, zone: tzinfo) -> tuple[datetime, datetime]:
    """UTC instants of local midnight on ``day`` and on the following day."""
    start = datetime.combine(day, time(0, 0), tzinfo=zone).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=zone).astimezone(timezone.utc)
    return start, end


def format_slot_label(instant: datetime, zone: tzinfo) -> str:
    local = instant.astimezone(zone)
    hour = local.hour % 12 or 12
    suffix = 'AM' if local.hour < 12 else 'PM'
    return f'{hour}:{local.minute:02d} {suffix}'


def validate_weekly_template(availability) -> dict[str, list[str]]:
    """Check the shape of a submitted weekly template and return a clean copy.

    All seven weekday keys are required, each mapping to a list of "HH:MM"
    strings. Raises ``ValidationError`` describing the first problem found.
    """
    if availability is None:
        raise ValidationError('Availability is required.')

    if not isinstance(availability, Mapping):
        raise ValidationError('Availability must be an object.')

    if set(availability) != set(WEEKDAYS):
        raise ValidationError('Availability must contain each weekday: Monday through Sunday.')

    template: dict[str, list[str]] = {}
    for day in WEEKDAYS:
        entries = availability[day]
        if not isinstance(entries, list):
            raise ValidationError(f'Availability for {day} must be an array.')
        if any(parse_time_of_day(entry) is None for entry in entries):
            raise ValidationError(
                f'Availability for {day} must be an array of strings in the format "HH:MM".'
            )
        template[day] = sorted(set(entries))

    return template


def resolve_slots(
    doctor_id: int,
    day: date,
    weekly_availability: Mapping[str, Sequence[str]] | None,
    clinic_zone: tzinfo,
) -> list[Slot]:
    """Compute the candidate slots a doctor offers on ``day``.

    A weekday with no configured times yields an empty list. Malformed
    entries and times that fall outside the local day are skipped rather
    than reported. The result is ordered by start instant with duplicates
    removed, and every slot starts out available; see
    :func:`backend.scheduling.conflicts.annotate` for the booking checks.
    """
    if not weekly_availability:
        return []

    entries = weekly_availability.get(weekday_name(day)) or []
    duration = timedelta(minutes=config.SLOT_DURATION_MINUTES)
    day_start, day_end = clinic_day_bounds(day, clinic_zone)

    starts: set[datetime] = set()
    for entry in entries:
        wall_time = parse_time_of_day(entry)
        if wall_time is None:
            continue

        start = localize(day, wall_time, clinic_zone)
        if start is None:
            continue

        end = start + duration
        if start < day_start or end >= day_end:
            continue

        starts.add(start)

    return [
        Slot(
            doctor_id=doctor_id,
            start=start,
            end=start + duration,
            label=format_slot_label(start, clinic_zone),
        )
        for start in sorted(starts)
    ]
