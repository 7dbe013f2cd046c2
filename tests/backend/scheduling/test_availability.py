from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from backend.scheduling.availability import (
    WEEKDAYS,
    clinic_day_bounds,
    format_slot_label,
    parse_time_of_day,
    resolve_slots,
    validate_weekly_template,
)
from backend.scheduling.errors import ValidationError

NEW_YORK = ZoneInfo('America/New_York')
MONDAY = date(2026, 1, 5)
SPRING_FORWARD = date(2026, 3, 8)
FALL_BACK = date(2026, 11, 1)


def _template(**days) -> dict:
    template = {day: [] for day in WEEKDAYS}
    template.update(days)
    return template


def test_resolve_slots_builds_thirty_minute_slots_for_weekday() -> None:
    slots = resolve_slots(7, MONDAY, _template(Monday=['09:00', '09:30']), NEW_YORK)

    assert [(slot.start, slot.end) for slot in slots] == [
        (datetime(2026, 1, 5, 14, 0, tzinfo=timezone.utc), datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)),
        (datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc), datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)),
    ]
    assert all(slot.doctor_id == 7 and slot.available for slot in slots)
    assert [slot.label for slot in slots] == ['9:00 AM', '9:30 AM']


def test_resolve_slots_returns_nothing_for_unconfigured_weekday() -> None:
    assert resolve_slots(1, MONDAY + timedelta(days=2), _template(Monday=['09:00']), NEW_YORK) == []


def test_resolve_slots_returns_nothing_without_template() -> None:
    assert resolve_slots(1, MONDAY, None, NEW_YORK) == []
    assert resolve_slots(1, MONDAY, {}, NEW_YORK) == []


def test_resolve_slots_skips_malformed_entries() -> None:
    template = _template(Monday=['9:00', '24:00', '12:60', 'noon', 1000, None, '13:00'])

    slots = resolve_slots(1, MONDAY, template, NEW_YORK)

    assert [slot.label for slot in slots] == ['1:00 PM']


def test_resolve_slots_deduplicates_and_orders_by_start() -> None:
    template = _template(Monday=['15:30', '08:00', '15:30', '11:00', '08:00'])

    slots = resolve_slots(1, MONDAY, template, NEW_YORK)

    assert [slot.label for slot in slots] == ['8:00 AM', '11:00 AM', '3:30 PM']
    assert [slot.start for slot in slots] == sorted(slot.start for slot in slots)


def test_resolve_slots_is_idempotent() -> None:
    template = _template(Monday=['10:00', '09:00', '09:30'])

    first = resolve_slots(3, MONDAY, template, NEW_YORK)
    second = resolve_slots(3, MONDAY, template, NEW_YORK)

    assert first == second


def test_every_slot_lasts_exactly_thirty_minutes() -> None:
    template = _template(Sunday=['00:00', '01:00', '01:30', '02:30', '03:00', '23:30'])

    for day in (SPRING_FORWARD, FALL_BACK):
        for slot in resolve_slots(1, day, template, NEW_YORK):
            assert slot.end - slot.start == timedelta(minutes=30)


def test_resolve_slots_drops_slot_ending_at_next_midnight() -> None:
    slots = resolve_slots(1, MONDAY, _template(Monday=['23:00', '23:30']), NEW_YORK)

    assert [slot.label for slot in slots] == ['11:00 PM']
    assert slots[0].end == datetime(2026, 1, 6, 4, 30, tzinfo=timezone.utc)


def test_resolve_slots_keeps_local_wall_clock_across_spring_forward() -> None:
    saturday = resolve_slots(1, SPRING_FORWARD - timedelta(days=1), _template(Saturday=['09:00']), NEW_YORK)
    sunday = resolve_slots(1, SPRING_FORWARD, _template(Sunday=['09:00']), NEW_YORK)

    assert saturday[0].start == datetime(2026, 3, 7, 14, 0, tzinfo=timezone.utc)
    assert sunday[0].start == datetime(2026, 3, 8, 13, 0, tzinfo=timezone.utc)
    assert saturday[0].label == sunday[0].label == '9:00 AM'


def test_resolve_slots_skips_time_missing_on_spring_forward_day() -> None:
    slots = resolve_slots(1, SPRING_FORWARD, _template(Sunday=['01:30', '02:30', '03:30']), NEW_YORK)

    assert [slot.label for slot in slots] == ['1:30 AM', '3:30 AM']
    assert [slot.start for slot in slots] == [
        datetime(2026, 3, 8, 6, 30, tzinfo=timezone.utc),
        datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc),
    ]


def test_resolve_slots_uses_first_occurrence_on_fall_back_day() -> None:
    slots = resolve_slots(1, FALL_BACK, _template(Sunday=['01:30', '09:00']), NEW_YORK)

    assert [slot.start for slot in slots] == [
        datetime(2026, 11, 1, 5, 30, tzinfo=timezone.utc),
        datetime(2026, 11, 1, 14, 0, tzinfo=timezone.utc),
    ]


def test_weekday_is_taken_from_the_clinic_calendar_date() -> None:
    # 20:00 Monday in New York is already Tuesday in UTC.
    slots = resolve_slots(1, MONDAY, _template(Monday=['20:00'], Tuesday=['08:00']), NEW_YORK)

    assert [slot.label for slot in slots] == ['8:00 PM']
    assert slots[0].start == datetime(2026, 1, 6, 1, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ('day', 'hours'),
    [
        (MONDAY, 24),
        (SPRING_FORWARD, 23),
        (FALL_BACK, 25),
    ],
)
def test_clinic_day_bounds_follow_local_midnight(day: date, hours: int) -> None:
    start, end = clinic_day_bounds(day, NEW_YORK)

    assert start.astimezone(NEW_YORK).time() == time(0, 0)
    assert end - start == timedelta(hours=hours)


@pytest.mark.parametrize(
    ('hour', 'minute', 'label'),
    [
        (0, 0, '12:00 AM'),
        (9, 5, '9:05 AM'),
        (12, 0, '12:00 PM'),
        (13, 30, '1:30 PM'),
        (23, 30, '11:30 PM'),
    ],
)
def test_format_slot_label(hour: int, minute: int, label: str) -> None:
    instant = datetime.combine(MONDAY, time(hour, minute), tzinfo=NEW_YORK).astimezone(timezone.utc)

    assert format_slot_label(instant, NEW_YORK) == label


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('00:00', time(0, 0)),
        ('09:30', time(9, 30)),
        ('23:59', time(23, 59)),
        ('24:00', None),
        ('9:30', None),
        ('09:3', None),
        ('ab:cd', None),
        (930, None),
    ],
)
def test_parse_time_of_day(value, expected) -> None:
    assert parse_time_of_day(value) == expected


def test_validate_weekly_template_returns_sorted_unique_times() -> None:
    template = validate_weekly_template(_template(Monday=['10:00', '09:00', '10:00']))

    assert template['Monday'] == ['09:00', '10:00']
    assert list(template) == list(WEEKDAYS)


@pytest.mark.parametrize(
    ('availability', 'error_message'),
    [
        (None, 'Availability is required.'),
        (['09:00'], 'Availability must be an object.'),
        ({'Monday': []}, 'Availability must contain each weekday: Monday through Sunday.'),
        ({**_template(), 'Holiday': []}, 'Availability must contain each weekday: Monday through Sunday.'),
        (_template(Friday='09:00'), 'Availability for Friday must be an array.'),
        (
            _template(Tuesday=['09:00', '25:00']),
            'Availability for Tuesday must be an array of strings in the format "HH:MM".',
        ),
    ],
)
def test_validate_weekly_template_rejects_bad_shapes(availability, error_message: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        validate_weekly_template(availability)

    assert exception_info.value.message == error_message
