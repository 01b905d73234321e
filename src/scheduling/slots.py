"""
Slot arithmetic over weekly availability rules.

Everything here is pure: rules in, UTC datetimes out. The service module
feeds it from the database.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone

from src.scheduling.models import AvailabilityRule


def daterange(start: date, end: date) -> Iterator[date]:
    """Yield every day from `start` to `end`, both inclusive."""
    if end < start:
        raise ValueError("end date must not be before start date")
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def at(day: date, moment: time) -> datetime:
    return datetime.combine(day, moment, tzinfo=timezone.utc)


def slot_starts(
    rule: AvailabilityRule, day: date, duration: timedelta
) -> list[datetime]:
    """Start times of the rule's slots on `day`; a slot may start up to end_time."""
    if duration <= timedelta(0):
        raise ValueError("slot duration must be positive")

    current = at(day, rule.start_time)
    end = at(day, rule.end_time)
    starts = []
    while current < end:
        starts.append(current)
        current += duration
    return starts


def slot_capacities(
    rules: Iterable[AvailabilityRule], day: date, duration: timedelta
) -> dict[datetime, int]:
    """Map each slot start on `day` to its capacity; overlaps keep the larger one."""
    capacities: dict[datetime, int] = {}
    for rule in rules:
        if not rule.is_active or rule.day_of_week != day.weekday():
            continue
        for start in slot_starts(rule, day, duration):
            capacities[start] = max(capacities.get(start, 0), rule.max_appointments)
    return capacities


def generate_slots(
    rules: Iterable[AvailabilityRule], day: date, duration: timedelta
) -> list[datetime]:
    return sorted(slot_capacities(rules, day, duration))


def filter_booked(
    starts: Iterable[datetime], booked: Collection[datetime]
) -> list[datetime]:
    return [start for start in starts if start not in booked]
