"""
Weekly schedule templates.

A student's fixed schedule is stored as a JSON array of objects in
Student.fixed_schedule. This module converts between that legacy shape and
TimeSlot values and checks the template for overlaps.
"""

import json
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from errors import ScheduleValidationError

# Order of keys in the stored JSON objects
SLOT_FIELDS = ('day_of_week', 'start_time', 'end_time', 'subject', 'course_id', 'price')

MAX_SLOT_MINUTES = 24 * 60

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def normalize_time(value):
    """'16:00:00' -> '16:00'. Raises ValueError for anything that is not HH:MM[:SS]."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"missing time value: {value!r}")
    parts = value.strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"malformed time: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= hours <= 24 and 0 <= minutes < 60 and 0 <= seconds < 60) or (hours == 24 and (minutes or seconds)):
        raise ValueError(f"time out of range: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def time_to_minutes(value):
    hours, minutes = normalize_time(value).split(':')
    return int(hours) * 60 + int(minutes)


def calculate_duration(start_time, end_time):
    """Minutes between two HH:MM times of the same day (negative if end is before start)."""
    return time_to_minutes(end_time) - time_to_minutes(start_time)


@dataclass(frozen=True)
class TimeSlot:
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: str
    end_time: str
    subject: Optional[str] = None
    course_id: Optional[int] = None
    price: Optional[float] = None

    @property
    def duration(self):
        return calculate_duration(self.start_time, self.end_time)

    @property
    def start_minutes(self):
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self):
        return time_to_minutes(self.end_time)

    def overlaps(self, other):
        return (self.day_of_week == other.day_of_week
                and self.start_minutes < other.end_minutes
                and other.start_minutes < self.end_minutes)

    def describe(self):
        return f"{DAY_NAMES[self.day_of_week]} {self.start_time}-{self.end_time}"

    @classmethod
    def from_dict(cls, data):
        """Build and validate a slot from one object of the stored JSON array."""
        if isinstance(data, TimeSlot):
            data = data.to_dict()
        if not isinstance(data, dict):
            raise ScheduleValidationError(f"time slot must be an object, got {data!r}", [data])

        day = data.get('day_of_week')
        # bool is an int subclass
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise ScheduleValidationError(f"invalid day_of_week: {day!r}", [data])

        try:
            start_time = normalize_time(data.get('start_time'))
            end_time = normalize_time(data.get('end_time'))
        except ValueError as e:
            raise ScheduleValidationError(f"invalid time in slot: {e}", [data]) from e

        duration = calculate_duration(start_time, end_time)
        if duration <= 0 or duration > MAX_SLOT_MINUTES:
            raise ScheduleValidationError(
                f"invalid duration {duration} minutes ({start_time}-{end_time})", [data])

        course_id, price = data.get('course_id'), data.get('price')
        if course_id is not None and (isinstance(course_id, bool) or not isinstance(course_id, int)):
            raise ScheduleValidationError(f"invalid course_id: {course_id!r}", [data])
        if price is not None and (isinstance(price, bool) or not isinstance(price, (int, float))):
            raise ScheduleValidationError(f"invalid price: {price!r}", [data])

        return cls(
            day_of_week=day,
            start_time=start_time,
            end_time=end_time,
            subject=data.get('subject') or None,
            course_id=course_id,
            price=price,
        )

    def to_dict(self):
        return {field: getattr(self, field) for field in SLOT_FIELDS}


def find_overlaps(slots):
    """Pairs of slots that share a weekday and whose [start, end) intervals intersect."""
    by_day = defaultdict(list)
    for slot in slots:
        by_day[slot.day_of_week].append(slot)

    overlaps = []
    for day_slots in by_day.values():
        day_slots.sort(key=lambda s: s.start_minutes)
        for i, slot in enumerate(day_slots):
            for other in day_slots[i + 1:]:
                if other.start_minutes >= slot.end_minutes:
                    break
                overlaps.append((slot, other))
    return overlaps


def validate_schedule(raw_slots):
    """
    Parse a whole schedule for saving. Unlike class generation, which skips
    bad slots, a save is rejected if any slot is malformed or two slots overlap.
    """
    if raw_slots is None:
        return []
    if not isinstance(raw_slots, list):
        raise ScheduleValidationError('schedule must be a list of time slots')

    slots = [TimeSlot.from_dict(item) for item in raw_slots]

    overlaps = find_overlaps(slots)
    if overlaps:
        first, second = overlaps[0]
        raise ScheduleValidationError(
            f"overlapping time slots: {first.describe()} and {second.describe()}",
            [s.to_dict() for pair in overlaps for s in pair])
    return slots


def parse_fixed_schedule(value):
    """
    Decode the stored column into raw slot dicts. Accepts the JSON text, an
    already decoded list, or None.
    """
    if not value:
        return []
    if isinstance(value, list):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        raise ScheduleValidationError('fixed_schedule is not valid JSON') from None
    if not isinstance(decoded, list):
        raise ScheduleValidationError('fixed_schedule must be a JSON array')
    return decoded


def dump_fixed_schedule(slots):
    """Encode slots for Student.fixed_schedule. An empty schedule is stored as NULL."""
    if not slots:
        return None
    return json.dumps([TimeSlot.from_dict(s).to_dict() for s in slots])
