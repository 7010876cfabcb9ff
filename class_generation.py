"""
Recurring class generation.

generate_classes_from_start_date() is the only place where a student's weekly
template becomes dated class rows. It reads courses and students from the
record store but never writes: callers de-duplicate the candidates against
existing rows (filter_new_candidates) and insert what is left.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from flask import current_app, has_app_context

from config import school_today
from errors import ScheduleValidationError
from schedule import TimeSlot, parse_fixed_schedule

logger = logging.getLogger(__name__)

LARGE_RANGE_DAYS = 730
GENERATED_NOTE = 'Generated automatically from the fixed schedule'

CENT = Decimal('0.01')


def to_date(value):
    """date, datetime or 'YYYY-MM-DD' -> date. Raises ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    raise ValueError(f"not a date: {value!r}")


def sunday_based_weekday(day):
    """0 = Sunday ... 6 = Saturday, the numbering used by TimeSlot."""
    return (day.weekday() + 1) % 7


def next_occurrence_from(day_of_week, from_date):
    """First date on or after from_date that falls on day_of_week (0 = Sunday)."""
    from_date = to_date(from_date)
    days_ahead = (day_of_week - sunday_based_weekday(from_date)) % 7
    return from_date + timedelta(days=days_ahead)


def compute_class_price(duration_minutes, price_per_hour):
    """Hourly price pro-rated to the class length, rounded half-up to cents."""
    hourly = Decimal(str(price_per_hour))
    return (Decimal(duration_minutes) / Decimal(60) * hourly).quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_hourly_price(course, student=None):
    """Shared-class rate for students on shared pricing when the course has one."""
    if student is not None and student.has_shared_pricing and course.shared_class_price:
        price = course.shared_class_price
    else:
        price = course.price
    if price is None:
        return None
    try:
        price = Decimal(str(price))
    except InvalidOperation:
        return None
    if price < 0:
        return None
    return price


def class_key(item):
    """Identity of a class for duplicate detection: (student_id, date, start_time, end_time)."""
    if isinstance(item, dict):
        student_id, day = item['student_id'], item['date']
        start_time, end_time = item['start_time'], item['end_time']
    else:
        student_id, day = item.student_id, item.date
        start_time, end_time = item.start_time, item.end_time
    return (student_id, to_date(day), start_time[:5], end_time[:5])


def filter_new_candidates(candidates, existing):
    """Candidates whose key is not already taken by an existing row (or an earlier candidate)."""
    seen = {class_key(row) for row in existing}
    fresh = []
    for candidate in candidates:
        key = class_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        fresh.append(candidate)
    return fresh


def generate_classes_from_start_date(store, student_id, course_id, fixed_schedule,
                                     start_date, end_date=None, today=None,
                                     large_range_days=None):
    """
    Build the recurring class payloads a schedule implies for [start_date, end_date].

    Args:
        store: RecordStore used to read the course price and the student's pricing type.
        student_id: Student the classes belong to.
        course_id: Course whose hourly price is applied.
        fixed_schedule: List of TimeSlot or legacy slot dicts (or the stored JSON text).
        start_date: First date that may receive a class.
        end_date: Last date that may receive a class. Defaults to today.
        today: Reference date used when end_date is omitted.
        large_range_days: Spans longer than this are logged as a warning.
            Defaults to the LARGE_RANGE_DAYS app setting.

    Returns:
        List of class payload dicts, not persisted. Empty when the input or the
        referenced records are unusable; the reason is logged.
    """
    if not isinstance(student_id, int) or student_id <= 0 or not isinstance(course_id, int) or course_id <= 0:
        logger.error(f"Invalid student_id={student_id!r} or course_id={course_id!r}, no classes generated")
        return []

    try:
        raw_slots = parse_fixed_schedule(fixed_schedule)
    except ScheduleValidationError as e:
        logger.error(f"Unreadable schedule for student {student_id}: {e}")
        return []
    if not raw_slots:
        logger.error(f"Empty fixed schedule for student {student_id}, no classes generated")
        return []

    if end_date is None:
        if today is None:
            today = school_today()
        end_date = today

    try:
        start = to_date(start_date)
        end = to_date(end_date)
    except ValueError as e:
        logger.error(f"Invalid date range for student {student_id}: {e}")
        return []

    if start > end:
        logger.error(f"start_date {start} is after end_date {end} for student {student_id}")
        return []

    if large_range_days is None:
        large_range_days = LARGE_RANGE_DAYS
        if has_app_context():
            large_range_days = current_app.config.get('LARGE_RANGE_DAYS', LARGE_RANGE_DAYS)
    span = (end - start).days
    if span > large_range_days:
        logger.warning(f"Large date range for student {student_id}: {span} days ({start} to {end})")

    student = store.get_student_by_id(student_id)
    if student is None:
        logger.error(f"Student {student_id} not found, no classes generated")
        return []

    course = store.get_course_by_id(course_id)
    if course is None:
        logger.error(f"Course {course_id} not found for student {student_id}, no classes generated")
        return []

    price_per_hour = resolve_hourly_price(course, student)
    if price_per_hour is None:
        logger.error(f"Course {course_id} has no valid price ({course.price!r}), no classes generated for student {student_id}")
        return []

    logger.debug(
        f"Using {'shared' if student.has_shared_pricing else 'normal'} pricing for student {student_id}: {price_per_hour}/hour")

    classes = []
    for raw_slot in raw_slots:
        try:
            slot = TimeSlot.from_dict(raw_slot)
        except ScheduleValidationError as e:
            logger.warning(f"Skipping time slot {raw_slot!r} for student {student_id}: {e}")
            continue

        duration = slot.duration
        price = compute_class_price(duration, price_per_hour)

        current = next_occurrence_from(slot.day_of_week, start)
        while current <= end:
            classes.append({
                'student_id': student_id,
                'course_id': course_id,
                'day_of_week': current.isoweekday(),
                'date': current,
                'start_time': slot.start_time,
                'end_time': slot.end_time,
                'duration': duration,
                'price': price,
                'status': 'scheduled',
                'payment_status': 'unpaid',
                'payment_notes': '',
                'is_recurring': True,
                'subject': slot.subject or '',
                'notes': GENERATED_NOTE,
            })
            current += timedelta(days=7)

    logger.info(f"Generated {len(classes)} classes for student {student_id} from {start} to {end}")
    return classes
