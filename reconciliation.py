"""
Schedule reconciliation.

When a student's weekly template is replaced, recurring classes from today
onwards are thrown away and regenerated from the new template. Classes dated
before today are history and are never modified, deleted or regenerated here.

The steps are separate store calls with no surrounding transaction. If a run
dies between the delete and the insert, refresh_student_classes() rebuilds the
future classes from the stored template.
"""

import calendar
import logging
from collections import namedtuple
from datetime import date

from class_generation import (
    filter_new_candidates, generate_classes_from_start_date, resolve_hourly_price, to_date,
)
from errors import DataIntegrityError, RecordNotFound
from schedule import dump_fixed_schedule, parse_fixed_schedule, validate_schedule

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 1

ReconciliationResult = namedtuple('ReconciliationResult', ['deleted', 'created', 'skipped'])


def add_months(day, months):
    """Same day number `months` later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def default_horizon(today, months=DEFAULT_HORIZON_MONTHS):
    return add_months(today, months)


def _check_course(store, student):
    course = store.get_course_by_id(student.course_id)
    if course is None:
        raise DataIntegrityError(f"course {student.course_id} of student {student.id} not found")
    if resolve_hourly_price(course, student) is None:
        raise DataIntegrityError(f"course {course.id} has no valid price")


def _delete_future_recurring(store, student_id, today):
    future = store.list_classes(student_id=student_id, is_recurring=True, date_from=today)
    for cls in future:
        store.delete_class(cls.id)
    logger.info(f"Deleted {len(future)} recurring classes of student {student_id} from {today} onwards")
    return len(future)


def _regenerate_future(store, student, slots, today, horizon_end):
    if not slots:
        logger.info(f"Empty schedule for student {student.id}, nothing to regenerate")
        return 0, 0

    # Nothing before enrollment
    start = max(today, student.start_date) if student.start_date else today
    if start > horizon_end:
        logger.info(f"Student {student.id} starts on {student.start_date}, after {horizon_end}; nothing to generate")
        return 0, 0

    candidates = generate_classes_from_start_date(
        store, student.id, student.course_id, slots, start, horizon_end, today=today)

    # Normally empty after the delete step
    existing = store.list_classes(student_id=student.id, is_recurring=True, date_from=today)
    fresh = filter_new_candidates(candidates, existing)

    for payload in fresh:
        store.create_class(payload)

    skipped = len(candidates) - len(fresh)
    logger.info(
        f"Created {len(fresh)} classes for student {student.id} between {start} and {horizon_end}"
        f" ({skipped} already present)")
    return len(fresh), skipped


def reconcile_schedule(store, student_id, new_schedule, today, horizon_end=None):
    """
    Replace a student's weekly template and rebuild their future recurring classes.

    Args:
        store: RecordStore.
        student_id: Student whose template changes.
        new_schedule: List of slot dicts or TimeSlot values (may be empty).
        today: Reference date. Classes before it are left alone.
        horizon_end: Last date to generate. Defaults to one month after today.

    Returns:
        ReconciliationResult(deleted, created, skipped).

    Raises:
        ScheduleValidationError: the new template is malformed or overlaps itself.
            Nothing has been written in that case.
        RecordNotFound: unknown student.
        DataIntegrityError: the student's course is missing or has no usable price.
    """
    today = to_date(today)
    horizon_end = to_date(horizon_end) if horizon_end is not None else default_horizon(today)
    if horizon_end < today:
        horizon_end = today

    slots = validate_schedule(new_schedule)

    student = store.get_student_by_id(student_id)
    if student is None:
        raise RecordNotFound(f"student {student_id} not found")
    _check_course(store, student)

    store.update_student(student_id, {'fixed_schedule': dump_fixed_schedule(slots)})
    logger.info(f"Updated fixed schedule of student {student_id}: {[s.describe() for s in slots]}")

    deleted = _delete_future_recurring(store, student_id, today)
    created, skipped = _regenerate_future(store, student, slots, today, horizon_end)
    return ReconciliationResult(deleted, created, skipped)


def refresh_student_classes(store, student_id, today, horizon_end=None):
    """Rebuild future recurring classes from the template already stored on the student."""
    today = to_date(today)
    horizon_end = to_date(horizon_end) if horizon_end is not None else default_horizon(today)
    if horizon_end < today:
        horizon_end = today

    student = store.get_student_by_id(student_id)
    if student is None:
        raise RecordNotFound(f"student {student_id} not found")
    _check_course(store, student)

    slots = validate_schedule(parse_fixed_schedule(student.fixed_schedule))

    deleted = _delete_future_recurring(store, student_id, today)
    created, skipped = _regenerate_future(store, student, slots, today, horizon_end)
    return ReconciliationResult(deleted, created, skipped)
